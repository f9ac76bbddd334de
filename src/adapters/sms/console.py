"""
Console SMS gateway adapter - Implements MessagingGateway protocol.

Stands in for a carrier: the text message a subscriber would receive is
rendered and written to the log instead of being handed to an SMS network.
"""

import logging

logger = logging.getLogger(__name__)

DEFAULT_TEMPLATE = "Your idgate verification code is {code}. Do not share it."


class ConsoleSmsGateway:
    """
    Implements MessagingGateway protocol via console logging.

    Delivery never fails, so the MessagingUnavailable path is only reached
    through a carrier adapter or a test double.
    """

    def __init__(self, template: str = DEFAULT_TEMPLATE) -> None:
        self.template = template

    def render(self, code: str) -> str:
        """Text body of the SMS carrying `code`."""
        return self.template.format(code=code)

    def send_verification_code(self, phone_number: str, code: str) -> None:
        """
        Write the SMS for `phone_number` to the log at INFO.

        Args:
            phone_number: Recipient in normalized form (digits, optional leading +)
            code: Numeric one-time code, leading zeros preserved
        """
        logger.info(
            "[VERIFICATION] Phone: %s Code: %s Message: %s",
            phone_number,
            code,
            self.render(code),
        )
