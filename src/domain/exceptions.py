"""
Domain exceptions - Semantic error types for registration.

This module defines domain-specific exceptions that communicate
business rule violations without leaking infrastructure details.

Families:
- ValidationError: input rejected synchronously, no state change
- SequencingError: caller violated the required ordering, no state change
- CapabilityUnavailable: a collaborator could not be reached, retryable

Code mismatches and failed biometric matches are NOT errors; they are
returned as values (VerifyResult.MISMATCH, VerdictStatus.FAILED).
"""


class RegistrationError(Exception):
    """Base class for registration domain errors."""

    retryable = False


class ValidationError(RegistrationError):
    """Input failed a validation rule."""

    pass


class InvalidPhoneNumber(ValidationError):
    """Phone number does not meet minimum length/format."""

    pass


class InvalidImage(ValidationError):
    """Image payload is empty or exceeds the size ceiling."""

    pass


class InvalidField(ValidationError):
    """Unknown person or emergency-contact field name."""

    pass


class InvalidCode(ValidationError):
    """Submitted code is not `code_length` digits."""

    pass


class SequencingError(RegistrationError):
    """Operation invoked out of the required order."""

    pass


class DocumentMissing(SequencingError):
    """Face capture attempted before any identity document was uploaded."""

    pass


class NoActiveCode(SequencingError):
    """No pending verification code for the phone number."""

    pass


class CodeSuperseded(NoActiveCode):
    """Submitted value belongs to a code replaced by a newer one."""

    pass


class CodeExpired(SequencingError):
    """Active code is past its expiry; it is now terminal."""

    pass


class AlreadySubmitted(SequencingError):
    """Registration was already finalized and is immutable."""

    pass


class RegistrationClosed(SequencingError):
    """Registration was abandoned."""

    pass


class ComparisonSuperseded(SequencingError):
    """Biometric comparison no longer targets the current document."""

    pass


class RegistrationAlreadyPersisted(SequencingError):
    """Persistence already holds a registration with this id."""

    pass


class RegistrationIncomplete(SequencingError):
    """Submission attempted before every requirement holds."""

    def __init__(self, missing) -> None:
        self.missing = tuple(missing)
        super().__init__(", ".join(str(r.value) for r in self.missing))


class CapabilityUnavailable(RegistrationError):
    """A dependent capability failed transiently."""

    retryable = True


class MatcherUnavailable(CapabilityUnavailable):
    """Biometric matcher could not be reached."""

    pass


class MessagingUnavailable(CapabilityUnavailable):
    """Messaging gateway could not deliver the code."""

    pass
