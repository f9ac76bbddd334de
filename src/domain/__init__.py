"""
Domain layer - Pure business logic with zero framework imports.

This package contains the identity-verification registration workflow:
one-time phone codes, document capture, biometric verdicts and the
registration aggregate that gates submission. It defines its own port
interfaces for infrastructure abstraction.
"""

from .aggregate import RegistrationAggregate
from .documents import DocumentStore
from .exceptions import (
    AlreadySubmitted,
    CapabilityUnavailable,
    CodeExpired,
    CodeSuperseded,
    ComparisonSuperseded,
    DocumentMissing,
    InvalidCode,
    InvalidField,
    InvalidImage,
    InvalidPhoneNumber,
    MatcherUnavailable,
    MessagingUnavailable,
    NoActiveCode,
    RegistrationAlreadyPersisted,
    RegistrationClosed,
    RegistrationError,
    RegistrationIncomplete,
    SequencingError,
    ValidationError,
)
from .ports import (
    BiometricMatcher,
    CodeState,
    CodeStore,
    ContactSlot,
    MessagingGateway,
    RegistrationRepository,
    RegistrationState,
    Requirement,
    VerdictStatus,
    VerifyResult,
)
from .registration import RegistrationWorkflow
from .verification import ContactVerifier

__all__ = [
    "AlreadySubmitted",
    "BiometricMatcher",
    "CapabilityUnavailable",
    "CodeExpired",
    "CodeState",
    "CodeStore",
    "CodeSuperseded",
    "ComparisonSuperseded",
    "ContactSlot",
    "ContactVerifier",
    "DocumentMissing",
    "DocumentStore",
    "InvalidCode",
    "InvalidField",
    "InvalidImage",
    "InvalidPhoneNumber",
    "MatcherUnavailable",
    "MessagingGateway",
    "MessagingUnavailable",
    "NoActiveCode",
    "RegistrationAggregate",
    "RegistrationAlreadyPersisted",
    "RegistrationClosed",
    "RegistrationError",
    "RegistrationIncomplete",
    "RegistrationRepository",
    "RegistrationState",
    "RegistrationWorkflow",
    "Requirement",
    "SequencingError",
    "ValidationError",
    "VerdictStatus",
    "VerifyResult",
]
