"""
pkio Error Taxonomy

Every failure raised by an entity or container operation is a PkioError
subclass. Each error carries the step that failed and a failure category so
callers can tell integrity violations apart from malformed input and from
unsupported configuration.
"""

from contextlib import contextmanager
from enum import Enum
from typing import Iterator, Optional


class FailureCategory(str, Enum):
    """Broad failure classes for caller-side handling."""
    INTEGRITY = "INTEGRITY"
    MALFORMED_INPUT = "MALFORMED_INPUT"
    UNSUPPORTED = "UNSUPPORTED"
    PRECONDITION = "PRECONDITION"
    CRYPTO = "CRYPTO"


class PkioError(Exception):
    """Base class for all pkio failures."""

    category: FailureCategory = FailureCategory.CRYPTO

    def __init__(self, message: str, step: Optional[str] = None):
        self.message = message
        self.step = step
        super().__init__(message)

    def __str__(self) -> str:
        if self.step:
            return f"{self.step}: {self.message}"
        return self.message


class UnsupportedAlgorithm(PkioError):
    """Key type or signature mode is not one pkio implements."""
    category = FailureCategory.UNSUPPORTED


class KeyGenerationError(PkioError):
    """A freshly generated key failed validation."""


class InvalidEncoding(PkioError):
    """Hex, base64, PEM or JSON input could not be decoded."""
    category = FailureCategory.MALFORMED_INPUT


class SigningError(PkioError):
    pass


class VerificationError(PkioError):
    """Signature present but does not match the container."""
    category = FailureCategory.INTEGRITY


class NotSignedError(PkioError):
    category = FailureCategory.MALFORMED_INPUT


class AuthenticationError(PkioError):
    pass


class AuthenticationVerificationError(PkioError):
    """Keyed authentication code does not match the container."""
    category = FailureCategory.INTEGRITY


class NotEncryptedError(PkioError):
    category = FailureCategory.MALFORMED_INPUT


class InvalidRecipients(PkioError):
    category = FailureCategory.MALFORMED_INPUT


class EncryptionError(PkioError):
    pass


class DecryptionError(PkioError):
    pass


class PrivateKeyMissing(PkioError):
    """Operation needs a private key but the entity is a public view."""
    category = FailureCategory.PRECONDITION


def is_integrity_failure(error: BaseException) -> bool:
    """True when the error means data was tampered with or forged."""
    return isinstance(error, PkioError) and error.category == FailureCategory.INTEGRITY


@contextmanager
def failing_step(step: str) -> Iterator[None]:
    """Tag PkioErrors raised in the block with the step, unless already tagged."""
    try:
        yield
    except PkioError as e:
        if not e.step:
            e.step = step
        raise
