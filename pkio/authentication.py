"""
Shared-secret authentication for pkio containers.

Two parties holding the same secret authenticate containers with
HMAC-SHA256. The HMAC key is never the raw secret: each authentication
expands the secret with HKDF-SHA256 and a fresh random salt, and the salt
travels with the container so the verifier can derive the same key.
"""

from typing import Optional, Tuple

from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives import hmac as crypto_hmac
from cryptography.hazmat.primitives.kdf.hkdf import HKDF

from .config import get_settings
from .encoding import b64d, b64e, constant_time_compare, random_bytes
from .errors import AuthenticationError, AuthenticationVerificationError, InvalidEncoding
from .signing import SignatureMode, Signed

DERIVED_KEY_SIZE = 32
EXPANSION_INFO = b"pkio-container-authentication"


def expand_key(secret: bytes, salt: Optional[bytes] = None) -> Tuple[bytes, bytes]:
    """
    Derive an HMAC key from a shared secret.

    Args:
        secret: Raw shared secret
        salt: Salt from a previous expansion; a new random salt when None

    Returns:
        Tuple of (derived_key, salt)
    """
    if not secret:
        raise AuthenticationError("Shared secret is empty")
    if salt is None:
        salt = random_bytes(get_settings().salt_size)

    derived = HKDF(
        algorithm=hashes.SHA256(),
        length=DERIVED_KEY_SIZE,
        salt=salt,
        info=EXPANSION_INFO,
    ).derive(secret)
    return derived, salt


def _mac(key: bytes, message: str) -> bytes:
    h = crypto_hmac.HMAC(key, hashes.SHA256())
    h.update(message.encode('utf-8'))
    return h.finalize()


def hmac_sign(message: str, key: bytes) -> Signed:
    """Compute a base64 HMAC-SHA256 code over message."""
    return Signed(
        mode=SignatureMode.SHA256_HMAC,
        message=message,
        signature=b64e(_mac(key, message)),
    )


def hmac_verify(message: str, code_b64: str, key: bytes) -> None:
    """
    Check an HMAC code in constant time.

    Raises:
        AuthenticationVerificationError: Code is malformed or does not match
    """
    try:
        expected = b64d(code_b64, "signature")
    except InvalidEncoding as e:
        raise AuthenticationVerificationError("Authentication code is not valid base64") from e

    if not constant_time_compare(_mac(key, message), expected):
        raise AuthenticationVerificationError("Authentication code does not match")


def encode_salt(salt: bytes) -> str:
    return b64e(salt)


def decode_salt(value: Optional[str]) -> bytes:
    """
    Decode the signature-salt input of an authenticated container.

    Raises:
        InvalidEncoding: Salt missing, empty or not base64
    """
    if not value:
        raise InvalidEncoding("signature-salt is missing")
    salt = b64d(value, "signature-salt")
    if not salt:
        raise InvalidEncoding("signature-salt is empty")
    return salt
