"""
pkio Asymmetric Signatures

RSA keys sign with RSA-SHA256 (PKCS#1 v1.5), EC keys with ECDSA-SHA256
(DER encoded). The algorithm always follows from the key type.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Union

from cryptography.exceptions import InvalidSignature

from .encoding import b64d, b64e
from .errors import InvalidEncoding, SigningError, UnsupportedAlgorithm, VerificationError
from .keys import KeyType, key_material_for


class SignatureMode(str, Enum):
    """Value recorded in a container's signature-mode option."""
    SHA256_RSA = "sha256+rsa"
    SHA256_ECDSA = "sha256+ecdsa"
    SHA256_HMAC = "sha256+hmac"


@dataclass(frozen=True)
class Signed:
    """Outcome of a signing step: the exact message bytes and the signature."""
    mode: SignatureMode
    message: str
    signature: str


def signature_mode_for(key_type: Union[str, KeyType]) -> SignatureMode:
    """Signature mode dictated by a key type."""
    return SignatureMode(key_material_for(key_type).signature_mode)


def sign_data(message: str, private_key_pem: str, key_type: Union[str, KeyType]) -> Signed:
    """
    Sign a message with a PEM private key.

    Args:
        message: Text to sign (UTF-8 encoded before signing)
        private_key_pem: PEM private signing key
        key_type: Family of the key

    Returns:
        Signed with base64 signature

    Raises:
        UnsupportedAlgorithm: Unknown key type
        SigningError: Key could not be loaded or signing failed
    """
    material = key_material_for(key_type)
    try:
        private_key = material.load_private_key(private_key_pem)
        raw = material.sign(private_key, message.encode('utf-8'))
    except (InvalidEncoding, UnsupportedAlgorithm) as e:
        raise SigningError(f"Unusable signing key: {e.message}") from e
    except (ValueError, TypeError) as e:
        raise SigningError("Signature computation failed") from e

    return Signed(
        mode=SignatureMode(material.signature_mode),
        message=message,
        signature=b64e(raw),
    )


def verify_signature(
    message: str,
    signature_b64: str,
    public_key_pem: str,
    key_type: Union[str, KeyType]
) -> None:
    """
    Verify a base64 signature over a message.

    Raises:
        VerificationError: Signature is malformed or does not match
        InvalidEncoding: Public key PEM cannot be decoded
        UnsupportedAlgorithm: Unknown key type or mismatched key
    """
    material = key_material_for(key_type)
    public_key = material.load_public_key(public_key_pem)

    try:
        signature = b64d(signature_b64, "signature")
    except InvalidEncoding as e:
        raise VerificationError("Signature is not valid base64") from e

    try:
        material.verify(public_key, signature, message.encode('utf-8'))
    except (InvalidSignature, ValueError) as e:
        raise VerificationError("Signature does not match") from e
