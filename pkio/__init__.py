"""
pkio Entities and Secure Containers

Version: 1.0.0

A pkio entity is a cryptographic identity owning two independent key
pairs of one algorithm family (RSA or EC): one signs, one receives
encrypted content. Entities exchange containers, JSON documents carrying
a body plus at most one seal and at most one encryption:

- Signatures: RSA-SHA256 or ECDSA-SHA256, chosen by the key type
- Authentication: HMAC-SHA256 under a key expanded from a shared secret
- Encryption: XSalsa20-Poly1305 body, content key wrapped per recipient

Composite protocols always encrypt before sealing and always verify
before decrypting.

Usage:
    from pkio import Entity

    alice = Entity(id="alice", name="Alice", key_type="ec")
    alice.generate_keys()
    bob = Entity(id="bob", name="Bob", key_type="rsa")
    bob.generate_keys()

    # Alice encrypts for Bob and signs the ciphertext
    container = alice.encrypt_then_sign_string("hello", [bob.public()])

    # Bob checks Alice's signature with her public view, then decrypts
    plaintext = bob.verify_then_decrypt(container, signer=alice.public())

    # Shared-secret authentication
    sealed = alice.authenticate_string("ping", "keyA", "deadbeef")
    bob.verify_authentication(sealed, "deadbeef")
"""

__version__ = "1.0.0"

from .config import Settings, get_settings, reload_settings
from .container import Container, EncryptionState, SealState
from .document import ContainerDocument, EntityDocument
from .entity import Entity
from .errors import (
    AuthenticationError,
    AuthenticationVerificationError,
    DecryptionError,
    EncryptionError,
    FailureCategory,
    InvalidEncoding,
    InvalidRecipients,
    KeyGenerationError,
    NotEncryptedError,
    NotSignedError,
    PkioError,
    PrivateKeyMissing,
    SigningError,
    UnsupportedAlgorithm,
    VerificationError,
    is_integrity_failure,
)
from .keys import KeyPair, KeyType, generate_key_pairs
from .recipients import Explicit, Recipient, RecipientSet, SelfOnly
from .signing import SignatureMode

__all__ = [
    # Version
    "__version__",

    # Entities and containers
    "Entity",
    "Container",
    "SealState",
    "EncryptionState",
    "EntityDocument",
    "ContainerDocument",

    # Keys and modes
    "KeyType",
    "KeyPair",
    "generate_key_pairs",
    "SignatureMode",

    # Recipients
    "Recipient",
    "RecipientSet",
    "SelfOnly",
    "Explicit",

    # Configuration
    "Settings",
    "get_settings",
    "reload_settings",

    # Errors
    "PkioError",
    "FailureCategory",
    "UnsupportedAlgorithm",
    "KeyGenerationError",
    "InvalidEncoding",
    "SigningError",
    "VerificationError",
    "NotSignedError",
    "AuthenticationError",
    "AuthenticationVerificationError",
    "NotEncryptedError",
    "InvalidRecipients",
    "EncryptionError",
    "DecryptionError",
    "PrivateKeyMissing",
    "is_integrity_failure",
]
