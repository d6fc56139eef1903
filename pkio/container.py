"""
pkio Containers

A container carries a body from a source entity together with the
metadata of at most one seal (signature or authentication code) and at
most one encryption.

Security state:
- seal_state: UNSEALED -> SIGNED | AUTHENTICATED
- encryption_state: PLAIN -> ENCRYPTED

Seals are produced in two steps. begin_seal() clears any previous
signature and records the mode and inputs, complete_seal() stores the new
value, and only a begun seal can be completed. Verification reads the
signature through opened_seal(), which clears the field while the caller
re-serializes and puts it back afterwards.

Encryption seals the body with XSalsa20-Poly1305 under a random content
key; the content key is wrapped once per recipient with that recipient's
public encryption key.
"""

import logging
from contextlib import contextmanager
from enum import Enum
from typing import Any, Dict, Iterator, List, Mapping, Optional, Union

from nacl.exceptions import CryptoError
from nacl.secret import SecretBox

from .document import ContainerDocument
from .encoding import b64d, b64e, random_bytes
from .errors import (
    DecryptionError,
    EncryptionError,
    NotEncryptedError,
    NotSignedError,
    PkioError,
    SigningError,
)
from .keys import KeyType, key_material_for, key_type_of_public_pem
from .signing import SignatureMode

logger = logging.getLogger(__name__)

ENCRYPTION_MODE = "xsalsa20-poly1305"
KEY_ID_INPUT = "key-id"
SALT_INPUT = "signature-salt"


class SealState(str, Enum):
    UNSEALED = "UNSEALED"
    SIGNED = "SIGNED"
    AUTHENTICATED = "AUTHENTICATED"


class EncryptionState(str, Enum):
    PLAIN = "PLAIN"
    ENCRYPTED = "ENCRYPTED"


class Container:
    """Envelope document with seal and encryption state."""

    def __init__(self, document: Optional[ContainerDocument] = None):
        self._doc = document if document is not None else ContainerDocument()
        self._seal_pending = False

    @classmethod
    def new(cls, body: str = "", source: str = "") -> "Container":
        container = cls()
        container._doc.body = body
        container._doc.options.source = source
        return container

    @classmethod
    def load(cls, data: Union[str, bytes, Dict[str, Any]]) -> "Container":
        """Load a container document. Raises InvalidEncoding on bad input."""
        return cls(ContainerDocument.load(data))

    def dump(self) -> str:
        """Canonical JSON serialization; identical fields give identical output."""
        return self._doc.dump()

    def to_dict(self) -> Dict[str, Any]:
        return self._doc.to_dict()

    # ------------------------------------------------------------
    # Fields
    # ------------------------------------------------------------

    @property
    def body(self) -> str:
        return self._doc.body

    @body.setter
    def body(self, value: str) -> None:
        self._doc.body = value

    @property
    def source(self) -> str:
        return self._doc.options.source

    @source.setter
    def source(self, value: str) -> None:
        self._doc.options.source = value

    @property
    def signature_mode(self) -> str:
        return self._doc.options.signature_mode

    @property
    def signature(self) -> str:
        return self._doc.options.signature

    @property
    def signature_inputs(self) -> Dict[str, str]:
        return dict(self._doc.options.signature_inputs)

    @property
    def authentication_key_id(self) -> Optional[str]:
        """Key id recorded by shared-secret authentication, if any."""
        return self._doc.options.signature_inputs.get(KEY_ID_INPUT)

    @property
    def recipients(self) -> List[str]:
        return sorted(self._doc.options.encryption_keys)

    # ------------------------------------------------------------
    # State
    # ------------------------------------------------------------

    def is_signed(self) -> bool:
        return bool(self._doc.options.signature)

    def is_encrypted(self) -> bool:
        options = self._doc.options
        return bool(options.encryption_keys) and bool(options.encryption_mode)

    @property
    def seal_state(self) -> SealState:
        if not self.is_signed():
            return SealState.UNSEALED
        if self.signature_mode == SignatureMode.SHA256_HMAC.value:
            return SealState.AUTHENTICATED
        return SealState.SIGNED

    @property
    def encryption_state(self) -> EncryptionState:
        return EncryptionState.ENCRYPTED if self.is_encrypted() else EncryptionState.PLAIN

    # ------------------------------------------------------------
    # Sealing
    # ------------------------------------------------------------

    def begin_seal(self, mode: SignatureMode, inputs: Optional[Mapping[str, str]] = None) -> None:
        """Clear any previous seal and record the mode about to be computed."""
        options = self._doc.options
        options.signature = ""
        options.signature_mode = SignatureMode(mode).value
        options.signature_inputs = dict(inputs or {})
        self._seal_pending = True

    def complete_seal(self, signature: str) -> None:
        if not self._seal_pending:
            raise SigningError("Seal completed without being begun", step="complete_seal")
        if not signature:
            raise SigningError("Seal value is empty", step="complete_seal")
        self._doc.options.signature = signature
        self._seal_pending = False

    @contextmanager
    def opened_seal(self) -> Iterator[str]:
        """
        Yield the stored signature with the field cleared.

        The container serializes exactly as it did when the seal was
        computed while the block runs; the signature is put back on exit.
        """
        if not self.is_signed():
            raise NotSignedError("Container is not signed")
        saved = self._doc.options.signature
        self._doc.options.signature = ""
        try:
            yield saved
        finally:
            self._doc.options.signature = saved

    # ------------------------------------------------------------
    # Encryption
    # ------------------------------------------------------------

    def encrypt(self, plaintext: str, recipient_keys: Mapping[str, str]) -> None:
        """
        Replace the body with ciphertext readable by each recipient.

        Args:
            plaintext: Content to encrypt
            recipient_keys: Recipient id -> PEM public encryption key

        Raises:
            EncryptionError: Container already encrypted or sealed, no
                recipients, or a recipient key cannot be used
        """
        if self.encryption_state is EncryptionState.ENCRYPTED:
            raise EncryptionError("Container is already encrypted", step="encrypt")
        if self.seal_state is not SealState.UNSEALED:
            raise EncryptionError("Sealed container cannot be encrypted", step="encrypt")
        if not recipient_keys:
            raise EncryptionError("No recipients to encrypt for", step="encrypt")

        content_key = random_bytes(SecretBox.KEY_SIZE)
        wrapped_keys: Dict[str, str] = {}
        wrap_algorithms: Dict[str, str] = {}

        try:
            for recipient_id, public_pem in recipient_keys.items():
                material = key_material_for(key_type_of_public_pem(public_pem))
                public_key = material.load_public_key(public_pem)
                wrapped_keys[recipient_id] = b64e(material.wrap_key(public_key, content_key))
                wrap_algorithms[recipient_id] = material.wrap_algorithm
            ciphertext = SecretBox(content_key).encrypt(plaintext.encode('utf-8'))
        except PkioError as e:
            raise EncryptionError(f"Recipient key unusable: {e.message}", step="encrypt") from e
        except (CryptoError, ValueError, TypeError) as e:
            raise EncryptionError("Content encryption failed", step="encrypt") from e

        options = self._doc.options
        options.encryption_keys = wrapped_keys
        options.encryption_inputs = wrap_algorithms
        options.encryption_mode = ENCRYPTION_MODE
        self._doc.body = b64e(bytes(ciphertext))
        logger.debug("Encrypted container for %d recipient(s)", len(wrapped_keys))

    def decrypt(self, recipient_id: str, private_key_pem: str, key_type: Union[str, KeyType]) -> str:
        """
        Recover the plaintext with a recipient's private encryption key.

        The container itself is left unchanged.

        Raises:
            NotEncryptedError: Container carries no encryption metadata
            DecryptionError: No key for this recipient, or unwrapping or
                opening the body failed
        """
        if not self.is_encrypted():
            raise NotEncryptedError("Container is not encrypted", step="decrypt")

        options = self._doc.options
        if options.encryption_mode != ENCRYPTION_MODE:
            raise DecryptionError(
                f"Unsupported encryption mode: {options.encryption_mode!r}", step="decrypt"
            )

        wrapped_b64 = options.encryption_keys.get(recipient_id)
        if wrapped_b64 is None:
            raise DecryptionError(f"Recipient not found: {recipient_id}", step="decrypt")

        material = key_material_for(key_type)
        if options.encryption_inputs.get(recipient_id, material.wrap_algorithm) != material.wrap_algorithm:
            raise DecryptionError("Wrapped key does not match the recipient key type", step="decrypt")

        try:
            private_key = material.load_private_key(private_key_pem)
            content_key = material.unwrap_key(private_key, b64d(wrapped_b64, "encryption key"))
            plaintext = SecretBox(content_key).decrypt(b64d(self._doc.body, "body"))
            return plaintext.decode('utf-8')
        except PkioError as e:
            raise DecryptionError(f"Could not decrypt: {e.message}", step="decrypt") from e
        except (CryptoError, ValueError, TypeError, UnicodeDecodeError) as e:
            raise DecryptionError("Could not decrypt container", step="decrypt") from e
