"""
pkio Entities

An entity is a cryptographic identity: an id, a name, a key type and two
independent key pairs of that type, one for signing and one for
encryption. Entities seal, verify, encrypt and decrypt containers, and
chain those steps in fixed orders:

    sign_string                          new container -> sign
    authenticate_string                  new container -> authenticate
    encrypt_then_sign_string             encrypt -> sign
    encrypt_then_authenticate_string     encrypt -> authenticate
    verify_then_decrypt                  verify -> decrypt
    verify_authentication_then_decrypt   verify_authentication -> decrypt

A failure stops the chain; nothing after the failing step runs, so
unverified ciphertext is never decrypted.

public() gives a copy without private keys that is safe to hand out.
"""

import logging
from typing import Any, Dict, Optional, Union

from .authentication import decode_salt, encode_salt, expand_key, hmac_sign, hmac_verify
from .config import Settings
from .container import KEY_ID_INPUT, SALT_INPUT, Container
from .document import EntityBody, EntityDocument
from .encoding import hex_decode
from .errors import (
    AuthenticationError,
    AuthenticationVerificationError,
    NotEncryptedError,
    NotSignedError,
    PrivateKeyMissing,
    SigningError,
    VerificationError,
    failing_step,
)
from .keys import KeyPair, KeyType, generate_key_pairs
from .logging_config import audit_log
from .recipients import Recipient, resolve_recipients
from .signing import SignatureMode, sign_data, signature_mode_for, verify_signature

logger = logging.getLogger(__name__)


class Entity:
    """A cryptographic identity owning a signing and an encryption key pair."""

    def __init__(self, id: str = "", name: str = "", key_type: Union[str, KeyType] = KeyType.EC):
        key_type = key_type.value if isinstance(key_type, KeyType) else key_type
        self._doc = EntityDocument(body=EntityBody(id=id, name=name, key_type=key_type))

    @classmethod
    def load(cls, data: Union[str, bytes, Dict[str, Any]]) -> "Entity":
        """Load an entity document. Raises InvalidEncoding on bad input."""
        entity = cls.__new__(cls)
        entity._doc = EntityDocument.load(data)
        return entity

    def dump(self) -> str:
        return self._doc.dump()

    def dump_public(self) -> str:
        return self.public().dump()

    # ------------------------------------------------------------
    # Identity and keys
    # ------------------------------------------------------------

    @property
    def id(self) -> str:
        return self._doc.body.id

    @property
    def name(self) -> str:
        return self._doc.body.name

    @property
    def key_type(self) -> KeyType:
        """Raises UnsupportedAlgorithm when the document names an unknown type."""
        return KeyType.parse(self._doc.body.key_type)

    @property
    def signing(self) -> KeyPair:
        body = self._doc.body
        return KeyPair(body.public_signing_key, body.private_signing_key)

    @property
    def encryption(self) -> KeyPair:
        body = self._doc.body
        return KeyPair(body.public_encryption_key, body.private_encryption_key)

    def is_public(self) -> bool:
        return not self.signing.has_private() and not self.encryption.has_private()

    def as_recipient(self) -> Recipient:
        return Recipient(id=self.id, public_encryption_key=self.encryption.public_key)

    def generate_keys(self, settings: Optional[Settings] = None) -> None:
        """
        Generate the signing and encryption key pairs.

        Meant to run once, before the entity is shared. Running it again
        replaces every key.
        """
        with failing_step("generate_keys"):
            key_type = self.key_type
            if self.signing.public_key or self.encryption.public_key:
                logger.warning("Replacing existing keys of entity %s", self.id)
            signing, encryption = generate_key_pairs(key_type, settings)

        body = self._doc.body
        body.public_signing_key = signing.public_key
        body.private_signing_key = signing.private_key
        body.public_encryption_key = encryption.public_key
        body.private_encryption_key = encryption.private_key
        audit_log.keys_generated(self.id, key_type.value)

    def public(self) -> "Entity":
        """Independent copy with both private keys erased."""
        public = Entity.load(self.dump())
        public._doc.body.private_signing_key = ""
        public._doc.body.private_encryption_key = ""
        return public

    def _require_private(self, pair: KeyPair, step: str, usage: str) -> None:
        if not pair.has_private():
            raise PrivateKeyMissing(f"Entity {self.id} has no private {usage} key", step=step)

    # ------------------------------------------------------------
    # Signatures
    # ------------------------------------------------------------

    def sign(self, container: Container) -> None:
        """Seal the container with this entity's signing key."""
        with failing_step("sign"):
            mode = signature_mode_for(self.key_type)
            container.begin_seal(mode)
            self._require_private(self.signing, "sign", "signing")

            message = container.dump()
            signed = sign_data(message, self.signing.private_key, self.key_type)
            if signed.message != container.dump():
                raise SigningError("Signed message does not match the container")
            container.complete_seal(signed.signature)

        audit_log.container_signed(self.id, mode.value)

    def verify(self, container: Container) -> None:
        """
        Check the container's signature against this entity's public key.

        Raises:
            NotSignedError: The container has no signature
            VerificationError: Wrong mode or signature mismatch
        """
        with failing_step("verify"):
            if not container.is_signed():
                raise NotSignedError("Container is not signed")

            mode = signature_mode_for(self.key_type)
            if container.signature_mode != mode.value:
                self._verification_failed(container, "signature mode mismatch")
                raise VerificationError(
                    f"Signature mode {container.signature_mode!r} is not {mode.value!r}"
                )

            with container.opened_seal() as signature:
                try:
                    verify_signature(container.dump(), signature, self.signing.public_key, self.key_type)
                except VerificationError:
                    self._verification_failed(container, "signature mismatch")
                    raise

    # ------------------------------------------------------------
    # Shared-secret authentication
    # ------------------------------------------------------------

    def authenticate(self, container: Container, key_id: str, hex_secret: str) -> None:
        """Seal the container with an HMAC keyed by a shared hex secret."""
        with failing_step("authenticate"):
            secret = hex_decode(hex_secret, "shared secret")
            try:
                key, salt = expand_key(secret)
            except (ValueError, TypeError) as e:
                raise AuthenticationError("Key expansion failed") from e

            container.begin_seal(
                SignatureMode.SHA256_HMAC,
                {KEY_ID_INPUT: key_id, SALT_INPUT: encode_salt(salt)},
            )
            message = container.dump()
            signed = hmac_sign(message, key)
            if signed.message != container.dump():
                raise AuthenticationError("Authenticated message does not match the container")
            container.complete_seal(signed.signature)

        audit_log.container_authenticated(self.id, key_id)

    def verify_authentication(self, container: Container, hex_secret: str) -> None:
        """
        Check the container's HMAC with a shared hex secret.

        The HMAC key is re-derived from the secret and the salt stored in
        the container. The key-id input is not checked here.

        Raises:
            InvalidEncoding: Bad hex secret or bad stored salt
            NotSignedError: The container carries no code
            AuthenticationVerificationError: Wrong mode or code mismatch
        """
        with failing_step("verify_authentication"):
            secret = hex_decode(hex_secret, "shared secret")
            if not container.is_signed():
                raise NotSignedError("Container is not authenticated")
            if container.signature_mode != SignatureMode.SHA256_HMAC.value:
                self._verification_failed(container, "not an authenticated container")
                raise AuthenticationVerificationError(
                    f"Signature mode {container.signature_mode!r} is not an HMAC mode"
                )

            salt = decode_salt(container.signature_inputs.get(SALT_INPUT))
            try:
                key, _ = expand_key(secret, salt)
            except (ValueError, TypeError) as e:
                raise AuthenticationError("Key expansion failed") from e

            with container.opened_seal() as code:
                try:
                    hmac_verify(container.dump(), code, key)
                except AuthenticationVerificationError:
                    self._verification_failed(container, "authentication code mismatch")
                    raise

    def _verification_failed(self, container: Container, reason: str) -> None:
        audit_log.verification_failed(self.id, container.source, container.signature_mode, reason)

    # ------------------------------------------------------------
    # Encryption
    # ------------------------------------------------------------

    def encrypt(self, content: str, recipients: Optional[Any] = None) -> Container:
        """
        Encrypt content into a new container.

        Args:
            content: Plaintext
            recipients: None for this entity only, a RecipientSet, or an
                iterable of entities

        Raises:
            InvalidRecipients: Recipients argument is unusable
            EncryptionError: Encryption failed
        """
        with failing_step("encrypt"):
            key_map = resolve_recipients(recipients).key_map(self.as_recipient())
            container = Container.new(source=self.id)
            container.encrypt(content, key_map)

        audit_log.container_encrypted(self.id, list(key_map))
        return container

    def decrypt(self, container: Container) -> str:
        """Recover plaintext addressed to this entity."""
        with failing_step("decrypt"):
            if not container.is_encrypted():
                raise NotEncryptedError("Container is not encrypted")
            self._require_private(self.encryption, "decrypt", "encryption")
            plaintext = container.decrypt(self.id, self.encryption.private_key, self.key_type)

        audit_log.container_decrypted(self.id, container.source)
        return plaintext

    # ------------------------------------------------------------
    # Composite protocols
    # ------------------------------------------------------------

    def sign_string(self, content: str) -> Container:
        container = Container.new(body=content, source=self.id)
        self.sign(container)
        return container

    def authenticate_string(self, content: str, key_id: str, hex_secret: str) -> Container:
        container = Container.new(body=content, source=self.id)
        self.authenticate(container, key_id, hex_secret)
        return container

    def encrypt_then_sign_string(self, content: str, recipients: Optional[Any] = None) -> Container:
        """Encrypt, then sign the ciphertext container."""
        container = self.encrypt(content, recipients)
        self.sign(container)
        return container

    def encrypt_then_authenticate_string(
        self,
        content: str,
        recipients: Optional[Any],
        key_id: str,
        hex_secret: str
    ) -> Container:
        container = self.encrypt(content, recipients)
        self.authenticate(container, key_id, hex_secret)
        return container

    def verify_then_decrypt(self, container: Container, signer: Optional["Entity"] = None) -> str:
        """
        Verify the signature, then decrypt.

        The signature is checked against signer's public key (this entity
        when omitted); decryption always uses this entity's private key.
        """
        (signer or self).verify(container)
        return self.decrypt(container)

    def verify_authentication_then_decrypt(self, container: Container, hex_secret: str) -> str:
        self.verify_authentication(container, hex_secret)
        return self.decrypt(container)

    def __repr__(self) -> str:
        return f"Entity(id={self.id!r}, name={self.name!r}, key_type={self._doc.body.key_type!r})"
