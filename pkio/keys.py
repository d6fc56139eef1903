"""
Key material for pkio entities.

An entity's key type selects one KeyMaterial implementation, and every
algorithm-specific step (generation, validation, PEM handling, signing,
content-key wrapping) goes through that implementation. The family is closed:
key_material_for() is the only way to obtain one and it rejects anything but
RSA and EC.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional, Tuple, Union

from cryptography import exceptions as crypto_exceptions
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec, padding, rsa
from cryptography.hazmat.primitives.kdf.hkdf import HKDF
from nacl.secret import SecretBox

from .config import Settings, get_settings
from .errors import InvalidEncoding, KeyGenerationError, UnsupportedAlgorithm

logger = logging.getLogger(__name__)

RSA_PUBLIC_EXPONENT = 65537
KEY_WRAP_INFO = b"pkio-content-key-wrap"

EC_CURVES = {
    "secp256r1": ec.SECP256R1,
    "secp384r1": ec.SECP384R1,
    "secp521r1": ec.SECP521R1,
}


class KeyType(str, Enum):
    """Algorithm family shared by both of an entity's key pairs."""
    RSA = "rsa"
    EC = "ec"

    @classmethod
    def parse(cls, value: Union[str, "KeyType"]) -> "KeyType":
        """
        Convert a document value to a KeyType.

        Raises:
            UnsupportedAlgorithm: If the value names no supported family
        """
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).lower())
        except ValueError:
            raise UnsupportedAlgorithm(f"Invalid key type: {value!r}")


@dataclass(frozen=True)
class KeyPair:
    """PEM-encoded key pair. private_key is empty on public views."""
    public_key: str = ""
    private_key: str = ""

    def has_private(self) -> bool:
        return bool(self.private_key)


class KeyMaterial(ABC):
    """Algorithm-specific operations for one key type."""

    key_type: KeyType
    signature_mode: str
    wrap_algorithm: str

    @abstractmethod
    def generate_private_key(self, settings: Settings) -> Any:
        pass

    @abstractmethod
    def validate(self, private_key: Any, settings: Settings) -> None:
        """Raise KeyGenerationError if the key is not usable."""
        pass

    @abstractmethod
    def sign(self, private_key: Any, data: bytes) -> bytes:
        pass

    @abstractmethod
    def verify(self, public_key: Any, signature: bytes, data: bytes) -> None:
        """Raise cryptography's InvalidSignature on mismatch."""
        pass

    @abstractmethod
    def wrap_key(self, public_key: Any, content_key: bytes) -> bytes:
        pass

    @abstractmethod
    def unwrap_key(self, private_key: Any, wrapped: bytes) -> bytes:
        pass

    @abstractmethod
    def _is_private(self, key: Any) -> bool:
        pass

    @abstractmethod
    def _is_public(self, key: Any) -> bool:
        pass

    def load_private_key(self, pem: str) -> Any:
        """
        Decode a PEM private key of this family.

        Raises:
            InvalidEncoding: If the PEM block cannot be decoded
            UnsupportedAlgorithm: If the key belongs to another family
        """
        try:
            key = serialization.load_pem_private_key(pem.encode('utf-8'), password=None)
        except (ValueError, TypeError, crypto_exceptions.UnsupportedAlgorithm) as e:
            raise InvalidEncoding("Could not decode private key PEM") from e
        if not self._is_private(key):
            raise UnsupportedAlgorithm(
                f"Private key is not a {self.key_type.value} key"
            )
        return key

    def load_public_key(self, pem: str) -> Any:
        """Decode a PEM public key of this family."""
        try:
            key = serialization.load_pem_public_key(pem.encode('utf-8'))
        except (ValueError, TypeError, crypto_exceptions.UnsupportedAlgorithm) as e:
            raise InvalidEncoding("Could not decode public key PEM") from e
        if not self._is_public(key):
            raise UnsupportedAlgorithm(
                f"Public key is not a {self.key_type.value} key"
            )
        return key

    def generate_key_pair(self, settings: Settings) -> KeyPair:
        """Generate, validate and PEM encode one key pair."""
        private_key = self.generate_private_key(settings)
        self.validate(private_key, settings)
        return KeyPair(
            public_key=encode_public_pem(private_key.public_key()),
            private_key=encode_private_pem(private_key),
        )


class RSAKeyMaterial(KeyMaterial):
    """RSA keys: PKCS#1 v1.5 SHA-256 signatures, OAEP key wrapping."""

    key_type = KeyType.RSA
    signature_mode = "sha256+rsa"
    wrap_algorithm = "rsa-oaep-sha256"

    def generate_private_key(self, settings: Settings) -> rsa.RSAPrivateKey:
        return rsa.generate_private_key(
            public_exponent=RSA_PUBLIC_EXPONENT,
            key_size=settings.rsa_key_size,
        )

    def validate(self, private_key: rsa.RSAPrivateKey, settings: Settings) -> None:
        """
        Check the RSA key and its precomputed CRT parameters.

        Verifies the modulus factors, the public exponent and that
        dmp1, dmq1 and iqmp agree with values recomputed from d, p and q.
        """
        numbers = private_key.private_numbers()
        public = numbers.public_numbers
        p, q, d = numbers.p, numbers.q, numbers.d

        if p * q != public.n:
            raise KeyGenerationError("modulus does not equal p*q")
        if public.e != RSA_PUBLIC_EXPONENT:
            raise KeyGenerationError(f"unexpected public exponent {public.e}")
        if private_key.key_size < settings.rsa_key_size:
            raise KeyGenerationError(
                f"key size {private_key.key_size} below {settings.rsa_key_size}"
            )
        if numbers.dmp1 != rsa.rsa_crt_dmp1(d, p) or numbers.dmq1 != rsa.rsa_crt_dmq1(d, q):
            raise KeyGenerationError("CRT exponents do not match private exponent")
        if numbers.iqmp != rsa.rsa_crt_iqmp(p, q):
            raise KeyGenerationError("CRT coefficient does not match primes")
        if (public.e * numbers.dmp1) % (p - 1) != 1 or (public.e * numbers.dmq1) % (q - 1) != 1:
            raise KeyGenerationError("private exponent is not the inverse of e")

    def sign(self, private_key: rsa.RSAPrivateKey, data: bytes) -> bytes:
        return private_key.sign(data, padding.PKCS1v15(), hashes.SHA256())

    def verify(self, public_key: rsa.RSAPublicKey, signature: bytes, data: bytes) -> None:
        public_key.verify(signature, data, padding.PKCS1v15(), hashes.SHA256())

    def _oaep(self) -> padding.OAEP:
        return padding.OAEP(
            mgf=padding.MGF1(algorithm=hashes.SHA256()),
            algorithm=hashes.SHA256(),
            label=None,
        )

    def wrap_key(self, public_key: rsa.RSAPublicKey, content_key: bytes) -> bytes:
        return public_key.encrypt(content_key, self._oaep())

    def unwrap_key(self, private_key: rsa.RSAPrivateKey, wrapped: bytes) -> bytes:
        return private_key.decrypt(wrapped, self._oaep())

    def _is_private(self, key: Any) -> bool:
        return isinstance(key, rsa.RSAPrivateKey)

    def _is_public(self, key: Any) -> bool:
        return isinstance(key, rsa.RSAPublicKey)


class ECKeyMaterial(KeyMaterial):
    """EC keys: ECDSA SHA-256 signatures, ephemeral ECDH key wrapping."""

    key_type = KeyType.EC
    signature_mode = "sha256+ecdsa"
    wrap_algorithm = "ecdh-hkdf-sha256+xsalsa20-poly1305"

    def generate_private_key(self, settings: Settings) -> ec.EllipticCurvePrivateKey:
        try:
            curve = EC_CURVES[settings.ec_curve]
        except KeyError:
            raise UnsupportedAlgorithm(f"Unsupported EC curve: {settings.ec_curve}")
        return ec.generate_private_key(curve())

    def validate(self, private_key: ec.EllipticCurvePrivateKey, settings: Settings) -> None:
        # Generation either yields a key on the curve or raises
        return None

    def sign(self, private_key: ec.EllipticCurvePrivateKey, data: bytes) -> bytes:
        return private_key.sign(data, ec.ECDSA(hashes.SHA256()))

    def verify(self, public_key: ec.EllipticCurvePublicKey, signature: bytes, data: bytes) -> None:
        public_key.verify(signature, data, ec.ECDSA(hashes.SHA256()))

    @staticmethod
    def _derive_kek(shared_secret: bytes) -> bytes:
        return HKDF(
            algorithm=hashes.SHA256(),
            length=SecretBox.KEY_SIZE,
            salt=None,
            info=KEY_WRAP_INFO,
        ).derive(shared_secret)

    @staticmethod
    def _point_size(curve: ec.EllipticCurve) -> int:
        # Uncompressed X9.62 point: 0x04 || X || Y
        return 1 + 2 * ((curve.key_size + 7) // 8)

    def wrap_key(self, public_key: ec.EllipticCurvePublicKey, content_key: bytes) -> bytes:
        """Wrap with a fresh ephemeral key: ephemeral_point || box(content_key)."""
        ephemeral = ec.generate_private_key(public_key.curve)
        shared_secret = ephemeral.exchange(ec.ECDH(), public_key)
        box = SecretBox(self._derive_kek(shared_secret))
        ephemeral_point = ephemeral.public_key().public_bytes(
            encoding=serialization.Encoding.X962,
            format=serialization.PublicFormat.UncompressedPoint,
        )
        return ephemeral_point + bytes(box.encrypt(content_key))

    def unwrap_key(self, private_key: ec.EllipticCurvePrivateKey, wrapped: bytes) -> bytes:
        point_size = self._point_size(private_key.curve)
        ephemeral_public = ec.EllipticCurvePublicKey.from_encoded_point(
            private_key.curve, wrapped[:point_size]
        )
        shared_secret = private_key.exchange(ec.ECDH(), ephemeral_public)
        box = SecretBox(self._derive_kek(shared_secret))
        return box.decrypt(wrapped[point_size:])

    def _is_private(self, key: Any) -> bool:
        return isinstance(key, ec.EllipticCurvePrivateKey)

    def _is_public(self, key: Any) -> bool:
        return isinstance(key, ec.EllipticCurvePublicKey)


_KEY_MATERIALS: Dict[KeyType, KeyMaterial] = {
    KeyType.RSA: RSAKeyMaterial(),
    KeyType.EC: ECKeyMaterial(),
}


def key_material_for(key_type: Union[str, KeyType]) -> KeyMaterial:
    """
    Look up the implementation for a key type.

    Raises:
        UnsupportedAlgorithm: For anything other than rsa or ec
    """
    return _KEY_MATERIALS[KeyType.parse(key_type)]


def key_type_of_public_pem(pem: str) -> KeyType:
    """Detect the family of a PEM public key."""
    for material in _KEY_MATERIALS.values():
        try:
            material.load_public_key(pem)
        except UnsupportedAlgorithm:
            continue
        return material.key_type
    raise UnsupportedAlgorithm("Public key is neither rsa nor ec")


def encode_public_pem(public_key: Any) -> str:
    return public_key.public_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    ).decode('ascii')


def encode_private_pem(private_key: Any) -> str:
    return private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode('ascii')


def generate_key_pairs(
    key_type: Union[str, KeyType],
    settings: Optional[Settings] = None
) -> Tuple[KeyPair, KeyPair]:
    """
    Generate independent signing and encryption key pairs.

    Args:
        key_type: "rsa" or "ec"
        settings: Key sizes / curve (default: environment settings)

    Returns:
        Tuple of (signing_key_pair, encryption_key_pair)

    Raises:
        UnsupportedAlgorithm: Unknown key type
        KeyGenerationError: A generated key failed validation
    """
    material = key_material_for(key_type)
    settings = settings or get_settings()

    try:
        signing = material.generate_key_pair(settings)
    except KeyGenerationError as e:
        raise KeyGenerationError(f"Could not validate signing key: {e.message}", step="generate_keys") from e
    try:
        encryption = material.generate_key_pair(settings)
    except KeyGenerationError as e:
        raise KeyGenerationError(f"Could not validate encryption key: {e.message}", step="generate_keys") from e

    logger.debug("Generated %s key pairs", material.key_type.value)
    return signing, encryption


def load_private_key(pem: str, key_type: Union[str, KeyType]) -> Any:
    """Decode a PEM private key, requiring it to match key_type."""
    return key_material_for(key_type).load_private_key(pem)


def load_public_key(pem: str, key_type: Union[str, KeyType]) -> Any:
    """Decode a PEM public key, requiring it to match key_type."""
    return key_material_for(key_type).load_public_key(pem)
