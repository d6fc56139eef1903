"""
Byte codecs used at the pkio trust boundary.

Every decoder here raises InvalidEncoding rather than binascii or
ValueError, so callers only ever see the pkio error taxonomy.
"""

import base64
import binascii
import hmac
import re
from typing import Union

import nacl.utils

from .errors import InvalidEncoding

HEX_PATTERN = re.compile(r'^(?:[a-fA-F0-9]{2})*$')


def _as_bytes(value: Union[str, bytes], encoding: str = 'utf-8') -> bytes:
    return value.encode(encoding) if isinstance(value, str) else value


def b64e(b: bytes) -> str:
    return base64.b64encode(b).decode('ascii')


def b64d(s: Union[str, bytes], field_name: str = "value") -> bytes:
    """Standard-alphabet base64 with padding; stray characters are rejected."""
    try:
        return base64.b64decode(_as_bytes(s, 'ascii'), validate=True)
    except (UnicodeEncodeError, binascii.Error, ValueError) as e:
        raise InvalidEncoding(f"{field_name} must be valid base64") from e


def hex_decode(value: str, field_name: str = "key") -> bytes:
    """
    Decode a shared secret given as hex text.

    Surrounding whitespace is ignored and either letter case is accepted.
    Empty input, odd length and non-hex characters raise InvalidEncoding.
    """
    if not isinstance(value, str):
        raise InvalidEncoding(f"{field_name} must be a string")
    value = value.strip()
    if not value:
        raise InvalidEncoding(f"{field_name} cannot be empty")
    if not HEX_PATTERN.match(value):
        raise InvalidEncoding(f"{field_name} must be valid hexadecimal")
    return bytes.fromhex(value)


def constant_time_compare(a: Union[str, bytes], b: Union[str, bytes]) -> bool:
    return hmac.compare_digest(_as_bytes(a), _as_bytes(b))


def random_bytes(length: int) -> bytes:
    return nacl.utils.random(length)
