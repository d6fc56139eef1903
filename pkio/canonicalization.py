"""
pkio Canonical JSON Encoding

Signatures and authentication codes are computed over the serialized
container, so serialization must be byte-for-byte stable across repeated
calls with identical field values.

Output: keys sorted by code point, no insignificant whitespace, UTF-8
without escaping non-ASCII text. Only null, booleans, integers, strings,
arrays and string-keyed objects are accepted.
"""

import json
from typing import Any


def canonicalize(obj: Any) -> bytes:
    """Canonical JSON bytes for obj. Raises ValueError on unsupported values."""
    _check_value(obj, "$")
    text = json.dumps(obj, sort_keys=True, separators=(',', ':'), ensure_ascii=False)
    return text.encode('utf-8')


def canonicalize_str(obj: Any) -> str:
    return canonicalize(obj).decode('utf-8')


def _check_value(value: Any, path: str) -> None:
    if value is None or isinstance(value, (bool, int, str)):
        return
    if isinstance(value, dict):
        for key, item in value.items():
            if not isinstance(key, str):
                raise ValueError(f"{path}: object keys must be strings, got {type(key).__name__}")
            _check_value(item, f"{path}.{key}")
        return
    if isinstance(value, (list, tuple)):
        for index, item in enumerate(value):
            _check_value(item, f"{path}[{index}]")
        return
    # Floats included: their text form differs between encoders
    raise ValueError(f"{path}: cannot canonicalize {type(value).__name__}")
