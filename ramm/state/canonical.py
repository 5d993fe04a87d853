"""
Canonical byte encodings for RAMM snapshots and state roots.

Snapshots hold nothing but ints, strings, lists and str-keyed dicts, so the
encoder refuses anything else instead of guessing a representation.
"""

from __future__ import annotations

import hashlib
import json
from typing import Any, Iterable

DOMAIN_PREFIX = b"ramm:"


def _check_snapshot_value(value: Any, path: str = "$") -> None:
    if isinstance(value, bool) or value is None:
        raise TypeError(f"{path}: {type(value).__name__} is not allowed in snapshots")
    if isinstance(value, (int, str)):
        return
    if isinstance(value, dict):
        for key, item in value.items():
            if not isinstance(key, str):
                raise TypeError(f"{path}: snapshot keys must be str, got {type(key).__name__}")
            _check_snapshot_value(item, f"{path}.{key}")
        return
    if isinstance(value, (list, tuple)):
        for i, item in enumerate(value):
            _check_snapshot_value(item, f"{path}[{i}]")
        return
    raise TypeError(f"{path}: {type(value).__name__} is not allowed in snapshots")


def canonical_json_bytes(value: Any) -> bytes:
    """Sorted-key, whitespace-free UTF-8 JSON of an int-only snapshot."""
    _check_snapshot_value(value)
    return json.dumps(value, sort_keys=True, separators=(",", ":"), ensure_ascii=False).encode("utf-8")


def sha256_hex(data: bytes) -> str:
    return "0x" + hashlib.sha256(data).hexdigest()


def domain_sep_bytes(label: str, version: int) -> bytes:
    """``ramm:<label>:v<version>`` followed by a NUL byte."""
    if not label or not label.isascii() or "\x00" in label:
        raise ValueError(f"invalid domain label: {label!r}")
    if not isinstance(version, int) or isinstance(version, bool) or version <= 0:
        raise ValueError(f"version must be a positive int: {version!r}")
    return DOMAIN_PREFIX + f"{label}:v{version}".encode("ascii") + b"\x00"


def encode_uvarint(value: int) -> bytes:
    """Unsigned LEB128 of a non-negative int."""
    if not isinstance(value, int) or isinstance(value, bool) or value < 0:
        raise ValueError(f"uvarint must be a non-negative int, got {value!r}")
    out = bytearray()
    while value >= 0x80:
        out.append((value & 0x7F) | 0x80)
        value >>= 7
    out.append(value)
    return bytes(out)


def encode_uvarints(values: Iterable[int]) -> bytes:
    return b"".join(encode_uvarint(v) for v in values)
