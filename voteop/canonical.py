"""
Canonical encoding and content identifiers for vote payloads.

A payload is any JSON value. Its canonical form is compact JSON with object
keys sorted, so two clients that send the same logical value in a different
key order get the same identifier. The identifier is the Keccak-256 of those
bytes, rendered as 0x-prefixed lowercase hex.
"""
import json
import math
import re

from eth_utils import keccak

from .errors import DataTooLarge, InvalidDataType

MAX_ENCODED_SIZE = 1_000_000
MAX_DEPTH = 512
ID_BYTES = 32
ID_PATTERN = re.compile(r"^0x[0-9a-f]{64}$")

# Largest integer a JSON client in a double-precision runtime can represent exactly.
_MAX_SAFE_INTEGER = 2**53 - 1


def _normalize(value, depth: int = 0):
    if value is None or isinstance(value, (bool, str)):
        return value
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        if not math.isfinite(value):
            raise InvalidDataType("Data must not contain NaN or Infinity")
        if value.is_integer() and abs(value) <= _MAX_SAFE_INTEGER:
            return int(value)
        return value
    if isinstance(value, (dict, list, tuple)) and depth >= MAX_DEPTH:
        raise InvalidDataType("Data is nested too deeply")
    if isinstance(value, dict):
        out = {}
        for k, v in value.items():
            if not isinstance(k, str):
                raise InvalidDataType("Object keys must be strings")
            out[k] = _normalize(v, depth + 1)
        return out
    if isinstance(value, (list, tuple)):
        return [_normalize(v, depth + 1) for v in value]
    raise InvalidDataType(f"Unsupported value of type {type(value).__name__}")


def encode(value) -> bytes:
    """Return the canonical UTF-8 JSON bytes for `value`.

    Raises InvalidDataType for values JSON cannot carry and DataTooLarge when
    the encoding exceeds MAX_ENCODED_SIZE bytes.
    """
    text = json.dumps(
        _normalize(value),
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
        allow_nan=False,
    )
    raw = text.encode("utf-8")
    if len(raw) > MAX_ENCODED_SIZE:
        raise DataTooLarge(f"Encoded data is {len(raw)} bytes; limit is {MAX_ENCODED_SIZE}")
    return raw


def check_depth(raw: bytes, limit: int = MAX_DEPTH) -> None:
    """Reject JSON text nested deeper than `limit` without parsing it.

    Brackets inside string literals are skipped.
    """
    depth = 0
    in_string = escaped = False
    for ch in raw:
        if in_string:
            if escaped:
                escaped = False
            elif ch == 0x5C:  # backslash
                escaped = True
            elif ch == 0x22:
                in_string = False
        elif ch == 0x22:
            in_string = True
        elif ch in (0x5B, 0x7B):
            depth += 1
            if depth > limit:
                raise InvalidDataType("Data is nested too deeply")
        elif ch in (0x5D, 0x7D):
            depth -= 1


def decode(text: str):
    return json.loads(text)


def derive_id(data: bytes) -> bytes:
    return keccak(primitive=data)


def format_id(digest: bytes) -> str:
    if len(digest) != ID_BYTES:
        raise ValueError(f"identifier must be {ID_BYTES} bytes, got {len(digest)}")
    return "0x" + digest.hex()


def parse_id(vote_id: str) -> bytes:
    if not is_valid_id(vote_id):
        raise ValueError(f"not a vote id: {vote_id!r}")
    return bytes.fromhex(vote_id[2:])


def is_valid_id(vote_id) -> bool:
    return isinstance(vote_id, str) and ID_PATTERN.fullmatch(vote_id) is not None


def content_id(value) -> tuple[str, bytes]:
    """Encode `value` and return (id, canonical bytes)."""
    raw = encode(value)
    return format_id(derive_id(raw)), raw
