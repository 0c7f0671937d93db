"""MessagePack framing for the arena socket.

One frame is one MessagePack map. Outbound maps come from pydantic
``model_dump(mode="json")`` so every key is a string and every value is a plain
JSON-compatible type.
"""

from typing import Any

import msgpack


class DecodeError(Exception):
    """An inbound frame is not a well-formed, reasonably sized MessagePack map."""


# Clients send a handful of small keys per frame (a paddle position at most);
# anything beyond these limits is rejected before it is materialized.
MAX_BUFFER_LEN = 16 * 1024
_UNPACK_LIMITS = {
    "max_str_len": 1024,
    "max_bin_len": 1024,
    "max_array_len": 64,
    "max_map_len": 32,
    "max_ext_len": 64,
}


def encode(data: dict[str, Any]) -> bytes:
    return msgpack.packb(data, use_bin_type=True)


def decode(data: bytes) -> dict[str, Any]:
    """Decode one inbound frame into a dict, or raise DecodeError."""
    if len(data) > MAX_BUFFER_LEN:
        raise DecodeError(f"payload too large: {len(data)} bytes (max {MAX_BUFFER_LEN})")
    try:
        result = msgpack.unpackb(data, raw=False, **_UNPACK_LIMITS)
    except (msgpack.UnpackException, ValueError) as e:
        raise DecodeError(f"malformed frame: {e}") from e
    if not isinstance(result, dict):
        raise DecodeError(f"expected map, got {type(result).__name__}")
    return result
