"""
Keccak-256 and ABI Encoding
===========================

Byte-oriented hashing used outside the circuit: event leaves, event-tree
nodes, attestations and validator-set commitments. Encodings follow the
Solidity ABI (`abi.encode`) so a contract can recompute every value.

Version: 0.1.0
"""

import hmac
from collections.abc import Sequence
from typing import Any

from Crypto.Hash import keccak

from cpoe.errors import MalformedInputError


WORD = 32

# Domain separation prefixes for event trees
LEAF_PREFIX = b"\x00"
NODE_PREFIX = b"\x01"


def keccak256(*chunks: bytes) -> bytes:
    """keccak-256 (Ethereum flavour, not SHA3-256) of the concatenated chunks."""
    h = keccak.new(digest_bits=256)
    for chunk in chunks:
        h.update(chunk)
    return h.digest()


def to_hex(data: bytes) -> str:
    return "0x" + data.hex()


def from_hex(value: str, length: int | None = None) -> bytes:
    """
    Parse a 0x-prefixed hex string.

    Raises:
        MalformedInputError: not hex, or not `length` bytes when given
    """
    if not isinstance(value, str):
        raise MalformedInputError("expected a hex string", value_type=type(value).__name__)
    s = value[2:] if value[:2].lower() == "0x" else value
    if len(s) % 2:
        raise MalformedInputError("hex string has odd length")
    try:
        data = bytes.fromhex(s)
    except ValueError as e:
        raise MalformedInputError("invalid hex string") from e
    if length is not None and len(data) != length:
        raise MalformedInputError(f"expected {length} bytes, got {len(data)}")
    return data


def hex_equal(a: str, b: str, length: int = WORD) -> bool:
    """
    Constant-time comparison of two hex values by their bytes.

    False when either side is not `length` bytes of hex.
    """
    try:
        return hmac.compare_digest(from_hex(a, length), from_hex(b, length))
    except MalformedInputError:
        return False


# =============================================================================
# ABI encoding
# =============================================================================


def _pad_right(data: bytes) -> bytes:
    return data + b"\x00" * (-len(data) % WORD)


def _encode_uint(value: int) -> bytes:
    if not 0 <= value < 1 << 256:
        raise MalformedInputError("uint256 out of range")
    return value.to_bytes(WORD, "big")


def _encode_static(abi_type: str, value: Any) -> bytes:
    if abi_type == "uint256":
        return _encode_uint(int(value))
    if abi_type == "address":
        raw = from_hex(value, 20) if isinstance(value, str) else bytes(value)
        if len(raw) != 20:
            raise MalformedInputError("address must be 20 bytes")
        return b"\x00" * 12 + raw
    if abi_type == "bytes32":
        raw = from_hex(value, 32) if isinstance(value, str) else bytes(value)
        if len(raw) != 32:
            raise MalformedInputError("bytes32 must be 32 bytes")
        return raw
    raise ValueError(f"unsupported static ABI type: {abi_type}")


def _encode_dynamic(abi_type: str, value: Any) -> bytes:
    if abi_type == "bytes":
        raw = from_hex(value) if isinstance(value, str) else bytes(value)
        return _encode_uint(len(raw)) + _pad_right(raw)
    if abi_type == "string":
        raw = value.encode("utf-8")
        return _encode_uint(len(raw)) + _pad_right(raw)
    if abi_type.endswith("[]"):
        inner = abi_type[:-2]
        return _encode_uint(len(value)) + b"".join(_encode_static(inner, v) for v in value)
    raise ValueError(f"unsupported dynamic ABI type: {abi_type}")


def _is_dynamic(abi_type: str) -> bool:
    return abi_type in ("bytes", "string") or abi_type.endswith("[]")


def abi_encode(types: Sequence[str], values: Sequence[Any]) -> bytes:
    """
    `abi.encode` for the handful of types this package needs:
    uint256, address, bytes32, bytes, string and arrays of static types.
    """
    if len(types) != len(values):
        raise ValueError("types and values differ in length")

    head_size = WORD * len(types)
    heads: list[bytes] = []
    tails: list[bytes] = []
    offset = head_size
    for abi_type, value in zip(types, values):
        if _is_dynamic(abi_type):
            tail = _encode_dynamic(abi_type, value)
            heads.append(_encode_uint(offset))
            tails.append(tail)
            offset += len(tail)
        else:
            heads.append(_encode_static(abi_type, value))
    return b"".join(heads) + b"".join(tails)
