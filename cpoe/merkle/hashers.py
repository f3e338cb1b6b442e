"""
Merkle Node Hashers
===================

A hasher decides how two child nodes combine into a parent and how nodes
are written on the wire (always 0x-prefixed 32-byte hex).

- KeccakHasher: byte nodes, parent = keccak256(0x01 || left || right).
  Used for event trees.
- SpongeHasher: field-element nodes, parent = Sponge(left, right) in the
  MERKLE_NODE domain. Used for value-commitment trees, whose paths are
  re-checked inside the threshold circuit.
"""

from abc import ABC, abstractmethod
from typing import Any

from cpoe.crypto.field import FIELD_MODULUS
from cpoe.crypto.keccak import NODE_PREFIX, from_hex, keccak256, to_hex
from cpoe.crypto.poseidon import merkle_node
from cpoe.errors import MalformedInputError


class Hasher(ABC):
    """Order-sensitive two-to-one node hash."""

    name: str = "abstract"

    @property
    @abstractmethod
    def zero_leaf(self) -> Any:
        """Padding leaf for fixed-depth trees."""
        pass

    @abstractmethod
    def combine(self, left: Any, right: Any) -> Any:
        pass

    @abstractmethod
    def encode(self, node: Any) -> str:
        pass

    @abstractmethod
    def decode(self, value: str) -> Any:
        """
        Parse a wire node.

        Raises:
            MalformedInputError: not a valid node for this hasher
        """
        pass


class KeccakHasher(Hasher):
    name = "keccak256"

    @property
    def zero_leaf(self) -> bytes:
        return b"\x00" * 32

    def combine(self, left: bytes, right: bytes) -> bytes:
        return keccak256(NODE_PREFIX, left, right)

    def encode(self, node: bytes) -> str:
        return to_hex(node)

    def decode(self, value: str) -> bytes:
        return from_hex(value, 32)


class SpongeHasher(Hasher):
    name = "sponge"

    @property
    def zero_leaf(self) -> int:
        return 0

    def combine(self, left: int, right: int) -> int:
        return merkle_node(left, right)

    def encode(self, node: int) -> str:
        return to_hex(node.to_bytes(32, "big"))

    def decode(self, value: str) -> int:
        node = int.from_bytes(from_hex(value, 32), "big")
        if node >= FIELD_MODULUS:
            raise MalformedInputError("node is not a canonical field element")
        return node


KECCAK = KeccakHasher()
SPONGE = SpongeHasher()
