"""
Merkle Accumulator
==================

Binary Merkle tree over an ordered list of leaves.

Rules, identical on the build and verify paths:
- parent = combine(left, right); bit 0 of the index at a level means the
  current node is the left child
- a level with an odd node count pairs its last node with itself, and the
  proof always carries that duplicate as the sibling
- with a fixed `depth`, leaves are padded with the hasher's zero leaf up to
  2**depth

Version: 0.1.0
"""

import hmac
from collections.abc import Sequence
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from cpoe.crypto.keccak import from_hex, to_hex
from cpoe.errors import IndexOutOfRangeError, MalformedInputError
from cpoe.merkle.hashers import KECCAK, Hasher


def _wire_node(value: str) -> str:
    """Nodes travel as 32-byte hex whatever the hasher."""
    try:
        return to_hex(from_hex(value, 32))
    except MalformedInputError as e:
        raise ValueError(e.message) from e


class MerkleProof(BaseModel):
    """Inclusion proof of one leaf."""

    model_config = ConfigDict(frozen=True)

    leaf: str = Field(..., description="Leaf node (0x hex)")
    siblings: list[str] = Field(default_factory=list, description="Sibling per level, leaf first")
    root: str = Field(..., description="Tree root (0x hex)")
    index: int = Field(..., ge=0, description="Leaf position; bit i is the side at level i")

    @field_validator("leaf", "root")
    @classmethod
    def validate_node(cls, v: str) -> str:
        return _wire_node(v)

    @field_validator("siblings")
    @classmethod
    def validate_siblings(cls, v: list[str]) -> list[str]:
        return [_wire_node(s) for s in v]


class MerkleAccumulator:
    """
    Immutable tree built once from its leaves.

    Example:
        tree = MerkleAccumulator([leaf0, leaf1, leaf2])
        proof = tree.prove(2)
        assert verify_proof(proof)
    """

    def __init__(
        self,
        leaves: Sequence[Any],
        hasher: Hasher = KECCAK,
        depth: int | None = None,
    ) -> None:
        if not leaves:
            raise MalformedInputError("cannot build a Merkle tree without leaves")

        self.hasher = hasher
        self.leaf_count = len(leaves)
        level = list(leaves)

        if depth is not None:
            capacity = 1 << depth
            if len(level) > capacity:
                raise MalformedInputError(
                    f"{len(level)} leaves exceed tree capacity {capacity}",
                    depth=depth,
                )
            level.extend([hasher.zero_leaf] * (capacity - len(level)))

        self._levels: list[list[Any]] = [level]
        while len(level) > 1:
            level = [
                hasher.combine(level[i], level[i + 1] if i + 1 < len(level) else level[i])
                for i in range(0, len(level), 2)
            ]
            self._levels.append(level)

    @property
    def root(self) -> Any:
        return self._levels[-1][0]

    @property
    def root_hex(self) -> str:
        return self.hasher.encode(self.root)

    @property
    def depth(self) -> int:
        return len(self._levels) - 1

    def leaf(self, index: int) -> Any:
        self._check_index(index)
        return self._levels[0][index]

    def path(self, index: int) -> tuple[list[Any], list[int]]:
        """Sibling nodes and direction bits from the leaf upwards."""
        self._check_index(index)
        elements: list[Any] = []
        indices: list[int] = []
        position = index
        for level in self._levels[:-1]:
            sibling = position ^ 1
            elements.append(level[sibling] if sibling < len(level) else level[position])
            indices.append(position & 1)
            position >>= 1
        return elements, indices

    def prove(self, index: int) -> MerkleProof:
        elements, _ = self.path(index)
        encode = self.hasher.encode
        return MerkleProof(
            leaf=encode(self._levels[0][index]),
            siblings=[encode(e) for e in elements],
            root=encode(self.root),
            index=index,
        )

    def _check_index(self, index: int) -> None:
        if not 0 <= index < self.leaf_count:
            raise IndexOutOfRangeError(
                f"leaf index {index} out of range",
                index=index,
                leaf_count=self.leaf_count,
            )


def compute_root(leaf: Any, siblings: Sequence[Any], index: int, hasher: Hasher = KECCAK) -> Any:
    """Walk the path from `leaf` to the root."""
    node = leaf
    position = index
    for sibling in siblings:
        if position & 1:
            node = hasher.combine(sibling, node)
        else:
            node = hasher.combine(node, sibling)
        position >>= 1
    return node


def verify_proof(proof: MerkleProof, hasher: Hasher = KECCAK) -> bool:
    """
    Recompute the root of `proof` and compare it with the claimed root.

    Pure. Returns False for malformed nodes and for an index with more bits
    than the path has levels.
    """
    if proof.index >> len(proof.siblings):
        return False
    try:
        leaf = hasher.decode(proof.leaf)
        siblings = [hasher.decode(s) for s in proof.siblings]
        root = hasher.decode(proof.root)
    except MalformedInputError:
        return False

    computed = compute_root(leaf, siblings, proof.index, hasher)
    return hmac.compare_digest(hasher.encode(computed), hasher.encode(root))
