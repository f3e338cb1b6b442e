"""
Merkle Module
=============

Binary Merkle accumulator shared by event trees (keccak-256) and
value-commitment trees (sponge hash).

Usage:
    from cpoe.merkle import MerkleAccumulator, SPONGE, verify_proof

    tree = MerkleAccumulator(amounts, hasher=SPONGE, depth=10)
    elements, indices = tree.path(3)
"""

from cpoe.merkle.hashers import KECCAK, SPONGE, Hasher, KeccakHasher, SpongeHasher
from cpoe.merkle.tree import MerkleAccumulator, MerkleProof, compute_root, verify_proof


__all__ = [
    "Hasher",
    "KeccakHasher",
    "SpongeHasher",
    "KECCAK",
    "SPONGE",
    "MerkleAccumulator",
    "MerkleProof",
    "compute_root",
    "verify_proof",
]
