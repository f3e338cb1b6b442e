"""
Cryptographic Primitives
========================

- field: BN254 scalar field arithmetic and NTT evaluation domains
- curve: G1/G2 decoding, multi-scalar multiplication and pairing checks (py_ecc)
- keccak: keccak-256 (pycryptodome) and Solidity ABI encoding
- poseidon: the circuit-friendly sponge hash
"""

from cpoe.crypto.field import FIELD_MODULUS, EvaluationDomain, fr, inv, random_scalar
from cpoe.crypto.keccak import abi_encode, from_hex, hex_equal, keccak256, to_hex
from cpoe.crypto.poseidon import HashDomain, merkle_node, nullifier_hash, sponge_hash


__all__ = [
    "FIELD_MODULUS",
    "EvaluationDomain",
    "fr",
    "inv",
    "random_scalar",
    "abi_encode",
    "from_hex",
    "hex_equal",
    "keccak256",
    "to_hex",
    "HashDomain",
    "merkle_node",
    "nullifier_hash",
    "sponge_hash",
]
