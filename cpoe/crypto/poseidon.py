"""
Sponge Hash
===========

Poseidon-style permutation over the BN254 scalar field, used wherever a
hash has to be checked inside the threshold circuit (value-tree nodes and
the nullifier).

Parameters:
    width 3 (capacity 1, rate 2), S-box x^5,
    8 full rounds (4 before, 4 after) and 57 partial rounds,
    round constants from keccak-256 of a fixed seed,
    Cauchy MDS matrix M[i][j] = 1 / (i + (3 + j)).

Hash(a, b, domain):
    state = [domain, a, b] -> permute -> state[0]

The constants are generated here rather than copied from circomlib, so
digests are not interchangeable with circomlib's Poseidon.

Version: 0.1.0
"""

from enum import IntEnum

from cpoe.crypto.field import FIELD_MODULUS, inv
from cpoe.crypto.keccak import keccak256


WIDTH = 3
FULL_ROUNDS = 8
PARTIAL_ROUNDS = 57
ALPHA = 5
SEED = b"cpoe.poseidon.bn254.t3"


class HashDomain(IntEnum):
    """Capacity-element tags separating the uses of the sponge hash."""

    MERKLE_NODE = 1
    NULLIFIER = 2


def _round_constants() -> list[list[int]]:
    constants = []
    for r in range(FULL_ROUNDS + PARTIAL_ROUNDS):
        row = []
        for i in range(WIDTH):
            digest = keccak256(SEED, r.to_bytes(4, "big"), i.to_bytes(4, "big"))
            row.append(int.from_bytes(digest, "big") % FIELD_MODULUS)
        constants.append(row)
    return constants


def _mds_matrix() -> list[list[int]]:
    return [[inv(i + WIDTH + j) for j in range(WIDTH)] for i in range(WIDTH)]


ROUND_CONSTANTS: list[list[int]] = _round_constants()
MDS: list[list[int]] = _mds_matrix()


def is_full_round(r: int) -> bool:
    half = FULL_ROUNDS // 2
    return r < half or r >= half + PARTIAL_ROUNDS


def permute(state: list[int]) -> list[int]:
    """Apply the permutation to a width-3 state; returns a new list."""
    p = FIELD_MODULUS
    if len(state) != WIDTH:
        raise ValueError(f"state must have {WIDTH} elements")
    s = [x % p for x in state]
    for r, constants in enumerate(ROUND_CONSTANTS):
        s = [(x + c) % p for x, c in zip(s, constants)]
        if is_full_round(r):
            s = [pow(x, ALPHA, p) for x in s]
        else:
            s[0] = pow(s[0], ALPHA, p)
        s = [sum(m * x for m, x in zip(row, s)) % p for row in MDS]
    return s


def sponge_hash(left: int, right: int, domain: HashDomain = HashDomain.MERKLE_NODE) -> int:
    """Two-to-one hash of field elements."""
    return permute([int(domain), left, right])[0]


def merkle_node(left: int, right: int) -> int:
    return sponge_hash(left, right, HashDomain.MERKLE_NODE)


def nullifier_hash(secret_seed: int, actual_amount: int) -> int:
    """Nullifier = Hash(secretSeed, actualAmount) in the NULLIFIER domain."""
    return sponge_hash(secret_seed, actual_amount, HashDomain.NULLIFIER)
