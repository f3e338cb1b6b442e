"""
Threshold Circuit
=================

The one circuit shape this package proves:

    public:  minAmount, merkleRoot, nullifierHash   (in this order)
    private: actualAmount, secretSeed, merklePathElements[depth], merklePathIndices[depth]

Constraint groups:
    1. threshold   actualAmount, minAmount < 2^bits and
                   actualAmount - minAmount + 2^bits has bit `bits` set
    2. membership  actualAmount is a leaf under merkleRoot along the path
    3. nullifier   nullifierHash == Sponge(secretSeed, actualAmount) [NULLIFIER]

Version: 0.1.0
"""

from dataclasses import dataclass, field
from functools import cached_property

from pydantic import BaseModel

from cpoe.config import settings
from cpoe.crypto import poseidon
from cpoe.crypto.poseidon import HashDomain
from cpoe.zk.r1cs import ConstraintSystem, LinearCombination, as_lc


PUBLIC_SIGNALS = ("minAmount", "merkleRoot", "nullifierHash")


@dataclass
class CircuitAssignment:
    """Full input assignment; private fields never leave the prover."""

    min_amount: int
    merkle_root: int
    nullifier_hash: int
    actual_amount: int
    secret_seed: int
    path_elements: list[int] = field(default_factory=list)
    path_indices: list[int] = field(default_factory=list)

    def __repr__(self) -> str:
        return "CircuitAssignment(<redacted>)"


class CircuitInfo(BaseModel):
    """Circuit statistics."""

    name: str = "threshold_membership_nullifier"
    depth: int
    amount_bits: int
    num_constraints: int
    num_wires: int
    num_public: int
    public_signals: list[str]
    circuit_digest: str


def sponge_gadget(
    cs: ConstraintSystem,
    left: LinearCombination,
    right: LinearCombination,
    domain: HashDomain,
    label: str,
) -> LinearCombination:
    """In-circuit counterpart of `poseidon.sponge_hash`; 3 constraints per S-box."""
    state = [LinearCombination.constant(int(domain)), as_lc(left), as_lc(right)]

    for r, constants in enumerate(poseidon.ROUND_CONSTANTS):
        state = [s + c for s, c in zip(state, constants)]
        sbox_positions = range(poseidon.WIDTH) if poseidon.is_full_round(r) else (0,)
        for i in sbox_positions:
            x = state[i]
            x2 = cs.mul(x, x, f"{label}.r{r}.s{i}.x2")
            x4 = cs.mul(x2, x2, f"{label}.r{r}.s{i}.x4")
            state[i] = cs.mul(x4, x, f"{label}.r{r}.s{i}.x5")
        state = [
            sum((s * m for m, s in zip(row, state)), LinearCombination())
            for row in poseidon.MDS
        ]

    return state[0]


class ThresholdCircuit:
    """
    Builder for the threshold circuit at a fixed depth and bit width.

    Example:
        circuit = ThresholdCircuit(depth=10)
        cs = circuit.synthesize(assignment)   # raises on any unsatisfied constraint
        circuit.info()
    """

    def __init__(self, depth: int | None = None, amount_bits: int | None = None) -> None:
        self.depth = depth if depth is not None else settings.zk.merkle_depth
        self.amount_bits = amount_bits if amount_bits is not None else settings.zk.amount_bits

    def __repr__(self) -> str:
        return f"ThresholdCircuit(depth={self.depth}, amount_bits={self.amount_bits})"

    def synthesize(self, assignment: CircuitAssignment | None = None) -> ConstraintSystem:
        """
        Build the constraint system.

        Without an assignment only the shape is produced (key generation).

        Raises:
            ConstraintViolationError: the assignment violates a constraint
        """
        cs = ConstraintSystem(with_witness=assignment is not None)
        a = assignment

        min_amount = cs.public_input("minAmount", a.min_amount if a else None)
        merkle_root = cs.public_input("merkleRoot", a.merkle_root if a else None)
        nullifier = cs.public_input("nullifierHash", a.nullifier_hash if a else None)

        actual = cs.private_input("actualAmount", a.actual_amount if a else None)
        seed = cs.private_input("secretSeed", a.secret_seed if a else None)

        if a is not None and (
            len(a.path_elements) != self.depth or len(a.path_indices) != self.depth
        ):
            raise ValueError(f"merkle path must have exactly {self.depth} levels")

        # 1. threshold
        bits = self.amount_bits
        cs.to_bits(actual, bits, "actualAmount.range")
        cs.to_bits(min_amount, bits, "minAmount.range")
        diff_bits = cs.to_bits(actual - min_amount + (1 << bits), bits + 1, "threshold.diff")
        cs.enforce(diff_bits[bits], 1, 1, "threshold.gte")

        # 2. membership
        current = actual
        for level in range(self.depth):
            sibling = cs.private_input(
                f"path.element{level}", a.path_elements[level] if a else None
            )
            index = cs.private_input(f"path.index{level}", a.path_indices[level] if a else None)
            cs.assert_boolean(index, f"path.index{level}")
            swap = cs.mul(index, sibling - current, f"path.swap{level}")
            left = current + swap
            right = sibling - swap
            current = sponge_gadget(cs, left, right, HashDomain.MERKLE_NODE, f"path.node{level}")
        cs.enforce(current, 1, merkle_root, "membership.root")

        # 3. nullifier
        derived = sponge_gadget(cs, seed, actual, HashDomain.NULLIFIER, "nullifier")
        cs.enforce(derived, 1, nullifier, "nullifier.binding")

        return cs

    @cached_property
    def shape(self) -> ConstraintSystem:
        return self.synthesize()

    @cached_property
    def digest(self) -> str:
        return self.shape.digest()

    def info(self) -> CircuitInfo:
        cs = self.shape
        return CircuitInfo(
            depth=self.depth,
            amount_bits=self.amount_bits,
            num_constraints=cs.num_constraints,
            num_wires=cs.num_wires,
            num_public=cs.num_public,
            public_signals=list(PUBLIC_SIGNALS),
            circuit_digest=self.digest,
        )
