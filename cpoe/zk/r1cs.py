"""
Rank-1 Constraint System
========================

Minimal R1CS builder for the threshold circuit.

Every constraint has the form <A, w> * <B, w> = <C, w> over the BN254
scalar field, where w is the wire assignment. Wire 0 is the constant one;
public wires follow it and are allocated before any private wire.

A system is built either with a witness (every allocation carries a value
and every constraint is checked as it is added) or without one (shape only,
for key generation; all values read as zero).

Version: 0.1.0
"""

from collections.abc import Iterable, Mapping
from typing import Union

from cpoe.crypto.field import FIELD_MODULUS
from cpoe.crypto.keccak import keccak256, to_hex
from cpoe.errors import ConstraintViolationError


ONE = 0


class LinearCombination:
    """Sparse sum of coeff * wire; immutable by convention."""

    __slots__ = ("terms",)

    def __init__(self, terms: Mapping[int, int] | None = None) -> None:
        self.terms: dict[int, int] = {}
        if terms:
            for wire, coeff in terms.items():
                coeff %= FIELD_MODULUS
                if coeff:
                    self.terms[wire] = coeff

    @classmethod
    def constant(cls, value: int) -> "LinearCombination":
        return cls({ONE: value})

    @classmethod
    def wire(cls, index: int) -> "LinearCombination":
        return cls({index: 1})

    def __repr__(self) -> str:
        return f"LinearCombination({self.terms})"

    def _combine(self, other: "LC", sign: int) -> "LinearCombination":
        other = as_lc(other)
        terms = dict(self.terms)
        for wire, coeff in other.terms.items():
            terms[wire] = (terms.get(wire, 0) + sign * coeff) % FIELD_MODULUS
        return LinearCombination(terms)

    def __add__(self, other: "LC") -> "LinearCombination":
        return self._combine(other, 1)

    __radd__ = __add__

    def __sub__(self, other: "LC") -> "LinearCombination":
        return self._combine(other, -1)

    def __rsub__(self, other: "LC") -> "LinearCombination":
        return as_lc(other)._combine(self, -1)

    def __neg__(self) -> "LinearCombination":
        return LinearCombination({w: -c for w, c in self.terms.items()})

    def __mul__(self, scalar: int) -> "LinearCombination":
        if not isinstance(scalar, int):
            return NotImplemented
        return LinearCombination({w: c * scalar for w, c in self.terms.items()})

    __rmul__ = __mul__

    def evaluate(self, assignment: list[int]) -> int:
        return sum(coeff * assignment[wire] for wire, coeff in self.terms.items()) % FIELD_MODULUS


LC = Union[LinearCombination, int]


def as_lc(value: LC) -> LinearCombination:
    if isinstance(value, LinearCombination):
        return value
    return LinearCombination.constant(value)


class ConstraintSystem:
    """
    Constraint system under construction.

    Example:
        cs = ConstraintSystem(with_witness=True)
        x = cs.public_input("x", 3)
        y = cs.private_input("y", 9)
        cs.enforce(x, x, y, "square")
    """

    def __init__(self, with_witness: bool = True) -> None:
        self.with_witness = with_witness
        self.values: list[int] = [1]
        self.names: list[str] = ["one"]
        self.num_public = 0
        self.constraints: list[tuple[LinearCombination, LinearCombination, LinearCombination]] = []
        self.labels: list[str] = []

    @property
    def num_wires(self) -> int:
        return len(self.values)

    @property
    def num_constraints(self) -> int:
        return len(self.constraints)

    def _alloc(self, name: str, value: int | None) -> LinearCombination:
        if self.with_witness and value is None:
            raise ConstraintViolationError(f"missing witness value for '{name}'")
        self.values.append(value % FIELD_MODULUS if self.with_witness else 0)
        self.names.append(name)
        return LinearCombination.wire(len(self.values) - 1)

    def public_input(self, name: str, value: int | None = None) -> LinearCombination:
        if self.num_wires != self.num_public + 1:
            raise ValueError("public inputs must be allocated before private wires")
        self.num_public += 1
        return self._alloc(name, value)

    def private_input(self, name: str, value: int | None = None) -> LinearCombination:
        return self._alloc(name, value)

    def value(self, lc: LC) -> int:
        return as_lc(lc).evaluate(self.values)

    def enforce(self, a: LC, b: LC, c: LC, label: str) -> None:
        """
        Add a * b = c.

        Raises:
            ConstraintViolationError: witness mode and the constraint fails
        """
        a, b, c = as_lc(a), as_lc(b), as_lc(c)
        self.constraints.append((a, b, c))
        self.labels.append(label)
        if self.with_witness and self.value(a) * self.value(b) % FIELD_MODULUS != self.value(c):
            raise ConstraintViolationError(
                f"constraint '{label}' is not satisfied",
                constraint=label,
                index=len(self.constraints) - 1,
            )

    def mul(self, a: LC, b: LC, label: str) -> LinearCombination:
        """Allocate and return a private wire equal to a * b."""
        product = self.value(a) * self.value(b) if self.with_witness else None
        out = self.private_input(label, product)
        self.enforce(a, b, out, label)
        return out

    def assert_boolean(self, x: LC, label: str) -> None:
        self.enforce(x, as_lc(x) - 1, 0, f"{label}.boolean")

    def to_bits(self, x: LC, n: int, label: str) -> list[LinearCombination]:
        """
        Decompose x into n little-endian boolean wires.

        Fails when x does not fit in n bits.
        """
        value = self.value(x) if self.with_witness else 0
        bits = []
        packed = LinearCombination()
        for i in range(n):
            bit = self.private_input(f"{label}.bit{i}", (value >> i) & 1 if self.with_witness else None)
            self.assert_boolean(bit, f"{label}.bit{i}")
            packed = packed + bit * (1 << i)
            bits.append(bit)
        self.enforce(packed, 1, x, f"{label}.pack")
        return bits

    def is_satisfied(self) -> str | None:
        """Label of the first failing constraint, or None."""
        for (a, b, c), label in zip(self.constraints, self.labels):
            if self.value(a) * self.value(b) % FIELD_MODULUS != self.value(c):
                return label
        return None

    def public_values(self) -> list[int]:
        return self.values[1 : self.num_public + 1]

    def digest(self) -> str:
        """keccak-256 of the canonical constraint description."""
        return to_hex(keccak256(*_canonical_chunks(self)))


def _canonical_chunks(cs: ConstraintSystem) -> Iterable[bytes]:
    yield f"r1cs:{cs.num_wires}:{cs.num_public}:{cs.num_constraints};".encode()
    for a, b, c in cs.constraints:
        for lc in (a, b, c):
            yield ",".join(f"{w}:{coeff}" for w, coeff in sorted(lc.terms.items())).encode()
            yield b"|"
        yield b";"
