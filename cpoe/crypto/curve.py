"""
BN254 Curve Operations
======================

Thin layer over `py_ecc.optimized_bn128` used by the Groth16 prover and
verifier:

- strict decoding of affine coordinates (no silent reduction, on-curve and
  subgroup checks),
- snarkjs-compatible encoding (decimal strings, G2 as [c0, c1] pairs),
- fixed-base and multi-scalar multiplication,
- a product-of-pairings check with a single final exponentiation.

Points are py_ecc Jacobian tuples (x, y, z); z == 0 is the point at infinity.

Version: 0.1.0
"""

from collections.abc import Iterable, Sequence
from typing import Any

from py_ecc.optimized_bn128 import (
    FQ,
    FQ2,
    FQ12,
    G1,
    G2,
    add,
    b,
    b2,
    curve_order,
    double,
    field_modulus,
    final_exponentiate,
    is_on_curve,
    multiply,
    neg,
    normalize,
    pairing,
)

from cpoe.errors import CryptographicFailureError, MalformedInputError


G1Point = tuple[Any, Any, Any]
G2Point = tuple[Any, Any, Any]

CURVE_ORDER: int = int(curve_order)
BASE_FIELD_MODULUS: int = int(field_modulus)

G1_GENERATOR: G1Point = G1
G2_GENERATOR: G2Point = G2
G1_ZERO: G1Point = (FQ.one(), FQ.one(), FQ.zero())
G2_ZERO: G2Point = (FQ2.one(), FQ2.one(), FQ2.zero())


def is_infinity(point: Any) -> bool:
    return point[2] == type(point[2]).zero()


def g1_neg(point: G1Point) -> G1Point:
    return neg(point)


def g1_add(p: G1Point, q: G1Point) -> G1Point:
    return add(p, q)


def g2_add(p: G2Point, q: G2Point) -> G2Point:
    return add(p, q)


def g1_mul(point: G1Point, scalar: int) -> G1Point:
    scalar %= CURVE_ORDER
    if scalar == 0:
        return G1_ZERO
    return multiply(point, scalar)


def g2_mul(point: G2Point, scalar: int) -> G2Point:
    scalar %= CURVE_ORDER
    if scalar == 0:
        return G2_ZERO
    return multiply(point, scalar)


def points_equal(p: Any, q: Any) -> bool:
    if is_infinity(p) or is_infinity(q):
        return is_infinity(p) and is_infinity(q)
    return normalize(p) == normalize(q)


# =============================================================================
# Decoding / encoding
# =============================================================================


def _coordinate(value: int | str, label: str) -> int:
    try:
        if isinstance(value, int):
            n = value
        else:
            s = str(value).strip().lower()
            n = int(s, 16) if s.startswith("0x") else int(s)
    except (TypeError, ValueError) as e:
        raise MalformedInputError(f"{label}: not an integer coordinate") from e
    if not 0 <= n < BASE_FIELD_MODULUS:
        raise CryptographicFailureError(f"{label}: coordinate outside the base field")
    return n


def decode_g1(coords: Sequence[int | str], label: str = "G1") -> G1Point:
    """
    Decode an affine G1 point ``[x, y]`` (an optional trailing ``"1"`` is
    accepted). ``[0, 0]`` is the point at infinity.

    Raises:
        MalformedInputError: wrong shape
        CryptographicFailureError: coordinate out of range or not on the curve
    """
    if len(coords) not in (2, 3):
        raise MalformedInputError(f"{label}: expected 2 coordinates, got {len(coords)}")
    x = _coordinate(coords[0], f"{label}.x")
    y = _coordinate(coords[1], f"{label}.y")
    if x == 0 and y == 0:
        return G1_ZERO
    point = (FQ(x), FQ(y), FQ.one())
    if not is_on_curve(point, b):
        raise CryptographicFailureError(f"{label}: point is not on the curve")
    # G1 has cofactor 1: on-curve implies prime-order subgroup
    return point


def decode_g2(
    coords: Sequence[Sequence[int | str]],
    label: str = "G2",
    check_subgroup: bool = True,
) -> G2Point:
    """
    Decode an affine G2 point ``[[x0, x1], [y0, y1]]`` where each pair is
    ``c0 + c1 * i``. Performs the on-curve and r-torsion subgroup checks;
    the subgroup check costs a full scalar multiplication and may be skipped
    for locally generated key material.
    """
    if len(coords) not in (2, 3) or any(len(c) != 2 for c in coords[:2]):
        raise MalformedInputError(f"{label}: expected [[x0, x1], [y0, y1]]")
    x0 = _coordinate(coords[0][0], f"{label}.x0")
    x1 = _coordinate(coords[0][1], f"{label}.x1")
    y0 = _coordinate(coords[1][0], f"{label}.y0")
    y1 = _coordinate(coords[1][1], f"{label}.y1")
    if x0 == x1 == y0 == y1 == 0:
        return G2_ZERO
    point = (FQ2([x0, x1]), FQ2([y0, y1]), FQ2.one())
    if not is_on_curve(point, b2):
        raise CryptographicFailureError(f"{label}: point is not on the twist curve")
    if check_subgroup and not is_infinity(multiply(point, CURVE_ORDER)):
        raise CryptographicFailureError(f"{label}: point is not in the prime-order subgroup")
    return point


def _int(element: Any) -> int:
    return element if isinstance(element, int) else element.n


def encode_g1(point: G1Point) -> list[str]:
    if is_infinity(point):
        return ["0", "0"]
    x, y = normalize(point)
    return [str(_int(x)), str(_int(y))]


def encode_g2(point: G2Point) -> list[list[str]]:
    if is_infinity(point):
        return [["0", "0"], ["0", "0"]]
    x, y = normalize(point)
    return [[str(_int(c)) for c in x.coeffs], [str(_int(c)) for c in y.coeffs]]


# =============================================================================
# Scalar multiplication
# =============================================================================


class FixedBaseTable:
    """
    Windowed precomputation for many multiplications of one base point.

    row j holds d * 2^(w*j) * base for every digit d < 2^w, so a scalar
    multiplication costs at most ceil(254 / w) additions.
    """

    def __init__(self, base: Any, zero: Any, window: int = 8) -> None:
        self.window = window
        self.zero = zero
        self._mask = (1 << window) - 1
        self._rows: list[list[Any]] = []
        current = base
        for _ in range((CURVE_ORDER.bit_length() + window - 1) // window):
            row = [zero, current]
            for _digit in range(2, 1 << window):
                row.append(add(row[-1], current))
            self._rows.append(row)
            current = add(row[-1], current)

    def mul(self, scalar: int) -> Any:
        scalar %= CURVE_ORDER
        acc = None
        row = 0
        while scalar:
            digit = scalar & self._mask
            if digit:
                term = self._rows[row][digit]
                acc = term if acc is None else add(acc, term)
            scalar >>= self.window
            row += 1
        return self.zero if acc is None else acc

    def batch_mul(self, scalars: Iterable[int]) -> list[Any]:
        return [self.mul(s) for s in scalars]


def _window_size(n: int) -> int:
    return max(2, n.bit_length() - 3)


def multiexp(points: Sequence[Any], scalars: Sequence[int], zero: Any) -> Any:
    """
    Compute sum(scalars[i] * points[i]) with Pippenger's bucket method.

    Zero scalars and points at infinity are skipped, so sparse or bit-valued
    witnesses stay cheap.
    """
    if len(points) != len(scalars):
        raise ValueError(f"{len(points)} points but {len(scalars)} scalars")

    terms = []
    for point, scalar in zip(points, scalars):
        s = scalar % CURVE_ORDER
        if s and not is_infinity(point):
            terms.append((point, s))
    if not terms:
        return zero

    if len(terms) < 8:
        acc = zero
        for point, s in terms:
            acc = add(acc, multiply(point, s))
        return acc

    c = _window_size(len(terms))
    mask = (1 << c) - 1
    max_bits = max(s.bit_length() for _, s in terms)
    result = None

    for shift in range(((max_bits - 1) // c) * c, -1, -c):
        if result is not None:
            for _ in range(c):
                result = double(result)

        buckets: list[Any] = [None] * (mask + 1)
        for point, s in terms:
            digit = (s >> shift) & mask
            if digit:
                bucket = buckets[digit]
                buckets[digit] = point if bucket is None else add(bucket, point)

        running = None
        window_sum = None
        for digit in range(mask, 0, -1):
            bucket = buckets[digit]
            if bucket is not None:
                running = bucket if running is None else add(running, bucket)
            if running is not None:
                window_sum = running if window_sum is None else add(window_sum, running)

        if window_sum is not None:
            result = window_sum if result is None else add(result, window_sum)

    return zero if result is None else result


# =============================================================================
# Pairing
# =============================================================================


def pairing_product_is_one(pairs: Sequence[tuple[G1Point, G2Point]]) -> bool:
    """
    Check prod e(P_i, Q_i) == 1 in GT.

    Miller loops are multiplied together and a single final exponentiation
    is applied to the product.
    """
    acc = FQ12.one()
    for p, q in pairs:
        if is_infinity(p) or is_infinity(q):
            continue
        acc = acc * pairing(q, p, final_exponentiate=False)
    return final_exponentiate(acc) == FQ12.one()
