"""
Scalar Field Arithmetic
=======================

Arithmetic over the BN254 (alt_bn128) scalar field Fr, the field the
threshold circuit is defined over, plus the radix-2 number-theoretic
transform used to move QAP polynomials between evaluation and coefficient
form.

Field elements are plain Python ints in [0, FIELD_MODULUS).

Version: 0.1.0
"""

import secrets
from collections.abc import Sequence

from py_ecc.optimized_bn128 import curve_order


FIELD_MODULUS: int = int(curve_order)

# Fr* has order 2^28 * odd; radix-2 domains up to 2^28 exist
TWO_ADICITY = 28


def fr(value: int) -> int:
    """Reduce an integer into the scalar field."""
    return value % FIELD_MODULUS


def inv(value: int) -> int:
    """Multiplicative inverse; raises ZeroDivisionError for zero."""
    value %= FIELD_MODULUS
    if value == 0:
        raise ZeroDivisionError("zero has no inverse in Fr")
    return pow(value, FIELD_MODULUS - 2, FIELD_MODULUS)


def batch_inverse(values: Sequence[int]) -> list[int]:
    """Invert many nonzero elements with a single exponentiation."""
    prefix = [1] * (len(values) + 1)
    for i, v in enumerate(values):
        prefix[i + 1] = prefix[i] * v % FIELD_MODULUS
    acc = inv(prefix[-1])
    out = [0] * len(values)
    for i in range(len(values) - 1, -1, -1):
        out[i] = acc * prefix[i] % FIELD_MODULUS
        acc = acc * values[i] % FIELD_MODULUS
    return out


def random_scalar() -> int:
    """Uniform nonzero scalar from the OS CSPRNG."""
    return secrets.randbelow(FIELD_MODULUS - 1) + 1


def _find_non_residue() -> int:
    candidate = 2
    while pow(candidate, (FIELD_MODULUS - 1) // 2, FIELD_MODULUS) != FIELD_MODULUS - 1:
        candidate += 1
    return candidate


# A quadratic non-residue also generates the full 2-Sylow subgroup
MULTIPLICATIVE_GENERATOR: int = _find_non_residue()


def root_of_unity(size: int) -> int:
    """Primitive `size`-th root of unity; `size` must be a power of two."""
    if size <= 0 or size & (size - 1):
        raise ValueError(f"domain size {size} is not a power of two")
    if size.bit_length() - 1 > TWO_ADICITY:
        raise ValueError(f"domain size {size} exceeds 2^{TWO_ADICITY}")
    return pow(MULTIPLICATIVE_GENERATOR, (FIELD_MODULUS - 1) // size, FIELD_MODULUS)


def next_power_of_two(n: int) -> int:
    size = 1
    while size < n:
        size <<= 1
    return size


def _bit_reverse_permute(values: list[int]) -> None:
    n = len(values)
    j = 0
    for i in range(1, n):
        bit = n >> 1
        while j & bit:
            j ^= bit
            bit >>= 1
        j |= bit
        if i < j:
            values[i], values[j] = values[j], values[i]


def _transform(values: Sequence[int], omega: int) -> list[int]:
    p = FIELD_MODULUS
    result = [v % p for v in values]
    n = len(result)
    _bit_reverse_permute(result)

    length = 2
    while length <= n:
        half = length >> 1
        w_len = pow(omega, n // length, p)
        twiddles = [1] * half
        for k in range(1, half):
            twiddles[k] = twiddles[k - 1] * w_len % p
        for start in range(0, n, length):
            for k in range(half):
                i1 = start + k
                i2 = i1 + half
                t = twiddles[k] * result[i2] % p
                a = result[i1]
                result[i1] = (a + t) % p
                result[i2] = (a - t) % p
        length <<= 1
    return result


class EvaluationDomain:
    """
    Multiplicative subgroup {1, w, ..., w^(n-1)} of Fr with n a power of two.

    Vanishing polynomial: Z(x) = x^n - 1.
    """

    def __init__(self, size: int) -> None:
        self.size = next_power_of_two(max(size, 2))
        self.omega = root_of_unity(self.size)
        self.omega_inv = inv(self.omega)
        self.size_inv = inv(self.size)

    def __repr__(self) -> str:
        return f"EvaluationDomain(size={self.size})"

    def elements(self) -> list[int]:
        out = [1] * self.size
        for i in range(1, self.size):
            out[i] = out[i - 1] * self.omega % FIELD_MODULUS
        return out

    def fft(self, coeffs: Sequence[int]) -> list[int]:
        """Coefficients -> evaluations over the domain."""
        return _transform(self._pad(coeffs), self.omega)

    def ifft(self, evals: Sequence[int]) -> list[int]:
        """Evaluations over the domain -> coefficients."""
        out = _transform(self._pad(evals), self.omega_inv)
        return [v * self.size_inv % FIELD_MODULUS for v in out]

    def coset_fft(self, coeffs: Sequence[int], shift: int) -> list[int]:
        """Evaluate over the coset shift * domain."""
        scaled = self._pad(coeffs)
        factor = 1
        for i in range(self.size):
            scaled[i] = scaled[i] * factor % FIELD_MODULUS
            factor = factor * shift % FIELD_MODULUS
        return _transform(scaled, self.omega)

    def coset_ifft(self, evals: Sequence[int], shift: int) -> list[int]:
        """Interpolate from evaluations over the coset shift * domain."""
        coeffs = self.ifft(evals)
        shift_inv = inv(shift)
        factor = 1
        for i in range(self.size):
            coeffs[i] = coeffs[i] * factor % FIELD_MODULUS
            factor = factor * shift_inv % FIELD_MODULUS
        return coeffs

    def vanishing_at(self, x: int) -> int:
        return (pow(x, self.size, FIELD_MODULUS) - 1) % FIELD_MODULUS

    def lagrange_at(self, tau: int) -> list[int]:
        """
        Evaluate every Lagrange basis polynomial of the domain at tau.

        L_j(tau) = Z(tau) * w^j / (n * (tau - w^j)); tau must lie outside
        the domain.
        """
        z_tau = self.vanishing_at(tau)
        if z_tau == 0:
            raise ValueError("tau lies inside the evaluation domain")
        points = self.elements()
        denominators = batch_inverse([(tau - w) % FIELD_MODULUS for w in points])
        scale = z_tau * self.size_inv % FIELD_MODULUS
        return [scale * w % FIELD_MODULUS * d % FIELD_MODULUS for w, d in zip(points, denominators)]

    def _pad(self, values: Sequence[int]) -> list[int]:
        if len(values) > self.size:
            raise ValueError(f"{len(values)} values exceed domain size {self.size}")
        return [v % FIELD_MODULUS for v in values] + [0] * (self.size - len(values))
