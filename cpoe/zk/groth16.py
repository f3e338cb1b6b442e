"""
Groth16 over BN254
==================

Setup, prove and verify for a `ConstraintSystem`.

QAP construction:
- one domain point per constraint, plus one row A = {w: 1} for the constant
  wire and each public wire (makes the public polynomials linearly
  independent, as snarkjs does)
- u_j, v_j, w_j are the wire polynomials of A, B and C evaluated at tau
- the quotient h = (a*b - c) / Z is computed on a coset of the domain

Verification equation:
    e(-A, B) * e(alpha, beta) * e(vk_x, gamma) * e(C, delta) == 1
    vk_x = IC[0] + sum(input_i * IC[i + 1])

Version: 0.1.0
"""

from dataclasses import dataclass
from typing import Any

from cpoe.crypto.curve import (
    G1_GENERATOR,
    G1_ZERO,
    G2_GENERATOR,
    G2_ZERO,
    FixedBaseTable,
    g1_add,
    g1_mul,
    g1_neg,
    g2_add,
    g2_mul,
    multiexp,
    pairing_product_is_one,
)
from cpoe.crypto.field import (
    FIELD_MODULUS,
    MULTIPLICATIVE_GENERATOR,
    EvaluationDomain,
    inv,
    random_scalar,
)
from cpoe.errors import CryptographicFailureError, MalformedInputError
from cpoe.logging import get_logger
from cpoe.zk.r1cs import ONE, ConstraintSystem, LinearCombination


logger = get_logger(__name__)


@dataclass(frozen=True)
class VerificationKey:
    alpha_g1: Any
    beta_g2: Any
    gamma_g2: Any
    delta_g2: Any
    ic: tuple[Any, ...]

    @property
    def num_public(self) -> int:
        return len(self.ic) - 1


@dataclass(frozen=True)
class ProvingKey:
    alpha_g1: Any
    beta_g1: Any
    beta_g2: Any
    delta_g1: Any
    delta_g2: Any
    a_query: tuple[Any, ...]
    b_g1_query: tuple[Any, ...]
    b_g2_query: tuple[Any, ...]
    l_query: tuple[Any, ...]
    h_query: tuple[Any, ...]
    domain_size: int
    num_public: int
    circuit_digest: str

    @property
    def num_wires(self) -> int:
        return len(self.a_query)


@dataclass(frozen=True)
class Proof:
    a: Any
    b: Any
    c: Any


def _qap_rows(
    cs: ConstraintSystem,
) -> list[tuple[LinearCombination, LinearCombination, LinearCombination]]:
    rows = list(cs.constraints)
    empty = LinearCombination()
    for wire in range(ONE, cs.num_public + 1):
        rows.append((LinearCombination.wire(wire), empty, empty))
    return rows


def setup(cs: ConstraintSystem) -> tuple[ProvingKey, VerificationKey]:
    """
    Single-party key generation. The toxic waste (tau, alpha, beta, gamma,
    delta) lives only in this call's frame; whoever runs it can forge
    proofs, so the result is suitable for development only.
    """
    p = FIELD_MODULUS
    rows = _qap_rows(cs)
    domain = EvaluationDomain(len(rows))
    m = cs.num_wires

    tau = random_scalar()
    while domain.vanishing_at(tau) == 0:
        tau = random_scalar()
    alpha, beta, gamma, delta = (random_scalar() for _ in range(4))

    lagrange = domain.lagrange_at(tau)
    u = [0] * m
    v = [0] * m
    w = [0] * m
    for row, (a, b, c) in enumerate(rows):
        basis = lagrange[row]
        for wire, coeff in a.terms.items():
            u[wire] = (u[wire] + coeff * basis) % p
        for wire, coeff in b.terms.items():
            v[wire] = (v[wire] + coeff * basis) % p
        for wire, coeff in c.terms.items():
            w[wire] = (w[wire] + coeff * basis) % p

    logger.info(
        "groth16_setup_started",
        constraints=cs.num_constraints,
        wires=m,
        domain_size=domain.size,
    )

    g1 = FixedBaseTable(G1_GENERATOR, G1_ZERO)
    g2 = FixedBaseTable(G2_GENERATOR, G2_ZERO)

    gamma_inv = inv(gamma)
    delta_inv = inv(delta)
    combined = [(beta * u[j] + alpha * v[j] + w[j]) % p for j in range(m)]
    public_end = cs.num_public + 1

    z_tau = domain.vanishing_at(tau)
    h_scalars = []
    power = z_tau * delta_inv % p
    for _ in range(domain.size - 1):
        h_scalars.append(power)
        power = power * tau % p

    vk = VerificationKey(
        alpha_g1=g1.mul(alpha),
        beta_g2=g2.mul(beta),
        gamma_g2=g2.mul(gamma),
        delta_g2=g2.mul(delta),
        ic=tuple(g1.mul(combined[j] * gamma_inv) for j in range(public_end)),
    )
    pk = ProvingKey(
        alpha_g1=vk.alpha_g1,
        beta_g1=g1.mul(beta),
        beta_g2=vk.beta_g2,
        delta_g1=g1.mul(delta),
        delta_g2=vk.delta_g2,
        a_query=tuple(g1.batch_mul(u)),
        b_g1_query=tuple(g1.batch_mul(v)),
        b_g2_query=tuple(g2.batch_mul(v)),
        l_query=tuple(g1.mul(combined[j] * delta_inv) for j in range(public_end, m)),
        h_query=tuple(g1.batch_mul(h_scalars)),
        domain_size=domain.size,
        num_public=cs.num_public,
        circuit_digest=cs.digest(),
    )

    logger.info("groth16_setup_completed", domain_size=domain.size)
    return pk, vk


def _quotient(cs: ConstraintSystem, domain: EvaluationDomain) -> list[int]:
    p = FIELD_MODULUS
    rows = _qap_rows(cs)
    values = cs.values
    a_evals = [a.evaluate(values) for a, _, _ in rows]
    b_evals = [b.evaluate(values) for _, b, _ in rows]
    c_evals = [c.evaluate(values) for _, _, c in rows]

    shift = MULTIPLICATIVE_GENERATOR
    a_coset = domain.coset_fft(domain.ifft(a_evals), shift)
    b_coset = domain.coset_fft(domain.ifft(b_evals), shift)
    c_coset = domain.coset_fft(domain.ifft(c_evals), shift)

    # Z(shift * w^i) = shift^n - 1 on every coset point
    z_inv = inv(pow(shift, domain.size, p) - 1)
    h_coset = [(x * y - z) * z_inv % p for x, y, z in zip(a_coset, b_coset, c_coset)]
    h = domain.coset_ifft(h_coset, shift)
    if h[-1] != 0:
        raise CryptographicFailureError("QAP quotient has unexpected degree")
    return h[:-1]


def prove(pk: ProvingKey, cs: ConstraintSystem) -> Proof:
    """
    Produce a proof for a fully assigned constraint system.

    Fresh blinding scalars r, s are drawn from the OS CSPRNG on every call.

    Raises:
        MalformedInputError: the system does not match the proving key
    """
    if not cs.with_witness:
        raise MalformedInputError("constraint system carries no witness")
    if cs.num_wires != pk.num_wires or cs.num_public != pk.num_public:
        raise MalformedInputError(
            "constraint system does not match the proving key",
            wires=cs.num_wires,
            expected_wires=pk.num_wires,
        )

    domain = EvaluationDomain(pk.domain_size)
    if domain.size != pk.domain_size:
        raise MalformedInputError("proving key domain size is not a power of two")
    h = _quotient(cs, domain)
    values = cs.values

    r = random_scalar()
    s = random_scalar()

    a = g1_add(
        g1_add(pk.alpha_g1, multiexp(pk.a_query, values, G1_ZERO)),
        g1_mul(pk.delta_g1, r),
    )
    b1 = g1_add(
        g1_add(pk.beta_g1, multiexp(pk.b_g1_query, values, G1_ZERO)),
        g1_mul(pk.delta_g1, s),
    )
    b2 = g2_add(
        g2_add(pk.beta_g2, multiexp(pk.b_g2_query, values, G2_ZERO)),
        g2_mul(pk.delta_g2, s),
    )

    private_values = values[pk.num_public + 1 :]
    c = multiexp(pk.l_query, private_values, G1_ZERO)
    c = g1_add(c, multiexp(pk.h_query, h, G1_ZERO))
    c = g1_add(c, g1_mul(a, s))
    c = g1_add(c, g1_mul(b1, r))
    c = g1_add(c, g1_neg(g1_mul(pk.delta_g1, r * s % FIELD_MODULUS)))

    return Proof(a=a, b=b2, c=c)


def verify(vk: VerificationKey, public_inputs: list[int], proof: Proof) -> bool:
    """Pairing check; inputs must already be canonical field elements."""
    if len(public_inputs) != vk.num_public:
        raise MalformedInputError(
            f"expected {vk.num_public} public inputs, got {len(public_inputs)}"
        )

    vk_x = multiexp(vk.ic[1:], public_inputs, G1_ZERO)
    vk_x = g1_add(vk.ic[0], vk_x)

    return pairing_product_is_one(
        [
            (g1_neg(proof.a), proof.b),
            (vk.alpha_g1, vk.beta_g2),
            (vk_x, vk.gamma_g2),
            (proof.c, vk.delta_g2),
        ]
    )
