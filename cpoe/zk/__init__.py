"""
ZK-SNARK Module
===============

Nullifier-bound threshold proofs (Groth16 over BN254).

Proves actualAmount >= minAmount for an amount committed in a
value-commitment tree, without revealing the amount.

Usage:
    from cpoe.zk import ProofGenerator, ProofVerifier, PrivateWitness, ThresholdStatement

    generator = ProofGenerator()
    with PrivateWitness(amount, seed, elements, indices) as witness:
        proof = await generator.generate_proof(
            witness, ThresholdStatement(min_amount=10**18, merkle_root=root)
        )

    result = await ProofVerifier().verify(proof)
"""

from cpoe.zk.circuit import CircuitInfo, ThresholdCircuit
from cpoe.zk.keys import generate_dev_keys, load_proving_key, load_verification_key, save_keys
from cpoe.zk.models import (
    ProofPoints,
    ProofStats,
    PublicSignals,
    RejectionReason,
    ThresholdProof,
    VerificationResult,
    parse_threshold_proof,
)
from cpoe.zk.nullifiers import (
    InMemoryNullifierStore,
    NullifierStore,
    RedisNullifierStore,
    get_nullifier_store,
)
from cpoe.zk.prover import ProofGenerator, ThresholdStatement
from cpoe.zk.verifier import ProofVerifier, get_proof_verifier, verify_threshold_proof
from cpoe.zk.witness import PrivateWitness


__all__ = [
    # Circuit
    "ThresholdCircuit",
    "CircuitInfo",
    # Prover / verifier
    "ProofGenerator",
    "ThresholdStatement",
    "PrivateWitness",
    "ProofVerifier",
    "get_proof_verifier",
    "verify_threshold_proof",
    # Keys
    "generate_dev_keys",
    "load_proving_key",
    "load_verification_key",
    "save_keys",
    # Models
    "ProofPoints",
    "PublicSignals",
    "ThresholdProof",
    "VerificationResult",
    "RejectionReason",
    "ProofStats",
    "parse_threshold_proof",
    # Nullifiers
    "NullifierStore",
    "InMemoryNullifierStore",
    "RedisNullifierStore",
    "get_nullifier_store",
]
