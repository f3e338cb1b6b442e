"""
Event Proof Module
==================

Proof that a specific event (log) was included in a specific block of the
source domain.

Usage:
    from cpoe.events import EventProofCodec

    codec = EventProofCodec()
    proof = codec.generate(header, receipt.logs, target_index=2)
    outcome = await codec.verify(proof)
"""

from cpoe.events.attestation import (
    AttestationVerifier,
    Attester,
    KeccakAttester,
    validator_set_commitment,
)
from cpoe.events.codec import EventProofCodec, hash_event
from cpoe.events.models import (
    Attestation,
    BlockHeader,
    EventLog,
    EventProof,
    TransactionReceipt,
    VerificationOutcome,
)


__all__ = [
    # Codec
    "EventProofCodec",
    "hash_event",
    # Attestation
    "Attester",
    "KeccakAttester",
    "AttestationVerifier",
    "validator_set_commitment",
    # Models
    "Attestation",
    "BlockHeader",
    "EventLog",
    "EventProof",
    "TransactionReceipt",
    "VerificationOutcome",
]
