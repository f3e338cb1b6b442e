"""
Threshold Proof Verification
============================

Checks run in a fixed order and stop at the first failure:

1. protocol version, protocol and curve
2. proof point decoding (field range, on-curve, G2 subgroup)
3. public input bounds
4. replay pre-check against the nullifier store
5. Groth16 pairing equation
6. atomic nullifier recording

A proof is accepted only once: when two verifications of the same
nullifier race, the store decides and the loser sees ReplayDetected.

Version: 0.1.0
"""

import asyncio
import time
from collections import Counter
from pathlib import Path
from typing import Any

from cpoe.config import settings
from cpoe.crypto.curve import decode_g1, decode_g2
from cpoe.crypto.field import FIELD_MODULUS
from cpoe.errors import (
    CryptographicFailureError,
    MalformedInputError,
    ProofSystemError,
    ReplayDetectedError,
    ResourceUnavailableError,
    UnsupportedVersionError,
)
from cpoe.logging import get_logger
from cpoe.zk import groth16
from cpoe.zk.circuit import ThresholdCircuit
from cpoe.zk.groth16 import Proof, VerificationKey
from cpoe.zk.keys import load_verification_key
from cpoe.zk.models import (
    ProofStats,
    RejectionReason,
    ThresholdProof,
    VerificationResult,
    parse_threshold_proof,
)
from cpoe.zk.nullifiers import NullifierStore, get_nullifier_store


logger = get_logger(__name__)


_REASONS: dict[type[ProofSystemError], RejectionReason] = {
    UnsupportedVersionError: RejectionReason.UNSUPPORTED_VERSION,
    MalformedInputError: RejectionReason.MALFORMED_INPUT,
    CryptographicFailureError: RejectionReason.CRYPTOGRAPHIC_FAILURE,
    ReplayDetectedError: RejectionReason.REPLAY_DETECTED,
}


class _Rejected(Exception):
    def __init__(self, check: str, error: ProofSystemError) -> None:
        super().__init__(str(error))
        self.check = check
        self.error = error


def _reason_for(error: ProofSystemError) -> RejectionReason:
    for error_type, reason in _REASONS.items():
        if isinstance(error, error_type):
            return reason
    return RejectionReason.MALFORMED_INPUT


class ProofVerifier:
    """
    Verifies threshold proofs and records their nullifiers.

    Usage:
        verifier = ProofVerifier()
        result = await verifier.verify(proof)
        if not result.valid:
            print(result.reason)
    """

    def __init__(
        self,
        verification_key: VerificationKey | None = None,
        store: NullifierStore | None = None,
        circuit: ThresholdCircuit | None = None,
        key_path: str | Path | None = None,
    ) -> None:
        """
        Initialize the verifier.

        Args:
            verification_key: Key to verify against; loaded from `key_path`
                or settings when omitted
            store: Nullifier store (default: the configured global store)
            circuit: Circuit shape (default from settings)
            key_path: Path to verification_key.json
        """
        self.circuit = circuit or ThresholdCircuit()
        self._verification_key = verification_key
        self._key_path = key_path
        self._store = store
        self._counts: Counter[str] = Counter()
        self._rejections: Counter[str] = Counter()

    @property
    def verification_key(self) -> VerificationKey:
        if self._verification_key is None:
            self._verification_key = load_verification_key(self._key_path, self.circuit)
        return self._verification_key

    @property
    def store(self) -> NullifierStore:
        if self._store is None:
            self._store = get_nullifier_store()
        return self._store

    # =========================================================================
    # Checks
    # =========================================================================

    @staticmethod
    def _check_protocol(proof: ThresholdProof) -> None:
        if proof.protocol_version not in settings.zk.supported_versions_list:
            raise UnsupportedVersionError(
                f"Unsupported proof version: {proof.protocol_version}",
                supported=settings.zk.supported_versions_list,
            )
        if proof.protocol != "groth16":
            raise UnsupportedVersionError(f"Unsupported protocol: {proof.protocol}")
        if proof.curve != settings.zk.curve:
            raise UnsupportedVersionError(f"Unsupported curve: {proof.curve}")

    @staticmethod
    def _decode_points(proof: ThresholdProof) -> Proof:
        points = proof.proof_points
        return Proof(
            a=decode_g1(points.pi_a, "pi_a"),
            b=decode_g2(points.pi_b, "pi_b"),
            c=decode_g1(points.pi_c, "pi_c"),
        )

    def _check_public_inputs(self, proof: ThresholdProof) -> list[int]:
        signals = proof.public_signals
        if not 0 < signals.min_amount < (1 << self.circuit.amount_bits):
            raise MalformedInputError(
                f"minAmount must be in (0, 2^{self.circuit.amount_bits})"
            )
        if not 0 <= signals.merkle_root < FIELD_MODULUS:
            raise MalformedInputError("merkleRoot is not a canonical field element")
        if not 0 <= signals.nullifier_hash < FIELD_MODULUS:
            raise MalformedInputError("nullifierHash is not a canonical field element")
        return signals.to_list()

    async def check(self, proof: ThresholdProof | dict[str, Any], record: bool = True) -> str:
        """
        Verify `proof`, raising on the first failed check.

        Returns:
            The nullifier hash (0x hex)

        Raises:
            UnsupportedVersionError, MalformedInputError,
            CryptographicFailureError, ReplayDetectedError: proof rejected
            ResourceUnavailableError: nullifier store unreachable
        """
        try:
            return await self._run_checks(proof, record)
        except _Rejected as rejected:
            raise rejected.error from None

    async def _run_checks(self, proof: ThresholdProof | dict[str, Any], record: bool) -> str:
        def stage(name: str, fn: Any, *args: Any) -> Any:
            try:
                return fn(*args)
            except (ResourceUnavailableError, _Rejected):
                raise
            except ProofSystemError as e:
                raise _Rejected(name, e) from e

        if isinstance(proof, dict):
            proof = stage("version", parse_threshold_proof, proof)
        stage("version", self._check_protocol, proof)
        points = stage("points", self._decode_points, proof)
        inputs = stage("public_inputs", self._check_public_inputs, proof)

        nullifier = proof.public_signals.nullifier_hex
        if await self.store.contains(nullifier):
            raise _Rejected("nullifier", ReplayDetectedError("nullifier already spent"))

        vk = self.verification_key
        if not await asyncio.to_thread(groth16.verify, vk, inputs, points):
            raise _Rejected("pairing", CryptographicFailureError("pairing check failed"))

        if record and not await self.store.check_and_insert(nullifier):
            raise _Rejected("nullifier", ReplayDetectedError("nullifier already spent"))
        return nullifier

    # =========================================================================
    # Public API
    # =========================================================================

    async def verify(
        self,
        proof: ThresholdProof | dict[str, Any],
        record: bool = True,
    ) -> VerificationResult:
        """
        Verify a threshold proof and, when accepted and `record` is set,
        mark its nullifier as spent.

        Rejections are reported in the result, never raised.

        Raises:
            ResourceUnavailableError: nullifier store unreachable
        """
        start_time = time.perf_counter()
        self._counts["verifications"] += 1

        try:
            nullifier = await self._run_checks(proof, record)
        except _Rejected as rejected:
            reason = _reason_for(rejected.error)
            self._rejections[reason.value] += 1
            elapsed = int((time.perf_counter() - start_time) * 1000)
            logger.warning(
                "threshold_proof_rejected",
                reason=reason.value,
                failed_check=rejected.check,
                error=rejected.error.message,
                verification_time_ms=elapsed,
            )
            return VerificationResult(
                valid=False,
                reason=reason,
                failed_check=rejected.check,
                verification_time_ms=elapsed,
                error=rejected.error.message,
            )

        self._counts["accepted"] += 1
        elapsed = int((time.perf_counter() - start_time) * 1000)
        logger.info(
            "threshold_proof_verified",
            nullifier_hash=nullifier,
            recorded=record,
            verification_time_ms=elapsed,
        )
        return VerificationResult(
            valid=True,
            nullifier_hash=nullifier,
            recorded=record,
            verification_time_ms=elapsed,
        )

    async def is_spent(self, nullifier: str) -> bool:
        return await self.store.contains(nullifier)

    async def stats(self) -> ProofStats:
        return ProofStats(
            verifications=self._counts["verifications"],
            accepted=self._counts["accepted"],
            rejected=dict(self._rejections),
            nullifiers_recorded=await self.store.count(),
            circuit=self.circuit.info().model_dump(),
        )


# Global verifier instance
_verifier: ProofVerifier | None = None


def get_proof_verifier() -> ProofVerifier:
    """Get the process-wide verifier (keys and store from settings)."""
    global _verifier

    if _verifier is None:
        _verifier = ProofVerifier()

    return _verifier


def set_proof_verifier(verifier: ProofVerifier) -> None:
    global _verifier
    _verifier = verifier


def reset_proof_verifier() -> None:
    global _verifier
    _verifier = None


async def verify_threshold_proof(
    proof: ThresholdProof | dict[str, Any],
    record: bool = True,
) -> VerificationResult:
    """Verify with the global verifier."""
    return await get_proof_verifier().verify(proof, record=record)
