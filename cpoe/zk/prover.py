"""
Threshold Proof Generation
==========================

Generates nullifier-bound threshold proofs: actualAmount >= minAmount,
actualAmount is committed under merkleRoot, and
nullifierHash = Sponge(secretSeed, actualAmount).

Every constraint group is first checked natively so an unsatisfiable
witness fails with a specific error before any cryptographic work. The
Groth16 prover runs in a worker thread.

Version: 0.1.0
"""

import asyncio
import time
from dataclasses import dataclass
from pathlib import Path

from cpoe.crypto.curve import encode_g1, encode_g2
from cpoe.crypto.field import FIELD_MODULUS
from cpoe.crypto.poseidon import nullifier_hash as derive_nullifier
from cpoe.errors import (
    InvalidMembershipError,
    MalformedInputError,
    NullifierMismatchError,
    ThresholdViolationError,
)
from cpoe.logging import get_logger
from cpoe.merkle import SPONGE, compute_root
from cpoe.zk import groth16
from cpoe.zk.circuit import CircuitAssignment, ThresholdCircuit
from cpoe.zk.groth16 import ProvingKey
from cpoe.zk.keys import load_proving_key
from cpoe.zk.models import ProofPoints, PublicSignals, ThresholdProof, nullifier_to_hex
from cpoe.zk.witness import PrivateWitness


logger = get_logger(__name__)


@dataclass
class ThresholdStatement:
    """Public side of a proof request."""

    min_amount: int
    merkle_root: int
    event_binding_id: str | None = None
    expected_nullifier: int | None = None


class ProofGenerator:
    """
    Threshold proof generator.

    Usage:
        generator = ProofGenerator()

        with PrivateWitness(amount, seed, elements, indices) as witness:
            proof = await generator.generate_proof(
                witness,
                ThresholdStatement(min_amount=10**18, merkle_root=root),
            )
    """

    def __init__(
        self,
        proving_key: ProvingKey | None = None,
        circuit: ThresholdCircuit | None = None,
        key_path: str | Path | None = None,
    ) -> None:
        """
        Initialize the generator.

        Args:
            proving_key: Key to use; loaded from `key_path` or settings when omitted
            circuit: Circuit shape (default from settings)
            key_path: Path to proving_key.json
        """
        self.circuit = circuit or ThresholdCircuit()
        self._key_path = key_path
        self._proving_key = proving_key
        if proving_key is not None and proving_key.circuit_digest != self.circuit.digest:
            raise MalformedInputError(
                "Proving key was generated for a different circuit",
                expected=self.circuit.digest,
                found=proving_key.circuit_digest,
            )

    @property
    def proving_key(self) -> ProvingKey:
        if self._proving_key is None:
            self._proving_key = load_proving_key(self._key_path, self.circuit)
        return self._proving_key

    def check_witness(self, witness: PrivateWitness, statement: ThresholdStatement) -> int:
        """
        Evaluate all three constraint groups natively.

        Returns:
            The derived nullifier hash

        Raises:
            MalformedInputError: wrong shapes or non-canonical values
            ThresholdViolationError: actualAmount < minAmount or out of bit width
            InvalidMembershipError: path does not lead to merkleRoot
            NullifierMismatchError: derived nullifier differs from the expected one
        """
        depth = self.circuit.depth
        bound = 1 << self.circuit.amount_bits
        actual = witness.actual_amount
        seed = witness.secret_seed
        elements = witness.merkle_path_elements
        indices = witness.merkle_path_indices

        # shape
        if not all(isinstance(v, int) for v in (actual, seed, statement.min_amount)):
            raise MalformedInputError("amounts and seed must be integers")
        if len(elements) != depth or len(indices) != depth:
            raise MalformedInputError(
                f"merkle path must have {depth} levels",
                elements=len(elements),
                indices=len(indices),
            )
        if any(i not in (0, 1) for i in indices):
            raise MalformedInputError("merkle path indices must be 0 or 1")
        if any(not 0 <= e < FIELD_MODULUS for e in elements):
            raise MalformedInputError("merkle path elements must be field elements")
        if not 0 <= seed < FIELD_MODULUS:
            raise MalformedInputError("secret seed must be a field element")
        if not 0 <= statement.merkle_root < FIELD_MODULUS:
            raise MalformedInputError("merkle root must be a field element")
        if statement.min_amount <= 0:
            raise MalformedInputError("minAmount must be positive")

        # 1. threshold
        if not 0 <= actual < bound or statement.min_amount >= bound:
            raise ThresholdViolationError(
                f"amounts must fit in {self.circuit.amount_bits} bits",
                amount_bits=self.circuit.amount_bits,
            )
        if actual < statement.min_amount:
            raise ThresholdViolationError(
                "actualAmount is below minAmount",
                min_amount=statement.min_amount,
            )

        # 2. membership
        index = sum(bit << level for level, bit in enumerate(indices))
        if compute_root(actual, elements, index, SPONGE) != statement.merkle_root:
            raise InvalidMembershipError("amount is not included under merkleRoot")

        # 3. nullifier
        nullifier = derive_nullifier(seed, actual)
        if statement.expected_nullifier is not None and statement.expected_nullifier != nullifier:
            raise NullifierMismatchError("nullifier does not match Hash(secretSeed, actualAmount)")

        return nullifier

    def prove_sync(self, witness: PrivateWitness, statement: ThresholdStatement) -> ThresholdProof:
        """Blocking proof generation; scrubs the witness before returning."""
        assignment: CircuitAssignment | None = None
        cs = None
        try:
            nullifier = self.check_witness(witness, statement)
            start_time = time.perf_counter()

            assignment = CircuitAssignment(
                min_amount=statement.min_amount,
                merkle_root=statement.merkle_root,
                nullifier_hash=nullifier,
                actual_amount=witness.actual_amount,
                secret_seed=witness.secret_seed,
                path_elements=witness.merkle_path_elements,
                path_indices=witness.merkle_path_indices,
            )
            cs = self.circuit.synthesize(assignment)
            proof = groth16.prove(self.proving_key, cs)

            proving_time_ms = int((time.perf_counter() - start_time) * 1000)
        finally:
            witness.scrub()
            if assignment is not None:
                assignment.actual_amount = 0
                assignment.secret_seed = 0
                assignment.path_elements.clear()
                assignment.path_indices.clear()
            if cs is not None:
                cs.values.clear()

        result = ThresholdProof(
            proof_points=ProofPoints(
                pi_a=encode_g1(proof.a),
                pi_b=encode_g2(proof.b),
                pi_c=encode_g1(proof.c),
            ),
            public_signals=PublicSignals(
                min_amount=statement.min_amount,
                merkle_root=statement.merkle_root,
                nullifier_hash=nullifier,
            ),
            event_id=statement.event_binding_id,
        )

        logger.info(
            "threshold_proof_generated",
            min_amount=statement.min_amount,
            nullifier_hash=nullifier_to_hex(nullifier),
            event_id=statement.event_binding_id,
            proving_time_ms=proving_time_ms,
        )
        return result

    async def generate_proof(
        self,
        witness: PrivateWitness,
        statement: ThresholdStatement,
    ) -> ThresholdProof:
        """
        Generate a threshold proof.

        Args:
            witness: Private inputs; scrubbed when this returns or raises
            statement: Public inputs

        Returns:
            ThresholdProof carrying only public values

        Raises:
            ConstraintViolationError (or a subclass) for an unsatisfiable witness
        """
        return await asyncio.to_thread(self.prove_sync, witness, statement)
