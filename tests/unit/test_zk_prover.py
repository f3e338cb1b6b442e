"""
Unit Tests for Threshold Proofs
===============================

Tests for proof models, key artifacts, the Groth16 prover and the
verifier (version gating, point validation, replay protection).

Version: 1.0.0
"""

import asyncio
import json
from pathlib import Path

import pytest

from cpoe.crypto.curve import decode_g1, decode_g2
from cpoe.crypto.field import FIELD_MODULUS
from cpoe.crypto.poseidon import nullifier_hash
from cpoe.errors import (
    InvalidMembershipError,
    MalformedInputError,
    NullifierMismatchError,
    ReplayDetectedError,
    ResourceUnavailableError,
    ThresholdViolationError,
    UnsupportedVersionError,
)
from cpoe.merkle import MerkleAccumulator
from cpoe.zk import groth16
from cpoe.zk.circuit import ThresholdCircuit
from cpoe.zk.groth16 import Proof, ProvingKey, VerificationKey
from cpoe.zk.keys import (
    load_proving_key,
    load_verification_key,
    save_keys,
    verification_key_from_json,
    verification_key_to_json,
)
from cpoe.zk.models import (
    ProofPoints,
    PublicSignals,
    RejectionReason,
    ThresholdProof,
    VerificationResult,
    nullifier_to_hex,
    parse_nullifier,
    parse_threshold_proof,
)
from cpoe.zk.nullifiers import InMemoryNullifierStore
from cpoe.zk.prover import ProofGenerator, ThresholdStatement
from cpoe.zk.verifier import ProofVerifier
from cpoe.zk.witness import PrivateWitness
from tests.conftest import (
    ACTUAL_AMOUNT,
    MIN_AMOUNT,
    SECRET_SEED,
    make_witness,
)


# ============================================================================
# Models
# ============================================================================


class TestZKModels:
    """Tests for ZK data models."""

    def test_proof_points_strip_projective_suffix(self) -> None:
        points = ProofPoints(
            pi_a=["123", "456", "1"],
            pi_b=[["789", "101"], ["112", "131"], ["1", "0"]],
            pi_c=["415", "161", "1"],
        )
        assert points.pi_a == ["123", "456"]
        assert points.pi_b == [["789", "101"], ["112", "131"]]

    @pytest.mark.parametrize("bad", [["12", "0x34"], ["12"], [True, "1"], "1,2"])
    def test_proof_points_reject_bad_g1(self, bad: object) -> None:
        with pytest.raises(ValueError):
            ProofPoints(pi_a=bad, pi_b=[["1", "2"], ["3", "4"]], pi_c=["1", "2"])

    def test_to_calldata_swaps_g2(self) -> None:
        proof = ThresholdProof(
            proof_points=ProofPoints(
                pi_a=["123", "456"],
                pi_b=[["789", "101"], ["112", "131"]],
                pi_c=["415", "161"],
            ),
            public_signals=PublicSignals(min_amount=8000, merkle_root=12345, nullifier_hash=99999),
        )
        calldata = proof.to_calldata()

        assert calldata["a"] == [123, 456]
        assert calldata["b"] == [[101, 789], [131, 112]]
        assert calldata["c"] == [415, 161]
        assert calldata["input"] == [8000, 12345, 99999]

    def test_to_snarkjs(self, sample_proof: ThresholdProof) -> None:
        proof_json, public = sample_proof.to_snarkjs()
        assert proof_json["protocol"] == "groth16"
        assert proof_json["curve"] == "bn128"
        assert proof_json["pi_a"][2] == "1"
        assert public[0] == str(MIN_AMOUNT)

    def test_public_signals_serialized_as_strings(self) -> None:
        signals = PublicSignals(min_amount=1, merkle_root=2, nullifier_hash=3)
        assert signals.model_dump() == {"min_amount": "1", "merkle_root": "2", "nullifier_hash": "3"}
        assert PublicSignals.model_validate({"min_amount": "1", "merkle_root": "2", "nullifier_hash": "3"}) == signals

    def test_nullifier_hex(self) -> None:
        assert nullifier_to_hex(255) == "0x" + "00" * 31 + "ff"

    @pytest.mark.parametrize("value", ["255", "0xff", "0XFF", "0x" + "00" * 31 + "ff", " 255 "])
    def test_parse_nullifier_forms(self, value: str) -> None:
        assert parse_nullifier(value) == nullifier_to_hex(255)

    @pytest.mark.parametrize("value", ["", "0x", "abc", "-1", "1_000", "0xzz", "١٢", str(FIELD_MODULUS)])
    def test_parse_nullifier_rejects(self, value: str) -> None:
        with pytest.raises(MalformedInputError):
            parse_nullifier(value)

    def test_parse_checks_version_first(self) -> None:
        with pytest.raises(UnsupportedVersionError):
            parse_threshold_proof({"protocol_version": "0.0.1", "garbage": True})
        with pytest.raises(UnsupportedVersionError):
            parse_threshold_proof({})

    def test_parse_malformed(self) -> None:
        with pytest.raises(MalformedInputError) as exc_info:
            parse_threshold_proof({"protocol_version": "1.0.0", "proof_points": {}})
        assert exc_info.value.details["errors"]

    def test_wire_roundtrip(self, sample_proof: ThresholdProof) -> None:
        data = json.loads(sample_proof.model_dump_json())
        assert parse_threshold_proof(data) == sample_proof

    def test_verification_result_defaults(self) -> None:
        result = VerificationResult(valid=False, verification_time_ms=5, error="nope")
        assert result.reason is None
        assert not result.recorded


# ============================================================================
# Keys
# ============================================================================


class TestKeys:
    """Tests for key artifacts."""

    def test_save_and_load(
        self,
        tmp_path: Path,
        dev_keys: tuple[ProvingKey, VerificationKey],
        test_circuit: ThresholdCircuit,
    ) -> None:
        pk, vk = dev_keys
        pk_path, vk_path = save_keys(pk, vk, tmp_path)

        loaded_vk = load_verification_key(vk_path, test_circuit)
        loaded_pk = load_proving_key(pk_path, test_circuit)

        assert loaded_vk.num_public == 3
        assert loaded_pk.num_wires == pk.num_wires
        assert loaded_pk.circuit_digest == test_circuit.digest

        vk_json = json.loads(vk_path.read_text())
        assert vk_json["nPublic"] == 3
        assert len(vk_json["IC"]) == 4

    def test_circuit_mismatch_rejected(
        self,
        tmp_path: Path,
        dev_keys: tuple[ProvingKey, VerificationKey],
    ) -> None:
        _, vk_path = save_keys(*dev_keys, tmp_path)
        with pytest.raises(MalformedInputError, match="different circuit"):
            load_verification_key(vk_path, ThresholdCircuit(depth=3, amount_bits=64))

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(ResourceUnavailableError):
            load_verification_key(tmp_path / "missing.json")

    def test_vk_without_fields(self) -> None:
        with pytest.raises(MalformedInputError):
            verification_key_from_json({"protocol": "groth16"})

    def test_vk_json_roundtrip_keeps_digest(
        self,
        dev_keys: tuple[ProvingKey, VerificationKey],
    ) -> None:
        _, vk = dev_keys
        _, digest = verification_key_from_json(verification_key_to_json(vk, "0xabc"))
        assert digest == "0xabc"

    def test_generator_rejects_foreign_key(
        self,
        dev_keys: tuple[ProvingKey, VerificationKey],
    ) -> None:
        with pytest.raises(MalformedInputError):
            ProofGenerator(proving_key=dev_keys[0], circuit=ThresholdCircuit(depth=3, amount_bits=64))


# ============================================================================
# Prover
# ============================================================================


class TestProofGenerator:
    """Tests for native checks and proof generation."""

    def statement(self, tree: MerkleAccumulator, min_amount: int = MIN_AMOUNT) -> ThresholdStatement:
        return ThresholdStatement(min_amount=min_amount, merkle_root=tree.root)

    def forbid_proving(self, monkeypatch: pytest.MonkeyPatch) -> None:
        def fail(*args: object) -> None:
            raise AssertionError("native checks must reject before proving")

        monkeypatch.setattr(groth16, "prove", fail)
        monkeypatch.setattr(ThresholdCircuit, "synthesize", fail)

    def test_sample_proof_public_signals(self, sample_proof: ThresholdProof, value_tree: MerkleAccumulator) -> None:
        signals = sample_proof.public_signals
        assert signals.min_amount == MIN_AMOUNT
        assert signals.merkle_root == value_tree.root
        assert signals.nullifier_hash == nullifier_hash(SECRET_SEED, ACTUAL_AMOUNT)
        assert sample_proof.event_id == "0x" + "ab" * 32

    def test_sample_proof_hides_amount(self, sample_proof: ThresholdProof) -> None:
        assert ACTUAL_AMOUNT not in sample_proof.public_signals.to_list()
        assert f'"{ACTUAL_AMOUNT}"' not in sample_proof.model_dump_json()

    def test_groth16_verifies_sample(
        self,
        sample_proof: ThresholdProof,
        dev_keys: tuple[ProvingKey, VerificationKey],
    ) -> None:
        points = sample_proof.proof_points
        proof = Proof(
            a=decode_g1(points.pi_a),
            b=decode_g2(points.pi_b),
            c=decode_g1(points.pi_c),
        )
        inputs = sample_proof.public_signals.to_list()
        assert groth16.verify(dev_keys[1], inputs, proof)
        assert not groth16.verify(dev_keys[1], [inputs[0] + 1, *inputs[1:]], proof)

    @pytest.mark.asyncio
    async def test_below_threshold(
        self,
        generator: ProofGenerator,
        value_tree: MerkleAccumulator,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        self.forbid_proving(monkeypatch)
        witness = make_witness(value_tree)
        with pytest.raises(ThresholdViolationError):
            await generator.generate_proof(witness, self.statement(value_tree, ACTUAL_AMOUNT + 1))
        assert witness.scrubbed

    @pytest.mark.asyncio
    async def test_amount_exceeds_bit_width(self, generator: ProofGenerator, value_tree: MerkleAccumulator) -> None:
        with pytest.raises(ThresholdViolationError):
            await generator.generate_proof(
                make_witness(value_tree, amount=1 << 64),
                self.statement(value_tree),
            )

    @pytest.mark.asyncio
    async def test_amount_not_in_tree(
        self,
        generator: ProofGenerator,
        value_tree: MerkleAccumulator,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        self.forbid_proving(monkeypatch)
        with pytest.raises(InvalidMembershipError):
            await generator.generate_proof(
                make_witness(value_tree, amount=ACTUAL_AMOUNT + 1),
                self.statement(value_tree),
            )

    @pytest.mark.asyncio
    async def test_wrong_position(self, generator: ProofGenerator, value_tree: MerkleAccumulator) -> None:
        with pytest.raises(InvalidMembershipError):
            await generator.generate_proof(
                make_witness(value_tree, index=1),
                self.statement(value_tree),
            )

    @pytest.mark.asyncio
    async def test_nullifier_mismatch(
        self,
        generator: ProofGenerator,
        value_tree: MerkleAccumulator,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        self.forbid_proving(monkeypatch)
        statement = ThresholdStatement(
            min_amount=MIN_AMOUNT,
            merkle_root=value_tree.root,
            expected_nullifier=nullifier_hash(SECRET_SEED + 1, ACTUAL_AMOUNT),
        )
        with pytest.raises(NullifierMismatchError):
            await generator.generate_proof(make_witness(value_tree), statement)

    @pytest.mark.asyncio
    async def test_malformed_shapes(self, generator: ProofGenerator, value_tree: MerkleAccumulator) -> None:
        elements, indices = value_tree.path(0)
        cases = [
            (elements[:1], indices, MIN_AMOUNT),
            (elements, [0, 2], MIN_AMOUNT),
            ([FIELD_MODULUS, elements[1]], indices, MIN_AMOUNT),
            (elements, indices, 0),
        ]
        for path_elements, path_indices, min_amount in cases:
            witness = PrivateWitness(ACTUAL_AMOUNT, SECRET_SEED, path_elements, path_indices)
            with pytest.raises(MalformedInputError):
                await generator.generate_proof(witness, self.statement(value_tree, min_amount))

    @pytest.mark.asyncio
    async def test_scrubbed_witness_rejected(self, generator: ProofGenerator, value_tree: MerkleAccumulator) -> None:
        witness = make_witness(value_tree)
        witness.scrub()
        with pytest.raises(MalformedInputError):
            await generator.generate_proof(witness, self.statement(value_tree))


# ============================================================================
# Verifier
# ============================================================================


class TestProofVerifier:
    """Tests for the threshold proof verifier."""

    @pytest.mark.asyncio
    async def test_accept_then_replay(self, verifier: ProofVerifier, sample_proof: ThresholdProof) -> None:
        first = await verifier.verify(sample_proof)
        assert first.valid
        assert first.recorded
        assert first.nullifier_hash == sample_proof.public_signals.nullifier_hex

        second = await verifier.verify(sample_proof)
        assert not second.valid
        assert second.reason == RejectionReason.REPLAY_DETECTED
        assert second.failed_check == "nullifier"

    @pytest.mark.asyncio
    async def test_accepts_wire_dict(self, verifier: ProofVerifier, sample_proof: ThresholdProof) -> None:
        data = json.loads(sample_proof.model_dump_json())
        result = await verifier.verify(data)
        assert result.valid

    @pytest.mark.asyncio
    async def test_record_false_leaves_store_untouched(
        self,
        verifier: ProofVerifier,
        sample_proof: ThresholdProof,
    ) -> None:
        result = await verifier.verify(sample_proof, record=False)
        assert result.valid
        assert not result.recorded
        assert not await verifier.is_spent(sample_proof.public_signals.nullifier_hex)

    @pytest.mark.asyncio
    async def test_unsupported_version_skips_crypto(
        self,
        verifier: ProofVerifier,
        sample_proof: ThresholdProof,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        def fail(*args: object) -> bool:
            raise AssertionError("pairing must not run")

        monkeypatch.setattr(groth16, "verify", fail)
        for update in ({"protocol_version": "9.0.0"}, {"protocol": "plonk"}, {"curve": "bls12381"}):
            result = await verifier.verify(sample_proof.model_copy(update=update))
            assert result.reason == RejectionReason.UNSUPPORTED_VERSION
            assert result.failed_check == "version"

        with pytest.raises(UnsupportedVersionError):
            await verifier.check(sample_proof.model_copy(update={"protocol_version": "9.0.0"}))

    @pytest.mark.asyncio
    async def test_off_curve_point(self, verifier: ProofVerifier, sample_proof: ThresholdProof) -> None:
        points = sample_proof.proof_points.model_copy(update={"pi_a": ["1", "3"]})
        result = await verifier.verify(sample_proof.model_copy(update={"proof_points": points}))

        assert result.reason == RejectionReason.CRYPTOGRAPHIC_FAILURE
        assert result.failed_check == "points"

    @pytest.mark.asyncio
    async def test_public_input_bounds(self, verifier: ProofVerifier, sample_proof: ThresholdProof) -> None:
        signals = sample_proof.public_signals
        for update in (
            {"min_amount": 0},
            {"min_amount": 1 << 64},
            {"merkle_root": FIELD_MODULUS},
            {"nullifier_hash": -1},
        ):
            bad = sample_proof.model_copy(update={"public_signals": signals.model_copy(update=update)})
            result = await verifier.verify(bad)
            assert result.reason == RejectionReason.MALFORMED_INPUT
            assert result.failed_check == "public_inputs"

    @pytest.mark.asyncio
    async def test_tampered_public_input(self, verifier: ProofVerifier, sample_proof: ThresholdProof) -> None:
        signals = sample_proof.public_signals.model_copy(update={"min_amount": 2 * MIN_AMOUNT})
        result = await verifier.verify(sample_proof.model_copy(update={"public_signals": signals}))

        assert result.reason == RejectionReason.CRYPTOGRAPHIC_FAILURE
        assert result.failed_check == "pairing"
        assert await verifier.store.count() == 0

    @pytest.mark.asyncio
    async def test_concurrent_verification(self, verifier: ProofVerifier, sample_proof: ThresholdProof) -> None:
        results = await asyncio.gather(verifier.verify(sample_proof), verifier.verify(sample_proof))

        assert sorted(r.valid for r in results) == [False, True]
        rejected = next(r for r in results if not r.valid)
        assert rejected.reason == RejectionReason.REPLAY_DETECTED
        assert await verifier.store.count() == 1

    @pytest.mark.asyncio
    async def test_check_raises_replay(self, verifier: ProofVerifier, sample_proof: ThresholdProof) -> None:
        assert await verifier.check(sample_proof) == sample_proof.public_signals.nullifier_hex
        with pytest.raises(ReplayDetectedError):
            await verifier.check(sample_proof)

    @pytest.mark.asyncio
    async def test_fresh_randomness_same_nullifier(
        self,
        verifier: ProofVerifier,
        generator: ProofGenerator,
        value_tree: MerkleAccumulator,
        sample_proof: ThresholdProof,
    ) -> None:
        with make_witness(value_tree) as witness:
            second = await generator.generate_proof(
                witness,
                ThresholdStatement(min_amount=MIN_AMOUNT, merkle_root=value_tree.root),
            )

        assert second.proof_points != sample_proof.proof_points
        assert second.public_signals == sample_proof.public_signals

        assert (await verifier.verify(sample_proof)).valid
        result = await verifier.verify(second)
        assert result.reason == RejectionReason.REPLAY_DETECTED

    @pytest.mark.asyncio
    async def test_stats(self, verifier: ProofVerifier, sample_proof: ThresholdProof) -> None:
        await verifier.verify(sample_proof)
        await verifier.verify(sample_proof)
        await verifier.verify(sample_proof.model_copy(update={"protocol_version": "0.1"}))

        stats = await verifier.stats()
        assert stats.verifications == 3
        assert stats.accepted == 1
        assert stats.rejected == {"replay_detected": 1, "unsupported_version": 1}
        assert stats.nullifiers_recorded == 1
        assert stats.circuit["depth"] == 2

    @pytest.mark.asyncio
    async def test_missing_key_is_unavailable(self, tmp_path: Path, sample_proof: ThresholdProof) -> None:
        verifier = ProofVerifier(
            store=InMemoryNullifierStore(),
            circuit=ThresholdCircuit(depth=2, amount_bits=64),
            key_path=tmp_path / "missing.json",
        )
        with pytest.raises(ResourceUnavailableError):
            await verifier.verify(sample_proof)
