"""
Verification Service API Tests
==============================

End-to-end tests of the HTTP surface with an in-memory nullifier store and
a mock block source.

Version: 1.0.0
"""

import json
from typing import Any

import pytest
from httpx import AsyncClient

from cpoe.chain import MockBlockSource, reset_block_source, set_block_source
from cpoe.chain import client as chain_client
from cpoe.zk import ThresholdProof, nullifiers
from cpoe.zk import verifier as verifier_module
from cpoe.zk.nullifiers import InMemoryNullifierStore, reset_nullifier_store, set_nullifier_store
from cpoe.zk.verifier import ProofVerifier, set_proof_verifier
from services.verification import dependencies
from services.verification.dependencies import get_codec
from services.verification.main import app, lifespan


def wire(proof: ThresholdProof, **updates: Any) -> dict[str, Any]:
    data = json.loads(proof.model_dump_json())
    data.update(updates)
    return data


class TestHealth:
    """Tests for health endpoints."""

    @pytest.mark.asyncio
    async def test_health(self, verification_client: AsyncClient) -> None:
        response = await verification_client.get("/health")
        assert response.status_code == 200
        body = response.json()
        assert body["service"] == "verification"
        assert set(body["components"]) == {"nullifier_store", "block_source"}

    @pytest.mark.asyncio
    async def test_health_degraded_when_source_unavailable(
        self,
        verification_client: AsyncClient,
        block_source: MockBlockSource,
    ) -> None:
        set_nullifier_store(InMemoryNullifierStore())
        set_block_source(block_source)
        try:
            response = await verification_client.get("/health")
            assert response.json()["status"] == "healthy"

            block_source.available = False
            response = await verification_client.get("/health")
            assert response.status_code == 200
            body = response.json()
            assert body["status"] == "degraded"
            assert body["components"]["block_source"]["status"] == "unavailable"
        finally:
            reset_nullifier_store()
            reset_block_source()

    @pytest.mark.asyncio
    async def test_shutdown_releases_singletons(
        self,
        verifier: ProofVerifier,
        block_source: MockBlockSource,
    ) -> None:
        set_nullifier_store(InMemoryNullifierStore())
        set_block_source(block_source)
        set_proof_verifier(verifier)
        codec = get_codec()

        async with lifespan(app):
            assert get_codec() is codec

        assert dependencies._codec is None
        assert verifier_module._verifier is None
        assert nullifiers._store is None
        assert chain_client._source is None

    @pytest.mark.asyncio
    async def test_root(self, verification_client: AsyncClient) -> None:
        response = await verification_client.get("/")
        assert response.status_code == 200
        assert response.json()["service"] == "CPoE Verification Service"


class TestThresholdProofRoutes:
    """Tests for /api/v1/proofs."""

    @pytest.mark.asyncio
    async def test_verify_then_replay(
        self,
        verification_client: AsyncClient,
        sample_proof: ThresholdProof,
    ) -> None:
        response = await verification_client.post("/api/v1/proofs/threshold/verify", json=wire(sample_proof))
        assert response.status_code == 200
        body = response.json()
        assert body["valid"] is True
        assert body["nullifier_hash"] == sample_proof.public_signals.nullifier_hex

        status_response = await verification_client.get(
            f"/api/v1/proofs/nullifiers/{body['nullifier_hash']}"
        )
        assert status_response.json()["used"] is True

        replay = await verification_client.post("/api/v1/proofs/threshold/verify", json=wire(sample_proof))
        assert replay.status_code == 409
        assert replay.json()["reason"] == "replay_detected"

    @pytest.mark.asyncio
    async def test_nullifier_status_accepts_decimal_and_hex(
        self,
        verification_client: AsyncClient,
        sample_proof: ThresholdProof,
    ) -> None:
        await verification_client.post("/api/v1/proofs/threshold/verify", json=wire(sample_proof))

        nullifier = sample_proof.public_signals.nullifier_hash
        for form in (str(nullifier), hex(nullifier), hex(nullifier).upper()):
            response = await verification_client.get(f"/api/v1/proofs/nullifiers/{form}")
            assert response.status_code == 200
            body = response.json()
            assert body["nullifier_hash"] == sample_proof.public_signals.nullifier_hex
            assert body["used"] is True

    @pytest.mark.asyncio
    @pytest.mark.parametrize("value", ["garbage", "0xzz", "0x\u00e9", "-5"])
    async def test_nullifier_status_malformed(self, verification_client: AsyncClient, value: str) -> None:
        response = await verification_client.get(f"/api/v1/proofs/nullifiers/{value}")
        assert response.status_code == 400
        assert response.json()["error_code"] == "MALFORMED_INPUT"

    @pytest.mark.asyncio
    async def test_verify_without_recording(
        self,
        verification_client: AsyncClient,
        sample_proof: ThresholdProof,
    ) -> None:
        response = await verification_client.post(
            "/api/v1/proofs/threshold/verify",
            params={"record": "false"},
            json=wire(sample_proof),
        )
        assert response.status_code == 200
        assert response.json()["recorded"] is False

        status_response = await verification_client.get(
            f"/api/v1/proofs/nullifiers/{sample_proof.public_signals.nullifier_hex}"
        )
        assert status_response.json()["used"] is False

    @pytest.mark.asyncio
    async def test_verify_unsupported_version(
        self,
        verification_client: AsyncClient,
        sample_proof: ThresholdProof,
    ) -> None:
        response = await verification_client.post(
            "/api/v1/proofs/threshold/verify",
            json=wire(sample_proof, protocol_version="2.0.0"),
        )
        assert response.status_code == 400
        assert response.json()["reason"] == "unsupported_version"

    @pytest.mark.asyncio
    async def test_verify_malformed(self, verification_client: AsyncClient) -> None:
        response = await verification_client.post(
            "/api/v1/proofs/threshold/verify",
            json={"protocol_version": "1.0.0", "proof_points": "nope"},
        )
        assert response.status_code == 400
        assert response.json()["reason"] == "malformed_input"

    @pytest.mark.asyncio
    async def test_verify_tampered_signal(
        self,
        verification_client: AsyncClient,
        sample_proof: ThresholdProof,
    ) -> None:
        data = wire(sample_proof)
        data["public_signals"]["min_amount"] = str(sample_proof.public_signals.min_amount + 1)

        response = await verification_client.post("/api/v1/proofs/threshold/verify", json=data)
        assert response.status_code == 422
        assert response.json()["failed_check"] == "pairing"

    @pytest.mark.asyncio
    async def test_calldata(
        self,
        verification_client: AsyncClient,
        sample_proof: ThresholdProof,
    ) -> None:
        response = await verification_client.post("/api/v1/proofs/threshold/calldata", json=wire(sample_proof))
        assert response.status_code == 200
        body = response.json()
        assert body["input"] == sample_proof.public_signals.to_list()
        assert body["b"][0] == [int(c) for c in reversed(sample_proof.proof_points.pi_b[0])]

    @pytest.mark.asyncio
    async def test_calldata_unsupported_version(
        self,
        verification_client: AsyncClient,
        sample_proof: ThresholdProof,
    ) -> None:
        response = await verification_client.post(
            "/api/v1/proofs/threshold/calldata",
            json=wire(sample_proof, protocol_version="0.9.0"),
        )
        assert response.status_code == 400
        assert response.json()["error_code"] == "UNSUPPORTED_VERSION"

    @pytest.mark.asyncio
    async def test_stats(
        self,
        verification_client: AsyncClient,
        sample_proof: ThresholdProof,
    ) -> None:
        await verification_client.post("/api/v1/proofs/threshold/verify", json=wire(sample_proof))

        response = await verification_client.get("/api/v1/proofs/stats")
        assert response.status_code == 200
        body = response.json()
        assert body["accepted"] == 1
        assert body["nullifiers_recorded"] == 1
        assert body["circuit"]["num_public"] == 3


class TestEventProofRoutes:
    """Tests for /api/v1/events."""

    @pytest.mark.asyncio
    async def test_prove_and_verify(
        self,
        verification_client: AsyncClient,
        block_source: MockBlockSource,
        sample_logs: list[dict[str, Any]],
    ) -> None:
        receipt = block_source.mine_transaction(sample_logs)

        response = await verification_client.post(
            "/api/v1/events/prove",
            json={"tx_hash": receipt.transaction_hash, "log_index": 2},
        )
        assert response.status_code == 200
        body = response.json()
        assert body["proof"]["block_height"] == receipt.block_number
        assert body["summary"]

        verify = await verification_client.post("/api/v1/events/verify", json=body["proof"])
        assert verify.status_code == 200
        assert verify.json()["valid"] is True

    @pytest.mark.asyncio
    async def test_verify_tampered_event(
        self,
        verification_client: AsyncClient,
        block_source: MockBlockSource,
        sample_logs: list[dict[str, Any]],
    ) -> None:
        receipt = block_source.mine_transaction(sample_logs)
        response = await verification_client.post(
            "/api/v1/events/prove",
            json={"tx_hash": receipt.transaction_hash},
        )
        proof = response.json()["proof"]
        proof["event_data"]["data"] = "0xdeadbeef"

        verify = await verification_client.post("/api/v1/events/verify", json=proof)
        assert verify.status_code == 200
        body = verify.json()
        assert body["valid"] is False
        assert body["errors"]

    @pytest.mark.asyncio
    async def test_unknown_transaction(self, verification_client: AsyncClient) -> None:
        response = await verification_client.post(
            "/api/v1/events/prove",
            json={"tx_hash": "0x" + "00" * 32},
        )
        assert response.status_code == 404
        assert response.json()["error_code"] == "NOT_FOUND"

    @pytest.mark.asyncio
    async def test_log_index_out_of_range(
        self,
        verification_client: AsyncClient,
        block_source: MockBlockSource,
        sample_logs: list[dict[str, Any]],
    ) -> None:
        receipt = block_source.mine_transaction(sample_logs)
        response = await verification_client.post(
            "/api/v1/events/prove",
            json={"tx_hash": receipt.transaction_hash, "log_index": 9},
        )
        assert response.status_code == 400
        assert response.json()["error_code"] == "INDEX_OUT_OF_RANGE"

    @pytest.mark.asyncio
    async def test_block_source_unavailable(
        self,
        verification_client: AsyncClient,
        block_source: MockBlockSource,
    ) -> None:
        block_source.available = False
        response = await verification_client.post(
            "/api/v1/events/prove",
            json={"tx_hash": "0x" + "00" * 32},
        )
        assert response.status_code == 503
        assert response.json()["retryable"] is True

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "field, value",
        [
            (("attestation", "signature"), "0xé"),
            (("merkle_proof", "leaf"), "0xé"),
            (("block_hash",), "0xzz"),
        ],
    )
    async def test_verify_rejects_non_hex_fields(
        self,
        verification_client: AsyncClient,
        block_source: MockBlockSource,
        sample_logs: list[dict[str, Any]],
        field: tuple[str, ...],
        value: str,
    ) -> None:
        receipt = block_source.mine_transaction(sample_logs)
        response = await verification_client.post(
            "/api/v1/events/prove",
            json={"tx_hash": receipt.transaction_hash},
        )
        proof = response.json()["proof"]
        target = proof
        for key in field[:-1]:
            target = target[key]
        target[field[-1]] = value

        block_source.available = False
        verify = await verification_client.post("/api/v1/events/verify", json=proof)
        assert verify.status_code == 422
