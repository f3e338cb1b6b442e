"""
Test Configuration
==================

Pytest fixtures for CPoE tests.

Groth16 setup and proving are slow in pure Python, so the development key
(for a depth-2 circuit) and one valid proof are built once per session.
"""

import os
from collections.abc import AsyncGenerator
from typing import Any

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

# Set test environment
os.environ["ENVIRONMENT"] = "testing"
os.environ["CHAIN_MODE"] = "mock"
os.environ["NULLIFIER_BACKEND"] = "memory"
os.environ["ZK_MERKLE_DEPTH"] = "2"
os.environ["ZK_AMOUNT_BITS"] = "64"

from cpoe.chain import MockBlockSource  # noqa: E402
from cpoe.merkle import SPONGE, MerkleAccumulator  # noqa: E402
from cpoe.zk import (  # noqa: E402
    InMemoryNullifierStore,
    PrivateWitness,
    ProofGenerator,
    ProofVerifier,
    ThresholdCircuit,
    ThresholdProof,
    ThresholdStatement,
    generate_dev_keys,
)
from cpoe.zk.groth16 import ProvingKey, VerificationKey  # noqa: E402


TEST_DEPTH = 2
ACTUAL_AMOUNT = 5 * 10**18
MIN_AMOUNT = 10**18
SECRET_SEED = 0x1234_5678_9ABC_DEF0_1234_5678_9ABC_DEF0
COMMITTED_AMOUNTS = [ACTUAL_AMOUNT, 7 * 10**18, 2 * 10**18]


@pytest.fixture(scope="session")
def anyio_backend() -> str:
    """Use asyncio backend for async tests."""
    return "asyncio"


# ============================================================================
# Threshold proof fixtures
# ============================================================================


@pytest.fixture(scope="session")
def test_circuit() -> ThresholdCircuit:
    return ThresholdCircuit(depth=TEST_DEPTH, amount_bits=64)


@pytest.fixture(scope="session")
def dev_keys(test_circuit: ThresholdCircuit) -> tuple[ProvingKey, VerificationKey]:
    """Insecure single-party keys for the test circuit."""
    return generate_dev_keys(test_circuit)


@pytest.fixture(scope="session")
def value_tree() -> MerkleAccumulator:
    """Value-commitment tree holding ACTUAL_AMOUNT at index 0."""
    return MerkleAccumulator(COMMITTED_AMOUNTS, hasher=SPONGE, depth=TEST_DEPTH)


@pytest.fixture(scope="session")
def generator(
    dev_keys: tuple[ProvingKey, VerificationKey],
    test_circuit: ThresholdCircuit,
) -> ProofGenerator:
    return ProofGenerator(proving_key=dev_keys[0], circuit=test_circuit)


def make_witness(
    tree: MerkleAccumulator,
    index: int = 0,
    amount: int = ACTUAL_AMOUNT,
    seed: int = SECRET_SEED,
) -> PrivateWitness:
    elements, indices = tree.path(index)
    return PrivateWitness(amount, seed, elements, indices)


@pytest.fixture(scope="session")
def sample_proof(generator: ProofGenerator, value_tree: MerkleAccumulator) -> ThresholdProof:
    """Valid proof of 5e18 >= 1e18."""
    with make_witness(value_tree) as witness:
        return generator.prove_sync(
            witness,
            ThresholdStatement(
                min_amount=MIN_AMOUNT,
                merkle_root=value_tree.root,
                event_binding_id="0x" + "ab" * 32,
            ),
        )


@pytest.fixture
def nullifier_store() -> InMemoryNullifierStore:
    return InMemoryNullifierStore()


@pytest.fixture
def verifier(
    dev_keys: tuple[ProvingKey, VerificationKey],
    test_circuit: ThresholdCircuit,
    nullifier_store: InMemoryNullifierStore,
) -> ProofVerifier:
    """Fresh verifier with an empty nullifier store."""
    return ProofVerifier(dev_keys[1], store=nullifier_store, circuit=test_circuit)


# ============================================================================
# Event proof fixtures
# ============================================================================


@pytest.fixture
def sample_logs() -> list[dict[str, Any]]:
    """Four logs of one transaction."""
    return [
        {
            "address": "0x" + f"{i + 1:02x}" * 20,
            "topics": ["0x" + f"{i + 16:02x}" * 32],
            "data": "0x" + f"{i:02x}" * (i + 1),
        }
        for i in range(4)
    ]


@pytest.fixture
def block_source() -> MockBlockSource:
    return MockBlockSource()


# ============================================================================
# Service client
# ============================================================================


@pytest_asyncio.fixture
async def verification_client(
    verifier: ProofVerifier,
    block_source: MockBlockSource,
) -> AsyncGenerator[AsyncClient, None]:
    """Create test client for the Verification Service."""
    from cpoe.events import EventProofCodec
    from services.verification.dependencies import get_codec, get_verifier
    from services.verification.main import app

    codec = EventProofCodec(block_source=block_source)
    app.dependency_overrides[get_verifier] = lambda: verifier
    app.dependency_overrides[get_codec] = lambda: codec

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as client:
        yield client

    app.dependency_overrides.clear()
