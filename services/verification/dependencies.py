"""
Route Dependencies
==================

FastAPI dependency providers; tests swap them through
`app.dependency_overrides`.
"""

from cpoe.events import EventProofCodec
from cpoe.zk.verifier import ProofVerifier, get_proof_verifier


_codec: EventProofCodec | None = None


def get_verifier() -> ProofVerifier:
    return get_proof_verifier()


def get_codec() -> EventProofCodec:
    global _codec

    if _codec is None:
        _codec = EventProofCodec()

    return _codec


def reset_codec() -> None:
    global _codec
    _codec = None
