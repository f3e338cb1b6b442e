"""
Event Proof Routes
==================

Generation and verification of event inclusion proofs.
"""

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from cpoe.events import EventProof, EventProofCodec, VerificationOutcome
from cpoe.logging import get_logger
from services.verification.dependencies import get_codec


logger = get_logger(__name__)
router = APIRouter()


# ============================================================================
# Request/Response Models
# ============================================================================


class EventProofRequest(BaseModel):
    """Request to prove one log of a transaction."""

    tx_hash: str = Field(..., description="Transaction hash (0x hex)")
    log_index: int = Field(default=0, ge=0, description="Index of the log in the receipt")

    model_config = {
        "json_schema_extra": {
            "examples": [{"tx_hash": "0x" + "ab" * 32, "log_index": 0}]
        }
    }


class EventProofResponse(BaseModel):
    """Generated event proof with a readable summary."""

    proof: EventProof
    summary: str


# ============================================================================
# Endpoints
# ============================================================================


@router.post("/prove", response_model=EventProofResponse)
async def prove_event(
    request: EventProofRequest,
    codec: EventProofCodec = Depends(get_codec),
) -> EventProofResponse:
    """
    Generate a Merkle inclusion proof for a transaction's log.

    Unknown transactions return 404, an unreachable block source 503.
    """
    logger.info("event_proof_requested", tx_hash=request.tx_hash, log_index=request.log_index)
    proof = await codec.generate_from_transaction(request.tx_hash, request.log_index)
    return EventProofResponse(proof=proof, summary=EventProofCodec.summary(proof))


@router.post("/verify", response_model=VerificationOutcome)
async def verify_event(
    proof: EventProof,
    codec: EventProofCodec = Depends(get_codec),
) -> VerificationOutcome:
    """Verify an event proof; every check is reported individually."""
    return await codec.verify(proof)
