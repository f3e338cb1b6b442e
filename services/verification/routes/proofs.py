"""
Threshold Proof Routes
======================

Verifier entry point for nullifier-bound threshold proofs.
"""

from typing import Any

from fastapi import APIRouter, Body, Depends
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from cpoe.logging import get_logger
from cpoe.zk.models import (
    ProofStats,
    RejectionReason,
    VerificationResult,
    parse_nullifier,
    parse_threshold_proof,
)
from cpoe.zk.verifier import ProofVerifier
from services.verification.dependencies import get_verifier


logger = get_logger(__name__)
router = APIRouter()


_REJECTION_STATUS = {
    RejectionReason.UNSUPPORTED_VERSION: 400,
    RejectionReason.MALFORMED_INPUT: 400,
    RejectionReason.CRYPTOGRAPHIC_FAILURE: 422,
    RejectionReason.REPLAY_DETECTED: 409,
}


# ============================================================================
# Request/Response Models
# ============================================================================


class NullifierStatusResponse(BaseModel):
    """Whether a nullifier has been spent."""

    nullifier_hash: str
    used: bool


class CalldataResponse(BaseModel):
    """Solidity verifier arguments."""

    a: list[int]
    b: list[list[int]]
    c: list[int]
    input: list[int]


# ============================================================================
# Verification Endpoints
# ============================================================================


@router.post(
    "/threshold/verify",
    response_model=VerificationResult,
    responses={400: {}, 409: {}, 422: {}},
)
async def verify_threshold_proof(
    proof: dict[str, Any] = Body(..., description="Threshold proof (wire format)"),
    record: bool = True,
    verifier: ProofVerifier = Depends(get_verifier),
) -> Any:
    """
    Verify a threshold proof and record its nullifier.

    Rejected proofs are returned with the rejection reason and a 4xx status:
    400 unsupported version or malformed input, 422 invalid proof,
    409 nullifier already spent.
    """
    result = await verifier.verify(proof, record=record)
    if result.valid:
        return result

    return JSONResponse(
        status_code=_REJECTION_STATUS[result.reason or RejectionReason.MALFORMED_INPUT],
        content=result.model_dump(mode="json"),
    )


@router.post("/threshold/calldata", response_model=CalldataResponse)
async def threshold_calldata(
    proof: dict[str, Any] = Body(..., description="Threshold proof (wire format)"),
) -> CalldataResponse:
    """Arguments for an on-chain Groth16 verifier, without verifying."""
    return CalldataResponse(**parse_threshold_proof(proof).to_calldata())


@router.get("/nullifiers/{nullifier_hash}", response_model=NullifierStatusResponse)
async def nullifier_status(
    nullifier_hash: str,
    verifier: ProofVerifier = Depends(get_verifier),
) -> NullifierStatusResponse:
    """
    Check whether a nullifier has already been used.

    Accepts the decimal public-signal form or 0x hex; 400 on anything else.
    """
    key = parse_nullifier(nullifier_hash)
    return NullifierStatusResponse(nullifier_hash=key, used=await verifier.is_spent(key))


@router.get("/stats", response_model=ProofStats)
async def proof_stats(verifier: ProofVerifier = Depends(get_verifier)) -> ProofStats:
    """Verifier counters and circuit information."""
    return await verifier.stats()
