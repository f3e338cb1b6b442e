"""
ZK-SNARK Data Models
====================

Pydantic models for threshold proofs and their verification.

Version: 0.1.0
"""

from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_serializer,
    field_validator,
)

from cpoe.config import settings
from cpoe.crypto.field import FIELD_MODULUS
from cpoe.errors import MalformedInputError, UnsupportedVersionError


def _decimal(value: Any) -> str:
    if isinstance(value, bool):
        raise ValueError("expected a decimal integer string")
    if isinstance(value, int):
        return str(value)
    if isinstance(value, str) and value.isdigit():
        return str(int(value))
    raise ValueError("expected a decimal integer string")


class ProofPoints(BaseModel):
    """
    Groth16 proof points.

    Compatible with the snarkjs proof format: affine decimal coordinates,
    G2 coordinates as [c0, c1] pairs.
    """

    model_config = ConfigDict(frozen=True)

    pi_a: list[str] = Field(..., description="Proof point A (G1)")
    pi_b: list[list[str]] = Field(..., description="Proof point B (G2)")
    pi_c: list[str] = Field(..., description="Proof point C (G1)")

    @field_validator("pi_a", "pi_c", mode="before")
    @classmethod
    def validate_g1(cls, v: Any) -> list[str]:
        if not isinstance(v, list | tuple) or len(v) not in (2, 3):
            raise ValueError("G1 point must have 2 coordinates")
        return [_decimal(c) for c in v[:2]]

    @field_validator("pi_b", mode="before")
    @classmethod
    def validate_g2(cls, v: Any) -> list[list[str]]:
        if not isinstance(v, list | tuple) or len(v) not in (2, 3):
            raise ValueError("G2 point must have 2 coordinate pairs")
        pairs = []
        for pair in v[:2]:
            if not isinstance(pair, list | tuple) or len(pair) != 2:
                raise ValueError("G2 coordinate must be a [c0, c1] pair")
            pairs.append([_decimal(c) for c in pair])
        return pairs


class PublicSignals(BaseModel):
    """Public inputs of the threshold circuit, in signal order."""

    model_config = ConfigDict(frozen=True)

    min_amount: int = Field(..., description="Public threshold")
    merkle_root: int = Field(..., description="Root of the value-commitment tree")
    nullifier_hash: int = Field(..., description="Sponge(secretSeed, actualAmount)")

    @field_serializer("min_amount", "merkle_root", "nullifier_hash")
    def serialize_decimal(self, v: int) -> str:
        return str(v)

    def to_list(self) -> list[int]:
        """[minAmount, merkleRoot, nullifierHash]"""
        return [self.min_amount, self.merkle_root, self.nullifier_hash]

    def to_strings(self) -> list[str]:
        return [str(s) for s in self.to_list()]

    @property
    def nullifier_hex(self) -> str:
        return nullifier_to_hex(self.nullifier_hash)


def nullifier_to_hex(nullifier: int) -> str:
    return "0x" + nullifier.to_bytes(32, "big").hex()


def parse_nullifier(value: str) -> str:
    """
    Normalize a nullifier given as a decimal string (the public signal
    form) or as 0x hex of any padding.

    Raises:
        MalformedInputError: not a canonical field element
    """
    text = value.strip()
    is_hex = text[:2].lower() == "0x"
    digits = text[2:] if is_hex else text
    if not (digits.isascii() and digits.isalnum()):
        raise MalformedInputError("nullifier must be a decimal or 0x hex integer")
    try:
        nullifier = int(digits, 16 if is_hex else 10)
    except ValueError as e:
        raise MalformedInputError("nullifier must be a decimal or 0x hex integer") from e
    if not 0 <= nullifier < FIELD_MODULUS:
        raise MalformedInputError("nullifier must be a decimal or 0x hex field element")
    return nullifier_to_hex(nullifier)


class ThresholdProof(BaseModel):
    """
    A nullifier-bound threshold proof.

    Immutable; meant to be verified and recorded at most once.
    """

    model_config = ConfigDict(frozen=True)

    protocol_version: str = Field(default_factory=lambda: settings.zk.protocol_version)
    protocol: str = Field(default="groth16")
    curve: str = Field(default="bn128")
    proof_points: ProofPoints
    public_signals: PublicSignals
    event_id: str | None = Field(default=None, description="Caller's event binding id")

    def to_calldata(self) -> dict[str, Any]:
        """
        Solidity verifier layout:
        uint[2] a, uint[2][2] b, uint[2] c, uint[3] input.

        The precompile expects G2 coordinates as (c1, c0), hence the swap.
        """
        p = self.proof_points
        return {
            "a": [int(p.pi_a[0]), int(p.pi_a[1])],
            "b": [
                [int(p.pi_b[0][1]), int(p.pi_b[0][0])],
                [int(p.pi_b[1][1]), int(p.pi_b[1][0])],
            ],
            "c": [int(p.pi_c[0]), int(p.pi_c[1])],
            "input": self.public_signals.to_list(),
        }

    def to_snarkjs(self) -> tuple[dict[str, Any], list[str]]:
        """(proof.json, public.json) as snarkjs writes them."""
        p = self.proof_points
        proof = {
            "pi_a": [*p.pi_a, "1"],
            "pi_b": [*p.pi_b, ["1", "0"]],
            "pi_c": [*p.pi_c, "1"],
            "protocol": self.protocol,
            "curve": self.curve,
        }
        return proof, self.public_signals.to_strings()


def parse_threshold_proof(data: dict[str, Any]) -> ThresholdProof:
    """
    Parse a wire proof. The version is checked before anything else is read.

    Raises:
        UnsupportedVersionError: unknown protocol_version
        MalformedInputError: structurally invalid proof
    """
    if not isinstance(data, dict):
        raise MalformedInputError("proof must be a JSON object")
    version = data.get("protocol_version")
    if version not in settings.zk.supported_versions_list:
        raise UnsupportedVersionError(
            f"Unsupported proof version: {version}",
            supported=settings.zk.supported_versions_list,
        )
    try:
        return ThresholdProof.model_validate(data)
    except ValidationError as e:
        raise MalformedInputError(
            "invalid threshold proof",
            errors=[err["msg"] for err in e.errors()],
        ) from e


class RejectionReason(str, Enum):
    """Why a threshold proof was rejected."""

    UNSUPPORTED_VERSION = "unsupported_version"
    MALFORMED_INPUT = "malformed_input"
    CRYPTOGRAPHIC_FAILURE = "cryptographic_failure"
    REPLAY_DETECTED = "replay_detected"


class VerificationResult(BaseModel):
    """Result of proof verification."""

    valid: bool
    reason: RejectionReason | None = None
    failed_check: str | None = None
    nullifier_hash: str | None = None
    recorded: bool = False
    verified_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    verification_time_ms: int = Field(..., ge=0)

    # Error info
    error: str | None = None


class ProofStats(BaseModel):
    """Verifier counters."""

    verifications: int = 0
    accepted: int = 0
    rejected: dict[str, int] = Field(default_factory=dict)
    nullifiers_recorded: int = 0
    circuit: dict[str, Any] = Field(default_factory=dict)
