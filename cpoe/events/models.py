"""
Event Proof Models
==================

Wire models for blocks, receipts, logs and the event proof bundle.

Version: 0.1.0
"""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from cpoe.merkle import MerkleProof


def _normalize_hex(value: str, length: int | None = None) -> str:
    if not isinstance(value, str) or not value[:2].lower() == "0x":
        raise ValueError("expected a 0x-prefixed hex string")
    body = value[2:].lower()
    if len(body) % 2 or any(c not in "0123456789abcdef" for c in body):
        raise ValueError("invalid hex string")
    if length is not None and len(body) != 2 * length:
        raise ValueError(f"expected {length} bytes")
    return "0x" + body


class EventLog(BaseModel):
    """One emitted event (log) of a transaction."""

    model_config = ConfigDict(frozen=True)

    address: str = Field(..., description="Emitting contract address")
    topics: list[str] = Field(default_factory=list, description="Indexed topics (bytes32)")
    data: str = Field(default="0x", description="Non-indexed event data")
    transaction_hash: str | None = None
    log_index: int = Field(default=0, ge=0)

    @field_validator("address")
    @classmethod
    def validate_address(cls, v: str) -> str:
        return _normalize_hex(v, 20)

    @field_validator("topics")
    @classmethod
    def validate_topics(cls, v: list[str]) -> list[str]:
        return [_normalize_hex(t, 32) for t in v]

    @field_validator("data")
    @classmethod
    def validate_data(cls, v: str) -> str:
        return _normalize_hex(v)

    @field_validator("transaction_hash")
    @classmethod
    def validate_tx_hash(cls, v: str | None) -> str | None:
        return None if v is None else _normalize_hex(v, 32)


class BlockHeader(BaseModel):
    """Source-domain block header as seen by the verifier."""

    model_config = ConfigDict(frozen=True)

    number: int = Field(..., ge=0)
    hash: str
    timestamp: int = Field(default=0, ge=0)
    event_root: str | None = Field(
        default=None,
        description="Event-tree root declared by the header, when the source commits one",
    )

    @field_validator("hash")
    @classmethod
    def validate_hash(cls, v: str) -> str:
        return _normalize_hex(v, 32)

    @field_validator("event_root")
    @classmethod
    def validate_event_root(cls, v: str | None) -> str | None:
        return None if v is None else _normalize_hex(v, 32)


class TransactionReceipt(BaseModel):
    """Ordered, authoritative log list of one transaction."""

    model_config = ConfigDict(frozen=True)

    transaction_hash: str
    block_hash: str
    block_number: int = Field(..., ge=0)
    logs: list[EventLog] = Field(default_factory=list)

    @field_validator("transaction_hash", "block_hash")
    @classmethod
    def validate_hashes(cls, v: str) -> str:
        return _normalize_hex(v, 32)


class Attestation(BaseModel):
    """Binding of a block hash to the validator set claimed to finalize it."""

    model_config = ConfigDict(frozen=True)

    signature: str
    validator_set_commitment: str

    @field_validator("signature", "validator_set_commitment")
    @classmethod
    def validate_words(cls, v: str) -> str:
        return _normalize_hex(v, 32)


class EventProof(BaseModel):
    """Self-contained proof that an event was included in a block."""

    model_config = ConfigDict(frozen=True)

    version: str
    proof_type: Literal["merkle"] = "merkle"
    event_id: str
    source_domain: str
    block_height: int = Field(..., ge=0)
    block_hash: str
    merkle_proof: MerkleProof
    event_data: EventLog
    attestation: Attestation
    timestamp: int = Field(..., description="Creation time, ms since epoch")

    @field_validator("block_hash")
    @classmethod
    def validate_block_hash(cls, v: str) -> str:
        return _normalize_hex(v, 32)


class VerificationOutcome(BaseModel):
    """Per-check result of event proof verification."""

    valid: bool = False
    version_supported: bool = False
    block_valid: bool = False
    merkle_valid: bool = False
    attestation_valid: bool = False
    event_valid: bool = False
    errors: list[str] = Field(default_factory=list)
