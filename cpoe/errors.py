"""
Error Taxonomy
==============

Every failure the proof engine reports derives from `ProofSystemError` and
carries a stable `code` so callers (HTTP layer, audit logs, contracts) can
tell "try again" apart from "this proof is invalid".

    ProofSystemError
    ├── MalformedInputError
    │   └── IndexOutOfRangeError
    ├── ConstraintViolationError
    │   ├── ThresholdViolationError
    │   ├── InvalidMembershipError
    │   └── NullifierMismatchError
    ├── CryptographicFailureError
    ├── ReplayDetectedError
    ├── ResourceUnavailableError
    │   └── NotFoundError
    └── UnsupportedVersionError

Version: 0.1.0
"""

from enum import Enum
from typing import Any


class ErrorCode(str, Enum):
    """Stable error codes."""

    MALFORMED_INPUT = "MALFORMED_INPUT"
    INDEX_OUT_OF_RANGE = "INDEX_OUT_OF_RANGE"
    CONSTRAINT_VIOLATION = "CONSTRAINT_VIOLATION"
    THRESHOLD_VIOLATION = "THRESHOLD_VIOLATION"
    INVALID_MEMBERSHIP = "INVALID_MEMBERSHIP"
    NULLIFIER_MISMATCH = "NULLIFIER_MISMATCH"
    CRYPTOGRAPHIC_FAILURE = "CRYPTOGRAPHIC_FAILURE"
    REPLAY_DETECTED = "REPLAY_DETECTED"
    RESOURCE_UNAVAILABLE = "RESOURCE_UNAVAILABLE"
    NOT_FOUND = "NOT_FOUND"
    UNSUPPORTED_VERSION = "UNSUPPORTED_VERSION"


class ProofSystemError(Exception):
    """Base class for proof engine failures."""

    code: ErrorCode = ErrorCode.MALFORMED_INPUT
    retryable: bool = False

    def __init__(self, message: str, **details: Any) -> None:
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict[str, Any]:
        return {
            "code": self.code.value,
            "message": self.message,
            "retryable": self.retryable,
            "details": self.details or None,
        }


class MalformedInputError(ProofSystemError):
    """Structurally invalid proof, witness or event set."""

    code = ErrorCode.MALFORMED_INPUT


class IndexOutOfRangeError(MalformedInputError):
    """Requested leaf or log index does not exist."""

    code = ErrorCode.INDEX_OUT_OF_RANGE


class ConstraintViolationError(ProofSystemError):
    """The witness does not satisfy the threshold circuit."""

    code = ErrorCode.CONSTRAINT_VIOLATION


class ThresholdViolationError(ConstraintViolationError):
    """actualAmount < minAmount, or a value outside the circuit bit width."""

    code = ErrorCode.THRESHOLD_VIOLATION


class InvalidMembershipError(ConstraintViolationError):
    """The amount is not included under the claimed value-tree root."""

    code = ErrorCode.INVALID_MEMBERSHIP


class NullifierMismatchError(ConstraintViolationError):
    """The supplied nullifier is not Hash(secretSeed, actualAmount)."""

    code = ErrorCode.NULLIFIER_MISMATCH


class CryptographicFailureError(ProofSystemError):
    """Invalid curve point or failed pairing equation."""

    code = ErrorCode.CRYPTOGRAPHIC_FAILURE


class ReplayDetectedError(ProofSystemError):
    """Nullifier already recorded as spent."""

    code = ErrorCode.REPLAY_DETECTED


class ResourceUnavailableError(ProofSystemError):
    """Block or receipt could not be retrieved; callers may retry."""

    code = ErrorCode.RESOURCE_UNAVAILABLE
    retryable = True


class NotFoundError(ResourceUnavailableError):
    """The block source does not know the requested block or transaction."""

    code = ErrorCode.NOT_FOUND


class UnsupportedVersionError(ProofSystemError):
    """Proof wire version, protocol or curve not supported by this verifier."""

    code = ErrorCode.UNSUPPORTED_VERSION
