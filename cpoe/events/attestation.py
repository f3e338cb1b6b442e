"""
Block Attestation
=================

Binds a block hash to the validator set claimed to have finalized it.

`KeccakAttester` is a deterministic hash commitment, not a multi-signature
scheme; a BLS or light-client implementation can replace it behind the
`Attester` interface without touching the Merkle or ZK code.

Version: 0.1.0
"""

from abc import ABC, abstractmethod

from cpoe.config import settings
from cpoe.crypto.keccak import abi_encode, hex_equal, keccak256, to_hex
from cpoe.errors import MalformedInputError
from cpoe.events.models import Attestation, BlockHeader
from cpoe.logging import get_logger
from cpoe.merkle import MerkleProof


logger = get_logger(__name__)


def validator_set_commitment(block_number: int, tag: str | None = None) -> str:
    """keccak256(abi.encode(uint256 blockNumber, string tag))."""
    tag = tag or settings.event_proof.validator_set_tag
    return to_hex(keccak256(abi_encode(["uint256", "string"], [block_number, tag])))


class Attester(ABC):
    """Produces and checks block attestations."""

    @abstractmethod
    def attest(
        self,
        block_hash: str,
        validator_set_commitment: str,
        event_root: str | None = None,
    ) -> str:
        """Return the attestation signature as 0x hex."""
        ...

    def check(
        self,
        block_hash: str,
        validator_set_commitment: str,
        signature: str,
        event_root: str | None = None,
    ) -> bool:
        """Recompute and compare in constant time. Stateless."""
        expected = self.attest(block_hash, validator_set_commitment, event_root)
        return hex_equal(expected, signature)


class KeccakAttester(Attester):
    """
    signature = keccak256(abi.encode(bytes32 blockHash,
                                     bytes32 validatorSetCommitment,
                                     [bytes32 eventRoot,] string tag))
    """

    def __init__(self, tag: str | None = None) -> None:
        self.tag = tag or settings.event_proof.attestation_tag

    def attest(
        self,
        block_hash: str,
        validator_set_commitment: str,
        event_root: str | None = None,
    ) -> str:
        if event_root is None:
            encoded = abi_encode(
                ["bytes32", "bytes32", "string"],
                [block_hash, validator_set_commitment, self.tag],
            )
        else:
            encoded = abi_encode(
                ["bytes32", "bytes32", "bytes32", "string"],
                [block_hash, validator_set_commitment, event_root, self.tag],
            )
        return to_hex(keccak256(encoded))


class AttestationVerifier:
    """
    Issues and checks attestations for event proofs.

    The attestation is always bound to the event-tree root, so a valid
    signature cannot be moved onto a different event set of the same block.
    """

    def __init__(self, attester: Attester | None = None) -> None:
        self.attester = attester or KeccakAttester()

    def attest(self, header: BlockHeader, event_root: str) -> Attestation:
        commitment = validator_set_commitment(header.number)
        signature = self.attester.attest(header.hash, commitment, event_root)
        return Attestation(signature=signature, validator_set_commitment=commitment)

    def check_attestation(
        self,
        block_hash: str,
        block_number: int,
        attestation: Attestation,
        event_root: str,
    ) -> bool:
        """
        True when the commitment is the one derived for `block_number` and
        the signature covers (block_hash, commitment, event_root).

        Malformed hex in the attestation is reported as False.
        """
        expected_commitment = validator_set_commitment(block_number)
        if not hex_equal(expected_commitment, attestation.validator_set_commitment):
            logger.debug("validator_set_commitment_mismatch", block_number=block_number)
            return False
        try:
            return self.attester.check(
                block_hash,
                attestation.validator_set_commitment,
                attestation.signature,
                event_root,
            )
        except MalformedInputError:
            return False

    @staticmethod
    def check_header_root(header: BlockHeader, proof: MerkleProof) -> bool:
        """The header's declared event root, when present, is the proof's root."""
        if header.event_root is None:
            return True
        return hex_equal(header.event_root, proof.root)
