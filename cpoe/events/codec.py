"""
Event Proof Codec
=================

Builds and verifies event proofs: a single log of a block, hashed into a
canonical leaf, proven against the Merkle root of the complete ordered
event set, and bound to the block through an attestation.

Leaf encoding:
    keccak256(0x00 || abi.encode(address, bytes32[] topics, bytes data, uint256 logIndex))

Version: 0.1.0
"""

from collections.abc import Sequence
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from cpoe.config import settings
from cpoe.crypto.keccak import LEAF_PREFIX, abi_encode, from_hex, hex_equal, keccak256, to_hex
from cpoe.errors import IndexOutOfRangeError, MalformedInputError, NotFoundError
from cpoe.events.attestation import AttestationVerifier
from cpoe.events.models import BlockHeader, EventLog, EventProof, VerificationOutcome
from cpoe.logging import get_logger
from cpoe.merkle import KECCAK, MerkleAccumulator, verify_proof


if TYPE_CHECKING:
    from cpoe.chain.client import BlockSource


logger = get_logger(__name__)


def hash_event(log: EventLog) -> bytes:
    """Canonical leaf of one event."""
    encoded = abi_encode(
        ["address", "bytes32[]", "bytes", "uint256"],
        [log.address, log.topics, log.data, log.log_index],
    )
    return keccak256(LEAF_PREFIX, encoded)


class EventProofCodec:
    """
    Event proof generation and verification.

    Example:
        codec = EventProofCodec(block_source=source)
        proof = await codec.generate_from_transaction(tx_hash, log_index=0)
        outcome = await codec.verify(proof)
    """

    def __init__(
        self,
        block_source: "BlockSource | None" = None,
        attestation: AttestationVerifier | None = None,
        version: str | None = None,
        source_domain: str | None = None,
    ) -> None:
        self._block_source = block_source
        self.attestation = attestation or AttestationVerifier()
        self.version = version or settings.event_proof.version
        self.source_domain = source_domain or settings.event_proof.source_domain
        self.supported_versions = {self.version}

    @property
    def block_source(self) -> "BlockSource":
        if self._block_source is None:
            from cpoe.chain.client import get_block_source

            self._block_source = get_block_source()
        return self._block_source

    def generate(
        self,
        header: BlockHeader,
        events: Sequence[EventLog],
        target_index: int,
        event_id: str | None = None,
    ) -> EventProof:
        """
        Build the proof for `events[target_index]`.

        `events` must be the complete, order-preserved event set; a partial
        or reordered set yields a structurally valid proof of the wrong tree.

        Raises:
            MalformedInputError: empty event set, or a header event root
                that does not match the computed root
            IndexOutOfRangeError: target_index outside the event set
        """
        if not events:
            raise MalformedInputError("No events provided for proof generation")
        if not 0 <= target_index < len(events):
            raise IndexOutOfRangeError(
                f"Log index {target_index} out of bounds",
                index=target_index,
                log_count=len(events),
            )

        tree = MerkleAccumulator([hash_event(e) for e in events], hasher=KECCAK)
        merkle_proof = tree.prove(target_index)

        if not AttestationVerifier.check_header_root(header, merkle_proof):
            raise MalformedInputError(
                "Header event root does not match the event set",
                block_hash=header.hash,
            )

        target = events[target_index]
        proof = EventProof(
            version=self.version,
            event_id=event_id or target.transaction_hash or merkle_proof.leaf,
            source_domain=self.source_domain,
            block_height=header.number,
            block_hash=header.hash,
            merkle_proof=merkle_proof,
            event_data=target,
            attestation=self.attestation.attest(header, merkle_proof.root),
            timestamp=int(datetime.now(UTC).timestamp() * 1000),
        )

        logger.info(
            "event_proof_generated",
            event_id=proof.event_id,
            block_height=proof.block_height,
            log_index=target_index,
            log_count=len(events),
            merkle_root=merkle_proof.root,
        )
        return proof

    async def generate_from_transaction(self, tx_hash: str, log_index: int = 0) -> EventProof:
        """
        Fetch the receipt and block of `tx_hash` and prove one of its logs.

        Raises:
            NotFoundError: unknown transaction or block
            ResourceUnavailableError: block source unreachable
            IndexOutOfRangeError: log_index outside the receipt's logs
        """
        receipt = await self.block_source.fetch_receipt(tx_hash)
        header = await self.block_source.fetch_block(receipt.block_hash)
        return self.generate(header, receipt.logs, log_index, event_id=tx_hash)

    async def verify(self, proof: EventProof) -> VerificationOutcome:
        """
        Check an event proof.

        An unsupported version stops verification immediately. Otherwise every
        check runs and reports independently. Transport failures of the block
        source propagate as ResourceUnavailableError.
        """
        outcome = VerificationOutcome()

        if proof.version not in self.supported_versions:
            outcome.errors.append(f"Unsupported proof version: {proof.version}")
            logger.warning("event_proof_version_unsupported", version=proof.version)
            return outcome
        outcome.version_supported = True

        # Block retrievable and matching
        header: BlockHeader | None = None
        block_hash: str | None
        try:
            block_hash = to_hex(from_hex(proof.block_hash, 32))
        except MalformedInputError:
            block_hash = None
            outcome.errors.append("Block hash is not 32 bytes of hex")

        if block_hash is not None:
            try:
                header = await self.block_source.fetch_block(block_hash)
            except NotFoundError:
                outcome.errors.append(f"Block {block_hash} not found")

        if header is not None:
            if header.number != proof.block_height or header.hash != block_hash:
                outcome.errors.append("Block validation failed: height or hash mismatch")
            else:
                outcome.block_valid = True

        # Merkle inclusion
        outcome.merkle_valid = verify_proof(proof.merkle_proof, KECCAK)
        if not outcome.merkle_valid:
            outcome.errors.append("Merkle proof verification failed")

        # Attestation bound to the root, and the header's own root if declared
        attestation_valid = self.attestation.check_attestation(
            proof.block_hash,
            proof.block_height,
            proof.attestation,
            proof.merkle_proof.root,
        )
        if not attestation_valid:
            outcome.errors.append("Block attestation verification failed")
        if header is not None and not AttestationVerifier.check_header_root(
            header, proof.merkle_proof
        ):
            attestation_valid = False
            outcome.errors.append("Header event root does not match proof root")
        outcome.attestation_valid = attestation_valid

        # Event data integrity
        leaf = to_hex(hash_event(proof.event_data))
        outcome.event_valid = hex_equal(leaf, proof.merkle_proof.leaf)
        if not outcome.event_valid:
            outcome.errors.append("Event data integrity check failed")

        outcome.valid = (
            outcome.block_valid
            and outcome.merkle_valid
            and outcome.attestation_valid
            and outcome.event_valid
        )

        log = logger.info if outcome.valid else logger.warning
        log(
            "event_proof_verified",
            event_id=proof.event_id,
            valid=outcome.valid,
            block_valid=outcome.block_valid,
            merkle_valid=outcome.merkle_valid,
            attestation_valid=outcome.attestation_valid,
            event_valid=outcome.event_valid,
        )
        return outcome

    @staticmethod
    def summary(proof: EventProof) -> str:
        """Short human-readable digest of a proof."""
        return "\n".join(
            [
                "CPoE Event Proof",
                f"  Event ID:    {proof.event_id}",
                f"  Source:      {proof.source_domain}",
                f"  Block:       {proof.block_height} ({proof.block_hash[:18]}...)",
                f"  Merkle root: {proof.merkle_proof.root[:20]}...",
                f"  Path length: {len(proof.merkle_proof.siblings)}",
                f"  Signature:   {proof.attestation.signature[:20]}...",
            ]
        )
