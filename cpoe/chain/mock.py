"""
Mock Block Source
=================

In-memory block source for development and testing.

Version: 0.1.0
"""

import time
from collections.abc import Mapping, Sequence
from typing import Any

from cpoe.chain.client import BlockSource
from cpoe.config import ChainMode
from cpoe.crypto.keccak import keccak256, to_hex
from cpoe.errors import NotFoundError, ResourceUnavailableError
from cpoe.events.models import BlockHeader, EventLog, TransactionReceipt
from cpoe.logging import get_logger


logger = get_logger(__name__)


class MockBlockSource(BlockSource):
    """
    In-memory block source.

    Simulates a chain without node infrastructure. Hashes are derived
    deterministically from a counter, so fixtures are reproducible.

    Data is stored in memory and lost on restart.
    """

    def __init__(self, start_block: int = 1000) -> None:
        self._block_number = start_block
        self._nonce = 0
        self.available = True

        # In-memory storage
        self._blocks: dict[str, BlockHeader] = {}
        self._receipts: dict[str, TransactionReceipt] = {}

        logger.debug("mock_block_source_initialized", start_block=start_block)

    @property
    def mode(self) -> ChainMode:
        return ChainMode.MOCK

    def _hash(self, kind: str) -> str:
        self._nonce += 1
        return to_hex(keccak256(kind.encode(), self._nonce.to_bytes(8, "big")))

    def _check_available(self) -> None:
        if not self.available:
            raise ResourceUnavailableError("mock block source is offline")

    # =========================================================================
    # Fixture helpers
    # =========================================================================

    def add_block(self, header: BlockHeader) -> BlockHeader:
        self._blocks[header.hash] = header
        return header

    def add_receipt(self, receipt: TransactionReceipt) -> TransactionReceipt:
        self._receipts[receipt.transaction_hash] = receipt
        return receipt

    def mine_transaction(
        self,
        logs: Sequence[Mapping[str, Any] | EventLog],
        timestamp: int | None = None,
    ) -> TransactionReceipt:
        """
        Create a block holding one transaction that emitted `logs`.

        Missing `transaction_hash`/`log_index` fields are filled in.
        """
        self._block_number += 1
        header = self.add_block(
            BlockHeader(
                number=self._block_number,
                hash=self._hash("block"),
                timestamp=timestamp if timestamp is not None else int(time.time()),
            )
        )
        tx_hash = self._hash("tx")

        events = []
        for position, log in enumerate(logs):
            fields = log.model_dump() if isinstance(log, EventLog) else dict(log)
            fields["transaction_hash"] = tx_hash
            fields.setdefault("log_index", position)
            events.append(EventLog(**fields))

        receipt = self.add_receipt(
            TransactionReceipt(
                transaction_hash=tx_hash,
                block_hash=header.hash,
                block_number=header.number,
                logs=events,
            )
        )
        logger.debug(
            "mock_transaction_mined",
            tx_hash=tx_hash,
            block_number=header.number,
            log_count=len(events),
        )
        return receipt

    # =========================================================================
    # BlockSource
    # =========================================================================

    async def fetch_receipt(self, tx_hash: str) -> TransactionReceipt:
        self._check_available()
        receipt = self._receipts.get(tx_hash.lower())
        if receipt is None:
            raise NotFoundError(f"Transaction {tx_hash} not found", tx_hash=tx_hash)
        return receipt

    async def fetch_block(self, block_hash: str) -> BlockHeader:
        self._check_available()
        header = self._blocks.get(block_hash.lower())
        if header is None:
            raise NotFoundError(f"Block {block_hash} not found", block_hash=block_hash)
        return header

    async def health_check(self) -> dict[str, Any]:
        return {
            "status": "healthy" if self.available else "unavailable",
            "mode": self.mode.value,
            "block_number": self._block_number,
            "blocks": len(self._blocks),
            "receipts": len(self._receipts),
        }
