"""
Block Source Interface
======================

Abstract base class for reading blocks and transaction receipts from the
source domain.

Contract:
- unknown transaction or block -> NotFoundError
- transport failure -> ResourceUnavailableError (callers may retry)

Version: 0.1.0
"""

from abc import ABC, abstractmethod
from typing import Any

from cpoe.config import ChainMode, settings
from cpoe.events.models import BlockHeader, TransactionReceipt
from cpoe.logging import get_logger


logger = get_logger(__name__)


class BlockSource(ABC):
    """
    Abstract base class for block/receipt sources.

    Implements the Strategy pattern for different chain modes.
    """

    @property
    @abstractmethod
    def mode(self) -> ChainMode:
        """Get the chain mode."""
        ...

    @abstractmethod
    async def fetch_receipt(self, tx_hash: str) -> TransactionReceipt:
        """
        Fetch the receipt of a transaction.

        Args:
            tx_hash: Transaction hash (0x hex)

        Returns:
            Receipt with the ordered log list

        Raises:
            NotFoundError: transaction unknown
            ResourceUnavailableError: source unreachable
        """
        ...

    @abstractmethod
    async def fetch_block(self, block_hash: str) -> BlockHeader:
        """
        Fetch a block header by hash.

        Raises:
            NotFoundError: block unknown
            ResourceUnavailableError: source unreachable
        """
        ...

    @abstractmethod
    async def health_check(self) -> dict[str, Any]:
        """Check source health."""
        ...

    async def close(self) -> None:
        """Release connections, if any."""
        return None


# Global source instance
_source: BlockSource | None = None


def get_block_source() -> BlockSource:
    """
    Get the configured block source instance.

    Returns:
        BlockSource instance based on settings
    """
    global _source

    if _source is None:
        mode = settings.chain.mode

        if mode == ChainMode.MOCK:
            from cpoe.chain.mock import MockBlockSource

            _source = MockBlockSource()
        elif mode == ChainMode.RPC:
            from cpoe.chain.rpc import JsonRpcBlockSource

            _source = JsonRpcBlockSource()
        else:
            raise ValueError(f"Unknown chain mode: {mode}")

        logger.info(
            "block_source_initialized",
            mode=mode.value,
        )

    return _source


def set_block_source(source: BlockSource) -> None:
    """
    Set a custom block source.

    Args:
        source: BlockSource instance
    """
    global _source
    _source = source
    logger.info(
        "block_source_set",
        mode=source.mode.value,
    )


def reset_block_source() -> None:
    """Reset the source to be re-initialized."""
    global _source
    _source = None
