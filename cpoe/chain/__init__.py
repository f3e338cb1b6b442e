"""
Chain Module
============

Access to the source domain's blocks and transaction receipts.

Supports:
- Mock (development/testing)
- JSON-RPC (EVM-compatible node)

Usage:
    from cpoe.chain import get_block_source

    source = get_block_source()
    receipt = await source.fetch_receipt("0xabc...")
    header = await source.fetch_block(receipt.block_hash)
"""

from cpoe.chain.client import (
    BlockSource,
    get_block_source,
    reset_block_source,
    set_block_source,
)
from cpoe.chain.mock import MockBlockSource
from cpoe.chain.rpc import JsonRpcBlockSource


__all__ = [
    # Source
    "BlockSource",
    "get_block_source",
    "set_block_source",
    "reset_block_source",
    # Implementations
    "MockBlockSource",
    "JsonRpcBlockSource",
]
