"""
JSON-RPC Block Source
=====================

Reads receipts and headers from an EVM-compatible node
(`eth_getTransactionReceipt`, `eth_getBlockByHash`).

Connection errors and timeouts are retried with exponential backoff; when
retries are exhausted they surface as ResourceUnavailableError.

Version: 0.1.0
"""

from typing import Any

import httpx
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from cpoe.chain.client import BlockSource
from cpoe.config import ChainMode, settings
from cpoe.errors import MalformedInputError, NotFoundError, ResourceUnavailableError
from cpoe.events.models import BlockHeader, EventLog, TransactionReceipt
from cpoe.logging import get_logger


logger = get_logger(__name__)


def _quantity(value: str | int) -> int:
    return value if isinstance(value, int) else int(value, 16)


class JsonRpcBlockSource(BlockSource):
    """Block source backed by a node's JSON-RPC endpoint."""

    def __init__(
        self,
        rpc_url: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """
        Initialize the JSON-RPC source.

        Args:
            rpc_url: Node URL (default from settings)
            timeout: Request timeout in seconds
            transport: Optional httpx transport (tests)
        """
        self._rpc_url = rpc_url or settings.chain.rpc_url
        self._timeout = timeout or settings.chain.timeout_seconds
        self._request_id = 0

        self._client = httpx.AsyncClient(
            timeout=httpx.Timeout(self._timeout),
            transport=transport,
        )

        logger.debug("rpc_block_source_initialized", rpc_url=self._rpc_url)

    @property
    def mode(self) -> ChainMode:
        return ChainMode.RPC

    @retry(
        retry=retry_if_exception_type((httpx.ConnectError, httpx.TimeoutException)),
        stop=stop_after_attempt(settings.chain.max_retries),
        wait=wait_exponential(multiplier=0.5, min=0.5, max=8),
        reraise=True,
        before_sleep=lambda retry_state: logger.warning(
            "rpc_retry",
            attempt=retry_state.attempt_number,
        ),
    )
    async def _post(self, payload: dict[str, Any]) -> httpx.Response:
        response = await self._client.post(self._rpc_url, json=payload)
        response.raise_for_status()
        return response

    async def _call(self, method: str, params: list[Any]) -> Any:
        self._request_id += 1
        payload = {"jsonrpc": "2.0", "id": self._request_id, "method": method, "params": params}

        try:
            response = await self._post(payload)
            body = response.json()
        except httpx.HTTPError as e:
            logger.error("rpc_request_failed", method=method, error=str(e))
            raise ResourceUnavailableError(f"{method} failed: {e}", method=method) from e
        except ValueError as e:
            raise ResourceUnavailableError(f"{method} returned invalid JSON", method=method) from e

        if body.get("error"):
            error = body["error"]
            logger.error("rpc_error_response", method=method, error=error)
            raise ResourceUnavailableError(
                f"{method} error: {error.get('message', error)}",
                method=method,
            )
        return body.get("result")

    async def fetch_receipt(self, tx_hash: str) -> TransactionReceipt:
        result = await self._call("eth_getTransactionReceipt", [tx_hash])
        if result is None:
            raise NotFoundError(f"Transaction {tx_hash} not found", tx_hash=tx_hash)

        try:
            return TransactionReceipt(
                transaction_hash=result["transactionHash"],
                block_hash=result["blockHash"],
                block_number=_quantity(result["blockNumber"]),
                logs=[
                    EventLog(
                        address=log["address"],
                        topics=log.get("topics", []),
                        data=log.get("data", "0x"),
                        transaction_hash=log.get("transactionHash"),
                        log_index=_quantity(log.get("logIndex", 0)),
                    )
                    for log in result.get("logs", [])
                ],
            )
        except (KeyError, ValueError) as e:
            raise MalformedInputError(f"unexpected receipt shape for {tx_hash}") from e

    async def fetch_block(self, block_hash: str) -> BlockHeader:
        result = await self._call("eth_getBlockByHash", [block_hash, False])
        if result is None:
            raise NotFoundError(f"Block {block_hash} not found", block_hash=block_hash)

        try:
            return BlockHeader(
                number=_quantity(result["number"]),
                hash=result["hash"],
                timestamp=_quantity(result.get("timestamp", 0)),
            )
        except (KeyError, ValueError) as e:
            raise MalformedInputError(f"unexpected block shape for {block_hash}") from e

    async def health_check(self) -> dict[str, Any]:
        try:
            block_number = _quantity(await self._call("eth_blockNumber", []))
        except ResourceUnavailableError as e:
            return {"status": "unhealthy", "mode": self.mode.value, "error": e.message}
        return {"status": "healthy", "mode": self.mode.value, "block_number": block_number}

    async def close(self) -> None:
        await self._client.aclose()
