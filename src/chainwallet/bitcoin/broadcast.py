"""
Raw transaction broadcast over redundant public endpoints.

Each endpoint is tried with a plain-text hex body and then a JSON body, since
providers disagree on the submission format. A client-error response means the
transaction itself is invalid and is raised at once. Anything else moves on to
the next attempt. Nothing is sent unless the hex parses as a segwit
transaction with a witness on every input.
"""

from __future__ import annotations

import json
from typing import TYPE_CHECKING

import httpx
from loguru import logger

from chainwallet.bitcoin.tx import TransactionSigningError, deserialize_transaction
from chainwallet.constants import BitcoinNetworkParams
from chainwallet.exceptions import (
    BroadcastExhaustedError,
    MalformedTransactionError,
    RejectedByNetworkError,
)

if TYPE_CHECKING:
    from loguru import Logger

CONTENT_TYPES = ("text/plain", "application/json")

# 4xx statuses that describe the endpoint rather than the transaction
TRANSIENT_CLIENT_STATUSES = frozenset({404, 408, 425, 429})


def is_rejection(status_code: int) -> bool:
    return 400 <= status_code < 500 and status_code not in TRANSIENT_CLIENT_STATUSES


def parse_txid(response: httpx.Response) -> str:
    """Normalize a broadcast response to a txid (plain text or {"txid": ...})."""
    text = response.text.strip()
    try:
        data = json.loads(text)
    except ValueError:
        return text
    if isinstance(data, dict):
        return str(data.get("txid") or json.dumps(data))
    if isinstance(data, str):
        return data
    return text


class Broadcaster:
    def __init__(
        self,
        params: BitcoinNetworkParams,
        client: httpx.AsyncClient | None = None,
        timeout: float = 30.0,
        log: Logger | None = None,
    ):
        self.params = params
        self.timeout = timeout
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(timeout=timeout)
        self.log = log or logger.bind(component="broadcast", network=params.name)

    async def broadcast(self, raw_hex: str) -> str:
        """
        Submit a signed transaction and return its txid.

        Raises:
            MalformedTransactionError: raw_hex is not a signed segwit transaction
            RejectedByNetworkError: an endpoint rejected the transaction (4xx)
            BroadcastExhaustedError: every endpoint/encoding failed otherwise
        """
        try:
            tx = deserialize_transaction(bytes.fromhex(raw_hex))
        except (ValueError, TransactionSigningError) as e:
            raise MalformedTransactionError(f"Cannot parse raw transaction: {e}") from e
        if not tx.is_signed:
            raise MalformedTransactionError("Transaction has unsigned inputs")

        local_txid = tx.txid()
        self.log.debug(f"Broadcasting {local_txid} ({tx.vsize()} vB)")
        last_response: str | None = None

        for url in self.params.broadcast_endpoints:
            for content_type in CONTENT_TYPES:
                self.log.debug(f"Attempting broadcast to {url} with {content_type}")
                try:
                    if content_type == "application/json":
                        response = await self.client.post(
                            url, json={"txHex": raw_hex}, timeout=self.timeout
                        )
                    else:
                        response = await self.client.post(
                            url,
                            content=raw_hex,
                            headers={"Content-Type": content_type},
                            timeout=self.timeout,
                        )
                except httpx.HTTPError as e:
                    last_response = f"{type(e).__name__}: {e}"
                    self.log.warning(f"Broadcast to {url} with {content_type} failed: {e}")
                    continue

                if response.status_code == 200:
                    txid = parse_txid(response)
                    if txid != local_txid:
                        self.log.warning(f"{url} returned txid {txid}, expected {local_txid}")
                    self.log.info(f"Transaction broadcast successful on {url}: {txid}")
                    return txid

                last_response = response.text
                if is_rejection(response.status_code):
                    self.log.error(
                        f"Transaction rejected by {url} (HTTP {response.status_code}): "
                        f"{response.text}"
                    )
                    raise RejectedByNetworkError(response.text, endpoint=url)

                self.log.warning(
                    f"Broadcast to {url} with {content_type} failed: "
                    f"HTTP {response.status_code} {response.text}"
                )

        raise BroadcastExhaustedError(last_response)

    async def close(self) -> None:
        if self._owns_client:
            await self.client.aclose()


async def broadcast_transaction(
    raw_hex: str,
    params: BitcoinNetworkParams,
    client: httpx.AsyncClient | None = None,
    timeout: float = 30.0,
) -> str:
    broadcaster = Broadcaster(params, client=client, timeout=timeout)
    try:
        return await broadcaster.broadcast(raw_hex)
    finally:
        await broadcaster.close()
