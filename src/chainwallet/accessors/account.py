"""
Account-based chain accessors (EVM and XRP Ledger) over JSON-RPC.

These chains report a balance number directly, so there is no UTXO set.
Both accessors initialize lazily on the first balance lookup.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import httpx
from loguru import logger

from chainwallet.exceptions import (
    AllEndpointsFailedError,
    BalanceFetchError,
    DisconnectError,
)
from chainwallet.models import ChainId, ChainKind
from chainwallet.units import drops_to_xrp, wei_to_eth

if TYPE_CHECKING:
    from loguru import Logger


class JsonRpcError(Exception):
    def __init__(self, code: Any, message: str, data: Any = None):
        self.code = code
        self.data = data
        super().__init__(f"RPC error {code}: {message}")


class JsonRpcAccessor:
    """Shared connection handling for JSON-RPC accessors."""

    kind = ChainKind.ACCOUNT

    def __init__(
        self,
        chain: ChainId,
        rpc_url: str,
        client: httpx.AsyncClient | None = None,
        timeout: float = 30.0,
        log: Logger | None = None,
    ):
        self.chain = chain
        self.rpc_url = rpc_url
        self.timeout = timeout
        self._owns_client = client is None
        self._client = client
        self._initialized = False
        self._request_id = 0
        self.log = log or logger.bind(component="account", network=chain.value)

    def connection(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        return self._client

    async def _post(self, payload: dict[str, Any]) -> Any:
        response = await self.connection().post(self.rpc_url, json=payload, timeout=self.timeout)
        response.raise_for_status()
        return response.json()

    async def disconnect(self) -> None:
        self._initialized = False
        if self._owns_client and self._client is not None:
            try:
                await self._client.aclose()
            except httpx.HTTPError as e:
                raise DisconnectError(f"Failed to disconnect from {self.chain.value}: {e}") from e
            finally:
                self._client = None


class EvmAccessor(JsonRpcAccessor):
    """ETH (Holesky) and Base balances via eth_getBalance."""

    async def _rpc_call(self, method: str, params: list[Any] | None = None) -> Any:
        self._request_id += 1
        data = await self._post(
            {"jsonrpc": "2.0", "id": self._request_id, "method": method, "params": params or []}
        )
        if not isinstance(data, dict):
            raise JsonRpcError(
                "invalid_response", f"Expected a JSON object, got {type(data).__name__}"
            )
        if data.get("error"):
            error = data["error"]
            raise JsonRpcError(error.get("code", "unknown"), error.get("message", str(error)))
        return data.get("result")

    async def initialize(self) -> None:
        if self._initialized:
            return
        try:
            chain_id = await self._rpc_call("eth_chainId")
        except (httpx.HTTPError, ValueError, JsonRpcError) as e:
            raise AllEndpointsFailedError(
                f"Failed to initialize {self.chain.value} network at {self.rpc_url}: {e}"
            ) from e
        self._initialized = True
        self.log.info(f"Connected to {self.rpc_url} (chain id {chain_id})")

    async def fetch_balance(self, address: str) -> float:
        await self.initialize()
        try:
            wei = await self._rpc_call("eth_getBalance", [address, "latest"])
        except (httpx.HTTPError, ValueError, JsonRpcError) as e:
            self.log.error(f"Error fetching {self.chain.value} balance for {address}: {e}")
            raise BalanceFetchError(f"Failed to fetch balance for {address}: {e}") from e
        if wei is None:
            raise BalanceFetchError(f"No eth_getBalance result for {address}")
        try:
            return self.calculate_balance(wei)
        except (TypeError, ValueError) as e:
            raise BalanceFetchError(
                f"Malformed eth_getBalance result for {address}: {wei!r}"
            ) from e

    def calculate_balance(self, data: int | str) -> float:
        """Convert wei (int or 0x-prefixed hex) to ether."""
        wei = int(data, 16) if isinstance(data, str) else int(data)
        return wei_to_eth(wei)


XRP_ACTIVATION_NOTICE = (
    "Account {address} is not activated on the XRP Ledger. "
    "It needs at least 1 XRP: send XRP from an existing account, "
    "or use a faucet on test networks."
)


class XrpAccessor(JsonRpcAccessor):
    """XRP Ledger balances via account_info."""

    async def _rpc_call(self, method: str, params: dict[str, Any] | None = None) -> Any:
        data = await self._post({"method": method, "params": [params or {}]})
        result = data.get("result") if isinstance(data, dict) else None
        if not isinstance(result, dict):
            raise JsonRpcError("invalid_response", f"Malformed {method} response: {data!r}")
        if result.get("status") == "error" or "error" in result:
            raise JsonRpcError(
                result.get("error", "unknown"),
                result.get("error_message") or result.get("error", "unknown error"),
                data=result,
            )
        return result

    async def initialize(self) -> None:
        if self._initialized:
            return
        try:
            await self._rpc_call("server_info")
        except (httpx.HTTPError, ValueError, JsonRpcError) as e:
            raise AllEndpointsFailedError(
                f"Failed to connect to XRP network at {self.rpc_url}: {e}"
            ) from e
        self._initialized = True
        self.log.info(f"Connected to XRP network at {self.rpc_url}")

    async def fetch_balance(self, address: str) -> float:
        await self.initialize()
        try:
            result = await self._rpc_call(
                "account_info", {"account": address, "ledger_index": "validated"}
            )
        except JsonRpcError as e:
            if e.code == "actNotFound":
                self.log.warning(f"Account {address} does not exist or is not activated")
                raise BalanceFetchError(XRP_ACTIVATION_NOTICE.format(address=address)) from e
            raise BalanceFetchError(f"Failed to fetch XRP balance for {address}: {e}") from e
        except (httpx.HTTPError, ValueError) as e:
            raise BalanceFetchError(f"Failed to fetch XRP balance for {address}: {e}") from e

        try:
            drops = result["account_data"]["Balance"]
        except (KeyError, TypeError) as e:
            raise BalanceFetchError(f"Malformed account_info response for {address}") from e

        try:
            balance = self.calculate_balance(drops)
        except (ArithmeticError, TypeError, ValueError) as e:
            raise BalanceFetchError(f"Malformed XRP balance for {address}: {drops!r}") from e
        self.log.debug(f"Balance for {address}: {balance} XRP")
        return balance

    def calculate_balance(self, data: int | str) -> float:
        """Convert drops to XRP."""
        return drops_to_xrp(data)
