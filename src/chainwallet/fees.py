"""
Fee rate lookup per chain.

Live rates come from each chain's public API. Any failure falls back to a
static per-chain default table: a stale fee is acceptable, a blocked send is not.
Rates are fetched per transaction and never cached.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import httpx
from loguru import logger

from chainwallet.config import Settings
from chainwallet.constants import DEFAULT_FEES, get_bitcoin_params
from chainwallet.exceptions import UnsupportedNetworkError
from chainwallet.models import ChainId, ChainKind, FeeRates, parse_chain
from chainwallet.units import drops_to_xrp

if TYPE_CHECKING:
    from loguru import Logger


def default_fees(chain: ChainId) -> FeeRates:
    try:
        return DEFAULT_FEES[chain]
    except KeyError as e:
        raise UnsupportedNetworkError(f"No fee defaults for {chain}") from e


def fee_unit(chain: ChainId) -> str:
    if chain.kind == ChainKind.UTXO:
        return "sat/vB"
    if chain in (ChainId.ETH, ChainId.BASE):
        return "Gwei"
    return "XRP"


class FeeEstimator:
    def __init__(
        self,
        settings: Settings,
        client: httpx.AsyncClient | None = None,
        log: Logger | None = None,
    ):
        self.settings = settings
        self.timeout = settings.fee_timeout
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(timeout=self.timeout)
        self.log = log or logger.bind(component="fees")

    async def fetch_gas_fees(self, chain: ChainId | str) -> FeeRates:
        chain = parse_chain(chain)
        try:
            if chain.kind == ChainKind.UTXO:
                return await self._fetch_btc_fees(chain)
            if chain in (ChainId.ETH, ChainId.BASE):
                return await self._fetch_evm_fees(chain)
            return await self._fetch_xrp_fees(chain)
        except (httpx.HTTPError, ValueError, KeyError, TypeError) as e:
            self.log.warning(f"Error fetching {chain.value} fees, using defaults: {e}")
            return default_fees(chain)

    async def _fetch_btc_fees(self, chain: ChainId) -> FeeRates:
        params = get_bitcoin_params(chain)
        defaults = default_fees(chain)

        for url in params.fee_endpoints:
            try:
                response = await self.client.get(
                    url, headers={"Accept": "application/json"}, timeout=self.timeout
                )
                response.raise_for_status()
                data = response.json()
            except (httpx.HTTPError, ValueError) as e:
                self.log.warning(f"Failed to fetch fees from {url}: {e}")
                continue

            if not isinstance(data, dict):
                self.log.warning(f"Malformed fee response from {url}: {data!r}")
                continue

            self.log.debug(f"Fetched fees from {url}: {data}")
            return FeeRates(
                low=_positive_number(data.get("minimumFee")) or defaults.low,
                medium=_positive_number(data.get("halfHourFee")) or defaults.medium,
                high=_positive_number(data.get("fastestFee")) or defaults.high,
            )

        return defaults

    async def _fetch_evm_fees(self, chain: ChainId) -> FeeRates:
        rpc_url = self.settings.eth_rpc_url if chain == ChainId.ETH else self.settings.base_rpc_url
        response = await self.client.post(
            rpc_url,
            json={"jsonrpc": "2.0", "id": 1, "method": "eth_gasPrice", "params": []},
            timeout=self.timeout,
        )
        response.raise_for_status()
        gas_price_wei = int(response.json()["result"], 16)
        gwei = gas_price_wei / 1e9
        return FeeRates(
            low=round(gwei * 0.9, 2),
            medium=round(gwei, 2),
            high=round(gwei * 1.1, 2),
        )

    async def _fetch_xrp_fees(self, chain: ChainId) -> FeeRates:
        rpc_url = (
            self.settings.xrp_rpc_url if chain == ChainId.XRP else self.settings.xrp_testnet_rpc_url
        )
        response = await self.client.post(
            rpc_url, json={"method": "fee", "params": [{}]}, timeout=self.timeout
        )
        response.raise_for_status()
        drops = response.json()["result"]["drops"]
        base_fee = drops_to_xrp(drops["base_fee"])
        open_ledger_fee = drops_to_xrp(drops["open_ledger_fee"])
        return FeeRates(
            low=round(base_fee, 6),
            medium=round(open_ledger_fee, 6),
            high=round(open_ledger_fee * 1.2, 6),
        )

    async def close(self) -> None:
        if self._owns_client:
            await self.client.aclose()


def _positive_number(value: Any) -> float | None:
    if isinstance(value, bool) or not isinstance(value, int | float) or value <= 0:
        return None
    return value
