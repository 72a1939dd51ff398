"""
UTXO accessor for Bitcoin-family chains, backed by public Esplora-style explorers.

Balance lookups walk an ordered list of explorer endpoints. The first endpoint
that yields a non-empty, confirmed, independently re-verified UTXO set wins;
that set becomes the accessor's cache. Failures on one endpoint never leave a
partial cache behind.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import TYPE_CHECKING, Any

import httpx
from loguru import logger

from chainwallet.constants import BitcoinNetworkParams
from chainwallet.exceptions import (
    AllEndpointsFailedError,
    NoSpendableUtxosError,
    NotInitializedError,
)
from chainwallet.models import UTXO, ChainId, ChainKind
from chainwallet.units import sats_to_btc

if TYPE_CHECKING:
    from loguru import Logger


def parse_explorer_utxo(entry: Any) -> UTXO | None:
    """
    Parse one entry of GET /address/{address}/utxo.

    Returns None for entries that are not shaped like a UTXO.
    """
    if not isinstance(entry, dict):
        return None

    txid = entry.get("txid")
    vout = entry.get("vout")
    value = entry.get("value")
    status = entry.get("status") or {}

    if not isinstance(txid, str) or not txid:
        return None
    if not isinstance(vout, int) or isinstance(vout, bool):
        return None
    if not isinstance(value, int) or isinstance(value, bool):
        return None
    if not isinstance(status, dict):
        return None

    block_height = status.get("block_height")
    return UTXO(
        txid=txid,
        vout=vout,
        value=value,
        confirmed=status.get("confirmed") is True,
        block_height=block_height if isinstance(block_height, int) else None,
    )


def filter_confirmed(utxos: Iterable[UTXO]) -> list[UTXO]:
    """Keep confirmed UTXOs with a positive value, a valid index and a txid. Idempotent."""
    return [
        utxo
        for utxo in utxos
        if utxo.confirmed and utxo.value > 0 and 0 <= utxo.vout <= 0xFFFFFFFF and utxo.txid
    ]


class UtxoAccessor:
    """
    Balance and UTXO access for one Bitcoin-family network.

    Not safe for concurrent fetch_balance()/get_utxos() pairs: the cache is
    replaced wholesale on every fetch. Use one instance per in-flight send, or
    fetch_spendable_utxos() which does not touch the cache.
    """

    kind = ChainKind.UTXO

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
        self._client = client
        self.log = log or logger.bind(component="utxo", network=params.name)
        self._utxos: list[UTXO] = []
        self._initialized = False

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        return self._client

    @property
    def chain(self) -> ChainId:
        return self.params.chain

    @property
    def initialized(self) -> bool:
        return self._initialized

    async def initialize(self) -> None:
        """Query the UTXO endpoints with a known-good address until one answers."""
        if self._initialized:
            return

        for template in self.params.utxo_endpoints:
            url = template.format(address=self.params.check_address)
            try:
                response = await self.client.get(url, timeout=self.timeout)
            except httpx.HTTPError as e:
                self.log.warning(f"Failed to initialize with endpoint {template}: {e}")
                continue

            if response.status_code == 200:
                self._initialized = True
                self.log.info(f"Initialized with endpoint {template}")
                return

            self.log.warning(
                f"Failed to initialize with endpoint {template}: HTTP {response.status_code}"
            )

        raise AllEndpointsFailedError(
            f"Failed to initialize {self.params.name} network: "
            "all endpoints failed initialization check"
        )

    async def fetch_balance(self, address: str) -> float:
        """
        Fetch and verify the address's spendable UTXOs, cache them and return the
        balance in BTC.

        Raises:
            NotInitializedError: initialize() has not succeeded
            NoSpendableUtxosError: no endpoint produced a verified, non-empty set
        """
        if not self._initialized:
            raise NotInitializedError(
                f"{self.params.name} network not initialized. Call initialize() first."
            )

        self._utxos = []
        utxos = await self.fetch_spendable_utxos(address)
        self._utxos = utxos
        self.log.debug(f"Cached {len(utxos)} UTXO(s) for {address}")
        return self.calculate_balance(utxos)

    async def fetch_spendable_utxos(self, address: str) -> list[UTXO]:
        """Resolve the verified UTXO set for an address without touching the cache."""
        for template in self.params.utxo_endpoints:
            url = template.format(address=address)
            entries = await self._get_json_list(url)
            if entries is None:
                continue

            parsed = [parse_explorer_utxo(entry) for entry in entries]
            confirmed = filter_confirmed(utxo for utxo in parsed if utxo is not None)
            if not confirmed:
                self.log.warning(f"No confirmed UTXOs found via {template}")
                continue

            spendable = await self.verify_spendable(confirmed)
            if spendable:
                return spendable

            self.log.warning(f"No spendable UTXOs found via {template}, trying next endpoint")

        raise NoSpendableUtxosError(address)

    async def verify_spendable(self, utxos: list[UTXO]) -> list[UTXO]:
        """
        Re-check each UTXO against an outspends endpoint and drop spent ones.

        UTXOs whose status cannot be determined are dropped as well.
        """
        outspends_by_txid: dict[str, list[Any] | None] = {}
        spendable: list[UTXO] = []

        for utxo in utxos:
            if utxo.txid not in outspends_by_txid:
                outspends_by_txid[utxo.txid] = await self._fetch_outspends(utxo.txid)
            outspends = outspends_by_txid[utxo.txid]

            if outspends is None:
                self.log.warning(f"Failed to verify UTXO {utxo.outpoint}, skipping")
                continue

            status = outspends[utxo.vout] if utxo.vout < len(outspends) else None
            if isinstance(status, dict) and status.get("spent") is False:
                spendable.append(utxo)
                self.log.debug(f"Verified UTXO {utxo.outpoint} is spendable")
            else:
                self.log.warning(f"UTXO {utxo.outpoint} has been spent")

        return spendable

    async def _fetch_outspends(self, txid: str) -> list[Any] | None:
        for template in self.params.outspends_endpoints:
            result = await self._get_json_list(template.format(txid=txid))
            if result is not None:
                return result
        return None

    async def _get_json_list(self, url: str) -> list[Any] | None:
        """GET a JSON array. Returns None (after logging) on any failure."""
        try:
            response = await self.client.get(url, timeout=self.timeout)
        except httpx.HTTPError as e:
            self.log.warning(f"Failed to fetch from {url}: {e}")
            return None

        if response.status_code != 200:
            self.log.warning(f"Failed to fetch from {url}: HTTP {response.status_code}")
            return None

        try:
            data = response.json()
        except ValueError as e:
            self.log.warning(f"Malformed response from {url}: {e}")
            return None

        if not isinstance(data, list):
            self.log.warning(f"Malformed response from {url}: expected a JSON array")
            return None

        return data

    def calculate_balance(self, data: Iterable[UTXO]) -> float:
        return sats_to_btc(sum(utxo.value for utxo in data))

    def get_utxos(self) -> list[UTXO]:
        return list(self._utxos)

    async def disconnect(self) -> None:
        self._utxos = []
        self._initialized = False
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None
        self.log.debug("Disconnected")
