"""
Tests for the explorer-backed UTXO accessor.
"""

from __future__ import annotations

import httpx
import pytest

from chainwallet.accessors import get_accessor, is_account_accessor, is_utxo_accessor
from chainwallet.accessors.utxo import UtxoAccessor, filter_confirmed, parse_explorer_utxo
from chainwallet.config import Settings
from chainwallet.constants import BITCOIN_MAINNET
from chainwallet.exceptions import (
    AllEndpointsFailedError,
    NoSpendableUtxosError,
    NotInitializedError,
)
from chainwallet.models import UTXO, ChainKind
from tests.conftest import TXID_A, TXID_B, explorer_utxo

ADDRESS = "bc1qcr8te4kr609gcawutmrza0j4xv80jy8z306fyu"
MEMPOOL = "mempool.space"
BLOCKSTREAM = "blockstream.info"


class FakeExplorer:
    """Answers Esplora-style requests from canned per-host data and records every call."""

    def __init__(self) -> None:
        self.utxos: dict[str, list[dict] | str] = {}
        self.outspends: dict[str, list[dict]] = {}
        self.outspends_status = 200
        self.calls: list[str] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.calls.append(str(request.url))
        path = request.url.path
        if path.endswith("/utxo"):
            if path.endswith(f"/{BITCOIN_MAINNET.check_address}/utxo"):
                return httpx.Response(200, json=[])
            body = self.utxos.get(request.url.host)
            if body is None:
                return httpx.Response(503, text="unavailable")
            if isinstance(body, str):
                return httpx.Response(200, text=body)
            return httpx.Response(200, json=body)
        if path.endswith("/outspends"):
            txid = path.split("/")[-2]
            if self.outspends_status != 200:
                return httpx.Response(self.outspends_status)
            if txid not in self.outspends:
                return httpx.Response(404)
            return httpx.Response(200, json=self.outspends[txid])
        return httpx.Response(404)

    def utxo_calls(self) -> list[str]:
        return [c for c in self.calls if c.endswith(f"{ADDRESS}/utxo")]


@pytest.fixture
def explorer() -> FakeExplorer:
    explorer = FakeExplorer()
    explorer.outspends = {
        TXID_A: [{"spent": False}],
        TXID_B: [{"spent": True}, {"spent": False}],
    }
    return explorer


def make_accessor(explorer: FakeExplorer) -> UtxoAccessor:
    client = httpx.AsyncClient(transport=httpx.MockTransport(explorer))
    return UtxoAccessor(BITCOIN_MAINNET, client=client)


class TestParsing:
    def test_parse_entry(self) -> None:
        utxo = parse_explorer_utxo(explorer_utxo(TXID_A, 1, 5000))
        assert utxo == UTXO(
            txid=TXID_A, vout=1, value=5000, confirmed=True, block_height=800_000
        )

    def test_parse_unconfirmed(self) -> None:
        utxo = parse_explorer_utxo(explorer_utxo(TXID_A, 0, 5000, confirmed=False))
        assert utxo is not None
        assert not utxo.confirmed
        assert utxo.block_height is None

    @pytest.mark.parametrize(
        "entry",
        [
            None,
            "txid",
            {"vout": 0, "value": 1, "status": {"confirmed": True}},
            {"txid": TXID_A, "vout": "0", "value": 1, "status": {"confirmed": True}},
            {"txid": TXID_A, "vout": 0, "value": 1.5, "status": {"confirmed": True}},
            {"txid": TXID_A, "vout": True, "value": 1, "status": {"confirmed": True}},
        ],
    )
    def test_malformed_entries(self, entry: object) -> None:
        assert parse_explorer_utxo(entry) is None


class TestFilterConfirmed:
    def test_filter(self) -> None:
        utxos = [
            UTXO(txid=TXID_A, vout=0, value=1000, confirmed=True),
            UTXO(txid=TXID_A, vout=1, value=1000, confirmed=False),
            UTXO(txid=TXID_A, vout=2, value=0, confirmed=True),
            UTXO(txid=TXID_A, vout=-1, value=1000, confirmed=True),
            UTXO(txid="", vout=0, value=1000, confirmed=True),
            UTXO(txid=TXID_B, vout=0x1_0000_0000, value=1000, confirmed=True),
        ]
        assert filter_confirmed(utxos) == [utxos[0]]

    def test_idempotent(self) -> None:
        utxos = [
            UTXO(txid=TXID_A, vout=0, value=1000, confirmed=True),
            UTXO(txid=TXID_A, vout=1, value=1000, confirmed=False),
            UTXO(txid=TXID_B, vout=3, value=250, confirmed=True, block_height=10),
        ]
        once = filter_confirmed(utxos)
        assert filter_confirmed(once) == once


class TestInitialize:
    @pytest.mark.asyncio
    async def test_requires_initialize(self, explorer: FakeExplorer) -> None:
        accessor = make_accessor(explorer)
        with pytest.raises(NotInitializedError):
            await accessor.fetch_balance(ADDRESS)
        assert explorer.calls == []

    @pytest.mark.asyncio
    async def test_idempotent(self, explorer: FakeExplorer) -> None:
        accessor = make_accessor(explorer)
        await accessor.initialize()
        await accessor.initialize()
        assert accessor.initialized
        assert len(explorer.calls) == 1

    @pytest.mark.asyncio
    async def test_initialize_falls_back(self) -> None:
        calls: list[str] = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request.url.host)
            if request.url.host == MEMPOOL:
                raise httpx.ConnectError("connection refused", request=request)
            return httpx.Response(200, json=[])

        accessor = UtxoAccessor(
            BITCOIN_MAINNET, client=httpx.AsyncClient(transport=httpx.MockTransport(handler))
        )
        await accessor.initialize()
        assert calls == [MEMPOOL, BLOCKSTREAM]

    @pytest.mark.asyncio
    async def test_all_endpoints_fail(self) -> None:
        client = httpx.AsyncClient(
            transport=httpx.MockTransport(lambda request: httpx.Response(500))
        )
        accessor = UtxoAccessor(BITCOIN_MAINNET, client=client)
        with pytest.raises(AllEndpointsFailedError):
            await accessor.initialize()
        assert not accessor.initialized


class TestFetchBalance:
    @pytest.mark.asyncio
    async def test_verified_utxos_cached(self, explorer: FakeExplorer) -> None:
        explorer.utxos[MEMPOOL] = [
            explorer_utxo(TXID_A, 0, 50_000),
            explorer_utxo(TXID_B, 1, 30_000),
            explorer_utxo(TXID_B, 2, 99_000, confirmed=False),
        ]
        accessor = make_accessor(explorer)
        await accessor.initialize()

        balance = await accessor.fetch_balance(ADDRESS)

        assert balance == 0.0008
        assert [u.outpoint for u in accessor.get_utxos()] == [f"{TXID_A}:0", f"{TXID_B}:1"]

    @pytest.mark.asyncio
    async def test_spent_utxo_dropped(self, explorer: FakeExplorer) -> None:
        explorer.utxos[MEMPOOL] = [
            explorer_utxo(TXID_A, 0, 50_000),
            explorer_utxo(TXID_B, 0, 30_000),
        ]
        accessor = make_accessor(explorer)
        await accessor.initialize()

        balance = await accessor.fetch_balance(ADDRESS)

        assert balance == 0.0005
        assert [u.txid for u in accessor.get_utxos()] == [TXID_A]

    @pytest.mark.asyncio
    async def test_outspends_fetched_once_per_txid(self, explorer: FakeExplorer) -> None:
        explorer.outspends[TXID_B] = [{"spent": False}, {"spent": False}]
        explorer.utxos[MEMPOOL] = [
            explorer_utxo(TXID_B, 0, 30_000),
            explorer_utxo(TXID_B, 1, 20_000),
        ]
        accessor = make_accessor(explorer)
        await accessor.initialize()

        await accessor.fetch_balance(ADDRESS)

        assert len([c for c in explorer.calls if c.endswith("/outspends")]) == 1
        assert len(accessor.get_utxos()) == 2

    @pytest.mark.asyncio
    async def test_unverifiable_utxos_dropped(self, explorer: FakeExplorer) -> None:
        explorer.outspends_status = 502
        explorer.utxos[MEMPOOL] = [explorer_utxo(TXID_A, 0, 50_000)]
        explorer.utxos[BLOCKSTREAM] = [explorer_utxo(TXID_A, 0, 50_000)]
        accessor = make_accessor(explorer)
        await accessor.initialize()

        with pytest.raises(NoSpendableUtxosError):
            await accessor.fetch_balance(ADDRESS)
        assert accessor.get_utxos() == []

    @pytest.mark.asyncio
    async def test_endpoint_fallback_matches_direct_call(self, explorer: FakeExplorer) -> None:
        """Earlier endpoint failures leave no trace in the result or the cache."""
        good = [explorer_utxo(TXID_A, 0, 50_000), explorer_utxo(TXID_B, 1, 30_000)]

        direct = FakeExplorer()
        direct.outspends = explorer.outspends
        direct.utxos[MEMPOOL] = good
        direct_accessor = make_accessor(direct)
        await direct_accessor.initialize()
        await direct_accessor.fetch_balance(ADDRESS)

        # First endpoint answers with an unconfirmed-only set and must be skipped
        explorer.utxos[MEMPOOL] = [explorer_utxo("e" * 64, 0, 10_000, confirmed=False)]
        explorer.utxos[BLOCKSTREAM] = good
        accessor = make_accessor(explorer)
        await accessor.initialize()
        balance = await accessor.fetch_balance(ADDRESS)

        assert accessor.get_utxos() == direct_accessor.get_utxos()
        assert balance == 0.0008
        assert [MEMPOOL in c for c in explorer.utxo_calls()] == [True, False]

    @pytest.mark.asyncio
    async def test_malformed_response_skipped(self, explorer: FakeExplorer) -> None:
        explorer.utxos[MEMPOOL] = "<html>rate limited</html>"
        explorer.utxos[BLOCKSTREAM] = [explorer_utxo(TXID_A, 0, 50_000)]
        accessor = make_accessor(explorer)
        await accessor.initialize()

        assert await accessor.fetch_balance(ADDRESS) == 0.0005

    @pytest.mark.asyncio
    async def test_all_endpoints_fail(self, explorer: FakeExplorer) -> None:
        """Every endpoint returns 5xx: nothing is cached."""
        accessor = make_accessor(explorer)
        await accessor.initialize()

        with pytest.raises(NoSpendableUtxosError) as exc_info:
            await accessor.fetch_balance(ADDRESS)

        assert exc_info.value.address == ADDRESS
        assert accessor.get_utxos() == []
        assert len(explorer.utxo_calls()) == 2

    @pytest.mark.asyncio
    async def test_failed_fetch_clears_previous_cache(self, explorer: FakeExplorer) -> None:
        explorer.utxos[MEMPOOL] = [explorer_utxo(TXID_A, 0, 50_000)]
        accessor = make_accessor(explorer)
        await accessor.initialize()
        await accessor.fetch_balance(ADDRESS)
        assert len(accessor.get_utxos()) == 1

        del explorer.utxos[MEMPOOL]
        with pytest.raises(NoSpendableUtxosError):
            await accessor.fetch_balance(ADDRESS)
        assert accessor.get_utxos() == []

    @pytest.mark.asyncio
    async def test_fetch_spendable_utxos_leaves_cache_alone(
        self, explorer: FakeExplorer
    ) -> None:
        explorer.utxos[MEMPOOL] = [explorer_utxo(TXID_A, 0, 50_000)]
        accessor = make_accessor(explorer)

        utxos = await accessor.fetch_spendable_utxos(ADDRESS)

        assert len(utxos) == 1
        assert accessor.get_utxos() == []

    @pytest.mark.asyncio
    async def test_get_utxos_returns_copy(self, explorer: FakeExplorer) -> None:
        explorer.utxos[MEMPOOL] = [explorer_utxo(TXID_A, 0, 50_000)]
        accessor = make_accessor(explorer)
        await accessor.initialize()
        await accessor.fetch_balance(ADDRESS)

        accessor.get_utxos().clear()

        assert len(accessor.get_utxos()) == 1


class TestDisconnect:
    @pytest.mark.asyncio
    async def test_disconnect_resets_state(self, explorer: FakeExplorer) -> None:
        explorer.utxos[MEMPOOL] = [explorer_utxo(TXID_A, 0, 50_000)]
        accessor = make_accessor(explorer)
        await accessor.initialize()
        await accessor.fetch_balance(ADDRESS)

        await accessor.disconnect()

        assert accessor.get_utxos() == []
        assert not accessor.initialized
        with pytest.raises(NotInitializedError):
            await accessor.fetch_balance(ADDRESS)

    @pytest.mark.asyncio
    async def test_disconnect_without_connecting(self) -> None:
        accessor = UtxoAccessor(BITCOIN_MAINNET)
        await accessor.disconnect()
        assert accessor.get_utxos() == []


class TestRegistry:
    def test_utxo_chains(self, settings: Settings) -> None:
        accessor = get_accessor("btctestnet", settings)
        assert isinstance(accessor, UtxoAccessor)
        assert accessor.kind == ChainKind.UTXO
        assert is_utxo_accessor(accessor)
        assert not is_account_accessor(accessor)

    def test_calculate_balance(self) -> None:
        accessor = UtxoAccessor(BITCOIN_MAINNET)
        utxos = [
            UTXO(txid=TXID_A, vout=0, value=50_000, confirmed=True),
            UTXO(txid=TXID_B, vout=0, value=30_000, confirmed=True),
        ]
        assert accessor.calculate_balance(utxos) == 0.0008
        assert accessor.calculate_balance([]) == 0
