"""
Tests for the JSON-RPC account accessors (EVM and XRP Ledger).
"""

from __future__ import annotations

import json
from typing import Any

import httpx
import pytest

from chainwallet.accessors import get_accessor, is_account_accessor, is_utxo_accessor
from chainwallet.accessors.account import EvmAccessor, XrpAccessor
from chainwallet.config import Settings
from chainwallet.exceptions import (
    AllEndpointsFailedError,
    BalanceFetchError,
    UnsupportedNetworkError,
)
from chainwallet.models import ChainId

ETH_ADDRESS = "0x742d35Cc6634C0532925a3b844Bc454e4438f44e"
XRP_ADDRESS = "rHb9CJAWyB4rj91VRWn96DkukG4bwdtyTh"


def rpc_client(responses: dict[str, Any]) -> tuple[httpx.AsyncClient, list[dict]]:
    """Client answering JSON-RPC calls by method name; returns the recorded payloads too."""
    payloads: list[dict] = []

    def handler(request: httpx.Request) -> httpx.Response:
        payload = json.loads(request.content)
        payloads.append(payload)
        body = responses.get(payload["method"])
        if body is None:
            return httpx.Response(500, text="unknown method")
        return httpx.Response(200, json=body)

    return httpx.AsyncClient(transport=httpx.MockTransport(handler)), payloads


class TestEvmAccessor:
    @pytest.mark.asyncio
    async def test_fetch_balance(self) -> None:
        client, payloads = rpc_client(
            {
                "eth_chainId": {"jsonrpc": "2.0", "id": 1, "result": "0x4268"},
                "eth_getBalance": {"jsonrpc": "2.0", "id": 2, "result": hex(15 * 10**17)},
            }
        )
        accessor = EvmAccessor(ChainId.ETH, "https://rpc.example", client=client)

        balance = await accessor.fetch_balance(ETH_ADDRESS)

        assert balance == 1.5
        assert [p["method"] for p in payloads] == ["eth_chainId", "eth_getBalance"]
        assert payloads[1]["params"] == [ETH_ADDRESS, "latest"]
        assert payloads[1]["jsonrpc"] == "2.0"

    @pytest.mark.asyncio
    async def test_initialize_once(self) -> None:
        client, payloads = rpc_client({"eth_chainId": {"result": "0x1"}})
        accessor = EvmAccessor(ChainId.BASE, "https://rpc.example", client=client)

        await accessor.initialize()
        await accessor.initialize()

        assert len(payloads) == 1

    @pytest.mark.asyncio
    async def test_initialize_failure(self) -> None:
        client, _ = rpc_client({})
        accessor = EvmAccessor(ChainId.ETH, "https://rpc.example", client=client)
        with pytest.raises(AllEndpointsFailedError):
            await accessor.initialize()

    @pytest.mark.asyncio
    async def test_rpc_error(self) -> None:
        client, _ = rpc_client(
            {
                "eth_chainId": {"result": "0x1"},
                "eth_getBalance": {"error": {"code": -32602, "message": "invalid address"}},
            }
        )
        accessor = EvmAccessor(ChainId.ETH, "https://rpc.example", client=client)
        with pytest.raises(BalanceFetchError, match="invalid address"):
            await accessor.fetch_balance("0xnope")

    @pytest.mark.asyncio
    async def test_non_object_response(self) -> None:
        client, _ = rpc_client({"eth_chainId": {"result": "0x1"}, "eth_getBalance": [1, 2]})
        accessor = EvmAccessor(ChainId.ETH, "https://rpc.example", client=client)
        with pytest.raises(BalanceFetchError, match="JSON object"):
            await accessor.fetch_balance(ETH_ADDRESS)

    @pytest.mark.asyncio
    async def test_missing_result(self) -> None:
        client, _ = rpc_client(
            {"eth_chainId": {"result": "0x1"}, "eth_getBalance": {"jsonrpc": "2.0", "id": 2}}
        )
        accessor = EvmAccessor(ChainId.ETH, "https://rpc.example", client=client)
        with pytest.raises(BalanceFetchError, match="No eth_getBalance result"):
            await accessor.fetch_balance(ETH_ADDRESS)

    @pytest.mark.asyncio
    async def test_unparseable_result(self) -> None:
        client, _ = rpc_client(
            {"eth_chainId": {"result": "0x1"}, "eth_getBalance": {"result": "0xzz"}}
        )
        accessor = EvmAccessor(ChainId.ETH, "https://rpc.example", client=client)
        with pytest.raises(BalanceFetchError, match="Malformed"):
            await accessor.fetch_balance(ETH_ADDRESS)

    def test_calculate_balance(self) -> None:
        accessor = EvmAccessor(ChainId.ETH, "https://rpc.example")
        assert accessor.calculate_balance("0xde0b6b3a7640000") == 1.0
        assert accessor.calculate_balance(5 * 10**17) == 0.5


class TestXrpAccessor:
    @pytest.mark.asyncio
    async def test_fetch_balance(self) -> None:
        client, payloads = rpc_client(
            {
                "server_info": {"result": {"status": "success", "info": {}}},
                "account_info": {
                    "result": {
                        "status": "success",
                        "account_data": {"Account": XRP_ADDRESS, "Balance": "25000000"},
                    }
                },
            }
        )
        accessor = XrpAccessor(ChainId.XRP, "https://xrpl.example", client=client)

        balance = await accessor.fetch_balance(XRP_ADDRESS)

        assert balance == 25.0
        assert payloads[1]["params"] == [{"account": XRP_ADDRESS, "ledger_index": "validated"}]

    @pytest.mark.asyncio
    async def test_account_not_activated(self) -> None:
        client, _ = rpc_client(
            {
                "server_info": {"result": {"status": "success"}},
                "account_info": {
                    "result": {
                        "status": "error",
                        "error": "actNotFound",
                        "error_message": "Account not found.",
                    }
                },
            }
        )
        accessor = XrpAccessor(ChainId.XRP_TESTNET, "https://xrpl.example", client=client)

        with pytest.raises(BalanceFetchError, match="not activated"):
            await accessor.fetch_balance(XRP_ADDRESS)

    @pytest.mark.asyncio
    async def test_malformed_account_info(self) -> None:
        client, _ = rpc_client(
            {
                "server_info": {"result": {"status": "success"}},
                "account_info": {"result": {"status": "success"}},
            }
        )
        accessor = XrpAccessor(ChainId.XRP, "https://xrpl.example", client=client)
        with pytest.raises(BalanceFetchError, match="Malformed"):
            await accessor.fetch_balance(XRP_ADDRESS)

    @pytest.mark.asyncio
    async def test_non_object_response(self) -> None:
        client, _ = rpc_client(
            {"server_info": {"result": {"status": "success"}}, "account_info": ["unexpected"]}
        )
        accessor = XrpAccessor(ChainId.XRP, "https://xrpl.example", client=client)
        with pytest.raises(BalanceFetchError, match="Malformed account_info"):
            await accessor.fetch_balance(XRP_ADDRESS)

    @pytest.mark.asyncio
    async def test_invalid_drops(self) -> None:
        client, _ = rpc_client(
            {
                "server_info": {"result": {"status": "success"}},
                "account_info": {"result": {"account_data": {"Balance": "lots"}}},
            }
        )
        accessor = XrpAccessor(ChainId.XRP, "https://xrpl.example", client=client)
        with pytest.raises(BalanceFetchError, match="Malformed XRP balance"):
            await accessor.fetch_balance(XRP_ADDRESS)

    @pytest.mark.asyncio
    async def test_server_unreachable(self) -> None:
        client, _ = rpc_client({})
        accessor = XrpAccessor(ChainId.XRP, "https://xrpl.example", client=client)
        with pytest.raises(AllEndpointsFailedError):
            await accessor.fetch_balance(XRP_ADDRESS)

    def test_calculate_balance(self) -> None:
        accessor = XrpAccessor(ChainId.XRP, "https://xrpl.example")
        assert accessor.calculate_balance("1000000") == 1.0


class TestRegistry:
    def test_account_chains(self, settings: Settings) -> None:
        eth = get_accessor("eth", settings)
        xrp = get_accessor(ChainId.XRP_TESTNET, settings)

        assert isinstance(eth, EvmAccessor)
        assert isinstance(xrp, XrpAccessor)
        assert xrp.rpc_url == settings.xrp_testnet_rpc_url
        assert is_account_accessor(eth)
        assert not is_utxo_accessor(eth)

    def test_missing_rpc_url(self) -> None:
        settings = Settings(_env_file=None, base_rpc_url="")
        with pytest.raises(UnsupportedNetworkError, match="RPC URL is missing"):
            get_accessor(ChainId.BASE, settings)

    def test_unknown_chain(self, settings: Settings) -> None:
        with pytest.raises(UnsupportedNetworkError):
            get_accessor("sol", settings)

    @pytest.mark.asyncio
    async def test_disconnect_owned_client(self) -> None:
        accessor = EvmAccessor(ChainId.ETH, "https://rpc.example")
        first = accessor.connection()
        await accessor.disconnect()
        assert first.is_closed
        assert accessor.connection() is not first
        await accessor.disconnect()
