"""
Chain accessors.

Available accessors:
- UtxoAccessor: Bitcoin mainnet/testnet via public Esplora explorers
- EvmAccessor: ETH (Holesky) and Base via JSON-RPC
- XrpAccessor: XRP Ledger mainnet/testnet via JSON-RPC
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import httpx

from chainwallet.accessors.account import EvmAccessor, XrpAccessor
from chainwallet.accessors.base import (
    AccountChainAccessor,
    ChainAccessor,
    UtxoChainAccessor,
    is_account_accessor,
    is_utxo_accessor,
)
from chainwallet.accessors.utxo import UtxoAccessor, filter_confirmed, parse_explorer_utxo
from chainwallet.config import Settings
from chainwallet.constants import get_bitcoin_params
from chainwallet.exceptions import UnsupportedNetworkError
from chainwallet.models import ChainId, ChainKind, parse_chain

if TYPE_CHECKING:
    from loguru import Logger


def get_accessor(
    chain: ChainId | str,
    settings: Settings,
    client: httpx.AsyncClient | None = None,
    log: Logger | None = None,
) -> ChainAccessor:
    """Create a fresh accessor for the given chain; `log` replaces its default logger."""
    chain_id = parse_chain(chain)

    if chain_id.kind == ChainKind.UTXO:
        return UtxoAccessor(
            get_bitcoin_params(chain_id), client=client, timeout=settings.http_timeout, log=log
        )

    rpc_urls = {
        ChainId.ETH: settings.eth_rpc_url,
        ChainId.BASE: settings.base_rpc_url,
        ChainId.XRP: settings.xrp_rpc_url,
        ChainId.XRP_TESTNET: settings.xrp_testnet_rpc_url,
    }
    rpc_url = rpc_urls[chain_id]
    if not rpc_url:
        raise UnsupportedNetworkError(f"{chain_id.value.upper()} RPC URL is missing.")

    if chain_id in (ChainId.ETH, ChainId.BASE):
        return EvmAccessor(chain_id, rpc_url, client=client, timeout=settings.http_timeout, log=log)
    return XrpAccessor(chain_id, rpc_url, client=client, timeout=settings.http_timeout, log=log)


__all__ = [
    "AccountChainAccessor",
    "ChainAccessor",
    "EvmAccessor",
    "UtxoAccessor",
    "UtxoChainAccessor",
    "XrpAccessor",
    "filter_confirmed",
    "get_accessor",
    "is_account_accessor",
    "is_utxo_accessor",
    "parse_explorer_utxo",
]
