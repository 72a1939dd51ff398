"""
Block explorer links for submitted transactions.
"""

from __future__ import annotations

from chainwallet.models import ChainId, parse_chain

EXPLORER_TX_URLS: dict[ChainId, str] = {
    ChainId.BTC: "https://mempool.space/tx/{tx_hash}",
    ChainId.BTC_TESTNET: "https://mempool.space/testnet4/tx/{tx_hash}",
    ChainId.ETH: "https://holesky.etherscan.io/tx/{tx_hash}",
    ChainId.BASE: "https://basescan.org/tx/{tx_hash}",
    ChainId.XRP: "https://livenet.xrpl.org/transactions/{tx_hash}",
    ChainId.XRP_TESTNET: "https://testnet.xrpl.org/transactions/{tx_hash}",
}


def get_explorer_url(chain: ChainId | str, tx_hash: str) -> str:
    template = EXPLORER_TX_URLS.get(parse_chain(chain))
    return template.format(tx_hash=tx_hash) if template else ""
