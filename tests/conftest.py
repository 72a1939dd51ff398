"""
Shared fixtures for chainwallet tests.
"""

from __future__ import annotations

import pytest

from chainwallet.config import Settings
from chainwallet.keys import derive_bitcoin_keys
from chainwallet.models import ChainId, WalletKeys

# BIP84 test vector: m/84'/0'/0'/0/0 of the "abandon ... about" mnemonic
BIP84_ADDRESS = "bc1qcr8te4kr609gcawutmrza0j4xv80jy8z306fyu"
BIP84_WIF = "KyZpNDKnfs94vbrwhJneDi77V6jF64PWPF8x5cdJb8ifgg2DUc9d"
BIP84_PUBKEY = "0330d54fd0dd420a6e5f8d3624f5f3482cae350f79d5f0753bf5beef9c2d91af3c"

RECIPIENT = "bc1qw508d6qejxtdg4y5r3zarvary0c5xw7kv8f3t4"
# BIP350 test vector (bech32m, witness v1)
P2TR_RECIPIENT = "bc1p0xlxvlhemja6c4dqv22uapctqupfhlxm9h8z3k2e72q4k9hcz7vqzk5jj0"

TXID_A = "a" * 64
TXID_B = "b" * 64


@pytest.fixture
def test_mnemonic() -> str:
    """Test mnemonic (BIP39 test vector, not for production use!)"""
    return (
        "abandon abandon abandon abandon abandon abandon "
        "abandon abandon abandon abandon abandon about"
    )


@pytest.fixture
def mainnet_keys(test_mnemonic: str) -> WalletKeys:
    return derive_bitcoin_keys(test_mnemonic, ChainId.BTC)


@pytest.fixture
def testnet_keys(test_mnemonic: str) -> WalletKeys:
    return derive_bitcoin_keys(test_mnemonic, ChainId.BTC_TESTNET)


@pytest.fixture
def settings() -> Settings:
    return Settings(_env_file=None)


def explorer_utxo(
    txid: str, vout: int, value: int, confirmed: bool = True, height: int | None = 800000
) -> dict:
    status: dict = {"confirmed": confirmed}
    if confirmed and height is not None:
        status["block_height"] = height
    return {"txid": txid, "vout": vout, "value": value, "status": status}
