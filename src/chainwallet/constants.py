"""
Chain constants: unit conversions, Bitcoin network parameters and public endpoints.

Bitcoin dust threshold follows Bitcoin Core's standard P2PKH dust limit (546 sats).
Leftover change at or below it is not worth an output and is left to the miner.
"""

from __future__ import annotations

from dataclasses import dataclass

from chainwallet.exceptions import UnsupportedNetworkError
from chainwallet.models import ChainId, FeeRates, parse_chain

SATOSHIS_PER_BTC = 100_000_000
WEI_PER_ETH = 10**18
DROPS_PER_XRP = 1_000_000

# Fixed vsize estimate used for fee calculation (vbytes)
ESTIMATED_TX_VSIZE = 227

STANDARD_DUST_LIMIT = 546  # satoshis
MINIMUM_FEE = 1000  # satoshis

DEFAULT_SEQUENCE = 0xFFFFFFFF


@dataclass(frozen=True)
class BitcoinNetworkParams:
    name: str
    chain: ChainId
    bech32_hrp: str
    pubkey_hash: int
    script_hash: int
    wif: int
    minimum_fee: int
    dust_threshold: int
    default_sequence: int
    # Templates take {address}
    utxo_endpoints: tuple[str, ...]
    # Templates take {txid}
    outspends_endpoints: tuple[str, ...]
    fee_endpoints: tuple[str, ...]
    broadcast_endpoints: tuple[str, ...]
    # Known-good address queried to check endpoints during initialize()
    check_address: str


BITCOIN_MAINNET = BitcoinNetworkParams(
    name="BTC",
    chain=ChainId.BTC,
    bech32_hrp="bc",
    pubkey_hash=0x00,
    script_hash=0x05,
    wif=0x80,
    minimum_fee=MINIMUM_FEE,
    dust_threshold=STANDARD_DUST_LIMIT,
    default_sequence=DEFAULT_SEQUENCE,
    utxo_endpoints=(
        "https://mempool.space/api/address/{address}/utxo",
        "https://blockstream.info/api/address/{address}/utxo",
    ),
    outspends_endpoints=("https://blockstream.info/api/tx/{txid}/outspends",),
    fee_endpoints=("https://mempool.space/api/v1/fees/recommended",),
    broadcast_endpoints=(
        "https://mempool.space/api/tx",
        "https://blockstream.info/api/tx",
    ),
    # BIP173 test vector. Explorers refuse the genesis address (too many UTXOs)
    check_address="bc1qw508d6qejxtdg4y5r3zarvary0c5xw7kv8f3t4",
)

BITCOIN_TESTNET = BitcoinNetworkParams(
    name="BTCTestnet",
    chain=ChainId.BTC_TESTNET,
    bech32_hrp="tb",
    pubkey_hash=0x6F,
    script_hash=0xC4,
    wif=0xEF,
    minimum_fee=MINIMUM_FEE,
    dust_threshold=STANDARD_DUST_LIMIT,
    default_sequence=DEFAULT_SEQUENCE,
    utxo_endpoints=(
        "https://blockstream.info/testnet/api/address/{address}/utxo",
        "https://mempool.space/testnet4/api/address/{address}/utxo",
    ),
    outspends_endpoints=("https://blockstream.info/testnet/api/tx/{txid}/outspends",),
    fee_endpoints=("https://mempool.space/testnet4/api/v1/fees/recommended",),
    broadcast_endpoints=("https://mempool.space/testnet4/api/tx",),
    check_address="tb1qw508d6qejxtdg4y5r3zarvary0c5xw7kxpjzsx",
)

BITCOIN_PARAMS: dict[ChainId, BitcoinNetworkParams] = {
    ChainId.BTC: BITCOIN_MAINNET,
    ChainId.BTC_TESTNET: BITCOIN_TESTNET,
}


def get_bitcoin_params(chain: ChainId | str) -> BitcoinNetworkParams:
    try:
        return BITCOIN_PARAMS[parse_chain(chain)]
    except KeyError as e:
        raise UnsupportedNetworkError(f"{chain} is not a Bitcoin-family network") from e


def alternate_bitcoin_params(params: BitcoinNetworkParams) -> BitcoinNetworkParams:
    """Return the other Bitcoin network (mainnet <-> testnet)."""
    return BITCOIN_TESTNET if params.chain == ChainId.BTC else BITCOIN_MAINNET


DEFAULT_FEES: dict[ChainId, FeeRates] = {
    ChainId.BTC: FeeRates(low=8, medium=12, high=20),
    ChainId.BTC_TESTNET: FeeRates(low=1, medium=2, high=5),
    ChainId.ETH: FeeRates(low=30, medium=40, high=50),
    ChainId.BASE: FeeRates(low=0.001, medium=0.002, high=0.003),
    ChainId.XRP: FeeRates(low=0.000010, medium=0.000012, high=0.000015),
    ChainId.XRP_TESTNET: FeeRates(low=0.000010, medium=0.000012, high=0.000015),
}

# Used by the builder when no live fee rates are supplied
BUILDER_DEFAULT_FEES = FeeRates(low=1, medium=2, high=5)
