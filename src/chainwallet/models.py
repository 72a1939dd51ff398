"""
Core data types shared by the accessors, fee estimator and transaction pipeline.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from chainwallet.exceptions import UnsupportedNetworkError


class ChainKind(str, Enum):
    UTXO = "utxo"
    ACCOUNT = "account"


class ChainId(str, Enum):
    BTC = "btc"
    BTC_TESTNET = "btctestnet"
    ETH = "eth"
    BASE = "base"
    XRP = "xrp"
    XRP_TESTNET = "xrptestnet"

    @property
    def kind(self) -> ChainKind:
        if self in (ChainId.BTC, ChainId.BTC_TESTNET):
            return ChainKind.UTXO
        return ChainKind.ACCOUNT

    @property
    def is_testnet(self) -> bool:
        # The configured ETH endpoint is Holesky
        return self in (ChainId.BTC_TESTNET, ChainId.XRP_TESTNET, ChainId.ETH)

    @property
    def symbol(self) -> str:
        return {
            ChainId.BTC: "BTC",
            ChainId.BTC_TESTNET: "tBTC",
            ChainId.ETH: "ETH",
            ChainId.BASE: "ETH",
            ChainId.XRP: "XRP",
            ChainId.XRP_TESTNET: "XRP",
        }[self]


def parse_chain(value: ChainId | str) -> ChainId:
    if isinstance(value, ChainId):
        return value
    try:
        return ChainId(value.strip().lower())
    except ValueError as e:
        raise UnsupportedNetworkError(f"Unsupported blockchain network: {value}") from e


class FeeTier(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


@dataclass(frozen=True)
class UTXO:
    """A confirmed output as reported by a block explorer. Identified by (txid, vout)."""

    txid: str
    vout: int
    value: int  # satoshis
    confirmed: bool
    block_height: int | None = None

    @property
    def outpoint(self) -> str:
        return f"{self.txid}:{self.vout}"


@dataclass(frozen=True)
class FeeRates:
    """Fee rates per tier, in the chain's native unit (sat/vB for Bitcoin)."""

    low: float
    medium: float
    high: float

    def for_tier(self, tier: FeeTier | str) -> float:
        return getattr(self, FeeTier(tier).value)


@dataclass(frozen=True)
class TransactionRequest:
    network: ChainId
    sender_address: str
    recipient_address: str
    amount: float  # major units (BTC)
    utxos: tuple[UTXO, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class BuiltTransaction:
    raw_hex: str
    fee_rate: float
    total_fee: int  # satoshis
    txid: str = ""
    has_change: bool = False


@dataclass(frozen=True)
class SendResult:
    tx_hash: str
    fee_rate: float
    total_fee: int


@dataclass(frozen=True)
class WalletKeys:
    """Signing material for one chain/account, as supplied by the keys provider."""

    address: str
    private_key: str  # WIF
    public_key: str  # compressed, hex
