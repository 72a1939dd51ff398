"""
chainwallet - multi-chain wallet toolkit.

Balances for Bitcoin, EVM and XRP Ledger addresses, fee rates per chain, and
Bitcoin transfers built, signed and broadcast over public APIs.
"""

from chainwallet.accessors import ChainAccessor, UtxoAccessor, get_accessor, is_utxo_accessor
from chainwallet.bitcoin.broadcast import Broadcaster, broadcast_transaction
from chainwallet.bitcoin.builder import BitcoinTransactionBuilder, create_transaction
from chainwallet.config import Settings, get_settings
from chainwallet.exceptions import (
    AllEndpointsFailedError,
    BalanceFetchError,
    BroadcastExhaustedError,
    InsufficientFundsError,
    InvalidUtxoSetError,
    KeyDecodeError,
    NoSpendableUtxosError,
    NotInitializedError,
    RejectedByNetworkError,
    UnsupportedNetworkError,
    WalletError,
)
from chainwallet.fees import FeeEstimator
from chainwallet.models import (
    UTXO,
    BuiltTransaction,
    ChainId,
    ChainKind,
    FeeRates,
    FeeTier,
    SendResult,
    TransactionRequest,
    WalletKeys,
)
from chainwallet.orchestrator import TransferOrchestrator, send_transaction

__version__ = "0.1.0"

__all__ = [
    "AllEndpointsFailedError",
    "BalanceFetchError",
    "BitcoinTransactionBuilder",
    "Broadcaster",
    "BroadcastExhaustedError",
    "BuiltTransaction",
    "ChainAccessor",
    "ChainId",
    "ChainKind",
    "FeeEstimator",
    "FeeRates",
    "FeeTier",
    "InsufficientFundsError",
    "InvalidUtxoSetError",
    "KeyDecodeError",
    "NoSpendableUtxosError",
    "NotInitializedError",
    "RejectedByNetworkError",
    "SendResult",
    "Settings",
    "TransactionRequest",
    "TransferOrchestrator",
    "UTXO",
    "UnsupportedNetworkError",
    "UtxoAccessor",
    "WalletError",
    "WalletKeys",
    "broadcast_transaction",
    "create_transaction",
    "get_accessor",
    "get_settings",
    "is_utxo_accessor",
]
