"""
Wallet error taxonomy.

Every failure raised by this package derives from WalletError, so callers
(the CLI in particular) can report it and exit cleanly.
"""

from __future__ import annotations


class WalletError(Exception):
    """Base class for all wallet errors."""


class UnsupportedNetworkError(WalletError):
    pass


class NotInitializedError(WalletError):
    """Accessor used before initialize() succeeded."""


class AllEndpointsFailedError(WalletError):
    """No configured endpoint answered the readiness check."""


class NoSpendableUtxosError(WalletError):
    def __init__(self, address: str):
        self.address = address
        super().__init__(
            f"No spendable UTXOs found for address {address}. "
            "Check that it has received funds and that they are confirmed."
        )


class BalanceFetchError(WalletError):
    """Balance lookup failed on an account-based chain."""


class DisconnectError(WalletError):
    pass


class InvalidUtxoSetError(WalletError):
    pass


class InsufficientFundsError(WalletError):
    def __init__(self, required: int, available: int):
        self.required = required
        self.available = available
        super().__init__(
            f"Insufficient funds. Required: {required} satoshis, "
            f"Available: {available} satoshis (short by {required - available})"
        )

    @property
    def shortfall(self) -> int:
        return self.required - self.available


class KeyDecodeError(WalletError):
    pass


class RejectedByNetworkError(WalletError):
    """The network refused the transaction itself (bad signature, spent inputs...)."""

    def __init__(self, response_body: str, endpoint: str = ""):
        self.response_body = response_body
        self.endpoint = endpoint
        super().__init__(f"Invalid transaction: {response_body}")


class BroadcastExhaustedError(WalletError):
    def __init__(self, last_response: str | None):
        self.last_response = last_response
        super().__init__(f"Failed to broadcast transaction: {last_response or 'Unknown error'}")


class InvalidAddressError(WalletError):
    pass


class InvalidAmountError(WalletError):
    pass


class MalformedTransactionError(WalletError):
    """Raw transaction could not be parsed or has unsigned inputs; nothing was sent."""
