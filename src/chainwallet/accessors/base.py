"""
Chain accessor interfaces.

Accessors are matched structurally rather than through a shared base class.
Every accessor carries a ChainKind tag which tells callers which capability set
it offers:
- UTXO accessors expose the last verified UTXO set via get_utxos()
- Account accessors expose their live RPC connection via connection()
"""

from __future__ import annotations

from typing import Any, Protocol, TypeGuard, runtime_checkable

import httpx

from chainwallet.models import UTXO, ChainId, ChainKind


@runtime_checkable
class ChainAccessor(Protocol):
    kind: ChainKind
    chain: ChainId

    async def initialize(self) -> None:
        """Establish readiness. Idempotent."""

    async def fetch_balance(self, address: str) -> float:
        """Balance in the chain's major unit (BTC, ETH, XRP)."""

    def calculate_balance(self, data: Any) -> float:
        """Convert raw-unit data to a major-unit balance. No I/O."""

    async def disconnect(self) -> None:
        """Release connections and caches. Safe when never connected."""


@runtime_checkable
class UtxoChainAccessor(ChainAccessor, Protocol):
    def get_utxos(self) -> list[UTXO]:
        """UTXOs verified by the last successful fetch_balance(); empty otherwise."""


@runtime_checkable
class AccountChainAccessor(ChainAccessor, Protocol):
    def connection(self) -> httpx.AsyncClient:
        """The live RPC connection."""


def is_utxo_accessor(accessor: ChainAccessor) -> TypeGuard[UtxoChainAccessor]:
    return accessor.kind == ChainKind.UTXO and isinstance(accessor, UtxoChainAccessor)


def is_account_accessor(accessor: ChainAccessor) -> TypeGuard[AccountChainAccessor]:
    return accessor.kind == ChainKind.ACCOUNT and isinstance(accessor, AccountChainAccessor)
