"""
Unit conversions between major units and integer base units.

Only the major -> base conversion touches floating point input; it goes
through Decimal and rounds half-up so amounts are never systematically short.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal

from chainwallet.constants import DROPS_PER_XRP, SATOSHIS_PER_BTC, WEI_PER_ETH


def to_base_units(amount: float | str | Decimal, per_unit: int) -> int:
    value = Decimal(str(amount)) * per_unit
    return int(value.quantize(Decimal(1), rounding=ROUND_HALF_UP))


def btc_to_sats(amount: float | str | Decimal) -> int:
    return to_base_units(amount, SATOSHIS_PER_BTC)


def sats_to_btc(sats: int) -> float:
    return sats / SATOSHIS_PER_BTC


def wei_to_eth(wei: int) -> float:
    return float(Decimal(wei) / WEI_PER_ETH)


def drops_to_xrp(drops: int | str) -> float:
    return float(Decimal(str(drops)) / DROPS_PER_XRP)
