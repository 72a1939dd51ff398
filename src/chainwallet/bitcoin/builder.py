"""
Bitcoin transaction builder.

Spends every supplied UTXO (all P2WPKH, owned by the sender) to:
- one recipient output for the requested amount
- one change output back to the sender, only if the leftover exceeds the
  dust threshold; a smaller leftover is absorbed into the fee

The fee is a fixed-size estimate times the selected tier's rate, floored to the
network minimum. Nothing is signed unless the inputs cover amount + fee.
"""

from __future__ import annotations

import math
from typing import TYPE_CHECKING

from loguru import logger

from chainwallet.bitcoin.script import (
    address_to_scriptpubkey,
    p2wpkh_script_code,
    pubkey_to_p2wpkh_address,
)
from chainwallet.bitcoin.tx import SegwitTransaction, TxInput, TxOutput, sign_p2wpkh_input
from chainwallet.bitcoin.wif import decode_wif
from chainwallet.constants import (
    BUILDER_DEFAULT_FEES,
    ESTIMATED_TX_VSIZE,
    BitcoinNetworkParams,
    get_bitcoin_params,
)
from chainwallet.exceptions import (
    InsufficientFundsError,
    InvalidAmountError,
    InvalidUtxoSetError,
    KeyDecodeError,
)
from chainwallet.models import UTXO, BuiltTransaction, FeeRates, FeeTier, TransactionRequest
from chainwallet.units import btc_to_sats

if TYPE_CHECKING:
    from loguru import Logger


def estimate_fee(
    fee_rate: float,
    minimum_fee: int,
    size_estimate: int = ESTIMATED_TX_VSIZE,
) -> int:
    """Fee in satoshis: max(rate, 1) * size, floored to the network minimum."""
    fee = math.ceil(max(fee_rate, 1) * size_estimate)
    return max(fee, minimum_fee)


def compute_change(total_input: int, amount: int, fee: int, dust_threshold: int) -> int | None:
    """
    Change to return to the sender, or None when the leftover is dust.

    Assumes total_input >= amount + fee.
    """
    change = total_input - amount - fee
    if change > dust_threshold:
        return change
    return None


def validate_utxos(utxos: tuple[UTXO, ...] | list[UTXO]) -> int:
    """Check the UTXO set is usable and return its total value."""
    if not utxos:
        raise InvalidUtxoSetError("No valid UTXOs available for the transaction")

    seen: set[tuple[str, int]] = set()
    for utxo in utxos:
        if utxo.value <= 0:
            raise InvalidUtxoSetError(f"Invalid UTXO {utxo.outpoint}: non-positive value")
        key = (utxo.txid, utxo.vout)
        if key in seen:
            raise InvalidUtxoSetError(f"Duplicate UTXO {utxo.outpoint}")
        seen.add(key)

    return sum(utxo.value for utxo in utxos)


class BitcoinTransactionBuilder:
    def __init__(
        self,
        params: BitcoinNetworkParams,
        allow_alternate_network_wif: bool = True,
        size_estimate: int = ESTIMATED_TX_VSIZE,
        log: Logger | None = None,
    ):
        self.params = params
        self.allow_alternate_network_wif = allow_alternate_network_wif
        self.size_estimate = size_estimate
        self.log = log or logger.bind(component="builder", network=params.name)

    def estimate_fee(self, fee_rate: float) -> int:
        return estimate_fee(fee_rate, self.params.minimum_fee, self.size_estimate)

    def build(
        self,
        request: TransactionRequest,
        private_key: str,
        public_key: str,
        fee_tier: FeeTier | str,
        fee_rates: FeeRates | None = None,
    ) -> BuiltTransaction:
        """
        Build and sign a transaction spending all of request.utxos.

        Args:
            request: Transfer request with utxos populated
            private_key: Sender's WIF private key
            public_key: Sender's compressed public key (hex)
            fee_tier: low | medium | high
            fee_rates: Live fee rates in sat/vB; built-in defaults when None

        Returns:
            BuiltTransaction with the raw hex, the tier's fee rate and the total fee

        Raises:
            InvalidUtxoSetError, KeyDecodeError, InvalidAmountError,
            InvalidAddressError, InsufficientFundsError
        """
        utxos = request.utxos
        total_input = validate_utxos(utxos)

        decoded = decode_wif(
            private_key,
            self.params,
            allow_alternate=self.allow_alternate_network_wif,
            log=self.log,
        )
        try:
            pubkey = bytes.fromhex(public_key)
        except ValueError as e:
            raise KeyDecodeError(f"Invalid public key hex: {e}") from e
        if decoded.public_key != pubkey:
            raise KeyDecodeError("Public key does not match the private key")

        sender_address = pubkey_to_p2wpkh_address(pubkey, self.params)
        if sender_address != request.sender_address.lower():
            raise KeyDecodeError(
                f"Key controls {sender_address}, not sender address {request.sender_address}"
            )

        tx = SegwitTransaction()
        for utxo in utxos:
            tx.inputs.append(
                TxInput(
                    txid=utxo.txid,
                    vout=utxo.vout,
                    value=utxo.value,
                    sequence=self.params.default_sequence,
                )
            )

        rates = fee_rates or BUILDER_DEFAULT_FEES
        fee_rate = rates.for_tier(fee_tier)
        fee = self.estimate_fee(fee_rate)

        amount = btc_to_sats(request.amount)
        if amount <= 0:
            raise InvalidAmountError(f"Amount must be greater than 0, got {request.amount}")
        if amount <= self.params.dust_threshold:
            raise InvalidAmountError(
                f"Amount {amount} sats is at or below the dust threshold "
                f"({self.params.dust_threshold} sats)"
            )

        total_required = amount + fee
        self.log.debug(
            f"Fee: rate={fee_rate} sat/vB, size={self.size_estimate} vB, fee={fee} sats; "
            f"inputs={total_input} sats, amount={amount} sats, required={total_required} sats"
        )
        if total_input < total_required:
            raise InsufficientFundsError(required=total_required, available=total_input)

        recipient_script = address_to_scriptpubkey(request.recipient_address, self.params)
        tx.outputs.append(TxOutput(value=amount, script=recipient_script))

        change = compute_change(total_input, amount, fee, self.params.dust_threshold)
        if change is not None:
            self.log.debug(f"Adding change output: {change} sats")
            change_script = address_to_scriptpubkey(sender_address, self.params)
            tx.outputs.append(TxOutput(value=change, script=change_script))
        else:
            leftover = total_input - total_required
            self.log.debug(f"Change amount ({leftover}) below dust threshold, adding it to fee")

        script_code = p2wpkh_script_code(pubkey)
        for i in range(len(tx.inputs)):
            sign_p2wpkh_input(tx, i, script_code, decoded.private_key, pubkey)

        txid = tx.txid()
        self.log.info(
            f"Built transaction {txid}: {len(tx.inputs)} input(s), {len(tx.outputs)} output(s), "
            f"{tx.vsize()} vB"
        )

        return BuiltTransaction(
            raw_hex=tx.to_hex(),
            fee_rate=fee_rate,
            total_fee=fee,
            txid=txid,
            has_change=change is not None,
        )


def create_transaction(
    request: TransactionRequest,
    private_key: str,
    public_key: str,
    fee_tier: FeeTier | str,
    fee_rates: FeeRates | None = None,
    allow_alternate_network_wif: bool = True,
) -> BuiltTransaction:
    builder = BitcoinTransactionBuilder(
        get_bitcoin_params(request.network),
        allow_alternate_network_wif=allow_alternate_network_wif,
    )
    return builder.build(request, private_key, public_key, fee_tier, fee_rates)
