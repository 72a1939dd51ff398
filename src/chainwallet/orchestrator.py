"""
Transfer orchestration.

Bitcoin-family send flow:
    fetch + verify UTXOs -> fetch fee rates -> build and sign -> broadcast

Every send gets its own accessor, so concurrent sends never share a UTXO cache.
"""

from __future__ import annotations

import dataclasses
from collections.abc import Callable
from typing import TYPE_CHECKING

import httpx
from loguru import logger

from chainwallet.accessors import get_accessor, is_utxo_accessor
from chainwallet.accessors.base import ChainAccessor
from chainwallet.bitcoin.broadcast import Broadcaster
from chainwallet.bitcoin.builder import BitcoinTransactionBuilder
from chainwallet.config import Settings, get_settings
from chainwallet.constants import get_bitcoin_params
from chainwallet.exceptions import (
    InsufficientFundsError,
    InvalidAmountError,
    NoSpendableUtxosError,
    UnsupportedNetworkError,
)
from chainwallet.fees import FeeEstimator
from chainwallet.models import ChainId, FeeTier, SendResult, TransactionRequest, parse_chain
from chainwallet.units import btc_to_sats

if TYPE_CHECKING:
    from loguru import Logger

AccessorFactory = Callable[
    [ChainId, Settings, httpx.AsyncClient | None, "Logger | None"], ChainAccessor
]


class TransferOrchestrator:
    def __init__(
        self,
        settings: Settings,
        client: httpx.AsyncClient | None = None,
        accessor_factory: AccessorFactory = get_accessor,
        log: Logger | None = None,
    ):
        self.settings = settings
        self.client = client
        self.accessor_factory = accessor_factory
        self.log = log or logger.bind(component="send")

    async def send_transaction(
        self,
        request: TransactionRequest,
        private_key: str,
        public_key: str,
        fee_tier: FeeTier | str = FeeTier.MEDIUM,
    ) -> SendResult:
        """
        Send a transfer and return its hash with the fee rate and total fee used.

        Raises:
            UnsupportedNetworkError: sending is only implemented for Bitcoin-family chains
            WalletError subclasses from the accessor, builder and broadcaster
        """
        fee_tier = FeeTier(fee_tier)
        network = parse_chain(request.network)
        if request.amount <= 0:
            raise InvalidAmountError("Amount must be greater than 0")

        log = self.log.bind(network=network.value)
        accessor = self.accessor_factory(
            network, self.settings, self.client, log.bind(component="utxo")
        )
        if not is_utxo_accessor(accessor):
            await accessor.disconnect()
            raise UnsupportedNetworkError(
                f"Sending on {network.value} is not supported by this tool"
            )

        params = get_bitcoin_params(network)
        fees = FeeEstimator(
            self.settings, client=self.client, log=log.bind(component="fees")
        )
        broadcaster = Broadcaster(
            params,
            client=self.client,
            timeout=self.settings.broadcast_timeout,
            log=log.bind(component="broadcast"),
        )

        try:
            log.info(f"Fetching UTXOs for address: {request.sender_address}")
            await accessor.initialize()
            await accessor.fetch_balance(request.sender_address)
            utxos = accessor.get_utxos()
            if not utxos:
                raise NoSpendableUtxosError(request.sender_address)

            available = sum(utxo.value for utxo in utxos)
            amount = btc_to_sats(request.amount)
            log.info(
                f"Available balance: {available} sats, amount to send: {amount} sats"
            )
            if available < amount:
                raise InsufficientFundsError(required=amount, available=available)

            fee_rates = await fees.fetch_gas_fees(network)

            builder = BitcoinTransactionBuilder(
                params,
                allow_alternate_network_wif=self.settings.allow_alternate_network_wif,
                log=log.bind(component="builder"),
            )
            built = builder.build(
                dataclasses.replace(request, network=network, utxos=tuple(utxos)),
                private_key,
                public_key,
                fee_tier,
                fee_rates,
            )

            log.info("Broadcasting transaction...")
            tx_hash = await broadcaster.broadcast(built.raw_hex)
        finally:
            await broadcaster.close()
            await fees.close()
            await accessor.disconnect()

        return SendResult(tx_hash=tx_hash, fee_rate=built.fee_rate, total_fee=built.total_fee)


async def send_transaction(
    request: TransactionRequest,
    private_key: str,
    public_key: str,
    fee_tier: FeeTier | str = FeeTier.MEDIUM,
    settings: Settings | None = None,
) -> SendResult:
    orchestrator = TransferOrchestrator(settings or get_settings())
    return await orchestrator.send_transaction(request, private_key, public_key, fee_tier)
