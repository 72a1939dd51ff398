"""
Wallet Import Format (WIF) private key encoding.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

import base58
from coincurve import PrivateKey
from loguru import logger

from chainwallet.constants import BitcoinNetworkParams, alternate_bitcoin_params
from chainwallet.exceptions import KeyDecodeError

if TYPE_CHECKING:
    from loguru import Logger


@dataclass
class DecodedKey:
    private_key: PrivateKey
    compressed: bool
    # Network whose version byte matched; differs from the requested one
    # when the alternate-network fallback was used
    params: BitcoinNetworkParams

    @property
    def public_key(self) -> bytes:
        return self.private_key.public_key.format(compressed=self.compressed)


def encode_wif(secret: bytes, params: BitcoinNetworkParams, compressed: bool = True) -> str:
    if len(secret) != 32:
        raise ValueError(f"Invalid private key length: {len(secret)}")
    payload = bytes([params.wif]) + secret + (b"\x01" if compressed else b"")
    return base58.b58encode_check(payload).decode("ascii")


def decode_wif(
    wif: str,
    params: BitcoinNetworkParams,
    allow_alternate: bool = True,
    log: Logger | None = None,
) -> DecodedKey:
    """
    Decode a WIF private key for the given network.

    If the version byte belongs to the other Bitcoin network and
    allow_alternate is set, the key is accepted with a warning. This recovers
    keys exported with the wrong testnet/mainnet prefix.

    Raises:
        KeyDecodeError: malformed key, or prefix matches neither allowed network
    """
    log = log or logger
    try:
        payload = base58.b58decode_check(wif.strip())
    except ValueError as e:
        raise KeyDecodeError(f"Failed to decode WIF: {e}") from e

    if len(payload) == 34 and payload[-1] == 0x01:
        compressed = True
        secret = payload[1:33]
    elif len(payload) == 33:
        compressed = False
        secret = payload[1:]
    else:
        raise KeyDecodeError(f"Failed to decode WIF: unexpected payload length {len(payload)}")

    version = payload[0]
    used = params
    if version != params.wif:
        alternate = alternate_bitcoin_params(params)
        if not allow_alternate:
            raise KeyDecodeError(
                f"Wrong WIF prefix 0x{version:02x} for {params.name} "
                f"(expected 0x{params.wif:02x}); alternate-network decoding is disabled"
            )
        if version != alternate.wif:
            raise KeyDecodeError(
                f"Failed to decode WIF for both networks: prefix 0x{version:02x} "
                f"matches neither {params.name} nor {alternate.name}"
            )
        log.warning(
            f"WIF prefix is for {alternate.name}, not {params.name}; "
            "decoding with the alternate network version byte"
        )
        used = alternate

    if not compressed:
        raise KeyDecodeError("Native segwit spending requires a compressed private key")

    try:
        private_key = PrivateKey(secret)
    except ValueError as e:
        raise KeyDecodeError(f"Invalid private key: {e}") from e

    return DecodedKey(private_key=private_key, compressed=compressed, params=used)
