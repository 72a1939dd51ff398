"""
Address and script helpers.
"""

from __future__ import annotations

import hashlib

import base58
import bech32
from bip_utils import Bech32ChecksumError, SegwitBech32Decoder

from chainwallet.constants import BitcoinNetworkParams
from chainwallet.exceptions import InvalidAddressError


def hash160(data: bytes) -> bytes:
    """RIPEMD160(SHA256(data))"""
    h = hashlib.new("ripemd160")
    h.update(hashlib.sha256(data).digest())
    return h.digest()


def pubkey_to_p2wpkh_script(pubkey: bytes) -> bytes:
    """P2WPKH scriptPubKey: OP_0 <20-byte-hash>"""
    return bytes([0x00, 0x14]) + hash160(pubkey)


def p2wpkh_script_code(pubkey: bytes) -> bytes:
    """
    BIP143 scriptCode for a P2WPKH input.

    OP_DUP OP_HASH160 <20-byte-pubkeyhash> OP_EQUALVERIFY OP_CHECKSIG
    """
    return b"\x76\xa9\x14" + hash160(pubkey) + b"\x88\xac"


def pubkey_to_p2wpkh_address(pubkey: bytes, params: BitcoinNetworkParams) -> str:
    if len(pubkey) != 33:
        raise InvalidAddressError(f"Invalid compressed pubkey length: {len(pubkey)}")
    address = bech32.encode(params.bech32_hrp, 0, hash160(pubkey))
    if address is None:
        raise InvalidAddressError(f"Failed to encode P2WPKH address for {pubkey.hex()}")
    return address


def address_to_scriptpubkey(address: str, params: BitcoinNetworkParams) -> bytes:
    """
    Convert an address on the given network to its scriptPubKey.

    Supports:
    - P2WPKH (bc1q... / tb1q...)
    - P2WSH (bc1q... / tb1q..., 62 chars)
    - P2TR (bc1p... / tb1p...)
    - P2PKH (1... / m..., n...)
    - P2SH (3... / 2...)
    """
    hrp = params.bech32_hrp
    if address.lower().startswith(hrp + "1"):
        if address not in (address.lower(), address.upper()):
            raise InvalidAddressError(f"Mixed-case bech32 address: {address}")
        try:
            # bip_utils validates bech32m checksums (v1+), bech32 only covers v0
            witver, witprog = SegwitBech32Decoder.Decode(hrp, address.lower())
        except (ValueError, Bech32ChecksumError) as e:
            raise InvalidAddressError(f"Invalid bech32 address: {address}") from e
        witprog = bytes(witprog)

        if witver == 0:
            if len(witprog) == 20:
                return bytes([0x00, 0x14]) + witprog
            if len(witprog) == 32:
                return bytes([0x00, 0x20]) + witprog
        elif witver == 1 and len(witprog) == 32:
            return bytes([0x51, 0x20]) + witprog

        raise InvalidAddressError(f"Unsupported witness program in {address}")

    try:
        decoded = base58.b58decode_check(address)
    except ValueError as e:
        raise InvalidAddressError(f"Invalid {params.name} address: {address}") from e

    if len(decoded) != 21:
        raise InvalidAddressError(f"Invalid {params.name} address: {address}")

    version = decoded[0]
    payload = decoded[1:]

    if version == params.pubkey_hash:
        return bytes([0x76, 0xA9, 0x14]) + payload + bytes([0x88, 0xAC])
    if version == params.script_hash:
        return bytes([0xA9, 0x14]) + payload + bytes([0x87])

    raise InvalidAddressError(f"Address {address} does not belong to {params.name}")
