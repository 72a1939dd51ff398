"""
BIP32/BIP84 key derivation for the Bitcoin-family wallet keys.

Supplies the {address, WIF private key, public key} triple consumed by the
send and balance commands. Mnemonic generation and wallet storage live elsewhere.
"""

from __future__ import annotations

import hashlib
import hmac
import unicodedata
from hashlib import pbkdf2_hmac

from coincurve import PrivateKey

from chainwallet.bitcoin.script import pubkey_to_p2wpkh_address
from chainwallet.bitcoin.wif import encode_wif
from chainwallet.constants import get_bitcoin_params
from chainwallet.models import ChainId, WalletKeys, parse_chain

# secp256k1 curve order
SECP256K1_N = int("FFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFEBAAEDCE6AF48A03BBFD25E8CD0364141", 16)

HARDENED = 0x80000000


class HDKey:
    """Hierarchical Deterministic private key (BIP32)."""

    def __init__(self, private_key: PrivateKey, chain_code: bytes, depth: int = 0):
        self.private_key = private_key
        self.chain_code = chain_code
        self.depth = depth

    @classmethod
    def from_seed(cls, seed: bytes) -> HDKey:
        digest = hmac.new(b"Bitcoin seed", seed, hashlib.sha512).digest()
        return cls(PrivateKey(digest[:32]), digest[32:])

    def derive(self, path: str) -> HDKey:
        """
        Derive child key from path notation (e.g., "m/84'/0'/0'/0/0").
        ' or h marks hardened derivation.
        """
        if not path.startswith("m"):
            raise ValueError("Path must start with 'm'")

        key = self
        for part in path.split("/")[1:]:
            if not part:
                continue
            hardened = part.endswith(("'", "h"))
            index = int(part.rstrip("'h"))
            key = key._derive_child(index + HARDENED if hardened else index)
        return key

    def _derive_child(self, index: int) -> HDKey:
        if index >= HARDENED:
            data = b"\x00" + self.private_key.secret + index.to_bytes(4, "big")
        else:
            data = self.public_key_bytes() + index.to_bytes(4, "big")

        digest = hmac.new(self.chain_code, data, hashlib.sha512).digest()
        offset = int.from_bytes(digest[:32], "big")
        if offset >= SECP256K1_N:
            raise ValueError("Invalid child key")

        child = (int.from_bytes(self.private_key.secret, "big") + offset) % SECP256K1_N
        if child == 0:
            raise ValueError("Invalid child key")

        return HDKey(PrivateKey(child.to_bytes(32, "big")), digest[32:], depth=self.depth + 1)

    def public_key_bytes(self) -> bytes:
        return self.private_key.public_key.format(compressed=True)


def mnemonic_to_seed(mnemonic: str, passphrase: str = "") -> bytes:
    """BIP39 mnemonic to seed (PBKDF2-HMAC-SHA512, 2048 rounds)."""
    normalized = unicodedata.normalize("NFKD", " ".join(mnemonic.split()))
    salt = unicodedata.normalize("NFKD", "mnemonic" + passphrase).encode("utf-8")
    return pbkdf2_hmac("sha512", normalized.encode("utf-8"), salt, 2048, dklen=64)


def bip84_path(chain: ChainId, account: int = 0, index: int = 0) -> str:
    coin_type = 1 if chain == ChainId.BTC_TESTNET else 0
    return f"m/84'/{coin_type}'/{account}'/0/{index}"


def derive_bitcoin_keys(
    mnemonic: str,
    chain: ChainId | str = ChainId.BTC,
    account: int = 0,
    passphrase: str = "",
) -> WalletKeys:
    """Derive the first native segwit receive key of an account."""
    chain = parse_chain(chain)
    params = get_bitcoin_params(chain)

    key = HDKey.from_seed(mnemonic_to_seed(mnemonic, passphrase)).derive(
        bip84_path(chain, account)
    )
    pubkey = key.public_key_bytes()

    return WalletKeys(
        address=pubkey_to_p2wpkh_address(pubkey, params),
        private_key=encode_wif(key.private_key.secret, params),
        public_key=pubkey.hex(),
    )
