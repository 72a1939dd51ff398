"""
Segwit v0 transaction serialization and P2WPKH signing (BIP143).
"""

from __future__ import annotations

import hashlib
import struct
from dataclasses import dataclass, field

from coincurve import PrivateKey

from chainwallet.constants import DEFAULT_SEQUENCE

SIGHASH_ALL = 1


class TransactionSigningError(Exception):
    pass


@dataclass
class TxInput:
    txid: str  # RPC byte order
    vout: int
    value: int
    sequence: int = DEFAULT_SEQUENCE
    witness: list[bytes] = field(default_factory=list)


@dataclass
class TxOutput:
    value: int
    script: bytes


@dataclass
class SegwitTransaction:
    inputs: list[TxInput] = field(default_factory=list)
    outputs: list[TxOutput] = field(default_factory=list)
    version: int = 2
    locktime: int = 0

    @property
    def is_signed(self) -> bool:
        return bool(self.inputs) and all(inp.witness for inp in self.inputs)

    def serialize(self, include_witness: bool = True) -> bytes:
        """Serialize the transaction. Witness data is written only if any input has it."""
        with_witness = include_witness and any(inp.witness for inp in self.inputs)

        result = struct.pack("<I", self.version)
        if with_witness:
            # Marker and flag for SegWit
            result += bytes([0x00, 0x01])

        result += varint(len(self.inputs))
        for inp in self.inputs:
            result += serialize_outpoint(inp.txid, inp.vout)
            # Empty scriptSig for native SegWit
            result += bytes([0x00])
            result += struct.pack("<I", inp.sequence)

        result += varint(len(self.outputs))
        for out in self.outputs:
            result += serialize_output(out)

        if with_witness:
            for inp in self.inputs:
                result += varint(len(inp.witness))
                for item in inp.witness:
                    result += varint(len(item))
                    result += item

        result += struct.pack("<I", self.locktime)
        return result

    def to_hex(self) -> str:
        return self.serialize().hex()

    def txid(self) -> str:
        """Double SHA256 of the non-witness serialization, displayed byte-reversed."""
        return hash256(self.serialize(include_witness=False))[::-1].hex()

    def vsize(self) -> int:
        base = len(self.serialize(include_witness=False))
        total = len(self.serialize())
        weight = base * 3 + total
        return (weight + 3) // 4


def hash256(data: bytes) -> bytes:
    return hashlib.sha256(hashlib.sha256(data).digest()).digest()


def varint(n: int) -> bytes:
    """Encode integer as Bitcoin varint."""
    if n < 0xFD:
        return bytes([n])
    elif n <= 0xFFFF:
        return bytes([0xFD]) + struct.pack("<H", n)
    elif n <= 0xFFFFFFFF:
        return bytes([0xFE]) + struct.pack("<I", n)
    else:
        return bytes([0xFF]) + struct.pack("<Q", n)


def serialize_outpoint(txid: str, vout: int) -> bytes:
    """Serialize outpoint (txid:vout)."""
    # txid is in RPC format (big-endian), need to reverse for raw tx
    return bytes.fromhex(txid)[::-1] + struct.pack("<I", vout)


def serialize_output(out: TxOutput) -> bytes:
    return struct.pack("<Q", out.value) + varint(len(out.script)) + out.script


def compute_sighash_segwit(
    tx: SegwitTransaction,
    input_index: int,
    script_code: bytes,
    value: int,
    sighash_type: int = SIGHASH_ALL,
) -> bytes:
    if input_index >= len(tx.inputs):
        raise TransactionSigningError("Input index out of range")

    hash_prevouts = hash256(
        b"".join(serialize_outpoint(inp.txid, inp.vout) for inp in tx.inputs)
    )
    hash_sequence = hash256(b"".join(struct.pack("<I", inp.sequence) for inp in tx.inputs))
    hash_outputs = hash256(b"".join(serialize_output(out) for out in tx.outputs))

    target = tx.inputs[input_index]

    preimage = (
        struct.pack("<I", tx.version)
        + hash_prevouts
        + hash_sequence
        + serialize_outpoint(target.txid, target.vout)
        + varint(len(script_code))
        + script_code
        + struct.pack("<Q", value)
        + struct.pack("<I", target.sequence)
        + hash_outputs
        + struct.pack("<I", tx.locktime)
        + struct.pack("<I", sighash_type)
    )

    return hash256(preimage)


def sign_p2wpkh_input(
    tx: SegwitTransaction,
    input_index: int,
    script_code: bytes,
    private_key: PrivateKey,
    pubkey: bytes,
    sighash_type: int = SIGHASH_ALL,
) -> None:
    """Sign a P2WPKH input in place, setting its witness to [signature, pubkey].

    The signature is DER-encoded with the sighash type byte appended.
    """
    inp = tx.inputs[input_index]
    sighash = compute_sighash_segwit(tx, input_index, script_code, inp.value, sighash_type)

    # Sighash is already SHA256d; hasher=None skips hashing
    signature = private_key.sign(sighash, hasher=None)

    inp.witness = [signature + bytes([sighash_type]), pubkey]


def read_varint(data: bytes, offset: int) -> tuple[int, int]:
    """Read varint and return (value, new_offset)."""
    first = data[offset]
    offset += 1

    if first < 0xFD:
        return first, offset
    if first == 0xFD:
        return struct.unpack("<H", data[offset : offset + 2])[0], offset + 2
    if first == 0xFE:
        return struct.unpack("<I", data[offset : offset + 4])[0], offset + 4
    return struct.unpack("<Q", data[offset : offset + 8])[0], offset + 8


def deserialize_transaction(tx_bytes: bytes) -> SegwitTransaction:
    """
    Parse a raw transaction.

    Input values are not part of the serialization and are left at 0.
    """
    try:
        offset = 0
        version = struct.unpack("<I", tx_bytes[offset : offset + 4])[0]
        offset += 4

        has_witness = tx_bytes[offset] == 0x00 and tx_bytes[offset + 1] == 0x01
        if has_witness:
            offset += 2

        input_count, offset = read_varint(tx_bytes, offset)
        inputs: list[TxInput] = []
        for _ in range(input_count):
            txid = tx_bytes[offset : offset + 32][::-1].hex()
            offset += 32
            vout = struct.unpack("<I", tx_bytes[offset : offset + 4])[0]
            offset += 4
            script_len, offset = read_varint(tx_bytes, offset)
            offset += script_len
            sequence = struct.unpack("<I", tx_bytes[offset : offset + 4])[0]
            offset += 4
            inputs.append(TxInput(txid=txid, vout=vout, value=0, sequence=sequence))

        output_count, offset = read_varint(tx_bytes, offset)
        outputs: list[TxOutput] = []
        for _ in range(output_count):
            value = struct.unpack("<Q", tx_bytes[offset : offset + 8])[0]
            offset += 8
            script_len, offset = read_varint(tx_bytes, offset)
            outputs.append(TxOutput(value=value, script=tx_bytes[offset : offset + script_len]))
            offset += script_len

        if has_witness:
            for inp in inputs:
                item_count, offset = read_varint(tx_bytes, offset)
                for _ in range(item_count):
                    item_len, offset = read_varint(tx_bytes, offset)
                    inp.witness.append(tx_bytes[offset : offset + item_len])
                    offset += item_len

        locktime = struct.unpack("<I", tx_bytes[offset : offset + 4])[0]
        offset += 4
        if offset != len(tx_bytes):
            raise ValueError(f"{len(tx_bytes) - offset} trailing bytes")

    except (IndexError, struct.error, ValueError) as e:
        raise TransactionSigningError(f"Failed to parse transaction: {e}") from e

    return SegwitTransaction(inputs=inputs, outputs=outputs, version=version, locktime=locktime)
