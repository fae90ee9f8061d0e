"""
Binary codec for spendable transparent inputs.

Layout (all integers little-endian):

- 2 bytes: number of inputs
- per input:
    - 33 bytes: compressed public key
    - 32 bytes: txid
    - 4 bytes: vout
    - 8 bytes: amount in zatoshis
    - 2 bytes: scriptPubKey length
    - N bytes: scriptPubKey
"""

from __future__ import annotations

import struct

from coincurve import PublicKey
from loguru import logger

from t2z.constants import (
    COMPRESSED_PUBKEY_LENGTH,
    MAX_ENCODED_INPUTS,
    MAX_SCRIPT_LENGTH,
    TXID_LENGTH,
)
from t2z.errors import InputParseError, InvalidPublicKeyError, TruncatedInputError
from t2z.models import TransparentInput


class _Reader:
    def __init__(self, data: bytes):
        self.data = data
        self.offset = 0

    def take(self, size: int, field: str, index: int | None) -> bytes:
        end = self.offset + size
        if end > len(self.data):
            raise TruncatedInputError(field, index)
        chunk = self.data[self.offset : end]
        self.offset = end
        return chunk


def parse_transparent_inputs(data: bytes) -> list[TransparentInput]:
    """
    Decode transparent inputs from the binary format.

    An empty buffer decodes to an empty list.

    Raises:
        TruncatedInputError: A field runs past the end of the buffer
        InvalidPublicKeyError: A pubkey is not a valid compressed point
        InputParseError: Bytes remain after the declared inputs
    """
    if not data:
        return []

    reader = _Reader(data)
    (count,) = struct.unpack("<H", reader.take(2, "count", None))

    inputs: list[TransparentInput] = []
    for i in range(count):
        pubkey = reader.take(COMPRESSED_PUBKEY_LENGTH, "pubkey", i)
        try:
            PublicKey(pubkey)
        except ValueError as e:
            raise InvalidPublicKeyError(i, str(e)) from e
        txid = reader.take(TXID_LENGTH, "txid", i)
        (vout,) = struct.unpack("<I", reader.take(4, "vout", i))
        (amount,) = struct.unpack("<Q", reader.take(8, "amount", i))
        (script_len,) = struct.unpack("<H", reader.take(2, "script_length", i))
        script = reader.take(script_len, "script_pubkey", i)

        inputs.append(
            TransparentInput(
                pubkey=pubkey, txid=txid, vout=vout, amount=amount, script_pubkey=script
            )
        )

    if reader.offset != len(data):
        raise InputParseError(
            f"{len(data) - reader.offset} trailing bytes after {count} declared inputs"
        )

    logger.debug(f"Parsed {len(inputs)} transparent inputs ({len(data)} bytes)")
    return inputs


def serialize_transparent_inputs(inputs: list[TransparentInput]) -> bytes:
    """Encode transparent inputs; the exact inverse of parse_transparent_inputs."""
    if len(inputs) > MAX_ENCODED_INPUTS:
        raise ValueError(f"Too many inputs to encode: {len(inputs)} > {MAX_ENCODED_INPUTS}")

    parts = [struct.pack("<H", len(inputs))]
    for inp in inputs:
        if len(inp.script_pubkey) > MAX_SCRIPT_LENGTH:
            raise ValueError(f"Script too long to encode: {len(inp.script_pubkey)} bytes")
        parts.append(inp.pubkey)
        parts.append(inp.txid)
        parts.append(struct.pack("<IQH", inp.vout, inp.amount, len(inp.script_pubkey)))
        parts.append(inp.script_pubkey)
    return b"".join(parts)
