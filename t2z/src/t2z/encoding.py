"""
CompactSize integers and hashing helpers shared by the codecs.
"""

from __future__ import annotations

import hashlib


def encode_compact_size(n: int) -> bytes:
    """Encode integer as CompactSize."""
    if n < 0:
        raise ValueError(f"CompactSize cannot encode negative value {n}")
    if n < 0xFD:
        return bytes([n])
    if n <= 0xFFFF:
        return b"\xfd" + n.to_bytes(2, "little")
    if n <= 0xFFFFFFFF:
        return b"\xfe" + n.to_bytes(4, "little")
    return b"\xff" + n.to_bytes(8, "little")


def read_compact_size(data: bytes, offset: int) -> tuple[int, int]:
    """Read a canonical CompactSize; return (value, new_offset)."""
    if offset >= len(data):
        raise ValueError("CompactSize runs past end of data")
    first = data[offset]
    offset += 1

    if first < 0xFD:
        return first, offset

    size = {0xFD: 2, 0xFE: 4, 0xFF: 8}[first]
    if offset + size > len(data):
        raise ValueError("CompactSize runs past end of data")
    value = int.from_bytes(data[offset : offset + size], "little")
    minimum = {0xFD: 0xFD, 0xFE: 0x10000, 0xFF: 0x100000000}[first]
    if value < minimum:
        raise ValueError(f"Non-canonical CompactSize encoding of {value}")
    return value, offset + size


def compact_bytes(data: bytes) -> bytes:
    """Length-prefixed byte string."""
    return encode_compact_size(len(data)) + data


def blake2b_256(personalization: bytes, data: bytes) -> bytes:
    return hashlib.blake2b(data, digest_size=32, person=personalization).digest()


def hash160(data: bytes) -> bytes:
    """RIPEMD160(SHA256(data))"""
    h = hashlib.new("ripemd160")
    h.update(hashlib.sha256(data).digest())
    return h.digest()
