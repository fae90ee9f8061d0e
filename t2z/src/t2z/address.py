"""
Zcash address decoding and classification.

Supports:
- Transparent base58check addresses (t1/t3 mainnet, tm/t2 testnet)
- ZIP 320 TEX addresses (tex1..., textest1...)
- ZIP 316 unified addresses (u1..., utest1...) carrying an Orchard receiver
"""

from __future__ import annotations

import hashlib
from dataclasses import dataclass

import base58
from bech32 import CHARSET, bech32_hrp_expand, bech32_polymod, convertbits

from t2z.consensus import Network
from t2z.constants import ORCHARD_RECEIVER_LENGTH
from t2z.encoding import encode_compact_size, hash160, read_compact_size

# Two-byte base58check version prefixes
TRANSPARENT_PREFIXES: dict[Network, dict[str, bytes]] = {
    Network.MAINNET: {"p2pkh": bytes([0x1C, 0xB8]), "p2sh": bytes([0x1C, 0xBD])},
    Network.TESTNET: {"p2pkh": bytes([0x1D, 0x25]), "p2sh": bytes([0x1C, 0xBA])},
}

UNIFIED_HRP = {Network.MAINNET: "u", Network.TESTNET: "utest"}
TEX_HRP = {Network.MAINNET: "tex", Network.TESTNET: "textest"}

# ZIP 316 receiver typecodes
TYPECODE_P2PKH = 0x00
TYPECODE_P2SH = 0x01
TYPECODE_SAPLING = 0x02
TYPECODE_ORCHARD = 0x03

_RECEIVER_LENGTHS = {
    TYPECODE_P2PKH: 20,
    TYPECODE_P2SH: 20,
    TYPECODE_SAPLING: 43,
    TYPECODE_ORCHARD: ORCHARD_RECEIVER_LENGTH,
}

# BIP 350
BECH32M_CONST = 0x2BC830A3

F4JUMBLE_MIN_LENGTH = 48
F4JUMBLE_MAX_LENGTH = 4_194_368
_F4JUMBLE_HASH_LENGTH = 64


class AddressError(ValueError):
    """Raised when an address string cannot be decoded."""

    pass


@dataclass(frozen=True)
class Transparent:
    """A transparent destination, resolved to its scriptPubKey."""

    script_pubkey: bytes


@dataclass(frozen=True)
class ShieldedCapable:
    """A destination with an Orchard receiver (43 raw address bytes)."""

    receiver: bytes


@dataclass(frozen=True)
class Invalid:
    reason: str


Classification = Transparent | ShieldedCapable | Invalid


# Scripts


def p2pkh_script(pubkey_hash: bytes) -> bytes:
    """OP_DUP OP_HASH160 <20-byte-pubkeyhash> OP_EQUALVERIFY OP_CHECKSIG"""
    return bytes([0x76, 0xA9, 0x14]) + pubkey_hash + bytes([0x88, 0xAC])


def p2sh_script(script_hash: bytes) -> bytes:
    """OP_HASH160 <20-byte-scripthash> OP_EQUAL"""
    return bytes([0xA9, 0x14]) + script_hash + bytes([0x87])


def pubkey_to_p2pkh_script(pubkey: bytes) -> bytes:
    return p2pkh_script(hash160(pubkey))


# Bech32m without the BIP 173 90-character limit (unified addresses are longer)


def bech32m_decode(address: str) -> tuple[str, bytes]:
    """Decode a bech32m string into (hrp, payload bytes)."""
    if address.lower() != address and address.upper() != address:
        raise AddressError("Mixed-case bech32m string")
    if any(ord(c) < 33 or ord(c) > 126 for c in address):
        raise AddressError("Invalid character in bech32m string")

    address = address.lower()
    pos = address.rfind("1")
    if pos < 1 or pos + 7 > len(address):
        raise AddressError("Missing bech32m separator or checksum")

    hrp = address[:pos]
    try:
        data = [CHARSET.index(c) for c in address[pos + 1 :]]
    except ValueError as e:
        raise AddressError("Invalid bech32m data character") from e

    if bech32_polymod(bech32_hrp_expand(hrp) + data) != BECH32M_CONST:
        raise AddressError("Invalid bech32m checksum")

    payload = convertbits(data[:-6], 5, 8, False)
    if payload is None:
        raise AddressError("Invalid bech32m padding")
    return hrp, bytes(payload)


def bech32m_checksum(hrp: str, data: list[int]) -> list[int]:
    """BIP 350 checksum: the BIP 173 polymod with the bech32m constant."""
    polymod = bech32_polymod(bech32_hrp_expand(hrp) + data + [0] * 6) ^ BECH32M_CONST
    return [(polymod >> 5 * (5 - i)) & 31 for i in range(6)]


def bech32m_encode(hrp: str, payload: bytes) -> str:
    data = convertbits(payload, 8, 5)
    combined = data + bech32m_checksum(hrp, data)
    return hrp + "1" + "".join(CHARSET[d] for d in combined)


# F4Jumble (ZIP 316)


def _f4_h(round_index: int, data: bytes, length: int) -> bytes:
    personal = b"UA_F4Jumble_H" + bytes([round_index, 0, 0])
    return hashlib.blake2b(data, digest_size=length, person=personal).digest()


def _f4_g(round_index: int, data: bytes, length: int) -> bytes:
    blocks = -(-length // 64)
    out = b"".join(
        hashlib.blake2b(
            data,
            digest_size=64,
            person=b"UA_F4Jumble_G" + bytes([round_index]) + j.to_bytes(2, "little"),
        ).digest()
        for j in range(blocks)
    )
    return out[:length]


def _xor(a: bytes, b: bytes) -> bytes:
    return bytes(x ^ y for x, y in zip(a, b, strict=True))


def _f4_split(message: bytes) -> int:
    if not F4JUMBLE_MIN_LENGTH <= len(message) <= F4JUMBLE_MAX_LENGTH:
        raise AddressError(f"F4Jumble input length {len(message)} out of range")
    return min(_F4JUMBLE_HASH_LENGTH, len(message) // 2)


def f4jumble(message: bytes) -> bytes:
    left_len = _f4_split(message)
    right_len = len(message) - left_len
    a, b = message[:left_len], message[left_len:]
    x = _xor(b, _f4_g(0, a, right_len))
    y = _xor(a, _f4_h(0, x, left_len))
    d = _xor(x, _f4_g(1, y, right_len))
    c = _xor(y, _f4_h(1, d, left_len))
    return c + d


def f4jumble_inv(message: bytes) -> bytes:
    left_len = _f4_split(message)
    right_len = len(message) - left_len
    c, d = message[:left_len], message[left_len:]
    y = _xor(c, _f4_h(1, d, left_len))
    x = _xor(d, _f4_g(1, y, right_len))
    a = _xor(y, _f4_h(0, x, left_len))
    b = _xor(x, _f4_g(0, a, right_len))
    return a + b


# Unified addresses


def _hrp_padding(hrp: str) -> bytes:
    return hrp.encode("ascii").ljust(16, b"\x00")


def encode_unified_address(receivers: dict[int, bytes], network: Network) -> str:
    """Encode a unified address from {typecode: raw receiver bytes}."""
    hrp = UNIFIED_HRP[network]
    raw = b"".join(
        encode_compact_size(typecode) + encode_compact_size(len(value)) + value
        for typecode, value in sorted(receivers.items())
    )
    return bech32m_encode(hrp, f4jumble(raw + _hrp_padding(hrp)))


def decode_unified_address(address: str) -> tuple[Network, dict[int, bytes]]:
    """Decode a unified address into (network, {typecode: raw receiver bytes})."""
    hrp, jumbled = bech32m_decode(address)
    networks = {v: k for k, v in UNIFIED_HRP.items()}
    if hrp not in networks:
        raise AddressError(f"Not a unified address HRP: {hrp}")

    raw = f4jumble_inv(jumbled)
    if raw[-16:] != _hrp_padding(hrp):
        raise AddressError("Unified address padding does not match HRP")
    raw = raw[:-16]

    receivers: dict[int, bytes] = {}
    offset = 0
    last_typecode = -1
    while offset < len(raw):
        try:
            typecode, offset = read_compact_size(raw, offset)
            length, offset = read_compact_size(raw, offset)
        except ValueError as e:
            raise AddressError(f"Malformed unified address item: {e}") from e
        value = raw[offset : offset + length]
        if len(value) != length:
            raise AddressError("Unified address item runs past end of data")
        offset += length

        if typecode <= last_typecode:
            raise AddressError("Unified address items are not in ascending typecode order")
        expected = _RECEIVER_LENGTHS.get(typecode)
        if expected is not None and length != expected:
            raise AddressError(f"Receiver typecode {typecode} has length {length}")
        receivers[typecode] = value
        last_typecode = typecode

    if TYPECODE_P2PKH in receivers and TYPECODE_P2SH in receivers:
        raise AddressError("Unified address contains both P2PKH and P2SH receivers")
    if not set(receivers) - {TYPECODE_P2PKH, TYPECODE_P2SH}:
        raise AddressError("Unified address has no shielded receiver")

    return networks[hrp], receivers


# Transparent addresses


def encode_transparent_address(
    hash20: bytes, network: Network, kind: str = "p2pkh"
) -> str:
    if len(hash20) != 20:
        raise ValueError(f"Invalid hash length: {len(hash20)}")
    return base58.b58encode_check(TRANSPARENT_PREFIXES[network][kind] + hash20).decode("ascii")


def pubkey_to_transparent_address(pubkey: bytes, network: Network) -> str:
    return encode_transparent_address(hash160(pubkey), network)


def decode_transparent_address(address: str) -> tuple[Network, bytes]:
    """Decode a base58check transparent address into (network, scriptPubKey)."""
    try:
        decoded = base58.b58decode_check(address)
    except ValueError as e:
        raise AddressError(f"Invalid base58check address: {e}") from e

    if len(decoded) != 22:
        raise AddressError(f"Invalid transparent address payload length: {len(decoded)}")

    prefix, payload = decoded[:2], decoded[2:]
    for network, prefixes in TRANSPARENT_PREFIXES.items():
        if prefix == prefixes["p2pkh"]:
            return network, p2pkh_script(payload)
        if prefix == prefixes["p2sh"]:
            return network, p2sh_script(payload)

    raise AddressError(f"Unknown transparent address prefix: {prefix.hex()}")


def encode_tex_address(pubkey_hash: bytes, network: Network) -> str:
    return bech32m_encode(TEX_HRP[network], pubkey_hash)


def decode_tex_address(address: str) -> tuple[Network, bytes]:
    hrp, payload = bech32m_decode(address)
    networks = {v: k for k, v in TEX_HRP.items()}
    if hrp not in networks:
        raise AddressError(f"Not a TEX address HRP: {hrp}")
    if len(payload) != 20:
        raise AddressError(f"Invalid TEX payload length: {len(payload)}")
    return networks[hrp], p2pkh_script(payload)


def _decode(address: str) -> tuple[Network, Classification]:
    if "1" in address:
        hrp = address[: address.rfind("1")].lower()
        if hrp in UNIFIED_HRP.values():
            network, receivers = decode_unified_address(address)
            orchard = receivers.get(TYPECODE_ORCHARD)
            if orchard is None:
                return network, Invalid("Unified address does not contain an Orchard receiver")
            return network, ShieldedCapable(orchard)
        if hrp in TEX_HRP.values():
            network, script = decode_tex_address(address)
            return network, Transparent(script)

    network, script = decode_transparent_address(address)
    return network, Transparent(script)


def classify(address: str, network: Network) -> Classification:
    """
    Classify a destination address for the given network.

    Returns Transparent with the output script, ShieldedCapable with the raw
    Orchard receiver, or Invalid with the reason.
    """
    try:
        address_network, result = _decode(address.strip())
    except AddressError as e:
        return Invalid(str(e))

    if isinstance(result, Invalid):
        return result
    if address_network != network:
        return Invalid(f"Address is for {address_network.value}, expected {network.value}")
    return result
