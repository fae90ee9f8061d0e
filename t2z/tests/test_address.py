"""
Tests for address decoding and classification.
"""

from __future__ import annotations

import pytest

from t2z.address import (
    TYPECODE_ORCHARD,
    TYPECODE_P2PKH,
    TYPECODE_SAPLING,
    AddressError,
    Invalid,
    ShieldedCapable,
    Transparent,
    bech32m_decode,
    bech32m_encode,
    classify,
    decode_transparent_address,
    decode_unified_address,
    encode_tex_address,
    encode_transparent_address,
    encode_unified_address,
    f4jumble,
    f4jumble_inv,
    p2pkh_script,
    p2sh_script,
)
from t2z.consensus import Network

# Orchard-only mainnet unified address
MAINNET_ORCHARD_UA = (
    "u1eq7cm60un363n2sa862w4t5pq56tl5x0d7wqkzhhva0sxue7kqw85haa6w6xsz8n8ujmcpkzsza8k"
    "nwgglau443s7ljdgu897yrvyhhz"
)
TESTNET_P2PKH = "tm9iMLAuYMzJ6jtFLcA7rzUmfreGuKvr7Ma"


class TestScripts:
    """Tests for output script templates."""

    def test_p2pkh(self) -> None:
        script = p2pkh_script(b"\x01" * 20)
        assert script == bytes.fromhex("76a914" + "01" * 20 + "88ac")

    def test_p2sh(self) -> None:
        script = p2sh_script(b"\x02" * 20)
        assert script == bytes.fromhex("a914" + "02" * 20 + "87")


class TestTransparentAddress:
    """Tests for base58check transparent addresses."""

    def test_decode_known_testnet_address(self) -> None:
        """A real testnet t-address decodes to a P2PKH script."""
        network, script = decode_transparent_address(TESTNET_P2PKH)
        assert network == Network.TESTNET
        assert len(script) == 25
        assert script[:3] == b"\x76\xa9\x14"

    def test_prefixes(self) -> None:
        """Encoded addresses carry the familiar leading characters."""
        h = b"\x07" * 20
        assert encode_transparent_address(h, Network.MAINNET).startswith("t1")
        assert encode_transparent_address(h, Network.MAINNET, "p2sh").startswith("t3")
        assert encode_transparent_address(h, Network.TESTNET).startswith("tm")
        assert encode_transparent_address(h, Network.TESTNET, "p2sh").startswith("t2")

    def test_p2sh_decodes_to_p2sh_script(self) -> None:
        address = encode_transparent_address(b"\x09" * 20, Network.MAINNET, "p2sh")
        network, script = decode_transparent_address(address)
        assert network == Network.MAINNET
        assert script == p2sh_script(b"\x09" * 20)

    def test_bad_checksum(self) -> None:
        corrupted = TESTNET_P2PKH[:-1] + ("b" if TESTNET_P2PKH[-1] != "b" else "c")
        with pytest.raises(AddressError):
            decode_transparent_address(corrupted)

    def test_bitcoin_address_rejected(self) -> None:
        """A one-byte-prefix Bitcoin address is not a Zcash address."""
        with pytest.raises(AddressError):
            decode_transparent_address("1BvBMSEYstWetqTFn5Au4m4GFg7xJaNVN2")


class TestF4Jumble:
    """Tests for the ZIP 316 F4Jumble permutation."""

    def test_inverse(self) -> None:
        for length in (48, 61, 128, 200):
            message = bytes(i % 251 for i in range(length))
            jumbled = f4jumble(message)
            assert jumbled != message
            assert f4jumble_inv(jumbled) == message

    def test_short_input_rejected(self) -> None:
        with pytest.raises(AddressError, match="out of range"):
            f4jumble(b"\x00" * 47)


class TestBech32m:
    """Tests for bech32m without the length limit."""

    def test_bip350_vector(self) -> None:
        assert bech32m_encode("a", b"") == "a1lqfn3a"
        assert bech32m_decode("A1LQFN3A") == ("a", b"")

    def test_bech32_checksum_rejected(self) -> None:
        """A valid BIP 173 (bech32) string is not a valid bech32m string."""
        with pytest.raises(AddressError, match="checksum"):
            bech32m_decode("a12uel5l")

    def test_long_payload(self) -> None:
        """Payloads beyond the 90-character BIP 173 limit encode and decode."""
        payload = bytes(range(100))
        encoded = bech32m_encode("utest", payload)
        assert len(encoded) > 90
        assert bech32m_decode(encoded) == ("utest", payload)

    def test_uppercase_accepted(self) -> None:
        encoded = bech32m_encode("tex", b"\x01" * 20)
        assert bech32m_decode(encoded.upper()) == ("tex", b"\x01" * 20)

    def test_mixed_case_rejected(self) -> None:
        encoded = bech32m_encode("tex", b"\x01" * 20)
        with pytest.raises(AddressError, match="Mixed-case"):
            bech32m_decode(encoded[:5] + encoded[5:].upper())

    def test_bad_checksum(self) -> None:
        encoded = bech32m_encode("tex", b"\x01" * 20)
        last = "q" if encoded[-1] != "q" else "p"
        with pytest.raises(AddressError, match="checksum"):
            bech32m_decode(encoded[:-1] + last)


class TestUnifiedAddress:
    """Tests for ZIP 316 unified addresses."""

    def test_decode_known_mainnet_address(self) -> None:
        """A real Orchard-only mainnet UA yields a 43-byte Orchard receiver."""
        network, receivers = decode_unified_address(MAINNET_ORCHARD_UA)
        assert network == Network.MAINNET
        assert list(receivers) == [TYPECODE_ORCHARD]
        assert len(receivers[TYPECODE_ORCHARD]) == 43

    def test_encode_decode_multiple_receivers(self) -> None:
        receivers = {TYPECODE_P2PKH: b"\x01" * 20, TYPECODE_ORCHARD: b"\x03" * 43}
        address = encode_unified_address(receivers, Network.TESTNET)
        assert address.startswith("utest1")
        assert decode_unified_address(address) == (Network.TESTNET, receivers)

    def test_padding_bound_to_hrp(self) -> None:
        """Re-labelling a testnet UA as mainnet breaks the HRP padding."""
        raw = b"\x03\x2b" + b"\x03" * 43 + b"utest".ljust(16, b"\x00")
        relabelled = bech32m_encode("u", f4jumble(raw))
        with pytest.raises(AddressError, match="padding"):
            decode_unified_address(relabelled)

    def test_wrong_receiver_length(self) -> None:
        address = encode_unified_address({TYPECODE_ORCHARD: b"\x03" * 42}, Network.MAINNET)
        with pytest.raises(AddressError, match="length"):
            decode_unified_address(address)


class TestClassify:
    """Tests for destination classification."""

    def test_transparent(self) -> None:
        result = classify(TESTNET_P2PKH, Network.TESTNET)
        assert isinstance(result, Transparent)
        assert len(result.script_pubkey) == 25

    def test_orchard_unified_address(self, orchard_address: str, orchard_receiver: bytes) -> None:
        result = classify(orchard_address, Network.TESTNET)
        assert result == ShieldedCapable(orchard_receiver)

    def test_mainnet_unified_address(self) -> None:
        assert isinstance(classify(MAINNET_ORCHARD_UA, Network.MAINNET), ShieldedCapable)

    def test_sapling_only_ua_is_invalid(self) -> None:
        """Only Orchard receivers can be paid."""
        address = encode_unified_address({TYPECODE_SAPLING: b"\x02" * 43}, Network.TESTNET)
        result = classify(address, Network.TESTNET)
        assert isinstance(result, Invalid)
        assert "Orchard" in result.reason

    def test_tex_address(self) -> None:
        """TEX addresses pay the P2PKH script of their hash."""
        address = encode_tex_address(b"\x04" * 20, Network.TESTNET)
        assert address.startswith("textest1")
        assert classify(address, Network.TESTNET) == Transparent(p2pkh_script(b"\x04" * 20))

    def test_network_mismatch(self, orchard_address: str) -> None:
        result = classify(TESTNET_P2PKH, Network.MAINNET)
        assert isinstance(result, Invalid)
        assert "testnet" in result.reason

        assert isinstance(classify(orchard_address, Network.MAINNET), Invalid)

    def test_garbage(self) -> None:
        assert isinstance(classify("not-an-address", Network.TESTNET), Invalid)
        assert isinstance(classify("", Network.TESTNET), Invalid)
