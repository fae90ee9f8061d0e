"""
Tests for the signature stage.
"""

from __future__ import annotations

import pytest
from coincurve import PrivateKey

from t2z.builder import propose_transaction
from t2z.errors import (
    ConsumedPcztError,
    InvalidInputIndexError,
    InvalidSignatureFormatError,
    SignatureIndexError,
    SignatureVerificationError,
)
from t2z.models import TransactionRequest, TransparentInput
from t2z.pczt import parse_pczt, serialize_pczt
from t2z.signer import SECP256K1_ORDER, append_signature, compact_to_der


class TestCompactToDer:
    """Tests for compact to DER conversion."""

    def test_matches_coincurve(self, private_key: PrivateKey) -> None:
        """Conversion reproduces the DER signature coincurve produces."""
        digest = bytes(range(32))
        compact = private_key.sign_recoverable(digest, hasher=None)[:64]
        assert compact_to_der(compact) == private_key.sign(digest, hasher=None)

    def test_high_bit_padding(self) -> None:
        """Integers with the top bit set gain a leading zero byte."""
        der = compact_to_der(b"\x80" + b"\x00" * 31 + b"\x00" * 31 + b"\x01")
        assert der[:4] == b"\x30\x26\x02\x21"
        assert der[4] == 0x00
        assert der[-3:] == b"\x02\x01\x01"

    def test_wrong_length(self) -> None:
        with pytest.raises(InvalidSignatureFormatError, match="64 bytes"):
            compact_to_der(b"\x01" * 63)

    def test_zero_r(self) -> None:
        with pytest.raises(InvalidSignatureFormatError, match="out of range"):
            compact_to_der(b"\x00" * 32 + b"\x01" * 32)

    def test_s_at_order(self) -> None:
        with pytest.raises(InvalidSignatureFormatError, match="out of range"):
            compact_to_der(b"\x01" * 32 + SECP256K1_ORDER.to_bytes(32, "big"))


class TestAppendSignature:
    """Tests for attaching signatures."""

    def test_valid_signature(
        self,
        funded_input: TransparentInput,
        transparent_request: TransactionRequest,
        private_key: PrivateKey,
        sign,
    ) -> None:
        pczt = propose_transaction([funded_input], transparent_request)
        signature = sign(pczt, 0, private_key)

        signed = append_signature(pczt, 0, signature)

        assert signed.signature_present(0)
        stored = signed.inputs[0].partial_signatures[funded_input.pubkey.hex()]
        assert stored[0] == 0x30
        assert stored[-1] == 0x01
        assert pczt.consumed

    def test_wrong_key(
        self,
        funded_input: TransparentInput,
        transparent_request: TransactionRequest,
        second_private_key: PrivateKey,
        sign,
    ) -> None:
        pczt = propose_transaction([funded_input], transparent_request)
        with pytest.raises(SignatureVerificationError, match="does not verify"):
            append_signature(pczt, 0, sign(pczt, 0, second_private_key))

    def test_signature_for_other_input(
        self,
        funded_input: TransparentInput,
        second_input: TransparentInput,
        transparent_request: TransactionRequest,
        private_key: PrivateKey,
        sign,
    ) -> None:
        """A signature is bound to the input index it was made for."""
        pczt = propose_transaction([funded_input, second_input], transparent_request)
        signature = sign(pczt, 1, private_key)
        with pytest.raises(SignatureVerificationError):
            append_signature(pczt, 0, signature)

    def test_index_out_of_range(
        self,
        funded_input: TransparentInput,
        transparent_request: TransactionRequest,
        private_key: PrivateKey,
        sign,
    ) -> None:
        """An out-of-range index leaves a checkpoint of the PCZT signable."""
        pczt = propose_transaction([funded_input], transparent_request)
        checkpoint = serialize_pczt(pczt)
        signature = sign(pczt, 0, private_key)
        with pytest.raises(SignatureIndexError) as exc_info:
            append_signature(pczt, 5, signature)
        assert isinstance(exc_info.value, InvalidInputIndexError)
        assert exc_info.value.stage == "signature"

        restored = parse_pczt(checkpoint)
        assert not restored.signature_present(0)
        signed = append_signature(restored, 0, signature)
        assert signed.signature_present(0)

    def test_failure_consumes(
        self, funded_input: TransparentInput, transparent_request: TransactionRequest
    ) -> None:
        """A rejected signature still invalidates the input PCZT."""
        pczt = propose_transaction([funded_input], transparent_request)
        with pytest.raises(InvalidSignatureFormatError):
            append_signature(pczt, 0, b"\x00" * 10)
        with pytest.raises(ConsumedPcztError):
            append_signature(pczt, 0, b"\x00" * 64)

    def test_sign_both_inputs(
        self,
        funded_input: TransparentInput,
        second_input: TransparentInput,
        transparent_request: TransactionRequest,
        private_key: PrivateKey,
        second_private_key: PrivateKey,
        sign,
    ) -> None:
        pczt = propose_transaction([funded_input, second_input], transparent_request)
        pczt = append_signature(pczt, 0, sign(pczt, 0, private_key))
        pczt = append_signature(pczt, 1, sign(pczt, 1, second_private_key))
        assert pczt.signature_present(0)
        assert pczt.signature_present(1)
