"""
End-to-end tests running the whole PCZT pipeline in process.
"""

from __future__ import annotations

from coincurve import PrivateKey

from t2z import (
    Payment,
    TransactionRequest,
    TransparentInput,
    TransparentOutput,
    append_signature,
    combine,
    finalize_and_extract,
    get_sighash,
    parse_pczt,
    propose_transaction,
    prove_transaction,
    serialize_pczt,
    serialize_transparent_inputs,
    verify_before_signing,
)
from t2z.prover import Prover


def _sign(pczt, index: int, key: PrivateKey) -> bytes:
    return key.sign_recoverable(get_sighash(pczt, index), hasher=None)[:64]


class TestTransparentPayment:
    """One 1 ZEC input paying 0.001 ZEC to a transparent address."""

    def test_single_payment(
        self,
        funded_input: TransparentInput,
        recipient_address: str,
        recipient_script: bytes,
        private_key: PrivateKey,
        prover: Prover,
    ) -> None:
        request = TransactionRequest(payments=[Payment(address=recipient_address, amount=100_000)])
        pczt = propose_transaction(serialize_transparent_inputs([funded_input]), request)

        assert [(o.script_pubkey, o.value) for o in pczt.outputs] == [
            (recipient_script, 100_000),
            (funded_input.script_pubkey, 99_890_000),
        ]

        pczt = prove_transaction(pczt, prover)
        change = [TransparentOutput(value=99_890_000, script_pubkey=funded_input.script_pubkey)]
        verify_before_signing(pczt, request, change)

        signed = append_signature(pczt, 0, _sign(pczt, 0, private_key))
        tx = finalize_and_extract(signed)
        assert len(tx) > 0

    def test_serialized_handoff_and_combine(
        self,
        funded_input: TransparentInput,
        recipient_address: str,
        private_key: PrivateKey,
    ) -> None:
        """A PCZT survives serialization between roles and combines with itself."""
        request = TransactionRequest(payments=[Payment(address=recipient_address, amount=100_000)])
        pczt = propose_transaction([funded_input], request)

        signer_copy = parse_pczt(serialize_pczt(pczt))
        signed = append_signature(signer_copy, 0, _sign(signer_copy, 0, private_key))

        restored = parse_pczt(serialize_pczt(signed))
        combined = combine([restored])
        tx_a = finalize_and_extract(combined)

        other = parse_pczt(serialize_pczt(pczt))
        tx_b = finalize_and_extract(append_signature(other, 0, _sign(other, 0, private_key)))

        assert tx_a == tx_b


class TestShieldedPayment:
    """Transparent input paying an Orchard recipient."""

    def test_mixed_payments_two_signers(
        self,
        funded_input: TransparentInput,
        second_input: TransparentInput,
        recipient_address: str,
        orchard_address: str,
        private_key: PrivateKey,
        second_private_key: PrivateKey,
        prover: Prover,
    ) -> None:
        request = TransactionRequest(
            payments=[
                Payment(address=recipient_address, amount=1_000_000),
                Payment(address=orchard_address, amount=2_000_000, memo=b"for the coffee"),
            ]
        )
        request.set_target_height(3_600_000)

        pczt = propose_transaction([funded_input, second_input], request)
        assert pczt.header.expiry_height == 3_600_040

        proven = prove_transaction(pczt, prover)
        verify_before_signing(proven, request, [])

        data = serialize_pczt(proven)
        copy_a, copy_b = parse_pczt(data), parse_pczt(data)
        signed_a = append_signature(copy_a, 0, _sign(copy_a, 0, private_key))
        signed_b = append_signature(copy_b, 1, _sign(copy_b, 1, second_private_key))

        tx = finalize_and_extract(combine([signed_a, signed_b]))

        # 2 inputs, 2 transparent outputs, 1 Orchard action: 5000 * (2 + 2)
        fee = 150_000_000 - 3_000_000 - proven.outputs[-1].value
        assert fee == 20_000
        assert proven.orchard.authorization.binding_sig in tx
