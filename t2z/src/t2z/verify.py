"""
Pre-signature verification of a PCZT against the request it should fulfil.

A signer that did not build the PCZT itself must run this before signing: it
checks that the observable outputs pay what was requested and that any change
goes where the signer expects.

Verification can only observe transparent outputs and the number of Orchard
actions. Orchard values and recipients are hidden once placed, so a shielded
payment is only checked for presence.

Known limitation: with no expected change declared, the output count is only
bounded from below, so an extra output that does not displace a requested
payment is not detected.
"""

from __future__ import annotations

from collections import Counter

from loguru import logger

from t2z.address import Invalid, ShieldedCapable, Transparent, classify
from t2z.consensus import Network
from t2z.constants import VERIFY_FEE_TOLERANCE_PERCENT
from t2z.errors import ChangeMismatchError, InvalidFeeError, OutputMismatchError
from t2z.models import TransactionRequest, TransparentOutput
from t2z.pczt import Pczt


def verify_before_signing(
    pczt: Pczt,
    request: TransactionRequest,
    expected_change: list[TransparentOutput],
) -> None:
    """
    Verify a PCZT's outputs before signing. The PCZT is not consumed.

    Args:
        pczt: The PCZT to check
        request: The transaction request the PCZT was proposed from
        expected_change: Change outputs the signer expects, matched exactly

    Raises:
        ChangeMismatchError: Expected change outputs are missing
        OutputMismatchError: Requested payments are missing or the output count
            does not fit the request
        InvalidFeeError: Transparent outputs fall short of the requested total
    """
    pczt.ensure_live()
    network = Network.from_is_main(request.network_is_main)
    num_payments = len(request.payments)
    num_actions = pczt.num_actions

    # Split outputs into change and payments, each expected change entry
    # claiming at most one output
    remaining_change = Counter((c.script_pubkey, c.value) for c in expected_change)
    payment_outputs: Counter[tuple[bytes, int]] = Counter()
    change_matches = 0
    for output in pczt.outputs:
        key = (output.script_pubkey, output.value)
        if remaining_change[key] > 0:
            remaining_change[key] -= 1
            change_matches += 1
        else:
            payment_outputs[key] += 1

    if change_matches != len(expected_change):
        raise ChangeMismatchError(
            f"Found {change_matches} of {len(expected_change)} expected change outputs"
        )

    total_outputs = sum(payment_outputs.values()) + num_actions
    if expected_change and total_outputs != num_payments:
        raise OutputMismatchError(
            f"Expected {num_payments} payment outputs but found {total_outputs}"
        )
    if not expected_change and total_outputs < num_payments:
        raise OutputMismatchError(
            f"Expected at least {num_payments} outputs but found {total_outputs}"
        )

    has_shielded_payment = False
    for i, payment in enumerate(request.payments):
        result = classify(payment.address, network)
        if isinstance(result, Invalid):
            raise OutputMismatchError(f"Payment {i} address is invalid: {result.reason}")
        if isinstance(result, ShieldedCapable):
            has_shielded_payment = True
        elif isinstance(result, Transparent):
            key = (result.script_pubkey, payment.amount)
            if payment_outputs[key] == 0:
                raise OutputMismatchError(
                    f"Payment {i} of {payment.amount} to {payment.address} has no matching output"
                )
            payment_outputs[key] -= 1

    if has_shielded_payment and num_actions == 0:
        raise OutputMismatchError("Request has shielded payments but the PCZT has no Orchard actions")

    if num_actions == 0:
        requested_total = request.total_amount()
        observed_total = pczt.total_transparent_output_value()
        tolerance = requested_total * VERIFY_FEE_TOLERANCE_PERCENT // 100
        if requested_total > observed_total + tolerance:
            raise InvalidFeeError(
                f"Transparent outputs total {observed_total} is below requested {requested_total}"
            )

    logger.info(
        f"PCZT verified: {num_payments} payments, {len(expected_change)} change outputs, "
        f"{num_actions} Orchard actions"
    )
