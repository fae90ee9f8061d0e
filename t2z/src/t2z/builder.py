"""
Proposal builder: the Creator, Constructor and IO Finalizer roles.

Builds a PCZT from:
- The transparent coins to spend (in the order given)
- The payments of a transaction request
- An optional transparent change address
"""

from __future__ import annotations

import secrets

from loguru import logger

from t2z.address import (
    Invalid,
    ShieldedCapable,
    Transparent,
    classify,
    pubkey_to_p2pkh_script,
)
from t2z.consensus import Network, select_parameters
from t2z.constants import EMPTY_MEMO, MAX_MONEY, MEMO_LENGTH, ORCHARD_RSEED_LENGTH
from t2z.errors import (
    InvalidAddressError,
    InvalidRequestError,
    PcztCreationError,
)
from t2z.fees import calculate_fee
from t2z.inputs import parse_transparent_inputs
from t2z.models import TransactionRequest, TransparentInput
from t2z.pczt import OrchardAction, OrchardBundle, Pczt, PcztHeader, PcztInput, PcztOutput


def encode_memo(memo: bytes | None) -> bytes:
    """ZIP 302 memo field: 0xF6 for no memo, otherwise zero-padded to 512 bytes."""
    if memo is None:
        return EMPTY_MEMO
    if len(memo) > MEMO_LENGTH:
        raise InvalidRequestError(f"Memo is {len(memo)} bytes, maximum is {MEMO_LENGTH}")
    return memo.ljust(MEMO_LENGTH, b"\x00")


def _resolve_change_script(change_address: str | None, network: Network) -> bytes | None:
    if change_address is None:
        return None
    result = classify(change_address, network)
    if not isinstance(result, Transparent):
        reason = result.reason if isinstance(result, Invalid) else "address is shielded"
        raise InvalidAddressError(f"Change address must be transparent: {change_address} ({reason})")
    return result.script_pubkey


def _add_inputs(inputs: list[TransparentInput]) -> list[PcztInput]:
    seen: set[tuple[bytes, int]] = set()
    pczt_inputs: list[PcztInput] = []

    for i, inp in enumerate(inputs):
        if inp.outpoint in seen:
            raise PcztCreationError(f"Duplicate input {i}: {inp.txid.hex()}:{inp.vout}")
        seen.add(inp.outpoint)

        if inp.amount > MAX_MONEY:
            raise PcztCreationError(f"Input {i} amount {inp.amount} exceeds MAX_MONEY")

        if inp.script_pubkey != pubkey_to_p2pkh_script(inp.pubkey):
            raise PcztCreationError(
                f"Input {i} scriptPubKey is not the P2PKH script of its public key"
            )

        pczt_inputs.append(
            PcztInput(
                txid=inp.txid,
                vout=inp.vout,
                value=inp.amount,
                script_pubkey=inp.script_pubkey,
                pubkey=inp.pubkey,
            )
        )

    return pczt_inputs


def propose_transaction(
    inputs: list[TransparentInput] | bytes,
    request: TransactionRequest,
    change_address: str | None = None,
) -> Pczt:
    """
    Propose a transaction spending ``inputs`` to the payments of ``request``.

    Args:
        inputs: Coins to spend, or their binary encoding
        request: Payments plus network and target height
        change_address: Transparent change destination; defaults to the P2PKH
            address of the first input's public key

    Returns:
        A new PCZT with inputs, outputs, Orchard actions and change in place

    Raises:
        InvalidRequestError: No payments, bad amounts/memos or target height
        InvalidAddressError: A payment or change address cannot be used
        PcztCreationError: Duplicate inputs, zero-value outputs, mismatched input
            scripts or insufficient funds
    """
    if not request.payments:
        raise InvalidRequestError("No payments provided")

    network = Network.from_is_main(request.network_is_main)
    try:
        params = select_parameters(network, request.target_height)
    except ValueError as e:
        raise InvalidRequestError(str(e)) from e

    if isinstance(inputs, bytes | bytearray):
        inputs = parse_transparent_inputs(bytes(inputs))

    change_script = _resolve_change_script(change_address, network)
    pczt_inputs = _add_inputs(inputs)

    outputs: list[PcztOutput] = []
    actions: list[OrchardAction] = []

    for i, payment in enumerate(request.payments):
        if payment.amount > MAX_MONEY:
            raise InvalidRequestError(f"Payment {i} amount {payment.amount} exceeds MAX_MONEY")
        if payment.amount == 0:
            raise PcztCreationError(f"Payment {i} is a zero-value output")

        result = classify(payment.address, network)
        if isinstance(result, Invalid):
            raise InvalidAddressError(f"{payment.address}: {result.reason}")

        if isinstance(result, Transparent):
            if payment.memo is not None:
                raise InvalidRequestError(f"Payment {i} has a memo but a transparent recipient")
            outputs.append(PcztOutput(value=payment.amount, script_pubkey=result.script_pubkey))
        elif isinstance(result, ShieldedCapable):
            # No outgoing viewing key: the sender cannot recover this output later
            actions.append(
                OrchardAction(
                    recipient=result.receiver,
                    value=payment.amount,
                    memo=encode_memo(payment.memo),
                    rseed=secrets.token_bytes(ORCHARD_RSEED_LENGTH),
                )
            )

    total_in = sum(inp.value for inp in pczt_inputs)
    total_out = request.total_amount()

    estimated_fee = calculate_fee(len(pczt_inputs), len(outputs) + 1, len(actions))
    logger.debug(
        f"Proposal shape: {len(pczt_inputs)} inputs, {len(outputs)} transparent outputs, "
        f"{len(actions)} Orchard outputs; total_in={total_in} total_out={total_out} "
        f"estimated_fee={estimated_fee}"
    )

    if total_in > total_out + estimated_fee:
        if change_script is None:
            change_script = pubkey_to_p2pkh_script(pczt_inputs[0].pubkey)
        change_value = total_in - total_out - estimated_fee
        outputs.append(PcztOutput(value=change_value, script_pubkey=change_script))
        fee = estimated_fee
        logger.debug(f"Change output: {change_value} zatoshis")
    else:
        required_fee = calculate_fee(len(pczt_inputs), len(outputs), len(actions))
        fee = total_in - total_out
        if fee < required_fee:
            raise PcztCreationError(
                f"Insufficient funds: inputs {total_in} < outputs {total_out} + fee {required_fee}"
            )
        if fee != required_fee:
            logger.warning(
                f"No change output; paying {fee} zatoshis fee instead of {required_fee}"
            )

    pczt = Pczt(
        header=PcztHeader(
            consensus_branch_id=params.branch_id,
            expiry_height=params.expiry_height,
            network=network,
        ),
        inputs=pczt_inputs,
        outputs=outputs,
        orchard=OrchardBundle(actions=actions),
    )

    logger.info(
        f"Proposed {params.upgrade.name} transaction on {network.value}: "
        f"{len(pczt.inputs)} inputs, {len(pczt.outputs)} transparent outputs, "
        f"{pczt.num_actions} Orchard actions, fee {fee}"
    )
    return pczt
