"""
Spend Finalizer and Transaction Extractor roles.

Turns a fully signed (and, with Orchard actions, proven) PCZT into the raw
bytes of a v5 transaction ready for broadcast.

v5 transaction layout (ZIP 225):
- header: version | fOverwintered, versionGroupId, consensusBranchId,
  lock_time, nExpiryHeight
- transparent: vin, vout
- sapling: empty spend and output counts
- orchard: vActionsOrchard, flags, valueBalance, anchor, proofs,
  spend authorization signatures, binding signature
"""

from __future__ import annotations

import struct

from coincurve import PublicKey
from loguru import logger

from t2z.constants import OVERWINTERED_FLAG
from t2z.encoding import compact_bytes, encode_compact_size
from t2z.errors import (
    SerializationError,
    SpendFinalizationError,
    TransactionExtractionError,
)
from t2z.pczt import OrchardBundle, Pczt, PcztInput, PcztOutput
from t2z.prover import check_authorization
from t2z.sighash import signature_digest

OP_PUSHDATA1 = 0x4C


def push_data(data: bytes) -> bytes:
    """Minimal script push for data shorter than 256 bytes."""
    if len(data) < OP_PUSHDATA1:
        return bytes([len(data)]) + data
    if len(data) <= 0xFF:
        return bytes([OP_PUSHDATA1, len(data)]) + data
    raise ValueError(f"Push of {len(data)} bytes is not supported")


def finalize_spends(pczt: Pczt) -> None:
    """
    Build the scriptSig of every transparent input in place.

    Raises:
        SpendFinalizationError: An input has no signature for its public key,
            or the stored signature does not verify
    """
    for i, inp in enumerate(pczt.inputs):
        key = inp.pubkey.hex()
        sig = inp.partial_signatures.get(key)
        if sig is None:
            raise SpendFinalizationError(f"Input {i} has no signature for pubkey {key}")

        sighash = signature_digest(pczt, i)
        try:
            valid = PublicKey(inp.pubkey).verify(sig[:-1], sighash, hasher=None)
        except ValueError as e:
            raise SpendFinalizationError(f"Input {i} signature is malformed: {e}") from e
        if not valid:
            raise SpendFinalizationError(f"Input {i} signature does not verify")

        inp.script_sig = push_data(sig) + push_data(inp.pubkey)

    logger.debug(f"Finalized {len(pczt.inputs)} transparent spends")


def _check_extractable(pczt: Pczt) -> None:
    bundle = pczt.orchard
    if bundle.actions:
        if bundle.authorization is None:
            raise TransactionExtractionError("Orchard actions have no proof attached")
        try:
            check_authorization(bundle.authorization, len(bundle.actions))
        except ValueError as e:
            raise TransactionExtractionError(f"Malformed Orchard authorization: {e}") from e

    total_in = pczt.total_input_value()
    total_out = pczt.total_transparent_output_value() - bundle.value_balance
    if total_in < total_out:
        raise TransactionExtractionError(
            f"Inputs {total_in} do not cover outputs {total_out}"
        )


def _serialize_input(inp: PcztInput) -> bytes:
    return (
        inp.txid
        + struct.pack("<I", inp.vout)
        + compact_bytes(inp.script_sig or b"")
        + struct.pack("<I", inp.sequence)
    )


def _serialize_output(out: PcztOutput) -> bytes:
    return struct.pack("<q", out.value) + compact_bytes(out.script_pubkey)


def _serialize_orchard(bundle: OrchardBundle) -> bytes:
    if not bundle.actions:
        return encode_compact_size(0)

    auth = bundle.authorization
    if auth is None:
        raise TransactionExtractionError("Orchard actions have no proof attached")
    parts = [encode_compact_size(len(bundle.actions))]
    parts.extend(auth.action_descriptions)
    parts.append(bytes([bundle.flags]))
    parts.append(struct.pack("<q", bundle.value_balance))
    parts.append(bundle.anchor)
    parts.append(compact_bytes(auth.proof))
    parts.extend(auth.spend_auth_sigs)
    parts.append(auth.binding_sig)
    return b"".join(parts)


def serialize_transaction(pczt: Pczt) -> bytes:
    """
    Encode a finalized PCZT as a v5 transaction.

    Raises:
        SerializationError: A field does not fit its encoding
        TransactionExtractionError: Orchard actions have no authorization
    """
    header = pczt.header
    try:
        parts = [
            struct.pack(
                "<IIIII",
                header.tx_version | OVERWINTERED_FLAG,
                header.version_group_id,
                header.consensus_branch_id,
                header.lock_time,
                header.expiry_height,
            ),
            encode_compact_size(len(pczt.inputs)),
            *(_serialize_input(inp) for inp in pczt.inputs),
            encode_compact_size(len(pczt.outputs)),
            *(_serialize_output(out) for out in pczt.outputs),
            # No Sapling spends or outputs
            encode_compact_size(0),
            encode_compact_size(0),
            _serialize_orchard(pczt.orchard),
        ]
    except (struct.error, OverflowError, ValueError) as e:
        raise SerializationError(f"Failed to serialize transaction: {e}") from e
    return b"".join(parts)


def finalize_and_extract(pczt: Pczt) -> bytes:
    """
    Finalize transparent spends and extract the raw transaction.

    Consumes ``pczt`` whatever the outcome.

    Raises:
        SpendFinalizationError: An input is unsigned or its signature is invalid
        TransactionExtractionError: Orchard actions are unproven, or inputs do
            not cover outputs
        SerializationError: The transaction cannot be encoded
    """
    working = pczt.take()
    finalize_spends(working)
    _check_extractable(working)
    tx_bytes = serialize_transaction(working)
    logger.info(f"Extracted transaction: {len(tx_bytes)} bytes")
    return tx_bytes
