"""
ZIP 244 signature digests for v5 transactions.

The transparent, header and Sapling digests follow ZIP 244. Orchard actions are
held in the PCZT as note plaintexts until the proving engine produces their
descriptions, so the Orchard digest commits to those records (recipient, value,
rseed and memo) plus the bundle flags, value balance and anchor.
"""

from __future__ import annotations

import struct

from loguru import logger

from t2z.constants import OVERWINTERED_FLAG, SIGHASH_ALL
from t2z.encoding import blake2b_256, compact_bytes
from t2z.errors import InvalidInputIndexError
from t2z.pczt import OrchardBundle, Pczt, PcztHeader, PcztInput, PcztOutput


def header_digest(header: PcztHeader) -> bytes:
    return blake2b_256(
        b"ZTxIdHeadersHash",
        struct.pack(
            "<IIIII",
            header.tx_version | OVERWINTERED_FLAG,
            header.version_group_id,
            header.consensus_branch_id,
            header.lock_time,
            header.expiry_height,
        ),
    )


def _prevout(inp: PcztInput) -> bytes:
    return inp.txid + struct.pack("<I", inp.vout)


def prevouts_digest(inputs: list[PcztInput]) -> bytes:
    return blake2b_256(b"ZTxIdPrevoutHash", b"".join(_prevout(inp) for inp in inputs))


def sequence_digest(inputs: list[PcztInput]) -> bytes:
    return blake2b_256(
        b"ZTxIdSequencHash", b"".join(struct.pack("<I", inp.sequence) for inp in inputs)
    )


def outputs_digest(outputs: list[PcztOutput]) -> bytes:
    return blake2b_256(
        b"ZTxIdOutputsHash",
        b"".join(struct.pack("<q", out.value) + compact_bytes(out.script_pubkey) for out in outputs),
    )


def amounts_digest(inputs: list[PcztInput]) -> bytes:
    return blake2b_256(b"ZTxTrAmountsHash", b"".join(struct.pack("<q", inp.value) for inp in inputs))


def scripts_digest(inputs: list[PcztInput]) -> bytes:
    return blake2b_256(
        b"ZTxTrScriptsHash", b"".join(compact_bytes(inp.script_pubkey) for inp in inputs)
    )


def txin_digest(inp: PcztInput | None) -> bytes:
    if inp is None:
        return blake2b_256(b"Zcash___TxInHash", b"")
    return blake2b_256(
        b"Zcash___TxInHash",
        _prevout(inp)
        + struct.pack("<q", inp.value)
        + compact_bytes(inp.script_pubkey)
        + struct.pack("<I", inp.sequence),
    )


def transparent_txid_digest(pczt: Pczt) -> bytes:
    if not pczt.inputs and not pczt.outputs:
        return blake2b_256(b"ZTxIdTranspaHash", b"")
    return blake2b_256(
        b"ZTxIdTranspaHash",
        prevouts_digest(pczt.inputs) + sequence_digest(pczt.inputs) + outputs_digest(pczt.outputs),
    )


def transparent_sig_digest(pczt: Pczt, index: int | None) -> bytes:
    if not pczt.inputs:
        return transparent_txid_digest(pczt)

    selected = pczt.inputs[index] if index is not None else None
    hash_type = selected.sighash_type if selected is not None else SIGHASH_ALL
    return blake2b_256(
        b"ZTxIdTranspaHash",
        bytes([hash_type])
        + prevouts_digest(pczt.inputs)
        + amounts_digest(pczt.inputs)
        + scripts_digest(pczt.inputs)
        + sequence_digest(pczt.inputs)
        + outputs_digest(pczt.outputs)
        + txin_digest(selected),
    )


def sapling_digest() -> bytes:
    # Sapling bundles are never built here
    return blake2b_256(b"ZTxIdSaplingHash", b"")


def orchard_digest(bundle: OrchardBundle) -> bytes:
    if not bundle.actions:
        return blake2b_256(b"ZTxIdOrchardHash", b"")

    actions_compact = blake2b_256(
        b"ZTxIdOrcActCHash",
        b"".join(a.recipient + struct.pack("<Q", a.value) + a.rseed for a in bundle.actions),
    )
    actions_memos = blake2b_256(b"ZTxIdOrcActMHash", b"".join(a.memo for a in bundle.actions))
    return blake2b_256(
        b"ZTxIdOrchardHash",
        actions_compact
        + actions_memos
        + bytes([bundle.flags])
        + struct.pack("<q", bundle.value_balance)
        + bundle.anchor,
    )


def signature_digest(pczt: Pczt, index: int | None) -> bytes:
    personalization = b"ZcashTxHash_" + struct.pack("<I", pczt.header.consensus_branch_id)
    return blake2b_256(
        personalization,
        header_digest(pczt.header)
        + transparent_sig_digest(pczt, index)
        + sapling_digest()
        + orchard_digest(pczt.orchard),
    )


def get_sighash(pczt: Pczt, input_index: int) -> bytes:
    """
    Get the signature hash for a transparent input.

    The PCZT is not consumed.

    Raises:
        InvalidInputIndexError: ``input_index`` is not a valid input position
    """
    pczt.ensure_live()
    if not 0 <= input_index < len(pczt.inputs):
        raise InvalidInputIndexError(input_index, len(pczt.inputs))

    digest = signature_digest(pczt, input_index)
    logger.debug(f"Sighash for input {input_index}: {digest.hex()}")
    return digest


def shielded_sighash(pczt: Pczt) -> bytes:
    """Digest authorized by Orchard signatures (no transparent input selected)."""
    pczt.ensure_live()
    return signature_digest(pczt, None)
