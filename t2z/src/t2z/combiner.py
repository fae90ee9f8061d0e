"""
Combiner: merge PCZTs that were signed or proven in parallel.

All PCZTs must describe the same transaction. Their signatures and Orchard
authorization are unioned; a field set to different values in two PCZTs is a
conflict.
"""

from __future__ import annotations

from typing import TypeVar

from loguru import logger

from t2z.errors import ConsumedPcztError, DataMismatchError, NoPcztsError
from t2z.pczt import Pczt

T = TypeVar("T")


def _structure(pczt: Pczt) -> dict:
    """Everything but signatures, finalized scripts and authorization."""
    return pczt.model_dump(
        exclude={
            "inputs": {"__all__": {"partial_signatures", "script_sig"}},
            "orchard": {"authorization"},
        }
    )


def _merge_optional(current: T | None, incoming: T | None, what: str) -> T | None:
    if incoming is None:
        return current
    if current is not None and current != incoming:
        raise DataMismatchError(f"Conflicting {what}")
    return incoming


def combine(pczts: list[Pczt]) -> Pczt:
    """
    Combine PCZTs describing the same transaction.

    Consumes every PCZT in ``pczts`` whatever the outcome.

    Raises:
        NoPcztsError: ``pczts`` is empty
        ConsumedPcztError: Some of ``pczts`` were consumed before this call
        DataMismatchError: The PCZTs differ in structure or carry conflicting
            signatures or authorizations
    """
    if not pczts:
        raise NoPcztsError("No PCZTs to combine")

    # Consume every live PCZT before reporting any that were already consumed
    copies: list[Pczt] = []
    stale: list[int] = []
    for n, pczt in enumerate(pczts):
        if pczt.consumed:
            stale.append(n)
        else:
            copies.append(pczt.take())
    if stale:
        raise ConsumedPcztError(f"PCZTs {stale} were already consumed")
    if len(copies) == 1:
        return copies[0]

    merged = copies[0]
    reference = _structure(merged)

    for n, other in enumerate(copies[1:], start=1):
        if _structure(other) != reference:
            raise DataMismatchError(f"PCZT {n} describes a different transaction")

        for i, (target, source) in enumerate(zip(merged.inputs, other.inputs)):
            for pubkey_hex, sig in source.partial_signatures.items():
                existing = target.partial_signatures.get(pubkey_hex)
                if existing is not None and existing != sig:
                    raise DataMismatchError(f"Conflicting signatures for input {i} key {pubkey_hex}")
                target.partial_signatures[pubkey_hex] = sig
            target.script_sig = _merge_optional(
                target.script_sig, source.script_sig, f"scriptSig for input {i}"
            )

        merged.orchard.authorization = _merge_optional(
            merged.orchard.authorization, other.orchard.authorization, "Orchard authorization"
        )

    logger.info(f"Combined {len(copies)} PCZTs")
    return merged
