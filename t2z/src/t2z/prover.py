"""
Proof stage: attaches Orchard proofs using an injected proving engine.

The proving key is expensive to build, so a Prover builds it lazily, at most
once, and reuses it for every later PCZT. Construct one Prover at startup and
pass it to whichever component runs this stage.
"""

from __future__ import annotations

import threading
from typing import Any, Protocol

from loguru import logger

from t2z.constants import ORCHARD_ACTION_DESCRIPTION_LENGTH, ORCHARD_SIGNATURE_LENGTH
from t2z.errors import OrchardProofError
from t2z.pczt import OrchardAuthorization, OrchardBundle, Pczt
from t2z.sighash import shielded_sighash


class ProvingEngine(Protocol):
    """External Orchard proving engine."""

    def build_proving_key(self) -> Any:
        """Build the Orchard circuit proving key (slow, called at most once per Prover)."""
        ...

    def create_proof(
        self, proving_key: Any, bundle: OrchardBundle, sighash: bytes
    ) -> OrchardAuthorization:
        """Prove the bundle's actions and authorize them against ``sighash``."""
        ...


def check_authorization(authorization: OrchardAuthorization, num_actions: int) -> None:
    """
    Check the shape of prover output for a bundle with ``num_actions`` actions.

    Raises:
        ValueError: Describing the first malformed field
    """
    if not authorization.proof:
        raise ValueError("empty proof")
    if len(authorization.action_descriptions) != num_actions:
        raise ValueError(
            f"{len(authorization.action_descriptions)} action descriptions for {num_actions} actions"
        )
    for i, description in enumerate(authorization.action_descriptions):
        if len(description) != ORCHARD_ACTION_DESCRIPTION_LENGTH:
            raise ValueError(f"action {i} description is {len(description)} bytes")
    if len(authorization.spend_auth_sigs) != num_actions:
        raise ValueError(
            f"{len(authorization.spend_auth_sigs)} spend authorization signatures "
            f"for {num_actions} actions"
        )
    for i, sig in enumerate(authorization.spend_auth_sigs):
        if len(sig) != ORCHARD_SIGNATURE_LENGTH:
            raise ValueError(f"action {i} spend authorization signature is {len(sig)} bytes")
    if len(authorization.binding_sig) != ORCHARD_SIGNATURE_LENGTH:
        raise ValueError(f"binding signature is {len(authorization.binding_sig)} bytes")


class Prover:
    def __init__(self, engine: ProvingEngine):
        self._engine = engine
        self._proving_key: Any = None
        self._key_built = False
        self._lock = threading.Lock()

    @property
    def proving_key_built(self) -> bool:
        return self._key_built

    def proving_key(self) -> Any:
        """Return the proving key, building it on first use."""
        if self._key_built:
            return self._proving_key
        with self._lock:
            if not self._key_built:
                logger.info("Building Orchard proving key (one-time)")
                self._proving_key = self._engine.build_proving_key()
                self._key_built = True
        return self._proving_key

    def prove(self, pczt: Pczt) -> Pczt:
        """
        Attach Orchard proofs to every action of ``pczt``.

        Consumes ``pczt`` whatever the outcome. A PCZT without actions is
        returned unchanged.

        Raises:
            OrchardProofError: The engine rejected the bundle or returned
                malformed material
        """
        working = pczt.take()
        num_actions = working.num_actions
        if num_actions == 0:
            logger.debug("No Orchard actions, nothing to prove")
            return working

        sighash = shielded_sighash(working)
        try:
            proving_key = self.proving_key()
            authorization = self._engine.create_proof(proving_key, working.orchard, sighash)
        except Exception as e:
            raise OrchardProofError(f"Orchard proving failed: {e}") from e

        try:
            check_authorization(authorization, num_actions)
        except ValueError as e:
            raise OrchardProofError(f"Malformed Orchard proof: {e}") from e

        working.orchard.authorization = authorization
        logger.info(f"Attached Orchard proof for {num_actions} actions")
        return working


def prove_transaction(pczt: Pczt, prover: Prover) -> Pczt:
    return prover.prove(pczt)
