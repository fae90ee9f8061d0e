"""
ZIP 317 conventional fee calculation.
"""

from __future__ import annotations

from t2z.constants import GRACE_ACTIONS, MARGINAL_FEE


def padded_shielded_actions(num_shielded_outputs: int) -> int:
    """Orchard actions billed for the given number of outputs (padded to even)."""
    return -(-num_shielded_outputs // 2) * 2


def calculate_fee(
    num_transparent_inputs: int,
    num_transparent_outputs: int,
    num_shielded_outputs: int,
) -> int:
    """
    Calculate the conventional fee for a transaction shape.

    The counts must be the ones the builder ultimately produces, change output
    included, otherwise the estimate and the fee paid by the built transaction
    diverge.

    Args:
        num_transparent_inputs: Number of transparent inputs
        num_transparent_outputs: Number of transparent outputs (including change)
        num_shielded_outputs: Number of Orchard outputs

    Returns:
        Fee in zatoshis
    """
    if min(num_transparent_inputs, num_transparent_outputs, num_shielded_outputs) < 0:
        raise ValueError("Transaction shape counts must be non-negative")

    logical_actions = max(num_transparent_inputs, num_transparent_outputs)
    if num_shielded_outputs > 0:
        logical_actions += padded_shielded_actions(num_shielded_outputs)

    return MARGINAL_FEE * max(GRACE_ACTIONS, logical_actions)
