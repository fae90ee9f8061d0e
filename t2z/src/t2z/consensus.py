"""
Network upgrade parameters used to pick the consensus branch and expiry height.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from t2z.constants import DEFAULT_TX_EXPIRY_DELTA, MAX_EXPIRY_HEIGHT


class Network(str, Enum):
    MAINNET = "mainnet"
    TESTNET = "testnet"

    @classmethod
    def from_is_main(cls, is_main: bool) -> Network:
        return cls.MAINNET if is_main else cls.TESTNET


@dataclass(frozen=True)
class NetworkUpgrade:
    name: str
    branch_id: int
    activation_heights: dict[Network, int]


# Upgrades that support v5 transactions, oldest first
NETWORK_UPGRADES: tuple[NetworkUpgrade, ...] = (
    NetworkUpgrade(
        name="NU5",
        branch_id=0xC2D6D0B4,
        activation_heights={Network.MAINNET: 1_687_104, Network.TESTNET: 1_842_420},
    ),
    NetworkUpgrade(
        name="NU6",
        branch_id=0xC8E71055,
        activation_heights={Network.MAINNET: 2_726_400, Network.TESTNET: 2_976_000},
    ),
    NetworkUpgrade(
        name="NU6.1",
        branch_id=0x4DEC4DF0,
        activation_heights={Network.MAINNET: 3_146_400, Network.TESTNET: 3_536_500},
    ),
)


@dataclass(frozen=True)
class ConsensusParameters:
    network: Network
    upgrade: NetworkUpgrade
    target_height: int | None
    expiry_height: int

    @property
    def branch_id(self) -> int:
        return self.upgrade.branch_id


def upgrade_at(network: Network, height: int) -> NetworkUpgrade | None:
    """Return the latest upgrade active at ``height``, or None before NU5."""
    active = None
    for upgrade in NETWORK_UPGRADES:
        if height >= upgrade.activation_heights[network]:
            active = upgrade
    return active


def select_parameters(network: Network, target_height: int | None) -> ConsensusParameters:
    """
    Select the consensus branch and expiry height for a new transaction.

    Without a target height the most recent upgrade is used and the expiry is
    disabled (height 0, ZIP 203).

    Raises:
        ValueError: The target height precedes NU5 activation
    """
    if target_height is None:
        return ConsensusParameters(
            network=network,
            upgrade=NETWORK_UPGRADES[-1],
            target_height=None,
            expiry_height=0,
        )

    upgrade = upgrade_at(network, target_height)
    if upgrade is None:
        nu5 = NETWORK_UPGRADES[0].activation_heights[network]
        raise ValueError(
            f"Target height {target_height} precedes NU5 activation ({nu5}) on {network.value}"
        )

    return ConsensusParameters(
        network=network,
        upgrade=upgrade,
        target_height=target_height,
        expiry_height=min(target_height + DEFAULT_TX_EXPIRY_DELTA, MAX_EXPIRY_HEIGHT),
    )
