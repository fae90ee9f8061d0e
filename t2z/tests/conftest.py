"""
Test configuration for t2z tests.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

import pytest
from coincurve import PrivateKey

from t2z.address import (
    TYPECODE_ORCHARD,
    encode_unified_address,
    pubkey_to_p2pkh_script,
    pubkey_to_transparent_address,
)
from t2z.consensus import Network
from t2z.constants import ORCHARD_ACTION_DESCRIPTION_LENGTH, ORCHARD_SIGNATURE_LENGTH
from t2z.models import Payment, TransactionRequest, TransparentInput
from t2z.pczt import OrchardAuthorization, OrchardBundle, Pczt
from t2z.prover import Prover
from t2z.sighash import get_sighash

FUNDED_AMOUNT = 100_000_000


class FakeProvingEngine:
    """Proving engine returning well-shaped placeholder proofs."""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.key_builds = 0
        self.proofs_created = 0
        self.last_sighash: bytes | None = None

    def build_proving_key(self) -> Any:
        self.key_builds += 1
        return object()

    def create_proof(
        self, proving_key: Any, bundle: OrchardBundle, sighash: bytes
    ) -> OrchardAuthorization:
        if self.fail:
            raise RuntimeError("circuit constraint not satisfied")
        self.proofs_created += 1
        self.last_sighash = sighash
        n = len(bundle.actions)
        return OrchardAuthorization(
            proof=b"\x5a" * (2720 + 2272 * n),
            action_descriptions=[bytes([i]) * ORCHARD_ACTION_DESCRIPTION_LENGTH for i in range(n)],
            spend_auth_sigs=[b"\x11" * ORCHARD_SIGNATURE_LENGTH for _ in range(n)],
            binding_sig=b"\x22" * ORCHARD_SIGNATURE_LENGTH,
        )


def compact_sign(pczt: Pczt, index: int, private_key: PrivateKey) -> bytes:
    """Produce the 64-byte compact signature an external signer would return."""
    sighash = get_sighash(pczt, index)
    return private_key.sign_recoverable(sighash, hasher=None)[:64]


@pytest.fixture
def private_key() -> PrivateKey:
    """Deterministic signing key (not for production use!)."""
    return PrivateKey(bytes.fromhex("11" * 32))


@pytest.fixture
def second_private_key() -> PrivateKey:
    return PrivateKey(bytes.fromhex("22" * 32))


@pytest.fixture
def pubkey(private_key: PrivateKey) -> bytes:
    return private_key.public_key.format(compressed=True)


@pytest.fixture
def funded_input(pubkey: bytes) -> TransparentInput:
    return TransparentInput(
        pubkey=pubkey,
        txid=bytes.fromhex("ab" * 32),
        vout=0,
        amount=FUNDED_AMOUNT,
        script_pubkey=pubkey_to_p2pkh_script(pubkey),
    )


@pytest.fixture
def second_input(second_private_key: PrivateKey) -> TransparentInput:
    pubkey = second_private_key.public_key.format(compressed=True)
    return TransparentInput(
        pubkey=pubkey,
        txid=bytes.fromhex("cd" * 32),
        vout=1,
        amount=50_000_000,
        script_pubkey=pubkey_to_p2pkh_script(pubkey),
    )


@pytest.fixture
def recipient_address() -> str:
    """Testnet P2PKH address of an unrelated key."""
    pubkey = PrivateKey(bytes.fromhex("33" * 32)).public_key.format(compressed=True)
    return pubkey_to_transparent_address(pubkey, Network.TESTNET)


@pytest.fixture
def recipient_script() -> bytes:
    pubkey = PrivateKey(bytes.fromhex("33" * 32)).public_key.format(compressed=True)
    return pubkey_to_p2pkh_script(pubkey)


@pytest.fixture
def orchard_receiver() -> bytes:
    return bytes(range(43))


@pytest.fixture
def orchard_address(orchard_receiver: bytes) -> str:
    """Testnet unified address with only an Orchard receiver."""
    return encode_unified_address({TYPECODE_ORCHARD: orchard_receiver}, Network.TESTNET)


@pytest.fixture
def transparent_request(recipient_address: str) -> TransactionRequest:
    return TransactionRequest(payments=[Payment(address=recipient_address, amount=100_000)])


@pytest.fixture
def shielded_request(orchard_address: str) -> TransactionRequest:
    return TransactionRequest(
        payments=[Payment(address=orchard_address, amount=250_000, memo=b"thanks")]
    )


@pytest.fixture
def engine() -> FakeProvingEngine:
    return FakeProvingEngine()


@pytest.fixture
def prover(engine: FakeProvingEngine) -> Prover:
    return Prover(engine)


@pytest.fixture
def failing_engine() -> FakeProvingEngine:
    return FakeProvingEngine(fail=True)


@pytest.fixture
def sign() -> Callable[[Pczt, int, PrivateKey], bytes]:
    """Signer callback: (pczt, input index, key) -> compact signature."""
    return compact_sign
