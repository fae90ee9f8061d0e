"""
The Partially Constructed Zcash Transaction (PCZT) record.

A Pczt is exclusively owned and moves from stage to stage. Stages that consume
it call ``take()``, which marks the caller's instance as consumed (whatever the
stage's outcome) and hands the stage a private copy. Any later use of the
consumed instance raises ConsumedPcztError.
"""

from __future__ import annotations

from pydantic import BaseModel, Field, PrivateAttr, ValidationError

from t2z.consensus import Network
from t2z.constants import (
    COMPRESSED_PUBKEY_LENGTH,
    DEFAULT_SEQUENCE,
    MAX_EXPIRY_HEIGHT,
    MAX_MONEY,
    MAX_SCRIPT_LENGTH,
    MEMO_LENGTH,
    ORCHARD_EMPTY_ANCHOR,
    ORCHARD_FLAGS_OUTPUTS_ONLY,
    ORCHARD_RECEIVER_LENGTH,
    ORCHARD_RSEED_LENGTH,
    OVERWINTERED_FLAG,
    SIGHASH_ALL,
    TX_VERSION,
    TX_VERSION_GROUP_ID,
    TXID_LENGTH,
    U32_MAX,
)
from t2z.errors import ConsumedPcztError, PcztParseError
from t2z.models import HexBytes

PCZT_MAGIC = b"T2ZPCZT"
PCZT_FORMAT_VERSION = 1


class PcztHeader(BaseModel):
    # The overwintered flag takes the top bit of the version word
    tx_version: int = Field(default=TX_VERSION, ge=0, lt=OVERWINTERED_FLAG)
    version_group_id: int = Field(default=TX_VERSION_GROUP_ID, ge=0, le=U32_MAX)
    consensus_branch_id: int = Field(..., ge=0, le=U32_MAX)
    lock_time: int = Field(default=0, ge=0, le=U32_MAX)
    expiry_height: int = Field(..., ge=0, le=MAX_EXPIRY_HEIGHT)
    network: Network


class PcztInput(BaseModel):
    txid: HexBytes = Field(..., min_length=TXID_LENGTH, max_length=TXID_LENGTH)
    vout: int = Field(..., ge=0, le=U32_MAX)
    value: int = Field(..., ge=0, le=MAX_MONEY)
    script_pubkey: HexBytes = Field(..., max_length=MAX_SCRIPT_LENGTH)
    pubkey: HexBytes = Field(
        ..., min_length=COMPRESSED_PUBKEY_LENGTH, max_length=COMPRESSED_PUBKEY_LENGTH
    )
    sequence: int = Field(default=DEFAULT_SEQUENCE, ge=0, le=U32_MAX)
    sighash_type: int = Field(default=SIGHASH_ALL, ge=0, le=0xFF)
    # pubkey hex -> DER signature || sighash type
    partial_signatures: dict[str, HexBytes] = Field(default_factory=dict)
    script_sig: HexBytes | None = None

    def is_signed(self) -> bool:
        return self.pubkey.hex() in self.partial_signatures or self.script_sig is not None


class PcztOutput(BaseModel):
    value: int = Field(..., ge=0, le=MAX_MONEY)
    script_pubkey: HexBytes = Field(..., max_length=MAX_SCRIPT_LENGTH)


class OrchardAction(BaseModel):
    """An Orchard output held as the note plaintext the proving engine commits to."""

    recipient: HexBytes = Field(
        ..., min_length=ORCHARD_RECEIVER_LENGTH, max_length=ORCHARD_RECEIVER_LENGTH
    )
    value: int = Field(..., ge=0, le=MAX_MONEY)
    memo: HexBytes = Field(..., min_length=MEMO_LENGTH, max_length=MEMO_LENGTH)
    rseed: HexBytes = Field(..., min_length=ORCHARD_RSEED_LENGTH, max_length=ORCHARD_RSEED_LENGTH)


class OrchardAuthorization(BaseModel):
    """Material attached by the proving engine."""

    proof: HexBytes
    action_descriptions: list[HexBytes]
    spend_auth_sigs: list[HexBytes]
    binding_sig: HexBytes


class OrchardBundle(BaseModel):
    actions: list[OrchardAction] = Field(default_factory=list)
    flags: int = Field(default=ORCHARD_FLAGS_OUTPUTS_ONLY, ge=0, le=0xFF)
    anchor: HexBytes = Field(default=ORCHARD_EMPTY_ANCHOR, min_length=32, max_length=32)
    authorization: OrchardAuthorization | None = None

    @property
    def value_balance(self) -> int:
        """Net value leaving the Orchard pool (negative when outputs only)."""
        return -sum(action.value for action in self.actions)


class Pczt(BaseModel):
    header: PcztHeader
    inputs: list[PcztInput] = Field(default_factory=list)
    outputs: list[PcztOutput] = Field(default_factory=list)
    orchard: OrchardBundle = Field(default_factory=OrchardBundle)

    _consumed: bool = PrivateAttr(default=False)

    # Ownership

    @property
    def consumed(self) -> bool:
        return self._consumed

    def ensure_live(self) -> None:
        if self._consumed:
            raise ConsumedPcztError("PCZT was passed to a consuming stage and is no longer valid")

    def take(self) -> Pczt:
        """Consume this instance and return a private working copy."""
        self.ensure_live()
        working = self.model_copy(deep=True)
        self._consumed = True
        return working

    # Observable attributes

    @property
    def num_actions(self) -> int:
        return len(self.orchard.actions)

    @property
    def has_orchard_proof(self) -> bool:
        return self.orchard.authorization is not None

    def signature_present(self, index: int) -> bool:
        return self.inputs[index].is_signed()

    def total_input_value(self) -> int:
        return sum(inp.value for inp in self.inputs)

    def total_transparent_output_value(self) -> int:
        return sum(out.value for out in self.outputs)

    # Wire form

    def to_bytes(self) -> bytes:
        self.ensure_live()
        return (
            PCZT_MAGIC
            + PCZT_FORMAT_VERSION.to_bytes(4, "little")
            + self.model_dump_json().encode("utf-8")
        )

    @classmethod
    def from_bytes(cls, data: bytes) -> Pczt:
        header_len = len(PCZT_MAGIC) + 4
        if data[: len(PCZT_MAGIC)] != PCZT_MAGIC:
            raise PcztParseError("InvalidFormat: missing PCZT magic bytes")
        version = int.from_bytes(data[len(PCZT_MAGIC) : header_len], "little")
        if version != PCZT_FORMAT_VERSION:
            raise PcztParseError(f"InvalidFormat: unsupported PCZT format version {version}")
        try:
            return cls.model_validate_json(data[header_len:])
        except ValidationError as e:
            raise PcztParseError(f"InvalidFormat: {e.error_count()} invalid fields: {e}") from e


def parse_pczt(data: bytes) -> Pczt:
    return Pczt.from_bytes(data)


def serialize_pczt(pczt: Pczt) -> bytes:
    return pczt.to_bytes()
