"""
Request and coin models using Pydantic for validation and serialization.
"""

from __future__ import annotations

from typing import Annotated, Any

from coincurve import PublicKey
from pydantic import BaseModel, BeforeValidator, Field, PlainSerializer, field_validator

from t2z.constants import (
    COMPRESSED_PUBKEY_LENGTH,
    MAX_MONEY,
    MAX_SCRIPT_LENGTH,
    MEMO_LENGTH,
    TXID_LENGTH,
)


def _bytes_from_hex(value: Any) -> Any:
    if isinstance(value, str):
        return bytes.fromhex(value)
    if isinstance(value, bytearray | memoryview):
        return bytes(value)
    return value


# Raw bytes that travel as lowercase hex in JSON
HexBytes = Annotated[
    bytes,
    BeforeValidator(_bytes_from_hex),
    PlainSerializer(lambda b: b.hex(), return_type=str, when_used="json"),
]


class Payment(BaseModel):
    """A single ZIP 321 payment."""

    address: str = Field(..., min_length=1)
    amount: int = Field(..., ge=0, description="Amount in zatoshis")
    memo: HexBytes | None = Field(default=None, description="Memo bytes, shielded payments only")
    label: str | None = None
    message: str | None = None

    model_config = {"frozen": True}

    @field_validator("memo")
    @classmethod
    def validate_memo(cls, v: bytes | None) -> bytes | None:
        if v is not None and len(v) > MEMO_LENGTH:
            raise ValueError(f"Memo is {len(v)} bytes, maximum is {MEMO_LENGTH}")
        return v


class TransactionRequest(BaseModel):
    """
    A payment request: the ordered payments plus the chain context that selects
    consensus parameters and expiry.

    The chain context is changed only through the setters, before the request is
    handed to the builder.
    """

    payments: list[Payment]
    target_height: int | None = Field(default=None, ge=0, le=0xFFFFFFFF)
    network_is_main: bool = False

    def set_target_height(self, height: int) -> None:
        if not 0 <= height <= 0xFFFFFFFF:
            raise ValueError(f"Target height out of range: {height}")
        self.target_height = height

    def set_network(self, is_main: bool) -> None:
        self.network_is_main = is_main

    def total_amount(self) -> int:
        return sum(p.amount for p in self.payments)


class TransparentInput(BaseModel):
    """A spendable transparent coin and the key that controls it."""

    pubkey: HexBytes
    txid: HexBytes
    vout: int = Field(..., ge=0, le=0xFFFFFFFF)
    amount: int = Field(..., ge=0, le=0xFFFFFFFFFFFFFFFF)
    script_pubkey: HexBytes

    model_config = {"frozen": True}

    @field_validator("pubkey")
    @classmethod
    def validate_pubkey(cls, v: bytes) -> bytes:
        if len(v) != COMPRESSED_PUBKEY_LENGTH:
            raise ValueError(f"Invalid compressed pubkey length: {len(v)}")
        try:
            PublicKey(v)
        except ValueError as e:
            raise ValueError(f"Pubkey is not a valid curve point: {e}") from e
        return v

    @field_validator("txid")
    @classmethod
    def validate_txid(cls, v: bytes) -> bytes:
        if len(v) != TXID_LENGTH:
            raise ValueError(f"Invalid txid length: {len(v)}")
        return v

    @field_validator("script_pubkey")
    @classmethod
    def validate_script(cls, v: bytes) -> bytes:
        if len(v) > MAX_SCRIPT_LENGTH:
            raise ValueError(f"Script too long: {len(v)} bytes")
        return v

    @property
    def outpoint(self) -> tuple[bytes, int]:
        return self.txid, self.vout


class TransparentOutput(BaseModel):
    """A transparent output as (value, scriptPubKey), used to declare expected change."""

    value: int = Field(..., ge=0, le=MAX_MONEY)
    script_pubkey: HexBytes

    model_config = {"frozen": True}
