"""
Zcash protocol constants used across the pipeline.
"""

from __future__ import annotations

# Zatoshis per ZEC and the total supply cap (zcash_protocol::value::MAX_MONEY)
COIN = 100_000_000
MAX_MONEY = 21_000_000 * COIN

# ZIP 317 conventional fee
MARGINAL_FEE = 5_000  # zatoshis per logical action
GRACE_ACTIONS = 2

# v5 transaction format (ZIP 225)
TX_VERSION = 5
OVERWINTERED_FLAG = 1 << 31
TX_VERSION_GROUP_ID = 0x26A7270A
DEFAULT_TX_EXPIRY_DELTA = 40  # blocks
MAX_EXPIRY_HEIGHT = 499_999_999  # ZIP 203

SIGHASH_ALL = 0x01
DEFAULT_SEQUENCE = 0xFFFFFFFF
U32_MAX = 0xFFFFFFFF

# Input codec limits (u16 length fields)
MAX_ENCODED_INPUTS = 0xFFFF
MAX_SCRIPT_LENGTH = 0xFFFF

COMPRESSED_PUBKEY_LENGTH = 33
TXID_LENGTH = 32
COMPACT_SIGNATURE_LENGTH = 64
SIGHASH_LENGTH = 32

# Orchard
ORCHARD_RECEIVER_LENGTH = 43
ORCHARD_RSEED_LENGTH = 32
ORCHARD_ACTION_DESCRIPTION_LENGTH = 820  # cv, nf, rk, cmx, epk, enc (580), out (80)
ORCHARD_SIGNATURE_LENGTH = 64
ORCHARD_FLAGS_OUTPUTS_ONLY = 0b0000_0010  # enableSpends unset, enableOutputs set
# Root of the empty Orchard note commitment tree
ORCHARD_EMPTY_ANCHOR = bytes.fromhex(
    "ae2935f1dfd8a24aed7c70df7de3a668eb7a49b1319880dde2bbd9031ae5d82f"
)

# ZIP 302 memos
MEMO_LENGTH = 512
EMPTY_MEMO = b"\xf6" + bytes(MEMO_LENGTH - 1)

# Pre-sign verification tolerance on the requested total, in percent
VERIFY_FEE_TOLERANCE_PERCENT = 1
