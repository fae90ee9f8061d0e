"""
Stage-scoped exceptions for the PCZT pipeline.

Each stage raises subclasses of its own base class. The boundary layer maps a
base class to a result code through its ``stage`` attribute.
"""

from __future__ import annotations


class T2zError(Exception):
    """Base class for every error raised by the pipeline."""

    stage = "unknown"


class HandleError(T2zError):
    """Raised when an opaque handle or owned buffer is misused."""

    stage = "handle"


class ConsumedPcztError(HandleError):
    """Raised when a PCZT that was passed to a consuming stage is used again."""

    pass


# Input codec


class InputParseError(T2zError):
    stage = "parse"


class TruncatedInputError(InputParseError):
    def __init__(self, field: str, index: int | None = None):
        self.field = field
        self.index = index
        where = f" of input {index}" if index is not None else ""
        super().__init__(f"Truncated: buffer ends inside '{field}'{where}")


class InvalidPublicKeyError(InputParseError):
    def __init__(self, index: int, reason: str = ""):
        self.index = index
        detail = f": {reason}" if reason else ""
        super().__init__(f"InvalidPublicKey: input {index} pubkey is not a compressed point{detail}")


class PcztParseError(T2zError):
    stage = "parse"


# Proposal


class ProposalError(T2zError):
    stage = "proposal"


class InvalidRequestError(ProposalError):
    pass


class InvalidAddressError(ProposalError):
    pass


class PcztCreationError(ProposalError):
    pass


# Proving


class ProverError(T2zError):
    stage = "prover"


class OrchardProofError(ProverError):
    pass


# Verification


class VerificationError(T2zError):
    stage = "verification"


class ChangeMismatchError(VerificationError):
    pass


class OutputMismatchError(VerificationError):
    pass


class InvalidFeeError(VerificationError):
    pass


# Sighash


class SighashError(T2zError):
    stage = "sighash"


class InvalidInputIndexError(SighashError):
    def __init__(self, index: int, num_inputs: int):
        self.index = index
        self.num_inputs = num_inputs
        super().__init__(f"InvalidInputIndex: {index} (transaction has {num_inputs} inputs)")


# Signature


class SignatureError(T2zError):
    stage = "signature"


class SignatureIndexError(SignatureError, InvalidInputIndexError):
    """Out-of-range index seen by the signature stage."""

    stage = "signature"


class InvalidSignatureFormatError(SignatureError):
    pass


class SignatureVerificationError(SignatureError):
    pass


# Combine


class CombineError(T2zError):
    stage = "combine"


class NoPcztsError(CombineError):
    pass


class DataMismatchError(CombineError):
    pass


# Finalization


class FinalizationError(T2zError):
    stage = "finalization"


class SpendFinalizationError(FinalizationError):
    pass


class TransactionExtractionError(FinalizationError):
    pass


class SerializationError(FinalizationError):
    pass
