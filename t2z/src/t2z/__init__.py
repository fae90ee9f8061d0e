"""
t2z - Transparent to shielded Zcash transactions

Builds Partially Constructed Zcash Transactions (PCZTs) that spend transparent
coins to transparent and Orchard recipients, and carries them through proving,
verification, signing, combining and extraction.
"""

__version__ = "0.1.0"

from t2z.address import Invalid, ShieldedCapable, Transparent, classify
from t2z.builder import propose_transaction
from t2z.combiner import combine
from t2z.consensus import Network
from t2z.errors import T2zError
from t2z.extractor import finalize_and_extract
from t2z.fees import calculate_fee
from t2z.inputs import parse_transparent_inputs, serialize_transparent_inputs
from t2z.models import Payment, TransactionRequest, TransparentInput, TransparentOutput
from t2z.pczt import Pczt, parse_pczt, serialize_pczt
from t2z.prover import Prover, ProvingEngine, prove_transaction
from t2z.sighash import get_sighash
from t2z.signer import append_signature
from t2z.verify import verify_before_signing

__all__ = [
    "Invalid",
    "Network",
    "Payment",
    "Pczt",
    "Prover",
    "ProvingEngine",
    "ShieldedCapable",
    "T2zError",
    "TransactionRequest",
    "Transparent",
    "TransparentInput",
    "TransparentOutput",
    "append_signature",
    "calculate_fee",
    "classify",
    "combine",
    "finalize_and_extract",
    "get_sighash",
    "parse_pczt",
    "parse_transparent_inputs",
    "propose_transaction",
    "prove_transaction",
    "serialize_pczt",
    "serialize_transparent_inputs",
    "verify_before_signing",
]
