"""
Signature stage: attach externally produced ECDSA signatures to transparent inputs.

Signatures arrive in 64-byte compact form (r || s, big-endian). They are
verified against the input's sighash and public key with coincurve, then
stored DER-encoded with the sighash type appended, as they will appear in the
input's scriptSig.
"""

from __future__ import annotations

from coincurve import PublicKey
from loguru import logger

from t2z.constants import COMPACT_SIGNATURE_LENGTH
from t2z.errors import (
    InvalidSignatureFormatError,
    SignatureIndexError,
    SignatureVerificationError,
)
from t2z.pczt import Pczt
from t2z.sighash import signature_digest

# secp256k1 group order
SECP256K1_ORDER = 0xFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFEBAAEDCE6AF48A03BBFD25E8CD0364141


def _der_integer(value: int) -> bytes:
    encoded = value.to_bytes(32, "big").lstrip(b"\x00")
    # High bit set would read as negative
    if encoded[0] & 0x80:
        encoded = b"\x00" + encoded
    return b"\x02" + bytes([len(encoded)]) + encoded


def compact_to_der(signature: bytes) -> bytes:
    """
    Convert a 64-byte compact ECDSA signature to DER.

    Raises:
        InvalidSignatureFormatError: Wrong length, or r/s outside [1, n-1]
    """
    if len(signature) != COMPACT_SIGNATURE_LENGTH:
        raise InvalidSignatureFormatError(
            f"Signature must be {COMPACT_SIGNATURE_LENGTH} bytes, got {len(signature)}"
        )
    r = int.from_bytes(signature[:32], "big")
    s = int.from_bytes(signature[32:], "big")
    if not 0 < r < SECP256K1_ORDER or not 0 < s < SECP256K1_ORDER:
        raise InvalidSignatureFormatError("Signature r or s is out of range")

    body = _der_integer(r) + _der_integer(s)
    return b"\x30" + bytes([len(body)]) + body


def append_signature(pczt: Pczt, input_index: int, signature: bytes) -> Pczt:
    """
    Verify and attach a signature for one transparent input.

    Consumes ``pczt`` whatever the outcome.

    Args:
        pczt: The PCZT to sign
        input_index: Position of the input the signature is for
        signature: 64-byte compact signature over the input's sighash

    Returns:
        The PCZT with the signature recorded on the input

    Raises:
        SignatureIndexError: ``input_index`` is not a valid input position
        InvalidSignatureFormatError: The signature cannot be parsed
        SignatureVerificationError: The signature does not verify against the
            input's public key and sighash
    """
    working = pczt.take()
    if not 0 <= input_index < len(working.inputs):
        raise SignatureIndexError(input_index, len(working.inputs))

    der = compact_to_der(signature)
    inp = working.inputs[input_index]
    sighash = signature_digest(working, input_index)

    try:
        valid = PublicKey(inp.pubkey).verify(der, sighash, hasher=None)
    except ValueError as e:
        raise InvalidSignatureFormatError(f"Signature could not be parsed: {e}") from e
    if not valid:
        raise SignatureVerificationError(
            f"Signature for input {input_index} does not verify against pubkey {inp.pubkey.hex()}"
        )

    inp.partial_signatures[inp.pubkey.hex()] = der + bytes([inp.sighash_type])
    logger.debug(f"Appended signature for input {input_index}")
    return working
