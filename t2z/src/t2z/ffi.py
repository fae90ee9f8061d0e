"""
Handle-based boundary layer for host language bindings.

Mirrors the C ABI of the native library: every call returns a ResultCode,
objects cross the boundary as opaque integer handles, and failure details are
read back with get_last_error(). A host binding (ctypes, cffi, a JNI shim)
can wrap T2zLibrary one function per exported symbol.

Ownership rules:
- A PCZT handle passed to a consuming call is invalid as soon as the call
  starts, whether it succeeds or fails.
- Byte results are OwnedBuffer objects that must be released exactly once
  with free_bytes().
- The last error is per thread and is not cleared by successful calls.
"""

from __future__ import annotations

import itertools
import threading
from enum import IntEnum
from typing import Any

from loguru import logger

from t2z.builder import propose_transaction
from t2z.combiner import combine
from t2z.errors import HandleError, T2zError
from t2z.extractor import finalize_and_extract
from t2z.models import Payment, TransactionRequest, TransparentOutput
from t2z.pczt import Pczt, parse_pczt, serialize_pczt
from t2z.prover import Prover
from t2z.sighash import get_sighash
from t2z.signer import append_signature
from t2z.verify import verify_before_signing


class ResultCode(IntEnum):
    SUCCESS = 0
    ERROR_NULL_POINTER = 1
    ERROR_INVALID_UTF8 = 2
    ERROR_BUFFER_TOO_SMALL = 3
    ERROR_PROPOSAL = 10
    ERROR_PROVER = 11
    ERROR_VERIFICATION = 12
    ERROR_SIGHASH = 13
    ERROR_SIGNATURE = 14
    ERROR_COMBINE = 15
    ERROR_FINALIZATION = 16
    ERROR_PARSE = 17
    ERROR_NOT_IMPLEMENTED = 99


_STAGE_CODES = {
    "handle": ResultCode.ERROR_NULL_POINTER,
    "parse": ResultCode.ERROR_PARSE,
    "proposal": ResultCode.ERROR_PROPOSAL,
    "prover": ResultCode.ERROR_PROVER,
    "verification": ResultCode.ERROR_VERIFICATION,
    "sighash": ResultCode.ERROR_SIGHASH,
    "signature": ResultCode.ERROR_SIGNATURE,
    "combine": ResultCode.ERROR_COMBINE,
    "finalization": ResultCode.ERROR_FINALIZATION,
}

_STAGE_LABELS = {
    "handle": "Invalid handle",
    "parse": "Parse error",
    "proposal": "Proposal error",
    "prover": "Prover error",
    "verification": "Verification error",
    "sighash": "Sighash error",
    "signature": "Signature error",
    "combine": "Combine error",
    "finalization": "Finalization error",
}


class OwnedBuffer:
    """Bytes handed to the host; valid until passed to free_bytes()."""

    def __init__(self, data: bytes):
        self._data: bytes | None = data

    @property
    def freed(self) -> bool:
        return self._data is None

    @property
    def data(self) -> bytes:
        if self._data is None:
            raise HandleError("Buffer was already freed")
        return self._data

    def __len__(self) -> int:
        return len(self.data)

    def release(self) -> None:
        if self._data is None:
            raise HandleError("Buffer freed twice")
        self._data = None


class T2zLibrary:
    """
    Handle table plus one method per exported function.

    Args:
        prover: Prover used by prove_transaction(). Without one, proving
            reports ERROR_NOT_IMPLEMENTED.
    """

    def __init__(self, prover: Prover | None = None):
        self._prover = prover
        self._handles: dict[int, Any] = {}
        self._next_handle = itertools.count(1)
        self._lock = threading.Lock()
        self._local = threading.local()

    # Last error

    def _set_last_error(self, message: str) -> None:
        self._local.last_error = message

    def _fail(self, code: ResultCode, message: str) -> ResultCode:
        self._set_last_error(message)
        logger.debug(f"{code.name}: {message}")
        return code

    def _fail_with(self, error: T2zError) -> ResultCode:
        code = _STAGE_CODES.get(error.stage, ResultCode.ERROR_PARSE)
        label = _STAGE_LABELS.get(error.stage, "Error")
        return self._fail(code, f"{label}: {error}")

    def get_last_error(self, buffer_len: int | None) -> tuple[ResultCode, str]:
        """
        Read the calling thread's last error message.

        Returns (SUCCESS, "") when no error is set, and
        (ERROR_BUFFER_TOO_SMALL, "") when the message and its terminator do
        not fit in ``buffer_len`` bytes.
        """
        if buffer_len is None:
            return ResultCode.ERROR_NULL_POINTER, ""
        message = getattr(self._local, "last_error", None)
        if message is None:
            return ResultCode.SUCCESS, ""
        if len(message.encode("utf-8")) + 1 > buffer_len:
            return ResultCode.ERROR_BUFFER_TOO_SMALL, ""
        return ResultCode.SUCCESS, message

    # Handle table

    def _register(self, obj: Any) -> int:
        with self._lock:
            handle = next(self._next_handle)
            self._handles[handle] = obj
        return handle

    def _lookup(self, handle: int | None, kind: type) -> Any:
        if handle is None:
            raise HandleError("Null handle")
        with self._lock:
            obj = self._handles.get(handle)
        if not isinstance(obj, kind):
            raise HandleError(f"Unknown {kind.__name__} handle {handle}")
        return obj

    def _remove(self, handle: int | None, kind: type) -> Any:
        if handle is None:
            raise HandleError("Null handle")
        with self._lock:
            obj = self._handles.get(handle)
            if not isinstance(obj, kind):
                raise HandleError(f"Unknown {kind.__name__} handle {handle}")
            del self._handles[handle]
        return obj

    def _remove_all(self, handles: list[int | None], kind: type) -> list[Any]:
        """Remove every valid handle in ``handles``, then report any invalid ones."""
        objs: list[Any] = []
        invalid: list[int | None] = []
        with self._lock:
            for handle in handles:
                obj = self._handles.get(handle) if handle is not None else None
                if isinstance(obj, kind):
                    del self._handles[handle]
                    objs.append(obj)
                else:
                    invalid.append(handle)
        if invalid:
            raise HandleError(f"Unknown {kind.__name__} handles {invalid}")
        return objs

    @property
    def live_handles(self) -> int:
        with self._lock:
            return len(self._handles)

    @staticmethod
    def _decode_str(value: str | bytes | None) -> str | None:
        if value is None or isinstance(value, str):
            return value
        return value.decode("utf-8")

    # Transaction requests

    def transaction_request_new(
        self, payments: list[dict[str, Any]] | None
    ) -> tuple[ResultCode, int | None]:
        """
        Create a request from payment records with ``address``, ``amount`` and
        optional ``memo``, ``label`` and ``message`` entries.
        """
        if payments is None:
            return self._fail(ResultCode.ERROR_NULL_POINTER, "Null pointer"), None
        try:
            parsed = []
            for record in payments:
                address = self._decode_str(record.get("address"))
                if address is None:
                    return self._fail(ResultCode.ERROR_NULL_POINTER, "Null pointer"), None
                memo = self._decode_str(record.get("memo"))
                parsed.append(
                    Payment(
                        address=address,
                        amount=record["amount"],
                        memo=memo.encode("utf-8") if memo is not None else None,
                        label=self._decode_str(record.get("label")),
                        message=self._decode_str(record.get("message")),
                    )
                )
        except UnicodeDecodeError:
            return self._fail(ResultCode.ERROR_INVALID_UTF8, "Invalid UTF-8 string"), None
        except (KeyError, ValueError) as e:
            return self._fail(ResultCode.ERROR_PROPOSAL, f"Proposal error: {e}"), None

        return ResultCode.SUCCESS, self._register(TransactionRequest(payments=parsed))

    def transaction_request_free(self, request: int | None) -> None:
        if request is None:
            return
        with self._lock:
            if isinstance(self._handles.get(request), TransactionRequest):
                del self._handles[request]

    def set_target_height(self, request: int | None, height: int) -> ResultCode:
        try:
            self._lookup(request, TransactionRequest).set_target_height(height)
        except HandleError as e:
            return self._fail_with(e)
        except ValueError as e:
            return self._fail(ResultCode.ERROR_PROPOSAL, f"Proposal error: {e}")
        return ResultCode.SUCCESS

    def set_use_mainnet(self, request: int | None, use_mainnet: bool) -> ResultCode:
        try:
            self._lookup(request, TransactionRequest).set_network(use_mainnet)
        except HandleError as e:
            return self._fail_with(e)
        return ResultCode.SUCCESS

    # Pipeline stages

    def propose_transaction(
        self,
        inputs_bytes: bytes | None,
        request: int | None,
        change_address: str | bytes | None = None,
    ) -> tuple[ResultCode, int | None]:
        if inputs_bytes is None or request is None:
            return self._fail(ResultCode.ERROR_NULL_POINTER, "Null pointer"), None
        try:
            change = self._decode_str(change_address)
        except UnicodeDecodeError:
            return self._fail(ResultCode.ERROR_INVALID_UTF8, "Invalid UTF-8 string"), None
        try:
            tx_request = self._lookup(request, TransactionRequest)
            pczt = propose_transaction(inputs_bytes, tx_request.model_copy(deep=True), change)
        except T2zError as e:
            return self._fail_with(e), None
        return ResultCode.SUCCESS, self._register(pczt)

    def prove_transaction(self, pczt: int | None) -> tuple[ResultCode, int | None]:
        try:
            owned = self._remove(pczt, Pczt)
        except HandleError as e:
            return self._fail_with(e), None
        if self._prover is None:
            return self._fail(ResultCode.ERROR_NOT_IMPLEMENTED, "No proving engine configured"), None
        try:
            proven = self._prover.prove(owned)
        except T2zError as e:
            return self._fail_with(e), None
        return ResultCode.SUCCESS, self._register(proven)

    def verify_before_signing(
        self,
        pczt: int | None,
        request: int | None,
        expected_change: list[TransparentOutput] | None,
    ) -> ResultCode:
        if expected_change is None:
            return self._fail(ResultCode.ERROR_NULL_POINTER, "Null pointer")
        try:
            verify_before_signing(
                self._lookup(pczt, Pczt), self._lookup(request, TransactionRequest), expected_change
            )
        except T2zError as e:
            return self._fail_with(e)
        return ResultCode.SUCCESS

    def get_sighash(self, pczt: int | None, input_index: int) -> tuple[ResultCode, bytes | None]:
        try:
            digest = get_sighash(self._lookup(pczt, Pczt), input_index)
        except T2zError as e:
            return self._fail_with(e), None
        return ResultCode.SUCCESS, digest

    def append_signature(
        self, pczt: int | None, input_index: int, signature: bytes | None
    ) -> tuple[ResultCode, int | None]:
        if signature is None:
            return self._fail(ResultCode.ERROR_NULL_POINTER, "Null pointer"), None
        try:
            owned = self._remove(pczt, Pczt)
            signed = append_signature(owned, input_index, signature)
        except T2zError as e:
            return self._fail_with(e), None
        return ResultCode.SUCCESS, self._register(signed)

    def combine(self, pczts: list[int] | None) -> tuple[ResultCode, int | None]:
        if pczts is None:
            return self._fail(ResultCode.ERROR_NULL_POINTER, "Null pointer"), None
        try:
            owned = self._remove_all(pczts, Pczt)
            combined = combine(owned)
        except T2zError as e:
            return self._fail_with(e), None
        return ResultCode.SUCCESS, self._register(combined)

    def finalize_and_extract(self, pczt: int | None) -> tuple[ResultCode, OwnedBuffer | None]:
        try:
            tx_bytes = finalize_and_extract(self._remove(pczt, Pczt))
        except T2zError as e:
            return self._fail_with(e), None
        return ResultCode.SUCCESS, OwnedBuffer(tx_bytes)

    # PCZT handles and buffers

    def parse(self, data: bytes | None) -> tuple[ResultCode, int | None]:
        if data is None:
            return self._fail(ResultCode.ERROR_NULL_POINTER, "Null pointer"), None
        try:
            pczt = parse_pczt(data)
        except T2zError as e:
            return self._fail_with(e), None
        return ResultCode.SUCCESS, self._register(pczt)

    def serialize(self, pczt: int | None) -> tuple[ResultCode, OwnedBuffer | None]:
        try:
            data = serialize_pczt(self._lookup(pczt, Pczt))
        except T2zError as e:
            return self._fail_with(e), None
        return ResultCode.SUCCESS, OwnedBuffer(data)

    def free(self, pczt: int | None) -> None:
        if pczt is None:
            return
        with self._lock:
            if isinstance(self._handles.get(pczt), Pczt):
                del self._handles[pczt]

    def free_bytes(self, buffer: OwnedBuffer | None) -> None:
        """Release a buffer returned by this library; a second release raises HandleError."""
        if buffer is None:
            return
        buffer.release()
