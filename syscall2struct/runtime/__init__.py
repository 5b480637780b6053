"""Runtime support imported by generated syscall modules."""

from __future__ import annotations

from .calls import Invoker, MakeSyscall, MakeSyscallMut, decode_value, encode_value, syscall
from .errors import (
    BoundExceeded,
    DuplicateResult,
    ResultNotFound,
    ResultStoreFull,
    RuntimeFault,
    ValueOutOfRange,
)
from .pointer import Addr, Data, Pointer, word
from .results import (
    BoundedResultStore,
    CallResult,
    GrowableResultStore,
    Ref,
    ResultId,
    ResultStore,
    Value,
    new_result_store,
)
from .sequence import RESULT_FIELD, CallSequence, run_sequence

__all__ = [
    "Addr",
    "BoundExceeded",
    "BoundedResultStore",
    "CallResult",
    "CallSequence",
    "Data",
    "DuplicateResult",
    "GrowableResultStore",
    "Invoker",
    "MakeSyscall",
    "MakeSyscallMut",
    "Pointer",
    "RESULT_FIELD",
    "Ref",
    "ResultId",
    "ResultNotFound",
    "ResultStore",
    "ResultStoreFull",
    "RuntimeFault",
    "Value",
    "ValueOutOfRange",
    "decode_value",
    "encode_value",
    "new_result_store",
    "run_sequence",
    "syscall",
    "word",
]
