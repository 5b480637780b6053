"""
Cross-call result references and the per-sequence result store.

A `CallResult` argument is either `Value` (a literal) or `Ref` (the id of a
value produced by an earlier call). References are looked up when the call is
marshalled, not when the call object is built, so a call may refer to the
result of the call executed right before it.
"""

from __future__ import annotations

import abc
from dataclasses import dataclass
from typing import Any, Dict, Hashable, Optional

from .errors import DuplicateResult, ResultNotFound, ResultStoreFull
from .pointer import WORD_BITS, word

ResultId = Hashable


class ResultStore(abc.ABC):
    """Map from result ids to call results; each id is recorded at most once."""

    @abc.abstractmethod
    def insert(self, result_id: ResultId, value: int) -> None:
        ...

    @abc.abstractmethod
    def contains(self, result_id: ResultId) -> bool:
        ...

    @abc.abstractmethod
    def get(self, result_id: ResultId) -> int:
        ...

    @abc.abstractmethod
    def __len__(self) -> int:
        ...

    def __contains__(self, result_id: object) -> bool:
        return self.contains(result_id)


class GrowableResultStore(ResultStore):
    def __init__(self) -> None:
        self._values: Dict[ResultId, int] = {}

    def insert(self, result_id: ResultId, value: int) -> None:
        if result_id in self._values:
            raise DuplicateResult(result_id)
        self._values[result_id] = value

    def contains(self, result_id: ResultId) -> bool:
        return result_id in self._values

    def get(self, result_id: ResultId) -> int:
        try:
            return self._values[result_id]
        except KeyError:
            raise ResultNotFound(result_id) from None

    def __len__(self) -> int:
        return len(self._values)


class BoundedResultStore(GrowableResultStore):
    """Result store refusing to grow past a fixed number of entries."""

    def __init__(self, capacity: int) -> None:
        if capacity <= 0:
            raise ValueError(f"result store capacity must be positive, got {capacity}")
        super().__init__()
        self.capacity = capacity

    def insert(self, result_id: ResultId, value: int) -> None:
        if self.contains(result_id):
            raise DuplicateResult(result_id)
        if len(self) >= self.capacity:
            raise ResultStoreFull(self.capacity)
        super().insert(result_id, value)


def new_result_store(capacity: Optional[int] = None) -> ResultStore:
    if capacity is None:
        return GrowableResultStore()
    return BoundedResultStore(capacity)


class CallResult:
    """Sum of `Ref` and `Value`; never instantiated directly."""

    def resolve(self, results: ResultStore, bits: int = WORD_BITS) -> int:
        if isinstance(self, Ref):
            return word(results.get(self.id), bits)
        if isinstance(self, Value):
            return word(self.value, bits)
        raise TypeError(f"not a call result variant: {type(self).__name__}")

    def to_json(self) -> Dict[str, Any]:
        if isinstance(self, Ref):
            return {"Ref": self.id}
        if isinstance(self, Value):
            return {"Value": self.value}
        raise TypeError(f"not a call result variant: {type(self).__name__}")

    @staticmethod
    def from_json(data: Dict[str, Any]) -> "CallResult":
        if not isinstance(data, dict) or len(data) != 1:
            raise ValueError(f"call result must be a single-key mapping, got {data!r}")
        (variant, payload), = data.items()
        if variant == "Ref":
            return Ref(payload)
        if variant == "Value":
            return Value(int(payload))
        raise ValueError(f"unknown call result variant {variant!r}")


@dataclass(frozen=True)
class Ref(CallResult):
    id: ResultId


@dataclass(frozen=True)
class Value(CallResult):
    value: int
