from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Iterable, List, Optional

from .calls import Invoker, MakeSyscall, syscall
from .results import ResultStore, new_result_store

logger = logging.getLogger(__name__)

# Field of generated classes naming the id a call's return value is stored under.
RESULT_FIELD = "result_id"


def run_sequence(
    calls: Iterable[MakeSyscall],
    results: Optional[ResultStore] = None,
    invoke: Invoker = syscall,
) -> List[int]:
    """
    Execute `calls` one after another.

    A call's result is recorded under its `result_id` before the next call
    marshals its arguments. Runtime faults end the sequence and propagate.
    """
    store = results if results is not None else new_result_store()
    outcomes: List[int] = []
    for index, call in enumerate(calls):
        ret = call.call(store, invoke)
        logger.debug("#%d %s (nr %d) -> %d", index, type(call).__name__, call.NR, ret)
        result_id = getattr(call, RESULT_FIELD, None)
        if result_id is not None:
            store.insert(result_id, ret)
        outcomes.append(ret)
    return outcomes


@dataclass
class CallSequence:
    """A reusable list of calls; every run gets a fresh result store."""

    calls: List[MakeSyscall] = field(default_factory=list)
    # None selects the growable store
    capacity: Optional[int] = None

    @classmethod
    def from_config(cls, config: Any, calls: Iterable[MakeSyscall] = ()) -> "CallSequence":
        """Build a sequence whose store follows `config.result_capacity`."""
        return cls(list(calls), capacity=config.result_capacity)

    def append(self, call: MakeSyscall) -> "CallSequence":
        self.calls.append(call)
        return self

    def run(self, invoke: Invoker = syscall) -> List[int]:
        store = new_result_store(self.capacity)
        logger.info("running %d calls", len(self.calls))
        return run_sequence(self.calls, store, invoke)
