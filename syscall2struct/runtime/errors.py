from __future__ import annotations


class RuntimeFault(Exception):
    """A failure while executing a call sequence; fatal to that sequence."""


class ResultNotFound(RuntimeFault, LookupError):
    def __init__(self, result_id: object) -> None:
        super().__init__(f"syscall result not found: {result_id!r}")
        self.result_id = result_id


class DuplicateResult(RuntimeFault):
    def __init__(self, result_id: object) -> None:
        super().__init__(f"syscall result already recorded: {result_id!r}")
        self.result_id = result_id


class ResultStoreFull(RuntimeFault):
    def __init__(self, capacity: int) -> None:
        super().__init__(f"result store capacity exceeded ({capacity} entries)")
        self.capacity = capacity


class ValueOutOfRange(RuntimeFault, ValueError):
    pass


class BoundExceeded(RuntimeFault, ValueError):
    pass
