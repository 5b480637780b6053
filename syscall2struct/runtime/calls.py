from __future__ import annotations

import ctypes
import dataclasses
import functools
from typing import Any, Callable, ClassVar, Dict, FrozenSet, Mapping

from .pointer import Pointer, word
from .results import CallResult, ResultStore

MAX_SYSCALL_ARGS = 6

Invoker = Callable[..., int]


@functools.lru_cache(maxsize=None)
def _libc_syscall():
    libc = ctypes.CDLL(None, use_errno=True)
    fn = libc.syscall
    fn.restype = ctypes.c_long
    return fn


def syscall(nr: int, *args: int) -> int:
    """Invoke `nr` through libc's syscall(2); errors come back as -errno."""
    if len(args) > MAX_SYSCALL_ARGS:
        raise ValueError(f"at most {MAX_SYSCALL_ARGS} syscall arguments, got {len(args)}")
    fn = _libc_syscall()
    ret = fn(ctypes.c_long(nr), *(ctypes.c_ulong(word(a)) for a in args))
    if ret == -1:
        return -ctypes.get_errno()
    return ret


class MakeSyscall:
    """
    Calling trait of generated syscall classes that only read their fields.

    Subclasses are dataclasses that set `NR`, `FIELD_TYPES` (field name ->
    serialization tag) and `SKIP_FIELDS`, and implement `call()`.
    """

    NR: ClassVar[int]
    MUTABLE: ClassVar[bool] = False
    FIELD_TYPES: ClassVar[Dict[str, str]] = {}
    SKIP_FIELDS: ClassVar[FrozenSet[str]] = frozenset()

    def call(self, results: ResultStore, invoke: Invoker = syscall) -> int:
        raise NotImplementedError

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {}
        for f in dataclasses.fields(self):
            if f.name in self.SKIP_FIELDS:
                continue
            out[f.name] = encode_value(getattr(self, f.name), self.FIELD_TYPES[f.name])
        return out

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]):
        kwargs: Dict[str, Any] = {}
        for name, tag in cls.FIELD_TYPES.items():
            if name not in data:
                raise ValueError(f"{cls.__name__}: missing field '{name}'")
            kwargs[name] = decode_value(data[name], tag)
        return cls(**kwargs)


class MakeSyscallMut(MakeSyscall):
    """Calling trait of generated classes whose call writes back through out pointers."""

    MUTABLE: ClassVar[bool] = True


def encode_value(value: Any, tag: str) -> Any:
    if tag == "int":
        return value
    if tag == "bytes":
        if isinstance(value, str):
            return list(value.encode("utf-8"))
        return list(value)
    if tag.startswith("array:"):
        return [encode_value(item, tag[len("array:"):]) for item in value]
    if tag.startswith("ptr:"):
        return value.to_json(tag[len("ptr:"):])
    if tag == "result":
        return value.to_json()
    raise ValueError(f"unknown field tag {tag!r}")


def decode_value(data: Any, tag: str) -> Any:
    if tag == "int":
        return int(data)
    if tag == "bytes":
        return bytes(data)
    if tag.startswith("array:"):
        return [decode_value(item, tag[len("array:"):]) for item in data]
    if tag.startswith("ptr:"):
        return Pointer.from_json(data, tag[len("ptr:"):])
    if tag == "result":
        return CallResult.from_json(data)
    raise ValueError(f"unknown field tag {tag!r}")
