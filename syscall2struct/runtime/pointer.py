"""
Pointer arguments.

A `Pointer` is either `Addr` (a raw address passed through untouched) or
`Data` (a value owned by the call object). Both variants answer `as_ptr()` and
`as_mut_ptr()` with the integer address to place in the argument register, so
generated code never needs to know which one it holds.

Owned data is copied into a ctypes buffer kept alive by the `Data` instance
until the next marshalling; `sync()` copies whatever the kernel wrote there back
into `Data.value`. Integers are laid out at the width the generated code passes
as `elem_bits` (signed for 8/16/32, unsigned for 64), and `terminated=True`
appends the NUL a C string needs unless the bytes already end with one.
"""

from __future__ import annotations

import ctypes
from dataclasses import dataclass, field
from typing import Any, Dict, Generic, Optional, Tuple, TypeVar

from .errors import BoundExceeded, ValueOutOfRange

T = TypeVar("T")

WORD_BITS = 64


def word(value: int, bits: int = WORD_BITS) -> int:
    """Check that `value` fits in `bits` (signed or unsigned) and return it unsigned."""
    if not isinstance(value, int):
        raise TypeError(f"expected an integer argument, got {type(value).__name__}")
    low = -(1 << (bits - 1))
    high = (1 << bits) - 1
    if value < low or value > high:
        raise ValueOutOfRange(f"value {value} does not fit in {bits} bits")
    return value & high


# ctypes element types of integer arrays and scalars, keyed by declared width.
_INT_CTYPES = {
    8: ctypes.c_int8,
    16: ctypes.c_int16,
    32: ctypes.c_int32,
    64: ctypes.c_uint64,
}


class Pointer(Generic[T]):
    """Sum of `Addr` and `Data`; never instantiated directly."""

    def as_ptr(self, limit: Optional[int] = None, elem_bits: int = WORD_BITS, terminated: bool = False) -> int:
        if isinstance(self, Addr):
            return word(self.addr)
        if isinstance(self, Data):
            return self._materialize(limit, elem_bits, terminated)
        raise TypeError(f"not a pointer variant: {type(self).__name__}")

    def as_mut_ptr(self, limit: Optional[int] = None, elem_bits: int = WORD_BITS, terminated: bool = False) -> int:
        if isinstance(self, Addr):
            return word(self.addr)
        if isinstance(self, Data):
            return self._materialize(limit, elem_bits, terminated)
        raise TypeError(f"not a pointer variant: {type(self).__name__}")

    def sync(self) -> None:
        if isinstance(self, Addr):
            return
        if isinstance(self, Data):
            self._read_back()
            return
        raise TypeError(f"not a pointer variant: {type(self).__name__}")

    def to_json(self, pointee_tag: str) -> Dict[str, Any]:
        from .calls import encode_value

        if isinstance(self, Addr):
            return {"Addr": self.addr}
        if isinstance(self, Data):
            return {"Data": encode_value(self.value, pointee_tag)}
        raise TypeError(f"not a pointer variant: {type(self).__name__}")

    @staticmethod
    def from_json(data: Dict[str, Any], pointee_tag: str) -> "Pointer[Any]":
        from .calls import decode_value

        if not isinstance(data, dict) or len(data) != 1:
            raise ValueError(f"pointer must be a single-key mapping, got {data!r}")
        (variant, payload), = data.items()
        if variant == "Addr":
            return Addr(int(payload))
        if variant == "Data":
            return Data(decode_value(payload, pointee_tag))
        raise ValueError(f"unknown pointer variant {variant!r}")


@dataclass
class Addr(Pointer[T]):
    addr: int


@dataclass
class Data(Pointer[T]):
    value: T
    _cell: Any = field(default=None, init=False, repr=False, compare=False)
    _size: int = field(default=0, init=False, repr=False, compare=False)

    def _materialize(self, limit: Optional[int], elem_bits: int, terminated: bool) -> int:
        value = self.value
        if limit is not None and not isinstance(value, int) and len(value) > limit:
            raise BoundExceeded(f"pointer data holds {len(value)} elements, limit is {limit}")
        self._cell, self._size = _to_ctypes(value, elem_bits, terminated)
        return ctypes.addressof(self._cell)

    def _read_back(self) -> None:
        cell = self._cell
        if cell is None:
            return
        if isinstance(self.value, int):
            self.value = cell.value
        elif isinstance(self.value, str):
            self.value = cell.value.decode("utf-8", errors="replace")
        elif isinstance(self.value, (bytes, bytearray)):
            # the appended NUL is not part of the value
            self.value = type(self.value)(cell.raw[: self._size])
        else:
            self.value = list(cell)


def _int_ctype(bits: int) -> Any:
    try:
        return _INT_CTYPES[bits]
    except KeyError:
        raise ValueError(f"unsupported integer width {bits}") from None


def _store(value: int, bits: int) -> int:
    """Range-check `value` for `bits` and convert it to what the ctypes element type holds."""
    raw = word(value, bits)
    if bits < WORD_BITS and raw >= 1 << (bits - 1):
        return raw - (1 << bits)
    return raw


def _to_ctypes(value: Any, elem_bits: int, terminated: bool) -> Tuple[Any, int]:
    """Place `value` in a fresh ctypes object; returns it with the value's own size."""
    if isinstance(value, int):
        return _int_ctype(elem_bits)(_store(value, elem_bits)), 1
    if isinstance(value, str):
        value = value.encode("utf-8")
        terminated = True
    if isinstance(value, (bytes, bytearray)):
        data = bytes(value)
        size = len(data) + 1 if terminated and not data.endswith(b"\0") else len(data)
        return ctypes.create_string_buffer(data, max(size, 1)), len(data)
    if isinstance(value, (list, tuple)):
        if any(isinstance(item, Pointer) for item in value):
            words = [item.as_ptr() if isinstance(item, Pointer) else word(item) for item in value]
            return (ctypes.c_uint64 * len(words))(*words), len(words)
        items = [_store(item, elem_bits) for item in value]
        return (_int_ctype(elem_bits) * len(items))(*items), len(items)
    raise TypeError(f"cannot place {type(value).__name__} behind a pointer")
