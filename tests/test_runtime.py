import ctypes
from dataclasses import dataclass, field
from typing import ClassVar, Dict, FrozenSet, List, Optional

import pytest

from syscall2struct.config import TranslateConfig
from syscall2struct.runtime import (
    Addr,
    BoundExceeded,
    BoundedResultStore,
    CallResult,
    CallSequence,
    Data,
    DuplicateResult,
    GrowableResultStore,
    MakeSyscall,
    MakeSyscallMut,
    Pointer,
    Ref,
    ResultId,
    ResultNotFound,
    ResultStoreFull,
    Value,
    ValueOutOfRange,
    new_result_store,
    run_sequence,
    word,
)


def test_result_store_insert_contains_get() -> None:
    store = GrowableResultStore()
    assert not store.contains("fd")

    store.insert("fd", 3)
    assert store.contains("fd")
    assert "fd" in store
    assert store.get("fd") == 3
    assert len(store) == 1


def test_result_store_rejects_reinsertion() -> None:
    store = new_result_store()
    store.insert(1, 10)
    with pytest.raises(DuplicateResult):
        store.insert(1, 11)
    assert store.get(1) == 10


def test_result_store_unknown_id() -> None:
    with pytest.raises(ResultNotFound):
        new_result_store().get("missing")
    # lookup errors stay catchable as LookupError
    with pytest.raises(LookupError):
        new_result_store(4).get("missing")


def test_bounded_result_store_capacity() -> None:
    store = new_result_store(2)
    assert isinstance(store, BoundedResultStore)
    store.insert("a", 1)
    store.insert("b", 2)
    with pytest.raises(DuplicateResult):
        store.insert("a", 3)
    with pytest.raises(ResultStoreFull):
        store.insert("c", 3)
    with pytest.raises(ValueError):
        BoundedResultStore(0)


def test_word_bounds() -> None:
    assert word(5) == 5
    assert word(-1) == (1 << 64) - 1
    assert word(-1, bits=32) == 0xFFFFFFFF
    assert word((1 << 64) - 1) == (1 << 64) - 1
    with pytest.raises(ValueOutOfRange):
        word(1 << 64)
    with pytest.raises(ValueOutOfRange):
        word(1 << 32, bits=32)
    with pytest.raises(TypeError):
        word("3")  # type: ignore[arg-type]


def test_call_result_resolves_at_call_time() -> None:
    store = new_result_store()
    ref = Ref("fd")
    with pytest.raises(ResultNotFound):
        ref.resolve(store)

    store.insert("fd", 7)
    assert ref.resolve(store) == 7
    assert Value(-100).resolve(store) == word(-100)
    with pytest.raises(ValueOutOfRange):
        Value(1 << 40).resolve(store, bits=32)


def test_call_result_json_variants() -> None:
    assert Ref("fd").to_json() == {"Ref": "fd"}
    assert Value(3).to_json() == {"Value": 3}
    assert CallResult.from_json({"Ref": "fd"}) == Ref("fd")
    assert CallResult.from_json({"Value": 3}) == Value(3)
    with pytest.raises(ValueError):
        CallResult.from_json({"Ref": 1, "Value": 2})


def test_addr_pointer_passes_address_through() -> None:
    ptr: Pointer[bytes] = Addr(0x1000)
    assert ptr.as_ptr() == 0x1000
    assert ptr.as_mut_ptr() == 0x1000
    ptr.sync()
    assert ptr.to_json("bytes") == {"Addr": 0x1000}


def test_data_pointer_owns_its_buffer() -> None:
    ptr = Data(b"hello")
    addr = ptr.as_ptr()

    assert ctypes.string_at(addr, 5) == b"hello"
    assert ptr.to_json("bytes") == {"Data": list(b"hello")}
    assert Pointer.from_json({"Data": list(b"hi")}, "bytes") == Data(b"hi")
    assert Pointer.from_json({"Addr": 16}, "bytes") == Addr(16)


def test_data_pointer_sync_reads_back_kernel_writes() -> None:
    ptr = Data(bytes(8))
    addr = ptr.as_mut_ptr()
    ctypes.memmove(addr, b"abc", 3)
    ptr.sync()
    assert ptr.value == b"abc" + bytes(5)

    ints = Data([0, 0])
    base = ints.as_mut_ptr()
    ctypes.cast(base, ctypes.POINTER(ctypes.c_uint64))[1] = 42
    ints.sync()
    assert ints.value == [0, 42]


def test_data_pointer_lays_out_declared_int_width() -> None:
    fds = Data([0, 0])
    base = fds.as_mut_ptr(elem_bits=32)
    cells = ctypes.cast(base, ctypes.POINTER(ctypes.c_int32))
    cells[0], cells[1] = 5, 6
    fds.sync()
    assert fds.value == [5, 6]

    small = Data([-1, 0x7F])
    assert ctypes.string_at(small.as_ptr(elem_bits=8), 2) == b"\xff\x7f"
    with pytest.raises(ValueOutOfRange):
        Data([1 << 16]).as_ptr(elem_bits=16)

    one = Data(0)
    addr = one.as_mut_ptr(elem_bits=32)
    ctypes.cast(addr, ctypes.POINTER(ctypes.c_int32))[0] = -9
    one.sync()
    assert one.value == -9


def test_terminated_data_gets_a_nul() -> None:
    path = Data(b"/etc")
    addr = path.as_ptr(terminated=True)
    assert ctypes.string_at(addr, 5) == b"/etc\0"

    path.sync()
    assert path.value == b"/etc"

    already = Data(b"/etc\0")
    already.as_ptr(terminated=True)
    assert ctypes.sizeof(already._cell) == 5

    raw = Data(b"ab")
    raw.as_ptr()
    assert ctypes.sizeof(raw._cell) == 2


def test_data_pointer_enforces_limit() -> None:
    with pytest.raises(BoundExceeded):
        Data(bytes(5)).as_ptr(limit=4)
    assert Data(bytes(4)).as_ptr(limit=4) != 0


@dataclass
class OpenFile(MakeSyscall):
    NR: ClassVar[int] = 56
    FIELD_TYPES: ClassVar[Dict[str, str]] = {"path": "ptr:bytes", "flags": "int"}
    SKIP_FIELDS: ClassVar[FrozenSet[str]] = frozenset({"result_id"})

    path: Pointer[bytes]
    flags: int
    result_id: Optional[ResultId] = field(default=None, metadata={"skip": True})

    def call(self, results, invoke):
        arg0 = self.path.as_ptr()
        arg1 = word(self.flags)
        return invoke(self.NR, arg0, arg1)


@dataclass
class ReadFile(MakeSyscallMut):
    NR: ClassVar[int] = 63
    FIELD_TYPES: ClassVar[Dict[str, str]] = {"fd": "result", "buf": "ptr:bytes", "count": "int"}

    fd: CallResult
    buf: Pointer[bytes]
    count: int

    def call(self, results, invoke):
        arg0 = self.fd.resolve(results, bits=64)
        arg1 = self.buf.as_mut_ptr()
        arg2 = word(self.count)
        ret = invoke(self.NR, arg0, arg1, arg2)
        self.buf.sync()
        return ret


class FakeKernel:
    def __init__(self) -> None:
        self.calls: List[tuple] = []

    def __call__(self, nr: int, *args: int) -> int:
        self.calls.append((nr,) + args)
        if nr == 56:
            return 3
        if nr == 63:
            ctypes.memmove(args[1], b"data", 4)
            return 4
        return -38


def test_to_dict_skips_result_id_and_round_trips() -> None:
    call = OpenFile(path=Data(b"/tmp"), flags=2, result_id="f")

    assert call.to_dict() == {"path": {"Data": list(b"/tmp")}, "flags": 2}
    back = OpenFile.from_dict(call.to_dict())
    assert back == OpenFile(path=Data(b"/tmp"), flags=2)
    assert back.result_id is None
    with pytest.raises(ValueError, match="missing field 'flags'"):
        OpenFile.from_dict({"path": {"Addr": 0}})


def test_mutability_flag_follows_base_class() -> None:
    assert OpenFile.MUTABLE is False
    assert ReadFile.MUTABLE is True


def test_run_sequence_feeds_results_forward() -> None:
    kernel = FakeKernel()
    read = ReadFile(fd=Ref("f"), buf=Data(bytes(4)), count=4)
    store = new_result_store()

    rets = run_sequence([OpenFile(path=Data(b"/tmp"), flags=0, result_id="f"), read], store, kernel)

    assert rets == [3, 4]
    assert store.get("f") == 3
    assert kernel.calls[1][:2] == (63, 3)
    assert read.buf.value == b"data"


def test_run_sequence_missing_reference_fails() -> None:
    with pytest.raises(ResultNotFound):
        run_sequence([ReadFile(fd=Ref("nope"), buf=Addr(0), count=0)], invoke=FakeKernel())


def test_call_sequence_uses_fresh_store_per_run() -> None:
    seq = CallSequence(capacity=1).append(OpenFile(path=Data(b"/"), flags=0, result_id="f"))

    assert seq.run(FakeKernel()) == [3]
    assert seq.run(FakeKernel()) == [3]

    seq.append(OpenFile(path=Data(b"/"), flags=0, result_id="g"))
    with pytest.raises(ResultStoreFull):
        seq.run(FakeKernel())


def test_call_sequence_capacity_from_config() -> None:
    config = TranslateConfig.from_env({"SYSCALL2STRUCT_RESULT_CAPACITY": "1"})
    calls = [OpenFile(path=Data(b"/"), flags=0, result_id="f"), OpenFile(path=Data(b"/"), flags=0, result_id="g")]
    seq = CallSequence.from_config(config, calls)

    assert seq.capacity == 1
    with pytest.raises(ResultStoreFull):
        seq.run(FakeKernel())
    assert CallSequence.from_config(TranslateConfig(), calls).run(FakeKernel()) == [3, 3]
