from __future__ import annotations

from typing import Optional

import pytest

from syscall2struct.config import TranslateConfig
from syscall2struct.parser import parse_description
from syscall2struct.runtime import RESULT_FIELD
from syscall2struct.synth import (
    AmbiguousDirectionError,
    CallTrait,
    EmittedCall,
    FieldKind,
    FieldNameError,
    LayoutError,
    PointerToResourceError,
    TooManyArgsError,
    synthesize_call,
)
from syscall2struct.types import TypeResolver

DESC = """
resource fd[int32]: -1
resource pid[int32]

openat$dir(fd fd, file ptr[in, filename], flags int32, mode int32) fd
read(fd fd, buf buffer[out], count len[buf])
write(fd fd, buf buffer[in], count len[buf])
pipe2(pipefd ptr[out, array[int32, 2]], flags int32)
getpid() pid
sched_yield() void
"""


def _synth(name: str, source: str = DESC, nr: int = 1, config: Optional[TranslateConfig] = None) -> EmittedCall:
    desc = parse_description(source)
    fn = desc.function(name)
    resolver = TypeResolver(desc, config)
    return synthesize_call(fn, nr, [resolver.resolve(a) for a in fn.args])


def test_out_pointer_makes_call_mutable() -> None:
    call = _synth("read", nr=63)

    assert call.struct_name == "Read"
    assert call.nr == 63
    assert call.trait is CallTrait.MUTABLE
    assert call.trait.base_class == "MakeSyscallMut"
    assert [(f.name, f.kind) for f in call.fields] == [
        ("fd", FieldKind.RESULT),
        ("buf", FieldKind.OUT_PTR),
        ("count", FieldKind.VALUE),
    ]
    assert call.result_field is None
    assert call.skip_fields == frozenset()


def test_in_pointers_only_stay_immutable() -> None:
    call = _synth("write")

    assert call.trait is CallTrait.IMMUTABLE
    assert call.trait.base_class == "MakeSyscall"
    assert [f.mutable for f in call.fields] == [False, False, False]


def test_call_body_marshals_in_declaration_order() -> None:
    call = _synth("read")

    assert list(call.body) == [
        "arg0 = self.fd.resolve(results, bits=64)",
        "arg1 = self.buf.as_mut_ptr()",
        "arg2 = word(self.count)",
        "ret = invoke(self.NR, arg0, arg1, arg2)",
        "self.buf.sync()",
        "return ret",
    ]


def test_bounded_pointers_pass_their_limit() -> None:
    call = _synth("write", config=TranslateConfig(bounded=True))
    assert call.body[1] == "arg1 = self.buf.as_ptr(limit=4096)"

    pipe = _synth("pipe2", config=TranslateConfig(bounded=True))
    assert pipe.body[0] == "arg0 = self.pipefd.as_mut_ptr(limit=10, elem_bits=32)"


def test_pointers_pass_element_width_and_termination() -> None:
    pipe = _synth("pipe2")
    assert pipe.body[0] == "arg0 = self.pipefd.as_mut_ptr(elem_bits=32)"

    openat = _synth("openat$dir")
    assert openat.body[1] == "arg1 = self.file.as_ptr(terminated=True)"
    # int32 passed by value is still a full register
    assert openat.body[2] == "arg2 = word(self.flags)"

    read = _synth("read")
    assert read.body[1] == "arg1 = self.buf.as_mut_ptr()"


def test_return_value_adds_skipped_result_field() -> None:
    call = _synth("openat$dir", nr=56)

    assert call.struct_name == "OpenatDir"
    assert call.result_field == RESULT_FIELD == "result_id"
    assert call.skip_fields == frozenset({"result_id"})
    assert "result_id" not in [f.name for f in call.fields]
    assert call.to_json()["result_field"] == "result_id"


def test_call_without_arguments() -> None:
    call = _synth("getpid")

    assert call.fields == ()
    assert call.trait is CallTrait.IMMUTABLE
    assert call.result_field == "result_id"
    assert list(call.body) == ["ret = invoke(self.NR)", "return ret"]


def test_void_return_has_no_result_field() -> None:
    assert _synth("sched_yield").result_field is None


def test_pointer_to_resource_is_rejected() -> None:
    source = "resource fd[int32]\nf(p ptr[in, fd])\n"
    with pytest.raises(PointerToResourceError) as exc:
        _synth("f", source)
    assert exc.value.call == "f"
    assert exc.value.arg == "p"

    with pytest.raises(PointerToResourceError):
        _synth("g", "resource fd[int32]\ng(p ptr[out, array[fd]])\n")


def test_in_and_out_pointer_is_rejected() -> None:
    with pytest.raises(AmbiguousDirectionError, match="both in- and out-pointer"):
        _synth("f", "f(p ptr[inout, int64])\n")


def test_too_many_arguments() -> None:
    source = "f(a int32, b int32, c int32, d int32, e int32, g int32, h int32)\n"
    with pytest.raises(TooManyArgsError):
        _synth("f", source)


def test_non_integer_by_value_is_rejected() -> None:
    with pytest.raises(LayoutError, match="wrap it in ptr"):
        _synth("f", "f(s string)\n")


def test_field_names_are_python_identifiers() -> None:
    call = _synth("f", "f(from int32, call int32, Mode int32)\n")
    assert [f.name for f in call.fields] == ["from_", "call_", "mode"]
    assert [f.arg_name for f in call.fields] == ["from", "call", "Mode"]


def test_colliding_field_names_are_rejected() -> None:
    with pytest.raises(FieldNameError, match="duplicate field name 'a_b'"):
        _synth("f", "f(a_b int32, aB int32)\n")


def test_resolved_types_must_match_arguments() -> None:
    fn = parse_description(DESC).function("read")
    with pytest.raises(ValueError):
        synthesize_call(fn, 63, [])
