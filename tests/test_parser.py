from __future__ import annotations

import pytest
from lark.exceptions import UnexpectedInput

from syscall2struct.ast import ArgType, DirOpt, Direction, IdentKind, IdentOpt, RangeOpt, SubArg, ValueOpt
from syscall2struct.parser import DescriptionError, parse_description

SOURCE = """
# comment before everything
include <uapi/linux/fcntl.h>
define SOME_LIMIT 4 * 1024

resource fd[int32]: -1, AT_FDCWD
resource sock[fd]
type mode_t int32
type tmpl[T] array[T, 4]
open_flags = O_RDONLY, 0x40, "x"

stat {
	dev	int64
# comment inside a struct
	ino	int64	(in)
}

openat$dir(fd fd, file ptr[in, filename], flags flags[open_flags],
	mode mode_t) fd
read(fd fd, buf buffer[out], count len[buf])
nanosleep(req int32[0:100], rem const[0])
exit_group(code int32) (disabled)
"""


def test_parse_description_collects_definitions() -> None:
    desc = parse_description(SOURCE)

    assert desc.includes == ["uapi/linux/fcntl.h"]
    assert desc.defines["SOME_LIMIT"].body == "4 * 1024"
    assert desc.resources["fd"].values == [-1, "AT_FDCWD"]
    assert desc.resources["sock"].base.ident == "fd"
    assert desc.aliases["mode_t"].target.arg_type is ArgType.INT32
    assert desc.aliases["tmpl"].is_template
    assert desc.aliases["tmpl"].params == ["T"]
    assert desc.flags["open_flags"].values == ["O_RDONLY", 0x40, "x"]
    assert [f.name for f in desc.structs["stat"].fields] == ["dev", "ino"]
    assert desc.structs["stat"].fields[1].attrs == ["in"]
    assert [f.name for f in desc.functions] == ["openat$dir", "read", "nanosleep", "exit_group"]


def test_identifier_kinds() -> None:
    desc = parse_description(SOURCE)

    assert desc.identifier_kind("fd") is IdentKind.RESOURCE
    assert desc.identifier_kind("mode_t") is IdentKind.ALIAS
    assert desc.identifier_kind("open_flags") is IdentKind.FLAGS
    assert desc.identifier_kind("stat") is IdentKind.STRUCT
    assert desc.identifier_kind("nope") is IdentKind.UNKNOWN


def test_call_arguments_keep_declaration_order_and_options() -> None:
    desc = parse_description(SOURCE)
    openat = desc.function("openat$dir")

    assert [a.name for a in openat.args] == ["fd", "file", "flags", "mode"]
    fd, file, flags, mode = openat.args
    assert fd.arg_type is ArgType.IDENT and fd.ident == "fd"
    assert file.is_ptr()
    assert file.direction() is Direction.IN
    assert file.subarg().ident == "filename"
    assert flags.arg_type is ArgType.FLAGS
    assert flags.opts == (IdentOpt("open_flags"),)
    assert mode.ident == "mode_t"
    assert openat.output.ident == "fd"
    assert openat.loc.line == 18


def test_buffer_is_pointer_to_bytes() -> None:
    read = parse_description(SOURCE).function("read")
    buf = read.args[1]

    assert buf.arg_type is ArgType.BUFFER
    assert buf.direction() is Direction.OUT
    elem = buf.subarg()
    assert elem.arg_type is ArgType.ARRAY
    assert elem.subarg().arg_type is ArgType.INT8
    assert read.output is None


def test_ranges_values_and_call_attributes() -> None:
    desc = parse_description(SOURCE)
    req, rem = desc.function("nanosleep").args

    assert req.opts == (RangeOpt(0, 100),)
    assert rem.opts == (ValueOpt(0),)
    assert desc.function("exit_group").attrs == ["disabled"]


def test_argument_direction_defaults_to_in() -> None:
    desc = parse_description("close(fd int32)\n")
    assert desc.functions[0].args[0].direction() is Direction.IN


def test_pointer_options() -> None:
    desc = parse_description("f(p ptr[inout, int64], q ptr64[out, array[int32]])")
    p, q = desc.functions[0].args

    assert p.opts[0] == DirOpt(Direction.INOUT)
    assert isinstance(p.opts[1], SubArg)
    assert q.arg_type is ArgType.PTR64
    assert q.subarg().arg_type is ArgType.ARRAY


def test_pointer_without_direction_is_rejected() -> None:
    with pytest.raises(DescriptionError, match="requires a direction"):
        parse_description("f(p ptr[int64])\n")


def test_pointer_without_pointee_is_rejected() -> None:
    with pytest.raises(DescriptionError, match="pointed-to type"):
        parse_description("f(p ptr[in])\n")


def test_duplicate_definition_is_rejected() -> None:
    with pytest.raises(DescriptionError, match="already defined"):
        parse_description("resource fd[int32]\nfd = 1, 2\n")


def test_syntax_error_propagates() -> None:
    with pytest.raises(UnexpectedInput):
        parse_description("open(fd int32\n")
