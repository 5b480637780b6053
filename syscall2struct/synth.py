"""
Struct/call synthesis.

One `EmittedCall` is produced per call definition from the definition itself,
its call number and the resolved type of every argument. The synthesizer
decides, per argument, how the value is marshalled into a register and, per
call, which calling trait the generated class implements: `mutable` as soon
as one argument is an `out` pointer the kernel writes through, `immutable`
otherwise.

The emitted definition already carries the body of its `call()` method
(marshalling statements followed by the invocation), so rendering is a plain
formatting step.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Set

from .ast import ArgType, Direction, Function
from .diagnostics import TranslateError
from .naming import field_ident, to_pascal_case
from .runtime.sequence import RESULT_FIELD
from .types import WORD_BITS, ArrayType, BytesType, IntType, PointerType, ResourceType, TypeDesc

MAX_SYSCALL_ARGS = 6


class SynthesisError(TranslateError):
    code = "E0300"
    phase = "synthesize"


class PointerToResourceError(SynthesisError):
    code = "E0301"


class AmbiguousDirectionError(SynthesisError):
    code = "E0302"


class FieldNameError(SynthesisError):
    code = "E0303"


class LayoutError(SynthesisError):
    code = "E0304"


class TooManyArgsError(SynthesisError):
    code = "E0305"


class CallTrait(Enum):
    IMMUTABLE = "immutable"
    MUTABLE = "mutable"

    @property
    def base_class(self) -> str:
        return "MakeSyscallMut" if self is CallTrait.MUTABLE else "MakeSyscall"


class FieldKind(Enum):
    VALUE = "value"
    IN_PTR = "in_ptr"
    OUT_PTR = "out_ptr"
    RESULT = "result"


@dataclass(frozen=True)
class EmittedField:
    name: str
    arg_name: str
    type: TypeDesc
    direction: Direction
    kind: FieldKind

    @property
    def mutable(self) -> bool:
        return self.kind is FieldKind.OUT_PTR

    @property
    def limit(self) -> Optional[int]:
        if isinstance(self.type, PointerType) and isinstance(self.type.pointee, (BytesType, ArrayType)):
            return self.type.pointee.max_len
        return None

    def pointer_options(self) -> List[str]:
        """Keyword arguments of the `as_ptr` / `as_mut_ptr` call for this field."""
        if not isinstance(self.type, PointerType):
            return []
        pointee = self.type.pointee
        opts: List[str] = []
        if self.limit is not None:
            opts.append(f"limit={self.limit}")
        if isinstance(pointee, ArrayType):
            pointee = pointee.elem
        if isinstance(pointee, IntType) and pointee.bits != WORD_BITS:
            opts.append(f"elem_bits={pointee.bits}")
        if isinstance(pointee, BytesType) and pointee.terminated:
            opts.append("terminated=True")
        return opts

    def to_json(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "arg": self.arg_name,
            "type": str(self.type),
            "annotation": self.type.annotation(),
            "direction": self.direction.value,
            "kind": self.kind.value,
            "mutable": self.mutable,
        }


@dataclass(frozen=True)
class EmittedCall:
    call_name: str
    struct_name: str
    nr: int
    fields: tuple[EmittedField, ...]
    trait: CallTrait
    result_field: Optional[str]
    body: tuple[str, ...]

    @property
    def skip_fields(self) -> frozenset[str]:
        """Fields left out of the serialized form."""
        return frozenset({self.result_field}) if self.result_field else frozenset()

    def to_json(self) -> Dict[str, Any]:
        return {
            "call": self.call_name,
            "struct": self.struct_name,
            "nr": self.nr,
            "trait": self.trait.value,
            "fields": [f.to_json() for f in self.fields],
            "result_field": self.result_field,
        }


def synthesize_call(function: Function, nr: int, arg_types: Sequence[TypeDesc]) -> EmittedCall:
    if len(arg_types) != len(function.args):
        raise ValueError(f"{function.name}: {len(function.args)} arguments but {len(arg_types)} resolved types")
    if len(function.args) > MAX_SYSCALL_ARGS:
        raise TooManyArgsError(
            f"too many arguments ({len(function.args)}, at most {MAX_SYSCALL_ARGS} fit in registers)",
            call=function.name,
        )
    fields: List[EmittedField] = []
    seen: Set[str] = set()
    for arg, ty in zip(function.args, arg_types):
        try:
            kind = _field_kind(ty)
        except SynthesisError as exc:
            raise exc.with_context(call=function.name, arg=arg.name)
        name = field_ident(arg.name)
        if name in seen:
            raise FieldNameError(f"duplicate field name '{name}'", call=function.name, arg=arg.name)
        seen.add(name)
        direction = ty.direction if isinstance(ty, PointerType) else arg.direction()
        fields.append(EmittedField(name=name, arg_name=arg.name, type=ty, direction=direction, kind=kind))

    mutable = any(f.mutable for f in fields)
    has_result = function.output is not None and function.output.arg_type is not ArgType.VOID
    return EmittedCall(
        call_name=function.name,
        struct_name=to_pascal_case(function.name),
        nr=nr,
        fields=tuple(fields),
        trait=CallTrait.MUTABLE if mutable else CallTrait.IMMUTABLE,
        result_field=RESULT_FIELD if has_result else None,
        body=tuple(_call_body(fields)),
    )


def _field_kind(ty: TypeDesc) -> FieldKind:
    if isinstance(ty, PointerType):
        if _contains_resource(ty.pointee):
            raise PointerToResourceError("pointer to a resource is not supported; pass the resource by value")
        if ty.direction is Direction.INOUT:
            raise AmbiguousDirectionError("argument is marked both in- and out-pointer")
        if isinstance(ty.pointee, ArrayType) and not isinstance(ty.pointee.elem, IntType):
            raise LayoutError(f"array elements must be integers, got {ty.pointee.elem}")
        return FieldKind.OUT_PTR if ty.direction is Direction.OUT else FieldKind.IN_PTR
    if isinstance(ty, ResourceType):
        return FieldKind.RESULT
    if isinstance(ty, IntType):
        return FieldKind.VALUE
    raise LayoutError(f"{ty} cannot be passed in a register; wrap it in ptr[...]")


def _contains_resource(ty: TypeDesc) -> bool:
    if isinstance(ty, ResourceType):
        return True
    if isinstance(ty, ArrayType):
        return _contains_resource(ty.elem)
    return False


def _call_body(fields: Sequence[EmittedField]) -> List[str]:
    lines: List[str] = []
    for idx, f in enumerate(fields):
        opts = ", ".join(f.pointer_options())
        if f.kind is FieldKind.VALUE:
            lines.append(f"arg{idx} = word(self.{f.name})")
        elif f.kind is FieldKind.IN_PTR:
            lines.append(f"arg{idx} = self.{f.name}.as_ptr({opts})")
        elif f.kind is FieldKind.OUT_PTR:
            lines.append(f"arg{idx} = self.{f.name}.as_mut_ptr({opts})")
        elif f.kind is FieldKind.RESULT:
            bits = f.type.base.bits if isinstance(f.type, ResourceType) and isinstance(f.type.base, IntType) else 64
            lines.append(f"arg{idx} = self.{f.name}.resolve(results, bits={bits})")
        else:
            raise AssertionError(f"unhandled field kind {f.kind}")
    call_args = "".join(f", arg{idx}" for idx in range(len(fields)))
    lines.append(f"ret = invoke(self.NR{call_args})")
    for f in fields:
        if f.kind is FieldKind.OUT_PTR:
            lines.append(f"self.{f.name}.sync()")
    lines.append("return ret")
    return lines
