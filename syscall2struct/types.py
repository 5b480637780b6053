"""
Argument type resolution.

`TypeResolver.resolve` maps an `Argument` from the description onto a frozen
type descriptor. Resolution is pure: the same argument and description always
produce equal descriptors, so call definitions can be resolved in any order.

Descriptors:
  - IntType      integer; canonical 64-bit when passed in a register, declared
                 width (8/16/32/64) when laid out in memory behind a pointer
  - BytesType    strings, filenames and int8 arrays; `terminated` marks C strings
  - ArrayType    sequences of a resolved element type
  - PointerType  one level of indirection plus the pointer's direction
  - ResourceType a resource identifier resolved to its base type
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple

from .ast import ArgType, Argument, Description, Direction, IdentKind
from .config import TranslateConfig
from .diagnostics import TranslateError

WORD_BITS = 64


class TypeResolveError(TranslateError):
    code = "E0101"
    phase = "resolve"


class NestedPointerError(TypeResolveError):
    code = "E0102"


class ResourceCycleError(TypeResolveError):
    code = "E0103"


@dataclass(frozen=True)
class TypeDesc:
    def annotation(self) -> str:
        """Python annotation used for the generated field."""
        raise NotImplementedError

    def tag(self) -> str:
        """Short serialization tag stored in the generated FIELD_TYPES map."""
        raise NotImplementedError


@dataclass(frozen=True)
class IntType(TypeDesc):
    bits: int = WORD_BITS

    def annotation(self) -> str:
        return "int"

    def tag(self) -> str:
        return "int"

    def __str__(self) -> str:
        return f"u{self.bits}"


@dataclass(frozen=True)
class BytesType(TypeDesc):
    max_len: Optional[int] = None
    # NUL appended when the data is placed in memory
    terminated: bool = False

    def annotation(self) -> str:
        return "bytes"

    def tag(self) -> str:
        return "bytes"

    def __str__(self) -> str:
        name = "string" if self.terminated else "bytes"
        return name if self.max_len is None else f"{name}[<={self.max_len}]"


@dataclass(frozen=True)
class ArrayType(TypeDesc):
    elem: TypeDesc
    max_len: Optional[int] = None

    def annotation(self) -> str:
        return f"List[{self.elem.annotation()}]"

    def tag(self) -> str:
        return f"array:{self.elem.tag()}"

    def __str__(self) -> str:
        bound = "" if self.max_len is None else f"; <={self.max_len}"
        return f"array[{self.elem}{bound}]"


@dataclass(frozen=True)
class PointerType(TypeDesc):
    pointee: TypeDesc
    direction: Direction = Direction.IN

    def annotation(self) -> str:
        return f"Pointer[{self.pointee.annotation()}]"

    def tag(self) -> str:
        return f"ptr:{self.pointee.tag()}"

    def __str__(self) -> str:
        return f"ptr[{self.direction.value}, {self.pointee}]"


@dataclass(frozen=True)
class ResourceType(TypeDesc):
    name: str
    base: TypeDesc = IntType()

    def annotation(self) -> str:
        return "CallResult"

    def tag(self) -> str:
        return "result"

    def __str__(self) -> str:
        return f"resource {self.name}({self.base})"


U64 = IntType()

# Widths kept for integers laid out in memory; every other integer tag is a word.
_MEMORY_WIDTHS = {
    ArgType.INT8: 8,
    ArgType.INT16: 16,
    ArgType.INT32: 32,
    ArgType.INT64: 64,
}

# Identifiers that name builtin C strings rather than user definitions.
_BUILTIN_STRINGS = frozenset({"filename"})


class TypeResolver:
    def __init__(self, description: Description, config: Optional[TranslateConfig] = None) -> None:
        self.description = description
        self.config = config or TranslateConfig()

    def resolve(self, arg: Argument) -> TypeDesc:
        return self._resolve(arg, (), in_memory=False)

    def _resolve(self, arg: Argument, chain: Tuple[str, ...], in_memory: bool) -> TypeDesc:
        tag = arg.arg_type
        if tag.is_int():
            if in_memory:
                return IntType(_MEMORY_WIDTHS.get(tag, WORD_BITS))
            return U64
        if tag is ArgType.STRING:
            return BytesType(self.config.buffer_bound, terminated=True)
        if tag is ArgType.STRING_NOZ:
            return BytesType(self.config.buffer_bound)
        if tag is ArgType.ARRAY:
            return self._resolve_array(arg, chain)
        if tag.is_ptr():
            return self._resolve_pointer(arg, chain)
        if tag is ArgType.IDENT:
            return self._resolve_ident(arg, chain, in_memory)
        raise TypeResolveError(f"unsupported argument type '{arg.tag_name()}'", arg=arg.name or None)

    def _resolve_array(self, arg: Argument, chain: Tuple[str, ...]) -> TypeDesc:
        elem_arg = arg.subarg()
        if elem_arg is None:
            raise TypeResolveError("array without element type", arg=arg.name or None)
        if elem_arg.arg_type is ArgType.INT8:
            return BytesType(self.config.buffer_bound)
        elem = self._resolve(elem_arg, chain, in_memory=True)
        return ArrayType(elem, self.config.array_bound)

    def _resolve_pointer(self, arg: Argument, chain: Tuple[str, ...]) -> TypeDesc:
        sub = arg.subarg()
        if sub is None:
            raise TypeResolveError("pointer type without underlying type", arg=arg.name or None)
        if sub.is_ptr():
            raise NestedPointerError("nested pointer type is not supported", arg=arg.name or None)
        pointee = self._resolve(sub, chain, in_memory=True)
        if isinstance(pointee, PointerType):
            # pointer hidden behind an alias
            raise NestedPointerError("nested pointer type is not supported", arg=arg.name or None)
        return PointerType(pointee, arg.direction())

    def _resolve_ident(self, arg: Argument, chain: Tuple[str, ...], in_memory: bool) -> TypeDesc:
        name = arg.ident or ""
        if name in _BUILTIN_STRINGS:
            return BytesType(self.config.buffer_bound, terminated=True)
        if name in chain:
            cycle = " -> ".join(chain + (name,))
            raise ResourceCycleError(f"cyclic type definition: {cycle}", arg=arg.name or None)
        kind = self.description.identifier_kind(name)
        if kind is IdentKind.RESOURCE:
            resource = self.description.resources[name]
            base = self._resolve(resource.base, chain + (name,), in_memory=False)
            if isinstance(base, ResourceType):
                base = base.base
            if not isinstance(base, IntType):
                raise TypeResolveError(
                    f"resource '{name}' does not resolve to an integer base type (got {base})",
                    arg=arg.name or None,
                )
            return ResourceType(name, base)
        if kind is IdentKind.ALIAS:
            alias = self.description.aliases[name]
            if alias.is_template or arg.opts:
                raise TypeResolveError(f"unsupported argument type: template '{name}'", arg=arg.name or None)
            return self._resolve(alias.target, chain + (name,), in_memory)
        if kind is IdentKind.STRUCT:
            raise TypeResolveError(f"unsupported argument type: struct '{name}'", arg=arg.name or None)
        if kind is IdentKind.UNION:
            raise TypeResolveError(f"unsupported argument type: union '{name}'", arg=arg.name or None)
        if kind is IdentKind.FLAGS:
            raise TypeResolveError(f"flags set '{name}' used as a type; use flags[{name}]", arg=arg.name or None)
        raise TypeResolveError(f"unknown identifier '{name}'", arg=arg.name or None)
