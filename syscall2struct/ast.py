from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Dict, List, Optional, Union


@dataclass(frozen=True)
class Located:
    line: int
    column: int


class Direction(Enum):
    IN = "in"
    OUT = "out"
    INOUT = "inout"


class ArgType(Enum):
    """Type tags of the description language."""

    INT8 = auto()
    INT16 = auto()
    INT32 = auto()
    INT64 = auto()
    INTPTR = auto()
    BOOL = auto()
    FLAGS = auto()
    CONST = auto()
    LEN = auto()
    BYTESIZE = auto()
    BITSIZE = auto()
    OFFSETOF = auto()
    FILEOFF = auto()
    PROC = auto()
    VMA = auto()
    VMA64 = auto()
    CSUM = auto()
    STRING = auto()
    STRING_NOZ = auto()
    ARRAY = auto()
    PTR = auto()
    PTR64 = auto()
    BUFFER = auto()
    VOID = auto()
    TEXT = auto()
    FMT = auto()
    GLOB = auto()
    COMPRESSED_IMAGE = auto()
    IDENT = auto()

    def is_ptr(self) -> bool:
        return self in _POINTER_TAGS

    def is_int(self) -> bool:
        return self in _INT_TAGS


_POINTER_TAGS = frozenset({ArgType.PTR, ArgType.PTR64, ArgType.BUFFER})

_INT_TAGS = frozenset(
    {
        ArgType.INT8,
        ArgType.INT16,
        ArgType.INT32,
        ArgType.INT64,
        ArgType.INTPTR,
        ArgType.BOOL,
        ArgType.FLAGS,
        ArgType.CONST,
        ArgType.LEN,
        ArgType.BYTESIZE,
        ArgType.BITSIZE,
        ArgType.OFFSETOF,
        ArgType.FILEOFF,
        ArgType.PROC,
        ArgType.VMA,
        ArgType.VMA64,
        ArgType.CSUM,
    }
)

# Keyword -> tag. Names missing here are identifiers (resources, aliases, ...).
TYPE_TAGS: Dict[str, ArgType] = {
    "int8": ArgType.INT8,
    "int16": ArgType.INT16,
    "int16be": ArgType.INT16,
    "int32": ArgType.INT32,
    "int32be": ArgType.INT32,
    "int64": ArgType.INT64,
    "int64be": ArgType.INT64,
    "intptr": ArgType.INTPTR,
    "bool8": ArgType.BOOL,
    "bool16": ArgType.BOOL,
    "bool32": ArgType.BOOL,
    "bool64": ArgType.BOOL,
    "flags": ArgType.FLAGS,
    "const": ArgType.CONST,
    "len": ArgType.LEN,
    "bytesize": ArgType.BYTESIZE,
    "bytesize2": ArgType.BYTESIZE,
    "bytesize4": ArgType.BYTESIZE,
    "bytesize8": ArgType.BYTESIZE,
    "bitsize": ArgType.BITSIZE,
    "offsetof": ArgType.OFFSETOF,
    "fileoff": ArgType.FILEOFF,
    "proc": ArgType.PROC,
    "vma": ArgType.VMA,
    "vma64": ArgType.VMA64,
    "csum": ArgType.CSUM,
    "string": ArgType.STRING,
    "stringnoz": ArgType.STRING_NOZ,
    "array": ArgType.ARRAY,
    "ptr": ArgType.PTR,
    "ptr64": ArgType.PTR64,
    "buffer": ArgType.BUFFER,
    "void": ArgType.VOID,
    "text": ArgType.TEXT,
    "fmt": ArgType.FMT,
    "glob": ArgType.GLOB,
    "compressed_image": ArgType.COMPRESSED_IMAGE,
}


@dataclass(frozen=True)
class DirOpt:
    direction: Direction


@dataclass(frozen=True)
class SubArg:
    arg: "Argument"


@dataclass(frozen=True)
class IdentOpt:
    name: str


@dataclass(frozen=True)
class ValueOpt:
    value: int


@dataclass(frozen=True)
class RangeOpt:
    low: int
    high: int


@dataclass(frozen=True)
class StringOpt:
    value: str


ArgOpt = Union[DirOpt, SubArg, IdentOpt, ValueOpt, RangeOpt, StringOpt]


@dataclass(frozen=True)
class Argument:
    name: str
    arg_type: ArgType
    opts: tuple[ArgOpt, ...] = ()
    ident: Optional[str] = None
    loc: Optional[Located] = field(default=None, compare=False)

    def is_ptr(self) -> bool:
        return self.arg_type.is_ptr()

    def direction(self) -> Direction:
        for opt in self.opts:
            if isinstance(opt, DirOpt):
                return opt.direction
        return Direction.IN

    def subarg(self) -> Optional["Argument"]:
        for opt in self.opts:
            if isinstance(opt, SubArg):
                return opt.arg
        return None

    def tag_name(self) -> str:
        if self.arg_type is ArgType.IDENT:
            return self.ident or "<ident>"
        return self.arg_type.name.lower()


@dataclass
class Function:
    name: str
    args: List[Argument]
    output: Optional[Argument]
    loc: Located
    attrs: List[str] = field(default_factory=list)


@dataclass
class Resource:
    name: str
    base: Argument
    values: List[Union[int, str]]
    loc: Located


@dataclass
class TypeAlias:
    name: str
    target: Argument
    loc: Located
    params: List[str] = field(default_factory=list)

    @property
    def is_template(self) -> bool:
        return bool(self.params)


@dataclass
class Flags:
    name: str
    values: List[Union[int, str]]
    loc: Located


@dataclass
class StructField:
    name: str
    arg: Argument
    attrs: List[str] = field(default_factory=list)


@dataclass
class StructDef:
    name: str
    fields: List[StructField]
    loc: Located
    is_union: bool = False


@dataclass
class Define:
    name: str
    body: str
    loc: Located


class IdentKind(Enum):
    RESOURCE = auto()
    ALIAS = auto()
    FLAGS = auto()
    STRUCT = auto()
    UNION = auto()
    UNKNOWN = auto()


@dataclass
class Description:
    functions: List[Function] = field(default_factory=list)
    resources: Dict[str, Resource] = field(default_factory=dict)
    aliases: Dict[str, TypeAlias] = field(default_factory=dict)
    flags: Dict[str, Flags] = field(default_factory=dict)
    structs: Dict[str, StructDef] = field(default_factory=dict)
    includes: List[str] = field(default_factory=list)
    defines: Dict[str, Define] = field(default_factory=dict)

    def identifier_kind(self, name: str) -> IdentKind:
        if name in self.resources:
            return IdentKind.RESOURCE
        if name in self.aliases:
            return IdentKind.ALIAS
        if name in self.flags:
            return IdentKind.FLAGS
        struct = self.structs.get(name)
        if struct is not None:
            return IdentKind.UNION if struct.is_union else IdentKind.STRUCT
        return IdentKind.UNKNOWN

    def function(self, name: str) -> Function:
        for fn in self.functions:
            if fn.name == name:
                return fn
        raise KeyError(name)
