from __future__ import annotations

from pathlib import Path
from typing import Dict, List, Optional, Union

from lark import Lark, Token, Tree

from .ast import (
    ArgOpt,
    ArgType,
    Argument,
    Define,
    Description,
    DirOpt,
    Direction,
    Flags,
    Function,
    IdentOpt,
    Located,
    RangeOpt,
    Resource,
    StringOpt,
    StructDef,
    StructField,
    SubArg,
    TYPE_TAGS,
    TypeAlias,
    ValueOpt,
)

_GRAMMAR_PATH = Path(__file__).with_name("grammar.lark")
_GRAMMAR_SRC = _GRAMMAR_PATH.read_text()

_DIRECTIONS = {d.value: d for d in Direction}

# Positions in a type's argument list that name something (a flags set, a
# sibling field, a string dictionary) instead of holding a nested type.
_NAME_POSITIONS: Dict[ArgType, frozenset[int]] = {
    ArgType.FLAGS: frozenset({0}),
    ArgType.CONST: frozenset({0}),
    ArgType.LEN: frozenset({0}),
    ArgType.BYTESIZE: frozenset({0}),
    ArgType.BITSIZE: frozenset({0}),
    ArgType.OFFSETOF: frozenset({0}),
    ArgType.STRING: frozenset({0}),
    ArgType.STRING_NOZ: frozenset({0}),
    ArgType.FMT: frozenset({0}),
    ArgType.GLOB: frozenset({0}),
    ArgType.TEXT: frozenset({0}),
}


class DescriptionError(Exception):
    def __init__(self, message: str, loc: Optional[Located] = None) -> None:
        self.loc = loc
        if loc is not None:
            message = f"{loc.line}:{loc.column}: {message}"
        super().__init__(message)


class NewlineSuppressor:
    """Drop newlines inside parentheses so argument lists can wrap."""

    always_accept = ("_NL",)

    def __init__(self) -> None:
        self.paren_depth = 0

    def process(self, stream):
        self.paren_depth = 0
        for token in stream:
            ttype = token.type
            if ttype == "LPAR":
                self.paren_depth += 1
            elif ttype == "RPAR" and self.paren_depth:
                self.paren_depth -= 1
            elif ttype == "_NL" and self.paren_depth:
                continue
            yield token


_PARSER = Lark(
    _GRAMMAR_SRC,
    parser="lalr",
    start="description",
    propagate_positions=True,
    maybe_placeholders=False,
    postlex=NewlineSuppressor(),
)


def parse_description(source: str) -> Description:
    if not source.endswith("\n"):
        source += "\n"
    tree = _PARSER.parse(source)
    return _build_description(tree)


def parse_description_file(path: Path) -> Description:
    return parse_description(Path(path).read_text())


def _build_description(tree: Tree) -> Description:
    desc = Description()
    for child in tree.children:
        if not isinstance(child, Tree):
            continue
        kind = _name(child)
        if kind in ("include_stmt", "incdir_stmt"):
            desc.includes.append(child.children[0].value[1:-1])
        elif kind == "define_stmt":
            define = Define(name=child.children[0].value, body=child.children[1].value.strip(), loc=_loc(child))
            desc.defines[define.name] = define
        elif kind == "resource_def":
            resource = _build_resource(child)
            _check_unique(desc, resource.name, resource.loc)
            desc.resources[resource.name] = resource
        elif kind in ("type_alias", "template_alias"):
            alias = _build_alias(child)
            _check_unique(desc, alias.name, alias.loc)
            desc.aliases[alias.name] = alias
        elif kind == "flags_def":
            flags = Flags(
                name=child.children[0].value,
                values=[_build_flag_value(v) for v in child.children[1:]],
                loc=_loc(child),
            )
            _check_unique(desc, flags.name, flags.loc)
            desc.flags[flags.name] = flags
        elif kind in ("struct_def", "union_def"):
            struct = _build_struct(child, is_union=kind == "union_def")
            _check_unique(desc, struct.name, struct.loc)
            desc.structs[struct.name] = struct
        elif kind == "call_def":
            desc.functions.append(_build_function(child))
    return desc


def _check_unique(desc: Description, name: str, loc: Located) -> None:
    if name in desc.resources or name in desc.aliases or name in desc.flags or name in desc.structs:
        raise DescriptionError(f"'{name}' already defined", loc)


def _build_resource(tree: Tree) -> Resource:
    loc = _loc(tree)
    name_token = tree.children[0]
    base = _build_argument("", tree.children[1])
    values: List[Union[int, str]] = []
    for child in tree.children[2:]:
        if isinstance(child, Tree) and _name(child) == "resource_values":
            values = [_build_flag_value(v) for v in child.children]
    return Resource(name=name_token.value, base=base, values=values, loc=loc)


def _build_alias(tree: Tree) -> TypeAlias:
    children = list(tree.children)
    name_token = children[0]
    params = [tok.value for tok in children[1:-1] if isinstance(tok, Token)]
    target = _build_argument("", children[-1])
    return TypeAlias(name=name_token.value, target=target, loc=_loc(tree), params=params)


def _build_flag_value(node: Tree) -> Union[int, str]:
    kind = _name(node)
    if kind == "number":
        return _parse_int(node.children[0])
    if kind == "flag_string":
        return node.children[0].value[1:-1]
    return node.children[0].value


def _build_struct(tree: Tree, is_union: bool) -> StructDef:
    name_token = tree.children[0]
    fields: List[StructField] = []
    for child in tree.children[1:]:
        if isinstance(child, Tree) and _name(child) == "field":
            field_name = child.children[0].value
            arg = _build_argument(field_name, child.children[1])
            attrs: List[str] = []
            if len(child.children) > 2:
                attrs = [tok.value for tok in child.children[2].children]
            fields.append(StructField(name=field_name, arg=arg, attrs=attrs))
    return StructDef(name=name_token.value, fields=fields, loc=_loc(tree), is_union=is_union)


def _build_function(tree: Tree) -> Function:
    loc = _loc(tree)
    children = list(tree.children)
    name_token = children[0]
    args: List[Argument] = []
    output: Optional[Argument] = None
    attrs: List[str] = []
    for child in children[1:]:
        if not isinstance(child, Tree):
            continue
        kind = _name(child)
        if kind == "call_args":
            for call_arg in child.children:
                args.append(_build_argument(call_arg.children[0].value, call_arg.children[1]))
        elif kind == "type_expr":
            output = _build_argument("", child)
        elif kind == "call_attrs":
            attrs = [attr.children[0].value for attr in child.children]
    return Function(name=name_token.value, args=args, output=output, loc=loc, attrs=attrs)


def _build_argument(name: str, tree: Tree) -> Argument:
    loc = _loc(tree)
    type_name = tree.children[0].value
    type_args: List[Tree] = []
    if len(tree.children) > 1:
        type_args = list(tree.children[1].children)
    tag = TYPE_TAGS.get(type_name)
    if tag is None:
        opts = tuple(_build_opt(arg, name_position=False) for arg in type_args)
        return Argument(name=name, arg_type=ArgType.IDENT, opts=opts, ident=type_name, loc=loc)
    name_positions = _NAME_POSITIONS.get(tag, frozenset())
    opts_list: List[ArgOpt] = [
        _build_opt(arg, name_position=idx in name_positions) for idx, arg in enumerate(type_args)
    ]
    if tag.is_ptr():
        opts_list = _normalize_pointer_opts(type_name, tag, opts_list, loc)
    return Argument(name=name, arg_type=tag, opts=tuple(opts_list), loc=loc)


def _normalize_pointer_opts(type_name: str, tag: ArgType, opts: List[ArgOpt], loc: Located) -> List[ArgOpt]:
    if not opts or not isinstance(opts[0], DirOpt):
        raise DescriptionError(f"'{type_name}' requires a direction (in, out, inout) as first argument", loc)
    if tag is ArgType.BUFFER:
        bytes_arg = Argument(
            name="",
            arg_type=ArgType.ARRAY,
            opts=(SubArg(Argument(name="", arg_type=ArgType.INT8, loc=loc)),),
            loc=loc,
        )
        return [opts[0], SubArg(bytes_arg)]
    if len(opts) < 2 or not isinstance(opts[1], SubArg):
        raise DescriptionError(f"'{type_name}' requires a pointed-to type", loc)
    return opts


def _build_opt(node: Tree, name_position: bool) -> ArgOpt:
    kind = _name(node)
    if kind == "number":
        return ValueOpt(_parse_int(node.children[0]))
    if kind == "range":
        low, high = node.children
        return RangeOpt(_parse_int(low.children[0]), _parse_int(high.children[0]))
    if kind == "string_arg":
        return StringOpt(node.children[0].value[1:-1])
    # type_expr
    plain_name = node.children[0].value if len(node.children) == 1 else None
    if plain_name is not None and plain_name in _DIRECTIONS:
        return DirOpt(_DIRECTIONS[plain_name])
    if plain_name is not None and name_position:
        return IdentOpt(plain_name)
    return SubArg(_build_argument("", node))


def _parse_int(token: Token) -> int:
    text = token.value
    try:
        return int(text, 0)
    except ValueError:
        # leading zeros ("0755") are rejected by base 0
        return int(text, 10)


def _loc(tree: Tree) -> Located:
    meta = tree.meta
    return Located(line=getattr(meta, "line", 0), column=getattr(meta, "column", 0))


def _name(node: Tree | Token) -> str:
    if isinstance(node, Tree):
        data = node.data
        if isinstance(data, Token):
            return data.value
        return data
    return node.type
