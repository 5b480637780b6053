from __future__ import annotations

import keyword
import re

# Attribute names the generated classes already use.
RESERVED_FIELD_NAMES = frozenset({"call", "to_dict", "from_dict", "result_id"})


def to_pascal_case(value: str) -> str:
    """`openat$dir` -> `OpenatDir`, `sched_yield` -> `SchedYield`."""
    parts = re.split(r"[^A-Za-z0-9]+", value)
    chunks = [part[0].upper() + part[1:] for part in parts if part]
    result = "".join(chunks) or "Syscall"
    if result[0].isdigit():
        result = f"N{result}"
    return result


def to_snake_case(value: str) -> str:
    value = re.sub(r"([a-z0-9])([A-Z])", r"\1_\2", value)
    value = re.sub(r"[^A-Za-z0-9]+", "_", value)
    value = re.sub(r"_+", "_", value).strip("_")
    value = value.lower() or "arg"
    if value[0].isdigit():
        value = f"v_{value}"
    return value


def field_ident(arg_name: str) -> str:
    name = to_snake_case(arg_name)
    if keyword.iskeyword(name) or name in RESERVED_FIELD_NAMES:
        name = f"{name}_"
    return name
