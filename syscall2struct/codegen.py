from __future__ import annotations

import json
from typing import Iterable, List, Optional

from .synth import EmittedCall

HEADER = "# Code generated by syscall2struct. DO NOT EDIT."

# Generated modules stay free of `from __future__ import annotations`: the
# dataclass machinery must see real ClassVar objects.
IMPORTS = """\
from dataclasses import dataclass, field
from typing import ClassVar, Dict, FrozenSet, List, Optional

from syscall2struct.runtime import (
    CallResult,
    CallSequence,
    Invoker,
    MakeSyscall,
    MakeSyscallMut,
    Pointer,
    ResultId,
    ResultStore,
    syscall,
    word,
)"""

INDENT = "    "

SEQUENCE_FACTORY = '''\
def new_sequence(*calls: MakeSyscall) -> CallSequence:
    """Sequence of `calls` running with this module's result store capacity."""
    return CallSequence(list(calls), capacity=RESULT_CAPACITY)'''


def format_call(call: EmittedCall) -> str:
    lines: List[str] = [
        "@dataclass",
        f"class {call.struct_name}({call.trait.base_class}):",
        f'{INDENT}"""{call.call_name}"""',
        "",
        f"{INDENT}NR: ClassVar[int] = {call.nr}",
        f"{INDENT}FIELD_TYPES: ClassVar[Dict[str, str]] = {_dict_literal((f.name, f.type.tag()) for f in call.fields)}",
        f"{INDENT}SKIP_FIELDS: ClassVar[FrozenSet[str]] = {_frozenset_literal(sorted(call.skip_fields))}",
        "",
    ]
    for f in call.fields:
        lines.append(f"{INDENT}{f.name}: {f.type.annotation()}")
    if call.result_field:
        lines.append(f"{INDENT}{call.result_field}: Optional[ResultId] = field(default=None, metadata={{\"skip\": True}})")
    if call.fields or call.result_field:
        lines.append("")
    lines.append(f"{INDENT}def call(self, results: ResultStore, invoke: Invoker = syscall) -> int:")
    for line in call.body:
        lines.append(f"{INDENT * 2}{line}")
    return "\n".join(lines)


def render_module(calls: Iterable[EmittedCall], result_capacity: Optional[int] = None) -> str:
    calls = list(calls)
    parts = [HEADER, IMPORTS]
    parts.extend(format_call(call) for call in calls)
    registry = ["SYSCALLS: Dict[str, type] = {"]
    registry.extend(f"{INDENT}{call.call_name!r}: {call.struct_name}," for call in calls)
    registry.append("}")
    registry.append("")
    registry.append("# None lets the result store grow without bound.")
    registry.append(f"RESULT_CAPACITY: Optional[int] = {result_capacity!r}")
    parts.append("\n".join(registry))
    parts.append(SEQUENCE_FACTORY)
    return "\n\n\n".join(parts) + "\n"


def render_json(calls: Iterable[EmittedCall], arch: Optional[str] = None) -> str:
    payload = {"arch": arch, "calls": [call.to_json() for call in calls]}
    return json.dumps(payload, indent=2) + "\n"


def _dict_literal(items: Iterable[tuple[str, str]]) -> str:
    body = ", ".join(f"{key!r}: {value!r}" for key, value in items)
    return "{" + body + "}"


def _frozenset_literal(items: List[str]) -> str:
    if not items:
        return "frozenset()"
    return "frozenset({" + ", ".join(repr(item) for item in items) + "})"
