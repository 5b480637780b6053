"""
Call number table.

Rows are `(arch, name, value)` triples where an empty `arch` marks an
architecture-independent entry. Lookups prefer the architecture-specific row
and only fall back to a generic row when exactly one exists.

The loader understands syzkaller `.const` files:

    # comment
    arches = 386, amd64, riscv64
    __NR_openat = 56, amd64:257, 386:295
    __NR_open = amd64:2, 386:5, riscv64:???

An unprefixed value is the generic entry; `???` marks "undefined on that arch"
and produces no row.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple

from .diagnostics import TranslateError

SYSNO_PREFIX = "__NR_"

_LINE_RE = re.compile(r"^\s*([A-Za-z_][A-Za-z0-9_]*)\s*=\s*(.*?)\s*$")
_UNDEFINED = "???"


class Arch(Enum):
    I386 = "386"
    AMD64 = "amd64"
    ARM = "arm"
    ARM64 = "arm64"
    MIPS64LE = "mips64le"
    PPC64LE = "ppc64le"
    RISCV64 = "riscv64"
    S390X = "s390x"

    @classmethod
    def from_name(cls, name: str) -> "Arch":
        for arch in cls:
            if arch.value == name or arch.name.lower() == name.lower():
                return arch
        known = ", ".join(a.value for a in cls)
        raise ValueError(f"unknown architecture '{name}' (known: {known})")


class ConstsError(Exception):
    pass


class SysnoNotFound(TranslateError):
    code = "E0201"
    phase = "sysno"


@dataclass(frozen=True)
class ConstRow:
    arch: str
    name: str
    value: int


class Consts:
    def __init__(self, rows: Optional[Iterable[ConstRow]] = None) -> None:
        self._rows: List[ConstRow] = []
        self._specific: Dict[Tuple[str, str], int] = {}
        self._generic: Dict[str, List[int]] = {}
        self.arches: List[str] = []
        for row in rows or ():
            self.add(row)

    def __len__(self) -> int:
        return len(self._rows)

    def __iter__(self):
        return iter(self._rows)

    def add(self, row: ConstRow) -> None:
        self._rows.append(row)
        if row.arch:
            self._specific[(row.name, row.arch)] = row.value
        else:
            self._generic.setdefault(row.name, []).append(row.value)

    def find(self, name: str, arch: Arch) -> Optional[int]:
        """Resolve a constant; None when missing or the generic entry is ambiguous."""
        value = self._specific.get((name, arch.value))
        if value is not None:
            return value
        generic = self._generic.get(name, [])
        if len(generic) == 1:
            return generic[0]
        return None

    def find_sysno(self, call_name: str, arch: Arch) -> int:
        const_name = sysno_const_name(call_name)
        value = self.find(const_name, arch)
        if value is not None:
            return value
        generic = self._generic.get(const_name, [])
        if len(generic) > 1:
            raise SysnoNotFound(
                f"call number not found for {arch.value}: {len(generic)} ambiguous generic entries for '{const_name}'",
                call=call_name,
            )
        raise SysnoNotFound(f"call number not found for {arch.value}: no entry for '{const_name}'", call=call_name)

    def load(self, source: str) -> "Consts":
        for lineno, raw in enumerate(source.splitlines(), start=1):
            line = raw.split("#", 1)[0].strip()
            if not line:
                continue
            match = _LINE_RE.match(line)
            if match is None:
                raise ConstsError(f"{lineno}: malformed constant line: {raw!r}")
            name, rhs = match.group(1), match.group(2)
            if name == "arches":
                self.arches = [a.strip() for a in rhs.split(",") if a.strip()]
                continue
            for row in _parse_values(name, rhs, lineno):
                self.add(row)
        return self

    def load_file(self, path: Path) -> "Consts":
        return self.load(Path(path).read_text())


def sysno_const_name(call_name: str) -> str:
    """`openat$dir` -> `__NR_openat`."""
    return SYSNO_PREFIX + call_name.split("$", 1)[0]


def _parse_values(name: str, rhs: str, lineno: int) -> List[ConstRow]:
    rows: List[ConstRow] = []
    for item in rhs.split(","):
        item = item.strip()
        if not item:
            continue
        arch = ""
        text = item
        if ":" in item:
            arch, text = (part.strip() for part in item.split(":", 1))
        if text == _UNDEFINED:
            continue
        try:
            value = int(text, 0)
        except ValueError as exc:
            raise ConstsError(f"{lineno}: bad value {text!r} for '{name}'") from exc
        rows.append(ConstRow(arch=arch, name=name, value=value))
    return rows


def load_consts(path: Path) -> Consts:
    return Consts().load_file(path)


def find_sysno(consts: Consts, call_name: str, arch: Arch = Arch.RISCV64) -> int:
    return consts.find_sysno(call_name, arch)
