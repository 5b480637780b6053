"""
Translation diagnostics.

Every translation-time failure is a `TranslateError`. Errors carry the call and
argument they were raised for so the driver can point at the offending
definition; `to_diagnostic()` turns them into the plain record the driver
prints (text or JSON).
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Dict, List, Optional


@dataclass
class Diagnostic:
    """A single translation diagnostic."""

    message: str
    code: Optional[str] = None
    phase: Optional[str] = None
    severity: str = "error"
    call: Optional[str] = None
    arg: Optional[str] = None
    line: Optional[int] = None

    def location(self) -> str:
        if self.call and self.arg:
            return f"{self.call}.{self.arg}"
        return self.call or self.arg or "<description>"

    def to_json(self) -> Dict[str, Any]:
        return asdict(self)


class TranslateError(Exception):
    """Base class of permanent translation failures."""

    code = "E0000"
    phase = "translate"

    def __init__(self, message: str, call: Optional[str] = None, arg: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.call = call
        self.arg = arg

    def with_context(self, call: Optional[str] = None, arg: Optional[str] = None) -> "TranslateError":
        """Fill in call/argument names the raiser did not know about."""
        if self.call is None:
            self.call = call
        if self.arg is None:
            self.arg = arg
        return self

    def to_diagnostic(self, line: Optional[int] = None) -> Diagnostic:
        return Diagnostic(
            message=self.message,
            code=self.code,
            phase=self.phase,
            call=self.call,
            arg=self.arg,
            line=line,
        )

    def __str__(self) -> str:
        where = ".".join(part for part in (self.call, self.arg) if part)
        return f"[{where}] {self.message}" if where else self.message


class TranslationFailed(Exception):
    """Raised once per translation run when any call definition failed."""

    def __init__(self, diagnostics: List[Diagnostic]) -> None:
        self.diagnostics = diagnostics
        count = len(diagnostics)
        super().__init__(f"translation failed with {count} error{'s' if count != 1 else ''}")
