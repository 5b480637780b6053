from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, Iterable, List, Optional

from .ast import ArgType, Argument, Description, Function
from .codegen import render_json, render_module
from .config import TranslateConfig
from .consts import Arch, Consts, load_consts
from .diagnostics import Diagnostic, TranslateError, TranslationFailed
from .parser import parse_description_file
from .synth import EmittedCall, synthesize_call
from .types import TypeDesc, TypeResolver

logger = logging.getLogger(__name__)


class DuplicateDefinitionError(TranslateError):
    code = "E0401"
    phase = "translate"


class SyscallTranslator:
    """Translate every call of a description into emitted call definitions."""

    def __init__(self, description: Description, consts: Consts, config: Optional[TranslateConfig] = None) -> None:
        self.description = description
        self.consts = consts
        self.config = config or TranslateConfig()
        self.arch = Arch.from_name(self.config.arch)
        self.resolver = TypeResolver(description, self.config)

    @classmethod
    def from_files(cls, desc_path: Path, const_path: Path, config: Optional[TranslateConfig] = None) -> "SyscallTranslator":
        description = parse_description_file(desc_path)
        consts = load_consts(const_path)
        logger.debug(
            "loaded %d calls from %s and %d constants from %s",
            len(description.functions),
            desc_path,
            len(consts),
            const_path,
        )
        return cls(description, consts, config)

    def translate(self, names: Optional[Iterable[str]] = None) -> List[EmittedCall]:
        """
        Translate the selected calls (all of them by default).

        Nothing is returned unless every selected call translates: failures are
        collected and raised together as `TranslationFailed`.
        """
        functions = self._select(names)
        emitted: List[EmittedCall] = []
        diagnostics: List[Diagnostic] = []
        owners: Dict[str, str] = {}
        for func in functions:
            try:
                call = self.translate_syscall(func)
                owner = owners.get(call.struct_name)
                if owner is not None:
                    raise DuplicateDefinitionError(
                        f"class name '{call.struct_name}' already generated for '{owner}'",
                        call=func.name,
                    )
                owners[call.struct_name] = func.name
                emitted.append(call)
            except TranslateError as exc:
                logger.debug("failed to translate %s: %s", func.name, exc)
                diagnostics.append(exc.to_diagnostic(line=func.loc.line))
        if diagnostics:
            raise TranslationFailed(diagnostics)
        logger.info("translated %d calls for %s", len(emitted), self.arch.value)
        return emitted

    def translate_syscall(self, func: Function) -> EmittedCall:
        nr = self.consts.find_sysno(func.name, self.arch)
        arg_types = [self._resolve_arg(func, arg) for arg in func.args]
        if func.output is not None and func.output.arg_type is not ArgType.VOID:
            self._resolve_arg(func, func.output)
        return synthesize_call(func, nr, arg_types)

    def translate_to_source(self, names: Optional[Iterable[str]] = None) -> str:
        return render_module(self.translate(names), result_capacity=self.config.result_capacity)

    def translate_to_json(self, names: Optional[Iterable[str]] = None) -> str:
        return render_json(self.translate(names), arch=self.arch.value)

    def _resolve_arg(self, func: Function, arg: Argument) -> TypeDesc:
        try:
            return self.resolver.resolve(arg)
        except TranslateError as exc:
            raise exc.with_context(call=func.name, arg=arg.name or "<return>")

    def _select(self, names: Optional[Iterable[str]]) -> List[Function]:
        if names is None:
            return list(self.description.functions)
        wanted = list(names)
        known = {f.name for f in self.description.functions}
        missing = [n for n in wanted if n not in known]
        if missing:
            raise TranslationFailed(
                [Diagnostic(message=f"no call named '{n}' in the description", phase="translate", call=n) for n in missing]
            )
        return [f for f in self.description.functions if f.name in set(wanted)]
