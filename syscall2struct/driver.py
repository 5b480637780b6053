#!/usr/bin/env python3
from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

from lark.exceptions import UnexpectedInput

from .codegen import render_json, render_module
from .config import DEFAULT_ARCH, ENV_ARCH, TranslateConfig
from .consts import ConstsError
from .diagnostics import Diagnostic, TranslationFailed
from .export import export_to_package
from .log import setup_logging
from .parser import DescriptionError
from .translator import SyscallTranslator

logger = logging.getLogger(__name__)


def _report(diagnostics: List[Diagnostic], source_path: Path, as_json: bool) -> int:
    if as_json:
        payload = {
            "exit_code": 1,
            "diagnostics": [dict(d.to_json(), file=str(source_path)) for d in diagnostics],
        }
        print(json.dumps(payload))
    else:
        for d in diagnostics:
            loc = d.line if d.line is not None else "?"
            where = f"[{d.location()}] " if (d.call or d.arg) else ""
            print(f"{source_path}:{loc}: {d.severity}: {where}{d.message}", file=sys.stderr)
    return 1


def _input_error(phase: str, message: str, line: Optional[int] = None) -> List[Diagnostic]:
    return [Diagnostic(message=message, phase=phase, line=line)]


def translate_files(args: argparse.Namespace) -> int:
    try:
        config = TranslateConfig.from_env().override(
            arch=args.arch,
            bounded=args.bounded,
            max_buffer_len=args.max_buffer_len,
            max_array_len=args.max_array_len,
            result_capacity=args.result_capacity,
        )
    except ValueError as err:
        return _report(_input_error("config", str(err)), args.desc, args.json)

    try:
        translator = SyscallTranslator.from_files(args.desc, args.const, config)
    except UnexpectedInput as err:
        return _report(_input_error("parser", f"syntax error: {err}".strip(), err.line), args.desc, args.json)
    except DescriptionError as err:
        line = err.loc.line if err.loc is not None else None
        return _report(_input_error("parser", str(err), line), args.desc, args.json)
    except ConstsError as err:
        return _report(_input_error("consts", str(err)), args.const, args.json)
    except ValueError as err:
        return _report(_input_error("config", str(err)), args.desc, args.json)
    except OSError as err:
        return _report(_input_error("io", str(err)), Path(err.filename or args.desc), args.json)

    try:
        emitted = translator.translate(args.calls)
    except TranslationFailed as failed:
        return _report(failed.diagnostics, args.desc, args.json)

    source = render_module(emitted, result_capacity=config.result_capacity)
    if args.emit_json:
        args.emit_json.write_text(render_json(emitted, arch=translator.arch.value))
    if args.output:
        args.output.write_text(source)
        logger.info("wrote %s", args.output)
    if args.project:
        try:
            export_to_package(args.project, source)
        except FileExistsError as err:
            return _report(_input_error("export", str(err)), args.project, args.json)
    if not (args.output or args.project):
        sys.stdout.write(source)
    return 0


def main(argv: list[str] | None = None) -> int:
    """
    Translate a syscall description plus its constants file into a Python module.

    With --json, diagnostics are printed as JSON (phase/message/severity/call/arg/line)
    together with an exit_code; otherwise they go to stderr, one per line.
    """
    ap = argparse.ArgumentParser(
        prog="syscall2struct",
        description="syscall2struct: syscall descriptions -> Python call classes",
    )
    ap.add_argument("--desc", type=Path, default=Path("desc/test.txt"), help="Path to the syscall description file")
    ap.add_argument(
        "--const",
        type=Path,
        default=Path("desc/test.txt.const"),
        help="Path to the constants file holding the call numbers",
    )
    ap.add_argument("--arch", help=f"Target architecture (default: ${ENV_ARCH} or {DEFAULT_ARCH})")
    ap.add_argument("-o", "--output", type=Path, help="Write the generated module to this file")
    ap.add_argument("--project", type=Path, help="Export the generated module as a new project (must not exist)")
    ap.add_argument("--emit-json", type=Path, help="Write the emitted call definitions as JSON to the given path")
    ap.add_argument(
        "--call",
        dest="calls",
        action="append",
        help="Only translate this call (repeatable)",
    )
    ap.add_argument(
        "--bounded",
        action="store_true",
        default=None,
        help="Use bounded buffers and arrays (targets without dynamic allocation)",
    )
    ap.add_argument("--max-buffer-len", type=int, help="Buffer bound in bounded mode")
    ap.add_argument("--max-array-len", type=int, help="Array bound in bounded mode")
    ap.add_argument(
        "--result-capacity",
        type=int,
        help="Bound the result store of generated sequences (default: growable)",
    )
    ap.add_argument(
        "--json",
        action="store_true",
        help="Emit diagnostics as JSON (phase/message/severity/call/arg/line)",
    )
    ap.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    args = ap.parse_args(argv)

    setup_logging(logging.DEBUG if args.verbose else logging.WARNING)
    return translate_files(args)


if __name__ == "__main__":
    raise SystemExit(main())
