"""syscall2struct: syzkaller-style syscall descriptions -> Python call classes."""

__version__ = "0.1.0"

from .config import TranslateConfig
from .consts import Arch, Consts, find_sysno, load_consts
from .diagnostics import Diagnostic, TranslateError, TranslationFailed
from .parser import DescriptionError, parse_description, parse_description_file
from .synth import CallTrait, EmittedCall, synthesize_call
from .translator import SyscallTranslator
from .types import TypeResolver

__all__ = [
    "Arch",
    "CallTrait",
    "Consts",
    "Diagnostic",
    "DescriptionError",
    "EmittedCall",
    "SyscallTranslator",
    "TranslateConfig",
    "TranslateError",
    "TranslationFailed",
    "TypeResolver",
    "find_sysno",
    "load_consts",
    "parse_description",
    "parse_description_file",
    "synthesize_call",
    "__version__",
]
