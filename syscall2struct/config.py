from __future__ import annotations

import os
from dataclasses import dataclass, replace
from typing import Mapping, Optional

# Bounds used when the target has no dynamic allocation.
MAX_BUFFER_LEN = 4096
MAX_ARRAY_LEN = 10

DEFAULT_ARCH = "riscv64"

ENV_ARCH = "SYSCALL2STRUCT_ARCH"
ENV_BOUNDED = "SYSCALL2STRUCT_BOUNDED"
ENV_RESULT_CAPACITY = "SYSCALL2STRUCT_RESULT_CAPACITY"

_TRUTHY = frozenset({"1", "true", "yes", "on"})


@dataclass(frozen=True)
class TranslateConfig:
    arch: str = DEFAULT_ARCH
    bounded: bool = False
    max_buffer_len: int = MAX_BUFFER_LEN
    max_array_len: int = MAX_ARRAY_LEN
    # None selects the growable result store.
    result_capacity: Optional[int] = None

    def __post_init__(self) -> None:
        if self.result_capacity is not None and self.result_capacity <= 0:
            raise ValueError(f"result store capacity must be positive, got {self.result_capacity}")

    @property
    def buffer_bound(self) -> Optional[int]:
        return self.max_buffer_len if self.bounded else None

    @property
    def array_bound(self) -> Optional[int]:
        return self.max_array_len if self.bounded else None

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "TranslateConfig":
        env = os.environ if environ is None else environ
        config = cls()
        if env.get(ENV_ARCH):
            config = replace(config, arch=env[ENV_ARCH])
        if env.get(ENV_BOUNDED):
            config = replace(config, bounded=env[ENV_BOUNDED].strip().lower() in _TRUTHY)
        if env.get(ENV_RESULT_CAPACITY):
            config = replace(config, result_capacity=int(env[ENV_RESULT_CAPACITY]))
        return config

    def override(self, **changes) -> "TranslateConfig":
        """Return a copy with every non-None keyword applied."""
        return replace(self, **{k: v for k, v in changes.items() if v is not None})
