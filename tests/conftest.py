from __future__ import annotations

import importlib.util
import sys
import types
from pathlib import Path
from typing import Callable

import pytest

LoadGenerated = Callable[[str, str], types.ModuleType]


@pytest.fixture
def load_generated(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> LoadGenerated:
    """Write rendered source to a file and import it under `name`."""

    def load(source: str, name: str) -> types.ModuleType:
        path = tmp_path / f"{name}.py"
        path.write_text(source, encoding="utf-8")
        spec = importlib.util.spec_from_file_location(name, path)
        assert spec is not None and spec.loader is not None
        module = importlib.util.module_from_spec(spec)
        monkeypatch.setitem(sys.modules, name, module)
        spec.loader.exec_module(module)
        return module

    return load
