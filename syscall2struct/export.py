from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from . import __version__
from .naming import to_snake_case

logger = logging.getLogger(__name__)

PYPROJECT_TEMPLATE = """\
[build-system]
requires = ["setuptools>=61"]
build-backend = "setuptools.build_meta"

[project]
name = "{name}"
version = "0.1.0"
description = "Syscall call classes generated by syscall2struct"
requires-python = ">=3.9"
dependencies = ["syscall2struct>={runtime_version}"]

[tool.setuptools]
packages = ["{package}"]
"""


def export_to_package(path: Path, content: str, package: Optional[str] = None) -> Path:
    """
    Write `content` as the `__init__.py` of a new project rooted at `path`.

    The project directory must not exist yet. Returns the written module path.
    """
    path = Path(path)
    if path.exists():
        raise FileExistsError(f"{path} already exists")
    package = package or to_snake_case(path.name)
    pkg_dir = path / package
    pkg_dir.mkdir(parents=True)
    (path / "pyproject.toml").write_text(
        PYPROJECT_TEMPLATE.format(name=path.name, package=package, runtime_version=__version__)
    )
    module_path = pkg_dir / "__init__.py"
    module_path.write_text(content)
    logger.info("exported %s to %s", package, path)
    return module_path
