#!/usr/bin/env python3

import itertools
import tempfile
from pathlib import Path

import pytest

from ctreeshake.symbols import SourceSymbol, SymbolKind


@pytest.fixture
def temp_project():
    """Create a temporary project directory for C sources."""
    with tempfile.TemporaryDirectory() as temp_dir:
        project_root = Path(temp_dir).resolve()
        (project_root / "src").mkdir()
        yield project_root


@pytest.fixture
def write_files():
    """Writes a dict of relative name -> text under a root directory."""

    def write(root: Path, files: dict[str, str]) -> dict[str, Path]:
        paths = {}
        for name, text in files.items():
            path = root / name
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(text)
            paths[name] = path
        return paths

    return write


@pytest.fixture
def make_symbol():
    """Factory for hand-built SourceSymbols with increasing ids."""
    ids = itertools.count()

    def make(
        kind: SymbolKind = SymbolKind.FUNCTION,
        name: str | None = None,
        path: Path | str | None = "/src/a.c",
        start_line: int = 1,
        end_line: int | None = None,
        **kwargs,
    ) -> SourceSymbol:
        kwargs.setdefault("line", start_line)
        kwargs.setdefault("is_declaration", kind in (SymbolKind.FUNCTION, SymbolKind.VARIABLE, SymbolKind.TYPE))
        return SourceSymbol(
            id=next(ids),
            kind=kind,
            name=name,
            path=str(path) if path is not None else None,
            start_line=start_line,
            end_line=end_line if end_line is not None else start_line,
            **kwargs,
        )

    return make
