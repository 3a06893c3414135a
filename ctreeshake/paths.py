#!/usr/bin/env python3
"""Canonical paths, the system include registry and include resolution."""

import logging
import os
from collections.abc import Iterable
from functools import lru_cache
from pathlib import Path

from ctreeshake.symbols import SourceSymbol

logger = logging.getLogger(__name__)


def canonical(path: Path | str) -> Path:
    """Absolute, symlink-free form of ``path``. The file does not need to exist."""
    return Path(path).resolve()


@lru_cache(maxsize=None)
def canonical_file(path: str) -> Path:
    """Cached ``canonical`` for file names reported by the front end."""
    return canonical(path)


def common_root(paths: Iterable[Path | str]) -> Path:
    """Deepest directory containing all of ``paths``."""
    directories = [str(canonical(path).parent) for path in paths]
    if not directories:
        raise ValueError("Cannot compute a common root of no paths")
    return Path(os.path.commonpath(directories))


class SystemIncludeRegistry:
    """Bare filename -> canonical path of headers seen to be system headers."""

    def __init__(self):
        self._paths: dict[str, Path] = {}

    def register(self, path: Path | str) -> None:
        full_path = canonical(path)
        self._paths[full_path.name] = full_path

    def get(self, name: str) -> Path | None:
        return self._paths.get(name)

    def is_system_name(self, path: Path | str) -> bool:
        """True if the bare filename of ``path`` is a known system header."""
        return Path(path).name in self._paths

    def __contains__(self, name: object) -> bool:
        return name in self._paths

    def __len__(self) -> int:
        return len(self._paths)

    def __repr__(self) -> str:
        return f"SystemIncludeRegistry({sorted(self._paths)})"


class IncludeResolver:
    """Turns an inclusion directive into the canonical path of its target.

    System headers are looked up by bare filename first. Everything else is
    resolved against the directory of the including file; when that does
    not name an existing file, the path the front end resolved the include
    to (through ``-I`` directories and the like) is used instead.
    """

    def __init__(self, registry: SystemIncludeRegistry):
        self.registry = registry
        self._cache: dict[SourceSymbol, Path] = {}

    def resolve(self, include: SourceSymbol) -> Path:
        cached = self._cache.get(include)
        if cached is None:
            cached = self._cache[include] = self._resolve(include)
        return cached

    def _resolve(self, include: SourceSymbol) -> Path:
        if include.name is None or include.path is None:
            raise ValueError(f"Inclusion directive {include.describe()} has no target or location")

        system_path = self.registry.get(Path(include.name).name)
        if system_path is not None:
            return system_path

        candidate = canonical(Path(include.path).parent / include.name)
        if not candidate.exists() and include.included_file is not None:
            logger.debug(
                f"{include.location_str()}: {include.name} not next to includer, "
                f"using {include.included_file}"
            )
            return canonical(include.included_file)
        return candidate
