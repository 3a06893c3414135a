#!/usr/bin/env python3
"""
Source reconstruction: writes the extracted symbols back out as files.

Each processed file becomes its surviving include lines followed by the
original lines of its extracted symbols, in source order. Nothing is
reformatted: the output is a line-for-line slice of the input. Include
targets that never yielded any symbol of their own (e.g. a table pulled
into an array initializer) are copied over whole.
"""

import logging
import shutil
from collections import defaultdict
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from pathlib import Path

from ctreeshake.errors import MissingLocation, SourceIOError
from ctreeshake.paths import IncludeResolver, SystemIncludeRegistry, canonical, canonical_file
from ctreeshake.symbols import SourceSymbol, SymbolKind

logger = logging.getLogger(__name__)


def _source_order(symbol: SourceSymbol) -> tuple[int, int]:
    return (symbol.start_line, symbol.id)


@dataclass
class ReconstructionPlan:
    """What goes where, computed before anything is written."""

    symbols_per_file: dict[Path, list[SourceSymbol]]
    includes_per_file: dict[Path, list[SourceSymbol]]
    unparsable_includes: list[SourceSymbol]
    files_to_process: list[Path]


@dataclass
class ReconstructionResult:
    written: list[Path] = field(default_factory=list)
    copied: list[Path] = field(default_factory=list)
    skipped: list[Path] = field(default_factory=list)


class SourceReconstructor:
    """Plans and writes the minimized source tree."""

    def __init__(
        self,
        sources: Iterable[Path],
        includes: Sequence[SourceSymbol],
        registry: SystemIncludeRegistry,
        resolver: IncludeResolver,
        source_root: Path,
        output_dir: Path,
    ):
        self.sources = [canonical(source) for source in sources]
        self.includes = includes
        self.registry = registry
        self.resolver = resolver
        self.source_root = canonical(source_root)
        self.output_dir = Path(output_dir)

    def plan(self, extracted: Iterable[SourceSymbol]) -> ReconstructionPlan:
        """Decide which files are sliced and which include targets are copied whole.

        An extracted include is unparsable when its target holds no extracted
        declaration of its own. Macro entities do not count: a fragment that
        only defines or uses macros is still copied verbatim.
        """
        extracted = list(extracted)
        symbols_per_file = self.group_symbols(extracted)
        declaration_files = self.declaration_files(extracted)

        unparsable = sorted(
            (
                symbol
                for symbol in extracted
                if symbol.kind == SymbolKind.INCLUSION_DIRECTIVE
                and self.resolver.resolve(symbol) not in declaration_files
                and not self.registry.is_system_name(self.resolver.resolve(symbol))
            ),
            key=lambda symbol: symbol.id,
        )
        unparsable_targets = {self.resolver.resolve(include) for include in unparsable}

        candidates = set(self.sources)
        candidates.update(self.resolver.resolve(include) for include in self.includes)
        files_to_process = sorted(
            path
            for path in candidates
            if path not in unparsable_targets and not self.registry.is_system_name(path)
        )

        return ReconstructionPlan(
            symbols_per_file=symbols_per_file,
            includes_per_file=self.group_includes(),
            unparsable_includes=unparsable,
            files_to_process=files_to_process,
        )

    @staticmethod
    def group_symbols(extracted: Iterable[SourceSymbol]) -> dict[Path, list[SourceSymbol]]:
        """Extracted non-include symbols per canonical file, in source order."""
        groups: dict[Path, list[SourceSymbol]] = defaultdict(list)
        for symbol in extracted:
            if symbol.kind == SymbolKind.INCLUSION_DIRECTIVE:
                continue
            if symbol.path is None:
                raise MissingLocation(symbol, "cannot place it in an output file")
            groups[canonical_file(symbol.path)].append(symbol)

        for group in groups.values():
            group.sort(key=_source_order)
        return dict(groups)

    @staticmethod
    def declaration_files(extracted: Iterable[SourceSymbol]) -> set[Path]:
        """Canonical files holding at least one extracted non-leaf symbol."""
        return {
            canonical_file(symbol.path)
            for symbol in extracted
            if not symbol.is_leaf and symbol.path is not None
        }

    def group_includes(self) -> dict[Path, list[SourceSymbol]]:
        """Every observed inclusion directive per canonical including file."""
        groups: dict[Path, list[SourceSymbol]] = defaultdict(list)
        for include in self.includes:
            if include.path is None:
                raise MissingLocation(include, "cannot tell which file includes it")
            groups[canonical_file(include.path)].append(include)

        for group in groups.values():
            group.sort(key=_source_order)
        return dict(groups)

    def reconstruct(self, extracted: Iterable[SourceSymbol]) -> ReconstructionResult:
        plan = self.plan(extracted)
        result = ReconstructionResult()

        try:
            self.output_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise SourceIOError(self.output_dir, e) from e

        for file in plan.files_to_process:
            symbols = plan.symbols_per_file.get(file)
            if not symbols:
                continue

            target = self._output_path(file)
            if target is None:
                result.skipped.append(file)
                continue

            logger.info(f"Processing: {file}")
            chunks = self.surviving_includes(file, plan) + symbols
            self._write_slices(file, chunks, target)
            result.written.append(target)

        copied_sources: set[Path] = set()
        for include in plan.unparsable_includes:
            source = self.resolver.resolve(include)
            if source in copied_sources:
                continue
            copied_sources.add(source)

            if not source.is_file():
                logger.warning(
                    f"Unresolvable include {include.name} at {include.location_str()}: "
                    f"{source} does not exist, not copied"
                )
                result.skipped.append(source)
                continue

            target = self._output_path(source)
            if target is None:
                result.skipped.append(source)
                continue

            logger.info(f"Copying unparsable include: {source}")
            self._copy_verbatim(source, target)
            result.copied.append(target)

        return result

    def surviving_includes(self, file: Path, plan: ReconstructionPlan) -> list[SourceSymbol]:
        """Include lines of ``file`` whose target keeps symbols of its own.

        Includes inside the line range of an emitted symbol are left where
        they are; the symbol's slice carries them.
        """
        unparsable = set(plan.unparsable_includes)
        symbols = plan.symbols_per_file.get(file, [])
        surviving = []
        for include in plan.includes_per_file.get(file, []):
            if include in unparsable:
                continue
            if self.resolver.resolve(include) not in plan.symbols_per_file:
                continue
            if any(s.start_line <= include.line <= s.end_line for s in symbols):
                continue
            logger.debug(f"  include {include.name}")
            surviving.append(include)
        return surviving

    def _output_path(self, file: Path) -> Path | None:
        try:
            relative = file.relative_to(self.source_root)
        except ValueError:
            logger.warning(f"{file} is outside source root {self.source_root}, not written")
            return None
        return self.output_dir / relative

    def _write_slices(self, file: Path, chunks: Sequence[SourceSymbol], target: Path) -> None:
        try:
            source_lines = file.read_bytes().splitlines(keepends=True)
        except OSError as e:
            raise SourceIOError(file, e) from e

        output = bytearray()
        emitted: set[int] = set()
        for chunk in chunks:
            logger.debug(f"  symbol {chunk.name} lines {chunk.start_line}-{chunk.end_line}")
            if chunk.start_line < 1 or chunk.end_line > len(source_lines):
                logger.debug(
                    f"  {chunk.describe()} spans lines {chunk.start_line}-{chunk.end_line} "
                    f"but {file} has {len(source_lines)}, out of range lines skipped"
                )
            for number in range(chunk.start_line, chunk.end_line + 1):
                # Symbols sharing a line (or the same header line seen from two
                # translation units) emit it once.
                if number in emitted or not 0 < number <= len(source_lines):
                    continue
                emitted.add(number)
                if output and not output.endswith((b"\n", b"\r")):
                    output += b"\n"
                output += source_lines[number - 1]

        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(bytes(output))
        except OSError as e:
            raise SourceIOError(target, e) from e

    @staticmethod
    def _copy_verbatim(source: Path, target: Path) -> None:
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            shutil.copy2(source, target)
        except OSError as e:
            raise SourceIOError(target, e) from e
