#!/usr/bin/env python3
"""
Front-end adapter over libclang.

Parses C sources with the detailed preprocessing record enabled, so macro
definitions, macro expansions and inclusion directives show up as
top-level cursors next to the declarations. Cursors are interned into the
run's ``SymbolArena``; everything downstream works on ``SourceSymbol``s and
only comes back here to walk a symbol's subtree.

Locations reported by the bindings are expansion locations: a declaration
produced by a macro is reported on the line the macro was used.
"""

import logging
from collections.abc import Iterator, Sequence
from dataclasses import dataclass
from pathlib import Path

import clang.cindex as clang

from ctreeshake.errors import ParseFailure
from ctreeshake.symbols import SourceSymbol, SymbolArena, SymbolKind

logger = logging.getLogger(__name__)

PARSE_OPTIONS = clang.TranslationUnit.PARSE_DETAILED_PROCESSING_RECORD

TYPE_CURSOR_KINDS = {
    clang.CursorKind.STRUCT_DECL,  # type: ignore
    clang.CursorKind.UNION_DECL,  # type: ignore
    clang.CursorKind.ENUM_DECL,  # type: ignore
    clang.CursorKind.TYPEDEF_DECL,  # type: ignore
}


def classify(kind: clang.CursorKind) -> SymbolKind:
    """Map a libclang cursor kind onto a SymbolKind."""
    if kind == clang.CursorKind.FUNCTION_DECL:  # type: ignore
        return SymbolKind.FUNCTION
    if kind == clang.CursorKind.VAR_DECL:  # type: ignore
        return SymbolKind.VARIABLE
    if kind in TYPE_CURSOR_KINDS:
        return SymbolKind.TYPE
    if kind == clang.CursorKind.MACRO_DEFINITION:  # type: ignore
        return SymbolKind.MACRO_DEFINITION
    if kind == clang.CursorKind.MACRO_INSTANTIATION:  # type: ignore
        return SymbolKind.MACRO_EXPANSION
    if kind == clang.CursorKind.INCLUSION_DIRECTIVE:  # type: ignore
        return SymbolKind.INCLUSION_DIRECTIVE
    if kind.is_declaration():
        return SymbolKind.OTHER_DECLARATION
    return SymbolKind.OTHER


def _valid(cursor: clang.Cursor | None) -> clang.Cursor | None:
    if cursor is None or cursor.kind.is_invalid():
        return None
    return cursor


def definition_of(cursor: clang.Cursor) -> clang.Cursor | None:
    return _valid(cursor.get_definition())


def referenced_of(cursor: clang.Cursor) -> clang.Cursor | None:
    return _valid(cursor.referenced)


def type_declaration_of(cursor: clang.Cursor) -> clang.Cursor | None:
    """Entity declaring the cursor's type, e.g. the struct behind a variable."""
    cursor_type = cursor.type
    if cursor_type is None or cursor_type.kind == clang.TypeKind.INVALID:  # type: ignore
        return None
    return _valid(cursor_type.get_declaration())


def typedef_underlying_declaration_of(cursor: clang.Cursor) -> clang.Cursor | None:
    """Entity declaring the target of a typedef."""
    if cursor.kind != clang.CursorKind.TYPEDEF_DECL:  # type: ignore
        return None
    underlying = cursor.underlying_typedef_type
    if underlying is None or underlying.kind == clang.TypeKind.INVALID:  # type: ignore
        return None
    return _valid(underlying.get_declaration())


def descendants(cursor: clang.Cursor) -> Iterator[clang.Cursor]:
    """All nodes below ``cursor``, depth first, without the cursor itself."""
    for child in cursor.get_children():
        yield from child.walk_preorder()


def included_file_of(cursor: clang.Cursor) -> str | None:
    """File an inclusion directive was resolved to, if the front end found one."""
    try:
        included = cursor.get_included_file()
    except AssertionError:
        # The bindings assert on a null file handle when the include was not found.
        return None
    return included.name if included is not None else None


@dataclass
class ParsedUnit:
    """One parsed translation unit."""

    index: int
    path: Path
    tu: clang.TranslationUnit

    def top_level(self) -> Iterator[clang.Cursor]:
        return self.tu.cursor.get_children()


class ClangFrontEnd:
    """Parses translation units and turns their cursors into SourceSymbols."""

    def __init__(self, clang_args: Sequence[str] | None = None, arena: SymbolArena | None = None):
        self.clang_args = list(clang_args) if clang_args is not None else ["-std=c99"]
        self.arena = arena if arena is not None else SymbolArena()
        self._index: clang.Index | None = None

    @property
    def index(self) -> clang.Index:
        # libclang package handles library path automatically
        if self._index is None:
            self._index = clang.Index.create()
        return self._index

    def parse(self, sources: Sequence[Path]) -> list[ParsedUnit]:
        """Parse every source, in order. Any failure aborts the whole run."""
        return [self._parse_file(index, Path(source)) for index, source in enumerate(sources)]

    def _parse_file(self, index: int, path: Path) -> ParsedUnit:
        if not path.is_file():
            raise ParseFailure(path, "no such file")

        logger.info(f"Parsing {path}...")
        try:
            tu = self.index.parse(str(path), args=self.clang_args, options=PARSE_OPTIONS)
        except clang.TranslationUnitLoadError as e:
            raise ParseFailure(path, str(e)) from e

        for diagnostic in tu.diagnostics:
            if diagnostic.severity >= clang.Diagnostic.Error:
                logger.warning(f"{path}:{diagnostic.location.line}: {diagnostic.spelling}")
            else:
                logger.debug(f"{path}:{diagnostic.location.line}: {diagnostic.spelling}")

        return ParsedUnit(index=index, path=path, tu=tu)

    @staticmethod
    def cursor_key(cursor: clang.Cursor, tu_index: int) -> tuple:
        location = cursor.location
        extent = cursor.extent
        file_name = location.file.name if location.file is not None else None
        return (
            tu_index,
            cursor.kind.value,
            file_name,
            location.line,
            location.column,
            extent.start.offset,
            extent.end.offset,
        )

    def intern(self, cursor: clang.Cursor, tu_index: int) -> SourceSymbol:
        """Arena symbol for ``cursor``, created on first sight."""
        key = self.cursor_key(cursor, tu_index)
        return self.arena.intern(key, cursor, lambda symbol_id: self._make_symbol(symbol_id, cursor, tu_index))

    def lookup(self, cursor: clang.Cursor, tu_index: int) -> SourceSymbol | None:
        """Arena symbol for ``cursor`` if it was interned before."""
        return self.arena.lookup(self.cursor_key(cursor, tu_index))

    def cursor(self, symbol: SourceSymbol) -> clang.Cursor:
        return self.arena.handle(symbol)

    @staticmethod
    def _make_symbol(symbol_id: int, cursor: clang.Cursor, tu_index: int) -> SourceSymbol:
        location = cursor.location
        extent = cursor.extent
        kind = classify(cursor.kind)

        included_file = None
        if kind == SymbolKind.INCLUSION_DIRECTIVE:
            included_file = included_file_of(cursor)

        return SourceSymbol(
            id=symbol_id,
            kind=kind,
            name=cursor.spelling or None,
            path=location.file.name if location.file is not None else None,
            line=location.line,
            column=location.column,
            start_line=extent.start.line,
            end_line=extent.end.line,
            tu=tu_index,
            is_declaration=cursor.kind.is_declaration(),
            is_definition=cursor.is_definition(),
            in_system_header=location.is_in_system_header,
            included_file=included_file,
        )
