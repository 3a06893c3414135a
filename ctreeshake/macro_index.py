#!/usr/bin/env python3
"""Per translation unit index of macro and include entities by expansion line."""

import logging
from bisect import bisect_left, bisect_right
from collections.abc import Iterator

from ctreeshake.frontend import ClangFrontEnd, ParsedUnit, classify
from ctreeshake.symbols import SourceSymbol, SymbolKind

logger = logging.getLogger(__name__)

INDEXED_KINDS = {
    SymbolKind.MACRO_DEFINITION,
    SymbolKind.MACRO_EXPANSION,
    SymbolKind.INCLUSION_DIRECTIVE,
}


class MacroIndex:
    """Line-ordered macro definitions, macro expansions and inclusion directives.

    Entries sharing a line are all kept, in the order they were added. Lines
    are only meaningful together with the entry's file: one translation unit
    spans many files.
    """

    def __init__(self):
        self._lines: list[int] = []
        self._symbols: list[SourceSymbol] = []

    def add(self, line: int, symbol: SourceSymbol) -> None:
        position = bisect_right(self._lines, line)
        self._lines.insert(position, line)
        self._symbols.insert(position, symbol)

    def in_range(self, start_line: int, end_line: int) -> list[SourceSymbol]:
        """Entries whose line lies in ``[start_line, end_line]``."""
        lo = bisect_left(self._lines, start_line)
        hi = bisect_right(self._lines, end_line)
        return self._symbols[lo:hi]

    def macros(self) -> Iterator[SourceSymbol]:
        return (symbol for symbol in self._symbols if symbol.kind.is_macro)

    def __iter__(self) -> Iterator[SourceSymbol]:
        return iter(self._symbols)

    def __len__(self) -> int:
        return len(self._symbols)


def build_macro_index(front_end: ClangFrontEnd, unit: ParsedUnit) -> MacroIndex:
    """Index every non-system macro/include entity of ``unit``."""
    index = MacroIndex()
    for cursor in unit.top_level():
        if classify(cursor.kind) not in INDEXED_KINDS:
            continue
        location = cursor.location
        if location.file is None or location.is_in_system_header:
            continue
        symbol = front_end.intern(cursor, unit.index)
        index.add(symbol.line, symbol)

    logger.debug(f"Indexed {len(index)} macro and include entities of {unit.path}")
    return index
