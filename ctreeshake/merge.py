#!/usr/bin/env python3
"""Unifies declarations and definitions that share a source location."""

import logging
from collections import defaultdict
from pathlib import Path

from ctreeshake.paths import canonical_file
from ctreeshake.symbols import SourceSymbol, SymbolTable

MergeKey = tuple[Path, int, int, str | None]

logger = logging.getLogger(__name__)


def merge_key(symbol: SourceSymbol) -> MergeKey | None:
    """Location plus name; None for symbols without a location."""
    if symbol.path is None:
        return None
    return (canonical_file(symbol.path), symbol.line, symbol.column, symbol.name)


def merge_declarations(table: SymbolTable) -> int:
    """Give every declaration the definitions known for its location.

    The same header declaration is a separate symbol in every translation
    unit that includes it, and only the unit holding the definition can
    resolve it. Phase one collects the union of definitions per location
    over the whole table; phase two hands the union to each declaration.
    Returns the number of declarations that gained definitions.
    """
    by_location: dict[MergeKey, set[SourceSymbol]] = defaultdict(set)

    for symbol, descriptor in table.items():
        key = merge_key(symbol) if symbol.is_declaration else None
        if key is not None:
            by_location[key].update(descriptor.definitions)

    updated = 0
    for symbol, descriptor in list(table.items()):
        key = merge_key(symbol) if symbol.is_declaration else None
        if key is None:
            continue
        missing = by_location[key] - descriptor.definitions
        if missing:
            table.add_definitions(symbol, missing)
            updated += 1

    logger.info(f"Merged definitions into {updated} declarations over {len(by_location)} locations")
    return updated
