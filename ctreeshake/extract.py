#!/usr/bin/env python3
"""Reachability closure over the symbol dependency graph."""

import logging
from collections import deque
from collections.abc import Iterable

from ctreeshake.errors import GraphConsistencyError
from ctreeshake.symbols import SourceSymbol, SymbolTable

logger = logging.getLogger(__name__)


def extract_symbols(entry_symbols: Iterable[str], table: SymbolTable) -> set[SourceSymbol]:
    """Flood fill from every table key named in ``entry_symbols``.

    Macro and include entities are leaves: they are collected but never
    looked up in the table. Any other symbol reached must be a table key.
    """
    entry_names = set(entry_symbols)
    queue: deque[SourceSymbol] = deque()

    for symbol in table.named(entry_names):
        logger.info(f"Adding {symbol.name} at ({symbol.location_str()}) to start list")
        queue.append(symbol)

    found = {symbol.name for symbol in queue}
    for name in sorted(entry_names - found):
        logger.warning(f"Entry symbol {name} not found in any translation unit")

    visited: set[SourceSymbol] = set()
    while queue:
        symbol = queue.popleft()
        if symbol in visited:
            continue
        visited.add(symbol)

        if symbol.is_leaf:
            continue

        descriptor = table.get(symbol)
        if descriptor is None:
            raise GraphConsistencyError(symbol, "Reached a symbol with no descriptor")

        for dep in descriptor.edges:
            if dep not in visited:
                queue.append(dep)

    logger.info(f"Extracted {len(visited)} of {len(table)} symbols")
    return visited
