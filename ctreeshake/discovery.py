#!/usr/bin/env python3
"""Symbol discovery: seeds the global symbol table from top-level entities."""

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field

import clang.cindex as clang

from ctreeshake.frontend import ClangFrontEnd, ParsedUnit
from ctreeshake.paths import SystemIncludeRegistry
from ctreeshake.symbols import SourceSymbol, SymbolTable

logger = logging.getLogger(__name__)


@dataclass
class Discovery:
    """Everything the discovery pass learns about the parsed program."""

    table: SymbolTable = field(default_factory=SymbolTable)
    includes: list[SourceSymbol] = field(default_factory=list)
    registry: SystemIncludeRegistry = field(default_factory=SystemIncludeRegistry)


def build_symbol_table(front_end: ClangFrontEnd, units: Sequence[ParsedUnit]) -> Discovery:
    """Enumerate top-level entities of every translation unit.

    Declarations and definitions become table keys with empty descriptors,
    inclusion directives are collected on the side, and every entity found
    in a system header registers that header in the system include registry.
    """
    discovery = Discovery()

    for unit in units:
        for cursor in unit.top_level():
            location = cursor.location
            if location.file is None:
                # Compiler built-ins (predefined macros) live in no file.
                continue

            if cursor.kind.is_declaration() or cursor.is_definition():
                discovery.table.add(front_end.intern(cursor, unit.index))
            elif cursor.kind == clang.CursorKind.INCLUSION_DIRECTIVE:  # type: ignore
                discovery.includes.append(front_end.intern(cursor, unit.index))

            if location.is_in_system_header:
                discovery.registry.register(location.file.name)

    logger.info(
        f"Discovered {len(discovery.table)} symbols, {len(discovery.includes)} includes "
        f"and {len(discovery.registry)} system headers in {len(units)} translation units"
    )
    logger.debug(f"System includes: {discovery.registry}")
    return discovery
