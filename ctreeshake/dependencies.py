#!/usr/bin/env python3
"""
Dependency analysis: fills every table descriptor with the symbols it needs.

A symbol depends on what its AST subtree refers to (directly, through the
type of a referenced definition, or through a typedef target) and on the
macro expansions and inclusion directives that textually overlap its line
range. The textual part matters because macros never appear as AST
children: they are only recoverable from the preprocessing record.
"""

import logging

import clang.cindex as clang

from ctreeshake.config import IncludeMacroMatch
from ctreeshake.frontend import (
    ClangFrontEnd,
    ParsedUnit,
    definition_of,
    descendants,
    referenced_of,
    type_declaration_of,
    typedef_underlying_declaration_of,
)
from ctreeshake.macro_index import MacroIndex
from ctreeshake.paths import IncludeResolver, canonical_file
from ctreeshake.symbols import SourceSymbol, SymbolDescriptor, SymbolKind, SymbolTable

logger = logging.getLogger(__name__)


class DependencyAnalyzer:
    """Computes ``deps`` and ``definitions`` for the table keys of each unit."""

    def __init__(
        self,
        front_end: ClangFrontEnd,
        table: SymbolTable,
        resolver: IncludeResolver,
        include_macro_match: IncludeMacroMatch = IncludeMacroMatch.PATH,
    ):
        self.front_end = front_end
        self.table = table
        self.resolver = resolver
        self.include_macro_match = include_macro_match

    def analyze_unit(self, unit: ParsedUnit, macros: MacroIndex) -> None:
        """Analyze every non-system key that belongs to ``unit``."""
        symbols = [
            symbol
            for symbol in self.table
            if symbol.tu == unit.index and not symbol.in_system_header
        ]
        for symbol in symbols:
            descriptor = self.analyze(symbol, macros)
            self.table.set_descriptor(symbol, descriptor)
            logger.debug(
                f"{symbol.name or symbol.describe()} -> "
                f"{', '.join(dep.name or dep.kind.value for dep in descriptor.deps)}"
            )

    def analyze(self, symbol: SourceSymbol, macros: MacroIndex) -> SymbolDescriptor:
        descriptor = SymbolDescriptor()
        if not symbol.has_location:
            return descriptor

        cursor = self.front_end.cursor(symbol)

        definition = self._tracked(definition_of(cursor), symbol.tu)
        if definition is not None:
            descriptor.definitions.add(definition)

        for node in descendants(cursor):
            self._add_tracked(descriptor, referenced_of(node), symbol.tu)

            definition = definition_of(node)
            if definition is None:
                continue
            self._add_tracked(descriptor, definition, symbol.tu)
            self._add_tracked(descriptor, type_declaration_of(definition), symbol.tu)
            self._add_tracked(descriptor, typedef_underlying_declaration_of(definition), symbol.tu)

        self._add_textual_deps(symbol, descriptor, macros)
        return descriptor

    def _tracked(self, cursor: clang.Cursor | None, tu_index: int) -> SourceSymbol | None:
        """Table key for ``cursor``, or None if the cursor is not a top-level symbol."""
        if cursor is None:
            return None
        symbol = self.front_end.lookup(cursor, tu_index)
        if symbol is None or symbol not in self.table:
            return None
        return symbol

    def _add_tracked(
        self, descriptor: SymbolDescriptor, cursor: clang.Cursor | None, tu_index: int
    ) -> None:
        symbol = self._tracked(cursor, tu_index)
        if symbol is not None:
            descriptor.deps.add(symbol)

    def _add_textual_deps(
        self, symbol: SourceSymbol, descriptor: SymbolDescriptor, macros: MacroIndex
    ) -> None:
        includes = []

        for entry in macros.in_range(symbol.start_line, symbol.end_line):
            # Same line number in another file of the unit is a coincidence.
            if entry.path != symbol.path:
                continue

            if entry.kind == SymbolKind.MACRO_EXPANSION:
                self._add_expansion(descriptor, entry)
            elif entry.kind == SymbolKind.INCLUSION_DIRECTIVE:
                descriptor.deps.add(entry)
                includes.append(entry)

        # Macros of a file included inside the symbol may expand within it.
        for include in includes:
            for macro in self.macros_in_included_file(include, macros):
                if macro.kind == SymbolKind.MACRO_EXPANSION:
                    self._add_expansion(descriptor, macro)
                else:
                    descriptor.deps.add(macro)

    def _add_expansion(self, descriptor: SymbolDescriptor, expansion: SourceSymbol) -> None:
        descriptor.deps.add(expansion)
        macro_definition = self._macro_definition(expansion)
        if macro_definition is not None:
            descriptor.deps.add(macro_definition)

    def _macro_definition(self, expansion: SourceSymbol) -> SourceSymbol | None:
        """The ``#define`` an expansion refers to, as a leaf symbol."""
        definition = referenced_of(self.front_end.cursor(expansion))
        if definition is None or definition.location.file is None:
            return None
        return self.front_end.intern(definition, expansion.tu)

    def macros_in_included_file(
        self, include: SourceSymbol, macros: MacroIndex
    ) -> list[SourceSymbol]:
        if include.name is None:
            return []

        if self.include_macro_match == IncludeMacroMatch.SUBSTRING:
            return [
                macro
                for macro in macros.macros()
                if macro.path is not None and include.name in macro.path
            ]

        target = self.resolver.resolve(include)
        return [
            macro
            for macro in macros.macros()
            if macro.path is not None and canonical_file(macro.path) == target
        ]
