#!/usr/bin/env python3
"""End-to-end extraction: parse, build the graph, close over it, write files."""

import logging
from dataclasses import dataclass

from ctreeshake.config import ShakeConfig
from ctreeshake.dependencies import DependencyAnalyzer
from ctreeshake.discovery import Discovery, build_symbol_table
from ctreeshake.extract import extract_symbols
from ctreeshake.frontend import ClangFrontEnd, ParsedUnit
from ctreeshake.macro_index import build_macro_index
from ctreeshake.merge import merge_declarations
from ctreeshake.paths import IncludeResolver
from ctreeshake.reconstruct import ReconstructionResult, SourceReconstructor
from ctreeshake.symbols import SourceSymbol, SymbolTable

logger = logging.getLogger(__name__)


@dataclass
class ProgramGraph:
    """The frozen symbol graph of all parsed translation units."""

    front_end: ClangFrontEnd
    units: list[ParsedUnit]
    discovery: Discovery
    resolver: IncludeResolver

    @property
    def table(self) -> SymbolTable:
        return self.discovery.table


@dataclass
class ShakeResult:
    graph: ProgramGraph
    extracted: set[SourceSymbol]
    output: ReconstructionResult


def build_graph(config: ShakeConfig) -> ProgramGraph:
    """Build phase: discovery, dependency fill and merge, then freeze the table."""
    front_end = ClangFrontEnd(config.clang_args)
    units = front_end.parse(config.canonical_sources())

    discovery = build_symbol_table(front_end, units)
    resolver = IncludeResolver(discovery.registry)

    analyzer = DependencyAnalyzer(
        front_end, discovery.table, resolver, config.include_macro_match
    )
    for unit in units:
        analyzer.analyze_unit(unit, build_macro_index(front_end, unit))

    merge_declarations(discovery.table)
    discovery.table.freeze()

    return ProgramGraph(front_end=front_end, units=units, discovery=discovery, resolver=resolver)


def shake(config: ShakeConfig) -> ShakeResult:
    """Run a complete extraction as described by ``config``."""
    graph = build_graph(config)
    extracted = extract_symbols(config.entry_symbols, graph.table)

    reconstructor = SourceReconstructor(
        sources=config.canonical_sources(),
        includes=graph.discovery.includes,
        registry=graph.discovery.registry,
        resolver=graph.resolver,
        source_root=config.resolved_source_root(),
        output_dir=config.output_dir,
    )
    output = reconstructor.reconstruct(extracted)

    logger.info(
        f"Wrote {len(output.written)} files and copied {len(output.copied)} includes "
        f"to {config.output_dir}"
    )
    return ShakeResult(graph=graph, extracted=extracted, output=output)
