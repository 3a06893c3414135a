#!/usr/bin/env python3
"""
Source symbols and the global symbol table.

Every textual occurrence the front end reports (a declaration, a macro
expansion, an include line) becomes one ``SourceSymbol`` stored in a
per-run ``SymbolArena``. The ``SymbolTable`` maps the top-level
declarations and definitions among them to their ``SymbolDescriptor``.
"""

from collections.abc import Callable, Hashable, Iterable, Iterator
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from ctreeshake.errors import TableFrozenError


class SymbolKind(str, Enum):
    FUNCTION = "function"
    VARIABLE = "variable"
    TYPE = "type"
    MACRO_DEFINITION = "macro_definition"
    MACRO_EXPANSION = "macro_expansion"
    INCLUSION_DIRECTIVE = "inclusion_directive"
    OTHER_DECLARATION = "other_declaration"
    OTHER = "other"

    @property
    def is_macro(self) -> bool:
        return self in (SymbolKind.MACRO_DEFINITION, SymbolKind.MACRO_EXPANSION)

    @property
    def is_leaf(self) -> bool:
        """Macro and include entities carry no descriptor of their own."""
        return self.is_macro or self == SymbolKind.INCLUSION_DIRECTIVE


@dataclass(frozen=True)
class SourceSymbol:
    """One textual occurrence of an entity in one translation unit."""

    id: int
    kind: SymbolKind
    name: str | None
    path: str | None  # file as spelled by the front end
    line: int = 0
    column: int = 0
    start_line: int = 0
    end_line: int = 0
    tu: int = 0
    is_declaration: bool = False
    is_definition: bool = False
    in_system_header: bool = False
    included_file: str | None = None  # resolved target, inclusion directives only

    @property
    def has_location(self) -> bool:
        return self.path is not None

    @property
    def is_leaf(self) -> bool:
        return self.kind.is_leaf

    def describe(self) -> str:
        return f"{self.kind.value} {self.name or '<anonymous>'} (#{self.id}, tu {self.tu})"

    def location_str(self) -> str:
        if self.path is None:
            return "<no location>"
        return f"{self.path}:{self.line}"


class SymbolArena:
    """Append-only store of SourceSymbols, addressed by index."""

    def __init__(self):
        self._symbols: list[SourceSymbol] = []
        self._handles: list[Any] = []
        self._by_key: dict[Hashable, int] = {}

    def intern(
        self, key: Hashable, handle: Any, make: Callable[[int], SourceSymbol]
    ) -> SourceSymbol:
        """Return the symbol stored under ``key``, creating it with ``make(id)`` if new."""
        index = self._by_key.get(key)
        if index is not None:
            return self._symbols[index]

        index = len(self._symbols)
        symbol = make(index)
        if symbol.id != index:
            raise ValueError(f"Symbol id {symbol.id} does not match arena slot {index}")
        self._symbols.append(symbol)
        self._handles.append(handle)
        self._by_key[key] = index
        return symbol

    def lookup(self, key: Hashable) -> SourceSymbol | None:
        index = self._by_key.get(key)
        return None if index is None else self._symbols[index]

    def handle(self, symbol: SourceSymbol) -> Any:
        """Front-end object the symbol was created from."""
        return self._handles[symbol.id]

    def __getitem__(self, index: int) -> SourceSymbol:
        return self._symbols[index]

    def __len__(self) -> int:
        return len(self._symbols)

    def __iter__(self) -> Iterator[SourceSymbol]:
        return iter(self._symbols)


@dataclass
class SymbolDescriptor:
    deps: set[SourceSymbol] = field(default_factory=set)
    definitions: set[SourceSymbol] = field(default_factory=set)

    @property
    def edges(self) -> set[SourceSymbol]:
        return self.deps | self.definitions


class TablePhase(str, Enum):
    BUILDING = "building"
    FROZEN = "frozen"


class SymbolTable:
    """Global mapping from top-level symbols to their descriptors.

    The table is written during the build phase only (discovery, dependency
    fill, merge). ``freeze()`` ends it; every later write raises
    ``TableFrozenError``.
    """

    def __init__(self):
        self._entries: dict[SourceSymbol, SymbolDescriptor] = {}
        self.phase = TablePhase.BUILDING

    def _check_writable(self) -> None:
        if self.phase is TablePhase.FROZEN:
            raise TableFrozenError("Symbol table is read-only after the build phase")

    def add(self, symbol: SourceSymbol) -> SymbolDescriptor:
        """Register a symbol with an empty descriptor (no-op if already present)."""
        self._check_writable()
        return self._entries.setdefault(symbol, SymbolDescriptor())

    def set_descriptor(self, symbol: SourceSymbol, descriptor: SymbolDescriptor) -> None:
        self._check_writable()
        if symbol not in self._entries:
            raise KeyError(f"{symbol.describe()} is not a table key")
        self._entries[symbol] = descriptor

    def add_definitions(self, symbol: SourceSymbol, definitions: Iterable[SourceSymbol]) -> None:
        self._check_writable()
        self._entries[symbol].definitions.update(definitions)

    def freeze(self) -> None:
        self.phase = TablePhase.FROZEN

    def named(self, names: Iterable[str]) -> list[SourceSymbol]:
        """All keys whose name is in ``names``, in discovery order."""
        wanted = set(names)
        return sorted(
            (symbol for symbol in self._entries if symbol.name in wanted),
            key=lambda symbol: symbol.id,
        )

    def get(self, symbol: SourceSymbol) -> SymbolDescriptor | None:
        return self._entries.get(symbol)

    def items(self):
        return self._entries.items()

    def __contains__(self, symbol: object) -> bool:
        return symbol in self._entries

    def __getitem__(self, symbol: SourceSymbol) -> SymbolDescriptor:
        return self._entries[symbol]

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[SourceSymbol]:
        return iter(self._entries)
