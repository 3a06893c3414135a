from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ctreeshake.symbols import SourceSymbol


class ShakeError(Exception):
    """Base class for fatal extraction errors."""


class ParseFailure(ShakeError):
    """Raised when the front end cannot produce an AST for a source."""

    def __init__(self, path: Path | str, reason: str = ""):
        self.path = Path(path)
        self.reason = reason
        message = f"Failed to parse {self.path}"
        if reason:
            message += f": {reason}"
        super().__init__(message)


class MissingLocation(ShakeError):
    """Raised when a symbol that must be sliced out of a file has no location."""

    def __init__(self, symbol: "SourceSymbol", context: str = ""):
        self.symbol = symbol
        message = f"Symbol {symbol.describe()} has no source location"
        if context:
            message += f" ({context})"
        super().__init__(message)


class SourceIOError(ShakeError):
    """Wraps an OSError together with the path it happened on."""

    def __init__(self, path: Path | str, error: OSError):
        self.path = Path(path)
        self.error = error
        super().__init__(f"I/O error on {self.path}: {error.strerror or error}")


class GraphConsistencyError(ShakeError):
    """Raised when the dependency graph references a symbol it never tracked."""

    def __init__(self, symbol: "SourceSymbol", message: str):
        self.symbol = symbol
        super().__init__(f"{message}: {symbol.describe()} at {symbol.location_str()}")


class TableFrozenError(ShakeError):
    """Raised on a write to the symbol table after the build phase ended."""
