"""Extract the minimal C source needed to build a set of entry symbols."""

from ctreeshake.config import IncludeMacroMatch, ShakeConfig
from ctreeshake.errors import (
    GraphConsistencyError,
    MissingLocation,
    ParseFailure,
    ShakeError,
    SourceIOError,
    TableFrozenError,
)
from ctreeshake.pipeline import ShakeResult, build_graph, shake

__all__ = [
    "GraphConsistencyError",
    "IncludeMacroMatch",
    "MissingLocation",
    "ParseFailure",
    "ShakeConfig",
    "ShakeError",
    "ShakeResult",
    "SourceIOError",
    "TableFrozenError",
    "build_graph",
    "shake",
]
