#!/usr/bin/env python3

import json
from enum import Enum
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field

from ctreeshake.paths import canonical, common_root

CONFIG_FILE_NAME = "ctreeshake.json"


class IncludeMacroMatch(str, Enum):
    """How macros are attributed to a file included inside a symbol."""

    PATH = "path"  # canonical path of the macro's file equals the include target
    SUBSTRING = "substring"  # include spelling occurs in the macro's file path


class ShakeConfig(BaseModel):
    """Configuration for one extraction run."""

    sources: list[Path] = Field(min_length=1)
    entry_symbols: set[str] = Field(default_factory=lambda: {"main"}, min_length=1)
    output_dir: Path

    # Root whose relative layout the output mirrors; common source directory if unset
    source_root: Path | None = None

    # Front end settings
    clang_args: list[str] = Field(default_factory=lambda: ["-std=c99"])
    include_macro_match: IncludeMacroMatch = IncludeMacroMatch.PATH

    def canonical_sources(self) -> list[Path]:
        """Sources as canonical paths, in configured order."""
        return [canonical(source) for source in self.sources]

    def resolved_source_root(self) -> Path:
        """Get the directory the output tree is mirrored from."""
        if self.source_root is not None:
            return canonical(self.source_root)
        return common_root(self.sources)

    @classmethod
    def load_from_file(cls, config_path: Path) -> "ShakeConfig":
        """Load configuration from a JSON file.

        Relative paths in the file are taken relative to the file's directory.
        """
        args = json.loads(config_path.read_text())
        base = config_path.parent
        if "sources" in args:
            args["sources"] = [base / source for source in args["sources"]]
        for key in ("output_dir", "source_root"):
            if args.get(key) is not None:
                args[key] = base / args[key]
        return cls.model_validate(args)

    def save_to_file(self, config_path: Path) -> None:
        """Save configuration to a JSON file."""
        data = self.model_dump(mode="json")
        data["entry_symbols"] = sorted(self.entry_symbols)
        config_path.write_text(json.dumps(data, indent=2))

    @classmethod
    def find_config(cls, start_path: Path) -> Optional["ShakeConfig"]:
        """Find configuration by searching up the directory tree."""
        current = start_path.resolve()
        while current != current.parent:
            config_file = current / CONFIG_FILE_NAME
            if config_file.exists():
                return cls.load_from_file(config_file)
            current = current.parent
        return None
