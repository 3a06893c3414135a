#!/usr/bin/env python3
"""Command line entry point."""

import sys
from pathlib import Path

import click
from pydantic import ValidationError

from ctreeshake.config import CONFIG_FILE_NAME, IncludeMacroMatch, ShakeConfig
from ctreeshake.console import Console
from ctreeshake.errors import ShakeError
from ctreeshake.pipeline import ShakeResult, shake


def resolve_config(
    config_path: Path | None,
    sources: tuple[Path, ...],
    entry_symbols: tuple[str, ...],
    output_dir: Path | None,
    source_root: Path | None,
    clang_args: tuple[str, ...],
    include_macro_match: str | None,
) -> ShakeConfig:
    """Merge command line values over a config file, if there is one."""
    if config_path is not None:
        base = ShakeConfig.load_from_file(config_path)
    elif not sources:
        base = ShakeConfig.find_config(Path.cwd())
    else:
        base = None

    data = base.model_dump() if base is not None else {}
    if sources:
        data["sources"] = list(sources)
    if entry_symbols:
        data["entry_symbols"] = set(entry_symbols)
    if output_dir is not None:
        data["output_dir"] = output_dir
    if source_root is not None:
        data["source_root"] = source_root
    if clang_args:
        data["clang_args"] = list(clang_args)
    if include_macro_match is not None:
        data["include_macro_match"] = IncludeMacroMatch(include_macro_match.lower())

    return ShakeConfig.model_validate(data)


def print_summary(console: Console, result: ShakeResult, list_symbols: bool) -> None:
    extracted = sorted(
        (symbol for symbol in result.extracted if not symbol.is_leaf),
        key=lambda symbol: (symbol.path or "", symbol.start_line, symbol.id),
    )

    if list_symbols:
        console.print(f"[yellow]Extracted {len(extracted)} symbols:[/yellow]")
        for i, symbol in enumerate(extracted, 1):
            location = f"{Path(symbol.path).name}:{symbol.line}" if symbol.path else "?"
            console.print(
                f"  {i:3d}. {symbol.kind.value:<18} {symbol.name or '<anonymous>':<25} ({location})"
            )

    console.print(f"\n{'='*60}")
    console.print("[bold green]Extraction completed![/bold green]")
    console.print(f"[cyan]   Translation units: {len(result.graph.units)}[/cyan]")
    console.print(f"[cyan]   Table symbols: {len(result.graph.table)}[/cyan]")
    console.print(f"[cyan]   Extracted symbols: {len(extracted)}[/cyan]")
    console.print(f"[green]   Files written: {len(result.output.written)}[/green]")
    console.print(f"[green]   Includes copied verbatim: {len(result.output.copied)}[/green]")
    if result.output.skipped:
        console.print(f"[yellow]   Skipped: {', '.join(str(p) for p in result.output.skipped)}[/yellow]")


@click.command()
@click.argument(
    "sources", nargs=-1, type=click.Path(exists=True, dir_okay=False, path_type=Path)
)
@click.option(
    "-e", "--entry", "entry_symbols", multiple=True,
    help="Entry symbol to keep (can be specified multiple times, defaults to main)",
)
@click.option(
    "-o", "--output-dir", type=click.Path(file_okay=False, path_type=Path),
    help="Directory the minimized tree is written to",
)
@click.option(
    "--source-root", type=click.Path(exists=True, file_okay=False, path_type=Path),
    help="Directory whose layout is mirrored (defaults to the common source directory)",
)
@click.option(
    "--config", "config_path", type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help=f"JSON config file (searched upward as {CONFIG_FILE_NAME} when no sources are given)",
)
@click.option("--clang-arg", "clang_args", multiple=True, help="Extra argument passed to clang")
@click.option(
    "--include-macro-match",
    type=click.Choice([m.value for m in IncludeMacroMatch], case_sensitive=False),
    help="How macros are attributed to files included inside a symbol",
)
@click.option("--list", "list_symbols", is_flag=True, help="List the extracted symbols")
@click.option("-v", "--verbose", count=True, help="More logging (-v info, -vv debug)")
def main(
    sources: tuple[Path, ...],
    entry_symbols: tuple[str, ...],
    output_dir: Path | None,
    source_root: Path | None,
    config_path: Path | None,
    clang_args: tuple[str, ...],
    include_macro_match: str | None,
    list_symbols: bool,
    verbose: int,
):
    """Extract the C source needed to build the entry symbols into a new tree."""
    console = Console()
    console.setup_logging(verbose)

    try:
        config = resolve_config(
            config_path, sources, entry_symbols, output_dir, source_root, clang_args,
            include_macro_match,
        )
    except ValidationError as e:
        raise click.UsageError(f"Invalid configuration:\n{e}") from e

    console.print(
        f"[bold green]Extracting {', '.join(sorted(config.entry_symbols))} "
        f"from {len(config.sources)} sources into {config.output_dir}[/bold green]"
    )

    try:
        with console.status("Shaking..."):
            result = shake(config)
    except ShakeError as e:
        console.print(f"[red]{e}[/red]")
        sys.exit(1)

    print_summary(console, result, list_symbols)


if __name__ == "__main__":
    main()
