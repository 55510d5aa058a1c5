"""
PEScope CLI -- PE Export/Import Inspector
==========================================

Click-based command-line interface.

Usage::

    # Exports, imports and dependency summary
    pescope inspect C:/Windows/System32/kernel32.dll

    # Exports only, list every export
    pescope inspect sample.dll --no-imports --max-exports 0

    # Machine-readable output
    pescope inspect sample.dll --json
    pescope inspect sample.dll --output report.json
    pescope inspect sample.dll --save

    # Wildcard search over exported names
    pescope search sample.dll "Get*Error"

References:
    - Click documentation: https://click.palletsprojects.com/
"""

from __future__ import annotations

import json
import sys
from datetime import datetime
from pathlib import Path

import click

from shared.config import ScopeConfig, get_config
from shared.console import ScopeConsole
from shared.logger import ScopeLogger

from pescope.analyzers.export_search import search_exports
from pescope.core.engine import PEScopeEngine
from pescope.core.models import AnalysisResult
from pescope.output.console import PEScopeConsoleOutput
from pescope.output.report import PEScopeReportGenerator


# ---------------------------------------------------------------------------
# Shared helpers
# ---------------------------------------------------------------------------

def _load_config(config_path: str | None) -> ScopeConfig:
    try:
        return get_config(config_path)
    except (FileNotFoundError, TypeError, ValueError) as exc:
        raise click.BadParameter(str(exc), param_hint="--config")


def _analyze_or_exit(
    ctx: click.Context, console: ScopeConsole, path: str
) -> AnalysisResult:
    """Run the engine on *path*, exiting with status 1 on failure."""
    config: ScopeConfig = ctx.obj["config"]
    logger: ScopeLogger = ctx.obj["logger"]
    engine = PEScopeEngine(config=config, logger=logger)

    if not engine.is_supported:
        console.error("Native DLL analysis is not supported on this platform.")
        sys.exit(1)

    with console.status(f"Decoding {Path(path).name}..."):
        result = engine.analyze(path)

    if result is None:
        console.error(f"'{Path(path).name}' is not a valid PE file.")
        sys.exit(1)
    return result


def _default_output_path(output_dir: str, stem: str) -> str:
    """Generate a default report path with timestamp."""
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    return str(Path(output_dir) / f"pescope_{stem}_{timestamp}.json")


# ---------------------------------------------------------------------------
# CLI group / commands
# ---------------------------------------------------------------------------

@click.group("pescope")
@click.option(
    "--config", "-c",
    "config_path",
    type=click.Path(dir_okay=False),
    default=None,
    help="TOML configuration file.  Default: config.toml in the project root.",
)
@click.option(
    "--verbose", "-v",
    is_flag=True,
    default=False,
    help="Enable verbose/debug output.",
)
@click.pass_context
def pescope_cli(ctx: click.Context, config_path: str | None, verbose: bool) -> None:
    """PEScope -- inspect the exports and imports of Windows PE images."""
    config = _load_config(config_path)
    settings = config.global_settings
    log_level = "DEBUG" if verbose or settings.debug else settings.log_level
    ctx.obj = {
        "config": config,
        "logger": ScopeLogger(
            "cli",
            log_level=log_level,
            log_file=settings.log_file or None,
            json_logs=settings.log_json,
        ),
    }
    ctx.obj["logger"].debug("Configuration loaded", **config.to_dict())


@pescope_cli.command("inspect")
@click.argument("path", type=click.Path(exists=True, dir_okay=False))
@click.option(
    "--imports/--no-imports",
    "include_imports",
    default=True,
    help="Include imported modules (dependencies).  Default: on.",
)
@click.option(
    "--max-exports", "-m",
    type=click.IntRange(min=0),
    default=None,
    help="Maximum number of exports to show (0 for all).",
)
@click.option(
    "--json", "json_output",
    is_flag=True,
    default=False,
    help="Output results as JSON to stdout.",
)
@click.option(
    "--output", "-o",
    "output_path",
    type=click.Path(dir_okay=False),
    default=None,
    help="Write a JSON report to this path.",
)
@click.option(
    "--save",
    is_flag=True,
    default=False,
    help="Write a timestamped JSON report to the configured output directory.",
)
@click.pass_context
def inspect_command(
    ctx: click.Context,
    path: str,
    include_imports: bool,
    max_exports: int | None,
    json_output: bool,
    output_path: str | None,
    save: bool,
) -> None:
    """Analyse the exported and imported functions of PATH.

    \b
    Examples:
        pescope inspect kernel32.dll
        pescope inspect app.exe --no-imports --max-exports 0
    """
    config: ScopeConfig = ctx.obj["config"]
    console = ScopeConsole(quiet=json_output)
    result = _analyze_or_exit(ctx, console, path)
    report_gen = PEScopeReportGenerator()

    if json_output:
        click.echo(json.dumps(report_gen.build_report(result), indent=2, default=str))
    else:
        output_display = PEScopeConsoleOutput(
            console=console,
            import_preview_count=config.pe.import_preview_count,
        )
        output_display.display(
            result,
            include_imports=include_imports,
            max_exports=config.pe.max_exports_display if max_exports is None else max_exports,
        )

    if save and not output_path:
        output_path = _default_output_path(config.global_settings.output_dir, Path(path).stem)
    if output_path:
        report_path = report_gen.generate_json(result, output_path)
        console.success(f"JSON report saved: {report_path}")


@pescope_cli.command("search")
@click.argument("path", type=click.Path(exists=True, dir_okay=False))
@click.argument("pattern")
@click.pass_context
def search_command(ctx: click.Context, path: str, pattern: str) -> None:
    """Search the exports of PATH by name PATTERN.

    PATTERN is case-insensitive; '*' matches any run of characters and
    '?' a single character.
    """
    console = ScopeConsole()
    result = _analyze_or_exit(ctx, console, path)
    PEScopeConsoleOutput(console=console).display_search(
        result, pattern, search_exports(result, pattern)
    )


# ---------------------------------------------------------------------------
# Module entry point
# ---------------------------------------------------------------------------

def main() -> None:
    """Entry point for ``pescope`` and ``python -m pescope``."""
    pescope_cli()


if __name__ == "__main__":
    main()
