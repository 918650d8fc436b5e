"""
Xray CLI -- Executable Image Inspector
=======================================

Click-based command line for inspecting one or more executable images.

Usage::

    # Inspect a shared library
    xray /usr/lib/x86_64-linux-gnu/libc.so.6

    # Several files, JSON to stdout
    xray a.exe b.dll --json

    # Write an HTML (or .json) report
    xray sample.elf --output report.html

    # Custom configuration and a JSON-lines log file
    xray sample.dll --config xray.toml --log-file xray.log

Exit status:
    0  every input was parsed
    1  at least one input was corrupt or could not be read
    3  the only failures were inputs in an unrecognised format

References:
    - Click documentation: https://click.palletsprojects.com/
"""

from __future__ import annotations

import sys

import click

from shared.config import XrayConfig
from shared.console import ToolConsole
from shared.logger import ToolLogger

from xray import __version__
from xray.core.engine import InspectionEngine, exit_code
from xray.core.models import InspectionStatus
from xray.output.console import ConsoleRenderer
from xray.output.report import ReportWriter


@click.command("xray")
@click.argument("paths", nargs=-1, required=True, type=click.Path())
@click.option(
    "--json", "json_output",
    is_flag=True,
    default=False,
    help="Print results as JSON to stdout.",
)
@click.option(
    "--output", "-o",
    "output_path",
    type=click.Path(dir_okay=False),
    default=None,
    help="Write a report file (.json, otherwise HTML).",
)
@click.option(
    "--config", "-c",
    "config_path",
    type=click.Path(exists=True, dir_okay=False),
    default=None,
    help="TOML configuration file (default: ./xray.toml if present).",
)
@click.option(
    "--verbose", "-v",
    is_flag=True,
    default=False,
    help="Log decode progress at DEBUG level.",
)
@click.option(
    "--log-file",
    type=click.Path(dir_okay=False),
    default=None,
    help="Also write log records to this rotating file.",
)
@click.version_option(__version__, prog_name="xray")
def xray_cli(
    paths: tuple[str, ...],
    json_output: bool,
    output_path: str | None,
    config_path: str | None,
    verbose: bool,
    log_file: str | None,
) -> None:
    """Xray -- inspect ELF, PE and Mach-O executables without running them.

    PATHS are the files to inspect.

    Examples:

    \b
        xray /bin/ls
        xray kernel32.dll --json
        xray app.exe lib.so --output report.html
    """
    console = ToolConsole()

    try:
        config = XrayConfig.load(config_path)
    except (OSError, ValueError) as exc:
        console.error(f"Cannot load configuration: {exc}")
        sys.exit(2)

    settings = config.global_settings
    logger = ToolLogger(
        "engine",
        log_level="DEBUG" if verbose else settings.log_level,
        log_file=log_file or settings.log_file or None,
        json_logs=settings.log_json,
    )
    engine = InspectionEngine(config=config, logger=logger)

    try:
        results = engine.analyze_sync(paths)
    except KeyboardInterrupt:
        console.warning("Inspection interrupted by user.")
        sys.exit(130)

    if json_output:
        click.echo(ReportWriter().to_json(results))
    else:
        renderer = ConsoleRenderer(console=console, settings=config.output)
        for result in results:
            renderer.display(result)

        parsed = sum(1 for r in results if r.status == InspectionStatus.PARSED)
        console.info(f"{parsed} of {len(results)} file(s) parsed")

    if output_path:
        report_path = ReportWriter().write(results, output_path)
        if not json_output:
            console.success(f"Report saved: {report_path}")

    sys.exit(exit_code(results))


def main() -> None:
    """Entry point for the ``xray`` console script."""
    xray_cli()


if __name__ == "__main__":
    main()
