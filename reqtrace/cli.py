"""CLI entry point, command definitions using Click.

Commands:
    init          Generate a template config file
    report        Compute requirements coverage and emit it as JSON
"""

import functools
import json
import logging
import sys
from typing import Any

import click

from reqtrace import __version__

_LOG_LEVELS = ("ERROR", "WARNING", "INFO", "DEBUG")

EXIT_ERROR = 1
EXIT_BELOW_THRESHOLD = 2


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _configure_logging(level: str) -> None:
    """Send log records to stderr so stdout carries only the JSON report."""
    logging.basicConfig(
        level=getattr(logging, level),
        format="%(asctime)s %(levelname)-7s %(name)s: %(message)s",
        stream=sys.stderr,
        force=True,
    )


def _emit_json(data: Any, ctx: click.Context) -> None:
    """Write JSON to stdout or to the file specified by --output."""
    obj = ctx.obj
    indent = 2 if obj["pretty"] else None
    text = json.dumps(data, indent=indent, ensure_ascii=False)

    output_path: str | None = obj["output_path"]
    if output_path:
        with open(output_path, "w", encoding="utf-8") as f:
            f.write(text)
        click.echo(f"Report written to '{output_path}'", err=True)
    else:
        click.echo(text)


def _handle_run_errors(func):
    """Decorator that turns pipeline exceptions into a clean exit."""

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        from reqtrace.errors import ConfigError, ParserError

        try:
            return func(*args, **kwargs)
        except ConfigError as exc:
            click.echo(f"Configuration error: {exc}", err=True)
            sys.exit(EXIT_ERROR)
        except ParserError as exc:
            click.echo(f"Requirement source error: {exc}", err=True)
            sys.exit(EXIT_ERROR)

    return wrapper


# ---------------------------------------------------------------------------
# CLI group
# ---------------------------------------------------------------------------

@click.group()
@click.option("--config", "config_path", default="reqtrace.yaml", show_default=True,
              help="Path to the configuration file.")
@click.option("--output", "output_path", default=None,
              help="Write JSON output to a file instead of stdout.")
@click.option("--pretty", is_flag=True, default=False,
              help="Pretty-print the JSON output.")
@click.option("--log-level", type=click.Choice(_LOG_LEVELS, case_sensitive=False),
              default="WARNING", show_default=True, help="Logging verbosity.")
@click.option("--verbose", is_flag=True, default=False,
              help="Enable debug logging (same as --log-level DEBUG).")
@click.version_option(__version__, prog_name="reqtrace")
@click.pass_context
def cli(ctx: click.Context, config_path: str, output_path: str | None,
        pretty: bool, log_level: str, verbose: bool) -> None:
    """Requirements traceability: correlate declared requirements with code tags."""
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path
    ctx.obj["output_path"] = output_path
    ctx.obj["pretty"] = pretty
    _configure_logging("DEBUG" if verbose else log_level.upper())


# ---------------------------------------------------------------------------
# init
# ---------------------------------------------------------------------------

@cli.command("init")
@click.option("--output", "output_path", default="reqtrace.yaml", show_default=True,
              help="Path where the template config file will be written.")
def init_command(output_path: str) -> None:
    """Generate a template reqtrace.yaml file."""
    from reqtrace.config import ConfigError, generate_template
    try:
        generate_template(output_path)
        click.echo(f"Template written to '{output_path}'.")
        click.echo("Edit it with your code roots, tag pattern and requirement source.")
    except ConfigError as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(EXIT_ERROR)


# ---------------------------------------------------------------------------
# report
# ---------------------------------------------------------------------------

@cli.command("report")
@click.option("--report-name", default=None,
              help="Report name (overrides 'report.name' from the config).")
@click.option("--fail-under", type=click.FloatRange(0, 100), default=None,
              help=f"Exit with status {EXIT_BELOW_THRESHOLD} when coverage is below this percentage.")
@click.pass_context
@_handle_run_errors
def report_command(ctx: click.Context, report_name: str | None,
                   fail_under: float | None) -> None:
    """Compute requirements coverage and emit the JSON report."""
    from reqtrace.config import load
    from reqtrace.reports.coverage import build_report
    from reqtrace.runner import run

    config = load(ctx.obj["config_path"])
    outcome = run(config)
    _emit_json(build_report(outcome, report_name or config.report_name), ctx)

    for warning in outcome.warnings:
        click.echo(f"Skipped {warning.origin.value} file '{warning.path}': {warning.message}", err=True)

    percentage = outcome.result.summary.percentage
    if fail_under is not None and float(percentage) < fail_under:
        click.echo(f"Coverage {percentage}% is below the required {fail_under}%", err=True)
        sys.exit(EXIT_BELOW_THRESHOLD)
