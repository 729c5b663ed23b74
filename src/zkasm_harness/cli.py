"""Typer CLI entrypoints for zkasm_harness."""

from __future__ import annotations

import logging
from pathlib import Path

import polars as pl
import typer
import yaml

from zkasm_harness.config import HarnessSettings, load_settings
from zkasm_harness.counters import load_counter_report
from zkasm_harness.logging_utils import configure_logging
from zkasm_harness.runner import run_harness, warm_cache
from zkasm_harness.toolchain import Toolchain, ToolchainLoadError, load_toolchain

app = typer.Typer(
    add_completion=False,
    help="zkasm_harness command line interface.",
    no_args_is_help=True,
)

# Single-command app exposing the `<test_path> [output_file]` contract directly.
run_app = typer.Typer(add_completion=False)


def _load_and_optionally_configure_logger(
    config_file: Path | None,
    configure: bool,
) -> tuple[HarnessSettings, logging.Logger]:
    settings = load_settings(config_file=config_file)
    if configure:
        logger = configure_logging(settings.paths.logs_root / "harness.log")
    else:
        logger = logging.getLogger("zkasm_harness")
    return settings, logger


def _resolve_toolchain(settings: HarnessSettings, override: str | None) -> Toolchain:
    try:
        return load_toolchain(override or settings.toolchain.factory)
    except ToolchainLoadError as exc:
        raise typer.BadParameter(str(exc), param_hint="--toolchain") from exc


def _run_tests(
    test_path: Path,
    output_file: Path | None,
    config_file: Path | None,
    toolchain_factory: str | None,
) -> None:
    settings, logger = _load_and_optionally_configure_logger(config_file, configure=True)
    toolchain = _resolve_toolchain(settings, toolchain_factory)
    result = run_harness(settings, test_path, toolchain, output_path=output_file, logger=logger)
    logger.info("run.summary %s", result.summary)


@run_app.command()
def run_tests_main(
    test_path: Path = typer.Argument(..., help="zkASM file or directory containing zkASM files."),
    output_file: Path | None = typer.Argument(
        None,
        help="Write results as JSON to this file instead of printing them.",
        dir_okay=False,
    ),
    config_file: Path | None = typer.Option(
        None,
        "--config-file",
        help="Optional settings YAML path.",
        exists=False,
        file_okay=True,
        dir_okay=False,
        readable=True,
    ),
    toolchain_factory: str | None = typer.Option(
        None,
        "--toolchain",
        help="Toolchain factory as module:attribute (overrides toolchain.factory).",
    ),
) -> None:
    """Execute zkASM test files and report per-test results."""

    _run_tests(test_path, output_file, config_file, toolchain_factory)


@app.command("run")
def run_cmd(
    test_path: Path = typer.Argument(..., help="zkASM file or directory containing zkASM files."),
    output_file: Path | None = typer.Argument(
        None,
        help="Write results as JSON to this file instead of printing them.",
        dir_okay=False,
    ),
    config_file: Path | None = typer.Option(
        None,
        "--config-file",
        help="Optional settings YAML path.",
        exists=False,
        file_okay=True,
        dir_okay=False,
        readable=True,
    ),
    toolchain_factory: str | None = typer.Option(
        None,
        "--toolchain",
        help="Toolchain factory as module:attribute (overrides toolchain.factory).",
    ),
) -> None:
    """Execute zkASM test files and report per-test results."""

    _run_tests(test_path, output_file, config_file, toolchain_factory)


@app.command("warm-cache")
def warm_cache_cmd(
    config_file: Path | None = typer.Option(
        None,
        "--config-file",
        help="Optional settings YAML path.",
        exists=False,
        file_okay=True,
        dir_okay=False,
        readable=True,
    ),
    toolchain_factory: str | None = typer.Option(
        None,
        "--toolchain",
        help="Toolchain factory as module:attribute (overrides toolchain.factory).",
    ),
) -> None:
    """Build the constraint artifact cache if it does not exist yet."""

    settings, logger = _load_and_optionally_configure_logger(config_file, configure=True)
    toolchain = _resolve_toolchain(settings, toolchain_factory)
    cached = warm_cache(settings, toolchain, logger=logger)
    typer.echo(f"cache_file: {cached.cache_file}")
    typer.echo(f"built: {cached.built}")


@app.command("show-config")
def show_config(
    config_file: Path | None = typer.Option(
        None,
        "--config-file",
        help="Optional settings YAML path.",
        exists=False,
        file_okay=True,
        dir_okay=False,
        readable=True,
    ),
) -> None:
    """Print the effective configuration after env overrides."""

    settings, _ = _load_and_optionally_configure_logger(config_file, configure=False)
    rendered = yaml.safe_dump(settings.as_dict(), sort_keys=False)
    typer.echo(rendered)


@app.command("show-counters")
def show_counters(
    report_file: Path = typer.Argument(
        ...,
        help="Instruction counter report JSON written during a test run.",
        exists=True,
        file_okay=True,
        dir_okay=False,
        readable=True,
    ),
    top: int | None = typer.Option(
        None,
        "--top",
        min=1,
        help="Show only the N most frequent instructions.",
    ),
) -> None:
    """Print an instruction counter report as a table."""

    report = load_counter_report(report_file)
    frame = pl.DataFrame(
        [row.model_dump() for row in report.counters],
        schema={"name": pl.String, "count": pl.Int64, "fraction": pl.String},
    )
    if top is not None:
        frame = frame.sort("count", descending=True, maintain_order=True).head(top)

    with pl.Config(tbl_rows=-1):
        typer.echo(str(frame))
    typer.echo(f"instructions: {frame.height}")
    typer.echo(f"total_count: {report.total}")
