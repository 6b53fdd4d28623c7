import logging
from pathlib import Path
from typing import List, Optional

import typer

from gcpalign.commands.apply_gcp import run
from gcpalign.io.config_file import read_config_file, write_config_file
from gcpalign.logging_setup import setup_logging
from gcpalign.models import DESCRIPTIONS, ApplyGCPConfig, check_config

__version__ = "0.1.0"

logger = logging.getLogger("gcpalign")

app = typer.Typer(no_args_is_help=True)


@app.callback()
def main() -> None:
    """gcpalign: move reconstructions into a geographic frame using ground control points."""
    pass


@app.command()
def version() -> None:
    """Print version."""
    typer.echo(f"gcpalign {__version__}")


def _parse_overrides(items: List[str]) -> dict:
    values = {}
    for item in items:
        key, sep, value = item.partition("=")
        if not sep or not key.strip():
            raise typer.BadParameter(f"expected KEY=VALUE, got {item!r}", param_hint="--set")
        values[key.strip()] = value.strip()
    return values


@app.command("apply-gcp")
def apply_gcp(
    config: Optional[Path] = typer.Option(None, "--config", "-c", exists=True, readable=True, help="Configuration file for the tool."),
    output_config: Optional[Path] = typer.Option(None, "--output-config", "-o", help="Write the merged configuration to this file and exit."),
    overrides: List[str] = typer.Option([], "--set", "-s", help="Override a configuration value: KEY=VALUE (repeatable)."),
    log_level: Optional[str] = typer.Option(None, "--log-level", help="DEBUG|INFO|WARNING|ERROR (default: $LOG_LEVEL or INFO)."),
    json_logs: bool = typer.Option(False, "--json-logs", help="Emit log records as JSON lines."),
) -> None:
    """
    Applies ground control points to a reconstruction: estimates the similarity
    from local space to the geographic local frame and writes moved landmarks,
    KRTD cameras and POS files.
    """
    setup_logging(log_level, json_format=json_logs)

    values = ApplyGCPConfig().to_mapping()
    try:
        if config is not None:
            values.update(read_config_file(config))
        values.update(_parse_overrides(overrides))
        cfg = ApplyGCPConfig.from_mapping(values)
    except ValueError as e:
        logger.error("Could not read configuration: %s", e)
        raise typer.Exit(code=1)

    errors = check_config(cfg)

    if output_config is not None:
        write_config_file(cfg.to_mapping(), output_config, DESCRIPTIONS)
        if errors:
            logger.warning("Configuration deemed not valid.")
        else:
            logger.info("Configuration file contained valid parameters and may be used for running")
        return

    if errors:
        for err in errors:
            logger.error("Config Check Fail: %s", err)
        logger.error("Configuration not valid.")
        raise typer.Exit(code=1)

    try:
        result = run(cfg, logger=logger)
    except Exception as e:
        logger.exception("Exception caught: %s", e)
        raise typer.Exit(code=1)

    typer.echo(
        f"Applied {result.report.strategy} transform to {len(result.cameras)} cameras "
        f"and {len(result.landmarks)} landmarks."
    )
    if result.failed:
        typer.echo(f"{len(result.failed)} output artifact(s) could not be written.", err=True)


if __name__ == "__main__":
    app()
