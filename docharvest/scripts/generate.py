"""docharvest CLI."""

import logging
from typing import Optional

import typer

from docharvest.core.config import ConfigError
from docharvest.core.logging import setup_logging
from docharvest.core.progress import TqdmReporter
from docharvest.core.utils import split_csv
from docharvest.ingestion.pipeline import run_generate

logger = logging.getLogger(__name__)

app = typer.Typer(help="Fetch third-party documentation and index it for coding agents.")


@app.callback()
def cli(
    log_level: Optional[str] = typer.Option(None, help="Logging level (defaults to DOCHARVEST_LOG_LEVEL)"),
):
    setup_logging(log_level)


@app.command()
def generate(
    config: Optional[str] = typer.Option(None, "--config", "-c", help="Path to a docharvest config file"),
    only: Optional[str] = typer.Option(None, help="Comma-separated list of source names to process"),
    concurrency: Optional[int] = typer.Option(None, min=1, help="Number of sources processed at once"),
):
    """Fetch every configured source into the docs directory and write its index."""
    try:
        summary = run_generate(
            config_path=config,
            only=split_csv(only) or None,
            concurrency=concurrency,
            reporter=TqdmReporter(),
        )
    except ConfigError as e:
        typer.echo(str(e), err=True)
        raise typer.Exit(code=1)

    for failure in summary.failures:
        typer.echo(f"  {failure.name}: {failure.error}", err=True)
    logger.info(f"Generate complete: {summary.succeeded}/{summary.total} sources succeeded")

    if summary.failed:
        raise typer.Exit(code=1)


if __name__ == "__main__":
    app()
