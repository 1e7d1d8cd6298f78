"""
Root Typer application for the listing-spine CLI.
"""

from __future__ import annotations

import typer
from typer import Typer

app = Typer(
    name="listing-spine",
    help="listing-spine: durable publishing, payment and approval workflows.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)


# ── Version callback ─────────────────────────────────────────────────────


def _version_callback(value: bool) -> None:
    if value:
        from listing_spine import __version__

        typer.echo(f"listing-spine {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool | None = typer.Option(  # noqa: UP007
        None,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
    log_level: str | None = typer.Option(None, "--log-level", help="Override LISTING_SPINE_LOG_LEVEL."),
) -> None:
    """listing-spine CLI: start and signal workflows, run the worker, manage the database."""
    from listing_spine.core.logging import configure_logging
    from listing_spine.core.settings import get_settings

    settings = get_settings()
    configure_logging(level=log_level or settings.log_level, json_format=settings.log_json)


# ── Sub-command registration ─────────────────────────────────────────────

from listing_spine.cli.db import app as db_app  # noqa: E402
from listing_spine.cli.worker import app as worker_app  # noqa: E402
from listing_spine.cli.workflow import app as wf_app  # noqa: E402

app.add_typer(wf_app, name="workflow", help="Start, inspect and signal workflow runs.")
app.add_typer(worker_app, name="worker", help="Durable execution worker.")
app.add_typer(db_app, name="db", help="Database operations.")
