"""
CLI utility helpers: output formatting and runtime management.
"""

from __future__ import annotations

import json
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

import typer
from rich.console import Console
from rich.table import Table

from listing_spine.core.errors import ListingSpineError
from listing_spine.core.settings import get_settings
from listing_spine.execution.results import WorkflowResult
from listing_spine.runtime import Runtime, build_runtime, get_runtime

console = Console()
err_console = Console(stderr=True)


# ── Runtime helper ───────────────────────────────────────────────────────


@contextmanager
def open_runtime(database: str | None = None) -> Iterator[Runtime]:
    """The process runtime, or a private one bound to *database* (closed on exit)."""
    if database is None:
        yield get_runtime()
        return
    settings = get_settings().model_copy(update={"database_url": database})
    runtime = build_runtime(settings)
    try:
        yield runtime
    finally:
        runtime.close()


def parse_json_option(value: str | None, option: str) -> dict[str, Any]:
    if not value:
        return {}
    try:
        data = json.loads(value)
    except json.JSONDecodeError as exc:
        raise typer.BadParameter(f"not valid JSON: {exc.msg}", param_hint=option) from exc
    if not isinstance(data, dict):
        raise typer.BadParameter("must be a JSON object", param_hint=option)
    return data


def fail(error: ListingSpineError | str) -> None:
    err_console.print(f"[bold red]Error[/bold red]: {error}")
    raise typer.Exit(code=1)


# ── Output helpers ───────────────────────────────────────────────────────


def output_result(result: WorkflowResult, *, as_json: bool = False, title: str = "") -> None:
    """Render a ``WorkflowResult``; a finished, unsuccessful result exits 1."""
    payload = result.to_dict()
    if as_json:
        console.print_json(json.dumps(payload, default=str))
    else:
        print_dict(payload, title=title)
    if not result.success and not result.is_pending:
        raise typer.Exit(code=1)


def print_dict(data: dict[str, Any], *, title: str = "", as_json: bool = False) -> None:
    """Render a single dict as key-value pairs."""
    if as_json:
        console.print_json(json.dumps(data, default=str))
        return
    if title:
        console.print(f"[bold]{title}[/bold]")
    for k, v in data.items():
        console.print(f"  [cyan]{k}[/cyan]: {v}")


def print_table(items: list[dict[str, Any]], *, title: str = "") -> None:
    """Render a list of dicts as a Rich table."""
    if not items:
        console.print("[dim]No items.[/dim]")
        return
    table = Table(title=title or None, show_lines=False, pad_edge=False)
    for col in items[0]:
        table.add_column(col, overflow="fold")
    for item in items:
        table.add_row(*(str(v) for v in item.values()))
    console.print(table)
