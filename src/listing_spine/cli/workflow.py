"""
CLI: ``listing-spine workflow``: start, inspect and signal runs.
"""

from __future__ import annotations

import typer

from listing_spine.cli.utils import console, fail, open_runtime, output_result, parse_json_option, print_dict, print_table
from listing_spine.core.errors import ListingSpineError

app = typer.Typer(no_args_is_help=True)


@app.command("list")
def list_workflows() -> None:
    """List registered workflows."""
    from listing_spine import orchestration  # noqa: F401  (registers built-ins)
    from listing_spine.execution.registry import get_workflow_registry

    registry = get_workflow_registry()
    print_table(
        [{"name": name, "description": registry.get(name).description or ""} for name in registry.names()],
        title="Workflows",
    )


@app.command("start")
def start(
    name: str = typer.Argument(..., help="Workflow name, e.g. publish.property"),
    input_json: str = typer.Option("{}", "--input", "-i", help="Workflow input as a JSON object"),
    run_id: str | None = typer.Option(None, "--run-id", help="Explicit run id"),  # noqa: UP007
    database: str | None = typer.Option(None, "--database", "-d", help="SQLAlchemy URL"),  # noqa: UP007
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Start a workflow run.

    Direct mode prints the final result; durable mode prints the run handle.

    Example::

        listing-spine workflow start publish.property --input '{"draft_id": "42", "owner_id": "7"}'
    """
    payload = parse_json_option(input_json, "--input")
    with open_runtime(database) as runtime:
        try:
            handle = runtime.router.start(name, payload, run_id=run_id)
        except ListingSpineError as exc:
            fail(exc)
        if handle.result is not None:
            output_result(handle.result, as_json=json_out, title=f"Run {handle.run_id}")
            return
        print_dict({"run_id": handle.run_id, "mode": handle.mode.value}, title="Run accepted", as_json=json_out)


@app.command("status")
def status(
    run_id: str = typer.Argument(..., help="Run id"),
    database: str | None = typer.Option(None, "--database", "-d"),  # noqa: UP007
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Show run progress."""
    with open_runtime(database) as runtime:
        try:
            progress = runtime.router.status(run_id)
        except ListingSpineError as exc:
            fail(exc)
        print_dict(progress, title=f"Run {run_id}", as_json=json_out)


@app.command("result")
def result(
    run_id: str = typer.Argument(..., help="Run id"),
    database: str | None = typer.Option(None, "--database", "-d"),  # noqa: UP007
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Show the run's result envelope (pending while in flight)."""
    with open_runtime(database) as runtime:
        try:
            outcome = runtime.router.result(run_id)
        except ListingSpineError as exc:
            fail(exc)
        output_result(outcome, as_json=json_out, title=f"Run {run_id}")


@app.command("signal")
def signal(
    run_id: str = typer.Argument(..., help="Run id"),
    name: str = typer.Argument(..., help="Signal name, e.g. approve or reject"),
    comment: str | None = typer.Option(None, "--comment", "-c", help="Decision comment"),  # noqa: UP007
    reviewer: str | None = typer.Option(None, "--reviewer", help="Who decided"),  # noqa: UP007
    payload_json: str | None = typer.Option(None, "--payload", help="Extra payload as JSON"),  # noqa: UP007
    database: str | None = typer.Option(None, "--database", "-d"),  # noqa: UP007
) -> None:
    """Deliver a signal to a waiting run."""
    payload = parse_json_option(payload_json, "--payload")
    if comment is not None:
        payload["comment"] = comment
    if reviewer is not None:
        payload["reviewer"] = reviewer
    with open_runtime(database) as runtime:
        try:
            delivered = runtime.router.signal(run_id, name, payload)
        except ListingSpineError as exc:
            fail(exc)
    if not delivered:
        fail(f"Run {run_id} has already finished; signal '{name}' ignored")
    console.print(f"[green]Signal '{name}' delivered to run {run_id}[/green]")
