"""
CLI: ``listing-spine worker``: run the durable execution worker.
"""

from __future__ import annotations

import typer

from listing_spine.cli.utils import console, open_runtime

app = typer.Typer(no_args_is_help=True)


@app.command("start")
def start(
    database: str | None = typer.Option(None, "--database", "-d", help="SQLAlchemy URL"),  # noqa: UP007
    poll_interval: float | None = typer.Option(None, "--poll-interval", help="Seconds between poll cycles"),  # noqa: UP007
    batch_size: int = typer.Option(100, "--batch-size", help="Max runs to dispatch per poll"),
    worker_id: str | None = typer.Option(None, "--id", help="Custom worker identifier"),  # noqa: UP007
) -> None:
    """Poll the run journal and resume pending, woken and orphaned runs.

    Example::

        listing-spine worker start --poll-interval 2
    """
    from listing_spine.execution.worker import WorkerLoop

    with open_runtime(database) as runtime:
        interval = poll_interval or runtime.settings.poll_interval
        console.print(
            f"[bold green]Starting listing-spine worker[/bold green] "
            f"(dispatcher={runtime.dispatcher.name}, poll={interval}s, batch={batch_size})"
        )
        loop = WorkerLoop(runtime.durable, poll_interval=interval, batch_size=batch_size, worker_id=worker_id)
        try:
            loop.start()
        except KeyboardInterrupt:
            console.print("\n[yellow]Worker stopped by user[/yellow]")


@app.command("recover")
def recover(
    database: str | None = typer.Option(None, "--database", "-d"),  # noqa: UP007
) -> None:
    """Dispatch every claimable run once and exit."""
    with open_runtime(database) as runtime:
        run_ids = runtime.durable.recover()
    console.print(f"Dispatched {len(run_ids)} run(s)")
