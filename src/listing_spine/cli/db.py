"""
CLI: ``listing-spine db``: database management commands.
"""

from __future__ import annotations

import typer
from sqlalchemy import inspect

from listing_spine.cli.utils import console, open_runtime, print_table

app = typer.Typer(no_args_is_help=True)


@app.command()
def init(
    database: str | None = typer.Option(None, "--database", "-d", help="SQLAlchemy URL"),  # noqa: UP007
) -> None:
    """Create the run journal, draft and entity tables."""
    from listing_spine.core.orm.session import create_all

    with open_runtime(database) as runtime:
        create_all(runtime.engine)
        tables = sorted(inspect(runtime.engine).get_table_names())
    console.print(f"[green]Database ready[/green] ({len(tables)} tables)")


@app.command()
def tables(
    database: str | None = typer.Option(None, "--database", "-d"),  # noqa: UP007
) -> None:
    """List the tables in the database."""
    with open_runtime(database) as runtime:
        names = sorted(inspect(runtime.engine).get_table_names())
    print_table([{"table": name} for name in names], title="Tables")
