"""
Root Typer application for the folio-core CLI.
"""

from __future__ import annotations

from importlib.metadata import PackageNotFoundError
from importlib.metadata import version as pkg_version

import typer
from typer import Typer

from folio.cli.db import app as db_app
from folio.cli.serve import serve
from folio.cli.users import app as users_app

app = Typer(
    name="folio",
    help="folio-core: data access, migrations, storage and auth for the portfolio backend.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)


# ── Version callback ─────────────────────────────────────────────────────


def _version_callback(value: bool) -> None:
    if value:
        try:
            v = pkg_version("folio-core")
        except PackageNotFoundError:
            v = "0.1.0"
        typer.echo(f"folio-core {v}")
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
) -> None:
    """folio-core CLI: serve the API, run migrations, manage admins."""


# ── Sub-command registration ─────────────────────────────────────────────

app.command("serve", help="Start the API server.")(serve)
app.add_typer(db_app, name="db", help="Schema migrations.")
app.add_typer(users_app, name="users", help="Account administration.")
