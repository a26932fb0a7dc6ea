"""
CLI: ``folio db`` (schema migrations).
"""

from __future__ import annotations

import typer

from folio.cli.utils import console, fail, output_data, run_with_runtime

app = typer.Typer(no_args_is_help=True)


def _report(result) -> None:
    payload = result.to_dict()
    if not result.success:
        console.print_json(data=payload)
        fail("MIGRATION_FAILURE", f"{result.failed_version or result.mode}: {result.error}")
    output_data(payload, title="Migration")


@app.command()
def migrate(
    fresh: bool = typer.Option(False, "--fresh", help="Apply the complete schema document and baseline"),
) -> None:
    """Bring the database schema up to date."""

    async def _run(runtime):
        return await runtime.migrations.run(fresh=True if fresh else None)

    _report(run_with_runtime(_run))


@app.command()
def status(json_out: bool = typer.Option(False, "--json", help="JSON output")) -> None:
    """Show applied, pending and drifted migrations."""

    async def _run(runtime):
        return (await runtime.migrations.status()).to_dict()

    output_data(run_with_runtime(_run), as_json=json_out, title="Migration Status")


@app.command()
def reapply(version: str = typer.Argument(..., help="Migration version (file name without .sql)")) -> None:
    """Re-execute one migration file and refresh its checksum."""

    async def _run(runtime):
        return await runtime.migrations.reapply(version)

    _report(run_with_runtime(_run))
