"""
CLI: ``folio users`` (account administration).
"""

from __future__ import annotations

import typer

from folio.cli.utils import console, output_data, output_envelope, run_with_runtime

app = typer.Typer(no_args_is_help=True)


@app.command("create-admin")
def create_admin(
    email: str = typer.Argument(..., help="Admin email address"),
    password: str = typer.Option(
        ..., "--password", "-p", prompt=True, hide_input=True, confirmation_prompt=True
    ),
    full_name: str | None = typer.Option(None, "--full-name", help="Display name"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Create an admin account, or promote an existing one and reset its password."""

    async def _run(runtime):
        return await runtime.auth.create_admin(email, password, full_name)

    envelope = run_with_runtime(_run)
    if envelope.is_ok() and not json_out:
        verb = "Created" if envelope.data["created"] else "Promoted"
        console.print(f"[bold green]{verb} admin[/bold green] {envelope.data['user']['email']}")
        return
    output_envelope(envelope, as_json=json_out, title="Admin")


@app.command("list")
def list_users(json_out: bool = typer.Option(False, "--json")) -> None:
    """List active accounts."""

    async def _run(runtime):
        return await runtime.database.fetch_all(
            "SELECT u.id, u.email, p.role, u.created_at, u.last_sign_in_at FROM users u "
            "LEFT JOIN profiles p ON p.user_id = u.id WHERE u.deleted_at IS NULL "
            "ORDER BY u.created_at DESC"
        )

    output_data(run_with_runtime(_run), as_json=json_out, title="Users")
