"""
CLI utility helpers: output formatting and runtime management.
"""

from __future__ import annotations

import asyncio
import json
from collections.abc import Awaitable, Callable
from dataclasses import asdict
from typing import Any, NoReturn, TypeVar

import typer
from rich.console import Console
from rich.table import Table

from folio.core.envelope import Envelope
from folio.core.errors import FolioError
from folio.core.logging import configure_from_settings
from folio.core.settings import get_settings
from folio.runtime import Runtime

console = Console()
err_console = Console(stderr=True)

T = TypeVar("T")


# ── Runtime helper ───────────────────────────────────────────────────────


def run_with_runtime(call: Callable[[Runtime], Awaitable[T]]) -> T:
    """Build a :class:`Runtime` from the environment, run *call*, dispose it.

    The runtime is not started: commands decide themselves whether the
    migration engine runs.
    """
    settings = get_settings()
    configure_from_settings(settings, service="folio-cli")

    async def _main() -> T:
        runtime = Runtime(settings)
        try:
            return await call(runtime)
        finally:
            await runtime.close()

    try:
        return asyncio.run(_main())
    except FolioError as exc:
        fail(exc.code.value, exc.message)


def fail(code: str, message: str) -> NoReturn:
    err_console.print(f"[bold red]Error[/bold red] ({code}): {message}")
    raise typer.Exit(code=1)


# ── Output helpers ───────────────────────────────────────────────────────


def _to_dict(obj: Any) -> dict[str, Any]:
    """Convert dataclass / pydantic model / dict to plain dict."""
    if hasattr(obj, "model_dump"):
        return obj.model_dump()
    if hasattr(obj, "__dataclass_fields__"):
        return asdict(obj)
    if isinstance(obj, dict):
        return obj
    return {"value": str(obj)}


def output_data(data: Any, *, as_json: bool = False, title: str = "") -> None:
    """Render a dict or list of dicts to the terminal."""
    if as_json:
        payload = [_to_dict(d) for d in data] if isinstance(data, list | tuple) else _to_dict(data)
        console.print_json(json.dumps(payload, default=str))
        return

    if isinstance(data, list):
        if not data:
            console.print("[dim]No items.[/dim]")
            return
        _print_table(data, title=title)
    else:
        _print_dict(_to_dict(data), title=title)


def output_envelope(envelope: Envelope, *, as_json: bool = False, title: str = "") -> None:
    """Render an :class:`Envelope`; exit with status 1 when it carries an error."""
    if envelope.error is not None:
        fail(envelope.error.code, envelope.error.message)
    output_data(envelope.data, as_json=as_json, title=title)


# ── Private helpers ──────────────────────────────────────────────────────


def _print_table(items: list, *, title: str = "") -> None:
    """Render a list of dataclasses/dicts as a Rich table."""
    first = _to_dict(items[0])
    table = Table(title=title or None, show_lines=False, pad_edge=False)
    for col in first:
        table.add_column(col, overflow="fold")
    for item in items:
        d = _to_dict(item)
        table.add_row(*(str(v) for v in d.values()))
    console.print(table)


def _print_dict(data: dict[str, Any], *, title: str = "") -> None:
    """Render a single dict as key-value pairs."""
    if title:
        console.print(f"[bold]{title}[/bold]")
    for k, v in data.items():
        console.print(f"  [cyan]{k}[/cyan]: {v}")
