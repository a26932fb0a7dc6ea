"""Tests for ``folio users``."""

from __future__ import annotations

import json

from folio.cli.app import app

ARGS = ["users", "create-admin", "root@example.com", "--password", "root-password-1"]


def test_create_then_promote(runner, cli_env):
    runner.invoke(app, ["db", "migrate"])
    created = runner.invoke(app, [*ARGS, "--full-name", "Root"])
    assert created.exit_code == 0, created.output
    assert "Created admin root@example.com" in created.output

    again = runner.invoke(app, ARGS)
    assert "Promoted admin root@example.com" in again.output


def test_short_password_rejected(runner, cli_env):
    runner.invoke(app, ["db", "migrate"])
    result = runner.invoke(app, ["users", "create-admin", "root@example.com", "-p", "short"])
    assert result.exit_code == 1
    assert "INVALID_ARGUMENT" in result.output


def test_password_prompt(runner, cli_env):
    runner.invoke(app, ["db", "migrate"])
    result = runner.invoke(app, ["users", "create-admin", "root@example.com"], input="prompted-pw-1\nprompted-pw-1\n")
    assert result.exit_code == 0, result.output


def test_list_json(runner, cli_env):
    runner.invoke(app, ["db", "migrate"])
    runner.invoke(app, ARGS)
    result = runner.invoke(app, ["users", "list", "--json"])
    users = json.loads(result.stdout)
    assert [(u["email"], u["role"]) for u in users] == [("root@example.com", "admin")]
