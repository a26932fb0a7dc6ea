"""SQL script splitting for migration files.

Migration and schema files are executed one statement at a time so that
each driver (asyncpg, aiosqlite) sees exactly one statement per call.  The
splitter understands ``--`` and ``/* */`` comments (nested, as PostgreSQL
allows), single and double quoted text, and dollar-quoted function bodies
(``$$ ... $$`` or ``$tag$ ... $tag$``).
"""

from __future__ import annotations

import re

_DOLLAR_TAG_RE = re.compile(r"\$(?:[A-Za-z_][A-Za-z0-9_]*)?\$")

_TRACKING_WRITE_TEMPLATE = (
    r"^\s*(?:INSERT\s+INTO|UPDATE|DELETE\s+FROM)\s+"
    r'(?:"?public"?\s*\.\s*)?"?{table}"?(?:\s|\(|$)'
)


def split_statements(script: str) -> list[str]:
    """Split a SQL script into individual statements.

    Comments are removed; empty statements are dropped.

    >>> split_statements("CREATE TABLE a (x int); -- done\\nINSERT INTO a VALUES (1);")
    ['CREATE TABLE a (x int)', 'INSERT INTO a VALUES (1)']
    >>> split_statements("SELECT ';' ; SELECT 2")
    ["SELECT ';'", 'SELECT 2']
    """
    statements: list[str] = []
    current: list[str] = []
    i = 0
    n = len(script)

    while i < n:
        ch = script[i]
        nxt = script[i + 1] if i + 1 < n else ""

        if ch == "-" and nxt == "-":
            end = script.find("\n", i)
            i = n if end == -1 else end
            continue

        if ch == "/" and nxt == "*":
            i = _skip_block_comment(script, i)
            current.append(" ")
            continue

        if ch in ("'", '"'):
            end = _skip_quoted(script, i, ch)
            current.append(script[i:end])
            i = end
            continue

        if ch == "$" and not _preceded_by_identifier(script, i):
            match = _DOLLAR_TAG_RE.match(script, i)
            if match:
                tag = match.group(0)
                close = script.find(tag, match.end())
                end = n if close == -1 else close + len(tag)
                current.append(script[i:end])
                i = end
                continue

        if ch == ";":
            _flush(current, statements)
            i += 1
            continue

        current.append(ch)
        i += 1

    _flush(current, statements)
    return statements


def is_tracking_write(statement: str, table: str = "schema_migrations") -> bool:
    """True when ``statement`` writes to the migration tracking table."""
    pattern = _TRACKING_WRITE_TEMPLATE.format(table=re.escape(table))
    return re.match(pattern, statement, flags=re.IGNORECASE) is not None


def _flush(current: list[str], statements: list[str]) -> None:
    statement = "".join(current).strip()
    current.clear()
    if statement:
        statements.append(statement)


def _skip_block_comment(script: str, start: int) -> int:
    depth = 0
    i = start
    n = len(script)
    while i < n:
        if script.startswith("/*", i):
            depth += 1
            i += 2
        elif script.startswith("*/", i):
            depth -= 1
            i += 2
            if depth == 0:
                return i
        else:
            i += 1
    return n


def _skip_quoted(script: str, start: int, quote: str) -> int:
    i = start + 1
    n = len(script)
    while i < n:
        if script[i] == quote:
            # doubled quote is an escaped quote
            if i + 1 < n and script[i + 1] == quote:
                i += 2
                continue
            return i + 1
        i += 1
    return n


def _preceded_by_identifier(script: str, index: int) -> bool:
    return index > 0 and (script[index - 1].isalnum() or script[index - 1] == "_")


__all__ = ["is_tracking_write", "split_statements"]
