"""
Backend-neutral query descriptors.

A :class:`QueryDescriptor` is the unit of work every backend understands:
the chainable builder produces one, the remote adapter POSTs it as JSON to
``/database``, and the compiler turns it into parameterized SQL.

JSON uses the camelCase names of the wire format (``orderBy``,
``maybeSingle``, ``conflictTarget``, ``allowUnfiltered``); Python code uses
snake_case.  Both are accepted on input.
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from folio.core.errors import InvalidArgumentError

Operation = Literal["select", "insert", "update", "upsert", "delete"]

COMPARISON_OPERATORS = frozenset({"eq", "neq", "gt", "lt", "gte", "lte", "like", "ilike", "in", "is"})


class _WireModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="forbid", frozen=True)


class Condition(_WireModel):
    """``column <operator> value``; operator may be prefixed with ``not.``."""

    column: str
    operator: str = "eq"
    value: Any = None


class OrderBy(_WireModel):
    column: str
    ascending: bool = True
    nulls_first: bool | None = Field(default=None, alias="nullsFirst")


class Range(_WireModel):
    """Inclusive, zero-based row window."""

    from_: int = Field(alias="from", ge=0)
    to: int = Field(ge=0)

    @model_validator(mode="after")
    def _check_order(self) -> Range:
        if self.to < self.from_:
            raise ValueError("range.to must be >= range.from")
        return self


class QueryDescriptor(_WireModel):
    """A single CRUD request against one table."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)

    table: str
    operation: Operation
    select: str = "*"
    where: list[Condition] = Field(default_factory=list)
    data: dict[str, Any] | list[dict[str, Any]] | None = None
    order_by: list[OrderBy] = Field(default_factory=list, alias="orderBy")
    limit: int | None = Field(default=None, ge=0)
    range: Range | None = None
    single: bool = False
    maybe_single: bool = Field(default=False, alias="maybeSingle")
    conflict_target: str | None = Field(default=None, alias="conflictTarget")
    options: dict[str, Any] | None = None
    allow_unfiltered: bool = Field(default=False, alias="allowUnfiltered")

    @property
    def on_conflict(self) -> str:
        """Conflict target for upserts; ``options.onConflict`` is the legacy spelling."""
        if self.conflict_target:
            return self.conflict_target
        if self.options and self.options.get("onConflict"):
            return str(self.options["onConflict"])
        return "id"

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


def parse_descriptor(payload: Any) -> QueryDescriptor:
    """Validate a raw JSON payload into a descriptor.

    Raises:
        InvalidArgumentError: when required fields are missing or malformed.
    """
    if isinstance(payload, QueryDescriptor):
        return payload
    if not isinstance(payload, dict):
        raise InvalidArgumentError("Query descriptor must be a JSON object")
    if not payload.get("table") or not payload.get("operation"):
        raise InvalidArgumentError("Table and operation are required")
    try:
        return QueryDescriptor.model_validate(payload)
    except ValidationError as exc:
        first = exc.errors()[0]
        location = ".".join(str(part) for part in first.get("loc", ()))
        raise InvalidArgumentError(
            f"Invalid query descriptor: {location}: {first.get('msg')}",
            field=location or None,
            details=exc.errors(include_url=False, include_context=False, include_input=False),
        ) from None


__all__ = [
    "COMPARISON_OPERATORS",
    "Condition",
    "Operation",
    "OrderBy",
    "QueryDescriptor",
    "Range",
    "parse_descriptor",
]
