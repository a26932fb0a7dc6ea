"""Backend-agnostic query contract.

Modules
-------
descriptor   QueryDescriptor / Condition wire models
identifiers  identifier validation, quoting and table policy
compiler     pure descriptor -> parameterized SQL
executor     runs compiled SQL, shapes rows into envelopes
builder      chainable, awaitable QueryBuilder used by client adapters

Tags:
    folio-core, query, package-overview
"""

from folio.query.builder import QueryBuilder
from folio.query.compiler import CompiledQuery, compile_query
from folio.query.descriptor import Condition, QueryDescriptor, parse_descriptor
from folio.query.executor import QueryExecutor
from folio.query.identifiers import IdentifierPolicy

__all__ = [
    "CompiledQuery",
    "Condition",
    "IdentifierPolicy",
    "QueryBuilder",
    "QueryDescriptor",
    "QueryExecutor",
    "compile_query",
    "parse_descriptor",
]
