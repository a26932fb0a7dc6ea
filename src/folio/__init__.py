"""
folio - backend data-access layer for a portfolio/CMS site.

Subpackages:
- folio.core: errors, envelope, settings, logging, database access
- folio.query: query descriptors, SQL compiler, executor, chainable builder
- folio.migrations: startup schema migration engine
- folio.storage: object storage with public/private bucket policy
- folio.auth: sign-up/sign-in, signed session tokens, roles
- folio.client: in-process and remote backend adapters
- folio.api: FastAPI service exposing all of the above
"""

__version__ = "0.1.0"
