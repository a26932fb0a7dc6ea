"""
HTTP surface of folio-core (FastAPI).

Usage::

    from folio.api import create_app

    app = create_app()
"""

from folio.api.app import create_app

__all__ = ["create_app"]
