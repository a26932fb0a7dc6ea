"""Shared helpers for folio-core tests."""
