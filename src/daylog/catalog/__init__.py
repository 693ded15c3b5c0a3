"""Catalog item document store."""

from daylog.catalog.store import CatalogStore

__all__ = ["CatalogStore"]
