"""Synchronous client for Elasticsearch-compatible search backends."""

from docsearch.client.client import SearchClient

__all__ = ["SearchClient"]
