"""docsearch — A typed client core for Elasticsearch-compatible document search.

Quick start::

    from docsearch import SearchClient, ProductDocument
    from docsearch.models.query import match, term

    with SearchClient(["http://localhost:9200"], username="elastic", password="...") as client:
        client.index_document("products", ProductDocument(id=1, name="Martabak Manis"), doc_id=1)
        result = client.search("products", match("name", "martabak"))
"""

from docsearch.client.client import SearchClient
from docsearch.exceptions import (
    DecodingError,
    DocSearchError,
    EncodingError,
    NotFoundError,
    ServiceError,
    TransportError,
)
from docsearch.models.document import Document, ProductDocument

__version__ = "0.1.0"

__all__ = [
    "DecodingError",
    "DocSearchError",
    "Document",
    "EncodingError",
    "NotFoundError",
    "ProductDocument",
    "SearchClient",
    "ServiceError",
    "TransportError",
    "__version__",
]
