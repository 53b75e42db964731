"""Integration test fixtures — A live Elasticsearch-compatible node.

Expects a backend to be running, for example:
    docker run -p 9200:9200 -e discovery.type=single-node -e xpack.security.enabled=false \
        docker.elastic.co/elasticsearch/elasticsearch:8.13.0

The URL and credentials are read from DOCSEARCH_IT_HOST / DOCSEARCH_IT_USERNAME /
DOCSEARCH_IT_PASSWORD.  Tests are skipped when the node cannot be reached.
"""

from __future__ import annotations

import os
import time
import uuid
from collections.abc import Iterator

import httpx
import pytest

from docsearch.client.client import SearchClient

MAPPING = {
    "mappings": {
        "properties": {
            "seller_id": {"type": "keyword"},
            "name": {"type": "text", "fields": {"keyword": {"type": "keyword", "ignore_above": 256}}},
            "category": {"type": "text"},
            "quantity": {"type": "integer"},
            "price": {"type": "double"},
            "weight": {"type": "integer"},
            "size": {"type": "keyword"},
            "status": {"type": "keyword"},
            "description": {"type": "text"},
            "created_at": {"type": "date"},
            "updated_at": {"type": "date"},
        }
    }
}


def _auth() -> tuple[str, str] | None:
    username = os.environ.get("DOCSEARCH_IT_USERNAME")
    password = os.environ.get("DOCSEARCH_IT_PASSWORD")
    return (username, password) if username and password else None


def _wait_for_service(url: str, timeout: float = 30.0) -> bool:
    """Block until *url* returns HTTP 200, or timeout."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        try:
            r = httpx.get(url, auth=_auth(), timeout=5)
            if r.status_code == 200:
                return True
        except httpx.HTTPError:
            pass
        time.sleep(2)
    return False


@pytest.fixture(scope="session")
def elasticsearch_ready() -> str:
    """Ensure a backend is running."""
    host = os.environ.get("DOCSEARCH_IT_HOST", "http://localhost:9200")
    if not _wait_for_service(host):
        pytest.skip(f"Elasticsearch not available at {host}")
    return host


@pytest.fixture
def index_name(elasticsearch_ready: str) -> Iterator[str]:
    """A fresh index with the product mapping, dropped afterwards."""
    name = f"docsearch-it-{uuid.uuid4().hex[:8]}"
    with httpx.Client(base_url=elasticsearch_ready, auth=_auth(), timeout=30) as http:
        http.put(f"/{name}", json=MAPPING).raise_for_status()
        yield name
        http.delete(f"/{name}", params={"ignore_unavailable": "true"})


@pytest.fixture
def live_client(elasticsearch_ready: str) -> Iterator[SearchClient]:
    auth = _auth()
    with SearchClient(
        [elasticsearch_ready],
        username=auth[0] if auth else None,
        password=auth[1] if auth else None,
    ) as c:
        yield c
