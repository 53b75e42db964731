"""Shared test fixtures and configuration.

``FakeBackend`` is a small in-memory stand-in for an Elasticsearch node,
served through ``httpx.MockTransport``.  It implements just enough of the
REST surface (and of term / match / wildcard / multi-match semantics) for the
client to be exercised end to end without a live cluster.
"""

from __future__ import annotations

import base64
import fnmatch
import json
import re
import uuid
from collections.abc import Iterator
from typing import Any
from urllib.parse import unquote

import httpx
import pytest

from docsearch.client.client import SearchClient
from docsearch.config.settings import Settings
from docsearch.models.document import ProductDocument

_TOKEN_RE = re.compile(r"\w+", re.UNICODE)


def _tokens(value: Any) -> list[str]:
    return [t.lower() for t in _TOKEN_RE.findall(str(value))]


class FakeBackend:
    """In-memory Elasticsearch look-alike.

    Args:
        credentials: When set, requests must carry matching basic auth.
    """

    def __init__(self, credentials: tuple[str, str] | None = None) -> None:
        self.indices: dict[str, dict[str, dict[str, Any]]] = {}
        self.versions: dict[tuple[str, str], int] = {}
        self.requests: list[httpx.Request] = []
        self.credentials = credentials

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)

    # ── Dispatch ──

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.credentials and not self._authorized(request):
            return _error(401, "security_exception", "missing authentication credentials")

        raw_path = request.url.raw_path.split(b"?", 1)[0].decode("ascii")
        parts = [unquote(p) for p in raw_path.strip("/").split("/") if p]
        method = request.method

        if not parts and method == "GET":
            return httpx.Response(
                200,
                json={"cluster_name": "fake-cluster", "version": {"number": "8.13.0", "build_flavor": "default"}},
            )
        if len(parts) == 2 and parts[1] == "_doc" and method == "POST":
            return self._put(parts[0], uuid.uuid4().hex, request)
        if len(parts) == 3 and parts[1] == "_doc":
            index, doc_id = parts[0], parts[2]
            if method == "PUT":
                return self._put(index, doc_id, request)
            if method == "GET":
                return self._get(index, doc_id)
            if method == "DELETE":
                return self._delete(index, doc_id)
        if len(parts) == 3 and parts[1] == "_update" and method == "POST":
            return self._update(parts[0], parts[2], request)
        if len(parts) == 2 and parts[1] == "_refresh" and method == "POST":
            return httpx.Response(200, json={"_shards": {"total": 1, "successful": 1, "failed": 0}})
        if len(parts) == 2 and parts[1] == "_search" and method in ("GET", "POST"):
            return self._search(parts[0], request)
        return _error(405, "illegal_argument_exception", f"unsupported {method} {raw_path}")

    def _authorized(self, request: httpx.Request) -> bool:
        header = request.headers.get("Authorization", "")
        if not header.startswith("Basic "):
            return False
        user, _, password = base64.b64decode(header[6:]).decode().partition(":")
        return (user, password) == self.credentials

    # ── Documents ──

    def _put(self, index: str, doc_id: str, request: httpx.Request) -> httpx.Response:
        try:
            source = json.loads(request.content)
        except ValueError:
            return _error(400, "mapper_parsing_exception", "failed to parse")
        if not isinstance(source, dict):
            return _error(400, "mapper_parsing_exception", "document must be an object")
        docs = self.indices.setdefault(index, {})
        created = doc_id not in docs
        docs[doc_id] = source
        version = self._bump(index, doc_id)
        return httpx.Response(
            201 if created else 200,
            json={"_index": index, "_id": doc_id, "_version": version, "result": "created" if created else "updated"},
        )

    def _get(self, index: str, doc_id: str) -> httpx.Response:
        if index not in self.indices:
            return _error(404, "index_not_found_exception", f"no such index [{index}]")
        docs = self.indices[index]
        if doc_id not in docs:
            return httpx.Response(404, json={"_index": index, "_id": doc_id, "found": False})
        return httpx.Response(
            200,
            json={
                "_index": index,
                "_id": doc_id,
                "_version": self.versions[(index, doc_id)],
                "found": True,
                "_source": docs[doc_id],
            },
        )

    def _update(self, index: str, doc_id: str, request: httpx.Request) -> httpx.Response:
        docs = self.indices.get(index, {})
        if doc_id not in docs:
            return _error(404, "document_missing_exception", f"[{doc_id}]: document missing")
        body = json.loads(request.content)
        if "doc" not in body or not isinstance(body["doc"], dict):
            return _error(400, "action_request_validation_exception", "script or doc is missing")
        merged = {**docs[doc_id], **body["doc"]}
        if merged == docs[doc_id]:
            result = "noop"
        else:
            docs[doc_id] = merged
            result = "updated"
            self._bump(index, doc_id)
        return httpx.Response(
            200,
            json={"_index": index, "_id": doc_id, "_version": self.versions[(index, doc_id)], "result": result},
        )

    def _delete(self, index: str, doc_id: str) -> httpx.Response:
        docs = self.indices.get(index, {})
        if doc_id not in docs:
            return httpx.Response(404, json={"_index": index, "_id": doc_id, "result": "not_found"})
        del docs[doc_id]
        version = self._bump(index, doc_id)
        return httpx.Response(200, json={"_index": index, "_id": doc_id, "_version": version, "result": "deleted"})

    def _bump(self, index: str, doc_id: str) -> int:
        key = (index, doc_id)
        self.versions[key] = self.versions.get(key, 0) + 1
        return self.versions[key]

    # ── Search ──

    def _search(self, index: str, request: httpx.Request) -> httpx.Response:
        if index not in self.indices:
            return _error(404, "index_not_found_exception", f"no such index [{index}]")
        body = json.loads(request.content) if request.content else {}
        query = body.get("query", {"match_all": {}})
        size = body.get("size", 10)
        offset = body.get("from", 0)

        scored: list[tuple[float, str, dict[str, Any]]] = []
        for doc_id, source in self.indices[index].items():
            score = self._score(query, source)
            if score > 0:
                scored.append((score, doc_id, source))
        scored.sort(key=lambda item: item[0], reverse=True)
        page = scored[offset : offset + size]

        return httpx.Response(
            200,
            json={
                "took": 1,
                "timed_out": False,
                "hits": {
                    "total": {"value": len(scored), "relation": "eq"},
                    "max_score": scored[0][0] if scored else None,
                    "hits": [
                        {"_index": index, "_id": doc_id, "_score": score, "_source": source}
                        for score, doc_id, source in page
                    ],
                },
            },
        )

    def _score(self, query: dict[str, Any], source: dict[str, Any]) -> float:
        (kind, spec), = query.items()
        if kind == "match_all":
            return 1.0
        if kind == "term":
            (field, params), = spec.items()
            return 1.0 if self._term_matches(source, field, params["value"]) else 0.0
        if kind == "match":
            (field, params), = spec.items()
            return self._match_score(source, field, params["query"])
        if kind == "wildcard":
            (field, params), = spec.items()
            return 1.0 if self._wildcard_matches(source, field, params["value"]) else 0.0
        if kind == "multi_match":
            scores = [self._match_score(source, f.split("^")[0], spec["query"]) for f in spec["fields"]]
            return max(scores, default=0.0)
        raise AssertionError(f"unexpected query kind {kind}")

    @staticmethod
    def _field(source: dict[str, Any], field: str) -> tuple[Any, bool]:
        """Return the field value and whether it is the raw (keyword) form."""
        if field.endswith(".keyword"):
            return source.get(field[: -len(".keyword")]), True
        return source.get(field), not isinstance(source.get(field), str)

    def _term_matches(self, source: dict[str, Any], field: str, value: Any) -> bool:
        raw, is_keyword = self._field(source, field)
        if raw is None:
            return False
        if is_keyword:
            return raw == value
        return str(value) in _tokens(raw)

    def _match_score(self, source: dict[str, Any], field: str, text: str) -> float:
        raw, _ = self._field(source, field)
        if raw is None:
            return 0.0
        doc_tokens = set(_tokens(raw))
        return float(sum(1 for t in _tokens(text) if t in doc_tokens))

    def _wildcard_matches(self, source: dict[str, Any], field: str, pattern: str) -> bool:
        raw, is_keyword = self._field(source, field)
        if raw is None:
            return False
        if is_keyword:
            return fnmatch.fnmatchcase(str(raw), pattern)
        return any(fnmatch.fnmatchcase(t, pattern) for t in _tokens(raw))


def _error(status: int, error_type: str, reason: str) -> httpx.Response:
    return httpx.Response(status, json={"error": {"type": error_type, "reason": reason}, "status": status})


# ── Fixtures ─────────────────────────────────────────────────────────────────


@pytest.fixture
def settings() -> Settings:
    """Create a test Settings instance with defaults."""
    return Settings(
        _env_file=None,  # type: ignore[call-arg]
        backend={"hosts": ["http://es.test:9200"], "username": "elastic", "password": "elastic123"},
    )


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend(credentials=("elastic", "elastic123"))


@pytest.fixture
def client(backend: FakeBackend, settings: Settings) -> Iterator[SearchClient]:
    with SearchClient.from_settings(settings.backend, transport=backend.transport()) as c:
        yield c


@pytest.fixture
def product() -> ProductDocument:
    """The sample product from the walkthrough."""
    from datetime import UTC, datetime

    ts = datetime(2024, 5, 1, 8, 30, tzinfo=UTC)
    return ProductDocument(
        id=1,
        seller_id="ea838b0c-a235-48c0-a84f-90a8aca284e2",
        name="Martabak Manis",
        category="Makanan",
        quantity=10,
        price=10.0,
        weight=10,
        size="XXL",
        status="Ready",
        description="Martabak manis adalah kudapan sejenis panekuk yang biasa dijajakan di pinggir jalan.",
        created_at=ts,
        updated_at=ts,
    )
