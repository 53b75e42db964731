"""Search client — Synchronous CRUD and query operations over the REST API.

Talks to any Elasticsearch-compatible backend (Elasticsearch 7/8,
OpenSearch 2) with ``httpx``.  Each call blocks until the backend answers or
the transport times out, and every failure surfaces as a typed
:mod:`docsearch.exceptions` error; nothing is retried.

Usage::

    with SearchClient(["http://localhost:9200"], username="elastic", password="...") as client:
        client.index_document("products", doc, doc_id=doc.id)
        result = client.search("products", term("name.keyword", "Martabak Manis"))
        for hit in result:
            print(hit.score, hit.document)
"""

from __future__ import annotations

import itertools
import logging
import time
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any, Literal, TypeVar
from urllib.parse import quote

import httpx
from pydantic import BaseModel, ValidationError

from docsearch.codec import decode_source, encode, encode_fields
from docsearch.exceptions import DecodingError, NotFoundError, ServiceError, TransportError
from docsearch.models.document import Document
from docsearch.models.query import Query, SearchOptions
from docsearch.models.result import ClusterInfo, Hit, SearchResult, WriteResult
from docsearch.models.wire import (
    ErrorResponse,
    GetResponse,
    InfoResponse,
    SearchResponse,
    WriteResponse,
)

if TYPE_CHECKING:
    from docsearch.config.settings import BackendSettings

logger = logging.getLogger(__name__)

DocT = TypeVar("DocT", bound=Document)
WireT = TypeVar("WireT", bound=BaseModel)

Refresh = bool | Literal["wait_for"] | None
"""Refresh policy for writes: ``True``, ``False``, ``"wait_for"`` or backend default."""

_JSON_HEADERS = {"Content-Type": "application/json", "Accept": "application/json"}


class SearchClient:
    """Client for one Elasticsearch-compatible cluster.

    The client holds an ``httpx.Client`` (thread-safe, pooled) and immutable
    configuration only, so one instance can be shared by concurrent callers
    working on the same or different indices.

    Args:
        hosts: Node URLs.  Requests rotate over them round-robin; there is no
            failover, a node that cannot be reached raises ``TransportError``.
        username: Optional HTTP basic-auth username; requires ``password``.
        password: Optional HTTP basic-auth password; requires ``username``.
        api_key: Optional API key, sent as ``Authorization: ApiKey <key>``.
        bearer_token: Optional token, sent as ``Authorization: Bearer <token>``.
        verify_certs: Whether to verify TLS certificates.
        timeout: Request timeout in seconds; expiry raises ``TransportError``.
        default_model: Document type used to decode results when an operation
            is not given an explicit ``model``.
        transport: Optional ``httpx`` transport (e.g. ``httpx.MockTransport``
            in tests).
        **httpx_kwargs: Additional keyword arguments passed to ``httpx.Client``.
    """

    def __init__(
        self,
        hosts: list[str] | None = None,
        *,
        username: str | None = None,
        password: str | None = None,
        api_key: str | None = None,
        bearer_token: str | None = None,
        verify_certs: bool = True,
        timeout: float = 30.0,
        default_model: type[Document] = Document,
        transport: httpx.BaseTransport | None = None,
        **httpx_kwargs: Any,
    ) -> None:
        self._hosts = tuple(h.rstrip("/") for h in (hosts or ["http://localhost:9200"]))
        self._default_model = default_model
        self._next_host = itertools.count()

        headers = dict(_JSON_HEADERS)
        auth: httpx.Auth | None = None
        if bool(username) != bool(password):
            raise ValueError("username and password must be given together")
        if username and password:
            auth = httpx.BasicAuth(username, password)
        if api_key:
            headers["Authorization"] = f"ApiKey {api_key}"
        elif bearer_token:
            headers["Authorization"] = f"Bearer {bearer_token}"

        self._client = httpx.Client(
            auth=auth,
            headers=headers,
            verify=verify_certs,
            timeout=httpx.Timeout(timeout),
            transport=transport,
            **httpx_kwargs,
        )

    @classmethod
    def from_settings(cls, settings: BackendSettings, **kwargs: Any) -> SearchClient:
        """Build a client from :class:`~docsearch.config.settings.BackendSettings`."""
        return cls(
            hosts=settings.hosts,
            username=settings.username,
            password=settings.password,
            api_key=settings.api_key,
            bearer_token=settings.bearer_token,
            verify_certs=settings.verify_certs,
            timeout=settings.timeout,
            **kwargs,
        )

    def __enter__(self) -> SearchClient:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    def close(self) -> None:
        """Close the underlying HTTP client."""
        self._client.close()

    @property
    def hosts(self) -> tuple[str, ...]:
        return self._hosts

    # ── Cluster ──

    def info(self) -> ClusterInfo:
        """Fetch cluster identity; doubles as a connectivity check.

        Returns:
            Cluster name, server version and distribution.
        """
        resp = self._request("GET", "/")
        self._raise_for_status(resp)
        info = self._parse(resp, InfoResponse)
        return ClusterInfo(
            cluster_name=info.cluster_name,
            version=info.version.number,
            distribution=info.version.distribution,
        )

    def refresh(self, index: str) -> None:
        """Make all writes to ``index`` visible to search."""
        resp = self._request("POST", f"/{_index_path(index)}/_refresh")
        self._raise_for_status(resp)

    # ── Documents ──

    def index_document(
        self,
        index: str,
        document: Document,
        doc_id: int | str | None = None,
        *,
        refresh: Refresh = None,
    ) -> WriteResult:
        """Write a document.

        The backend creates ``index`` on first write if it does not exist.

        Args:
            index: Target index name.
            document: The document to store.
            doc_id: Address to write at; must equal ``document.id`` when given.
                Re-indexing the same document at the same id overwrites it
                (no duplicate).  When omitted the backend assigns a random id.
            refresh: Refresh policy for this write.

        Returns:
            The id written and whether the document was created or updated.

        Raises:
            EncodingError: If the document cannot be serialized.
            ValueError: If ``doc_id`` differs from ``document.id``.
            TransportError: If the backend cannot be reached.
            ServiceError: If the backend rejects the write.
        """
        if doc_id is not None and str(doc_id) != str(document.id):
            raise ValueError(f"doc_id {doc_id!r} does not match the document id {document.id!r}")
        body = encode(document)
        if doc_id is None:
            method, path = "POST", f"/{_index_path(index)}/_doc"
        else:
            method, path = "PUT", f"/{_index_path(index)}/_doc/{_id_path(doc_id)}"

        resp = self._request(method, path, content=body, params=_refresh_params(refresh))
        self._raise_for_status(resp)
        result = self._write_result(resp)
        logger.info("Indexed document %s in '%s' (%s)", result.id, index, result.result)
        return result

    def get_document(
        self,
        index: str,
        doc_id: int | str,
        *,
        model: type[DocT] | None = None,
    ) -> DocT:
        """Retrieve exactly one document by id.

        Args:
            index: Index to read from.
            doc_id: Document id.
            model: Document type to decode into (defaults to the client's
                ``default_model``).

        Raises:
            NotFoundError: If no document exists at ``doc_id``.
            ServiceError: For any other rejection.
            DecodingError: If the response or stored source is malformed.
        """
        resp = self._request("GET", f"/{_index_path(index)}/_doc/{_id_path(doc_id)}")
        if resp.status_code == 404:
            raise NotFoundError(index, doc_id)
        self._raise_for_status(resp)

        got = self._parse(resp, GetResponse)
        if not got.found:
            raise NotFoundError(index, doc_id)
        if got.source is None:
            raise DecodingError(f"Document '{doc_id}' in '{index}' was returned without a _source.")
        return decode_source(got.source, model or self._default_model, fallback_id=got.id)  # type: ignore[return-value]

    def update_document(
        self,
        index: str,
        doc_id: int | str,
        fields: Mapping[str, Any],
        *,
        refresh: Refresh = None,
    ) -> WriteResult:
        """Merge ``fields`` into an existing document.

        Fields not mentioned keep their stored values.

        Raises:
            NotFoundError: If the document does not exist.
            EncodingError: If ``fields`` contains ``id`` or an unsupported value.
            ServiceError: If the backend rejects the update.
        """
        payload = {"doc": encode_fields(fields)}
        resp = self._request(
            "POST",
            f"/{_index_path(index)}/_update/{_id_path(doc_id)}",
            json=payload,
            params=_refresh_params(refresh),
        )
        if resp.status_code == 404:
            raise NotFoundError(index, doc_id)
        self._raise_for_status(resp)
        result = self._write_result(resp)
        logger.info("Updated document %s in '%s' (%s)", result.id, index, result.result)
        return result

    def delete_document(
        self,
        index: str,
        doc_id: int | str,
        *,
        refresh: Refresh = None,
    ) -> WriteResult:
        """Remove the document at ``doc_id``.

        Raises:
            NotFoundError: If the document does not exist.
            ServiceError: If the backend rejects the delete.
        """
        resp = self._request(
            "DELETE",
            f"/{_index_path(index)}/_doc/{_id_path(doc_id)}",
            params=_refresh_params(refresh),
        )
        if resp.status_code == 404:
            raise NotFoundError(index, doc_id)
        self._raise_for_status(resp)
        result = self._write_result(resp)
        logger.info("Deleted document %s from '%s'", result.id, index)
        return result

    # ── Search ──

    def search(
        self,
        index: str,
        query: Query,
        options: SearchOptions | None = None,
        *,
        model: type[DocT] | None = None,
    ) -> SearchResult:
        """Execute one query against ``index``.

        Args:
            index: Index (or comma-separated indices / pattern) to search.
            query: Any of the five query kinds.
            options: Paging options.
            model: Document type to decode hits into.

        Returns:
            Hits in the backend's ranking order.  Zero hits is a valid result.

        Raises:
            TransportError: If the backend cannot be reached.
            ServiceError: If the backend rejects the query.
            DecodingError: If the response lacks the expected hits structure.
        """
        opts = options or SearchOptions()
        body: dict[str, Any] = {"query": query.to_dict(), **opts.to_dict()}

        start = time.monotonic()
        resp = self._request("POST", f"/{_index_path(index, allow_pattern=True)}/_search", json=body)
        self._raise_for_status(resp)
        took_ms = int((time.monotonic() - start) * 1000)

        raw = self._parse(resp, SearchResponse)
        doc_model = model or self._default_model
        hits = [
            Hit(
                index=h.index,
                id=h.id,
                score=h.score,
                document=decode_source(h.source, doc_model, fallback_id=h.id),
            )
            for h in raw.hits.hits
        ]
        total = raw.hits.total_hits
        logger.debug(
            "Search %s on '%s': %d/%d hits (backend %d ms, round trip %d ms)",
            query.kind,
            index,
            len(hits),
            total.value,
            raw.took,
            took_ms,
        )
        return SearchResult(
            total=total.value,
            total_relation="gte" if total.relation == "gte" else "eq",
            max_score=raw.hits.max_score,
            took_ms=raw.took,
            hits=hits,
        )

    # ── Helpers ──

    def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        host = self._hosts[next(self._next_host) % len(self._hosts)]
        url = f"{host}{path}"
        logger.debug("%s %s", method, url)
        try:
            return self._client.request(method, url, **kwargs)
        except httpx.TransportError as e:
            raise TransportError(f"{method} {url} failed: {e}") from e

    @staticmethod
    def _raise_for_status(resp: httpx.Response) -> None:
        if resp.status_code < 400:
            return
        try:
            body: Any = resp.json()
        except ValueError:
            body = resp.text
        message = resp.reason_phrase or "error"
        if isinstance(body, dict):
            try:
                message = ErrorResponse.model_validate(body).describe()
            except ValidationError:
                pass
        elif body:
            message = str(body)
        raise ServiceError(resp.status_code, message, body)

    @staticmethod
    def _parse(resp: httpx.Response, wire_model: type[WireT]) -> WireT:
        try:
            return wire_model.model_validate_json(resp.content)
        except ValidationError as e:
            raise DecodingError(f"Unexpected {wire_model.__name__} shape from {resp.request.url}: {e}") from e

    def _write_result(self, resp: httpx.Response) -> WriteResult:
        raw = self._parse(resp, WriteResponse)
        if raw.result not in ("created", "updated", "deleted", "noop", "not_found"):
            raise DecodingError(f"Unknown write result '{raw.result}' from {resp.request.url}")
        return WriteResult(index=raw.index, id=raw.id, result=raw.result, version=raw.version)  # type: ignore[arg-type]


def _index_path(index: str, *, allow_pattern: bool = False) -> str:
    if not index:
        raise ValueError("index name must not be empty")
    safe = ",*" if allow_pattern else ""
    return quote(index, safe=safe)


def _id_path(doc_id: int | str) -> str:
    value = str(doc_id)
    if not value:
        raise ValueError("document id must not be empty")
    return quote(value, safe="")


def _refresh_params(refresh: Refresh) -> dict[str, str] | None:
    if refresh is None:
        return None
    if refresh is True:
        return {"refresh": "true"}
    if refresh is False:
        return {"refresh": "false"}
    return {"refresh": refresh}
