"""Result models — Typed outcomes of client operations."""

from __future__ import annotations

from collections.abc import Iterator
from typing import Literal

from pydantic import BaseModel, Field, SerializeAsAny

from docsearch.models.document import Document


class Hit(BaseModel):
    """One matching document together with its relevance score."""

    index: str = Field(description="Index the hit was found in")
    id: str = Field(description="Backend document id (``_id``)")
    score: float | None = Field(default=None, description="Relevance score, None when sorting disables scoring")
    document: SerializeAsAny[Document] = Field(description="Decoded document source (an instance of the requested model)")


class SearchResult(BaseModel):
    """Ordered hits of a search, in the backend's ranking order.

    Zero hits is a valid result, not an error.
    """

    total: int = Field(default=0, description="Total number of matching documents")
    total_relation: Literal["eq", "gte"] = Field(
        default="eq",
        description="'gte' when the backend stopped counting at its track_total_hits limit",
    )
    max_score: float | None = Field(default=None, description="Highest score among the hits")
    took_ms: int = Field(default=0, description="Backend execution time in ms")
    hits: list[Hit] = Field(default_factory=list, description="Hits in ranking order")

    @property
    def documents(self) -> list[Document]:
        """Documents of all hits, in ranking order."""
        return [hit.document for hit in self.hits]

    def __len__(self) -> int:
        return len(self.hits)

    def __iter__(self) -> Iterator[Hit]:  # type: ignore[override]
        return iter(self.hits)


class WriteResult(BaseModel):
    """Outcome of an index, update or delete operation."""

    index: str = Field(description="Index that was written to")
    id: str = Field(description="Document id assigned or addressed")
    result: Literal["created", "updated", "deleted", "noop", "not_found"] = Field(
        description="What the backend did",
    )
    version: int | None = Field(default=None, description="Document version after the write")


class ClusterInfo(BaseModel):
    """Identity of the connected cluster (``GET /``)."""

    cluster_name: str = Field(default="unknown", description="Cluster name")
    version: str = Field(default="unknown", description="Server version number")
    distribution: str = Field(default="elasticsearch", description="'elasticsearch' or 'opensearch'")
