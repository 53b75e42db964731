"""Wire models — Validated shapes of raw backend responses.

The backend answers with nested JSON whose shape varies slightly between
Elasticsearch 6, 7/8 and OpenSearch.  These models pin down the parts the
client relies on so a malformed response fails validation at the boundary
instead of deep inside result processing.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class _WireModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class TotalHits(_WireModel):
    value: int = 0
    relation: str = "eq"


class RawHit(_WireModel):
    index: str = Field(alias="_index")
    id: str = Field(alias="_id")
    score: float | None = Field(default=None, alias="_score")
    source: dict[str, Any] = Field(alias="_source")


class HitsEnvelope(_WireModel):
    # Elasticsearch 6 reports an integer, 7+ and OpenSearch an object.
    total: TotalHits | int = Field(default_factory=TotalHits)
    max_score: float | None = None
    hits: list[RawHit]

    @property
    def total_hits(self) -> TotalHits:
        if isinstance(self.total, int):
            return TotalHits(value=self.total)
        return self.total


class SearchResponse(_WireModel):
    took: int = 0
    timed_out: bool = False
    hits: HitsEnvelope


class GetResponse(_WireModel):
    index: str = Field(alias="_index")
    id: str = Field(alias="_id")
    found: bool
    source: dict[str, Any] | None = Field(default=None, alias="_source")


class WriteResponse(_WireModel):
    index: str = Field(alias="_index")
    id: str = Field(alias="_id")
    result: str
    version: int | None = Field(default=None, alias="_version")


class VersionInfo(_WireModel):
    number: str = "unknown"
    distribution: str = "elasticsearch"


class InfoResponse(_WireModel):
    cluster_name: str = "unknown"
    version: VersionInfo = Field(default_factory=VersionInfo)


class ErrorDetail(_WireModel):
    type: str = "unknown_error"
    reason: str | None = None


class ErrorResponse(_WireModel):
    error: ErrorDetail | str
    status: int | None = None

    def describe(self) -> str:
        """Render the backend error as ``"<type>: <reason>"``."""
        if isinstance(self.error, str):
            return self.error
        if self.error.reason:
            return f"{self.error.type}: {self.error.reason}"
        return self.error.type
