"""Query models — The five query kinds and their request bodies.

Each query is a validated pydantic model that renders its own query-DSL
fragment via ``to_dict()``.  Bodies are always built as Python structures and
serialized as JSON, so field names and query text can never break out of
their position in the payload.

Usage::

    from docsearch.models.query import match, term

    q = term("name.keyword", "Martabak Manis")
    q.to_dict()  # {"term": {"name.keyword": {"value": "Martabak Manis"}}}
"""

from __future__ import annotations

import logging
import math
import re
from abc import ABC, abstractmethod
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator

logger = logging.getLogger(__name__)

# Control characters other than \t, \n and \r.
_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]")
_INVALID_FIELD_CHARS = re.compile(r"[\s\x00-\x1f\x7f]")

MultiMatchType = Literal["best_fields", "most_fields", "cross_fields", "phrase", "phrase_prefix", "bool_prefix"]


def _check_field_name(value: str) -> str:
    if not value:
        raise ValueError("field name must not be empty")
    if _INVALID_FIELD_CHARS.search(value):
        raise ValueError(f"field name {value!r} must not contain whitespace or control characters")
    return _check_encodable(value)


def _check_text(value: str) -> str:
    if _CONTROL_CHARS.search(value):
        raise ValueError("query text must not contain control characters")
    return _check_encodable(value)


def _check_encodable(value: str) -> str:
    try:
        value.encode("utf-8")
    except UnicodeEncodeError as e:
        raise ValueError(f"{value!r} is not valid UTF-8 ({e.reason})") from None
    return value


class _BaseQuery(BaseModel, ABC):
    model_config = ConfigDict(frozen=True, extra="forbid")

    @abstractmethod
    def to_dict(self) -> dict[str, Any]:
        """Render the query-DSL fragment placed under ``"query"``."""
        ...


class MatchAllQuery(_BaseQuery):
    """Every document in the index."""

    kind: Literal["match_all"] = "match_all"

    def to_dict(self) -> dict[str, Any]:
        return {"match_all": {}}


class WildcardQuery(_BaseQuery):
    """Glob match (``*`` and ``?``) on the raw field value.

    This is the slowest query kind: the backend must scan every term of the
    field, and a leading wildcard defeats the term index entirely.
    """

    kind: Literal["wildcard"] = "wildcard"
    field: str = Field(description="Field to match against")
    pattern: str = Field(description="Glob pattern, may contain '*' and '?'")

    @field_validator("field")
    @classmethod
    def check_field(cls, v: str) -> str:
        return _check_field_name(v)

    @field_validator("pattern")
    @classmethod
    def check_pattern(cls, v: str) -> str:
        return _check_text(v)

    def to_dict(self) -> dict[str, Any]:
        return {"wildcard": {self.field: {"value": self.pattern}}}


class MatchQuery(_BaseQuery):
    """Analyzed full-text match, tolerant of case and tokenization."""

    kind: Literal["match"] = "match"
    field: str = Field(description="Field to match against")
    text: str = Field(description="Query text, analyzed by the backend")

    @field_validator("field")
    @classmethod
    def check_field(cls, v: str) -> str:
        return _check_field_name(v)

    @field_validator("text")
    @classmethod
    def check_text(cls, v: str) -> str:
        return _check_text(v)

    def to_dict(self) -> dict[str, Any]:
        return {"match": {self.field: {"query": self.text}}}


class TermQuery(_BaseQuery):
    """Exact, unanalyzed equality against the field's raw value.

    Text fields are analyzed at index time, so exact matching normally
    targets their keyword sub-field (``name.keyword``).
    """

    kind: Literal["term"] = "term"
    field: str = Field(description="Field to compare, used verbatim")
    value: bool | int | float | str = Field(description="Exact value to compare with")

    @field_validator("field")
    @classmethod
    def check_field(cls, v: str) -> str:
        return _check_field_name(v)

    @field_validator("value")
    @classmethod
    def check_value(cls, v: Any) -> Any:
        if isinstance(v, str):
            return _check_text(v)
        if isinstance(v, float) and not math.isfinite(v):
            raise ValueError(f"term value must be a finite number, got {v}")
        return v

    def to_dict(self) -> dict[str, Any]:
        return {"term": {self.field: {"value": self.value}}}


class MultiMatchQuery(_BaseQuery):
    """Match semantics applied across several fields at once.

    A document's score comes from its best field (``best_fields``) or a
    combination of fields, depending on ``type``.
    """

    kind: Literal["multi_match"] = "multi_match"
    fields: list[str] = Field(min_length=1, description="Fields to search, optionally boosted ('title^2')")
    text: str = Field(description="Query text")
    type: MultiMatchType = Field(default="best_fields", description="How per-field scores combine")

    @field_validator("fields")
    @classmethod
    def check_fields(cls, v: list[str]) -> list[str]:
        return [_check_field_name(f) for f in v]

    @field_validator("text")
    @classmethod
    def check_text(cls, v: str) -> str:
        return _check_text(v)

    def to_dict(self) -> dict[str, Any]:
        return {"multi_match": {"query": self.text, "fields": list(self.fields), "type": self.type}}


Query = Annotated[
    MatchAllQuery | WildcardQuery | MatchQuery | TermQuery | MultiMatchQuery,
    Field(discriminator="kind"),
]
"""Discriminated union of all supported query kinds."""

_query_adapter: TypeAdapter[Any] = TypeAdapter(Query)


def parse_query(data: dict[str, Any]) -> Query:
    """Validate a ``{"kind": ..., ...}`` mapping into the matching query model."""
    return _query_adapter.validate_python(data)


class SearchOptions(BaseModel):
    """Paging options sent alongside the query."""

    size: int = Field(default=10, ge=0, le=10_000, description="Maximum number of hits to return")
    from_: int = Field(default=0, ge=0, description="Offset of the first hit")

    def to_dict(self) -> dict[str, Any]:
        return {"size": self.size, "from": self.from_}


# ── Builders ─────────────────────────────────────────────────────────────────


def match_all() -> MatchAllQuery:
    """Build a query matching every document."""
    return MatchAllQuery()


def wildcard(field: str, pattern: str) -> WildcardQuery:
    """Build a glob query on the raw value of ``field``.

    Logs a warning: wildcard is the slowest query kind.
    """
    logger.warning("Wildcard query on '%s' scans every term of the field; prefer match or term", field)
    return WildcardQuery(field=field, pattern=pattern)


def match(field: str, text: str) -> MatchQuery:
    """Build an analyzed full-text query on ``field``."""
    return MatchQuery(field=field, text=text)


def term(field: str, value: bool | int | float | str) -> TermQuery:
    """Build an exact-value query on ``field``."""
    return TermQuery(field=field, value=value)


def multi_match(fields: list[str], text: str, match_type: MultiMatchType = "best_fields") -> MultiMatchQuery:
    """Build a full-text query spanning several fields."""
    return MultiMatchQuery(fields=fields, text=text, type=match_type)
