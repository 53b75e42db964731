"""Document codec — Lossless conversion between documents and wire JSON.

``encode`` and ``decode`` are pure functions: for every valid document ``d``
``decode(encode(d), type(d)) == d``.  Validity is what makes that hold:

* declared fields are typed by the document model, so timestamps and numbers
  come back as the same Python types;
* undeclared (extra) fields must be JSON-native, since nothing tells the
  decoder to turn a string back into a ``datetime``;
* floats must be finite, since JSON has no NaN or infinity.
"""

from __future__ import annotations

import json
import math
from collections.abc import Mapping
from datetime import date, datetime
from typing import Any, TypeVar

from pydantic import TypeAdapter, ValidationError

from docsearch.exceptions import DecodingError, EncodingError
from docsearch.models.document import Document

DocT = TypeVar("DocT", bound=Document)


def encode(doc: Document) -> bytes:
    """Serialize a document to canonical UTF-8 JSON.

    Args:
        doc: The document to serialize.

    Returns:
        JSON bytes including the ``id`` field.

    Raises:
        EncodingError: If a field holds a value that cannot round-trip.
    """
    declared = type(doc).model_fields
    for name, value in doc:
        _check_text(name, name)
        if name in declared:
            _check_value(name, value, allow_datetime=True)
        else:
            _check_value(name, value, allow_datetime=False)
    return json.dumps(_to_wire(dict(doc)), ensure_ascii=False, separators=(",", ":")).encode("utf-8")


def encode_fields(fields: Mapping[str, Any]) -> dict[str, Any]:
    """Prepare a partial-update mapping for the wire.

    Timestamps are converted to ISO 8601 strings; everything else must already
    be JSON-native.

    Raises:
        EncodingError: If ``id`` is present or a value is unsupported.
    """
    if "id" in fields:
        raise EncodingError("The document id is immutable and cannot be updated.")
    for name, value in fields.items():
        if not isinstance(name, str) or not name:
            raise EncodingError(f"Field names must be non-empty strings, got {name!r}.")
        _check_text(name, name)
        _check_value(name, value, allow_datetime=True)
    return _to_wire(dict(fields))


def decode(data: bytes | str, model: type[DocT] = Document) -> DocT:  # type: ignore[assignment]
    """Deserialize JSON into a document of type ``model``.

    Validation is strict: a required field that is absent, or a field of the
    wrong JSON type, is rejected rather than coerced.

    Raises:
        DecodingError: If the payload is not valid JSON or does not match ``model``.
    """
    try:
        return model.model_validate_json(data, strict=True)
    except ValidationError as e:
        raise DecodingError(f"Invalid {model.__name__} payload: {e}") from e


def decode_source(
    source: Mapping[str, Any],
    model: type[DocT] = Document,  # type: ignore[assignment]
    fallback_id: str | None = None,
) -> DocT:
    """Decode a stored ``_source`` mapping into a document.

    Documents indexed without an explicit id carry no ``id`` in their source;
    the backend-assigned ``_id`` is used for them.  Backend ids are always
    strings, so the fallback is converted to the model's id type first
    (``"7"`` becomes ``7`` for an ``int`` id).
    """
    data = dict(source)
    try:
        if "id" not in data and fallback_id is not None:
            data["id"] = TypeAdapter(model.model_fields["id"].annotation).validate_python(fallback_id)
        return model.model_validate_json(json.dumps(data), strict=True)
    except (ValidationError, TypeError, ValueError) as e:
        raise DecodingError(f"Invalid {model.__name__} source: {e}") from e


# ── Helpers ──────────────────────────────────────────────────────────────────


def _check_value(name: str, value: Any, *, allow_datetime: bool) -> None:
    if isinstance(value, str):
        _check_text(name, value)
        return
    if value is None or isinstance(value, (bool, int)):
        return
    if isinstance(value, float):
        if not math.isfinite(value):
            raise EncodingError(f"Field '{name}' holds a non-finite float ({value}).")
        return
    if isinstance(value, (datetime, date)):
        if allow_datetime:
            return
        raise EncodingError(
            f"Field '{name}' holds a timestamp but is not declared on the document model; "
            "declare it as a typed field so it decodes back to a datetime."
        )
    if isinstance(value, list):
        for item in value:
            _check_value(name, item, allow_datetime=False)
        return
    if isinstance(value, Mapping):
        for key, item in value.items():
            if not isinstance(key, str):
                raise EncodingError(f"Field '{name}' has a non-string key {key!r}.")
            _check_text(name, key)
            _check_value(f"{name}.{key}", item, allow_datetime=False)
        return
    raise EncodingError(f"Field '{name}' has unsupported type {type(value).__name__}.")


def _check_text(name: str, value: str) -> None:
    try:
        value.encode("utf-8")
    except UnicodeEncodeError as e:
        raise EncodingError(f"Field {name!r} holds text that is not valid UTF-8 ({e.reason}).") from e


def _to_wire(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Mapping):
        return {k: _to_wire(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_to_wire(v) for v in value]
    return value
