"""CLI entry point for docsearch."""

from __future__ import annotations

import argparse
import json
import sys
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from pydantic import BaseModel

from docsearch.client.client import SearchClient
from docsearch.codec import decode_source
from docsearch.config.settings import Settings
from docsearch.exceptions import DocSearchError, NotFoundError
from docsearch.models.document import Document, ProductDocument
from docsearch.models.query import SearchOptions, match, match_all, multi_match, term, wildcard
from docsearch.observability.logging import setup_logging

_MODELS: dict[str, type[Document]] = {"document": Document, "product": ProductDocument}


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.config:
        config_path = Path(args.config)
        if not config_path.exists():
            print(f"Error: Config file not found: {config_path}", file=sys.stderr)
            return 1
        settings = Settings.from_yaml(config_path)
    else:
        settings = Settings()

    # Apply CLI overrides
    if args.log_level:
        settings.observability.log_level = args.log_level
    if args.index:
        settings.index = args.index

    setup_logging(settings.observability)

    model = _MODELS[args.model]
    try:
        with SearchClient.from_settings(settings.backend, default_model=model) as client:
            args.handler(client, settings.index, args)
    except DocSearchError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except ValueError as e:
        print(f"Error: invalid input: {e}", file=sys.stderr)
        return 2
    return 0


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="docsearch",
        description="docsearch — CRUD and queries against an Elasticsearch-compatible index",
    )
    parser.add_argument("--config", "-c", type=str, default=None, help="Path to YAML configuration file")
    parser.add_argument("--index", "-i", type=str, default=None, help="Target index (overrides config)")
    parser.add_argument(
        "--model",
        choices=sorted(_MODELS),
        default="document",
        help="Document schema used to decode results",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        choices=["debug", "info", "warning", "error"],
        default=None,
        help="Log level (overrides config)",
    )
    parser.add_argument("--version", action="version", version=f"docsearch {_get_version()}")

    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("info", help="Show cluster name and version")
    p.set_defaults(handler=_cmd_info)

    p = sub.add_parser("index", help="Index a JSON document read from FILE ('-' for stdin)")
    p.add_argument("file", help="JSON document file, or '-' for stdin")
    p.add_argument("--id", dest="doc_id", default=None, help="Document id (backend assigns one if omitted)")
    p.add_argument("--refresh", action="store_true", help="Wait until the write is visible to search")
    p.set_defaults(handler=_cmd_index)

    p = sub.add_parser("get", help="Fetch a document by id")
    p.add_argument("doc_id")
    p.set_defaults(handler=_cmd_get)

    p = sub.add_parser("update", help="Merge FIELD=VALUE pairs into a document")
    p.add_argument("doc_id")
    p.add_argument("assignments", nargs="+", metavar="FIELD=VALUE", help="VALUE is parsed as JSON, else kept as text")
    p.add_argument("--refresh", action="store_true", help="Wait until the write is visible to search")
    p.set_defaults(handler=_cmd_update)

    p = sub.add_parser("delete", help="Delete a document by id")
    p.add_argument("doc_id")
    p.add_argument("--refresh", action="store_true", help="Wait until the delete is visible to search")
    p.set_defaults(handler=_cmd_delete)

    p = sub.add_parser("search", help="Run one of the five query kinds")
    p.add_argument("--size", type=int, default=10, help="Maximum number of hits")
    p.add_argument("--from", dest="from_", type=int, default=0, help="Offset of the first hit")
    kinds = p.add_subparsers(dest="kind", required=True)
    kinds.add_parser("match_all", help="Every document")
    k = kinds.add_parser("wildcard", help="Glob match on a raw field value (slow)")
    k.add_argument("field")
    k.add_argument("pattern")
    k = kinds.add_parser("match", help="Analyzed, case-insensitive match")
    k.add_argument("field")
    k.add_argument("text")
    k = kinds.add_parser("term", help="Exact match on the raw value (e.g. name.keyword)")
    k.add_argument("field")
    k.add_argument("value")
    k = kinds.add_parser("multi_match", help="Match across several fields")
    k.add_argument("text")
    k.add_argument("--fields", nargs="+", required=True)
    p.set_defaults(handler=_cmd_search)

    p = sub.add_parser("demo", help="Walk through every operation on a sample product")
    p.add_argument(
        "--scratch-index",
        default="my_products",
        help="Index receiving the document indexed without an explicit id",
    )
    p.set_defaults(handler=_cmd_demo)

    return parser


# ── Commands ─────────────────────────────────────────────────────────────────


def _cmd_info(client: SearchClient, index: str, args: argparse.Namespace) -> None:
    _emit(client.info())


def _cmd_index(client: SearchClient, index: str, args: argparse.Namespace) -> None:
    raw = sys.stdin.read() if args.file == "-" else Path(args.file).read_text(encoding="utf-8")
    source = json.loads(raw)
    if not isinstance(source, dict):
        raise ValueError("a document must be a JSON object")
    doc = decode_source(source, _MODELS[args.model], fallback_id=args.doc_id)
    _emit(client.index_document(index, doc, args.doc_id, refresh="wait_for" if args.refresh else None))


def _cmd_get(client: SearchClient, index: str, args: argparse.Namespace) -> None:
    _emit(client.get_document(index, args.doc_id))


def _cmd_update(client: SearchClient, index: str, args: argparse.Namespace) -> None:
    fields: dict[str, Any] = {}
    for assignment in args.assignments:
        name, sep, value = assignment.partition("=")
        if not sep or not name:
            raise ValueError(f"expected FIELD=VALUE, got {assignment!r}")
        fields[name] = _parse_value(value)
    _emit(client.update_document(index, args.doc_id, fields, refresh="wait_for" if args.refresh else None))


def _cmd_delete(client: SearchClient, index: str, args: argparse.Namespace) -> None:
    _emit(client.delete_document(index, args.doc_id, refresh="wait_for" if args.refresh else None))


def _cmd_search(client: SearchClient, index: str, args: argparse.Namespace) -> None:
    if args.kind == "match_all":
        query = match_all()
    elif args.kind == "wildcard":
        query = wildcard(args.field, args.pattern)
    elif args.kind == "match":
        query = match(args.field, args.text)
    elif args.kind == "term":
        query = term(args.field, args.value)
    else:
        query = multi_match(args.fields, args.text)
    _emit(client.search(index, query, SearchOptions(size=args.size, from_=args.from_)))


def _cmd_demo(client: SearchClient, index: str, args: argparse.Namespace) -> None:
    """Index a sample product, query it five ways, update it, then delete it."""
    now = datetime.now(UTC)
    doc = ProductDocument(
        id=1,
        seller_id="ea838b0c-a235-48c0-a84f-90a8aca284e2",
        name="Martabak Manis",
        category="Makanan",
        quantity=10,
        price=10.0,
        weight=10,
        size="XXL",
        status="Ready",
        description=(
            "Martabak manis adalah kudapan sejenis panekuk yang biasa dijajakan di pinggir jalan "
            "di seluruh Indonesia, Malaysia, Brunei Darussalam, Filipina dan Singapura."
        ),
        created_at=now,
        updated_at=now,
    )
    text = doc.name

    _emit(client.info(), step="info")
    _emit(client.index_document(args.scratch_index, doc), step="index (backend-assigned id)")
    _emit(client.index_document(index, doc, doc.id, refresh="wait_for"), step="index (id = product id)")
    _emit(client.get_document(index, doc.id, model=ProductDocument), step="get")

    searches = [
        ("search match_all", match_all()),
        ("search wildcard", wildcard("name.keyword", "Martabak*")),
        ("search match", match("name", text.lower())),
        ("search term", term("name.keyword", text)),
        ("search term (different case)", term("name.keyword", text.lower())),
        ("search multi_match", multi_match(["name", "category", "description"], text)),
    ]
    for step, query in searches:
        _emit(client.search(index, query, model=ProductDocument), step=step)

    _emit(
        client.update_document(index, doc.id, {"status": "Not Ready", "size": "L"}, refresh="wait_for"),
        step="update",
    )
    _emit(client.get_document(index, doc.id, model=ProductDocument), step="get after update")
    _emit(client.delete_document(index, doc.id, refresh="wait_for"), step="delete")
    try:
        client.get_document(index, doc.id, model=ProductDocument)
    except NotFoundError as e:
        _emit({"found": False, "message": str(e)}, step="get after delete")
    else:
        raise DocSearchError(f"Document {doc.id} still present after delete")


# ── Helpers ──────────────────────────────────────────────────────────────────


def _emit(value: BaseModel | dict[str, Any], step: str | None = None) -> None:
    data = value.model_dump(mode="json") if isinstance(value, BaseModel) else value
    if step is not None:
        data = {"step": step, "result": data}
    print(json.dumps(data, ensure_ascii=False))


def _parse_value(text: str) -> Any:
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        return text


def _get_version() -> str:
    """Get the package version."""
    try:
        from docsearch import __version__

        return __version__
    except ImportError:
        return "unknown"


if __name__ == "__main__":
    sys.exit(main())
