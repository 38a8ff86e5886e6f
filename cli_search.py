"""Terminal client that reuses the in-process search logic."""
from __future__ import annotations

import argparse
import asyncio
import logging
from pathlib import Path
from typing import Iterable

from sipcatalog.catalog import CatalogRepository
from sipcatalog.config import settings
from sipcatalog.db import get_session_factory
from sipcatalog.es_client import get_client
from sipcatalog.importer import reindex
from sipcatalog.models import SearchResponse
from sipcatalog.normalizer import normalize_search_params
from sipcatalog.search_service import build_search_service

GREEN = "\033[92m"
RESET = "\033[0m"


async def perform_query(query: str, category: str = "", os_name: str = "", product_type: str = "", page: int = 1) -> SearchResponse:
    service = build_search_service()
    request = normalize_search_params(
        {"q": query, "category": category, "os": os_name, "productType": product_type, "page": str(page)}
    )
    return await service.search(request)


def _format_price(cost_min: int | None, cost_max: int | None) -> str:
    if cost_min is None:
        return "-"
    if cost_max is None or cost_max == cost_min:
        return f"${cost_min / 100:.2f}"
    return f"${cost_min / 100:.2f}-${cost_max / 100:.2f}"


def pretty_print_response(query: str, payload: SearchResponse) -> None:
    pagination = payload.pagination
    print(
        f"Query: {query!r} | page {pagination.page}/{pagination.totalPages} | "
        f"total: {GREEN}{pagination.total}{RESET}"
    )
    start = (pagination.page - 1) * pagination.pageSize
    for idx, item in enumerate(payload.results, start=start + 1):
        print(
            f"  {idx:02d}. {item.name} [{item.slug}] | {_format_price(item.costMinUSD, item.costMaxUSD)} | "
            f"{', '.join(item.categories) or '-'} | {item.manufacturer or '-'}"
        )


def interactive_shell() -> None:
    print("Interactive SIP search. Type 'exit' to quit.")
    while True:
        try:
            query = input("> ").strip()
        except (EOFError, KeyboardInterrupt):
            print()
            return
        if query.lower() in {"exit", "quit"}:
            return
        response = asyncio.run(perform_query(query))
        pretty_print_response(query, response)


def batch_mode(file_path: Path) -> None:
    with file_path.open("r", encoding="utf-8") as fh:
        for line in fh:
            query = line.strip()
            if not query:
                continue
            response = asyncio.run(perform_query(query))
            pretty_print_response(query, response)


def main(argv: Iterable[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="CLI client for the SIP catalog search")
    parser.add_argument("query", nargs="?", help="Query string. If omitted, starts REPL mode.")
    parser.add_argument("--category", default="", help="Exact category name")
    parser.add_argument("--os", dest="os_name", default="", help="Exact operating system name")
    parser.add_argument("--type", dest="product_type", default="", help="Comma separated product types")
    parser.add_argument("--page", type=int, default=1)
    parser.add_argument("--batch", type=Path, help="File with queries to execute line by line")
    parser.add_argument("--reindex", action="store_true", help="Rebuild the search index from the database")
    parser.add_argument("--reset", action="store_true", help="Drop the index before reindexing")
    args = parser.parse_args(list(argv) if argv is not None else None)

    logging.basicConfig(level=logging.getLevelName(settings.log_level.upper()))

    if args.reindex:
        count = asyncio.run(reindex(get_client(), CatalogRepository(get_session_factory()), reset=args.reset))
        print(f"Indexed {count} SIPs into {settings.es_index}")
        return 0
    if args.batch:
        batch_mode(args.batch)
        return 0
    if args.query is not None or args.category or args.os_name or args.product_type:
        query = args.query or ""
        response = asyncio.run(perform_query(query, args.category, args.os_name, args.product_type, args.page))
        pretty_print_response(query, response)
        return 0
    interactive_shell()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
