"""Search path backed by the Elasticsearch index.

Every engine round-trip goes through :meth:`IndexSearchPath._call`, the only
place that converts client errors into a failed :class:`IndexOutcome`. Hit
mapping runs outside that wrapper, so a bug there raises instead of looking
like an unavailable index.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Generic, List, TypeVar

from elasticsearch import ApiError, Elasticsearch, TransportError

from .filters import (
    AnyOf,
    FacetEquals,
    Field,
    Predicate,
    PriceAbove,
    PriceEquals,
    TextContains,
    build_filters,
    for_index,
)
from .models import Pagination, SearchRequest, SearchResponse, SearchResult, Suggestion

logger = logging.getLogger(__name__)

T = TypeVar("T")

SEARCH_FIELDS = [
    "name",
    "shortSummary",
    "description",
    "categories.text",
    "oses.text",
    "supplier.text",
    "manufacturer.text",
]
SUGGEST_FIELDS = ["name", "shortSummary", "categories.text"]
# ``description`` is left out of list results; the detail endpoint returns it.
SOURCE_FIELDS = [
    "id",
    "name",
    "slug",
    "shortSummary",
    "costMinUSD",
    "costMaxUSD",
    "manufacturer",
    "supplier",
    "categories",
    "oses",
]
# Exact-value (keyword) field for each filterable attribute.
KEYWORD_FIELDS = {
    Field.NAME: "name.keyword",
    Field.DESCRIPTION: "description.keyword",
    Field.MANUFACTURER: "manufacturer",
    Field.CATEGORIES: "categories",
    Field.OSES: "oses",
}
PRICE_FIELD = "costMinUSD"
# Elasticsearch rejects from + size beyond index.max_result_window (default).
MAX_RESULT_WINDOW = 10_000


class IndexStatus(str, Enum):
    OK = "ok"
    NOT_CONFIGURED = "not_configured"
    FAILED = "failed"
    OUT_OF_WINDOW = "out_of_window"


@dataclass(frozen=True)
class IndexOutcome(Generic[T]):
    status: IndexStatus
    value: T | None = None
    error: Exception | None = None

    @property
    def ok(self) -> bool:
        return self.status is IndexStatus.OK

    def describe(self) -> str:
        if self.status is IndexStatus.NOT_CONFIGURED:
            return "index engine not configured"
        if self.status is IndexStatus.OUT_OF_WINDOW:
            return f"page lies beyond the index result window of {MAX_RESULT_WINDOW}"
        if self.error is not None:
            return f"{type(self.error).__name__}: {self.error}"
        return self.status.value


def _escape_wildcard(text: str) -> str:
    return text.replace("\\", "\\\\").replace("*", "\\*").replace("?", "\\?")


def compile_predicate(predicate: Predicate) -> dict:
    """Translate one filter predicate into an Elasticsearch query clause."""
    if isinstance(predicate, FacetEquals):
        return {"term": {KEYWORD_FIELDS[predicate.field]: {"value": predicate.value, "case_insensitive": True}}}
    if isinstance(predicate, PriceEquals):
        return {"term": {PRICE_FIELD: predicate.value}}
    if isinstance(predicate, PriceAbove):
        return {"range": {PRICE_FIELD: {"gt": predicate.value}}}
    if isinstance(predicate, TextContains):
        field = KEYWORD_FIELDS[predicate.field]
        return {
            "bool": {
                "should": [
                    {"wildcard": {field: {"value": f"*{_escape_wildcard(needle)}*", "case_insensitive": True}}}
                    for needle in predicate.needles
                ],
                "minimum_should_match": 1,
            }
        }
    if isinstance(predicate, AnyOf):
        return {
            "bool": {
                "should": [compile_predicate(clause) for clause in predicate.clauses],
                "minimum_should_match": 1,
            }
        }
    raise TypeError(f"Unsupported predicate: {predicate!r}")


def build_index_query(request: SearchRequest) -> Dict[str, Any]:
    filters = [compile_predicate(p) for p in for_index(build_filters(request))]
    if request.query:
        must: dict = {
            "multi_match": {
                "query": request.query,
                "fields": SEARCH_FIELDS,
                "fuzziness": "AUTO",
            }
        }
        sort: List[dict] = [{"_score": {"order": "desc"}}, {PRICE_FIELD: {"order": "asc"}}]
    else:
        must = {"match_all": {}}
        sort = [{PRICE_FIELD: {"order": "asc"}}]

    query = {
        "from": request.offset,
        "size": request.page_size,
        "track_total_hits": True,
        "_source": SOURCE_FIELDS,
        "query": {"bool": {"must": [must], "filter": filters}},
        "sort": sort,
    }
    logger.debug("ES query payload=%s", query)
    return query


def _price(doc: dict) -> tuple[int | None, int | None]:
    # Every document carries costMinUSD for sorting; unpriced products are
    # indexed without costMaxUSD, which is how we tell them apart from free ones.
    cost_max = doc.get("costMaxUSD")
    if cost_max is None:
        return None, None
    return doc.get("costMinUSD"), cost_max


def hit_to_result(hit: dict) -> SearchResult:
    doc = hit.get("_source", {})
    cost_min, cost_max = _price(doc)
    return SearchResult(
        id=str(doc.get("id") or hit.get("_id")),
        name=doc["name"],
        slug=doc["slug"],
        shortSummary=doc.get("shortSummary") or None,
        description=None,
        costMinUSD=cost_min,
        costMaxUSD=cost_max,
        manufacturer=doc.get("manufacturer") or None,
        supplier=doc.get("supplier") or None,
        categories=list(doc.get("categories") or []),
        oses=list(doc.get("oses") or []),
    )


def _total_hits(response: dict) -> int:
    total = response.get("hits", {}).get("total", 0)
    if isinstance(total, dict):
        return int(total.get("value", 0))
    return int(total or 0)


class IndexSearchPath:
    """Faceted, relevance-ranked search against the SIP index."""

    def __init__(self, client: Elasticsearch | None, index: str) -> None:
        self.client = client
        self.index = index

    @property
    def configured(self) -> bool:
        return self.client is not None

    async def _call(self, **kwargs: Any) -> IndexOutcome[dict]:
        if self.client is None:
            return IndexOutcome(IndexStatus.NOT_CONFIGURED)
        try:
            response = await asyncio.to_thread(self.client.search, index=self.index, **kwargs)
        except (TransportError, ApiError) as exc:
            return IndexOutcome(IndexStatus.FAILED, error=exc)
        return IndexOutcome(IndexStatus.OK, value=response)

    async def search(self, request: SearchRequest) -> IndexOutcome[SearchResponse]:
        if request.offset + request.page_size > MAX_RESULT_WINDOW:
            return await self._search_past_window(request)

        raw = await self._call(body=build_index_query(request))
        if not raw.ok:
            return IndexOutcome(raw.status, error=raw.error)

        response = raw.value or {}
        hits = response.get("hits", {}).get("hits", [])
        total = _total_hits(response)
        return IndexOutcome(
            IndexStatus.OK,
            value=SearchResponse(
                results=[hit_to_result(hit) for hit in hits],
                pagination=Pagination.build(request.page, request.page_size, total),
            ),
        )

    async def _search_past_window(self, request: SearchRequest) -> IndexOutcome[SearchResponse]:
        """Deep pages: only count matches, since the engine cannot page that far.

        A page past the last match is answered here as an empty page; a page
        with real matches beyond the window is reported as ``OUT_OF_WINDOW``.
        """
        body = {**build_index_query(request), "from": 0, "size": 0}
        body.pop("sort", None)
        raw = await self._call(body=body)
        if not raw.ok:
            return IndexOutcome(raw.status, error=raw.error)

        total = _total_hits(raw.value or {})
        if request.offset < total:
            return IndexOutcome(IndexStatus.OUT_OF_WINDOW)
        return IndexOutcome(
            IndexStatus.OK,
            value=SearchResponse(
                results=[],
                pagination=Pagination.build(request.page, request.page_size, total),
            ),
        )

    async def suggest(self, query: str, limit: int) -> IndexOutcome[List[Suggestion]]:
        body = {
            "size": limit,
            "_source": ["id", "name", "slug", "categories", "shortSummary"],
            "query": {"multi_match": {"query": query, "fields": SUGGEST_FIELDS, "fuzziness": "AUTO"}},
            "highlight": {
                "pre_tags": ["<mark>"],
                "post_tags": ["</mark>"],
                "fields": {"name": {"number_of_fragments": 0}},
            },
        }
        raw = await self._call(body=body)
        if not raw.ok:
            return IndexOutcome(raw.status, error=raw.error)

        suggestions: List[Suggestion] = []
        for hit in (raw.value or {}).get("hits", {}).get("hits", []):
            doc = hit.get("_source", {})
            highlighted = hit.get("highlight", {}).get("name") or [doc["name"]]
            suggestions.append(
                Suggestion(
                    id=str(doc.get("id") or hit.get("_id")),
                    name=doc["name"],
                    slug=doc["slug"],
                    categories=list(doc.get("categories") or []),
                    shortSummary=doc.get("shortSummary") or None,
                    highlightedName=highlighted[0],
                )
            )
        return IndexOutcome(IndexStatus.OK, value=suggestions)
