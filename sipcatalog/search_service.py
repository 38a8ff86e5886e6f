"""Unified SIP search: index engine first, relational store as fallback.

Both paths return the same :class:`SearchResponse` shape, so callers cannot
tell which one answered. At most two attempts are made per request, one per
path, and the relational attempt is the last one: its errors propagate.
"""
from __future__ import annotations

import asyncio
import logging
from time import perf_counter
from typing import List

from .config import settings
from .db import get_session_factory
from .es_client import get_client
from .index_search import IndexSearchPath, IndexStatus
from .models import SearchRequest, SearchResponse, Suggestion
from .relational import RelationalSearchPath

logger = logging.getLogger(__name__)

SUGGESTION_LIMIT = 5


class SearchService:
    def __init__(self, index: IndexSearchPath, relational: RelationalSearchPath) -> None:
        self.index = index
        self.relational = relational

    async def search(self, request: SearchRequest) -> SearchResponse:
        t0 = perf_counter()
        if self.index.configured:
            outcome = await self.index.search(request)
            if outcome.ok and outcome.value is not None:
                self._log_timing("index", request, outcome.value, t0)
                return outcome.value
            if outcome.status is IndexStatus.OUT_OF_WINDOW:
                logger.info("Serving deep page from the database: %s", outcome.describe())
            else:
                logger.warning("Index search unavailable, falling back to database: %s", outcome.describe())
        else:
            logger.warning("Index engine not configured, searching the database directly")

        response = await asyncio.to_thread(self.relational.search, request)
        self._log_timing("relational", request, response, t0)
        return response

    async def suggest(self, query: str, limit: int = SUGGESTION_LIMIT) -> List[Suggestion]:
        query = query.strip()
        if not query:
            return []
        if self.index.configured:
            outcome = await self.index.suggest(query, limit)
            if outcome.ok and outcome.value is not None:
                return outcome.value
            logger.warning("Index suggestions unavailable, falling back to database: %s", outcome.describe())
        return await asyncio.to_thread(self.relational.suggest, query, limit)

    @staticmethod
    def _log_timing(path: str, request: SearchRequest, response: SearchResponse, t0: float) -> None:
        logger.info(
            "search path=%s total=%.2fms q=%r category=%r os=%r types=%s page=%s hits=%s",
            path,
            (perf_counter() - t0) * 1000,
            request.query,
            request.category,
            request.os,
            [tag.value for tag in request.product_type],
            request.page,
            response.pagination.total,
        )


def build_search_service() -> SearchService:
    return SearchService(
        IndexSearchPath(get_client(), settings.es_index),
        RelationalSearchPath(get_session_factory()),
    )
