"""Elasticsearch client factory.

The rest of the code works against the official synchronous client. Blocking
calls are wrapped via ``asyncio.to_thread`` by the caller where necessary.

When ``ES_HOST`` is not set the factory returns ``None`` instead of a client;
callers treat that as "index engine not configured" and use the database.
"""
from __future__ import annotations

import logging
from functools import lru_cache

from elasticsearch import Elasticsearch

from .config import Settings, settings

logger = logging.getLogger(__name__)


def build_client(config: Settings) -> Elasticsearch | None:
    if not config.es_configured:
        logger.warning("Elasticsearch client not created: ES_HOST is not set")
        return None
    logger.info("Connecting to Elasticsearch at %s", config.es_url)
    # One attempt per call with a bounded timeout so the database fallback still
    # fits inside the request budget.
    return Elasticsearch(
        config.es_url,
        api_key=config.es_api_key or None,
        request_timeout=config.es_timeout_seconds,
        max_retries=0,
        retry_on_timeout=False,
    )


@lru_cache(maxsize=1)
def get_client() -> Elasticsearch | None:
    return build_client(settings)
