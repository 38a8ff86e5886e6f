"""Index creation and maintenance helpers."""
from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path

from elasticsearch import BadRequestError, Elasticsearch, NotFoundError

from .config import settings

logger = logging.getLogger(__name__)


def load_mapping(mapping_path: Path) -> dict:
    with mapping_path.open("r", encoding="utf-8") as fh:
        return json.load(fh)


async def ensure_index(es: Elasticsearch, index: str = settings.es_index) -> bool:
    """Create the SIP index from the bundled mapping if it is missing.

    Returns ``True`` when the index was created by this call.
    """

    exists = await asyncio.to_thread(es.indices.exists, index=index)
    if exists:
        logger.info("Search index %s already exists", index)
        return False

    mapping_path = Path(settings.mapping_path)
    body = load_mapping(mapping_path)
    logger.info("Creating index %s using %s", index, mapping_path)
    try:
        await asyncio.to_thread(
            es.indices.create,
            index=index,
            settings=body.get("settings"),
            mappings=body["mappings"],
        )
    except BadRequestError as exc:
        if getattr(exc, "error", "") == "resource_already_exists_exception":
            logger.info("Index %s already exists", index)
            return False
        logger.exception("Failed to create index: %s", exc)
        raise
    return True


async def drop_index(es: Elasticsearch, index: str = settings.es_index) -> None:
    try:
        await asyncio.to_thread(es.indices.delete, index=index)
        logger.info("Deleted search index %s", index)
    except NotFoundError:
        return


async def reset_index(es: Elasticsearch, index: str = settings.es_index) -> None:
    """Drop and recreate the index, e.g. after a mapping change."""
    await drop_index(es, index)
    await ensure_index(es, index)


async def index_is_empty(es: Elasticsearch, index: str = settings.es_index) -> bool:
    try:
        stats = await asyncio.to_thread(es.count, index=index)
        return stats.get("count", 0) == 0
    except NotFoundError:
        return True
