"""Rebuild the search index from the relational catalog."""
from __future__ import annotations

import asyncio
import logging
from typing import Iterable

from elasticsearch import Elasticsearch, helpers

from .catalog import CatalogRepository
from .config import settings
from .indexing import ensure_index, reset_index
from .orm import Sip

logger = logging.getLogger(__name__)


class IndexUnavailableError(RuntimeError):
    """Raised when an index-only operation runs without a configured engine."""


def build_index_document(sip: Sip) -> dict:
    """Project a SIP row (relations loaded) onto the search document shape.

    ``costMinUSD`` is the sort key and always present (0 for unpriced SIPs);
    ``costMaxUSD`` is only set when the SIP has a price range.
    """
    document = {
        "id": sip.id,
        "name": sip.name,
        "slug": sip.slug,
        "shortSummary": sip.short_summary or "",
        "description": sip.description or "",
        "categories": [category.name for category in sip.categories],
        "oses": [os_.name for os_ in sip.oses],
        "supplier": sip.supplier.name if sip.supplier else "",
        "manufacturer": sip.manufacturer.name if sip.manufacturer else "",
        "costMinUSD": sip.cost_min_usd or 0,
        "versions": [
            {
                "name": version.name,
                "releasedAt": version.released_at.isoformat() if version.released_at else None,
            }
            for version in sip.versions
        ],
        "components": [
            {"type": component.type.value, "name": component.name, "spec": component.spec}
            for component in sip.components
        ],
        "dependencies": [dependency.depends_on.name for dependency in sip.dependencies],
    }
    if sip.cost_max_usd is not None:
        document["costMaxUSD"] = sip.cost_max_usd
    return document


def _iter_actions(index: str, documents: Iterable[dict]) -> Iterable[dict]:
    for document in documents:
        yield {
            "_op_type": "index",
            "_index": index,
            "_id": document["id"],
            "_source": document,
        }


async def reindex(
    es: Elasticsearch | None,
    repository: CatalogRepository,
    *,
    index: str = settings.es_index,
    reset: bool = False,
) -> int:
    """Upsert every SIP into the index. Returns the number of documents sent."""
    if es is None:
        raise IndexUnavailableError("Cannot reindex: ES_HOST is not configured")

    if reset:
        await reset_index(es, index)
    else:
        await ensure_index(es, index)

    sips = await asyncio.to_thread(repository.all_sips)
    documents = [build_index_document(sip) for sip in sips]
    if not documents:
        logger.info("No SIPs to index")
        return 0

    logger.info("Indexing %s SIPs into %s", len(documents), index)
    indexed, errors = await asyncio.to_thread(
        helpers.bulk,
        es,
        list(_iter_actions(index, documents)),
        raise_on_error=False,
        refresh="wait_for",
    )
    if errors:
        logger.warning("%s documents failed to index: %s", len(errors), errors[:5])
    logger.info("Indexed %s documents into %s", indexed, index)
    return len(documents)
