"""Turn raw query-string parameters into a canonical :class:`SearchRequest`.

Nothing here raises on bad input: unparsable page numbers fall back to the
defaults and unknown product-type tags are dropped with a warning.
"""
from __future__ import annotations

import logging
from typing import Mapping

from .config import settings
from .models import ProductType, SearchRequest

logger = logging.getLogger(__name__)

_KNOWN_TYPES = {item.value: item for item in ProductType}


def _parse_positive_int(raw: str | None, default: int) -> int:
    if raw is None:
        return default
    try:
        value = int(str(raw).strip())
    except ValueError:
        return default
    return value if value >= 1 else default


def parse_product_types(raw: str | None) -> tuple[ProductType, ...]:
    """Split a comma separated tag list, keeping known tags in first-seen order."""
    if not raw:
        return ()
    tags: list[ProductType] = []
    for token in raw.split(","):
        tag = token.strip().lower()
        if not tag:
            continue
        known = _KNOWN_TYPES.get(tag)
        if known is None:
            logger.warning("Ignoring unknown productType tag %r", tag)
            continue
        if known not in tags:
            tags.append(known)
    return tuple(tags)


def normalize_search_params(params: Mapping[str, str | None]) -> SearchRequest:
    page = _parse_positive_int(params.get("page"), 1)
    page_size = _parse_positive_int(params.get("pageSize"), settings.default_page_size)
    if page_size > settings.max_page_size:
        logger.debug("Clamping pageSize %s to %s", page_size, settings.max_page_size)
        page_size = settings.max_page_size
    return SearchRequest(
        query=(params.get("q") or "").strip(),
        category=(params.get("category") or "").strip(),
        os=(params.get("os") or "").strip(),
        product_type=parse_product_types(params.get("productType")),
        page=page,
        page_size=page_size,
    )
