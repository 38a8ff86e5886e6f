"""FastAPI application wiring the SIP catalog API."""
from __future__ import annotations

import asyncio
import logging
from functools import lru_cache
from typing import List

from elasticsearch import ApiError, Elasticsearch, TransportError
from fastapi import Depends, FastAPI, Query, Request
from fastapi.responses import JSONResponse

from .catalog import CatalogRepository
from .config import settings
from .db import Base, get_engine, get_session_factory
from .es_client import get_client
from .importer import IndexUnavailableError, reindex
from .indexing import ensure_index, index_is_empty
from .models import (
    CatalogStats,
    ErrorResponse,
    FacetCount,
    SearchResponse,
    SipDetail,
    SuggestionResponse,
)
from .normalizer import normalize_search_params
from .search_service import SearchService, build_search_service

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
LOG_LEVEL = logging.getLevelName(settings.log_level.upper())

# Force a predictable logging setup even when run under uvicorn; ``force=True``
# replaces uvicorn's default handlers.
logging.basicConfig(level=LOG_LEVEL, format=LOG_FORMAT, force=True)
for name in ("uvicorn", "uvicorn.error", "uvicorn.access", "elastic_transport"):
    logging.getLogger(name).setLevel(LOG_LEVEL)
logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)

logger = logging.getLogger(__name__)

app = FastAPI(title="SIP Catalog")

# Body returned on unhandled errors, keyed by route path. Request parameters
# never go into the body.
ERROR_MESSAGES = {
    "/api/sips": "Failed to search SIPs",
    "/api/sips/{slug}": "Failed to fetch SIP",
    "/api/os": "Failed to fetch operating systems",
    "/api/categories": "Failed to fetch categories",
    "/api/stats": "Failed to fetch statistics",
    "/api/suggestions": "Failed to fetch suggestions",
    "/reindex": "Failed to reindex SIPs",
}


@lru_cache(maxsize=1)
def get_search_service() -> SearchService:
    return build_search_service()


def get_catalog() -> CatalogRepository:
    return CatalogRepository(get_session_factory())


@app.exception_handler(Exception)
async def unhandled_error(request: Request, exc: Exception) -> JSONResponse:
    route = request.scope.get("route")
    path = getattr(route, "path", request.url.path)
    logger.exception("Unhandled error on %s", path)
    message = ERROR_MESSAGES.get(path, "Internal server error")
    return JSONResponse(status_code=500, content={"error": message})


@app.on_event("startup")
async def startup_event() -> None:
    await asyncio.to_thread(Base.metadata.create_all, get_engine())
    es = get_client()
    if es is None:
        logger.warning("Search index disabled; all searches will use the database")
        return
    try:
        await ensure_index(es)
    except (TransportError, ApiError) as exc:
        logger.warning("Could not prepare search index at startup: %s", exc)


def get_index_client() -> Elasticsearch | None:
    return get_client()


@app.get("/health")
async def health(es: Elasticsearch | None = Depends(get_index_client)) -> dict:
    reachable = False
    empty = None
    if es is not None:
        try:
            reachable = await asyncio.to_thread(es.ping)
            if reachable:
                empty = await index_is_empty(es)
        except (TransportError, ApiError) as exc:
            logger.warning("Elasticsearch health check failed: %s", exc)
    return {
        "elasticsearch": "configured" if es is not None else "not_configured",
        "reachable": reachable,
        "index": settings.es_index,
        "empty": empty,
    }


@app.get("/api/sips", response_model=SearchResponse)
async def search_sips(
    request: Request,
    service: SearchService = Depends(get_search_service),
) -> SearchResponse:
    search_request = normalize_search_params(request.query_params)
    return await service.search(search_request)


@app.get("/api/sips/{slug}", response_model=SipDetail, responses={404: {"model": ErrorResponse}})
async def get_sip(slug: str, catalog: CatalogRepository = Depends(get_catalog)):
    sip = await asyncio.to_thread(catalog.get_sip, slug)
    if sip is None:
        return JSONResponse(status_code=404, content={"error": "SIP not found"})
    return sip


@app.get("/api/os", response_model=List[FacetCount])
async def list_operating_systems(catalog: CatalogRepository = Depends(get_catalog)) -> List[FacetCount]:
    return await asyncio.to_thread(catalog.list_operating_systems)


@app.get("/api/categories", response_model=List[FacetCount])
async def list_categories(catalog: CatalogRepository = Depends(get_catalog)) -> List[FacetCount]:
    return await asyncio.to_thread(catalog.list_categories)


@app.get("/api/stats", response_model=CatalogStats)
async def stats(
    category: str = Query("", description="Narrow statistics to matching categories"),
    catalog: CatalogRepository = Depends(get_catalog),
) -> CatalogStats:
    return await asyncio.to_thread(catalog.stats, category.strip())


@app.get("/api/suggestions", response_model=SuggestionResponse)
async def suggestions(
    q: str = Query("", description="Partial query"),
    service: SearchService = Depends(get_search_service),
) -> SuggestionResponse:
    return SuggestionResponse(suggestions=await service.suggest(q))


@app.post("/reindex", responses={503: {"model": ErrorResponse}})
async def reindex_sips(catalog: CatalogRepository = Depends(get_catalog)):
    try:
        count = await reindex(get_client(), catalog)
    except IndexUnavailableError:
        return JSONResponse(status_code=503, content={"error": "Search index is not configured"})
    return {"indexed": count}
