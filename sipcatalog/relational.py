"""Search path that queries the relational store directly.

Used when the index engine is missing or failing. Matching is plain
case-insensitive substring matching, without fuzziness or relevance ranking,
and rows come back ordered by name.
"""
from __future__ import annotations

import logging
from typing import List

from sqlalchemy import ColumnElement, and_, func, or_, select, true
from sqlalchemy.orm import Session, joinedload, selectinload, sessionmaker

from .filters import (
    AnyOf,
    FacetEquals,
    Field,
    Predicate,
    PriceAbove,
    PriceEquals,
    TextContains,
    build_filters,
)
from .models import Pagination, SearchRequest, SearchResponse, SearchResult, Suggestion
from .orm import Category, Manufacturer, OperatingSystem, Sip, Supplier

logger = logging.getLogger(__name__)


def like_pattern(needle: str) -> str:
    escaped = needle.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


def _ilike(column, needle: str) -> ColumnElement[bool]:
    return column.ilike(like_pattern(needle), escape="\\")


def _equals_ci(column, value: str) -> ColumnElement[bool]:
    return func.lower(column) == value.lower()


def _field_contains(field: Field, needle: str) -> ColumnElement[bool]:
    if field is Field.NAME:
        return _ilike(Sip.name, needle)
    if field is Field.DESCRIPTION:
        return _ilike(Sip.description, needle)
    if field is Field.MANUFACTURER:
        return Sip.manufacturer.has(_ilike(Manufacturer.name, needle))
    if field is Field.CATEGORIES:
        return Sip.categories.any(_ilike(Category.name, needle))
    if field is Field.OSES:
        return Sip.oses.any(_ilike(OperatingSystem.name, needle))
    raise ValueError(f"Unsupported text field: {field}")


def _field_equals(field: Field, value: str) -> ColumnElement[bool]:
    if field is Field.CATEGORIES:
        return Sip.categories.any(_equals_ci(Category.name, value))
    if field is Field.OSES:
        return Sip.oses.any(_equals_ci(OperatingSystem.name, value))
    if field is Field.MANUFACTURER:
        return Sip.manufacturer.has(_equals_ci(Manufacturer.name, value))
    if field is Field.NAME:
        return _equals_ci(Sip.name, value)
    raise ValueError(f"Unsupported facet field: {field}")


def compile_predicate(predicate: Predicate) -> ColumnElement[bool]:
    """Translate one filter predicate into a SQLAlchemy boolean clause."""
    if isinstance(predicate, FacetEquals):
        return _field_equals(predicate.field, predicate.value)
    if isinstance(predicate, PriceEquals):
        return Sip.cost_min_usd == predicate.value
    if isinstance(predicate, PriceAbove):
        return Sip.cost_min_usd > predicate.value
    if isinstance(predicate, TextContains):
        return or_(*(_field_contains(predicate.field, needle) for needle in predicate.needles))
    if isinstance(predicate, AnyOf):
        return or_(*(compile_predicate(clause) for clause in predicate.clauses))
    raise TypeError(f"Unsupported predicate: {predicate!r}")


def text_match(query: str) -> ColumnElement[bool]:
    return or_(
        _ilike(Sip.name, query),
        _ilike(Sip.description, query),
        _ilike(Sip.short_summary, query),
        Sip.categories.any(_ilike(Category.name, query)),
        Sip.oses.any(_ilike(OperatingSystem.name, query)),
        Sip.manufacturer.has(_ilike(Manufacturer.name, query)),
        Sip.supplier.has(_ilike(Supplier.name, query)),
    )


def build_where(request: SearchRequest) -> ColumnElement[bool]:
    """Single predicate shared by the page query and the count query."""
    clauses: List[ColumnElement[bool]] = []
    if request.query:
        clauses.append(text_match(request.query))
    clauses.extend(compile_predicate(p) for p in build_filters(request))
    return and_(true(), *clauses)


def sip_to_result(sip: Sip) -> SearchResult:
    return SearchResult(
        id=sip.id,
        name=sip.name,
        slug=sip.slug,
        shortSummary=sip.short_summary,
        description=None,
        costMinUSD=sip.cost_min_usd,
        costMaxUSD=sip.cost_max_usd,
        manufacturer=sip.manufacturer.name if sip.manufacturer else None,
        supplier=sip.supplier.name if sip.supplier else None,
        categories=sorted(category.name for category in sip.categories),
        oses=sorted(os_.name for os_ in sip.oses),
    )


class RelationalSearchPath:
    """Substring search over the catalog tables; the path of last resort."""

    def __init__(self, session_factory: sessionmaker[Session]) -> None:
        self.session_factory = session_factory

    def search(self, request: SearchRequest) -> SearchResponse:
        where = build_where(request)
        with self.session_factory() as session:
            total = session.scalar(select(func.count()).select_from(Sip).where(where)) or 0
            if request.offset >= total:
                # Past the last page; also keeps oversized offsets out of the SQL.
                return SearchResponse(
                    results=[],
                    pagination=Pagination.build(request.page, request.page_size, total),
                )
            stmt = (
                select(Sip)
                .where(where)
                .options(
                    selectinload(Sip.categories),
                    selectinload(Sip.oses),
                    joinedload(Sip.manufacturer),
                    joinedload(Sip.supplier),
                )
                .order_by(Sip.name.asc(), Sip.id.asc())
                .offset(request.offset)
                .limit(request.page_size)
            )
            sips = session.scalars(stmt).unique().all()
            results = [sip_to_result(sip) for sip in sips]
        return SearchResponse(
            results=results,
            pagination=Pagination.build(request.page, request.page_size, total),
        )

    def suggest(self, query: str, limit: int) -> List[Suggestion]:
        stmt = (
            select(Sip)
            .where(or_(_ilike(Sip.name, query), _ilike(Sip.short_summary, query)))
            .options(selectinload(Sip.categories))
            .order_by(Sip.name.asc(), Sip.id.asc())
            .limit(limit)
        )
        with self.session_factory() as session:
            sips = session.scalars(stmt).all()
            return [
                Suggestion(
                    id=sip.id,
                    name=sip.name,
                    slug=sip.slug,
                    categories=sorted(category.name for category in sip.categories),
                    shortSummary=sip.short_summary,
                    highlightedName=sip.name,
                )
                for sip in sips
            ]
