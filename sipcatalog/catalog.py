"""Read-only catalog queries: detail pages, facet listings and statistics."""
from __future__ import annotations

import logging
from typing import List

from sqlalchemy import case, func, select
from sqlalchemy.orm import Session, joinedload, selectinload, sessionmaker

from .models import (
    CatalogStats,
    CategoryCost,
    CategoryCount,
    CompanyRef,
    ComponentOut,
    ComponentStats,
    DependencyOut,
    FacetCount,
    NamedRef,
    OsDistribution,
    SipDetail,
    VersionOut,
)
from .orm import (
    Category,
    Component,
    ComponentType,
    Dependency,
    OperatingSystem,
    Sip,
    sip_categories,
    sip_oses,
)
from .relational import like_pattern

logger = logging.getLogger(__name__)


def _company(company) -> CompanyRef | None:
    if company is None:
        return None
    return CompanyRef(id=company.id, name=company.name, url=company.url)


def sip_to_detail(sip: Sip) -> SipDetail:
    return SipDetail(
        id=sip.id,
        name=sip.name,
        slug=sip.slug,
        shortSummary=sip.short_summary,
        description=sip.description,
        costMinUSD=sip.cost_min_usd,
        costMaxUSD=sip.cost_max_usd,
        scrapedAt=sip.scraped_at,
        dataSource=sip.data_source,
        createdAt=sip.created_at,
        updatedAt=sip.updated_at,
        manufacturer=_company(sip.manufacturer),
        supplier=_company(sip.supplier),
        categories=[NamedRef(id=c.id, name=c.name) for c in sip.categories],
        oses=[NamedRef(id=o.id, name=o.name) for o in sip.oses],
        versions=[
            VersionOut(id=v.id, name=v.name, releasedAt=v.released_at, notes=v.notes)
            for v in sip.versions
        ],
        components=[
            ComponentOut(id=c.id, type=c.type.value, name=c.name, spec=c.spec, required=c.required)
            for c in sip.components
        ],
        dependencies=[
            DependencyOut(id=d.id, name=d.depends_on.name, slug=d.depends_on.slug)
            for d in sip.dependencies
        ],
    )


def _full_load_options():
    return (
        selectinload(Sip.categories),
        selectinload(Sip.oses),
        joinedload(Sip.manufacturer),
        joinedload(Sip.supplier),
        selectinload(Sip.versions),
        selectinload(Sip.components),
        selectinload(Sip.dependencies).joinedload(Dependency.depends_on),
    )


class CatalogRepository:
    def __init__(self, session_factory: sessionmaker[Session]) -> None:
        self.session_factory = session_factory

    def get_sip(self, slug: str) -> SipDetail | None:
        stmt = select(Sip).where(Sip.slug == slug).options(*_full_load_options())
        with self.session_factory() as session:
            sip = session.scalars(stmt).unique().one_or_none()
            return sip_to_detail(sip) if sip is not None else None

    def all_sips(self) -> List[Sip]:
        """Every SIP with its relations loaded, detached from the session."""
        stmt = select(Sip).options(*_full_load_options()).order_by(Sip.name.asc())
        with self.session_factory() as session:
            return list(session.scalars(stmt).unique().all())

    def list_operating_systems(self) -> List[FacetCount]:
        count = func.count(sip_oses.c.sip_id)
        stmt = (
            select(OperatingSystem.id, OperatingSystem.name, count)
            .join(sip_oses, sip_oses.c.os_id == OperatingSystem.id)
            .group_by(OperatingSystem.id, OperatingSystem.name)
            .order_by(OperatingSystem.name.asc())
        )
        with self.session_factory() as session:
            return [FacetCount(id=row[0], name=row[1], count=row[2]) for row in session.execute(stmt)]

    def list_categories(self) -> List[FacetCount]:
        count = func.count(sip_categories.c.sip_id)
        stmt = (
            select(Category.id, Category.name, count)
            .join(sip_categories, sip_categories.c.category_id == Category.id)
            .group_by(Category.id, Category.name)
            .order_by(Category.name.asc())
        )
        with self.session_factory() as session:
            return [FacetCount(id=row[0], name=row[1], count=row[2]) for row in session.execute(stmt)]

    def stats(self, category: str = "") -> CatalogStats:
        """Aggregate counts per category.

        ``category`` narrows the total with an exact (case-insensitive) name
        match and the per-category breakdowns with a substring match.
        """
        total_stmt = select(func.count()).select_from(Sip)
        if category:
            total_stmt = total_stmt.where(Sip.categories.any(func.lower(Category.name) == category.lower()))

        def narrowed(stmt):
            if category:
                return stmt.where(Category.name.ilike(like_pattern(category), escape="\\"))
            return stmt

        per_category_count = func.count(sip_categories.c.sip_id)
        per_category = narrowed(
            select(Category.name, per_category_count)
            .select_from(sip_categories)
            .join(Category, Category.id == sip_categories.c.category_id)
        ).group_by(Category.name).order_by(per_category_count.desc(), Category.name.asc())

        os_count = func.count()
        os_distribution = narrowed(
            select(Category.name, OperatingSystem.name, os_count)
            .select_from(sip_categories)
            .join(Category, Category.id == sip_categories.c.category_id)
            .join(sip_oses, sip_oses.c.sip_id == sip_categories.c.sip_id)
            .join(OperatingSystem, OperatingSystem.id == sip_oses.c.os_id)
        ).group_by(Category.name, OperatingSystem.name).order_by(
            Category.name.asc(), os_count.desc(), OperatingSystem.name.asc()
        )

        avg_cost = narrowed(
            select(Category.name, func.avg(Sip.cost_min_usd), func.avg(Sip.cost_max_usd))
            .select_from(sip_categories)
            .join(Category, Category.id == sip_categories.c.category_id)
            .join(Sip, Sip.id == sip_categories.c.sip_id)
        ).group_by(Category.name).order_by(Category.name.asc())

        components = narrowed(
            select(
                Category.name,
                func.count(case((Component.type == ComponentType.HARDWARE, 1))),
                func.count(case((Component.type == ComponentType.SOFTWARE, 1))),
            )
            .select_from(sip_categories)
            .join(Category, Category.id == sip_categories.c.category_id)
            .join(Component, Component.sip_id == sip_categories.c.sip_id)
        ).group_by(Category.name).order_by(Category.name.asc())

        with self.session_factory() as session:
            total = session.scalar(total_stmt) or 0
            return CatalogStats(
                totalSIPs=total,
                sipsPerCategory=[
                    CategoryCount(category=name, count=n) for name, n in session.execute(per_category)
                ],
                osDistribution=[
                    OsDistribution(category=cat, os=os_name, count=n)
                    for cat, os_name, n in session.execute(os_distribution)
                ],
                avgCostPerCategory=[
                    CategoryCost(
                        category=name,
                        avgMin=float(avg_min) if avg_min is not None else None,
                        avgMax=float(avg_max) if avg_max is not None else None,
                    )
                    for name, avg_min, avg_max in session.execute(avg_cost)
                ],
                componentStats=[
                    ComponentStats(category=name, hardware=hw, software=sw)
                    for name, hw, sw in session.execute(components)
                ],
            )
