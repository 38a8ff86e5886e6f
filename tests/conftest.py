"""Shared fixtures: an in-memory catalog database and seeding helpers."""
from __future__ import annotations

from typing import Iterable

import pytest
from sqlalchemy import select

from sipcatalog.db import Base, build_engine, build_session_factory
from sipcatalog.orm import Category, Manufacturer, OperatingSystem, Sip, Supplier


def _get_or_create(session, model, name: str):
    instance = session.scalar(select(model).where(model.name == name))
    if instance is None:
        instance = model(name=name)
        session.add(instance)
        session.flush()
    return instance


def add_sip(
    session,
    name: str,
    *,
    slug: str | None = None,
    cost: int | None = None,
    cost_max: int | None = None,
    categories: Iterable[str] = (),
    oses: Iterable[str] = (),
    manufacturer: str | None = None,
    supplier: str | None = None,
    description: str | None = None,
    short_summary: str | None = None,
) -> Sip:
    sip = Sip(
        name=name,
        slug=slug or name.lower().replace(" ", "-").replace("+", "plus"),
        cost_min_usd=cost,
        cost_max_usd=cost_max if cost_max is not None else cost,
        description=description,
        short_summary=short_summary,
        data_source="curated",
    )
    session.add(sip)
    sip.categories = [_get_or_create(session, Category, value) for value in categories]
    sip.oses = [_get_or_create(session, OperatingSystem, value) for value in oses]
    if manufacturer:
        sip.manufacturer = _get_or_create(session, Manufacturer, manufacturer)
    if supplier:
        sip.supplier = _get_or_create(session, Supplier, supplier)
    session.flush()
    return sip


@pytest.fixture
def session_factory():
    engine = build_engine("sqlite://")
    Base.metadata.create_all(engine)
    factory = build_session_factory(engine)
    yield factory
    engine.dispose()


@pytest.fixture
def seeded(session_factory):
    """The three-product catalog used throughout the search tests."""

    with session_factory() as session:
        add_sip(
            session,
            "Apple Watch Series 9",
            cost=39900,
            categories=["Wearables"],
            oses=["watchOS"],
            manufacturer="Apple",
            supplier="Apple Store",
            description="Smartwatch with health sensors.",
            short_summary="Apple's flagship watch",
        )
        add_sip(
            session,
            "Apache NuttX",
            cost=0,
            categories=["Appliances"],
            oses=["NuttX"],
            manufacturer="Apache Software Foundation",
            description="A real-time operating system.",
            short_summary="Small-footprint RTOS",
        )
        add_sip(
            session,
            "Roomba j7+",
            cost=59999,
            categories=["Appliances"],
            oses=["iRobot OS"],
            manufacturer="iRobot",
            description="Robot vacuum that avoids obstacles.",
            short_summary="Self-emptying robot vacuum",
        )
        session.commit()
    return session_factory
