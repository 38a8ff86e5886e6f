"""SQLAlchemy models for the SIP catalog.

Products are owned by the ETL/admin paths; the search code only reads them.
Categories and operating systems link through plain association tables whose
composite primary keys keep each (sip, category) / (sip, os) pair unique.
"""
from __future__ import annotations

import enum
import uuid
from datetime import datetime

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    String,
    Table,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .db import Base

DATA_SOURCES = ("scraped", "curated", "manual")


def _new_id() -> str:
    return uuid.uuid4().hex


class ComponentType(str, enum.Enum):
    HARDWARE = "HARDWARE"
    SOFTWARE = "SOFTWARE"


sip_categories = Table(
    "sip_categories",
    Base.metadata,
    Column("sip_id", ForeignKey("sips.id", ondelete="CASCADE"), primary_key=True),
    Column("category_id", ForeignKey("categories.id", ondelete="CASCADE"), primary_key=True),
)

sip_oses = Table(
    "sip_oses",
    Base.metadata,
    Column("sip_id", ForeignKey("sips.id", ondelete="CASCADE"), primary_key=True),
    Column("os_id", ForeignKey("operating_systems.id", ondelete="CASCADE"), primary_key=True),
)


class Category(Base):
    __tablename__ = "categories"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=_new_id)
    name: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)

    sips: Mapped[list["Sip"]] = relationship(secondary=sip_categories, back_populates="categories")

    def __repr__(self) -> str:
        return f"<Category(name={self.name!r})>"


class OperatingSystem(Base):
    __tablename__ = "operating_systems"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=_new_id)
    name: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)

    sips: Mapped[list["Sip"]] = relationship(secondary=sip_oses, back_populates="oses")

    def __repr__(self) -> str:
        return f"<OperatingSystem(name={self.name!r})>"


class Manufacturer(Base):
    __tablename__ = "manufacturers"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=_new_id)
    name: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    url: Mapped[str | None] = mapped_column(String(500))


class Supplier(Base):
    __tablename__ = "suppliers"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=_new_id)
    name: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    url: Mapped[str | None] = mapped_column(String(500))


class Sip(Base):
    """A software-intensive product."""

    __tablename__ = "sips"
    __table_args__ = (
        CheckConstraint(
            "(cost_min_usd IS NULL AND cost_max_usd IS NULL) OR "
            "(cost_min_usd IS NOT NULL AND cost_max_usd IS NOT NULL AND cost_min_usd <= cost_max_usd)",
            name="ck_sips_price_range",
        ),
        CheckConstraint(
            "data_source IN ('scraped', 'curated', 'manual')",
            name="ck_sips_data_source",
        ),
    )

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=_new_id)
    slug: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    short_summary: Mapped[str | None] = mapped_column(Text)
    description: Mapped[str | None] = mapped_column(Text)
    # Integer cents
    cost_min_usd: Mapped[int | None] = mapped_column(Integer)
    cost_max_usd: Mapped[int | None] = mapped_column(Integer)
    scraped_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    data_source: Mapped[str] = mapped_column(String(16), nullable=False, default="curated")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    manufacturer_id: Mapped[str | None] = mapped_column(ForeignKey("manufacturers.id", ondelete="SET NULL"))
    supplier_id: Mapped[str | None] = mapped_column(ForeignKey("suppliers.id", ondelete="SET NULL"))

    manufacturer: Mapped[Manufacturer | None] = relationship()
    supplier: Mapped[Supplier | None] = relationship()
    categories: Mapped[list[Category]] = relationship(secondary=sip_categories, back_populates="sips")
    oses: Mapped[list[OperatingSystem]] = relationship(secondary=sip_oses, back_populates="sips")
    versions: Mapped[list["Version"]] = relationship(
        back_populates="sip",
        cascade="all, delete-orphan",
        order_by="Version.released_at.desc()",
    )
    components: Mapped[list["Component"]] = relationship(
        back_populates="sip",
        cascade="all, delete-orphan",
        order_by="Component.type",
    )
    dependencies: Mapped[list["Dependency"]] = relationship(
        back_populates="sip",
        cascade="all, delete-orphan",
        foreign_keys="Dependency.sip_id",
    )

    def __repr__(self) -> str:
        return f"<Sip(slug={self.slug!r}, name={self.name!r})>"


class Version(Base):
    __tablename__ = "versions"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=_new_id)
    sip_id: Mapped[str] = mapped_column(ForeignKey("sips.id", ondelete="CASCADE"), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    released_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    notes: Mapped[str | None] = mapped_column(Text)

    sip: Mapped[Sip] = relationship(back_populates="versions")


class Component(Base):
    __tablename__ = "components"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=_new_id)
    sip_id: Mapped[str] = mapped_column(ForeignKey("sips.id", ondelete="CASCADE"), nullable=False)
    type: Mapped[ComponentType] = mapped_column(Enum(ComponentType, name="component_type"), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    spec: Mapped[str | None] = mapped_column(Text)
    required: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    sip: Mapped[Sip] = relationship(back_populates="components")


class Dependency(Base):
    """Directed "depends on" edge between two SIPs."""

    __tablename__ = "dependencies"
    __table_args__ = (UniqueConstraint("sip_id", "depends_on_id", name="uq_dependency_edge"),)

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=_new_id)
    sip_id: Mapped[str] = mapped_column(ForeignKey("sips.id", ondelete="CASCADE"), nullable=False)
    depends_on_id: Mapped[str] = mapped_column(ForeignKey("sips.id", ondelete="CASCADE"), nullable=False)

    sip: Mapped[Sip] = relationship(back_populates="dependencies", foreign_keys=[sip_id])
    depends_on: Mapped[Sip] = relationship(foreign_keys=[depends_on_id])
