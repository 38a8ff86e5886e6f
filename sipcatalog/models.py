"""Pydantic models for request/response payloads."""
from __future__ import annotations

import math
from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class ProductType(str, Enum):
    CONSUMER = "consumer"
    OPENSOURCE = "opensource"
    DEVBOARD = "devboard"


class SearchRequest(BaseModel):
    """Canonical search request produced by :mod:`sipcatalog.normalizer`."""

    model_config = ConfigDict(frozen=True)

    query: str = ""
    category: str = ""
    os: str = ""
    product_type: tuple[ProductType, ...] = ()
    page: int = Field(1, ge=1)
    page_size: int = Field(20, ge=1)

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.page_size


class SearchResult(BaseModel):
    id: str
    name: str
    slug: str
    shortSummary: str | None = None
    description: str | None = None
    costMinUSD: int | None = None
    costMaxUSD: int | None = None
    manufacturer: str | None = None
    supplier: str | None = None
    categories: list[str] = Field(default_factory=list)
    oses: list[str] = Field(default_factory=list)


class Pagination(BaseModel):
    page: int
    pageSize: int
    total: int
    totalPages: int

    @classmethod
    def build(cls, page: int, page_size: int, total: int) -> "Pagination":
        total_pages = math.ceil(total / page_size) if total > 0 else 0
        return cls(page=page, pageSize=page_size, total=total, totalPages=total_pages)


class SearchResponse(BaseModel):
    results: list[SearchResult]
    pagination: Pagination


class Suggestion(BaseModel):
    id: str
    name: str
    slug: str
    categories: list[str] = Field(default_factory=list)
    shortSummary: str | None = None
    highlightedName: str


class SuggestionResponse(BaseModel):
    suggestions: list[Suggestion]


class FacetCount(BaseModel):
    id: str
    name: str
    count: int


class CompanyRef(BaseModel):
    id: str
    name: str
    url: str | None = None


class NamedRef(BaseModel):
    id: str
    name: str


class VersionOut(BaseModel):
    id: str
    name: str
    releasedAt: datetime | None = None
    notes: str | None = None


class ComponentOut(BaseModel):
    id: str
    type: str
    name: str
    spec: str | None = None
    required: bool = True


class DependencyOut(BaseModel):
    id: str
    name: str
    slug: str


class SipDetail(BaseModel):
    id: str
    name: str
    slug: str
    shortSummary: str | None = None
    description: str | None = None
    costMinUSD: int | None = None
    costMaxUSD: int | None = None
    scrapedAt: datetime | None = None
    dataSource: str
    createdAt: datetime | None = None
    updatedAt: datetime | None = None
    manufacturer: CompanyRef | None = None
    supplier: CompanyRef | None = None
    categories: list[NamedRef] = Field(default_factory=list)
    oses: list[NamedRef] = Field(default_factory=list)
    versions: list[VersionOut] = Field(default_factory=list)
    components: list[ComponentOut] = Field(default_factory=list)
    dependencies: list[DependencyOut] = Field(default_factory=list)


class CategoryCount(BaseModel):
    category: str
    count: int


class OsDistribution(BaseModel):
    category: str
    os: str
    count: int


class CategoryCost(BaseModel):
    category: str
    avgMin: float | None = None
    avgMax: float | None = None


class ComponentStats(BaseModel):
    category: str
    hardware: int
    software: int


class CatalogStats(BaseModel):
    totalSIPs: int
    sipsPerCategory: list[CategoryCount]
    osDistribution: list[OsDistribution]
    avgCostPerCategory: list[CategoryCost]
    componentStats: list[ComponentStats]


class ErrorResponse(BaseModel):
    error: str
