"""Engine-neutral filter predicates shared by both search paths.

:func:`build_filters` turns the facet part of a :class:`SearchRequest`
(category, OS and product-type tags) into a conjunction of predicates. The
index path and the relational path each compile that same tree into their own
query language, so a filter rule is written exactly once.

Nodes marked ``relational_only`` are skipped when compiling for the index
engine. Only the open-source text heuristic uses it today.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Union

from .models import ProductType, SearchRequest


class Field(str, Enum):
    NAME = "name"
    DESCRIPTION = "description"
    MANUFACTURER = "manufacturer"
    CATEGORIES = "categories"
    OSES = "oses"


@dataclass(frozen=True)
class FacetEquals:
    """Case-insensitive exact match against one of a product's facet values."""

    field: Field
    value: str
    relational_only: bool = False


@dataclass(frozen=True)
class PriceEquals:
    value: int
    relational_only: bool = False


@dataclass(frozen=True)
class PriceAbove:
    value: int
    relational_only: bool = False


@dataclass(frozen=True)
class TextContains:
    """Case-insensitive substring match of any needle in a text field."""

    field: Field
    needles: tuple[str, ...]
    relational_only: bool = False


@dataclass(frozen=True)
class AnyOf:
    clauses: tuple["Predicate", ...]
    relational_only: bool = False


Predicate = Union[FacetEquals, PriceEquals, PriceAbove, TextContains, AnyOf]

OPEN_SOURCE_MARKERS = ("open source", "open-source")
DEVBOARD_MARKERS = ("board", "kit", "devkit", "development")

PRODUCT_TYPE_RULES: dict[ProductType, tuple[Predicate, ...]] = {
    ProductType.CONSUMER: (PriceAbove(0),),
    ProductType.OPENSOURCE: (
        PriceEquals(0),
        TextContains(Field.DESCRIPTION, OPEN_SOURCE_MARKERS, relational_only=True),
        TextContains(Field.NAME, ("apache",), relational_only=True),
        TextContains(Field.MANUFACTURER, ("apache", "foundation"), relational_only=True),
    ),
    ProductType.DEVBOARD: (TextContains(Field.NAME, DEVBOARD_MARKERS),),
}


def product_type_group(tags: Iterable[ProductType]) -> AnyOf | None:
    clauses: list[Predicate] = []
    for tag in tags:
        clauses.extend(PRODUCT_TYPE_RULES[tag])
    if not clauses:
        return None
    return AnyOf(tuple(clauses))


def build_filters(request: SearchRequest) -> tuple[Predicate, ...]:
    filters: list[Predicate] = []
    if request.category:
        filters.append(FacetEquals(Field.CATEGORIES, request.category))
    if request.os:
        filters.append(FacetEquals(Field.OSES, request.os))
    group = product_type_group(request.product_type)
    if group is not None:
        filters.append(group)
    return tuple(filters)


def for_index(predicates: Iterable[Predicate]) -> tuple[Predicate, ...]:
    """Drop ``relational_only`` nodes, and any group left empty by doing so."""
    kept: list[Predicate] = []
    for predicate in predicates:
        if predicate.relational_only:
            continue
        if isinstance(predicate, AnyOf):
            inner = for_index(predicate.clauses)
            if not inner:
                continue
            predicate = AnyOf(inner)
        kept.append(predicate)
    return tuple(kept)
