"""Relational fallback path against an in-memory SQLite catalog."""

import math

import pytest
from sqlalchemy.exc import IntegrityError

from conftest import add_sip
from sipcatalog.models import ProductType, SearchRequest
from sipcatalog.normalizer import normalize_search_params
from sipcatalog.relational import RelationalSearchPath


def _names(response):
    return [item.name for item in response.results]


def test_category_filter_returns_name_ordered_matches(seeded):
    """Category filtering returns matches in name order."""

    response = RelationalSearchPath(seeded).search(SearchRequest(category="Appliances"))

    assert _names(response) == ["Apache NuttX", "Roomba j7+"]
    assert response.pagination.total == 2
    assert response.pagination.totalPages == 1


def test_category_filter_is_exact_and_case_insensitive(seeded):
    """Category matching ignores case but never matches substrings."""

    path = RelationalSearchPath(seeded)

    assert _names(path.search(SearchRequest(category="wearables"))) == ["Apple Watch Series 9"]
    assert path.search(SearchRequest(category="Wearable")).results == []


def test_os_filter_is_exact(seeded):
    """OS matching ignores case but never matches substrings."""

    path = RelationalSearchPath(seeded)

    assert _names(path.search(SearchRequest(os="NUTTX"))) == ["Apache NuttX"]
    assert path.search(SearchRequest(os="Nutt")).results == []


def test_empty_query_matches_everything(seeded):
    """An empty query returns the whole catalog."""

    response = RelationalSearchPath(seeded).search(SearchRequest())

    assert _names(response) == ["Apache NuttX", "Apple Watch Series 9", "Roomba j7+"]


def test_page_beyond_last_is_empty_not_an_error(seeded):
    """A page past the end echoes the page with empty results."""

    response = RelationalSearchPath(seeded).search(SearchRequest(page=5, page_size=20))

    assert response.results == []
    assert response.pagination.model_dump() == {"page": 5, "pageSize": 20, "total": 3, "totalPages": 1}


def test_pages_partition_the_ordered_result_set(seeded):
    """Consecutive pages cover the ordered results without gaps or overlap."""

    path = RelationalSearchPath(seeded)

    first = path.search(SearchRequest(page=1, page_size=2))
    second = path.search(SearchRequest(page=2, page_size=2))

    assert _names(first) + _names(second) == _names(path.search(SearchRequest()))
    assert first.pagination.totalPages == second.pagination.totalPages == 2


@pytest.mark.parametrize(
    "query, expected",
    [
        ("watch", ["Apple Watch Series 9"]),
        ("VACUUM", ["Roomba j7+"]),
        ("appliances", ["Apache NuttX", "Roomba j7+"]),
        ("watchos", ["Apple Watch Series 9"]),
        ("foundation", ["Apache NuttX"]),
        ("apple store", ["Apple Watch Series 9"]),
        ("nothing-like-this", []),
    ],
)
def test_text_query_matches_any_searchable_field(seeded, query, expected):
    """Text queries match any searchable field as a substring."""

    assert _names(RelationalSearchPath(seeded).search(SearchRequest(query=query))) == expected


def test_like_wildcards_in_query_are_literal(seeded):
    """LIKE wildcards in the query are matched literally."""

    assert RelationalSearchPath(seeded).search(SearchRequest(query="%")).results == []
    assert RelationalSearchPath(seeded).search(SearchRequest(query="_")).results == []


def test_consumer_type_requires_positive_price(seeded):
    """Consumer products have a positive price."""

    response = RelationalSearchPath(seeded).search(SearchRequest(product_type=(ProductType.CONSUMER,)))

    assert _names(response) == ["Apple Watch Series 9", "Roomba j7+"]


def test_opensource_type_includes_free_products(seeded):
    """Free products count as open source."""

    response = RelationalSearchPath(seeded).search(SearchRequest(product_type=(ProductType.OPENSOURCE,)))

    assert _names(response) == ["Apache NuttX"]


def test_opensource_type_widens_with_text_markers(seeded):
    """Open-source wording in the record also counts as open source."""

    with seeded() as session:
        add_sip(session, "Zephyr RTOS", cost=100, description="An open-source RTOS")
        add_sip(session, "Foundation Cloud", cost=500, manufacturer="Linux Foundation")
        session.commit()

    response = RelationalSearchPath(seeded).search(SearchRequest(product_type=(ProductType.OPENSOURCE,)))

    assert _names(response) == ["Apache NuttX", "Foundation Cloud", "Zephyr RTOS"]


def test_devboard_type_matches_name_markers(seeded):
    """Board and kit names count as development boards."""

    with seeded() as session:
        add_sip(session, "STM32 Discovery Kit", cost=2000)
        add_sip(session, "ESP32 DevKitC", cost=1000)
        session.commit()

    response = RelationalSearchPath(seeded).search(SearchRequest(product_type=(ProductType.DEVBOARD,)))

    assert _names(response) == ["ESP32 DevKitC", "STM32 Discovery Kit"]


def test_product_types_combine_with_or_then_and_with_category(seeded):
    """Product types OR together and AND with the category."""

    request = SearchRequest(
        category="Appliances",
        product_type=(ProductType.CONSUMER, ProductType.OPENSOURCE),
    )

    assert _names(RelationalSearchPath(seeded).search(request)) == ["Apache NuttX", "Roomba j7+"]


def test_total_uses_the_same_predicate_as_the_page(seeded):
    """The total counts exactly the rows the pages can return."""

    path = RelationalSearchPath(seeded)
    request = SearchRequest(query="a", category="Appliances", product_type=(ProductType.CONSUMER,), page_size=1)

    response = path.search(request)
    everything = path.search(request.model_copy(update={"page_size": 50}))

    assert response.pagination.total == len(everything.results) == 1
    assert response.pagination.totalPages == math.ceil(response.pagination.total / 1)


def test_results_omit_description_and_keep_price_invariant(seeded):
    """List results omit descriptions and keep min <= max."""

    response = RelationalSearchPath(seeded).search(SearchRequest())

    for item in response.results:
        assert item.description is None
        if item.costMinUSD is not None and item.costMaxUSD is not None:
            assert item.costMinUSD <= item.costMaxUSD


def test_result_shape_carries_facets(seeded):
    """Results carry facet names and company names."""

    response = RelationalSearchPath(seeded).search(SearchRequest(query="roomba"))

    item = response.results[0]
    assert item.slug == "roomba-j7plus"
    assert item.manufacturer == "iRobot"
    assert item.supplier is None
    assert item.categories == ["Appliances"]
    assert item.oses == ["iRobot OS"]
    assert item.costMinUSD == 59999


def test_unpriced_products_have_null_prices(session_factory):
    """Unpriced SIPs report null prices."""

    with session_factory() as session:
        add_sip(session, "Mystery Box")
        session.commit()

    item = RelationalSearchPath(session_factory).search(SearchRequest()).results[0]
    assert item.costMinUSD is None
    assert item.costMaxUSD is None


def test_store_rejects_inverted_price_range(session_factory):
    """The store refuses a min price above the max price."""

    with session_factory() as session:
        with pytest.raises(IntegrityError):
            add_sip(session, "Broken", cost=500, cost_max=100)


def test_suggestions_match_name_prefixes(seeded):
    """Database suggestions match names and summaries."""

    suggestions = RelationalSearchPath(seeded).suggest("ap", limit=5)

    assert [s.name for s in suggestions] == ["Apache NuttX", "Apple Watch Series 9"]
    assert suggestions[0].highlightedName == "Apache NuttX"


def test_huge_page_number_is_empty_not_an_error(seeded):
    """Page numbers far beyond any offset the database accepts still return an empty page."""

    request = normalize_search_params({"page": "99999999999999999999"})

    response = RelationalSearchPath(seeded).search(request)

    assert response.results == []
    assert response.pagination.page == 99999999999999999999
    assert response.pagination.total == 3
    assert response.pagination.totalPages == 1


def test_no_matches_reports_zero_pages(seeded):
    """Zero matches report zero total pages."""

    response = RelationalSearchPath(seeded).search(SearchRequest(query="nothing-like-this"))

    assert response.results == []
    assert response.pagination.model_dump() == {"page": 1, "pageSize": 20, "total": 0, "totalPages": 0}
