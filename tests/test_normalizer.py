"""Query-string normalization into SearchRequest."""

from sipcatalog.models import ProductType
from sipcatalog.normalizer import normalize_search_params, parse_product_types


def test_defaults_when_params_missing():
    """Missing parameters take their defaults."""

    request = normalize_search_params({})

    assert request.query == ""
    assert request.category == ""
    assert request.os == ""
    assert request.product_type == ()
    assert request.page == 1
    assert request.page_size == 20


def test_malformed_numbers_fall_back_to_defaults():
    """Unparsable numbers fall back to the defaults."""

    request = normalize_search_params({"page": "abc", "pageSize": "2.5"})

    assert request.page == 1
    assert request.page_size == 20


def test_non_positive_numbers_fall_back_to_defaults():
    """Zero and negative numbers fall back to the defaults."""

    request = normalize_search_params({"page": "0", "pageSize": "-4"})

    assert request.page == 1
    assert request.page_size == 20


def test_valid_values_are_kept():
    """Well-formed values pass through trimmed."""

    request = normalize_search_params(
        {"q": "  watch ", "category": "Wearables", "os": "watchOS", "page": "3", "pageSize": "7"}
    )

    assert request.query == "watch"
    assert request.category == "Wearables"
    assert request.os == "watchOS"
    assert request.page == 3
    assert request.page_size == 7
    assert request.offset == 14


def test_page_size_is_clamped():
    """Oversized page sizes clamp to the configured maximum."""

    request = normalize_search_params({"pageSize": "100000"})

    assert request.page_size == 100


def test_product_types_split_and_deduplicated():
    """Product types split on commas, ignore case and drop duplicates."""

    assert parse_product_types("consumer, OpenSource,consumer,,devboard") == (
        ProductType.CONSUMER,
        ProductType.OPENSOURCE,
        ProductType.DEVBOARD,
    )


def test_unknown_product_types_are_dropped(caplog):
    """Unknown product types are dropped with a warning."""

    with caplog.at_level("WARNING"):
        assert parse_product_types("consumer,enterprise") == (ProductType.CONSUMER,)

    assert "enterprise" in caplog.text
