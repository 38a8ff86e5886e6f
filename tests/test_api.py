"""HTTP routes via FastAPI's TestClient."""

import pytest
from elasticsearch import ConnectionError as ESConnectionError
from fastapi.testclient import TestClient

from conftest import add_sip
from fakes import FakeElasticsearch
from sipcatalog.catalog import CatalogRepository
from sipcatalog.index_search import IndexSearchPath
from sipcatalog.main import app, get_catalog, get_index_client, get_search_service
from sipcatalog.relational import RelationalSearchPath
from sipcatalog.search_service import SearchService


class BrokenRelational:
    def search(self, request):
        raise RuntimeError("database exploded")

    def suggest(self, query, limit):
        raise RuntimeError("database exploded")


@pytest.fixture
def client(seeded):
    es = FakeElasticsearch(error=ESConnectionError("connection refused"))
    app.dependency_overrides[get_search_service] = lambda: SearchService(
        IndexSearchPath(es, "sips"), RelationalSearchPath(seeded)
    )
    app.dependency_overrides[get_catalog] = lambda: CatalogRepository(seeded)
    yield TestClient(app, raise_server_exceptions=False)
    app.dependency_overrides.clear()


def test_search_endpoint_returns_contract(client):
    """The search route answers with the shared result contract."""

    response = client.get("/api/sips", params={"category": "Appliances"})

    assert response.status_code == 200
    payload = response.json()
    assert [item["name"] for item in payload["results"]] == ["Apache NuttX", "Roomba j7+"]
    assert payload["pagination"] == {"page": 1, "pageSize": 20, "total": 2, "totalPages": 1}
    assert set(payload["results"][0]) == {
        "id",
        "name",
        "slug",
        "shortSummary",
        "description",
        "costMinUSD",
        "costMaxUSD",
        "manufacturer",
        "supplier",
        "categories",
        "oses",
    }


def test_search_endpoint_tolerates_malformed_params(client):
    """Bad paging values and unknown tags never produce an error response."""

    response = client.get("/api/sips", params={"page": "x", "pageSize": "", "productType": "consumer,bogus"})

    assert response.status_code == 200
    payload = response.json()
    assert payload["pagination"]["page"] == 1
    assert [item["name"] for item in payload["results"]] == ["Apple Watch Series 9", "Roomba j7+"]


def test_search_endpoint_page_past_end(client):
    """A page past the last one is empty but still reports the total."""

    payload = client.get("/api/sips", params={"page": "5", "pageSize": "20"}).json()

    assert payload == {"results": [], "pagination": {"page": 5, "pageSize": 20, "total": 3, "totalPages": 1}}


def test_search_failure_maps_to_generic_500(seeded):
    """A failing database yields a generic 500 without echoing the query."""

    app.dependency_overrides[get_search_service] = lambda: SearchService(
        IndexSearchPath(None, "sips"), BrokenRelational()
    )
    try:
        response = TestClient(app, raise_server_exceptions=False).get("/api/sips", params={"q": "secret-term"})
    finally:
        app.dependency_overrides.clear()

    assert response.status_code == 500
    assert response.json() == {"error": "Failed to search SIPs"}
    assert "secret-term" not in response.text


def test_detail_endpoint(client, seeded):
    """The detail route returns the full record including the description."""

    with seeded() as session:
        add_sip(session, "Pinecil", cost=2599, categories=["Tools"], description="Soldering iron")
        session.commit()

    response = client.get("/api/sips/pinecil")

    assert response.status_code == 200
    payload = response.json()
    assert payload["description"] == "Soldering iron"
    assert payload["categories"][0]["name"] == "Tools"
    assert payload["dataSource"] == "curated"


def test_detail_endpoint_unknown_slug(client):
    """Unknown slugs answer 404 with an error body."""

    response = client.get("/api/sips/does-not-exist")

    assert response.status_code == 404
    assert response.json() == {"error": "SIP not found"}


def test_os_and_category_listings(client):
    """Facet listings include per-facet SIP counts in name order."""

    oses = client.get("/api/os").json()
    categories = client.get("/api/categories").json()

    assert [(o["name"], o["count"]) for o in oses] == [("NuttX", 1), ("iRobot OS", 1), ("watchOS", 1)]
    assert [(c["name"], c["count"]) for c in categories] == [("Appliances", 2), ("Wearables", 1)]


def test_stats_endpoint(client):
    """The stats route exposes totals and per-category counts."""

    payload = client.get("/api/stats").json()

    assert payload["totalSIPs"] == 3
    assert payload["sipsPerCategory"][0] == {"category": "Appliances", "count": 2}


def test_suggestions_endpoint(client):
    """Suggestions are empty for a blank query and match names otherwise."""

    assert client.get("/api/suggestions").json() == {"suggestions": []}
    names = [s["name"] for s in client.get("/api/suggestions", params={"q": "apple"}).json()["suggestions"]]
    assert names == ["Apple Watch Series 9"]


def test_search_endpoint_huge_page_number(client):
    """A page number too large for the database still answers 200 with no results."""

    response = client.get("/api/sips", params={"page": "99999999999999999999"})

    assert response.status_code == 200
    assert response.json()["results"] == []
    assert response.json()["pagination"]["total"] == 3


def test_health_reports_index_emptiness():
    """Health reports whether the configured index holds any documents."""

    app.dependency_overrides[get_index_client] = lambda: FakeElasticsearch(document_count=0)
    try:
        payload = TestClient(app).get("/health").json()
    finally:
        app.dependency_overrides.clear()

    assert payload["elasticsearch"] == "configured"
    assert payload["reachable"] is True
    assert payload["empty"] is True


def test_health_without_index_engine():
    """Health reports a missing engine without touching it."""

    app.dependency_overrides[get_index_client] = lambda: None
    try:
        payload = TestClient(app).get("/health").json()
    finally:
        app.dependency_overrides.clear()

    assert payload == {"elasticsearch": "not_configured", "reachable": False, "index": "sips", "empty": None}
