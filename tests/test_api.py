from datetime import datetime, timezone
from unittest.mock import Mock

import pytest
from fastapi.testclient import TestClient

from api import deps
from app import app
from services.models import SavedQuery, StoredTender, TenderPage
from utils.exceptions import StoreError


@pytest.fixture
def store():
    return Mock()


@pytest.fixture
def catalog():
    return Mock()


@pytest.fixture
def client(store, catalog):
    pool = Mock()
    pool.test_connection.return_value = True
    loop = Mock()
    loop.status.return_value = {"state": "sleeping"}

    app.dependency_overrides[deps.get_tender_store] = lambda: store
    app.dependency_overrides[deps.get_query_catalog] = lambda: catalog
    app.dependency_overrides[deps.get_db_pool] = lambda: pool
    app.dependency_overrides[deps.get_background_loops] = lambda: {"search": loop}
    yield TestClient(app)
    app.dependency_overrides.clear()


def _stored(tender_id=1):
    return StoredTender(
        id=tender_id,
        external_id="0373100000126000001",
        purchase_number="0373100000126000001",
        title="Road repair",
        query_id=7,
        query_keyword="roads",
        saved_at=datetime(2026, 1, 10, tzinfo=timezone.utc),
    )


class TestTenders:
    def test_list_maps_query_parameters(self, client, store):
        store.search_tenders.return_value = TenderPage(items=[_stored()], total_count=1, page=2, page_size=10)

        resp = client.get("/api/tenders", params={
            "page": 2,
            "pageSize": 10,
            "search": "road",
            "queryId": 7,
            "showExpired": "true",
            "sortBy": "title",
            "sortDescending": "false",
        })

        assert resp.status_code == 200
        body = resp.json()
        assert body["totalCount"] == 1
        assert body["items"][0]["purchaseNumber"] == "0373100000126000001"
        params = store.search_tenders.call_args.args[0]
        assert (params.page, params.page_size, params.search, params.query_id) == (2, 10, "road", 7)
        assert params.show_expired is True
        assert (params.sort_by, params.sort_descending) == ("title", False)

    def test_page_size_is_capped(self, client):
        assert client.get("/api/tenders", params={"pageSize": 500}).status_code == 422

    def test_get_missing_tender(self, client, store):
        store.get_tender.return_value = None
        assert client.get("/api/tenders/99").status_code == 404

    def test_get_tender(self, client, store):
        store.get_tender.return_value = _stored(5)
        resp = client.get("/api/tenders/5")
        assert resp.status_code == 200
        assert resp.json()["queryKeyword"] == "roads"

    def test_count_and_stats(self, client, store):
        store.count_tenders.return_value = 4
        store.tender_stats.return_value = {"totalTenders": 4, "lastUpdated": None}

        assert client.get("/api/tenders/count").json() == {"count": 4}
        assert client.get("/api/tenders/stats").json()["totalTenders"] == 4

    def test_store_error_is_reported_as_500(self, client, store):
        store.count_tenders.side_effect = StoreError("down")
        resp = client.get("/api/tenders/count")
        assert resp.status_code == 500
        assert "Database error" in resp.json()["detail"]


class TestQueries:
    def test_create_query(self, client, catalog):
        catalog.create_query.return_value = SavedQuery(id=3, keyword="roads")

        resp = client.post("/api/queries", json={"keyword": " roads ", "category": "infra"})

        assert resp.status_code == 201
        assert resp.json()["id"] == 3
        catalog.create_query.assert_called_once_with("roads", "infra", True)

    @pytest.mark.parametrize("keyword", ["", "   "])
    def test_blank_keyword_rejected(self, client, catalog, keyword):
        resp = client.post("/api/queries", json={"keyword": keyword})
        assert resp.status_code == 422
        catalog.create_query.assert_not_called()

    def test_partial_update(self, client, catalog):
        catalog.update_query.return_value = SavedQuery(id=3, keyword="roads", is_active=False)

        resp = client.put("/api/queries/3", json={"isActive": False})

        assert resp.status_code == 200
        assert resp.json()["isActive"] is False
        catalog.update_query.assert_called_once_with(3, keyword=None, category=None, is_active=False)

    def test_update_missing_query(self, client, catalog):
        catalog.update_query.return_value = None
        assert client.put("/api/queries/3", json={"keyword": "x"}).status_code == 404

    def test_delete(self, client, catalog):
        catalog.delete_query.return_value = True
        assert client.delete("/api/queries/3").status_code == 204
        catalog.delete_query.return_value = False
        assert client.delete("/api/queries/4").status_code == 404

    def test_active_queries(self, client, catalog):
        catalog.list_active_queries.return_value = [SavedQuery(id=1, keyword="a"), SavedQuery(id=2, keyword="b")]
        resp = client.get("/api/queries/active")
        assert [q["keyword"] for q in resp.json()] == ["a", "b"]


def test_health_reports_loops(client):
    resp = client.get("/health")
    body = resp.json()
    assert body["status"] == "healthy"
    assert body["loops"] == {"search": {"state": "sleeping"}}


def test_openapi_docs_are_disabled(client):
    assert client.get("/docs").status_code == 404
    assert client.get("/openapi.json").status_code == 404
