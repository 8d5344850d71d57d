from contextlib import contextmanager
from datetime import datetime, timedelta, timezone

import psycopg2
import pytest

import services.tender_store as tender_store_module
from conftest import FakeClock, make_tender
from services.models import TenderSearchParams
from services.query_catalog import PostgresQueryCatalog
from services.tender_store import PostgresTenderStore, build_order_clause, build_search_clause
from utils.exceptions import StoreError, ValidationError


class FakeCursor:
    def __init__(self, results=None):
        self.executed = []
        self.results = list(results or [])
        self.description = None
        self.rowcount = 0

    def execute(self, sql, params=None):
        self.executed.append((sql, params))
        self.description = ("col",) if "RETURNING" in sql or sql.lstrip().startswith("SELECT") else None

    def fetchall(self):
        return self.results.pop(0) if self.results else []

    def fetchone(self):
        rows = self.fetchall()
        return rows[0] if rows else None


class FakePool:
    def __init__(self, cursor):
        self.cursor = cursor
        self.commits = 0
        self.rollbacks = 0

    @contextmanager
    def transaction(self):
        try:
            yield self.cursor
            self.commits += 1
        except Exception:
            self.rollbacks += 1
            raise


class FakeTenderTable:
    """Stands in for execute_values + ON CONFLICT DO NOTHING RETURNING id."""

    def __init__(self):
        self.external_ids = []
        self.batches = []

    def execute_values(self, cur, sql, rows, page_size=100, fetch=False):
        assert "ON CONFLICT (external_id) DO NOTHING" in sql
        self.batches.append(rows)
        inserted = []
        for row in rows:
            if row[0] in self.external_ids:
                continue
            self.external_ids.append(row[0])
            inserted.append((len(self.external_ids),))
        return inserted


@pytest.fixture
def table(monkeypatch):
    fake = FakeTenderTable()
    monkeypatch.setattr(tender_store_module, "execute_values", fake.execute_values)
    return fake


def _row(**overrides):
    row = {
        "id": 1,
        "external_id": "E-1",
        "purchase_number": "E-1",
        "title": "Tender",
        "customer_name": None,
        "publish_date": None,
        "direct_link": None,
        "query_id": 7,
        "saved_at": datetime(2026, 1, 1, tzinfo=timezone.utc),
        "application_deadline": None,
        "max_price": None,
        "region": None,
        "customer_inn": None,
        "additional_info": None,
        "query_keyword": "construction",
    }
    row.update(overrides)
    return row


class TestBatchInsert:
    def test_second_insert_of_same_batch_adds_nothing(self, table):
        pool = FakePool(FakeCursor())
        store = PostgresTenderStore(pool, clock=FakeClock())
        batch = [make_tender("A"), make_tender("B")]

        assert store.batch_insert(batch) == 2
        assert store.batch_insert(batch) == 0
        assert table.external_ids == ["A", "B"]
        assert pool.commits == 2

    def test_duplicates_within_batch_keep_first(self, table):
        store = PostgresTenderStore(FakePool(FakeCursor()), clock=FakeClock())

        added = store.batch_insert([
            make_tender("A", title="first"),
            make_tender("A", title="second"),
            make_tender("B"),
        ])

        assert added == 2
        sent = table.batches[0]
        assert [row[0] for row in sent] == ["A", "B"]
        assert sent[0][2] == "first"

    def test_missing_saved_at_is_stamped(self, table):
        clock = FakeClock()
        store = PostgresTenderStore(FakePool(FakeCursor()), clock=clock)

        store.batch_insert([make_tender("A")])

        assert table.batches[0][0][7] == clock.now()

    def test_empty_batch_skips_database(self, table):
        pool = FakePool(FakeCursor())
        assert PostgresTenderStore(pool).batch_insert([]) == 0
        assert table.batches == []
        assert pool.commits == 0

    def test_database_error_becomes_store_error(self, monkeypatch):
        def broken(*args, **kwargs):
            raise psycopg2.OperationalError("connection lost")

        monkeypatch.setattr(tender_store_module, "execute_values", broken)
        pool = FakePool(FakeCursor())

        with pytest.raises(StoreError) as excinfo:
            PostgresTenderStore(pool).batch_insert([make_tender("A")])

        assert isinstance(excinfo.value.original_error, psycopg2.OperationalError)
        assert pool.rollbacks == 1


class TestReads:
    def test_find_expired_uses_strict_cutoff(self):
        cutoff = datetime(2026, 1, 14, tzinfo=timezone.utc)
        cursor = FakeCursor([[_row(application_deadline=cutoff - timedelta(days=1))]])
        store = PostgresTenderStore(FakePool(cursor))

        expired = store.find_expired(cutoff)

        sql, params = cursor.executed[0]
        assert "t.application_deadline < %s" in sql
        assert params == (cutoff,)
        assert expired[0].query_keyword == "construction"

    def test_delete_tenders_in_one_statement(self):
        cursor = FakeCursor()
        cursor.rowcount = 3
        store = PostgresTenderStore(FakePool(cursor))

        assert store.delete_tenders([1, 2, 3]) == 3
        assert cursor.executed == [("DELETE FROM found_tenders WHERE id = ANY(%s)", ([1, 2, 3],))]

    def test_delete_nothing_skips_database(self):
        cursor = FakeCursor()
        assert PostgresTenderStore(FakePool(cursor)).delete_tenders([]) == 0
        assert cursor.executed == []

    def test_search_tenders_paginates(self):
        cursor = FakeCursor([[{"total": 45}], [_row(id=21), _row(id=22)]])
        store = PostgresTenderStore(FakePool(cursor), clock=FakeClock())

        page = store.search_tenders(TenderSearchParams(page=3, page_size=20))

        assert page.total_count == 45
        assert page.total_pages == 3
        assert [t.id for t in page.items] == [21, 22]
        _, params = cursor.executed[1]
        assert params[-2:] == [20, 40]

    def test_stats(self):
        saved = datetime(2026, 1, 10, 8, 30, tzinfo=timezone.utc)
        cursor = FakeCursor([[{"total": 12, "last_saved": saved}]])

        stats = PostgresTenderStore(FakePool(cursor)).tender_stats()

        assert stats == {"totalTenders": 12, "lastUpdated": saved.isoformat()}


def test_search_clause_hides_expired_by_default():
    now = datetime(2026, 1, 15, tzinfo=timezone.utc)

    where, values = build_search_clause(TenderSearchParams(search=" road ", query_id=3), now)

    assert where.startswith("WHERE ")
    assert "ILIKE" in where
    assert "t.query_id = %s" in where
    assert "t.application_deadline IS NULL OR t.application_deadline >= %s" in where
    assert values == ["%road%"] * 4 + [3, now]


def test_search_clause_show_expired_without_filters():
    where, values = build_search_clause(TenderSearchParams(show_expired=True), datetime.now(timezone.utc))
    assert where == ""
    assert values == []


@pytest.mark.parametrize("sort_by, column", [
    ("publishDate", "t.publish_date"),
    ("TITLE", "t.title"),
    ("maxPrice", "t.max_price"),
    ("applicationDeadline", "t.application_deadline"),
    ("bogus; DROP TABLE", "t.saved_at"),
    (None, "t.saved_at"),
])
def test_order_clause_whitelists_columns(sort_by, column):
    assert build_order_clause(sort_by, True).startswith(f"ORDER BY {column} DESC")


def test_order_clause_ascending():
    assert build_order_clause("title", False) == "ORDER BY t.title ASC NULLS FIRST, t.id ASC"


class TestQueryCatalog:
    def test_list_active_queries_ordered_by_keyword(self):
        cursor = FakeCursor([[
            {"id": 2, "keyword": "asphalt", "category": None, "is_active": True, "created_at": None},
            {"id": 1, "keyword": "bridges", "category": "roads", "is_active": True, "created_at": None},
        ]])
        catalog = PostgresQueryCatalog(FakePool(cursor))

        queries = catalog.list_active_queries()

        assert [q.keyword for q in queries] == ["asphalt", "bridges"]
        assert "WHERE is_active ORDER BY keyword" in cursor.executed[0][0]

    def test_create_query_rejects_blank_keyword(self):
        cursor = FakeCursor()
        with pytest.raises(ValidationError):
            PostgresQueryCatalog(FakePool(cursor)).create_query("   ")
        assert cursor.executed == []

    def test_create_query_strips_keyword(self):
        clock = FakeClock()
        cursor = FakeCursor([[
            {"id": 5, "keyword": "roads", "category": None, "is_active": True, "created_at": clock.now()},
        ]])

        query = PostgresQueryCatalog(FakePool(cursor), clock=clock).create_query("  roads ", "")

        assert query.id == 5
        assert cursor.executed[0][1] == ("roads", None, True, clock.now())

    def test_update_query_only_sets_given_fields(self):
        cursor = FakeCursor([[
            {"id": 5, "keyword": "roads", "category": None, "is_active": False, "created_at": None},
        ]])

        query = PostgresQueryCatalog(FakePool(cursor)).update_query(5, is_active=False)

        sql, params = cursor.executed[0]
        assert "SET is_active = %s WHERE id = %s" in sql
        assert params == (False, 5)
        assert query.is_active is False

    def test_update_missing_query_returns_none(self):
        assert PostgresQueryCatalog(FakePool(FakeCursor())).update_query(9, keyword="x") is None

    def test_delete_query(self):
        assert PostgresQueryCatalog(FakePool(FakeCursor([[{"id": 5}]]))).delete_query(5) is True
        assert PostgresQueryCatalog(FakePool(FakeCursor())).delete_query(6) is False
