import os
import sys
from datetime import datetime, timedelta, timezone

import pytest

os.environ.setdefault("DISABLE_BACKGROUND_LOOPS", "1")

PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

from services.models import CanonicalTender, SavedQuery, StoredTender  # noqa: E402
from utils.exceptions import StoreError  # noqa: E402


class FakeClock:
    """Deterministic clock; sleeping advances time instantly."""

    def __init__(self, start=None):
        self._now = start or datetime(2026, 1, 15, 12, 0, tzinfo=timezone.utc)
        self._monotonic = 0.0
        self.sleeps = []
        self.on_sleep = None

    def now(self):
        return self._now

    def monotonic(self):
        return self._monotonic

    def advance(self, seconds):
        self._now += timedelta(seconds=seconds)
        self._monotonic += seconds

    def sleep(self, seconds, stop_event=None):
        if stop_event is not None and stop_event.is_set():
            return False
        self.sleeps.append(seconds)
        self.advance(max(0, seconds))
        if self.on_sleep is not None:
            self.on_sleep(seconds)
        return not (stop_event is not None and stop_event.is_set())


class InMemoryTenderStore:
    def __init__(self):
        self.rows = {}
        self.insert_calls = []
        self.delete_calls = []
        self.fail_insert = False
        self.fail_find = False
        self._next_id = 1

    def add(self, tender):
        stored = StoredTender(**{**tender.__dict__, "id": self._next_id})
        self._next_id += 1
        self.rows[stored.external_id] = stored
        return stored

    def batch_insert(self, tenders):
        self.insert_calls.append(list(tenders))
        if self.fail_insert:
            raise StoreError("insert failed")
        added = 0
        for tender in tenders:
            if tender.external_id in self.rows:
                continue
            self.add(tender)
            added += 1
        return added

    def find_expired(self, cutoff):
        if self.fail_find:
            raise StoreError("lookup failed")
        return [
            t for t in self.rows.values()
            if t.application_deadline is not None and t.application_deadline < cutoff
        ]

    def delete_tenders(self, ids):
        self.delete_calls.append(list(ids))
        doomed = [key for key, t in self.rows.items() if t.id in set(ids)]
        for key in doomed:
            del self.rows[key]
        return len(doomed)


class InMemoryQueryCatalog:
    def __init__(self, queries=None):
        self.queries = list(queries or [])

    def list_active_queries(self):
        return sorted((q for q in self.queries if q.is_active), key=lambda q: q.keyword)


def make_tender(external_id, **overrides):
    fields = {
        "external_id": external_id,
        "purchase_number": external_id,
        "title": f"Tender {external_id}",
    }
    fields.update(overrides)
    return CanonicalTender(**fields)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def tender_store():
    return InMemoryTenderStore()


@pytest.fixture
def saved_query():
    return SavedQuery(id=7, keyword="construction", is_active=True)
