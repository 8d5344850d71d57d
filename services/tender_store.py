"""
Persistence for found tenders
"""
from datetime import datetime
from typing import Any, Dict, List, Optional, Protocol, Sequence

import psycopg2
from psycopg2.extras import execute_values

from services.models import CanonicalTender, StoredTender, TenderPage, TenderSearchParams
from utils.clock import SystemClock
from utils.exceptions import StoreError
from utils.logging_config import get_logger

logger = get_logger(__name__, "app")

MAX_PAGE_SIZE = 100

INSERT_COLUMNS = (
    "external_id",
    "purchase_number",
    "title",
    "customer_name",
    "publish_date",
    "direct_link",
    "query_id",
    "saved_at",
    "application_deadline",
    "max_price",
    "region",
    "customer_inn",
    "additional_info",
)

SELECT_COLUMNS = """
    t.id, t.external_id, t.purchase_number, t.title, t.customer_name, t.publish_date,
    t.direct_link, t.query_id, t.saved_at, t.application_deadline, t.max_price,
    t.region, t.customer_inn, t.additional_info, q.keyword AS query_keyword
"""

FROM_CLAUSE = "found_tenders t LEFT JOIN search_queries q ON q.id = t.query_id"

SORT_COLUMNS = {
    "savedat": "t.saved_at",
    "publishdate": "t.publish_date",
    "title": "t.title",
    "applicationdeadline": "t.application_deadline",
    "maxprice": "t.max_price",
}


class TenderStore(Protocol):
    """What the background loops need from tender persistence."""

    def batch_insert(self, tenders: Sequence[CanonicalTender]) -> int: ...

    def find_expired(self, cutoff: datetime) -> List[StoredTender]: ...

    def delete_tenders(self, ids: Sequence[int]) -> int: ...


def dedupe_batch(tenders: Sequence[CanonicalTender]) -> List[CanonicalTender]:
    """Drop repeated external ids within one batch, keeping the first."""
    seen = set()
    unique = []
    for tender in tenders:
        if tender.external_id in seen:
            continue
        seen.add(tender.external_id)
        unique.append(tender)
    return unique


def _row_to_tender(row: Dict[str, Any]) -> StoredTender:
    return StoredTender(
        id=row["id"],
        external_id=row["external_id"],
        purchase_number=row["purchase_number"],
        title=row["title"],
        customer_name=row.get("customer_name"),
        publish_date=row.get("publish_date"),
        direct_link=row.get("direct_link"),
        query_id=row.get("query_id"),
        saved_at=row.get("saved_at"),
        application_deadline=row.get("application_deadline"),
        max_price=row.get("max_price"),
        region=row.get("region"),
        customer_inn=row.get("customer_inn"),
        additional_info=row.get("additional_info"),
        query_keyword=row.get("query_keyword"),
    )


def build_search_clause(params: TenderSearchParams, now: datetime) -> tuple[str, List[Any]]:
    """WHERE clause and parameters for a tender listing."""
    conditions: List[str] = []
    values: List[Any] = []

    if params.search and params.search.strip():
        pattern = f"%{params.search.strip()}%"
        conditions.append(
            "(t.title ILIKE %s OR t.purchase_number ILIKE %s "
            "OR t.customer_name ILIKE %s OR t.additional_info ILIKE %s)"
        )
        values.extend([pattern] * 4)
    if params.query_id is not None:
        conditions.append("t.query_id = %s")
        values.append(params.query_id)
    if params.saved_from is not None:
        conditions.append("t.saved_at >= %s")
        values.append(params.saved_from)
    if params.saved_to is not None:
        conditions.append("t.saved_at <= %s")
        values.append(params.saved_to)
    if params.deadline_from is not None:
        conditions.append("t.application_deadline >= %s")
        values.append(params.deadline_from)
    if params.deadline_to is not None:
        conditions.append("t.application_deadline <= %s")
        values.append(params.deadline_to)
    if not params.show_expired:
        conditions.append("(t.application_deadline IS NULL OR t.application_deadline >= %s)")
        values.append(now)

    if not conditions:
        return "", values
    return "WHERE " + " AND ".join(conditions), values


def build_order_clause(sort_by: Optional[str], descending: bool) -> str:
    column = SORT_COLUMNS.get((sort_by or "").lower(), SORT_COLUMNS["savedat"])
    direction = "DESC" if descending else "ASC"
    nulls = "NULLS LAST" if descending else "NULLS FIRST"
    return f"ORDER BY {column} {direction} {nulls}, t.id {direction}"


class PostgresTenderStore:
    """found_tenders table access over a DatabasePool."""

    def __init__(self, db_pool, clock=None):
        self.db_pool = db_pool
        self.clock = clock or SystemClock()

    def batch_insert(self, tenders: Sequence[CanonicalTender]) -> int:
        """
        Insert the tenders whose external id is not stored yet.

        The whole batch is one transaction; returns the number of rows that
        were actually inserted.
        """
        unique = dedupe_batch(tenders)
        if not unique:
            return 0

        now = self.clock.now()
        rows = [
            (
                t.external_id,
                t.purchase_number,
                t.title,
                t.customer_name,
                t.publish_date,
                t.direct_link,
                t.query_id,
                t.saved_at or now,
                t.application_deadline,
                t.max_price,
                t.region,
                t.customer_inn,
                t.additional_info,
            )
            for t in unique
        ]
        sql = (
            f"INSERT INTO found_tenders ({', '.join(INSERT_COLUMNS)}) VALUES %s "
            "ON CONFLICT (external_id) DO NOTHING RETURNING id"
        )

        try:
            with self.db_pool.transaction() as cur:
                inserted = execute_values(cur, sql, rows, page_size=len(rows), fetch=True)
        except psycopg2.Error as e:
            logger.error(f"Batch insert of {len(unique)} tenders failed: {e}")
            raise StoreError("Failed to insert tenders", original_error=e) from e

        added = len(inserted or [])
        logger.debug(f"Batch insert: {added} new of {len(unique)} unique ({len(tenders)} received)")
        return added

    def find_expired(self, cutoff: datetime) -> List[StoredTender]:
        """Tenders whose deadline is strictly before ``cutoff``."""
        sql = (
            f"SELECT {SELECT_COLUMNS} FROM {FROM_CLAUSE} "
            "WHERE t.application_deadline IS NOT NULL AND t.application_deadline < %s "
            "ORDER BY t.application_deadline"
        )
        try:
            with self.db_pool.transaction() as cur:
                cur.execute(sql, (cutoff,))
                rows = cur.fetchall()
        except psycopg2.Error as e:
            logger.error(f"Expired tender lookup failed: {e}")
            raise StoreError("Failed to look up expired tenders", original_error=e) from e
        return [_row_to_tender(row) for row in rows]

    def delete_tenders(self, ids: Sequence[int]) -> int:
        ids = list(ids)
        if not ids:
            return 0
        try:
            with self.db_pool.transaction() as cur:
                cur.execute("DELETE FROM found_tenders WHERE id = ANY(%s)", (ids,))
                deleted = cur.rowcount
        except psycopg2.Error as e:
            logger.error(f"Deleting {len(ids)} tenders failed: {e}")
            raise StoreError("Failed to delete tenders", original_error=e) from e
        return deleted

    def get_tender(self, tender_id: int) -> Optional[StoredTender]:
        try:
            with self.db_pool.transaction() as cur:
                cur.execute(f"SELECT {SELECT_COLUMNS} FROM {FROM_CLAUSE} WHERE t.id = %s", (tender_id,))
                row = cur.fetchone()
        except psycopg2.Error as e:
            logger.error(f"Loading tender {tender_id} failed: {e}")
            raise StoreError("Failed to load tender", original_error=e) from e
        return _row_to_tender(row) if row else None

    def search_tenders(self, params: TenderSearchParams) -> TenderPage:
        page = max(1, params.page)
        page_size = min(max(1, params.page_size), MAX_PAGE_SIZE)
        where, values = build_search_clause(params, self.clock.now())
        order = build_order_clause(params.sort_by, params.sort_descending)

        try:
            with self.db_pool.transaction() as cur:
                cur.execute(f"SELECT COUNT(*) AS total FROM {FROM_CLAUSE} {where}", values)
                total = cur.fetchone()["total"]
                cur.execute(
                    f"SELECT {SELECT_COLUMNS} FROM {FROM_CLAUSE} {where} {order} LIMIT %s OFFSET %s",
                    values + [page_size, (page - 1) * page_size],
                )
                rows = cur.fetchall()
        except psycopg2.Error as e:
            logger.error(f"Tender search failed: {e}")
            raise StoreError("Failed to search tenders", original_error=e) from e

        return TenderPage(
            items=[_row_to_tender(row) for row in rows],
            total_count=total,
            page=page,
            page_size=page_size,
        )

    def count_tenders(self) -> int:
        try:
            with self.db_pool.transaction() as cur:
                cur.execute("SELECT COUNT(*) AS total FROM found_tenders")
                return cur.fetchone()["total"]
        except psycopg2.Error as e:
            logger.error(f"Counting tenders failed: {e}")
            raise StoreError("Failed to count tenders", original_error=e) from e

    def tender_stats(self) -> Dict[str, Any]:
        try:
            with self.db_pool.transaction() as cur:
                cur.execute("SELECT COUNT(*) AS total, MAX(saved_at) AS last_saved FROM found_tenders")
                row = cur.fetchone()
        except psycopg2.Error as e:
            logger.error(f"Loading tender stats failed: {e}")
            raise StoreError("Failed to load tender stats", original_error=e) from e
        return {
            "totalTenders": row["total"],
            "lastUpdated": row["last_saved"].isoformat() if row["last_saved"] else None,
        }
