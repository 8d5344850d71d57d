"""
Saved search queries
"""
from typing import Any, Dict, List, Optional, Protocol

import psycopg2

from services.models import SavedQuery
from utils.clock import SystemClock
from utils.exceptions import StoreError, ValidationError
from utils.logging_config import get_logger

logger = get_logger(__name__, "app")

QUERY_COLUMNS = "id, keyword, category, is_active, created_at"


class QueryCatalog(Protocol):
    def list_active_queries(self) -> List[SavedQuery]: ...


def _row_to_query(row: Dict[str, Any]) -> SavedQuery:
    return SavedQuery(
        id=row["id"],
        keyword=row["keyword"],
        category=row.get("category"),
        is_active=row["is_active"],
        created_at=row.get("created_at"),
    )


def _clean_keyword(keyword: Optional[str]) -> str:
    cleaned = (keyword or "").strip()
    if not cleaned:
        raise ValidationError("Keyword must not be empty")
    return cleaned


def _clean_category(category: Optional[str]) -> Optional[str]:
    if category is None:
        return None
    return category.strip() or None


class PostgresQueryCatalog:
    """search_queries table access over a DatabasePool."""

    def __init__(self, db_pool, clock=None):
        self.db_pool = db_pool
        self.clock = clock or SystemClock()

    def _fetch(self, sql: str, params: tuple = (), action: str = "query saved searches") -> List[Dict[str, Any]]:
        try:
            with self.db_pool.transaction() as cur:
                cur.execute(sql, params)
                return cur.fetchall() if cur.description else []
        except psycopg2.Error as e:
            logger.error(f"Failed to {action}: {e}")
            raise StoreError(f"Failed to {action}", original_error=e) from e

    def list_active_queries(self) -> List[SavedQuery]:
        rows = self._fetch(
            f"SELECT {QUERY_COLUMNS} FROM search_queries WHERE is_active ORDER BY keyword, id",
            action="list active queries",
        )
        return [_row_to_query(row) for row in rows]

    def list_queries(self) -> List[SavedQuery]:
        rows = self._fetch(
            f"SELECT {QUERY_COLUMNS} FROM search_queries ORDER BY created_at DESC, id DESC",
            action="list queries",
        )
        return [_row_to_query(row) for row in rows]

    def get_query(self, query_id: int) -> Optional[SavedQuery]:
        rows = self._fetch(
            f"SELECT {QUERY_COLUMNS} FROM search_queries WHERE id = %s",
            (query_id,),
            action=f"load query {query_id}",
        )
        return _row_to_query(rows[0]) if rows else None

    def create_query(self, keyword: str, category: Optional[str] = None, is_active: bool = True) -> SavedQuery:
        rows = self._fetch(
            f"INSERT INTO search_queries (keyword, category, is_active, created_at) "
            f"VALUES (%s, %s, %s, %s) RETURNING {QUERY_COLUMNS}",
            (_clean_keyword(keyword), _clean_category(category), is_active, self.clock.now()),
            action="create query",
        )
        query = _row_to_query(rows[0])
        logger.info(f"Created search query {query.id} ('{query.keyword}')")
        return query

    def update_query(
        self,
        query_id: int,
        keyword: Optional[str] = None,
        category: Optional[str] = None,
        is_active: Optional[bool] = None,
    ) -> Optional[SavedQuery]:
        """Apply the given fields; returns None when the query does not exist."""
        assignments = []
        params: List[Any] = []
        if keyword is not None:
            assignments.append("keyword = %s")
            params.append(_clean_keyword(keyword))
        if category is not None:
            assignments.append("category = %s")
            params.append(_clean_category(category))
        if is_active is not None:
            assignments.append("is_active = %s")
            params.append(is_active)

        if not assignments:
            return self.get_query(query_id)

        params.append(query_id)
        rows = self._fetch(
            f"UPDATE search_queries SET {', '.join(assignments)} WHERE id = %s RETURNING {QUERY_COLUMNS}",
            tuple(params),
            action=f"update query {query_id}",
        )
        return _row_to_query(rows[0]) if rows else None

    def delete_query(self, query_id: int) -> bool:
        rows = self._fetch(
            "DELETE FROM search_queries WHERE id = %s RETURNING id",
            (query_id,),
            action=f"delete query {query_id}",
        )
        if rows:
            logger.info(f"Deleted search query {query_id}")
        return bool(rows)
