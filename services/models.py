"""
Domain records shared by the ingestion pipeline, the store and the API
"""
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional, Union

REGIME_44 = "44"
REGIME_223 = "223"
REGIMES = (REGIME_44, REGIME_223)

PURCHASE_NUMBER_MISSING = "N/A"


@dataclass
class SavedQuery:
    id: int
    keyword: str
    category: Optional[str] = None
    is_active: bool = True
    created_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "keyword": self.keyword,
            "category": self.category,
            "isActive": self.is_active,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
        }


@dataclass
class SearchFilters:
    """Optional narrowing of an upstream search."""
    deadline_from: Optional[datetime] = None
    deadline_to: Optional[datetime] = None
    min_price: Optional[Decimal] = None
    max_price: Optional[Decimal] = None
    region: Optional[str] = None
    limit: int = 100


@dataclass
class _RawRecordBase:
    """Fields both procurement regimes publish under the same names."""
    purchase_number: Optional[str] = None
    object_info: Optional[str] = None
    published_at: Any = None
    collecting_finished_at: Any = None
    submission_close_at: Any = None
    max_price: Any = None
    currency_code: Optional[str] = None
    region: Optional[str] = None
    customer_inn: Optional[str] = None
    additional_info: Optional[str] = None


@dataclass
class Fz44Record(_RawRecordBase):
    """A purchase from the 44-FZ endpoint."""
    customers: List[str] = field(default_factory=list)
    responsible: Optional[str] = None

    regime = REGIME_44


@dataclass
class Fz223Record(_RawRecordBase):
    """A purchase from the 223-FZ endpoint."""
    customer: Optional[str] = None
    placer: Optional[str] = None

    regime = REGIME_223


RawUpstreamRecord = Union[Fz44Record, Fz223Record]


@dataclass
class CanonicalTender:
    external_id: str
    purchase_number: str
    title: str
    customer_name: Optional[str] = None
    publish_date: Optional[datetime] = None
    direct_link: Optional[str] = None
    query_id: Optional[int] = None
    saved_at: Optional[datetime] = None
    application_deadline: Optional[datetime] = None
    max_price: Optional[Decimal] = None
    region: Optional[str] = None
    customer_inn: Optional[str] = None
    additional_info: Optional[str] = None
    regime: Optional[str] = None


@dataclass
class StoredTender(CanonicalTender):
    id: Optional[int] = None
    query_keyword: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "externalId": self.external_id,
            "purchaseNumber": self.purchase_number,
            "title": self.title,
            "customerName": self.customer_name,
            "publishDate": _iso(self.publish_date),
            "directLink": self.direct_link,
            "queryId": self.query_id,
            "queryKeyword": self.query_keyword,
            "savedAt": _iso(self.saved_at),
            "applicationDeadline": _iso(self.application_deadline),
            "maxPrice": float(self.max_price) if self.max_price is not None else None,
            "region": self.region,
            "customerInn": self.customer_inn,
            "additionalInfo": self.additional_info,
        }


@dataclass
class TenderSearchParams:
    page: int = 1
    page_size: int = 20
    search: Optional[str] = None
    query_id: Optional[int] = None
    saved_from: Optional[datetime] = None
    saved_to: Optional[datetime] = None
    deadline_from: Optional[datetime] = None
    deadline_to: Optional[datetime] = None
    show_expired: bool = False
    sort_by: str = "savedAt"
    sort_descending: bool = True


@dataclass
class TenderPage:
    items: List[StoredTender]
    total_count: int
    page: int
    page_size: int

    @property
    def total_pages(self) -> int:
        if self.page_size <= 0:
            return 0
        return (self.total_count + self.page_size - 1) // self.page_size

    def to_dict(self) -> Dict[str, Any]:
        return {
            "items": [item.to_dict() for item in self.items],
            "totalCount": self.total_count,
            "page": self.page,
            "pageSize": self.page_size,
            "totalPages": self.total_pages,
        }


@dataclass
class SearchCycleResult:
    found: int = 0
    added: int = 0
    queries_processed: int = 0
    failed_query_ids: List[int] = field(default_factory=list)


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None
