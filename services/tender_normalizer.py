"""
Normalization of GosPlan purchase records into CanonicalTender

GosPlan serves 44-FZ and 223-FZ purchases from separate endpoints with
different field names for the customer. Each payload is first parsed into its
regime's raw record, then a per-regime normalizer maps it onto the common
CanonicalTender shape.
"""
import hashlib
import uuid
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Iterable, List, Optional

from services.models import (
    CanonicalTender,
    Fz223Record,
    Fz44Record,
    PURCHASE_NUMBER_MISSING,
    RawUpstreamRecord,
    REGIME_223,
    REGIME_44,
)
from utils.exceptions import MalformedResponseError

FZ44_LINK_TEMPLATE = "https://zakupki.gov.ru/epz/order/notice/ea44/view/common-info.html?regNumber={number}"
FZ223_LINK_TEMPLATE = "https://zakupki.gov.ru/epz/order/notice/notice223/common-info.html?regNumber={number}"

UNTITLED_TENDER = "Untitled tender"
DEFAULT_CURRENCY = "RUB"
TAX_ID_LABEL = "Tax ID"

REGIME_LABELS = {
    REGIME_44: "44-FZ",
    REGIME_223: "223-FZ",
}

_DATETIME_FORMATS = [
    "%Y-%m-%dT%H:%M:%S.%fZ",
    "%Y-%m-%dT%H:%M:%S.%f%z",
    "%Y-%m-%dT%H:%M:%S%z",
    "%Y-%m-%dT%H:%M:%SZ",
    "%Y-%m-%dT%H:%M:%S.%f",
    "%Y-%m-%dT%H:%M:%S",
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%d",
    "%d.%m.%Y %H:%M",
    "%d.%m.%Y",
    "%Y%m%d",
    "%Y%m%d%H%M%S",
]

# Integers above this are epoch milliseconds rather than seconds
_EPOCH_MILLIS_THRESHOLD = 10 ** 11

# Digit-only strings of these lengths are epoch seconds or milliseconds
_EPOCH_DIGIT_LENGTHS = (10, 13)


def _first(payload: Dict[str, Any], *keys: str) -> Any:
    for key in keys:
        value = payload.get(key)
        if value is not None and value != "":
            return value
    return None


def _clean_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, dict):
        value = _first(value, "full_name", "fullName", "name", "short_name", "shortName", "inn")
        if value is None:
            return None
    text = str(value).strip()
    return text or None


def _customer_list(value: Any) -> List[str]:
    if value is None:
        return []
    if not isinstance(value, (list, tuple)):
        value = [value]
    names = []
    for item in value:
        text = _clean_text(item)
        if text:
            names.append(text)
    return names


def parse_raw_record(payload: Dict[str, Any], regime: str) -> RawUpstreamRecord:
    """Build the regime-specific raw record from one upstream JSON object."""
    if not isinstance(payload, dict):
        raise MalformedResponseError(
            f"Expected a purchase object, got {type(payload).__name__}", regime=regime
        )

    common = dict(
        purchase_number=_clean_text(_first(payload, "purchase_number", "purchaseNumber", "reg_number")),
        object_info=_clean_text(_first(payload, "object_info", "objectInfo", "title")),
        published_at=_first(payload, "published_at", "publishedAt", "publish_date", "publishDate"),
        collecting_finished_at=_first(payload, "collecting_finished_at", "collectingFinishedAt"),
        submission_close_at=_first(payload, "submission_close_at", "submissionCloseAt"),
        max_price=_first(payload, "max_price", "maxPrice"),
        currency_code=_clean_text(_first(payload, "currency_code", "currencyCode", "currency")),
        region=_clean_text(_first(payload, "region", "region_code", "regionCode")),
        customer_inn=_clean_text(_first(payload, "customer_inn", "customerInn", "inn")),
        additional_info=_clean_text(_first(payload, "additional_info", "additionalInfo")),
    )

    if regime == REGIME_44:
        return Fz44Record(
            customers=_customer_list(payload.get("customers")),
            responsible=_clean_text(payload.get("responsible")),
            **common,
        )
    if regime == REGIME_223:
        return Fz223Record(
            customer=_clean_text(payload.get("customer")),
            placer=_clean_text(payload.get("placer")),
            **common,
        )
    raise ValueError(f"Unknown procurement regime: {regime!r}")


def parse_datetime(value: Any) -> Optional[datetime]:
    """
    Parse an upstream timestamp into an aware UTC datetime.

    Accepts ISO 8601 strings with or without offset, date-only strings,
    Russian-style dd.mm.yyyy dates and epoch seconds or milliseconds.
    Values without a timezone are taken as UTC. Unparseable input yields None.
    """
    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, (int, float)):
        seconds = value / 1000 if abs(value) >= _EPOCH_MILLIS_THRESHOLD else value
        try:
            return datetime.fromtimestamp(seconds, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    else:
        text = str(value).strip()
        if not text:
            return None
        digits = text.lstrip("-")
        if text.isascii() and digits.isdigit() and len(digits) in _EPOCH_DIGIT_LENGTHS:
            return parse_datetime(int(text))
        parsed = None
        for fmt in _DATETIME_FORMATS:
            try:
                parsed = datetime.strptime(text, fmt)
                break
            except ValueError:
                continue
        if parsed is None:
            try:
                parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
            except ValueError:
                return None

    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def parse_price(value: Any) -> Optional[Decimal]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, Decimal):
        price = value
    elif isinstance(value, (int, float)):
        price = Decimal(str(value))
    else:
        text = str(value).strip().replace("\xa0", "").replace(" ", "").replace(",", ".")
        if not text:
            return None
        try:
            price = Decimal(text)
        except InvalidOperation:
            return None
    if not price.is_finite():
        return None
    return price


def looks_like_tax_id(value: Optional[str]) -> bool:
    return bool(value) and value.isascii() and value.isdigit() and len(value) in (10, 12)


def resolve_customer(record: RawUpstreamRecord) -> Optional[str]:
    """Pick the customer value: customers list, customer, responsible, placer."""
    customers = getattr(record, "customers", None) or []
    candidates: Iterable[Optional[str]] = (
        customers[0] if customers else None,
        getattr(record, "customer", None),
        getattr(record, "responsible", None),
        getattr(record, "placer", None),
    )
    for candidate in candidates:
        if candidate and candidate.strip():
            return candidate.strip()
    return None


def _display_customer(customer: Optional[str]) -> Optional[str]:
    if looks_like_tax_id(customer):
        return f"{TAX_ID_LABEL} {customer}"
    return customer


def _format_price(price: Decimal) -> str:
    if price == price.to_integral_value():
        return f"{int(price):,}".replace(",", " ")
    return f"{price:,.2f}".replace(",", " ")


def build_title(record: RawUpstreamRecord, price: Optional[Decimal]) -> str:
    if record.object_info:
        return record.object_info
    if price is not None:
        currency = record.currency_code or DEFAULT_CURRENCY
        return f"{REGIME_LABELS[record.regime]} procurement, {_format_price(price)} {currency}"
    return UNTITLED_TENDER


def build_external_id(
    purchase_number: Optional[str],
    customer: Optional[str],
    published: Optional[datetime],
    title: Optional[str],
) -> str:
    """
    Dedup key for a purchase.

    The purchase number when there is one, otherwise a composite of the
    customer, publish time and an md5 prefix of the title built from whichever
    parts exist. Only a record with none of these gets a random identifier.
    """
    if purchase_number:
        return purchase_number

    parts = []
    if customer:
        parts.append(customer)
    if published is not None:
        parts.append(str(int(published.timestamp())))
    if title:
        parts.append(hashlib.md5(title.encode("utf-8")).hexdigest()[:16])
    if parts:
        return "_".join(parts)
    return uuid.uuid4().hex


def build_additional_info(region: Optional[str], tax_id: Optional[str]) -> Optional[str]:
    fragments = []
    if region:
        fragments.append(f"Region: {region}")
    if tax_id:
        fragments.append(f"{TAX_ID_LABEL}: {tax_id}")
    return ", ".join(fragments) or None


def _normalize(record: RawUpstreamRecord, link_template: str) -> CanonicalTender:
    customer = resolve_customer(record)
    published = parse_datetime(record.published_at)
    deadline = parse_datetime(record.collecting_finished_at)
    if deadline is None:
        deadline = parse_datetime(record.submission_close_at)
    price = parse_price(record.max_price)

    customer_inn = record.customer_inn
    if not customer_inn and looks_like_tax_id(customer):
        customer_inn = customer

    return CanonicalTender(
        external_id=build_external_id(record.purchase_number, customer, published, record.object_info),
        purchase_number=record.purchase_number or PURCHASE_NUMBER_MISSING,
        title=build_title(record, price),
        customer_name=_display_customer(customer),
        publish_date=published,
        direct_link=link_template.format(number=record.purchase_number) if record.purchase_number else None,
        application_deadline=deadline,
        max_price=price,
        region=record.region,
        customer_inn=customer_inn,
        additional_info=record.additional_info or build_additional_info(record.region, customer_inn),
        regime=record.regime,
    )


def normalize_fz44(record: Fz44Record) -> CanonicalTender:
    return _normalize(record, FZ44_LINK_TEMPLATE)


def normalize_fz223(record: Fz223Record) -> CanonicalTender:
    return _normalize(record, FZ223_LINK_TEMPLATE)


def normalize_record(record: RawUpstreamRecord) -> CanonicalTender:
    if isinstance(record, Fz44Record):
        return normalize_fz44(record)
    if isinstance(record, Fz223Record):
        return normalize_fz223(record)
    raise TypeError(f"Unsupported raw record type: {type(record).__name__}")
