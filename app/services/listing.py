"""Search / filter / sort helpers shared by every table view.

All helpers are pure: they never mutate their input and return a new list.
Records may be ORM rows, DTOs or plain dicts.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from typing import Any, Callable, Iterable, Sequence, TypeVar

from app.schemas.common import ListQuery, SortOption


T = TypeVar("T")

ALL = "all"


@dataclass(frozen=True)
class ListingSpec:
    """Which fields of an entity the search, filter and sort keys read."""

    search_fields: tuple[str, ...]
    filter_field: str | None = None
    date_field: str | None = None
    amount_field: str | None = None
    name_field: str | None = None


def _read(record: Any, field: str) -> Any:
    if isinstance(record, dict):
        return record.get(field)
    return getattr(record, field, None)


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, Enum):
        value = value.value
    return str(value)


def matches_search(record: Any, term: str | None, fields: Sequence[str]) -> bool:
    if not term:
        return True
    needle = term.strip().lower()
    if not needle:
        return True
    return any(needle in _as_text(_read(record, field)).lower() for field in fields)


def matches_filter(record: Any, value: str | None, field: str | None) -> bool:
    if field is None or value is None or value == ALL:
        return True
    expected = value.value if isinstance(value, Enum) else value
    return _as_text(_read(record, field)) == str(expected)


def filter_records(
    records: Iterable[T],
    *,
    search: str | None = None,
    search_fields: Sequence[str] = (),
    filter_value: str | None = None,
    filter_field: str | None = None,
) -> list[T]:
    return [
        record
        for record in records
        if matches_search(record, search, search_fields)
        and matches_filter(record, filter_value, filter_field)
    ]


def _sort_value(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.timestamp()
    if isinstance(value, date):
        return value.toordinal()
    if isinstance(value, str):
        return value.lower()
    return value


def _keyed(field: str) -> Callable[[Any], Any]:
    def key(record: Any) -> Any:
        return _sort_value(_read(record, field))

    return key


def sort_records(records: Iterable[T], sort: SortOption | str | None, spec: ListingSpec) -> list[T]:
    items = list(records)
    if sort is None:
        return items
    option = SortOption(sort)
    if option in (SortOption.DATE_ASC, SortOption.DATE_DESC):
        field = spec.date_field
    elif option in (SortOption.AMOUNT_ASC, SortOption.AMOUNT_DESC):
        field = spec.amount_field
    else:
        field = spec.name_field
    if field is None:
        return items

    descending = option in (SortOption.DATE_DESC, SortOption.AMOUNT_DESC)
    # records without the sort field always go last
    present = [record for record in items if _read(record, field) is not None]
    missing = [record for record in items if _read(record, field) is None]
    ordered = sorted(present, key=_keyed(field), reverse=descending)
    return ordered + missing


def apply_query(records: Iterable[T], query: ListQuery | None, spec: ListingSpec) -> list[T]:
    """Filter then sort."""
    if query is None:
        return list(records)
    filtered = filter_records(
        records,
        search=query.search,
        search_fields=spec.search_fields,
        filter_value=query.filter_value,
        filter_field=spec.filter_field,
    )
    return sort_records(filtered, query.sort, spec)


def count_by(records: Iterable[Any], field: str) -> dict[str, int]:
    counts: dict[str, int] = {}
    for record in records:
        key = _as_text(_read(record, field))
        counts[key] = counts.get(key, 0) + 1
    return counts


APPLICATION_LISTING = ListingSpec(
    search_fields=("client_name", "business_name", "id"),
    filter_field="status",
    date_field="created_at",
    amount_field="amount",
    name_field="client_name",
)

DOCUMENT_LISTING = ListingSpec(
    search_fields=("name",),
    filter_field="status",
    date_field="uploaded_at",
    name_field="name",
)

CLAIM_LISTING = ListingSpec(
    search_fields=("description", "id"),
    filter_field="status",
    date_field="submitted_at",
    amount_field="amount",
    name_field="description",
)

PAYMENT_LISTING = ListingSpec(
    search_fields=("reference_number", "id", "loan_application_id"),
    filter_field="status",
    date_field="payment_date",
    amount_field="amount",
    name_field="reference_number",
)

USER_LISTING = ListingSpec(
    search_fields=("name", "email"),
    filter_field="role",
    date_field="created_at",
    name_field="name",
)

FINANCIER_LISTING = ListingSpec(
    search_fields=("name", "email", "contact_person"),
    filter_field="status",
    date_field="created_at",
    amount_field="loan_limit",
    name_field="name",
)

SETTING_LISTING = ListingSpec(
    search_fields=("key", "description"),
    filter_field="category",
    date_field="updated_at",
    name_field="key",
)

CLIENT_LISTING = ListingSpec(
    search_fields=("name", "business_name"),
    filter_field="status",
    date_field="last_application_at",
    amount_field="total_amount",
    name_field="name",
)
