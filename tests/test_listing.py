from datetime import datetime, timezone
from decimal import Decimal

from app.schemas.common import ListQuery, SortOption
from app.services import listing
from conftest import make_application


def _apps():
    return [
        make_application(
            client_name="John Doe",
            business_name="Doe Bakery Ltd",
            status="under-review",
            stage="review",
            amount=Decimal("50000.00"),
            created_at=datetime(2026, 1, 3, tzinfo=timezone.utc),
        ),
        make_application(
            client_name="Jane Smith",
            business_name="Smith Tailoring",
            status="under-review",
            stage="approval-1",
            amount=Decimal("25000.00"),
            created_at=datetime(2026, 1, 5, tzinfo=timezone.utc),
        ),
        make_application(
            client_name="Mary Doe",
            business_name="Green Farms",
            status="approved",
            stage="disbursement",
            amount=Decimal("75000.00"),
            created_at=datetime(2026, 1, 1, tzinfo=timezone.utc),
        ),
    ]


def test_search_and_status_filter_combine():
    apps = _apps()
    result = listing.apply_query(
        apps,
        ListQuery(search="doe", filter_value="under-review"),
        listing.APPLICATION_LISTING,
    )
    assert [app.client_name for app in result] == ["John Doe"]


def test_search_is_case_insensitive_and_spans_fields():
    apps = _apps()
    by_business = listing.filter_records(
        apps, search="TAILOR", search_fields=listing.APPLICATION_LISTING.search_fields
    )
    assert [app.client_name for app in by_business] == ["Jane Smith"]

    by_id = listing.filter_records(
        apps, search=str(apps[2].id)[:8], search_fields=listing.APPLICATION_LISTING.search_fields
    )
    assert apps[2] in by_id


def test_all_filter_and_blank_search_keep_everything():
    apps = _apps()
    result = listing.apply_query(apps, ListQuery(search="  ", filter_value="all"), listing.APPLICATION_LISTING)
    assert result == apps


def test_sort_options():
    apps = _apps()
    by_amount = listing.sort_records(apps, SortOption.AMOUNT_DESC, listing.APPLICATION_LISTING)
    assert [app.amount for app in by_amount] == [
        Decimal("75000.00"),
        Decimal("50000.00"),
        Decimal("25000.00"),
    ]
    newest_first = listing.sort_records(apps, "date-desc", listing.APPLICATION_LISTING)
    assert [app.client_name for app in newest_first] == ["Jane Smith", "John Doe", "Mary Doe"]
    by_name = listing.sort_records(apps, "name", listing.APPLICATION_LISTING)
    assert [app.client_name for app in by_name] == ["Jane Smith", "John Doe", "Mary Doe"]


def test_records_without_sort_field_go_last():
    rows = [
        {"name": "b", "amount": None},
        {"name": "a", "amount": Decimal("5")},
        {"name": "c", "amount": Decimal("10")},
    ]
    spec = listing.ListingSpec(search_fields=("name",), amount_field="amount")
    assert [row["name"] for row in listing.sort_records(rows, "amount-asc", spec)] == ["a", "c", "b"]
    assert [row["name"] for row in listing.sort_records(rows, "amount-desc", spec)] == ["c", "a", "b"]


def test_input_is_not_mutated():
    apps = _apps()
    snapshot = list(apps)
    listing.apply_query(apps, ListQuery(sort=SortOption.AMOUNT_ASC), listing.APPLICATION_LISTING)
    assert apps == snapshot


def test_count_by():
    assert listing.count_by(_apps(), "status") == {"under-review": 2, "approved": 1}
