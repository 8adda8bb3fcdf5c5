"""Idempotent demo-data seeder, run on startup when SEED_DEMO_DATA is true."""

import asyncio
import logging
import uuid
from datetime import date, datetime, timezone
from decimal import Decimal

from sqlalchemy import select

from app.db.session import AsyncSessionLocal
from app.models import (
    Document,
    ExpenditureItem,
    ExpenseClaim,
    Financier,
    LoanApplication,
    PaymentEntry,
    SystemSetting,
    TrainingCourse,
    User,
)
from app.services.audit import record_audit_log

logger = logging.getLogger(__name__)

_NAMESPACE = uuid.UUID("6f1c1d1e-4a8b-4f0e-9a55-1f6f3c2b7d10")


def demo_id(label: str) -> uuid.UUID:
    return uuid.uuid5(_NAMESPACE, label)


def _at(year: int, month: int, day: int) -> datetime:
    return datetime(year, month, day, tzinfo=timezone.utc)


def _users() -> list[User]:
    return [
        User(id=demo_id("user-1"), email="john.client@example.com", name="John Doe",
             role="client", is_active=True, created_at=_at(2024, 1, 15)),
        User(id=demo_id("user-2"), email="sarah.financier@example.com", name="Sarah Wilson",
             role="financier", is_active=True, created_at=_at(2024, 1, 10)),
        User(id=demo_id("user-3"), email="admin@loanplatform.com", name="Admin User",
             role="admin", is_active=True, created_at=_at(2024, 1, 1)),
    ]


def _business_profile() -> dict:
    return dict(
        business_name="Doe Trading Ltd",
        business_type="Retail",
        years_in_business=5,
        monthly_revenue=Decimal("18000.00"),
        monthly_expenses=Decimal("12000.00"),
        existing_debt=Decimal("5000.00"),
        contact_person="John Doe",
        phone_number="+1 555 010 0100",
        email="john.client@example.com",
        business_address="12 Market Street, Springfield",
    )


def _applications() -> list[LoanApplication]:
    client_id = demo_id("user-1")
    return [
        LoanApplication(
            id=demo_id("loan-001"), client_id=client_id, client_name="John Doe",
            kyc_number="KYC123456789", amount=Decimal("50000.00"), purpose="Business expansion",
            status="under-review", stage="review", interest_rate=Decimal("8.5"), term_months=24,
            reviewed_by="Sarah Wilson", approved_by=[], recommended_course_ids=[],
            submitted_at=_at(2024, 1, 20), created_at=_at(2024, 1, 20), updated_at=_at(2024, 1, 22),
            **_business_profile(),
        ),
        LoanApplication(
            id=demo_id("loan-002"), client_id=client_id, client_name="John Doe",
            kyc_number="KYC123456789", amount=Decimal("25000.00"), purpose="Equipment purchase",
            status="approved", stage="disbursement", interest_rate=Decimal("7.5"), term_months=18,
            reviewed_by="Sarah Wilson", approved_by=["Sarah Wilson", "Mike Johnson"],
            recommended_course_ids=[str(demo_id("course-001"))],
            submitted_at=_at(2024, 1, 10), created_at=_at(2024, 1, 10), updated_at=_at(2024, 1, 25),
            **_business_profile(),
        ),
    ]


def _documents() -> list[Document]:
    return [
        Document(id=demo_id("doc-001"), loan_application_id=demo_id("loan-001"),
                 name="Business Plan.pdf", document_type="business-plan",
                 url="/documents/business-plan.pdf", status="approved",
                 uploaded_by="John Doe", uploaded_by_id=demo_id("user-1"),
                 uploaded_at=_at(2024, 1, 20), reviewed_at=_at(2024, 1, 22), reviewed_by="Sarah Wilson"),
        Document(id=demo_id("doc-002"), loan_application_id=demo_id("loan-001"),
                 name="Financial Projections.xlsx", document_type="financial-projections",
                 url="/documents/financial-projections.xlsx", status="pending",
                 uploaded_by="John Doe", uploaded_by_id=demo_id("user-1"), uploaded_at=_at(2024, 1, 21)),
        Document(id=demo_id("doc-003"), expense_claim_id=demo_id("claim-001"),
                 name="Invoice-001.pdf", document_type="other", url="/documents/invoice-001.pdf",
                 status="pending", uploaded_by="John Doe", uploaded_by_id=demo_id("user-1"),
                 uploaded_at=_at(2024, 1, 25)),
    ]


def _expenditure() -> list[ExpenditureItem]:
    rows = [
        ("exp-001", "Office Equipment", "10000", "3500", "claimed"),
        ("exp-002", "Marketing & Advertising", "5000", "2000", "available"),
        ("exp-003", "Staff Training", "3000", "0", "available"),
    ]
    items = []
    for label, line_item, allocated, spent, status in rows:
        allocated_amount = Decimal(allocated)
        spent_amount = Decimal(spent)
        items.append(
            ExpenditureItem(
                id=demo_id(label), loan_application_id=demo_id("loan-002"), line_item=line_item,
                description="", allocated_amount=allocated_amount, spent_amount=spent_amount,
                remaining_amount=allocated_amount - spent_amount, status=status,
                created_at=_at(2024, 1, 25), updated_at=_at(2024, 1, 25),
            )
        )
    return items


def _claims() -> list[ExpenseClaim]:
    return [
        ExpenseClaim(id=demo_id("claim-001"), expenditure_item_id=demo_id("exp-001"),
                     submitted_by_id=demo_id("user-1"), amount=Decimal("1500.00"),
                     description="Purchase of office chairs and desks", payment_type="bank-transfer",
                     status="pending", cash_ratio_warning=False, submitted_at=_at(2024, 1, 25)),
    ]


def _payments() -> list[PaymentEntry]:
    return [
        PaymentEntry(id=demo_id("pay-001"), loan_application_id=demo_id("loan-002"),
                     amount=Decimal("25000.00"), reference_number="REF123456789", status="confirmed",
                     payment_date=date(2024, 1, 26), confirmed_at=_at(2024, 1, 26),
                     confirmed_by="Admin User", created_at=_at(2024, 1, 26)),
        PaymentEntry(id=demo_id("pay-002"), loan_application_id=demo_id("loan-001"),
                     amount=Decimal("50000.00"), reference_number="REF987654321", status="pending",
                     payment_date=date(2024, 1, 27), created_at=_at(2024, 1, 27)),
    ]


def _courses() -> list[TrainingCourse]:
    return [
        TrainingCourse(id=demo_id("course-001"), title="Financial Management for Small Business",
                       provider="Business Academy", duration="4 weeks", category="Finance",
                       description="Learn essential financial management skills for running a successful business."),
        TrainingCourse(id=demo_id("course-002"), title="Digital Marketing Fundamentals",
                       provider="Marketing Institute", duration="6 weeks", category="Marketing",
                       description="Master the basics of digital marketing to grow your business online."),
        TrainingCourse(id=demo_id("course-003"), title="Leadership and Team Management",
                       provider="Leadership Center", duration="3 weeks", category="Management",
                       description="Develop leadership skills to effectively manage and motivate your team."),
    ]


def _financiers() -> list[Financier]:
    return [
        Financier(id=demo_id("fin-001"), name="First Capital Finance", email="loans@firstcapital.example.com",
                  contact_person="Sarah Wilson", phone="+1 555 020 0200",
                  address="200 Finance Avenue, Springfield", registration_number="FIN-2019-0042",
                  status="active", loan_limit=Decimal("1000000.00"), interest_rate_min=Decimal("6.5"),
                  interest_rate_max=Decimal("12.0"), specializations=["SME", "Equipment"]),
        Financier(id=demo_id("fin-002"), name="Growth Partners Bank", email="sme@growthpartners.example.com",
                  contact_person="Mike Johnson", phone="+1 555 030 0300",
                  address="15 Commerce Road, Shelbyville", registration_number="FIN-2020-0117",
                  status="active", loan_limit=Decimal("500000.00"), interest_rate_min=Decimal("7.0"),
                  interest_rate_max=Decimal("14.0"), specializations=["Retail", "Agriculture"]),
    ]


def _settings() -> list[SystemSetting]:
    rows = [
        ("general", "platform_name", "Loan Platform", "Display name of the platform", "string"),
        ("general", "max_loan_amount", "1000000", "Upper bound for a single application", "number"),
        ("security", "session_timeout_minutes", "30", "Idle timeout for dashboard sessions", "number"),
        ("notifications", "email_notifications_enabled", "true", "Send status change emails", "boolean"),
        ("integrations", "document_storage", '{"provider": "local"}', "Document storage backend", "json"),
    ]
    return [
        SystemSetting(id=demo_id(f"setting-{key}"), category=category, key=key, value=value,
                      description=description, value_type=value_type, updated_by="system")
        for category, key, value, description, value_type in rows
    ]


async def init_db() -> None:
    """Seed the demo dataset unless the demo admin already exists."""
    async with AsyncSessionLocal() as session:
        existing = await session.execute(select(User.id).where(User.id == demo_id("user-3")))
        if existing.first() is not None:
            logger.info("Demo data already present; skipping seed")
            return

        logger.info("Seeding demo data")
        for group in (_users(), _courses(), _financiers(), _settings(), _applications()):
            session.add_all(group)
        await session.flush()
        for group in (_expenditure(), _payments()):
            session.add_all(group)
        await session.flush()
        session.add_all(_claims())
        await session.flush()
        session.add_all(_documents())
        record_audit_log(
            session,
            None,
            action="demo_data.seeded",
            resource_type="system",
            resource_id="demo",
        )
        await session.commit()
        logger.info("Demo data seeded")


if __name__ == "__main__":
    asyncio.run(init_db())
