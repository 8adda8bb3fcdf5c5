import asyncio
from uuid import uuid4

from app.models.training_course import TrainingCourse
from app.services import training
from conftest import FakeAsyncSession, FakeResult, entity_handler, make_application


def _course(title: str, category: str = "Finance") -> TrainingCourse:
    return TrainingCourse(
        id=uuid4(),
        title=title,
        provider="SME Academy",
        duration="4 weeks",
        description="",
        category=category,
    )


def test_recommended_courses_keep_recommendation_order():
    bookkeeping = _course("Bookkeeping Basics")
    cash_flow = _course("Cash Flow Management")
    missing_id = uuid4()
    application = make_application(
        status="approved",
        stage="disbursement",
        recommended_course_ids=[str(cash_flow.id), str(missing_id), str(bookkeeping.id)],
    )
    db = FakeAsyncSession().on_execute(
        entity_handler(TrainingCourse, FakeResult(items=[bookkeeping, cash_flow]))
    )

    courses = asyncio.run(training.recommended_for(db, application))

    assert [course.title for course in courses] == ["Cash Flow Management", "Bookkeeping Basics"]


def test_no_recommendations_skips_query():
    application = make_application(recommended_course_ids=[])
    assert asyncio.run(training.recommended_for(FakeAsyncSession(), application)) == []


def test_create_course_endpoint(client, fake_db, override_deps, admin_principal):
    override_deps(admin_principal)
    response = client.post(
        "/api/v1/training/courses",
        json={
            "title": "Marketing for Small Business",
            "provider": "SME Academy",
            "duration": "3 weeks",
            "category": "Marketing",
        },
    )
    assert response.status_code == 201
    data = response.json()["data"]
    assert data["title"] == "Marketing for Small Business"
    assert data["description"] == ""
    assert fake_db.committed is True


def test_financier_cannot_add_courses(client, override_deps, financier_principal):
    override_deps(financier_principal)
    response = client.post(
        "/api/v1/training/courses",
        json={"title": "x", "provider": "y", "duration": "1 week", "category": "z"},
    )
    assert response.status_code == 403
