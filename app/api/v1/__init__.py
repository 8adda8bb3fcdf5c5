from fastapi import APIRouter

from app.api.v1.routers import (
    analytics,
    claims,
    clients,
    dashboard,
    documents,
    expenditure,
    financiers,
    health,
    loan_applications,
    payments,
    system,
    training,
    users,
)

api_router = APIRouter()
api_router.include_router(health.router)
api_router.include_router(dashboard.router)
api_router.include_router(loan_applications.router)
api_router.include_router(documents.router)
api_router.include_router(expenditure.router)
api_router.include_router(claims.router)
api_router.include_router(clients.router)
api_router.include_router(payments.router)
api_router.include_router(users.router)
api_router.include_router(financiers.router)
api_router.include_router(system.router)
api_router.include_router(analytics.router)
api_router.include_router(training.router)

__all__ = ["api_router"]
