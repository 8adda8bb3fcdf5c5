from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.api import deps
from app.core.permissions import PermissionCode
from app.db.session import get_db
from app.schemas.analytics import PortfolioAnalytics
from app.services import analytics

router = APIRouter(prefix="/admin/analytics", tags=["analytics"])


@router.get("", response_model=PortfolioAnalytics, summary="Portfolio analytics")
async def portfolio_analytics(
    months: int = Query(default=6, ge=1, le=24),
    _: deps.Principal = Depends(deps.require_permission(PermissionCode.ANALYTICS_VIEW)),
    db: AsyncSession = Depends(get_db),
) -> PortfolioAnalytics:
    return await analytics.build_portfolio_analytics(db, months=months)
