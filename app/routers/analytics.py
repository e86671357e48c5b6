from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session
from typing import Optional

from app.database import get_db
from app.models.user import User
from app.services.analytics_service import AnalyticsService, AnalyticsFilters, GROUP_BY_CHOICES
from app.utils.auth import get_current_user
from app.utils.dates import parse_date_param
from app.utils.permissions import resolve_analytics_user

router = APIRouter()


def analytics_filters(
    start_date: Optional[str] = Query(None, alias="startDate"),
    end_date: Optional[str] = Query(None, alias="endDate"),
    group_by: str = Query("day", alias="groupBy"),
    user_id: Optional[int] = Query(None, alias="userId"),
    limit: int = Query(7, ge=1, le=100),
    current_user: User = Depends(get_current_user),
) -> AnalyticsFilters:
    """Build query filters, pinning users without the capability to their own tasks"""
    if group_by not in GROUP_BY_CHOICES:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="groupBy must be 'day' or 'week'",
        )
    start = parse_date_param(start_date, "startDate")
    end = parse_date_param(end_date, "endDate", end_of_day=True)
    if start and end and start > end:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="startDate must be before endDate",
        )
    return AnalyticsFilters(
        user_id=resolve_analytics_user(current_user, user_id),
        start_date=start,
        end_date=end,
        group_by=group_by,
        limit=limit,
    )


@router.get("/overview")
def overview(filters: AnalyticsFilters = Depends(analytics_filters), db: Session = Depends(get_db)):
    return {"success": True, "data": AnalyticsService(db, filters).overview()}


@router.get("/completion-trends")
def completion_trends(filters: AnalyticsFilters = Depends(analytics_filters), db: Session = Depends(get_db)):
    return {"success": True, "data": AnalyticsService(db, filters).completion_trends()}


@router.get("/productivity")
def productivity(filters: AnalyticsFilters = Depends(analytics_filters), db: Session = Depends(get_db)):
    return {"success": True, "data": AnalyticsService(db, filters).productivity()}


@router.get("/time-analysis")
def time_analysis(filters: AnalyticsFilters = Depends(analytics_filters), db: Session = Depends(get_db)):
    return {"success": True, "data": AnalyticsService(db, filters).time_analysis()}


@router.get("/best-days")
def best_days(filters: AnalyticsFilters = Depends(analytics_filters), db: Session = Depends(get_db)):
    return {"success": True, "data": AnalyticsService(db, filters).best_days()}
