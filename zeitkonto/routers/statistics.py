from datetime import date

from fastapi import APIRouter, Depends, Path, Query
from sqlalchemy.orm import Session

from zeitkonto.db import get_db
from zeitkonto.dependencies import get_overtime_service, require_user
from zeitkonto.schemas import MonthlyStatistics, OvertimeBalance, WeekData, WeeklyStatistics
from zeitkonto.services.overtime import OvertimeService
from zeitkonto.services.weeks import get_week_data

router = APIRouter(tags=["statistics"])


@router.get("/api/statistics/overtime", response_model=OvertimeBalance)
def get_overtime_balance(
    start_date: date | None = Query(default=None),
    end_date: date | None = Query(default=None),
    include_details: bool = Query(default=True),
    user_id: str = Depends(require_user),
    service: OvertimeService = Depends(get_overtime_service),
    db: Session = Depends(get_db),
) -> OvertimeBalance:
    return service.calculate_balance(
        db,
        user_id,
        start_date=start_date,
        end_date=end_date,
        include_details=include_details,
    )


@router.get("/api/statistics/weekly", response_model=WeeklyStatistics)
def get_weekly_statistics(
    year: int = Query(..., ge=1970, le=9999),
    week: int = Query(..., ge=1, le=53),
    user_id: str = Depends(require_user),
    service: OvertimeService = Depends(get_overtime_service),
    db: Session = Depends(get_db),
) -> WeeklyStatistics:
    return service.calculate_weekly_statistics(db, user_id, year, week)


@router.get("/api/statistics/monthly", response_model=MonthlyStatistics)
def get_monthly_statistics(
    year: int = Query(..., ge=1970, le=9999),
    month: int = Query(..., ge=1, le=12),
    user_id: str = Depends(require_user),
    service: OvertimeService = Depends(get_overtime_service),
    db: Session = Depends(get_db),
) -> MonthlyStatistics:
    return service.calculate_monthly_statistics(db, user_id, year, month)


@router.get("/api/time-entries/week/{year}/{week}", response_model=WeekData)
def get_week_view(
    year: int = Path(..., ge=1970, le=9999),
    week: int = Path(..., ge=1, le=53),
    user_id: str = Depends(require_user),
    service: OvertimeService = Depends(get_overtime_service),
    db: Session = Depends(get_db),
) -> WeekData:
    return get_week_data(db, service, user_id=user_id, year=year, week=week)
