from datetime import date
from typing import Literal

from fastapi import APIRouter, Depends, Query, Response, status
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.orm import Session

from zeitkonto.db import get_db
from zeitkonto.dependencies import require_user
from zeitkonto.errors import ValidationError
from zeitkonto.schemas import (
    BulkReviewRequest,
    ProblemFilters,
    ProblemReport,
    ProblemType,
    ReviewedDayRead,
    ReviewRequest,
)
from zeitkonto.services.problems import (
    find_problematic_days,
    list_reviewed_days,
    mark_as_reviewed,
    mark_multiple_as_reviewed,
    unreview_day,
)

router = APIRouter(tags=["problems"])


@router.get("/api/problems", response_model=ProblemReport)
def get_problems(
    start_date: date | None = Query(default=None),
    end_date: date | None = Query(default=None),
    problem_type: ProblemType | Literal["all"] = Query(default="all"),
    review_status: Literal["reviewed", "unreviewed", "all"] = Query(default="all"),
    sort_by: Literal["date_asc", "date_desc", "type"] | None = Query(default=None),
    user_id: str = Depends(require_user),
    db: Session = Depends(get_db),
) -> ProblemReport:
    try:
        filters = ProblemFilters(
            start_date=start_date,
            end_date=end_date,
            problem_type=problem_type,
            review_status=review_status,
            sort_by=sort_by,
        )
    except PydanticValidationError as exc:
        raise ValidationError("INVALID_FILTERS", "start_date and end_date must be provided together.") from exc
    if filters.start_date is not None and filters.end_date is not None and filters.start_date > filters.end_date:
        raise ValidationError("INVALID_DATE_RANGE", "start_date must not be after end_date.")
    return find_problematic_days(db, user_id, filters)


@router.post("/api/problems/review", response_model=ReviewedDayRead)
def review_day(
    payload: ReviewRequest,
    user_id: str = Depends(require_user),
    db: Session = Depends(get_db),
) -> ReviewedDayRead:
    return mark_as_reviewed(db, user_id, payload.day_date, payload.reason)


@router.put("/api/problems/review")
def review_days(
    payload: BulkReviewRequest,
    user_id: str = Depends(require_user),
    db: Session = Depends(get_db),
) -> dict[str, int]:
    return {"created": mark_multiple_as_reviewed(db, user_id, payload.dates, payload.reason)}


@router.get("/api/problems/review", response_model=list[ReviewedDayRead])
def get_reviewed_days(
    start_date: date | None = Query(default=None),
    end_date: date | None = Query(default=None),
    user_id: str = Depends(require_user),
    db: Session = Depends(get_db),
) -> list[ReviewedDayRead]:
    return list_reviewed_days(db, user_id, start_date, end_date)


@router.delete("/api/problems/review", status_code=status.HTTP_204_NO_CONTENT)
def remove_review(
    day_date: date = Query(...),
    user_id: str = Depends(require_user),
    db: Session = Depends(get_db),
) -> Response:
    unreview_day(db, user_id, day_date)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
