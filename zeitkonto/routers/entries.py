from datetime import date

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.orm import Session

from zeitkonto.db import get_db
from zeitkonto.dependencies import get_result_cache, require_user
from zeitkonto.errors import ValidationError
from zeitkonto.models import EntryType, TimeEntry
from zeitkonto.schemas import (
    AdjustmentRead,
    AdjustmentUpsertRequest,
    BulkFillRequest,
    BulkFillResponse,
    TimeEntryBulkDeleteRequest,
    TimeEntryBulkDeleteResponse,
    TimeEntryCreate,
    TimeEntryRead,
    TimeEntryUpdate,
)
from zeitkonto.services.bulk_fill import fill_workdays, preview_bulk_fill
from zeitkonto.services.cache import ResultCache
from zeitkonto.services.entries import (
    create_entry,
    delete_adjustment_entry,
    delete_entries,
    delete_entry,
    find_adjustment_entry,
    find_entries,
    update_entry,
    upsert_adjustment_entry,
)

router = APIRouter(tags=["time-entries"])


def _to_adjustment_read(entry: TimeEntry) -> AdjustmentRead:
    return AdjustmentRead(
        id=entry.id,
        day_date=entry.day_date,
        hours=float(entry.duration),
        description=entry.description,
    )


@router.get("/api/time-entries", response_model=list[TimeEntryRead])
def list_time_entries(
    start_date: date = Query(...),
    end_date: date = Query(...),
    entry_type: EntryType | None = Query(default=None, alias="type"),
    user_id: str = Depends(require_user),
    db: Session = Depends(get_db),
) -> list[TimeEntryRead]:
    if start_date > end_date:
        raise ValidationError("INVALID_DATE_RANGE", "start_date must not be after end_date.")
    return find_entries(db, user_id, start_date=start_date, end_date=end_date, entry_type=entry_type)


@router.post("/api/time-entries", response_model=TimeEntryRead, status_code=status.HTTP_201_CREATED)
def create_time_entry(
    payload: TimeEntryCreate,
    user_id: str = Depends(require_user),
    cache: ResultCache = Depends(get_result_cache),
    db: Session = Depends(get_db),
) -> TimeEntryRead:
    return create_entry(db, cache, user_id, payload)


@router.post("/api/time-entries/bulk-delete", response_model=TimeEntryBulkDeleteResponse)
def bulk_delete_time_entries(
    payload: TimeEntryBulkDeleteRequest,
    user_id: str = Depends(require_user),
    cache: ResultCache = Depends(get_result_cache),
    db: Session = Depends(get_db),
) -> TimeEntryBulkDeleteResponse:
    return TimeEntryBulkDeleteResponse(deleted=delete_entries(db, cache, user_id, payload.ids))


@router.post("/api/time-entries/bulk-fill", response_model=BulkFillResponse)
def bulk_fill_time_entries(
    payload: BulkFillRequest,
    user_id: str = Depends(require_user),
    cache: ResultCache = Depends(get_result_cache),
    db: Session = Depends(get_db),
) -> BulkFillResponse:
    return fill_workdays(db, cache, user_id, payload)


@router.post("/api/time-entries/bulk-fill/preview", response_model=BulkFillResponse)
def preview_bulk_fill_time_entries(
    payload: BulkFillRequest,
    user_id: str = Depends(require_user),
    db: Session = Depends(get_db),
) -> BulkFillResponse:
    return preview_bulk_fill(db, user_id, payload)


@router.get("/api/time-entries/adjustment", response_model=AdjustmentRead | None)
def get_adjustment(
    user_id: str = Depends(require_user),
    db: Session = Depends(get_db),
) -> AdjustmentRead | None:
    entry = find_adjustment_entry(db, user_id)
    if entry is None:
        return None
    return _to_adjustment_read(entry)


@router.put("/api/time-entries/adjustment", response_model=AdjustmentRead)
def put_adjustment(
    payload: AdjustmentUpsertRequest,
    user_id: str = Depends(require_user),
    cache: ResultCache = Depends(get_result_cache),
    db: Session = Depends(get_db),
) -> AdjustmentRead:
    entry = upsert_adjustment_entry(
        db,
        cache,
        user_id,
        day_date=payload.day_date,
        hours=payload.hours,
        note=payload.note,
    )
    return _to_adjustment_read(entry)


@router.delete("/api/time-entries/adjustment", status_code=status.HTTP_204_NO_CONTENT)
def remove_adjustment(
    user_id: str = Depends(require_user),
    cache: ResultCache = Depends(get_result_cache),
    db: Session = Depends(get_db),
) -> Response:
    delete_adjustment_entry(db, cache, user_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.patch("/api/time-entries/{entry_id}", response_model=TimeEntryRead)
def patch_time_entry(
    entry_id: int,
    payload: TimeEntryUpdate,
    user_id: str = Depends(require_user),
    cache: ResultCache = Depends(get_result_cache),
    db: Session = Depends(get_db),
) -> TimeEntryRead:
    return update_entry(db, cache, user_id, entry_id, payload)


@router.delete("/api/time-entries/{entry_id}", status_code=status.HTTP_204_NO_CONTENT)
def remove_time_entry(
    entry_id: int,
    user_id: str = Depends(require_user),
    cache: ResultCache = Depends(get_result_cache),
    db: Session = Depends(get_db),
) -> Response:
    delete_entry(db, cache, user_id, entry_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
