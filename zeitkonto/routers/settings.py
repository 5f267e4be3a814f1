from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from zeitkonto.db import get_db
from zeitkonto.dependencies import get_result_cache, require_user
from zeitkonto.schemas import HolidayImportRequest, HolidayImportResponse, UserSettingsRead, UserSettingsUpdate
from zeitkonto.services.cache import ResultCache
from zeitkonto.services.holidays import import_holidays
from zeitkonto.services.user_settings import get_or_create_user_settings, reset_user_settings, update_user_settings

router = APIRouter(tags=["settings"])


@router.get("/api/settings", response_model=UserSettingsRead)
def get_settings_for_user(
    user_id: str = Depends(require_user),
    db: Session = Depends(get_db),
) -> UserSettingsRead:
    return get_or_create_user_settings(db, user_id)


@router.put("/api/settings", response_model=UserSettingsRead)
def put_settings(
    payload: UserSettingsUpdate,
    user_id: str = Depends(require_user),
    cache: ResultCache = Depends(get_result_cache),
    db: Session = Depends(get_db),
) -> UserSettingsRead:
    return update_user_settings(db, cache, user_id, payload)


@router.post("/api/settings/reset", response_model=UserSettingsRead)
def post_settings_reset(
    user_id: str = Depends(require_user),
    cache: ResultCache = Depends(get_result_cache),
    db: Session = Depends(get_db),
) -> UserSettingsRead:
    return reset_user_settings(db, cache, user_id)


@router.post("/api/holidays/import", response_model=HolidayImportResponse)
def post_holiday_import(
    payload: HolidayImportRequest,
    user_id: str = Depends(require_user),
    cache: ResultCache = Depends(get_result_cache),
    db: Session = Depends(get_db),
) -> HolidayImportResponse:
    return import_holidays(db, cache, user_id, payload.holidays)
