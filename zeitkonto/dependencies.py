from __future__ import annotations

from fastapi import Header, HTTPException, Request, status

from zeitkonto.services.cache import InMemoryResultCache, ResultCache
from zeitkonto.services.overtime import OvertimeService
from zeitkonto.settings import Settings


def build_overtime_service(settings: Settings) -> OvertimeService:
    cache = InMemoryResultCache(default_ttl_seconds=settings.statistics_cache_ttl_seconds)
    return OvertimeService(cache)


def require_user(
    request: Request,
    x_user_id: str | None = Header(default=None, alias="X-User-Id"),
) -> str:
    # Authentication happens upstream; we only trust the forwarded identity.
    user_id = (x_user_id or "").strip()
    if not user_id:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing user identity.")
    request.state.user_id = user_id
    return user_id


def get_overtime_service(request: Request) -> OvertimeService:
    return request.app.state.overtime_service


def get_result_cache(request: Request) -> ResultCache:
    return request.app.state.overtime_service.cache
