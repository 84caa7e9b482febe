from __future__ import annotations

import logging
import secrets
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, HTTPException, Query, Response
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.orm import Session

from .config import get_settings
from .database import get_db, init_db
from .errors import AmbiguousGroupError, GroupNotFoundError, InvalidDateError, RaidboardError, UpstreamUnavailableError
from .schemas import (
    BossMapRefreshResponse,
    BossNameMapResponse,
    BossNameResolution,
    GroupRef,
    GroupResolveResponse,
    RankingPeriodParam,
    RankingsResponse,
)
from .services.boss_map import BossMapCache
from .services.groups import GroupResolver
from .services.normalizer import normalize_key
from .services.rankings import build_rankings, clamp_int, select_window
from .services.store import SqlRaidStore, build_store

settings = get_settings()
logger = logging.getLogger(__name__)

NO_STORE = {"Cache-Control": "no-store, max-age=0", "Pragma": "no-cache"}


def _configure_logging() -> None:
    level = getattr(logging, settings.log_level.upper(), logging.INFO)
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s %(message)s")


@asynccontextmanager
async def lifespan(_: FastAPI):
    _configure_logging()
    init_db()
    yield


app = FastAPI(title=settings.app_name, version="0.1.0", lifespan=lifespan)
app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.cors_origin, "http://localhost:3000", "http://127.0.0.1:3000"],
    allow_origin_regex=r"^https?://(localhost|127\.0\.0\.1)(:\d+)?$",
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

boss_map_cache = BossMapCache(settings=settings)


def get_boss_map_cache() -> BossMapCache:
    return boss_map_cache


def get_store(db: Session = Depends(get_db)) -> SqlRaidStore:
    return build_store(db, settings)


def _http_error(exc: RaidboardError) -> HTTPException:
    if isinstance(exc, AmbiguousGroupError):
        detail = {"error": "group_ambiguous", "message": str(exc), "candidates": exc.candidates}
        return HTTPException(status_code=409, detail=detail, headers=NO_STORE)
    if isinstance(exc, GroupNotFoundError):
        return HTTPException(status_code=404, detail={"error": "group_not_found", "message": str(exc)}, headers=NO_STORE)
    if isinstance(exc, InvalidDateError):
        return HTTPException(status_code=400, detail={"error": "invalid_date", "message": str(exc)}, headers=NO_STORE)
    if isinstance(exc, UpstreamUnavailableError):
        return HTTPException(status_code=502, detail={"error": "upstream_unavailable", "message": str(exc)}, headers=NO_STORE)
    return HTTPException(status_code=500, detail={"error": "unexpected", "message": str(exc)}, headers=NO_STORE)


def _check_refresh_token(token: str | None) -> None:
    expected = settings.boss_map_refresh_token
    if expected and not secrets.compare_digest(token or "", expected):
        raise HTTPException(status_code=401, detail="invalid refresh token")


@app.get("/v1/health")
def health(cache: BossMapCache = Depends(get_boss_map_cache)) -> dict:
    snapshot = cache.snapshot
    return {
        "status": "ok",
        "store_backend": settings.store_backend,
        "boss_map": {
            "loaded": snapshot is not None,
            "source": snapshot.source if snapshot else None,
            "entries": len(snapshot.names) if snapshot else 0,
        },
    }


@app.get("/v1/groups/resolve", response_model=GroupResolveResponse)
def resolve_group(
    key: str | None = Query(default=None),
    group_id: str | None = Query(default=None, alias="groupId"),
    store: SqlRaidStore = Depends(get_store),
) -> GroupResolveResponse:
    token = (key or group_id or "").strip()
    if not token:
        raise HTTPException(status_code=400, detail="key is required")
    try:
        resolved = GroupResolver(store).resolve(token)
        name = store.group_name(resolved)
    except RaidboardError as exc:
        raise _http_error(exc) from exc
    return GroupResolveResponse(group=GroupRef(id=resolved, name=name))


@app.get("/v1/rankings", response_model=RankingsResponse)
def rankings(
    response: Response,
    group: str | None = Query(default=None),
    group_id_param: str | None = Query(default=None, alias="groupId"),
    group_id_snake: str | None = Query(default=None, alias="group_id"),
    group_name: str | None = Query(default=None),
    days: int | None = Query(default=None),
    period: RankingPeriodParam | None = Query(default=None),
    date: str | None = Query(default=None, description="YYYY-MM-DD civil date, used with period"),
    limit: int | None = Query(default=None),
    store: SqlRaidStore = Depends(get_store),
    cache: BossMapCache = Depends(get_boss_map_cache),
) -> RankingsResponse:
    group_key = (group_id_param or group or group_name or group_id_snake or "").strip()
    if not group_key:
        raise HTTPException(status_code=400, detail="groupId (or group) is required", headers=NO_STORE)

    size = clamp_int(limit, settings.default_limit, 1, settings.max_limit)
    try:
        window, window_meta = select_window(settings, period=period, date=date, days=days)
        result = build_rankings(
            store=store,
            names=cache.get(),
            settings=settings,
            group_key=group_key,
            window=window,
            window_meta=window_meta,
            limit=size,
        )
    except RaidboardError as exc:
        raise _http_error(exc) from exc

    response.headers.update(NO_STORE)
    return result


@app.get("/v1/boss-name-map", response_model=BossNameMapResponse)
def boss_name_map(
    response: Response,
    refresh: bool = Query(default=False),
    token: str | None = Query(default=None),
    cache: BossMapCache = Depends(get_boss_map_cache),
) -> BossNameMapResponse:
    if refresh:
        _check_refresh_token(token)
    names = cache.get(force=refresh)
    response.headers["Cache-Control"] = (
        "max-age=0, s-maxage=0, stale-while-revalidate=0"
        if refresh
        else "max-age=0, s-maxage=300, stale-while-revalidate=600"
    )
    return BossNameMapResponse(**names.to_payload())


@app.get("/v1/boss-name/resolve", response_model=BossNameResolution)
def resolve_boss_name(
    label: str = Query(..., min_length=1, max_length=255),
    cache: BossMapCache = Depends(get_boss_map_cache),
) -> BossNameResolution:
    names = cache.get()
    entry = names.lookup(label)
    return BossNameResolution(
        label=label,
        key=normalize_key(label),
        display_name=names.resolve(label),
        series=entry.series if entry else None,
        mapped=entry is not None,
    )


@app.post("/v1/admin/boss-map/refresh", response_model=BossMapRefreshResponse)
def refresh_boss_map(
    token: str | None = Query(default=None),
    cache: BossMapCache = Depends(get_boss_map_cache),
) -> BossMapRefreshResponse:
    _check_refresh_token(token)
    snapshot = cache.refresh()
    return BossMapRefreshResponse(source=snapshot.source, entries=len(snapshot.names), fetched_at=snapshot.fetched_at)
