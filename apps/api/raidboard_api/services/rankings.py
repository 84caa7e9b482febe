from __future__ import annotations

import datetime as dt
import logging

from .. import schemas
from ..config import Settings
from ..errors import UpstreamUnavailableError
from .boss_map import BossNameMap
from .groups import GroupResolver
from .ranking import BattleRank, PosterRank, aggregate_battles, aggregate_posters, overfetch_limit
from .store import RaidStore
from .windows import RankingPeriod, TimeWindow, format_civil, resolve_window, rolling_window, today_civil_date

logger = logging.getLogger(__name__)


def clamp_int(value: int | None, default: int, low: int, high: int) -> int:
    if value is None:
        return default
    return max(low, min(high, int(value)))


def select_window(
    settings: Settings,
    period: RankingPeriod | None = None,
    date: str | None = None,
    days: int | None = None,
    now: dt.datetime | None = None,
) -> tuple[TimeWindow, schemas.RankingWindow]:
    """A calendar period when `period` is given, otherwise the last `days` civil days."""
    if period is not None:
        civil_date = date or today_civil_date(now)
        window = resolve_window(period, civil_date)
    else:
        civil_date = None
        window = rolling_window(clamp_int(days, settings.default_days, 1, settings.max_days), now)

    meta = schemas.RankingWindow(
        start_utc=window.start_utc,
        end_utc=window.end_utc,
        start_civil=format_civil(window.start_utc),
        end_civil_inclusive=format_civil(window.end_utc - dt.timedelta(milliseconds=1)),
        label=window.label(),
        period=period,
        date=civil_date,
        days=window.days,
    )
    return window, meta


def _poster_entries(ranked: list[PosterRank]) -> list[schemas.PosterEntry]:
    return [
        schemas.PosterEntry(
            rank=idx,
            identity=row.identity,
            display_name=row.display_name,
            post_count=row.count,
            last_post_at=row.last_activity,
            anonymous=row.anonymous,
        )
        for idx, row in enumerate(ranked, start=1)
    ]


def _battle_entries(ranked: list[BattleRank]) -> list[schemas.BattleEntry]:
    return [
        schemas.BattleEntry(
            rank=idx,
            identity=row.identity,
            battle_name=row.display_name,
            post_count=row.count,
            series=row.series,
        )
        for idx, row in enumerate(ranked, start=1)
    ]


def build_rankings(
    store: RaidStore,
    names: BossNameMap,
    settings: Settings,
    group_key: str,
    window: TimeWindow,
    window_meta: schemas.RankingWindow,
    limit: int,
) -> schemas.RankingsResponse:
    """
    Resolve the group, then rank posters and battles independently: a store
    failure in one category is reported in `errors` and leaves the other intact.
    """
    group_id = GroupResolver(store).resolve(group_key)

    try:
        group_name = store.group_name(group_id)
    except UpstreamUnavailableError as exc:
        logger.warning("group name lookup failed group_id=%s error=%s", group_id, exc.detail)
        group_name = None

    errors: dict[str, str] = {}

    posters: list[schemas.PosterEntry] = []
    fetch_limit = overfetch_limit(
        limit,
        multiplier=settings.poster_overfetch_multiplier,
        floor=settings.poster_overfetch_floor,
        ceiling=settings.poster_overfetch_ceiling,
    )
    try:
        poster_rows = store.poster_rows(group_id, window, fetch_limit)
        posters = _poster_entries(aggregate_posters(poster_rows, limit))
    except UpstreamUnavailableError as exc:
        logger.warning("poster ranking failed group_id=%s error=%s", group_id, exc.detail)
        errors["posters"] = str(exc)

    battles: list[schemas.BattleEntry] = []
    try:
        battle_rows = store.battle_rows(group_id, window, settings.battle_fetch_limit)
        battles = _battle_entries(aggregate_battles(battle_rows, limit, names))
    except UpstreamUnavailableError as exc:
        logger.warning("battle ranking failed group_id=%s error=%s", group_id, exc.detail)
        errors["battles"] = str(exc)

    return schemas.RankingsResponse(
        group_id=group_id,
        group_key=group_key,
        group_name=group_name,
        limit=limit,
        window=window_meta,
        posters=posters,
        battles=battles,
        errors=errors,
        generated_at=dt.datetime.now(dt.UTC),
    )
