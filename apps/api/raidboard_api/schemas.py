from __future__ import annotations

import datetime as dt
from typing import Literal

from pydantic import BaseModel, Field


RankingPeriodParam = Literal["day", "week", "month"]


class GroupRef(BaseModel):
    id: str
    name: str | None = None


class GroupResolveResponse(BaseModel):
    ok: bool = True
    group: GroupRef


class RankingWindow(BaseModel):
    start_utc: dt.datetime
    end_utc: dt.datetime
    start_civil: str
    end_civil_inclusive: str
    label: str
    period: RankingPeriodParam | None = None
    date: str | None = None
    days: float


class PosterEntry(BaseModel):
    rank: int = Field(..., ge=1)
    identity: str
    display_name: str | None = None
    post_count: int = Field(..., ge=0)
    last_post_at: dt.datetime | None = None
    anonymous: bool = False


class BattleEntry(BaseModel):
    rank: int = Field(..., ge=1)
    identity: str
    battle_name: str
    post_count: int = Field(..., ge=0)
    series: str | None = None


class RankingsResponse(BaseModel):
    group_id: str
    group_key: str
    group_name: str | None = None
    limit: int
    window: RankingWindow
    posters: list[PosterEntry]
    battles: list[BattleEntry]
    # Category name -> failure detail; a failed category is returned empty.
    errors: dict[str, str] = Field(default_factory=dict)
    generated_at: dt.datetime


class BossNameMapResponse(BaseModel):
    map: dict[str, str]
    sorted_keys: list[str]


class BossNameResolution(BaseModel):
    label: str
    key: str
    display_name: str
    series: str | None = None
    mapped: bool


class BossMapRefreshResponse(BaseModel):
    status: str = "ok"
    source: str
    entries: int
    fetched_at: dt.datetime
