from __future__ import annotations

import datetime as dt
from dataclasses import dataclass
from typing import Any, Callable, Protocol

from sqlalchemy import column, desc, func, inspect, select, table, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .. import models
from ..config import Settings
from ..errors import UpstreamUnavailableError
from .windows import TimeWindow, rolling_window


@dataclass(frozen=True)
class PosterRow:
    account_id: str | None
    canonical_id: str | None
    display_name: str | None
    count: Any
    last_activity: dt.datetime | None


@dataclass(frozen=True)
class BattleRow:
    battle_name: str | None
    boss_name: str | None
    count: Any


class GroupSource(Protocol):
    def has_group_column(self, name: str) -> bool: ...

    def find_group_ids(self, column_name: str, value: str, limit: int = 10) -> list[str]: ...


class RaidStore(GroupSource, Protocol):
    def group_name(self, group_id: str) -> str | None: ...

    def poster_rows(self, group_id: str, window: TimeWindow, limit: int) -> list[PosterRow]: ...

    def battle_rows(self, group_id: str, window: TimeWindow, limit: int) -> list[BattleRow]: ...


def _as_utc(value: Any) -> dt.datetime | None:
    if isinstance(value, str):
        try:
            value = dt.datetime.fromisoformat(value)
        except ValueError:
            return None
    if not isinstance(value, dt.datetime):
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=dt.UTC)
    return value.astimezone(dt.UTC)


def _poster_row_order(row: PosterRow) -> tuple[int, float]:
    last = row.last_activity.timestamp() if row.last_activity else float("-inf")
    return -(row.count or 0), -last


class SqlRaidStore:
    """Row source over the raids tables; every failure surfaces as UpstreamUnavailableError."""

    def __init__(self, db: Session) -> None:
        self.db = db
        self._group_columns: set[str] | None = None

    def has_group_column(self, name: str) -> bool:
        if self._group_columns is None:
            try:
                cols = inspect(self.db.get_bind()).get_columns("groups")
            except SQLAlchemyError as exc:
                raise UpstreamUnavailableError("store", str(exc)) from exc
            self._group_columns = {col["name"] for col in cols}
        return name in self._group_columns

    def find_group_ids(self, column_name: str, value: str, limit: int = 10) -> list[str]:
        groups = table("groups", column("id"), column(column_name))
        stmt = select(groups.c.id).where(groups.c[column_name] == value).limit(limit)
        try:
            ids = self.db.execute(stmt).scalars().all()
        except SQLAlchemyError as exc:
            raise UpstreamUnavailableError("store", str(exc)) from exc
        return [str(group_id) for group_id in ids if group_id]

    def group_name(self, group_id: str) -> str | None:
        try:
            return self.db.query(models.Group.name).filter(models.Group.id == group_id).scalar()
        except SQLAlchemyError as exc:
            raise UpstreamUnavailableError("store", str(exc)) from exc

    def _window_filter(self, group_id: str, window: TimeWindow) -> tuple:
        return (
            models.Raid.group_id == group_id,
            models.Raid.created_at >= window.start_utc,
            models.Raid.created_at < window.end_utc,
        )

    def poster_rows(self, group_id: str, window: TimeWindow, limit: int) -> list[PosterRow]:
        """
        Linked posters come back aggregated per (account, name); anonymous posts
        stay one row each so that separate posts never share a count.
        """
        post_count = func.count(models.Raid.id).label("post_count")
        last_post_at = func.max(models.Raid.created_at).label("last_post_at")
        linked = (
            self.db.query(
                models.Raid.sender_user_id,
                models.AccountLink.canonical_id,
                models.Raid.user_name,
                post_count,
                last_post_at,
            )
            .outerjoin(models.AccountLink, models.AccountLink.account_id == models.Raid.sender_user_id)
            .filter(*self._window_filter(group_id, window), models.Raid.sender_user_id.is_not(None))
            .group_by(models.Raid.sender_user_id, models.AccountLink.canonical_id, models.Raid.user_name)
            .order_by(desc(post_count), desc(last_post_at))
            .limit(limit)
        )
        anonymous = (
            self.db.query(models.Raid.user_name, models.Raid.created_at)
            .filter(*self._window_filter(group_id, window), models.Raid.sender_user_id.is_(None))
            .order_by(desc(models.Raid.created_at), desc(models.Raid.id))
            .limit(limit)
        )
        try:
            linked_rows = linked.all()
            anonymous_rows = anonymous.all()
        except SQLAlchemyError as exc:
            raise UpstreamUnavailableError("store", str(exc)) from exc

        rows = [
            PosterRow(
                account_id=account_id,
                canonical_id=canonical_id,
                display_name=user_name,
                count=count,
                last_activity=_as_utc(last_at),
            )
            for account_id, canonical_id, user_name, count, last_at in linked_rows
        ]
        rows.extend(
            PosterRow(account_id=None, canonical_id=None, display_name=user_name, count=1, last_activity=_as_utc(at))
            for user_name, at in anonymous_rows
        )
        rows.sort(key=_poster_row_order)
        return rows[:limit]

    def battle_rows(self, group_id: str, window: TimeWindow, limit: int) -> list[BattleRow]:
        post_count = func.count(models.Raid.id).label("post_count")
        query = (
            self.db.query(models.Raid.battle_name, models.Raid.boss_name, post_count)
            .filter(*self._window_filter(group_id, window))
            .group_by(models.Raid.battle_name, models.Raid.boss_name)
            .order_by(desc(post_count))
            .limit(limit)
        )
        try:
            rows = query.all()
        except SQLAlchemyError as exc:
            raise UpstreamUnavailableError("store", str(exc)) from exc
        return [BattleRow(battle_name=battle, boss_name=boss, count=count) for battle, boss, count in rows]


class ProcedureRaidStore(SqlRaidStore):
    """
    Uses the stored ranking functions instead of ad-hoc aggregation.

    The functions take a day count and anchor it on the current civil day
    themselves, so they can only answer a rolling window ending at the next
    civil boundary. Any other window (a calendar day, week or month) is
    aggregated with the plain queries so the rows always match the window.
    Function names come from settings and are validated as plain identifiers there.
    """

    def __init__(
        self,
        db: Session,
        poster_procedure: str = "get_top_posters_merged",
        battle_procedure: str = "top_battles",
        clock: Callable[[], dt.datetime] | None = None,
    ) -> None:
        super().__init__(db)
        self.poster_procedure = poster_procedure
        self.battle_procedure = battle_procedure
        self._clock = clock or (lambda: dt.datetime.now(dt.UTC))

    def _procedure_days(self, window: TimeWindow) -> int | None:
        """Day count the procedures understand for `window`, or None if they cannot express it."""
        days = window.days
        if days < 1 or days != int(days):
            return None
        if window != rolling_window(int(days), self._clock()):
            return None
        return int(days)

    def _call(self, procedure: str, group_id: str, days: int, limit: int) -> list[dict]:
        statement = text(f"SELECT * FROM {procedure}(:p_group_id, :p_days, :p_limit)")
        params = {"p_group_id": group_id, "p_days": days, "p_limit": limit}
        try:
            return [dict(row) for row in self.db.execute(statement, params).mappings().all()]
        except SQLAlchemyError as exc:
            raise UpstreamUnavailableError("store", str(exc)) from exc

    def poster_rows(self, group_id: str, window: TimeWindow, limit: int) -> list[PosterRow]:
        days = self._procedure_days(window)
        if days is None:
            return super().poster_rows(group_id, window, limit)
        rows = self._call(self.poster_procedure, group_id, days, limit)
        return [
            PosterRow(
                account_id=row.get("user_id"),
                canonical_id=row.get("canonical_user_id"),
                display_name=row.get("last_used_name"),
                count=row.get("post_count"),
                last_activity=_as_utc(row.get("last_post_at")),
            )
            for row in rows
        ]

    def battle_rows(self, group_id: str, window: TimeWindow, limit: int) -> list[BattleRow]:
        days = self._procedure_days(window)
        if days is None:
            return super().battle_rows(group_id, window, limit)
        rows = self._call(self.battle_procedure, group_id, days, limit)
        return [
            BattleRow(battle_name=row.get("battle_name"), boss_name=row.get("boss_name"), count=row.get("post_count"))
            for row in rows
        ]


def build_store(db: Session, settings: Settings | None = None) -> SqlRaidStore:
    if settings is not None and settings.store_backend == "procedures":
        return ProcedureRaidStore(db, settings.poster_ranking_procedure, settings.battle_ranking_procedure)
    return SqlRaidStore(db)
