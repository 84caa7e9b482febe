"""
Merge-then-truncate ranking over rows that may split one logical poster or
battle across several entries.
"""

from __future__ import annotations

import datetime as dt
import logging
import math
from dataclasses import dataclass
from typing import Any, Iterable

from .boss_map import BossNameMap
from .normalizer import normalize_key
from .store import BattleRow, PosterRow

logger = logging.getLogger(__name__)

UNKNOWN_BATTLE = "(unknown)"


@dataclass(frozen=True)
class PosterRank:
    identity: str
    display_name: str | None
    count: int
    last_activity: dt.datetime | None
    anonymous: bool = False


@dataclass(frozen=True)
class BattleRank:
    identity: str
    display_name: str
    count: int
    series: str | None = None


def overfetch_limit(limit: int, multiplier: int = 5, floor: int = 50, ceiling: int = 500) -> int:
    """
    Upstream row budget for a final result of `limit` entries.

    A heuristic only: a merged identity whose raw rows all sit beyond the
    budget is still missed.
    """
    padded = min(max(limit * multiplier, floor), ceiling)
    return max(limit, padded)


def _count(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(number) or number < 0:
        return None
    return int(number)


def _text(value: Any) -> str:
    return str(value).strip() if value is not None else ""


def _check_limit(limit: int) -> None:
    if limit < 1:
        raise ValueError("limit must be positive")


def poster_identity(row: PosterRow, position: int) -> tuple[str, bool]:
    linked = _text(row.canonical_id) or _text(row.account_id)
    if linked:
        return linked, False
    # Anonymous posts never merge: the key is unique to this row.
    return f"anonymous:{position}:{_text(row.display_name)}", True


@dataclass
class _PosterTotal:
    identity: str
    display_name: str | None
    count: int
    last_activity: dt.datetime | None
    anonymous: bool


def aggregate_posters(rows: Iterable[PosterRow], limit: int) -> list[PosterRank]:
    _check_limit(limit)
    totals: dict[str, _PosterTotal] = {}
    dropped = 0
    for position, row in enumerate(rows):
        count = _count(row.count)
        if count is None:
            dropped += 1
            continue
        identity, anonymous = poster_identity(row, position)
        total = totals.get(identity)
        if total is None:
            totals[identity] = _PosterTotal(identity, row.display_name, count, row.last_activity, anonymous)
            continue
        total.count += count
        if row.last_activity is not None and (total.last_activity is None or row.last_activity > total.last_activity):
            total.last_activity = row.last_activity
            # The most recently used name is the one shown.
            total.display_name = row.display_name or total.display_name
        elif not total.display_name:
            total.display_name = row.display_name

    if dropped:
        logger.info("dropped %d malformed poster rows", dropped)

    def sort_key(total: _PosterTotal) -> tuple[int, float]:
        last = total.last_activity.timestamp() if total.last_activity else -math.inf
        return -total.count, -last

    ranked = sorted(totals.values(), key=sort_key)[:limit]
    return [PosterRank(t.identity, t.display_name, t.count, t.last_activity, t.anonymous) for t in ranked]


def battle_label(row: BattleRow) -> str:
    return _text(row.battle_name) or _text(row.boss_name) or UNKNOWN_BATTLE


@dataclass
class _BattleTotal:
    identity: str
    label: str
    count: int


def aggregate_battles(rows: Iterable[BattleRow], limit: int, names: BossNameMap | None = None) -> list[BattleRank]:
    _check_limit(limit)
    names = names or BossNameMap()
    totals: dict[str, _BattleTotal] = {}
    dropped = 0
    for row in rows:
        count = _count(row.count)
        if count is None:
            dropped += 1
            continue
        label = battle_label(row)
        # Labels that are pure noise, "(unknown)" included, share one bucket.
        identity = normalize_key(label) or UNKNOWN_BATTLE
        total = totals.get(identity)
        if total is None:
            totals[identity] = _BattleTotal(identity, label, count)
        else:
            total.count += count

    if dropped:
        logger.info("dropped %d malformed battle rows", dropped)

    ranked = sorted(totals.values(), key=lambda t: -t.count)[:limit]
    return [
        BattleRank(
            identity=t.identity,
            display_name=UNKNOWN_BATTLE if t.identity == UNKNOWN_BATTLE else names.resolve(t.label),
            count=t.count,
            series=None if t.identity == UNKNOWN_BATTLE else names.series_for(t.label),
        )
        for t in ranked
    ]
