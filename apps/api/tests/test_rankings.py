import datetime as dt

from raidboard_api.config import Settings
from raidboard_api.errors import UpstreamUnavailableError
from raidboard_api.services.boss_map import BossNameMap
from raidboard_api.services.rankings import build_rankings, select_window
from raidboard_api.services.store import BattleRow, PosterRow

GROUP_ID = "6f1c1e0e-2b5a-4c1e-9f8e-1a2b3c4d5e6f"


class RecordingStore:
    def __init__(self, poster_rows=(), battle_rows=(), fail_posters=False) -> None:
        self._posters = list(poster_rows)
        self._battles = list(battle_rows)
        self.fail_posters = fail_posters
        self.poster_limits: list[int] = []
        self.battle_limits: list[int] = []

    def has_group_column(self, name: str) -> bool:
        return True

    def find_group_ids(self, column_name: str, value: str, limit: int = 10) -> list[str]:
        return []

    def group_name(self, group_id: str) -> str | None:
        return "Raid Friends"

    def poster_rows(self, group_id, window, limit):
        self.poster_limits.append(limit)
        if self.fail_posters:
            raise UpstreamUnavailableError("store", "posters timed out")
        return self._posters[:limit]

    def battle_rows(self, group_id, window, limit):
        self.battle_limits.append(limit)
        return self._battles[:limit]


def run(store: RecordingStore, settings: Settings, limit: int):
    window, meta = select_window(settings, period="day", date="2025-12-25")
    return build_rankings(
        store=store,
        names=BossNameMap(),
        settings=settings,
        group_key=GROUP_ID,
        window=window,
        window_meta=meta,
        limit=limit,
    )


def test_poster_fetch_is_padded_before_merging():
    store = RecordingStore()
    run(store, Settings(), limit=1)
    assert store.poster_limits == [50]
    assert store.battle_limits == [1000]


def test_poster_fetch_follows_configured_heuristic():
    settings = Settings(poster_overfetch_multiplier=3, poster_overfetch_floor=10, poster_overfetch_ceiling=40)
    store = RecordingStore()
    run(store, settings, limit=20)
    assert store.poster_limits == [40]


def test_rows_beyond_the_limit_can_still_win_after_merging():
    last = dt.datetime(2025, 12, 25, 3, tzinfo=dt.UTC)
    rows = [PosterRow("b", None, "Bea", 5, last)]
    rows += [PosterRow(f"a{i}", "alice", "Alice", 1, last) for i in range(6)]
    store = RecordingStore(poster_rows=rows, battle_rows=[BattleRow("Tiamat", None, 2)])

    result = run(store, Settings(), limit=1)

    assert [(p.identity, p.post_count) for p in result.posters] == [("alice", 6)]
    assert [b.battle_name for b in result.battles] == ["Tiamat"]
    assert result.group_name == "Raid Friends"


def test_failed_category_is_reported_and_the_other_survives():
    store = RecordingStore(battle_rows=[BattleRow("Tiamat", None, 2)], fail_posters=True)
    result = run(store, Settings(), limit=5)
    assert result.posters == []
    assert "timed out" in result.errors["posters"]
    assert [b.post_count for b in result.battles] == [2]
