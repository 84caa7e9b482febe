import datetime as dt
import os
import tempfile

# Settings are read once at import time, so the test database has to be chosen first.
_DB_DIR = tempfile.mkdtemp(prefix="raidboard-tests-")
os.environ["DATABASE_URL"] = f"sqlite+pysqlite:///{os.path.join(_DB_DIR, 'raidboard.db')}"
os.environ["BOSS_MAP_CSV_URL"] = ""
os.environ["BOSS_MAP_LOCAL_CSV"] = ""
os.environ["BOSS_MAP_REFRESH_TOKEN"] = ""
os.environ["STORE_BACKEND"] = "sql"

import httpx  # noqa: E402
import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from raidboard_api import models  # noqa: E402
from raidboard_api.config import Settings  # noqa: E402
from raidboard_api.database import SessionLocal, init_db  # noqa: E402
from raidboard_api.main import app, get_boss_map_cache  # noqa: E402
from raidboard_api.services.boss_map import BossMapCache  # noqa: E402

GROUP_ID = "6f1c1e0e-2b5a-4c1e-9f8e-1a2b3c4d5e6f"
SHARED_NAME_ID = "0b7f5a1c-8d2e-4f3a-a6b4-2c3d4e5f6a7b"
SHARED_SLUG_ID = "3c9e2d4f-1a6b-4c7d-8e9f-0a1b2c3d4e5f"

BOSS_MAP_CSV = 'before,after,series\n"Ifrit HL","Ifrit HL",Fire\nIfrit,Ifrit,Fire\n'

# 2025-12-25 civil day runs 2025-12-24T20:00Z .. 2025-12-25T20:00Z.
DAY_BASE = dt.datetime(2025, 12, 25, 0, 0, tzinfo=dt.UTC)

# (sender_user_id, user_name, battle_name, boss_name)
SEED_POSTS = [
    ("u1", "Alice", "Ifrit HL EX", None),
    ("u1", "Alice", "Ifrit HL EX", None),
    ("u1", "Alice", None, "ifrit (hl) no.3"),
    ("u1b", "Alice Alt", None, "Ifrit"),
    ("u1b", "Alice Alt", None, "Ifrit"),
    ("u1b", "Alice Alt", None, "Ifrit"),
    ("u3", "Carol", "  Ifrit HL EX ", None),
    ("u3", "Carol", "  Ifrit HL EX ", None),
    ("u3", "Carol", "  Ifrit HL EX ", None),
    ("u3", "Carol", None, None),
    ("u3", "Carol", "", "  "),
    (None, "Guest", None, "Tiamat"),
    (None, "Guest", None, "Tiamat"),
    (None, "Visitor", None, "Tiamat"),
]


def reset_all_data(db) -> None:
    db.query(models.Raid).delete()
    db.query(models.AccountLink).delete()
    db.query(models.Group).delete()
    db.commit()


def seed_groups(db) -> None:
    db.add(models.Group(id=GROUP_ID, name="Raid Friends", slug="raid-friends"))
    db.add(models.Group(id=SHARED_NAME_ID, name="shared", slug="other-crew"))
    db.add(models.Group(id=SHARED_SLUG_ID, name="Other Crew", slug="shared"))


def seed_posts(db) -> None:
    for idx, (sender, name, battle, boss) in enumerate(SEED_POSTS):
        db.add(
            models.Raid(
                group_id=GROUP_ID,
                raid_id=f"R{idx:04d}",
                sender_user_id=sender,
                user_name=name,
                battle_name=battle,
                boss_name=boss,
                created_at=DAY_BASE + dt.timedelta(minutes=idx),
            )
        )
    # Just before the civil day starts; must not be counted.
    db.add(
        models.Raid(
            group_id=GROUP_ID,
            raid_id="R9999",
            sender_user_id="u3",
            user_name="Carol",
            battle_name="Tiamat",
            created_at=dt.datetime(2025, 12, 24, 19, 59, tzinfo=dt.UTC),
        )
    )
    db.add(models.AccountLink(account_id="u1", canonical_id="alice-main"))
    db.add(models.AccountLink(account_id="u1b", canonical_id="alice-main"))


def feed_cache(csv_text: str = BOSS_MAP_CSV) -> BossMapCache:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, text=csv_text)

    settings = Settings(boss_map_csv_url="https://feed.test/boss-map.csv", boss_map_local_csv="")
    return BossMapCache(settings=settings, transport=httpx.MockTransport(handler))


@pytest.fixture()
def db():
    init_db()
    session = SessionLocal()
    try:
        reset_all_data(session)
        yield session
    finally:
        session.close()


@pytest.fixture()
def seeded_db(db):
    seed_groups(db)
    seed_posts(db)
    db.commit()
    return db


@pytest.fixture()
def boss_cache() -> BossMapCache:
    return feed_cache()


@pytest.fixture()
def client(seeded_db, boss_cache) -> TestClient:
    app.dependency_overrides[get_boss_map_cache] = lambda: boss_cache
    try:
        with TestClient(app) as test_client:
            yield test_client
    finally:
        app.dependency_overrides.clear()
