from __future__ import annotations

import logging

from sqlalchemy import create_engine, inspect, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from .config import get_settings

logger = logging.getLogger(__name__)

settings = get_settings()

engine = create_engine(settings.database_url, pool_pre_ping=True)
SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False)
Base = declarative_base()


def get_db() -> Session:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db() -> None:
    from . import models  # noqa: F401

    Base.metadata.create_all(bind=engine)

    # Older deployments created `groups` before slugs existed; add the column in place.
    inspector = inspect(engine)
    try:
        group_cols = {col["name"] for col in inspector.get_columns("groups")}
    except SQLAlchemyError:
        group_cols = set()

    if group_cols and "slug" not in group_cols:
        logger.info("adding missing groups.slug column")
        with engine.begin() as conn:
            conn.execute(text("ALTER TABLE groups ADD COLUMN slug VARCHAR(120)"))
