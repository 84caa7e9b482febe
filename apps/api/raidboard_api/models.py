from __future__ import annotations

import datetime as dt

from sqlalchemy import DateTime, Float, ForeignKey, Integer, JSON, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .database import Base


class Group(Base):
    __tablename__ = "groups"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    name: Mapped[str] = mapped_column(String(255), index=True)
    slug: Mapped[str | None] = mapped_column(String(120), index=True, nullable=True)
    # Display name column kept from the first schema; still populated by some clients.
    group_name: Mapped[str | None] = mapped_column(String(255), nullable=True)

    raids: Mapped[list[Raid]] = relationship(back_populates="group", cascade="all, delete-orphan")


class Raid(Base):
    __tablename__ = "raids"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    group_id: Mapped[str] = mapped_column(String(36), ForeignKey("groups.id"), index=True)
    raid_id: Mapped[str] = mapped_column(String(32))
    boss_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    battle_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    hp_value: Mapped[float | None] = mapped_column(Float, nullable=True)
    hp_percent: Mapped[float | None] = mapped_column(Float, nullable=True)
    member_current: Mapped[int | None] = mapped_column(Integer, nullable=True)
    member_max: Mapped[int | None] = mapped_column(Integer, nullable=True)
    user_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    # Null for posts sent without a linked extension account.
    sender_user_id: Mapped[str | None] = mapped_column(String(64), index=True, nullable=True)
    raw: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    created_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: dt.datetime.now(dt.UTC), index=True
    )

    group: Mapped[Group] = relationship(back_populates="raids")


class AccountLink(Base):
    """Maps a raw poster account onto the merged account it was linked to."""

    __tablename__ = "account_links"

    account_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    canonical_id: Mapped[str] = mapped_column(String(64), index=True)
