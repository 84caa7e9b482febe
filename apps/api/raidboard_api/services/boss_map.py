from __future__ import annotations

import csv
import datetime as dt
import io
import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Iterable, Mapping

import httpx

from ..config import Settings
from .normalizer import collapse_whitespace, normalize_key

logger = logging.getLogger(__name__)

_RAW_COLUMNS = ("before", "boss_name", "battle_name", "name", "raw")
_LABEL_COLUMNS = ("after", "display_name", "canonical")
_SERIES_COLUMNS = ("series", "series_name")


@dataclass(frozen=True)
class NameEntry:
    canonical_key: str
    display_label: str
    series: str | None = None


class BossNameMap:
    """Immutable longest-key-first lookup table from NormalizedKey to display label."""

    def __init__(self, entries: Iterable[NameEntry] = ()) -> None:
        table: dict[str, NameEntry] = {}
        for entry in entries:
            if entry.canonical_key:
                table[entry.canonical_key] = entry
        self._entries = table
        self._sorted_keys = tuple(sorted(table, key=len, reverse=True))

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, str]) -> BossNameMap:
        return cls(NameEntry(normalize_key(key), label) for key, label in mapping.items() if label)

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def sorted_keys(self) -> tuple[str, ...]:
        return self._sorted_keys

    def lookup(self, raw: str | None) -> NameEntry | None:
        key = normalize_key(raw)
        if not key:
            return None
        exact = self._entries.get(key)
        if exact is not None:
            return exact
        # Longest key first so "ifrit hl" wins over "ifrit".
        for candidate in self._sorted_keys:
            if candidate in key:
                return self._entries[candidate]
        return None

    def resolve(self, raw: str | None) -> str:
        """
        Display label for `raw`. An unmapped label is not replaced by its
        NormalizedKey: it comes back as the raw text, trimmed and with inner
        whitespace collapsed, so original casing and punctuation still render.
        """
        if not raw:
            return raw or ""
        entry = self.lookup(raw)
        if entry is not None:
            return entry.display_label
        return collapse_whitespace(raw)

    def series_for(self, raw: str | None) -> str | None:
        entry = self.lookup(raw)
        return entry.series if entry else None

    def to_payload(self) -> dict:
        return {
            "map": {key: entry.display_label for key, entry in self._entries.items()},
            "sorted_keys": list(self._sorted_keys),
        }


def _column_index(headers: list[str], names: tuple[str, ...]) -> int:
    for name in names:
        if name in headers:
            return headers.index(name)
    return -1


def _cell(row: list[str], index: int) -> str:
    if index < 0 or index >= len(row):
        return ""
    return row[index].strip()


def parse_boss_map_csv(text: str) -> list[NameEntry]:
    """
    Parse a mapping feed. A header row naming a raw and a canonical column is
    honoured; otherwise every row is read as `raw,canonical`.
    """
    rows = [row for row in csv.reader(io.StringIO(text or "")) if any(cell.strip() for cell in row)]
    if not rows:
        return []

    headers = [cell.strip().lower() for cell in rows[0]]
    raw_idx = _column_index(headers, _RAW_COLUMNS)
    label_idx = _column_index(headers, _LABEL_COLUMNS)
    series_idx = _column_index(headers, _SERIES_COLUMNS)
    if raw_idx >= 0 and label_idx >= 0:
        body = rows[1:]
    else:
        raw_idx, label_idx, series_idx = 0, 1, -1
        body = rows

    entries: list[NameEntry] = []
    for row in body:
        raw = _cell(row, raw_idx)
        label = _cell(row, label_idx)
        if not raw or not label:
            continue
        key = normalize_key(raw)
        if not key:
            continue
        entries.append(NameEntry(canonical_key=key, display_label=label, series=_cell(row, series_idx) or None))
    return entries


@dataclass(frozen=True)
class BossMapSnapshot:
    names: BossNameMap
    source: str
    loaded_at: float
    fetched_at: dt.datetime = field(default_factory=lambda: dt.datetime.now(dt.UTC))


class BossMapCache:
    """
    Process-wide holder for the current BossNameMap.

    Starts unloaded. A refresh builds a complete new snapshot and swaps it in
    with one assignment, so readers see either the old or the new map.
    """

    def __init__(
        self,
        settings: Settings,
        transport: httpx.BaseTransport | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.settings = settings
        self._transport = transport
        self._clock = clock
        self._snapshot: BossMapSnapshot | None = None

    @property
    def loaded(self) -> bool:
        return self._snapshot is not None

    @property
    def snapshot(self) -> BossMapSnapshot | None:
        return self._snapshot

    def _is_fresh(self, snapshot: BossMapSnapshot) -> bool:
        return self._clock() - snapshot.loaded_at < self.settings.boss_map_ttl_seconds

    def get(self, force: bool = False) -> BossNameMap:
        snapshot = self._snapshot
        if not force and snapshot is not None and self._is_fresh(snapshot):
            return snapshot.names
        return self.refresh().names

    def refresh(self) -> BossMapSnapshot:
        text, source = self._fetch_csv_text()
        try:
            names = BossNameMap(parse_boss_map_csv(text))
        except (csv.Error, ValueError) as exc:
            logger.warning("boss map parse failed source=%s error=%s", source, exc)
            names, source = BossNameMap(), "empty"

        snapshot = BossMapSnapshot(names=names, source=source, loaded_at=self._clock())
        self._snapshot = snapshot
        logger.info("boss map refreshed source=%s entries=%d", source, len(names))
        return snapshot

    def _fetch_remote(self, url: str) -> str:
        with httpx.Client(timeout=self.settings.boss_map_fetch_timeout_seconds, transport=self._transport) as client:
            res = client.get(url)
        res.raise_for_status()
        return res.text

    def _fetch_csv_text(self) -> tuple[str, str]:
        url = self.settings.boss_map_csv_url
        if url:
            try:
                text = self._fetch_remote(url)
                if text:
                    return text, "remote"
            except httpx.HTTPError as exc:
                logger.warning("boss map remote fetch failed url=%s error=%s", url, exc)

        local = self.settings.boss_map_local_csv
        if local:
            path = Path(local)
            try:
                if path.is_file():
                    return path.read_text(encoding="utf-8"), "local"
            except (OSError, UnicodeDecodeError) as exc:
                logger.warning("boss map local read failed path=%s error=%s", path, exc)

        return "", "empty"
