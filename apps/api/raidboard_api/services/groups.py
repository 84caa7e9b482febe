from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Sequence

from ..errors import AmbiguousGroupError, GroupNotFoundError, UpstreamUnavailableError
from .store import GroupSource

logger = logging.getLogger(__name__)

UUID_RE = re.compile(r"^[0-9a-f]{8}-[0-9a-f]{4}-[1-5][0-9a-f]{3}-[89ab][0-9a-f]{3}-[0-9a-f]{12}$", re.IGNORECASE)


def looks_like_uuid(value: str) -> bool:
    return bool(UUID_RE.match(value or ""))


@dataclass(frozen=True)
class ColumnLookup:
    """Exact-match lookup of a token against one column of the groups table."""

    column: str
    limit: int = 10

    def find(self, source: GroupSource, token: str) -> list[str] | None:
        # None means "not applicable here", as opposed to "looked and found nothing".
        if not source.has_group_column(self.column):
            return None
        return source.find_group_ids(self.column, token, limit=self.limit)


# Exact name first; slug and the legacy display column follow.
DEFAULT_LOOKUPS: tuple[ColumnLookup, ...] = (
    ColumnLookup("name"),
    ColumnLookup("slug"),
    ColumnLookup("group_name"),
)


class GroupResolver:
    def __init__(self, source: GroupSource, lookups: Sequence[ColumnLookup] = DEFAULT_LOOKUPS) -> None:
        self.source = source
        self.lookups = tuple(lookups)

    def candidates(self, token: str) -> list[str]:
        """Every distinct group id the token matches, in lookup order."""
        key = (token or "").strip()
        if not key:
            return []
        if looks_like_uuid(key):
            return [key]

        found: dict[str, None] = {}
        attempted = failed = 0
        last_error: UpstreamUnavailableError | None = None
        for lookup in self.lookups:
            try:
                ids = lookup.find(self.source, key)
            except UpstreamUnavailableError as exc:
                attempted += 1
                failed += 1
                last_error = exc
                logger.warning("group lookup failed column=%s error=%s", lookup.column, exc.detail)
                continue
            if ids is None:
                continue
            attempted += 1
            for group_id in ids:
                group_id = (group_id or "").strip()
                if group_id:
                    found.setdefault(group_id, None)

        if not found and attempted and failed == attempted and last_error is not None:
            raise last_error
        return list(found)

    def resolve(self, token: str) -> str:
        candidates = self.candidates(token)
        if not candidates:
            raise GroupNotFoundError(token)
        if len(candidates) > 1:
            raise AmbiguousGroupError(token, candidates)
        return candidates[0]
