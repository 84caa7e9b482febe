from __future__ import annotations


class RaidboardError(Exception):
    """Base class for failures surfaced to API callers."""


class GroupNotFoundError(RaidboardError, LookupError):
    def __init__(self, token: str) -> None:
        super().__init__(f"group not found: {token}")
        self.token = token


class AmbiguousGroupError(RaidboardError, LookupError):
    """The group token matched more than one group id."""

    def __init__(self, token: str, candidates: list[str]) -> None:
        super().__init__(f"group key is ambiguous: {token} matched {len(candidates)} groups")
        self.token = token
        self.candidates = list(candidates)


class InvalidDateError(RaidboardError, ValueError):
    def __init__(self, value: str) -> None:
        super().__init__(f"Invalid date: {value}")
        self.value = value


class UpstreamUnavailableError(RaidboardError):
    """The relational store or the mapping feed failed to answer."""

    def __init__(self, source: str, detail: str) -> None:
        super().__init__(f"{source} unavailable: {detail}")
        self.source = source
        self.detail = detail
