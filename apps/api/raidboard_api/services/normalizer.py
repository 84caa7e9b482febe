"""Canonical comparison keys for free-text boss and battle labels."""

from __future__ import annotations

import re
import unicodedata

_BRACKETED_RE = re.compile(r"\(.*?\)|（.*?）")
_TRAILING_NUMBER_RE = re.compile(r"(no\.?\s?[0-9]+|#[0-9]+|[0-9]+番?)$")
_PUNCTUATION_RE = re.compile(r"[/:;「」『』\"“”'’‘、。,・\-—]")


def collapse_whitespace(value: str) -> str:
    return " ".join((value or "").split())


def fold_width_and_case(value: str) -> str:
    """NFKC-fold (full-width to half-width), collapse whitespace, lower-case."""
    return collapse_whitespace(unicodedata.normalize("NFKC", value or "")).lower()


def remove_common_noise(value: str) -> str:
    """Drop bracketed annotations, a trailing number marker and separator punctuation."""
    out = _BRACKETED_RE.sub("", value)
    out = _TRAILING_NUMBER_RE.sub("", out)
    out = _PUNCTUATION_RE.sub("", out)
    return collapse_whitespace(out)


def normalize_key(raw: str | None) -> str:
    """
    Map a raw label to its NormalizedKey. Never raises.

    The two stages are re-applied until the key stops changing, so stripping one
    trailing marker cannot expose another ("x no.1 #2") and break idempotence.
    """
    key = remove_common_noise(fold_width_and_case(raw or ""))
    while True:
        again = remove_common_noise(fold_width_and_case(key))
        if again == key:
            return key
        key = again
