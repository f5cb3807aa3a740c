from __future__ import annotations

import re
import unicodedata

_WHITESPACE_RE = re.compile(r"\s+")


class MalformedQueryInput(ValueError):
    """Text that cannot be processed character by character (e.g. lone surrogates)."""


def normalize_text(value: str | None) -> str:
    """
    Canonical form used for matching and for the stored `name_normalized` column:
    NFKC, casefolded, trimmed, inner whitespace collapsed to single spaces.
    """
    if not value:
        return ""
    text = unicodedata.normalize("NFKC", str(value))
    return _WHITESPACE_RE.sub(" ", text).strip().casefold()


def require_wellformed(text: str) -> str:
    try:
        text.encode("utf-8")
    except UnicodeEncodeError as exc:
        raise MalformedQueryInput(f"unencodable text at position {exc.start}") from exc
    return text
