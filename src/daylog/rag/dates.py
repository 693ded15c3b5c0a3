"""Calendar date parsing for entry dates and query text.

Three spellings are recognised: ``2026-1-25``, ``2026/1/25`` and
``2026年1月25日`` (whitespace allowed around 年/月/日). Everything is
normalised to zero-padded ``YYYY-MM-DD``. Month and day are range-checked
(1–12, 1–31) but not checked against the calendar, so ``2026-02-31`` passes.
"""

from __future__ import annotations

import re

_HYPHEN = r"(\d{4})-(\d{1,2})-(\d{1,2})"
_SLASH = r"(\d{4})/(\d{1,2})/(\d{1,2})"
_KANJI = r"(\d{4})\s*年\s*(\d{1,2})\s*月\s*(\d{1,2})\s*日"

# Whole-string forms for stored entry dates.
_EXACT_PATTERNS: tuple[re.Pattern[str], ...] = tuple(
    re.compile(f"^{p}$") for p in (_HYPHEN, _SLASH, _KANJI)
)

# Search order inside free-form query text: slash, hyphen, kanji.
_SEARCH_PATTERNS: tuple[re.Pattern[str], ...] = tuple(
    re.compile(p) for p in (_SLASH, _HYPHEN, _KANJI)
)


def _to_iso(year: str, month: str, day: str) -> str | None:
    y, m, d = int(year), int(month), int(day)
    if not 1 <= m <= 12 or not 1 <= d <= 31:
        return None
    return f"{y:04d}-{m:02d}-{d:02d}"


def normalize_date_to_iso(text: str | None) -> str | None:
    """Return *text* as ``YYYY-MM-DD`` when the whole string is a date, else None.

    Examples:
        "2026/1/25"       -> "2026-01-25"
        "2026年 1月 25日" -> "2026-01-25"
        "2026-13-01"      -> None
    """
    s = (text or "").strip()
    if not s:
        return None
    for pattern in _EXACT_PATTERNS:
        m = pattern.match(s)
        if m:
            return _to_iso(*m.groups())
    return None


def extract_iso_date(query: str | None) -> str | None:
    """Find the first date mentioned in *query* and return it as ``YYYY-MM-DD``.

    Slash dates are looked for first, then hyphen dates, then 年月日 dates.
    The first match of a form decides the result: an out-of-range match
    yields None without trying the remaining forms.
    """
    q = query or ""
    for pattern in _SEARCH_PATTERNS:
        m = pattern.search(q)
        if m:
            return _to_iso(*m.groups())
    return None
