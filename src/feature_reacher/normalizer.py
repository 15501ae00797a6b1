"""Text normalization: boilerplate stripping, headings, timestamps, chunking.

Every function here is total: malformed input yields an empty or ``None``
result, never an exception.
"""
import re
from datetime import date
from typing import List, Optional


# Line-anchored patterns for boilerplate lines.
BOILERPLATE_PATTERNS = (
    # Navigation and UI
    re.compile(
        r"^[ \t]*(skip to (main )?content|jump to|menu|navigation|search|sign (in|up|out)|log (in|out))[\s:]*?$",
        re.IGNORECASE | re.MULTILINE,
    ),
    # Social media links
    re.compile(
        r"^[ \t]*(follow us|share (this|on)|tweet|facebook|linkedin|instagram|twitter|youtube)[\s:]*?$",
        re.IGNORECASE | re.MULTILINE,
    ),
    # Cookie/privacy notices
    re.compile(
        r"^[ \t]*(we use cookies|accept (all )?cookies|cookie (policy|settings)|privacy (policy|settings))[\s:]*?$",
        re.IGNORECASE | re.MULTILINE,
    ),
    # Footer content
    re.compile(
        r"^[ \t]*(copyright|©|all rights reserved|\d{4}[ \t]*-?[ \t]*\d{4}|terms( of (use|service))?|contact us|about us)[\s:]*?$",
        re.IGNORECASE | re.MULTILINE,
    ),
    # Copyright lines with trailing owner text
    re.compile(r"^[ \t]*(©|\(c\)|copyright)[ \t]+\d{4}.*$", re.IGNORECASE | re.MULTILINE),
)

_EXCESS_BLANK_LINES_RE = re.compile(r"\n{3,}")
_MARKDOWN_HEADING_RE = re.compile(r"^#{1,6}\s+(.+?)\s*#*\s*$")
_SETEXT_H1_RE = re.compile(r"^={3,}\s*$")
_SETEXT_H2_RE = re.compile(r"^-{3,}\s*$")
_PARAGRAPH_SPLIT_RE = re.compile(r"\n\s*\n")

_MONTHS = (
    "January", "February", "March", "April", "May", "June", "July",
    "August", "September", "October", "November", "December",
)
_MONTH_ALT = "|".join(_MONTHS)

_ISO_DATE_RE = re.compile(r"\b(\d{4}-\d{2}-\d{2})\b")
_MONTH_DAY_YEAR_RE = re.compile(rf"\b({_MONTH_ALT})\s+(\d{{1,2}}),?\s+(\d{{4}})\b", re.IGNORECASE)
_DAY_MONTH_YEAR_RE = re.compile(rf"\b(\d{{1,2}})\s+({_MONTH_ALT})\s+(\d{{4}})\b", re.IGNORECASE)
_NUMERIC_DATE_RE = re.compile(r"\b(\d{1,2})/(\d{1,2})/(\d{4})\b")
_VERSION_DATE_RE = re.compile(r"v?\d+\.\d+(?:\.\d+)?\s*[-–]\s*(\d{4}-\d{2}-\d{2})", re.IGNORECASE)

DEFAULT_CHUNK_SIZE = 1000


def normalize_text(raw_content: str) -> str:
    """Strip boilerplate lines and excess blank lines from raw text."""
    content = (raw_content or "").replace("\r\n", "\n").replace("\r", "\n")

    for pattern in BOILERPLATE_PATTERNS:
        content = pattern.sub("", content)

    content = _EXCESS_BLANK_LINES_RE.sub("\n\n", content)
    return content.strip()


def extract_headings(content: str) -> List[str]:
    """Return heading texts in document order, duplicates included.

    Recognizes ``#`` marker headings and text lines underlined with
    ``===`` or ``---``.
    """
    headings: List[str] = []
    lines = (content or "").split("\n")

    for index, line in enumerate(lines):
        match = _MARKDOWN_HEADING_RE.match(line)
        if match:
            headings.append(match.group(1).strip())
            continue

        if index + 1 >= len(lines) or not line.strip():
            continue
        underline = lines[index + 1]
        if _SETEXT_H1_RE.match(underline) or _SETEXT_H2_RE.match(underline):
            # A line that is itself a rule is not a heading
            if _SETEXT_H1_RE.match(line) or _SETEXT_H2_RE.match(line):
                continue
            headings.append(line.strip())

    return headings


def chunk_content(content: str, max_chunk_size: int = DEFAULT_CHUNK_SIZE) -> List[str]:
    """Pack blank-line separated paragraphs into chunks of at most ``max_chunk_size``.

    A paragraph is never split; one longer than the limit becomes its own chunk.
    """
    chunks: List[str] = []
    current = ""

    for paragraph in _PARAGRAPH_SPLIT_RE.split(content or ""):
        trimmed = paragraph.strip()
        if not trimmed:
            continue

        if current and len(current) + len(trimmed) > max_chunk_size:
            chunks.append(current)
            current = trimmed
        else:
            current = f"{current}\n\n{trimmed}" if current else trimmed

    if current:
        chunks.append(current)

    return chunks


def detect_timestamp(content: str) -> Optional[str]:
    """Find the first date-like string in the content.

    Searched in priority order: ISO date, long-form month/day/year (either
    order), numeric M/D/YYYY, then a date adjacent to a version number.

    Returns:
        The matched text, or None
    """
    content = content or ""

    match = _ISO_DATE_RE.search(content)
    if match:
        return match.group(1)

    for pattern in (_MONTH_DAY_YEAR_RE, _DAY_MONTH_YEAR_RE, _NUMERIC_DATE_RE):
        match = pattern.search(content)
        if match:
            return match.group(0)

    match = _VERSION_DATE_RE.search(content)
    if match:
        return match.group(1)

    return None


def _month_number(name: str) -> int:
    return [m.lower() for m in _MONTHS].index(name.lower()) + 1


def parse_timestamp(text: Optional[str]) -> Optional[str]:
    """Convert a string found by ``detect_timestamp`` into an ISO date.

    Numeric dates are read month first. Impossible dates yield None.
    """
    if not text:
        return None

    try:
        match = _ISO_DATE_RE.fullmatch(text.strip())
        if match:
            return date.fromisoformat(match.group(1)).isoformat()

        match = _MONTH_DAY_YEAR_RE.fullmatch(text.strip())
        if match:
            month, day, year = _month_number(match.group(1)), int(match.group(2)), int(match.group(3))
            return date(year, month, day).isoformat()

        match = _DAY_MONTH_YEAR_RE.fullmatch(text.strip())
        if match:
            day, month, year = int(match.group(1)), _month_number(match.group(2)), int(match.group(3))
            return date(year, month, day).isoformat()

        match = _NUMERIC_DATE_RE.fullmatch(text.strip())
        if match:
            month, day, year = (int(g) for g in match.groups())
            return date(year, month, day).isoformat()
    except ValueError:
        return None

    return None
