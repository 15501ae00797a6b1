"""Content-quality gate.

These checks are intentionally lightweight: they classify raw input as natural
language documentation or as code, HTML or minified noise. The result never
blocks ingestion. It is attached to the artifact (``is_code_like``) so the
extractor can switch off strategies that produce nonsense on such input, and
its reasons are surfaced to the caller as warnings.

Thresholds:

* code-like: code-syntax characters make up at least ``CODE_CHAR_RATIO``
  of the text and at least ``MIN_IDIOMS_WITH_RATIO`` code idioms match, or
  at least ``MIN_IDIOMS_ALONE`` idioms match regardless of the ratio
* HTML-heavy: at least ``MIN_HTML_TAGS`` tag-like substrings that together
  cover at least ``HTML_CHAR_RATIO`` of the text
* minified: at least one line longer than ``LONG_LINE_LENGTH`` characters,
  with long lines holding at least ``MINIFIED_CHAR_RATIO`` of the text
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Dict, List

from .utils import setup_logging


logger = setup_logging(__name__)


CODE_SYNTAX_CHARS = frozenset("{}()[]<>;=&|^~`$\\")

CODE_CHAR_RATIO = 0.06
MIN_IDIOMS_WITH_RATIO = 2
MIN_IDIOMS_ALONE = 8

MIN_HTML_TAGS = 10
HTML_CHAR_RATIO = 0.15

LONG_LINE_LENGTH = 500
MINIFIED_CHAR_RATIO = 0.5

_HTML_TAG_RE = re.compile(r"</?[a-zA-Z][a-zA-Z0-9-]*(?:\s[^<>]*)?/?>")

CODE_IDIOM_PATTERNS = (
    re.compile(r"<script\b", re.IGNORECASE),
    re.compile(r"<style\b", re.IGNORECASE),
    re.compile(r"\bfunction\s*\w*\s*\("),
    re.compile(r"\b(?:const|let|var)\s+\w+\s*="),
    re.compile(r"=>"),
    re.compile(r"^\s*import\s+[\w{*]", re.MULTILINE),
    re.compile(r"^\s*from\s+[\w.]+\s+import\s", re.MULTILINE),
    re.compile(r"\bexport\s+(?:default|const|function|class)\b"),
    re.compile(r"\brequire\(\s*['\"]"),
    re.compile(r"\bmodule\.exports\b"),
    re.compile(r"^\s*def\s+\w+\s*\(", re.MULTILINE),
    re.compile(r"^\s*class\s+\w+\s*[:({]", re.MULTILINE),
    re.compile(r"^\s*#include\s*<", re.MULTILINE),
    re.compile(r"\bpublic\s+(?:static\s+)?(?:void|class|int|string)\b", re.IGNORECASE),
    re.compile(r"\bconsole\.log\("),
    re.compile(r"\b(?:document|window)\.\w+"),
    re.compile(r"\breturn\s+[^.\n]*;"),
    re.compile(r"[;{}]\s*$", re.MULTILINE),
)


@dataclass(frozen=True)
class ContentQualityReport:
    code_char_ratio: float
    html_tag_count: int
    html_char_ratio: float
    long_line_count: int
    code_idiom_count: int
    is_code_like: bool
    is_html_heavy: bool
    is_minified: bool
    reasons: List[str] = field(default_factory=list)

    @property
    def should_gate_extraction(self) -> bool:
        return self.is_code_like or self.is_html_heavy or self.is_minified

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code_char_ratio": self.code_char_ratio,
            "html_tag_count": self.html_tag_count,
            "html_char_ratio": self.html_char_ratio,
            "long_line_count": self.long_line_count,
            "code_idiom_count": self.code_idiom_count,
            "is_code_like": self.is_code_like,
            "is_html_heavy": self.is_html_heavy,
            "is_minified": self.is_minified,
            "reasons": list(self.reasons),
        }


def _count_idioms(text: str) -> int:
    return sum(len(pattern.findall(text)) for pattern in CODE_IDIOM_PATTERNS)


def check_content_quality(text: str) -> ContentQualityReport:
    """Classify text as documentation or as code/HTML/minified noise.

    Args:
        text: Raw artifact content

    Returns:
        ContentQualityReport with the measurements, flags and reasons
    """
    text = text or ""
    total = len(text)
    if total == 0:
        return ContentQualityReport(0.0, 0, 0.0, 0, 0, False, False, False, [])

    code_chars = sum(1 for ch in text if ch in CODE_SYNTAX_CHARS)
    code_char_ratio = code_chars / total

    tags = _HTML_TAG_RE.findall(text)
    html_char_ratio = sum(len(t) for t in tags) / total

    long_lines = [line for line in text.split("\n") if len(line) > LONG_LINE_LENGTH]
    long_line_chars = sum(len(line) for line in long_lines)

    idioms = _count_idioms(text)

    reasons: List[str] = []

    is_code_like = (
        (code_char_ratio >= CODE_CHAR_RATIO and idioms >= MIN_IDIOMS_WITH_RATIO)
        or idioms >= MIN_IDIOMS_ALONE
    )
    if is_code_like:
        reasons.append(
            f"Content looks like source code ({code_char_ratio:.0%} code-syntax characters, "
            f"{idioms} code pattern match(es))"
        )

    is_html_heavy = len(tags) >= MIN_HTML_TAGS and html_char_ratio >= HTML_CHAR_RATIO
    if is_html_heavy:
        reasons.append(
            f"Content is HTML-heavy ({len(tags)} tags covering {html_char_ratio:.0%} of the text)"
        )

    is_minified = bool(long_lines) and long_line_chars / total >= MINIFIED_CHAR_RATIO
    if is_minified:
        reasons.append(
            f"Content appears minified ({len(long_lines)} line(s) longer than {LONG_LINE_LENGTH} characters)"
        )

    if reasons:
        logger.debug("Content quality gate flagged input: %s", "; ".join(reasons))

    return ContentQualityReport(
        code_char_ratio=code_char_ratio,
        html_tag_count=len(tags),
        html_char_ratio=html_char_ratio,
        long_line_count=len(long_lines),
        code_idiom_count=idioms,
        is_code_like=is_code_like,
        is_html_heavy=is_html_heavy,
        is_minified=is_minified,
        reasons=reasons,
    )
