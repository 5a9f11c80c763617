"""Low-confidence URL guess from a window title.

Used only after every extraction strategy failed, and only when enabled.
The result is attached to the failure and is never reported as a real
extraction.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from .classifier import clean_title

# First match wins; "google" last since it is the most generic keyword.
_KEYWORDS: tuple[tuple[str, str], ...] = (
    ("claude", "https://claude.ai/chat"),
    ("github", "https://github.com"),
    ("youtube", "https://www.youtube.com"),
    ("stack overflow", "https://stackoverflow.com"),
    ("stackoverflow", "https://stackoverflow.com"),
    ("reddit", "https://www.reddit.com"),
    ("google", "https://www.google.com"),
)


@dataclass(frozen=True, slots=True)
class TitleGuess:
    url: str
    keyword: str
    title: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {"url": self.url, "keyword": self.keyword, "title": self.title, "confidence": "low"}


def guess_from_title(title: str | None) -> TitleGuess | None:
    # Match on the cleaned title so " - Google Chrome" never counts as "google".
    cleaned = clean_title(title)
    low = cleaned.lower()
    if not low:
        return None
    for keyword, url in _KEYWORDS:
        if keyword in low:
            return TitleGuess(url=url, keyword=keyword, title=cleaned)
    return None


__all__ = ["TitleGuess", "guess_from_title"]
