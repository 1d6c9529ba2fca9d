"""
Intent Router

Classifies inbound chat text into a small closed set of intents using
ordered keyword patterns. Anything that matches no command is a log entry:
the first integer (optionally followed by a currency token) becomes the
price and whatever text is left becomes the label.
"""

import re
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from src.config import get_settings
from src.models.budget import MAX_AMOUNT


class IntentKind(str, Enum):
    """Closed set of things a message can mean."""
    HELP = "help"
    TODAY = "today"
    SUMMARY = "summary"
    STATUS = "status"
    MENU = "menu"
    LOG = "log"
    EMPTY = "empty"


class ParsedIntent(BaseModel):
    """Result of routing one message."""
    kind: IntentKind
    raw_text: str = ""
    label: Optional[str] = None
    price: Optional[int] = Field(default=None, ge=0, le=MAX_AMOUNT)


# Order matters: the first matching command wins.
COMMAND_PATTERNS: list[tuple[IntentKind, re.Pattern]] = [
    (IntentKind.HELP, re.compile(r"^(help|\?|ヘルプ|使い方|てつだって)$", re.IGNORECASE)),
    (IntentKind.TODAY, re.compile(r"^(today|きょうのごはん|今日のごはん|今どう[？?]?|いまどう[？?]?|なにしてる[？?]?)$", re.IGNORECASE)),
    (IntentKind.SUMMARY, re.compile(r"^(summary|まとめ|今日のまとめ|きょうのまとめ)$", re.IGNORECASE)),
    (IntentKind.STATUS, re.compile(r"^(status|budget|report|きょうのさいさん|財務レポート|残高)$", re.IGNORECASE)),
    (IntentKind.MENU, re.compile(r"^(menu|suggest|suggestions?|こんだて|献立|おすすめ)$", re.IGNORECASE)),
]

# Runs longer than twelve digits are never a price.
PRICE_PATTERN = re.compile(r"(?<!\d)(\d{1,12})(?!\d)\s*(?:円|yen)?", re.IGNORECASE)
_WHITESPACE = re.compile(r"\s+")


class IntentRouter:
    """Keyword/regex classifier for chat messages."""

    def __init__(self, placeholder: Optional[str] = None):
        self._placeholder = placeholder or get_settings().app.empty_label_placeholder

    def route(self, text: Optional[str]) -> ParsedIntent:
        """Classify a message."""
        raw = text or ""
        trimmed = raw.strip()
        if not trimmed:
            return ParsedIntent(kind=IntentKind.EMPTY, raw_text=raw)

        for kind, pattern in COMMAND_PATTERNS:
            if pattern.match(trimmed):
                return ParsedIntent(kind=kind, raw_text=raw)

        label, price = self.extract_entry(trimmed)
        return ParsedIntent(kind=IntentKind.LOG, raw_text=raw, label=label, price=price)

    def extract_entry(self, text: str) -> tuple[str, Optional[int]]:
        """Split free text into (label, price)."""
        price = None
        match = PRICE_PATTERN.search(text)
        if match:
            price = int(match.group(1))
            text = text[:match.start()] + " " + text[match.end():]

        label = _WHITESPACE.sub(" ", text).strip()
        return (label or self._placeholder)[:200], price
