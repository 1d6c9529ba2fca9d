"""Intent routing for inbound chat text."""

from src.intents.router import IntentKind, IntentRouter, ParsedIntent

__all__ = ["IntentKind", "IntentRouter", "ParsedIntent"]
