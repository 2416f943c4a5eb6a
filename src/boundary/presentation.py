"""Outcome code to user-facing text."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping, Optional

from .config import ConfigError

GENERIC_MESSAGE = "Something went wrong."

DEFAULT_MESSAGES: dict[str, dict[str, str]] = {
    "en": {
        "default": "Something went wrong. Please try again later.",
        "invalid_date": "That date could not be understood. Use the YYYY-MM-DD format.",
        "invalid_api_key": "The Rescuetime API key was rejected. Check your account settings.",
        "service_unavailable": "Rescuetime could not be reached. Please try again later.",
    },
}


@dataclass(frozen=True)
class MessageCatalog:
    """
    Localized texts keyed by locale, then outcome code.

    Lookup falls back from the requested locale to `default_locale`, then to the
    catalog's ``default`` code, then to a generic sentence.
    """
    messages: Mapping[str, Mapping[str, str]] = field(default_factory=lambda: DEFAULT_MESSAGES)
    default_locale: str = "en"

    def message(self, code: str, locale: Optional[str] = None) -> str:
        for loc in (locale, self.default_locale):
            if loc is None:
                continue
            table = self.messages.get(loc, {})
            if code in table:
                return table[code]
        fallback = self.messages.get(locale or self.default_locale, {}).get("default")
        if fallback is None:
            fallback = self.messages.get(self.default_locale, {}).get("default")
        return fallback if fallback is not None else GENERIC_MESSAGE

    @classmethod
    def from_config(cls, mapping: Mapping[str, Any], *, default_locale: str = "en") -> "MessageCatalog":
        """Merge a ``messages`` YAML section over DEFAULT_MESSAGES."""
        merged: dict[str, dict[str, str]] = {loc: dict(table) for loc, table in DEFAULT_MESSAGES.items()}
        for loc, table in mapping.items():
            if not isinstance(table, Mapping):
                raise ConfigError(f"messages.{loc} must map outcome codes to text.")
            merged.setdefault(str(loc), {}).update({str(k): str(v) for k, v in table.items()})
        return cls(messages=merged, default_locale=default_locale)
