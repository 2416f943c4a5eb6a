"""Rescuetime activity fetch expressed as boundary steps."""

from __future__ import annotations

import asyncio
import os
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Mapping, Optional
from urllib.parse import urlencode
from zoneinfo import ZoneInfo

import requests

from boundary.config import ConfigError
from boundary.types import Step

# (connect, read) seconds
REQUEST_TIMEOUT = (10.0, 60.0)


@dataclass(frozen=True)
class RescuetimeSettings:
    """
    Connection settings for the Rescuetime analytic data API.

    Missing values stay None; the step that needs them fails and is resolved
    like any other step failure.
    """
    api_url: Optional[str] = None
    api_key: Optional[str] = None
    timezone: Optional[str] = None

    @classmethod
    def from_env(
        cls,
        environ: Optional[Mapping[str, str]] = None,
        config: Optional[Mapping[str, Any]] = None,
    ) -> "RescuetimeSettings":
        """
        Read RESCUETIME_API_URL, RESCUETIME_API_KEY and RESCUETIME_TIMEZONE.

        The ``rescuetime`` section of a YAML config (keys ``api_url``, ``api_key``,
        ``timezone``) fills in whatever the environment leaves unset.
        """
        env = os.environ if environ is None else environ
        section = config or {}

        def _pick(env_key: str, cfg_key: str) -> Optional[str]:
            value = env.get(env_key) or section.get(cfg_key)
            return str(value) if value else None

        return cls(
            api_url=_pick("RESCUETIME_API_URL", "api_url"),
            api_key=_pick("RESCUETIME_API_KEY", "api_key"),
            timezone=_pick("RESCUETIME_TIMEZONE", "timezone"),
        )


def parse_date(text: str) -> str:
    """Normalize an ISO date or datetime string to ``YYYY-MM-DD``."""
    return datetime.fromisoformat(text).strftime("%Y-%m-%d")


def build_url(settings: RescuetimeSettings, day: str) -> str:
    """
    URL for one day of interval data.

    The API key is left out of the URL; `fetch` sends it as a request parameter
    so it never shows up as a step input in failure payloads.
    """
    if not settings.api_url:
        raise ConfigError("RESCUETIME_API_URL is not set")
    if not settings.api_key:
        raise ConfigError("RESCUETIME_API_KEY is not set")
    query = urlencode(
        {
            "restrict_begin": day,
            "restrict_end": day,
            "perspective": "interval",
            "resolution_time": "minute",
            "format": "json",
        }
    )
    return f"{settings.api_url}?{query}"


def fetch(session: requests.Session, settings: RescuetimeSettings, url: str) -> Any:
    key = settings.api_key or ""
    try:
        response = session.get(
            url,
            params={"key": key},
            timeout=REQUEST_TIMEOUT,
            headers={"Accept": "application/json"},
        )
    except requests.RequestException as error:
        # requests puts the full URL, key included, into connection error messages
        text = str(error)
        if key and key in text:
            raise type(error)(text.replace(key, "***")) from None
        raise
    # a rejected key comes back as a JSON body, not an HTTP error status
    return response.json()


def parse_rows(settings: RescuetimeSettings, response: Mapping[str, Any]) -> list[dict[str, Any]]:
    """Map raw interval rows to dicts, converting row dates from the account timezone to UTC."""
    rows = response["rows"]
    if not settings.timezone:
        raise ConfigError("RESCUETIME_TIMEZONE is not set")
    tz = ZoneInfo(settings.timezone)

    parsed: list[dict[str, Any]] = []
    for row in rows:
        local = datetime.fromisoformat(row[0])
        if local.tzinfo is None:
            local = local.replace(tzinfo=tz)
        parsed.append(
            {
                "date": local.astimezone(timezone.utc).isoformat(),
                "time_spent_in_seconds": row[1],
                "number_of_people": row[2],
                "activity": row[3],
                "category": row[4],
                "productivity": row[5],
            }
        )
    return parsed


def build_steps(
    settings: RescuetimeSettings,
    session: Optional[requests.Session] = None,
    *,
    offload: bool = False,
) -> list[Step]:
    """
    Assemble ``parse_date -> build_url -> fetch -> parse_rows``.

    With ``offload=True`` the HTTP call runs in a worker thread and the fetch step
    returns an awaitable, so an AsyncBoundary timeout can stop waiting on it.

    Usage example
    -------------
        steps = build_steps(RescuetimeSettings.from_env())
        boundary = Boundary(steps, build_registry())
        rows, outcome = boundary.run("2015-10-10")
    """
    http = session if session is not None else requests.Session()

    def _fetch(url: str) -> Any:
        return fetch(http, settings, url)

    return [
        Step("parse_date", parse_date),
        Step("build_url", lambda day: build_url(settings, day)),
        Step("fetch", (lambda url: asyncio.to_thread(_fetch, url)) if offload else _fetch),
        Step("parse_rows", lambda response: parse_rows(settings, response)),
    ]
