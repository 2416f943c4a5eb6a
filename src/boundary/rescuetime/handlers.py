from __future__ import annotations

import asyncio
from typing import Any, Optional

import requests

from boundary.reporter import LoggingSink
from boundary.resolver import ResolverRegistry
from boundary.runner import AsyncBoundary, Boundary
from boundary.types import RunResult

from .pipeline import RescuetimeSettings, build_steps

KEY_NOT_FOUND = "# key not found"


def _is_unreachable(_data: Any, exc: BaseException) -> bool:
    return isinstance(exc, (requests.ConnectionError, requests.Timeout, asyncio.TimeoutError))


def _is_bad_key(data: Any, _exc: BaseException) -> bool:
    return data.get("error") == KEY_NOT_FOUND


def build_registry() -> ResolverRegistry:
    """Outcome codes for the Rescuetime pipeline."""
    return (
        ResolverRegistry(default="default")
        .add("parse_date", "invalid_date")
        .add("fetch", "service_unavailable", guard=_is_unreachable)
        .add("parse_rows", "invalid_api_key", guard=_is_bad_key)
    )


def fetch_activity(
    day: str,
    *,
    settings: Optional[RescuetimeSettings] = None,
    session: Optional[requests.Session] = None,
    registry: Optional[ResolverRegistry] = None,
    sink: Optional[LoggingSink] = None,
    max_frames: int = 5,
) -> RunResult:
    """
    Fetch one day of Rescuetime activity rows.

    `registry` replaces the built-in outcome rules, e.g. one loaded from YAML.

    Usage example
    -------------
        rows, outcome = fetch_activity("2015-10-10")
    """
    boundary = Boundary(
        build_steps(settings or RescuetimeSettings.from_env(), session=session),
        registry if registry is not None else build_registry(),
        sink=sink,
        max_frames=max_frames,
    )
    return boundary.run(day)


async def fetch_activity_async(
    day: str,
    *,
    settings: Optional[RescuetimeSettings] = None,
    session: Optional[requests.Session] = None,
    registry: Optional[ResolverRegistry] = None,
    sink: Optional[LoggingSink] = None,
    max_frames: int = 5,
    step_timeout: Optional[float] = None,
) -> RunResult:
    """
    `fetch_activity` on an AsyncBoundary, with `step_timeout` seconds per step.

    The HTTP call runs in a worker thread; when it outlives the timeout the run
    resolves to `service_unavailable` under the built-in rules.

    Usage example
    -------------
        result = asyncio.run(fetch_activity_async("2015-10-10", step_timeout=5.0))
    """
    boundary = AsyncBoundary(
        build_steps(settings or RescuetimeSettings.from_env(), session=session, offload=True),
        registry if registry is not None else build_registry(),
        sink=sink,
        max_frames=max_frames,
        step_timeout=step_timeout,
    )
    return await boundary.run(day)
