"""Rescuetime example pipeline for boundary."""

from boundary.rescuetime.pipeline import RescuetimeSettings, build_steps
from boundary.rescuetime.handlers import build_registry, fetch_activity, fetch_activity_async

__all__ = [
    "RescuetimeSettings",
    "build_steps",
    "build_registry",
    "fetch_activity",
    "fetch_activity_async",
]
