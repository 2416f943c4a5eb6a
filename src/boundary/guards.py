from __future__ import annotations

from typing import Any, Callable, Optional

from .reporter import LoggingSink
from .resolver import ResolverRegistry
from .runner import Boundary
from .types import RunResult, Step


def guard(
    step_name: str,
    fn: Callable[[], Any],
    registry: ResolverRegistry,
    *,
    sink: Optional[LoggingSink] = None,
    max_frames: int = 5,
) -> RunResult:
    """
    Execute a zero-argument callable under a single-step boundary.

    Returns
    -------
    result
        ``RunResult.success(value)`` on success; otherwise the resolved outcome.

    Usage example
    -------------
        value, outcome = guard("load_rows", lambda: load_rows(path), registry)
        if outcome is not None:
            return render(outcome)
    """
    boundary = Boundary(
        [Step(step_name, lambda _unused: fn())],
        registry,
        sink=sink,
        max_frames=max_frames,
    )
    return boundary.run(None)
