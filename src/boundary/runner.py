from __future__ import annotations

import asyncio
import inspect
import logging
from typing import Any, Optional, Sequence

from .reporter import ErrorReporter, LoggingSink
from .resolver import ResolverConfigError, ResolverRegistry
from .types import ErrorRecord, RunResult, Step

logger = logging.getLogger(__name__)


class _BaseBoundary:
    def __init__(
        self,
        steps: Sequence[Step],
        registry: ResolverRegistry,
        *,
        sink: Optional[LoggingSink] = None,
        max_frames: int = 5,
    ) -> None:
        if not steps:
            raise ValueError("A boundary needs at least one step.")
        names = [s.name for s in steps]
        duplicates = sorted({n for n in names if names.count(n) > 1})
        if duplicates:
            raise ValueError(f"Duplicate step name(s): {', '.join(duplicates)}")
        if max_frames < 0:
            raise ValueError("max_frames must be >= 0")
        if not registry.covers(names):
            uncovered = ", ".join(n for n in names if not registry.covers([n]))
            raise ResolverConfigError(
                f"Resolver registry has no default and no unconditional rule for step(s): {uncovered}"
            )

        self._steps: tuple[Step, ...] = tuple(steps)
        self._registry = registry.copy()
        self._sink: LoggingSink = sink if sink is not None else ErrorReporter()
        self._max_frames = max_frames

    @property
    def steps(self) -> tuple[Step, ...]:
        return self._steps

    @property
    def step_names(self) -> tuple[str, ...]:
        return tuple(s.name for s in self._steps)

    def _fail(self, step: Step, value: Any, exc: BaseException) -> RunResult:
        record = ErrorRecord.from_exception(step_name=step.name, value=value, exc=exc, max_frames=self._max_frames)
        outcome = self._registry.resolve(record)
        self._emit(record.system_payload(outcome))
        return RunResult.failure(outcome)

    def _emit(self, payload: dict[str, Any]) -> None:
        try:
            self._sink.emit(payload)
        except Exception:
            logger.debug("Logging sink raised while reporting step '%s'", payload.get("failing_step"), exc_info=True)


class Boundary(_BaseBoundary):
    """
    Runs steps in order, turning the first failure into an outcome code.

    Rules
    -----
    - Each step receives the previous step's output.
    - The first step that raises stops the run; later steps never execute.
    - The failure is resolved by the registry, reported once to the sink, and
      returned as ``RunResult.failure(outcome)``. It is never re-raised.
    - A successful run writes nothing to the sink.

    The boundary keeps no per-run state, so one instance can be shared across threads.

    Usage example
    -------------
        boundary = Boundary(
            [Step("add1", lambda x: x + 1), Step("times3", lambda x: x * 3)],
            ResolverRegistry(default="default"),
        )
        value, outcome = boundary.run(1)
    """

    def __init__(
        self,
        steps: Sequence[Step],
        registry: ResolverRegistry,
        *,
        sink: Optional[LoggingSink] = None,
        max_frames: int = 5,
    ) -> None:
        timed = [s.name for s in steps if s.timeout is not None]
        if timed:
            raise ValueError(f"Step timeouts need AsyncBoundary: {', '.join(timed)}")
        super().__init__(steps, registry, sink=sink, max_frames=max_frames)

    def run(self, value: Any) -> RunResult:
        current = value
        for step in self._steps:
            try:
                current = step(current)
            except Exception as exc:
                return self._fail(step, current, exc)
        return RunResult.success(current)

    __call__ = run


class AsyncBoundary(_BaseBoundary):
    """
    Async flavor of Boundary with per-step timeouts.

    A step may return an awaitable; it is awaited before the next step starts.
    A step's own `timeout`, or `step_timeout` when the step sets none, bounds that
    step alone. Expiry is an ordinary step failure (TimeoutError) and goes through
    the registry like any other.
    Blocking synchronous work inside a step cannot be interrupted by the timeout.

    Usage example
    -------------
        boundary = AsyncBoundary([Step("fetch", fetch_async, timeout=5.0)], registry)
        result = await boundary.run(url)
    """

    def __init__(
        self,
        steps: Sequence[Step],
        registry: ResolverRegistry,
        *,
        sink: Optional[LoggingSink] = None,
        max_frames: int = 5,
        step_timeout: Optional[float] = None,
    ) -> None:
        if step_timeout is not None and step_timeout <= 0:
            raise ValueError("step_timeout must be positive")
        super().__init__(steps, registry, sink=sink, max_frames=max_frames)
        self._step_timeout = step_timeout

    async def _invoke(self, step: Step, value: Any) -> Any:
        out = step(value)
        if inspect.isawaitable(out):
            out = await out
        return out

    async def run(self, value: Any) -> RunResult:
        current = value
        for step in self._steps:
            timeout = step.timeout if step.timeout is not None else self._step_timeout
            try:
                if timeout is None:
                    current = await self._invoke(step, current)
                else:
                    current = await asyncio.wait_for(self._invoke(step, current), timeout=timeout)
            except Exception as exc:
                return self._fail(step, current, exc)
        return RunResult.success(current)

    __call__ = run
