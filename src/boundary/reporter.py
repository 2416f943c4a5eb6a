from __future__ import annotations

import logging
import threading
from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Callable, Mapping, Optional, Protocol, runtime_checkable

from rich.console import Console

from .logging import JsonlEventLogger, LOGGER_NAME


@runtime_checkable
class LoggingSink(Protocol):
    """Receives one diagnostic payload per failed boundary run."""

    def emit(self, payload: Mapping[str, Any]) -> None:
        ...


@dataclass
class CallableSink:
    """Adapts a plain callable (e.g. ``list.append``) into a LoggingSink."""
    fn: Callable[[Mapping[str, Any]], Any]

    def emit(self, payload: Mapping[str, Any]) -> None:
        self.fn(payload)


@dataclass
class ErrorReporter:
    """
    LoggingSink that writes failure payloads to the log and the JSONL event stream.

    Design notes
    ------------
    - Operators get the full payload (exception type, message, bounded trace).
    - Only the outcome code ever leaves the boundary for end users; that is not
      this class's concern.
    - The tally is guarded by a lock; one reporter may back many concurrent runs.

    Usage example
    -------------
        reporter = ErrorReporter(logger=logger, event_logger=event_logger)
        boundary = Boundary(steps, registry, sink=reporter)
        boundary.run("2015-10-10")
        reporter.print_summary()
    """

    logger: logging.Logger = field(default_factory=lambda: logging.getLogger(LOGGER_NAME))
    event_logger: Optional[JsonlEventLogger] = None

    def __post_init__(self) -> None:
        self._lock = threading.Lock()
        self._by_step: Counter[str] = Counter()
        self._by_outcome: Counter[str] = Counter()

    def emit(self, payload: Mapping[str, Any]) -> None:
        """Record one failure payload."""
        step_name = str(payload.get("failing_step", "-"))
        outcome = str(payload.get("outcome", "-"))
        with self._lock:
            self._by_step[step_name] += 1
            self._by_outcome[outcome] += 1

        self.logger.error(
            "Step '%s' failed: %s (%s) -> outcome=%s",
            step_name,
            payload.get("message", ""),
            payload.get("exc_type", "?"),
            outcome,
            extra={"step": step_name},
        )
        trace = payload.get("trace") or []
        if trace:
            self.logger.debug(
                "Trace for step '%s':\n  %s", step_name, "\n  ".join(trace), extra={"step": step_name}
            )

        if self.event_logger is not None:
            self.event_logger.step_failed(payload)

    def failures_count(self) -> int:
        """Return the total number of failures seen."""
        with self._lock:
            return sum(self._by_step.values())

    def has_failures(self) -> bool:
        return self.failures_count() > 0

    def outcome_counts(self) -> dict[str, int]:
        with self._lock:
            return dict(self._by_outcome)

    def render_summary(self) -> str:
        """Render a human-readable summary of failures by step and outcome."""
        with self._lock:
            by_step = dict(self._by_step)
            by_outcome = dict(self._by_outcome)

        lines: list[str] = [f"Boundary summary: {sum(by_step.values())} failure(s)"]
        if not by_step:
            return "\n".join(lines)

        lines.append("")
        lines.append("By step:")
        for name in sorted(by_step):
            lines.append(f"  - {name}: {by_step[name]}")
        lines.append("By outcome:")
        for code in sorted(by_outcome):
            lines.append(f"  - {code}: {by_outcome[code]}")

        if self.event_logger is not None:
            lines.append("")
            lines.append("Artifacts:")
            lines.append(f"  - {self.event_logger.path}")

        return "\n".join(lines)

    def print_summary(self, console: Optional[Console] = None) -> None:
        """
        Print summary to console.

        Usage example
        -------------
            reporter.print_summary()
        """
        (console or Console()).print(self.render_summary())

    def exit_code(self) -> int:
        """Return a conventional process exit code: 0 if no failures, else 1."""
        return 0 if not self.has_failures() else 1
