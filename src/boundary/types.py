from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Iterator, Optional
import traceback as _traceback

_INPUT_REPR_LIMIT = 200


class RunStatus(str, Enum):
    """Terminal state of a single boundary invocation."""
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass(frozen=True)
class Step:
    """
    A named, single-argument transformation.

    Usage example
    -------------
        parse = Step("parse_date", lambda s: date.fromisoformat(s).isoformat())
    """
    name: str
    transform: Callable[[Any], Any]
    timeout: Optional[float] = None  # seconds; honored by AsyncBoundary only

    def __post_init__(self) -> None:
        if not isinstance(self.name, str) or not self.name:
            raise ValueError("Step name must be a non-empty string.")
        if not callable(self.transform):
            raise TypeError(f"Step '{self.name}' transform is not callable.")
        if self.timeout is not None and self.timeout <= 0:
            raise ValueError(f"Step '{self.name}' timeout must be positive.")

    def __call__(self, value: Any) -> Any:
        return self.transform(value)


def format_frames(exc: BaseException, max_frames: int) -> tuple[str, ...]:
    if max_frames <= 0:
        return ()
    frames = _traceback.extract_tb(exc.__traceback__)
    # innermost first, where the failure was raised
    innermost = list(reversed(frames))[:max_frames]
    return tuple(f"{f.filename}:{f.lineno} in {f.name}" for f in innermost)


def _safe_str(exc: BaseException) -> str:
    try:
        return str(exc)
    except Exception:
        return f"<unprintable {type(exc).__name__}>"


def _short_repr(value: Any) -> str:
    try:
        text = repr(value)
    except Exception:
        text = f"<unrepresentable {type(value).__name__}>"
    if len(text) > _INPUT_REPR_LIMIT:
        text = text[: _INPUT_REPR_LIMIT - 3] + "..."
    return text


@dataclass(frozen=True)
class ErrorRecord:
    """
    Snapshot of a single step failure.

    Built once by the runner when a step raises, handed to the resolver registry
    and to the logging sink, then dropped when the run returns.

    Usage example
    -------------
        rec = ErrorRecord.from_exception(step_name="parse_date", value="x", exc=exc, max_frames=5)
        payload = rec.system_payload("invalid_date")
    """
    failing_step: str
    input_at_failure: Any
    exception: BaseException
    exc_type: str
    message: str
    trace: tuple[str, ...]
    timestamp: datetime

    @staticmethod
    def from_exception(*, step_name: str, value: Any, exc: BaseException, max_frames: int = 5) -> "ErrorRecord":
        return ErrorRecord(
            failing_step=step_name,
            input_at_failure=value,
            exception=exc,
            exc_type=type(exc).__name__,
            message=_safe_str(exc),
            trace=format_frames(exc, max_frames),
            timestamp=datetime.now(timezone.utc),
        )

    def system_payload(self, outcome: str) -> dict[str, Any]:
        """Structured payload for operators. Never hand this to end users."""
        return {
            "failing_step": self.failing_step,
            "exc_type": self.exc_type,
            "message": self.message,
            "trace": list(self.trace),
            "input": _short_repr(self.input_at_failure),
            "outcome": outcome,
            "timestamp": self.timestamp.isoformat(),
        }


@dataclass(frozen=True)
class RunResult:
    """
    Uniform result of a boundary invocation: a value or an outcome code, never both.

    `status` (or `ok`) tells the two apart. A step may legitimately return None,
    so ``value is None`` alone does not mean the run failed; a failed result
    always carries an outcome and a successful one never does.

    Unpacks like a pair so callers can write ``value, outcome = boundary.run(x)``.
    """
    status: RunStatus
    value: Any = None
    outcome: Optional[str] = None

    def __post_init__(self) -> None:
        if self.status == RunStatus.FAILED:
            if self.outcome is None:
                raise ValueError("A failed RunResult requires an outcome code.")
            if self.value is not None:
                raise ValueError("A failed RunResult cannot carry a value.")
        elif self.outcome is not None:
            raise ValueError("A successful RunResult cannot carry an outcome code.")

    @classmethod
    def success(cls, value: Any) -> "RunResult":
        return cls(status=RunStatus.SUCCEEDED, value=value)

    @classmethod
    def failure(cls, outcome: str) -> "RunResult":
        return cls(status=RunStatus.FAILED, outcome=outcome)

    @property
    def ok(self) -> bool:
        return self.status == RunStatus.SUCCEEDED

    def __iter__(self) -> Iterator[Any]:
        yield self.value
        yield self.outcome
