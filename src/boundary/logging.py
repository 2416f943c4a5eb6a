from __future__ import annotations

import json
import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Mapping, Optional

from rich.logging import RichHandler

from .config import BoundaryConfig

LOGGER_NAME = "boundary"


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class JsonlEventLogger:
    """
    Append-only JSON-lines stream of boundary events.

    Every line carries ``time_utc``, ``run_id``, ``event``, ``step`` and ``level``;
    `step_failed` lines add the outcome and operator diagnostics under ``context``.
    Appends are serialized, so one stream can back concurrent boundary runs.

    Usage example
    -------------
        ev = JsonlEventLogger(path=Path("logs/events_abc.jsonl"), run_id="abc")
        ev.step_failed(record.system_payload("default"))
    """
    path: Path
    run_id: str
    _lock: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False, compare=False)

    def step_failed(self, payload: Mapping[str, Any]) -> None:
        """Append the operator payload of one failed run."""
        self.write(
            event="step_failed",
            step=payload.get("failing_step"),
            level="ERROR",
            message=payload.get("message"),
            context={
                "outcome": payload.get("outcome"),
                "exc_type": payload.get("exc_type"),
                "trace": list(payload.get("trace") or ()),
                "input": payload.get("input"),
                "failed_at": payload.get("timestamp"),
            },
        )

    def write(
        self,
        *,
        event: str,
        step: Optional[str],
        level: str,
        context: Optional[Mapping[str, Any]] = None,
        exc: Optional[BaseException] = None,
        message: Optional[str] = None,
    ) -> None:
        entry: dict[str, Any] = {
            "time_utc": _utc_now_iso(),
            "run_id": self.run_id,
            "event": event,
            "step": step,
            "level": level,
        }
        extras = {
            "message": message,
            "context": dict(context) if context else None,
            "exc_type": type(exc).__name__ if exc is not None else None,
        }
        entry.update((k, v) for k, v in extras.items() if v)
        self._append(json.dumps(entry, ensure_ascii=False, default=str))

    def _append(self, line: str) -> None:
        with self._lock:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with self.path.open("a", encoding="utf-8") as f:
                f.write(line + "\n")


class _RunContextFilter(logging.Filter):
    """Stamps run id and a placeholder step onto records that lack them."""

    def __init__(self, *, run_id: str) -> None:
        super().__init__()
        self._defaults = {"run_id": run_id, "step": "-"}

    def filter(self, record: logging.LogRecord) -> bool:  # noqa: A003
        for key, value in self._defaults.items():
            record.__dict__.setdefault(key, value)
        return True


def configure_logging(*, cfg: BoundaryConfig) -> tuple[logging.Logger, Optional[JsonlEventLogger]]:
    """
    Configure console + file logging, plus optional JSONL event logger.

    Returns
    -------
    logger
        A configured logger named "boundary".
    event_logger
        JsonlEventLogger if cfg.write_jsonl else None.

    Usage example
    -------------
        logger, event_logger = configure_logging(cfg=cfg)
        logger.info("Hello")
    """
    run_id = cfg.resolved_run_id()
    log_dir = cfg.log_dir
    log_dir.mkdir(parents=True, exist_ok=True)

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(logging.DEBUG)
    for handler in list(logger.handlers):
        handler.close()
    logger.handlers.clear()
    logger.propagate = False

    # Filters on handlers, so records from child loggers (boundary.runner, ...) get context too
    context_filter = _RunContextFilter(run_id=run_id)

    console_handler = RichHandler(show_path=False)
    console_handler.addFilter(context_filter)
    console_handler.setLevel(cfg.console_level)
    console_handler.setFormatter(logging.Formatter("%(message)s"))
    logger.addHandler(console_handler)

    # File handler (always plain)
    file_path = log_dir / f"run_{run_id}.log"
    file_handler = logging.FileHandler(file_path, encoding="utf-8")
    file_handler.addFilter(context_filter)
    file_handler.setLevel(cfg.file_level)
    file_handler.setFormatter(
        logging.Formatter(
            fmt="%(asctime)sZ | run=%(run_id)s | step=%(step)s | %(levelname)s | %(message)s",
            datefmt="%Y-%m-%dT%H:%M:%S",
        )
    )
    logger.addHandler(file_handler)

    event_logger = None
    if cfg.write_jsonl:
        event_logger = JsonlEventLogger(path=log_dir / f"events_{run_id}.jsonl", run_id=run_id)

    logger.debug("Logging configured (run_id=%s, max_frames=%d, log_dir=%s)", run_id, cfg.max_frames, str(log_dir))
    return logger, event_logger
