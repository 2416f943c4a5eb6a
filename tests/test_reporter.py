from pathlib import Path
import io
import json
import logging

from rich.console import Console

from boundary import Boundary, BoundaryConfig, ErrorReporter, ResolverRegistry, Step, configure_logging
from boundary.reporter import LoggingSink


def _make_reporter(*, tmp_path: Path, write_jsonl: bool = False) -> ErrorReporter:
    cfg = BoundaryConfig(
        log_dir=tmp_path / "logs",
        run_id="testrun",
        write_jsonl=write_jsonl,
        console_level=logging.CRITICAL,
    )
    logger, event_logger = configure_logging(cfg=cfg)
    return ErrorReporter(logger=logger, event_logger=event_logger)


def _payload(step: str = "parse_rows", outcome: str = "default") -> dict:
    return {
        "failing_step": step,
        "exc_type": "KeyError",
        "message": "'rows'",
        "trace": ["pipeline.py:10 in parse_rows", "runner.py:5 in run"],
        "input": "{}",
        "outcome": outcome,
        "timestamp": "2015-10-10T00:00:00+00:00",
    }


def test_reporter_is_a_logging_sink(tmp_path: Path) -> None:
    assert isinstance(_make_reporter(tmp_path=tmp_path), LoggingSink)


def test_emit_counts_and_logs(tmp_path: Path) -> None:
    reporter = _make_reporter(tmp_path=tmp_path)

    reporter.emit(_payload())
    reporter.emit(_payload(step="parse_date", outcome="invalid_date"))

    assert reporter.failures_count() == 2
    assert reporter.has_failures() is True
    assert reporter.outcome_counts() == {"default": 1, "invalid_date": 1}

    text = (tmp_path / "logs" / "run_testrun.log").read_text(encoding="utf-8")
    assert "Step 'parse_rows' failed" in text
    assert "outcome=default" in text
    assert "step=parse_rows" in text
    assert "pipeline.py:10 in parse_rows" in text


def test_jsonl_events_written(tmp_path: Path) -> None:
    reporter = _make_reporter(tmp_path=tmp_path, write_jsonl=True)

    reporter.emit(_payload())

    lines = (tmp_path / "logs" / "events_testrun.jsonl").read_text(encoding="utf-8").strip().splitlines()
    assert len(lines) == 1
    event = json.loads(lines[0])
    assert event["event"] == "step_failed"
    assert event["step"] == "parse_rows"
    assert event["context"]["outcome"] == "default"
    assert event["context"]["trace"][0] == "pipeline.py:10 in parse_rows"


def test_render_summary(tmp_path: Path) -> None:
    reporter = _make_reporter(tmp_path=tmp_path, write_jsonl=True)
    assert "0 failure(s)" in reporter.render_summary()

    reporter.emit(_payload())
    text = reporter.render_summary()

    assert "1 failure(s)" in text
    assert "parse_rows: 1" in text
    assert "default: 1" in text
    assert "events_testrun.jsonl" in text


def test_print_summary_uses_console(tmp_path: Path) -> None:
    reporter = _make_reporter(tmp_path=tmp_path)
    buffer = io.StringIO()

    reporter.print_summary(Console(file=buffer, width=120))

    assert "Boundary summary" in buffer.getvalue()


def test_exit_code(tmp_path: Path) -> None:
    reporter = _make_reporter(tmp_path=tmp_path)
    assert reporter.exit_code() == 0
    reporter.emit(_payload())
    assert reporter.exit_code() == 1


def test_reporter_behind_a_boundary(tmp_path: Path) -> None:
    reporter = _make_reporter(tmp_path=tmp_path)

    def parse(_value):
        raise ValueError("not-a-date")

    boundary = Boundary([Step("parse_date", parse)], ResolverRegistry(default="invalid_date"), sink=reporter)

    boundary.run("not-a-date")
    boundary.run("still-not-a-date")

    assert reporter.outcome_counts() == {"invalid_date": 2}
