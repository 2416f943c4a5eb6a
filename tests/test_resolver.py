import pytest

from boundary.config import ConfigError
from boundary.resolver import (
    ResolverConfigError,
    ResolverRegistry,
    UnresolvedFailureError,
    build_guard,
)
from boundary.types import ErrorRecord


def _record(step: str, data=None, exc: BaseException | None = None) -> ErrorRecord:
    exc = exc if exc is not None else RuntimeError("boom")
    try:
        raise exc
    except Exception as raised:
        return ErrorRecord.from_exception(step_name=step, value=data, exc=raised)


def test_unguarded_rule_for_step() -> None:
    registry = ResolverRegistry(default="default").add("parse_date", "invalid_date")
    assert registry.resolve(_record("parse_date")) == "invalid_date"


def test_default_applies_when_no_rule_matches() -> None:
    registry = ResolverRegistry(default="default").add("parse_date", "invalid_date")
    assert registry.resolve(_record("fetch")) == "default"


def test_true_guard_beats_unguarded_rule() -> None:
    registry = (
        ResolverRegistry(default="default")
        .add("X", "plain")
        .add("X", "guarded", guard=lambda data, exc: data == {})
    )
    assert registry.resolve(_record("X", data={})) == "guarded"


def test_false_guard_falls_back_to_unguarded_rule_regardless_of_order() -> None:
    first = ResolverRegistry(default="default").add("X", "plain").add("X", "guarded", guard=lambda d, e: False)
    second = ResolverRegistry(default="default").add("X", "guarded", guard=lambda d, e: False).add("X", "plain")

    assert first.resolve(_record("X")) == "plain"
    assert second.resolve(_record("X")) == "plain"


def test_guarded_rules_are_tried_in_registration_order() -> None:
    always = lambda data, exc: True  # noqa: E731
    a_first = ResolverRegistry(default="default").add("X", "a", guard=always).add("X", "b", guard=always)
    b_first = ResolverRegistry(default="default").add("X", "b", guard=always).add("X", "a", guard=always)

    assert a_first.resolve(_record("X")) == "a"
    assert b_first.resolve(_record("X")) == "b"


def test_first_unguarded_rule_wins() -> None:
    registry = ResolverRegistry(default="default").add("X", "one").add("X", "two")
    assert registry.resolve(_record("X")) == "one"


def test_guard_that_raises_is_a_non_match() -> None:
    def bad_guard(data, exc):
        raise KeyError("nope")

    registry = ResolverRegistry(default="default").add("X", "guarded", guard=bad_guard)
    assert registry.resolve(_record("X")) == "default"


def test_guard_receives_input_and_exception() -> None:
    seen = []

    def spy(data, exc):
        seen.append((data, exc))
        return isinstance(exc, KeyError)

    registry = ResolverRegistry(default="default").add("X", "missing_key", guard=spy)
    rec = _record("X", data={"rows": None}, exc=KeyError("rows"))

    assert registry.resolve(rec) == "missing_key"
    assert seen[0][0] == {"rows": None}
    assert isinstance(seen[0][1], KeyError)


def test_callable_outcome_is_called_and_none_defers() -> None:
    registry = (
        ResolverRegistry(default="default")
        .add("X", lambda data, exc: "extra" if data == {} else None)
    )
    assert registry.resolve(_record("X", data={})) == "extra"
    assert registry.resolve(_record("X", data=1)) == "default"


def test_callable_outcome_that_raises_is_skipped() -> None:
    def broken(data, exc):
        raise RuntimeError("handler bug")

    registry = ResolverRegistry(default="default").add("X", broken).add("X", "second")
    assert registry.resolve(_record("X")) == "second"


def test_no_match_and_no_default_fails_loudly() -> None:
    registry = ResolverRegistry().add("X", "x")
    with pytest.raises(UnresolvedFailureError) as info:
        registry.resolve(_record("Y"))
    assert info.value.step_name == "Y"
    assert isinstance(info.value, ResolverConfigError)


def test_add_rejects_non_code_outcome() -> None:
    with pytest.raises(TypeError):
        ResolverRegistry().add("X", 42)  # type: ignore[arg-type]


def test_copy_is_independent() -> None:
    original = ResolverRegistry(default="default").add("X", "x")
    clone = original.copy()
    original.add("Y", "y")

    assert len(clone.rules) == 1
    assert len(original.rules) == 2


def test_covers() -> None:
    assert ResolverRegistry(default="d").covers(["a", "b"]) is True
    partial = ResolverRegistry().add("a", "x").add("b", "y", guard=lambda d, e: True)
    assert partial.covers(["a"]) is True
    assert partial.covers(["a", "b"]) is False


class _HandlerDouble:
    def custom_blow_up(self, data, error):
        return "extra" if data == {} else "custom"

    def default(self, data, error):
        return "default"


def test_from_handler_uses_methods_named_after_steps() -> None:
    registry = ResolverRegistry.from_handler(_HandlerDouble(), ["blow_up", "custom_blow_up"])

    assert registry.resolve(_record("custom_blow_up", data=1)) == "custom"
    assert registry.resolve(_record("custom_blow_up", data={})) == "extra"
    assert registry.resolve(_record("blow_up")) == "default"


def test_from_handler_reads_default_attribute() -> None:
    class Handler:
        DEFAULT = "fallback"

        def parse_date(self, data, error):
            return "invalid_date"

    registry = ResolverRegistry.from_handler(Handler(), ["parse_date", "fetch"])
    assert registry.default == "fallback"
    assert registry.resolve(_record("parse_date")) == "invalid_date"
    assert registry.resolve(_record("fetch")) == "fallback"


def test_from_config_builds_rules_and_guards() -> None:
    registry = ResolverRegistry.from_config(
        {
            "default": "default",
            "rules": [
                {"step": "parse_date", "outcome": "invalid_date"},
                {
                    "step": "parse_rows",
                    "outcome": "invalid_api_key",
                    "when": {"input_key": "error", "equals": "# key not found"},
                },
            ],
        }
    )

    assert registry.resolve(_record("parse_date")) == "invalid_date"
    assert registry.resolve(_record("parse_rows", data={"error": "# key not found"})) == "invalid_api_key"
    assert registry.resolve(_record("parse_rows", data={})) == "default"


@pytest.mark.parametrize(
    "mapping",
    [
        {"default": 3},
        {"rules": ["not a mapping"]},
        {"rules": [{"step": "x"}]},
        {"rules": [{"step": "x", "outcome": "y", "when": {"bogus": 1}}]},
        {"rules": [{"step": "x", "outcome": "y", "when": {"input_key": "error"}}]},
    ],
)
def test_from_config_rejects_bad_shapes(mapping) -> None:
    with pytest.raises(ConfigError):
        ResolverRegistry.from_config(mapping)


def test_build_guard_error_type_matches_along_mro() -> None:
    guard = build_guard({"error_type": "LookupError"})
    assert guard(None, KeyError("k")) is True
    assert guard(None, ValueError("v")) is False


def test_build_guard_message_and_trace_matchers() -> None:
    def format_date(value):
        raise ValueError(f"bad date {value}")

    try:
        format_date("x")
    except ValueError as exc:
        caught = exc

    assert build_guard({"message_contains": "bad date"})(None, caught) is True
    assert build_guard({"message_contains": "other"})(None, caught) is False
    assert build_guard({"trace_contains": "format_date"})(None, caught) is True
    assert build_guard({"trace_contains": "no_such_function"})(None, caught) is False


def test_build_guard_input_key_requires_mapping_input() -> None:
    guard = build_guard({"input_key": "error", "equals": "# key not found"})
    assert guard(["not", "a", "mapping"], RuntimeError()) is False
    assert guard({"error": "# key not found"}, RuntimeError()) is True
