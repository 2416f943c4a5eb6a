from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Mapping, Optional, Union

from .config import ConfigError
from .types import ErrorRecord, format_frames

logger = logging.getLogger(__name__)

Guard = Callable[[Any, BaseException], bool]
OutcomeFn = Callable[[Any, BaseException], Optional[str]]
Outcome = Union[str, OutcomeFn]


class ResolverConfigError(ConfigError):
    """Raised when a resolver registry cannot resolve the failures it is responsible for."""


class UnresolvedFailureError(ResolverConfigError):
    """Raised when a failure matches no rule and the registry has no default."""

    def __init__(self, step_name: str) -> None:
        super().__init__(
            f"No resolver rule matched a failure in step '{step_name}' and no default outcome is configured."
        )
        self.step_name = step_name


@dataclass(frozen=True)
class ResolverRule:
    """
    Maps a failure in `step_name` to a user-facing outcome code.

    `outcome` is either the code itself or a callable ``(input_at_failure, exception)``
    returning the code. `guard`, when set, must accept the same arguments and return a bool.
    """
    step_name: str
    outcome: Outcome
    guard: Optional[Guard] = None

    @property
    def guarded(self) -> bool:
        return self.guard is not None


class ResolverRegistry:
    """
    Ordered set of resolver rules plus a registry-wide default.

    Resolution order for a failing step
    -----------------------------------
    1. guarded rules for the step whose guard is true, in registration order
    2. the first unguarded rule for the step
    3. the default outcome

    Guards that raise count as non-matching. Callable outcomes that raise or return
    None are skipped in the same way.

    Usage example
    -------------
        registry = (
            ResolverRegistry(default="default")
            .add("parse_date", "invalid_date")
            .add("parse_rows", "invalid_api_key", guard=lambda data, exc: data.get("error") == "# key not found")
        )
    """

    def __init__(self, default: Optional[str] = None, rules: Iterable[ResolverRule] = ()) -> None:
        self._default = default
        self._rules: list[ResolverRule] = list(rules)

    @property
    def default(self) -> Optional[str]:
        return self._default

    @property
    def rules(self) -> tuple[ResolverRule, ...]:
        return tuple(self._rules)

    def add(self, step_name: str, outcome: Outcome, *, guard: Optional[Guard] = None) -> "ResolverRegistry":
        """Register a rule after the existing ones."""
        if not isinstance(outcome, str) and not callable(outcome):
            raise TypeError(f"Outcome for step '{step_name}' must be a code or a callable.")
        self._rules.append(ResolverRule(step_name=step_name, outcome=outcome, guard=guard))
        return self

    def copy(self) -> "ResolverRegistry":
        return ResolverRegistry(default=self._default, rules=self._rules)

    def covers(self, step_names: Iterable[str]) -> bool:
        """True when every step has an unguarded rule or the registry has a default."""
        if self._default is not None:
            return True
        unguarded = {r.step_name for r in self._rules if not r.guarded}
        return all(name in unguarded for name in step_names)

    def resolve(self, record: ErrorRecord) -> str:
        """Return the outcome code for `record`, or raise UnresolvedFailureError."""
        candidates = [r for r in self._rules if r.step_name == record.failing_step]

        for rule in candidates:
            if rule.guarded and self._guard_matches(rule, record):
                code = self._outcome_for(rule, record)
                if code is not None:
                    return code

        for rule in candidates:
            if not rule.guarded:
                code = self._outcome_for(rule, record)
                if code is not None:
                    return code

        if self._default is not None:
            return self._default
        raise UnresolvedFailureError(record.failing_step)

    @staticmethod
    def _guard_matches(rule: ResolverRule, record: ErrorRecord) -> bool:
        assert rule.guard is not None
        try:
            return bool(rule.guard(record.input_at_failure, record.exception))
        except Exception:
            logger.debug("Guard for step '%s' raised; treating as no match", rule.step_name, exc_info=True)
            return False

    @staticmethod
    def _outcome_for(rule: ResolverRule, record: ErrorRecord) -> Optional[str]:
        if isinstance(rule.outcome, str):
            return rule.outcome
        try:
            code = rule.outcome(record.input_at_failure, record.exception)
        except Exception:
            logger.debug("Outcome function for step '%s' raised; skipping rule", rule.step_name, exc_info=True)
            return None
        return None if code is None else str(code)

    @classmethod
    def from_handler(cls, handler: Any, step_names: Iterable[str]) -> "ResolverRegistry":
        """
        Build a registry from an object with one method per step.

        Each method is called as ``method(input_at_failure, exception)`` and returns an
        outcome code (or None to defer to the default). A ``default`` method or a
        ``DEFAULT`` attribute supplies the default outcome.

        Usage example
        -------------
            class Handler:
                DEFAULT = "default"

                def parse_date(self, data, error):
                    return "invalid_date"

            registry = ResolverRegistry.from_handler(Handler(), ["parse_date", "fetch"])
        """
        registry = cls(default=getattr(handler, "DEFAULT", None))
        for name in step_names:
            method = getattr(handler, name, None)
            if callable(method):
                registry.add(name, method)

        fallback = getattr(handler, "default", None)
        if callable(fallback):
            # a callable default becomes a catch-all rule per step, ahead of DEFAULT
            for name in step_names:
                registry.add(name, fallback)
        return registry

    @classmethod
    def from_config(cls, mapping: Mapping[str, Any]) -> "ResolverRegistry":
        """
        Build a registry from a plain mapping (typically the ``resolvers`` YAML section).

        Usage example
        -------------
            registry = ResolverRegistry.from_config({
                "default": "default",
                "rules": [
                    {"step": "parse_date", "outcome": "invalid_date"},
                    {"step": "parse_rows", "outcome": "invalid_api_key",
                     "when": {"input_key": "error", "equals": "# key not found"}},
                ],
            })
        """
        default = mapping.get("default")
        if default is not None and not isinstance(default, str):
            raise ConfigError("resolvers.default must be a string outcome code.")

        registry = cls(default=default)
        for i, raw in enumerate(mapping.get("rules") or []):
            if not isinstance(raw, Mapping):
                raise ConfigError(f"resolvers.rules[{i}] must be a mapping.")
            step_name = raw.get("step")
            outcome = raw.get("outcome")
            if not isinstance(step_name, str) or not isinstance(outcome, str):
                raise ConfigError(f"resolvers.rules[{i}] needs string 'step' and 'outcome' keys.")
            when = raw.get("when")
            registry.add(step_name, outcome, guard=build_guard(when) if when else None)
        return registry


_TRACE_MATCH_FRAMES = 5
_MATCHER_KEYS = {"input_key", "equals", "error_type", "message_contains", "trace_contains"}


def build_guard(matchers: Mapping[str, Any]) -> Guard:
    """
    Build a guard predicate from a declarative matcher mapping.

    All given matchers must hold:
    - ``input_key`` + ``equals``: ``input[input_key] == equals`` for mapping inputs
    - ``error_type``: exception class name, checked along the MRO
    - ``message_contains``: substring of ``str(exception)``
    - ``trace_contains``: substring of any formatted traceback frame
    """
    if not isinstance(matchers, Mapping):
        raise ConfigError("A rule's 'when' must be a mapping.")
    unknown = sorted(set(matchers) - _MATCHER_KEYS)
    if unknown:
        raise ConfigError(f"Unknown matcher keys: {', '.join(unknown)}")
    if ("input_key" in matchers) != ("equals" in matchers):
        raise ConfigError("'input_key' and 'equals' must be given together.")

    input_key = matchers.get("input_key")
    expected = matchers.get("equals")
    error_type = matchers.get("error_type")
    message_contains = matchers.get("message_contains")
    trace_contains = matchers.get("trace_contains")

    def _guard(data: Any, exc: BaseException) -> bool:
        if input_key is not None:
            if not isinstance(data, Mapping) or data.get(input_key) != expected:
                return False
        if error_type is not None:
            if error_type not in {cls.__name__ for cls in type(exc).__mro__}:
                return False
        if message_contains is not None and message_contains not in str(exc):
            return False
        if trace_contains is not None:
            frames = format_frames(exc, _TRACE_MATCH_FRAMES)
            if not any(trace_contains in frame for frame in frames):
                return False
        return True

    return _guard
