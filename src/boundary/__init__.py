"""
boundary: guarded sequential pipelines with scoped error resolution.

Key primitives
--------------
- Step: a named single-argument transformation
- Boundary / AsyncBoundary: run steps in order, turning the first failure into an outcome code
- ResolverRegistry: per-step rules (optionally guarded) mapping failures to outcome codes
- ErrorRecord: bounded diagnostic snapshot of a failure, for operators only
- RunResult: value or outcome, never both
- ErrorReporter: logging sink writing console/file logs and JSONL events
- BoundaryConfig / configure_logging(): runtime configuration and logging setup
- guard(): one-liner boundary for a single callable
- MessageCatalog: outcome code to localized user text
"""

from .config import BoundaryConfig, ConfigError, load_config
from .logging import configure_logging, JsonlEventLogger
from .reporter import CallableSink, ErrorReporter, LoggingSink
from .resolver import ResolverConfigError, ResolverRegistry, ResolverRule, UnresolvedFailureError
from .runner import AsyncBoundary, Boundary
from .guards import guard
from .presentation import MessageCatalog
from .types import ErrorRecord, RunResult, RunStatus, Step
from .version import __version__

__all__ = [
    "AsyncBoundary",
    "Boundary",
    "BoundaryConfig",
    "CallableSink",
    "ConfigError",
    "ErrorRecord",
    "ErrorReporter",
    "JsonlEventLogger",
    "LoggingSink",
    "MessageCatalog",
    "ResolverConfigError",
    "ResolverRegistry",
    "ResolverRule",
    "RunResult",
    "RunStatus",
    "Step",
    "UnresolvedFailureError",
    "configure_logging",
    "guard",
    "load_config",
    "__version__",
]
