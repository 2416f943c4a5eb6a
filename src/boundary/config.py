from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping, Optional
import os
import uuid

import yaml


class ConfigError(ValueError):
    """Raised when required runtime configuration is missing or invalid."""


def load_config(root: Path) -> dict[str, Any]:
    """
    Load boundary config from a project root if present.

    Search order:
    1) ``boundary.yaml``
    2) ``boundary.yml``
    """

    for filename in ("boundary.yaml", "boundary.yml"):
        config_path = root / filename
        if config_path.exists():
            raw = yaml.safe_load(config_path.read_text(encoding="utf-8"))
            if raw is None:
                return {}
            if not isinstance(raw, dict):
                raise ConfigError(f"{config_path} must be a YAML mapping at top level.")
            return raw
    return {}


def _parse_flag(raw: Any) -> bool:
    if isinstance(raw, str):
        return raw.strip().lower() not in ("0", "false", "no", "off", "")
    return bool(raw)


def _parse_timeout(raw: Any) -> Optional[float]:
    if raw is None or raw == "":
        return None
    value = float(raw)
    if value <= 0:
        raise ValueError(f"step timeout must be positive, got {value}")
    return value


@dataclass(frozen=True)
class BoundaryConfig:
    """
    Configuration for boundary diagnostics + logging behavior.

    Parameters
    ----------
    max_frames
        Maximum number of traceback frames kept on an ErrorRecord.
    log_dir
        Directory where log files and JSONL event logs are written.
    run_id
        Unique identifier for the run. If "auto", a UUID4 is generated.
    console_level
        Logging level for console output.
    file_level
        Logging level for file output.
    write_jsonl
        If True, writes structured JSONL events to <log_dir>/events_<run_id>.jsonl.
    step_timeout
        Default per-step timeout in seconds for async boundaries. None disables it.
    env_prefix
        If you want environment-variable overrides, set a prefix like "BOUNDARY_".

    Usage example
    -------------
        cfg = BoundaryConfig(max_frames=5, log_dir=Path("logs"))
    """

    max_frames: int = 5
    log_dir: Path = Path("logs")
    run_id: str = "auto"

    console_level: int = 20  # logging.INFO
    file_level: int = 10  # logging.DEBUG

    write_jsonl: bool = True
    step_timeout: Optional[float] = None

    env_prefix: str = field(default="", repr=False)

    def __post_init__(self) -> None:
        if self.max_frames < 0:
            raise ConfigError(f"max_frames must be >= 0, got {self.max_frames}")

    def resolved_run_id(self) -> str:
        """Return a non-auto run id."""
        if self.run_id != "auto":
            return self.run_id
        return uuid.uuid4().hex[:10]

    @classmethod
    def from_env(cls, *, default: Optional["BoundaryConfig"] = None) -> "BoundaryConfig":
        """
        Create config from environment variables.

        Supported variables (prefix controlled by env_prefix on `default`):
        - <PFX>MAX_FRAMES: non-negative integer
        - <PFX>LOG_DIR: path
        - <PFX>WRITE_JSONL: "1"/"0" (also "true"/"false", "yes"/"no")
        - <PFX>STEP_TIMEOUT: positive float (seconds)

        Notes
        -----
        If `default` is None, uses cls() and prefix "". Invalid values fall back to `default`.

        Usage example
        -------------
            cfg = BoundaryConfig.from_env(default=BoundaryConfig(env_prefix="BOUNDARY_"))
        """
        base = default if default is not None else cls()
        pfx = base.env_prefix

        max_frames = base.max_frames
        max_frames_raw = os.getenv(f"{pfx}MAX_FRAMES", "")
        if max_frames_raw.strip():
            try:
                max_frames = int(max_frames_raw)
            except ValueError:
                max_frames = base.max_frames
            if max_frames < 0:
                max_frames = base.max_frames

        log_dir = Path(os.getenv(f"{pfx}LOG_DIR", str(base.log_dir)))

        write_jsonl = _parse_flag(os.getenv(f"{pfx}WRITE_JSONL", "1" if base.write_jsonl else "0"))

        step_timeout = base.step_timeout
        step_timeout_raw = os.getenv(f"{pfx}STEP_TIMEOUT", "")
        if step_timeout_raw.strip():
            try:
                step_timeout = _parse_timeout(step_timeout_raw)
            except ValueError:
                step_timeout = base.step_timeout

        return cls(
            max_frames=max_frames,
            log_dir=log_dir,
            run_id=base.run_id,
            console_level=base.console_level,
            file_level=base.file_level,
            write_jsonl=write_jsonl,
            step_timeout=step_timeout,
            env_prefix=pfx,
        )

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, Any], *, default: Optional["BoundaryConfig"] = None) -> "BoundaryConfig":
        """
        Create config from the ``logging`` section of a YAML config file.

        Unknown keys are rejected so typos surface at startup.

        Usage example
        -------------
            cfg = BoundaryConfig.from_mapping(load_config(Path.cwd()).get("logging", {}))
        """
        base = default if default is not None else cls()
        known = {"max_frames", "log_dir", "run_id", "console_level", "file_level", "write_jsonl", "step_timeout"}
        unknown = sorted(set(mapping) - known)
        if unknown:
            raise ConfigError(f"Unknown logging config keys: {', '.join(unknown)}")

        try:
            return cls(
                max_frames=int(mapping.get("max_frames", base.max_frames)),
                log_dir=Path(mapping.get("log_dir", base.log_dir)),
                run_id=str(mapping.get("run_id", base.run_id)),
                console_level=int(mapping.get("console_level", base.console_level)),
                file_level=int(mapping.get("file_level", base.file_level)),
                write_jsonl=_parse_flag(mapping.get("write_jsonl", base.write_jsonl)),
                step_timeout=_parse_timeout(mapping.get("step_timeout", base.step_timeout)),
                env_prefix=base.env_prefix,
            )
        except (TypeError, ValueError) as error:
            if isinstance(error, ConfigError):
                raise
            raise ConfigError(f"Invalid logging config: {error}") from error
