"""Configuration loading and management for CodeEcho.

Configuration sources are merged in priority order:
    1. Defaults (defined in CodeEchoConfig)
    2. Global config (~/.codeecho.toml)
    3. Project config (./codeecho.toml)
    4. Explicit config file
    5. Environment variables (CODEECHO_* prefix)
    6. Keyword overrides (typically CLI flags)

Example:
    >>> config = load_config(verbose=True, progress_interval=10)
    >>> config.verbosity
    'verbose'
"""

from __future__ import annotations

import os
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Literal, Optional, get_type_hints

from .exceptions import ConfigurationError, InvalidConfigError

Verbosity = Literal["quiet", "normal", "verbose"]
CheckpointPolicy = Literal["fail", "full"]


def _default_clone_root() -> str:
    return str(Path(tempfile.gettempdir()) / "codeecho-repos")


@dataclass(frozen=True)
class CodeEchoConfig:
    """Settings for ingestion and analytics.

    Attributes:
        Storage:
            database_path: SQLite file holding projects, commits and changes

        Repository access:
            clone_root: Scratch directory for remote clones (one per repo name)
            git_timeout_seconds: Timeout for clone and history listing calls

        Ingestion:
            progress_interval: Log progress every N commits
            on_missing_checkpoint: "fail" raises when the checkpoint commit is
                gone from history; "full" falls back to a full ingestion

        Analytics defaults:
            hotspot_default_limit: Rows returned by hotspot ranking
            coupling_default_limit: Pairs returned when no valid limit is given
            coupling_max_limit: Upper clamp for the coupling limit
            coupling_min_shared_commits: Default shared-commit threshold

        Output control:
            verbosity: Logging verbosity level
    """

    database_path: str = ".codeecho/codeecho.db"

    clone_root: str = ""
    git_timeout_seconds: int = 600

    progress_interval: int = 100
    on_missing_checkpoint: CheckpointPolicy = "fail"

    hotspot_default_limit: int = 20
    coupling_default_limit: int = 100
    coupling_max_limit: int = 200
    coupling_min_shared_commits: int = 2

    verbosity: Verbosity = "normal"

    def __post_init__(self) -> None:
        """Validate configuration after initialization."""
        if not self.clone_root:
            object.__setattr__(self, "clone_root", _default_clone_root())

        if not self.database_path:
            raise InvalidConfigError("database_path", self.database_path, "must not be empty")
        if self.git_timeout_seconds < 1:
            raise InvalidConfigError(
                "git_timeout_seconds", self.git_timeout_seconds, "must be at least 1"
            )
        if self.progress_interval < 1:
            raise InvalidConfigError(
                "progress_interval", self.progress_interval, "must be at least 1"
            )
        if self.on_missing_checkpoint not in ("fail", "full"):
            raise InvalidConfigError(
                "on_missing_checkpoint", self.on_missing_checkpoint, "expected 'fail' or 'full'"
            )
        if self.hotspot_default_limit < 1:
            raise InvalidConfigError(
                "hotspot_default_limit", self.hotspot_default_limit, "must be at least 1"
            )
        if self.coupling_max_limit < 1:
            raise InvalidConfigError(
                "coupling_max_limit", self.coupling_max_limit, "must be at least 1"
            )
        if not 1 <= self.coupling_default_limit <= self.coupling_max_limit:
            raise InvalidConfigError(
                "coupling_default_limit",
                self.coupling_default_limit,
                f"must be between 1 and coupling_max_limit ({self.coupling_max_limit})",
            )
        if self.coupling_min_shared_commits < 1:
            raise InvalidConfigError(
                "coupling_min_shared_commits",
                self.coupling_min_shared_commits,
                "must be at least 1",
            )
        if self.verbosity not in ("quiet", "normal", "verbose"):
            raise InvalidConfigError(
                "verbosity", self.verbosity, "expected quiet, normal or verbose"
            )


def config_files(config_file: Optional[Path] = None) -> list[tuple[str, Path]]:
    """TOML files consulted by :func:`load_config`, lowest priority first."""
    files = [
        ("global", Path.home() / ".codeecho.toml"),
        ("project", Path.cwd() / "codeecho.toml"),
    ]
    if config_file is not None:
        files.append(("explicit", Path(config_file)))
    return files


def load_config(config_file: Optional[Path] = None, **overrides) -> CodeEchoConfig:
    """Merge every configuration source into a validated CodeEchoConfig.

    Args:
        config_file: Explicit TOML file; unlike the discovered ones it must exist
        **overrides: Field values (typically CLI flags). ``None`` means unset,
            and the boolean ``verbose``/``quiet`` flags map onto ``verbosity``.

    Raises:
        ConfigurationError: A file is missing or malformed, an environment
            value does not parse, or a key is unknown
        InvalidConfigError: A value is out of range
    """
    merged: dict[str, Any] = {}

    for kind, path in config_files(config_file):
        if not path.exists():
            if kind == "explicit":
                raise ConfigurationError(f"Config file not found: {path}")
            continue
        try:
            merged.update(_load_toml_file(path))
        except ConfigurationError:
            raise
        except (OSError, ValueError) as e:
            raise ConfigurationError(f"Invalid {kind} config '{path}': {e}")

    merged.update(_load_env_vars())

    verbose = overrides.pop("verbose", False)
    quiet = overrides.pop("quiet", False)
    if quiet:
        overrides["verbosity"] = "quiet"
    elif verbose:
        overrides["verbosity"] = "verbose"

    merged.update((key, value) for key, value in overrides.items() if value is not None)

    unknown = sorted(set(merged) - set(CodeEchoConfig.__dataclass_fields__))
    if unknown:
        raise ConfigurationError(
            "Unknown configuration key(s): " + ", ".join(unknown),
            details={"known": ", ".join(CodeEchoConfig.__dataclass_fields__)},
        )
    return CodeEchoConfig(**merged)


def _load_env_vars() -> dict[str, Any]:
    """Read ``CODEECHO_<FIELD>`` variables, e.g. ``CODEECHO_PROGRESS_INTERVAL``."""
    hints = get_type_hints(CodeEchoConfig)
    values: dict[str, Any] = {}
    for name in CodeEchoConfig.__dataclass_fields__:
        env_key = f"CODEECHO_{name.upper()}"
        raw = os.environ.get(env_key)
        if raw is None:
            continue
        try:
            values[name] = _parse_env_value(raw, hints[name])
        except ValueError as e:
            raise ConfigurationError(f"Invalid {env_key}: {e}")
    return values


_TRUE = frozenset({"true", "1", "yes", "on"})
_FALSE = frozenset({"false", "0", "no", "off"})


def _parse_env_value(value: str, type_hint: Any) -> Any:
    if type_hint is bool:
        flag = value.strip().lower()
        if flag in _TRUE or flag in _FALSE:
            return flag in _TRUE
        raise ValueError(f"expected true/false, got '{value}'")
    if type_hint in (int, float):
        return type_hint(value.strip())
    # str and Literal fields; CodeEchoConfig validates the Literal choices
    return value


def _load_toml_file(path: Path) -> dict:
    """Parse a TOML file; a ``[codeecho]`` table wins over top-level keys."""
    try:
        import tomllib
    except ModuleNotFoundError:
        try:
            import tomli as tomllib  # type: ignore
        except ImportError:
            raise ConfigurationError(
                "Reading codeecho.toml needs Python 3.11+ or the 'tomli' package"
            )

    with path.open("rb") as fh:
        data = tomllib.load(fh)
    section = data.get("codeecho")
    return section if isinstance(section, dict) else data
