"""Configuration loading and management for branchscope.

Configuration sources are merged in priority order:
    1. Defaults (defined in BranchScopeConfig)
    2. Global config (~/.branchscope.toml)
    3. Project config (./branchscope.toml)
    4. Explicit config file
    5. Environment variables (BRANCHSCOPE_* prefix)
    6. Overrides (passed as kwargs, typically CLI flags)

Example:
    >>> config = load_config(max_commits=200)
    >>> config.max_commits
    200
    >>> config.ttl.branch_graph
    10.0
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Literal, Optional, get_type_hints

from .exceptions import ConfigurationError, InvalidConfigError

Verbosity = Literal["quiet", "normal", "verbose"]


@dataclass(frozen=True)
class CacheTTLConfig:
    """Time-to-live, in seconds, for each cached repository query.

    The derived branch graph is the most expensive computation and gets the
    longest TTL. A TTL of 0 disables caching for that query.

    Attributes:
        status: Working tree status
        branches: Local branch list and current branch
        remotes: Configured remotes
        tags: Tag list
        log: Plain commit log
        branch_graph: Built branch graph (DAG + merges)
    """

    status: float = 1.5
    branches: float = 3.0
    remotes: float = 5.0
    tags: float = 3.0
    log: float = 2.0
    branch_graph: float = 10.0

    def __post_init__(self) -> None:
        for f in fields(self):
            if getattr(self, f.name) < 0:
                raise ValueError(f"ttl.{f.name} must be non-negative")


@dataclass(frozen=True)
class BranchScopeConfig:
    """Configuration for graph building and caching.

    Attributes:
        History:
            max_commits: Most commits read per build (bounds build cost)
            git_executable: git binary to invoke
            git_timeout_seconds: Timeout for a single git invocation

        Caching:
            ttl: Per-query TTL table
            cache_max_entries: Bound on in-memory cache entries
            coalesce_requests: One in-flight computation per cache key

        Snapshots:
            snapshot_enabled: Persist built graphs keyed by ref state
            snapshot_dir: Directory for the snapshot store
            snapshot_max_states: Persisted ref states kept per repository
            incremental_builds: Extend a stored graph when refs only moved forward

        Ledger:
            ledger_path: SQLite file for the merge ledger (None = in memory)
            ledger_max_entries: Retention cap (None = unbounded)

        Output control:
            verbosity: Logging verbosity level
            log_file: Also append log records to this file
    """

    max_commits: int = 800
    git_executable: str = "git"
    git_timeout_seconds: int = 30

    ttl: CacheTTLConfig = field(default_factory=CacheTTLConfig)
    cache_max_entries: int = 100
    coalesce_requests: bool = False

    snapshot_enabled: bool = True
    snapshot_dir: str = ".branchscope-cache"
    snapshot_max_states: int = 20
    incremental_builds: bool = True

    ledger_path: Optional[str] = None
    ledger_max_entries: Optional[int] = None

    verbosity: Verbosity = "normal"
    log_file: Optional[str] = None

    def __post_init__(self) -> None:
        """Validate configuration after initialization."""
        if self.max_commits < 1:
            raise ValueError("max_commits must be at least 1")
        if self.git_timeout_seconds < 1:
            raise ValueError("git_timeout_seconds must be at least 1")
        if self.cache_max_entries < 1:
            raise ValueError("cache_max_entries must be at least 1")
        if self.snapshot_max_states < 1:
            raise ValueError("snapshot_max_states must be at least 1")
        if self.ledger_max_entries is not None and self.ledger_max_entries < 1:
            raise ValueError("ledger_max_entries must be at least 1")
        if self.verbosity not in ("quiet", "normal", "verbose"):
            raise ValueError("verbosity must be one of quiet, normal, verbose")


def load_config(config_file: Optional[Path] = None, **overrides) -> BranchScopeConfig:
    """Load configuration with auto-discovery and merging.

    Args:
        config_file: Optional explicit config file path
        **overrides: Direct overrides (typically from CLI flags)

    Returns:
        Validated BranchScopeConfig instance

    Raises:
        ConfigurationError: If a config file is invalid or missing
    """
    merged: dict = {}

    global_config = Path.home() / ".branchscope.toml"
    if global_config.exists():
        merged.update(_read_config_file(global_config, "global"))

    project_config = Path.cwd() / "branchscope.toml"
    if project_config.exists():
        merged.update(_read_config_file(project_config, "project"))

    if config_file is not None:
        if not config_file.exists():
            raise ConfigurationError(f"Config file not found: {config_file}")
        merged.update(_read_config_file(config_file, "explicit"))

    merged.update(_load_env_vars())

    if "verbose" in overrides:
        if overrides["verbose"]:
            overrides["verbosity"] = "verbose"
        del overrides["verbose"]
    if "quiet" in overrides:
        if overrides["quiet"]:
            overrides["verbosity"] = "quiet"
        del overrides["quiet"]

    merged.update(overrides)

    # [ttl] section from TOML
    ttl_value = merged.pop("ttl", None)
    if ttl_value is not None:
        if isinstance(ttl_value, dict):
            try:
                merged["ttl"] = CacheTTLConfig(**ttl_value)
            except (TypeError, ValueError) as e:
                raise InvalidConfigError("ttl", ttl_value, str(e))
        elif isinstance(ttl_value, CacheTTLConfig):
            merged["ttl"] = ttl_value
        else:
            raise InvalidConfigError("ttl", ttl_value, "expected a table of seconds")

    try:
        return BranchScopeConfig(**merged)
    except TypeError as e:
        raise ConfigurationError(f"Invalid configuration: {e}")


def _read_config_file(path: Path, label: str) -> dict:
    try:
        return _load_toml_file(path)
    except ConfigurationError:
        raise
    except Exception as e:
        raise ConfigurationError(f"Invalid {label} config '{path}': {e}")


def _load_env_vars() -> dict[str, Any]:
    """Load configuration from BRANCHSCOPE_* environment variables.

    Every scalar field of BranchScopeConfig can be set, e.g.
    BRANCHSCOPE_MAX_COMMITS=200 or BRANCHSCOPE_SNAPSHOT_ENABLED=false.
    The nested TTL table is not configurable from the environment.

    Returns:
        Dict of field_name -> parsed_value for any BRANCHSCOPE_* vars found.
    """
    type_hints = get_type_hints(BranchScopeConfig)

    result: dict[str, Any] = {}

    for field_name in BranchScopeConfig.__dataclass_fields__:
        env_key = f"BRANCHSCOPE_{field_name.upper()}"
        env_value = os.environ.get(env_key)

        if env_value is None:
            continue

        type_hint = type_hints.get(field_name)
        if type_hint is None:
            continue

        try:
            parsed = _parse_env_value(env_value, type_hint)
        except ValueError as e:
            raise InvalidConfigError(env_key, env_value, str(e))
        if parsed is not None:
            result[field_name] = parsed

    return result


def _parse_env_value(value: str, type_hint: Any) -> Any:
    """Parse environment variable string to the correct type.

    Returns:
        Parsed value or None if the field type is not env-configurable

    Raises:
        ValueError: If value can't be parsed to expected type
    """
    origin = getattr(type_hint, "__origin__", None)

    # Optional[X] is Union[X, None]
    args = getattr(type_hint, "__args__", ())
    if type(None) in args:
        non_none_types = [t for t in args if t is not type(None)]
        if non_none_types:
            type_hint = non_none_types[0]
            origin = getattr(type_hint, "__origin__", None)

    if type_hint is bool:
        lower = value.lower()
        if lower in ("true", "1", "yes", "on"):
            return True
        elif lower in ("false", "0", "no", "off"):
            return False
        else:
            raise ValueError(f"expected true/false, got '{value}'")

    if type_hint is int:
        return int(value)

    if type_hint is float:
        return float(value)

    if type_hint is str or origin is Literal:
        return value

    return None


def _load_toml_file(path: Path) -> dict:
    """Load TOML file and return parsed dict.

    Raises:
        ConfigurationError: If no TOML parser is available
        Exception: If TOML parsing fails
    """
    try:
        import tomllib
    except ModuleNotFoundError:
        try:
            import tomli as tomllib  # type: ignore
        except ImportError:
            raise ConfigurationError(
                "TOML support requires Python 3.11+ or 'tomli' package. "
                "Install with: pip install tomli"
            )

    with open(path, "rb") as f:
        return tomllib.load(f)


default_config = BranchScopeConfig()
