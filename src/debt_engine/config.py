"""Configuration loading and management for debt-engine.

Settings live in ``<workspace>/.debtengine/settings.json``. Sources are merged
in priority order:
    1. Defaults (defined in AnalysisSettings)
    2. Workspace settings file
    3. Environment variables (DEBT_ENGINE_* prefix)
    4. Explicit overrides (passed as kwargs)

Unlike programmatic construction, loading never raises on bad values: a
malformed file or out-of-range value is sanitized back to defaults or clamped,
so the scoring core only ever sees a valid window and weight map.

Example:
    >>> settings = load_settings("/path/to/repo")
    >>> settings.history_days
    90
    >>> round(sum(settings.weights.values()), 6)
    1.0
"""

from __future__ import annotations

import json
import math
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping

from .exceptions import InvalidConfigError
from .logging_config import get_logger

logger = get_logger(__name__)

SETTINGS_SCHEMA_VERSION = 2

STATE_DIR_NAME = ".debtengine"
SETTINGS_FILE_NAME = "settings.json"

# Signal slot names in breakdown order.
SIGNAL_NAMES: tuple[str, ...] = (
    "churn_rate",
    "code_smell_density",
    "coupling_index",
    "change_coupling",
    "test_coverage_gap",
    "knowledge_concentration",
    "cyclomatic_complexity",
    "decision_staleness",
)

# Default scoring weights (sum = 1.0)
DEFAULT_WEIGHTS: dict[str, float] = {
    "churn_rate": 0.22,
    "code_smell_density": 0.20,
    "coupling_index": 0.18,
    "change_coupling": 0.12,
    "test_coverage_gap": 0.12,
    "knowledge_concentration": 0.08,
    "cyclomatic_complexity": 0.05,
    "decision_staleness": 0.03,
}

MIN_HISTORY_DAYS = 7
MAX_HISTORY_DAYS = 365
DEFAULT_HISTORY_DAYS = 90


def default_weights() -> dict[str, float]:
    """Return a fresh copy of the default weight map."""
    return dict(DEFAULT_WEIGHTS)


@dataclass(frozen=True)
class AnalysisSettings:
    """Resolved settings for one analysis run.

    Attributes:
        Scoring:
            history_days: Git history window in days, [7, 365]
            weights: One weight per signal slot, each in [0, 1]
            high_debt_threshold: Composite above this counts as high debt
            critical_threshold: Composite above this is shown as critical

        History:
            strict_history: Abort full scans when git history is unavailable
                instead of degrading history-derived signals to 0
            history_cache_enabled: Memoize history facts on disk
            history_cache_ttl_hours: Expiry for memoized history facts

        Runtime:
            lock_timeout_seconds: Wait limit for the shared cache lock
            max_couplings: Cap on change-coupling pairs returned
    """

    history_days: int = DEFAULT_HISTORY_DAYS
    weights: dict[str, float] = field(default_factory=default_weights)
    high_debt_threshold: float = 65.0
    critical_threshold: float = 80.0

    strict_history: bool = False
    history_cache_enabled: bool = True
    history_cache_ttl_hours: int = 24

    lock_timeout_seconds: float = 5.0
    max_couplings: int = 200

    def __post_init__(self) -> None:
        """Validate settings built directly in code."""
        if not MIN_HISTORY_DAYS <= self.history_days <= MAX_HISTORY_DAYS:
            raise ValueError(
                f"history_days must be between {MIN_HISTORY_DAYS} and {MAX_HISTORY_DAYS}"
            )
        unknown = set(self.weights) - set(SIGNAL_NAMES)
        if unknown:
            raise ValueError(f"Unknown weight keys: {', '.join(sorted(unknown))}")
        for name, value in self.weights.items():
            if not 0.0 <= value <= 1.0:
                raise ValueError(f"weight {name} must be between 0.0 and 1.0")
        for name in ("high_debt_threshold", "critical_threshold", "lock_timeout_seconds"):
            if not _finite(getattr(self, name)):
                raise ValueError(f"{name} must be a finite number")
        if self.history_cache_ttl_hours < 0:
            raise ValueError("history_cache_ttl_hours must be non-negative")
        if self.lock_timeout_seconds <= 0:
            raise ValueError("lock_timeout_seconds must be positive")
        if self.max_couplings < 1:
            raise ValueError("max_couplings must be at least 1")

    def weight_for(self, name: str) -> float:
        """Weight for a slot, falling back to its default."""
        return self.weights.get(name, DEFAULT_WEIGHTS[name])

    @property
    def history_cache_ttl_seconds(self) -> int:
        return self.history_cache_ttl_hours * 3600


def settings_path(workspace: str | Path) -> Path:
    return Path(workspace) / STATE_DIR_NAME / SETTINGS_FILE_NAME


def load_settings(workspace: str | Path, **overrides: Any) -> AnalysisSettings:
    """Load and sanitize the effective settings for a workspace.

    Args:
        workspace: Workspace root directory
        **overrides: Direct overrides (AnalysisSettings field names)

    Returns:
        Validated AnalysisSettings instance
    """
    raw = read_settings_file(workspace)
    sanitized = migrate_settings(raw)

    merged: dict[str, Any] = {
        "history_days": sanitized["gitHistoryDays"],
        "weights": dict(sanitized["weights"]),
        "high_debt_threshold": float(sanitized["warningThreshold"]),
        "critical_threshold": float(sanitized["criticalThreshold"]),
    }
    for key in ("strictHistory", "historyCacheEnabled"):
        if isinstance(sanitized.get(key), bool):
            merged[_SNAKE_KEYS[key]] = sanitized[key]

    merged.update(_load_env_vars())
    merged.update(overrides)

    merged["history_days"] = _clamp_int(
        merged.get("history_days"), MIN_HISTORY_DAYS, MAX_HISTORY_DAYS, DEFAULT_HISTORY_DAYS
    )
    merged["weights"] = normalize_weights(merged.get("weights"))

    try:
        return AnalysisSettings(**merged)
    except (TypeError, ValueError) as e:
        logger.warning("Ignoring invalid settings overrides (%s); using defaults", e)
        return AnalysisSettings(
            history_days=merged["history_days"],
            weights=merged["weights"],
        )


def read_settings_file(workspace: str | Path) -> dict[str, Any]:
    """Read the raw settings JSON, returning {} when missing or malformed."""
    path = settings_path(workspace)
    if not path.exists():
        return {}
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        logger.warning("Ignoring unreadable settings file %s: %s", path, e)
        return {}
    if not isinstance(data, dict):
        logger.warning("Ignoring settings file %s: top level is not an object", path)
        return {}
    return data


def save_settings(workspace: str | Path, incoming: Mapping[str, Any]) -> dict[str, Any]:
    """Deep-merge ``incoming`` into the stored settings and write the result.

    Returns:
        The sanitized settings document that was written.

    Raises:
        InvalidConfigError: If ``incoming`` is not a mapping.
    """
    if not isinstance(incoming, Mapping):
        raise InvalidConfigError("settings", incoming, "expected a JSON object")

    merged = migrate_settings(read_settings_file(workspace))
    _merge_settings(merged, dict(incoming))
    migrated = migrate_settings(merged)

    path = settings_path(workspace)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(migrated, indent=2, sort_keys=True), encoding="utf-8")
    logger.debug("Settings written to %s", path)
    return migrated


def default_settings_document() -> dict[str, Any]:
    return {
        "schema_version": SETTINGS_SCHEMA_VERSION,
        "gitHistoryDays": DEFAULT_HISTORY_DAYS,
        "weights": default_weights(),
        "warningThreshold": 65,
        "criticalThreshold": 80,
        "strictHistory": False,
        "historyCacheEnabled": True,
    }


def migrate_settings(document: Any) -> dict[str, Any]:
    """Bring a settings document up to the current schema and sanitize it."""
    out: dict[str, Any] = dict(document) if isinstance(document, dict) else {}
    defaults = default_settings_document()

    version = out.get("schema_version")
    if not isinstance(version, int):
        version = 0

    if version < 1:
        _migrate_weights_from_percentages(out)

    for key, value in defaults.items():
        out.setdefault(key, value)

    out["gitHistoryDays"] = _clamp_int(
        out.get("gitHistoryDays"), MIN_HISTORY_DAYS, MAX_HISTORY_DAYS, DEFAULT_HISTORY_DAYS
    )
    out["warningThreshold"] = _clamp_int(out.get("warningThreshold"), 30, 90, 65)
    out["criticalThreshold"] = _clamp_int(out.get("criticalThreshold"), 50, 100, 80)
    for key in ("strictHistory", "historyCacheEnabled"):
        if not isinstance(out.get(key), bool):
            out[key] = defaults[key]
    out["weights"] = normalize_weights(out.get("weights"))
    out["schema_version"] = SETTINGS_SCHEMA_VERSION
    return out


def normalize_weights(weights: Any) -> dict[str, float]:
    """Fill missing slots, clamp to [0, 1] and renormalize to sum 1.0.

    Unknown keys are dropped. An all-zero or non-mapping input yields the
    defaults.
    """
    if not isinstance(weights, Mapping):
        return default_weights()

    resolved: dict[str, float] = {}
    for name, default_value in DEFAULT_WEIGHTS.items():
        value = weights.get(name, default_value)
        if isinstance(value, bool) or not isinstance(value, (int, float)) or not _finite(value):
            value = default_value
        resolved[name] = min(1.0, max(0.0, float(value)))

    total = sum(resolved.values())
    if total <= 1e-12:
        return default_weights()
    return {name: min(1.0, max(0.0, value / total)) for name, value in resolved.items()}


_SNAKE_KEYS = {
    "strictHistory": "strict_history",
    "historyCacheEnabled": "history_cache_enabled",
}

# Environment overrides: DEBT_ENGINE_<FIELD> -> field, parser
_ENV_FIELDS: dict[str, type] = {
    "history_days": int,
    "high_debt_threshold": float,
    "critical_threshold": float,
    "strict_history": bool,
    "history_cache_enabled": bool,
    "history_cache_ttl_hours": int,
    "lock_timeout_seconds": float,
    "max_couplings": int,
}


def _load_env_vars() -> dict[str, Any]:
    """Load overrides from DEBT_ENGINE_* environment variables.

    Supported environment variables:
        DEBT_ENGINE_HISTORY_DAYS: int
        DEBT_ENGINE_HIGH_DEBT_THRESHOLD: float
        DEBT_ENGINE_CRITICAL_THRESHOLD: float
        DEBT_ENGINE_STRICT_HISTORY: bool (true/false/1/0)
        DEBT_ENGINE_HISTORY_CACHE_ENABLED: bool
        DEBT_ENGINE_HISTORY_CACHE_TTL_HOURS: int
        DEBT_ENGINE_LOCK_TIMEOUT_SECONDS: float
        DEBT_ENGINE_MAX_COUPLINGS: int

    Unparseable values are logged and skipped.
    """
    result: dict[str, Any] = {}
    for field_name, type_hint in _ENV_FIELDS.items():
        env_key = f"DEBT_ENGINE_{field_name.upper()}"
        env_value = os.environ.get(env_key)
        if env_value is None:
            continue
        try:
            result[field_name] = _parse_env_value(env_value, type_hint)
        except ValueError as e:
            logger.warning("Ignoring %s: %s", env_key, e)
    return result


def _parse_env_value(value: str, type_hint: type) -> Any:
    if type_hint is bool:
        lower = value.strip().lower()
        if lower in ("true", "1", "yes", "on"):
            return True
        if lower in ("false", "0", "no", "off"):
            return False
        raise ValueError(f"expected true/false, got '{value}'")
    if type_hint is int:
        return int(value)
    parsed = float(value)
    if not math.isfinite(parsed):
        raise ValueError(f"expected a finite number, got '{value}'")
    return parsed


def _finite(value: int | float) -> bool:
    """True for numbers that survive float conversion (no NaN, inf or huge ints)."""
    try:
        return math.isfinite(value)
    except OverflowError:
        return False


def _clamp_int(value: Any, low: int, high: int, default: int) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return default
    if not _finite(value):
        return default
    return int(min(high, max(low, int(value))))


def _migrate_weights_from_percentages(document: dict[str, Any]) -> None:
    """Convert legacy percentage weights (e.g. 22) into fractions (0.22)."""
    weights = document.get("weights")
    if not isinstance(weights, dict):
        return
    numeric = {
        k: v
        for k, v in weights.items()
        if isinstance(v, (int, float)) and not isinstance(v, bool) and _finite(v)
    }
    if not any(v > 1.0 for v in numeric.values()):
        return
    for key, value in numeric.items():
        weights[key] = value / 100.0


def _merge_settings(target: dict[str, Any], incoming: dict[str, Any]) -> None:
    for key, value in incoming.items():
        existing = target.get(key)
        if isinstance(existing, dict) and isinstance(value, dict):
            _merge_settings(existing, value)
        else:
            target[key] = value

