"""Engine configuration.

Defaults mirror the product's stored settings; persisted documents use the
product's camelCase keys and are sanitized on load rather than rejected.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Mapping, Optional

from .errors import ConfigError

DB_PATH = Path(os.environ.get("FOCUS_ENGINE_DB", str(Path.home() / ".focus-engine" / "focus.db")))
SERVER_PORT = 7788

FALLBACK_BREAK_SUGGESTION = "Time for a quick break! Stand up, stretch, or grab a glass of water."

# Persisted settings key -> EngineSettings field
SETTINGS_KEYS: dict[str, str] = {
    "workDuration": "work_minutes",
    "shortBreakDuration": "short_break_minutes",
    "longBreakDuration": "long_break_minutes",
    "longBreakInterval": "long_break_interval",
    "enableAdaptiveTimer": "adaptive_enabled",
}

_POSITIVE_INT_FIELDS = (
    "work_minutes",
    "short_break_minutes",
    "long_break_minutes",
    "long_break_interval",
)


def _positive_int(value: Any) -> Optional[int]:
    """Return value as a positive int, or None if it isn't one."""
    if isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if number != number or number <= 0 or number == float("inf"):
        return None
    return int(number)


def _parse_bool(value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in ("1", "true", "yes", "on"):
        return True
    if lowered in ("0", "false", "no", "off", ""):
        return False
    raise ConfigError(f"Not a boolean: {value!r}")


@dataclass
class EngineSettings:
    """Tunable parameters for one engine instance."""

    work_minutes: int = 25
    short_break_minutes: int = 5
    long_break_minutes: int = 15
    long_break_interval: int = 4
    adaptive_enabled: bool = False
    auto_start_breaks: bool = False
    auto_start_work: bool = False
    min_gold_coins: int = 8
    max_gold_coins: int = 12
    silver_coins: int = 5
    adaptive_min_minutes: int = 15
    adaptive_max_minutes: int = 90
    estimator_url: Optional[str] = None
    suggester_url: Optional[str] = None
    service_timeout_seconds: float = 10.0

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any], base: "EngineSettings | None" = None) -> "EngineSettings":
        """Overlay a persisted settings document onto ``base`` (or defaults).

        Bad durations fall back to the base value instead of failing.
        """
        settings = replace(base) if base is not None else cls()
        for key, attr in SETTINGS_KEYS.items():
            if key not in data:
                continue
            value = data[key]
            if attr == "adaptive_enabled":
                settings.adaptive_enabled = bool(value)
                continue
            number = _positive_int(value)
            if number is not None:
                setattr(settings, attr, number)
        return settings

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "EngineSettings":
        """Read FOCUS_ENGINE_<FIELD> variables over the defaults."""
        env = os.environ if environ is None else environ
        settings = cls()
        for f in fields(cls):
            raw = env.get(f"FOCUS_ENGINE_{f.name.upper()}")
            if raw is None:
                continue
            default = getattr(settings, f.name)
            if isinstance(default, bool):
                setattr(settings, f.name, _parse_bool(raw))
            elif f.name in _POSITIVE_INT_FIELDS:
                number = _positive_int(raw)
                if number is None:
                    raise ConfigError(f"FOCUS_ENGINE_{f.name.upper()} must be a positive integer, got {raw!r}")
                setattr(settings, f.name, number)
            elif isinstance(default, int):
                try:
                    setattr(settings, f.name, int(raw))
                except ValueError as e:
                    raise ConfigError(f"FOCUS_ENGINE_{f.name.upper()}: {e}") from e
            elif isinstance(default, float):
                try:
                    setattr(settings, f.name, float(raw))
                except ValueError as e:
                    raise ConfigError(f"FOCUS_ENGINE_{f.name.upper()}: {e}") from e
            else:
                setattr(settings, f.name, raw or None)
        settings.validate()
        return settings

    def validate(self) -> None:
        if self.min_gold_coins < 0 or self.max_gold_coins < self.min_gold_coins:
            raise ConfigError(
                f"Invalid gold coin range [{self.min_gold_coins}, {self.max_gold_coins}]"
            )
        if self.silver_coins < 0:
            raise ConfigError("silver_coins must be non-negative")
        if not 0 < self.adaptive_min_minutes <= self.adaptive_max_minutes:
            raise ConfigError(
                f"Invalid adaptive range [{self.adaptive_min_minutes}, {self.adaptive_max_minutes}]"
            )

    def to_settings_patch(self) -> dict[str, Any]:
        """Persisted-key view of the user-editable fields."""
        return {key: getattr(self, attr) for key, attr in SETTINGS_KEYS.items()}
