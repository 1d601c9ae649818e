"""
devpulse.config — YAML Configuration Loader
============================================

**Why this file exists:**
This module reads ``config.yaml`` for aggregation tuning (civil timezone,
sweep window, run budget, worker pool size, cache TTL) and the static
badge / trophy tables.  Secrets (``DATABASE_URL``, ``JWT_SECRET``) come
from the environment, never from this file.

Usage::

    from devpulse.config import load_config

    cfg = load_config()            # reads ./config.yaml by default
    print(cfg.timezone)            # "Asia/Seoul"
    print(cfg.sweep_window_days)   # 7
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

import yaml

from devpulse.constants import DEFAULT_TIMEZONE
from devpulse.engine.badges import DEFAULT_BADGE_DEFINITIONS, BadgeDefinition
from devpulse.engine.calendar import CivilCalendar
from devpulse.engine.trophies import DEFAULT_TROPHY_TABLES, TrophyTable


# ---------------------------------------------------------------------------
# Typed settings object
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class DevPulseConfig:
    """Immutable configuration loaded from ``config.yaml``.

    Every field has a default so a partial file (or none at all, in tests)
    still yields a usable config.
    """

    # Civil timezone every member is bucketed in
    timezone: str = DEFAULT_TIMEZONE

    # Scheduled sweep
    sweep_window_days: int = 7
    sweep_interval_minutes: int = 240
    run_budget_seconds: float = 600.0

    # Bounded parallelism for aggregation units
    max_workers: int = 4

    # Stats cache
    cache_ttl_seconds: float = 300.0

    # Static achievement tables
    badges: tuple[BadgeDefinition, ...] = field(default=DEFAULT_BADGE_DEFINITIONS)
    trophies: tuple[TrophyTable, ...] = field(default=DEFAULT_TROPHY_TABLES)

    def calendar(self) -> CivilCalendar:
        return CivilCalendar(self.timezone)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------
def parse_config(raw: dict | None) -> DevPulseConfig:
    """Build a :class:`DevPulseConfig` from an already-parsed mapping.

    Raises
    ------
    ValueError
        If the timezone is unknown or a numeric setting is out of range.
    """
    raw = raw or {}
    defaults = DevPulseConfig()

    badges = defaults.badges
    if raw.get("badges"):
        badges = tuple(BadgeDefinition.from_dict(b) for b in raw["badges"])

    trophies = defaults.trophies
    if raw.get("trophies"):
        trophies = tuple(
            TrophyTable.from_dict(metric, table) for metric, table in raw["trophies"].items()
        )

    cfg = DevPulseConfig(
        timezone=str(raw.get("timezone", defaults.timezone)),
        sweep_window_days=int(raw.get("sweep_window_days", defaults.sweep_window_days)),
        sweep_interval_minutes=int(raw.get("sweep_interval_minutes", defaults.sweep_interval_minutes)),
        run_budget_seconds=float(raw.get("run_budget_seconds", defaults.run_budget_seconds)),
        max_workers=int(raw.get("max_workers", defaults.max_workers)),
        cache_ttl_seconds=float(raw.get("cache_ttl_seconds", defaults.cache_ttl_seconds)),
        badges=badges,
        trophies=trophies,
    )

    # Fail fast on a bad timezone rather than at the first sweep.
    cfg.calendar()
    if cfg.sweep_window_days < 1:
        raise ValueError("sweep_window_days must be >= 1")
    if cfg.max_workers < 1:
        raise ValueError("max_workers must be >= 1")
    if cfg.run_budget_seconds <= 0:
        raise ValueError("run_budget_seconds must be > 0")
    return cfg


def load_config(path: str | Path = "config.yaml") -> DevPulseConfig:
    """Read *path* and return a :class:`DevPulseConfig` instance.

    Parameters
    ----------
    path:
        Filesystem path to the YAML configuration file.
        Defaults to ``config.yaml`` in the current working directory.

    Raises
    ------
    FileNotFoundError
        If the YAML file doesn't exist.
    ValueError
        If a setting is invalid (see :func:`parse_config`).
    """
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(
            f"Configuration file not found: {config_path.resolve()}\n"
            "Hint: copy config.yaml.example → config.yaml and edit it."
        )

    with open(config_path, encoding="utf-8") as fh:
        raw: dict = yaml.safe_load(fh) or {}

    return parse_config(raw)
