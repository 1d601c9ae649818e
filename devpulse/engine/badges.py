"""
devpulse.engine.badges — Badge Evaluator
=========================================

Handler-registry evaluation of badge definitions against a
:class:`~devpulse.engine.rollup.StatsSnapshot`.  Each trigger type maps to
a pure handler ``(config, snapshot) -> bool``.

Badges are recomputed from scratch every time a snapshot is rebuilt;
nothing here is ever patched incrementally.

This module is pure calculation — no database I/O.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass, field

from devpulse.constants import DEFAULT_BADGES
from devpulse.engine.rollup import StatsSnapshot

logger = logging.getLogger(__name__)

# Snapshot fields a stat_threshold trigger may reference
VALID_STAT_FIELDS: set[str] = {
    "total_commits",
    "total_additions",
    "total_deletions",
    "current_streak",
    "longest_streak",
    "active_days",
}

BADGE_CATEGORIES: tuple[str, ...] = ("commits", "streak", "activity", "volume")


@dataclass(frozen=True, slots=True)
class BadgeDefinition:
    """Static badge config: identity, display metadata and a trigger."""

    id: str
    label: str
    trigger_type: str
    trigger_config: dict = field(default_factory=dict)
    description: str = ""
    icon: str = ""
    category: str = "commits"

    @classmethod
    def from_dict(cls, raw: dict) -> BadgeDefinition:
        return cls(
            id=str(raw["id"]),
            label=str(raw.get("label", raw["id"])),
            trigger_type=str(raw["trigger_type"]),
            trigger_config=dict(raw.get("trigger_config") or {}),
            description=str(raw.get("description", "")),
            icon=str(raw.get("icon", "")),
            category=str(raw.get("category", "commits")),
        )

    def to_display(self) -> dict:
        return {
            "id": self.id,
            "label": self.label,
            "description": self.description,
            "icon": self.icon,
            "category": self.category,
        }


DEFAULT_BADGE_DEFINITIONS: tuple[BadgeDefinition, ...] = tuple(
    BadgeDefinition.from_dict(b) for b in DEFAULT_BADGES
)


# ---------------------------------------------------------------------------
# Trigger handlers — pure functions (config, snapshot) → bool
# ---------------------------------------------------------------------------
def _check_stat_threshold(config: dict, snap: StatsSnapshot) -> bool:
    """Fires when a snapshot field reaches a threshold.

    Config: {"field": "total_commits", "value": 100}
    """
    field_name = config.get("field", "")
    if field_name not in VALID_STAT_FIELDS:
        return False
    value = config.get("value")
    if value is None:
        return False
    return getattr(snap, field_name) >= value


def _check_peak_hour_window(config: dict, snap: StatsSnapshot) -> bool:
    """Fires when the peak hour sits inside ``[start, end]`` (wraps midnight).

    Config: {"start": 22, "end": 4}
    """
    start = config.get("start")
    end = config.get("end")
    if start is None or end is None or snap.peak_hour is None:
        return False
    if start <= end:
        return start <= snap.peak_hour <= end
    return snap.peak_hour >= start or snap.peak_hour <= end


TRIGGER_HANDLERS: dict[str, Callable[[dict, StatsSnapshot], bool]] = {
    "stat_threshold": _check_stat_threshold,
    "peak_hour_window": _check_peak_hour_window,
}


# ---------------------------------------------------------------------------
# Evaluation
# ---------------------------------------------------------------------------
def evaluate_badges(
    snapshot: StatsSnapshot,
    definitions: Sequence[BadgeDefinition] = DEFAULT_BADGE_DEFINITIONS,
) -> list[str]:
    """Return the ids of every badge *snapshot* unlocks, in definition order."""
    unlocked: list[str] = []
    for definition in definitions:
        handler = TRIGGER_HANDLERS.get(definition.trigger_type)
        if handler is None:
            logger.debug("Unknown badge trigger %r on %s", definition.trigger_type, definition.id)
            continue
        if handler(definition.trigger_config, snapshot):
            unlocked.append(definition.id)
    return unlocked


def newly_earned(previous: Iterable[str], current: Iterable[str]) -> list[str]:
    """Badge ids in *current* that were not in *previous*."""
    before = set(previous)
    return [badge_id for badge_id in current if badge_id not in before]


def badge_details(
    badge_ids: Iterable[str],
    definitions: Sequence[BadgeDefinition] = DEFAULT_BADGE_DEFINITIONS,
) -> list[dict]:
    """Display metadata for *badge_ids*; unknown ids are dropped."""
    by_id = {d.id: d for d in definitions}
    return [by_id[b].to_display() for b in badge_ids if b in by_id]


def group_by_category(
    badge_ids: Iterable[str],
    definitions: Sequence[BadgeDefinition] = DEFAULT_BADGE_DEFINITIONS,
) -> dict[str, list[dict]]:
    grouped: dict[str, list[dict]] = {c: [] for c in BADGE_CATEGORIES}
    for detail in badge_details(badge_ids, definitions):
        grouped.setdefault(detail["category"], []).append(detail)
    return grouped


def next_badge_progress(
    snapshot: StatsSnapshot,
    definitions: Sequence[BadgeDefinition] = DEFAULT_BADGE_DEFINITIONS,
) -> list[dict]:
    """Progress towards the next locked threshold badge per stat field.

    Only ``stat_threshold`` badges have a measurable distance; for each
    field the lowest locked threshold is reported.
    """
    unlocked = set(evaluate_badges(snapshot, definitions))
    next_by_field: dict[str, BadgeDefinition] = {}
    for d in definitions:
        if d.trigger_type != "stat_threshold" or d.id in unlocked:
            continue
        field_name = d.trigger_config.get("field")
        target = d.trigger_config.get("value")
        if field_name not in VALID_STAT_FIELDS or not target:
            continue
        best = next_by_field.get(field_name)
        if best is None or target < best.trigger_config["value"]:
            next_by_field[field_name] = d

    progress: list[dict] = []
    for field_name, d in next_by_field.items():
        target = d.trigger_config["value"]
        current = getattr(snapshot, field_name)
        progress.append({
            "badge": d.to_display(),
            "current": current,
            "target": target,
            "progress": min(round(current / target * 100), 100),
        })
    return progress
