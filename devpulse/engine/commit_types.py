"""
devpulse.engine.commit_types — Commit Message Classifier
=========================================================

Maps a free-text commit message onto the closed :class:`CommitType` set
using conventional-commit style prefixes and ``[tag]`` markers.
"""

from __future__ import annotations

from devpulse.constants import CommitType

# Checked in order; first match wins.
_PREFIX_RULES: tuple[tuple[CommitType, tuple[str, ...], tuple[str, ...]], ...] = (
    (CommitType.FEATURE, ("feat:", "feat(", "feat!:", "feature:", "feature("), ("[feat]", "[feature]")),
    (CommitType.FIX, ("fix:", "fix(", "fix!:", "bugfix:", "hotfix:"), ("[fix]", "[bugfix]", "[hotfix]")),
    (CommitType.DOCS, ("docs:", "docs(", "doc:"), ("[docs]", "[doc]")),
    (CommitType.REFACTOR, ("refactor:", "refactor(", "refactor!:"), ("[refactor]",)),
    (CommitType.CHORE, ("chore:", "chore(", "build:", "build(", "ci:", "ci("), ("[chore]",)),
)


def classify_commit(message: str | None) -> CommitType:
    """Return the category for *message* (``OTHER`` when nothing matches)."""
    if not message:
        return CommitType.OTHER
    lowered = message.strip().lower()
    # A leading prefix beats a bracket tag anywhere in the message.
    for commit_type, prefixes, _tags in _PREFIX_RULES:
        if lowered.startswith(prefixes):
            return commit_type
    for commit_type, _prefixes, tags in _PREFIX_RULES:
        if any(tag in lowered for tag in tags):
            return commit_type
    return CommitType.OTHER


def empty_type_distribution() -> dict[str, int]:
    return {t.value: 0 for t in CommitType}
