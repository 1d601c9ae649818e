"""
DevPulse — Commit Activity Aggregation for Team Dev Logs
=========================================================
Turns an append-only stream of commit events into per-member daily
activity rows, all-time profile rollups (streaks, totals, peak hour),
badges and trophies, and range queries that stay fresh for the open day.

Package layout::

    devpulse/
    ├── config.py          # YAML → typed Python config
    ├── constants.py       # Commit categories, default badges & trophy tables
    ├── database/
    │   ├── engine.py      # SQLAlchemy engine, session helper, async bridge
    │   ├── models.py      # Members, commit events, derived cache tables
    │   └── upsert.py      # Dialect-aware full-replace writes
    ├── engine/            # Pure calculation — no I/O
    │   ├── calendar.py    # THE day/hour bucketing authority
    │   ├── commit_types.py # Message prefix classifier
    │   ├── events.py      # CommitFact envelope
    │   ├── daily.py       # One member × one day aggregation
    │   ├── streaks.py     # Current / longest streak
    │   ├── rollup.py      # Full rebuild + incremental extend
    │   ├── badges.py      # Badge evaluator (handler registry)
    │   ├── trophies.py    # Trophy tier calculator
    │   └── cache.py       # StatsCache + injectable backends
    ├── services/
    │   ├── identity.py            # Member identity resolution seam
    │   ├── sources.py             # Commit event source seam
    │   ├── activity_service.py    # Daily record recompute + write
    │   ├── profile_service.py     # Snapshot rebuild / extend
    │   ├── aggregation_service.py # member / date-range / full orchestrator
    │   ├── range_service.py       # week / month / year reads
    │   ├── achievement_service.py # Badge + trophy reads
    │   └── consistency_service.py # Sum-invariant audit (alert-only)
    ├── worker.py          # Scheduled trailing-window sweep
    └── api/
        ├── main.py        # FastAPI app
        ├── deps.py        # Engine, config, cache, admin guard
        └── routes/        # Public + admin REST endpoints
"""

__version__ = "0.1.0"
