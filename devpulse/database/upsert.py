"""
devpulse.database.upsert — Full-Replace Writes
===============================================

Derived rows are never incremented in place.  Each write replaces every
column of the row identified by its unique key, in a single
``INSERT … ON CONFLICT DO UPDATE`` statement, so two writers racing on
the same key simply converge on whichever commits last.

PostgreSQL and SQLite share the same ``on_conflict_do_update`` API;
the dialect is picked from the session's bind.
"""

from __future__ import annotations

from collections.abc import Sequence

from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session

_INSERTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


def replace_row(
    session: Session,
    model: type,
    values: dict,
    key_columns: Sequence[str],
) -> None:
    """Insert *values* into *model*'s table, overwriting on key conflict.

    Every column in *values* except the key columns is overwritten.

    Raises
    ------
    NotImplementedError
        If the bound dialect has no upsert support here.
    """
    dialect = session.get_bind().dialect.name
    insert = _INSERTS.get(dialect)
    if insert is None:
        raise NotImplementedError(f"Full-replace upsert not supported on {dialect!r}")

    stmt = insert(model).values(**values)
    stmt = stmt.on_conflict_do_update(
        index_elements=list(key_columns),
        set_={col: stmt.excluded[col] for col in values if col not in key_columns},
    )
    session.execute(stmt)
