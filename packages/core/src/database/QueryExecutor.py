"""Parameterized, read-only query execution for the listings database.

Repository methods hand their SQL to :class:`QueryExecutor` with ``?``
placeholders. Before a statement reaches SQLite it is screened by
:func:`check_read_only`, which admits one plain SELECT and nothing else.
"""

import re
import sqlite3
from collections.abc import Callable, Sequence
from contextlib import closing
from typing import TypeVar

T = TypeVar("T")

_WRITE_KEYWORDS = (
    "INSERT", "UPDATE", "DELETE", "REPLACE", "DROP", "ALTER",
    "CREATE", "ATTACH", "DETACH", "PRAGMA", "VACUUM",
)

# (pattern, reason) pairs; any match rejects the statement.
_REJECTIONS: list[tuple[re.Pattern[str], str]] = [
    (re.compile(r"^(?!\s*SELECT\b)", re.IGNORECASE), "not a SELECT statement"),
    (re.compile(r";"), "multiple statements"),
    (re.compile(r"--|/\*"), "SQL comment"),
    # Word boundaries keep column names such as ``created_at`` legal.
    (
        re.compile(r"\b(" + "|".join(_WRITE_KEYWORDS) + r")\b", re.IGNORECASE),
        "write or schema keyword",
    ),
]


def check_read_only(query: str) -> None:
    """Reject anything but a single comment-free SELECT.

    Raises:
        ValueError: Naming the first rule the query breaks.
    """
    for pattern, reason in _REJECTIONS:
        match = pattern.search(query)
        if match:
            found = match.group() or query.strip()[:40]
            raise ValueError(f"Query rejected ({reason}): {found!r}")


class QueryExecutor:
    """Runs screened SELECT statements on a (read-only) SQLite connection."""

    def __init__(self, connection: sqlite3.Connection) -> None:
        self._connection = connection

    def fetch_all(
        self, query: str, params: Sequence[object] = ()
    ) -> list[sqlite3.Row]:
        """Return every row of ``query``.

        Raises:
            ValueError: If the query is not a plain SELECT.
            RuntimeError: If SQLite fails to run it.
        """
        return self._run(query, params, lambda cursor: cursor.fetchall())

    def fetch_one(
        self, query: str, params: Sequence[object] = ()
    ) -> sqlite3.Row | None:
        """Return the first row of ``query``, or ``None``."""
        return self._run(query, params, lambda cursor: cursor.fetchone())

    def _run(
        self,
        query: str,
        params: Sequence[object],
        fetch: Callable[[sqlite3.Cursor], T],
    ) -> T:
        check_read_only(query)
        try:
            with closing(self._connection.cursor()) as cursor:
                cursor.execute(query, tuple(params))
                return fetch(cursor)
        except sqlite3.Error as e:
            raise RuntimeError(f"Query execution failed: {e}") from e
