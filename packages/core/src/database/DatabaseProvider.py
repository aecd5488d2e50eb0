"""Read-only access to the listings database file.

The booking back office owns ``properties`` and ``bookings``; the relay only
looks. The connection is opened with SQLite's ``mode=ro`` URI flag, so a
write attempt fails inside the driver no matter what SQL reaches it.
"""

import sqlite3
from pathlib import Path


class DatabaseProvider:
    """Own the relay's single SQLite connection.

    Rows are returned as :class:`sqlite3.Row`, addressable by column name.
    """

    def __init__(self, db_path: str) -> None:
        """Open ``db_path`` read-only.

        Raises:
            FileNotFoundError: If there is no file at ``db_path``.
            ConnectionError: If SQLite refuses to open it.
        """
        path = Path(db_path)
        if not path.is_file():
            raise FileNotFoundError(f"Listings database not found: {db_path}")

        # as_uri() percent-encodes characters SQLite would read as URI syntax.
        uri = path.resolve().as_uri() + "?mode=ro"
        try:
            # Shared by the server's worker threads, hence no thread check.
            self._connection = sqlite3.connect(uri, uri=True, check_same_thread=False)
        except sqlite3.Error as e:
            raise ConnectionError(f"Cannot open listings database {uri}: {e}") from e
        self._connection.row_factory = sqlite3.Row

    def get_connection(self) -> sqlite3.Connection:
        return self._connection

    def close(self) -> None:
        self._connection.close()
