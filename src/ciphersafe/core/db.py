# CipherSafe - SQLite Connection Helper
#
# Every SQLite connection goes through connect() so that all of them get:
#   - WAL journal mode (concurrent readers + one writer)
#   - busy_timeout so contended writers wait instead of failing at once
#   - foreign_keys enforcement
#
# isolation_level=None hands transaction control to the caller, which
# issues BEGIN IMMEDIATE for read-compare-write sequences.

import sqlite3
from pathlib import Path
from typing import Union

BUSY_TIMEOUT_MS = 5000


def connect(
    db_path: Union[str, Path],
    *,
    row_factory: bool = False,
) -> sqlite3.Connection:
    """Open a SQLite connection with WAL mode and safe PRAGMAs.

    Args:
        db_path: Path to the database file.
        row_factory: If True, set conn.row_factory = sqlite3.Row.

    Returns:
        sqlite3.Connection in autocommit mode with WAL, busy_timeout and
        foreign_keys enabled.
    """
    conn = sqlite3.connect(
        str(db_path),
        timeout=BUSY_TIMEOUT_MS / 1000,
        isolation_level=None,
    )
    conn.execute("PRAGMA journal_mode=WAL")
    conn.execute(f"PRAGMA busy_timeout={BUSY_TIMEOUT_MS}")
    conn.execute("PRAGMA foreign_keys=ON")
    if row_factory:
        conn.row_factory = sqlite3.Row
    return conn
