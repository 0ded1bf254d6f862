"""
core/database.py -- Shared SQLAlchemy engine factory.

One Engine per process is shared by auth.store.UserStore and
audit.store.AuditLogStore. Sharing the engine lets account deletion remove
audit rows and user rows inside a single transaction.

SQLite specifics:
  check_same_thread=False -- FastAPI runs sync handlers in a thread pool.
  WAL journal mode        -- readers proceed without blocking during writes.
  foreign_keys=ON         -- SQLite ignores FK constraints unless asked.

Layer rule: core/ is the kernel. No imports from api/, web/, auth/ or audit/.
"""

from __future__ import annotations

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine


def _set_sqlite_pragmas(dbapi_conn, connection_record) -> None:
    """Enable WAL mode and FK enforcement.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def create_db_engine(db_url: str) -> Engine:
    """Create an Engine for db_url with the SQLite pragmas applied when relevant.

    Usage:
        engine = create_db_engine("sqlite:///adpanel.db")
        engine = create_db_engine("postgresql://user:pw@host/db")
    """
    connect_args: dict = {}
    if db_url.startswith("sqlite"):
        connect_args["check_same_thread"] = False
    engine = create_engine(db_url, connect_args=connect_args)
    if db_url.startswith("sqlite"):
        event.listen(engine, "connect", _set_sqlite_pragmas)
    return engine
