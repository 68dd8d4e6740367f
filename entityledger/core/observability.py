"""
InvocationLogger - Phase-based logging of dispatched operations.

Every dispatch, ledger access and failure is written as a structured row to a
small SQLite database for later inspection.
"""

import json
import sqlite3
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional


@dataclass
class LogEntry:
    """A log entry from the invocation database."""

    id: int
    ts: str
    session: str
    phase: str
    data: Dict[str, Any] = field(default_factory=dict)


class InvocationLogger:
    """Phase-based logging for dispatched operations.

    Phases:
    - invoke: One row per dispatch (operation, argument count, outcome)
    - write: Records written to the ledger
    - read: Point reads by key
    - query: Rich queries and their result size in bytes
    - history: History scans and their result size in bytes
    - error: Failures and the message returned to the caller
    """

    PHASES = ["invoke", "write", "read", "query", "history", "error"]

    def __init__(self, db_path: Path):
        """Initialize logger with database path.

        Args:
            db_path: Path to SQLite database file
        """
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_db()
        self.session_id = self._new_session()

    def _init_db(self) -> None:
        """Create tables if they don't exist."""
        with sqlite3.connect(self.db_path) as conn:
            conn.executescript("""
                CREATE TABLE IF NOT EXISTS logs (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    ts TEXT NOT NULL DEFAULT (datetime('now')),
                    session TEXT NOT NULL,
                    phase TEXT NOT NULL,
                    data JSON NOT NULL
                );

                CREATE INDEX IF NOT EXISTS idx_session ON logs(session);
                CREATE INDEX IF NOT EXISTS idx_phase ON logs(phase);

                CREATE VIEW IF NOT EXISTS errors AS
                SELECT id, ts, session,
                       json_extract(data, '$.operation') as operation,
                       json_extract(data, '$.error_code') as error_code,
                       json_extract(data, '$.message') as message
                FROM logs WHERE phase = 'error';
            """)

    def _new_session(self) -> str:
        """Generate a new session ID."""
        return f"session_{datetime.now().strftime('%Y%m%d_%H%M%S')}_{uuid.uuid4().hex[:6]}"

    def new_session(self) -> str:
        """Start a new session and return its ID."""
        self.session_id = self._new_session()
        return self.session_id

    def log(self, phase: str, data: Dict[str, Any]) -> None:
        """Log a phase with structured data.

        Args:
            phase: One of PHASES
            data: Structured data for the log entry
        """
        if phase not in self.PHASES:
            raise ValueError(f"Invalid phase: {phase}. Must be one of {self.PHASES}")

        with sqlite3.connect(self.db_path) as conn:
            conn.execute(
                "INSERT INTO logs (session, phase, data) VALUES (?, ?, ?)",
                (self.session_id, phase, json.dumps(data, default=str)),
            )

    # Convenience methods

    def log_invoke(self, operation: str, argc: int, outcome: str) -> None:
        self.log("invoke", {"operation": operation, "argc": argc, "outcome": outcome})

    def log_write(self, key: str, kind: str, size: int) -> None:
        self.log("write", {"key": key, "kind": kind, "size": size})

    def log_read(self, key: str, found: bool) -> None:
        self.log("read", {"key": key, "found": found})

    def log_query(self, expression: str, size: int) -> None:
        self.log("query", {"expression": expression, "size": size})

    def log_history(self, key: str, size: int) -> None:
        self.log("history", {"key": key, "size": size})

    def log_error(self, operation: str, error_code: str, message: str) -> None:
        self.log(
            "error",
            {"operation": operation, "error_code": error_code, "message": message},
        )

    # Query methods

    def _rows_to_entries(self, rows) -> List[LogEntry]:
        return [
            LogEntry(
                id=row["id"],
                ts=row["ts"],
                session=row["session"],
                phase=row["phase"],
                data=json.loads(row["data"]),
            )
            for row in rows
        ]

    def get_session(self, session_id: Optional[str] = None) -> List[LogEntry]:
        """Get all logs for a session (defaults to the current one)."""
        session_id = session_id or self.session_id

        with sqlite3.connect(self.db_path) as conn:
            conn.row_factory = sqlite3.Row
            rows = conn.execute(
                "SELECT * FROM logs WHERE session = ? ORDER BY id",
                (session_id,),
            ).fetchall()
            return self._rows_to_entries(rows)

    def get_errors(self, limit: int = 100) -> List[LogEntry]:
        """Get the most recent error logs across all sessions."""
        with sqlite3.connect(self.db_path) as conn:
            conn.row_factory = sqlite3.Row
            rows = conn.execute(
                "SELECT * FROM logs WHERE phase = 'error' ORDER BY id DESC LIMIT ?",
                (limit,),
            ).fetchall()
            return self._rows_to_entries(rows)

    def latest_session(self) -> Optional[str]:
        """Return the session ID of the most recent log row, if any."""
        with sqlite3.connect(self.db_path) as conn:
            row = conn.execute("SELECT session FROM logs ORDER BY id DESC LIMIT 1").fetchone()
        return row[0] if row else None

    def get_session_summary(self, session_id: Optional[str] = None) -> Dict[str, Any]:
        """Get summary statistics for a session.

        Returns:
            Dictionary with phase counts, per-operation counts and error count
        """
        session_id = session_id or self.session_id

        with sqlite3.connect(self.db_path) as conn:
            phase_counts = {}
            for row in conn.execute(
                """
                SELECT phase, COUNT(*) as count
                FROM logs WHERE session = ?
                GROUP BY phase
                """,
                (session_id,),
            ):
                phase_counts[row[0]] = row[1]

            operation_counts = {}
            for row in conn.execute(
                """
                SELECT json_extract(data, '$.operation') as operation, COUNT(*) as count
                FROM logs
                WHERE session = ? AND phase = 'invoke'
                GROUP BY json_extract(data, '$.operation')
                """,
                (session_id,),
            ):
                if row[0]:
                    operation_counts[row[0]] = row[1]

            return {
                "session_id": session_id,
                "phase_counts": phase_counts,
                "operation_counts": operation_counts,
                "error_count": phase_counts.get("error", 0),
                "total_logs": sum(phase_counts.values()),
            }


__all__ = ["InvocationLogger", "LogEntry"]
