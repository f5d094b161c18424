import json
import os
import sqlite3
from typing import List

from config.logger import logger
from models.state import HistoryEntry


class HistoryLog:
    """Append-only audit log of every publish."""

    def __init__(self, db_path="data/history.db"):
        self.db_path = db_path
        directory = os.path.dirname(self.db_path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        self._create_table()

    def _create_table(self):
        with sqlite3.connect(self.db_path) as conn:
            cursor = conn.cursor()
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS history (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    ts TEXT NOT NULL,
                    reason TEXT NOT NULL,
                    fingerprint TEXT NOT NULL,
                    message_id TEXT,
                    previous_message_id TEXT,
                    snapshot TEXT
                )
            """)
            conn.commit()

    def append(self, entry: HistoryEntry):
        """Best-effort: a failed write is logged and dropped."""
        try:
            with sqlite3.connect(self.db_path) as conn:
                cursor = conn.cursor()
                cursor.execute(
                    "INSERT INTO history (ts, reason, fingerprint, message_id, previous_message_id, snapshot) VALUES (?, ?, ?, ?, ?, ?)",
                    (
                        entry.ts.isoformat(),
                        entry.reason,
                        entry.fingerprint,
                        entry.message_id,
                        entry.previous_message_id,
                        json.dumps(entry.snapshot, ensure_ascii=False, default=str),
                    )
                )
                conn.commit()
        except sqlite3.Error as e:
            logger.error(f"❌ Could not record history entry: {e}")

    def recent(self, limit: int = 10) -> List[HistoryEntry]:
        with sqlite3.connect(self.db_path) as conn:
            cursor = conn.cursor()
            cursor.execute(
                "SELECT ts, reason, fingerprint, message_id, previous_message_id, snapshot FROM history ORDER BY id DESC LIMIT ?",
                (limit,)
            )
            rows = cursor.fetchall()

        return [
            HistoryEntry(
                ts=ts,
                reason=reason,
                fingerprint=fingerprint,
                message_id=message_id,
                previous_message_id=previous_message_id,
                snapshot=json.loads(snapshot) if snapshot else {},
            )
            for ts, reason, fingerprint, message_id, previous_message_id, snapshot in rows
        ]

    def count(self) -> int:
        with sqlite3.connect(self.db_path) as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT COUNT(*) FROM history")
            return cursor.fetchone()[0]
