import sqlite3

from pydantic import BaseModel

DDL = """
CREATE TABLE IF NOT EXISTS logs (
    id          INTEGER PRIMARY KEY AUTOINCREMENT,
    subject_id  INTEGER NOT NULL,       -- subjects.id, not enforced
    duration    INTEGER NOT NULL,       -- hours
    created_at  TEXT NOT NULL
                 DEFAULT (strftime('%Y-%m-%dT%H:%M:%fZ','now'))
);

CREATE INDEX IF NOT EXISTS idx_logs_created_at ON logs(created_at);
"""


class Log(BaseModel):
    id: int
    subject_id: int
    duration: int
    created_at: str


class RecentLog(Log):
    subject_name: str | None  # None when the subject row is gone


class _Totals(BaseModel):
    count: int
    sum: int

    @property
    def average(self) -> float:
        # No logs means no average, not a division error.
        if self.count == 0:
            return 0.0
        return self.sum / self.count


class SubjectSummary(_Totals):
    subject_id: int
    subject_name: str | None


class MonthSummary(_Totals):
    month: str  # YYYY-MM


class LogStore:
    """Reads and writes the `logs` table, and aggregates it."""

    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn

    def create_table(self):
        self.conn.executescript(DDL)

    def add(self, subject_id: int, duration: int) -> int:
        """Inserts a log entry and returns its new id. Duration is not range-checked."""
        cur = self.conn.execute(
            "INSERT INTO logs (subject_id, duration) VALUES (?, ?)",
            (subject_id, duration),
        )
        self.conn.commit()
        return cur.lastrowid

    def recent(self, limit: int) -> list[RecentLog]:
        """Returns at most `limit` logs, newest first."""
        sql = """
        SELECT l.id, l.subject_id, l.duration, l.created_at, s.name
        FROM   logs l
        LEFT JOIN subjects s ON s.id = l.subject_id
        ORDER  BY l.created_at DESC, l.id DESC
        LIMIT  ?;
        """
        rows = self.conn.execute(sql, (limit,)).fetchall()
        return [
            RecentLog(id=r[0], subject_id=r[1], duration=r[2], created_at=r[3], subject_name=r[4])
            for r in rows
        ]

    def summarize_by_subject(self) -> list[SubjectSummary]:
        sql = """
        SELECT l.subject_id, s.name, COUNT(1), SUM(l.duration)
        FROM   logs l
        LEFT JOIN subjects s ON s.id = l.subject_id
        GROUP  BY l.subject_id
        ORDER  BY l.subject_id;
        """
        rows = self.conn.execute(sql).fetchall()
        return [
            SubjectSummary(subject_id=r[0], subject_name=r[1], count=r[2], sum=r[3])
            for r in rows
        ]

    def summarize_by_month(self) -> list[MonthSummary]:
        sql = """
        SELECT strftime('%Y-%m', created_at) AS month, COUNT(1), SUM(duration)
        FROM   logs
        GROUP  BY month
        ORDER  BY month;
        """
        rows = self.conn.execute(sql).fetchall()
        return [MonthSummary(month=r[0], count=r[1], sum=r[2]) for r in rows]
