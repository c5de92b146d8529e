import sqlite3

from pydantic import BaseModel

DDL = """
CREATE TABLE IF NOT EXISTS subjects (
    id          INTEGER PRIMARY KEY AUTOINCREMENT,
    name        TEXT NOT NULL,
    created_at  TEXT NOT NULL
                 DEFAULT (strftime('%Y-%m-%dT%H:%M:%fZ','now'))
);
"""


class Subject(BaseModel):
    id: int
    name: str
    created_at: str


class SubjectStore:
    """Reads and writes the `subjects` table."""

    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn

    def create_table(self):
        self.conn.executescript(DDL)

    def add(self, name: str) -> int:
        """Inserts a subject and returns its new id."""
        cur = self.conn.execute("INSERT INTO subjects (name) VALUES (?)", (name,))
        self.conn.commit()
        return cur.lastrowid

    def list(self) -> list[Subject]:
        rows = self.conn.execute("SELECT id, name, created_at FROM subjects").fetchall()
        return [Subject(id=r[0], name=r[1], created_at=r[2]) for r in rows]
