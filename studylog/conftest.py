import sqlite3
from collections.abc import Generator
from pathlib import Path

import pytest

from studylog.schema import SCHEMA


@pytest.fixture
def test_db(tmp_path: Path) -> Generator[sqlite3.Connection]:
    """
    A fixture that creates a temporary, isolated database for a single test function.
    - It uses pytest's `tmp_path` fixture to create a DB in a temporary directory.
    - It initializes the schema directly.
    - It yields a connection, closed on teardown. `tmp_path` handles file deletion.
    """
    db_path = tmp_path / "test_function.sqlite"

    conn = sqlite3.connect(db_path, check_same_thread=False)
    conn.execute("PRAGMA foreign_keys = ON")
    conn.execute("PRAGMA journal_mode = DELETE")  # Important for test isolation

    conn.executescript(SCHEMA)
    conn.commit()

    try:
        yield conn
    finally:
        conn.close()
