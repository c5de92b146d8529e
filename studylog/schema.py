"""
Centralized database schema and initialization.
"""
import sqlite3

from studylog import logs, subjects
from studylog.logs import LogStore
from studylog.subjects import SubjectStore

SCHEMA = subjects.DDL + logs.DDL


def init_database(conn: sqlite3.Connection):
    """Creates both tables if they are missing."""
    SubjectStore(conn).create_table()
    LogStore(conn).create_table()
    conn.commit()
