"""
Database Manager Module - QR Guidance Attendance Dashboard

This module handles all SQLite access for the attendance dashboard. It owns the
schema for the two mutable collections the system keeps (dynamically enrolled
students and the attendance ledger), hands out thread-local connections, and
translates driver failures into UpstreamUnavailable so callers can reject a
scan without leaving partial state behind.

Features:
- Thread-local SQLite connection management
- Idempotent schema creation
- Query/update helpers returning plain dictionaries
- Transaction support with rollback
- Table wipes for the global reset operation
"""

import sqlite3
import logging
from contextlib import contextmanager
import threading
import os

from guidance_dashboard.modules.errors import UpstreamUnavailable

SCHEMA = [
    """
    CREATE TABLE IF NOT EXISTS students (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        student_id VARCHAR(50) UNIQUE NOT NULL,
        name TEXT NOT NULL,
        gender VARCHAR(30) DEFAULT 'rather_not_say',
        grade VARCHAR(10) NOT NULL,
        section VARCHAR(50) NOT NULL,
        lrn VARCHAR(20) DEFAULT '',
        parent_contact VARCHAR(20) NOT NULL,
        parent_email VARCHAR(100) DEFAULT '',
        qr_data TEXT NOT NULL,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS attendance (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        student_id VARCHAR(50) NOT NULL,
        student_name TEXT NOT NULL,
        grade VARCHAR(10) NOT NULL,
        section VARCHAR(50) NOT NULL,
        date VARCHAR(20) NOT NULL,
        time_in VARCHAR(20),
        status VARCHAR(20) NOT NULL,
        sms_notified BOOLEAN NOT NULL DEFAULT 0,
        email_notified BOOLEAN NOT NULL DEFAULT 0,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_attendance_date ON attendance(date)",
    "CREATE INDEX IF NOT EXISTS idx_attendance_student ON attendance(student_id)",
    "CREATE INDEX IF NOT EXISTS idx_students_grade ON students(grade)",
]


class DatabaseManager:
    """
    SQLite access layer for the attendance dashboard.
    Provides thread-local connections so background notification threads
    can update the ledger alongside request threads.
    """

    def __init__(self, db_path):
        """
        Initialize the database manager with the specified database path.

        Args:
            db_path (str): Path to the SQLite database file
        """
        self.db_path = str(db_path)
        self.logger = logging.getLogger(__name__)
        self._local = threading.local()

        directory = os.path.dirname(self.db_path)
        if self.db_path != ':memory:' and directory:
            os.makedirs(directory, exist_ok=True)

        self.initialize_database()

    @contextmanager
    def get_connection(self):
        """
        Context manager yielding this thread's connection.

        Yields:
            sqlite3.Connection: Database connection object
        """
        try:
            if not hasattr(self._local, 'connection'):
                connection = sqlite3.connect(
                    self.db_path,
                    check_same_thread=False,
                    timeout=30.0
                )
                connection.row_factory = sqlite3.Row
                if self.db_path != ':memory:':
                    connection.execute("PRAGMA journal_mode = WAL")
                self._local.connection = connection
        except sqlite3.Error as e:
            self.logger.error(f"Cannot open database {self.db_path}: {str(e)}")
            raise UpstreamUnavailable(f"Database unavailable: {str(e)}") from e

        try:
            yield self._local.connection
        except sqlite3.Error as e:
            self._local.connection.rollback()
            self.logger.error(f"Database operation failed: {str(e)}")
            raise UpstreamUnavailable(f"Database operation failed: {str(e)}") from e

    def initialize_database(self):
        """
        Create the students and attendance tables if they do not exist.
        Safe to call repeatedly.
        """
        with self.get_connection() as conn:
            cursor = conn.cursor()
            for statement in SCHEMA:
                cursor.execute(statement)
            conn.commit()
        self.logger.info(f"Database initialized at {self.db_path}")

    def execute_query(self, query, params=None, fetch_all=True):
        """
        Execute a SELECT query and return results.

        Args:
            query (str): SQL query string
            params (tuple): Query parameters
            fetch_all (bool): Whether to fetch all results or just one

        Returns:
            list or dict: Query results
        """
        with self.get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(query, params or ())

            if fetch_all:
                return [dict(row) for row in cursor.fetchall()]
            row = cursor.fetchone()
            return dict(row) if row else None

    def execute_update(self, query, params=None):
        """
        Execute an INSERT, UPDATE, or DELETE query.

        Returns:
            int: Last inserted row ID for INSERT, affected row count otherwise
        """
        with self.get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(query, params or ())
            conn.commit()

            if query.strip().upper().startswith('INSERT'):
                return cursor.lastrowid
            return cursor.rowcount

    @contextmanager
    def transaction(self):
        """
        Context manager for database transactions with automatic rollback on error.

        Yields:
            sqlite3.Connection: Database connection within transaction
        """
        with self.get_connection() as conn:
            try:
                yield conn
                conn.commit()
            except Exception as e:
                conn.rollback()
                self.logger.error(f"Transaction rolled back: {str(e)}")
                raise

    def clear_table(self, table_name: str) -> int:
        """Delete every row of one of the managed tables."""
        if table_name not in ('students', 'attendance'):
            raise ValueError(f"Unknown table: {table_name}")
        deleted = self.execute_update(f"DELETE FROM {table_name}")
        self.logger.warning(f"Cleared {deleted} rows from {table_name}")
        return deleted

    def close_all_connections(self):
        """Close this thread's connection."""
        if hasattr(self._local, 'connection'):
            try:
                self._local.connection.close()
            except sqlite3.Error as e:
                self.logger.error(f"Error closing connection: {str(e)}")
            del self._local.connection
