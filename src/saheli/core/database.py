"""
Database Infrastructure for Saheli

Provides SQLite database management, connection pooling, migrations,
and transaction management for the local record store.
"""

import sqlite3
import logging
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import List, Optional, Tuple
from dataclasses import dataclass


@dataclass
class Migration:
    """Database migration definition"""
    version: int
    name: str
    sql: str


class DatabaseError(Exception):
    """Database-related errors"""
    pass


class ConnectionPool:
    """Simple SQLite connection pool"""

    def __init__(self, database_path: str, max_connections: int = 5):
        self.database_path = database_path
        self.max_connections = max_connections
        self.connections = []
        self.in_use = set()
        self.lock = threading.Lock()
        self.logger = logging.getLogger(__name__)

    def get_connection(self) -> sqlite3.Connection:
        """Get a connection from the pool"""
        with self.lock:
            for conn in self.connections:
                if conn not in self.in_use:
                    self.in_use.add(conn)
                    return conn

            if len(self.connections) < self.max_connections:
                conn = sqlite3.connect(
                    self.database_path,
                    check_same_thread=False,
                    timeout=30.0
                )
                conn.row_factory = sqlite3.Row
                conn.execute("PRAGMA foreign_keys = ON")
                conn.execute("PRAGMA journal_mode = WAL")
                self.connections.append(conn)
                self.in_use.add(conn)
                return conn

            raise DatabaseError("Connection pool exhausted")

    def return_connection(self, conn: sqlite3.Connection):
        """Return a connection to the pool"""
        with self.lock:
            self.in_use.discard(conn)

    def close_all(self):
        """Close all connections in the pool"""
        with self.lock:
            for conn in self.connections:
                try:
                    conn.close()
                except sqlite3.Error as e:
                    self.logger.warning(f"Error closing connection: {e}")
            self.connections.clear()
            self.in_use.clear()


class DatabaseManager:
    """
    Manages SQLite database operations, migrations, and connection pooling
    """

    def __init__(self, database_path: str, max_connections: int = 5):
        self.database_path = Path(database_path)
        self.logger = logging.getLogger(__name__)
        self.migrations = self._get_migrations()

        self.database_path.parent.mkdir(parents=True, exist_ok=True)
        self.pool = ConnectionPool(str(self.database_path), max_connections)

        self._initialize_database()

    @contextmanager
    def get_connection(self):
        """Context manager for database connections"""
        conn = None
        try:
            conn = self.pool.get_connection()
            yield conn
        except Exception:
            if conn:
                conn.rollback()
            raise
        finally:
            if conn:
                self.pool.return_connection(conn)

    @contextmanager
    def transaction(self):
        """Context manager for database transactions"""
        with self.get_connection() as conn:
            try:
                conn.execute("BEGIN")
                yield conn
                conn.commit()
            except Exception:
                conn.rollback()
                raise

    def _initialize_database(self):
        """Initialize database with schema and migrations"""
        self.logger.info(f"Initializing database at {self.database_path}")

        with self.get_connection() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS migrations (
                    version INTEGER PRIMARY KEY,
                    name TEXT NOT NULL,
                    applied_at DATETIME DEFAULT CURRENT_TIMESTAMP
                )
            """)
            conn.commit()

        self._run_migrations()

    def _get_migrations(self) -> List[Migration]:
        """Get all database migrations"""
        return [
            Migration(
                version=1,
                name="initial_schema",
                sql="""
                -- User profiles
                CREATE TABLE users (
                    id TEXT PRIMARY KEY,
                    name TEXT NOT NULL,
                    email TEXT,
                    address TEXT,
                    occupation TEXT,
                    created_at DATETIME DEFAULT CURRENT_TIMESTAMP,
                    updated_at DATETIME DEFAULT CURRENT_TIMESTAMP
                );

                -- Emergency contacts, one user to many contacts
                CREATE TABLE emergency_contacts (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    user_id TEXT NOT NULL,
                    name TEXT NOT NULL,
                    phone TEXT NOT NULL,
                    created_at DATETIME DEFAULT CURRENT_TIMESTAMP,
                    FOREIGN KEY (user_id) REFERENCES users (id) ON DELETE CASCADE
                );

                CREATE INDEX idx_emergency_contacts_user ON emergency_contacts (user_id);
                """
            ),
            Migration(
                version=2,
                name="add_user_locations",
                sql="""
                -- Live location shared with trusted contacts
                CREATE TABLE user_locations (
                    user_id TEXT PRIMARY KEY,
                    latitude REAL NOT NULL,
                    longitude REAL NOT NULL,
                    accuracy REAL,
                    updated_at DATETIME NOT NULL,
                    FOREIGN KEY (user_id) REFERENCES users (id) ON DELETE CASCADE
                );
                """
            )
        ]

    def _run_migrations(self):
        """Run pending database migrations"""
        with self.get_connection() as conn:
            cursor = conn.execute("SELECT MAX(version) FROM migrations")
            result = cursor.fetchone()
            current_version = result[0] if result[0] is not None else 0

            for migration in self.migrations:
                if migration.version <= current_version:
                    continue

                self.logger.info(f"Running migration {migration.version}: {migration.name}")
                try:
                    conn.executescript(migration.sql)
                    conn.execute(
                        "INSERT INTO migrations (version, name) VALUES (?, ?)",
                        (migration.version, migration.name)
                    )
                    conn.commit()
                except sqlite3.Error as e:
                    conn.rollback()
                    self.logger.error(f"Migration {migration.version} failed: {e}")
                    raise DatabaseError(f"Migration failed: {e}")

    def execute_query(self, query: str, params: Tuple = ()) -> List[sqlite3.Row]:
        """Execute a SELECT query and return results"""
        with self.get_connection() as conn:
            cursor = conn.execute(query, params)
            return cursor.fetchall()

    def execute_update(self, query: str, params: Tuple = ()) -> int:
        """Execute an INSERT/UPDATE/DELETE query and return affected rows"""
        with self.transaction() as conn:
            cursor = conn.execute(query, params)
            return cursor.rowcount

    def execute_insert(self, query: str, params: Tuple = ()) -> Optional[int]:
        """Execute an INSERT and return the new row id"""
        with self.transaction() as conn:
            cursor = conn.execute(query, params)
            return cursor.lastrowid

    def get_schema_version(self) -> int:
        """Get the highest applied migration version"""
        rows = self.execute_query("SELECT MAX(version) FROM migrations")
        return rows[0][0] or 0

    def close(self):
        """Close all database connections"""
        self.pool.close_all()
