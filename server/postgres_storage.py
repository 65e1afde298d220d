"""PostgreSQL storage implementation."""

import json
import logging
import os
import psycopg2
from psycopg2.extras import RealDictCursor

from core.interfaces import Storage

logger = logging.getLogger(__name__)


class PostgresStorage(Storage):
    """PostgreSQL-based key-value store, one row per (user, key)."""

    def __init__(self, config_file: str = None, db_url: str = None):
        self.config_file = config_file or os.path.expanduser('~/.config/verbadiem/config.json')
        self.db_url = db_url or os.environ.get(
            'DATABASE_URL',
            'postgresql://localhost:5432/verbadiem'
        )
        self._conn = None
        self._initialized = False

    @property
    def conn(self):
        """Lazy connection initialization."""
        if self._conn is None or self._conn.closed:
            self._conn = psycopg2.connect(self.db_url)
            if not self._initialized:
                self._init_db()
                self._initialized = True
        return self._conn

    def _init_db(self):
        """Create tables if they don't exist."""
        with self._conn.cursor() as cur:
            cur.execute("""
                CREATE TABLE IF NOT EXISTS kv_store (
                    user_id VARCHAR(255) NOT NULL,
                    key VARCHAR(255) NOT NULL,
                    value TEXT NOT NULL,
                    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                    PRIMARY KEY (user_id, key)
                )
            """)
            # Events log table
            cur.execute("""
                CREATE TABLE IF NOT EXISTS events (
                    id SERIAL PRIMARY KEY,
                    timestamp TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                    event VARCHAR(50) NOT NULL,
                    user_id VARCHAR(255) NOT NULL,
                    data JSONB
                )
            """)
            cur.execute("""
                CREATE INDEX IF NOT EXISTS idx_events_user_id ON events(user_id)
            """)
        self._conn.commit()

    def close(self):
        """Close the database connection."""
        if self._conn and not self._conn.closed:
            self._conn.close()

    def load_config(self) -> dict:
        if not os.path.exists(self.config_file):
            raise FileNotFoundError(
                f"Config file not found at {self.config_file}\n"
                f'Please create it with: {{"gemini_api_key": "YOUR_API_KEY_HERE"}}'
            )
        with open(self.config_file, 'r') as f:
            return json.load(f)

    def get_item(self, key: str, user_id: str = "default") -> str | None:
        try:
            with self.conn.cursor(cursor_factory=RealDictCursor) as cur:
                cur.execute(
                    "SELECT value FROM kv_store WHERE user_id = %s AND key = %s",
                    (user_id, key)
                )
                row = cur.fetchone()
        except Exception as e:
            logger.error(f"Error reading {key} for {user_id}: {e}")
            self.conn.rollback()
            raise
        return row['value'] if row else None

    def set_item(self, key: str, value: str, user_id: str = "default") -> None:
        try:
            with self.conn.cursor() as cur:
                cur.execute("""
                    INSERT INTO kv_store (user_id, key, value, updated_at)
                    VALUES (%s, %s, %s, CURRENT_TIMESTAMP)
                    ON CONFLICT (user_id, key)
                    DO UPDATE SET value = EXCLUDED.value, updated_at = CURRENT_TIMESTAMP
                """, (user_id, key, value))
            self.conn.commit()
        except Exception as e:
            logger.error(f"Error saving {key} for {user_id}: {e}")
            self.conn.rollback()
            raise

    def remove_item(self, key: str, user_id: str = "default") -> None:
        try:
            with self.conn.cursor() as cur:
                cur.execute(
                    "DELETE FROM kv_store WHERE user_id = %s AND key = %s",
                    (user_id, key)
                )
            self.conn.commit()
        except Exception as e:
            logger.error(f"Error removing {key} for {user_id}: {e}")
            self.conn.rollback()
            raise

    def clear(self, user_id: str = "default") -> None:
        try:
            with self.conn.cursor() as cur:
                cur.execute("DELETE FROM kv_store WHERE user_id = %s", (user_id,))
            self.conn.commit()
        except Exception as e:
            logger.error(f"Error clearing storage for {user_id}: {e}")
            self.conn.rollback()
            raise

    def log_event(self, event: str, user_id: str, **data) -> None:
        """Append to the events log. Failures are logged and dropped."""
        try:
            with self.conn.cursor() as cur:
                cur.execute(
                    "INSERT INTO events (event, user_id, data) VALUES (%s, %s, %s)",
                    (event, user_id, json.dumps(data) if data else None)
                )
            self.conn.commit()
        except Exception as e:
            logger.warning(f"Error logging event {event}: {e}")
            self.conn.rollback()

    def get_user_events(self, user_id: str, event_type: str = None, limit: int = 50) -> list[dict]:
        """Most recent events for a user, newest first."""
        query = "SELECT timestamp, event, data FROM events WHERE user_id = %s"
        params = [user_id]
        if event_type:
            query += " AND event = %s"
            params.append(event_type)
        query += " ORDER BY timestamp DESC LIMIT %s"
        params.append(limit)
        try:
            with self.conn.cursor(cursor_factory=RealDictCursor) as cur:
                cur.execute(query, params)
                return [dict(row) for row in cur.fetchall()]
        except Exception as e:
            logger.warning(f"Error loading events for {user_id}: {e}")
            self.conn.rollback()
            return []
