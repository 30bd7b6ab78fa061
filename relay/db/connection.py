"""Database connection and schema management."""

import duckdb
from contextlib import contextmanager
from typing import Iterator, Optional
from pathlib import Path
from ..utils.logger import get_app_logger


class DatabaseConnection:
    """DuckDB connection manager."""

    def __init__(self, db_path: str = "./data/relay.db"):
        """
        Initialize database connection.

        Args:
            db_path: Path to DuckDB database file
        """
        self.db_path = db_path
        self.logger = get_app_logger()
        self.conn: Optional[duckdb.DuckDBPyConnection] = None

        # Ensure database directory exists
        db_dir = Path(db_path).parent
        db_dir.mkdir(parents=True, exist_ok=True)

        self._connect()
        self._init_schema()

    def _connect(self):
        """Connect to DuckDB database."""
        try:
            self.conn = duckdb.connect(self.db_path)
            self.logger.info(f"Connected to DuckDB at {self.db_path}")
        except Exception as e:
            self.logger.error(f"Failed to connect to DuckDB: {e}")
            raise

    def _init_schema(self):
        """Initialize database schema."""
        try:
            self.conn.execute("""
                CREATE TABLE IF NOT EXISTS delivery_settings (
                    id BIGINT PRIMARY KEY,
                    name VARCHAR NOT NULL UNIQUE,
                    base_url VARCHAR NOT NULL,
                    api_key VARCHAR NOT NULL,
                    batch_threshold INTEGER NOT NULL,
                    batch_time_window INTEGER NOT NULL,
                    request_timeout INTEGER NOT NULL,
                    max_retries INTEGER NOT NULL,
                    is_active BOOLEAN DEFAULT FALSE,
                    created_at TIMESTAMP NOT NULL
                )
            """)

            self.conn.execute("""
                CREATE TABLE IF NOT EXISTS conversations (
                    id VARCHAR PRIMARY KEY,
                    status VARCHAR NOT NULL,
                    remote_conversation_id VARCHAR,
                    created_at TIMESTAMP NOT NULL,
                    last_active TIMESTAMP NOT NULL,
                    metadata JSON
                )
            """)

            self.conn.execute("""
                CREATE TABLE IF NOT EXISTS messages (
                    id BIGINT PRIMARY KEY,
                    conversation_id VARCHAR NOT NULL,
                    role VARCHAR NOT NULL,
                    content TEXT NOT NULL,
                    status VARCHAR NOT NULL,
                    retry_count INTEGER DEFAULT 0,
                    request_task_id VARCHAR,
                    error_message VARCHAR,
                    created_at TIMESTAMP NOT NULL,
                    sent_at TIMESTAMP,
                    received_at TIMESTAMP,
                    metadata JSON
                )
            """)

            self.conn.execute("""
                CREATE TABLE IF NOT EXISTS request_tasks (
                    id BIGINT PRIMARY KEY,
                    task_id VARCHAR NOT NULL UNIQUE,
                    conversation_id VARCHAR NOT NULL,
                    status VARCHAR NOT NULL,
                    aggregated_content TEXT NOT NULL,
                    message_count INTEGER NOT NULL,
                    response TEXT,
                    error_message TEXT,
                    created_at TIMESTAMP NOT NULL,
                    processing_started_at TIMESTAMP,
                    completed_at TIMESTAMP,
                    metadata JSON
                )
            """)

            self.conn.execute("""
                CREATE TABLE IF NOT EXISTS failed_messages (
                    id BIGINT PRIMARY KEY,
                    conversation_id VARCHAR NOT NULL,
                    message_id BIGINT,
                    request_task_id VARCHAR,
                    error TEXT NOT NULL,
                    attempts INTEGER NOT NULL,
                    failed_at TIMESTAMP NOT NULL,
                    retried BOOLEAN DEFAULT FALSE,
                    retry_history JSON,
                    context JSON
                )
            """)

            # Only columns that are never updated get indexes; DuckDB turns
            # updates of indexed columns into delete + insert.
            self.conn.execute("CREATE INDEX IF NOT EXISTS idx_messages_conversation ON messages(conversation_id)")
            self.conn.execute("CREATE INDEX IF NOT EXISTS idx_request_tasks_conversation ON request_tasks(conversation_id)")
            self.conn.execute("CREATE INDEX IF NOT EXISTS idx_failed_messages_task ON failed_messages(request_task_id)")

            for sequence in (
                "delivery_settings_id_seq",
                "messages_id_seq",
                "request_tasks_id_seq",
                "failed_messages_id_seq",
            ):
                self.conn.execute(f"CREATE SEQUENCE IF NOT EXISTS {sequence} START 1")

            self.logger.info("Database schema initialized successfully")

        except Exception as e:
            self.logger.error(f"Failed to initialize database schema: {e}")
            raise

    @contextmanager
    def transaction(self) -> Iterator[duckdb.DuckDBPyConnection]:
        """
        Run a block of statements atomically.

        Any exception raised inside the block rolls the whole block back and
        is re-raised.
        """
        self.conn.begin()
        try:
            yield self.conn
        except BaseException:
            self.conn.rollback()
            raise
        else:
            self.conn.commit()

    def ping(self) -> bool:
        """Check that the database answers queries."""
        try:
            self.conn.execute("SELECT 1").fetchone()
            return True
        except Exception as e:
            self.logger.error(f"Database ping failed: {e}")
            return False

    def close(self):
        """Close database connection."""
        if self.conn:
            self.conn.close()
            self.logger.info("Database connection closed")

    def __enter__(self):
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.close()
