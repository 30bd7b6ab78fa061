"""Base repository class."""

import json
from typing import Any, Sequence

import duckdb
from ...utils.logger import get_app_logger


class BaseRepository:
    """Base class for all repositories."""

    def __init__(self, conn: duckdb.DuckDBPyConnection):
        """
        Initialize repository with database connection.

        Args:
            conn: DuckDB connection instance
        """
        self.conn = conn
        self.logger = get_app_logger()

    @staticmethod
    def _loads(value: Any, default: Any) -> Any:
        """Decode a JSON column that DuckDB may hand back as text."""
        if value is None:
            return default
        if isinstance(value, str):
            return json.loads(value) if value else default
        return value

    @staticmethod
    def _placeholders(values: Sequence[Any]) -> str:
        """Build a ``?, ?, ?`` list for an IN clause."""
        return ", ".join("?" for _ in values)
