"""
SQL Store Connector
===================

Connector for the relational store holding the raw orders table.
Supports inspection, full-table reads, derived column write-back and
snapshot table materialization.
"""

import logging
from typing import Dict, List, Optional, Any

import numpy as np
import pandas as pd
from sqlalchemy import (
    MetaData, Table, bindparam, create_engine, func, inspect, select, text, update
)
from sqlalchemy.types import TypeEngine

from processing.common_code.utils import is_missing

logger = logging.getLogger(__name__)


class SQLConnector:
    """
    Relational store connector (MySQL by default, any SQLAlchemy URL works).
    """

    def __init__(self, config: Dict):
        """
        Initialize SQL connector.

        Args:
            config: Connection configuration dict with either a full SQLAlchemy
                'url', or dialect, host, port, database, username, password
        """
        self.config = config
        self.engine = None

    @property
    def connection_string(self) -> str:
        if self.config.get("url"):
            return self.config["url"]
        dialect = self.config.get("dialect", "mysql+pymysql")
        return (
            f"{dialect}://{self.config['username']}:{self.config['password']}"
            f"@{self.config['host']}:{self.config['port']}/{self.config['database']}"
        )

    @property
    def description(self) -> str:
        if self.config.get("url"):
            return self.engine.url.render_as_string(hide_password=True) if self.engine else "<url>"
        return f"{self.config['host']}:{self.config['port']}/{self.config['database']}"

    def connect(self):
        """Establish connection to the store."""
        self.engine = create_engine(self.connection_string)

        # Test connection
        with self.engine.connect() as conn:
            conn.execute(text("SELECT 1"))

        logger.info(f"Connected to store: {self.description}")

    def disconnect(self):
        """Close database connection."""
        if self.engine:
            self.engine.dispose()
            logger.info("Store connection closed")

    def __enter__(self):
        self.connect()
        return self

    def __exit__(self, exc_type, exc, tb):
        self.disconnect()

    # =========================================
    # INSPECTION
    # =========================================

    def has_table(self, table: str) -> bool:
        return inspect(self.engine).has_table(table)

    def get_table_schema(self, table: str) -> pd.DataFrame:
        """
        Get table column information.

        Args:
            table: Table name

        Returns:
            DataFrame with column_name, data_type, is_nullable
        """
        columns = inspect(self.engine).get_columns(table)
        return pd.DataFrame(
            [
                {
                    "column_name": col["name"],
                    "data_type": str(col["type"]),
                    "is_nullable": col.get("nullable", True)
                }
                for col in columns
            ],
            columns=["column_name", "data_type", "is_nullable"]
        )

    def get_row_count(self, table: str) -> int:
        """
        Get row count for a table.

        Args:
            table: Table name

        Returns:
            Row count
        """
        reflected = self._reflect(table)
        with self.engine.connect() as conn:
            return conn.execute(select(func.count()).select_from(reflected)).scalar()

    def preview(self, table: str, limit: int = 10) -> pd.DataFrame:
        """Return the first rows of a table for visual inspection."""
        reflected = self._reflect(table)
        return pd.read_sql(select(reflected).limit(limit), self.engine)

    # =========================================
    # READ / WRITE
    # =========================================

    def read_table(self, table: str) -> pd.DataFrame:
        """
        Extract entire table data.

        Args:
            table: Table name

        Returns:
            DataFrame with table data
        """
        logger.info(f"Extracting full table: {table}")
        reflected = self._reflect(table)
        df = pd.read_sql(select(reflected), self.engine)
        logger.info(f"Extracted {len(df)} rows from {table}")
        return df

    def ensure_columns(self, table: str, columns: Dict[str, TypeEngine]) -> List[str]:
        """
        Add any missing columns to a table.

        Args:
            table: Table name
            columns: Mapping of column name to SQLAlchemy type

        Returns:
            Names of the columns that were added
        """
        existing = {col["name"] for col in inspect(self.engine).get_columns(table)}
        added = []

        with self.engine.begin() as conn:
            for name, column_type in columns.items():
                if name in existing:
                    continue
                ddl_type = column_type.compile(dialect=self.engine.dialect)
                preparer = self.engine.dialect.identifier_preparer
                conn.execute(text(
                    f"ALTER TABLE {preparer.quote(table)} "
                    f"ADD COLUMN {preparer.quote(name)} {ddl_type}"
                ))
                added.append(name)
                logger.info(f"Added column {table}.{name} ({ddl_type})")

        return added

    def update_columns(
        self,
        table: str,
        df: pd.DataFrame,
        columns: List[str],
        key: str = "order_id"
    ) -> int:
        """
        Write column values back to existing rows, matched by key.

        Args:
            table: Table name
            df: DataFrame holding the key column and the columns to write
            columns: Columns to update
            key: Key column used to match rows

        Returns:
            Number of rows sent to the store
        """
        if df.empty or not columns:
            return 0

        reflected = self._reflect(table)
        statement = (
            update(reflected)
            .where(reflected.c[key] == bindparam("b_key"))
            .values({col: bindparam(f"b_{col}") for col in columns})
        )

        params = []
        for record in df[[key] + columns].to_dict(orient="records"):
            row = {"b_key": _to_db_value(record[key])}
            for col in columns:
                row[f"b_{col}"] = _to_db_value(record[col])
            params.append(row)

        with self.engine.begin() as conn:
            conn.execute(statement, params)

        logger.info(f"Updated {len(params)} rows in {table} ({', '.join(columns)})")
        return len(params)

    def replace_table(self, df: pd.DataFrame, table: str, dtype: Optional[Dict] = None) -> int:
        """
        Materialize a DataFrame as a table, replacing any previous version.

        Returns:
            Rows written
        """
        df.to_sql(table, self.engine, if_exists="replace", index=False, dtype=dtype)
        logger.info(f"Materialized {len(df)} rows into {table}")
        return len(df)

    def _reflect(self, table: str) -> Table:
        return Table(table, MetaData(), autoload_with=self.engine)


def _to_db_value(value: Any) -> Any:
    """Convert pandas/numpy scalars to DBAPI-friendly Python values."""
    if is_missing(value):
        return None
    if isinstance(value, pd.Timestamp):
        return value.to_pydatetime()
    if isinstance(value, np.bool_):
        return bool(value)
    if isinstance(value, np.integer):
        return int(value)
    if isinstance(value, np.floating):
        return float(value)
    return value
