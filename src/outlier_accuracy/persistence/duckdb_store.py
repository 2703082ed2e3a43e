"""DuckDB-backed checkpoint store for reference tables."""

from pathlib import Path
from typing import Optional

import duckdb
import polars as pl

CHECKPOINT_TABLE = "_checkpoints"


class PipelineStore:
    """
    DuckDB storage for reference tables that outlive a single run.

    The abundance table is expensive to rebuild (every gene x replicate
    pair), so it is saved once and reused by every per-sample evaluation.
    Each checkpoint remembers the hash of the reference settings it was
    built from, so a build from different inputs can be told apart.
    """

    def __init__(self, db_path: Path):
        """
        Args:
            db_path: DuckDB database file; parent directories are created.
        """
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self.conn = duckdb.connect(str(self.db_path))
        self.conn.execute(f"""
            CREATE TABLE IF NOT EXISTS {CHECKPOINT_TABLE} (
                table_name VARCHAR PRIMARY KEY,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                row_count BIGINT,
                description VARCHAR,
                source_hash VARCHAR
            )
        """)

    def save_dataframe(
        self,
        df: pl.DataFrame,
        table_name: str,
        description: str = "",
        source_hash: Optional[str] = None,
    ) -> None:
        """
        Replace table_name with df and register it as a checkpoint.

        Args:
            df: polars DataFrame to persist
            table_name: Target table
            description: Free-text note kept with the checkpoint
            source_hash: Hash of the settings the table was built from
        """
        if not isinstance(df, pl.DataFrame):
            raise ValueError(f"Expected a polars DataFrame, got {type(df).__name__}")

        self.conn.register("_incoming", df)
        try:
            self.conn.execute(f"CREATE OR REPLACE TABLE {table_name} AS SELECT * FROM _incoming")
        finally:
            self.conn.unregister("_incoming")

        (row_count,) = self.conn.execute(f"SELECT COUNT(*) FROM {table_name}").fetchone()
        self.conn.execute(
            f"INSERT OR REPLACE INTO {CHECKPOINT_TABLE} "
            "(table_name, row_count, description, source_hash, created_at) "
            "VALUES (?, ?, ?, ?, CURRENT_TIMESTAMP)",
            [table_name, row_count, description, source_hash],
        )

    def load_dataframe(self, table_name: str) -> Optional[pl.DataFrame]:
        """Read table_name back as polars, or None if it doesn't exist."""
        try:
            return self.conn.execute(f"SELECT * FROM {table_name}").pl()
        except duckdb.CatalogException:
            return None

    def checkpoint_info(self, table_name: str) -> Optional[dict]:
        """Checkpoint metadata for table_name, or None if it was never saved."""
        row = self.conn.execute(
            f"SELECT table_name, created_at, row_count, description, source_hash "
            f"FROM {CHECKPOINT_TABLE} WHERE table_name = ?",
            [table_name],
        ).fetchone()
        if row is None:
            return None
        return dict(zip(["table_name", "created_at", "row_count", "description", "source_hash"], row))

    def has_checkpoint(self, table_name: str, source_hash: Optional[str] = None) -> bool:
        """True if table_name is checkpointed (and, if given, built from source_hash)."""
        info = self.checkpoint_info(table_name)
        if info is None:
            return False
        return source_hash is None or info["source_hash"] == source_hash

    def list_checkpoints(self) -> list[dict]:
        """All checkpoints, newest first."""
        names = self.conn.execute(
            f"SELECT table_name FROM {CHECKPOINT_TABLE} ORDER BY created_at DESC"
        ).fetchall()
        return [self.checkpoint_info(name) for (name,) in names]

    def delete_checkpoint(self, table_name: str) -> None:
        """Drop table_name and forget its checkpoint."""
        self.conn.execute(f"DROP TABLE IF EXISTS {table_name}")
        self.conn.execute(f"DELETE FROM {CHECKPOINT_TABLE} WHERE table_name = ?", [table_name])

    def close(self) -> None:
        if self.conn is not None:
            self.conn.close()
            self.conn = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False

    @classmethod
    def from_config(cls, config: "PipelineConfig") -> "PipelineStore":
        return cls(config.duckdb_path)
