"""Persist and reload the abundance table (DuckDB checkpoint + gzipped TSV)."""

import gzip
from pathlib import Path
from typing import Optional

import polars as pl
import structlog

from outlier_accuracy.persistence import PipelineStore, ProvenanceTracker
from outlier_accuracy.reference.fetch import read_tsv
from outlier_accuracy.reference.models import (
    ABUNDANCE_COLUMNS,
    ABUNDANCE_SCHEMA,
    ABUNDANCE_TABLE_NAME,
)

logger = structlog.get_logger()


def load_to_duckdb(
    df: pl.DataFrame,
    store: PipelineStore,
    provenance: ProvenanceTracker,
    description: str = ""
) -> None:
    """Save the abundance table to DuckDB with provenance.

    Creates or replaces the abundance_table checkpoint (idempotent) and
    records a provenance step with summary statistics.

    Args:
        df: Abundance table from build_abundance_table
        store: PipelineStore instance for DuckDB persistence
        provenance: ProvenanceTracker instance for metadata recording
        description: Optional description for checkpoint metadata
    """
    logger.info("abundance_load_start", row_count=len(df))

    nonzero_rows = df.filter(pl.col("has_nonzero_ground_truth")).height
    ground_truth_stats = df.filter(pl.col("has_nonzero_ground_truth")).select([
        pl.col("expression_at_max_depth").min().alias("min"),
        pl.col("expression_at_max_depth").max().alias("max"),
        pl.col("expression_at_max_depth").median().alias("median"),
    ]).to_dicts()[0]

    store.save_dataframe(
        df=df,
        table_name=ABUNDANCE_TABLE_NAME,
        description=description or "Per-gene expression across subsampled depths with max-depth ground truth",
        source_hash=provenance.reference_hash,
    )

    provenance.record_step("load_abundance_table", {
        "row_count": len(df),
        "nonzero_ground_truth_rows": nonzero_rows,
        "ground_truth_min": round(ground_truth_stats["min"], 3) if ground_truth_stats["min"] is not None else None,
        "ground_truth_max": round(ground_truth_stats["max"], 3) if ground_truth_stats["max"] is not None else None,
        "ground_truth_median": round(ground_truth_stats["median"], 3) if ground_truth_stats["median"] is not None else None,
    })

    logger.info(
        "abundance_load_complete",
        row_count=len(df),
        nonzero_ground_truth_rows=nonzero_rows,
    )


def write_abundance_table(df: pl.DataFrame, output_path: Path) -> Path:
    """Write the abundance table as a (gzipped if *.gz) TSV for reuse outside DuckDB."""
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    df = df.select(ABUNDANCE_COLUMNS)
    if output_path.suffix == ".gz":
        with gzip.open(output_path, "wb") as f:
            df.write_csv(f, separator="\t", include_header=True)
    else:
        df.write_csv(output_path, separator="\t", include_header=True)

    logger.info("abundance_tsv_written", path=str(output_path), row_count=df.height)
    return output_path


def read_abundance_table(path: Path) -> pl.DataFrame:
    """Read a persisted abundance table TSV with its declared column types."""
    df = read_tsv(path, schema_overrides=ABUNDANCE_SCHEMA)
    missing = [col for col in ABUNDANCE_COLUMNS if col not in df.columns]
    if missing:
        raise ValueError(f"Abundance table {path} is missing columns {missing}")
    return df.select(ABUNDANCE_COLUMNS)


def load_abundance_table(
    store: Optional[PipelineStore] = None,
    path: Optional[Path] = None,
    source_hash: Optional[str] = None,
) -> pl.DataFrame:
    """Load the abundance table, preferring the DuckDB checkpoint over the TSV.

    When source_hash is given and the checkpoint was built from other
    reference settings, the checkpoint is still used but a warning is logged.

    Raises:
        FileNotFoundError: If neither a checkpoint nor the TSV is available
    """
    if store is not None and store.has_checkpoint(ABUNDANCE_TABLE_NAME):
        if source_hash is not None and not store.has_checkpoint(ABUNDANCE_TABLE_NAME, source_hash):
            logger.warning("abundance_checkpoint_stale", expected_hash=source_hash[:16])
        df = store.load_dataframe(ABUNDANCE_TABLE_NAME)
        if df is not None:
            logger.info("abundance_loaded_from_store", row_count=df.height)
            return df

    if path is not None and Path(path).exists():
        df = read_abundance_table(path)
        logger.info("abundance_loaded_from_tsv", path=str(path), row_count=df.height)
        return df

    raise FileNotFoundError(
        "Abundance table not found. Run 'outlier-accuracy build-reference' first."
    )
