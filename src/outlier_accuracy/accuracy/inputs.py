"""Read the per-sample evaluation inputs and curated gene/cohort lists.

All readers fail fast: a missing or malformed input aborts the run, since
every later computation assumes well-formed inputs.
"""

import json
from dataclasses import dataclass
from pathlib import Path

import polars as pl
import structlog
from pydantic import BaseModel, Field, ValidationError

from outlier_accuracy.accuracy.thresholds import ThresholdTable
from outlier_accuracy.config.schema import EvaluationConfig
from outlier_accuracy.reference.fetch import read_tsv

logger = structlog.get_logger()


class SampleReadCounts(BaseModel):
    """Read-count summary of the sample under evaluation."""

    sample_id: str
    UMEND: float = Field(..., ge=0)


@dataclass(frozen=True)
class SampleInputs:
    """Everything one sample evaluation needs besides the abundance table."""

    sample_id: str
    umend: float
    outliers: pl.DataFrame
    thresholds: ThresholdTable
    druggable_genes: frozenset[str]
    cohorts: dict[str, str]


def _load_json(path: Path):
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Input file not found: {path}")
    try:
        with open(path) as f:
            return json.load(f)
    except json.JSONDecodeError as e:
        raise ValueError(f"Malformed JSON in {path}: {e}") from e


def read_outlier_results(path: Path, flag_columns: list[str]) -> pl.DataFrame:
    """Read a sample's outlier-detection results (TSV, or JSON records).

    Returns:
        DataFrame with columns gene (str), expression (float) and the flag
        columns (str), one row per gene
    """
    path = Path(path)
    if path.suffix == ".json":
        records = _load_json(path)
        if not isinstance(records, list):
            raise ValueError(f"Outlier results {path} must be a JSON array of records")
        df = pl.DataFrame(records, infer_schema_length=None)
    else:
        df = read_tsv(path, infer_schema_length=0)

    required = ["gene", "expression", *flag_columns]
    missing = [col for col in required if col not in df.columns]
    if missing:
        raise ValueError(f"Outlier results {path} missing columns {missing} (found {df.columns})")

    try:
        df = df.select(
            pl.col("gene").cast(pl.Utf8),
            pl.col("expression").cast(pl.Float64),
            *[pl.col(col).cast(pl.Utf8) for col in flag_columns],
        )
    except pl.exceptions.PolarsError as e:
        raise ValueError(f"Outlier results {path} have non-numeric expression values: {e}") from e

    duplicates = df.height - df["gene"].n_unique()
    if duplicates:
        logger.warning("outlier_results_duplicate_genes", duplicates=duplicates)
        df = df.unique(subset="gene", keep="first", maintain_order=True)

    logger.info("outlier_results_read_complete", gene_count=df.height)
    return df


def read_thresholds(path: Path) -> ThresholdTable:
    """Read the per-cohort threshold JSON into a ThresholdTable."""
    data = _load_json(path)
    try:
        table = ThresholdTable.model_validate(data)
    except ValidationError as e:
        raise ValueError(f"Malformed threshold JSON {path}: {e}") from e

    logger.info("thresholds_read_complete", cohorts=table.cohorts)
    return table


def read_sample_read_counts(path: Path) -> SampleReadCounts:
    """Read the sample's read-count summary JSON (sample_id and UMEND)."""
    data = _load_json(path)
    try:
        return SampleReadCounts.model_validate(data)
    except ValidationError as e:
        raise ValueError(f"Malformed read-count summary {path}: {e}") from e


def read_druggable_genes(path: Path) -> frozenset[str]:
    """Read the curated druggable gene list (first column, header skipped)."""
    df = read_tsv(path, infer_schema_length=0)
    if df.width == 0:
        raise ValueError(f"Druggable gene list {path} is empty")

    symbols = df.get_column(df.columns[0]).drop_nulls().str.strip_chars()
    genes = frozenset(symbol for symbol in symbols.to_list() if symbol)

    logger.info("druggable_genes_read_complete", gene_count=len(genes))
    return genes


def read_cohort_names(path: Path) -> dict[str, str]:
    """Read the cohort machine name -> display name mapping, in file order."""
    df = read_tsv(path, infer_schema_length=0)
    if df.width < 2:
        raise ValueError(f"Cohort name mapping {path} needs two columns (cohort, display name)")

    machine, display = df.columns[:2]
    names = {
        row[machine]: row[display] or row[machine]
        for row in df.select([machine, display]).to_dicts()
        if row[machine]
    }
    if not names:
        raise ValueError(f"Cohort name mapping {path} lists no cohorts")
    return names


def load_sample_inputs(input_dir: Path, config: EvaluationConfig) -> SampleInputs:
    """Read every input of one sample evaluation.

    Args:
        input_dir: Directory holding the sample's outlier results, threshold
            JSON and read-count summary JSON
        config: Evaluation settings (file names, curated list paths)

    Raises:
        FileNotFoundError: If any input is missing
        ValueError: If any input is malformed
    """
    input_dir = Path(input_dir)
    if not input_dir.is_dir():
        raise FileNotFoundError(f"Input directory not found: {input_dir}")

    read_counts = read_sample_read_counts(input_dir / config.read_counts_file)

    return SampleInputs(
        sample_id=read_counts.sample_id,
        umend=read_counts.UMEND,
        outliers=read_outlier_results(
            input_dir / config.outlier_results_file, config.outlier_flag_columns
        ),
        thresholds=read_thresholds(input_dir / config.thresholds_file),
        druggable_genes=read_druggable_genes(config.druggable_genes),
        cohorts=read_cohort_names(config.cohort_names),
    )
