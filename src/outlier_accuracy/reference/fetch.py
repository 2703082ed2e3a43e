"""Read the raw multi-depth resequencing inputs from disk."""

import gzip
from pathlib import Path
from typing import Optional

import polars as pl
import structlog

logger = structlog.get_logger()

NULL_VALUES = ["NA", "", "."]


def read_tsv(path: Path | str, **kwargs) -> pl.DataFrame:
    """Read a tab-separated file, transparently decompressing .gz files.

    Raises:
        FileNotFoundError: If the file does not exist
        ValueError: If polars cannot parse the file
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Input file not found: {path}")

    kwargs.setdefault("null_values", NULL_VALUES)

    try:
        if path.suffix == ".gz":
            with gzip.open(path, "rb") as f:
                return pl.read_csv(f.read(), separator="\t", **kwargs)
        return pl.read_csv(path, separator="\t", **kwargs)
    except pl.exceptions.PolarsError as e:
        raise ValueError(f"Malformed input file {path}: {e}") from e


def _require_columns(df: pl.DataFrame, required: list[str], path: Path | str) -> None:
    missing = [col for col in required if col not in df.columns]
    if missing:
        raise ValueError(f"{path} is missing required columns {missing} (found {df.columns})")


def read_expression_matrix(path: Path | str) -> pl.DataFrame:
    """Read the wide gene x replicate log2(TPM+1) matrix.

    The first column holds gene identifiers whatever its header says; every
    other column is one subsampled replicate.

    Returns:
        DataFrame with a "gene" column followed by one Float64 column per replicate

    Raises:
        FileNotFoundError: If the matrix does not exist
        ValueError: If the matrix has no replicate columns or non-numeric values
    """
    logger.info("expression_matrix_read_start", path=str(path))

    df = read_tsv(path, infer_schema_length=0)
    if df.width < 2:
        raise ValueError(f"Expression matrix {path} has no replicate columns")

    df = df.rename({df.columns[0]: "gene"})
    try:
        df = df.with_columns(pl.exclude("gene").cast(pl.Float64))
    except pl.exceptions.PolarsError as e:
        raise ValueError(f"Expression matrix {path} contains non-numeric values: {e}") from e

    logger.info(
        "expression_matrix_read_complete",
        gene_count=df.height,
        replicate_count=df.width - 1,
    )
    return df


def read_read_counts(
    path: Path | str,
    column_names: Optional[list[str]] = None,
) -> pl.DataFrame:
    """Read per-replicate read-count metrics.

    Args:
        path: TSV of read-count metrics
        column_names: Names for a headerless file; when None the file's own
            header is used

    Returns:
        DataFrame with columns: sample_id (str), UMEND (float), one row per replicate
    """
    if column_names is not None:
        df = read_tsv(
            path,
            has_header=False,
            new_columns=column_names,
            infer_schema_length=0,
        )
    else:
        df = read_tsv(path, infer_schema_length=0)

    _require_columns(df, ["sample_id", "UMEND"], path)

    try:
        df = df.select(
            pl.col("sample_id"),
            pl.col("UMEND").cast(pl.Float64),
        )
    except pl.exceptions.PolarsError as e:
        raise ValueError(f"Read-count table {path} has non-numeric UMEND values: {e}") from e

    duplicate_count = df.height - df["sample_id"].n_unique()
    if duplicate_count:
        logger.warning("read_counts_duplicate_samples", duplicates=duplicate_count)
        df = df.unique(subset="sample_id", keep="first", maintain_order=True)

    logger.info("read_counts_read_complete", replicate_count=df.height)
    return df


def read_evenly_selected_subsamples(path: Path | str) -> pl.DataFrame:
    """Read the curated evenly-selected subsample list.

    Returns:
        DataFrame with columns: sample_id (str), bin_median (int)
    """
    df = read_tsv(path, infer_schema_length=0)
    _require_columns(df, ["sample_id", "bin_median"], path)

    try:
        df = df.select(
            pl.col("sample_id"),
            pl.col("bin_median").cast(pl.Float64).round(0).cast(pl.Int64),
        )
    except pl.exceptions.PolarsError as e:
        raise ValueError(f"Subsample table {path} has non-numeric bin_median values: {e}") from e

    df = df.unique(subset="sample_id", keep="first", maintain_order=True)

    logger.info(
        "subsamples_read_complete",
        replicate_count=df.height,
        depth_bins=sorted(df["bin_median"].drop_nulls().unique().to_list()),
    )
    return df
