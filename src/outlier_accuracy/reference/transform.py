"""Build the long-format abundance table from multi-depth resequencing data."""

from pathlib import Path
from typing import Optional

import polars as pl
import structlog

from outlier_accuracy.reference.fetch import (
    read_expression_matrix,
    read_read_counts,
    read_evenly_selected_subsamples,
)
from outlier_accuracy.reference.models import (
    ABUNDANCE_COLUMNS,
    READS_PER_MILLION,
    SAMPLE_ID_PATTERN,
)

logger = structlog.get_logger()

GROUND_TRUTH_GROUP = ["parent_id", "gene"]


def reshape_expression(df: pl.DataFrame) -> pl.DataFrame:
    """Reshape the wide gene x replicate matrix into (gene, sample_id, expression) rows."""
    return df.unpivot(
        index="gene",
        variable_name="sample_id",
        value_name="expression",
    )


def parse_sample_ids(df: pl.DataFrame) -> pl.DataFrame:
    """Derive parent_id and target_UMEND_count from the sample_id column.

    Ids must follow <parent_id>_est<N>M_<suffix>; parent_id is everything
    before the first "_est<N>M_" and the target depth is N million reads.
    Ids that don't match get NULL in both columns.

    Args:
        df: DataFrame with a sample_id column

    Returns:
        DataFrame with parent_id (str) and target_UMEND_count (int) added
    """
    return df.with_columns(
        pl.col("sample_id").str.extract(SAMPLE_ID_PATTERN, 1).alias("parent_id"),
        (
            pl.col("sample_id").str.extract(SAMPLE_ID_PATTERN, 2).cast(pl.Int64)
            * READS_PER_MILLION
        ).alias("target_UMEND_count"),
    )


def find_malformed_sample_ids(sample_ids: list[str]) -> list[str]:
    """Return the sorted sample ids that don't encode a parent and target depth."""
    parsed = parse_sample_ids(
        pl.DataFrame({"sample_id": sample_ids}, schema={"sample_id": pl.Utf8})
    )
    return sorted(
        parsed.filter(pl.col("target_UMEND_count").is_null())["sample_id"].unique().to_list()
    )


def drop_malformed_sample_ids(df: pl.DataFrame) -> pl.DataFrame:
    """Exclude rows whose sample_id could not be parsed.

    Malformed ids can't be grouped with their parent, so they are dropped
    and logged rather than failing the build.
    """
    malformed = find_malformed_sample_ids(df["sample_id"].unique().to_list())
    if malformed:
        logger.warning(
            "malformed_sample_ids_excluded",
            count=len(malformed),
            examples=malformed[:5],
        )
    return df.filter(pl.col("target_UMEND_count").is_not_null())


def annotate_subsample_depths(
    df: pl.DataFrame,
    subsamples: pl.DataFrame,
    read_counts: pl.DataFrame,
) -> pl.DataFrame:
    """Restrict to evenly-selected replicates and attach bin_median and UMEND.

    Args:
        df: Long expression records with parsed sample ids
        subsamples: sample_id -> bin_median (the curated replicate list)
        read_counts: sample_id -> UMEND

    Returns:
        DataFrame limited to replicates in `subsamples`, with bin_median and
        UMEND columns (UMEND NULL if the replicate has no read-count entry)
    """
    rows_before = df.height
    df = df.join(subsamples.select(["sample_id", "bin_median"]), on="sample_id", how="inner")
    df = df.join(read_counts.select(["sample_id", "UMEND"]), on="sample_id", how="left")

    missing_umend = df.filter(pl.col("UMEND").is_null())["sample_id"].n_unique()
    if missing_umend:
        logger.warning("replicates_missing_umend", replicate_count=missing_umend)

    logger.info(
        "subsample_restriction_complete",
        rows_before=rows_before,
        rows_after=df.height,
        replicate_count=df["sample_id"].n_unique(),
    )
    return df


def annotate_ground_truth(df: pl.DataFrame) -> pl.DataFrame:
    """Broadcast the deepest replicate's expression to every row of its group.

    Within each (parent_id, gene) group the replicate with the largest
    target_UMEND_count is the ground truth. When several replicates share
    the maximal target depth, the lexicographically lowest sample_id wins.

    Adds:
        expression_at_max_depth: ground-truth expression for the group
        has_nonzero_ground_truth: expression_at_max_depth > 0 (False if NULL)
        max_expression_of_gene: max expression seen in the group (audit only)
    """
    ground_truth = (
        pl.col("expression")
        .sort_by(["target_UMEND_count", "sample_id"], descending=[True, False])
        .first()
        .over(GROUND_TRUTH_GROUP)
    )

    df = df.with_columns(
        ground_truth.alias("expression_at_max_depth"),
        pl.col("expression").max().over(GROUND_TRUTH_GROUP).alias("max_expression_of_gene"),
    )

    return df.with_columns(
        (pl.col("expression_at_max_depth") > 0)
        .fill_null(False)
        .alias("has_nonzero_ground_truth")
    )


def build_abundance_table(
    expression: pl.DataFrame,
    read_counts: pl.DataFrame,
    subsamples: pl.DataFrame,
) -> pl.DataFrame:
    """Compose reshape -> parse ids -> restrict to subsamples -> ground truth.

    Args:
        expression: Wide matrix from read_expression_matrix
        read_counts: sample_id/UMEND table from read_read_counts
        subsamples: sample_id/bin_median table from read_evenly_selected_subsamples

    Returns:
        Abundance table with ABUNDANCE_COLUMNS, sorted by parent_id, gene,
        sample_id for reproducible output
    """
    logger.info("abundance_build_start", gene_count=expression.height)

    df = reshape_expression(expression)
    df = parse_sample_ids(df)
    df = drop_malformed_sample_ids(df)
    df = annotate_subsample_depths(df, subsamples, read_counts)
    df = annotate_ground_truth(df)

    df = df.select(ABUNDANCE_COLUMNS).sort(["parent_id", "gene", "sample_id"])

    logger.info(
        "abundance_build_complete",
        row_count=df.height,
        parent_count=df["parent_id"].n_unique(),
        zero_ground_truth_rows=df.filter(~pl.col("has_nonzero_ground_truth")).height,
    )
    return df


def summarize_reference_qc(
    df: pl.DataFrame,
    malformed_sample_ids: Optional[list[str]] = None,
) -> dict:
    """Summary counts describing an abundance table, for provenance and display.

    Returns:
        Dict with row_count, gene_count, parent_count, replicate_count,
        zero_ground_truth_rows, malformed_sample_id_count and
        replicates_per_depth_bin (bin_median -> distinct replicates)
    """
    per_bin = (
        df.drop_nulls("bin_median")
        .group_by("bin_median")
        .agg(pl.col("sample_id").n_unique().alias("replicates"))
        .sort("bin_median")
    )

    return {
        "row_count": df.height,
        "gene_count": df["gene"].n_unique(),
        "parent_count": df["parent_id"].n_unique(),
        "replicate_count": df["sample_id"].n_unique(),
        "zero_ground_truth_rows": df.filter(~pl.col("has_nonzero_ground_truth")).height,
        "malformed_sample_id_count": len(malformed_sample_ids or []),
        "replicates_per_depth_bin": {
            int(row["bin_median"]): row["replicates"] for row in per_bin.to_dicts()
        },
    }


def process_reference_table(
    expression_path: Path,
    read_counts_path: Path,
    subsamples_path: Path,
    read_count_columns: Optional[list[str]] = None,
) -> tuple[pl.DataFrame, dict]:
    """End-to-end reference build from file paths.

    Composes: read matrix -> read counts -> read subsamples -> build -> QC

    Returns:
        (abundance table, QC summary dict)
    """
    logger.info("reference_pipeline_start", expression_path=str(expression_path))

    expression = read_expression_matrix(expression_path)
    read_counts = read_read_counts(read_counts_path, column_names=read_count_columns)
    subsamples = read_evenly_selected_subsamples(subsamples_path)

    malformed = find_malformed_sample_ids(expression.columns[1:])

    df = build_abundance_table(expression, read_counts, subsamples)
    qc = summarize_reference_qc(df, malformed_sample_ids=malformed)

    logger.info(
        "reference_pipeline_complete",
        row_count=qc["row_count"],
        parent_count=qc["parent_count"],
        malformed_sample_ids=qc["malformed_sample_id_count"],
    )

    return df, qc
