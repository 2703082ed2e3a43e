"""Assemble per-gene outlier accuracy summaries for one sample.

For each candidate gene and each cohort:
1. resolve the cohort's threshold for the gene
2. exceeds_threshold = expression > threshold,
   percent_difference = 100 * |expression - threshold| / expression
3. build the tolerance distribution at percent_difference
4. pick the Bin Statistics matching the gene's expression bin and the
   sample's depth bin, and summarise them

Nothing here mutates the abundance table, so it can be shared read-only
across genes.
"""

from typing import Optional

import polars as pl
import structlog

from outlier_accuracy.accuracy.bins import resolve_expression_bin
from outlier_accuracy.accuracy.distribution import build_tolerance_distribution
from outlier_accuracy.accuracy.models import (
    SUMMARY_SCHEMA,
    UP_FLAG_SUFFIX,
    OutlierSummaryRow,
)
from outlier_accuracy.accuracy.statistics import extract_accuracy_statistics
from outlier_accuracy.accuracy.thresholds import ThresholdTable

logger = structlog.get_logger()

COMPARISON_COLUMNS = [
    "sample_id",
    "gene",
    "cohort",
    "expression",
    "threshold",
    "exceeds_threshold",
    "percent_difference",
]


def select_candidate_genes(
    outliers: pl.DataFrame,
    druggable_genes: frozenset[str] | set[str],
    flag_columns: list[str],
) -> list[str]:
    """Genes flagged "up" by any outlier method and present in the druggable list.

    A flag counts as "up" when its value ends in "up" (case-insensitive),
    e.g. "pc_up" or "up".

    Returns:
        Sorted, unique gene symbols
    """
    missing = [col for col in flag_columns if col not in outliers.columns]
    if missing:
        raise ValueError(f"Outlier results missing flag columns {missing}")

    flagged_up = pl.any_horizontal([
        pl.col(col).cast(pl.Utf8).str.to_lowercase().str.ends_with(UP_FLAG_SUFFIX).fill_null(False)
        for col in flag_columns
    ])

    candidates = (
        outliers.filter(flagged_up & pl.col("gene").is_in(list(druggable_genes)))
        .get_column("gene")
        .unique()
        .sort()
        .to_list()
    )

    logger.info(
        "candidate_genes_selected",
        flagged_up=outliers.filter(flagged_up).height,
        candidates=len(candidates),
    )
    return candidates


def compare_to_thresholds(
    sample_id: str,
    gene: str,
    expression: Optional[float],
    cohorts: list[str],
    thresholds: ThresholdTable,
) -> pl.DataFrame:
    """One row per cohort with threshold, exceeds_threshold and percent_difference.

    NULL thresholds propagate: exceeds_threshold and percent_difference are
    NULL for that cohort. percent_difference is also NULL when expression
    is not positive, since it is relative to the expression.
    """
    resolved = {cohort: thresholds.resolve(gene, cohort) for cohort in cohorts}
    missing = [cohort for cohort, value in resolved.items() if value is None]
    if missing:
        logger.info("thresholds_missing", gene=gene, cohorts=missing)

    df = pl.DataFrame(
        {
            "cohort": cohorts,
            "threshold": [resolved[cohort] for cohort in cohorts],
        },
        schema={"cohort": pl.Utf8, "threshold": pl.Float64},
    )

    df = df.with_columns(
        pl.lit(sample_id, dtype=pl.Utf8).alias("sample_id"),
        pl.lit(gene, dtype=pl.Utf8).alias("gene"),
        pl.lit(expression, dtype=pl.Float64).alias("expression"),
    )

    return df.with_columns(
        (pl.col("expression") > pl.col("threshold")).alias("exceeds_threshold"),
        pl.when(pl.col("expression") > 0)
        .then(100 * (pl.col("expression") - pl.col("threshold")).abs() / pl.col("expression"))
        .otherwise(pl.lit(None, dtype=pl.Float64))
        .alias("percent_difference"),
    ).select(COMPARISON_COLUMNS)


def apply_cohort_display_names(df: pl.DataFrame, cohort_names: dict[str, str]) -> pl.DataFrame:
    """Rewrite cohort machine names to display names; unmapped names are kept."""
    return df.with_columns(pl.col("cohort").replace(cohort_names))


def assemble_gene_summary(
    sample_id: str,
    gene: str,
    expression: Optional[float],
    depth_bin: Optional[int],
    thresholds: ThresholdTable,
    cohort_names: dict[str, str],
    abundance: pl.DataFrame,
) -> pl.DataFrame:
    """Build the summary table of one gene across all cohorts.

    Args:
        sample_id: Sample under evaluation
        gene: Candidate gene
        expression: Sample's measured expression of the gene
        depth_bin: Sample's depth bin (None if undefined)
        thresholds: Per-cohort thresholds of the sample
        cohort_names: Ordered cohort machine name -> display name
        abundance: Reference abundance table (read-only)

    Returns:
        DataFrame with SUMMARY_SCHEMA columns, one row per cohort, cohorts
        shown by display name
    """
    expression_bin = resolve_expression_bin(expression)
    if expression_bin is None:
        logger.warning("expression_bin_undefined", gene=gene, expression=expression)

    comparisons = compare_to_thresholds(
        sample_id, gene, expression, list(cohort_names), thresholds
    )

    rows = []
    for comparison in comparisons.iter_rows(named=True):
        distribution = build_tolerance_distribution(abundance, comparison["percent_difference"])
        statistics = extract_accuracy_statistics(distribution, expression_bin, depth_bin)
        row = OutlierSummaryRow(**comparison, **statistics.summary_fields())
        rows.append(row.model_dump())

    df = pl.DataFrame(rows, schema=SUMMARY_SCHEMA)
    return apply_cohort_display_names(df, cohort_names)

