"""Build the accuracy tolerance distribution for one tolerance percentage.

For a tolerance t, a shallow replicate measured a gene "accurately" when its
expression lies strictly within t% of the same gene's expression in the
deepest replicate of the same parent. Measurements are then grouped by
ground-truth expression bin x depth bin x replicate, and the share of
accurate measurements in each group is one Bin Statistic.
"""

import math
from typing import Optional

import polars as pl
import structlog

from outlier_accuracy.accuracy.models import (
    BIN_STATISTIC_SCHEMA,
    DISTRIBUTION_BREAKPOINTS,
    TOLERANCE_EPSILON,
)

logger = structlog.get_logger()

BIN_GROUP_COLUMNS = ["min_bin", "max_bin", "min_bin_label", "bin_median", "UMEND", "parent_id"]


def flag_within_tolerance(df: pl.DataFrame, tolerance: float) -> pl.DataFrame:
    """Add within_tolerance: expression strictly inside +/- tolerance% of ground truth.

    Tested as |expression - gt| < gt * tolerance / 100 - gt * TOLERANCE_EPSILON.
    Neither the difference nor the margin is exact in floating point (3.0 - 2.7
    is 0.2999999999999998), so the margin is shrunk by a relative epsilon to
    keep values on the decimal boundary out.
    """
    ground_truth = pl.col("expression_at_max_depth")
    margin = ground_truth * tolerance / 100 - ground_truth * TOLERANCE_EPSILON

    return df.with_columns(
        ((pl.col("expression") - ground_truth).abs() < margin).alias("within_tolerance")
    )


def distribution_breakpoints(max_ground_truth: Optional[float]) -> list[int]:
    """Fixed breakpoints plus the ceiling of the largest ground truth, sorted and unique."""
    breakpoints = set(DISTRIBUTION_BREAKPOINTS)
    if max_ground_truth is not None and not math.isnan(max_ground_truth):
        breakpoints.add(math.ceil(max_ground_truth))
    return sorted(breakpoints)


def _bin_edge_expr(x: pl.Expr, breakpoints: list[int], use_upper: bool) -> pl.Expr:
    pairs = list(zip(breakpoints[:-1], breakpoints[1:]))
    expr = None
    for i, (lower, upper) in enumerate(pairs):
        # Last bin is closed so the maximum ground truth is binned
        if i == len(pairs) - 1:
            condition = (x >= lower) & (x <= upper)
        else:
            condition = (x >= lower) & (x < upper)
        edge = pl.lit(upper if use_upper else lower, dtype=pl.Int64)
        expr = pl.when(condition).then(edge) if expr is None else expr.when(condition).then(edge)
    return expr.otherwise(pl.lit(None, dtype=pl.Int64))


def assign_expression_bins(df: pl.DataFrame, breakpoints: list[int]) -> pl.DataFrame:
    """Bin expression_at_max_depth into [lower, upper) intervals.

    Adds:
        min_bin: lower edge (int)
        max_bin: upper edge (int)
        min_bin_label: lower edge as a string, used to match expression bins
    """
    if len(breakpoints) < 2:
        raise ValueError(f"Need at least two breakpoints, got {breakpoints}")

    x = pl.col("expression_at_max_depth")
    df = df.with_columns(
        _bin_edge_expr(x, breakpoints, use_upper=False).alias("min_bin"),
        _bin_edge_expr(x, breakpoints, use_upper=True).alias("max_bin"),
    )
    return df.with_columns(pl.col("min_bin").cast(pl.Utf8).alias("min_bin_label"))


def empty_distribution() -> pl.DataFrame:
    return pl.DataFrame(schema=BIN_STATISTIC_SCHEMA)


def build_tolerance_distribution(
    abundance: pl.DataFrame,
    tolerance: Optional[float],
) -> Optional[pl.DataFrame]:
    """Per-bin share of accurately measured genes at the given tolerance.

    Args:
        abundance: Abundance table (read-only; never modified)
        tolerance: Accuracy tolerance in percent, usually the row's
            percent_difference. None short-circuits.

    Returns:
        Bin Statistics with columns from BIN_STATISTIC_SCHEMA:
        - pct_accurately_measured: 0-100
        - n_genes_in_bin: distinct genes in the group
        - bin_label: "<lower>-<upper> (n=<genes>)"
        sorted by min_bin, bin_median, parent_id, UMEND.
        None when tolerance is missing.
    """
    if tolerance is None or math.isnan(tolerance):
        logger.debug("tolerance_distribution_skipped", reason="missing_tolerance")
        return None

    df = abundance.filter(
        pl.col("has_nonzero_ground_truth") & pl.col("expression").is_not_null()
    )
    if df.is_empty():
        logger.warning("tolerance_distribution_empty", tolerance=tolerance)
        return empty_distribution()

    breakpoints = distribution_breakpoints(df["expression_at_max_depth"].max())

    df = flag_within_tolerance(df, tolerance)
    df = assign_expression_bins(df, breakpoints)

    stats = (
        df.group_by(BIN_GROUP_COLUMNS)
        .agg(
            (pl.col("within_tolerance").cast(pl.Float64).mean() * 100).alias("pct_accurately_measured"),
            pl.col("gene").n_unique().cast(pl.UInt32).alias("n_genes_in_bin"),
            pl.len().cast(pl.UInt32).alias("n_measurements"),
        )
        .with_columns(
            pl.format(
                "{}-{} (n={})",
                pl.col("min_bin"),
                pl.col("max_bin"),
                pl.col("n_genes_in_bin"),
            ).alias("bin_label")
        )
    )

    stats = stats.select(list(BIN_STATISTIC_SCHEMA)).sort(
        ["min_bin", "bin_median", "parent_id", "UMEND"], nulls_last=True
    )

    logger.debug(
        "tolerance_distribution_built",
        tolerance=round(tolerance, 3),
        bin_rows=stats.height,
    )
    return stats
