"""Select a gene's reference bin and summarise its measurement accuracy."""

from typing import Optional

import polars as pl
import structlog

from outlier_accuracy.accuracy.models import (
    MAX_SAMPLE_VALUES,
    AccuracyStatistics,
    ExpressionBin,
)

logger = structlog.get_logger()


def select_bin_statistics(
    distribution: pl.DataFrame,
    expression_bin: ExpressionBin,
    depth_bin: int,
) -> pl.DataFrame:
    """Rows whose min_bin_label matches the expression bin's lower edge and
    whose bin_median equals depth_bin, ordered by parent_id."""
    return distribution.filter(
        (pl.col("min_bin_label") == expression_bin.min_label)
        & (pl.col("bin_median") == depth_bin)
    ).sort(["parent_id", "UMEND"], nulls_last=True)


def summarize_accuracy(
    values: pl.Series,
    max_samples: int = MAX_SAMPLE_VALUES,
) -> AccuracyStatistics:
    """Mean, min, max and the first max_samples individual values.

    Sample values past the end of `values` stay NULL.
    """
    values = values.drop_nulls()
    if values.is_empty():
        return AccuracyStatistics()

    samples = {
        f"sample_{i + 1}_accuracy": value
        for i, value in enumerate(values.head(max_samples).to_list())
    }
    return AccuracyStatistics(
        mean_accuracy=values.mean(),
        min_accuracy=values.min(),
        max_accuracy=values.max(),
        n_bin_rows=values.len(),
        **samples,
    )


def extract_accuracy_statistics(
    distribution: Optional[pl.DataFrame],
    expression_bin: Optional[ExpressionBin],
    depth_bin: Optional[int],
) -> AccuracyStatistics:
    """Select the matching Bin Statistics and summarise them.

    Any missing input (no distribution because the threshold is missing, an
    unbinnable expression or depth) or an empty selection gives all-NULL
    statistics.
    """
    if distribution is None or expression_bin is None or depth_bin is None:
        return AccuracyStatistics()

    selected = select_bin_statistics(distribution, expression_bin, depth_bin)
    if selected.is_empty():
        logger.info(
            "bin_statistics_empty",
            expression_bin=expression_bin.label,
            depth_bin=depth_bin,
        )
        return AccuracyStatistics()

    return summarize_accuracy(selected["pct_accurately_measured"])
