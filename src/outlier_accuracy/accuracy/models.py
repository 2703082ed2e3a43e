"""Data models and binning constants for accuracy evaluation."""

from dataclasses import dataclass

import polars as pl
from pydantic import BaseModel

# Half-open [lower, upper) bins for a gene's measured expression (log2(TPM+1))
EXPRESSION_BIN_EDGES = [0, 1, 3, 5, 7, 10, 15]

# Fixed breakpoints for expression_at_max_depth; the ceiling of the largest
# observed ground truth is appended at build time
DISTRIBUTION_BREAKPOINTS = [0, 1, 3, 5, 7, 10, 20, 30, 50]

# Depth bins are multiples of 4 million reads, 0 through 44
DEPTH_BIN_STEP = 4
MAX_DEPTH_BIN = 44
DEPTH_CEILING_CUTOFF = 42
DEPTH_FLOOR_CUTOFF = 2

MAX_SAMPLE_VALUES = 5

# Relative slack below the tolerance margin; differences within float rounding
# of the boundary count as on the boundary
TOLERANCE_EPSILON = 1e-9

# Outlier flags ending in this suffix ("pc_up", "pd_up", "up") mark overexpression
UP_FLAG_SUFFIX = "up"

BIN_STATISTIC_SCHEMA = {
    "min_bin": pl.Int64,
    "max_bin": pl.Int64,
    "min_bin_label": pl.Utf8,
    "bin_label": pl.Utf8,
    "bin_median": pl.Int64,
    "UMEND": pl.Float64,
    "parent_id": pl.Utf8,
    "pct_accurately_measured": pl.Float64,
    "n_genes_in_bin": pl.UInt32,
    "n_measurements": pl.UInt32,
}

SUMMARY_SCHEMA = {
    "sample_id": pl.Utf8,
    "gene": pl.Utf8,
    "cohort": pl.Utf8,
    "expression": pl.Float64,
    "threshold": pl.Float64,
    "exceeds_threshold": pl.Boolean,
    "percent_difference": pl.Float64,
    "mean_accuracy": pl.Float64,
    "min_accuracy": pl.Float64,
    "max_accuracy": pl.Float64,
    **{f"sample_{i}_accuracy": pl.Float64 for i in range(1, MAX_SAMPLE_VALUES + 1)},
}

SUMMARY_DISPLAY_NAMES = {
    "sample_id": "Sample",
    "gene": "Gene",
    "cohort": "Cohort",
    "expression": "Expression",
    "threshold": "Threshold",
    "exceeds_threshold": "Exceeds Threshold",
    "percent_difference": "Percent Difference",
    "mean_accuracy": "Mean Accuracy",
    "min_accuracy": "Minimum Accuracy",
    "max_accuracy": "Maximum Accuracy",
    **{f"sample_{i}_accuracy": f"Sample {i} Accuracy" for i in range(1, MAX_SAMPLE_VALUES + 1)},
}


@dataclass(frozen=True)
class ExpressionBin:
    """A half-open [lower, upper) expression bin."""

    lower: int
    upper: int

    @property
    def label(self) -> str:
        return f"{self.lower}-{self.upper}"

    @property
    def min_label(self) -> str:
        """Lower bound as matched against a distribution's min_bin_label."""
        return str(self.lower)

    def contains(self, value: float) -> bool:
        return self.lower <= value < self.upper


class AccuracyStatistics(BaseModel):
    """Summary of pct_accurately_measured over the selected reference bins.

    Attributes:
        mean_accuracy: Mean across the selected parent samples
        min_accuracy: Lowest value
        max_accuracy: Highest value
        sample_N_accuracy: Individual values ordered by parent_id
            (NULL when fewer than N parents matched)
        n_bin_rows: Number of Bin Statistic rows that matched

    All fields are NULL when no reference rows match (empty bin) or when the
    row has no threshold to derive a tolerance from.
    """

    mean_accuracy: float | None = None
    min_accuracy: float | None = None
    max_accuracy: float | None = None
    sample_1_accuracy: float | None = None
    sample_2_accuracy: float | None = None
    sample_3_accuracy: float | None = None
    sample_4_accuracy: float | None = None
    sample_5_accuracy: float | None = None
    n_bin_rows: int = 0

    def summary_fields(self) -> dict:
        """Fields that become columns of the summary table."""
        return self.model_dump(exclude={"n_bin_rows"})


class OutlierSummaryRow(BaseModel):
    """One (gene, cohort) row of a sample's outlier accuracy summary.

    NULL threshold means the gene is absent from that cohort's threshold
    table; exceeds_threshold, percent_difference and all accuracy fields are
    then NULL as well.
    """

    sample_id: str
    gene: str
    cohort: str
    expression: float | None = None
    threshold: float | None = None
    exceeds_threshold: bool | None = None
    percent_difference: float | None = None
    mean_accuracy: float | None = None
    min_accuracy: float | None = None
    max_accuracy: float | None = None
    sample_1_accuracy: float | None = None
    sample_2_accuracy: float | None = None
    sample_3_accuracy: float | None = None
    sample_4_accuracy: float | None = None
    sample_5_accuracy: float | None = None
