"""Data models for the reference abundance table."""

import polars as pl
from pydantic import BaseModel

# Subsampled replicate ids look like <parent_id>_est<N>M_<suffix>,
# where N is the target depth in millions of UMEND reads
SAMPLE_ID_PATTERN = r"^(.+?)_est(\d+)M_.+$"

READS_PER_MILLION = 1_000_000

# Table name in DuckDB
ABUNDANCE_TABLE_NAME = "abundance_table"

ABUNDANCE_SCHEMA = {
    "gene": pl.Utf8,
    "sample_id": pl.Utf8,
    "parent_id": pl.Utf8,
    "target_UMEND_count": pl.Int64,
    "bin_median": pl.Int64,
    "UMEND": pl.Float64,
    "expression": pl.Float64,
    "expression_at_max_depth": pl.Float64,
    "has_nonzero_ground_truth": pl.Boolean,
    "max_expression_of_gene": pl.Float64,
}

ABUNDANCE_COLUMNS = list(ABUNDANCE_SCHEMA)


class AbundanceRecord(BaseModel):
    """One gene measured in one subsampled replicate.

    Attributes:
        gene: Gene symbol
        sample_id: Replicate id (<parent_id>_est<N>M_<suffix>)
        parent_id: Original, undiluted sample the replicate was drawn from
        target_UMEND_count: Target subsampling depth in reads (N * 1e6)
        bin_median: Curated depth bucket (multiple of 4, in millions)
        UMEND: Measured quality-filtered read count of the replicate
        expression: log2(TPM+1) expression in this replicate
        expression_at_max_depth: Expression of the same gene in the deepest
            replicate of the same parent (ground truth)
        has_nonzero_ground_truth: expression_at_max_depth > 0
        max_expression_of_gene: Highest expression of the gene within the
            parent group (audit only)

    NULL UMEND means the replicate was missing from the read-count table.
    """

    gene: str
    sample_id: str
    parent_id: str
    target_UMEND_count: int
    bin_median: int
    UMEND: float | None = None
    expression: float | None = None
    expression_at_max_depth: float | None = None
    has_nonzero_ground_truth: bool = False
    max_expression_of_gene: float | None = None
