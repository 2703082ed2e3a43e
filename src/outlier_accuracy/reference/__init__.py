"""Reference abundance table built from multi-depth resequencing data.

Each parent sample was subsampled to a range of target depths
(<parent_id>_est<N>M_<suffix>). For every gene, the deepest replicate of a
parent is taken as ground truth, and every shallower replicate of the same
gene is later judged against it.

The table is built once, persisted, and shared read-only by every
per-sample accuracy evaluation.
"""

from outlier_accuracy.reference.fetch import (
    read_tsv,
    read_expression_matrix,
    read_read_counts,
    read_evenly_selected_subsamples,
)
from outlier_accuracy.reference.transform import (
    reshape_expression,
    parse_sample_ids,
    find_malformed_sample_ids,
    drop_malformed_sample_ids,
    annotate_subsample_depths,
    annotate_ground_truth,
    build_abundance_table,
    summarize_reference_qc,
    process_reference_table,
)
from outlier_accuracy.reference.load import (
    load_to_duckdb,
    write_abundance_table,
    read_abundance_table,
    load_abundance_table,
)
from outlier_accuracy.reference.models import (
    AbundanceRecord,
    ABUNDANCE_COLUMNS,
    ABUNDANCE_SCHEMA,
    ABUNDANCE_TABLE_NAME,
)

__all__ = [
    "read_tsv",
    "read_expression_matrix",
    "read_read_counts",
    "read_evenly_selected_subsamples",
    "reshape_expression",
    "parse_sample_ids",
    "find_malformed_sample_ids",
    "drop_malformed_sample_ids",
    "annotate_subsample_depths",
    "annotate_ground_truth",
    "build_abundance_table",
    "summarize_reference_qc",
    "process_reference_table",
    "load_to_duckdb",
    "write_abundance_table",
    "read_abundance_table",
    "load_abundance_table",
    "AbundanceRecord",
    "ABUNDANCE_COLUMNS",
    "ABUNDANCE_SCHEMA",
    "ABUNDANCE_TABLE_NAME",
]
