"""Accuracy of outlier calls as a function of depth and expression.

A gene's outlier call in a sample compares its expression to a cohort
threshold. The margin between the two, as a percentage of the expression,
is used as an accuracy tolerance: how often does a measurement at this
sample's depth, for a gene at this expression level, land within that
margin of the value seen at full depth?

The per-sample runner lives in outlier_accuracy.accuracy.evaluate, which
also writes output files and so is not imported here.
"""

from outlier_accuracy.accuracy.bins import (
    EXPRESSION_BINS,
    mend_depth_millions,
    resolve_depth_bin,
    resolve_expression_bin,
)
from outlier_accuracy.accuracy.distribution import (
    assign_expression_bins,
    build_tolerance_distribution,
    distribution_breakpoints,
    flag_within_tolerance,
)
from outlier_accuracy.accuracy.inputs import (
    SampleInputs,
    SampleReadCounts,
    load_sample_inputs,
    read_cohort_names,
    read_druggable_genes,
    read_outlier_results,
    read_sample_read_counts,
    read_thresholds,
)
from outlier_accuracy.accuracy.models import (
    AccuracyStatistics,
    ExpressionBin,
    OutlierSummaryRow,
    BIN_STATISTIC_SCHEMA,
    SUMMARY_SCHEMA,
    SUMMARY_DISPLAY_NAMES,
)
from outlier_accuracy.accuracy.statistics import (
    extract_accuracy_statistics,
    select_bin_statistics,
    summarize_accuracy,
)
from outlier_accuracy.accuracy.summary import (
    apply_cohort_display_names,
    assemble_gene_summary,
    compare_to_thresholds,
    select_candidate_genes,
)
from outlier_accuracy.accuracy.thresholds import (
    CohortThresholds,
    ThresholdTable,
    coerce_threshold,
)

__all__ = [
    "EXPRESSION_BINS",
    "mend_depth_millions",
    "resolve_depth_bin",
    "resolve_expression_bin",
    "assign_expression_bins",
    "build_tolerance_distribution",
    "distribution_breakpoints",
    "flag_within_tolerance",
    "SampleInputs",
    "SampleReadCounts",
    "load_sample_inputs",
    "read_cohort_names",
    "read_druggable_genes",
    "read_outlier_results",
    "read_sample_read_counts",
    "read_thresholds",
    "AccuracyStatistics",
    "ExpressionBin",
    "OutlierSummaryRow",
    "BIN_STATISTIC_SCHEMA",
    "SUMMARY_SCHEMA",
    "SUMMARY_DISPLAY_NAMES",
    "extract_accuracy_statistics",
    "select_bin_statistics",
    "summarize_accuracy",
    "apply_cohort_display_names",
    "assemble_gene_summary",
    "compare_to_thresholds",
    "select_candidate_genes",
    "CohortThresholds",
    "ThresholdTable",
    "coerce_threshold",
]
