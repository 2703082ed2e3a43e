"""Output generation: per-gene summary files, run manifests and plots."""

from outlier_accuracy.output.visualizations import (
    depth_coverage_counts,
    generate_sample_plots,
    plot_cohort_accuracy,
    plot_reference_depth_coverage,
)
from outlier_accuracy.output.writers import (
    DISPLAY_DECIMALS,
    format_summary_for_display,
    read_gene_summary,
    summary_output_path,
    write_gene_summary,
    write_run_manifest,
)

__all__ = [
    "DISPLAY_DECIMALS",
    "format_summary_for_display",
    "read_gene_summary",
    "summary_output_path",
    "write_gene_summary",
    "write_run_manifest",
    "depth_coverage_counts",
    "generate_sample_plots",
    "plot_cohort_accuracy",
    "plot_reference_depth_coverage",
]
