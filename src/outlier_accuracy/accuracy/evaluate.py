"""Run the accuracy evaluation of one sample and write its summaries."""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import polars as pl
import structlog

from outlier_accuracy.accuracy.bins import mend_depth_millions, resolve_depth_bin
from outlier_accuracy.accuracy.inputs import SampleInputs
from outlier_accuracy.accuracy.summary import assemble_gene_summary, select_candidate_genes
from outlier_accuracy.output.writers import write_gene_summary

logger = structlog.get_logger()


@dataclass
class EvaluationResult:
    """Outcome of one sample evaluation."""

    sample_id: str
    depth_bin: Optional[int]
    candidate_genes: list[str] = field(default_factory=list)
    summaries: dict[str, pl.DataFrame] = field(default_factory=dict)
    written: dict[str, Path] = field(default_factory=dict)
    failures: dict[str, str] = field(default_factory=dict)


def run_sample_evaluation(
    inputs: SampleInputs,
    abundance: pl.DataFrame,
    results_dir: Path,
    flag_columns: list[str],
) -> EvaluationResult:
    """Evaluate every candidate gene of one sample and write its summary.

    Each gene is computed and written on its own: an error is logged and
    recorded in EvaluationResult.failures, and the remaining genes are
    still processed.

    Args:
        inputs: Sample inputs from load_sample_inputs
        abundance: Reference abundance table (read-only)
        results_dir: Root results directory
        flag_columns: Outlier flag columns used for candidate selection

    Returns:
        EvaluationResult with per-gene summaries, written paths and failures
    """
    depth_bin = resolve_depth_bin(mend_depth_millions(inputs.umend))
    if depth_bin is None:
        logger.warning("sample_depth_bin_undefined", sample_id=inputs.sample_id, umend=inputs.umend)

    result = EvaluationResult(sample_id=inputs.sample_id, depth_bin=depth_bin)
    result.candidate_genes = select_candidate_genes(
        inputs.outliers, inputs.druggable_genes, flag_columns
    )

    expressions = dict(
        zip(inputs.outliers["gene"].to_list(), inputs.outliers["expression"].to_list())
    )

    logger.info(
        "sample_evaluation_start",
        sample_id=inputs.sample_id,
        depth_bin=depth_bin,
        candidate_count=len(result.candidate_genes),
    )

    for gene in result.candidate_genes:
        try:
            summary = assemble_gene_summary(
                sample_id=inputs.sample_id,
                gene=gene,
                expression=expressions.get(gene),
                depth_bin=depth_bin,
                thresholds=inputs.thresholds,
                cohort_names=inputs.cohorts,
                abundance=abundance,
            )
            result.written[gene] = write_gene_summary(summary, results_dir)
            result.summaries[gene] = summary
        except Exception as e:
            logger.error(
                "gene_summary_failed",
                sample_id=inputs.sample_id,
                gene=gene,
                error=str(e),
            )
            result.failures[gene] = str(e)

    logger.info(
        "sample_evaluation_complete",
        sample_id=inputs.sample_id,
        written=len(result.written),
        failed=len(result.failures),
    )
    return result
