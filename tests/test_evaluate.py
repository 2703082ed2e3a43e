"""Tests for the per-sample evaluation runner."""

import polars as pl
import pytest

from outlier_accuracy.accuracy import evaluate as evaluate_module
from outlier_accuracy.accuracy.evaluate import run_sample_evaluation
from outlier_accuracy.accuracy.inputs import SampleInputs
from outlier_accuracy.accuracy.thresholds import ThresholdTable
from outlier_accuracy.output.writers import read_gene_summary, summary_output_path

FLAG_COLUMNS = ["pc_outlier", "pd_outlier"]


@pytest.fixture
def abundance() -> pl.DataFrame:
    """Ground truth 8.0 (bin 7-10) measured at depths 32 and 44 in two parents."""
    rows = []
    for parent, shallow_expression in [("P1", 7.5), ("P2", 5.0)]:
        for depth, expression in [(32, shallow_expression), (44, 8.0)]:
            rows.append({
                "gene": "G1",
                "sample_id": f"{parent}_est{depth}M_a",
                "parent_id": parent,
                "target_UMEND_count": depth * 1_000_000,
                "bin_median": depth,
                "UMEND": depth * 1.0e6,
                "expression": expression,
                "expression_at_max_depth": 8.0,
                "has_nonzero_ground_truth": True,
                "max_expression_of_gene": 8.0,
            })
    rows.append({
        "gene": "G2",
        "sample_id": "P3_est44M_a",
        "parent_id": "P3",
        "target_UMEND_count": 44_000_000,
        "bin_median": 44,
        "UMEND": 44.0e6,
        "expression": 20.0,
        "expression_at_max_depth": 20.0,
        "has_nonzero_ground_truth": True,
        "max_expression_of_gene": 20.0,
    })
    return pl.DataFrame(rows)


@pytest.fixture
def sample_inputs() -> SampleInputs:
    return SampleInputs(
        sample_id="S1",
        umend=30_500_000,
        outliers=pl.DataFrame({
            "gene": ["ADCY3", "KRAS", "MYC"],
            "expression": [8.0, 9.0, 9.5],
            "pc_outlier": ["pc_up", "pc_up", "pc_up"],
            "pd_outlier": ["pd_up", None, "pd_up"],
        }),
        thresholds=ThresholdTable.model_validate({
            "pan_cancer": {"high": {"ADCY3": [5.0], "KRAS": [6.0]}},
            "pan_disease": {"high": {"KRAS": [7.0]}},
        }),
        druggable_genes=frozenset({"ADCY3", "KRAS"}),
        cohorts={"pan_cancer": "Pan-Cancer", "pan_disease": "Same disease"},
    )


def test_run_sample_evaluation_writes_each_gene(tmp_path, sample_inputs, abundance):
    result = run_sample_evaluation(sample_inputs, abundance, tmp_path / "results", FLAG_COLUMNS)

    assert result.depth_bin == 32
    assert result.candidate_genes == ["ADCY3", "KRAS"]
    assert result.failures == {}
    assert set(result.written) == {"ADCY3", "KRAS"}

    for gene, path in result.written.items():
        assert path == summary_output_path(tmp_path / "results", "S1", gene)
        assert path.exists()

    adcy3 = read_gene_summary(result.written["ADCY3"])
    assert adcy3["cohort"].to_list() == ["Pan-Cancer", "Same disease"]
    # 37.5% tolerance: P1 at 7.5 is accurate, P2 at 5.0 is not
    pan_cancer = adcy3.row(0, named=True)
    assert pan_cancer["sample_1_accuracy"] == 100.0
    assert pan_cancer["sample_2_accuracy"] == 0.0
    assert pan_cancer["mean_accuracy"] == 50.0


def test_gene_failure_is_isolated(tmp_path, sample_inputs, abundance, monkeypatch):
    """One gene raising does not stop the others from being written."""
    original = evaluate_module.assemble_gene_summary

    def failing_for_kras(**kwargs):
        if kwargs["gene"] == "KRAS":
            raise RuntimeError("boom")
        return original(**kwargs)

    monkeypatch.setattr(evaluate_module, "assemble_gene_summary", failing_for_kras)

    result = run_sample_evaluation(sample_inputs, abundance, tmp_path / "results", FLAG_COLUMNS)

    assert result.failures == {"KRAS": "boom"}
    assert list(result.written) == ["ADCY3"]
    assert not summary_output_path(tmp_path / "results", "S1", "KRAS").exists()


def test_no_candidates_writes_nothing(tmp_path, sample_inputs, abundance):
    inputs = SampleInputs(
        sample_id=sample_inputs.sample_id,
        umend=sample_inputs.umend,
        outliers=sample_inputs.outliers,
        thresholds=sample_inputs.thresholds,
        druggable_genes=frozenset({"EGFR"}),
        cohorts=sample_inputs.cohorts,
    )

    result = run_sample_evaluation(inputs, abundance, tmp_path / "results", FLAG_COLUMNS)

    assert result.candidate_genes == []
    assert result.written == {}
    assert not (tmp_path / "results" / "S1").exists()
