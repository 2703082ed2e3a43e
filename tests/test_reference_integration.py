"""Integration tests for the reference build: files -> table -> DuckDB/TSV."""

import gzip
from pathlib import Path

import polars as pl
import pytest

from outlier_accuracy.config.loader import load_config
from outlier_accuracy.persistence import PipelineStore, ProvenanceTracker
from outlier_accuracy.reference import (
    ABUNDANCE_COLUMNS,
    ABUNDANCE_TABLE_NAME,
    load_abundance_table,
    load_to_duckdb,
    process_reference_table,
    read_abundance_table,
    read_evenly_selected_subsamples,
    read_expression_matrix,
    read_read_counts,
    write_abundance_table,
)


@pytest.fixture
def reference_files(tmp_path: Path) -> dict[str, Path]:
    """Raw reference inputs: gzipped matrix, headerless read counts, subsample list."""
    matrix_path = tmp_path / "expression.tsv.gz"
    with gzip.open(matrix_path, "wt") as f:
        f.write(
            "gene_id\tP1_est4M_a\tP1_est44M_a\tP2_est8M_a\tP2_est36M_a\tmalformed\n"
            "ADCY3\t7.9\t8.0\t7.0\t7.2\t1.0\n"
            "ERBB2\t0.5\t0.0\t1.1\t1.0\t1.0\n"
            "KRAS\t3.5\t4.0\tNA\t4.4\t1.0\n"
        )

    read_counts_path = tmp_path / "read_counts.tsv"
    read_counts_path.write_text(
        "P1_est4M_a\t5000000\t4100000\n"
        "P1_est44M_a\t50000000\t44000000\n"
        "P2_est8M_a\t9000000\t7900000\n"
        "P2_est36M_a\t40000000\t35800000\n"
    )

    subsamples_path = tmp_path / "subsamples.tsv"
    subsamples_path.write_text(
        "sample_id\tbin_median\n"
        "P1_est4M_a\t4\n"
        "P1_est44M_a\t44\n"
        "P2_est8M_a\t8\n"
        "P2_est36M_a\t36\n"
    )

    return {
        "expression": matrix_path,
        "read_counts": read_counts_path,
        "subsamples": subsamples_path,
    }


@pytest.fixture
def test_config(tmp_path, reference_files):
    config_path = tmp_path / "config.yaml"
    config_path.write_text(f"""
data_dir: {tmp_path}/data
duckdb_path: {tmp_path}/test.duckdb
reference:
  expression_matrix: {reference_files['expression']}
  read_counts: {reference_files['read_counts']}
  read_count_columns: [sample_id, metric_total, UMEND]
  evenly_selected_subsamples: {reference_files['subsamples']}
  abundance_table: {tmp_path}/data/reference/per_gene_expression.tsv.gz
evaluation:
  druggable_genes: {tmp_path}/druggable.txt
  cohort_names: {tmp_path}/cohorts.tsv
""")
    return load_config(config_path)


def test_read_expression_matrix_gzip(reference_files):
    """First column becomes gene; NA becomes NULL; replicates are floats."""
    df = read_expression_matrix(reference_files["expression"])

    assert df.columns[0] == "gene"
    assert df.width == 6
    assert df.schema["P1_est4M_a"] == pl.Float64
    kras = df.filter(pl.col("gene") == "KRAS")
    assert kras["P2_est8M_a"][0] is None


def test_read_expression_matrix_non_numeric(tmp_path):
    path = tmp_path / "bad.tsv"
    path.write_text("gene\tP1_est4M_a\nADCY3\tnot_a_number\n")

    with pytest.raises(ValueError):
        read_expression_matrix(path)


def test_read_expression_matrix_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        read_expression_matrix(tmp_path / "missing.tsv")


def test_read_read_counts_headerless(reference_files):
    df = read_read_counts(
        reference_files["read_counts"],
        column_names=["sample_id", "metric_total", "UMEND"],
    )

    assert df.columns == ["sample_id", "UMEND"]
    assert df.filter(pl.col("sample_id") == "P1_est44M_a")["UMEND"][0] == 44_000_000.0


def test_read_read_counts_requires_umend(tmp_path):
    path = tmp_path / "counts.tsv"
    path.write_text("sample_id\ttotal\nP1_est4M_a\t10\n")

    with pytest.raises(ValueError, match="UMEND"):
        read_read_counts(path)


def test_read_evenly_selected_subsamples(reference_files):
    df = read_evenly_selected_subsamples(reference_files["subsamples"])

    assert df.schema["bin_median"] == pl.Int64
    assert sorted(df["bin_median"].to_list()) == [4, 8, 36, 44]


def test_process_reference_table(reference_files):
    df, qc = process_reference_table(
        expression_path=reference_files["expression"],
        read_counts_path=reference_files["read_counts"],
        subsamples_path=reference_files["subsamples"],
        read_count_columns=["sample_id", "metric_total", "UMEND"],
    )

    assert df.columns == ABUNDANCE_COLUMNS
    assert df.height == 3 * 4
    assert qc["malformed_sample_id_count"] == 1
    assert qc["parent_count"] == 2

    adcy3_p1 = df.filter((pl.col("gene") == "ADCY3") & (pl.col("parent_id") == "P1"))
    assert adcy3_p1["expression_at_max_depth"].unique().to_list() == [8.0]

    # ERBB2 in P1 has zero expression at max depth
    erbb2_p1 = df.filter((pl.col("gene") == "ERBB2") & (pl.col("parent_id") == "P1"))
    assert not erbb2_p1["has_nonzero_ground_truth"].any()


def test_load_to_duckdb_and_reload(reference_files, test_config):
    """Checkpoint round trip preserves the table and records provenance."""
    df, _ = process_reference_table(
        expression_path=reference_files["expression"],
        read_counts_path=reference_files["read_counts"],
        subsamples_path=reference_files["subsamples"],
        read_count_columns=test_config.reference.read_count_columns,
    )

    provenance = ProvenanceTracker.from_config(test_config)
    with PipelineStore.from_config(test_config) as store:
        load_to_duckdb(df, store, provenance, description="test build")

        assert store.has_checkpoint(ABUNDANCE_TABLE_NAME)
        loaded = load_abundance_table(store=store)

    assert loaded.height == df.height
    assert loaded.columns == ABUNDANCE_COLUMNS

    steps = provenance.processing_steps
    assert steps[-1]["step_name"] == "load_abundance_table"
    assert steps[-1]["details"]["row_count"] == df.height
    assert steps[-1]["details"]["ground_truth_max"] == 8.0


def test_stale_checkpoint_still_loads(reference_files, test_config):
    """A checkpoint tagged with another reference hash is used, not discarded."""
    df, _ = process_reference_table(
        expression_path=reference_files["expression"],
        read_counts_path=reference_files["read_counts"],
        subsamples_path=reference_files["subsamples"],
        read_count_columns=test_config.reference.read_count_columns,
    )

    provenance = ProvenanceTracker.from_config(test_config)
    with PipelineStore.from_config(test_config) as store:
        load_to_duckdb(df, store, provenance)

        assert store.has_checkpoint(ABUNDANCE_TABLE_NAME, source_hash=test_config.reference_hash())
        loaded = load_abundance_table(store=store, source_hash="0" * 64)

    assert loaded.height == df.height


def test_abundance_tsv_roundtrip(reference_files, tmp_path):
    """Gzipped TSV keeps column types, including NULL expression."""
    df, _ = process_reference_table(
        expression_path=reference_files["expression"],
        read_counts_path=reference_files["read_counts"],
        subsamples_path=reference_files["subsamples"],
        read_count_columns=["sample_id", "metric_total", "UMEND"],
    )

    path = write_abundance_table(df, tmp_path / "out" / "per_gene_expression.tsv.gz")
    loaded = read_abundance_table(path)

    assert loaded.schema == df.schema
    assert loaded.sort(["parent_id", "gene", "sample_id"]).equals(df)


def test_load_abundance_table_falls_back_to_tsv(reference_files, tmp_path):
    df, _ = process_reference_table(
        expression_path=reference_files["expression"],
        read_counts_path=reference_files["read_counts"],
        subsamples_path=reference_files["subsamples"],
        read_count_columns=["sample_id", "metric_total", "UMEND"],
    )
    path = write_abundance_table(df, tmp_path / "abundance.tsv.gz")

    with PipelineStore(tmp_path / "empty.duckdb") as store:
        loaded = load_abundance_table(store=store, path=path)

    assert loaded.height == df.height


def test_load_abundance_table_missing(tmp_path):
    with pytest.raises(FileNotFoundError, match="build-reference"):
        load_abundance_table(path=tmp_path / "missing.tsv.gz")
