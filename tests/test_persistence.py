"""Tests for persistence layer (DuckDB store and provenance tracking)."""

import json

import polars as pl
import pytest

from outlier_accuracy.config.loader import load_config
from outlier_accuracy.persistence import PipelineStore, ProvenanceTracker


@pytest.fixture
def test_config(tmp_path):
    """Create a minimal test config."""
    config_path = tmp_path / "test_config.yaml"
    config_path.write_text("""
data_dir: {data_dir}
duckdb_path: {duckdb_path}
versions:
  compendium_version: polyA_v11
  subsample_set: evenly_selected_v1
reference:
  expression_matrix: {data_dir}/expression.tsv
  read_counts: {data_dir}/read_counts.tsv
  evenly_selected_subsamples: {data_dir}/subsamples.tsv
evaluation:
  druggable_genes: {data_dir}/druggable.txt
  cohort_names: {data_dir}/cohorts.tsv
""".format(
        data_dir=str(tmp_path / "data"),
        duckdb_path=str(tmp_path / "test.duckdb"),
    ))
    return load_config(config_path)


# ============================================================================
# DuckDB Store Tests
# ============================================================================

def test_store_creates_database(tmp_path):
    """Test that PipelineStore creates .duckdb file at specified path."""
    db_path = tmp_path / "nested" / "test.duckdb"
    assert not db_path.exists()

    store = PipelineStore(db_path)
    store.close()

    assert db_path.exists()


def test_save_and_load_polars(tmp_path):
    """Test saving and loading polars DataFrame."""
    store = PipelineStore(tmp_path / "test.duckdb")

    df = pl.DataFrame({
        "gene": ["ADCY3", "TP53", "ERBB2"],
        "expression": [8.0, 4.5, 12.25],
        "has_nonzero_ground_truth": [True, False, True],
    })

    store.save_dataframe(df, "genes", "test genes")
    loaded = store.load_dataframe("genes")

    assert loaded.shape == df.shape
    assert loaded.columns == df.columns
    assert loaded["gene"].to_list() == df["gene"].to_list()
    assert loaded["expression"].to_list() == df["expression"].to_list()
    assert loaded["has_nonzero_ground_truth"].to_list() == [True, False, True]

    store.close()


def test_save_rejects_non_polars(tmp_path):
    """Only polars DataFrames are accepted."""
    store = PipelineStore(tmp_path / "test.duckdb")

    with pytest.raises(ValueError):
        store.save_dataframe({"gene": ["ADCY3"]}, "genes")

    store.close()


def test_save_replaces_existing_table(tmp_path):
    """Saving under an existing name replaces rows and checkpoint metadata."""
    store = PipelineStore(tmp_path / "test.duckdb")

    store.save_dataframe(pl.DataFrame({"val": [1, 2, 3]}), "vals", "first", source_hash="old")
    store.save_dataframe(pl.DataFrame({"val": [4]}), "vals", "second", source_hash="new")

    assert store.load_dataframe("vals")["val"].to_list() == [4]
    info = store.checkpoint_info("vals")
    assert info["row_count"] == 1
    assert info["description"] == "second"
    assert info["source_hash"] == "new"

    store.close()


def test_checkpoint_lifecycle(tmp_path):
    """Test checkpoint lifecycle: save -> has -> delete -> not has."""
    store = PipelineStore(tmp_path / "test.duckdb")

    df = pl.DataFrame({"col": [1, 2, 3]})

    assert not store.has_checkpoint("test_table")

    store.save_dataframe(df, "test_table", "test")
    assert store.has_checkpoint("test_table")

    store.delete_checkpoint("test_table")
    assert not store.has_checkpoint("test_table")

    assert store.load_dataframe("test_table") is None

    store.close()


def test_list_checkpoints(tmp_path):
    """Test listing checkpoints returns metadata."""
    store = PipelineStore(tmp_path / "test.duckdb")

    for i in range(3):
        df = pl.DataFrame({"val": list(range(i + 1))})
        store.save_dataframe(df, f"table_{i}", f"description {i}")

    checkpoints = store.list_checkpoints()

    assert len(checkpoints) == 3
    for ckpt in checkpoints:
        assert set(ckpt) == {
            "table_name", "created_at", "row_count", "description", "source_hash"
        }

    table_0 = [c for c in checkpoints if c["table_name"] == "table_0"][0]
    assert table_0["row_count"] == 1
    assert table_0["description"] == "description 0"

    store.close()


def test_load_nonexistent_returns_none(tmp_path):
    """Test that loading non-existent table returns None."""
    store = PipelineStore(tmp_path / "test.duckdb")

    assert store.load_dataframe("nonexistent_table") is None

    store.close()


def test_context_manager(tmp_path):
    """Test context manager support."""
    db_path = tmp_path / "test.duckdb"

    df = pl.DataFrame({"col": [1, 2, 3]})

    with PipelineStore(db_path) as store:
        store.save_dataframe(df, "test_table", "test")
        assert store.has_checkpoint("test_table")

    assert store.conn is None

    # Data persists across connections
    with PipelineStore(db_path) as store:
        loaded = store.load_dataframe("test_table")
        assert loaded is not None
        assert loaded.shape == df.shape


def test_from_config(test_config):
    """Store opens at the configured duckdb_path."""
    with PipelineStore.from_config(test_config) as store:
        assert store.db_path == test_config.duckdb_path

    assert test_config.duckdb_path.exists()


# ============================================================================
# Provenance Tests
# ============================================================================

def test_provenance_metadata_structure(test_config):
    """Test that provenance metadata has all required keys."""
    tracker = ProvenanceTracker("0.1.0", test_config)

    metadata = tracker.create_metadata()

    assert metadata["pipeline_version"] == "0.1.0"
    assert metadata["reference_versions"] == {
        "compendium_version": "polyA_v11",
        "subsample_set": "evenly_selected_v1",
    }
    assert isinstance(metadata["config_hash"], str)
    assert metadata["reference_hash"] == test_config.reference_hash()
    assert "created_at" in metadata
    assert metadata["processing_steps"] == []


def test_provenance_records_steps(test_config):
    """Test that processing steps are recorded with timestamps."""
    tracker = ProvenanceTracker("0.1.0", test_config)

    tracker.record_step("build_abundance_table")
    tracker.record_step("evaluate_sample", {"genes_written": 3})

    steps = tracker.processing_steps

    assert len(steps) == 2
    assert steps[0]["step_name"] == "build_abundance_table"
    assert "details" not in steps[0]
    assert "timestamp" in steps[0]
    assert steps[1]["details"]["genes_written"] == 3


def test_provenance_sidecar_roundtrip(test_config, tmp_path):
    """Test saving and loading provenance sidecar."""
    tracker = ProvenanceTracker("0.1.0", test_config)
    tracker.record_step("test_step", {"key": "value"})

    sidecar_path = tracker.save_sidecar(tmp_path / "out" / "sample_S1__manifest.yaml")

    assert sidecar_path == tmp_path / "out" / "sample_S1__manifest.provenance.json"
    assert sidecar_path.exists()

    loaded = ProvenanceTracker.load_sidecar(sidecar_path)

    assert loaded["pipeline_version"] == "0.1.0"
    assert loaded["config_hash"] == test_config.config_hash()
    assert loaded["processing_steps"][0]["step_name"] == "test_step"


def test_provenance_from_config_uses_package_version(test_config):
    """Default version comes from the installed package."""
    from outlier_accuracy import __version__

    tracker = ProvenanceTracker.from_config(test_config)

    assert tracker.pipeline_version == __version__


def test_provenance_save_to_store(test_config, tmp_path):
    """Test saving provenance to DuckDB store."""
    store = PipelineStore(tmp_path / "test.duckdb")
    tracker = ProvenanceTracker("0.1.0", test_config)
    tracker.record_step("test_step")

    tracker.save_to_store(store)

    result = store.conn.execute("SELECT * FROM _provenance").fetchall()
    assert len(result) == 1

    row = result[0]
    assert row[0] == "0.1.0"
    assert row[1] == test_config.config_hash()
    assert row[2] == test_config.reference_hash()

    steps = json.loads(row[4])
    assert steps[0]["step_name"] == "test_step"

    store.close()


def test_checkpoint_source_hash(tmp_path):
    """has_checkpoint with a hash only matches the hash it was saved with."""
    store = PipelineStore(tmp_path / "test.duckdb")
    store.save_dataframe(pl.DataFrame({"val": [1]}), "abundance", source_hash="abc123")

    assert store.has_checkpoint("abundance")
    assert store.has_checkpoint("abundance", source_hash="abc123")
    assert not store.has_checkpoint("abundance", source_hash="def456")

    info = store.checkpoint_info("abundance")
    assert info["source_hash"] == "abc123"
    assert info["row_count"] == 1
    assert store.checkpoint_info("missing") is None

    store.close()
