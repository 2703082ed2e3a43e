"""Pydantic models for pipeline configuration."""

import hashlib
import json
from pathlib import Path

from pydantic import BaseModel, Field, field_validator


def _stable_hash(data: dict) -> str:
    payload = json.dumps(data, sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(payload.encode()).hexdigest()


class ReferenceVersions(BaseModel):
    """Version information for the reference resequencing dataset."""

    compendium_version: str = Field(
        default="polyA_v11",
        description="Expression compendium the subsampled replicates were quantified against",
    )
    subsample_set: str = Field(
        default="evenly_selected_v1",
        description="Identifier of the curated evenly-selected subsample list",
    )


class ReferenceInputs(BaseModel):
    """Raw inputs and output location for the reference abundance table."""

    expression_matrix: Path = Field(
        ...,
        description="Wide gene x replicate log2(TPM+1) matrix (TSV, optionally gzipped)",
    )
    read_counts: Path = Field(
        ...,
        description="Per-replicate read-count metrics including UMEND",
    )
    read_count_columns: list[str] | None = Field(
        default=None,
        description="Column names for a headerless read-count file (must include sample_id and UMEND)",
    )
    evenly_selected_subsamples: Path = Field(
        ...,
        description="Replicate sample_id -> bin_median table",
    )
    abundance_table: Path = Field(
        default=Path("data/reference/per_gene_expression.tsv.gz"),
        description="Where the long-format abundance table is persisted",
    )

    @field_validator("read_count_columns")
    @classmethod
    def require_key_columns(cls, v: list[str] | None) -> list[str] | None:
        """Headerless read-count files must still name sample_id and UMEND."""
        if v is None:
            return v
        missing = {"sample_id", "UMEND"} - set(v)
        if missing:
            raise ValueError(
                f"read_count_columns must include {sorted(missing)}, got {v}"
            )
        return v


class EvaluationConfig(BaseModel):
    """Per-sample accuracy evaluation settings."""

    results_dir: Path = Field(
        default=Path("results"),
        description="Root directory for per-sample summary tables",
    )
    druggable_genes: Path = Field(
        ...,
        description="Curated druggable/actionable gene list (one symbol per line, with header)",
    )
    cohort_names: Path = Field(
        ...,
        description="Cohort machine name -> display name mapping (TSV)",
    )
    outlier_results_file: str = Field(
        default="outlier_results.tsv",
        description="Outlier-detection results file name inside the input directory",
    )
    thresholds_file: str = Field(
        default="thresholds.json",
        description="Per-cohort threshold JSON file name inside the input directory",
    )
    read_counts_file: str = Field(
        default="read_counts.json",
        description="Read-count summary JSON file name inside the input directory",
    )
    outlier_flag_columns: list[str] = Field(
        default=["pc_outlier", "pd_outlier"],
        min_length=1,
        description="Flag columns of the independent outlier-calling methods",
    )


class PipelineConfig(BaseModel):
    """Main pipeline configuration."""

    data_dir: Path = Field(
        ...,
        description="Directory for intermediate pipeline data",
    )
    duckdb_path: Path = Field(
        ...,
        description="Path to DuckDB database file",
    )
    versions: ReferenceVersions = Field(
        default_factory=ReferenceVersions,
        description="Reference dataset version information",
    )
    reference: ReferenceInputs = Field(
        ...,
        description="Reference-table builder inputs",
    )
    evaluation: EvaluationConfig = Field(
        ...,
        description="Accuracy evaluation settings",
    )

    @field_validator("data_dir")
    @classmethod
    def create_directory(cls, v: Path) -> Path:
        """Create directory if it doesn't exist."""
        v.mkdir(parents=True, exist_ok=True)
        return v

    def config_hash(self) -> str:
        """SHA-256 of the whole configuration (paths included)."""
        return _stable_hash(self.model_dump(mode="json"))

    def reference_hash(self) -> str:
        """SHA-256 of only the settings that determine the abundance table.

        Changing evaluation settings or output locations leaves it unchanged,
        so an existing reference checkpoint stays valid.
        """
        return _stable_hash({
            "versions": self.versions.model_dump(mode="json"),
            "reference": self.reference.model_dump(
                mode="json", exclude={"abundance_table"}
            ),
        })
