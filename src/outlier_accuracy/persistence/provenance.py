"""Provenance records that tie every output back to its reference build."""

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

PROVENANCE_TABLE = "_provenance"
SIDECAR_SUFFIX = ".provenance.json"


class ProvenanceTracker:
    """
    Collects what a run did and which settings it ran with.

    A tracker is created per command. Steps are appended as the command
    progresses and the whole record is written next to the command's main
    output (JSON sidecar) and, for reference builds, into the store.
    """

    def __init__(self, pipeline_version: str, config: "PipelineConfig"):
        self.pipeline_version = pipeline_version
        self.config_hash = config.config_hash()
        self.reference_hash = config.reference_hash()
        self.reference_versions = config.versions.model_dump()
        self.created_at = datetime.now(timezone.utc)
        self.processing_steps: list[dict] = []

    def record_step(self, step_name: str, details: Optional[dict] = None) -> None:
        """Append a timestamped step; details are stored only when given."""
        step = {"step_name": step_name, "timestamp": datetime.now(timezone.utc).isoformat()}
        if details:
            step["details"] = details
        self.processing_steps.append(step)

    def create_metadata(self) -> dict:
        return {
            "pipeline_version": self.pipeline_version,
            "reference_versions": self.reference_versions,
            "config_hash": self.config_hash,
            "reference_hash": self.reference_hash,
            "created_at": self.created_at.isoformat(),
            "processing_steps": self.processing_steps,
        }

    @staticmethod
    def sidecar_path(output_path: Path) -> Path:
        """
        Sidecar location for output_path.

        The last suffix of output_path is replaced, so
        per_gene_expression.tsv.gz gets per_gene_expression.tsv.provenance.json.
        """
        return Path(output_path).with_suffix(SIDECAR_SUFFIX)

    def save_sidecar(self, output_path: Path) -> Path:
        """Write the record beside output_path and return the sidecar path."""
        sidecar_path = self.sidecar_path(output_path)
        sidecar_path.parent.mkdir(parents=True, exist_ok=True)
        sidecar_path.write_text(json.dumps(self.create_metadata(), indent=2, default=str))
        return sidecar_path

    def save_to_store(self, store: "PipelineStore") -> None:
        """Append the record to the store's provenance table."""
        store.conn.execute(f"""
            CREATE TABLE IF NOT EXISTS {PROVENANCE_TABLE} (
                version VARCHAR,
                config_hash VARCHAR,
                reference_hash VARCHAR,
                created_at TIMESTAMP,
                steps_json VARCHAR
            )
        """)
        store.conn.execute(
            f"INSERT INTO {PROVENANCE_TABLE} VALUES (?, ?, ?, ?, ?)",
            [
                self.pipeline_version,
                self.config_hash,
                self.reference_hash,
                self.created_at,
                json.dumps(self.processing_steps, default=str),
            ],
        )

    @staticmethod
    def load_sidecar(sidecar_path: Path) -> dict:
        """Read a sidecar written by save_sidecar."""
        return json.loads(Path(sidecar_path).read_text())

    @classmethod
    def from_config(
        cls,
        config: "PipelineConfig",
        version: Optional[str] = None,
    ) -> "ProvenanceTracker":
        """Tracker for config, versioned with the installed package unless given."""
        if version is None:
            from outlier_accuracy import __version__
            version = __version__
        return cls(version, config)
