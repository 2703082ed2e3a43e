"""Persistence layer for reference checkpoints and provenance tracking."""

from outlier_accuracy.persistence.duckdb_store import PipelineStore
from outlier_accuracy.persistence.provenance import ProvenanceTracker

__all__ = ["PipelineStore", "ProvenanceTracker"]
