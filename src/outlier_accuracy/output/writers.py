"""Per-gene summary TSV writer, reader, display formatting and run manifest."""

from datetime import datetime, timezone
from pathlib import Path

import polars as pl
import yaml

from outlier_accuracy.accuracy.models import SUMMARY_DISPLAY_NAMES, SUMMARY_SCHEMA
from outlier_accuracy.reference.fetch import read_tsv

DISPLAY_DECIMALS = 2


def summary_output_path(results_dir: Path, sample_id: str, gene: str) -> Path:
    """results/<sample_id>/sample_<sample_id>__gene_<gene>__summary.tsv"""
    return Path(results_dir) / sample_id / f"sample_{sample_id}__gene_{gene}__summary.tsv"


def write_gene_summary(df: pl.DataFrame, results_dir: Path) -> Path:
    """
    Write one gene's cohort rows as a TSV with display column names.

    Values are written at full precision; rounding is only applied for
    display (see format_summary_for_display).

    Args:
        df: Summary rows (SUMMARY_SCHEMA columns) for a single sample and gene
        results_dir: Root results directory

    Returns:
        Path to the written TSV

    Raises:
        ValueError: If df is empty or mixes samples or genes
    """
    if df.is_empty():
        raise ValueError("Cannot write an empty summary table")

    sample_ids = df["sample_id"].unique().to_list()
    genes = df["gene"].unique().to_list()
    if len(sample_ids) != 1 or len(genes) != 1:
        raise ValueError(
            f"Summary table must cover exactly one sample and gene, got {sample_ids} / {genes}"
        )

    output_path = summary_output_path(results_dir, sample_ids[0], genes[0])
    output_path.parent.mkdir(parents=True, exist_ok=True)

    (
        df.select(list(SUMMARY_SCHEMA))
        .rename(SUMMARY_DISPLAY_NAMES)
        .write_csv(output_path, separator="\t", include_header=True)
    )
    return output_path


def read_gene_summary(path: Path) -> pl.DataFrame:
    """Read a summary TSV back into SUMMARY_SCHEMA column names and types."""
    display_schema = {
        SUMMARY_DISPLAY_NAMES[col]: dtype for col, dtype in SUMMARY_SCHEMA.items()
    }
    df = read_tsv(path, schema_overrides=display_schema)
    internal_names = {display: col for col, display in SUMMARY_DISPLAY_NAMES.items()}
    return df.rename(internal_names).select(list(SUMMARY_SCHEMA))


def format_summary_for_display(df: pl.DataFrame) -> pl.DataFrame:
    """Round float columns to 2 decimals and switch to display column names."""
    float_columns = [col for col, dtype in df.schema.items() if dtype == pl.Float64]
    return (
        df.with_columns(pl.col(float_columns).round(DISPLAY_DECIMALS))
        .rename({col: name for col, name in SUMMARY_DISPLAY_NAMES.items() if col in df.columns})
    )


def write_run_manifest(
    output_dir: Path,
    sample_id: str,
    written: dict[str, Path],
    failures: dict[str, str],
    details: dict | None = None,
) -> Path:
    """
    Write a YAML manifest of one sample evaluation.

    Lists every summary file written, every gene that failed (with its
    error), and any extra details such as the sample's depth bin.

    Returns:
        Path to <output_dir>/sample_<sample_id>__manifest.yaml
    """
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    manifest_path = output_dir / f"sample_{sample_id}__manifest.yaml"

    manifest = {
        "generated_at": datetime.now(timezone.utc).isoformat(),
        "sample_id": sample_id,
        "output_files": sorted(path.name for path in written.values()),
        "statistics": {
            "genes_written": len(written),
            "genes_failed": len(failures),
        },
        "failures": dict(sorted(failures.items())),
    }
    if details:
        manifest["details"] = details

    with open(manifest_path, "w") as f:
        yaml.dump(manifest, f, default_flow_style=False, sort_keys=False)

    return manifest_path
