"""Visualization of gene accuracy summaries and reference depth coverage."""

import logging
from pathlib import Path

import matplotlib
import polars as pl

from outlier_accuracy.reference.models import READS_PER_MILLION

# Use Agg backend (non-interactive, safe for headless/CLI use)
matplotlib.use("Agg")

import matplotlib.pyplot as plt  # noqa: E402
import seaborn as sns  # noqa: E402

logger = logging.getLogger(__name__)


def plot_cohort_accuracy(df: pl.DataFrame, output_path: Path) -> Path:
    """
    Create bar chart of mean accuracy per cohort with min-max range.

    Args:
        df: Gene summary with cohort, mean_accuracy, min_accuracy and
            max_accuracy columns (one row per cohort)
        output_path: Path where PNG will be saved

    Returns:
        Path to the saved PNG file

    Notes:
        - Cohorts without statistics are shown as empty slots
        - The threshold of each cohort is annotated above its bar
    """
    cohorts = df["cohort"].to_list()
    plotted = df.filter(pl.col("mean_accuracy").is_not_null())

    sns.set_theme(style="whitegrid", context="paper")
    fig, ax = plt.subplots(figsize=(10, 6))

    if plotted.is_empty():
        ax.text(
            0.5, 0.5, "No accuracy statistics available",
            ha="center", va="center", transform=ax.transAxes,
        )
    else:
        pdf = plotted.to_pandas()
        sns.barplot(
            data=pdf,
            x="cohort",
            y="mean_accuracy",
            order=cohorts,
            color="#3498db",
            ax=ax,
        )

        positions = [cohorts.index(cohort) for cohort in pdf["cohort"]]
        ax.errorbar(
            positions,
            pdf["mean_accuracy"],
            yerr=[
                pdf["mean_accuracy"] - pdf["min_accuracy"],
                pdf["max_accuracy"] - pdf["mean_accuracy"],
            ],
            fmt="none",
            ecolor="black",
            capsize=4,
        )

        for position, row in zip(positions, plotted.iter_rows(named=True)):
            if row["threshold"] is not None:
                ax.annotate(
                    f"t={row['threshold']:.2f}",
                    (position, row["max_accuracy"]),
                    textcoords="offset points",
                    xytext=(0, 6),
                    ha="center",
                    fontsize=8,
                )

    sample_id = df["sample_id"][0] if df.height else ""
    gene = df["gene"][0] if df.height else ""

    ax.set_ylim(0, 105)
    ax.set_xlabel("Cohort")
    ax.set_ylabel("% Accurately Measured")
    ax.set_title(f"{gene} accuracy in {sample_id}")
    plt.setp(ax.get_xticklabels(), rotation=30, ha="right")

    output_path.parent.mkdir(parents=True, exist_ok=True)
    fig.savefig(output_path, dpi=300, bbox_inches="tight")

    # Close figure to prevent memory leak
    plt.close(fig)

    logger.info(f"Saved cohort accuracy plot to {output_path}")
    return output_path


def depth_coverage_counts(abundance: pl.DataFrame) -> pl.DataFrame:
    """Distinct subsampled replicates per target depth, in millions of UMEND reads."""
    return (
        abundance.group_by("target_UMEND_count")
        .agg(pl.col("sample_id").n_unique().alias("subsamples"))
        .with_columns((pl.col("target_UMEND_count") // READS_PER_MILLION).alias("target_depth_millions"))
        .sort("target_depth_millions")
        .select(["target_depth_millions", "subsamples"])
    )


def plot_reference_depth_coverage(abundance: pl.DataFrame, output_path: Path) -> Path:
    """
    Create bar chart of subsample counts per target depth.

    Args:
        abundance: Abundance table with sample_id and target_UMEND_count
        output_path: Path where PNG will be saved

    Returns:
        Path to the saved PNG file
    """
    counts = depth_coverage_counts(abundance)

    fig, ax = plt.subplots(figsize=(10, 6))

    labels = [str(depth) for depth in counts["target_depth_millions"].to_list()]
    values = counts["subsamples"].to_list()
    sns.barplot(x=labels, y=values, hue=labels, palette="viridis", ax=ax, legend=False)

    ax.set_xlabel("Target Depth (million UMEND reads)")
    ax.set_ylabel("Subsamples")
    ax.set_title("Reference Depth Coverage")

    output_path.parent.mkdir(parents=True, exist_ok=True)
    fig.savefig(output_path, dpi=300, bbox_inches="tight")
    plt.close(fig)

    logger.info(f"Saved reference depth coverage plot to {output_path}")
    return output_path


def generate_sample_plots(summaries: dict[str, pl.DataFrame], output_dir: Path) -> dict[str, Path]:
    """
    Generate one cohort accuracy plot per gene summary.

    Args:
        summaries: Gene symbol -> gene summary DataFrame
        output_dir: Directory where plots will be saved

    Returns:
        Dictionary mapping gene to plot path

    Notes:
        - Wraps each plot in try/except to continue on individual failures
    """
    output_dir.mkdir(parents=True, exist_ok=True)

    plots = {}
    for gene, df in summaries.items():
        sample_id = df["sample_id"][0] if df.height else "unknown"
        try:
            plots[gene] = plot_cohort_accuracy(
                df,
                output_dir / f"sample_{sample_id}__gene_{gene}__accuracy.png",
            )
        except Exception as e:
            logger.warning(f"Failed to create accuracy plot for {gene}: {e}")

    logger.info(f"Generated {len(plots)} plots in {output_dir}")
    return plots
