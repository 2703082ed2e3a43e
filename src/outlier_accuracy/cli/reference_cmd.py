"""Reference command: build the per-gene abundance table.

Reads the multi-depth expression matrix, the replicate read counts and the
evenly selected subsample list, and persists the abundance table to DuckDB
and to a gzipped TSV with a provenance sidecar.
"""

import logging
import sys
from pathlib import Path

import click

from outlier_accuracy.config.loader import load_config
from outlier_accuracy.output import plot_reference_depth_coverage
from outlier_accuracy.persistence import PipelineStore, ProvenanceTracker
from outlier_accuracy.reference import (
    ABUNDANCE_TABLE_NAME,
    load_to_duckdb,
    process_reference_table,
    summarize_reference_qc,
    write_abundance_table,
)

logger = logging.getLogger(__name__)


def _echo_qc(qc: dict) -> None:
    click.echo(click.style("=== Summary ===", bold=True))
    click.echo(f"Rows: {qc['row_count']}")
    click.echo(f"  Genes: {qc['gene_count']}")
    click.echo(f"  Parent samples: {qc['parent_count']}")
    click.echo(f"  Subsampled replicates: {qc['replicate_count']}")
    click.echo(f"  Rows without ground truth: {qc['zero_ground_truth_rows']}")
    click.echo(f"  Malformed sample ids dropped: {qc['malformed_sample_id_count']}")
    if qc['replicates_per_depth_bin']:
        click.echo("  Replicates per depth bin:")
        for depth, count in qc['replicates_per_depth_bin'].items():
            click.echo(f"    {depth:>3}M: {count}")


@click.command('build-reference')
@click.option(
    '--force',
    is_flag=True,
    help='Rebuild the abundance table even if checkpoint exists'
)
@click.option(
    '--skip-viz',
    is_flag=True,
    help='Skip the reference depth coverage plot'
)
@click.pass_context
def build_reference(ctx, force, skip_viz):
    """Build the reference abundance table from multi-depth resequencing data.

    Each gene's expression in its parent's deepest replicate becomes the
    ground truth against which shallower replicates are judged.

    Supports checkpoint-restart: skips processing if the table already
    exists in DuckDB (use --force to rebuild).

    Examples:

        # First run: read inputs, build and persist
        outlier-accuracy build-reference

        # Rebuild after the inputs changed
        outlier-accuracy build-reference --force
    """
    config_path = ctx.obj['config_path']

    click.echo(click.style("=== Reference Abundance Table ===", bold=True))
    click.echo()

    store = None
    try:
        click.echo("Loading configuration...")
        config = load_config(config_path)
        click.echo(click.style(f"  Config loaded: {config_path}", fg='green'))
        click.echo(f"  Compendium: {config.versions.compendium_version}")
        click.echo()

        store = PipelineStore.from_config(config)
        provenance = ProvenanceTracker.from_config(config)

        reference_hash = config.reference_hash()
        if store.has_checkpoint(ABUNDANCE_TABLE_NAME) and not store.has_checkpoint(
            ABUNDANCE_TABLE_NAME, source_hash=reference_hash
        ):
            click.echo(click.style(
                "Abundance table checkpoint was built from different reference settings. Rebuilding.",
                fg='yellow'
            ))
            force = True

        if store.has_checkpoint(ABUNDANCE_TABLE_NAME) and not force:
            click.echo(click.style(
                "Abundance table checkpoint exists. Skipping build (use --force to rebuild).",
                fg='yellow'
            ))
            click.echo()

            df = store.load_dataframe(ABUNDANCE_TABLE_NAME)
            if df is not None:
                _echo_qc(summarize_reference_qc(df))
                click.echo(f"DuckDB Path: {config.duckdb_path}")
                click.echo()
                click.echo(click.style("Reference ready (used existing checkpoint)", fg='green'))
                return

        # A failed rebuild must not leave the previous table behind for evaluate
        if store.has_checkpoint(ABUNDANCE_TABLE_NAME):
            store.delete_checkpoint(ABUNDANCE_TABLE_NAME)
            click.echo("Discarded previous abundance table checkpoint")

        reference = config.reference
        click.echo("Building abundance table...")
        click.echo(f"  Expression matrix: {reference.expression_matrix}")
        click.echo(f"  Read counts: {reference.read_counts}")
        click.echo(f"  Subsamples: {reference.evenly_selected_subsamples}")

        try:
            df, qc = process_reference_table(
                expression_path=reference.expression_matrix,
                read_counts_path=reference.read_counts,
                subsamples_path=reference.evenly_selected_subsamples,
                read_count_columns=reference.read_count_columns,
            )
            click.echo(click.style(f"  Built {df.height} rows", fg='green'))
        except Exception as e:
            click.echo(click.style(f"  Error building table: {e}", fg='red'), err=True)
            logger.exception("Failed to build abundance table")
            sys.exit(1)

        click.echo()
        provenance.record_step('build_abundance_table', {
            'expression_matrix': str(reference.expression_matrix),
            'read_counts': str(reference.read_counts),
            'evenly_selected_subsamples': str(reference.evenly_selected_subsamples),
            **qc,
        })

        click.echo("Saving abundance table...")
        load_to_duckdb(
            df=df,
            store=store,
            provenance=provenance,
            description=f"{config.versions.compendium_version} abundance across subsampled depths"
        )
        click.echo(click.style(f"  Saved to '{ABUNDANCE_TABLE_NAME}' table", fg='green'))

        tsv_path = write_abundance_table(df, reference.abundance_table)
        click.echo(click.style(f"  Written: {tsv_path}", fg='green'))

        if not skip_viz:
            try:
                plot_path = plot_reference_depth_coverage(
                    df, Path(config.data_dir) / "plots" / "reference_depth_coverage.png"
                )
                click.echo(click.style(f"  Plot: {plot_path}", fg='green'))
            except Exception as e:
                click.echo(click.style(f"  Warning: Plot generation failed: {e}", fg='yellow'))
                logger.warning(f"Reference plot generation failed: {e}")
        else:
            click.echo(click.style("  Skipping plot (--skip-viz)", fg='yellow'))

        provenance_path = provenance.save_sidecar(tsv_path)
        provenance.save_to_store(store)
        click.echo(click.style(f"  Provenance saved: {provenance_path}", fg='green'))
        click.echo()

        _echo_qc(qc)
        click.echo(f"DuckDB Path: {config.duckdb_path}")
        click.echo()
        click.echo(click.style("Reference build complete!", fg='green', bold=True))

    except Exception as e:
        click.echo(click.style(f"Reference command failed: {e}", fg='red'), err=True)
        logger.exception("Reference command failed")
        sys.exit(1)
    finally:
        if store is not None:
            store.close()
