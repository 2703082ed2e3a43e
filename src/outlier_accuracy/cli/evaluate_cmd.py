"""Evaluate command: per-gene outlier accuracy summaries for one sample.

Orchestrates:
1. Load configuration and the sample's inputs
2. Load the reference abundance table (DuckDB checkpoint, else TSV)
3. Build and write one summary table per druggable up-outlier gene
4. Display each summary, rounded for readability
5. Generate cohort accuracy plots (unless --skip-viz)
6. Write the run manifest and provenance sidecar
"""

import logging
import sys
from pathlib import Path

import click
import polars as pl

from outlier_accuracy.accuracy.evaluate import run_sample_evaluation
from outlier_accuracy.accuracy.inputs import load_sample_inputs
from outlier_accuracy.config.loader import load_config
from outlier_accuracy.output import (
    format_summary_for_display,
    generate_sample_plots,
    write_run_manifest,
)
from outlier_accuracy.persistence import PipelineStore, ProvenanceTracker
from outlier_accuracy.reference import load_abundance_table

logger = logging.getLogger(__name__)


@click.command('evaluate')
@click.argument(
    'input_dir',
    type=click.Path(exists=True, file_okay=False, path_type=Path),
)
@click.option(
    '--results-dir',
    type=click.Path(path_type=Path),
    default=None,
    help='Root results directory (default: evaluation.results_dir from config)'
)
@click.option(
    '--skip-viz',
    is_flag=True,
    help='Skip cohort accuracy plots'
)
@click.pass_context
def evaluate(ctx, input_dir, results_dir, skip_viz):
    """Summarise how accurately each outlier gene of a sample is measured.

    INPUT_DIR holds the sample's outlier results, per-cohort threshold JSON
    and read-count summary JSON (file names set in the evaluation config).

    A failing gene is reported and skipped; the other genes are still
    written. Missing or malformed inputs abort the run.

    Examples:

        outlier-accuracy evaluate work/TH34_1349_S02

        outlier-accuracy evaluate work/TH34_1349_S02 --skip-viz
    """
    config_path = ctx.obj['config_path']

    click.echo(click.style("=== Outlier Accuracy Evaluation ===", bold=True))
    click.echo()

    store = None
    try:
        # Step 1: Load configuration and inputs
        click.echo(click.style("Step 1: Loading inputs...", bold=True))
        config = load_config(config_path)
        results_dir = results_dir or config.evaluation.results_dir

        try:
            inputs = load_sample_inputs(input_dir, config.evaluation)
        except (FileNotFoundError, ValueError) as e:
            click.echo(click.style(f"  Error reading inputs: {e}", fg='red'), err=True)
            logger.exception("Failed to read sample inputs")
            sys.exit(1)

        click.echo(click.style(f"  Sample: {inputs.sample_id}", fg='green'))
        click.echo(f"  UMEND reads: {inputs.umend:,.0f}")
        click.echo(f"  Outlier results: {inputs.outliers.height} genes")
        click.echo(f"  Cohorts: {', '.join(inputs.cohorts.values())}")
        click.echo()

        # Step 2: Load reference
        click.echo(click.style("Step 2: Loading reference abundance table...", bold=True))
        store = PipelineStore.from_config(config)
        provenance = ProvenanceTracker.from_config(config)

        try:
            abundance = load_abundance_table(
                store=store,
                path=config.reference.abundance_table,
                source_hash=config.reference_hash(),
            )
        except (FileNotFoundError, ValueError) as e:
            click.echo(click.style(f"  Error: {e}", fg='red'), err=True)
            sys.exit(1)

        click.echo(click.style(f"  Loaded {abundance.height} rows", fg='green'))
        click.echo()

        # Step 3: Evaluate candidate genes
        click.echo(click.style("Step 3: Evaluating candidate genes...", bold=True))
        result = run_sample_evaluation(
            inputs=inputs,
            abundance=abundance,
            results_dir=results_dir,
            flag_columns=config.evaluation.outlier_flag_columns,
        )

        depth_label = f"{result.depth_bin}M" if result.depth_bin is not None else "undefined"
        click.echo(f"  Depth bin: {depth_label}")
        click.echo(f"  Candidate genes: {len(result.candidate_genes)}")
        click.echo(click.style(f"  Written: {len(result.written)}", fg='green'))
        if result.failures:
            click.echo(click.style(f"  Failed: {len(result.failures)}", fg='yellow'))
            for gene, error in result.failures.items():
                click.echo(click.style(f"    {gene}: {error}", fg='yellow'))
        click.echo()

        provenance.record_step('evaluate_sample', {
            'sample_id': result.sample_id,
            'umend': inputs.umend,
            'depth_bin': result.depth_bin,
            'candidate_genes': result.candidate_genes,
            'genes_written': len(result.written),
            'genes_failed': len(result.failures),
        })

        # Step 4: Display summaries
        if result.summaries:
            click.echo(click.style("Step 4: Gene summaries", bold=True))
            with pl.Config(tbl_rows=-1, tbl_cols=-1, tbl_hide_dataframe_shape=True):
                for gene, summary in result.summaries.items():
                    click.echo(click.style(f"  {gene}", bold=True))
                    click.echo(str(format_summary_for_display(summary)))
                    click.echo()
        else:
            click.echo(click.style("Step 4: No candidate genes to display", fg='yellow'))
            click.echo()

        sample_dir = Path(results_dir) / result.sample_id

        # Step 5: Visualizations
        if not skip_viz and result.summaries:
            click.echo(click.style("Step 5: Generating plots...", bold=True))
            try:
                plot_paths = generate_sample_plots(result.summaries, sample_dir / "plots")
                click.echo(click.style(f"  Created {len(plot_paths)} plots", fg='green'))
            except Exception as e:
                click.echo(click.style(f"  Warning: Plot generation failed: {e}", fg='yellow'))
                logger.warning(f"Plot generation failed: {e}")
        else:
            click.echo(click.style("Step 5: Skipping plots", fg='yellow'))
        click.echo()

        # Step 6: Manifest and provenance
        click.echo(click.style("Step 6: Writing manifest...", bold=True))
        manifest_path = write_run_manifest(
            sample_dir,
            result.sample_id,
            written=result.written,
            failures=result.failures,
            details={
                'umend': inputs.umend,
                'depth_bin': result.depth_bin,
                'candidate_genes': result.candidate_genes,
            },
        )
        provenance_path = provenance.save_sidecar(manifest_path)
        click.echo(click.style(f"  Manifest: {manifest_path}", fg='green'))
        click.echo(click.style(f"  Provenance: {provenance_path}", fg='green'))
        click.echo()

        click.echo(click.style("Evaluation complete!", fg='green', bold=True))

    except Exception as e:
        click.echo(click.style(f"Evaluate command failed: {e}", fg='red'), err=True)
        logger.exception("Evaluate command failed")
        sys.exit(1)
    finally:
        if store is not None:
            store.close()
