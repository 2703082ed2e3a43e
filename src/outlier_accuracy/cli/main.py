"""Main CLI entry point for outlier-accuracy.

Provides command group with global options and subcommands for pipeline operations.
"""

import logging
from pathlib import Path

import click

from outlier_accuracy import __version__
from outlier_accuracy.config.loader import load_config
from outlier_accuracy.persistence import PipelineStore, ProvenanceTracker
from outlier_accuracy.reference import ABUNDANCE_TABLE_NAME
from outlier_accuracy.cli.reference_cmd import build_reference
from outlier_accuracy.cli.evaluate_cmd import evaluate


# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)


@click.group()
@click.option(
    '--config',
    type=click.Path(exists=True, path_type=Path),
    default='config/default.yaml',
    help='Path to pipeline configuration YAML file'
)
@click.option(
    '--verbose',
    is_flag=True,
    help='Enable verbose logging (DEBUG level)'
)
@click.pass_context
def cli(ctx, config, verbose):
    """Outlier-accuracy: how trustworthy is an RNA-seq expression outlier call?

    Builds a reference table of per-gene expression across subsampled
    sequencing depths, then reports, for each druggable outlier gene of a
    sample, how often a measurement at the sample's depth lands within the
    margin separating its expression from each cohort threshold.
    """
    ctx.ensure_object(dict)
    ctx.obj['config_path'] = config
    ctx.obj['verbose'] = verbose

    if verbose:
        logging.getLogger().setLevel(logging.DEBUG)
        logging.debug("Verbose logging enabled")


def _echo_reference_status(config) -> None:
    """Checkpoint and last-build state of the reference abundance table."""
    click.echo(click.style("Reference Table:", bold=True))

    sidecar = ProvenanceTracker.sidecar_path(config.reference.abundance_table)
    if sidecar.exists():
        build = ProvenanceTracker.load_sidecar(sidecar)
        click.echo(f"  Last build:  {build['created_at']} (v{build['pipeline_version']})")
    else:
        click.echo(f"  Last build:  none ({sidecar} not found)")

    if not Path(config.duckdb_path).exists():
        click.echo(click.style("  Checkpoint:  missing (run build-reference)", fg='yellow'))
        return

    with PipelineStore.from_config(config) as store:
        checkpoint = store.checkpoint_info(ABUNDANCE_TABLE_NAME)
        if checkpoint is None:
            click.echo(click.style("  Checkpoint:  missing (run build-reference)", fg='yellow'))
        elif checkpoint['source_hash'] == config.reference_hash():
            click.echo(click.style(
                f"  Checkpoint:  current, {checkpoint['row_count']:,} rows", fg='green'
            ))
        else:
            click.echo(click.style(
                f"  Checkpoint:  stale, built from other reference settings "
                f"({checkpoint['row_count']:,} rows)",
                fg='yellow'
            ))

        checkpoints = store.list_checkpoints()
        if checkpoints:
            click.echo("  Stored tables:")
            for entry in checkpoints:
                click.echo(
                    f"    {entry['table_name']}: {entry['row_count']:,} rows, "
                    f"saved {entry['created_at']}"
                )


@cli.command()
@click.pass_context
def info(ctx):
    """Show the configured reference, its build state and evaluation inputs."""
    config_path = ctx.obj['config_path']

    click.echo(click.style(f"Outlier Accuracy v{__version__}", bold=True))
    click.echo()

    try:
        config = load_config(config_path)

        click.echo(f"Config:         {config_path} ({config.config_hash()[:16]}...)")
        click.echo(f"Reference Hash: {config.reference_hash()[:16]}...")
        click.echo(
            f"Reference:      {config.versions.compendium_version} / "
            f"{config.versions.subsample_set}"
        )
        click.echo()

        _echo_reference_status(config)
        click.echo()

        click.echo(click.style("Evaluation:", bold=True))
        click.echo(f"  Results:         {config.evaluation.results_dir}")
        click.echo(f"  Druggable Genes: {config.evaluation.druggable_genes}")
        click.echo(f"  Cohort Names:    {config.evaluation.cohort_names}")
        click.echo(f"  Outlier Flags:   {', '.join(config.evaluation.outlier_flag_columns)}")

    except Exception as e:
        click.echo(click.style(f"Error loading config: {e}", fg='red'), err=True)
        ctx.exit(1)


# Register commands
cli.add_command(build_reference)
cli.add_command(evaluate)


if __name__ == '__main__':
    cli()
