"""Main CLI entry point for Bitbucket Migration Tool."""

import sys
import asyncio
from typing import Optional, Tuple
from pathlib import Path

import click
from rich.console import Console
from rich.panel import Panel
from rich.progress import (
    Progress,
    SpinnerColumn,
    TextColumn,
    BarColumn,
    TaskProgressColumn,
)
from rich.table import Table

from ..config.config import Config
from ..lfs.size import format_size
from ..utils.helpers import format_duration
from ..utils.logging import setup_logging
from ..migration.engine import MigrationEngine
from ..migration.orchestrator import RepositoryState, RunSummary

console = Console()


@click.group()
@click.version_option(version='0.1.0', prog_name='bitbucket-migrate')
@click.option(
    '--config',
    '-c',
    type=click.Path(exists=True),
    help='Path to configuration file',
)
@click.option(
    '--verbose',
    '-v',
    is_flag=True,
    help='Enable verbose logging',
)
@click.pass_context
def cli(ctx: click.Context, config: Optional[str], verbose: bool) -> None:
    """Bitbucket Migration Tool - Move Bitbucket repositories to GitHub with Git LFS."""
    ctx.ensure_object(dict)

    if config:
        ctx.obj['config_path'] = config
    ctx.obj['verbose'] = verbose

    # Basic logging until the config file is read
    log_level = 'DEBUG' if verbose else 'INFO'
    setup_logging(log_level)


@cli.command()
@click.option(
    '--output',
    '-o',
    default='config.yaml',
    help='Output configuration file path',
)
@click.pass_context
def init(ctx: click.Context, output: str) -> None:
    """Initialize a new configuration file."""
    console.print(
        Panel.fit(
            '[bold green]Bitbucket Migration Tool[/bold green]\n'
            'Initializing configuration...',
            border_style='green',
        )
    )

    try:
        Config.create_template(output)

        console.print(f'[green]✓[/green] Configuration template created at: {output}')
        console.print(
            f'[yellow]Please edit {output} with your Bitbucket and GitHub details[/yellow]'
        )

    except OSError as e:
        console.print(f'[red]✗[/red] Failed to create configuration: {e}')
        sys.exit(1)


@cli.command('list-repos')
@click.option(
    '--force',
    is_flag=True,
    help='Overwrite an existing state file',
)
@click.pass_context
def list_repos(ctx: click.Context, force: bool) -> None:
    """Fetch the Bitbucket repository list into the state file."""
    try:
        config = _load_config(ctx)
        _setup_logging_with_config(ctx, config)

        engine = MigrationEngine(config)
        try:
            count = engine.list_repositories(force=force)
        finally:
            engine.close()

        console.print(
            f'[green]✓[/green] Saved {count} repositories to '
            f'{config.migration.state_file}'
        )

    except Exception as e:
        console.print(f'[red]✗[/red] Listing repositories failed: {e}')
        if ctx.obj.get('verbose'):
            console.print_exception()
        sys.exit(1)


@cli.command()
@click.option(
    '--repo',
    '-r',
    'repos',
    multiple=True,
    help='Migrate only this repository (repeatable)',
)
@click.pass_context
def migrate(ctx: click.Context, repos: Tuple[str, ...]) -> None:
    """Start the migration process."""
    console.print(
        Panel.fit(
            '[bold blue]Bitbucket Migration Tool[/bold blue]\n'
            'Starting migration process...',
            border_style='blue',
        )
    )

    try:
        config = _load_config(ctx)
        _setup_logging_with_config(ctx, config)

        asyncio.run(_run_migration(config, list(repos) or None))

    except Exception as e:
        console.print(f'[red]✗[/red] Migration failed: {e}')
        if ctx.obj.get('verbose'):
            console.print_exception()
        sys.exit(1)


@cli.command()
@click.pass_context
def retry(ctx: click.Context) -> None:
    """Retry repositories that failed in earlier runs."""
    console.print(
        Panel.fit(
            '[bold yellow]Bitbucket Migration Tool[/bold yellow]\n'
            'Retrying failed repositories...',
            border_style='yellow',
        )
    )

    try:
        config = _load_config(ctx)
        _setup_logging_with_config(ctx, config)

        asyncio.run(_run_migration(config, retry_failed=True))

    except Exception as e:
        console.print(f'[red]✗[/red] Retry failed: {e}')
        if ctx.obj.get('verbose'):
            console.print_exception()
        sys.exit(1)


@cli.command()
@click.pass_context
def stats(ctx: click.Context) -> None:
    """Show migration status and progress."""
    console.print(
        Panel.fit(
            '[bold magenta]Bitbucket Migration Tool[/bold magenta]\nMigration Status',
            border_style='magenta',
        )
    )

    try:
        config = _load_config(ctx)
        _setup_logging_with_config(ctx, config)

        engine = MigrationEngine(config)
        try:
            statistics = engine.statistics()
            failed = engine.store.failed_repositories()
        finally:
            engine.close()

        table = Table(title='Migration Progress')
        table.add_column('Metric', style='cyan')
        table.add_column('Value', style='green')

        table.add_row('Total', str(statistics.total))
        table.add_row('Transferred', str(statistics.transferred))
        table.add_row('Pending', str(statistics.pending))
        table.add_row('Processing', str(statistics.processing))
        table.add_row('Failed', str(statistics.failed))
        table.add_row('Retries exhausted', str(statistics.exhausted))
        table.add_row('With LFS', str(statistics.lfs_repositories))
        table.add_row('Progress', f'{statistics.progress}%')

        console.print(table)

        if failed:
            console.print(f'\n[red]Failed repositories ({len(failed)}):[/red]')
            for record in failed[:10]:
                console.print(
                    f'  • {record.name} ({record.retry_count} attempts): {record.error}'
                )
            if len(failed) > 10:
                console.print(f'  ... and {len(failed) - 10} more')

    except Exception as e:
        console.print(f'[red]✗[/red] Failed to load status: {e}')
        if ctx.obj.get('verbose'):
            console.print_exception()
        sys.exit(1)


@cli.command()
@click.argument('path', type=click.Path(exists=True, file_okay=False))
@click.option(
    '--name',
    '-n',
    default=None,
    help='Repository name used to look up LFS settings (default: directory name)',
)
@click.pass_context
def detect(ctx: click.Context, path: str, name: Optional[str]) -> None:
    """Show which files of a local repository would be stored in LFS."""
    try:
        config = _load_config(ctx)
        _setup_logging_with_config(ctx, config)

        repo_name = name or Path(path).resolve().name
        engine = MigrationEngine(config)
        try:
            detection, plan = asyncio.run(engine.detect(path, repo_name))
        finally:
            engine.close()

        table = Table(title=f'LFS detection for {repo_name}')
        table.add_column('File', style='cyan')
        table.add_column('Found in', style='green')

        for file_path in detection.current_files:
            table.add_row(file_path, 'working tree')
        for file_path in detection.history_files:
            table.add_row(file_path, 'history')

        console.print(table)
        console.print(f'[blue]Detection mode:[/blue] {detection.mode.value}')
        console.print(f'[blue]Strategy:[/blue] {plan.strategy.value}')
        if plan.threshold_bytes is not None:
            console.print(
                f'[blue]Threshold:[/blue] {format_size(plan.threshold_bytes)}'
            )
        if detection.unverified_files:
            console.print(
                '[yellow]Configured files not found anywhere '
                f'(check for typos): {", ".join(detection.unverified_files)}[/yellow]'
            )

    except Exception as e:
        console.print(f'[red]✗[/red] Detection failed: {e}')
        if ctx.obj.get('verbose'):
            console.print_exception()
        sys.exit(1)


@cli.command()
@click.pass_context
def validate(ctx: click.Context) -> None:
    """Validate configuration, tools and connectivity."""
    console.print(
        Panel.fit(
            '[bold cyan]Bitbucket Migration Tool[/bold cyan]\nValidating setup...',
            border_style='cyan',
        )
    )

    try:
        config = _load_config(ctx)
        console.print('[green]✓[/green] Configuration is valid')

        engine = MigrationEngine(config)
        try:
            checks = asyncio.run(engine.validate())
        finally:
            engine.close()

        labels = {
            'git': 'git and git-lfs installed',
            'bitbucket': 'Bitbucket reachable',
            'github': 'GitHub reachable',
        }
        for key, passed in checks.items():
            mark = '[green]✓[/green]' if passed else '[red]✗[/red]'
            console.print(f'{mark} {labels.get(key, key)}')

        if not all(checks.values()):
            sys.exit(1)

    except Exception as e:
        console.print(f'[red]✗[/red] Validation failed: {e}')
        if ctx.obj.get('verbose'):
            console.print_exception()
        sys.exit(1)


def _load_config(ctx: click.Context) -> Config:
    """Load configuration from file or environment."""
    config_path = ctx.obj.get('config_path')

    if config_path:
        if not Path(config_path).exists():
            raise FileNotFoundError(f'Configuration file not found: {config_path}')
        return Config.from_file(config_path)

    default_paths = ['config.yaml', 'config.yml', '.bitbucket-migrate.yaml']
    for path in default_paths:
        if Path(path).exists():
            return Config.from_file(path)

    # Fall back to environment variables
    try:
        return Config.from_env()
    except ValueError:
        raise FileNotFoundError(
            'No configuration found. Use --config to specify a file or run '
            '"bitbucket-migrate init" to create one.'
        )


def _setup_logging_with_config(ctx: click.Context, config: Config) -> None:
    """Setup logging with configuration from config file."""
    verbose = ctx.obj.get('verbose', False)

    log_level = 'DEBUG' if verbose else config.logging.level
    setup_logging(
        level=log_level, log_file=config.logging.file, log_format=config.logging.format
    )


async def _run_migration(
    config: Config, names=None, retry_failed: bool = False
) -> None:
    """Run the migration process with progress display."""
    engine = MigrationEngine(config)

    try:
        with Progress(
            SpinnerColumn(),
            TextColumn('[progress.description]{task.description}'),
            BarColumn(),
            TaskProgressColumn(),
            console=console,
        ) as progress:
            task = progress.add_task('[blue]Migration initializing...', total=1)

            def update_progress(current: int, total: int, description: str):
                progress.update(
                    task,
                    completed=current,
                    total=max(total, 1),
                    description=f'[blue]{description}',
                )

            if retry_failed:
                summary = await engine.retry_failed(progress_callback=update_progress)
            else:
                summary = await engine.migrate(
                    names, progress_callback=update_progress
                )

            progress.update(task, description='[green]Migration finished')

        _display_migration_summary(summary)
    finally:
        engine.close()


def _display_migration_summary(summary: RunSummary) -> None:
    """Display migration summary results."""
    table = Table(title='Migration Summary')
    table.add_column('Total', style='blue')
    table.add_column('Completed', style='green')
    table.add_column('Failed', style='red')
    table.add_column('Skipped', style='yellow')
    table.add_column('With LFS', style='cyan')

    table.add_row(
        str(summary.total),
        str(summary.completed),
        str(summary.failed),
        str(summary.skipped),
        str(summary.lfs_repositories),
    )
    console.print(table)

    if summary.completed_at:
        duration = (summary.completed_at - summary.started_at).total_seconds()
        console.print(f'\n[blue]Migration Duration:[/blue] {format_duration(duration)}')

    if summary.rate_limit_hits:
        console.print(
            f'[yellow]Rate limit reached {summary.rate_limit_hits} times[/yellow]'
        )

    errors = [
        f'{result.name}: {result.error}'
        for result in summary.results
        if result.state == RepositoryState.FAILED
    ]
    if errors:
        console.print(f'\n[red]Errors ({len(errors)}):[/red]')
        for error in errors[:5]:
            console.print(f'  • {error}')
        if len(errors) > 5:
            console.print(f'  ... and {len(errors) - 5} more errors')


def main() -> None:
    """Main entry point for the CLI application."""
    try:
        cli()
    except KeyboardInterrupt:
        console.print('\n[red]Migration interrupted by user[/red]')
        sys.exit(1)
    except Exception as e:
        console.print(f'[red]Error: {e}[/red]')
        sys.exit(1)


if __name__ == '__main__':
    main()
