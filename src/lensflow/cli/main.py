"""Main CLI interface for LensFlow."""

import asyncio
import json
from pathlib import Path
from typing import List, Optional

import click
from rich.console import Console
from rich.panel import Panel
from rich.progress import BarColumn, Progress, SpinnerColumn, TextColumn, TimeElapsedColumn
from rich.table import Table

from ..core.config import Config, get_config, set_config
from ..core.credentials import PromptCredentialSelector
from ..core.logger import get_logger, setup_logging
from ..models.photo import ALL_CATEGORIES, Category, Photo
from ..pipeline.orchestrator import PipelineOrchestrator
from ..pipeline.views import filter_photos, group_by_month

console = Console()
logger = get_logger(__name__)

CATEGORY_CHOICES = [ALL_CATEGORIES] + list(Category.values())


def build_orchestrator(config: Config) -> PipelineOrchestrator:
    """Create a pipeline that prompts for a key when none is configured."""
    credentials = PromptCredentialSelector(config.api_key)
    return PipelineOrchestrator.from_config(config, credentials=credentials)


def _short(text: str, limit: int = 40) -> str:
    return text if len(text) <= limit else text[:limit] + "..."


def display_gallery(photos: List[Photo], title: str):
    """Display photos as a flat table in collection order."""
    table = Table(title=title)
    table.add_column("Name", style="cyan")
    table.add_column("Category", style="blue")
    table.add_column("Title", style="white")
    table.add_column("Tags", style="green")
    table.add_column("Date", style="yellow")

    for photo in photos:
        table.add_row(
            photo.name,
            photo.category,
            _short(photo.description),
            ", ".join(photo.tags),
            photo.timestamp.strftime("%Y-%m-%d"),
        )

    console.print(table)


def display_timeline(photos: List[Photo]):
    """Display photos grouped by month, newest first."""
    for group in group_by_month(photos):
        table = Table(title=f"{group.label} ({len(group)} photos)", title_justify="left")
        table.add_column("Name", style="cyan")
        table.add_column("Category", style="blue")
        table.add_column("Title", style="white")
        table.add_column("Tags", style="green")

        for photo in group.photos:
            table.add_row(photo.name, photo.category, _short(photo.description), ", ".join(photo.tags))

        console.print(table)


@click.group()
@click.option('--debug', is_flag=True, help='Enable debug logging')
@click.option('--config-file', type=click.Path(exists=True), help='Path to configuration file')
@click.pass_context
def main(ctx: click.Context, debug: bool, config_file: Optional[str]):
    """LensFlow - AI photo timeline with motion.

    Analyzes photos with a vision model to categorize, title, date and tag
    them, then lets you browse them by month, category or search, and turn
    a still into a short video clip.

    \b
    Examples:
    lensflow analyze ~/Pictures/trip
    lensflow analyze ~/Pictures --category food --view gallery
    lensflow analyze ~/Pictures --search sunset --output-format json
    lensflow animate beach.jpg --output beach.mp4
    """
    ctx.ensure_object(dict)
    ctx.obj['debug'] = debug

    try:
        if config_file:
            config = Config.load_from_file(Path(config_file))
            set_config(config)
        else:
            config = get_config()
    except Exception as e:
        console.print(f"[red]Failed to load configuration: {e}[/red]")
        ctx.exit(1)
        return

    if debug:
        config.debug = True
    config.ensure_directories()
    setup_logging(
        "DEBUG" if debug else config.log_level,
        log_dir=config.log_dir,
        enable_color=not config.debug,
    )

    ctx.obj['config'] = config


@main.command()
@click.argument('paths', nargs=-1, required=True, type=click.Path(exists=True))
@click.option('--category', type=click.Choice(CATEGORY_CHOICES), default=ALL_CATEGORIES,
              help='Only show photos in this category')
@click.option('--search', 'query', default='', help='Filter by title, category or tag')
@click.option('--view', type=click.Choice(['timeline', 'gallery']), default='timeline',
              help='Group by month or list in upload order')
@click.option('--output-format', type=click.Choice(['table', 'json']), default='table',
              help='Output format for results')
@click.option('--concurrency', type=click.IntRange(1, 20), default=None,
              help='Photos analyzed at once (default from config, 1 keeps file order)')
@click.pass_context
def analyze(ctx: click.Context, paths: tuple, category: str, query: str, view: str,
            output_format: str, concurrency: Optional[int]):
    """Analyze photos and show them as a timeline or gallery.

    Directories are searched recursively. Files that cannot be read as
    images are skipped; photos whose analysis fails are still added with
    fallback values.
    """
    config = ctx.obj['config']
    if concurrency is not None:
        config.pipeline.analysis_concurrency = concurrency

    orchestrator = build_orchestrator(config)
    image_files = orchestrator.ingest_adapter.expand_paths(paths)

    if not image_files:
        console.print("[yellow]No image files found in specified paths[/yellow]")
        return

    console.print(f"[blue]Found {len(image_files)} image files to analyze[/blue]")

    async def analyze_photos():
        if not await orchestrator.ensure_credential():
            console.print("[red]An API key is required[/red]")
            return

        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            TextColumn("[progress.percentage]{task.percentage:>3.0f}%"),
            TimeElapsedColumn(),
            console=console
        ) as progress:
            task = progress.add_task("Analyzing photos...", total=len(image_files))
            unsubscribe = orchestrator.store.subscribe(
                lambda snapshot: progress.update(task, completed=len(snapshot))
            )
            try:
                await orchestrator.ingest(image_files)
            finally:
                unsubscribe()

    asyncio.run(analyze_photos())

    photos = filter_photos(orchestrator.store.snapshot, category, query)

    if output_format == 'json':
        click.echo(json.dumps([photo.to_dict() for photo in photos], indent=2))
    elif not photos:
        console.print("[yellow]No results found.[/yellow]")
    elif view == 'timeline':
        display_timeline(list(photos))
    else:
        display_gallery(list(photos), title=f"{len(photos)} photos")


@main.command()
@click.argument('path', type=click.Path(exists=True, dir_okay=False))
@click.option('--output', '-o', type=click.Path(dir_okay=False), default=None,
              help='Where to save the video (default: next to the image as .mp4)')
@click.pass_context
def animate(ctx: click.Context, path: str, output: Optional[str]):
    """Analyze one photo and turn it into a short video clip.

    The video job is polled until it finishes, which usually takes a few
    minutes.
    """
    config = ctx.obj['config']
    orchestrator = build_orchestrator(config)
    output_path = Path(output) if output else Path(path).with_suffix(".mp4")

    async def animate_photo() -> Optional[Photo]:
        if not await orchestrator.ensure_credential():
            console.print("[red]An API key is required[/red]")
            return None

        photos = await orchestrator.ingest([path])
        if not photos:
            console.print(f"[red]Could not read {path} as an image[/red]")
            return None

        photo = photos[0]
        console.print(f"[blue]{photo.description}[/blue] ({photo.category})")

        try:
            with console.status("Generating video..."):
                return await orchestrator.animate(photo.id)
        finally:
            await orchestrator.aclose()

    result = asyncio.run(animate_photo())

    if result is None:
        ctx.exit(1)
        return
    if result.video_ref is None:
        console.print("[red]Video generation failed, see the log for details[/red]")
        ctx.exit(1)
        return

    orchestrator.video.object_urls.save(result.video_ref, output_path)
    console.print(f"[green]Saved video to {output_path}[/green]")


@main.command()
def categories():
    """List the category filter values."""
    for value in CATEGORY_CHOICES:
        click.echo(value)


@main.command(name='config')
@click.pass_context
def show_config(ctx: click.Context):
    """Show the effective configuration (without the API key)."""
    config = ctx.obj['config']
    data = config.model_dump(mode="json", exclude={'api_key'})
    data['api_key'] = "set" if config.api_key else "not set"
    console.print(Panel(json.dumps(data, indent=2), title=config.app_name))


if __name__ == '__main__':
    main()
