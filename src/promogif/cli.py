"""Command line interface for promogif."""

from __future__ import annotations

import asyncio
import sys
from pathlib import Path

import click
from click.core import ParameterSource
from rich.console import Console
from rich.progress import BarColumn, Progress, SpinnerColumn, TextColumn
from rich.table import Table

from . import __version__
from .catalog import (
    STYLES,
    background_categories_for,
    get_site,
    get_style,
    load_site_presets,
    shuffle_background,
)
from .config import OUTPUT_PROFILES, PipelineConfig
from .coordinator import PipelineCoordinator
from .delivery import DirectorySink
from .error_handling import ConfigurationError, PromoGifError
from .fetch import ImageFetcher
from .io import setup_logging
from .render import PillowRasterizer
from .scene import Scene, SceneContent, SlideshowImage

console = Console()

# generate option name -> PipelineConfig field
PIPELINE_OPTIONS = {
    "frames": "total_frames",
    "step": "frame_step_size",
    "settle_ms": "settle_delay_ms",
    "delay_ms": "frame_delay_ms",
    "profile": "output_profile",
    "workers": "workers",
    "dither": "dither",
    "frame_timeout": "frame_timeout_s",
}

# generate option name -> SceneContent field a site preset may also set
SITE_CONTENT_OPTIONS = {
    "site_name": "site_name",
    "logo": "logo_url",
    "background": "background_url",
    "slides": "slideshow",
}


@click.group()
@click.version_option(version=__version__, prog_name="promogif")
def main() -> None:
    """🎞️ promogif: animated promotional banner generator."""
    pass


@main.command()
@click.option("--name", "site_name", default="Example Site", show_default=True, help="Site name used in the filename")
@click.option("--logo", default="", help="Logo image URL or path")
@click.option("--background", default="", help="Background image URL or path")
@click.option("--header", default="LINK ALTERNATIF", show_default=True, help="Waving header text")
@click.option("--link", "links", multiple=True, help="Link row text (repeatable)")
@click.option("--footer", default=SceneContent.footer_text, help="Instruction line above the search bar")
@click.option("--search", default=SceneContent.search_text, help="Search bar text")
@click.option("--modal-title", default=SceneContent.modal_title, help="Blinking title on the right")
@click.option("--modal-footer", default=SceneContent.modal_footer, help="Footer text on the right")
@click.option("--slide", "slides", multiple=True, help="Slideshow image URL or path (repeatable)")
@click.option("--style", "style_id", default=STYLES[0].id, show_default=True, help="Colour theme id")
@click.option(
    "--presets",
    "presets_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="JSON file of site presets",
)
@click.option("--site", "site_id", default=None, help="Site preset id from --presets; explicit flags still win")
@click.option(
    "--shuffle-background", "shuffle", is_flag=True, help="Pick a random background unless --background is given"
)
@click.option(
    "--profile",
    type=click.Choice(list(OUTPUT_PROFILES)),
    default="medium",
    show_default=True,
    help="Output size profile",
)
@click.option("--frames", type=int, default=24, show_default=True, help="Number of frames to capture")
@click.option("--step", type=int, default=5, show_default=True, help="Clock ticks between frames")
@click.option("--settle-ms", type=int, default=80, show_default=True, help="Wait after each scene change")
@click.option("--delay-ms", type=int, default=80, show_default=True, help="Display time per frame")
@click.option("--frame-timeout", type=float, default=None, help="Seconds before a single capture is abandoned")
@click.option("--workers", "-j", type=int, default=2, show_default=True, help="Encoder worker threads")
@click.option("--dither", is_flag=True, help="Enable Floyd-Steinberg dithering")
@click.option("--proxy", "proxy_base", default=None, help="Base URL of an image proxy for remote images")
@click.option(
    "--output-dir",
    "-o",
    type=click.Path(file_okay=False, path_type=Path),
    default=Path("."),
    show_default=True,
    help="Directory the GIF is written to",
)
@click.option("--log-dir", type=click.Path(file_okay=False, path_type=Path), default=None, help="Also write logs here")
@click.option("--verbose", "-v", is_flag=True, help="Debug logging")
@click.pass_context
def generate(
    ctx: click.Context,
    site_name: str,
    logo: str,
    background: str,
    header: str,
    links: tuple[str, ...],
    footer: str,
    search: str,
    modal_title: str,
    modal_footer: str,
    slides: tuple[str, ...],
    style_id: str,
    presets_path: Path | None,
    site_id: str | None,
    shuffle: bool,
    profile: str,
    frames: int,
    step: int,
    settle_ms: int,
    delay_ms: int,
    frame_timeout: float | None,
    workers: int,
    dither: bool,
    proxy_base: str | None,
    output_dir: Path,
    log_dir: Path | None,
    verbose: bool,
) -> None:
    """Render the promotional scene and save it as an animated GIF."""
    setup_logging(log_dir, "DEBUG" if verbose else "WARNING")

    try:
        # Flags given on the command line win over PROMOGIF_CONFIG_* variables
        explicit = {
            field_name: ctx.params[option]
            for option, field_name in PIPELINE_OPTIONS.items()
            if ctx.get_parameter_source(option) is not ParameterSource.DEFAULT
        }
        config = PipelineConfig.from_env(**explicit)
        content = SceneContent(
            site_name=site_name,
            logo_url=logo,
            background_url=background,
            header_text=header,
            link_texts=links or SceneContent.link_texts,
            footer_text=footer,
            search_text=search,
            modal_title=modal_title,
            modal_footer=modal_footer,
            slideshow=tuple(SlideshowImage(url) for url in slides),
        )
        scene = Scene(content, get_style(style_id))
        site = None
        if site_id is not None:
            if presets_path is None:
                raise ConfigurationError("--site needs a --presets file")
            site = get_site(load_site_presets(presets_path), site_id)
            scene.apply_site(site)
            scene.update(**{
                field_name: getattr(content, field_name)
                for option, field_name in SITE_CONTENT_OPTIONS.items()
                if ctx.get_parameter_source(option) is not ParameterSource.DEFAULT
            })
        if shuffle and ctx.get_parameter_source("background") is ParameterSource.DEFAULT:
            scene.update(background_url=shuffle_background(site))
    except PromoGifError as e:
        click.echo(f"❌ Invalid configuration: {e}", err=True)
        sys.exit(2)

    sink = DirectorySink(output_dir)
    target = config.profile
    click.echo(f"🎞️  Generating {target.width}x{target.height} GIF ({config.total_frames} frames)")

    artifact = asyncio.run(_run_pipeline(scene, config, sink, proxy_base))

    if artifact is None:
        click.echo("❌ GIF generation failed", err=True)
        sys.exit(1)

    click.echo(f"✅ Saved {sink.delivered[-1]} ({artifact.size_mb:.2f} MB)")


async def _run_pipeline(scene: Scene, config: PipelineConfig, sink: DirectorySink, proxy_base: str | None):
    failures: list[PromoGifError] = []

    async with ImageFetcher(proxy_base=proxy_base) as fetcher:
        coordinator = PipelineCoordinator(scene, PillowRasterizer(fetcher), config, sink=sink)
        coordinator.on_failure(failures.append)

        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            TextColumn("{task.completed:>3.0f}%"),
            console=console,
            transient=True,
        ) as progress:
            task = progress.add_task("Capturing frames...", total=100)
            coordinator.on_progress(lambda percent: progress.update(task, completed=percent))
            artifact = await coordinator.generate()

    for error in failures:
        console.print(f"[red]{error}[/red]")
    return artifact


@main.command("profiles")
def list_profiles() -> None:
    """List output size profiles."""
    table = Table(title="Output profiles")
    table.add_column("Profile")
    table.add_column("Size")
    table.add_column("Quality", justify="right")
    table.add_column("Expected file size")
    for profile in OUTPUT_PROFILES.values():
        table.add_row(profile.name, f"{profile.width}x{profile.height}", str(profile.quality), profile.size_hint)
    console.print(table)


@main.command("styles")
def list_styles() -> None:
    """List colour themes."""
    table = Table(title="Styles")
    table.add_column("Id")
    table.add_column("Name")
    table.add_column("Primary")
    table.add_column("Secondary")
    table.add_column("Background")
    for style in STYLES:
        table.add_row(
            style.id,
            style.name,
            f"[{style.primary_color}]{style.primary_color}[/]",
            f"[{style.secondary_color}]{style.secondary_color}[/]",
            style.background_color,
        )
    console.print(table)


@main.command("backgrounds")
@click.option(
    "--presets",
    "presets_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="JSON file of site presets",
)
@click.option("--site", "site_id", default=None, help="Show this site's exclusive backgrounds first")
def list_backgrounds(presets_path: Path | None, site_id: str | None) -> None:
    """List background image categories."""
    try:
        site = None
        if site_id is not None:
            if presets_path is None:
                raise ConfigurationError("--site needs a --presets file")
            site = get_site(load_site_presets(presets_path), site_id)
    except PromoGifError as e:
        click.echo(f"❌ Invalid configuration: {e}", err=True)
        sys.exit(2)

    table = Table(title="Backgrounds")
    table.add_column("Category")
    table.add_column("Name")
    table.add_column("Images", justify="right")
    for category in background_categories_for(site):
        table.add_row(category.id, category.name, str(len(category.backgrounds)))
    console.print(table)


@main.command("proxy")
@click.option("--host", default="127.0.0.1", show_default=True)
@click.option("--port", type=int, default=8000, show_default=True)
def serve_proxy(host: str, port: int) -> None:
    """Serve the image proxy (GET /proxy?url=...)."""
    import uvicorn

    from .proxy import create_app

    setup_logging(None, "INFO")
    click.echo(f"🌐 Image proxy listening on http://{host}:{port}/proxy")
    uvicorn.run(create_app(), host=host, port=port)


if __name__ == "__main__":
    main()
