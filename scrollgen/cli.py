"""Command-line interface for the scroll generator."""

import logging
from datetime import datetime
from pathlib import Path
from typing import Optional

import click
from PIL import Image
from rich.console import Console
from rich.logging import RichHandler
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from . import __version__
from .config import get_config
from .exceptions import ConfigurationError, GenerationFailedError, ImageProcessingError
from .models.model_profile import ModelRegistry


def timestamped_filename(base_name: str, extension: str = "png") -> str:
    """Generate a filename with timestamp to avoid overwrites.

    Args:
        base_name: Base name for the file (e.g., 'scroll_tile_00')
        extension: File extension without dot (default: 'png')

    Returns:
        Filename like 'scroll_tile_00_20240201_143052.png'
    """
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    return f"{base_name}_{timestamp}.{extension}"


console = Console()


@click.group()
@click.version_option(version=__version__)
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
def main(verbose: bool):
    """Scrollgen - Generate an endless top-down aerial scroll."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
    )


@main.command()
@click.option("--prompt", "-p", required=True, help="Theme of the scroll")
@click.option("--count", "-n", type=click.IntRange(1, 50), default=3, help="Number of tiles")
@click.option("--model", "-m", help="Model profile id (auto-selected if omitted)")
@click.option("--steps", type=click.IntRange(1, 50), help="Inference steps override")
@click.option("--seed", type=int, help="Seed of the first tile (incremented per tile)")
@click.option("--output", "-o", type=click.Path(), help="Output directory")
@click.option("--stitch/--no-stitch", default=True, help="Also save the stacked strip")
def generate(
    prompt: str,
    count: int,
    model: Optional[str],
    steps: Optional[int],
    seed: Optional[int],
    output: Optional[str],
    stitch: bool,
):
    """Generate a scroll of tiles, each continuing the one above it."""
    from .services.generation_service import GenerationRequest, GenerationService
    from .utils.image_utils import load_image_reference, save_image, stack_tiles

    config = get_config()
    if not config.replicate_api_token:
        console.print("[red]Error:[/red] REPLICATE_API_TOKEN is not set")
        raise SystemExit(1)

    output_dir = Path(output) if output else config.output_dir
    output_dir.mkdir(parents=True, exist_ok=True)

    service = GenerationService(config=config)
    session_id = f"cli-{datetime.now().strftime('%Y%m%d%H%M%S')}"

    console.print(f"[bold]Theme:[/bold] {prompt}")
    console.print(f"[bold]Tiles:[/bold] {count} at {config.image_width} x {config.image_height} px")

    images: list[Image.Image] = []
    previous_image: Optional[str] = None
    current_prompt = prompt

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        console=console,
    ) as progress:
        for index in range(count):
            task = progress.add_task(f"Generating tile {index + 1}/{count}...", total=None)
            request = GenerationRequest(
                previous_image=previous_image,
                current_prompt=current_prompt,
                original_user_prompt=prompt,
                model_name=model,
                inference_steps=steps,
                seed=seed + index if seed is not None else None,
                session_id=session_id,
            )

            try:
                outcome = service.generate(request)
                image = load_image_reference(outcome.tile.image_url, timeout=config.download_timeout)
            except (GenerationFailedError, ImageProcessingError) as e:
                progress.update(task, completed=True, description=f"[red]Tile {index + 1} failed")
                console.print(f"[red]Error:[/red] {e}")
                break

            tile_path = output_dir / timestamped_filename(f"scroll_tile_{index:02d}")
            save_image(image, tile_path)
            images.append(image)

            progress.update(
                task,
                completed=True,
                description=(
                    f"[green]Tile {index + 1}[/green] {outcome.model_used} "
                    f"({outcome.tile.strategy}, {outcome.tile.generation_time:.1f}s)"
                ),
            )

            previous_image = outcome.tile.image_url
            current_prompt = outcome.evolved_prompt or current_prompt

    if not images:
        raise SystemExit(1)

    console.print(f"[green]Saved {len(images)} tiles to:[/green] {output_dir}")

    if stitch and len(images) > 1:
        strip_path = output_dir / timestamped_filename("scroll_strip")
        save_image(stack_tiles(images), strip_path)
        console.print(f"[green]Saved strip:[/green] {strip_path}")


@main.command()
@click.argument("image_path", type=click.Path(exists=True))
@click.option("--output", "-o", type=click.Path(), help="Output directory")
def mask(image_path: str, output: Optional[str]):
    """Build the outpainting canvas and mask for a local tile."""
    from .services.outpainting_service import OutpaintingService
    from .utils.image_utils import save_image

    config = get_config()
    source = Path(image_path)
    output_dir = Path(output) if output else source.parent

    service = OutpaintingService(settings=config.outpaint, canvas_size=config.canvas_size)
    try:
        with Image.open(source) as image:
            setup = service.create_setup(image)
    except (ImageProcessingError, OSError) as e:
        console.print(f"[red]Error:[/red] {e}")
        raise SystemExit(1)

    canvas_path = output_dir / f"{source.stem}_canvas.png"
    mask_path = output_dir / f"{source.stem}_mask.png"
    save_image(setup.canvas, canvas_path)
    save_image(setup.mask, mask_path)

    console.print(f"[bold]Slice:[/bold] {setup.slice_height}px "
                  f"(preserve {setup.preserve_height}px, gradient {setup.gradient_zone}px)")
    console.print(f"[green]Saved canvas:[/green] {canvas_path}")
    console.print(f"[green]Saved mask:[/green] {mask_path}")


@main.command()
def models():
    """List available model profiles."""
    config = get_config()
    registry = ModelRegistry.load(config.models_file)

    table = Table(title="Model Profiles")
    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("Model")
    table.add_column("Steps", justify="right")
    table.add_column("Guidance", justify="right")
    table.add_column("Inpaint")
    table.add_column("Use case")

    for profile in registry.profiles():
        marker = " *" if profile.id == config.default_model else ""
        table.add_row(
            profile.id + marker,
            profile.name,
            str(profile.steps),
            f"{profile.guidance_scale:.1f}",
            "yes" if profile.supports_outpainting else "no",
            profile.use_case,
        )

    console.print(table)
    console.print("[dim]* default model[/dim]")


@main.command()
def health():
    """Check which backend credentials are configured."""
    config = get_config()

    for name, present in config.credential_status().items():
        status = "[green]configured[/green]" if present else "[red]missing[/red]"
        console.print(f"  {name}: {status}")

    try:
        config.require_credentials()
    except ConfigurationError as e:
        console.print(f"\n[yellow]Warning:[/yellow] {e}")
        raise SystemExit(1)

    console.print("\n[green]All credentials configured[/green]")


if __name__ == "__main__":
    main()
