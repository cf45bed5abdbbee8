import logging
from pathlib import Path

import orjson
import typer
from pydantic import ValidationError
from rich.console import Console
from rich.table import Table

from good_render.config import RenderCacheConfig
from good_render.errors import GoodRenderError
from good_render.pipeline import RenderPipeline
from good_render.utilities.logger import configure_library_logging

app = typer.Typer(help="good-render compiled template cache")
console = Console()
err_console = Console(stderr=True)


@app.callback()
def main(
    ctx: typer.Context,
    config_file: Path = typer.Option(None, "--config", "-c", help="Path to good-render.yaml"),
    templates_dir: Path = typer.Option(None, "--templates-dir", help="Template store root"),
    cache_dir: Path = typer.Option(None, "--cache-dir", help="Persistent artifact directory"),
    cache_map_dir: Path = typer.Option(None, "--cache-map-dir", help="Directory of the cache map file"),
    extension: str = typer.Option(None, "--extension", "-e", help="Template file extension"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
):
    """Build the pipeline configuration shared by all sub-commands."""
    level = logging.DEBUG if verbose else logging.WARNING
    configure_library_logging(level=level, console=err_console)
    try:
        ctx.obj = RenderCacheConfig.load(
            config_file,
            templates_dir=_absolute(templates_dir),
            cache_dir=_absolute(cache_dir),
            cache_map_dir=_absolute(cache_map_dir),
            templates_extension=extension,
        )
    except (GoodRenderError, ValidationError) as exc:
        err_console.print(f"[red]Invalid configuration:[/red] {exc}")
        raise typer.Exit(code=2)


def _absolute(path: Path | None) -> Path | None:
    return path.resolve() if path is not None else None


def _pipeline(ctx: typer.Context) -> RenderPipeline:
    pipeline = RenderPipeline(ctx.obj)
    try:
        pipeline.initialize()
    except GoodRenderError as exc:
        err_console.print(f"[red]Initialization failed:[/red] {exc}")
        raise typer.Exit(code=1)
    return pipeline


@app.command()
def check(ctx: typer.Context):
    """Compare template timestamps with the cache map and drop stale artifacts."""
    pipeline = RenderPipeline(ctx.obj)
    try:
        result = pipeline.initialize()
    except GoodRenderError as exc:
        err_console.print(f"[red]Check failed:[/red] {exc}")
        raise typer.Exit(code=1)

    if result.dropped:
        console.print(f"[yellow]Cache dropped[/yellow]: changed {', '.join(result.changed)}")
    elif result.stale:
        console.print("Templates changed; cache directory was already empty")
    else:
        console.print("[green]Cache is up to date[/green]")
    console.print(f"Tracked templates: {len(result.modification_map)}")


@app.command("list")
def list_templates(ctx: typer.Context):
    """List templates in the store and whether they have a cached artifact."""
    pipeline = _pipeline(ctx)
    table = Table(title=f"Templates in {pipeline.store.root}")
    table.add_column("Name")
    table.add_column("Cached")
    for name in sorted(pipeline.store.list_all()):
        if not pipeline.store.exists(name):
            continue
        table.add_row(name, "yes" if pipeline.cache.has_artifact(name) else "no")
    console.print(table)


@app.command()
def render(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Template name, e.g. emails/welcome"),
    data: str = typer.Option(None, "--data", "-d", help="Template data as a JSON object"),
    partials: list[str] = typer.Option(None, "--partials", "-p", help="Folder of partials to register"),
    no_cache: bool = typer.Option(False, "--no-cache", help="Compile without reading or writing the cache"),
):
    """Render a template and print the output."""
    payload = {}
    if data:
        try:
            payload = orjson.loads(data)
        except orjson.JSONDecodeError as exc:
            err_console.print(f"[red]--data is not valid JSON:[/red] {exc}")
            raise typer.Exit(code=2)
        if not isinstance(payload, dict):
            err_console.print("[red]--data must be a JSON object[/red]")
            raise typer.Exit(code=2)

    pipeline = _pipeline(ctx)
    try:
        for folder in partials or []:
            pipeline.add_partials(folder)
        output = pipeline.render(name, payload, use_cache=not no_cache)
    except GoodRenderError as exc:
        err_console.print(f"[red]Render failed:[/red] {exc}")
        raise typer.Exit(code=1)
    typer.echo(output, nl=False)


@app.command("clear-cache")
def clear_cache(ctx: typer.Context):
    """Delete every persisted artifact."""
    pipeline = RenderPipeline(ctx.obj)
    try:
        dropped = pipeline.cache.drop_persistent()
    except GoodRenderError as exc:
        err_console.print(f"[red]Clear failed:[/red] {exc}")
        raise typer.Exit(code=1)
    console.print("Cache cleared" if dropped else "Cache already empty")


@app.command()
def export(
    ctx: typer.Context,
    partials: list[str] = typer.Option(None, "--partials", "-p", help="Folder of partials to register"),
):
    """Print every template wrapped in script tags for inline delivery."""
    pipeline = _pipeline(ctx)
    try:
        for folder in partials or []:
            pipeline.add_partials(folder)
        typer.echo(pipeline.export_templates())
    except GoodRenderError as exc:
        err_console.print(f"[red]Export failed:[/red] {exc}")
        raise typer.Exit(code=1)


if __name__ == "__main__":
    app()
