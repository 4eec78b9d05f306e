"""Thin CLI wrapper for warpackager.

This module provides the command-line interface using Typer.
All business logic is delegated to core modules.
"""

from importlib import resources
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.markup import escape

from warpackager import __version__
from warpackager.config import get_settings, print_settings_json
from warpackager.errors import PackagerError
from warpackager.log import configure_logging

app = typer.Typer(
    name="warpackager",
    help="WAR Packager - build custom WAR bundles from plugins and patches",
    no_args_is_help=True,
)
console = Console()

DEMO_CONFIG = "packager-config.yml"


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"warpackager version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Annotated[
        bool | None,
        typer.Option(
            "--version",
            "-V",
            help="Show version and exit",
            callback=version_callback,
            is_eager=True,
        ),
    ] = None,
) -> None:
    """WAR Packager - build custom WAR bundles from plugins and patches."""


def _config_path(config_path: Path | None, demo: bool) -> Path:
    if demo:
        return Path(str(resources.files("warpackager.demo").joinpath(DEMO_CONFIG)))
    if config_path is None:
        console.print("[red]Either --config or --demo is required[/red]")
        raise typer.Exit(code=1)
    return config_path


@app.command()
def config(
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output as JSON"),
    ] = False,
) -> None:
    """Show effective configuration."""
    settings = get_settings()
    if json_output:
        console.print(print_settings_json(settings))
        return

    timeout_display = (
        str(settings.command_timeout) if settings.command_timeout else "(none)"
    )
    console.print("[bold]Effective Configuration:[/bold]")
    console.print()
    console.print("[bold]Paths:[/bold]")
    console.print(f"  Artifact store:      {settings.artifact_store_root}")
    console.print()
    console.print("[bold]Tools:[/bold]")
    console.print(f"  Maven command:       {settings.mvn_command}")
    console.print(f"  Git command:         {settings.git_command}")
    console.print()
    console.print("[bold]Operational:[/bold]")
    console.print(f"  Cache disabled:      {settings.no_cache}")
    console.print(f"  Log level:           {settings.log_level}")
    console.print(f"  Max builds:          {settings.max_concurrent_builds}")
    console.print(f"  Command timeout:     {timeout_display}")


@app.command()
def verify(
    config_path: Annotated[
        Path | None,
        typer.Option("--config", "-c", help="Path to packager configuration"),
    ] = None,
    demo: Annotated[
        bool,
        typer.Option("--demo", help="Use the bundled demo configuration"),
    ] = False,
) -> None:
    """Validate a packager configuration without building."""
    from warpackager.builds.pipeline import Packager
    from warpackager.packager.io import load_config

    path = _config_path(config_path, demo)
    try:
        packager_config = load_config(path)
        Packager(packager_config, settings=get_settings()).verify_config()
    except PackagerError as e:
        console.print(f"[red]Validation failed ({e.code}):[/red]")
        console.print(escape(str(e)))
        raise typer.Exit(code=1) from None

    console.print(f"[green]✓ Valid configuration: {path}[/green]")
    if packager_config.bundle is not None:
        console.print(
            f"  Bundle: {packager_config.bundle.group_id}:"
            f"{packager_config.bundle.artifact_id}:{packager_config.bundle.version}"
        )
    console.print(f"  WAR: {packager_config.war}")
    console.print(f"  Plugins: {len(packager_config.plugins)}")
    console.print(f"  Library patches: {len(packager_config.lib_patches)}")


@app.command()
def build(
    config_path: Annotated[
        Path | None,
        typer.Option("--config", "-c", help="Path to packager configuration"),
    ] = None,
    version: Annotated[
        str | None,
        typer.Option("--version", "-v", help="Version of the produced bundle"),
    ] = None,
    tmp_dir: Annotated[
        Path | None,
        typer.Option("--tmp-dir", help="Temporary directory (wiped before the build)"),
    ] = None,
    demo: Annotated[
        bool,
        typer.Option("--demo", help="Build the bundled demo configuration"),
    ] = False,
) -> None:
    """Build a custom WAR and its BOM."""
    from warpackager.builds.pipeline import run_packager
    from warpackager.packager.io import load_config

    settings = get_settings()
    configure_logging(settings.log_level)

    path = _config_path(config_path, demo)
    try:
        packager_config = load_config(path)
    except PackagerError as e:
        console.print(f"[red]Invalid configuration ({e.code}): {escape(str(e))}[/red]")
        raise typer.Exit(code=1) from None

    if tmp_dir is not None:
        packager_config.build_settings.tmp_dir = str(tmp_dir)
    if version is not None:
        if packager_config.bundle is None:
            console.print("[red]--version requires a bundle section in the configuration[/red]")
            raise typer.Exit(code=1)
        packager_config.bundle.version = version

    result = run_packager(packager_config, settings=settings)
    if not result.success:
        stage = result.details.get("stage")
        component = result.details.get("component")
        console.print(f"[red]Build failed ({result.code}): {escape(result.message)}[/red]")
        if stage:
            console.print(f"  Stage: {stage}")
        if component:
            console.print(f"  Component: {component}")
        if result.log_path:
            console.print(f"  Log: {result.log_path}")
        raise typer.Exit(code=1)

    console.print(f"[green]✓ {result.message}[/green]")
    console.print(f"  BOM: {result.details['bom']}")


__all__ = ["app"]
