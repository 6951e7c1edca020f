#!/usr/bin/env python3
"""
nativepack CLI - build multi-architecture native packages and place the
right binary for a consumer build.
"""

from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from .artifacts import ConsumerContext, PackageManifest
from .config import Settings, get_settings
from .descriptor import (
    REQUIRED_DESCRIPTORS,
    ArchitectureDescriptor,
    all_descriptors,
    parse_architecture,
    parse_configuration,
)
from .exceptions import MatrixFailure, NativePackError
from .logging import setup_logging
from .platform_utils import detect_target
from .resolver import resolve_and_place

app = typer.Typer(
    name="nativepack",
    help="Package a native library for every architecture and place the right binary",
    no_args_is_help=True,
)
console = Console()
err_console = Console(stderr=True)


@app.callback()
def main_options(
    log: Optional[str] = typer.Option(
        None, "--log", help="Enable logging: file, stdout or both"
    ),
    log_file: Optional[Path] = typer.Option(None, "--log-file", help="Custom log file path"),
):
    """Global options."""
    if log or log_file:
        setup_logging(output=log or "file", log_file_path=str(log_file) if log_file else None)


@app.command()
def targets():
    """List every architecture/configuration descriptor."""
    table = Table(title="Build Targets")
    table.add_column("Descriptor", style="cyan")
    table.add_column("Platform tag", style="green")
    table.add_column("Required", style="white")

    for descriptor in all_descriptors():
        required = "yes" if descriptor in REQUIRED_DESCRIPTORS else "optional"
        table.add_row(str(descriptor), descriptor.platform_tag, required)

    console.print(table)


@app.command()
def build(
    source: Path = typer.Argument(..., help="Native source directory"),
    staging: Path = typer.Argument(..., help="Package output directory"),
    version: Optional[str] = typer.Option(
        None, "--version", help="Declared package version (defaults to the recorded source version)"
    ),
    debug: Optional[bool] = typer.Option(
        None, "--debug/--no-debug", help="Also build debug artifacts (default: from settings)"
    ),
    jobs: Optional[int] = typer.Option(None, "--jobs", "-j", min=1, help="Parallel builds"),
    script: Optional[str] = typer.Option(None, "--script", help="Build script in the source directory"),
):
    """Build the full architecture matrix and write the package."""
    from build_native.compiler import ScriptToolchain
    from build_native.pipeline import package_release

    settings = get_settings()
    if jobs is not None:
        settings = Settings(
            library_name=settings.library_name,
            binary_name=settings.binary_name,
            version_file=settings.version_file,
            max_workers=jobs,
            include_debug=settings.include_debug,
        )

    try:
        manifest = package_release(
            source,
            staging,
            ScriptToolchain(script=script),
            version=version,
            include_debug=debug,
            settings=settings,
        )
    except MatrixFailure as e:
        table = Table(title="Build Failures")
        table.add_column("Descriptor", style="red")
        table.add_column("Diagnostic", style="white")
        for failure in e.failures:
            table.add_row(str(failure.descriptor), failure.diagnostic)
        err_console.print(table)
        err_console.print(f"[red]{len(e.failures)} descriptor(s) failed; no package was produced[/red]")
        raise typer.Exit(1)
    except NativePackError as e:
        err_console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)

    console.print(
        f"[green]Packaged {manifest.name} {manifest.version}[/green] "
        f"({len(manifest.entries)} artifacts) at {staging}",
        soft_wrap=True,
    )


@app.command()
def show(package: Path = typer.Argument(..., help="Package directory or manifest.json")):
    """Show the artifacts recorded in a package manifest."""
    try:
        manifest = PackageManifest.load(package)
    except NativePackError as e:
        err_console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)

    table = Table(title=f"{manifest.name} {manifest.version}")
    table.add_column("Descriptor", style="cyan", no_wrap=True)
    table.add_column("Path", style="green")
    table.add_column("Size", justify="right")
    table.add_column("SHA-256", style="white", overflow="fold")
    for descriptor in manifest.descriptors():
        artifact = manifest.entries[descriptor]
        table.add_row(
            str(descriptor), Path(artifact.binary_path).as_posix(),
            str(artifact.size_bytes), artifact.content_hash,
        )
    console.print(table)


@app.command()
def place(
    package: Path = typer.Argument(..., help="Package directory or manifest.json"),
    output: Path = typer.Argument(..., help="Consumer output directory"),
    arch: Optional[str] = typer.Option(None, "--arch", "-a", help="Target architecture (default: detected)"),
    configuration: Optional[str] = typer.Option(
        None, "--configuration", "-C", help="Target configuration (default: detected)"
    ),
):
    """Copy the binary matching the target architecture into OUTPUT."""
    try:
        if arch is None:
            target = detect_target()
            if configuration:
                target = ArchitectureDescriptor(target.architecture, parse_configuration(configuration))
        else:
            target = ArchitectureDescriptor(
                parse_architecture(arch), parse_configuration(configuration or "release")
            )
        manifest = PackageManifest.load(package)
        result = resolve_and_place(manifest, ConsumerContext(target, output))
    except ValueError as e:
        err_console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(2)
    except NativePackError as e:
        err_console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)

    if result.fell_back:
        err_console.print(f"[yellow]Warning:[/yellow] no debug artifact for {target.architecture.value}; used release")
    state = "copied" if result.copied else "up to date"
    console.print(f"{result.artifact.descriptor} -> {result.destination} ({state})", soft_wrap=True)


def main():
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
