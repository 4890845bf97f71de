"""
keg — CLI entrypoint.

Usage:
    python -m keg.main --help
    python -m keg.main install dist/hello-1.0.keg
    python -m keg.main uninstall hello --version "< 2"
    python -m keg.main list
"""

from __future__ import annotations

import os
import sys
from pathlib import Path
from typing import NoReturn

import click

from keg import __version__
from keg.core.config.loader import KegConfig, load_config
from keg.core.errors import KegError
from keg.core.observability.logging_config import setup_logging


@click.group()
@click.version_option(version=__version__, prog_name="keg")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output.")
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output.")
@click.option("--debug", is_flag=True, help="Enable debug logging (very verbose).")
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(exists=False),
    default=None,
    help="Path to keg.yml (default: KEG_CONFIG or ~/.config/keg/keg.yml).",
)
@click.option(
    "--install-dir",
    "-i",
    type=click.Path(file_okay=False),
    default=None,
    help="Install root (default: KEG_HOME or ~/.keg).",
)
@click.pass_context
def cli(
    ctx: click.Context,
    verbose: bool,
    quiet: bool,
    debug: bool,
    config_path: str | None,
    install_dir: str | None,
) -> None:
    """keg — install and uninstall local packages."""
    ctx.ensure_object(dict)

    if debug:
        level = "DEBUG"
    elif verbose:
        level = "INFO"
    elif quiet:
        level = "ERROR"
    else:
        level = os.environ.get("KEG_LOG_LEVEL", "WARNING")

    setup_logging(
        level=level,
        log_file=os.environ.get("KEG_LOG_FILE"),
        log_file_level=os.environ.get("KEG_LOG_FILE_LEVEL"),
    )

    ctx.obj["config_path"] = Path(config_path) if config_path else None
    ctx.obj["install_dir"] = Path(install_dir) if install_dir else None


def _config(ctx: click.Context, **overrides) -> KegConfig:
    try:
        return load_config(
            ctx.obj.get("config_path"),
            install_dir=ctx.obj.get("install_dir"),
            **overrides,
        )
    except KegError as e:
        _fail(e)


def _fail(error: Exception) -> NoReturn:
    click.secho(f"❌ {error}", fg="red", err=True)
    sys.exit(1)


@cli.command()
@click.argument("archive", type=click.Path(exists=True, dir_okay=False))
@click.argument("build_args", nargs=-1, type=click.UNPROCESSED)
@click.option("--force", "-f", is_flag=True, help="Install even if dependencies are missing.")
@click.option("--no-stub", is_flag=True, help="Do not write a library stub.")
@click.pass_context
def install(
    ctx: click.Context,
    archive: str,
    build_args: tuple[str, ...],
    force: bool,
    no_stub: bool,
) -> None:
    """Install a .keg ARCHIVE.

    Arguments after ``--`` are passed to native extension build scripts.
    """
    from keg.core.services.install.installer import Installer

    config = _config(ctx, build_args=list(build_args) or None)
    installer = Installer(config)
    try:
        installer.install(Path(archive), force=force, install_stub=not no_stub)
    except KegError as e:
        _fail(e)


@cli.command()
@click.argument("name")
@click.option("--version", "requirement", default="> 0", show_default=True, help="Version requirement.")
@click.pass_context
def uninstall(ctx: click.Context, name: str, requirement: str) -> None:
    """Uninstall package NAME."""
    from keg.core.services.install.uninstaller import Uninstaller

    config = _config(ctx)
    try:
        Uninstaller(config).uninstall(name, requirement)
    except KegError as e:
        _fail(e)


@cli.command("list")
@click.argument("name", required=False)
@click.pass_context
def list_packages(ctx: click.Context, name: str | None) -> None:
    """List installed packages."""
    from keg.core.services.install.index import PackageIndex

    config = _config(ctx)
    index = PackageIndex(config.install_dir)
    specs = index.search(name) if name else index.all()
    if not specs:
        click.echo("No packages installed.")
        return
    for spec in specs:
        summary = f"  {spec.summary}" if spec.summary else ""
        click.echo(f"{spec.full_name}{summary}")


if __name__ == "__main__":
    cli()
