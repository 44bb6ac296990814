"""release_installer CLI entry point."""

from __future__ import annotations

import sys
from pathlib import Path
from types import SimpleNamespace
from typing import Callable, Optional, Sequence

import click
import typer

from . import __version__
from .commands import (
    handle_cache_clean,
    handle_cache_list,
    handle_cache_paths,
    handle_cache_remove,
    handle_install,
)
from .console import configure_console, log_error
from .constants import EXIT_CODE_FAILURE, EXIT_CODE_INTERRUPT, EXIT_CODE_USAGE
from .errors import CLIError

app = typer.Typer(help="Install a release binary into the tool cache and put it on PATH")
cache_app = typer.Typer(help="Inspect and clean the tool cache")
app.add_typer(cache_app, name="cache")


def _run(handler: Callable[[SimpleNamespace], int], args: SimpleNamespace) -> None:
    try:
        rc = handler(args)
    except CLIError as exc:
        log_error(f"error: {exc}")
        raise typer.Exit(code=EXIT_CODE_FAILURE) from exc
    raise typer.Exit(code=rc)


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"release_installer {__version__}")
        raise typer.Exit()


@app.callback(invoke_without_command=True)
def cli_callback(
    ctx: typer.Context,
    version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="show the release_installer version and exit",
    ),
    verbose: bool = typer.Option(False, "--verbose", help="print debug output"),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="only print errors and results"),
) -> None:
    configure_console(quiet=quiet, verbose=verbose)
    if ctx.invoked_subcommand is None:
        typer.echo(ctx.get_help())
        raise typer.Exit(code=EXIT_CODE_USAGE)


@app.command()
def install(
    name: str = typer.Argument(..., help="tool name; also the executable name"),
    version: str = typer.Argument(..., help="exact tool version"),
    url: Optional[str] = typer.Option(
        None,
        "--url",
        help="download url template; ${name} ${version} ${os} ${arch} ${ext} are expanded",
    ),
    subdir: Optional[str] = typer.Option(
        None, "--subdir", help="directory inside the archive holding the executable (templated)"
    ),
    ext: Optional[str] = typer.Option(
        None, "--ext", help="package extension: tar.gz, zip, 7z or xar"
    ),
    no_extract: bool = typer.Option(
        False, "--no-extract", help="the url points at the executable itself"
    ),
    os_name: Optional[str] = typer.Option(None, "--os-name", help="value for ${os}"),
    arch_name: Optional[str] = typer.Option(None, "--arch-name", help="value for ${arch}"),
    sha256: Optional[str] = typer.Option(None, "--sha256", help="expected SHA-256 of the download"),
    github_token: Optional[str] = typer.Option(
        None,
        "--github-token",
        help="token for private GitHub releases (default: $RELEASE_INSTALLER_GITHUB_TOKEN or $GITHUB_TOKEN)",
    ),
    fixed_dir: bool = typer.Option(
        False,
        "--fixed-dir",
        help="install into a plain directory instead of the tool cache (implied by $CONTAINER_ID)",
    ),
    target_dir: Optional[Path] = typer.Option(
        None, "--target-dir", help="directory for fixed installs (default: ~/.local/bin)"
    ),
    config: Optional[Path] = typer.Option(
        None, "--config", "-c", help="TOML file with per-tool presets"
    ),
) -> None:
    """Install NAME at VERSION unless it is already cached; print its directory."""
    args = SimpleNamespace(
        name=name,
        version=version,
        url=url,
        subdir=subdir,
        ext=ext,
        no_extract=no_extract,
        os_name=os_name,
        arch_name=arch_name,
        sha256=sha256,
        github_token=github_token,
        fixed_dir=fixed_dir,
        target_dir=target_dir,
        config=config,
    )
    _run(handle_install, args)


@cache_app.command("list")
def cache_list(
    name: Optional[str] = typer.Argument(None, help="only show this tool"),
    json_output: bool = typer.Option(False, "--json", help="emit JSON"),
    pretty: bool = typer.Option(False, "--pretty", help="indent JSON output"),
) -> None:
    _run(handle_cache_list, SimpleNamespace(name=name, json=json_output, pretty=pretty))


@cache_app.command("paths")
def cache_paths(
    json_output: bool = typer.Option(False, "--json", help="emit JSON"),
    pretty: bool = typer.Option(False, "--pretty", help="indent JSON output"),
) -> None:
    _run(handle_cache_paths, SimpleNamespace(json=json_output, pretty=pretty))


@cache_app.command("remove")
def cache_remove(
    name: str = typer.Argument(..., help="tool name"),
    version: str = typer.Argument(..., help="tool version"),
    arch: Optional[str] = typer.Option(None, "--arch", help="architecture (default: this machine)"),
) -> None:
    _run(handle_cache_remove, SimpleNamespace(name=name, version=version, arch=arch))


@cache_app.command("clean")
def cache_clean(
    tmp: bool = typer.Option(False, "--tmp", help="delete leftover scratch files (default)"),
    tools: bool = typer.Option(False, "--tools", help="delete every cached tool"),
    all_: bool = typer.Option(False, "--all", help="delete scratch files and cached tools"),
    force: bool = typer.Option(False, "--force", help="actually delete (default is a dry run)"),
    json_output: bool = typer.Option(False, "--json", help="emit JSON"),
    pretty: bool = typer.Option(False, "--pretty", help="indent JSON output"),
) -> None:
    args = SimpleNamespace(
        tmp=tmp, tools=tools, all=all_, force=force, json=json_output, pretty=pretty
    )
    _run(handle_cache_clean, args)


def main(argv: Optional[Sequence[str]] = None) -> int:
    command = typer.main.get_command(app)
    try:
        rc = command.main(
            args=list(argv) if argv is not None else None,
            prog_name="release_installer",
            standalone_mode=False,
        )
    except (KeyboardInterrupt, click.Abort):
        log_error("interrupted")
        return EXIT_CODE_INTERRUPT
    except click.ClickException as exc:
        exc.show()
        return exc.exit_code
    except SystemExit as exc:
        return int(exc.code or 0)
    return rc if isinstance(rc, int) else 0


if __name__ == "__main__":
    sys.exit(main())
