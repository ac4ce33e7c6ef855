"""
houseforge.cli - Command Line Interface
=======================================

This module provides the command-line interface for houseforge using
Typer.

Architecture
------------
    app (main entry point)
    ├── create   - Create a new package
    ├── update   - Refresh managed files and package.json
    ├── upload   - Upload a built directory to object storage
    └── schema   - Print the JSON Schema of houseforge.json

Every command exits with code 0 on success and 1 on any error, with a
readable message on standard error.

Usage Examples
--------------
    $ houseforge create my-lib --scope acme
    $ houseforge update --eslint --deps
    $ houseforge upload --remote-dir my-lib/v1 --yes
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import questionary
import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from houseforge import __version__
from houseforge.generator import create_project, settings_json_schema, update_project
from houseforge.models import UpdateGroup
from houseforge.uploader import (
    collect_upload_tasks,
    default_credentials_path,
    read_credentials,
    resolve_upload_target,
    upload_project,
)


# =============================================================================
# CLI Application Setup
# =============================================================================

app = typer.Typer(
    name="houseforge",
    help="Scaffold and refresh TypeScript packages to a house style.",
    no_args_is_help=True,
    rich_markup_mode="rich",
    add_completion=True,
)

console = Console()
err_console = Console(stderr=True)


def fail(error: BaseException | str) -> typer.Exit:
    """Print an error on stderr and return the exit to raise."""
    err_console.print(f"[red]Error:[/] {error}")
    return typer.Exit(1)


# =============================================================================
# Version Callback
# =============================================================================

def version_callback(value: bool) -> None:
    """Display version information and exit."""
    if value:
        console.print(Panel(
            f"[bold green]houseforge[/] version [cyan]{__version__}[/]\n\n"
            f"[dim]TypeScript package scaffolding and refresh[/]",
            border_style="green",
        ))
        raise typer.Exit()


@app.callback()
def main(
    version: Annotated[
        bool | None,
        typer.Option(
            "--version",
            "-V",
            help="Show version and exit.",
            callback=version_callback,
            is_eager=True,
        ),
    ] = None,
) -> None:
    """
    [bold]houseforge[/] - TypeScript package scaffolding.

    Creates packages with the house toolchain
    ([cyan]vite[/] + [cyan]vitest[/] + [cyan]eslint[/] + [cyan]typedoc[/])
    and keeps existing ones in line with it.

    [bold]Quick Start:[/]

        houseforge create my-lib
        houseforge update
    """


# =============================================================================
# Create Command
# =============================================================================

@app.command()
def create(
    name: Annotated[
        str,
        typer.Argument(help="Name of the package to create"),
    ],
    directory: Annotated[
        Path,
        typer.Option(
            "--directory",
            "-d",
            help="Parent directory of the new package",
        ),
    ] = Path("."),
    examples: Annotated[
        bool,
        typer.Option(
            "--examples/--no-examples",
            help="Create the examples/ directory",
        ),
    ] = True,
    vitest: Annotated[
        bool,
        typer.Option(
            "--vitest/--no-vitest",
            help="Include the vitest setup",
        ),
    ] = True,
    scope: Annotated[
        str | None,
        typer.Option(
            "--scope",
            "-s",
            help="npm scope, e.g. [cyan]acme[/] for @acme/<name>",
        ),
    ] = None,
    description: Annotated[
        str,
        typer.Option("--description", help="package.json description"),
    ] = "",
) -> None:
    """
    Create a new package.

    [bold]Examples:[/]

        houseforge create my-lib
        houseforge create my-lib --scope acme --no-examples
    """
    try:
        result = create_project(
            name,
            directory,
            examples=examples,
            vitest=vitest,
            scope=scope,
            description=description,
        )
    except Exception as e:
        raise fail(e) from e

    if not result.success and result.update is not None:
        raise fail(f"{result.update.failure_count} file(s) could not be written")


# =============================================================================
# Update Command
# =============================================================================

@app.command()
def update(
    directory: Annotated[
        Path,
        typer.Option("--directory", "-d", help="Project directory"),
    ] = Path("."),
    config: Annotated[bool, typer.Option("--config", help="Refresh houseforge.json")] = False,
    gitignore: Annotated[bool, typer.Option("--gitignore", help="Refresh .gitignore")] = False,
    cursorrules: Annotated[bool, typer.Option("--cursorrules", help="Refresh .cursorrules")] = False,
    eslint: Annotated[bool, typer.Option("--eslint", help="Refresh ESLint config and scripts")] = False,
    publish: Annotated[bool, typer.Option("--publish", help="Refresh the publish workflow and scripts")] = False,
    pages: Annotated[bool, typer.Option("--pages", help="Refresh the pages and upload workflows")] = False,
    pull_request: Annotated[bool, typer.Option("--pull-request", help="Refresh the pull request workflow")] = False,
    typedoc: Annotated[bool, typer.Option("--typedoc", help="Refresh TypeDoc config and scripts")] = False,
    test: Annotated[bool, typer.Option("--test", help="Refresh the test bootstrap and scripts")] = False,
    deps: Annotated[bool, typer.Option("--deps", help="Sync devDependency versions")] = False,
    husky: Annotated[bool, typer.Option("--husky", help="Refresh the pre-commit hook")] = False,
    license_: Annotated[bool, typer.Option("--license", help="Create LICENSE if missing")] = False,
    vscode: Annotated[bool, typer.Option("--vscode", help="Refresh VS Code settings")] = False,
    tsconfig: Annotated[bool, typer.Option("--tsconfig", help="Refresh TypeScript and vite config")] = False,
    all_: Annotated[bool, typer.Option("--all", help="Refresh every group enabled in houseforge.json")] = False,
    migrate: Annotated[
        bool,
        typer.Option(
            "--migrate",
            help="Force-sync build and publish scripts and entry points",
        ),
    ] = False,
    scope: Annotated[
        str | None,
        typer.Option("--scope", "-s", help="npm scope for a synthesized package.json"),
    ] = None,
) -> None:
    """
    Refresh managed files and package.json.

    With no group flag, every group enabled in the [cyan]update[/] section
    of houseforge.json is processed.

    [bold]Examples:[/]

        houseforge update
        houseforge update --eslint --deps
        houseforge update --migrate
    """
    flags = {
        UpdateGroup.CONFIG: config,
        UpdateGroup.GITIGNORE: gitignore,
        UpdateGroup.CURSORRULES: cursorrules,
        UpdateGroup.ESLINT: eslint,
        UpdateGroup.PUBLISH: publish,
        UpdateGroup.PAGES: pages,
        UpdateGroup.PULL_REQUEST: pull_request,
        UpdateGroup.TYPEDOC: typedoc,
        UpdateGroup.TEST: test,
        UpdateGroup.DEPS: deps,
        UpdateGroup.HUSKY: husky,
        UpdateGroup.LICENSE: license_,
        UpdateGroup.VSCODE: vscode,
        UpdateGroup.TSCONFIG: tsconfig,
    }
    selected = [group for group, enabled in flags.items() if enabled]

    try:
        result = update_project(
            directory,
            selected,
            all_groups=all_,
            migrate=migrate,
            scope=scope,
        )
    except Exception as e:
        raise fail(e) from e

    if not result.success:
        raise fail(f"{result.failure_count} file(s) could not be updated")


# =============================================================================
# Upload Command
# =============================================================================

@app.command()
def upload(
    directory: Annotated[
        Path,
        typer.Option("--directory", "-d", help="Project directory"),
    ] = Path("."),
    local_dir: Annotated[
        Path | None,
        typer.Option(
            "--local-dir",
            "-l",
            help="Directory to upload, relative to the project (default: oss.localDir)",
        ),
    ] = None,
    remote_dir: Annotated[
        str | None,
        typer.Option(
            "--remote-dir",
            "-r",
            help="Remote directory (default: oss.ossDir, then the package name)",
        ),
    ] = None,
    credentials: Annotated[
        Path | None,
        typer.Option(
            "--credentials",
            "-c",
            help="Credential file (default: ~/oss_config.json)",
        ),
    ] = None,
    yes: Annotated[
        bool,
        typer.Option("--yes", "-y", help="Skip the confirmation prompt"),
    ] = False,
) -> None:
    """
    Upload a built directory to object storage.

    Files are uploaded one by one; a failed file does not stop the run.

    [bold]Examples:[/]

        houseforge upload
        houseforge upload --local-dir dist --remote-dir my-lib/v1 --yes
    """
    project_dir = directory.resolve()

    try:
        creds = read_credentials(credentials or default_credentials_path())
        local, remote = resolve_upload_target(project_dir, local_dir, remote_dir)
        file_count = len(collect_upload_tasks(local, remote))
    except Exception as e:
        raise fail(e) from e

    table = Table(title="Upload", show_header=False)
    table.add_column("Setting", style="cyan")
    table.add_column("Value")
    table.add_row("Local directory", str(local))
    table.add_row("Bucket", creds.bucket)
    table.add_row("Remote directory", remote or "(bucket root)")
    table.add_row("Files", str(file_count))
    console.print(table)

    if not yes:
        if not questionary.confirm("Start upload?", default=True).ask():
            raise typer.Abort()

    try:
        result = upload_project(local, remote, creds)
    except Exception as e:
        raise fail(e) from e

    if not result.success:
        raise fail(f"{result.failed} of {result.total} file(s) failed to upload")


# =============================================================================
# Schema Command
# =============================================================================

@app.command()
def schema(
    output: Annotated[
        Path | None,
        typer.Option("--output", "-o", help="Write the schema to this file"),
    ] = None,
) -> None:
    """Print the JSON Schema of houseforge.json."""
    text = settings_json_schema()
    if output is None:
        typer.echo(text, nl=False)
        return

    try:
        output.parent.mkdir(parents=True, exist_ok=True)
        output.write_text(text, encoding="utf-8")
    except OSError as e:
        raise fail(e) from e
    console.print(f"[green]✓[/] Wrote {output}")


if __name__ == "__main__":
    app()
