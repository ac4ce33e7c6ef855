"""
houseforge.generator - Project Creation and Update
==================================================

This module orchestrates the two project commands:

- :func:`update_project` loads the project settings, reconciles the
  managed files and patches package.json.
- :func:`create_project` lays down a new package and then runs the full
  update on it.

Update Pipeline
---------------
1. Synthesize a minimal package.json when the directory has none.
2. Load ``houseforge.json`` (creating it when missing).
3. Resolve the update groups from the CLI selection or the settings.
4. Reconcile the managed artifacts of those groups; sweep ``.gitignore``
   over the whole registry.
5. Patch package.json for those groups.

Every step writes only what changed, so running the pipeline twice
leaves the second run without modifications.

See Also
--------
- reconciler.py: per-artifact decisions
- manifest.py: package.json patching
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import date
from pathlib import Path
from typing import TYPE_CHECKING

from pydantic import ValidationError
from rich.console import Console
from rich.panel import Panel

from houseforge.artifacts import (
    LOCAL_SCHEMA_PATH,
    MANAGED_ARTIFACTS,
    SCHEMA_URL,
    SETTINGS_FILE,
    apply_policy_overrides,
    dump_settings,
    render_template,
    resolve_artifacts,
)
from houseforge.manifest import (
    INITIAL_VERSION,
    MANIFEST_FILE,
    ManifestError,
    ManifestPatchResult,
    dump_manifest,
    ensure_manifest,
    load_manifest,
    normalize_scope,
    patch_manifest,
)
from houseforge.models import (
    ProjectSettings,
    TemplateContext,
    TemplatesSettings,
    UpdateGroup,
    VitestSettings,
)
from houseforge.reconciler import ReconcileResult, reconcile


if TYPE_CHECKING:
    from collections.abc import Collection


console = Console()


# =============================================================================
# Result Data Classes
# =============================================================================


@dataclass
class UpdateResult:
    """
    Result of an update run.

    Attributes
    ----------
    project_path : Path
        Absolute path of the project.

    groups : set[UpdateGroup]
        Groups that were processed.

    files_created : list[Path]
        Files synthesized before reconciliation (package.json,
        houseforge.json, src/index.ts).

    reconcile : ReconcileResult | None
        Per-artifact outcomes.

    manifest : ManifestPatchResult | None
        package.json edits.

    warnings : list[str]
        Non-fatal problems (unusable settings file).
    """

    project_path: Path
    groups: set[UpdateGroup] = field(default_factory=set)
    files_created: list[Path] = field(default_factory=list)
    reconcile: ReconcileResult | None = None
    manifest: ManifestPatchResult | None = None
    warnings: list[str] = field(default_factory=list)

    @property
    def failure_count(self) -> int:
        return self.reconcile.failure_count if self.reconcile else 0

    @property
    def success(self) -> bool:
        return self.failure_count == 0


@dataclass
class GenerationResult:
    """
    Result of creating a project.

    Attributes
    ----------
    success : bool
        Whether creation and the follow-up update succeeded.

    project_path : Path
        Absolute path to the created project.

    files_created : list[Path]
        Files written before the update ran.

    update : UpdateResult | None
        Result of the follow-up update.
    """

    success: bool
    project_path: Path
    files_created: list[Path] = field(default_factory=list)
    update: UpdateResult | None = None


# =============================================================================
# Project Settings
# =============================================================================


def detect_schema_path(project_dir: Path) -> str:
    """
    Choose the ``$schema`` pointer for houseforge.json.

    A schema shipped inside the project wins over the published URL.
    """
    if (project_dir / LOCAL_SCHEMA_PATH).is_file():
        return LOCAL_SCHEMA_PATH
    return SCHEMA_URL


def settings_json_schema() -> str:
    """JSON Schema of houseforge.json, generated from :class:`ProjectSettings`."""
    schema = ProjectSettings.model_json_schema(by_alias=True)
    schema["properties"]["$schema"] = {"type": "string"}
    return json.dumps(schema, indent=4, ensure_ascii=False) + "\n"


def _manifest_name(project_dir: Path) -> str:
    try:
        data, _ = load_manifest(project_dir / MANIFEST_FILE)
    except ManifestError:
        return project_dir.name
    name = data.get("name")
    return name if isinstance(name, str) and name else project_dir.name


def load_project_settings(
    project_dir: Path,
    *,
    verbose: bool = True,
    warnings: list[str] | None = None,
) -> ProjectSettings:
    """
    Load houseforge.json, creating it when missing.

    Parameters
    ----------
    project_dir : Path
        Project root.

    verbose : bool, default=True
        Print what happened to the settings file.

    warnings : list[str] | None
        Receives a message when the file exists but cannot be used.

    Returns
    -------
    ProjectSettings
        File values over defaults. When the file is unusable, defaults
        with the package name.

    Notes
    -----
    An existing file is only rewritten when its ``$schema`` pointer is
    stale. An unusable file is left for the reconciler, which treats it
    as customized.
    """
    path = project_dir / SETTINGS_FILE
    schema = detect_schema_path(project_dir)
    name = _manifest_name(project_dir)

    if not path.exists():
        settings = ProjectSettings(name=name)
        path.write_text(dump_settings(settings, schema), encoding="utf-8")
        if verbose:
            console.print(f"  [green]{'created':<10}[/] {SETTINGS_FILE}")
        return settings

    try:
        data = json.loads(path.read_text(encoding="utf-8"))
        if not isinstance(data, dict):
            msg = "top level must be a JSON object"
            raise ValueError(msg)
        settings = ProjectSettings.from_json_data(data)
    except (OSError, ValueError, ValidationError) as e:
        message = f"Cannot load {SETTINGS_FILE}, using defaults ({e})"
        if warnings is not None:
            warnings.append(message)
        if verbose:
            console.print(f"  [yellow]Warning:[/] {message}")
        return ProjectSettings(name=name)

    if data.get("$schema") != schema:
        data["$schema"] = schema
        path.write_text(json.dumps(data, indent=4, ensure_ascii=False) + "\n", encoding="utf-8")
        if verbose:
            console.print(f"  [cyan]{'updated':<10}[/] {SETTINGS_FILE} $schema -> {schema}")

    if settings.name is None:
        settings = settings.model_copy(update={"name": name})
    return settings


def resolve_update_groups(
    selected: Collection[UpdateGroup],
    settings: ProjectSettings,
    *,
    all_groups: bool = False,
) -> set[UpdateGroup]:
    """
    Decide which groups an update processes.

    Explicitly selected groups win. With no selection, or with
    ``all_groups``, the ``update`` section of the settings decides.
    """
    if selected and not all_groups:
        return set(selected)
    return settings.enabled_groups


# =============================================================================
# Update
# =============================================================================


def update_project(
    project_dir: Path,
    groups: Collection[UpdateGroup] = (),
    *,
    all_groups: bool = False,
    migrate: bool = False,
    scope: str | None = None,
    verbose: bool = True,
) -> UpdateResult:
    """
    Refresh an existing project to the house style.

    Parameters
    ----------
    project_dir : Path
        Project root.

    groups : Collection[UpdateGroup]
        Groups selected on the command line; empty means "from settings".

    all_groups : bool, default=False
        Ignore ``groups`` and use every group enabled in the settings.

    migrate : bool, default=False
        Force-sync the standard build and publish scripts and the entry
        points in package.json.

    scope : str | None
        npm scope for a synthesized package.json.

    verbose : bool, default=True
        Print progress to the console.

    Returns
    -------
    UpdateResult
        Outcomes of every step.

    Raises
    ------
    FileNotFoundError
        If ``project_dir`` does not exist.
    NotADirectoryError
        If ``project_dir`` is not a directory.
    ManifestError
        If package.json exists but cannot be parsed.
    """
    project_dir = project_dir.resolve()
    if not project_dir.exists():
        msg = f"Project directory not found: {project_dir}"
        raise FileNotFoundError(msg)
    if not project_dir.is_dir():
        msg = f"Not a directory: {project_dir}"
        raise NotADirectoryError(msg)

    result = UpdateResult(project_path=project_dir)

    if verbose:
        console.print()
        console.print(
            Panel(
                f"[bold blue]Updating project:[/] [green]{project_dir.name}[/]"
                + ("\n[dim]Migration mode[/]" if migrate else ""),
                title="[bold]houseforge[/]",
                border_style="blue",
            )
        )

    created = ensure_manifest(project_dir, scope)
    result.files_created.extend(created)
    if verbose:
        for path in created:
            console.print(f"  [green]{'created':<10}[/] {path.relative_to(project_dir).as_posix()}")

    # Fails fast on an unparseable manifest
    manifest_data, _ = load_manifest(project_dir / MANIFEST_FILE)

    settings_existed = (project_dir / SETTINGS_FILE).exists()
    settings = load_project_settings(project_dir, verbose=verbose, warnings=result.warnings)
    if not settings_existed:
        result.files_created.append(project_dir / SETTINGS_FILE)

    result.groups = resolve_update_groups(groups, settings, all_groups=all_groups)

    name = manifest_data.get("name")
    description = manifest_data.get("description")
    context = TemplateContext(
        name=name if isinstance(name, str) and name else settings.name or project_dir.name,
        year=date.today().year,
        description=description if isinstance(description, str) else "",
        settings=settings,
    )

    if verbose:
        console.print()
        console.print("[bold]Reconciling managed files...[/]")

    result.reconcile = reconcile(
        project_dir,
        resolve_artifacts(settings, result.groups),
        context,
        sweep=apply_policy_overrides(MANAGED_ARTIFACTS, settings),
        verbose=verbose,
    )

    if verbose:
        console.print()
        console.print("[bold]Patching package.json...[/]")

    result.manifest = patch_manifest(
        project_dir,
        settings,
        result.groups,
        migrate=migrate,
        verbose=verbose,
    )

    if verbose:
        console.print()
        if result.success:
            console.print("[green]✓[/] Project is up to date")
        else:
            console.print(
                f"[yellow]⚠[/] {result.failure_count} file(s) could not be updated; "
                "run [cyan]houseforge update[/] again after fixing the cause"
            )

    return result


# =============================================================================
# Create
# =============================================================================


def _initial_manifest(package_name: str, description: str) -> str:
    data = {
        "name": package_name,
        "version": INITIAL_VERSION,
        "description": description,
        "license": "MIT",
    }
    return dump_manifest(data)


def create_project(
    name: str,
    directory: Path = Path("."),
    *,
    examples: bool = True,
    vitest: bool = True,
    scope: str | None = None,
    description: str = "",
    verbose: bool = True,
) -> GenerationResult:
    """
    Create a new package and bring it to the house style.

    Parameters
    ----------
    name : str
        Directory name and unscoped package name.

    directory : Path, default="."
        Parent directory.

    examples : bool, default=True
        Create ``examples/index.html``.

    vitest : bool, default=True
        Include the vitest setup.

    scope : str | None
        npm scope; the package becomes ``@scope/name``.

    description : str
        package.json description.

    verbose : bool, default=True
        Print progress to the console.

    Returns
    -------
    GenerationResult
        Files written and the follow-up update result.

    Raises
    ------
    FileExistsError
        If the project directory already exists.

    Examples
    --------
    >>> result = create_project("my-lib", Path("/tmp"), scope="acme")
    >>> result.project_path.name
    'my-lib'
    """
    project_dir = (directory / name).resolve()
    if project_dir.exists():
        msg = f"Directory already exists: {project_dir}"
        raise FileExistsError(msg)

    normalized = normalize_scope(scope)
    package_name = f"{normalized}/{name}" if normalized else name
    result = GenerationResult(success=False, project_path=project_dir)

    if verbose:
        console.print()
        console.print(
            Panel(
                f"[bold blue]Creating project:[/] [green]{package_name}[/]\n"
                f"[dim]Examples: {'yes' if examples else 'no'} | "
                f"Vitest: {'yes' if vitest else 'no'}[/]",
                title="[bold]houseforge[/]",
                border_style="blue",
            )
        )

    project_dir.mkdir(parents=True)

    settings = ProjectSettings(
        name=package_name,
        vitest=VitestSettings(enabled=vitest),
        templates=TemplatesSettings(examples=examples),
    )
    context = TemplateContext(
        name=package_name,
        year=date.today().year,
        description=description,
        settings=settings,
    )

    files: dict[str, str] = {
        MANIFEST_FILE: _initial_manifest(package_name, description),
        SETTINGS_FILE: dump_settings(settings, detect_schema_path(project_dir)),
        "src/index.ts": render_template("src_index.ts.j2", context),
        "README.md": render_template("README.md.j2", context),
    }
    if examples:
        files["examples/index.html"] = render_template("examples_index.html.j2", context)

    for relative, content in files.items():
        target = project_dir / relative
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(content, encoding="utf-8")
        result.files_created.append(target)
        if verbose:
            console.print(f"  [green]{'created':<10}[/] {relative}")

    result.update = update_project(project_dir, verbose=verbose)
    result.success = result.update.success

    if verbose and result.success:
        console.print()
        console.print(
            Panel(
                f"[bold green]Project created successfully![/]\n\n"
                f"[dim]Location:[/] {project_dir}\n\n"
                f"[bold]Next steps:[/]\n"
                f"  cd {name}\n"
                f"  npm install\n"
                f"  npm run build",
                title="[bold green]Success[/]",
                border_style="green",
            )
        )

    return result
