"""
houseforge.manifest - package.json Metadata Patcher
===================================================

This module evolves a project's ``package.json`` toward the house shape
without destroying user intent.

Rules
-----
- **Dependencies**: conservative mode only corrects versions of packages
  already declared; additive mode also adds the missing ones.
- **Scripts**: missing scripts are added, existing ones are never replaced.
  The migration variant force-syncs a fixed set of standard scripts.
- **Entry points**: ``type``, ``main``, ``types``, ``module`` and
  ``exports`` are set only when absent, or unconditionally when forced.
- **Ordering**: top-level keys and ``scripts`` follow a canonical order;
  unknown keys keep their relative order after the known ones.
- **Formatting**: the indentation unit, line endings and trailing newline of the
  original file are reproduced.

The file is written only when a value actually changed.

Usage Example
-------------
>>> patcher = ManifestPatcher.load(Path("package.json"))
>>> patcher.add_scripts({"test": "vitest run"})
['test']
>>> patcher.save()
True
"""

from __future__ import annotations

import copy
import json
from dataclasses import dataclass, field
from datetime import date
from pathlib import Path
from typing import TYPE_CHECKING, Any

from rich.console import Console

from houseforge.artifacts import COVERAGE_PACKAGE, get_dev_dependencies, render_template
from houseforge.models import DependencyMode, TemplateContext, UpdateGroup


if TYPE_CHECKING:
    from collections.abc import Collection, Iterable, Mapping

    from houseforge.models import ProjectSettings


console = Console()

MANIFEST_FILE = "package.json"
INITIAL_VERSION = "0.0.1"
SOURCE_ENTRY = "./src/index.ts"


class ManifestError(ValueError):
    """Raised when package.json is missing, unparseable or not an object."""


# =============================================================================
# Canonical Shape
# =============================================================================

FIELD_ORDER: tuple[str, ...] = (
    "name",
    "version",
    "description",
    "private",
    "type",
    "main",
    "types",
    "module",
    "exports",
    "bin",
    "files",
    "scripts",
    "repository",
    "keywords",
    "author",
    "license",
    "bugs",
    "homepage",
    "publishConfig",
    "engines",
    "dependencies",
    "peerDependencies",
    "devDependencies",
    "lint-staged",
)

SCRIPT_ORDER: tuple[str, ...] = (
    "clean",
    "dev",
    "build",
    "types",
    "watch",
    "test",
    "test:watch",
    "lint",
    "lint:fix",
    "docs",
    "prepare",
    "prepublishOnly",
    "postpublish",
    "release",
)

ENTRY_POINTS: dict[str, Any] = {
    "type": "module",
    "main": SOURCE_ENTRY,
    "types": SOURCE_ENTRY,
    "module": SOURCE_ENTRY,
    "exports": {
        ".": {
            "types": SOURCE_ENTRY,
            "import": SOURCE_ENTRY,
            "require": SOURCE_ENTRY,
        },
    },
}

# Scripts contributed by each update group
STANDARD_SCRIPTS: dict[UpdateGroup, dict[str, str]] = {
    UpdateGroup.TSCONFIG: {
        "clean": "rimraf lib dist public",
        "dev": "vite",
        "build": "vite build && tsc",
        "types": "tsc --noEmit",
        "watch": "tsc -w",
    },
    UpdateGroup.TEST: {
        "test": "vitest run",
        "test:watch": "vitest",
    },
    UpdateGroup.ESLINT: {
        "lint": "eslint .",
        "lint:fix": "eslint . --fix",
    },
    UpdateGroup.TYPEDOC: {
        "docs": "typedoc && node scripts/postdocs.js",
    },
    UpdateGroup.HUSKY: {
        "prepare": "husky",
    },
    UpdateGroup.PUBLISH: {
        "prepublishOnly": "node scripts/prepublish.js",
        "postpublish": "node scripts/postpublish.js",
        "release": "npm run clean && npm run lint && npm test && npm run build && npm publish",
    },
}

# Scripts overwritten by the migration variant
FORCED_SCRIPTS: tuple[str, ...] = (
    "build",
    "docs",
    "prepublishOnly",
    "postpublish",
    "release",
)

LINT_STAGED: dict[str, list[str]] = {
    "*.{js,ts}": ["eslint --fix"],
}


def standard_scripts(
    settings: ProjectSettings,
    groups: Iterable[UpdateGroup],
) -> dict[str, str]:
    """
    Collect the standard scripts for the selected groups.

    Test, lint and docs scripts are only contributed when the matching
    tool is enabled in the project settings.
    """
    disabled = {
        UpdateGroup.TEST: not settings.vitest.enabled,
        UpdateGroup.ESLINT: not settings.eslint.enabled,
        UpdateGroup.TYPEDOC: not settings.typedoc.enabled,
    }

    scripts: dict[str, str] = {}
    for group in groups:
        if group in STANDARD_SCRIPTS and not disabled.get(group, False):
            scripts.update(STANDARD_SCRIPTS[group])
    return scripts


# =============================================================================
# Reading and Writing
# =============================================================================


@dataclass(frozen=True)
class ManifestFormat:
    """
    Formatting details of a JSON file that must survive a rewrite.

    Attributes
    ----------
    indent : str
        Indentation unit (spaces or a tab).

    trailing_newline : bool
        Whether the file ends with a newline.

    newline : str
        Line terminator, ``"\\n"`` or ``"\\r\\n"``.
    """

    indent: str = "    "
    trailing_newline: bool = True
    newline: str = "\n"

    @classmethod
    def detect(cls, text: str) -> ManifestFormat:
        """Infer the format from the first indented line of ``text``."""
        indent = cls.indent
        for line in text.splitlines():
            stripped = line.lstrip(" \t")
            if stripped and len(stripped) < len(line):
                indent = line[: len(line) - len(stripped)]
                break
        return cls(
            indent=indent,
            trailing_newline=text.endswith("\n"),
            newline="\r\n" if "\r\n" in text else "\n",
        )


def reorder_manifest(data: Mapping[str, Any]) -> dict[str, Any]:
    """
    Return a copy with canonical key order.

    Known keys come first in ``FIELD_ORDER``; the rest follow in their
    original relative order. ``scripts`` is reordered the same way with
    ``SCRIPT_ORDER``.
    """

    def ordered(mapping: Mapping[str, Any], order: tuple[str, ...]) -> dict[str, Any]:
        result = {key: mapping[key] for key in order if key in mapping}
        for key, value in mapping.items():
            if key not in result:
                result[key] = value
        return result

    reordered = ordered(data, FIELD_ORDER)
    scripts = reordered.get("scripts")
    if isinstance(scripts, dict):
        reordered["scripts"] = ordered(scripts, SCRIPT_ORDER)
    return reordered


def dump_manifest(data: Mapping[str, Any], fmt: ManifestFormat | None = None) -> str:
    """Serialize manifest data with the given format."""
    fmt = fmt or ManifestFormat()
    # Only structural newlines remain; json.dumps escapes those inside strings
    text = json.dumps(data, indent=fmt.indent, ensure_ascii=False).replace("\n", fmt.newline)
    return text + fmt.newline if fmt.trailing_newline else text


def load_manifest(path: Path) -> tuple[dict[str, Any], ManifestFormat]:
    """
    Read package.json.

    Returns
    -------
    tuple[dict[str, Any], ManifestFormat]
        Decoded data and the detected formatting.

    Raises
    ------
    ManifestError
        If the file is missing, is not valid JSON, or its root is not an
        object.
    """
    try:
        # Bytes, so CRLF line endings reach ManifestFormat.detect untranslated
        text = path.read_bytes().decode("utf-8")
    except FileNotFoundError as e:
        msg = f"{path} not found"
        raise ManifestError(msg) from e

    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        msg = f"{path} is not valid JSON: {e}"
        raise ManifestError(msg) from e

    if not isinstance(data, dict):
        msg = f"{path} must contain a JSON object"
        raise ManifestError(msg)

    return data, ManifestFormat.detect(text)


# =============================================================================
# Patcher
# =============================================================================


class ManifestPatcher:
    """
    In-memory editor for a package.json document.

    Every edit method returns a description of what it changed, so callers
    can report it. :meth:`save` compares against the data as loaded and
    writes only when something differs.

    Parameters
    ----------
    path : Path
        Location of the manifest.

    data : dict[str, Any]
        Decoded manifest.

    fmt : ManifestFormat | None
        Formatting to reproduce on write.
    """

    def __init__(
        self,
        path: Path,
        data: dict[str, Any],
        fmt: ManifestFormat | None = None,
    ) -> None:
        self.path = path
        self.data = data
        self.format = fmt or ManifestFormat()
        self._original = copy.deepcopy(data)

    @classmethod
    def load(cls, path: Path) -> ManifestPatcher:
        """
        Open a manifest for patching.

        Raises
        ------
        ManifestError
            See :func:`load_manifest`.
        """
        data, fmt = load_manifest(path)
        return cls(path, data, fmt)

    @property
    def name(self) -> str | None:
        name = self.data.get("name")
        return name if isinstance(name, str) else None

    @property
    def changed(self) -> bool:
        """Whether any value differs from the loaded data."""
        return self.data != self._original

    def _section(self, key: str, *, create: bool) -> dict[str, Any] | None:
        section = self.data.get(key)
        if isinstance(section, dict):
            return section
        if not create:
            return None
        if section is not None:
            msg = f"'{key}' in {self.path} must be an object"
            raise ManifestError(msg)
        self.data[key] = {}
        return self.data[key]

    def sync_dependencies(
        self,
        versions: Mapping[str, str],
        mode: DependencyMode = DependencyMode.ADDITIVE,
        section: str = "devDependencies",
    ) -> list[str]:
        """
        Align dependency versions with ``versions``.

        Parameters
        ----------
        versions : Mapping[str, str]
            Package name to version specifier.

        mode : DependencyMode
            CONSERVATIVE corrects declared packages only; ADDITIVE also
            adds missing ones.

        section : str, default="devDependencies"
            Manifest section to edit.

        Returns
        -------
        list[str]
            One entry per added or corrected package.
        """
        deps = self._section(section, create=mode is DependencyMode.ADDITIVE)
        if deps is None:
            return []

        changes = []
        for package, version in versions.items():
            current = deps.get(package)
            if current == version:
                continue
            if current is None:
                if mode is DependencyMode.CONSERVATIVE:
                    continue
                changes.append(f"{package} {version}")
            else:
                changes.append(f"{package} {current} -> {version}")
            deps[package] = version
        return changes

    def add_scripts(
        self,
        scripts: Mapping[str, str],
        force: Collection[str] = (),
    ) -> list[str]:
        """
        Add missing scripts; overwrite only those named in ``force``.

        Returns
        -------
        list[str]
            Names of scripts added or replaced.
        """
        if not scripts:
            return []

        section = self._section("scripts", create=True)
        if section is None:
            return []

        changed = []
        for name, command in scripts.items():
            current = section.get(name)
            if current == command:
                continue
            if current is None or name in force:
                section[name] = command
                changed.append(name)
        return changed

    def set_entry_points(self, *, force: bool = False) -> list[str]:
        """
        Point the entry fields at the TypeScript source.

        Returns
        -------
        list[str]
            Fields that were set.
        """
        changed = []
        for key, value in ENTRY_POINTS.items():
            if key in self.data and not force:
                continue
            if self.data.get(key) == value:
                continue
            self.data[key] = copy.deepcopy(value)
            changed.append(key)
        return changed

    def set_field_if_absent(self, key: str, value: Any) -> bool:
        """Set a top-level field only when it is missing."""
        if key in self.data:
            return False
        self.data[key] = copy.deepcopy(value)
        return True

    def render(self) -> str:
        return dump_manifest(reorder_manifest(self.data), self.format)

    def save(self) -> bool:
        """
        Write the manifest if a value changed.

        Returns
        -------
        bool
            True if the file was written.
        """
        if not self.changed:
            return False
        self.path.write_bytes(self.render().encode("utf-8"))
        self._original = copy.deepcopy(self.data)
        return True


# =============================================================================
# Project Operations
# =============================================================================


def normalize_scope(scope: str | None) -> str | None:
    """Return ``@scope`` for ``scope`` or ``@scope``; None for empty input."""
    if not scope:
        return None
    scope = scope.strip().strip("/")
    if not scope:
        return None
    return scope if scope.startswith("@") else f"@{scope}"


def ensure_manifest(
    project_dir: Path,
    scope: str | None = None,
    *,
    year: int | None = None,
) -> list[Path]:
    """
    Synthesize a minimal package.json and entry file when absent.

    The package is named after the directory, prefixed with ``scope``
    when one is given.

    Returns
    -------
    list[Path]
        Files that were created.
    """
    created: list[Path] = []
    manifest_path = project_dir / MANIFEST_FILE

    if manifest_path.exists():
        return created

    scope = normalize_scope(scope)
    name = f"{scope}/{project_dir.name}" if scope else project_dir.name
    data = {"name": name, "version": INITIAL_VERSION}
    manifest_path.write_text(dump_manifest(data), encoding="utf-8")
    created.append(manifest_path)

    entry = project_dir / "src" / "index.ts"
    if not entry.exists():
        context = TemplateContext(name=name, year=year or date.today().year)
        entry.parent.mkdir(parents=True, exist_ok=True)
        entry.write_text(render_template("src_index.ts.j2", context), encoding="utf-8")
        created.append(entry)

    return created


@dataclass
class ManifestPatchResult:
    """
    Outcome of :func:`patch_manifest`.

    Attributes
    ----------
    changes : list[str]
        Human-readable list of edits.

    written : bool
        Whether package.json was rewritten.
    """

    changes: list[str] = field(default_factory=list)
    written: bool = False


def patch_manifest(
    project_dir: Path,
    settings: ProjectSettings,
    groups: Collection[UpdateGroup],
    *,
    migrate: bool = False,
    verbose: bool = True,
) -> ManifestPatchResult:
    """
    Apply every manifest operation enabled by ``groups``.

    Parameters
    ----------
    project_dir : Path
        Project root containing package.json.

    settings : ProjectSettings
        Effective project settings.

    groups : Collection[UpdateGroup]
        Groups selected for this run.

    migrate : bool, default=False
        Force-sync the standard build and publish scripts and the entry
        points.

    verbose : bool, default=True
        Print the edits made.

    Returns
    -------
    ManifestPatchResult
        Edits and whether the file was written.

    Raises
    ------
    ManifestError
        If package.json cannot be read.
    OSError
        If package.json cannot be written.
    """
    patcher = ManifestPatcher.load(project_dir / MANIFEST_FILE)
    result = ManifestPatchResult()

    if UpdateGroup.TSCONFIG in groups or migrate:
        for key in patcher.set_entry_points(force=migrate):
            result.changes.append(f"set {key}")

    scripts = standard_scripts(settings, groups)
    force = FORCED_SCRIPTS if migrate else ()
    for name in patcher.add_scripts(scripts, force=force):
        result.changes.append(f"script {name}")

    if UpdateGroup.HUSKY in groups and patcher.set_field_if_absent("lint-staged", LINT_STAGED):
        result.changes.append("set lint-staged")

    if UpdateGroup.DEPS in groups:
        declared = patcher.data.get("devDependencies")
        versions = get_dev_dependencies(
            include_vitest=settings.vitest.enabled,
            include_typedoc=settings.typedoc.enabled,
            include_coverage=isinstance(declared, dict) and COVERAGE_PACKAGE in declared,
        )
        for change in patcher.sync_dependencies(versions, settings.dependencies.mode):
            result.changes.append(f"devDependency {change}")

    result.written = patcher.save()

    if verbose:
        if result.written:
            console.print(f"  [cyan]{'updated':<10}[/] {MANIFEST_FILE}")
            for change in result.changes:
                console.print(f"             [dim]{change}[/]")
        else:
            console.print(f"  [dim]{'unchanged':<10}[/] {MANIFEST_FILE}")

    return result
