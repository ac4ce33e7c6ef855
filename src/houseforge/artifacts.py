"""
houseforge.artifacts - Managed Artifact Registry
================================================

This module enumerates every file houseforge can generate, track and
conditionally overwrite, and renders their templates.

Template System
---------------
Templates are Jinja2 files in the ``templates/`` package. A fresh
``Environment`` is created for each render so that template files are
always read from disk on demand; nothing is cached at module level.

Each :class:`ManagedArtifact` couples:

- the output path relative to the project root,
- a template (or a render function) producing its content,
- the :class:`UpdateGroup` that toggles it,
- its default :class:`ArtifactPolicy`,
- an optional condition on the project settings.

Projects can override the policy of any artifact through the ``policies``
section of ``houseforge.json``.

Usage Example
-------------
>>> from houseforge.artifacts import resolve_artifacts
>>> from houseforge.models import ProjectSettings, UpdateGroup
>>> settings = ProjectSettings()
>>> [a.path for a in resolve_artifacts(settings, {UpdateGroup.PAGES})]
['.github/workflows/pages.yml', '.github/workflows/upload-oss.yml']
"""

from __future__ import annotations

import json
from dataclasses import dataclass, replace
from typing import TYPE_CHECKING, Any

from jinja2 import Environment, PackageLoader, select_autoescape

from houseforge.models import (
    ArtifactPolicy,
    ProjectSettings,
    TemplateContext,
    UpdateGroup,
)


if TYPE_CHECKING:
    from collections.abc import Callable, Iterable


SETTINGS_FILE = "houseforge.json"
IGNORE_FILE = ".gitignore"

# Published JSON schema for houseforge.json
SCHEMA_URL = "https://houseforge.dev/schemas/houseforge.schema.json"
LOCAL_SCHEMA_PATH = "./schemas/houseforge.schema.json"


# =============================================================================
# Template Engine Setup
# =============================================================================


def create_jinja_env() -> Environment:
    """
    Create and configure the Jinja2 template environment.

    Returns
    -------
    Environment
        Environment loading templates from ``houseforge.templates``.

    Notes
    -----
    Autoescaping is disabled: the output is source code and config, not
    HTML.
    """
    return Environment(
        loader=PackageLoader("houseforge", "templates"),
        autoescape=select_autoescape([]),
        trim_blocks=True,
        lstrip_blocks=True,
        keep_trailing_newline=True,
    )


def template_variables(context: TemplateContext) -> dict[str, Any]:
    """Flatten a TemplateContext into the variables templates see."""
    return {
        "name": context.name,
        "repo_name": context.repo_name,
        "scope": context.scope,
        "description": context.description,
        "year": context.year,
        "settings": context.settings,
    }


def render_template(template_name: str, context: TemplateContext) -> str:
    """
    Render a single template.

    Raises
    ------
    jinja2.TemplateNotFound
        If the template file doesn't exist.
    """
    env = create_jinja_env()
    template = env.get_template(template_name)
    return template.render(**template_variables(context))


def dump_settings(settings: ProjectSettings, schema: str | None = SCHEMA_URL) -> str:
    """Serialize settings as houseforge.json text."""
    data = settings.to_json_data(schema=schema)
    return json.dumps(data, indent=4, ensure_ascii=False) + "\n"


def render_settings_file(context: TemplateContext) -> str:
    """
    Render the default houseforge.json for a project.

    Only the project name differs from :class:`ProjectSettings` defaults.
    """
    return dump_settings(ProjectSettings(name=context.name))


# =============================================================================
# Dependency Versions
# =============================================================================

COVERAGE_PACKAGE = "@vitest/coverage-v8"
COVERAGE_VERSION = "^3.2.4"


def load_versions() -> dict[str, str]:
    """
    Read the standard devDependency versions from ``versions.json.j2``.

    The file is read on every call.
    """
    env = create_jinja_env()
    return json.loads(env.get_template("versions.json.j2").render())


def get_dev_dependencies(
    *,
    include_vitest: bool = True,
    include_typedoc: bool = True,
    include_coverage: bool = False,
) -> dict[str, str]:
    """
    Standard devDependencies for a house-style package.

    Parameters
    ----------
    include_vitest : bool, default=True
        Keep vitest and its DOM environment.

    include_typedoc : bool, default=True
        Keep typedoc.

    include_coverage : bool, default=False
        Add the vitest coverage provider.

    Returns
    -------
    dict[str, str]
        Package name to version specifier.
    """
    deps = load_versions()

    if not include_vitest:
        deps.pop("vitest", None)
        deps.pop("happy-dom", None)

    if not include_typedoc:
        deps.pop("typedoc", None)

    if include_coverage and COVERAGE_PACKAGE not in deps:
        deps[COVERAGE_PACKAGE] = COVERAGE_VERSION

    return deps


# =============================================================================
# Managed Artifacts
# =============================================================================


@dataclass(frozen=True)
class ManagedArtifact:
    """
    A file whose content houseforge can generate and track.

    Attributes
    ----------
    path : str
        Output path relative to the project root, '/' separated.

    group : UpdateGroup
        Update group that toggles this artifact.

    policy : ArtifactPolicy
        What to do when the file already exists.

    template : str | None
        Jinja2 template name. Ignored when ``renderer`` is set.

    renderer : Callable[[TemplateContext], str] | None
        Function producing the content, for artifacts not backed by a
        template file.

    json_ignore_keys : tuple[str, ...] | None
        When set, the file is compared structurally as JSON with these
        top-level keys removed; otherwise byte-for-byte.

    condition : Callable[[ProjectSettings], bool] | None
        The artifact is generated only when this returns True.

    executable : bool
        Mark the written file executable (git hooks).

    tracked : bool
        Keep a ``.gitignore`` entry in sync with whether the file matches
        its template, whatever the policy.
    """

    path: str
    group: UpdateGroup
    policy: ArtifactPolicy
    template: str | None = None
    renderer: Callable[[TemplateContext], str] | None = None
    json_ignore_keys: tuple[str, ...] | None = None
    condition: Callable[[ProjectSettings], bool] | None = None
    executable: bool = False
    tracked: bool = False

    @property
    def ignore_tracked(self) -> bool:
        """Whether this artifact participates in ignore-list bookkeeping."""
        return self.tracked or self.policy is ArtifactPolicy.OVERWRITE_IF_IGNORED_OR_MISSING

    def render(self, context: TemplateContext) -> str:
        """Produce the template content for this artifact."""
        if self.renderer is not None:
            return self.renderer(context)
        if self.template is None:
            msg = f"Artifact {self.path} has neither a template nor a renderer"
            raise ValueError(msg)
        return render_template(self.template, context)

    def applies_to(self, settings: ProjectSettings) -> bool:
        """Whether the project's settings enable this artifact."""
        return self.condition is None or self.condition(settings)

    def matches(self, on_disk: bytes, rendered: str) -> bool:
        """
        Compare on-disk content against freshly rendered content.

        Structured artifacts that fail to parse never match, so a corrupt
        file is always treated as modified.
        """
        if self.json_ignore_keys is None:
            return on_disk == rendered.encode("utf-8")

        try:
            actual = json.loads(on_disk.decode("utf-8"))
            expected = json.loads(rendered)
        except (UnicodeDecodeError, json.JSONDecodeError):
            return False

        if not isinstance(actual, dict) or not isinstance(expected, dict):
            return actual == expected

        for key in self.json_ignore_keys:
            actual.pop(key, None)
            expected.pop(key, None)
        return actual == expected


_IGNORED = ArtifactPolicy.OVERWRITE_IF_IGNORED_OR_MISSING
_CREATE = ArtifactPolicy.CREATE_IF_MISSING

# Registry order is processing order. The ignore file comes first so the
# other artifacts can consult it.
MANAGED_ARTIFACTS: tuple[ManagedArtifact, ...] = (
    ManagedArtifact(
        IGNORE_FILE, UpdateGroup.GITIGNORE, _CREATE, template="gitignore.j2",
    ),
    ManagedArtifact(
        SETTINGS_FILE, UpdateGroup.CONFIG, _CREATE,
        renderer=render_settings_file,
        json_ignore_keys=("name", "$schema"),
        tracked=True,
    ),
    ManagedArtifact(
        ".cursorrules", UpdateGroup.CURSORRULES, _IGNORED, template="cursorrules.j2",
    ),
    ManagedArtifact(
        "eslint.config.js", UpdateGroup.ESLINT, _IGNORED,
        template="eslint.config.js.j2",
        condition=lambda s: s.eslint.enabled,
    ),
    ManagedArtifact(
        "typedoc.json", UpdateGroup.TYPEDOC, _IGNORED,
        template="typedoc.json.j2",
        json_ignore_keys=(),
        condition=lambda s: s.typedoc.enabled,
    ),
    ManagedArtifact(
        "scripts/postdocs.js", UpdateGroup.TYPEDOC, _CREATE,
        template="postdocs.js.j2",
        condition=lambda s: s.typedoc.enabled,
    ),
    ManagedArtifact(
        "test/_.test.ts", UpdateGroup.TEST, _CREATE,
        template="test_index.test.ts.j2",
        condition=lambda s: s.vitest.enabled and s.templates.test,
    ),
    ManagedArtifact(
        ".husky/pre-commit", UpdateGroup.HUSKY, _IGNORED,
        template="husky_pre-commit.j2",
        executable=True,
    ),
    ManagedArtifact(
        "LICENSE", UpdateGroup.LICENSE, _CREATE, template="LICENSE_MIT.j2",
    ),
    ManagedArtifact(
        ".vscode/settings.json", UpdateGroup.VSCODE, _IGNORED,
        template="vscode_settings.json.j2",
        json_ignore_keys=(),
    ),
    ManagedArtifact(
        "tsconfig.json", UpdateGroup.TSCONFIG, _CREATE, template="tsconfig.json.j2",
    ),
    ManagedArtifact(
        "vite.config.js", UpdateGroup.TSCONFIG, _CREATE, template="vite.config.js.j2",
    ),
    ManagedArtifact(
        ".github/workflows/publish.yml", UpdateGroup.PUBLISH, _IGNORED,
        template="github_publish.yml.j2",
    ),
    ManagedArtifact(
        "scripts/prepublish.js", UpdateGroup.PUBLISH, _CREATE,
        template="prepublish.js.j2",
    ),
    ManagedArtifact(
        "scripts/postpublish.js", UpdateGroup.PUBLISH, _CREATE,
        template="postpublish.js.j2",
    ),
    ManagedArtifact(
        ".github/workflows/pages.yml", UpdateGroup.PAGES, _IGNORED,
        template="github_pages.yml.j2",
    ),
    ManagedArtifact(
        ".github/workflows/upload-oss.yml", UpdateGroup.PAGES, _IGNORED,
        template="github_upload-oss.yml.j2",
    ),
    ManagedArtifact(
        ".github/workflows/pull-request.yml", UpdateGroup.PULL_REQUEST, _IGNORED,
        template="github_pull-request.yml.j2",
    ),
)


def apply_policy_overrides(
    artifacts: Iterable[ManagedArtifact],
    settings: ProjectSettings,
) -> list[ManagedArtifact]:
    """Return the artifacts with any ``policies`` override from settings."""
    resolved = []
    for artifact in artifacts:
        override = settings.policies.get(artifact.path)
        if override is not None and override is not artifact.policy:
            artifact = replace(artifact, policy=override)
        resolved.append(artifact)
    return resolved


def resolve_artifacts(
    settings: ProjectSettings,
    groups: Iterable[UpdateGroup],
) -> list[ManagedArtifact]:
    """
    Select the artifacts to reconcile for a run.

    Parameters
    ----------
    settings : ProjectSettings
        Effective project settings (conditions and policy overrides).

    groups : Iterable[UpdateGroup]
        Groups selected for this run.

    Returns
    -------
    list[ManagedArtifact]
        Artifacts in registry order.
    """
    selected = set(groups)
    candidates = [
        a for a in MANAGED_ARTIFACTS
        if a.group in selected and a.applies_to(settings)
    ]
    return apply_policy_overrides(candidates, settings)


def get_artifact(path: str) -> ManagedArtifact:
    """
    Look up a registry entry by path.

    Raises
    ------
    KeyError
        If no artifact has this path.
    """
    for artifact in MANAGED_ARTIFACTS:
        if artifact.path == path:
            return artifact
    raise KeyError(path)
