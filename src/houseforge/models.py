"""
houseforge.models - Pydantic Models for Project Settings
========================================================

This module defines the data models shared by every houseforge command.
The project settings file (``houseforge.json``) is a plain declarative JSON
document validated by these models; nothing in a project is ever executed
to obtain configuration.

Architecture Notes
------------------
The models are organized in a hierarchy:

    ProjectSettings (houseforge.json)
    ├── EslintSettings
    ├── VitestSettings
    ├── TypedocSettings
    ├── OssSettings
    ├── TemplatesSettings
    ├── UpdateSettings      (one toggle per UpdateGroup)
    ├── DependencySettings  (additive / conservative)
    └── policies            (artifact path -> ArtifactPolicy)

    StorageCredentials (~/oss_config.json)
    TemplateContext     (values handed to every template)

JSON keys use the camelCase spelling of the settings file
(``testTimeout``, ``localDir``); the snake_case attribute names are accepted
too.

Usage Example
-------------
>>> from houseforge.models import ProjectSettings
>>> settings = ProjectSettings.model_validate({"vitest": {"enabled": False}})
>>> settings.vitest.enabled
False
>>> UpdateGroup.ESLINT in settings.enabled_groups
True
"""

from __future__ import annotations

import json
from enum import Enum
from pathlib import Path
from typing import Any
from urllib.parse import urlparse

from pydantic import BaseModel, ConfigDict, Field, field_validator


# =============================================================================
# Enumerations
# =============================================================================


class ArtifactPolicy(str, Enum):
    """
    How the reconciler treats a managed file that already exists.

    Attributes
    ----------
    CREATE_IF_MISSING : str
        Write the file only when it is absent. Existing content is never
        touched.

    ALWAYS_OVERWRITE : str
        Re-render the template on every run.

    OVERWRITE_IF_IGNORED_OR_MISSING : str
        Overwrite only while the file is listed in ``.gitignore`` (it has
        never been customized). Once the on-disk content diverges from the
        template the file is left alone and kept under version control.
    """

    CREATE_IF_MISSING = "create-if-missing"
    ALWAYS_OVERWRITE = "always-overwrite"
    OVERWRITE_IF_IGNORED_OR_MISSING = "overwrite-if-ignored-or-missing"


class UpdateGroup(str, Enum):
    """
    Independently toggle-able groups of generated files and manifest fields.

    Each ``houseforge update`` flag selects one group. The value is the
    key used in the ``update`` section of ``houseforge.json``.
    """

    CONFIG = "config"
    GITIGNORE = "gitignore"
    CURSORRULES = "cursorrules"
    ESLINT = "eslint"
    PUBLISH = "publish"
    PAGES = "pages"
    PULL_REQUEST = "pullRequest"
    TYPEDOC = "typedoc"
    TEST = "test"
    DEPS = "deps"
    HUSKY = "husky"
    LICENSE = "license"
    VSCODE = "vscode"
    TSCONFIG = "tsconfig"

    @property
    def attribute(self) -> str:
        """Attribute name of this group on :class:`UpdateSettings`."""
        return "pull_request" if self is UpdateGroup.PULL_REQUEST else self.value


class DependencyMode(str, Enum):
    """
    Precedence mode for devDependency version sync.

    ADDITIVE adds missing packages and corrects mismatched versions.
    CONSERVATIVE only corrects versions of packages already declared.
    """

    ADDITIVE = "additive"
    CONSERVATIVE = "conservative"


# =============================================================================
# Settings Sub-Models
# =============================================================================


class _SettingsModel(BaseModel):
    """Base for every section of houseforge.json."""

    model_config = ConfigDict(populate_by_name=True, extra="forbid")


class EslintSettings(_SettingsModel):
    """ESLint configuration options."""

    enabled: bool = Field(default=True, description="Generate eslint.config.js")
    ignores: list[str] = Field(
        default_factory=list,
        description="Extra directories for ESLint to ignore",
    )
    rules: dict[str, Any] = Field(
        default_factory=dict,
        description="Extra rule overrides",
    )


class VitestSettings(_SettingsModel):
    """Vitest configuration options."""

    enabled: bool = Field(default=True, description="Include vitest setup")
    test_timeout: int = Field(
        default=0,
        ge=0,
        alias="testTimeout",
        description="Test timeout in milliseconds (0 means unlimited)",
    )


class TypedocSettings(_SettingsModel):
    """TypeDoc configuration options."""

    enabled: bool = Field(default=True, description="Generate typedoc.json")
    out_dir: str = Field(
        default="public",
        alias="outDir",
        description="Documentation output directory",
    )


class OssSettings(_SettingsModel):
    """
    Upload defaults for ``houseforge upload``.

    Attributes
    ----------
    local_dir : str
        Directory (relative to the project) whose contents are uploaded.

    oss_dir : str
        Remote directory. Empty means "use the package name".
    """

    local_dir: str = Field(default="./public", alias="localDir")
    oss_dir: str = Field(default="", alias="ossDir")


class TemplatesSettings(_SettingsModel):
    """Options for files created only with a new project."""

    examples: bool = Field(default=True, description="Create examples/ directory")
    test: bool = Field(default=True, description="Create test/ directory")


class UpdateSettings(_SettingsModel):
    """
    Which groups ``houseforge update`` refreshes when no flag is given.

    Every group is enabled by default.
    """

    config: bool = True
    gitignore: bool = True
    cursorrules: bool = True
    eslint: bool = True
    publish: bool = True
    pages: bool = True
    pull_request: bool = Field(default=True, alias="pullRequest")
    typedoc: bool = True
    test: bool = True
    deps: bool = True
    husky: bool = True
    license: bool = True
    vscode: bool = True
    tsconfig: bool = True


class DependencySettings(_SettingsModel):
    """How devDependency versions are synchronized."""

    mode: DependencyMode = Field(
        default=DependencyMode.ADDITIVE,
        description="additive: add and correct; conservative: correct only",
    )


# =============================================================================
# Main Settings Model
# =============================================================================


class ProjectSettings(_SettingsModel):
    """
    Complete contents of a project's ``houseforge.json``.

    Values present in the file override the defaults below; sections that
    are omitted fall back to their defaults.

    Attributes
    ----------
    name : str | None
        Project name. Filled from package.json when the file is created.

    policies : dict[str, ArtifactPolicy]
        Per-artifact overrides of the reconciler policy, keyed by the
        artifact's path relative to the project root.

    Examples
    --------
    >>> settings = ProjectSettings.model_validate(
    ...     {"policies": {".cursorrules": "always-overwrite"}}
    ... )
    >>> settings.policies[".cursorrules"]
    <ArtifactPolicy.ALWAYS_OVERWRITE: 'always-overwrite'>
    """

    name: str | None = None
    eslint: EslintSettings = Field(default_factory=EslintSettings)
    vitest: VitestSettings = Field(default_factory=VitestSettings)
    typedoc: TypedocSettings = Field(default_factory=TypedocSettings)
    oss: OssSettings = Field(default_factory=OssSettings)
    templates: TemplatesSettings = Field(default_factory=TemplatesSettings)
    update: UpdateSettings = Field(default_factory=UpdateSettings)
    dependencies: DependencySettings = Field(default_factory=DependencySettings)
    policies: dict[str, ArtifactPolicy] = Field(default_factory=dict)

    @property
    def enabled_groups(self) -> set[UpdateGroup]:
        """Groups switched on in the ``update`` section."""
        return {
            group for group in UpdateGroup
            if getattr(self.update, group.attribute)
        }

    @classmethod
    def from_json_data(cls, data: dict[str, Any]) -> ProjectSettings:
        """
        Validate the decoded contents of houseforge.json.

        The ``$schema`` pointer is editor metadata and is dropped before
        validation.

        Raises
        ------
        pydantic.ValidationError
            If the data does not match the schema.
        """
        payload = {key: value for key, value in data.items() if key != "$schema"}
        return cls.model_validate(payload)

    def to_json_data(self, schema: str | None = None) -> dict[str, Any]:
        """
        Serialize to the dictionary written to houseforge.json.

        Parameters
        ----------
        schema : str | None
            Value for the leading ``$schema`` key, omitted when None.
        """
        data: dict[str, Any] = {}
        if schema is not None:
            data["$schema"] = schema
        data.update(self.model_dump(mode="json", by_alias=True))
        return data


# =============================================================================
# Object Storage Credentials
# =============================================================================


class StorageCredentials(BaseModel):
    """
    Credentials for the object store used by ``houseforge upload``.

    Read from a JSON file in the user's home directory, outside any
    project.

    Attributes
    ----------
    region : str
        Storage region (e.g. ``oss-cn-hangzhou`` or ``eu-west-1``).

    access_key_id, access_key_secret : str
        Key pair for the bucket.

    bucket : str
        Target bucket name.

    base_url : str | None
        Public base URL (custom domain) used when reporting access paths.

    endpoint : str | None
        S3-compatible endpoint URL. None means AWS S3 itself.
    """

    model_config = ConfigDict(populate_by_name=True)

    region: str = Field(min_length=1)
    access_key_id: str = Field(alias="accessKeyId", min_length=1)
    access_key_secret: str = Field(alias="accessKeySecret", min_length=1)
    bucket: str = Field(min_length=1)
    base_url: str | None = Field(default=None, alias="baseUrl")
    endpoint: str | None = None

    @field_validator("base_url", "endpoint")
    @classmethod
    def strip_trailing_slash(cls, v: str | None) -> str | None:
        """Normalize URLs so paths can be appended with a single '/'."""
        if v is None:
            return None
        v = v.strip().rstrip("/")
        return v or None

    @property
    def endpoint_url(self) -> str | None:
        """
        Endpoint the S3 client talks to.

        Returns
        -------
        str | None
            ``endpoint`` when configured; the Aliyun OSS endpoint for
            ``oss-`` regions; otherwise None (AWS S3).
        """
        if self.endpoint:
            return self.endpoint
        if self.region.startswith("oss-"):
            return f"https://{self.region}.aliyuncs.com"
        return None

    @property
    def access_base_url(self) -> str:
        """
        Base URL under which uploaded objects are publicly reachable.

        Returns
        -------
        str
            ``base_url`` when configured; otherwise the virtual-hosted
            bucket URL of :attr:`endpoint_url`, or of AWS S3 when there is
            no endpoint.
        """
        if self.base_url:
            return self.base_url
        endpoint = self.endpoint_url
        if endpoint:
            parsed = urlparse(endpoint)
            scheme = parsed.scheme or "https"
            host = parsed.netloc or parsed.path
            return f"{scheme}://{self.bucket}.{host}"
        return f"https://{self.bucket}.s3.{self.region}.amazonaws.com"

    @classmethod
    def from_file(cls, path: Path) -> StorageCredentials:
        """
        Load credentials from a JSON file.

        Raises
        ------
        FileNotFoundError
            If the file does not exist.
        json.JSONDecodeError
            If the file is not valid JSON.
        pydantic.ValidationError
            If required keys are missing.
        """
        with path.open(encoding="utf-8") as f:
            data = json.load(f)
        return cls.model_validate(data)


# =============================================================================
# Template Context
# =============================================================================


class TemplateContext(BaseModel):
    """
    Values available to every template.

    Attributes
    ----------
    name : str
        Full package name, including any ``@scope/`` prefix.

    year : int
        Year written into the LICENSE file.

    settings : ProjectSettings
        Effective project settings.
    """

    name: str
    year: int
    description: str = ""
    settings: ProjectSettings = Field(default_factory=ProjectSettings)

    @property
    def repo_name(self) -> str:
        """Package name without its npm scope (``@org/pkg`` -> ``pkg``)."""
        return self.name.rsplit("/", 1)[-1]

    @property
    def scope(self) -> str | None:
        """The npm scope (``@org``), or None for unscoped names."""
        if self.name.startswith("@") and "/" in self.name:
            return self.name.split("/", 1)[0]
        return None
