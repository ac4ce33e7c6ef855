"""
houseforge.uploader - Directory Upload Pipeline
===============================================

This module mirrors a local directory tree into an S3-compatible object
store, one file at a time, with a redrawn progress bar.

Pipeline
--------
1. :func:`read_credentials` loads the per-user credential file. Any
   problem here aborts the run before a single upload is attempted.
2. :func:`collect_upload_tasks` walks the local tree depth-first in sorted
   name order. Every regular file becomes an :class:`UploadTask`; folders
   are only recursed into.
3. :func:`upload_directory` runs the tasks strictly sequentially. A failed
   file is reported on its own line and recorded; the run carries on.
4. The caller reports the totals and, when anything succeeded, the public
   access URL of the remote directory.

The store is anything with a ``put(key, local_path)`` method, so tests can
swap in an in-memory fake for :class:`S3ObjectStore`.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Protocol

import boto3
from pydantic import ValidationError
from rich.console import Console
from rich.progress import Progress, ProgressColumn, TextColumn
from rich.text import Text

from houseforge.artifacts import SETTINGS_FILE
from houseforge.manifest import MANIFEST_FILE, ManifestError, load_manifest
from houseforge.models import ProjectSettings, StorageCredentials


if TYPE_CHECKING:
    from collections.abc import Sequence

    from rich.progress import Task


console = Console()

CREDENTIALS_FILE = "oss_config.json"
BAR_WIDTH = 30


class CredentialsError(Exception):
    """Raised when the storage credential file cannot be used."""


# =============================================================================
# Data Types
# =============================================================================


@dataclass(frozen=True)
class UploadTask:
    """
    One file to upload.

    Attributes
    ----------
    local_path : Path
        File on disk.

    remote_path : str
        Object key, '/' separated.
    """

    local_path: Path
    remote_path: str


@dataclass
class UploadResult:
    """
    Accounting for an upload run.

    Attributes
    ----------
    total : int
        Number of tasks attempted.

    succeeded : int
        Number of files uploaded.

    failed_paths : list[Path]
        Local paths of files that failed, in traversal order.

    access_url : str | None
        Public URL of the remote directory, set by :func:`upload_project`
        when at least one file succeeded.
    """

    total: int = 0
    succeeded: int = 0
    failed_paths: list[Path] = field(default_factory=list)
    access_url: str | None = None

    @property
    def failed(self) -> int:
        return len(self.failed_paths)

    @property
    def success(self) -> bool:
        return not self.failed_paths


# =============================================================================
# Credentials
# =============================================================================


def default_credentials_path() -> Path:
    """``~/oss_config.json``."""
    return Path.home() / CREDENTIALS_FILE


def read_credentials(path: Path | None = None) -> StorageCredentials:
    """
    Load the storage credentials.

    Parameters
    ----------
    path : Path | None
        Credential file; defaults to :func:`default_credentials_path`.

    Raises
    ------
    CredentialsError
        If the file is missing, unreadable, not JSON, or lacks a required
        key.
    """
    path = path or default_credentials_path()
    try:
        return StorageCredentials.from_file(path)
    except FileNotFoundError as e:
        msg = f"Credential file not found: {path}"
        raise CredentialsError(msg) from e
    except (OSError, json.JSONDecodeError) as e:
        msg = f"Cannot read credential file {path}: {e}"
        raise CredentialsError(msg) from e
    except ValidationError as e:
        fields = ", ".join(str(err["loc"][0]) for err in e.errors() if err["loc"])
        msg = f"Invalid credential file {path}: check {fields}"
        raise CredentialsError(msg) from e


# =============================================================================
# Object Stores
# =============================================================================


class ObjectStore(Protocol):
    """Destination for uploaded files."""

    def put(self, key: str, local_path: Path) -> None:
        """Upload ``local_path`` under ``key``; raise on failure."""
        ...


class S3ObjectStore:
    """
    Object store backed by a boto3 S3 client.

    Works with AWS S3 and with S3-compatible services through the
    credentials' ``endpoint_url``.
    """

    def __init__(self, credentials: StorageCredentials, client=None) -> None:
        self.credentials = credentials
        self.bucket = credentials.bucket
        self._client = client

    @property
    def client(self):
        if self._client is None:
            kwargs = {}
            if self.credentials.endpoint_url:
                kwargs["endpoint_url"] = self.credentials.endpoint_url
            self._client = boto3.client(
                service_name="s3",
                region_name=self.credentials.region,
                aws_access_key_id=self.credentials.access_key_id,
                aws_secret_access_key=self.credentials.access_key_secret,
                **kwargs,
            )
        return self._client

    def put(self, key: str, local_path: Path) -> None:
        self.client.upload_file(str(local_path), self.bucket, key)


# =============================================================================
# Task Collection
# =============================================================================


def join_remote(*parts: str) -> str:
    """Join key segments with '/', ignoring empty segments and stray slashes."""
    return "/".join(p.strip("/") for p in parts if p.strip("/"))


def collect_upload_tasks(local_root: Path, remote_root: str = "") -> list[UploadTask]:
    """
    Turn every regular file under ``local_root`` into an UploadTask.

    Parameters
    ----------
    local_root : Path
        Directory to mirror.

    remote_root : str
        Key prefix. Empty means keys are the bare relative paths.

    Returns
    -------
    list[UploadTask]
        Tasks in depth-first, name-sorted order.

    Raises
    ------
    FileNotFoundError
        If ``local_root`` does not exist.
    NotADirectoryError
        If ``local_root`` is not a directory.
    """
    if not local_root.exists():
        msg = f"Upload directory not found: {local_root}"
        raise FileNotFoundError(msg)
    if not local_root.is_dir():
        msg = f"Not a directory: {local_root}"
        raise NotADirectoryError(msg)

    tasks: list[UploadTask] = []

    def walk(directory: Path, prefix: str) -> None:
        for entry in sorted(directory.iterdir(), key=lambda p: p.name):
            key = join_remote(prefix, entry.name)
            if entry.is_dir():
                walk(entry, key)
            elif entry.is_file():
                tasks.append(UploadTask(entry, key))

    walk(local_root, remote_root)
    return tasks


# =============================================================================
# Progress Display
# =============================================================================


def render_progress_bar(current: int, total: int, width: int = BAR_WIDTH) -> str:
    """
    Render a block progress bar.

    Examples
    --------
    >>> render_progress_bar(1, 2, width=6)
    '[███░░░]  50% (1/2)'
    """
    fraction = current / total if total else 1.0
    filled = min(width, int(width * fraction + 0.5))
    bar = "█" * filled + "░" * (width - filled)
    percent = int(fraction * 100 + 0.5)
    return f"[{bar}] {percent:>3}% ({current}/{total})"


class BlockBarColumn(ProgressColumn):
    """Progress column drawing :func:`render_progress_bar`."""

    def __init__(self, width: int = BAR_WIDTH) -> None:
        super().__init__()
        self.width = width

    def render(self, task: Task) -> Text:
        total = int(task.total or 0)
        return Text(render_progress_bar(int(task.completed), total, self.width))


# =============================================================================
# Upload
# =============================================================================


def upload_directory(
    tasks: Sequence[UploadTask],
    store: ObjectStore,
    *,
    out: Console | None = None,
) -> UploadResult:
    """
    Upload tasks one after another.

    Parameters
    ----------
    tasks : Sequence[UploadTask]
        Files to upload, in order.

    store : ObjectStore
        Destination.

    out : Console | None
        Console for the progress bar; defaults to the module console.

    Returns
    -------
    UploadResult
        Totals and the failed local paths.
    """
    out = out or console
    result = UploadResult(total=len(tasks))

    with Progress(
        TextColumn("Uploading"),
        BlockBarColumn(),
        console=out,
    ) as progress:
        bar = progress.add_task("upload", total=len(tasks))
        for task in tasks:
            try:
                store.put(task.remote_path, task.local_path)
            except Exception as e:
                result.failed_paths.append(task.local_path)
                progress.console.print(f"[red]Upload failed:[/] {task.local_path} ({e})")
            else:
                result.succeeded += 1
            progress.advance(bar)

    return result


def resolve_remote_dir(
    remote_dir: str | None,
    configured: str,
    package_name: str | None,
) -> str:
    """Pick the remote directory: explicit option, then config, then package name."""
    for candidate in (remote_dir, configured, package_name):
        if candidate is not None and candidate.strip("/"):
            return candidate.strip("/")
    return ""


def resolve_upload_target(
    project_dir: Path,
    local_dir: Path | None = None,
    remote_dir: str | None = None,
) -> tuple[Path, str]:
    """
    Resolve what to upload and where.

    Command-line values win, then the ``oss`` section of houseforge.json,
    then the package name for the remote directory. The settings file is
    only read, never created.

    Raises
    ------
    ValueError
        If houseforge.json exists but is invalid.
    """
    settings = ProjectSettings()
    settings_path = project_dir / SETTINGS_FILE
    if settings_path.exists():
        settings = ProjectSettings.from_json_data(
            json.loads(settings_path.read_text(encoding="utf-8"))
        )

    package_name = None
    try:
        data, _ = load_manifest(project_dir / MANIFEST_FILE)
    except ManifestError:
        data = {}
    if isinstance(data.get("name"), str):
        package_name = data["name"]

    local = local_dir if local_dir is not None else Path(settings.oss.local_dir)
    if not local.is_absolute():
        local = project_dir / local

    remote = resolve_remote_dir(remote_dir, settings.oss.oss_dir, package_name or settings.name)
    return local, remote


def access_url(credentials: StorageCredentials, remote_root: str) -> str:
    """Public URL of ``remote_root``, ending with '/'."""
    base = credentials.access_base_url
    return f"{base}/{remote_root}/" if remote_root else f"{base}/"


def upload_project(
    local_dir: Path,
    remote_dir: str,
    credentials: StorageCredentials,
    *,
    store: ObjectStore | None = None,
    verbose: bool = True,
) -> UploadResult:
    """
    Upload a directory and report the outcome.

    Parameters
    ----------
    local_dir : Path
        Directory to mirror.

    remote_dir : str
        Remote key prefix.

    credentials : StorageCredentials
        Loaded credentials; also used for the access URL.

    store : ObjectStore | None
        Destination; defaults to an :class:`S3ObjectStore`.

    verbose : bool, default=True
        Print totals, failures and the access URL.

    Raises
    ------
    FileNotFoundError
        If ``local_dir`` does not exist.
    """
    tasks = collect_upload_tasks(local_dir, remote_dir)
    store = store or S3ObjectStore(credentials)

    if verbose:
        console.print(f"Total files: [bold]{len(tasks)}[/]")

    result = upload_directory(tasks, store)
    if result.succeeded:
        result.access_url = access_url(credentials, remote_dir)

    if verbose:
        console.print(
            f"Upload finished: [green]{result.succeeded} succeeded[/], "
            f"[{'red' if result.failed else 'dim'}]{result.failed} failed[/]"
        )
        if result.failed_paths:
            console.print("[red]Failed files:[/]")
            for path in result.failed_paths:
                console.print(f"  {path}")
        if result.access_url:
            console.print(f"\nAccess URL: [cyan]{result.access_url}[/]")

    return result
