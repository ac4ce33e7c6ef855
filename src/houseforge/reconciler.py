"""
houseforge.reconciler - Template Reconciliation Engine
======================================================

This module brings a project's managed files into agreement with the
current templates while respecting user edits.

Per-Artifact Decision Table
---------------------------
============================  ==========================  ===============
Policy                        File exists                 Action
============================  ==========================  ===============
any                           no                          created
always-overwrite              yes                         updated
create-if-missing             yes                         skipped
overwrite-if-ignored          yes, equals template        unchanged
overwrite-if-ignored          yes, listed in .gitignore   updated
overwrite-if-ignored          yes, differs                customized
============================  ==========================  ===============

"Equals template" uses the artifact's own comparison: byte equality, or
structural equality for JSON artifacts, the same test the ignore-list
sweep applies. A write only happens when that comparison fails, so
"updated" becomes "unchanged" on a second run and the whole process is
idempotent.

Ignore-List Sweep
-----------------
After the artifacts are processed, :func:`sync_ignore_list` recomputes for
every tracked artifact that exists whether it equals its template, adding
it to ``.gitignore`` when it does and removing it when it does not.

Failure Semantics
-----------------
An ``OSError`` while handling one artifact is reported and counted; the
remaining artifacts are still processed. Nothing is rolled back: running
``houseforge update`` again is the recovery path.
"""

from __future__ import annotations

import stat
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING

from rich.console import Console

from houseforge.artifacts import IGNORE_FILE
from houseforge.ignorelist import IgnoreList
from houseforge.models import ArtifactPolicy


if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence
    from pathlib import Path

    from houseforge.artifacts import ManagedArtifact
    from houseforge.models import TemplateContext


console = Console()


class ArtifactAction(str, Enum):
    """What the reconciler did with one artifact."""

    CREATED = "created"
    UPDATED = "updated"
    UNCHANGED = "unchanged"
    SKIPPED = "skipped"
    CUSTOMIZED = "customized"
    FAILED = "failed"


@dataclass
class ArtifactOutcome:
    """
    Result for a single artifact.

    Attributes
    ----------
    path : str
        Artifact path relative to the project root.

    action : ArtifactAction
        Decision taken.

    detail : str
        Extra explanation (reason for a skip, error message).
    """

    path: str
    action: ArtifactAction
    detail: str = ""

    @property
    def wrote_file(self) -> bool:
        return self.action in {ArtifactAction.CREATED, ArtifactAction.UPDATED}


@dataclass
class ReconcileResult:
    """
    Result of a reconciliation run.

    Attributes
    ----------
    outcomes : list[ArtifactOutcome]
        One entry per processed artifact, in processing order.

    ignore_changes : list[str]
        Human-readable ignore-list edits made by the sweep.

    ignore_list_written : bool
        Whether ``.gitignore`` was rewritten.
    """

    outcomes: list[ArtifactOutcome] = field(default_factory=list)
    ignore_changes: list[str] = field(default_factory=list)
    ignore_list_written: bool = False

    @property
    def failure_count(self) -> int:
        return sum(1 for o in self.outcomes if o.action is ArtifactAction.FAILED)

    @property
    def written_paths(self) -> list[str]:
        """Paths whose file content was written during the run."""
        return [o.path for o in self.outcomes if o.wrote_file]

    def outcome_for(self, path: str) -> ArtifactOutcome | None:
        for outcome in self.outcomes:
            if outcome.path == path:
                return outcome
        return None


# =============================================================================
# File Helpers
# =============================================================================


def _write_artifact(target: Path, content: str, *, executable: bool) -> None:
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_bytes(content.encode("utf-8"))
    if executable:
        mode = target.stat().st_mode
        target.chmod(mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)


def _report(outcome: ArtifactOutcome, out: Console | None) -> None:
    if out is None:
        return

    styles = {
        ArtifactAction.CREATED: "green",
        ArtifactAction.UPDATED: "cyan",
        ArtifactAction.UNCHANGED: "dim",
        ArtifactAction.SKIPPED: "dim",
        ArtifactAction.CUSTOMIZED: "yellow",
        ArtifactAction.FAILED: "red",
    }
    style = styles[outcome.action]
    suffix = f" ({outcome.detail})" if outcome.detail else ""
    out.print(f"  [{style}]{outcome.action.value:<10}[/] {outcome.path}{suffix}")


# =============================================================================
# Modification Checks
# =============================================================================


def is_modified(
    project_dir: Path,
    artifact: ManagedArtifact,
    context: TemplateContext,
) -> bool | None:
    """
    Compare an artifact on disk against its freshly rendered template.

    Returns
    -------
    bool | None
        None if the file does not exist; True if it differs (or cannot be
        parsed); False if it matches.

    Raises
    ------
    OSError
        If the file exists but cannot be read.
    """
    target = project_dir / artifact.path
    if not target.is_file():
        return None
    return not artifact.matches(target.read_bytes(), artifact.render(context))


# =============================================================================
# Reconciliation
# =============================================================================


def reconcile_artifact(
    project_dir: Path,
    artifact: ManagedArtifact,
    context: TemplateContext,
    ignore_list: IgnoreList | None = None,
) -> ArtifactOutcome:
    """
    Apply the decision table to one artifact.

    Parameters
    ----------
    project_dir : Path
        Project root.

    artifact : ManagedArtifact
        Artifact to reconcile.

    context : TemplateContext
        Values for rendering.

    ignore_list : IgnoreList | None
        Current ignore list; None behaves like an empty list.

    Returns
    -------
    ArtifactOutcome
        The decision taken.

    Raises
    ------
    OSError
        On read or write failures. :func:`reconcile` converts these into
        ``failed`` outcomes.
    """
    target = project_dir / artifact.path
    rendered = artifact.render(context)

    if not target.exists():
        _write_artifact(target, rendered, executable=artifact.executable)
        return ArtifactOutcome(artifact.path, ArtifactAction.CREATED)

    if artifact.policy is ArtifactPolicy.CREATE_IF_MISSING:
        return ArtifactOutcome(artifact.path, ArtifactAction.SKIPPED, "exists")

    on_disk = target.read_bytes()
    identical = on_disk == rendered.encode("utf-8")

    if artifact.policy is ArtifactPolicy.ALWAYS_OVERWRITE:
        if identical:
            return ArtifactOutcome(artifact.path, ArtifactAction.UNCHANGED)
        _write_artifact(target, rendered, executable=artifact.executable)
        return ArtifactOutcome(artifact.path, ArtifactAction.UPDATED)

    # OVERWRITE_IF_IGNORED_OR_MISSING
    # Same comparison as the ignore-list sweep, so a file the sweep lists is
    # not rewritten on the next run
    if artifact.matches(on_disk, rendered):
        return ArtifactOutcome(artifact.path, ArtifactAction.UNCHANGED)

    listed = ignore_list is not None and ignore_list.contains(artifact.path)
    if listed:
        _write_artifact(target, rendered, executable=artifact.executable)
        return ArtifactOutcome(artifact.path, ArtifactAction.UPDATED, "listed in .gitignore")

    if ignore_list is not None:
        ignore_list.remove(artifact.path)
    return ArtifactOutcome(artifact.path, ArtifactAction.CUSTOMIZED, "kept user changes")


def sync_ignore_list(
    project_dir: Path,
    artifacts: Iterable[ManagedArtifact],
    context: TemplateContext,
    ignore_list: IgnoreList,
    *,
    out: Console | None = None,
) -> list[str]:
    """
    Make ``.gitignore`` list exactly the tracked artifacts that match.

    For every artifact taking part in ignore-list bookkeeping that exists
    on disk, add it to the list when it equals its template and remove it
    when it differs. Missing artifacts are left as they are.

    Returns
    -------
    list[str]
        Descriptions of the edits made.
    """
    changes: list[str] = []

    for artifact in artifacts:
        if not artifact.ignore_tracked:
            continue

        try:
            modified = is_modified(project_dir, artifact, context)
        except OSError as e:
            if out is not None:
                out.print(f"  [red]failed[/]     {artifact.path} ({e})")
            continue

        if modified is None:
            continue

        if modified and ignore_list.remove(artifact.path):
            changes.append(f"Removed {artifact.path} from {IGNORE_FILE} (customized)")
            if out is not None:
                out.print(
                    f"  [yellow]untracked[/]  {artifact.path} removed from "
                    f"{IGNORE_FILE} (customized)"
                )
        elif not modified and ignore_list.add(artifact.path):
            changes.append(f"Added {artifact.path} to {IGNORE_FILE} (matches template)")
            if out is not None:
                out.print(
                    f"  [dim]ignored[/]    {artifact.path} added to "
                    f"{IGNORE_FILE} (matches template)"
                )

    return changes


def reconcile(
    project_dir: Path,
    artifacts: Sequence[ManagedArtifact],
    context: TemplateContext,
    *,
    sweep: Iterable[ManagedArtifact] | None = None,
    verbose: bool = True,
) -> ReconcileResult:
    """
    Reconcile a project's managed files and then sweep ``.gitignore``.

    Parameters
    ----------
    project_dir : Path
        Project root.

    artifacts : Sequence[ManagedArtifact]
        Artifacts selected for this run, in processing order.

    context : TemplateContext
        Values for rendering.

    sweep : Iterable[ManagedArtifact] | None
        Artifacts to include in the final ignore-list sweep. Defaults to
        ``artifacts``.

    verbose : bool, default=True
        Print one status line per artifact.

    Returns
    -------
    ReconcileResult
        Outcomes, ignore-list edits and the failure count.
    """
    out = console if verbose else None
    result = ReconcileResult()

    def process(artifact: ManagedArtifact, ignore_list: IgnoreList | None) -> None:
        try:
            outcome = reconcile_artifact(project_dir, artifact, context, ignore_list)
        except OSError as e:
            outcome = ArtifactOutcome(artifact.path, ArtifactAction.FAILED, str(e))
        result.outcomes.append(outcome)
        _report(outcome, out)

    # The ignore file itself is settled before anything consults it.
    for artifact in artifacts:
        if artifact.path == IGNORE_FILE:
            process(artifact, None)

    ignore_path = project_dir / IGNORE_FILE
    try:
        ignore_list = IgnoreList.load(ignore_path)
    except OSError as e:
        if out is not None:
            out.print(f"  [red]failed[/]     {IGNORE_FILE} ({e})")
        ignore_list = IgnoreList(path=ignore_path, exists=False)

    for artifact in artifacts:
        if artifact.path != IGNORE_FILE:
            process(artifact, ignore_list)

    result.ignore_changes = sync_ignore_list(
        project_dir,
        artifacts if sweep is None else sweep,
        context,
        ignore_list,
        out=out,
    )

    try:
        result.ignore_list_written = ignore_list.save()
    except OSError as e:
        result.outcomes.append(
            ArtifactOutcome(IGNORE_FILE, ArtifactAction.FAILED, str(e))
        )
        if out is not None:
            out.print(f"  [red]failed[/]     {IGNORE_FILE} ({e})")

    return result
