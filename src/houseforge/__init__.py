"""
houseforge - TypeScript Package Scaffolding and Refresh
=======================================================

A CLI tool that creates TypeScript packages in a house style and keeps
existing packages in line with it, plus a small uploader that mirrors a
built directory into S3-compatible object storage.

Features
--------
- **Managed files**: lint, docs, test, hook, license, editor and CI
  configuration regenerated from templates
- **Respects edits**: customized files are detected and left alone
- **package.json patching**: scripts, entry points and devDependency
  versions, with formatting preserved
- **Upload**: sequential directory upload with a progress bar

Quick Start
-----------
```bash
pip install houseforge

houseforge create my-lib --scope acme
cd my-lib
houseforge update
```

Architecture
------------
- ``cli``: Typer-based command line interface
- ``models``: Pydantic models for houseforge.json and credentials
- ``artifacts``: Managed artifact registry and template rendering
- ``ignorelist``: Line model of .gitignore
- ``reconciler``: Per-artifact create / skip / overwrite decisions
- ``manifest``: package.json patching
- ``generator``: create and update orchestration
- ``uploader``: Directory upload to object storage
"""

# =============================================================================
# Package Metadata
# =============================================================================
__version__ = "0.1.0"
__license__ = "MIT"

# =============================================================================
# Public API Exports
# =============================================================================

from houseforge.generator import create_project, update_project
from houseforge.models import ArtifactPolicy, ProjectSettings, UpdateGroup
from houseforge.uploader import upload_project


__all__ = [
    "ArtifactPolicy",
    "ProjectSettings",
    "UpdateGroup",
    "__version__",
    "create_project",
    "update_project",
    "upload_project",
]
