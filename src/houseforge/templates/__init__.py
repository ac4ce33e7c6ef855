"""
houseforge.templates - Jinja2 Template Files
============================================

This package contains the Jinja2 templates for every file houseforge
generates. Templates use the .j2 extension and are rendered by
``houseforge.artifacts``.

Template Naming Convention
--------------------------
- Templates end with `.j2` extension
- Dot-files drop their leading dot: `gitignore.j2` -> `.gitignore`
- Nested outputs use a prefix: `github_pages.yml.j2` ->
  `.github/workflows/pages.yml`

Available Templates
-------------------
Project files:
    - gitignore.j2, cursorrules.j2, LICENSE_MIT.j2, README.md.j2
    - src_index.ts.j2, test_index.test.ts.j2, examples_index.html.j2

Tooling:
    - eslint.config.js.j2, tsconfig.json.j2, vite.config.js.j2
    - typedoc.json.j2, vscode_settings.json.j2, husky_pre-commit.j2
    - prepublish.js.j2, postpublish.js.j2, postdocs.js.j2

Workflows:
    - github_publish.yml.j2, github_pages.yml.j2
    - github_pull-request.yml.j2, github_upload-oss.yml.j2

Data:
    - versions.json.j2: standard devDependency versions

Template Context
----------------
    name : str
        Full package name (may include an npm scope)

    repo_name : str
        Package name without its scope

    description : str
        Package description from package.json

    year : int
        Current year (for licenses)

    settings : ProjectSettings
        Effective houseforge.json settings
"""

# Templates are loaded on demand by Jinja2's PackageLoader.
