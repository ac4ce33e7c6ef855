"""
houseforge test suite
=====================

Test Modules
------------
- test_models.py: Pydantic models for settings and credentials
- test_ignorelist.py: .gitignore line model
- test_artifacts.py: Artifact registry and template rendering
- test_reconciler.py: Reconciliation engine
- test_manifest.py: package.json patcher
- test_uploader.py: Directory upload pipeline
- test_generator.py: create / update orchestration
- test_cli.py: Command-line interface

Running Tests
-------------
    # Run all tests
    pytest

    # Run specific module
    pytest tests/test_reconciler.py

    # Run specific test class
    pytest tests/test_manifest.py::TestManifestPatcher
"""
