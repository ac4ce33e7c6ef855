"""
Tests for houseforge.manifest
=============================

Test Organization
-----------------
- TestManifestFormat: Indentation and trailing newline detection
- TestLoadManifest: Error handling when reading package.json
- TestReorder: Canonical key order
- TestManifestPatcher: Individual patch operations
- TestEnsureManifest: Minimal manifest synthesis
- TestPatchManifest: Group-driven patching end to end
"""

import json
from pathlib import Path

import pytest

from houseforge.manifest import (
    ENTRY_POINTS,
    LINT_STAGED,
    STANDARD_SCRIPTS,
    ManifestError,
    ManifestFormat,
    ManifestPatcher,
    dump_manifest,
    ensure_manifest,
    load_manifest,
    normalize_scope,
    patch_manifest,
    reorder_manifest,
    standard_scripts,
)
from houseforge.models import DependencyMode, ProjectSettings, UpdateGroup


def write_manifest(path: Path, data: dict, indent: int | str = 4, newline: bool = True) -> Path:
    text = json.dumps(data, indent=indent)
    path.write_text(text + ("\n" if newline else ""), encoding="utf-8")
    return path


# =============================================================================
# Format Tests
# =============================================================================

class TestManifestFormat:
    """Tests for ManifestFormat.detect."""

    def test_two_spaces(self) -> None:
        fmt = ManifestFormat.detect('{\n  "name": "x"\n}\n')

        assert fmt.indent == "  "
        assert fmt.trailing_newline is True

    def test_tabs_without_newline(self) -> None:
        fmt = ManifestFormat.detect('{\n\t"name": "x"\n}')

        assert fmt.indent == "\t"
        assert fmt.trailing_newline is False

    def test_single_line_defaults_to_four_spaces(self) -> None:
        assert ManifestFormat.detect('{"name": "x"}').indent == "    "

    def test_dump_reproduces_format(self) -> None:
        fmt = ManifestFormat(indent="  ", trailing_newline=False)
        assert dump_manifest({"name": "x"}, fmt) == '{\n  "name": "x"\n}'

    def test_crlf_line_endings(self) -> None:
        fmt = ManifestFormat.detect('{\r\n  "name": "x"\r\n}\r\n')

        assert fmt.newline == "\r\n"
        assert fmt.indent == "  "
        assert fmt.trailing_newline is True
        assert dump_manifest({"name": "x", "description": "a\nb"}, fmt) == (
            '{\r\n  "name": "x",\r\n  "description": "a\\nb"\r\n}\r\n'
        )

    def test_lf_is_default(self) -> None:
        assert ManifestFormat.detect('{\n  "name": "x"\n}\n').newline == "\n"


# =============================================================================
# Load Tests
# =============================================================================

class TestLoadManifest:
    """Tests for load_manifest."""

    def test_missing(self, tmp_path: Path) -> None:
        with pytest.raises(ManifestError, match="not found"):
            load_manifest(tmp_path / "package.json")

    def test_invalid_json(self, tmp_path: Path) -> None:
        path = tmp_path / "package.json"
        path.write_text("{ nope", encoding="utf-8")

        with pytest.raises(ManifestError, match="not valid JSON"):
            load_manifest(path)

    def test_non_object_root(self, tmp_path: Path) -> None:
        path = tmp_path / "package.json"
        path.write_text("[]", encoding="utf-8")

        with pytest.raises(ManifestError, match="JSON object"):
            load_manifest(path)


# =============================================================================
# Reorder Tests
# =============================================================================

class TestReorder:
    """Tests for reorder_manifest."""

    def test_known_keys_first_unknown_after(self) -> None:
        data = {"zeta": 1, "scripts": {}, "version": "1.0.0", "alpha": 2, "name": "x"}

        assert list(reorder_manifest(data)) == ["name", "version", "scripts", "zeta", "alpha"]

    def test_scripts_order(self) -> None:
        data = {"scripts": {"custom": "a", "test": "b", "build": "c", "clean": "d"}}

        assert list(reorder_manifest(data)["scripts"]) == ["clean", "build", "test", "custom"]

    def test_does_not_mutate_input(self) -> None:
        data = {"version": "1", "name": "x"}
        reorder_manifest(data)

        assert list(data) == ["version", "name"]


# =============================================================================
# Patcher Tests
# =============================================================================

class TestManifestPatcher:
    """Tests for ManifestPatcher operations."""

    def test_conservative_updates_only_declared(self, tmp_path: Path) -> None:
        patcher = ManifestPatcher(tmp_path / "package.json", {
            "devDependencies": {"typescript": "4.0.0"},
        })

        changes = patcher.sync_dependencies(
            {"typescript": "5.8.3", "vitest": "^3.1.3"}, DependencyMode.CONSERVATIVE,
        )

        assert patcher.data["devDependencies"] == {"typescript": "5.8.3"}
        assert changes == ["typescript 4.0.0 -> 5.8.3"]

    def test_conservative_without_section(self, tmp_path: Path) -> None:
        patcher = ManifestPatcher(tmp_path / "package.json", {"name": "x"})

        assert patcher.sync_dependencies({"typescript": "5.8.3"}, DependencyMode.CONSERVATIVE) == []
        assert "devDependencies" not in patcher.data

    def test_additive_adds_and_corrects(self, tmp_path: Path) -> None:
        patcher = ManifestPatcher(tmp_path / "package.json", {
            "devDependencies": {"typescript": "4.0.0", "left-pad": "1.0.0"},
        })

        patcher.sync_dependencies({"typescript": "5.8.3", "vitest": "^3.1.3"}, DependencyMode.ADDITIVE)

        assert patcher.data["devDependencies"] == {
            "typescript": "5.8.3",
            "left-pad": "1.0.0",
            "vitest": "^3.1.3",
        }

    def test_scripts_never_replaced(self, tmp_path: Path) -> None:
        patcher = ManifestPatcher(tmp_path / "package.json", {
            "scripts": {"build": "custom build"},
        })

        added = patcher.add_scripts({"build": "vite build && tsc", "test": "vitest run"})

        assert added == ["test"]
        assert patcher.data["scripts"]["build"] == "custom build"

    def test_forced_scripts_replaced(self, tmp_path: Path) -> None:
        patcher = ManifestPatcher(tmp_path / "package.json", {
            "scripts": {"build": "custom build", "test": "jest"},
        })

        patcher.add_scripts({"build": "vite build && tsc", "test": "vitest run"}, force=("build",))

        assert patcher.data["scripts"] == {"build": "vite build && tsc", "test": "jest"}

    def test_scripts_must_be_object(self, tmp_path: Path) -> None:
        patcher = ManifestPatcher(tmp_path / "package.json", {"scripts": "oops"})

        with pytest.raises(ManifestError):
            patcher.add_scripts({"test": "vitest run"})

    def test_entry_points_only_when_absent(self, tmp_path: Path) -> None:
        patcher = ManifestPatcher(tmp_path / "package.json", {
            "exports": {".": "./lib/index.js"},
        })

        set_keys = patcher.set_entry_points()

        assert "exports" not in set_keys
        assert patcher.data["exports"] == {".": "./lib/index.js"}
        assert patcher.data["main"] == "./src/index.ts"

    def test_entry_points_forced(self, tmp_path: Path) -> None:
        patcher = ManifestPatcher(tmp_path / "package.json", {
            "exports": {".": "./lib/index.js"},
        })

        patcher.set_entry_points(force=True)

        assert patcher.data["exports"] == ENTRY_POINTS["exports"]

    def test_entry_point_values_are_copies(self, tmp_path: Path) -> None:
        patcher = ManifestPatcher(tmp_path / "package.json", {})
        patcher.set_entry_points()
        patcher.data["exports"]["."]["import"] = "changed"

        assert ENTRY_POINTS["exports"]["."]["import"] == "./src/index.ts"

    def test_set_field_if_absent(self, tmp_path: Path) -> None:
        patcher = ManifestPatcher(tmp_path / "package.json", {"lint-staged": {}})

        assert patcher.set_field_if_absent("lint-staged", LINT_STAGED) is False
        assert patcher.set_field_if_absent("license", "MIT") is True

    def test_save_writes_only_on_change(self, tmp_path: Path) -> None:
        path = write_manifest(tmp_path / "package.json", {"version": "1.0.0", "name": "x"})
        original = path.read_text(encoding="utf-8")

        patcher = ManifestPatcher.load(path)
        assert patcher.save() is False
        assert path.read_text(encoding="utf-8") == original

    def test_save_preserves_format_and_reorders(self, tmp_path: Path) -> None:
        path = write_manifest(
            tmp_path / "package.json",
            {"custom": True, "version": "1.0.0", "name": "x"},
            indent=2,
            newline=False,
        )

        patcher = ManifestPatcher.load(path)
        patcher.add_scripts({"test": "vitest run"})

        assert patcher.save() is True
        text = path.read_text(encoding="utf-8")
        assert text == (
            '{\n  "name": "x",\n  "version": "1.0.0",\n'
            '  "scripts": {\n    "test": "vitest run"\n  },\n  "custom": true\n}'
        )

    def test_save_keeps_crlf(self, tmp_path: Path) -> None:
        path = tmp_path / "package.json"
        path.write_bytes(b'{\r\n  "name": "x",\r\n  "version": "1.0.0"\r\n}\r\n')

        patcher = ManifestPatcher.load(path)
        patcher.add_scripts({"test": "vitest run"})

        assert patcher.save() is True
        assert path.read_bytes() == (
            b'{\r\n  "name": "x",\r\n  "version": "1.0.0",\r\n'
            b'  "scripts": {\r\n    "test": "vitest run"\r\n  }\r\n}\r\n'
        )

    def test_second_save_is_noop(self, tmp_path: Path) -> None:
        path = write_manifest(tmp_path / "package.json", {"name": "x"})
        patcher = ManifestPatcher.load(path)
        patcher.add_scripts({"test": "vitest run"})

        assert patcher.save() is True
        assert patcher.save() is False


# =============================================================================
# Ensure Manifest Tests
# =============================================================================

class TestEnsureManifest:
    """Tests for ensure_manifest and normalize_scope."""

    def test_normalize_scope(self) -> None:
        assert normalize_scope("acme") == "@acme"
        assert normalize_scope("@acme/") == "@acme"
        assert normalize_scope("") is None
        assert normalize_scope(None) is None

    def test_synthesizes_manifest_and_entry(self, tmp_path: Path) -> None:
        project = tmp_path / "widget"
        project.mkdir()

        created = ensure_manifest(project, "acme", year=2025)

        data, _ = load_manifest(project / "package.json")
        assert data == {"name": "@acme/widget", "version": "0.0.1"}
        assert (project / "src" / "index.ts").is_file()
        assert created == [project / "package.json", project / "src" / "index.ts"]

    def test_keeps_existing_entry(self, tmp_path: Path) -> None:
        (tmp_path / "src").mkdir()
        (tmp_path / "src" / "index.ts").write_text("export {};\n", encoding="utf-8")

        ensure_manifest(tmp_path)

        assert (tmp_path / "src" / "index.ts").read_text(encoding="utf-8") == "export {};\n"

    def test_existing_manifest_untouched(self, project_dir: Path) -> None:
        before = (project_dir / "package.json").read_text(encoding="utf-8")

        assert ensure_manifest(project_dir, "other") == []
        assert (project_dir / "package.json").read_text(encoding="utf-8") == before


# =============================================================================
# Patch Manifest Tests
# =============================================================================

class TestPatchManifest:
    """Tests for patch_manifest."""

    def test_standard_scripts_respect_tool_settings(self) -> None:
        settings = ProjectSettings.model_validate({"eslint": {"enabled": False}})
        scripts = standard_scripts(settings, {UpdateGroup.ESLINT, UpdateGroup.TEST})

        assert "lint" not in scripts
        assert scripts["test"] == "vitest run"

    def test_all_groups(self, project_dir: Path) -> None:
        result = patch_manifest(project_dir, ProjectSettings(), set(UpdateGroup), verbose=False)

        data, _ = load_manifest(project_dir / "package.json")
        assert result.written is True
        assert data["type"] == "module"
        assert data["scripts"]["build"] == STANDARD_SCRIPTS[UpdateGroup.TSCONFIG]["build"]
        assert data["scripts"]["prepare"] == "husky"
        assert data["lint-staged"] == LINT_STAGED
        assert "typescript" in data["devDependencies"]
        assert list(data)[:2] == ["name", "version"]

    def test_idempotent(self, project_dir: Path) -> None:
        patch_manifest(project_dir, ProjectSettings(), set(UpdateGroup), verbose=False)
        before = (project_dir / "package.json").read_bytes()

        result = patch_manifest(project_dir, ProjectSettings(), set(UpdateGroup), verbose=False)

        assert result.written is False
        assert result.changes == []
        assert (project_dir / "package.json").read_bytes() == before

    def test_user_scripts_win(self, project_dir: Path) -> None:
        write_manifest(project_dir / "package.json", {
            "name": "x",
            "scripts": {"build": "custom build", "test": "custom test"},
        })

        patch_manifest(project_dir, ProjectSettings(), set(UpdateGroup), verbose=False)

        data, _ = load_manifest(project_dir / "package.json")
        assert data["scripts"]["build"] == "custom build"
        assert data["scripts"]["test"] == "custom test"
        assert data["scripts"]["clean"] == "rimraf lib dist public"

    def test_migrate_forces_standard_scripts(self, project_dir: Path) -> None:
        write_manifest(project_dir / "package.json", {
            "name": "x",
            "main": "./lib/index.js",
            "scripts": {"build": "custom build", "test": "custom test"},
        })

        patch_manifest(
            project_dir, ProjectSettings(), set(UpdateGroup), migrate=True, verbose=False,
        )

        data, _ = load_manifest(project_dir / "package.json")
        assert data["scripts"]["build"] == "vite build && tsc"
        assert data["scripts"]["test"] == "custom test"
        assert data["main"] == "./src/index.ts"

    def test_conservative_mode_from_settings(self, project_dir: Path) -> None:
        write_manifest(project_dir / "package.json", {
            "name": "x",
            "devDependencies": {"typescript": "4.0.0"},
        })
        settings = ProjectSettings.model_validate({"dependencies": {"mode": "conservative"}})

        patch_manifest(project_dir, settings, {UpdateGroup.DEPS}, verbose=False)

        data, _ = load_manifest(project_dir / "package.json")
        assert data["devDependencies"] == {"typescript": "5.8.3"}

    def test_coverage_kept_in_sync_when_declared(self, project_dir: Path) -> None:
        write_manifest(project_dir / "package.json", {
            "name": "x",
            "devDependencies": {"@vitest/coverage-v8": "^1.0.0"},
        })

        patch_manifest(project_dir, ProjectSettings(), {UpdateGroup.DEPS}, verbose=False)

        data, _ = load_manifest(project_dir / "package.json")
        assert data["devDependencies"]["@vitest/coverage-v8"] == "^3.2.4"

    def test_unparseable_manifest(self, project_dir: Path) -> None:
        (project_dir / "package.json").write_text("{", encoding="utf-8")

        with pytest.raises(ManifestError):
            patch_manifest(project_dir, ProjectSettings(), set(UpdateGroup), verbose=False)
