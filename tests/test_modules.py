"""
Tests for module discovery and selection — catalog tiers, patterns, closure.
"""

from pathlib import Path

import pytest

from devduck.core.errors import UnknownModuleSelection
from devduck.core.models.config import WorkspaceConfig
from devduck.core.models.module import ModuleDescriptor, ModuleTier
from devduck.core.modules.catalog import ModuleCatalog, discover_catalog, load_module
from devduck.core.modules.resolver import expand_patterns, module_settings, resolve_modules


def _catalog(*specs: tuple[str, list[str]]) -> ModuleCatalog:
    return ModuleCatalog.from_modules([
        ModuleDescriptor(name=name, dependencies=deps, tier=ModuleTier.BUILTIN)
        for name, deps in specs
    ])


# ── Catalog ──────────────────────────────────────────────────────────


class TestLoadModule:
    def test_module_yml(self, workspace: Path, make_module):
        module_dir = make_module("git", """\
            name: git
            version: 1.0
            description: Git tooling
            dependencies: [core]
            checks:
              - name: git-installed
                test: git --version
                install: apt-get install -y git
        """)
        module = load_module(module_dir, ModuleTier.WORKSPACE)
        assert module is not None
        assert module.name == "git"
        assert module.version == "1.0"
        assert module.dependencies == ["core"]
        assert module.checks[0].install == "apt-get install -y git"
        assert module.path == str(module_dir)
        assert module.tier is ModuleTier.WORKSPACE

    def test_name_defaults_to_directory(self, workspace: Path, make_module):
        module_dir = make_module("docker", "description: containers\n")
        assert load_module(module_dir, ModuleTier.WORKSPACE).name == "docker"

    def test_unnamed_checks_named_after_module(self, workspace: Path, make_module):
        module_dir = make_module("github", """\
            checks:
              - type: auth
                var: GITHUB_TOKEN
                test: gh auth status
              - test: gh --version
        """)
        module = load_module(module_dir, ModuleTier.WORKSPACE)
        assert [c.name for c in module.checks] == ["github-auth", "github-check"]

    def test_module_md_frontmatter(self, tmp_path: Path, write_file):
        module_dir = tmp_path / "lint"
        write_file(module_dir / "MODULE.md", """\
            ---
            name: lint
            tags: [quality]
            ---
            # Lint

            Linters for every project.
        """)
        module = load_module(module_dir, ModuleTier.PROJECT)
        assert module.name == "lint"
        assert module.tags == ["quality"]

    def test_directory_without_descriptor(self, tmp_path: Path):
        (tmp_path / "empty").mkdir()
        assert load_module(tmp_path / "empty", ModuleTier.WORKSPACE) is None

    def test_invalid_descriptor_skipped(self, workspace: Path, make_module):
        module_dir = make_module("bad", "checks:\n  - name: x\n    optional: [not, a, bool]\n")
        assert load_module(module_dir, ModuleTier.WORKSPACE) is None

    def test_undecodable_descriptor_skipped(self, workspace: Path, make_module):
        module_dir = make_module("bad")
        (module_dir / "module.yml").write_bytes(b"name: bad\ndescription: \xff\xfe\n")
        assert load_module(module_dir, ModuleTier.WORKSPACE) is None

        make_module("good")
        assert discover_catalog(workspace).names() == ["good"]


class TestDiscoverCatalog:
    def test_tier_override(self, workspace: Path, tmp_path: Path, make_module):
        builtin = tmp_path / "devduck"
        make_module("git", "description: builtin git\n", root=builtin)
        make_module("core", "description: builtin core\n", root=builtin)
        make_module("git", "description: workspace git\n")

        catalog = discover_catalog(workspace, builtin)
        git = catalog.get("git")
        assert git.description == "workspace git"
        assert git.tier is ModuleTier.WORKSPACE
        assert catalog.get("core").tier is ModuleTier.BUILTIN
        assert len(catalog) == 2

    def test_all_four_tiers(self, workspace: Path, tmp_path: Path, make_module):
        builtin = tmp_path / "devduck"
        make_module("a", root=builtin)
        make_module("b", root=workspace / "devduck" / "tools")
        make_module("c", root=workspace / "projects" / "api")
        make_module("d")

        catalog = discover_catalog(workspace, builtin)
        tiers = {m.name: m.tier for m in catalog.all_modules()}
        assert tiers == {
            "a": ModuleTier.BUILTIN,
            "b": ModuleTier.EXTERNAL,
            "c": ModuleTier.PROJECT,
            "d": ModuleTier.WORKSPACE,
        }

    def test_project_beats_external_beats_builtin(self, workspace: Path, tmp_path: Path, make_module):
        builtin = tmp_path / "devduck"
        make_module("x", "description: builtin\n", root=builtin)
        make_module("x", "description: external\n", root=workspace / "devduck" / "tools")
        assert discover_catalog(workspace, builtin).get("x").description == "external"
        make_module("x", "description: project\n", root=workspace / "projects" / "api")
        assert discover_catalog(workspace, builtin).get("x").description == "project"

    def test_skip_downloaded_tiers(self, workspace: Path, make_module):
        make_module("b", root=workspace / "devduck" / "tools")
        make_module("c", root=workspace / "projects" / "api")
        catalog = discover_catalog(workspace, None, include_projects=False, include_external=False)
        assert catalog.names() == []

    def test_builtin_under_projects_stays_builtin(self, workspace: Path, make_module):
        builtin = workspace / "projects" / "devduck"
        make_module("core", root=builtin)
        catalog = discover_catalog(workspace, builtin)
        assert catalog.get("core").tier is ModuleTier.BUILTIN

    def test_modules_dir_name(self, workspace: Path, write_file):
        write_file(workspace / "modules" / "alt" / "module.yml", "name: alt\n")
        assert discover_catalog(workspace).names() == ["alt"]


# ── Selection ────────────────────────────────────────────────────────


class TestExpandPatterns:
    KNOWN = ["core", "git", "ci-github", "ci-gitlab"]

    def test_wildcard(self):
        assert expand_patterns(["*"], self.KNOWN) == self.KNOWN

    def test_glob(self):
        assert expand_patterns(["ci-*"], self.KNOWN) == ["ci-github", "ci-gitlab"]

    def test_glob_matching_nothing_is_empty(self):
        assert expand_patterns(["nope-*"], self.KNOWN) == []

    def test_exact_names_keep_order(self):
        assert expand_patterns(["git", "core", "git"], self.KNOWN) == ["git", "core"]

    def test_unknown_strict(self):
        with pytest.raises(UnknownModuleSelection) as exc:
            expand_patterns(["nope"], self.KNOWN)
        assert exc.value.name == "nope"
        assert "git" in str(exc.value)

    def test_unknown_lenient(self):
        assert expand_patterns(["nope", "git"], self.KNOWN, strict=False) == ["git"]


class TestResolveModules:
    def test_dependency_closure_order(self):
        catalog = _catalog(("app", ["lib"]), ("lib", ["core"]), ("core", []))
        resolved = resolve_modules(["app"], catalog)
        assert resolved.names() == ["core", "lib", "app"]
        assert resolved.requested == ["app"]

    def test_shared_dependency_once(self):
        catalog = _catalog(("a", ["core"]), ("b", ["core"]), ("core", []))
        assert resolve_modules(["a", "b"], catalog).names() == ["core", "a", "b"]

    def test_request_order_kept(self):
        catalog = _catalog(("a", []), ("b", []), ("c", []))
        assert resolve_modules(["c", "a"], catalog).names() == ["c", "a"]

    def test_missing_dependency_recorded(self):
        catalog = _catalog(("a", ["ghost"]))
        resolved = resolve_modules(["a"], catalog)
        assert resolved.names() == ["a"]
        assert resolved.missing_dependencies == [("a", "ghost")]

    def test_dependency_cycle_terminates(self):
        catalog = _catalog(("x", ["y"]), ("y", ["x"]))
        assert resolve_modules(["x"], catalog).names() == ["y", "x"]

    def test_empty_selection(self):
        catalog = _catalog(("a", []))
        assert len(resolve_modules([], catalog)) == 0

    def test_unknown_strict_raises(self):
        with pytest.raises(UnknownModuleSelection):
            resolve_modules(["missing"], _catalog(("a", [])))

    def test_to_dict(self):
        resolved = resolve_modules(["a"], _catalog(("a", ["ghost"])))
        d = resolved.to_dict()
        assert d["modules"][0]["name"] == "a"
        assert d["missing_dependencies"] == [{"module": "a", "dependency": "ghost"}]


class TestModuleSettings:
    def test_overrides_applied(self):
        module = ModuleDescriptor.model_validate({
            "name": "git",
            "defaultSettings": {"user": "default", "aliases": {"co": "checkout", "st": "status"}},
        })
        config = WorkspaceConfig.from_dict({
            "moduleSettings": {"git": {"user": "me", "aliases": {"st": "status -sb"}}},
        })
        assert module_settings(module, config) == {
            "user": "me",
            "aliases": {"co": "checkout", "st": "status -sb"},
        }
