"""
Tests for domain models — config, checks, modules and install state.
"""

import pytest

from devduck.core.errors import ConfigError
from devduck.core.models.check import CheckIdentity, CheckResult
from devduck.core.models.config import CheckSpec, ProjectSpec, WorkspaceConfig, source_basename
from devduck.core.models.module import ModuleDescriptor, ModuleTier
from devduck.core.models.state import InstallState

# ── Config ───────────────────────────────────────────────────────────


class TestCheckSpec:
    def test_defaults(self):
        spec = CheckSpec(name="node")
        assert spec.effective_requirement == "required"
        assert spec.is_required
        assert spec.effective_tier == "pre-install"
        assert not spec.is_auth

    def test_optional_flag(self):
        assert CheckSpec(name="x", optional=True).effective_requirement == "optional"

    def test_requirement_field_wins(self):
        spec = CheckSpec(name="x", optional=True, requirement="recommended")
        assert spec.effective_requirement == "recommended"
        assert not spec.is_required

    def test_misspelled_recommended(self):
        assert CheckSpec(name="x", requirement="recomended").effective_requirement == "recommended"

    def test_unknown_tier_runs_first(self):
        assert CheckSpec(name="x", tier="later").effective_tier == "pre-install"
        assert CheckSpec(name="x", tier="tests").effective_tier == "tests"

    def test_auth_type_case_insensitive(self):
        assert CheckSpec(name="x", type="Auth").is_auth

    def test_mcp_settings_alias(self):
        spec = CheckSpec.model_validate({"name": "x", "mcpSettings": {"command": "srv"}})
        assert spec.mcp_settings == {"command": "srv"}


class TestProjectSpec:
    @pytest.mark.parametrize(
        "src, name",
        [
            ("github.com/acme/api", "api"),
            ("git@github.com:acme/api.git", "api"),
            ("https://gitlab.com/acme/web.git", "web"),
            ("../local/tools/", "tools"),
        ],
    )
    def test_project_name(self, src, name):
        assert ProjectSpec(src=src).project_name == name
        assert source_basename(src) == name

    def test_explicit_name(self):
        assert ProjectSpec(src="github.com/acme/api", name="backend").project_name == "backend"

    def test_is_git(self):
        assert ProjectSpec(src="github.com/acme/api").is_git
        assert ProjectSpec(src="git@github.com:acme/api.git").is_git
        assert not ProjectSpec(src="../api").is_git

    def test_clone_url(self):
        assert ProjectSpec(src="github.com/acme/api").clone_url == "https://github.com/acme/api"
        assert ProjectSpec(src="git@host:a/b.git").clone_url == "git@host:a/b.git"


class TestWorkspaceConfig:
    def test_defaults(self):
        config = WorkspaceConfig.from_dict({})
        assert config.modules == ["*"]
        assert config.version == "0.1.0"
        assert config.projects == []

    def test_unknown_keys_kept_in_extra(self):
        config = WorkspaceConfig.from_dict({"modules": ["git"], "cursor": {"rules": True}})
        assert config.extra == {"cursor": {"rules": True}}

    def test_extensions_alias(self):
        assert WorkspaceConfig.from_dict({"extensions": ["git"]}).modules == ["git"]

    def test_modules_wins_over_extensions(self):
        config = WorkspaceConfig.from_dict({"modules": ["a"], "extensions": ["b"]})
        assert config.modules == ["a"]

    def test_modules_string(self):
        assert WorkspaceConfig.from_dict({"modules": "*"}).modules == ["*"]

    def test_null_sections(self):
        config = WorkspaceConfig.from_dict({"repos": None, "projects": None, "modules": None})
        assert config.repos == []
        assert config.modules == ["*"]

    def test_numeric_version(self):
        assert WorkspaceConfig.from_dict({"version": 1.2}).version == "1.2"

    def test_scalar_env_defaults_become_text(self):
        config = WorkspaceConfig.from_dict({"env": [
            {"name": "PORT", "default": 8080},
            {"name": "RATIO", "default": 0.5},
            {"name": "DEBUG", "default": True},
            {"name": "TOKEN"},
        ]})
        assert [e.default for e in config.env] == ["8080", "0.5", "true", None]

    def test_invalid_shape(self):
        with pytest.raises(ConfigError, match="Invalid workspace config"):
            WorkspaceConfig.from_dict({"projects": "not-a-list"})

    def test_settings_for(self):
        config = WorkspaceConfig.from_dict({"moduleSettings": {"git": {"user": "a"}}})
        assert config.settings_for("git") == {"user": "a"}
        assert config.settings_for("other") == {}


# ── Checks ───────────────────────────────────────────────────────────


class TestCheckIdentity:
    def test_key(self):
        ident = CheckIdentity.for_module("git", "git-installed")
        assert ident.key == "module:git:git-installed"
        assert str(ident) == ident.key

    def test_parse_roundtrip(self):
        ident = CheckIdentity.for_project("api", "npm:ci")
        assert CheckIdentity.parse(ident.key) == ident

    def test_workspace_scope(self):
        assert CheckIdentity.for_workspace("docker").key == "workspace:workspace:docker"

    def test_distinct_scopes(self):
        assert CheckIdentity.for_module("a", "x") != CheckIdentity.for_project("a", "x")


class TestCheckResult:
    def test_blocking_only_when_required(self):
        required = CheckResult(check_id="a", name="a", status="failed")
        optional = CheckResult(check_id="b", name="b", status="failed", requirement="optional")
        recommended = CheckResult(check_id="c", name="c", status="failed", requirement="recommended")
        assert required.blocking
        assert not optional.blocking and optional.optional_missing
        assert not recommended.blocking and recommended.optional_missing

    def test_skipped_not_blocking(self):
        result = CheckResult(check_id="a", name="a", status="skipped")
        assert result.skipped and not result.blocking


# ── Modules ──────────────────────────────────────────────────────────


class TestModuleDescriptor:
    def test_tier_priority(self):
        assert ModuleTier.WORKSPACE.priority < ModuleTier.PROJECT.priority
        assert ModuleTier.PROJECT.priority < ModuleTier.EXTERNAL.priority
        assert ModuleTier.EXTERNAL.priority < ModuleTier.BUILTIN.priority

    def test_aliases_and_hooks(self):
        module = ModuleDescriptor.model_validate({
            "name": "git",
            "defaultSettings": {"user": "x"},
            "hooks": {"install": "make"},
        })
        assert module.default_settings == {"user": "x"}
        assert module.hook_command("install") == "make"
        assert module.hook_command("post-install") is None

    def test_summary(self):
        module = ModuleDescriptor(name="git", tier=ModuleTier.WORKSPACE, dependencies=["core"])
        assert module.summary()["tier"] == "workspace"
        assert module.summary()["dependencies"] == ["core"]


# ── State ────────────────────────────────────────────────────────────


class TestInstallState:
    def test_record_and_skip(self):
        state = InstallState()
        assert not state.is_check_executed("module:a:x")
        state.record_check("module:a:x", "setup-modules", passed=True)
        assert state.is_check_executed("module:a:x")

    def test_failed_record_also_skipped(self):
        state = InstallState()
        state.record_check("module:a:x", "setup-modules", passed=False, error="boom")
        assert state.is_check_executed("module:a:x")

    def test_record_updates_in_place(self):
        state = InstallState()
        state.record_check("module:a:x", "setup-modules", passed=False)
        state.record_check("module:a:x", "verify-installation", passed=True)
        assert len(state.executed_checks) == 1
        assert state.executed_checks[0].step == "verify-installation"
        assert state.executed_checks[0].passed is True

    def test_mark_step(self):
        state = InstallState()
        state.mark_step("check-env", "needs_input")
        state.mark_step("setup-modules", "failed", error="nope")
        assert state.is_step_completed("check-env")
        assert not state.is_step_completed("setup-modules")
        assert state.steps["setup-modules"].error == "nope"
        assert not state.is_step_completed("verify-installation")

    def test_json_uses_camel_case(self):
        state = InstallState()
        state.record_check("module:a:x", "setup-modules", passed=True, check_name="x")
        state.installed_modules = {"a": "/path/a"}
        data = state.to_json_dict()
        assert data["installedModules"] == {"a": "/path/a"}
        assert data["executedChecks"][0]["checkId"] == "module:a:x"
        assert data["executedChecks"][0]["checkName"] == "x"
        assert "executedAt" in data["executedChecks"][0]
        assert data["installedAt"] is None

    def test_load_from_camel_case(self):
        state = InstallState.model_validate({
            "steps": {"check-env": {"completed": True, "completedAt": "t", "status": "ok"}},
            "executedChecks": [{"checkId": "module:a:x", "step": "setup-modules", "passed": True}],
        })
        assert state.steps["check-env"].completed_at == "t"
        assert state.is_check_executed("module:a:x")
