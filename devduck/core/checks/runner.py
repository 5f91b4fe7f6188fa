"""
Check runner — execute one check and classify the outcome.

A check's ``test`` decides how it is probed:

    "GET https://api.example.com"       → HTTP probe (also "HTTP GET …")
    "~/.config/tool" or "bin/tool"      → path existence
    anything else                       → shell command, exit 0 passes

Before probing: ``skip: true`` and a failing ``when`` guard skip the
check, and an auth check whose variable is unset fails without probing.
After a failed probe, a check with an ``install`` command may be
remediated: confirm, run the install, probe exactly once more.
"""

from __future__ import annotations

import logging
import re
import time
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path

import click

from devduck.adapters.registry import AdapterRegistry
from devduck.core.checks.env import EnvView
from devduck.core.errors import ProbeTimeout
from devduck.core.models.action import Action, Receipt
from devduck.core.models.check import CheckIdentity, CheckResult
from devduck.core.models.config import OPTIONAL, CheckSpec

logger = logging.getLogger(__name__)

CHECK_TIMEOUT = 10.0
PROBE_TIMEOUT = 5.0
INSTALL_TIMEOUT = 600.0

_HTTP_TEST = re.compile(
    r"^(?:HTTP\s+)?(GET|POST|PUT|DELETE|HEAD|OPTIONS|PATCH)\s+(https?://\S+)\s*$"
)
_SHELL_OPERATORS = set("|&;<>()$`\"'*?")


def is_http_test(test: str) -> bool:
    return _HTTP_TEST.match(test.strip()) is not None


def is_file_path(test: str) -> bool:
    """A lone path token: no spaces or shell operators, and looks like a path."""
    test = test.strip()
    if not test or any(c.isspace() for c in test):
        return False
    if any(c in _SHELL_OPERATORS for c in test):
        return False
    return test.startswith(("/", "~")) or "/" in test


@dataclass
class CheckTarget:
    """A check bound to its scope."""

    identity: CheckIdentity
    spec: CheckSpec
    cwd: Path | None = None  # project checks run inside the project

    @property
    def label(self) -> str:
        scope = self.identity.scope_name
        return f"{self.spec.name} [{scope}]" if self.identity.scope_kind != "workspace" else self.spec.name


def prompt_install(target: CheckTarget) -> bool:
    """Ask on the terminal whether to run a check's install command."""
    return click.confirm(f"  Do you want to install {target.spec.name}?", default=True)


class CheckRunner:
    """Runs checks through an AdapterRegistry.

    Args:
        adapters: Dispatch for shell, filesystem and HTTP actions.
        env: Variable lookup and ``$VAR`` substitution.
        workspace_root: Default working directory.
        assume_yes: Run remediation without asking.
        confirm: Prompt used when ``assume_yes`` is off.
        check_timeout: Seconds allowed for a test command.
        probe_timeout: Seconds allowed for HTTP probes and ``when`` guards.
    """

    def __init__(
        self,
        adapters: AdapterRegistry,
        env: EnvView,
        workspace_root: Path,
        assume_yes: bool = False,
        confirm: Callable[[CheckTarget], bool] | None = None,
        check_timeout: float = CHECK_TIMEOUT,
        probe_timeout: float = PROBE_TIMEOUT,
        install_timeout: float = INSTALL_TIMEOUT,
    ):
        self.adapters = adapters
        self.env = env
        self.workspace_root = workspace_root
        self.assume_yes = assume_yes
        self.confirm = confirm or prompt_install
        self.check_timeout = check_timeout
        self.probe_timeout = probe_timeout
        self.install_timeout = install_timeout

    # ── Public ──────────────────────────────────────────────────

    def run(self, target: CheckTarget, allow_install: bool = True) -> CheckResult:
        """Run one check. Never raises."""
        start = time.monotonic()
        try:
            result = self._run(target, allow_install)
        except Exception as e:
            logger.error("Check %s crashed: %s", target.identity, e)
            result = self._result(target, "failed", error=f"Unexpected error: {e}")
        result.duration_ms = int((time.monotonic() - start) * 1000)

        log = logger.info if result.passed or result.skipped else logger.warning
        log("Check %s: %s%s", target.label, result.status, f" ({result.error})" if result.error else "")
        return result

    # ── Flow ────────────────────────────────────────────────────

    def _run(self, target: CheckTarget, allow_install: bool) -> CheckResult:
        spec = target.spec
        requirement = spec.effective_requirement
        may_install = bool(spec.install) and allow_install and requirement != OPTIONAL

        if spec.skip:
            return self._result(target, "skipped", skip_reason="skip: true")

        if spec.when:
            guard = self._shell(target, "when", self.env.substitute(spec.when), self.probe_timeout)
            if not guard.ok:
                return self._result(target, "skipped", skip_reason=f"condition not met: {spec.when}")

        if spec.is_auth:
            if not (spec.test or "").strip():
                return self._result(target, "failed", error="No test command specified for auth check")
            if spec.var and not self.env.is_set(spec.var) and not may_install:
                return self._result(target, "failed", error=f"{spec.var} is not set")

        test = (spec.test or "").strip()
        if not test:
            return self._result(target, "failed", error="No test command specified")

        test = self.env.substitute(test)
        receipt = self._probe(target, test)
        if receipt.ok:
            return self._result(target, "passed", output=receipt.output)

        first = self._result(target, "failed", error=self._error(receipt), output=receipt.output)
        if is_http_test(test) or not may_install:
            return first

        if not self._install(target):
            return first

        self.env.reload()
        test = self.env.substitute((spec.test or "").strip())
        receipt = self._probe(target, test, suffix="recheck")
        if receipt.ok:
            result = self._result(target, "passed", output=receipt.output)
            result.remediated = True
            return result
        result = self._result(
            target, "failed",
            error=f"Installation completed but verification failed: {self._error(receipt)}",
        )
        result.remediated = True
        return result

    def _install(self, target: CheckTarget) -> bool:
        spec = target.spec
        if self.assume_yes:
            logger.info("Non-interactive mode: auto-installing %s", spec.name)
        elif not self.confirm(target):
            logger.warning("Installation of %s skipped by user", spec.name)
            return False

        command = self.env.substitute(spec.install or "")
        logger.info("Installing %s: %s", spec.name, command)
        receipt = self._shell(target, "install", command, self.install_timeout)
        if not receipt.ok:
            logger.warning("Installation of %s failed: %s", spec.name, receipt.error)
            return False
        return True

    # ── Probes ──────────────────────────────────────────────────

    def _probe(self, target: CheckTarget, test: str, suffix: str = "test") -> Receipt:
        match = _HTTP_TEST.match(test)
        timeout = target.spec.timeout
        if match:
            return self.adapters.execute_action(Action(
                id=f"{target.identity.key}:{suffix}",
                adapter="http",
                name=target.spec.name,
                params={
                    "method": match.group(1),
                    "url": match.group(2),
                    "timeout": timeout or self.probe_timeout,
                },
            ))
        if is_file_path(test):
            return self.adapters.execute_action(Action(
                id=f"{target.identity.key}:{suffix}",
                adapter="filesystem",
                name=target.spec.name,
                params={"operation": "exists", "path": test},
                cwd=self._cwd(target),
            ))
        return self._shell(target, suffix, test, timeout or self.check_timeout)

    def _shell(self, target: CheckTarget, suffix: str, command: str, timeout: float) -> Receipt:
        return self.adapters.execute_action(Action(
            id=f"{target.identity.key}:{suffix}",
            adapter="shell",
            name=target.spec.name,
            params={"command": command, "timeout": timeout, "env": self.env.as_dict()},
            cwd=self._cwd(target),
        ))

    def _cwd(self, target: CheckTarget) -> str:
        if target.cwd is not None and target.cwd.is_dir():
            return str(target.cwd)
        return str(self.workspace_root)

    # ── Results ─────────────────────────────────────────────────

    @staticmethod
    def _error(receipt: Receipt) -> str:
        if receipt.timed_out:
            return f"{ProbeTimeout.__name__}: {receipt.error}"
        return receipt.error or "failed"

    @staticmethod
    def _result(target: CheckTarget, status: str, **kwargs) -> CheckResult:
        spec = target.spec
        return CheckResult(
            check_id=target.identity.key,
            name=spec.name,
            status=status,
            requirement=spec.effective_requirement,
            tier=spec.effective_tier,
            description=spec.description,
            docs=spec.docs,
            **kwargs,
        )
