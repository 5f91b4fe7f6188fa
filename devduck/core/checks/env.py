"""
Environment view — process environment first, workspace ``.env`` second.

Also collects which variables the workspace needs, and from where each
requirement came, so a missing variable can be reported with its source.
"""

from __future__ import annotations

import logging
import os
import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path

from devduck.core.config.resolver import ResolvedConfig
from devduck.core.models.config import ProjectSpec, WorkspaceConfig
from devduck.core.models.module import ModuleDescriptor

logger = logging.getLogger(__name__)

ENV_FILE = ".env"

_VAR_REF = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_]*)\}|\$([A-Za-z_][A-Za-z0-9_]*)")


def parse_env_file(path: Path) -> dict[str, str]:
    """Parse a .env file into a key/value dict.

    Handles ``KEY=value``, quoted values, ``export KEY=value``,
    comments and blank lines. A missing file is an empty dict.
    """
    result: dict[str, str] = {}
    if not path.is_file():
        return result

    try:
        content = path.read_text(encoding="utf-8")
    except OSError as e:
        logger.warning("Cannot read %s: %s", path, e)
        return result

    for line in content.splitlines():
        line = line.strip()
        if not line or line.startswith("#"):
            continue
        if line.startswith("export "):
            line = line[7:].strip()
        if "=" not in line:
            continue

        key, _, value = line.partition("=")
        value = value.strip()
        if len(value) >= 2 and value[0] == value[-1] and value[0] in ('"', "'"):
            value = value[1:-1]
        result[key.strip()] = value

    return result


class EnvView:
    """Read-only lookup over process environment and a .env file.

    Empty and whitespace-only values count as unset.
    """

    def __init__(self, env_file: Path, process_env: Mapping[str, str] | None = None):
        self.env_file = env_file
        self._process = dict(os.environ if process_env is None else process_env)
        self._file = parse_env_file(env_file)

    def reload(self) -> None:
        """Re-read the .env file (after a remediation may have written it)."""
        self._file = parse_env_file(self.env_file)

    def get(self, name: str) -> str | None:
        for source in (self._process, self._file):
            value = source.get(name)
            if value is not None and value.strip():
                return value.strip()
        return None

    def is_set(self, name: str) -> bool:
        return self.get(name) is not None

    def substitute(self, text: str) -> str:
        """Expand ``$VAR`` and ``${VAR}``. Unknown references are left as-is."""

        def repl(match: re.Match) -> str:
            name = match.group(1) or match.group(2)
            value = self.get(name)
            if value is None:
                logger.debug("Variable %s not set, leaving reference", name)
                return match.group(0)
            return value

        return _VAR_REF.sub(repl, text)

    def as_dict(self) -> dict[str, str]:
        """Merged view: file values overlaid by non-empty process values."""
        merged = dict(self._file)
        merged.update({k: v for k, v in self._process.items() if v.strip()})
        return merged


def write_env_defaults(view: EnvView, config: WorkspaceConfig) -> list[str]:
    """Append declared ``env[].default`` values for unset variables to .env.

    Returns:
        Names written.
    """
    pending = [e for e in config.env if e.default is not None and not view.is_set(e.name)]
    if not pending:
        return []

    path = view.env_file
    path.parent.mkdir(parents=True, exist_ok=True)
    existing = path.read_text(encoding="utf-8") if path.is_file() else ""
    lines = [f"{e.name}={e.default}" for e in pending]
    prefix = "" if not existing or existing.endswith("\n") else "\n"
    path.write_text(existing + prefix + "\n".join(lines) + "\n", encoding="utf-8")
    view.reload()

    names = [e.name for e in pending]
    logger.info("Wrote defaults to %s: %s", path, ", ".join(names))
    return names


@dataclass
class EnvRequirement:
    """One variable the workspace needs, and who asked for it."""

    name: str
    source: str
    optional: bool = False
    description: str = ""

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "source": self.source,
            "optional": self.optional,
            "description": self.description,
        }


@dataclass
class EnvReport:
    """Outcome of checking requirements against an EnvView."""

    present: list[EnvRequirement] = field(default_factory=list)
    missing_required: list[EnvRequirement] = field(default_factory=list)
    missing_optional: list[EnvRequirement] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.missing_required

    def to_dict(self) -> dict:
        return {
            "present": [r.name for r in self.present],
            "missing": [r.to_dict() for r in self.missing_required],
            "optional_missing": [r.to_dict() for r in self.missing_optional],
        }


def collect_requirements(
    config: WorkspaceConfig,
    resolved: ResolvedConfig | None,
    modules: list[ModuleDescriptor],
    projects: list[ProjectSpec],
) -> list[EnvRequirement]:
    """Gather variable requirements. The first declaration of a name wins.

    Order: workspace ``env[]``, then module ``auth``/``test`` checks with
    ``var``, then project ``auth`` checks. Checks that carry an
    ``install`` command are left out, since installing may supply the
    variable.
    """
    out: dict[str, EnvRequirement] = {}

    def add(req: EnvRequirement) -> None:
        if req.name and req.name not in out:
            out[req.name] = req

    for spec in config.env:
        layer = resolved.source_of("env", spec.name) if resolved else None
        source = layer.name if layer else "config"
        add(EnvRequirement(spec.name, source, spec.optional, spec.description))

    for module in modules:
        for check in module.checks:
            if not check.var or check.install:
                continue
            if (check.type or "").lower() not in ("auth", "test"):
                continue
            add(EnvRequirement(
                check.var, module.name, not check.is_required, check.description,
            ))

    for project in projects:
        for check in project.checks:
            if not check.var or check.install or not check.is_auth:
                continue
            add(EnvRequirement(
                check.var, project.project_name, not check.is_required, check.description,
            ))

    return list(out.values())


def check_requirements(requirements: list[EnvRequirement], view: EnvView) -> EnvReport:
    report = EnvReport()
    for req in requirements:
        if view.is_set(req.name):
            report.present.append(req)
        elif req.optional:
            report.missing_optional.append(req)
        else:
            report.missing_required.append(req)
    return report
