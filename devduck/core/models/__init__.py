"""
Domain models — pydantic types for configuration, modules, checks and state.

    from devduck.core.models import WorkspaceConfig, ModuleDescriptor, InstallState
"""

from devduck.core.models.action import Action, Receipt
from devduck.core.models.check import CheckIdentity, CheckResult
from devduck.core.models.config import (
    TIER_ORDER,
    CheckSpec,
    EnvVarSpec,
    ProjectSpec,
    WorkspaceConfig,
)
from devduck.core.models.module import HOOK_PHASES, ModuleDescriptor, ModuleTier
from devduck.core.models.state import ExecutedCheck, InstallState, StepRecord

__all__ = [
    # action.py
    "Action",
    "Receipt",
    # check.py
    "CheckIdentity",
    "CheckResult",
    # config.py
    "CheckSpec",
    "EnvVarSpec",
    "ProjectSpec",
    "TIER_ORDER",
    "WorkspaceConfig",
    # module.py
    "HOOK_PHASES",
    "ModuleDescriptor",
    "ModuleTier",
    # state.py
    "ExecutedCheck",
    "InstallState",
    "StepRecord",
]
