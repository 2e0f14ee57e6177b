"""Deploy engine for PyNeocities - scan, plan and apply."""

from .context import DeployContext
from .engine import DeployEngine, DeployReport
from .executor import (
    ApplyExecutor,
    ApplyResult,
    ApplyStatus,
    ErrorPolicy,
    Operation,
    OperationState,
)
from .ignore import (
    IGNORE_FILE_NAME,
    IgnoreRule,
    IgnoreRuleStack,
    Resolution,
    load_ignore_file,
)
from .manifest import FileEntry, Manifest
from .operations import RemoteSite, SyncOperations
from .planner import DiffPlanner, OperationPlan, PlanDecision, SyncAction, plan
from .policy import AccountPolicy, filter_manifest, find_violations, is_allowed
from .scanner import DirectoryScanner, ScanResult

__all__ = [
    "DeployEngine",
    "DeployReport",
    "DeployContext",
    "ApplyExecutor",
    "ApplyResult",
    "ApplyStatus",
    "ErrorPolicy",
    "Operation",
    "OperationState",
    "IGNORE_FILE_NAME",
    "IgnoreRule",
    "IgnoreRuleStack",
    "Resolution",
    "load_ignore_file",
    "FileEntry",
    "Manifest",
    "RemoteSite",
    "SyncOperations",
    "DiffPlanner",
    "OperationPlan",
    "PlanDecision",
    "SyncAction",
    "plan",
    "AccountPolicy",
    "filter_manifest",
    "find_violations",
    "is_allowed",
    "DirectoryScanner",
    "ScanResult",
]
