"""Stage results and the error taxonomy of the scaffolding pipeline.

Every pipeline stage reports a ``StageResult``.  Conditions that must stop
the run are *fatal* issue kinds; everything else is collected and reported
once the run has finished.  Fatal conditions detected inside a component are
raised as ``ScaffoldError`` subclasses carrying the matching ``IssueKind``.
"""

from __future__ import annotations

from enum import Enum
from pathlib import Path

from pydantic import BaseModel, Field, computed_field


class IssueKind(str, Enum):
    """Every condition a stage can report."""

    MISSING_DEPENDENCY = "missing_dependency"
    INVALID_CONFIG = "invalid_config"
    NETWORK_ERROR = "network_error"
    WORKSPACE_ERROR = "workspace_error"
    PATCH_TARGET_MISSING = "patch_target_missing"
    PATCH_ANCHOR_MISSING = "patch_anchor_missing"
    CONFIG_FILE_MISSING = "config_file_missing"
    WORKSPACE_ALREADY_INITIALIZED = "workspace_already_initialized"
    VCS_ALREADY_INITIALIZED = "vcs_already_initialized"

    @property
    def fatal(self) -> bool:
        return self in FATAL_KINDS


FATAL_KINDS: frozenset[IssueKind] = frozenset(
    {
        IssueKind.MISSING_DEPENDENCY,
        IssueKind.INVALID_CONFIG,
        IssueKind.NETWORK_ERROR,
        IssueKind.WORKSPACE_ERROR,
    }
)


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class ScaffoldError(Exception):
    """Base class for fatal scaffolding errors."""

    kind: IssueKind = IssueKind.WORKSPACE_ERROR

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class MissingDependencyError(ScaffoldError):
    """A required external tool is not installed."""

    kind = IssueKind.MISSING_DEPENDENCY

    def __init__(self, missing: list[str]) -> None:
        self.missing = list(missing)
        names = ", ".join(f"'{m}'" for m in self.missing)
        super().__init__(f"Required command(s) {names} not found. Please install them.")


class InvalidConfigError(ScaffoldError):
    """The merged configuration failed validation."""

    kind = IssueKind.INVALID_CONFIG


class GenerationError(ScaffoldError):
    """The generation service answered with a non-success status."""

    kind = IssueKind.NETWORK_ERROR

    def __init__(self, service: str, status_code: int, body: str = "") -> None:
        self.service = service
        self.status_code = status_code
        self.body = body
        super().__init__(
            f"Failed to generate '{service}' from the generation service. "
            f"HTTP Code: {status_code}"
        )


class WorkspaceError(ScaffoldError):
    """A git command or filesystem step of workspace setup failed."""

    kind = IssueKind.WORKSPACE_ERROR

    def __init__(self, message: str, command: str = "", stderr: str = "") -> None:
        self.command = command
        self.stderr = stderr
        super().__init__(message)


# ---------------------------------------------------------------------------
# Result models
# ---------------------------------------------------------------------------


class Issue(BaseModel):
    """A single condition reported by a stage."""

    kind: IssueKind
    message: str
    service: str | None = Field(default=None, description="Service the issue relates to")

    @computed_field  # type: ignore[misc]
    @property
    def fatal(self) -> bool:
        return self.kind.fatal


class StageResult(BaseModel):
    """Outcome of one pipeline stage."""

    stage: str
    service: str | None = None
    issues: list[Issue] = Field(default_factory=list)
    outputs: list[Path] = Field(default_factory=list, description="Files or directories written")

    @computed_field  # type: ignore[misc]
    @property
    def fatal(self) -> bool:
        """True when any recorded issue must stop the run."""
        return any(issue.fatal for issue in self.issues)

    @property
    def warnings(self) -> list[Issue]:
        return [issue for issue in self.issues if not issue.fatal]

    def add(self, kind: IssueKind, message: str) -> Issue:
        issue = Issue(kind=kind, message=message, service=self.service)
        self.issues.append(issue)
        return issue

    @classmethod
    def from_error(
        cls, stage: str, error: ScaffoldError, service: str | None = None
    ) -> "StageResult":
        result = cls(stage=stage, service=service)
        result.add(error.kind, error.message)
        return result
