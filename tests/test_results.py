"""Unit tests for the stage result model and error taxonomy (src.results)."""

from __future__ import annotations

import pytest

from src.results import (
    FATAL_KINDS,
    GenerationError,
    InvalidConfigError,
    IssueKind,
    MissingDependencyError,
    StageResult,
    WorkspaceError,
)


pytestmark = pytest.mark.unit


class TestIssueKind:
    @pytest.mark.parametrize("kind", sorted(FATAL_KINDS, key=lambda k: k.value))
    def test_fatal_kinds(self, kind):
        assert kind.fatal is True

    @pytest.mark.parametrize(
        "kind",
        [
            IssueKind.PATCH_TARGET_MISSING,
            IssueKind.PATCH_ANCHOR_MISSING,
            IssueKind.CONFIG_FILE_MISSING,
            IssueKind.WORKSPACE_ALREADY_INITIALIZED,
            IssueKind.VCS_ALREADY_INITIALIZED,
        ],
    )
    def test_non_fatal_kinds(self, kind):
        assert kind.fatal is False


class TestExceptions:
    def test_generation_error_carries_status(self):
        err = GenerationError("api-gateway", 503, "unavailable")
        assert err.status_code == 503
        assert err.body == "unavailable"
        assert "503" in str(err)
        assert err.kind is IssueKind.NETWORK_ERROR

    def test_missing_dependency_lists_commands(self):
        err = MissingDependencyError(["git"])
        assert err.missing == ["git"]
        assert "'git'" in str(err)
        assert err.kind is IssueKind.MISSING_DEPENDENCY

    def test_kinds(self):
        assert InvalidConfigError("x").kind is IssueKind.INVALID_CONFIG
        assert WorkspaceError("x", command="git init").command == "git init"


class TestStageResult:
    def test_empty_is_not_fatal(self):
        result = StageResult(stage="generate")
        assert result.fatal is False
        assert result.warnings == []

    def test_add_uses_stage_service(self):
        result = StageResult(stage="patch", service="config-server")
        issue = result.add(IssueKind.PATCH_TARGET_MISSING, "missing")
        assert issue.service == "config-server"
        assert result.warnings == [issue]
        assert result.fatal is False

    def test_fatal_when_any_issue_fatal(self):
        result = StageResult(stage="generate")
        result.add(IssueKind.PATCH_ANCHOR_MISSING, "warn")
        result.add(IssueKind.NETWORK_ERROR, "boom")
        assert result.fatal is True
        assert len(result.warnings) == 1

    def test_from_error(self):
        result = StageResult.from_error("generate", GenerationError("svc", 500), "svc")
        assert result.fatal is True
        assert result.service == "svc"
        assert result.issues[0].kind is IssueKind.NETWORK_ERROR
        assert "500" in result.issues[0].message

    def test_serialises_fatal_flag(self):
        result = StageResult(stage="vcs")
        result.add(IssueKind.VCS_ALREADY_INITIALIZED, "exists")
        dumped = result.model_dump(mode="json")
        assert dumped["fatal"] is False
        assert dumped["issues"][0]["kind"] == "vcs_already_initialized"
        assert dumped["issues"][0]["fatal"] is False
