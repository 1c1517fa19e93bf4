"""Output workspace setup: directory skeleton, ignore rules and git.

The only idempotence guard of a run lives here: a repository is created and
committed exactly once, and a root that already holds ``.git`` is left
alone.
"""

from pathlib import Path

from src.config import PlatformConfig
from src.generator.templates import TemplateRenderer
from src.results import IssueKind, StageResult, WorkspaceError
from src.utils import ensure_dir, run_command

SKELETON_DIRS: tuple[str, ...] = (
    "services",
    "common",
    "infra",
    "deploy/docker",
    "deploy/k8s",
)

TOOL_NAME = "platform-gen"


async def _run_git(*args: str, cwd: str | Path) -> tuple[str, str]:
    """Run a git command asynchronously and return (stdout, stderr).

    Raises WorkspaceError if the command exits with a non-zero code.
    """
    cmd = ["git"] + list(args)
    cmd_str = " ".join(cmd)

    returncode, stdout, stderr = await run_command(cmd, cwd=cwd)
    if returncode != 0:
        raise WorkspaceError(
            f"Git command failed (exit {returncode}): {cmd_str}\n{stderr}",
            command=cmd_str,
            stderr=stderr,
        )

    return stdout, stderr


def commit_message(config: PlatformConfig) -> str:
    return (
        f"Initial microservices scaffolding "
        f"(Java {config.java_version}, {config.build_tool.value})"
    )


class WorkspaceInitializer:
    """Creates the output tree and bootstraps version control."""

    def __init__(self, renderer: TemplateRenderer | None = None) -> None:
        self.renderer = renderer or TemplateRenderer()

    def create_skeleton(self, root: Path) -> StageResult:
        """Create the platform directory skeleton under *root*.

        A pre-existing *root* is reported as a warning and reused.
        """
        result = StageResult(stage="skeleton")
        if root.exists():
            result.add(
                IssueKind.WORKSPACE_ALREADY_INITIALIZED,
                f"Directory {root} already exists.",
            )
        for rel in SKELETON_DIRS:
            result.outputs.append(ensure_dir(root / rel))
        return result

    async def write_ignore_rules(self, root: Path, config: PlatformConfig) -> Path:
        """Write ``.gitignore``: the common block plus the build tool's block."""
        context = {"tool_name": TOOL_NAME, "build_rules": config.ignore_rules}
        return await self.renderer.render_to_file("gitignore.j2", root / ".gitignore", context)

    async def init_repository(self, root: Path, config: PlatformConfig) -> StageResult:
        """Initialise git in *root* and create the single initial commit.

        Skipped with a warning when *root* already contains ``.git``.

        Raises:
            WorkspaceError: If any git command fails.
        """
        result = StageResult(stage="vcs")
        if (root / ".git").exists():
            result.add(
                IssueKind.VCS_ALREADY_INITIALIZED,
                "Git repository already exists. Skipping 'git init'.",
            )
            return result

        await _run_git("init", "-q", cwd=root)
        await _run_git("add", ".", cwd=root)
        await _run_git("commit", "-q", "-m", commit_message(config), cwd=root)
        result.outputs.append(root / ".git")
        return result

    async def finalize(self, root: Path, config: PlatformConfig) -> StageResult:
        """Write ignore rules, then initialise and commit the repository."""
        ignore_file = await self.write_ignore_rules(root, config)
        result = await self.init_repository(root, config)
        result.stage = "workspace"
        result.outputs.insert(0, ignore_file)
        return result

    async def initialize(self, root: Path, config: PlatformConfig) -> StageResult:
        """Skeleton, ignore rules and repository in one call."""
        skeleton = self.create_skeleton(root)
        result = await self.finalize(root, config)
        result.issues = skeleton.issues + result.issues
        result.outputs = skeleton.outputs + result.outputs
        return result
