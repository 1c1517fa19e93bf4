"""platform-gen pipeline orchestrator.

Scaffolds a microservices platform in a strictly linear sequence of stages:

1. PREFLIGHT -- check that required external tools are installed.
2. SKELETON  -- create the output directory tree.
3. GENERATE  -- per service: download from the generation service, patch
   the entry point, write the Dockerfile (and config-repo descriptor).
4. SUMMARIZE -- write the top-level README.md.
5. WORKSPACE -- write .gitignore and create the initial git commit.

Every stage reports a ``StageResult``.  The first fatal result stops the run
without cleaning up output already written; non-fatal issues are collected
and listed when the run ends.

Usage::

    python -m src.pipeline --build-tool gradle --group-id com.acme
    python -m src.pipeline -c platform.conf -o ./my-platform
"""

from __future__ import annotations

import asyncio
import os
import sys
import time
from datetime import datetime, timezone
from typing import Any

from rich.panel import Panel

from src.config import VERSION, ConfigResolver, PlatformConfig
from src.generator import ArtifactGenerator, SourcePatcher, TemplateClient
from src.results import (
    GenerationError,
    Issue,
    MissingDependencyError,
    ScaffoldError,
    StageResult,
)
from src.services import ServiceSpec, platform_services
from src.utils import (
    console,
    find_missing_commands,
    print_error,
    print_info,
    print_stage_header,
    print_success,
    print_summary_table,
    print_warning,
)
from src.workspace import WorkspaceInitializer

PROG = "platform-gen"
REQUIRED_COMMANDS: tuple[str, ...] = ("git",)

# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class PipelineError(Exception):
    """Raised when a stage reports a fatal result."""

    def __init__(self, result: StageResult) -> None:
        self.result = result
        fatal = [issue for issue in result.issues if issue.fatal]
        message = fatal[0].message if fatal else "unknown failure"
        where = f"{result.stage}:{result.service}" if result.service else result.stage
        super().__init__(f"Stage {where}: {message}")


# ---------------------------------------------------------------------------
# Pipeline Orchestrator
# ---------------------------------------------------------------------------


class Pipeline:
    """Drives the scaffolding stages for one resolved configuration.

    Attributes:
        config: Immutable run configuration.
        services: Services to generate, in order.
        results: Every ``StageResult`` recorded so far.
    """

    def __init__(
        self,
        config: PlatformConfig,
        services: list[ServiceSpec] | None = None,
        client: TemplateClient | None = None,
        patcher: SourcePatcher | None = None,
        artifacts: ArtifactGenerator | None = None,
        workspace: WorkspaceInitializer | None = None,
        required_commands: tuple[str, ...] = REQUIRED_COMMANDS,
    ) -> None:
        self.config = config
        self.services = services if services is not None else platform_services()
        self.client = client or TemplateClient()
        self.patcher = patcher or SourcePatcher()
        self.artifacts = artifacts or ArtifactGenerator()
        self.workspace = workspace or WorkspaceInitializer()
        self.required_commands = required_commands
        self.results: list[StageResult] = []
        self.generated: list[ServiceSpec] = []

    # ------------------------------------------------------------------
    # Result bookkeeping
    # ------------------------------------------------------------------

    def _record(self, result: StageResult) -> StageResult:
        """Store *result*, log its warnings and stop on a fatal issue."""
        self.results.append(result)
        for issue in result.warnings:
            print_warning(issue.message)
        if result.fatal:
            raise PipelineError(result)
        return result

    @property
    def warnings(self) -> list[Issue]:
        return [issue for result in self.results for issue in result.warnings]

    # ------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------

    def preflight(self) -> StageResult:
        """Fail when a required external command is missing."""
        missing = find_missing_commands(self.required_commands)
        if missing:
            return self._record(
                StageResult.from_error("preflight", MissingDependencyError(missing))
            )
        return self._record(StageResult(stage="preflight"))

    def prepare(self) -> StageResult:
        print_stage_header("configure", "Preparing output directory")
        return self._record(self.workspace.create_skeleton(self.config.root_dir))

    async def build_service(self, service: ServiceSpec) -> StageResult:
        """Generate, patch and dockerize one service."""
        print_info(f"Generating project: {service.name} ({self.config.project_type})...")
        generation = await self.client.generate(service, self.config)
        if not generation.success or generation.project is None:
            error = GenerationError(service.name, generation.status_code, generation.body)
            if generation.body:
                console.print(generation.body, markup=False, highlight=False)
            return self._record(StageResult.from_error("generate", error, service.name))

        project = generation.project
        print_success(f"Created {service.name}")
        result = StageResult(stage="generate", service=service.name, outputs=[project.path])

        patched = await self.patcher.patch(service, project, self.config)
        result.issues.extend(patched.stage.issues)
        result.outputs.extend(patched.stage.outputs)

        if service.config_repo:
            result.outputs.append(await self.artifacts.emit_config_descriptor(project.path))

        print_info(f"Creating Dockerfile for {service.name}...")
        result.outputs.append(await self.artifacts.emit_dockerfile(project.path, self.config))

        self.generated.append(service)
        return self._record(result)

    async def summarize(self) -> StageResult:
        print_stage_header("summarize", "Writing platform summary")
        path = await self.artifacts.emit_summary(self.config, self.generated)
        return self._record(StageResult(stage="summarize", outputs=[path]))

    async def finalize(self) -> StageResult:
        print_stage_header("workspace", "Initializing Git repository")
        try:
            result = await self.workspace.finalize(self.config.root_dir, self.config)
        except ScaffoldError as exc:
            result = StageResult.from_error("workspace", exc)
        self._record(result)
        if not result.warnings:
            print_success("Git repository initialized and initial commit created.")
        return result

    # ------------------------------------------------------------------
    # Run
    # ------------------------------------------------------------------

    async def run(self) -> dict[str, Any]:
        """Execute every stage in order.

        Returns:
            A state dictionary with a top-level ``success`` boolean, the
            generated service names, collected warnings and, on failure,
            the error message.
        """
        start = time.monotonic()
        state: dict[str, Any] = {
            "started_at": datetime.now(timezone.utc).isoformat(),
            "success": False,
            "services": [],
            "warnings": [],
            "error": None,
        }

        console.print(
            Panel(
                f"[bold bright_cyan]Initializing Microservices Platform[/bold bright_cyan]\n"
                f"Tool : {self.config.build_tool.value}\n"
                f"Java : {self.config.java_version}\n"
                f"Root : {self.config.root_dir}",
                title=f"[bold]{PROG} {VERSION}[/bold]",
                border_style="bright_cyan",
            )
        )

        try:
            self.preflight()
            self.prepare()
            print_stage_header("generate", "Generating platform services")
            for service in self.services:
                await self.build_service(service)
            await self.summarize()
            await self.finalize()
            state["success"] = True
        except PipelineError as exc:
            state["error"] = str(exc)
            print_error(str(exc))

        state["services"] = [service.name for service in self.generated]
        state["warnings"] = [issue.model_dump(mode="json") for issue in self.warnings]
        state["duration_seconds"] = round(time.monotonic() - start, 2)
        self._print_final_summary(state)
        return state

    def _print_final_summary(self, state: dict[str, Any]) -> None:
        if self.warnings:
            print_summary_table(
                {
                    f"{issue.kind.value} ({issue.service or '-'})": issue.message
                    for issue in self.warnings
                },
                title="Warnings",
            )
        if not state["success"]:
            return

        first = self.generated[0].name if self.generated else "<service>"
        services_dir = self.config.services_dir
        console.print()
        print_success(f"Platform setup complete at {self.config.root_dir.resolve()}")
        console.print("-" * 50)
        console.print("Next steps:")
        console.print(f"  1. [yellow]cd {services_dir / first}[/yellow]")
        console.print(f"  2. Run: [green]{self.config.run_command}[/green]")
        console.print("-" * 50)


# ---------------------------------------------------------------------------
# CLI entry point
# ---------------------------------------------------------------------------


def build_parser():
    import argparse

    parser = argparse.ArgumentParser(
        prog=PROG,
        description="Scaffold a Spring Boot microservices platform "
        "(discovery server, config server, API gateway).",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=(
            "Environment variables BUILD_TOOL, ROOT_DIR, GROUP_ID, JAVA_VERSION,\n"
            "BOOT_VERSION and INITIALIZR_URL override the defaults; a config file\n"
            "overrides the environment and flags override everything.\n\n"
            "Examples:\n"
            f"  {PROG} -b gradle -g com.acme -v 21\n"
            f"  {PROG} -c platform.conf -o ./my-platform\n"
        ),
    )
    parser.add_argument(
        "-b", "--build-tool",
        dest="build_tool",
        metavar="<maven|gradle>",
        help="Build tool to use (default: maven)",
    )
    parser.add_argument(
        "-g", "--group-id",
        dest="group_id",
        metavar="<id>",
        help="Group ID for artifacts (default: com.example)",
    )
    parser.add_argument(
        "-v", "--java-version",
        dest="java_version",
        metavar="<version>",
        help="Java version (default: 21)",
    )
    parser.add_argument(
        "-o", "--out-dir",
        dest="root_dir",
        metavar="<dir>",
        help="Root output directory (default: microservices-platform)",
    )
    parser.add_argument(
        "-c", "--config",
        dest="config_file",
        metavar="<file>",
        help="Path to a KEY=VALUE configuration file",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"{PROG} version {VERSION}",
    )
    return parser


def main(argv: list[str] | None = None) -> None:
    """CLI entry point for ``platform-gen`` / ``python -m src.pipeline``."""
    args = build_parser().parse_args(argv)

    missing = find_missing_commands(REQUIRED_COMMANDS)
    if missing:
        print_error(MissingDependencyError(missing).message)
        sys.exit(1)

    resolver = ConfigResolver()
    try:
        config = resolver.resolve(
            os.environ,
            args.config_file,
            {
                "build_tool": args.build_tool,
                "group_id": args.group_id,
                "java_version": args.java_version,
                "root_dir": args.root_dir,
            },
        )
    except ScaffoldError as exc:
        print_error(exc.message)
        sys.exit(1)

    for issue in resolver.issues:
        print_warning(issue.message)

    pipeline = Pipeline(config)
    result = asyncio.run(pipeline.run())
    if not result.get("success"):
        sys.exit(1)


if __name__ == "__main__":
    main()
