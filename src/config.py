"""platform-gen configuration.

A single immutable ``PlatformConfig`` is resolved once at startup and passed
to every component.  Values are merged from four layers, lowest precedence
first:

1. built-in defaults (``DEFAULTS``)
2. environment variables (``BUILD_TOOL``, ``ROOT_DIR``, ``GROUP_ID``,
   ``JAVA_VERSION``, ``BOOT_VERSION``, ``INITIALIZR_URL``)
3. an optional ``KEY=VALUE`` config file
4. explicit command-line flags

The build tool is validated only after all layers are merged.
"""

from __future__ import annotations

from collections.abc import Mapping
from enum import Enum
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from src.results import InvalidConfigError, Issue, IssueKind

VERSION = "1.2.0"


class BuildTool(str, Enum):
    """Build tools understood by the generation service."""

    MAVEN = "maven"
    GRADLE = "gradle"


# Per build tool: (generation project type, jar glob, run command, ignore block)
_BUILD_TOOL_TRAITS: dict[BuildTool, dict[str, Any]] = {
    BuildTool.MAVEN: {
        "project_type": "maven-project",
        "jar_glob": "target/*.jar",
        "run_command": "./mvnw spring-boot:run",
        "ignore": ["target/", "mvnw", "mvnw.cmd", ".mvn/"],
    },
    BuildTool.GRADLE: {
        "project_type": "gradle-project",
        "jar_glob": "build/libs/*.jar",
        "run_command": "./gradlew bootRun",
        "ignore": ["build/", ".gradle/", "gradlew", "gradlew.bat", "gradle/"],
    },
}


DEFAULTS: dict[str, str] = {
    "build_tool": "maven",
    "root_dir": "microservices-platform",
    "group_id": "com.example",
    "java_version": "21",
    "boot_version": "4.0.1",
    "initializr_url": "https://start.spring.io/starter.zip",
}

# Environment variable -> config field
ENV_KEYS: dict[str, str] = {
    "BUILD_TOOL": "build_tool",
    "ROOT_DIR": "root_dir",
    "GROUP_ID": "group_id",
    "JAVA_VERSION": "java_version",
    "BOOT_VERSION": "boot_version",
    "INITIALIZR_URL": "initializr_url",
}

# Config file key -> config field
FILE_KEYS: dict[str, str] = {
    "BUILD_TOOL": "build_tool",
    "ROOT_DIR": "root_dir",
    "GROUP_ID": "group_id",
    "JAVA_VERSION": "java_version",
    "BOOT_VERSION": "boot_version",
}


class PlatformConfig(BaseModel):
    """Immutable configuration for one scaffolding run."""

    model_config = ConfigDict(frozen=True)

    build_tool: BuildTool = Field(default=BuildTool.MAVEN)
    group_id: str = Field(default="com.example", description="Dotted group namespace")
    java_version: str = Field(default="21")
    boot_version: str = Field(default="4.0.1", description="Generation service protocol version")
    root_dir: Path = Field(default=Path("microservices-platform"))
    language: str = Field(default="java")
    initializr_url: str = Field(default="https://start.spring.io/starter.zip")

    # ------------------------------------------------------------------
    # Derived values (read-only properties)
    # ------------------------------------------------------------------

    @property
    def project_type(self) -> str:
        """Generation kind sent as the ``type`` request parameter."""
        return _BUILD_TOOL_TRAITS[self.build_tool]["project_type"]

    @property
    def jar_glob(self) -> str:
        """Build output glob copied into container images."""
        return _BUILD_TOOL_TRAITS[self.build_tool]["jar_glob"]

    @property
    def run_command(self) -> str:
        return _BUILD_TOOL_TRAITS[self.build_tool]["run_command"]

    @property
    def ignore_rules(self) -> list[str]:
        """Build-tool specific version-control exclusion rules."""
        return list(_BUILD_TOOL_TRAITS[self.build_tool]["ignore"])

    @property
    def services_dir(self) -> Path:
        """Directory that receives the generated platform services."""
        return self.root_dir / "infra"


# ---------------------------------------------------------------------------
# Config file parsing
# ---------------------------------------------------------------------------


def parse_config_file(text: str) -> dict[str, str]:
    """Parse ``KEY=VALUE`` lines into config field values.

    Whitespace is stripped from keys, one pair of surrounding double quotes is
    stripped from values, and unrecognised keys, blank lines and ``#``
    comments are ignored.
    """
    values: dict[str, str] = {}
    for raw_line in text.splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, _, value = line.partition("=")
        key = "".join(key.split())
        value = value.strip()
        if value.startswith('"'):
            value = value[1:]
        if value.endswith('"'):
            value = value[:-1]
        field = FILE_KEYS.get(key)
        if field is not None:
            values[field] = value
    return values


# ---------------------------------------------------------------------------
# Resolver
# ---------------------------------------------------------------------------


class ConfigResolver:
    """Merges defaults, environment, config file and CLI flags.

    Non-fatal findings (such as a config file that does not exist) are
    collected in ``issues``; an invalid build tool raises
    ``InvalidConfigError``.
    """

    def __init__(self, defaults: Mapping[str, str] | None = None) -> None:
        self.defaults = dict(DEFAULTS if defaults is None else defaults)
        self.issues: list[Issue] = []

    def resolve(
        self,
        environ: Mapping[str, str],
        config_file: str | Path | None = None,
        cli_args: Mapping[str, Any] | None = None,
    ) -> PlatformConfig:
        merged: dict[str, Any] = dict(self.defaults)

        for env_key, field in ENV_KEYS.items():
            if environ.get(env_key):
                merged[field] = environ[env_key]

        if config_file:
            merged.update(self._load_file(Path(config_file)))

        for field, value in (cli_args or {}).items():
            if value is not None and field in DEFAULTS:
                merged[field] = value

        return self._validate(merged)

    def _load_file(self, path: Path) -> dict[str, str]:
        if not path.is_file():
            self.issues.append(
                Issue(
                    kind=IssueKind.CONFIG_FILE_MISSING,
                    message=f"Config file {path} not found; ignoring it.",
                )
            )
            return {}
        return parse_config_file(path.read_text(encoding="utf-8"))

    @staticmethod
    def _validate(merged: dict[str, Any]) -> PlatformConfig:
        build_tool = str(merged.get("build_tool", ""))
        if build_tool not in {tool.value for tool in BuildTool}:
            raise InvalidConfigError(
                f"Invalid build tool: {build_tool}. Must be 'maven' or 'gradle'."
            )
        try:
            return PlatformConfig(**merged)
        except ValidationError as exc:
            raise InvalidConfigError(f"Invalid configuration: {exc}") from exc


def resolve(
    defaults: Mapping[str, str] | None,
    environ: Mapping[str, str],
    config_file: str | Path | None = None,
    cli_args: Mapping[str, Any] | None = None,
) -> PlatformConfig:
    """Resolve a ``PlatformConfig`` in one call.

    Raises:
        InvalidConfigError: If the merged build tool is not recognised.
    """
    return ConfigResolver(defaults).resolve(environ, config_file, cli_args)
