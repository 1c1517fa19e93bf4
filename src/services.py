"""Service definitions for the generated platform.

A ``ServiceSpec`` describes one service to request from the generation
service: its name, the capability tokens to include and the source patches
to apply afterwards.  ``platform_services()`` returns the three
infrastructure services every platform starts with.
"""

from __future__ import annotations

from enum import Enum
from pathlib import PurePosixPath

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from src.utils import is_kebab_case, pascal_case

BOOTSTRAP_MARKER = r"^\s*@SpringBootApplication\b"
IMPORT_LINE = 3


class InsertPosition(str, Enum):
    BEFORE = "before"
    AFTER = "after"


class PatchOperation(BaseModel):
    """One text insertion into a generated source file.

    The insertion point is either a fixed 1-based ``line`` or the first line
    matching the ``anchor`` regular expression; ``position`` says whether the
    text goes before or after that line.
    """

    model_config = ConfigDict(frozen=True)

    text: str = Field(..., min_length=1)
    anchor: str | None = Field(default=None, description="Regex matched against each line")
    line: int | None = Field(default=None, ge=1, description="Fixed 1-based line number")
    position: InsertPosition = Field(default=InsertPosition.AFTER)

    @model_validator(mode="after")
    def _one_locator(self) -> "PatchOperation":
        if (self.anchor is None) == (self.line is None):
            raise ValueError("exactly one of 'anchor' or 'line' must be set")
        return self


class ServiceSpec(BaseModel):
    """A platform service requested from the generation service."""

    model_config = ConfigDict(frozen=True)

    name: str
    label: str = Field(default="", description="Display name used in the summary")
    description: str = Field(default="")
    port: int = Field(default=8080, ge=1, le=65535)
    dependencies: tuple[str, ...] = Field(default=())
    patches: tuple[PatchOperation, ...] = Field(default=())
    config_repo: bool = Field(
        default=False, description="Whether to emit a config-repo descriptor"
    )

    @field_validator("name")
    @classmethod
    def _kebab_name(cls, value: str) -> str:
        if not is_kebab_case(value):
            raise ValueError(f"service name '{value}' must be kebab-case")
        return value

    @property
    def application_class(self) -> str:
        """``discovery-server`` -> ``DiscoveryServerApplication``."""
        return f"{pascal_case(self.name)}Application"

    def package_name(self, group_id: str) -> str:
        """``com.acme`` + ``api-gateway`` -> ``com.acme.api.gateway``."""
        return f"{group_id}.{self.name.replace('-', '.')}"

    def entry_point(self, group_id: str) -> PurePosixPath:
        """Path of the generated main class, relative to the service directory."""
        package_path = self.package_name(group_id).replace(".", "/")
        return PurePosixPath("src/main/java", package_path, f"{self.application_class}.java")


def enable_capability(import_name: str) -> tuple[PatchOperation, PatchOperation]:
    """Patches that import *import_name* and annotate the application class.

    ``org.x.EnableFoo`` produces an import at line 3 and ``@EnableFoo``
    right after the ``@SpringBootApplication`` line.
    """
    annotation = import_name.rsplit(".", 1)[-1]
    return (
        PatchOperation(
            text=f"import {import_name};",
            line=IMPORT_LINE,
            position=InsertPosition.BEFORE,
        ),
        PatchOperation(
            text=f"@{annotation}",
            anchor=BOOTSTRAP_MARKER,
            position=InsertPosition.AFTER,
        ),
    )


def platform_services() -> list[ServiceSpec]:
    """The three infrastructure services, in generation order."""
    return [
        ServiceSpec(
            name="discovery-server",
            label="Discovery Server",
            description="Eureka Registry",
            port=8761,
            dependencies=("cloud-eureka-server", "actuator"),
            patches=enable_capability(
                "org.springframework.cloud.netflix.eureka.server.EnableEurekaServer"
            ),
        ),
        ServiceSpec(
            name="api-gateway",
            label="API Gateway",
            description="Entry point & Routing",
            port=8080,
            dependencies=("cloud-gateway", "cloud-eureka", "actuator"),
        ),
        ServiceSpec(
            name="config-server",
            label="Config Server",
            description="Centralized Configuration",
            port=8888,
            dependencies=("cloud-config-server", "actuator"),
            patches=enable_capability(
                "org.springframework.cloud.config.server.EnableConfigServer"
            ),
            config_repo=True,
        ),
    ]


# Order in which services are listed in the generated summary.
SUMMARY_ORDER: tuple[str, ...] = ("discovery-server", "config-server", "api-gateway")


def in_summary_order(services: list[ServiceSpec]) -> list[ServiceSpec]:
    """Sort *services* for display; unknown services keep their order at the end."""
    rank = {name: index for index, name in enumerate(SUMMARY_ORDER)}
    return sorted(services, key=lambda s: rank.get(s.name, len(rank)))
