"""Deployment artifact generation.

Renders the per-service ``Dockerfile``, the config server's
``config-repo/application.yml`` and the top-level ``README.md`` summary from
the Jinja2 templates in ``templates/``.  Output depends only on the
configuration and the service list, apart from the generation timestamp
embedded in the summary.
"""

from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import Any

from src.config import VERSION, PlatformConfig
from src.services import ServiceSpec, in_summary_order

from .templates import TemplateRenderer

CONTAINER_PORT = 8080
CONFIG_SERVER_PORT = 8888
CONFIG_GIT_URI = "${HOME}/config-repo"


class ArtifactGenerator:
    """Generates Dockerfiles, the config-repo descriptor and the summary."""

    def __init__(self, renderer: TemplateRenderer | None = None) -> None:
        self.renderer = renderer or TemplateRenderer()

    async def emit_dockerfile(self, service_dir: Path, config: PlatformConfig) -> Path:
        """Write ``Dockerfile`` at the root of *service_dir*."""
        context: dict[str, Any] = {
            "java_version": config.java_version,
            "jar_glob": config.jar_glob,
            "container_port": CONTAINER_PORT,
        }
        return await self.renderer.render_to_file(
            "Dockerfile.j2", service_dir / "Dockerfile", context
        )

    async def emit_config_descriptor(self, service_dir: Path) -> Path:
        """Write ``config-repo/application.yml`` for the configuration server.

        ``${HOME}`` is written literally and resolved by the server at
        startup.
        """
        context = {"port": CONFIG_SERVER_PORT, "git_uri": CONFIG_GIT_URI}
        return await self.renderer.render_to_file(
            "application.yml.j2",
            service_dir / "config-repo" / "application.yml",
            context,
        )

    async def emit_summary(
        self,
        config: PlatformConfig,
        services: list[ServiceSpec],
        generated_at: datetime | None = None,
    ) -> Path:
        """Write ``README.md`` at the output root.

        Args:
            config: Resolved platform configuration.
            services: Services that were generated.
            generated_at: Timestamp to embed; defaults to now.

        Returns:
            Path of the written summary.
        """
        stamp = (generated_at or datetime.now()).strftime("%a %b %d %H:%M:%S %Y")
        context: dict[str, Any] = {
            "generated_at": stamp,
            "version": VERSION,
            "build_tool": config.build_tool.value,
            "java_version": config.java_version,
            "run_command": config.run_command,
            "services_dir": config.services_dir.relative_to(config.root_dir).as_posix(),
            "services": in_summary_order(services),
        }
        return await self.renderer.render_to_file(
            "README.md.j2", config.root_dir / "README.md", context
        )
