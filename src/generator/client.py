"""Client for the remote project-generation service.

``TemplateClient`` turns a ``ServiceSpec`` into request parameters, asks a
``GenerationClient`` to download the resulting zip archive and unpacks it
into the services directory.  The transport sits behind the single-method
``GenerationClient`` interface so tests can serve canned archives without a
network.

Typical usage::

    client = TemplateClient(HttpGenerationClient())
    result = await client.generate(service, config)
    if not result.success:
        raise GenerationError(service.name, result.status_code, result.body)
"""

from __future__ import annotations

import abc
import asyncio
import os
import tempfile
import zipfile
from pathlib import Path

import httpx
from pydantic import BaseModel, Field

from src.config import PlatformConfig
from src.services import ServiceSpec

# Characters of an error body kept on a failed result.
_MAX_ERROR_BODY = 2000


class GeneratedProject(BaseModel):
    """An unpacked project returned by the generation service."""

    service: str
    path: Path


class GenerationResult(BaseModel):
    """Structured outcome of one generation request."""

    service: str
    success: bool = Field(default=True)
    status_code: int = Field(default=200, description="HTTP status; 0 for transport errors")
    body: str = Field(default="", description="Response body on failure")
    project: GeneratedProject | None = None


class GenerationClient(abc.ABC):
    """Transport that downloads a generated archive."""

    @abc.abstractmethod
    async def download(self, url: str, params: dict[str, str], destination: Path) -> int:
        """Stream the response for *params* into *destination*.

        Returns:
            The HTTP status code.  The response body is written to
            *destination* whatever the status.
        """


class HttpGenerationClient(GenerationClient):
    """``GenerationClient`` backed by ``httpx.AsyncClient``.

    Parameters are sent as a form-encoded POST.  No retry is attempted and
    only the connection attempt is bounded by a timeout.
    """

    def __init__(self, connect_timeout: float = 10.0) -> None:
        self.connect_timeout = connect_timeout

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=httpx.Timeout(None, connect=self.connect_timeout),
            follow_redirects=True,
        )

    async def download(self, url: str, params: dict[str, str], destination: Path) -> int:
        async with self._client() as client:
            async with client.stream("POST", url, data=params) as response:
                with destination.open("wb") as fh:
                    async for chunk in response.aiter_bytes():
                        fh.write(chunk)
                return response.status_code


def build_request_params(service: ServiceSpec, config: PlatformConfig) -> dict[str, str]:
    """Request parameters for generating *service*."""
    return {
        "type": config.project_type,
        "language": config.language,
        "bootVersion": config.boot_version,
        "baseDir": service.name,
        "groupId": config.group_id,
        "artifactId": service.name,
        "name": service.name,
        "packageName": service.package_name(config.group_id),
        "javaVersion": config.java_version,
        "dependencies": ",".join(service.dependencies),
    }


def _unix_mode(info: zipfile.ZipInfo) -> int:
    """Permission bits stored for *info*, or 0 when the archive has none."""
    return (info.external_attr >> 16) & 0o777


def _safe_extract(archive: Path, target_dir: Path) -> None:
    """Extract *archive* into *target_dir*, refusing members that escape it.

    Unix permission bits recorded in the archive are restored, so build
    wrappers such as ``mvnw`` and ``gradlew`` stay executable.
    """
    root = target_dir.resolve()
    with zipfile.ZipFile(archive) as zf:
        members = zf.infolist()
        for info in members:
            destination = (root / info.filename).resolve()
            if destination != root and root not in destination.parents:
                raise zipfile.BadZipFile(
                    f"Archive member escapes target directory: {info.filename}"
                )
        for info in members:
            extracted = zf.extract(info, root)
            mode = _unix_mode(info)
            if mode and not info.is_dir():
                os.chmod(extracted, mode)


class TemplateClient:
    """Generates one project per ``ServiceSpec`` via the generation service."""

    def __init__(self, transport: GenerationClient | None = None) -> None:
        self.transport = transport or HttpGenerationClient()

    async def generate(self, service: ServiceSpec, config: PlatformConfig) -> GenerationResult:
        """Request, download and unpack the project for *service*.

        The archive is downloaded to a temporary file inside the services
        directory and removed afterwards whether or not the request
        succeeded.

        Returns:
            A successful ``GenerationResult`` carrying the ``GeneratedProject``,
            or a failed one carrying the status code and response body.
        """
        target_dir = config.services_dir
        await asyncio.to_thread(target_dir.mkdir, parents=True, exist_ok=True)
        params = build_request_params(service, config)

        fd, tmp_name = tempfile.mkstemp(prefix=f"{service.name}-", suffix=".zip", dir=target_dir)
        archive = Path(tmp_name)
        os.close(fd)
        try:
            try:
                status = await self.transport.download(config.initializr_url, params, archive)
            except httpx.HTTPError as exc:
                return GenerationResult(
                    service=service.name,
                    success=False,
                    status_code=0,
                    body=f"{type(exc).__name__}: {exc}",
                )

            if status != 200:
                body = archive.read_bytes()[:_MAX_ERROR_BODY].decode("utf-8", errors="replace")
                return GenerationResult(
                    service=service.name,
                    success=False,
                    status_code=status,
                    body=body,
                )

            try:
                await asyncio.to_thread(_safe_extract, archive, target_dir)
            except zipfile.BadZipFile as exc:
                return GenerationResult(
                    service=service.name,
                    success=False,
                    status_code=status,
                    body=f"Invalid archive: {exc}",
                )
        finally:
            archive.unlink(missing_ok=True)

        project = GeneratedProject(service=service.name, path=target_dir / service.name)
        return GenerationResult(service=service.name, project=project)
