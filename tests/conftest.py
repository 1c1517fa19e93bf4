"""Shared pytest fixtures for the platform-gen test suite.

Provides reusable fixtures for:
- Resolved configurations rooted in a temporary directory
- Generated Spring Boot entry-point sources
- An in-memory generation client serving canned zip archives
- Git identity isolation for tests that create real commits
"""

from __future__ import annotations

import io
import textwrap
import zipfile
from pathlib import Path
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from src.config import PlatformConfig
from src.generator.client import GenerationClient
from src.utils import pascal_case


# ---------------------------------------------------------------------------
# Archive helpers
# ---------------------------------------------------------------------------


def spring_application_source(package: str, class_name: str) -> str:
    """Entry point as produced by the generation service."""
    return textwrap.dedent(
        f"""\
        package {package};

        import org.springframework.boot.SpringApplication;
        import org.springframework.boot.autoconfigure.SpringBootApplication;

        @SpringBootApplication
        public class {class_name} {{

        \tpublic static void main(String[] args) {{
        \t\tSpringApplication.run({class_name}.class, args);
        \t}}

        }}
        """
    )


def make_zip(files: dict[str, str]) -> bytes:
    """Build an in-memory zip archive from ``{member: content}``."""
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as zf:
        for member, content in files.items():
            zf.writestr(member, content)
    return buffer.getvalue()


def archive_for_params(params: dict[str, str], include_entry_point: bool = True) -> bytes:
    """A minimal generated project matching the request *params*."""
    base = params["baseDir"]
    build_file = "pom.xml" if params["type"] == "maven-project" else "build.gradle"
    files = {
        f"{base}/{build_file}": f"<!-- {params['artifactId']} -->\n",
        f"{base}/src/main/resources/application.properties": (
            f"spring.application.name={params['name']}\n"
        ),
    }
    if include_entry_point:
        class_name = f"{pascal_case(params['name'])}Application"
        package_path = params["packageName"].replace(".", "/")
        files[f"{base}/src/main/java/{package_path}/{class_name}.java"] = (
            spring_application_source(params["packageName"], class_name)
        )
    return make_zip(files)


class FakeGenerationClient(GenerationClient):
    """In-memory ``GenerationClient`` returning canned responses.

    ``responses`` maps a service name (``baseDir``) to ``(status, body)``.
    Services without an entry get a generated archive and status 200.
    """

    def __init__(
        self,
        responses: dict[str, tuple[int, bytes]] | None = None,
        without_entry_point: set[str] | None = None,
    ) -> None:
        self.responses = responses or {}
        self.without_entry_point = without_entry_point or set()
        self.calls: list[dict[str, Any]] = []

    async def download(self, url: str, params: dict[str, str], destination: Path) -> int:
        self.calls.append({"url": url, "params": dict(params), "destination": destination})
        service = params["baseDir"]
        if service in self.responses:
            status, body = self.responses[service]
        else:
            status = 200
            body = archive_for_params(
                params, include_entry_point=service not in self.without_entry_point
            )
        destination.write_bytes(body)
        return status

    @property
    def requested(self) -> list[str]:
        return [call["params"]["baseDir"] for call in self.calls]


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


@pytest.fixture
def make_config(tmp_path: Path):
    """Factory for ``PlatformConfig`` instances rooted under ``tmp_path``."""

    def factory(**overrides: Any) -> PlatformConfig:
        values: dict[str, Any] = {"root_dir": tmp_path / "platform"}
        values.update(overrides)
        return PlatformConfig(**values)

    return factory


@pytest.fixture
def gradle_config(make_config) -> PlatformConfig:
    return make_config(build_tool="gradle", group_id="com.acme", java_version="21")


@pytest.fixture
def maven_config(make_config) -> PlatformConfig:
    return make_config(build_tool="maven", group_id="com.example", java_version="17")


@pytest.fixture
def fake_client() -> FakeGenerationClient:
    return FakeGenerationClient()


@pytest.fixture
def client_factory():
    """The ``FakeGenerationClient`` class, for tests needing canned responses."""
    return FakeGenerationClient


@pytest.fixture
def zip_factory():
    """The ``make_zip`` helper."""
    return make_zip


@pytest.fixture
def entry_point_source():
    """The ``spring_application_source`` helper."""
    return spring_application_source


# ---------------------------------------------------------------------------
# Git
# ---------------------------------------------------------------------------


@pytest.fixture
def git_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Isolate git from the user's global config and provide an identity."""
    global_config = tmp_path / "gitconfig"
    global_config.write_text("[commit]\n\tgpgsign = false\n", encoding="utf-8")
    monkeypatch.setenv("GIT_CONFIG_GLOBAL", str(global_config))
    monkeypatch.setenv("GIT_CONFIG_NOSYSTEM", "1")
    monkeypatch.setenv("GIT_AUTHOR_NAME", "Platform Gen Test")
    monkeypatch.setenv("GIT_AUTHOR_EMAIL", "test@platform-gen.local")
    monkeypatch.setenv("GIT_COMMITTER_NAME", "Platform Gen Test")
    monkeypatch.setenv("GIT_COMMITTER_EMAIL", "test@platform-gen.local")


# ---------------------------------------------------------------------------
# Subprocess
# ---------------------------------------------------------------------------


@pytest.fixture
def mock_subprocess():
    """Mock asyncio subprocess for testing command execution.

    Returns a factory that creates mock subprocess instances with configurable
    stdout, stderr, and return codes.

    Usage:
        def test_command(mock_subprocess):
            proc = mock_subprocess(stdout="output", returncode=0)
            with patch("asyncio.create_subprocess_exec", return_value=proc):
                ...
    """
    def factory(
        stdout: str = "",
        stderr: str = "",
        returncode: int = 0,
    ) -> AsyncMock:
        mock_proc = AsyncMock()
        mock_proc.communicate = AsyncMock(
            return_value=(stdout.encode("utf-8"), stderr.encode("utf-8"))
        )
        mock_proc.returncode = returncode
        mock_proc.pid = 99999
        mock_proc.kill = MagicMock()
        mock_proc.wait = AsyncMock(return_value=returncode)
        return mock_proc

    return factory
