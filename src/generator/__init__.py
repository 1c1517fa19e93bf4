"""platform-gen generator -- remote generation, patching and artifacts.

Quick usage::

    from src.generator import ArtifactGenerator, SourcePatcher, TemplateClient

    client = TemplateClient()
    result = await client.generate(service, config)
    await SourcePatcher().patch(service, result.project, config)
    await ArtifactGenerator().emit_dockerfile(result.project.path, config)
"""

from src.generator.artifacts import ArtifactGenerator
from src.generator.client import (
    GeneratedProject,
    GenerationClient,
    GenerationResult,
    HttpGenerationClient,
    TemplateClient,
)
from src.generator.patcher import PatchResult, SourcePatcher
from src.generator.templates import TemplateRenderer

__all__ = [
    "ArtifactGenerator",
    "GeneratedProject",
    "GenerationClient",
    "GenerationResult",
    "HttpGenerationClient",
    "PatchResult",
    "SourcePatcher",
    "TemplateClient",
    "TemplateRenderer",
]
