"""Source patching of generated entry points.

Some capabilities (the Eureka server, the config server) cannot be requested
as generation-time dependencies and are enabled by inserting an import and
an annotation into the generated application class.  Each insertion is
skipped when its text is already present, so patching an already patched
project leaves it unchanged.
"""

from __future__ import annotations

import asyncio
import re
from pathlib import Path

from pydantic import BaseModel, Field

from src.config import PlatformConfig
from src.results import IssueKind, StageResult
from src.services import InsertPosition, PatchOperation, ServiceSpec

from .client import GeneratedProject


class PatchResult(BaseModel):
    """Outcome of patching one service."""

    service: str
    target: Path
    applied: list[str] = Field(default_factory=list, description="Text of inserted lines")
    already_present: list[str] = Field(default_factory=list)
    stage: StageResult

    @property
    def skipped(self) -> bool:
        """True when the entry point did not exist."""
        return any(i.kind == IssueKind.PATCH_TARGET_MISSING for i in self.stage.issues)


def _locate(lines: list[str], op: PatchOperation) -> int | None:
    """Index at which ``op.text`` should be inserted, or ``None`` if unanchored."""
    if op.line is not None:
        index = op.line - 1 if op.position == InsertPosition.BEFORE else op.line
        return min(index, len(lines))

    pattern = re.compile(op.anchor or "")
    for index, line in enumerate(lines):
        if pattern.search(line):
            return index + 1 if op.position == InsertPosition.AFTER else index
    return None


def apply_patch(lines: list[str], op: PatchOperation) -> bool:
    """Insert ``op.text`` into *lines* in place.

    Returns:
        ``True`` if the text was inserted, ``False`` if no anchor matched.
    """
    index = _locate(lines, op)
    if index is None:
        return False
    lines.insert(index, op.text)
    return True


def is_applied(lines: list[str], op: PatchOperation) -> bool:
    return any(line.strip() == op.text.strip() for line in lines)


class SourcePatcher:
    """Applies a service's ``PatchOperation`` list to its entry point."""

    async def patch(
        self,
        service: ServiceSpec,
        project: GeneratedProject,
        config: PlatformConfig,
    ) -> PatchResult:
        target = project.path / service.entry_point(config.group_id)
        stage = StageResult(stage="patch", service=service.name)
        result = PatchResult(service=service.name, target=target, stage=stage)

        if not service.patches:
            return result

        if not target.is_file():
            stage.add(
                IssueKind.PATCH_TARGET_MISSING,
                f"Could not find main class to inject annotations at {target}",
            )
            return result

        text = await asyncio.to_thread(target.read_text, encoding="utf-8")
        lines = text.splitlines()

        for op in service.patches:
            if is_applied(lines, op):
                result.already_present.append(op.text)
                continue
            if apply_patch(lines, op):
                result.applied.append(op.text)
            else:
                stage.add(
                    IssueKind.PATCH_ANCHOR_MISSING,
                    f"No line matching '{op.anchor}' in {target}; '{op.text}' not inserted",
                )

        if result.applied:
            trailing = "\n" if text.endswith("\n") else ""
            await asyncio.to_thread(
                target.write_text, "\n".join(lines) + trailing, encoding="utf-8"
            )
            stage.outputs.append(target)

        return result
