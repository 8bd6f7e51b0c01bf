"""
Generated file model — used by all artifact producers.
"""

from __future__ import annotations

from enum import StrEnum

from pydantic import BaseModel, Field


class ArtifactKind(StrEnum):
    """What a producer emitted."""

    SCRIPT = "script"
    BUNDLE = "bundle"


class GeneratedFile(BaseModel):
    """A file produced by an artifact producer.

    Attributes:
        path:      Relative path inside the artifact output directory.
        content:   Full file content.
        reason:    Why this file was generated.
    """

    path: str
    content: str
    reason: str = ""


class Artifact(BaseModel):
    """One producer output: a single script or a multi-file bundle."""

    kind: ArtifactKind
    identifier: str
    files: list[GeneratedFile] = Field(default_factory=list)

    def get(self, path: str) -> GeneratedFile | None:
        """Look up a generated file by its relative path."""
        for f in self.files:
            if f.path == path:
                return f
        return None

    @property
    def paths(self) -> list[str]:
        return [f.path for f in self.files]
