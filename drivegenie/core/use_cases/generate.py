"""
Generate use case — load the config, produce an artifact, write it out.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path

from drivegenie.core.config.loader import load_installer_config
from drivegenie.core.errors import ConfigError, GenerationError
from drivegenie.core.models.template import Artifact, GeneratedFile
from drivegenie.core.services.producer import Strategy, produce

logger = logging.getLogger(__name__)

# The Inno Setup compiler needs a BOM to read UTF-8 scripts
_ENCODINGS = {".iss": "utf-8-sig"}


@dataclass
class GenerateResult:
    """Result of one generation request."""

    strategy: str = ""
    artifact: Artifact | None = None
    written: list[Path] = field(default_factory=list)
    error: str | None = None
    issues: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.error is None

    def to_dict(self) -> dict:
        return {
            "ok": self.ok,
            "strategy": self.strategy,
            "identifier": self.artifact.identifier if self.artifact else None,
            "kind": self.artifact.kind.value if self.artifact else None,
            "files": [str(p) for p in self.written],
            "error": self.error,
            "issues": self.issues,
        }


def write_file(out_dir: Path, generated: GeneratedFile) -> Path:
    """Write one generated file below ``out_dir``, keeping its line endings."""
    target = out_dir / generated.path
    target.parent.mkdir(parents=True, exist_ok=True)
    encoding = _ENCODINGS.get(target.suffix.lower(), "utf-8")
    target.write_text(generated.content, encoding=encoding, newline="")
    logger.debug("Wrote %s", target)
    return target


def run_generate(
    strategy: Strategy | str,
    out_dir: Path,
    *,
    config_path: Path | None = None,
    build_helper: bool = False,
) -> GenerateResult:
    """Produce the artifact for ``strategy`` into ``out_dir``."""
    result = GenerateResult(strategy=str(strategy))

    try:
        config = load_installer_config(config_path)
        artifact = produce(config, strategy, build_helper=build_helper)
    except ConfigError as e:
        result.error = str(e)
        result.issues = e.issues
        return result
    except (GenerationError, ValueError) as e:
        result.error = str(e)
        return result

    result.artifact = artifact
    try:
        for generated in artifact.files:
            result.written.append(write_file(out_dir, generated))
    except OSError as e:
        result.error = f"Cannot write artifact: {e}"
    return result
