"""
ArtifactProducer — config + strategy → Artifact.

The config is validated before any generator runs, so configuration
errors always surface before an artifact exists.

    script      setup_script.iss from the structured builder
    bundle      five-file desktop deployment app
    delegated   setup_script.iss from the generative service
"""

from __future__ import annotations

import logging
from enum import StrEnum

from drivegenie.core.models.installer import InstallerConfig
from drivegenie.core.models.template import Artifact, ArtifactKind
from drivegenie.core.services.generators.bundle import generate_bundle
from drivegenie.core.services.generators.delegated import DelegatedGenerator
from drivegenie.core.services.generators.inno_script import (
    generate_build_helper,
    generate_inno_script,
)
from drivegenie.core.services.validation import ensure_valid

logger = logging.getLogger(__name__)


class Strategy(StrEnum):
    SCRIPT = "script"
    BUNDLE = "bundle"
    DELEGATED = "delegated"


def produce(
    config: InstallerConfig,
    strategy: Strategy | str,
    *,
    build_helper: bool = False,
    delegated: DelegatedGenerator | None = None,
) -> Artifact:
    """Generate the artifact for ``strategy``.

    Args:
        config: Frozen configuration snapshot.
        strategy: Which producer to run.
        build_helper: Add ``build.bat`` to script artifacts.
        delegated: Generator to use for the delegated strategy
            (defaults to one reading the API key from the environment).

    Raises:
        ConfigError: The config has validation errors.
        GenerationError: The generator could not produce output.
    """
    strategy = Strategy(strategy)
    ensure_valid(config)
    identifier = config.app_identifier
    logger.info("Producing %s artifact for %s", strategy, identifier)

    if strategy == Strategy.BUNDLE:
        return Artifact(kind=ArtifactKind.BUNDLE, identifier=identifier, files=generate_bundle(config))

    if strategy == Strategy.SCRIPT:
        script = generate_inno_script(config)
    else:
        script = (delegated or DelegatedGenerator()).generate(config)

    files = [script]
    if build_helper:
        files.append(generate_build_helper(script.path))
    return Artifact(kind=ArtifactKind.SCRIPT, identifier=identifier, files=files)
