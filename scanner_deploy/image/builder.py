from __future__ import annotations

import logging
import shutil
from pathlib import Path
from typing import Callable, Optional, Sequence

from scanner_deploy.cluster.client import CommandResult, Runner, subprocess_runner
from scanner_deploy.common.errors import ConfigurationError, ImageError

logger = logging.getLogger(__name__)

ENGINES = ("podman", "docker")


def detect_engine(which: Callable[[str], Optional[str]] = shutil.which) -> str:
    """Prefer podman, fall back to docker."""

    for engine in ENGINES:
        if which(engine):
            return engine
    raise ConfigurationError("Required command 'docker' is not installed or not in PATH.")


class ImageBuilder:
    """Builds the scanner binary and image, and pushes it to its registry."""

    def __init__(
        self,
        image_reference: str,
        context_dir: Path = Path("."),
        *,
        binary_name: str = "tls-scanner",
        engine: Optional[str] = None,
        runner: Optional[Runner] = None,
        which: Callable[[str], Optional[str]] = shutil.which,
    ) -> None:
        self.image_reference = image_reference
        self.context_dir = Path(context_dir)
        self.binary_name = binary_name
        self._engine = engine
        self.runner = runner or subprocess_runner
        self.which = which

    @property
    def engine(self) -> str:
        if self._engine is None:
            self._engine = detect_engine(self.which)
        return self._engine

    def build(self) -> None:
        engine = self.engine
        context = str(self.context_dir)
        self._run("Go build", ["go", "build", "-C", context, "-o", self.binary_name, "."])
        self._run("Container image build", [engine, "build", "-t", self.image_reference, context])

    def push(self) -> None:
        self._run("Image push", [self.engine, "push", self.image_reference])

    def _run(self, step: str, args: Sequence[str]) -> CommandResult:
        logger.info("%s: %s", step, " ".join(args))
        result = self.runner(args, None)
        if not result.ok:
            raise ImageError(step, result.detail)
        return result


__all__ = ["ImageBuilder", "detect_engine"]
