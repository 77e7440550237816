"""Exception hierarchy shared by every deployment component."""

from __future__ import annotations

from typing import List, Optional, Sequence, Tuple


class ScannerDeployError(Exception):
    """Base class for failures raised by the deployment tooling."""


class ConfigurationError(ScannerDeployError):
    """Raised when required configuration is missing or invalid."""


class TemplateError(ConfigurationError):
    """Raised when a resource template cannot be rendered."""

    def __init__(self, message: str, placeholders: Sequence[str] = ()) -> None:
        super().__init__(message)
        self.placeholders = list(placeholders)


class ApplyError(ScannerDeployError):
    """Raised when the cluster rejects a manifest or permission mutation."""

    def __init__(self, message: str, stderr: Optional[str] = None) -> None:
        super().__init__(message)
        self.stderr = stderr


class NotFoundError(ScannerDeployError):
    """Raised when an expected resource is absent."""

    def __init__(self, kind: str, name: str, namespace: Optional[str] = None) -> None:
        location = f" in namespace {namespace}" if namespace else ""
        super().__init__(f"{kind} {name} not found{location}")
        self.kind = kind
        self.name = name
        self.namespace = namespace


class DeployError(ScannerDeployError):
    """Raised when the scanner Job could not be submitted."""


class ImageError(ScannerDeployError):
    """Raised when building or pushing the scanner image fails."""

    def __init__(self, step: str, detail: str) -> None:
        super().__init__(f"{step} failed: {detail}")
        self.step = step
        self.detail = detail


class WorkloadTimeoutError(ScannerDeployError, TimeoutError):
    """Raised when the Job does not reach a terminal status before its deadline."""

    def __init__(self, name: str, namespace: str, elapsed: float) -> None:
        super().__init__(f"job {name} in namespace {namespace} not finished after {elapsed:.0f}s")
        self.name = name
        self.namespace = namespace
        self.elapsed = elapsed


class StepFailedError(ScannerDeployError):
    """Raised by the orchestrator when a forward step fails."""

    def __init__(self, step: str, cause: BaseException, substep: Optional[str] = None) -> None:
        label = f"{step} ({substep})" if substep else step
        super().__init__(f"{label}: {cause}")
        self.step = step
        self.substep = substep
        self.cause = cause

    @property
    def label(self) -> str:
        return f"{self.step} ({self.substep})" if self.substep else self.step


class AggregateTeardownError(ScannerDeployError):
    """Raised at the end of cleanup when one or more teardown steps failed."""

    def __init__(self, failures: Sequence[Tuple[str, BaseException]]) -> None:
        self.failures: List[Tuple[str, BaseException]] = list(failures)
        lines = [f"{step}: {error}" for step, error in self.failures]
        super().__init__(f"{len(self.failures)} teardown step(s) failed: " + "; ".join(lines))

    @property
    def steps(self) -> List[str]:
        return [step for step, _ in self.failures]


__all__ = [
    "AggregateTeardownError",
    "ApplyError",
    "ConfigurationError",
    "DeployError",
    "ImageError",
    "NotFoundError",
    "ScannerDeployError",
    "StepFailedError",
    "TemplateError",
    "WorkloadTimeoutError",
]
