"""Shared configuration, errors and console helpers."""

from .config import DeploymentConfiguration
from .errors import (
    AggregateTeardownError,
    ApplyError,
    ConfigurationError,
    DeployError,
    ImageError,
    NotFoundError,
    ScannerDeployError,
    StepFailedError,
    TemplateError,
    WorkloadTimeoutError,
)
from .teardown import TeardownReport

__all__ = [
    "AggregateTeardownError",
    "ApplyError",
    "ConfigurationError",
    "DeployError",
    "DeploymentConfiguration",
    "ImageError",
    "NotFoundError",
    "ScannerDeployError",
    "StepFailedError",
    "TeardownReport",
    "TemplateError",
    "WorkloadTimeoutError",
]
