"""Deployment configuration resolved once per invocation."""

from __future__ import annotations

from dataclasses import dataclass, replace
from pathlib import Path
from typing import Callable, Mapping, Optional

from .errors import ConfigurationError

APP_NAME = "tls-scanner"
DEFAULT_IMAGE = "quay.io/user/tls-scanner:latest"
DEFAULT_JOB_NAME = "tls-scanner-job"
DEFAULT_TEMPLATE_PATH = Path(__file__).resolve().parents[1] / "templates" / "scanner-job.yaml.template"
DEFAULT_POLL_INTERVAL = 10.0
DEFAULT_TIMEOUT = 3600.0


@dataclass(frozen=True)
class DeploymentConfiguration:
    image_reference: str = DEFAULT_IMAGE
    namespace: Optional[str] = None
    workload_name: str = DEFAULT_JOB_NAME
    template_path: Path = DEFAULT_TEMPLATE_PATH
    app_name: str = APP_NAME
    oc_cmd: str = "oc"
    context_dir: Path = Path(".")
    poll_interval: float = DEFAULT_POLL_INTERVAL
    timeout: float = DEFAULT_TIMEOUT
    retries: int = 0

    @classmethod
    def from_env(
        cls,
        environ: Mapping[str, str],
        namespace_resolver: Optional[Callable[[], Optional[str]]] = None,
    ) -> "DeploymentConfiguration":
        """Build a configuration from an environment mapping.

        ``NAMESPACE`` wins when set; otherwise ``namespace_resolver`` is asked
        for the active cluster project. An unresolved namespace is left as
        ``None`` so that actions which do not touch the cluster (build, push)
        still work; cluster actions call :meth:`require_namespace`.
        """

        namespace = (environ.get("NAMESPACE") or "").strip() or None
        if namespace is None and namespace_resolver is not None:
            namespace = namespace_resolver() or None

        template = environ.get("JOB_TEMPLATE")
        return cls(
            image_reference=environ.get("SCANNER_IMAGE") or DEFAULT_IMAGE,
            namespace=namespace,
            workload_name=environ.get("JOB_NAME") or DEFAULT_JOB_NAME,
            template_path=Path(template) if template else DEFAULT_TEMPLATE_PATH,
            oc_cmd=environ.get("OC_CMD") or "oc",
            context_dir=Path(environ.get("SCANNER_CONTEXT") or "."),
            poll_interval=_parse_float(environ, "SCANNER_POLL_INTERVAL", DEFAULT_POLL_INTERVAL),
            timeout=_parse_float(environ, "SCANNER_TIMEOUT", DEFAULT_TIMEOUT),
            retries=_parse_int(environ, "SCANNER_RETRIES", 0),
        )

    def with_overrides(self, **overrides: object) -> "DeploymentConfiguration":
        values = {key: value for key, value in overrides.items() if value is not None}
        return replace(self, **values) if values else self

    def require_namespace(self) -> str:
        if not self.namespace:
            raise ConfigurationError(
                "Could not determine OpenShift project. Please set NAMESPACE or run 'oc project <name>'."
            )
        return self.namespace


def _parse_float(environ: Mapping[str, str], key: str, default: float) -> float:
    raw = environ.get(key)
    if raw is None or raw == "":
        return default
    try:
        value = float(raw)
    except ValueError as exc:
        raise ConfigurationError(f"{key} must be a number, got {raw!r}") from exc
    if value <= 0:
        raise ConfigurationError(f"{key} must be positive, got {raw!r}")
    return value


def _parse_int(environ: Mapping[str, str], key: str, default: int) -> int:
    raw = environ.get(key)
    if raw is None or raw == "":
        return default
    try:
        value = int(raw)
    except ValueError as exc:
        raise ConfigurationError(f"{key} must be an integer, got {raw!r}") from exc
    if value < 0:
        raise ConfigurationError(f"{key} must not be negative, got {raw!r}")
    return value


__all__ = ["DeploymentConfiguration", "DEFAULT_IMAGE", "DEFAULT_JOB_NAME", "DEFAULT_TEMPLATE_PATH"]
