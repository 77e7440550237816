from __future__ import annotations

import logging
from dataclasses import dataclass

from scanner_deploy.cluster.client import OcClient
from scanner_deploy.common.config import DeploymentConfiguration
from scanner_deploy.common.errors import ApplyError, DeployError
from scanner_deploy.template.renderer import load_template, render, validate_placeholders

logger = logging.getLogger(__name__)

TEMPLATE_PLACEHOLDERS = ("SCANNER_IMAGE", "NAMESPACE", "JOB_NAME")


@dataclass(frozen=True)
class ScanJobHandle:
    name: str
    namespace: str
    image_reference: str

    @property
    def logs_command(self) -> str:
        return f"oc logs -f job/{self.name} -n {self.namespace}"


class JobDeployer:
    def __init__(self, client: OcClient) -> None:
        self.client = client

    def render_manifest(self, config: DeploymentConfiguration) -> str:
        namespace = config.require_namespace()
        template_text = load_template(config.template_path)
        validate_placeholders(template_text, TEMPLATE_PLACEHOLDERS)
        return render(
            template_text,
            {
                "SCANNER_IMAGE": config.image_reference,
                "NAMESPACE": namespace,
                "JOB_NAME": config.workload_name,
            },
        )

    def deploy(self, config: DeploymentConfiguration) -> ScanJobHandle:
        manifest = self.render_manifest(config)
        namespace = config.require_namespace()
        logger.info("Applying Job %s from %s", config.workload_name, config.template_path)
        try:
            self.client.apply(manifest)
        except ApplyError as exc:
            raise DeployError(f"applying Job {config.workload_name} in {namespace} failed: {exc}") from exc
        return ScanJobHandle(config.workload_name, namespace, config.image_reference)


__all__ = ["JobDeployer", "ScanJobHandle", "TEMPLATE_PLACEHOLDERS"]
