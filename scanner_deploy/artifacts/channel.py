from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from scanner_deploy.cluster.client import OcClient
from scanner_deploy.common.errors import NotFoundError

logger = logging.getLogger(__name__)

PULL_SECRET = "pull-secret"
PULL_SECRET_NAMESPACE = "openshift-config"
SERVICE_ACCOUNT = "default"


@dataclass(frozen=True)
class ArtifactChannel:
    secret_name: str
    source_namespace: str
    namespace: str
    service_account: str = SERVICE_ACCOUNT


class ArtifactChannelProvisioner:
    """Makes the cluster-wide pull secret usable by the scanner's service account.

    Teardown only unlinks the secret. The copied Secret object stays in the
    namespace because it may be shared with other workloads there.
    """

    def __init__(
        self,
        client: OcClient,
        secret_name: str = PULL_SECRET,
        source_namespace: str = PULL_SECRET_NAMESPACE,
        service_account: str = SERVICE_ACCOUNT,
    ) -> None:
        self.client = client
        self.secret_name = secret_name
        self.source_namespace = source_namespace
        self.service_account = service_account

    def provision(self, namespace: str) -> ArtifactChannel:
        logger.info("Copying %s/%s into %s", self.source_namespace, self.secret_name, namespace)
        self.client.copy_secret(self.secret_name, self.source_namespace, namespace)
        self.client.link_secret(self.service_account, self.secret_name, namespace)
        return ArtifactChannel(self.secret_name, self.source_namespace, namespace, self.service_account)

    def is_linked(self, namespace: str) -> bool:
        try:
            account = self.client.get("serviceaccount", self.service_account, namespace)
        except NotFoundError:
            return False
        return self.secret_name in _referenced_secrets(account)

    def teardown(self, namespace: str, channel: Optional[ArtifactChannel] = None) -> bool:
        """Unlink the pull secret; returns False when there was nothing to unlink."""

        secret_name = channel.secret_name if channel else self.secret_name
        service_account = channel.service_account if channel else self.service_account
        if not self.is_linked(namespace):
            logger.info("Secret %s is not linked to %s in %s; skipping unlink", secret_name, service_account, namespace)
            return False
        self.client.unlink_secret(service_account, secret_name, namespace)
        return True


def _referenced_secrets(account: Dict[str, Any]) -> set:
    names = set()
    for key in ("imagePullSecrets", "secrets"):
        entries = account.get(key) or []
        for entry in entries:
            if isinstance(entry, dict) and isinstance(entry.get("name"), str):
                names.add(entry["name"])
    return names


__all__ = ["ArtifactChannel", "ArtifactChannelProvisioner", "PULL_SECRET", "PULL_SECRET_NAMESPACE"]
