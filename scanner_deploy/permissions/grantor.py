from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Set, Tuple

import yaml

from scanner_deploy.cluster.client import CLUSTER_ROLE, SCC, OcClient
from scanner_deploy.common.errors import ApplyError, NotFoundError, ScannerDeployError

logger = logging.getLogger(__name__)

DEFAULT_SUBJECT = "default"
CROSS_NAMESPACE_ROLE = "tls-scanner-cross-namespace"
# Bindings the service account held before the first grant; cleanup leaves them alone.
PREEXISTING_ANNOTATION = "scanner-deploy/preexisting-grants"

CROSS_NAMESPACE_RULES: List[Dict[str, Any]] = [
    {"apiGroups": [""], "resources": ["pods/exec"], "verbs": ["create"]},
    {"apiGroups": ["operator.openshift.io"], "resources": ["ingresscontrollers"], "verbs": ["get", "list"]},
    {"apiGroups": ["machineconfiguration.openshift.io"], "resources": ["kubeletconfigs"], "verbs": ["get", "list"]},
]


@dataclass(frozen=True)
class PermissionGrant:
    subject: str
    role: str
    namespace: str
    role_kind: str = CLUSTER_ROLE

    def describe(self) -> str:
        return f"{self.role_kind} {self.role}"

    @property
    def ref(self) -> str:
        return f"{self.role_kind}/{self.role}"


class PermissionGrantError(ApplyError):
    """Raised when a grant fails; ``attempted`` still drives revocation."""

    def __init__(self, grant: PermissionGrant, attempted: Sequence[PermissionGrant], cause: ScannerDeployError) -> None:
        super().__init__(f"granting {grant.describe()} failed: {cause}", getattr(cause, "stderr", None))
        self.grant = grant
        self.attempted = list(attempted)
        self.cause = cause


def cross_namespace_role_manifest(name: str = CROSS_NAMESPACE_ROLE) -> str:
    role = {
        "apiVersion": "rbac.authorization.k8s.io/v1",
        "kind": "ClusterRole",
        "metadata": {"name": name},
        "rules": CROSS_NAMESPACE_RULES,
    }
    return yaml.safe_dump(role, sort_keys=False)


class PermissionGrantor:
    def __init__(self, client: OcClient, subject: str = DEFAULT_SUBJECT, role_name: str = CROSS_NAMESPACE_ROLE) -> None:
        self.client = client
        self.subject = subject
        self.role_name = role_name

    def planned_grants(self, namespace: str) -> List[PermissionGrant]:
        return [
            PermissionGrant(self.subject, "cluster-reader", namespace, CLUSTER_ROLE),
            PermissionGrant(self.subject, "privileged", namespace, SCC),
            PermissionGrant(self.subject, self.role_name, namespace, CLUSTER_ROLE),
        ]

    def grant(self, namespace: str) -> List[PermissionGrant]:
        """Bind every planned grant to the execution identity of ``namespace``.

        Bindings the service account already held before the first grant are
        recorded on it and skipped, so a later revoke never removes them.
        Returns the grants attempted, in order. Binding an already-held role
        is a no-op on the cluster side, so calling this twice leaves the same
        permission set as calling it once.
        """

        preexisting = self._record_preexisting(namespace)
        attempted: List[PermissionGrant] = []
        for grant in self.planned_grants(namespace):
            if grant.ref in preexisting:
                logger.info("%s was bound to %s in %s before deployment; leaving it alone", grant.describe(), grant.subject, namespace)
                continue
            attempted.append(grant)
            try:
                if grant.role == self.role_name:
                    logger.info("Applying ClusterRole %s", self.role_name)
                    self.client.apply(cross_namespace_role_manifest(self.role_name))
                logger.info("Granting %s to %s in %s", grant.describe(), grant.subject, namespace)
                self.client.grant_role(grant.subject, grant.role, grant.namespace, grant.role_kind)
            except ScannerDeployError as exc:
                raise PermissionGrantError(grant, attempted, exc) from exc
        return attempted

    def release(self, namespace: str) -> List[Tuple[str, BaseException]]:
        """Revoke what this tool granted in ``namespace`` and drop the record.

        The record is kept when any step fails so that a second cleanup still
        knows which bindings to leave alone.
        """

        try:
            recorded = self._recorded_preexisting(namespace)
        except ScannerDeployError as exc:
            logger.warning("Could not read the grant record in %s: %s", namespace, exc)
            dedicated = [grant for grant in self.planned_grants(namespace) if grant.role == self.role_name]
            return [("read grant record", exc), *self.revoke(namespace, dedicated)]

        grants = [grant for grant in self.planned_grants(namespace) if grant.ref not in (recorded or set())]
        failures = self.revoke(namespace, grants)
        if recorded is not None and not failures:
            step = "clear grant record"
            try:
                self.client.annotate("serviceaccount", self.subject, namespace, PREEXISTING_ANNOTATION, None)
            except NotFoundError:
                logger.info("Service account %s is gone from %s; no grant record to clear", self.subject, namespace)
            except ScannerDeployError as exc:
                logger.warning("%s failed in %s: %s", step, namespace, exc)
                failures.append((step, exc))
        return failures

    def revoke(self, namespace: str, grants: Sequence[PermissionGrant]) -> List[Tuple[str, BaseException]]:
        """Revoke ``grants`` and delete the dedicated ClusterRole.

        Every step is attempted; failures are returned rather than raised.
        """

        failures: List[Tuple[str, BaseException]] = []
        for grant in grants:
            step = f"revoke {grant.describe()}"
            try:
                self.client.revoke_role(grant.subject, grant.role, grant.namespace, grant.role_kind)
            except ScannerDeployError as exc:
                logger.warning("%s failed in %s: %s", step, namespace, exc)
                failures.append((step, exc))
        step = f"delete ClusterRole {self.role_name}"
        try:
            self.client.delete("clusterrole", self.role_name, None, ignore_missing=True)
        except ScannerDeployError as exc:
            logger.warning("%s failed: %s", step, exc)
            failures.append((step, exc))
        return failures

    def _recorded_preexisting(self, namespace: str) -> Optional[Set[str]]:
        try:
            account = self.client.get("serviceaccount", self.subject, namespace)
        except NotFoundError:
            return None
        annotations = (account.get("metadata") or {}).get("annotations") or {}
        recorded = annotations.get(PREEXISTING_ANNOTATION)
        if recorded is None:
            return None
        return {ref for ref in recorded.split(",") if ref}

    def _record_preexisting(self, namespace: str) -> Set[str]:
        recorded = self._recorded_preexisting(namespace)
        if recorded is not None:
            return recorded
        # The dedicated role only ever comes from this tool.
        held = [
            grant.ref
            for grant in self.planned_grants(namespace)
            if grant.role != self.role_name
            and self.client.holds_role(grant.subject, grant.role, grant.namespace, grant.role_kind)
        ]
        self.client.annotate("serviceaccount", self.subject, namespace, PREEXISTING_ANNOTATION, ",".join(held))
        return set(held)


__all__ = [
    "CROSS_NAMESPACE_ROLE",
    "PREEXISTING_ANNOTATION",
    "PermissionGrant",
    "PermissionGrantError",
    "PermissionGrantor",
    "cross_namespace_role_manifest",
]
