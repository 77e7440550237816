from __future__ import annotations

import json
import logging
import re
import subprocess
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Sequence

import jsonpatch
import yaml

from scanner_deploy.common.errors import ApplyError, ConfigurationError, NotFoundError

logger = logging.getLogger(__name__)

CLUSTER_ROLE = "ClusterRole"
SCC = "SecurityContextConstraints"

_NOT_FOUND_PATTERN = re.compile(
    r"\(NotFound\)|not found|does not exist|unable to find target|is not bound",
    re.IGNORECASE,
)
# Server-owned metadata that must not travel with a copied object.
_SERVER_METADATA = ("uid", "resourceVersion", "creationTimestamp", "ownerReferences", "managedFields", "selfLink")

_POLICY_VERBS = {
    (CLUSTER_ROLE, True): "add-cluster-role-to-user",
    (CLUSTER_ROLE, False): "remove-cluster-role-from-user",
    (SCC, True): "add-scc-to-user",
    (SCC, False): "remove-scc-from-user",
}


@dataclass(frozen=True)
class CommandResult:
    args: Sequence[str]
    returncode: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    @property
    def detail(self) -> str:
        return self.stderr.strip() or self.stdout.strip() or f"exit status {self.returncode}"

    @property
    def not_found(self) -> bool:
        return not self.ok and bool(_NOT_FOUND_PATTERN.search(self.stderr or self.stdout))


Runner = Callable[[Sequence[str], Optional[str]], CommandResult]


def subprocess_runner(args: Sequence[str], stdin: Optional[str] = None) -> CommandResult:
    try:
        completed = subprocess.run(
            list(args),
            input=stdin.encode("utf-8") if stdin is not None else None,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            check=False,
        )
    except FileNotFoundError as exc:
        raise ConfigurationError(f"Required command '{args[0]}' is not installed or not in PATH.") from exc
    except OSError as exc:
        raise ConfigurationError(f"Could not run '{args[0]}': {exc}") from exc
    return CommandResult(
        args=tuple(args),
        returncode=completed.returncode,
        stdout=(completed.stdout or b"").decode("utf-8", errors="ignore"),
        stderr=(completed.stderr or b"").decode("utf-8", errors="ignore"),
    )


class OcClient:
    """Sole point of contact with the cluster; one ``oc`` invocation per call.

    Nothing here retries. Callers decide whether a failed attempt is worth
    repeating.
    """

    def __init__(self, oc_cmd: str = "oc", *, runner: Optional[Runner] = None) -> None:
        self.oc_cmd = oc_cmd
        self.runner = runner or subprocess_runner

    def run(self, *args: str, stdin: Optional[str] = None) -> CommandResult:
        command = [self.oc_cmd, *args]
        logger.debug("Running %s", " ".join(command))
        return self.runner(command, stdin)

    def apply(self, manifest: str, namespace: Optional[str] = None) -> CommandResult:
        args = ["apply", "-f", "-"]
        if namespace:
            args += ["-n", namespace]
        result = self.run(*args, stdin=manifest)
        if not result.ok:
            raise ApplyError(f"oc apply rejected manifest: {result.detail}", result.stderr)
        return result

    def delete(self, kind: str, name: str, namespace: Optional[str] = None, ignore_missing: bool = False) -> CommandResult:
        args = ["delete", kind, name, *_namespace_args(namespace)]
        if ignore_missing:
            args.append("--ignore-not-found=true")
        result = self.run(*args)
        if result.ok:
            return result
        if result.not_found:
            if ignore_missing:
                return result
            raise NotFoundError(kind, name, namespace)
        raise ApplyError(f"oc delete {kind}/{name} failed: {result.detail}", result.stderr)

    def get(self, kind: str, name: str, namespace: Optional[str] = None) -> Dict[str, Any]:
        result = self.run("get", kind, name, *_namespace_args(namespace), "-o", "json")
        if not result.ok:
            if result.not_found:
                raise NotFoundError(kind, name, namespace)
            raise ApplyError(f"oc get {kind}/{name} failed: {result.detail}", result.stderr)
        try:
            data = json.loads(result.stdout)
        except json.JSONDecodeError as exc:
            raise ApplyError(f"oc get {kind}/{name} returned invalid JSON: {exc}") from exc
        if not isinstance(data, dict):
            raise ApplyError(f"oc get {kind}/{name} returned a non-object document")
        return data

    def exists(self, kind: str, name: str, namespace: Optional[str] = None) -> bool:
        try:
            self.get(kind, name, namespace)
        except NotFoundError:
            return False
        return True

    def grant_role(self, subject: str, role: str, namespace: str, role_kind: str = CLUSTER_ROLE) -> CommandResult:
        result = self.run("adm", "policy", _policy_verb(role_kind, grant=True), role, "-z", subject, "-n", namespace)
        if not result.ok:
            raise ApplyError(f"granting {role_kind} {role} to {subject} failed: {result.detail}", result.stderr)
        return result

    def revoke_role(self, subject: str, role: str, namespace: str, role_kind: str = CLUSTER_ROLE) -> CommandResult:
        result = self.run("adm", "policy", _policy_verb(role_kind, grant=False), role, "-z", subject, "-n", namespace)
        if result.ok:
            return result
        if result.not_found:
            logger.info("%s %s was not bound to %s in %s; nothing to revoke", role_kind, role, subject, namespace)
            return result
        raise ApplyError(f"revoking {role_kind} {role} from {subject} failed: {result.detail}", result.stderr)

    def list_items(self, kind: str, namespace: Optional[str] = None) -> List[Dict[str, Any]]:
        result = self.run("get", kind, *_namespace_args(namespace), "-o", "json")
        if not result.ok:
            raise ApplyError(f"oc get {kind} failed: {result.detail}", result.stderr)
        try:
            data = json.loads(result.stdout)
        except json.JSONDecodeError as exc:
            raise ApplyError(f"oc get {kind} returned invalid JSON: {exc}") from exc
        items = data.get("items") if isinstance(data, dict) else None
        return [item for item in items or [] if isinstance(item, dict)]

    def holds_role(self, subject: str, role: str, namespace: str, role_kind: str = CLUSTER_ROLE) -> bool:
        """Whether the ``subject`` service account of ``namespace`` is already bound to ``role``.

        ClusterRoles are looked up in the cluster role bindings. An SCC grant
        made by ``oc adm policy add-scc-to-user`` is a namespaced RoleBinding
        to ``system:openshift:scc:<name>``.
        """

        if role_kind == SCC:
            bindings = self.list_items("rolebindings", namespace)
            role_ref = f"system:openshift:scc:{role}"
        else:
            bindings = self.list_items("clusterrolebindings")
            role_ref = role
        return any(
            (binding.get("roleRef") or {}).get("name") == role_ref and _binds_service_account(binding, subject, namespace)
            for binding in bindings
        )

    def annotate(self, kind: str, name: str, namespace: Optional[str], key: str, value: Optional[str]) -> CommandResult:
        """Set ``key`` to ``value`` on the object, or remove it when ``value`` is None."""

        assignment = f"{key}-" if value is None else f"{key}={value}"
        result = self.run("annotate", kind, name, *_namespace_args(namespace), "--overwrite", assignment)
        if result.ok:
            return result
        if result.not_found:
            raise NotFoundError(kind, name, namespace)
        raise ApplyError(f"annotating {kind}/{name} failed: {result.detail}", result.stderr)

    def copy_secret(self, name: str, from_namespace: str, to_namespace: str) -> Dict[str, Any]:
        secret = self.get("secret", name, from_namespace)
        rewritten = jsonpatch.apply_patch(secret, _relocation_patch(secret, to_namespace), in_place=False)
        self.apply(yaml.safe_dump(rewritten, sort_keys=False), namespace=to_namespace)
        return rewritten

    def link_secret(self, service_account: str, secret: str, namespace: str) -> CommandResult:
        result = self.run("secrets", "link", service_account, secret, "--for=pull", "-n", namespace)
        if not result.ok:
            raise ApplyError(f"linking secret {secret} to {service_account} failed: {result.detail}", result.stderr)
        return result

    def unlink_secret(self, service_account: str, secret: str, namespace: str) -> CommandResult:
        result = self.run("secrets", "unlink", service_account, secret, "-n", namespace)
        if not result.ok:
            raise ApplyError(f"unlinking secret {secret} from {service_account} failed: {result.detail}", result.stderr)
        return result

    def current_namespace(self) -> Optional[str]:
        try:
            result = self.run("project", "-q")
        except ConfigurationError:
            return None
        if not result.ok:
            return None
        return result.stdout.strip() or None


def _namespace_args(namespace: Optional[str]) -> List[str]:
    return ["-n", namespace] if namespace else []


def _policy_verb(role_kind: str, *, grant: bool) -> str:
    try:
        return _POLICY_VERBS[(role_kind, grant)]
    except KeyError:
        raise ValueError(f"unsupported role kind: {role_kind}") from None


def _binds_service_account(binding: Dict[str, Any], subject: str, namespace: str) -> bool:
    for entry in binding.get("subjects") or []:
        if entry.get("kind") == "ServiceAccount" and entry.get("name") == subject and entry.get("namespace") == namespace:
            return True
    return False


def _relocation_patch(obj: Dict[str, Any], namespace: str) -> List[Dict[str, Any]]:
    metadata = obj.get("metadata")
    if not isinstance(metadata, dict):
        return [{"op": "add", "path": "/metadata", "value": {"namespace": namespace}}]
    ops: List[Dict[str, Any]] = [{"op": "add", "path": "/metadata/namespace", "value": namespace}]
    for field in _SERVER_METADATA:
        if field in metadata:
            ops.append({"op": "remove", "path": f"/metadata/{field}"})
    return ops


__all__ = ["CLUSTER_ROLE", "SCC", "CommandResult", "OcClient", "Runner", "subprocess_runner"]
