"""Lifecycle of the ephemeral scanner deployment.

The orchestrator keeps no state of its own between invocations. Anything it
needs to know about an earlier run is read back from the cluster, which is
what makes repeated and interrupted runs safe:

* forward steps (grant, provision, deploy) rely on declarative ``oc apply``
  and idempotent policy bindings, so re-running them is harmless;
* a forward failure stops the sequence and leaves what was created in place
  until ``cleanup`` is run explicitly;
* ``cleanup`` checks before deleting, treats absent resources as done and
  runs every step, reporting all failures together at the end.
"""

from __future__ import annotations

import enum
import logging
import random
import time
from typing import Callable, Optional, TypeVar

from scanner_deploy.artifacts.channel import ArtifactChannelProvisioner
from scanner_deploy.cluster.client import OcClient
from scanner_deploy.common.config import DeploymentConfiguration
from scanner_deploy.common.console import print_header, print_step
from scanner_deploy.common.errors import (
    ApplyError,
    DeployError,
    NotFoundError,
    ScannerDeployError,
    StepFailedError,
    WorkloadTimeoutError,
)
from scanner_deploy.common.teardown import TeardownReport
from scanner_deploy.image.builder import ImageBuilder
from scanner_deploy.jobs.deployer import JobDeployer, ScanJobHandle
from scanner_deploy.jobs.monitor import JobMonitor, MonitorResult, job_status
from scanner_deploy.permissions.grantor import PermissionGrantor

logger = logging.getLogger(__name__)

T = TypeVar("T")

_RETRYABLE = (ApplyError, DeployError)


class LifecycleState(str, enum.Enum):
    UNPROVISIONED = "unprovisioned"
    PERMISSIONS_GRANTED = "permissions-granted"
    WORKLOAD_SUBMITTED = "workload-submitted"
    WORKLOAD_COMPLETE = "workload-complete"
    TORN_DOWN = "torn-down"


class LifecycleOrchestrator:
    def __init__(
        self,
        config: DeploymentConfiguration,
        client: Optional[OcClient] = None,
        *,
        builder: Optional[ImageBuilder] = None,
        grantor: Optional[PermissionGrantor] = None,
        channel: Optional[ArtifactChannelProvisioner] = None,
        deployer: Optional[JobDeployer] = None,
        job_monitor: Optional[JobMonitor] = None,
        sleep: Callable[[float], None] = time.sleep,
        seed: Optional[int] = None,
    ) -> None:
        self.config = config
        self.client = client or OcClient(config.oc_cmd)
        self.builder = builder or ImageBuilder(config.image_reference, config.context_dir, binary_name=config.app_name)
        self.grantor = grantor or PermissionGrantor(self.client)
        self.channel = channel or ArtifactChannelProvisioner(self.client)
        self.deployer = deployer or JobDeployer(self.client)
        self.job_monitor = job_monitor or JobMonitor(self.client, config.poll_interval)
        self.sleep = sleep
        self._rng = random.Random(seed) if seed is not None else random.Random()

    def build(self) -> None:
        print_header("Step 1: Building Scanner Image")
        print_step(f"Building image: {self.config.image_reference}")
        self._forward("build", self.builder.build)
        print_step("Image build complete.")

    def push(self) -> None:
        print_header("Step 2: Pushing Scanner Image")
        print_step(f"Pushing image: {self.config.image_reference}")
        self._forward("push", self.builder.push)
        print_step("Image push complete.")

    def deploy(self) -> ScanJobHandle:
        print_header("Step 3: Deploying Scanner Job")
        namespace = self._forward("deploy", self.config.require_namespace, substep="resolve namespace")
        print_step(f"Deploying to namespace: {namespace}")

        print_step("Creating necessary RBAC permissions...")
        self._forward("deploy", lambda: self.grantor.grant(namespace), substep="grant permissions", retry=True)

        print_step("Copying global pull secret to allow image pulls...")
        self._forward("deploy", lambda: self.channel.provision(namespace), substep="provision pull secret", retry=True)

        print_step(f"Applying Job manifest from template: {self.config.template_path}")
        handle = self._forward("deploy", lambda: self.deployer.deploy(self.config), substep="apply job", retry=True)

        print_step(f"Scanner Job '{handle.name}' deployed.")
        print_step(f"To monitor, run: {handle.logs_command}")
        return handle

    def full_deploy(self) -> ScanJobHandle:
        self.build()
        self.push()
        return self.deploy()

    def wait(self, deadline: Optional[float] = None) -> MonitorResult:
        """Block until the Job is terminal.

        A :class:`WorkloadTimeoutError` propagates untouched and nothing is
        torn down; a slow scan may still be making progress.
        """

        print_header("Step 4: Waiting for Scanner Job")
        namespace = self._forward("wait", self.config.require_namespace, substep="resolve namespace")
        handle = ScanJobHandle(self.config.workload_name, namespace, self.config.image_reference)
        print_step(f"Waiting for job {handle.name} to complete... (this may take a long time)")
        try:
            result = self.job_monitor.monitor(handle, self.config.timeout, deadline)
        except WorkloadTimeoutError:
            raise
        except ScannerDeployError as exc:
            raise StepFailedError("wait", exc) from exc
        print_step(f"Job {handle.name} finished: {result.status.value} after {result.polls} poll(s).")
        return result

    def cleanup(self) -> LifecycleState:
        print_header("Step 5: Cleaning Up Resources")
        namespace = self.config.require_namespace()
        report = TeardownReport()

        print_step(f"Deleting Job '{self.config.workload_name}' in namespace '{namespace}'...")
        report.attempt(f"delete Job {self.config.workload_name}", lambda: self._delete_job(namespace))

        print_step("Removing RBAC permissions...")
        report.extend(self.grantor.release(namespace))

        print_step("Deleting pull secret link...")
        report.attempt("unlink pull secret", lambda: self.channel.teardown(namespace))

        if not report.ok:
            print_step(f"Cleanup finished with {len(report.failures)} failed step(s):")
            for step, error in report.failures:
                print_step(f"  {step}: {error}")
            report.raise_for_failures()
        print_step("Cleanup complete.")
        return LifecycleState.TORN_DOWN

    def infer_state(self) -> LifecycleState:
        namespace = self.config.require_namespace()
        try:
            return self._query_state(namespace)
        except ScannerDeployError as exc:
            raise StepFailedError("status", exc) from exc

    def _query_state(self, namespace: str) -> LifecycleState:
        try:
            job = self.client.get("job", self.config.workload_name, namespace)
        except NotFoundError:
            job = None
        if job is not None:
            if job_status(job) is not None:
                return LifecycleState.WORKLOAD_COMPLETE
            return LifecycleState.WORKLOAD_SUBMITTED
        if self.client.exists("clusterrole", self.grantor.role_name) or self.channel.is_linked(namespace):
            return LifecycleState.PERMISSIONS_GRANTED
        return LifecycleState.UNPROVISIONED

    def _delete_job(self, namespace: str) -> bool:
        name = self.config.workload_name
        if not self.client.exists("job", name, namespace):
            logger.info("Job %s not present in %s; nothing to delete", name, namespace)
            return False
        self.client.delete("job", name, namespace, ignore_missing=True)
        return True

    def _forward(
        self,
        step: str,
        action: Callable[[], T],
        *,
        substep: Optional[str] = None,
        retry: bool = False,
    ) -> T:
        attempts = self.config.retries + 1 if retry else 1
        attempt = 0
        while True:
            try:
                return action()
            except _RETRYABLE as exc:
                if attempt + 1 >= attempts:
                    raise StepFailedError(step, exc, substep) from exc
                delay = self._backoff_seconds(attempt)
                logger.warning("%s failed (attempt %d/%d), retrying in %.1fs: %s", substep or step, attempt + 1, attempts, delay, exc)
                self.sleep(delay)
                attempt += 1
            except ScannerDeployError as exc:
                raise StepFailedError(step, exc, substep) from exc

    def _backoff_seconds(self, attempt: int) -> float:
        base = 0.5 * (2 ** attempt)
        jitter = self._rng.uniform(0, base)
        return base + jitter


__all__ = ["LifecycleOrchestrator", "LifecycleState"]
