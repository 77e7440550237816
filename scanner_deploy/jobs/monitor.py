from __future__ import annotations

import enum
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

from scanner_deploy.cluster.client import OcClient
from scanner_deploy.common.errors import WorkloadTimeoutError

from .deployer import ScanJobHandle

logger = logging.getLogger(__name__)


class TerminalStatus(str, enum.Enum):
    COMPLETE = "complete"
    FAILED = "failed"


@dataclass(frozen=True)
class MonitorResult:
    handle: ScanJobHandle
    status: TerminalStatus
    polls: int
    elapsed: float

    @property
    def succeeded(self) -> bool:
        return self.status is TerminalStatus.COMPLETE


def job_status(job: Dict[str, Any]) -> Optional[TerminalStatus]:
    """Classify a Job object; ``None`` means it is still in progress."""

    status = job.get("status") or {}
    for condition in status.get("conditions") or []:
        if not isinstance(condition, dict) or str(condition.get("status")) != "True":
            continue
        if condition.get("type") == "Complete":
            return TerminalStatus.COMPLETE
        if condition.get("type") == "Failed":
            return TerminalStatus.FAILED
    succeeded = status.get("succeeded")
    if isinstance(succeeded, int) and succeeded >= 1:
        return TerminalStatus.COMPLETE
    return None


class JobMonitor:
    def __init__(
        self,
        client: OcClient,
        poll_interval: float = 10.0,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.client = client
        self.poll_interval = poll_interval
        self.clock = clock
        self.sleep = sleep

    def monitor(self, handle: ScanJobHandle, timeout: float, deadline: Optional[float] = None) -> MonitorResult:
        """Poll the Job until it is terminal.

        ``deadline`` is an absolute value on this monitor's clock; the earlier
        of it and ``now + timeout`` bounds the wait. Raises
        :class:`WorkloadTimeoutError` once that bound passes.
        """

        start = self.clock()
        limit = start + timeout
        if deadline is not None:
            limit = min(limit, deadline)
        polls = 0
        while True:
            job = self.client.get("job", handle.name, handle.namespace)
            polls += 1
            status = job_status(job)
            now = self.clock()
            if status is not None:
                logger.info("Job %s/%s finished with status %s", handle.namespace, handle.name, status.value)
                return MonitorResult(handle, status, polls, now - start)
            remaining = limit - now
            if remaining <= 0:
                raise WorkloadTimeoutError(handle.name, handle.namespace, now - start)
            logger.debug("Job %s/%s still running; next poll in %.1fs", handle.namespace, handle.name, min(self.poll_interval, remaining))
            self.sleep(min(self.poll_interval, remaining))


__all__ = ["JobMonitor", "MonitorResult", "TerminalStatus", "job_status"]
