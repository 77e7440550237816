"""Submission and monitoring of the scanner Job."""

from .deployer import JobDeployer, ScanJobHandle
from .monitor import JobMonitor, MonitorResult, TerminalStatus, job_status

__all__ = ["JobDeployer", "JobMonitor", "MonitorResult", "ScanJobHandle", "TerminalStatus", "job_status"]
