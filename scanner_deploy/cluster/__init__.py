"""Thin ``oc`` wrapper used for every cluster mutation and query."""

from .client import CLUSTER_ROLE, SCC, CommandResult, OcClient, subprocess_runner

__all__ = ["CLUSTER_ROLE", "SCC", "CommandResult", "OcClient", "subprocess_runner"]
