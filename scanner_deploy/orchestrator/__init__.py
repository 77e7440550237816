"""Lifecycle orchestration and the action dispatcher."""

from .lifecycle import LifecycleOrchestrator, LifecycleState

__all__ = ["LifecycleOrchestrator", "LifecycleState"]
