from __future__ import annotations

import logging
from typing import Callable, List, Optional, Tuple, TypeVar

from .errors import AggregateTeardownError, ScannerDeployError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class TeardownReport:
    """Collects (step, error) pairs so every teardown step runs regardless of earlier failures."""

    def __init__(self) -> None:
        self.failures: List[Tuple[str, BaseException]] = []

    def attempt(self, step: str, action: Callable[[], T]) -> Optional[T]:
        try:
            result = action()
        except ScannerDeployError as exc:
            logger.warning("Teardown step '%s' failed: %s", step, exc)
            self.failures.append((step, exc))
            return None
        return result

    def extend(self, failures: List[Tuple[str, BaseException]]) -> None:
        self.failures.extend(failures)

    @property
    def ok(self) -> bool:
        return not self.failures

    def raise_for_failures(self) -> None:
        if self.failures:
            raise AggregateTeardownError(self.failures)


__all__ = ["TeardownReport"]
