"""Cooperative cancellation for the long-running stages (gap statistic, mixture fits)."""

import threading
from typing import Optional

from ..exceptions import OperationCancelled


class CancellationToken:
    """
    Thread-safe cancellation flag supplied by the caller.

    Long-running loops call ``raise_if_cancelled`` between iterations; work
    already in progress inside a single iteration is not interrupted.
    """

    def __init__(self):
        self._event = threading.Event()

    def cancel(self):
        """Request cancellation."""
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self, stage: Optional[str] = None):
        if self._event.is_set():
            where = f" during {stage}" if stage else ""
            raise OperationCancelled(f"Operation cancelled{where}", stage=stage)


def check_cancelled(token: Optional[CancellationToken], stage: Optional[str] = None):
    """Raise OperationCancelled if ``token`` is set. A missing token never cancels."""
    if token is not None:
        token.raise_if_cancelled(stage)
