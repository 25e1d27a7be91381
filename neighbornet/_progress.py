"""
_progress.py
============
Cooperative cancellation and progress reporting.

The agglomeration loop and the split-weight solver check a Progress object
once per iteration.  Cancellation is requested from any thread with
``cancel()``; the running computation notices at its next check and raises
CanceledError.  Progress reports are advisory and only forwarded to an
optional callback.
"""

import threading
from typing import Callable, Optional

from neighbornet._errors import CanceledError


ProgressCallback = Callable[[str, str, int, int], None]


class Progress:
    """
    Cancellation flag plus progress sink shared between a computation and
    its caller.

    Parameters
    ----------
    callback : callable or None
        Called as ``callback(task, subtask, current, maximum)`` whenever the
        computation reports progress.  Exceptions raised by the callback
        propagate into the computation.

    Examples
    --------
    >>> progress = Progress()
    >>> progress.set_tasks("Neighbor-Net", "agglomeration")
    >>> progress.cancel()
    >>> progress.check_for_cancel()
    Traceback (most recent call last):
    ...
    neighbornet._errors.CanceledError: canceled during agglomeration
    """

    def __init__(self, callback: Optional[ProgressCallback] = None) -> None:
        self._callback = callback
        self._canceled = threading.Event()
        self.task = ""
        self.subtask = ""
        self.maximum = 0
        self.current = 0

    # ------------------------------------------------------------------ #
    # Cancellation                                                         #
    # ------------------------------------------------------------------ #

    def cancel(self) -> None:
        """Request cancellation.  Safe to call from another thread."""
        self._canceled.set()

    @property
    def canceled(self) -> bool:
        return self._canceled.is_set()

    def check_for_cancel(self) -> None:
        """Raise CanceledError if cancellation has been requested."""
        if self._canceled.is_set():
            where = self.subtask or self.task or "computation"
            raise CanceledError(f"canceled during {where}")

    # ------------------------------------------------------------------ #
    # Progress reporting                                                   #
    # ------------------------------------------------------------------ #

    def set_tasks(self, task: str, subtask: str) -> None:
        self.task = task
        self.subtask = subtask
        self.current = 0
        self._report()

    def set_subtask(self, subtask: str) -> None:
        self.subtask = subtask
        self._report()

    def set_maximum(self, maximum: int) -> None:
        self.maximum = max(0, int(maximum))
        self.current = 0

    def set_progress(self, current: int) -> None:
        """Record progress and check for cancellation."""
        self.current = int(current)
        self._report()
        self.check_for_cancel()

    def _report(self) -> None:
        if self._callback is not None:
            self._callback(self.task, self.subtask, self.current, self.maximum)


def ensure_progress(progress: Optional[Progress]) -> Progress:
    """Return *progress*, or a fresh silent Progress when it is None."""
    return progress if progress is not None else Progress()
