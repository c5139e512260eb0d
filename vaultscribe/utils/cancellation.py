from __future__ import annotations

import threading

from vaultscribe.contracts.errors import OperationCancelledError


class CancellationToken:
    """
    Cooperative cancellation signal shared between a caller and one pipeline run.
    Setting it stops work at the next check and terminates running subprocesses.
    """

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def wait(self, timeout: float) -> bool:
        return self._event.wait(timeout)

    def raise_if_cancelled(self, what: str = "operation") -> None:
        if self._event.is_set():
            raise OperationCancelledError(f"{what} cancelled")


def raise_if_cancelled(cancel: CancellationToken | None, what: str = "operation") -> None:
    if cancel is not None:
        cancel.raise_if_cancelled(what)


__all__ = ["CancellationToken", "raise_if_cancelled"]
