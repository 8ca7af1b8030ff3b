from contextlib import contextmanager
from typing import Set

from mip_core.errors import ActionInProgressError


class ActionGuard:
    """
    Guards state-changing controller actions against re-entry.
    Enforces FAIL-FAST policy: if a key is held, the second caller gets ActionInProgressError immediately.
    The controller runs on a single event loop, so a plain set is enough.
    """
    def __init__(self):
        self._held: Set[str] = set()

    def is_held(self, key: str) -> bool:
        return key in self._held

    @contextmanager
    def hold(self, key: str):
        if key in self._held:
            raise ActionInProgressError(key)

        self._held.add(key)
        try:
            yield
        finally:
            self._held.discard(key)
