from typing import Awaitable, Callable, Iterable, Optional, TypeVar

from mip_core.logging import get_logger

logger = get_logger("mip.service.side_calls")

T = TypeVar("T")


async def run_best_effort(label: str, call: Callable[[], Awaitable[T]]) -> Optional[T]:
    """
    Await a call whose failure must not affect control flow.
    Failures are logged and turned into None.
    """
    try:
        return await call()
    except Exception:
        logger.warning(f"Best-effort call '{label}' failed", exc_info=True)
        return None


def notify_listeners(listeners: Iterable[Callable], event) -> None:
    """Deliver an event to every listener; a failing listener never blocks the others."""
    for listener in list(listeners):
        try:
            listener(event)
        except Exception:
            logger.warning(f"Listener {listener!r} failed for {event.event.value}", exc_info=True)
