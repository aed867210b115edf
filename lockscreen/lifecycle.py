"""
App lifecycle hooks: what the controller does when the host app moves
between foreground, background and termination.

Dependencies: controller, errors
"""
from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING

from .errors import InvalidRequest
from logging_config import get_logger

if TYPE_CHECKING:
    from .controller import SyncController

logger = get_logger(__name__)


class LifecycleEvent(str, Enum):
    DID_BECOME_ACTIVE = "did_become_active"
    WILL_ENTER_FOREGROUND = "will_enter_foreground"
    DID_ENTER_BACKGROUND = "did_enter_background"
    WILL_TERMINATE = "will_terminate"

    @classmethod
    def parse(cls, value: str) -> "LifecycleEvent":
        try:
            return cls(value.strip().lower().replace("-", "_"))
        except ValueError:
            raise InvalidRequest(f"Unknown lifecycle event: {value}") from None


async def handle_lifecycle_event(controller: "SyncController", event: LifecycleEvent) -> bool:
    """
    Apply a lifecycle event to the controller.

    Returns:
        True when the event caused the controller to act
    """
    logger.info(f"[LIFECYCLE] {event.value}")

    if event in (LifecycleEvent.DID_BECOME_ACTIVE, LifecycleEvent.WILL_ENTER_FOREGROUND):
        # The OS or another player may have redrawn the lockscreen while we were away
        return controller.request_refresh()

    if event == LifecycleEvent.DID_ENTER_BACKGROUND:
        # Audio keeps playing in the background, the surface stays as is
        return False

    if event == LifecycleEvent.WILL_TERMINATE:
        await controller.clear()
        await controller.dispose()
        return True

    return False
