"""
Remote transport commands coming back from the lockscreen surface
(play / pause / toggle / stop buttons).

The audio engine lives elsewhere: commands are handed to registered handlers
and fanned out to any connected subscriber (the websocket channel).

Dependencies: errors
"""
from __future__ import annotations

import asyncio
import time
from enum import Enum
from typing import Awaitable, Callable, Dict, List, Set

from .errors import InvalidRequest
from logging_config import get_logger

logger = get_logger(__name__)

CommandHandler = Callable[["RemoteCommand"], Awaitable[None]]


class RemoteCommand(str, Enum):
    PLAY = "play"
    PAUSE = "pause"
    TOGGLE = "toggle"
    STOP = "stop"

    @classmethod
    def parse(cls, value: str) -> "RemoteCommand":
        normalized = (value or "").strip().lower()
        if normalized in ("toggle_play_pause", "toggleplaypause", "play_pause"):
            normalized = "toggle"
        try:
            return cls(normalized)
        except ValueError:
            raise InvalidRequest(f"Unknown remote command: {value}") from None


class RemoteCommandCenter:
    """Routes remote commands to handlers and subscriber queues."""

    def __init__(self, queue_size: int = 32):
        self._handlers: Dict[RemoteCommand, List[CommandHandler]] = {}
        self._subscribers: Set[asyncio.Queue] = set()
        self._queue_size = queue_size
        self.counts: Dict[str, int] = {c.value: 0 for c in RemoteCommand}

    def add_target(self, command: RemoteCommand, handler: CommandHandler) -> None:
        self._handlers.setdefault(command, []).append(handler)

    def remove_targets(self, command: RemoteCommand) -> None:
        self._handlers.pop(command, None)

    def subscribe(self) -> asyncio.Queue:
        queue: asyncio.Queue = asyncio.Queue(maxsize=self._queue_size)
        self._subscribers.add(queue)
        return queue

    def unsubscribe(self, queue: asyncio.Queue) -> None:
        self._subscribers.discard(queue)

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    async def dispatch(self, command: RemoteCommand) -> int:
        """
        Deliver a command. Handler failures are logged, not raised.

        Returns:
            Number of handlers and subscribers that received the command
        """
        self.counts[command.value] += 1
        logger.info(f"[REMOTE] {command.value} command received")
        delivered = 0

        for handler in list(self._handlers.get(command, [])):
            try:
                await handler(command)
                delivered += 1
            except Exception as e:
                logger.error(f"[REMOTE] Handler for {command.value} failed: {e}", exc_info=True)

        event = {"action": command.value, "timestamp": time.time()}
        for queue in list(self._subscribers):
            try:
                queue.put_nowait(event)
                delivered += 1
            except asyncio.QueueFull:
                logger.warning(f"[REMOTE] Subscriber queue full, dropping {command.value}")

        if not delivered:
            logger.debug(f"[REMOTE] No receiver for {command.value}")
        return delivered
