import asyncio

import pytest

from lockscreen import (
    InvalidRequest,
    LifecycleEvent,
    RemoteCommand,
    RemoteCommandCenter,
    handle_lifecycle_event,
)


def test_lifecycle_event_parsing():
    assert LifecycleEvent.parse("did-become-active") is LifecycleEvent.DID_BECOME_ACTIVE
    assert LifecycleEvent.parse(" WILL_TERMINATE ") is LifecycleEvent.WILL_TERMINATE
    with pytest.raises(InvalidRequest):
        LifecycleEvent.parse("did_explode")


async def test_foreground_refreshes_surface(controller, surface):
    assert not await handle_lifecycle_event(controller, LifecycleEvent.DID_BECOME_ACTIVE)

    controller.request_update("Song", "Band", True)
    await asyncio.sleep(0.1)

    assert await handle_lifecycle_event(controller, LifecycleEvent.WILL_ENTER_FOREGROUND)
    await asyncio.sleep(0.1)
    assert surface.write_count == 2


async def test_background_leaves_surface_alone(controller, surface):
    controller.request_update("Song", "Band", True)
    await asyncio.sleep(0.1)

    assert not await handle_lifecycle_event(controller, LifecycleEvent.DID_ENTER_BACKGROUND)
    assert surface.payload.title == "Song"


async def test_terminate_clears_and_disposes(controller, surface):
    controller.request_update("Song", "Band", True)
    await asyncio.sleep(0.1)

    assert await handle_lifecycle_event(controller, LifecycleEvent.WILL_TERMINATE)
    assert surface.payload is None
    assert controller.disposed


def test_remote_command_parsing():
    assert RemoteCommand.parse("PLAY") is RemoteCommand.PLAY
    assert RemoteCommand.parse("toggle_play_pause") is RemoteCommand.TOGGLE
    with pytest.raises(InvalidRequest):
        RemoteCommand.parse("rewind")


async def test_dispatch_reaches_handlers_and_subscribers():
    center = RemoteCommandCenter()
    received = []

    async def on_pause(command):
        received.append(command)

    center.add_target(RemoteCommand.PAUSE, on_pause)
    queue = center.subscribe()

    assert await center.dispatch(RemoteCommand.PAUSE) == 2
    assert received == [RemoteCommand.PAUSE]
    assert queue.get_nowait()["action"] == "pause"
    assert center.counts["pause"] == 1

    center.remove_targets(RemoteCommand.PAUSE)
    center.unsubscribe(queue)
    assert await center.dispatch(RemoteCommand.PAUSE) == 0


async def test_failing_handler_does_not_break_dispatch():
    center = RemoteCommandCenter()
    calls = []

    async def broken(command):
        raise RuntimeError("engine gone")

    async def working(command):
        calls.append(command)

    center.add_target(RemoteCommand.STOP, broken)
    center.add_target(RemoteCommand.STOP, working)

    assert await center.dispatch(RemoteCommand.STOP) == 1
    assert calls == [RemoteCommand.STOP]


async def test_full_subscriber_queue_drops_command():
    center = RemoteCommandCenter(queue_size=1)
    queue = center.subscribe()

    await center.dispatch(RemoteCommand.PLAY)
    assert await center.dispatch(RemoteCommand.PLAY) == 0
    assert queue.qsize() == 1
