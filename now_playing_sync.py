import asyncio
import logging
import signal
from typing import Optional

from hypercorn.asyncio import serve
from hypercorn.config import Config

import server
from config import CACHE_DIR, DEBUG, SERVER
from lockscreen import (
    FileSurface,
    InMemorySurface,
    LifecycleEvent,
    RemoteCommandCenter,
    SyncController,
    handle_lifecycle_event,
    shutdown_daemon_executor,
)
from lockscreen import state as sync_state
from logging_config import get_logger, setup_logging

logger = get_logger(__name__)

_controller: Optional[SyncController] = None
_shutdown_event: Optional[asyncio.Event] = None


def build_surface(kind: str):
    if kind == "memory":
        return InMemorySurface()
    return FileSurface(CACHE_DIR)


async def cleanup() -> None:
    """Clear the surface and stop every timer before exit"""
    logger.info("Cleaning up resources...")

    if _controller is not None and not _controller.disposed:
        try:
            await asyncio.wait_for(
                handle_lifecycle_event(_controller, LifecycleEvent.WILL_TERMINATE), timeout=3.0
            )
        except asyncio.TimeoutError:
            logger.warning("Controller shutdown timeout - forcing cleanup")
        except Exception as e:
            logger.error(f"Failed to shut down controller: {e}")

    # Cancel only tracked background tasks, not library internals
    for task in list(sync_state._background_tasks):
        if task is not asyncio.current_task() and not task.done():
            task.cancel()
            try:
                await asyncio.wait_for(task, timeout=0.5)
            except (asyncio.CancelledError, asyncio.TimeoutError):
                pass

    shutdown_daemon_executor()
    logger.debug("Daemon executor shutdown")


async def run_server(host: str, port: int) -> None:
    """Run the Quart control channel under Hypercorn until shutdown is requested."""
    config = Config()
    config.bind = [f"{host}:{port}"]
    config.use_reloader = False
    config.graceful_timeout = 2
    config.shutdown_timeout = 2
    config.debug = False

    logging.getLogger('hypercorn.error').setLevel(logging.ERROR)
    logging.getLogger('hypercorn.access').setLevel(logging.ERROR)

    logger.info(f"HTTP server starting on {host}:{port}")
    try:
        await serve(server.app, config, shutdown_trigger=_shutdown_event.wait)
    except OSError as e:
        if "address already in use" in str(e).lower():
            logger.error(f"Port binding failed: {e}. Check if another instance is running.")
        else:
            logger.error(f"Server error: {e}")
        raise


async def main(surface_kind: str, host: str, port: int) -> None:
    """Wire the controller into the server and run until interrupted."""
    global _controller, _shutdown_event

    _shutdown_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, _shutdown_event.set)
        loop.add_signal_handler(signal.SIGTERM, _shutdown_event.set)
    except NotImplementedError:
        # Windows event loops: Ctrl+C surfaces as KeyboardInterrupt instead
        pass

    surface = build_surface(surface_kind)
    _controller = SyncController(surface)
    remote = RemoteCommandCenter()
    server.bind(_controller, remote)
    await _controller.start()
    logger.info(f"Now playing controller ready (surface={surface_kind})")

    try:
        await run_server(host, port)
    except asyncio.CancelledError:
        logger.info("Server task cancelled")
    finally:
        await cleanup()


if __name__ == "__main__":
    import argparse
    parser = argparse.ArgumentParser(description='Now playing metadata sync controller')
    parser.add_argument('--surface', choices=['memory', 'file'], default=SERVER.get("surface", "file"),
                        help='Where the now playing state is published')
    parser.add_argument('--host', default=SERVER.get("host", "127.0.0.1"))
    parser.add_argument('--port', type=int, default=SERVER.get("port", 9020))
    args = parser.parse_args()

    setup_logging(
        console_level=DEBUG.get("log_level", "INFO"),
        file_level="DEBUG" if DEBUG.get("log_detailed", False) else "INFO",
        console=DEBUG.get("log_to_console", True),
        log_file=DEBUG.get("log_file", "nowplaying.log"),
        max_bytes=DEBUG["log_rotation"]["max_bytes"],
        backup_count=DEBUG["log_rotation"]["backup_count"],
    )

    try:
        logger.info("Starting now playing sync...")
        asyncio.run(main(args.surface, args.host, args.port))
    except KeyboardInterrupt:
        logger.info("Keyboard interrupt caught in main...")
    except Exception as e:
        logger.error(f"Unexpected error: {e}", exc_info=True)
        raise
    finally:
        logger.info("Now playing sync shutdown complete")
