"""
HTTP control channel for the now playing controller.

Stands in for the mobile method channel: the player UI posts metadata here,
lifecycle and remote events arrive here, and /ws/remote streams lockscreen
button presses back to the player.
"""
from typing import Any, Dict, Optional

from quart import Quart, jsonify, request, websocket

from config import VERSION
from lockscreen import (
    InvalidRequest,
    LifecycleEvent,
    RemoteCommand,
    RemoteCommandCenter,
    SyncController,
    handle_lifecycle_event,
)
from logging_config import get_logger
from settings import settings

logger = get_logger(__name__)

app = Quart(__name__)

# Wired by the entry point (or tests) through bind()
_controller: Optional[SyncController] = None
_remote: Optional[RemoteCommandCenter] = None

# Mobile clients send camelCase
_KEY_MAPPING = {
    "isPlaying": "is_playing",
    "artworkUrl": "artwork_url",
    "durationMs": "duration_ms",
    "positionMs": "position_ms",
    "forceUpdate": "force_update",
}
_UPDATE_FIELDS = ("title", "artist", "is_playing", "artwork_url", "album", "duration_ms", "position_ms", "force_update")


def bind(controller: SyncController, remote: RemoteCommandCenter) -> None:
    """Attach the controller and remote command center the routes operate on."""
    global _controller, _remote
    _controller = controller
    _remote = remote


def get_controller() -> SyncController:
    if _controller is None:
        raise RuntimeError("Server is not bound to a controller")
    return _controller


def get_remote() -> RemoteCommandCenter:
    if _remote is None:
        raise RuntimeError("Server is not bound to a remote command center")
    return _remote


def _normalize_update(data: Dict[str, Any]) -> Dict[str, Any]:
    """Map camelCase keys to snake_case (preferring snake_case if both are present)."""
    normalized = dict(data)
    for camel, snake in _KEY_MAPPING.items():
        if camel in normalized and snake not in normalized:
            normalized[snake] = normalized[camel]
    kwargs = {key: normalized.get(key) for key in _UPDATE_FIELDS}
    force_update = kwargs["force_update"]
    if force_update is None:
        kwargs["force_update"] = False
    elif not isinstance(force_update, bool):
        raise InvalidRequest("forceUpdate must be a boolean")
    return kwargs


def _error(message: str, status: int, code: str = "INVALID_ARGUMENTS"):
    return jsonify({"error": code, "message": message}), status


@app.errorhandler(InvalidRequest)
async def handle_invalid_request(error: InvalidRequest):
    logger.info(f"Rejected request: {error}")
    return _error(str(error), 400, error.code)


@app.after_request
async def add_cache_headers(response):
    """API responses reflect live state and must never be cached."""
    if request.path.startswith('/api/'):
        response.headers['Cache-Control'] = 'no-cache, no-store, must-revalidate'
        response.headers['Pragma'] = 'no-cache'
        response.headers['Expires'] = '0'
    return response


# --- Routes ---

@app.route("/health")
async def health() -> dict:
    controller = get_controller()
    return {"status": "ok", "version": VERSION, "disposed": controller.disposed}


@app.route("/api/now-playing", methods=['POST'])
async def update_now_playing():
    """Queue a metadata update. Acknowledged immediately; applied after the debounce window."""
    data = await request.get_json(silent=True)
    if not isinstance(data, dict):
        raise InvalidRequest("Request body must be a JSON object")

    accepted = get_controller().request_update(**_normalize_update(data))
    return jsonify({"accepted": accepted})


@app.route("/api/now-playing", methods=['GET'])
async def get_now_playing():
    controller = get_controller()
    payload = await controller.surface.read()
    return jsonify({
        "now_playing": payload.to_dict() if payload else None,
        "status": controller.status(),
    })


@app.route("/api/now-playing/refresh", methods=['POST'])
async def refresh_now_playing():
    return jsonify({"accepted": get_controller().request_refresh()})


@app.route("/api/now-playing", methods=['DELETE'])
async def clear_now_playing():
    await get_controller().clear()
    return jsonify({"cleared": True})


@app.route("/api/lifecycle/<event>", methods=['POST'])
async def lifecycle_event(event: str):
    handled = await handle_lifecycle_event(get_controller(), LifecycleEvent.parse(event))
    return jsonify({"event": event, "handled": handled})


@app.route("/api/remote/<command>", methods=['POST'])
async def remote_command(command: str):
    delivered = await get_remote().dispatch(RemoteCommand.parse(command))
    return jsonify({"command": command, "delivered": delivered})


@app.websocket("/ws/remote")
async def remote_events():
    """Stream lockscreen transport commands to the connected player."""
    remote = get_remote()
    queue = remote.subscribe()
    logger.info(f"[REMOTE] Subscriber connected ({remote.subscriber_count} total)")
    try:
        while True:
            event = await queue.get()
            await websocket.send_json(event)
    finally:
        remote.unsubscribe(queue)
        logger.info("[REMOTE] Subscriber disconnected")


@app.route("/api/settings", methods=['GET'])
async def get_settings():
    return jsonify(settings.get_all())


@app.route("/api/settings/<key>", methods=['POST'])
async def update_setting(key: str):
    data = await request.get_json(silent=True)
    if not isinstance(data, dict) or "value" not in data:
        raise InvalidRequest("Body must be a JSON object with a 'value' field")
    try:
        requires_restart = settings.set(key, data["value"])
    except KeyError:
        return _error(f"Unknown setting: {key}", 404, "UNKNOWN_SETTING")
    settings.save_to_config()
    return jsonify({"key": key, "value": settings.get(key), "requires_restart": requires_restart})
