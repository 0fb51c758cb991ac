"""
Cross-tab logout synchronization.

A logout is published on the `large-event-auth` broadcast channel and, as a
fallback for tabs without broadcast channels, by writing then immediately
removing a localStorage key (which fires a storage event in every other tab).

Delivery is advisory and at most once per listening tab. The server cookie
remains the authoritative credential.
"""

from __future__ import annotations

import json
import time
import uuid
from collections import deque
from typing import Any, Callable

import structlog

from .browser import StorageError, StorageEvent, Tab, UnsupportedFeatureError

log = structlog.get_logger()

CHANNEL_NAME = "large-event-auth"
STORAGE_KEY = "large-event-logout-event"
LOGOUT_MESSAGE_TYPE = "logout"

# Message ids remembered per listener for de-duplication
SEEN_IDS_MAX = 256


def broadcast_logout(
    tab: Tab,
    source: str,
    *,
    channel_name: str = CHANNEL_NAME,
    storage_key: str = STORAGE_KEY,
) -> dict:
    """Tell every other tab that this session logged out. Never raises."""
    message = {
        "type": LOGOUT_MESSAGE_TYPE,
        "timestamp": int(time.time() * 1000),
        "source": source,
        "id": uuid.uuid4().hex,
    }

    if tab.supports_broadcast:
        try:
            channel = tab.open_channel(channel_name)
            try:
                channel.post_message(message)
            finally:
                channel.close()
        except UnsupportedFeatureError:
            log.error("sync.broadcast_failed", tab=tab.id, channel=channel_name)

    try:
        tab.local_storage.set_item(storage_key, json.dumps(message))
        tab.local_storage.remove_item(storage_key)
    except StorageError:
        log.error("sync.storage_failed", tab=tab.id, key=storage_key)

    log.info("sync.logout_broadcast", tab=tab.id, source=source, message_id=message["id"])
    return message


def _parse_storage_value(value: str) -> dict:
    try:
        message = json.loads(value)
    except ValueError:
        message = None
    if isinstance(message, dict):
        return message
    # Older portals write a bare timestamp
    return {"type": LOGOUT_MESSAGE_TYPE, "timestamp": value, "source": None, "id": None}


def listen_for_logout(
    tab: Tab,
    on_logout: Callable[[dict], Any],
    *,
    channel_name: str = CHANNEL_NAME,
    storage_key: str = STORAGE_KEY,
) -> Callable[[], None]:
    """Invoke `on_logout(message)` once per logout published by another tab.

    Returns a cleanup function that stops listening.
    """
    seen: deque = deque(maxlen=SEEN_IDS_MAX)

    def _handle(message: Any, via: str) -> None:
        if not isinstance(message, dict) or message.get("type") != LOGOUT_MESSAGE_TYPE:
            return
        message_id = message.get("id")
        if message_id is not None:
            if message_id in seen:
                return
            seen.append(message_id)
        log.info("sync.logout_received", tab=tab.id, via=via, source=message.get("source"))
        on_logout(message)

    cleanups: list[Callable[[], None]] = []

    if tab.supports_broadcast:
        try:
            channel = tab.open_channel(channel_name)
        except UnsupportedFeatureError:
            log.error("sync.listen_failed", tab=tab.id, channel=channel_name)
        else:
            channel.on_message = lambda message: _handle(message, "broadcast")
            cleanups.append(channel.close)

    def _on_storage(event: StorageEvent) -> None:
        # The removal half of write-then-delete carries no value
        if event.key != storage_key or not event.new_value:
            return
        _handle(_parse_storage_value(event.new_value), "storage")

    tab.add_storage_listener(_on_storage)
    cleanups.append(lambda: tab.remove_storage_listener(_on_storage))

    def cleanup() -> None:
        for fn in cleanups:
            fn()
        cleanups.clear()

    return cleanup
