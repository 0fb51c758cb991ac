"""
In-process model of the browser primitives the portals rely on.

- Browser: one origin; owns the shared localStorage and the broadcast hub
- Tab: per-tab sessionStorage plus views onto the shared primitives
- StorageEvent: fired in every *other* tab when shared storage changes
- BroadcastChannel: named channel delivering to every other open channel
"""

from __future__ import annotations

import copy
import itertools
from dataclasses import dataclass
from typing import Any, Callable, Iterator, Optional


class StorageError(Exception):
    """Storage is unavailable (disabled, quota exceeded, private mode)."""


class UnsupportedFeatureError(Exception):
    """The tab does not provide the requested primitive."""


@dataclass(frozen=True)
class StorageEvent:
    key: Optional[str]
    old_value: Optional[str]
    new_value: Optional[str]


StorageListener = Callable[[StorageEvent], None]
MessageHandler = Callable[[Any], None]


class StorageArea:
    """String key/value store with the Web Storage method names."""

    def __init__(self, items: Optional[dict[str, str]] = None):
        self._items: dict[str, str] = {} if items is None else items

    def get_item(self, key: str) -> Optional[str]:
        return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        old = self._items.get(key)
        self._items[key] = str(value)
        self._changed(StorageEvent(key, old, self._items[key]))

    def remove_item(self, key: str) -> None:
        if key not in self._items:
            return
        old = self._items.pop(key)
        self._changed(StorageEvent(key, old, None))

    def clear(self) -> None:
        if not self._items:
            return
        self._items.clear()
        self._changed(StorageEvent(None, None, None))

    def keys(self) -> list[str]:
        return list(self._items)

    def __contains__(self, key: object) -> bool:
        return key in self._items

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._items))

    def _changed(self, event: StorageEvent) -> None:
        pass


class LocalStorage(StorageArea):
    """A tab's view of the origin-wide localStorage."""

    def __init__(self, browser: "Browser", tab: "Tab"):
        super().__init__(browser._local_items)
        self._browser = browser
        self._tab = tab

    def get_item(self, key: str) -> Optional[str]:
        self._check()
        return super().get_item(key)

    def set_item(self, key: str, value: str) -> None:
        self._check()
        super().set_item(key, value)

    def remove_item(self, key: str) -> None:
        self._check()
        super().remove_item(key)

    def clear(self) -> None:
        self._check()
        super().clear()

    def _check(self) -> None:
        if not self._tab.storage_enabled:
            raise StorageError("localStorage is not available")

    def _changed(self, event: StorageEvent) -> None:
        self._browser._dispatch_storage_event(self._tab, event)


class BroadcastChannel:
    """A named channel. Messages reach every other open channel with the same name."""

    def __init__(self, hub: "Browser", name: str):
        self.name = name
        self.on_message: Optional[MessageHandler] = None
        self._hub = hub
        self._closed = False
        hub._channels.setdefault(name, []).append(self)

    @property
    def closed(self) -> bool:
        return self._closed

    def post_message(self, message: Any) -> None:
        if self._closed:
            raise UnsupportedFeatureError("BroadcastChannel is closed")
        for channel in list(self._hub._channels.get(self.name, [])):
            if channel is self or channel._closed:
                continue
            # Receivers get a structured clone, never the sender's object
            channel._deliver(copy.deepcopy(message))

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        channels = self._hub._channels.get(self.name, [])
        if self in channels:
            channels.remove(self)

    def _deliver(self, message: Any) -> None:
        if self.on_message is not None:
            self.on_message(message)


class Tab:
    """One browsing context of a Browser."""

    def __init__(
        self,
        browser: "Browser",
        tab_id: int,
        *,
        supports_broadcast: bool = True,
        storage_enabled: bool = True,
    ):
        self.browser = browser
        self.id = tab_id
        self.supports_broadcast = supports_broadcast
        self.storage_enabled = storage_enabled
        self.session_storage = StorageArea()
        self.local_storage = LocalStorage(browser, self)
        self._storage_listeners: list[StorageListener] = []
        self.closed = False

    def open_channel(self, name: str) -> BroadcastChannel:
        if not self.supports_broadcast:
            raise UnsupportedFeatureError("BroadcastChannel is not supported in this tab")
        return BroadcastChannel(self.browser, name)

    def add_storage_listener(self, listener: StorageListener) -> None:
        self._storage_listeners.append(listener)

    def remove_storage_listener(self, listener: StorageListener) -> None:
        if listener in self._storage_listeners:
            self._storage_listeners.remove(listener)

    def close(self) -> None:
        self.closed = True
        self._storage_listeners.clear()
        self.browser._tabs.remove(self)

    def _storage_changed(self, event: StorageEvent) -> None:
        for listener in list(self._storage_listeners):
            listener(event)

    def __repr__(self) -> str:
        return f"Tab(id={self.id})"


class Browser:
    """A single origin: shared localStorage, broadcast hub and its open tabs."""

    def __init__(self) -> None:
        self._local_items: dict[str, str] = {}
        self._channels: dict[str, list[BroadcastChannel]] = {}
        self._tabs: list[Tab] = []
        self._ids = itertools.count(1)

    @property
    def tabs(self) -> list[Tab]:
        return list(self._tabs)

    def open_tab(self, *, supports_broadcast: bool = True, storage_enabled: bool = True) -> Tab:
        tab = Tab(
            self,
            next(self._ids),
            supports_broadcast=supports_broadcast,
            storage_enabled=storage_enabled,
        )
        self._tabs.append(tab)
        return tab

    def _dispatch_storage_event(self, source: Tab, event: StorageEvent) -> None:
        # The writing tab never sees its own storage events
        for tab in list(self._tabs):
            if tab is not source:
                tab._storage_changed(event)
