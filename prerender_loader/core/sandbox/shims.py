"""
Browser API Shims
=================

Stand-ins for browser capabilities a parsed document does not provide.
None of them schedule real work: animation frames never fire, custom
elements are never upgraded, service workers are never registered.
"""

import asyncio
from collections import defaultdict
from typing import Any, Callable, Dict, Generator, List, Optional
from urllib.parse import urlsplit


class InertAwaitable:
    """
    An awaitable that never settles and keeps no reference to callbacks.

    Stands in for results of disabled capabilities (service worker
    registration, ``custom_elements.when_defined``). Application code that
    awaits one of these during prerendering hangs the render; avoid awaiting
    disabled-capability results when ``PRERENDER`` is true.
    """

    __slots__ = ()

    def __await__(self) -> Generator[Any, None, Any]:
        future = asyncio.get_running_loop().create_future()
        return (yield from future.__await__())

    def then(self, *callbacks: Any) -> "InertAwaitable":
        return InertAwaitable()

    def catch(self, *callbacks: Any) -> "InertAwaitable":
        return InertAwaitable()

    def __repr__(self) -> str:
        return "<InertAwaitable>"


class AnimationFrames:
    """requestAnimationFrame replacement: hands out ids, never runs callbacks."""

    def __init__(self) -> None:
        self._counter = 0

    def request(self, callback: Optional[Callable[..., Any]] = None) -> int:
        self._counter += 1
        return self._counter

    def cancel(self, handle: int) -> None:
        pass


class CustomElementRegistry:
    """Never upgrades anything, so only the light DOM of custom elements is rendered."""

    def define(self, name: str, constructor: Any = None, options: Any = None) -> None:
        pass

    def get(self, name: str) -> None:
        return None

    def upgrade(self, root: Any) -> None:
        pass

    def when_defined(self, name: str) -> InertAwaitable:
        return InertAwaitable()


class EventTarget:
    """Minimal event target with a working listener registry."""

    def __init__(self) -> None:
        self._listeners: Dict[str, List[Callable[..., Any]]] = defaultdict(list)

    def add_event_listener(self, event_type: str, listener: Callable[..., Any]) -> None:
        if listener not in self._listeners[event_type]:
            self._listeners[event_type].append(listener)

    def remove_event_listener(self, event_type: str, listener: Callable[..., Any]) -> None:
        if listener in self._listeners[event_type]:
            self._listeners[event_type].remove(listener)

    def dispatch_event(self, event_type: str, event: Any = None) -> bool:
        for listener in list(self._listeners[event_type]):
            listener(event)
        return True


class _Port(EventTarget):
    def post_message(self, message: Any, transfer: Any = None) -> None:
        pass


class MessagePort:
    """MessageChannel-style pair of ports; messages go nowhere."""

    def __init__(self) -> None:
        self.port1 = _Port()
        self.port2 = _Port()


class MediaQueryList:
    """Result of ``match_media``: never matches, listeners are ignored."""

    def __init__(self, media: str) -> None:
        self.media = media
        self.matches = False

    def add_listener(self, listener: Callable[..., Any]) -> None:
        pass

    def remove_listener(self, listener: Callable[..., Any]) -> None:
        pass

    def add_event_listener(self, event_type: str, listener: Callable[..., Any]) -> None:
        pass

    def remove_event_listener(self, event_type: str, listener: Callable[..., Any]) -> None:
        pass


def match_media(query: str) -> MediaQueryList:
    return MediaQueryList(query)


class ServiceWorkerContainer:
    def register(self, script_url: str, options: Any = None) -> InertAwaitable:
        return InertAwaitable()


class Navigator:
    user_agent = "Mozilla/5.0 (prerender) prerender-loader"
    language = "en-US"

    def __init__(self) -> None:
        self.service_worker = ServiceWorkerContainer()


class Location:
    """Read-only view of the document URL."""

    def __init__(self, url: str) -> None:
        parts = urlsplit(url)
        self.href = url
        self.protocol = f"{parts.scheme}:"
        self.hostname = parts.hostname or ""
        self.port = str(parts.port) if parts.port else ""
        self.host = f"{self.hostname}:{self.port}" if self.port else self.hostname
        self.pathname = parts.path or "/"
        self.search = f"?{parts.query}" if parts.query else ""
        self.hash = f"#{parts.fragment}" if parts.fragment else ""
        self.origin = f"{self.protocol}//{self.host}"

    def __str__(self) -> str:
        return self.href
