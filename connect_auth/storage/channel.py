"""
Cross-context storage event channel.

A publish/subscribe port carrying ``{key, new_value}`` storage mutations
between contexts of the same origin. Events go to every *other* connected
context, never back to the publisher, matching browser ``storage`` events.

Example:
    hub = BroadcastHub()
    tab_a = hub.connect("tab-a")
    tab_b = hub.connect("tab-b")

    tab_b.subscribe(lambda event: print(event.key, event.new_value))
    tab_a.publish("mockUser", '{"uid": "u1"}')  # printed by tab_b only
"""

import itertools
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StorageEvent:
    """One storage mutation. ``new_value`` is None when the key was removed."""
    key: str
    new_value: Optional[str]
    source: str = ""


StorageListener = Callable[[StorageEvent], None]


class StorageChannel(ABC):
    """
    Abstract cross-context channel endpoint.

    Implementations may be backed by anything that can fan out messages
    between contexts (in-process hub, loopback socket, file watch).
    """

    @abstractmethod
    def publish(self, key: str, new_value: Optional[str]) -> None:
        """Broadcast a mutation to all other contexts."""
        pass

    @abstractmethod
    def subscribe(self, listener: StorageListener) -> Callable[[], None]:
        """
        Receive mutations published by other contexts.

        Returns:
            Idempotent unsubscribe callable
        """
        pass

    @abstractmethod
    def close(self) -> None:
        """Disconnect this endpoint and drop its listeners."""
        pass


class BroadcastHub:
    """In-process fan-out between the endpoints of one origin."""

    def __init__(self):
        self._endpoints: Dict[str, "HubChannel"] = {}
        self._ids = itertools.count(1)

    def connect(self, context_id: Optional[str] = None) -> "HubChannel":
        """
        Open an endpoint for one context.

        Args:
            context_id: Unique context name (generated when omitted)

        Raises:
            ValueError: If the id is already connected
        """
        context_id = context_id or f"context-{next(self._ids)}"
        if context_id in self._endpoints:
            raise ValueError(f"Context {context_id} is already connected")
        endpoint = HubChannel(self, context_id)
        self._endpoints[context_id] = endpoint
        return endpoint

    @property
    def context_ids(self) -> List[str]:
        return list(self._endpoints)

    def _disconnect(self, context_id: str) -> None:
        self._endpoints.pop(context_id, None)

    def _broadcast(self, event: StorageEvent) -> None:
        for context_id, endpoint in list(self._endpoints.items()):
            if context_id == event.source:
                continue
            endpoint._dispatch(event)


class HubChannel(StorageChannel):
    """Endpoint of a :class:`BroadcastHub` bound to one context."""

    def __init__(self, hub: BroadcastHub, context_id: str):
        self._hub = hub
        self._context_id = context_id
        self._listeners: List[StorageListener] = []
        self._closed = False

    @property
    def context_id(self) -> str:
        return self._context_id

    def publish(self, key: str, new_value: Optional[str]) -> None:
        if self._closed:
            logger.warning(f"Dropping publish of {key} on closed channel {self._context_id}")
            return
        self._hub._broadcast(StorageEvent(key=key, new_value=new_value, source=self._context_id))

    def subscribe(self, listener: StorageListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def close(self) -> None:
        self._closed = True
        self._listeners.clear()
        self._hub._disconnect(self._context_id)

    def _dispatch(self, event: StorageEvent) -> None:
        # One failing listener must not starve the others
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                logger.exception(
                    f"Storage listener failed in {self._context_id} for key {event.key}"
                )
