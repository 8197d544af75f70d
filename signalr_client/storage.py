"""Keyed storage of pending actions and routing of incoming hub messages to them."""

from __future__ import annotations

import abc
import logging
import threading
from collections.abc import Callable
from typing import Any

from .actions import CallbackAction, EnumerableAction, InvocationAction, UpdatableAction
from .completer import ManualFuture, ManualStream
from .context import InvocationContext
from .protocol import Invocation, MessageType, PossibleInvocation, parse_message

logger = logging.getLogger(__name__)


class ActionStorage:
    """Thread-safe map from keys (targets or invocation ids) to pending actions.

    Clients that share a connection share one storage object.
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._actions: dict[str, UpdatableAction] = {}
        self._index = 0

    def __len__(self) -> int:
        with self._lock:
            return len(self._actions)

    def insert(self, key: str, action: UpdatableAction) -> None:
        """Register an action; an already registered key keeps its action."""
        with self._lock:
            if key in self._actions:
                logger.error("Key %s is already registered as an action", key)
                return
            self._actions[key] = action

    def contains(self, key: str) -> bool:
        with self._lock:
            return key in self._actions

    def update(self, key: str, func: Callable[[UpdatableAction], Any]) -> None:
        """Apply a function to the action registered under the key, if any."""
        with self._lock:
            action = self._actions.get(key)
            if action is None:
                logger.error("Key %s is not found in registered actions", key)
                return
            func(action)

    def remove(self, key: str) -> None:
        """Unregister and dispose the action under the key, if any."""
        with self._lock:
            action = self._actions.pop(key, None)
        if action is not None:
            action.dispose()

    def dispose(self) -> None:
        """Dispose and drop every registered action."""
        logger.info("Clearing storage...")
        with self._lock:
            actions = list(self._actions.values())
            self._actions.clear()
        for action in actions:
            action.dispose()

    def increment(self) -> int:
        """Advance and return the invocation counter, starting at 1."""
        with self._lock:
            self._index += 1
            return self._index

    def create_key(self, target: str) -> str:
        """Make a fresh invocation id for a target."""
        return f"{target}_{self.increment()}"

    def add_callback(self, target: str, callback: Callable[[InvocationContext], Any],
                     client: Any) -> None:
        logger.debug("Adding a callback for key %s", target)
        self.insert(target, CallbackAction(target, callback, client))

    def add_invocation(self, invocation_id: str,
                       factory: Callable[..., Any] | None = None) -> ManualFuture:
        action, future = InvocationAction.create(invocation_id, factory)
        logger.debug("Inserting invocation for key %s", invocation_id)
        self.insert(invocation_id, action)
        return future

    def add_stream(self, invocation_id: str,
                   factory: Callable[..., Any] | None = None) -> ManualStream:
        action, stream = EnumerableAction.create(invocation_id, factory)
        self.insert(invocation_id, action)
        return stream

    def process_message(self, message: str, message_type: MessageType) -> None:
        """Route one raw hub message to the action it belongs to."""
        logger.debug("MESSAGE: %s -> %s", message_type, message)

        def forward(action: UpdatableAction) -> None:
            action.update_with(message, message_type)

        if message_type == MessageType.INVOCATION:
            invocation = Invocation.from_dict(parse_message(message))
            self.update(invocation.target, forward)
        elif message_type == MessageType.STREAM_ITEM:
            possible = PossibleInvocation.from_dict(parse_message(message))
            if possible.invocation_id is not None:
                self.update(possible.invocation_id, forward)
        elif message_type == MessageType.COMPLETION:
            possible = PossibleInvocation.from_dict(parse_message(message))
            logger.info("Completion received %s", message)
            if possible.invocation_id is not None:
                try:
                    self.update(possible.invocation_id, forward)
                finally:
                    self.remove(possible.invocation_id)
        else:
            logger.debug("%s is arrived", message_type.name)


class CallbackHandler(abc.ABC):
    """Handle returned by registering a callback."""

    @abc.abstractmethod
    def unregister(self) -> None:
        """Stop the callback from being called."""


class StorageUnregistrationHandler(CallbackHandler):
    """Unregisters a callback by removing its key from storage."""

    def __init__(self, storage: ActionStorage, key: str) -> None:
        self._storage = storage
        self._key = key

    @property
    def key(self) -> str:
        return self._key

    def unregister(self) -> None:
        self._storage.remove(self._key)