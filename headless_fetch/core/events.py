#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Event Bus Module

Observer interface through which the fetch client reports outcomes.
Listeners are called synchronously, in registration order, at the moment
the event is emitted. Coroutine listeners are scheduled as tasks on the
running loop.
"""

import asyncio
import inspect
import logging
from collections import defaultdict
from typing import Any, Callable, Dict, List, Optional

logger = logging.getLogger('events')


class Events:
    """Names of the events emitted by the fetch client."""
    QUEUE_ERROR = 'queueerror'
    FETCH_HEADERS = 'fetchheaders'
    FETCH_COMPLETE = 'fetchcomplete'
    FETCH_TIMEOUT = 'fetchtimeout'
    FETCH_CLIENT_ERROR = 'fetchclienterror'

    ALL = (QUEUE_ERROR, FETCH_HEADERS, FETCH_COMPLETE, FETCH_TIMEOUT, FETCH_CLIENT_ERROR)


class EventEmitter:
    """
    Fire-and-forget event dispatcher.

    A listener that raises is logged and skipped; the remaining listeners
    still receive the event and the emitter never raises back into the
    code that emitted it.
    """

    def __init__(self):
        self._listeners: Dict[str, List[Callable[..., Any]]] = defaultdict(list)
        self._pending: set = set()

    def on(self, event: str, listener: Optional[Callable[..., Any]] = None) -> Callable[..., Any]:
        """
        Register a listener for an event.

        Without a listener this returns a decorator registering the
        decorated function.

        Args:
            event: Event name
            listener: Callable invoked with the event payload

        Returns:
            The listener
        """
        if listener is None:
            return lambda func: self.on(event, func)
        self._listeners[event].append(listener)
        return listener

    def once(self, event: str, listener: Callable[..., Any]) -> Callable[..., Any]:
        """Register a listener that is removed after its first call."""
        def wrapper(*args):
            self.off(event, wrapper)
            return listener(*args)

        wrapper.listener = listener
        self._listeners[event].append(wrapper)
        return listener

    def off(self, event: str, listener: Callable[..., Any]) -> None:
        listeners = self._listeners.get(event, [])
        for registered in list(listeners):
            if registered is listener or getattr(registered, 'listener', None) is listener:
                listeners.remove(registered)
                return

    def listeners(self, event: str) -> List[Callable[..., Any]]:
        return list(self._listeners.get(event, []))

    def emit(self, event: str, *args: Any) -> bool:
        """
        Deliver an event to its listeners.
        
        Args:
            event: Event name
            *args: Event payload
            
        Returns:
            True if the event had listeners
        """
        listeners = self.listeners(event)
        logger.debug(f"Emitting {event} to {len(listeners)} listener(s)")

        for listener in listeners:
            try:
                result = listener(*args)
            except Exception:
                logger.exception(f"Listener {listener!r} for {event} raised")
                continue

            if inspect.isawaitable(result):
                task = asyncio.ensure_future(result)
                self._pending.add(task)
                task.add_done_callback(self._on_listener_done)

        return bool(listeners)

    def _on_listener_done(self, task: asyncio.Future) -> None:
        self._pending.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error(f"Async listener failed: {task.exception()!r}")

    async def drain(self) -> None:
        """Wait until every scheduled coroutine listener has finished."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
