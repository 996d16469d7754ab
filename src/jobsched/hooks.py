"""
Hook registry mapping job hook names to handlers.

When the host's job runner picks up a due job it dispatches the job's hook
with the job's arguments to every handler registered for that hook. The
migration scheduler registers its batch runner here.

Example:
    >>> hooks = HookRegistry()
    >>> hooks.add("orders/send_receipt", send_receipt)
    >>> await hooks.dispatch("orders/send_receipt", 1234)
    1
"""

from __future__ import annotations

import inspect
import logging
from collections.abc import Awaitable, Callable
from typing import Any

from jobsched.observability import ATTR_JOB_COUNT, ATTR_JOB_HOOK, Tracer, create_tracer

logger = logging.getLogger(__name__)

HookHandler = Callable[..., Awaitable[Any] | Any]


class HookRegistry:
    """
    Registry of handlers per hook name.

    Handlers may be sync or async callables. A handler is registered at most
    once per hook; they run in registration order.
    """

    def __init__(self, tracer: Tracer | None = None, enable_tracing: bool = True) -> None:
        self._tracer = tracer or create_tracer(__name__, enable_tracing)
        self._enable_tracing = self._tracer.enabled
        self._handlers: dict[str, list[HookHandler]] = {}

    def add(self, hook: str, handler: HookHandler) -> bool:
        """
        Register a handler for a hook.

        Args:
            hook: Hook name
            handler: Sync or async callable receiving the job arguments

        Returns:
            False if the handler was already registered for the hook
        """
        handlers = self._handlers.setdefault(hook, [])
        if handler in handlers:
            return False
        handlers.append(handler)
        name = getattr(handler, "__qualname__", handler)
        logger.debug("Registered handler %s for %s", name, hook)
        return True

    def remove(self, hook: str, handler: HookHandler) -> bool:
        """
        Unregister a handler.

        Returns:
            True if the handler was registered
        """
        handlers = self._handlers.get(hook, [])
        if handler not in handlers:
            return False
        handlers.remove(handler)
        if not handlers:
            del self._handlers[hook]
        return True

    def has(self, hook: str, handler: HookHandler | None = None) -> bool:
        """
        Check whether a hook has handlers (or one specific handler).

        Args:
            hook: Hook name
            handler: Only check for this handler
        """
        handlers = self._handlers.get(hook, [])
        if handler is None:
            return bool(handlers)
        return handler in handlers

    async def dispatch(self, hook: str, *args: Any) -> int:
        """
        Run every handler registered for a hook.

        Exceptions raised by a handler propagate and stop the dispatch.

        Args:
            hook: Hook name
            *args: Job arguments

        Returns:
            Number of handlers run
        """
        handlers = list(self._handlers.get(hook, []))
        with self._tracer.span(
            "jobsched.hooks.dispatch",
            {ATTR_JOB_HOOK: hook, ATTR_JOB_COUNT: len(handlers)},
        ):
            for handler in handlers:
                result = handler(*args)
                if inspect.isawaitable(result):
                    await result
            if not handlers:
                logger.debug("No handlers registered for %s", hook)
            return len(handlers)

    def clear(self) -> None:
        """Remove every handler."""
        self._handlers.clear()


__all__ = ["HookRegistry", "HookHandler"]
