"""Lifecycle hooks for paranoid entity types.

Handlers are kept as ordered lists per entity type and event. They run in
registration order, base-class handlers first, and the first handler that
returns ``False`` or raises aborts the transition.
"""

import logging
from enum import Enum
from typing import Any, Callable, Dict, List, Type, Union

from .exceptions import HookAbortedError

logger = logging.getLogger(__name__)

# A handler is a callable taking the record, or the name of a method on it.
HookHandler = Union[Callable[[Any], Any], str]


class LifecycleEvent(str, Enum):
    """Lifecycle transitions that accept hooks."""

    BEFORE_DESTROY = "before_destroy"
    AFTER_DESTROY = "after_destroy"
    BEFORE_RECOVER = "before_recover"
    AFTER_RECOVER = "after_recover"


class HookRegistry:
    """Registry of lifecycle handlers keyed by entity type.

    Example:
        hooks = HookRegistry()
        hooks.register(Post, LifecycleEvent.BEFORE_RECOVER, check_author)

        @hooks.after_recover(Post)
        def reindex(post):
            ...
    """

    def __init__(self) -> None:
        self._handlers: Dict[Type[Any], Dict[LifecycleEvent, List[HookHandler]]] = {}

    def register(
        self,
        entity_class: Type[Any],
        event: Union[LifecycleEvent, str],
        handler: HookHandler,
    ) -> None:
        """Append a handler for ``event`` on ``entity_class``."""
        event = LifecycleEvent(event)
        by_event = self._handlers.setdefault(entity_class, {})
        by_event.setdefault(event, []).append(handler)

    def handlers_for(
        self, entity_class: Type[Any], event: Union[LifecycleEvent, str]
    ) -> List[HookHandler]:
        """Handlers for a class and its bases, base classes first."""
        event = LifecycleEvent(event)
        handlers: List[HookHandler] = []
        for klass in reversed(entity_class.__mro__):
            handlers.extend(self._handlers.get(klass, {}).get(event, []))
        return handlers

    def run(self, event: Union[LifecycleEvent, str], record: Any) -> None:
        """
        Invoke every handler for ``event`` on ``record``.

        Raises:
            HookAbortedError: A handler returned False or raised
        """
        event = LifecycleEvent(event)
        entity_type = record.__class__.__name__

        for handler in self.handlers_for(record.__class__, event):
            if isinstance(handler, str):
                name = handler
            else:
                name = getattr(handler, "__name__", repr(handler))
            try:
                if isinstance(handler, str):
                    result = getattr(record, handler)()
                else:
                    result = handler(record)
            except HookAbortedError:
                raise
            except Exception as e:
                raise HookAbortedError(entity_type, event.value, f"{name}: {e}") from e

            if result is False:
                raise HookAbortedError(entity_type, event.value, f"{name} returned False")

            logger.debug(f"Ran {event.value} hook {name} on {entity_type}")

    def clear(self, entity_class: Union[Type[Any], None] = None) -> None:
        """Drop handlers for one class, or all of them."""
        if entity_class is None:
            self._handlers.clear()
        else:
            self._handlers.pop(entity_class, None)

    def _decorator(
        self, entity_class: Type[Any], event: LifecycleEvent
    ) -> Callable[[Callable[[Any], Any]], Callable[[Any], Any]]:
        def decorator(fn: Callable[[Any], Any]) -> Callable[[Any], Any]:
            self.register(entity_class, event, fn)
            return fn

        return decorator

    def before_destroy(self, entity_class: Type[Any]) -> Callable[..., Any]:
        return self._decorator(entity_class, LifecycleEvent.BEFORE_DESTROY)

    def after_destroy(self, entity_class: Type[Any]) -> Callable[..., Any]:
        return self._decorator(entity_class, LifecycleEvent.AFTER_DESTROY)

    def before_recover(self, entity_class: Type[Any]) -> Callable[..., Any]:
        return self._decorator(entity_class, LifecycleEvent.BEFORE_RECOVER)

    def after_recover(self, entity_class: Type[Any]) -> Callable[..., Any]:
        return self._decorator(entity_class, LifecycleEvent.AFTER_RECOVER)
