"""Operator notices shown on administration screens."""

from __future__ import annotations

import logging
from collections.abc import Callable

logger = logging.getLogger(__name__)

NoticeRenderer = Callable[[], str]


class OperatorNotices:
    """
    Collects notice renderers and renders them for an operator screen.

    Registering the same renderer twice has no effect.

    Example:
        >>> notices = OperatorNotices()
        >>> notices.register(lambda: "Maintenance tonight")
        True
        >>> notices.render()
        ['Maintenance tonight']
    """

    def __init__(self) -> None:
        self._renderers: list[NoticeRenderer] = []

    def register(self, renderer: NoticeRenderer) -> bool:
        """
        Add a notice renderer.

        Returns:
            False if it was already registered
        """
        if renderer in self._renderers:
            return False
        self._renderers.append(renderer)
        logger.debug("Registered operator notice %s", getattr(renderer, "__name__", renderer))
        return True

    def is_registered(self, renderer: NoticeRenderer) -> bool:
        return renderer in self._renderers

    def render(self) -> list[str]:
        """Render every registered notice, skipping empty ones."""
        rendered = (renderer() for renderer in self._renderers)
        return [text for text in rendered if text]

    def clear(self) -> None:
        self._renderers.clear()

    def __len__(self) -> int:
        return len(self._renderers)


__all__ = ["OperatorNotices", "NoticeRenderer"]
