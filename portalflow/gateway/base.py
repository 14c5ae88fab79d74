"""Base gateway interface for external portal actions."""

from __future__ import annotations

import abc
import logging
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional

from ..contracts import ActionKind, ActionResult
from ..errors import ExternalActionFailure

logger = logging.getLogger(__name__)

ActionHandler = Callable[[Dict[str, Any]], Awaitable[Any]]


class BaseGateway(metaclass=abc.ABCMeta):
    """Abstract single boundary through which every external action passes."""

    @abc.abstractmethod
    async def invoke(self, kind: ActionKind | str, payload: Mapping[str, Any]) -> ActionResult:
        """Run one action and return a typed result. Never raises."""
        raise NotImplementedError


class ActionGateway(BaseGateway):
    """Dispatch actions to registered async handlers.

    A handler returns the success value or raises; the exception message
    becomes the failure text. Failures are never retried here.
    """

    def __init__(self, handlers: Optional[Mapping[ActionKind, ActionHandler]] = None) -> None:
        self._handlers: Dict[ActionKind, ActionHandler] = dict(handlers or {})

    def register(self, kind: ActionKind | str, handler: ActionHandler) -> None:
        self._handlers[ActionKind(kind)] = handler

    def handles(self, kind: ActionKind | str) -> bool:
        try:
            return ActionKind(kind) in self._handlers
        except ValueError:
            return False

    async def invoke(self, kind: ActionKind | str, payload: Mapping[str, Any]) -> ActionResult:
        try:
            kind = ActionKind(kind)
        except ValueError:
            return ActionResult.failure(f"Unknown action: {kind}")

        handler = self._handlers.get(kind)
        if handler is None:
            logger.warning(f"No handler registered for {kind.value}")
            return ActionResult.failure(f"No handler registered for {kind.value}")

        try:
            value = await handler(dict(payload or {}))
        except ExternalActionFailure as e:
            logger.error(f"Action {kind.value} failed: {e.message}")
            return ActionResult.failure(e.message)
        except Exception as e:
            logger.error(f"Action {kind.value} failed: {e}")
            return ActionResult.failure(str(e) or e.__class__.__name__)

        logger.debug(f"Action {kind.value} succeeded")
        return ActionResult.success(value)
