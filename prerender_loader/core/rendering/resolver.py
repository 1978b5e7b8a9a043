"""
Export Resolver
===============

Turns whatever the entry exported into the markup to inject. The shape of
the value is classified once per step into an ExportKind, then three steps
run in fixed order, each at most once:

1. unwrap a composite export object to its best export
2. invoke a callable with the render params
3. await an awaitable (or ``then``-able)

The result is ``None`` or a string.
"""

import asyncio
import inspect
import traceback
from collections.abc import Mapping
from types import ModuleType, SimpleNamespace
from typing import Any, Dict, Optional

from prerender_loader.config.logging import get_logger
from prerender_loader.core.errors import ExecutionError, PrerenderError, PrerenderExecutionError
from prerender_loader.models.schemas import ExportKind

logger = get_logger(__name__)

DEFAULT_EXPORT_KEY = "default"


def _is_marker_key(key: Any) -> bool:
    if not isinstance(key, str):
        return False
    return key == "__esModule" or (key.startswith("__") and key.endswith("__"))


def _is_thenable(value: Any) -> bool:
    return callable(getattr(value, "then", None))


def classify_export(value: Any) -> ExportKind:
    """Inspect a value once and tag its shape."""
    if value is None:
        return ExportKind.MISSING
    if inspect.isawaitable(value) or (not isinstance(value, type) and _is_thenable(value)):
        return ExportKind.AWAITABLE
    if callable(value):
        return ExportKind.CALLABLE
    if isinstance(value, (Mapping, SimpleNamespace, ModuleType)):
        return ExportKind.COMPOSITE
    return ExportKind.LITERAL


def _own_properties(value: Any) -> Dict[Any, Any]:
    if isinstance(value, Mapping):
        return dict(value)
    return dict(vars(value))


def get_best_module_export(exports: Any) -> Any:
    """Find the best export of a module. Returns None when there is none."""
    properties = _own_properties(exports)
    if properties.get(DEFAULT_EXPORT_KEY):
        return properties[DEFAULT_EXPORT_KEY]
    for key, value in properties.items():
        if not _is_marker_key(key):
            return value
    return None


async def _settle_thenable(value: Any) -> Any:
    future = asyncio.get_running_loop().create_future()

    def on_fulfilled(result: Any = None) -> None:
        if not future.done():
            future.set_result(result)

    def on_rejected(reason: Any = None) -> None:
        if not future.done():
            future.set_exception(PrerenderExecutionError(reason))

    value.then(on_fulfilled, on_rejected)
    return await future


class ExportResolver:
    """Normalizes a raw entry export into markup."""

    def __init__(self) -> None:
        self.logger: Any = logger.bind(component="resolver")

    async def resolve(
        self, value: Any, params: Any = None, request_id: Optional[str] = None
    ) -> Optional[str]:
        """
        Resolve an export to markup.

        Args:
            value: Raw value returned by the executor
            params: Argument for an exported function
            request_id: Render request identifier

        Returns:
            Markup string, or None when nothing was exported

        Raises:
            ExecutionError: If an exported function raises
            PrerenderExecutionError: If an awaited value fails
        """
        kind = classify_export(value)
        self.logger.debug("Resolving export", request_id=request_id, kind=kind.value)

        if kind is ExportKind.COMPOSITE:
            value = get_best_module_export(value)
            kind = classify_export(value)

        if kind is ExportKind.CALLABLE:
            value = self._invoke(value, params, request_id)
            kind = classify_export(value)

        if kind is ExportKind.AWAITABLE:
            value = await self._await(value, request_id)

        if value is None or isinstance(value, str):
            return value
        return str(value)

    def _invoke(self, function: Any, params: Any, request_id: Optional[str]) -> Any:
        try:
            return function(params)
        except PrerenderError:
            raise
        except Exception as e:
            trace = traceback.format_exc()
            message = f"{type(e).__name__}: {e}"
            self.logger.error("Exported function raised", request_id=request_id, error=message)
            raise ExecutionError(message, trace, request_id) from e

    async def _await(self, value: Any, request_id: Optional[str]) -> Any:
        try:
            if inspect.isawaitable(value):
                return await value
            return await _settle_thenable(value)
        except PrerenderExecutionError as e:
            e.request_id = e.request_id or request_id
            self.logger.error("Awaited export rejected", request_id=request_id, reason=e.message)
            raise
        except Exception as e:
            self.logger.error("Awaited export rejected", request_id=request_id, reason=str(e))
            raise PrerenderExecutionError(e, request_id) from e
