"""
Sandbox Module Loader
=====================

CommonJS-style ``require`` backed by the compiled asset set. Each module
body runs once per sandbox in its own scope with ``exports``, ``module``
and ``require`` bound; later requests return the memoized exports.
"""

import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

from prerender_loader.config.logging import get_logger
from prerender_loader.core.errors import ModuleCycleError, ModuleNotFoundError
from prerender_loader.models.schemas import CompiledAssetSet, ModuleState

logger = get_logger(__name__)

_LEADING_PREFIX = re.compile(r"^\.?/")


def normalize_module_id(module_id: str) -> str:
    """Strip a leading ``./`` or ``/`` so the id matches an asset filename."""
    return _LEADING_PREFIX.sub("", module_id)


class Module:
    """The ``module`` object seen by a module body."""

    def __init__(self, module_id: str) -> None:
        self.id = module_id
        self.exports: Any = {}

    def __repr__(self) -> str:
        return f"<Module {self.id!r}>"


@dataclass
class ModuleRecord:
    id: str
    state: ModuleState = ModuleState.UNINITIALIZED
    module: Optional[Module] = None

    @property
    def exports(self) -> Any:
        return self.module.exports if self.module is not None else None


@dataclass
class ModuleLoader:
    """Per-sandbox module arena. Never shared between sandboxes."""

    assets: CompiledAssetSet
    scope: Mapping[str, Any]
    request_id: Optional[str] = None
    records: Dict[str, ModuleRecord] = field(default_factory=dict)
    _stack: List[str] = field(default_factory=list, init=False, repr=False)

    def __post_init__(self) -> None:
        self.logger: Any = logger.bind(component="loader", request_id=self.request_id)

    def require(self, module_id: str) -> Any:
        """Load a compiled asset by id and return its exports."""
        key = normalize_module_id(module_id)
        source = self.assets.source(key)
        if source is None:
            self.logger.error("Module not found", module_id=module_id)
            raise ModuleNotFoundError(module_id, self.request_id)

        record = self.records.setdefault(key, ModuleRecord(id=key))
        if record.state is ModuleState.DONE:
            return record.exports
        if record.state is ModuleState.EVALUATING:
            raise ModuleCycleError(self._stack + [key], self.request_id)

        record.state = ModuleState.EVALUATING
        record.module = Module(key)
        self._stack.append(key)
        try:
            self._evaluate(key, source, record.module)
        except BaseException:
            record.state = ModuleState.UNINITIALIZED
            record.module = None
            raise
        finally:
            self._stack.pop()

        record.state = ModuleState.DONE
        self.logger.debug("Module evaluated", module_id=key)
        return record.exports

    __call__ = require

    def _evaluate(self, key: str, source: str, module: Module) -> None:
        namespace: Dict[str, Any] = dict(self.scope)
        namespace.update(
            exports=module.exports,
            module=module,
            require=self.require,
            __name__=key,
        )
        code = compile(source, key, "exec")
        exec(code, namespace)

    def state_of(self, module_id: str) -> ModuleState:
        record = self.records.get(normalize_module_id(module_id))
        return record.state if record else ModuleState.UNINITIALIZED

