"""
Prerender Errors
================

Error taxonomy for the prerender pipeline. Every error is fatal for the
render it occurs in; none are retried.
"""

import builtins
from typing import Any, List, Optional


class PrerenderError(Exception):
    """Base class for all prerender failures."""

    def __init__(self, message: str, request_id: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.request_id = request_id

    def __str__(self) -> str:
        if self.request_id:
            return f"[{self.request_id}] {self.message}"
        return self.message


class ChildCompilationError(PrerenderError):
    """Raised when the nested build reports error diagnostics."""

    def __init__(self, details: List[str], request_id: Optional[str] = None):
        super().__init__("Child compilation failed:\n" + "\n".join(details), request_id)
        self.details = details


class ModuleNotFoundError(PrerenderError, builtins.ModuleNotFoundError):
    """Raised when the sandbox loader is asked for an id with no compiled asset."""

    def __init__(self, module_id: str, request_id: Optional[str] = None):
        super().__init__(
            f'Module not found. attempted require("{module_id}")', request_id
        )
        self.module_id = module_id


class ModuleCycleError(PrerenderError):
    """Raised when a module is required while it is still evaluating."""

    def __init__(self, chain: List[str], request_id: Optional[str] = None):
        super().__init__("Cyclic require: " + " -> ".join(chain), request_id)
        self.chain = chain


class ExecutionError(PrerenderError):
    """Raised when the bundle faults while being evaluated in the sandbox."""

    def __init__(
        self, message: str, trace: str = "", request_id: Optional[str] = None
    ):
        super().__init__(message, request_id)
        self.trace = trace


class PrerenderExecutionError(PrerenderError):
    """Raised when an awaited export rejects."""

    def __init__(self, reason: Any, request_id: Optional[str] = None):
        super().__init__(str(reason), request_id)
        self.reason = reason


class SandboxInitError(PrerenderError):
    """Raised for an invalid document URL or unparseable template."""

    pass
