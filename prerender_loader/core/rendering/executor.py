"""
Bundle Executor
===============

Evaluates the main bundle once inside the sandbox's global scope.
"""

import traceback
from typing import Any, Optional

from prerender_loader.config.logging import get_logger
from prerender_loader.core.errors import ExecutionError, PrerenderError
from prerender_loader.core.sandbox.environment import SandboxEnvironment

logger = get_logger(__name__)


class BundleExecutor:
    """Runs a compiled bundle and reads back the library global it populates."""

    def __init__(self, library_name: str, filename: str) -> None:
        self.library_name = library_name
        self.filename = filename
        self.logger: Any = logger.bind(component="executor")

    def execute(
        self, sandbox: SandboxEnvironment, source: str, request_id: Optional[str] = None
    ) -> Any:
        """
        Evaluate the bundle source.

        Args:
            sandbox: Environment whose globals the bundle runs in
            source: Main bundle source text
            request_id: Render request identifier

        Returns:
            Raw value bound to the library global, or None

        Raises:
            ExecutionError: If evaluation raises
        """
        try:
            code = compile(source, self.filename, "exec")
            exec(code, sandbox.scope)
        except PrerenderError:
            raise
        except Exception as e:
            trace = traceback.format_exc()
            message = f"{type(e).__name__}: {e}"
            self.logger.error("Bundle evaluation failed", request_id=request_id, error=message)
            raise ExecutionError(message, trace, request_id) from e

        return sandbox.scope.get(self.library_name)
