"""
prerender-loader
================

Build-time prerendering for Python client applications: the application
bundle is executed against a simulated browser document and the resulting
markup is merged into an HTML template, without a browser or a server.

This package provides:
- A nested build invoker over a pluggable host build
- A sandboxed document with browser API shims and a module loader
- Export resolution and template injection
- A command line interface
"""

from prerender_loader.core.build.bundler import PythonBundler
from prerender_loader.core.build.host import HostBuild, StyleExtractPlugin
from prerender_loader.core.errors import (
    ChildCompilationError,
    ExecutionError,
    ModuleCycleError,
    ModuleNotFoundError,
    PrerenderError,
    PrerenderExecutionError,
    SandboxInitError,
)
from prerender_loader.core.rendering.pipeline import (
    Prerenderer,
    parse_loader_query,
    prerender_loader,
)
from prerender_loader.models.schemas import RenderOptions

__version__ = "1.0.0"

__all__ = [
    "ChildCompilationError",
    "ExecutionError",
    "HostBuild",
    "ModuleCycleError",
    "ModuleNotFoundError",
    "Prerenderer",
    "PrerenderError",
    "PrerenderExecutionError",
    "PythonBundler",
    "RenderOptions",
    "SandboxInitError",
    "StyleExtractPlugin",
    "parse_loader_query",
    "prerender_loader",
]
