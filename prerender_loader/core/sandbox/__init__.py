"""
Sandbox Module
==============

Simulated browser document for executing compiled bundles.

Components:
- environment: Template parsing, window globals and sandbox assembly
- loader: Memoized CommonJS-style module loader over compiled assets
- placeholder: {{prerender}} marker discovery
- shims: Browser API stand-ins (animation frames, custom elements, ...)
"""

from prerender_loader.core.sandbox.environment import (
    DEFAULT_DOCUMENT,
    InjectionAnchor,
    SandboxBuilder,
    SandboxEnvironment,
    Window,
)
from prerender_loader.core.sandbox.loader import ModuleLoader, normalize_module_id
from prerender_loader.core.sandbox.shims import InertAwaitable

__all__ = [
    "DEFAULT_DOCUMENT",
    "InertAwaitable",
    "InjectionAnchor",
    "ModuleLoader",
    "SandboxBuilder",
    "SandboxEnvironment",
    "Window",
    "normalize_module_id",
]
