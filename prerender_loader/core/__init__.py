"""
Core Business Logic
==================

Core modules for build-time prerendering.

Modules:
- build: Nested, entry-scoped builds producing the prerender bundle
- sandbox: Simulated browser document, shims and module loader
- rendering: Bundle execution, export resolution and HTML injection
- errors: Prerender error taxonomy
"""
