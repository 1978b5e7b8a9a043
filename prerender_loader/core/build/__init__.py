"""
Build Module
============

Nested, entry-scoped builds that produce the prerender bundle.

Components:
- host: Host build contract and build plugins
- entry: Entry path conversion and registration
- bundler: Reference host build for Python client applications
- invoker: Nested build invocation with per-request cache partitions
"""
