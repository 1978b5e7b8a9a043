"""
Rendering Module
===============

Execution and output stages of a prerender.

Components:
- executor: Evaluates the main bundle in the sandbox
- resolver: Normalizes exported values into markup
- injector: Merges markup into the template or serializes the document
- pipeline: Per-render orchestration and the loader entry point
"""
