"""
Test Suite
==========

Test suite matching the prerender_loader/ package structure.

Test Categories:
- unit: Unit tests for individual components
- integration: Full prerender runs against on-disk client applications
"""
