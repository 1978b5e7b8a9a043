"""
Data Models
===========

Pydantic models shared across the prerender pipeline.
"""
