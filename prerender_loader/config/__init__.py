"""
Configuration Management
=======================

Environment-based configuration using Pydantic Settings.

Components:
- settings: Prerender settings and environment configuration
- logging: Structured logging configuration
"""
