"""
Shared helpers for paths, formatting, schema validation and structured logs.
"""
