"""
Media File Layer.

This package is responsible for post-download checks on mirrored files.
"""

from .integrity import FileIntegrityChecker

__all__ = ["FileIntegrityChecker"]
