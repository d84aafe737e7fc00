"""Unified diffs, patch application, file globbing, file access records and a persistent shell."""

__version__ = "0.1.0"
__all__ = ["fileutil", "filestate", "patch", "shell", "unidiff"]