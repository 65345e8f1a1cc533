"""
Core components for kiln.

This package contains the schemas, configuration, hashing, the artifact
cache and the pipeline orchestrator. The source-text stages live in
``kiln.jsx`` and the execution stages in ``kiln.runtime``.
"""

__all__ = []
