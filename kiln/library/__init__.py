"""
Component library support: manifests listing components to pre-compile.
"""

from kiln.library.manifest import load_manifest, parse_manifest

__all__ = ["load_manifest", "parse_manifest"]
