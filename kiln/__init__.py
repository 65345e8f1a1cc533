"""
kiln: component ingestion pipeline

Turns untrusted UI-component source fragments (AI-generated, library,
URL-imported or user-uploaded) into artifacts a canvas can safely load.
Source is classified, missing framework imports are repaired, inline
markup is transformed into plain function bodies, results are cached by
content hash and validated before being handed to the rendering layer.
"""

__version__ = "1.0.0"

__all__ = ["__version__"]
