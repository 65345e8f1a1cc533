"""
Source-text stages: classification, import repair and transformation.
"""

from kiln.jsx.classifier import classify_format, detect_format_signals
from kiln.jsx.imports import RepairResult, repair_imports
from kiln.jsx.scanner import MarkupScanner, find_markup
from kiln.jsx.transformer import TransformResult, transform

__all__ = [
    "MarkupScanner",
    "RepairResult",
    "TransformResult",
    "classify_format",
    "detect_format_signals",
    "find_markup",
    "repair_imports",
    "transform",
]
