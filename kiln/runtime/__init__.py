"""
Execution stages: validation in a script runtime and module preparation.
"""

from kiln.runtime.preparer import ModulePreparer, PreparedModule, extract_dependencies
from kiln.runtime.validator import ExecutionValidator

__all__ = [
    "ExecutionValidator",
    "ModulePreparer",
    "PreparedModule",
    "extract_dependencies",
]
