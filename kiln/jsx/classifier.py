"""Format classification for component source."""

import logging
import re
from typing import List, Tuple

from kiln.core.schema.artifact import Format

logger = logging.getLogger(__name__)

# Line-anchored module syntax signals
MODULE_SIGNALS: Tuple[Tuple[str, "re.Pattern[str]"], ...] = (
    ("import", re.compile(r"^import\s*(?:[\w$*{]|['\"])", re.M)),
    ("export-default", re.compile(r"^export\s+default\b", re.M)),
    ("export-named", re.compile(r"^export\s*\{", re.M)),
    ("export-all", re.compile(r"^export\s*\*", re.M)),
    (
        "export-declaration",
        re.compile(r"^export\s+(?:async\s+)?(?:const|let|var|function\*?|class)\b", re.M),
    ),
)


def detect_format_signals(text: str) -> List[str]:
    """List the module-syntax signals present in ``text``.

    Args:
        text: Raw component source

    Returns:
        Signal names in declaration order, empty when none are present
    """
    return [name for name, pattern in MODULE_SIGNALS if pattern.search(text)]


def classify_format(text: str) -> Format:
    """Classify source as standard-module or inline.

    Source is a standard module when any top-level import or export
    declaration starts a line. Absence of every signal defaults to inline,
    the legacy shape most stored and generated components use. Never fails.

    Args:
        text: Raw component source

    Returns:
        Format.STANDARD_MODULE or Format.INLINE
    """
    signals = detect_format_signals(text)
    if signals:
        logger.debug(f"Classified as standard-module (signals: {', '.join(signals)})")
        return Format.STANDARD_MODULE
    return Format.INLINE
