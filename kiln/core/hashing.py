"""Content hashing for cache keys."""

import hashlib


def normalize_source(text: str) -> str:
    """Normalize source text before hashing.

    Only whitespace that cannot sit inside a literal is touched: a leading
    byte-order mark is removed, line endings are unified (template literals
    read CRLF as LF anyway), blank lines at either end are dropped and
    trailing whitespace after the last line is stripped. Whitespace at the
    end of inner lines is kept, since a template literal may span it.

    Args:
        text: Raw source text

    Returns:
        Normalized text
    """
    if text.startswith("\ufeff"):
        text = text[1:]
    lines = text.replace("\r\n", "\n").replace("\r", "\n").split("\n")
    while lines and not lines[0].strip():
        lines.pop(0)
    while lines and not lines[-1].strip():
        lines.pop()
    return "\n".join(lines).rstrip()


def content_hash(text: str) -> str:
    """Deterministic hash of normalized source text.

    Args:
        text: Raw source text

    Returns:
        MD5 hash as hexadecimal string
    """
    return hashlib.md5(normalize_source(text).encode("utf-8")).hexdigest()
