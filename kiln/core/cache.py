"""Artifact cache keyed by content hash.

The cache maps the hash of normalized component source to the compiled
artifact produced for it, so identical submissions skip repair,
transformation and validation. It can optionally persist to a JSON file,
which allows warm starts across processes:

- Entries are written whole and only after an artifact is fully computed
- Entries from a different compiler version are discarded on load
- Module references are never persisted (they are process-local handles)
"""

import json
import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

from kiln.core.schema.artifact import CompiledArtifact, ValidationStatus

logger = logging.getLogger(__name__)

CACHE_FILE_VERSION = "1.0"
PRUNE_FRACTION = 0.25


@dataclass
class CacheEntry:
    """Entry in the artifact cache.

    The artifact itself is immutable; ``hit_count`` is the only bookkeeping
    that changes after the entry is stored.

    Attributes:
        key: Content hash of the normalized source
        artifact: The compiled artifact
        created_at: Unix timestamp of the store
        hit_count: Number of lookups served by this entry
    """

    key: str
    artifact: CompiledArtifact
    created_at: float = field(default_factory=time.time)
    hit_count: int = 0

    @property
    def replaceable(self) -> bool:
        """Error entries and unvalidated entries may be superseded."""
        return (
            self.artifact.compile_error is not None
            or self.artifact.validation_status is ValidationStatus.SKIPPED
        )


class ArtifactCache:
    """Content-hash-addressed store of compiled artifacts.

    Example:
        >>> cache = ArtifactCache()
        >>> cache.store(artifact.source_hash, artifact)
        >>> cache.lookup(artifact.source_hash) is artifact
        True
    """

    def __init__(
        self,
        file_path: Optional[str] = None,
        compiler_version: str = "",
        max_entries: Optional[int] = None,
    ):
        """Initialize the cache.

        Args:
            file_path: Path to JSON file for persistence (None disables persistence)
            compiler_version: Version stamp; persisted entries from another
                version are discarded on load
            max_entries: Optional size bound; when exceeded the oldest,
                least-hit quarter of the entries is pruned (None disables)
        """
        self.file_path = file_path
        self.compiler_version = compiler_version
        self.max_entries = max_entries
        self.entries: Dict[str, CacheEntry] = {}

        if file_path and Path(file_path).exists():
            self.load()
            logger.info(f"Loaded artifact cache from {file_path} with {len(self.entries)} entries")

    def __len__(self) -> int:
        return len(self.entries)

    def __contains__(self, key: str) -> bool:
        return key in self.entries

    def lookup(self, key: str) -> Optional[CompiledArtifact]:
        """Find the artifact stored for a content hash.

        Args:
            key: Content hash to look up

        Returns:
            CompiledArtifact if present, None otherwise
        """
        entry = self.entries.get(key)
        if entry is None:
            logger.debug(f"Cache MISS for {key}")
            return None

        entry.hit_count += 1
        logger.debug(f"Cache HIT for {key} (hits={entry.hit_count})")
        return entry.artifact

    def store(self, key: str, artifact: CompiledArtifact) -> bool:
        """Store an artifact under a content hash.

        Storing identical content under an existing key is a no-op. A stored
        artifact with different content is only replaced when the existing
        entry is an error or unvalidated entry; otherwise the store is
        rejected with a warning and the existing entry is kept.

        Args:
            key: Content hash of the artifact's normalized source
            artifact: Fully computed artifact

        Returns:
            True if the entry was written
        """
        existing = self.entries.get(key)
        if existing is not None:
            if existing.artifact.content_signature() == artifact.content_signature():
                logger.debug(f"Cache store for {key} is identical to existing entry")
                return False
            if not existing.replaceable:
                logger.warning(
                    f"Rejected cache overwrite for {key}: existing entry has different content"
                )
                return False
            logger.info(f"Replacing provisional cache entry for {key}")

        self.entries[key] = CacheEntry(key=key, artifact=artifact)
        logger.debug(f"Stored cache entry for {key}")

        if self.max_entries is not None and len(self.entries) > self.max_entries:
            self.prune()

        self.save()
        return True

    def invalidate(self, key: str) -> Optional[CompiledArtifact]:
        """Remove an entry explicitly.

        Returns:
            The removed artifact, or None if the key was not cached
        """
        entry = self.entries.pop(key, None)
        if entry is None:
            return None
        logger.info(f"Invalidated cache entry {key}")
        self.save()
        return entry.artifact

    def clear(self) -> None:
        """Remove every entry."""
        self.entries.clear()
        self.save()

    def prune(self) -> List[str]:
        """Drop the oldest, least-used quarter of the entries.

        Entries are ranked by creation time with each hit counting as a
        thousand seconds of recency.

        Returns:
            Keys that were removed
        """
        ranked = sorted(
            self.entries.values(), key=lambda e: e.created_at + e.hit_count * 1000
        )
        count = int(len(ranked) * PRUNE_FRACTION)
        removed = [entry.key for entry in ranked[:count]]
        for key in removed:
            del self.entries[key]
        if removed:
            logger.info(f"Pruned {len(removed)} cache entries")
        return removed

    def stats(self) -> Dict[str, Any]:
        """Summarize cache contents."""
        return {
            "size": len(self.entries),
            "hits": sum(e.hit_count for e in self.entries.values()),
            "error_entries": sum(
                1 for e in self.entries.values() if e.artifact.compile_error is not None
            ),
            "compiler_version": self.compiler_version,
        }

    def save(self) -> None:
        """Persist the cache to its JSON file."""
        if not self.file_path:
            return

        data = {
            "version": CACHE_FILE_VERSION,
            "compiler_version": self.compiler_version,
            "entries": [self._entry_to_dict(e) for e in self.entries.values()],
        }
        json_str = json.dumps(data, indent=2, sort_keys=True)
        Path(self.file_path).write_text(json_str)

        logger.debug(f"Saved artifact cache to {self.file_path}")

    def load(self) -> None:
        """Load the cache from its JSON file."""
        if not self.file_path:
            return

        try:
            data = json.loads(Path(self.file_path).read_text())
        except (OSError, json.JSONDecodeError) as e:
            logger.error(f"Failed to load artifact cache: {e}")
            self.entries = {}
            return

        if data.get("compiler_version") != self.compiler_version:
            logger.info(
                f"Discarding artifact cache written by compiler version "
                f"{data.get('compiler_version')!r}"
            )
            self.entries = {}
            return

        entries = [self._dict_to_entry(e) for e in data.get("entries", [])]
        self.entries = {e.key: e for e in entries}

    def _entry_to_dict(self, entry: CacheEntry) -> Dict[str, Any]:
        """Serialize CacheEntry to dict for JSON storage."""
        artifact = entry.artifact.to_serializable()
        artifact["module_reference"] = None
        return {
            "key": entry.key,
            "artifact": artifact,
            "created_at": entry.created_at,
            "hit_count": entry.hit_count,
        }

    def _dict_to_entry(self, d: Dict[str, Any]) -> CacheEntry:
        """Deserialize CacheEntry from dict."""
        return CacheEntry(
            key=d["key"],
            artifact=CompiledArtifact.from_serializable(d["artifact"]),
            created_at=d.get("created_at", 0.0),
            hit_count=d.get("hit_count", 0),
        )
