"""Module preparation: materializing loadable references for compiled code.

Standard-module artifacts are written to a module file and handed out as a
``file://`` reference the rendering layer can pass to its dynamic-import
facility. References are content-addressed and reference-counted: every
``prepare`` of the same text returns the same reference, and the file is
removed once every holder has called ``release``.

Inline artifacts need no resource; their transformed body is evaluated
in-process, so preparation just returns that body.
"""

import asyncio
import hashlib
import logging
import re
import shutil
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional

from kiln.core.errors import PreparationError
from kiln.core.schema.artifact import CompiledArtifact, Format

logger = logging.getLogger(__name__)

MODULE_SPECIFIER_RE = re.compile(
    r"(?P<head>\bimport\s+(?:[^'\";]+?\s+from\s+)?|\bexport\s+[^'\";]*?\s+from\s+)"
    r"(?P<quote>['\"])(?P<specifier>[^'\"\n]+)(?P=quote)"
)


def extract_dependencies(code: str) -> List[str]:
    """List imported module specifiers, de-duplicated in order of appearance."""
    seen: List[str] = []
    for match in MODULE_SPECIFIER_RE.finditer(code):
        specifier = match.group("specifier")
        if specifier not in seen:
            seen.append(specifier)
    return seen


@dataclass(frozen=True)
class PreparedModule:
    """Loadable form of an artifact.

    Attributes:
        module_reference: ``file://`` reference (standard-module only)
        code: Code to evaluate directly when there is no reference
    """

    module_reference: Optional[str] = None
    code: Optional[str] = None


class ModulePreparer:
    """Creates and releases loadable module references.

    Example:
        >>> preparer = ModulePreparer(shims={"react": "https://host/shims/react.js"})
        >>> prepared = await preparer.prepare(artifact)
        >>> prepared.module_reference
        'file:///tmp/kiln-modules-.../3f2a....mjs'
        >>> preparer.release(prepared.module_reference)
        True
    """

    def __init__(self, directory: Optional[str] = None, shims: Optional[Dict[str, str]] = None):
        """Initialize the preparer.

        Args:
            directory: Where module files are written (default: a private
                temporary directory removed by ``release_all``)
            shims: Map of bare module specifiers to host URLs; matching
                imports are rewritten so prepared modules share the host's
                framework instance
        """
        self._owns_directory = directory is None
        self.directory: Optional[Path] = Path(directory) if directory else None
        self.shims = dict(shims or {})
        self._references: Dict[str, str] = {}
        self._counts: Dict[str, int] = {}
        self._paths: Dict[str, Path] = {}
        self._pending: Dict[str, "asyncio.Future[None]"] = {}

    @property
    def live_references(self) -> int:
        return len(self._counts)

    def resolve_specifiers(self, code: str) -> str:
        """Rewrite framework specifiers to their host shim URLs."""
        if not self.shims:
            return code

        def replace(match: "re.Match[str]") -> str:
            specifier = match.group("specifier")
            target = self.shims.get(specifier)
            if target is None:
                return match.group(0)
            quote = match.group("quote")
            return f"{match.group('head')}{quote}{target}{quote}"

        return MODULE_SPECIFIER_RE.sub(replace, code)

    async def prepare(self, artifact: CompiledArtifact) -> PreparedModule:
        """Prepare an artifact for loading.

        Args:
            artifact: Successfully compiled artifact

        Returns:
            PreparedModule with a module reference (standard-module) or the
            code to evaluate directly (inline)

        Raises:
            PreparationError: If the artifact has nothing loadable or the
                module resource cannot be written
        """
        if artifact.format is Format.INLINE:
            if not artifact.transformed_text:
                raise PreparationError("Inline artifact has no transformed code")
            return PreparedModule(code=artifact.transformed_text)

        text = artifact.loadable_text
        if not text:
            raise PreparationError("Module artifact has no source text")

        resolved = self.resolve_specifiers(text)
        digest = hashlib.sha256(resolved.encode("utf-8")).hexdigest()

        # Joins a write of the same text already running on this loop.
        while True:
            reference = self._references.get(digest)
            if reference is not None:
                self._counts[reference] += 1
                return PreparedModule(module_reference=reference, code=resolved)
            pending = self._pending.get(digest)
            if pending is None or pending.get_loop() is not asyncio.get_running_loop():
                break
            await asyncio.shield(pending)

        pending = asyncio.get_running_loop().create_future()
        self._pending[digest] = pending
        try:
            reference = await self._materialize(digest, resolved)
        finally:
            self._pending.pop(digest, None)
            pending.set_result(None)
        return PreparedModule(module_reference=reference, code=resolved)

    async def _materialize(self, digest: str, text: str) -> str:
        try:
            if self.directory is None:
                self.directory = Path(tempfile.mkdtemp(prefix="kiln-modules-"))
            path = self.directory / f"{digest}.mjs"
            await asyncio.to_thread(self._write, path, text)
        except OSError as e:
            raise PreparationError(f"Could not write module file for {digest}: {e}") from e

        reference = path.resolve().as_uri()
        self._references[digest] = reference
        self._counts[reference] = 1
        self._paths[reference] = path
        logger.info(f"Prepared module {reference}")
        return reference

    @staticmethod
    def _write(path: Path, text: str) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text, encoding="utf-8")

    def release(self, reference: str) -> bool:
        """Release one hold on a reference, deleting its file on the last one.

        Returns:
            True if the reference was live
        """
        count = self._counts.get(reference)
        if count is None:
            return False
        if count > 1:
            self._counts[reference] = count - 1
            return True

        del self._counts[reference]
        path = self._paths.pop(reference)
        for digest, ref in list(self._references.items()):
            if ref == reference:
                del self._references[digest]
        path.unlink(missing_ok=True)
        logger.debug(f"Released module {reference}")
        return True

    def release_all(self) -> int:
        """Release every live reference regardless of holders.

        Returns:
            Number of references released
        """
        released = len(self._counts)
        for path in self._paths.values():
            path.unlink(missing_ok=True)
        self._references.clear()
        self._counts.clear()
        self._paths.clear()
        if self._owns_directory and self.directory is not None:
            shutil.rmtree(self.directory, ignore_errors=True)
            self.directory = None
        return released
