"""Component library manifests.

A manifest lists the library components a host wants compiled ahead of
use (cache warming). Component files are resolved relative to the
manifest's directory; small components may be written inline:

    components:
      - name: Card
        file: components/card.jsx
      - name: Badge
        format: standard-module
        file: components/badge.mjs
      - name: Divider
        source: |
          const Divider = () => <hr className="divider" />
"""

import logging
from pathlib import Path
from typing import Any, Dict, List

from ruamel.yaml import YAML
from ruamel.yaml.error import YAMLError

from kiln.core.errors import ManifestError
from kiln.core.schema.artifact import Format, OriginKind, SourceArtifact

logger = logging.getLogger(__name__)


def _component_source(entry: Dict[str, Any], base_dir: Path, manifest_path: str) -> str:
    if "source" in entry:
        return str(entry["source"])
    if "file" not in entry:
        raise ManifestError(
            f"Component '{entry.get('name', '?')}' needs either 'file' or 'source'",
            manifest_path,
        )
    path = base_dir / str(entry["file"])
    try:
        return path.read_text(encoding="utf-8")
    except OSError as e:
        raise ManifestError(f"Cannot read component file {path}: {e}", manifest_path) from e


def parse_manifest(data: Any, base_dir: Path, manifest_path: str = "<manifest>") -> List[SourceArtifact]:
    """Build source artifacts from parsed manifest data.

    Args:
        data: Parsed YAML document
        base_dir: Directory component files are relative to
        manifest_path: Manifest name used in error messages

    Returns:
        One SourceArtifact per component, in manifest order

    Raises:
        ManifestError: On a malformed manifest or unreadable component file
    """
    if not isinstance(data, dict) or not isinstance(data.get("components"), list):
        raise ManifestError("Manifest must contain a 'components' list", manifest_path)

    default_origin = data.get("origin", OriginKind.LIBRARY.value)
    sources = []
    for index, entry in enumerate(data["components"]):
        if not isinstance(entry, dict):
            raise ManifestError(f"Component #{index} is not a mapping", manifest_path)
        try:
            declared = Format(entry["format"]) if entry.get("format") else None
            origin = OriginKind(entry.get("origin", default_origin))
        except ValueError as e:
            raise ManifestError(f"Component #{index}: {e}", manifest_path) from e

        name = entry.get("name") or (Path(str(entry["file"])).stem if "file" in entry else None)
        sources.append(
            SourceArtifact(
                raw_text=_component_source(entry, base_dir, manifest_path),
                declared_format=declared,
                origin_kind=origin,
                name=name,
            )
        )
    return sources


def load_manifest(path: str) -> List[SourceArtifact]:
    """Load a component library manifest from a YAML file.

    Args:
        path: Path to the manifest file

    Returns:
        Source artifacts for every listed component

    Raises:
        ManifestError: If the manifest cannot be read or is malformed

    Example:
        >>> sources = load_manifest("library/manifest.yaml")
        >>> [s.name for s in sources]
        ['Card', 'Badge', 'Divider']
    """
    manifest_path = Path(path)
    yaml = YAML(typ="safe")
    try:
        data = yaml.load(manifest_path.read_text(encoding="utf-8"))
    except OSError as e:
        raise ManifestError(f"Cannot read manifest: {e}", path) from e
    except YAMLError as e:
        raise ManifestError(f"Invalid YAML: {e}", path) from e

    sources = parse_manifest(data, manifest_path.parent, path)
    logger.info(f"Loaded {len(sources)} components from {path}")
    return sources
