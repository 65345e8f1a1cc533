"""Source and compiled artifact models."""

import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Tuple

from kiln.core.schema.diagnostic import Diagnostic


class Format(str, Enum):
    """Shape of a component source fragment."""

    INLINE = "inline"
    STANDARD_MODULE = "standard-module"


class OriginKind(str, Enum):
    """Where a source fragment came from."""

    AI_GENERATED = "ai-generated"
    LIBRARY = "library"
    URL_IMPORT = "url-import"
    USER_UPLOAD = "user-upload"


class ValidationStatus(str, Enum):
    PASSED = "passed"
    INCONCLUSIVE = "inconclusive"
    SKIPPED = "skipped"


@dataclass(frozen=True)
class SourceArtifact:
    """Input unit submitted to the pipeline.

    Attributes:
        raw_text: Component source exactly as received
        declared_format: Format claimed by the submitter, if any
        origin_kind: Where the source came from
        name: Optional display name (library id, file name)
    """

    raw_text: str
    declared_format: Optional[Format] = None
    origin_kind: OriginKind = OriginKind.AI_GENERATED
    name: Optional[str] = None


@dataclass(frozen=True)
class CompiledArtifact:
    """Pipeline output for one source fragment.

    Inline artifacts carry ``transformed_text`` (a directly invocable function
    body that takes the framework binding and returns the component).
    Standard-module artifacts load from ``module_reference`` when one has been
    prepared, otherwise from ``original_text``.

    Attributes:
        id: Unique artifact identifier
        original_text: Source as submitted
        source_hash: Content hash of the normalized source (cache key)
        format: Format the pipeline processed the source as
        compiled_at_epoch: Unix timestamp of compilation
        transformed_text: Loadable code (inline: transformed body)
        transformed_hash: Content hash of ``transformed_text``
        module_reference: Ephemeral import reference (standard-module only)
        compile_error: Fatal transform diagnostic, if compilation failed
        warnings: Non-fatal diagnostics gathered while compiling
        component_name: Identifier bound to the component
        origin_kind: Origin of the submitted source
        validation_status: Outcome of the validation stage
        dependencies: Module specifiers imported by a standard-module artifact
        compiler_version: Version of the pipeline that produced the artifact
    """

    original_text: str
    source_hash: str
    format: Format
    id: str = field(default_factory=lambda: f"component-{uuid.uuid4().hex[:12]}")
    compiled_at_epoch: float = field(default_factory=time.time)
    transformed_text: Optional[str] = None
    transformed_hash: Optional[str] = None
    module_reference: Optional[str] = None
    compile_error: Optional[Diagnostic] = None
    warnings: Tuple[Diagnostic, ...] = ()
    component_name: Optional[str] = None
    origin_kind: OriginKind = OriginKind.AI_GENERATED
    validation_status: ValidationStatus = ValidationStatus.SKIPPED
    dependencies: Tuple[str, ...] = ()
    compiler_version: str = ""

    @property
    def succeeded(self) -> bool:
        return self.compile_error is None

    @property
    def loadable_text(self) -> Optional[str]:
        """Code the rendering layer evaluates when no module reference is used."""
        if self.format is Format.INLINE:
            return self.transformed_text
        return self.transformed_text or self.original_text

    def content_signature(self) -> Tuple[Any, ...]:
        """Fields that define artifact content, ignoring id/timestamps/handles."""
        return (
            self.source_hash,
            self.format,
            self.transformed_text,
            self.compile_error.message if self.compile_error else None,
            self.component_name,
            self.validation_status,
        )

    def to_serializable(self) -> Dict[str, Any]:
        """Convert artifact to a JSON-serializable dict."""
        return {
            "id": self.id,
            "original_text": self.original_text,
            "transformed_text": self.transformed_text,
            "source_hash": self.source_hash,
            "transformed_hash": self.transformed_hash,
            "compiled_at_epoch": self.compiled_at_epoch,
            "format": self.format.value,
            "module_reference": self.module_reference,
            "compile_error": self.compile_error.to_dict() if self.compile_error else None,
            "warnings": [w.to_dict() for w in self.warnings],
            "component_name": self.component_name,
            "origin_kind": self.origin_kind.value,
            "validation_status": self.validation_status.value,
            "dependencies": list(self.dependencies),
            "compiler_version": self.compiler_version,
        }

    @classmethod
    def from_serializable(cls, data: Dict[str, Any]) -> "CompiledArtifact":
        """Rebuild an artifact from ``to_serializable`` output.

        Module references are process-local handles and are never restored.
        """
        compile_error = data.get("compile_error")
        return cls(
            id=data["id"],
            original_text=data["original_text"],
            transformed_text=data.get("transformed_text"),
            source_hash=data["source_hash"],
            transformed_hash=data.get("transformed_hash"),
            compiled_at_epoch=data.get("compiled_at_epoch", 0.0),
            format=Format(data["format"]),
            module_reference=None,
            compile_error=Diagnostic.from_dict(compile_error) if compile_error else None,
            warnings=tuple(Diagnostic.from_dict(w) for w in data.get("warnings", [])),
            component_name=data.get("component_name"),
            origin_kind=OriginKind(data.get("origin_kind", OriginKind.AI_GENERATED.value)),
            validation_status=ValidationStatus(
                data.get("validation_status", ValidationStatus.SKIPPED.value)
            ),
            dependencies=tuple(data.get("dependencies", [])),
            compiler_version=data.get("compiler_version", ""),
        )

