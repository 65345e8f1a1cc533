"""Unit tests for schema definitions and error types."""

from kiln.core.errors import CompileError, ManifestError, PreparationError
from kiln.core.hashing import content_hash
from kiln.core.schema import (
    CompiledArtifact,
    Diagnostic,
    Format,
    RuntimeBinding,
    ValidationStatus,
)
from kiln.core.schema.diagnostic import (
    CLASSIFICATION_AMBIGUOUS,
    COMPILE_ERROR,
    PREPARATION_FAILURE,
    VALIDATION_INCONCLUSIVE,
    compile_diagnostic,
)


class TestDiagnostic:
    """Tests for Diagnostic severity and serialization."""

    def test_fatal_codes(self):
        assert compile_diagnostic("bad").is_fatal
        assert Diagnostic(PREPARATION_FAILURE, "io", "prepare", "error").is_fatal
        assert not Diagnostic(VALIDATION_INCONCLUSIVE, "hook guard", "validate").is_fatal
        assert not Diagnostic(CLASSIFICATION_AMBIGUOUS, "declared", "classify").is_fatal

    def test_compile_diagnostic_location(self):
        diagnostic = compile_diagnostic("Unexpected token", 3, 7)

        assert diagnostic.code == COMPILE_ERROR
        assert diagnostic.stage == "transform"
        assert diagnostic.evidence == {"line": 3, "column": 7}
        assert compile_diagnostic("No location").evidence == {}

    def test_from_dict_tolerates_missing_fields(self):
        diagnostic = Diagnostic.from_dict({"code": VALIDATION_INCONCLUSIVE})

        assert diagnostic.severity == "warning"
        assert diagnostic.evidence == {}


class TestCompiledArtifact:
    """Tests for CompiledArtifact."""

    def test_loadable_text_by_format(self):
        inline = CompiledArtifact(
            original_text="const A = 1;",
            source_hash="h",
            format=Format.INLINE,
            transformed_text="const A = 1;\nreturn A;\n",
        )
        module = CompiledArtifact(
            original_text="export default 1;", source_hash="h", format=Format.STANDARD_MODULE
        )

        assert inline.loadable_text == "const A = 1;\nreturn A;\n"
        assert module.loadable_text == "export default 1;"

    def test_serialization_drops_module_reference(self):
        artifact = CompiledArtifact(
            original_text="export default 1;",
            source_hash=content_hash("export default 1;"),
            format=Format.STANDARD_MODULE,
            module_reference="file:///tmp/a.mjs",
            warnings=(Diagnostic(VALIDATION_INCONCLUSIVE, "syntactic only", "validate"),),
            validation_status=ValidationStatus.INCONCLUSIVE,
            dependencies=("react",),
        )

        data = artifact.to_serializable()
        restored = CompiledArtifact.from_serializable(data)

        assert data["format"] == "standard-module"
        assert restored.module_reference is None
        assert restored.warnings == artifact.warnings
        assert restored.dependencies == ("react",)
        assert restored.content_signature() == artifact.content_signature()

    def test_ids_are_unique(self):
        first = CompiledArtifact(original_text="a", source_hash="h", format=Format.INLINE)
        second = CompiledArtifact(original_text="a", source_hash="h", format=Format.INLINE)

        assert first.id != second.id
        assert first.id.startswith("component-")


class TestErrors:
    """Tests for exception types."""

    def test_compile_error_at_offset(self):
        source = "line one\nline two\n  <oops"

        error = CompileError.at("Unterminated markup tag <oops>", source, source.index("<"))

        assert (error.line, error.column) == (3, 3)
        assert str(error) == "Unterminated markup tag <oops> (3:3)"

    def test_preparation_error_reference(self):
        error = PreparationError("disk full", reference="file:///tmp/x.mjs")

        assert error.message == "disk full"
        assert error.reference == "file:///tmp/x.mjs"

    def test_manifest_error_mentions_path(self):
        assert str(ManifestError("bad", "lib.yaml")) == "lib.yaml: bad"


class TestRuntimeBinding:
    """Tests for RuntimeBinding."""

    def test_lifecycle_error_detection(self):
        binding = RuntimeBinding()

        assert binding.is_lifecycle_error("Invalid hook call. Hooks can only be called ...")
        assert not binding.is_lifecycle_error("x is not defined")
        assert not binding.is_lifecycle_error(None)

    def test_primitives_include_common_hooks(self):
        primitives = RuntimeBinding().primitives

        assert {"useState", "useEffect", "useRef", "useMemo", "useCallback"} <= set(primitives)
