"""Pipeline orchestrator for component ingestion.

This module provides the public entry point of kiln:
- ComponentPipeline.process_source: classify → (repair → transform)? →
  cache → validate → prepare, returning a PipelineResult

Pipeline failures never raise across the boundary. Compile errors and
preparation failures produce a failed result; classification ambiguity,
repair gaps and inconclusive validation are attached as warnings.

Concurrent calls for the same normalized source share one computation:
the first caller starts a task, later callers await the same task, and the
finished artifact is published to the cache in one piece.
"""

import asyncio
import dataclasses
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Tuple

from kiln import __version__
from kiln.core.cache import ArtifactCache
from kiln.core.config import (
    get_config_flag,
    get_config_mapping,
    get_config_value,
    load_config,
)
from kiln.core.errors import CompileError, PreparationError
from kiln.core.hashing import content_hash, normalize_source
from kiln.core.schema.artifact import (
    CompiledArtifact,
    Format,
    SourceArtifact,
    ValidationStatus,
)
from kiln.core.schema.diagnostic import (
    CLASSIFICATION_AMBIGUOUS,
    INTERNAL_ERROR,
    PREPARATION_FAILURE,
    REPAIR_INCOMPLETE,
    VALIDATION_INCONCLUSIVE,
    Diagnostic,
    compile_diagnostic,
)
from kiln.core.schema.runtime import RuntimeBinding
from kiln.jsx.classifier import classify_format, detect_format_signals
from kiln.jsx.imports import repair_imports
from kiln.jsx.transformer import transform
from kiln.runtime.preparer import ModulePreparer, extract_dependencies
from kiln.runtime.validator import ExecutionValidator

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PipelineOptions:
    """Per-call pipeline options.

    Attributes:
        use_cache: Read and write the artifact cache
        force_recompile: Ignore any cached artifact and recompute
        validate: Run the execution validator
    """

    use_cache: bool = True
    force_recompile: bool = False
    validate: bool = True

    @classmethod
    def from_config(cls, config: Optional[Dict[str, Any]] = None) -> "PipelineOptions":
        """Build default options from the ``pipeline`` section of kiln.json."""
        if config is None:
            config = load_config()
        return cls(
            use_cache=get_config_flag(["pipeline", "use_cache"], True, config),
            validate=get_config_flag(["pipeline", "validate"], True, config),
        )


@dataclass
class PipelineResult:
    """Result record handed to the rendering collaborator.

    Callers must check ``success``. On a compile error there is no artifact;
    on a preparation failure the artifact is still returned so the caller can
    fall back to loading its text directly.
    """

    success: bool
    artifact: Optional[CompiledArtifact] = None
    error: Optional[Diagnostic] = None
    warnings: List[Diagnostic] = field(default_factory=list)
    cache_hit: bool = False
    processing_time: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        """Convert result to dictionary format."""
        return {
            "success": self.success,
            "artifact": self.artifact.to_serializable() if self.artifact else None,
            "error": self.error.to_dict() if self.error else None,
            "warnings": [w.to_dict() for w in self.warnings],
            "cache_hit": self.cache_hit,
            "processing_time": self.processing_time,
        }


class ComponentPipeline:
    """Sequences the ingestion stages for every submitted source.

    The framework binding is supplied once and passed to the repairer,
    transformer and validator; the pipeline holds no global framework state.

    Example:
        >>> pipeline = ComponentPipeline()
        >>> result = asyncio.run(pipeline.process_source(
        ...     SourceArtifact("const Card = () => <div>hi</div>")))
        >>> result.success, result.artifact.component_name
        (True, 'Card')
    """

    def __init__(
        self,
        cache: Optional[ArtifactCache] = None,
        validator: Optional[ExecutionValidator] = None,
        preparer: Optional[ModulePreparer] = None,
        binding: Optional[RuntimeBinding] = None,
        compiler_version: str = __version__,
    ):
        """Initialize the pipeline.

        Args:
            cache: Artifact cache (default: in-memory cache)
            validator: Execution validator (default: QuickJS-backed, created
                on first use)
            preparer: Module preparer (default: temporary-directory preparer)
            binding: Framework runtime binding
            compiler_version: Version stamped on artifacts and cache files
        """
        self.binding = binding or RuntimeBinding()
        self.compiler_version = compiler_version
        self.cache = cache if cache is not None else ArtifactCache(compiler_version=compiler_version)
        self._validator = validator
        self.preparer = preparer or ModulePreparer()
        self._inflight: Dict[Tuple[str, bool, bool], "asyncio.Task[CompiledArtifact]"] = {}
        self.counters: Dict[str, int] = {
            "processed": 0,
            "cache_hits": 0,
            "coalesced": 0,
            "compilations": 0,
            "compile_errors": 0,
            "validation_inconclusive": 0,
            "preparation_failures": 0,
        }

    @classmethod
    def from_config(cls, config: Optional[Dict[str, Any]] = None) -> "ComponentPipeline":
        """Build a pipeline from kiln.json (or environment fallbacks).

        Reads ``cache.file``, ``cache.max_entries``, ``preparer.directory``,
        ``preparer.shims`` and ``runtime.package``.
        """
        if config is None:
            config = load_config()

        max_entries = get_config_value(["cache", "max_entries"], config=config)
        cache = ArtifactCache(
            file_path=get_config_value(["cache", "file"], config=config),
            compiler_version=__version__,
            max_entries=int(max_entries) if max_entries is not None else None,
        )
        binding = RuntimeBinding(
            package=get_config_value(["runtime", "package"], "react", config)
        )
        preparer = ModulePreparer(
            directory=get_config_value(["preparer", "directory"], config=config),
            shims=get_config_mapping(["preparer", "shims"], config),
        )
        return cls(cache=cache, preparer=preparer, binding=binding)

    @property
    def validator(self) -> ExecutionValidator:
        if self._validator is None:
            self._validator = ExecutionValidator(binding=self.binding)
        return self._validator

    async def process_source(
        self, source: SourceArtifact, options: Optional[PipelineOptions] = None
    ) -> PipelineResult:
        """Process one source fragment into a loadable artifact.

        Args:
            source: Submitted source
            options: Caching and validation options (default: PipelineOptions())

        Returns:
            PipelineResult; never raises for pipeline failures
        """
        options = options or PipelineOptions()
        start_time = time.time()
        self.counters["processed"] += 1
        warnings: List[Diagnostic] = []

        def finish(success: bool, **kwargs: Any) -> PipelineResult:
            return PipelineResult(
                success=success,
                warnings=warnings,
                processing_time=time.time() - start_time,
                **kwargs,
            )

        try:
            fmt, ambiguity = self._classify(source)
            if ambiguity is not None:
                warnings.append(ambiguity)

            key = content_hash(source.raw_text)
            artifact, cache_hit = await self._obtain(key, source, fmt, options)
            warnings.extend(artifact.warnings)

            if artifact.compile_error is not None:
                return finish(False, error=artifact.compile_error, cache_hit=cache_hit)

            try:
                prepared = await self.preparer.prepare(artifact)
            except PreparationError as e:
                self.counters["preparation_failures"] += 1
                logger.error(f"Preparation failed for {key}: {e.message}")
                error = Diagnostic(
                    code=PREPARATION_FAILURE,
                    message=e.message,
                    stage="prepare",
                    severity="error",
                    evidence={"reference": e.reference} if e.reference else {},
                )
                return finish(False, artifact=artifact, error=error, cache_hit=cache_hit)

            if prepared.module_reference is not None:
                artifact = dataclasses.replace(artifact, module_reference=prepared.module_reference)

            logger.info(
                f"Processed {source.name or key} as {fmt.value} "
                f"(cache_hit={cache_hit}, validation={artifact.validation_status.value})"
            )
            return finish(True, artifact=artifact, cache_hit=cache_hit)

        except Exception as e:
            logger.exception(f"Unexpected pipeline failure: {e}")
            error = Diagnostic(
                code=INTERNAL_ERROR,
                message=f"{type(e).__name__}: {e}",
                stage="pipeline",
                severity="error",
            )
            return finish(False, error=error)

    def _classify(self, source: SourceArtifact) -> Tuple[Format, Optional[Diagnostic]]:
        """Detect the source format and reconcile it with the declared one.

        The detected format always wins; a disagreeing declaration yields a
        ClassificationAmbiguous warning.
        """
        text = normalize_source(source.raw_text)
        detected = classify_format(text)
        if source.declared_format is None:
            return detected, None

        declared = Format(source.declared_format)
        if declared is detected:
            return detected, None

        logger.warning(
            f"Declared format '{declared.value}' disagrees with detected '{detected.value}'"
        )
        return detected, Diagnostic(
            code=CLASSIFICATION_AMBIGUOUS,
            message=(
                f"Declared format '{declared.value}' disagrees with detected "
                f"'{detected.value}'; processing as {detected.value}"
            ),
            stage="classify",
            evidence={
                "declared": declared.value,
                "detected": detected.value,
                "signals": detect_format_signals(text),
            },
        )

    async def _obtain(
        self, key: str, source: SourceArtifact, fmt: Format, options: PipelineOptions
    ) -> Tuple[CompiledArtifact, bool]:
        """Return (artifact, cache_hit), joining in-flight work for the key."""
        if options.use_cache and not options.force_recompile:
            cached = self.cache.lookup(key)
            unvalidated = (
                cached is not None
                and cached.succeeded
                and cached.validation_status is ValidationStatus.SKIPPED
            )
            if cached is not None and not (options.validate and unvalidated):
                self.counters["cache_hits"] += 1
                return cached, True

        flight = (key, options.validate, options.use_cache)
        task = self._inflight.get(flight)
        if task is None:
            task = asyncio.ensure_future(self._compile(key, source, fmt, options))
            self._inflight[flight] = task
            task.add_done_callback(lambda done: self._forget(flight, done))
        else:
            self.counters["coalesced"] += 1
            logger.debug(f"Joining in-flight compilation for {key}")

        # Shielded: a cancelled caller must not cancel work other callers await
        return await asyncio.shield(task), False

    def _forget(self, flight: Tuple[str, bool, bool], task: "asyncio.Task[CompiledArtifact]") -> None:
        if self._inflight.get(flight) is task:
            del self._inflight[flight]

    async def _compile(
        self, key: str, source: SourceArtifact, fmt: Format, options: PipelineOptions
    ) -> CompiledArtifact:
        """Run repair, transform and validation for one hash.

        Only one of these runs per in-flight key. The artifact is stored in
        the cache once complete, including compile-error artifacts.
        """
        self.counters["compilations"] += 1
        logger.info(f"Compiling {source.name or key} as {fmt.value}")

        warnings: List[Diagnostic] = []
        code = source.raw_text
        dependencies: Tuple[str, ...] = ()

        if fmt is Format.INLINE:
            repair = repair_imports(code, self.binding)
            if repair.unresolved:
                warnings.append(
                    Diagnostic(
                        code=REPAIR_INCOMPLETE,
                        message=(
                            "Referenced identifiers are not known framework primitives "
                            f"and were left unrepaired: {', '.join(repair.unresolved)}"
                        ),
                        stage="repair",
                        evidence={"identifiers": list(repair.unresolved)},
                    )
                )
            code = repair.code
        else:
            dependencies = tuple(extract_dependencies(code))

        base = dict(
            original_text=source.raw_text,
            source_hash=key,
            format=fmt,
            origin_kind=source.origin_kind,
            dependencies=dependencies,
            compiler_version=self.compiler_version,
        )

        try:
            result = transform(code, fmt, self.binding)
        except CompileError as e:
            self.counters["compile_errors"] += 1
            logger.warning(f"Compile error for {source.name or key}: {e}")
            artifact = CompiledArtifact(
                compile_error=compile_diagnostic(e.message, e.line, e.column),
                warnings=tuple(warnings),
                **base,
            )
            self._store(key, artifact, options)
            return artifact

        status = ValidationStatus.SKIPPED
        if options.validate:
            validation = self.validator.validate(result.code, fmt)
            if validation.valid:
                status = ValidationStatus.PASSED
            else:
                status = ValidationStatus.INCONCLUSIVE
                self.counters["validation_inconclusive"] += 1
                logger.warning(f"Validation inconclusive for {source.name or key}: {validation.reason}")
                evidence: Dict[str, Any] = {
                    "expected": validation.expected,
                    "component_detected": validation.component_detected,
                    "phase": validation.phase,
                }
                evidence.update(validation.details)
                warnings.append(
                    Diagnostic(
                        code=VALIDATION_INCONCLUSIVE,
                        message=validation.reason or "Validation did not pass",
                        stage="validate",
                        evidence=evidence,
                    )
                )

        # Module source passes through untouched; it loads from original_text
        transformed = result.code if fmt is Format.INLINE else None
        artifact = CompiledArtifact(
            transformed_text=transformed,
            transformed_hash=content_hash(transformed) if transformed else None,
            component_name=result.component_name,
            validation_status=status,
            warnings=tuple(warnings),
            **base,
        )
        self._store(key, artifact, options)
        return artifact

    def _store(self, key: str, artifact: CompiledArtifact, options: PipelineOptions) -> None:
        if not options.use_cache:
            return
        if artifact.validation_status is ValidationStatus.SKIPPED and artifact.succeeded and key in self.cache:
            logger.debug(f"Keeping existing cache entry for {key} over unvalidated artifact")
            return
        self.cache.store(key, artifact)

    async def warm_cache(
        self, sources: Iterable[SourceArtifact], options: Optional[PipelineOptions] = None
    ) -> int:
        """Process many sources concurrently to populate the cache.

        Never raises for individual failures.

        Returns:
            Number of sources that processed successfully
        """
        sources = list(sources)
        logger.info(f"Warming cache with {len(sources)} components")
        results = await asyncio.gather(*(self.process_source(s, options) for s in sources))
        succeeded = sum(1 for r in results if r.success)
        logger.info(f"Cache warm complete: {succeeded}/{len(sources)} succeeded")
        return succeeded

    def release(self, result: PipelineResult) -> bool:
        """Release the module reference held by a result, if any."""
        if result.artifact is None or result.artifact.module_reference is None:
            return False
        return self.preparer.release(result.artifact.module_reference)

    def close(self) -> None:
        """Release every module reference and persist the cache."""
        self.preparer.release_all()
        self.cache.save()

    def stats(self) -> Dict[str, Any]:
        """Pipeline counters merged with cache statistics."""
        stats: Dict[str, Any] = dict(self.counters)
        stats["inflight"] = len(self._inflight)
        stats["live_module_references"] = self.preparer.live_references
        stats["cache"] = self.cache.stats()
        return stats
