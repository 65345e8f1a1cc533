"""kiln CLI - Command-line interface for the component ingestion pipeline.

This module provides developer tooling around the pipeline: compiling a
single component file and warming a persistent cache from a library
manifest.
"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

from kiln.core.cache import ArtifactCache
from kiln.core.config import load_config
from kiln.core.errors import ManifestError
from kiln.core.pipeline import ComponentPipeline, PipelineOptions
from kiln.core.schema.artifact import Format, OriginKind, SourceArtifact
from kiln.library.manifest import load_manifest

logger = logging.getLogger(__name__)


def main(argv=None):
    """Main CLI entrypoint for kiln."""
    parser = argparse.ArgumentParser(
        prog="kiln",
        description="kiln - component source ingestion pipeline",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Compile an inline component and print the result
  kiln compile card.jsx

  # Full result record as JSON, without execution validation
  kiln compile card.jsx --json --no-validate

  # Write the loadable code next to the source
  kiln compile card.jsx --out card.compiled.js

  # Pre-compile a component library into a persistent cache
  kiln warm library/manifest.yaml --cache .kiln-cache.json

Note:
  Defaults are read from kiln.json ({"cache": {"file": ...}, "pipeline": {...}}).
"""
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    # Compile command
    compile_parser = subparsers.add_parser(
        "compile",
        help="Run one component file through the pipeline"
    )
    compile_parser.add_argument(
        "input",
        help="Path to component source"
    )
    compile_parser.add_argument(
        "--format",
        choices=[f.value for f in Format],
        help="Declared source format (default: detect)"
    )
    compile_parser.add_argument(
        "--origin",
        choices=[o.value for o in OriginKind],
        default=OriginKind.USER_UPLOAD.value,
        help="Origin of the source (default: user-upload)"
    )
    compile_parser.add_argument(
        "--no-validate",
        action="store_true",
        help="Skip execution validation"
    )
    compile_parser.add_argument(
        "--cache",
        help="Path to artifact cache file (default: from kiln.json or none)"
    )
    compile_parser.add_argument(
        "--out",
        help="Write the loadable code to this file"
    )
    compile_parser.add_argument(
        "--json",
        action="store_true",
        help="Print the full result record as JSON"
    )
    compile_parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Verbose output"
    )

    # Warm command
    warm_parser = subparsers.add_parser(
        "warm",
        help="Pre-compile every component listed in a library manifest"
    )
    warm_parser.add_argument(
        "manifest",
        help="Path to manifest YAML"
    )
    warm_parser.add_argument(
        "--cache",
        help="Path to artifact cache file (default: from kiln.json)"
    )
    warm_parser.add_argument(
        "--no-validate",
        action="store_true",
        help="Skip execution validation"
    )
    warm_parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Verbose output"
    )

    args = parser.parse_args(argv)

    # Setup logging
    if hasattr(args, 'verbose') and args.verbose:
        logging.basicConfig(level=logging.INFO, format='%(levelname)s: %(message)s')
    else:
        logging.basicConfig(level=logging.WARNING, format='%(levelname)s: %(message)s')

    # Handle commands
    if args.command == "compile":
        return cmd_compile(args)
    elif args.command == "warm":
        return cmd_warm(args)
    else:
        parser.print_help()
        return 1


def _build_pipeline(cache_path):
    """Build a pipeline from kiln.json, overriding the cache file if given."""
    pipeline = ComponentPipeline.from_config()
    if cache_path:
        pipeline.cache = ArtifactCache(
            file_path=cache_path,
            compiler_version=pipeline.compiler_version,
            max_entries=pipeline.cache.max_entries,
        )
    return pipeline


def cmd_compile(args):
    """Handle compile command."""
    input_path = Path(args.input)

    if not input_path.exists():
        print(f"Error: Input file not found: {input_path}", file=sys.stderr)
        return 1

    source = SourceArtifact(
        raw_text=input_path.read_text(encoding="utf-8"),
        declared_format=Format(args.format) if args.format else None,
        origin_kind=OriginKind(args.origin),
        name=input_path.name,
    )
    defaults = PipelineOptions.from_config(load_config())
    options = PipelineOptions(
        use_cache=defaults.use_cache,
        validate=defaults.validate and not args.no_validate,
    )

    pipeline = _build_pipeline(args.cache)
    try:
        result = asyncio.run(pipeline.process_source(source, options))
    finally:
        pipeline.close()

    if args.json:
        print(json.dumps(result.to_dict(), indent=2))
    else:
        artifact = result.artifact
        print(f"Source: {input_path}")
        if artifact is not None:
            print(f"Format: {artifact.format.value}")
            print(f"Component: {artifact.component_name or '-'}")
            print(f"Validation: {artifact.validation_status.value}")
            if artifact.dependencies:
                print(f"Dependencies: {', '.join(artifact.dependencies)}")
        print(f"Cache: {'HIT' if result.cache_hit else 'MISS'}")
        for warning in result.warnings:
            print(f"  ⚠ {warning.code}: {warning.message}")
        if result.error is not None:
            location = ""
            if "line" in result.error.evidence:
                location = f" (line {result.error.evidence['line']}, column {result.error.evidence['column']})"
            print(f"\n❌ {result.error.code}: {result.error.message}{location}")

    if result.artifact is not None and args.out:
        Path(args.out).write_text(result.artifact.loadable_text or "", encoding="utf-8")
        if not args.json:
            print(f"Wrote loadable code to: {args.out}")

    return 0 if result.success else 1


def cmd_warm(args):
    """Handle warm command."""
    try:
        sources = load_manifest(args.manifest)
    except ManifestError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    pipeline = _build_pipeline(args.cache)
    options = PipelineOptions(validate=not args.no_validate)
    print(f"Warming cache with {len(sources)} components from {args.manifest}")

    try:
        succeeded = asyncio.run(pipeline.warm_cache(sources, options))
    finally:
        pipeline.close()

    stats = pipeline.stats()
    print(f"Compiled: {succeeded}/{len(sources)}")
    print(f"Compile errors: {stats['compile_errors']}")
    print(f"Validation inconclusive: {stats['validation_inconclusive']}")
    print(f"Cache entries: {stats['cache']['size']}")
    if pipeline.cache.file_path:
        print(f"Cache file: {pipeline.cache.file_path}")
    return 0 if succeeded == len(sources) else 1


if __name__ == "__main__":
    sys.exit(main())
