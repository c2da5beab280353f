#!/usr/bin/env python3
"""
CLI for the worksheet evaluator.

Usage:
    worksheet-eval run Main.instrumented.py --entry demo.Main
    worksheet-eval run Sheet.java --entry demo.Sheet --language java --classpath lib/a.jar
    worksheet-eval compile Main.instrumented.py --entry demo.Main
    worksheet-eval config --language java
"""

import argparse
import json
import logging
import sys
from pathlib import Path

from pydantic import ValidationError

from .compiler import CompilationDriver, create_compiler
from .config import EvaluatorConfig
from .errors import CompilerInvocationError, MaterializationError
from .evaluator import Evaluator
from .materializer import SourceMaterializer
from .models import CompileFailure, EvaluationRequest, ExecutionFailure, FailureKind, Success
from .renderer import OutcomeRenderer

EXIT_SUCCESS = 0
EXIT_COMPILE_FAILURE = 1
EXIT_EXECUTION_FAILURE = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="worksheet-eval",
        description="Compile and run instrumented worksheet source",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    subparsers = parser.add_subparsers(dest="command", help="Commands")

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--config",
        help="JSON file with EvaluatorConfig fields",
    )
    common.add_argument(
        "--language",
        choices=["python", "java"],
        help="Compiler backend (default: python)",
    )
    common.add_argument(
        "--output-dir",
        help="Compiler output directory (default: in memory)",
    )
    common.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Debug logging",
    )

    # === RUN command ===
    run_parser = subparsers.add_parser("run", parents=[common], help="Compile and run a worksheet")
    _add_source_arguments(run_parser)
    run_parser.add_argument(
        "--cwd",
        default=".",
        help="Working directory of the child process (default: current directory)",
    )
    run_parser.add_argument(
        "--timeout", "-t",
        type=float,
        help="Kill the program after this many seconds",
    )
    run_parser.add_argument(
        "--json",
        action="store_true",
        help="Print the outcome as JSON",
    )

    # === COMPILE command ===
    compile_parser = subparsers.add_parser("compile", parents=[common], help="Only compile a worksheet")
    _add_source_arguments(compile_parser)

    # === CONFIG command ===
    subparsers.add_parser("config", parents=[common], help="Show the effective configuration")

    return parser


def _add_source_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("source", help="File containing the instrumented source")
    parser.add_argument(
        "--entry", "-e", required=True,
        help="Fully qualified entry point name (e.g., demo.Main)",
    )
    parser.add_argument(
        "--classpath", "-cp",
        action="append",
        default=[],
        help="Classpath entry (repeatable)",
    )


def load_config(args) -> EvaluatorConfig:
    """Build the configuration from --config and command line overrides."""
    config = EvaluatorConfig.from_file(args.config) if args.config else EvaluatorConfig()
    overrides = {}
    if args.language:
        overrides["language"] = args.language
    if args.output_dir:
        overrides["output_directory"] = args.output_dir
    if getattr(args, "timeout", None):
        overrides["timeout_sec"] = args.timeout
    if overrides:
        config = EvaluatorConfig.model_validate({**config.model_dump(), **overrides})
    return config


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 1

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        config = load_config(args)
    except (OSError, ValidationError) as e:
        print(f"Error: invalid configuration: {e}", file=sys.stderr)
        return EXIT_EXECUTION_FAILURE

    if args.command == "run":
        return cmd_run(args, config)
    elif args.command == "compile":
        return cmd_compile(args, config)
    elif args.command == "config":
        print(config.to_json())
        return EXIT_SUCCESS

    parser.print_help()
    return 1


def cmd_run(args, config: EvaluatorConfig) -> int:
    """Evaluate a worksheet and print its output."""
    try:
        source = Path(args.source).read_text(encoding="utf-8")
    except OSError as e:
        print(f"Error: cannot read {args.source}: {e}", file=sys.stderr)
        return EXIT_EXECUTION_FAILURE

    request = EvaluationRequest(
        entry_point=args.entry,
        instrumented_source=source,
        classpath_entries=tuple(args.classpath),
        working_directory=Path(args.cwd).resolve(),
    )
    outcome = Evaluator(config).evaluate(request)

    if args.json:
        print(json.dumps(outcome.to_dict(), indent=2))
    elif isinstance(outcome, Success):
        sys.stdout.write(outcome.output)
    else:
        print(OutcomeRenderer().render(outcome), file=sys.stderr)

    if isinstance(outcome, Success):
        return EXIT_SUCCESS
    if isinstance(outcome, CompileFailure):
        return EXIT_COMPILE_FAILURE
    return EXIT_EXECUTION_FAILURE


def cmd_compile(args, config: EvaluatorConfig) -> int:
    """Compile a worksheet and print its diagnostics."""
    compiler = create_compiler(config)
    materializer = SourceMaterializer(compiler.source_extension, config.source_directory)
    driver = CompilationDriver(compiler, config)

    try:
        source = Path(args.source).read_text(encoding="utf-8")
        materialized = materializer.materialize(args.entry, source)
        report = driver.compile(
            materialized.file_path,
            extra_arguments=compiler.entry_point_arguments(args.entry),
            classpath_entries=args.classpath,
        )
    except OSError as e:
        outcome = ExecutionFailure(f"Cannot read {args.source}: {e}", FailureKind.IO)
    except MaterializationError as e:
        outcome = ExecutionFailure(str(e), FailureKind.IO)
    except CompilerInvocationError as e:
        outcome = ExecutionFailure(str(e), FailureKind.COMPILER_INVOCATION)
    else:
        if not report.has_errors:
            for diagnostic in report.diagnostics:
                position = f"{diagnostic.position}:" if diagnostic.position else ""
                print(f"{materialized.file_path.name}:{position} {diagnostic.severity.value}: {diagnostic.message}")
            print(f"Compiled {materialized.file_path.name}")
            return EXIT_SUCCESS
        outcome = CompileFailure(report)

    print(OutcomeRenderer().render(outcome), file=sys.stderr)
    if isinstance(outcome, CompileFailure):
        return EXIT_COMPILE_FAILURE
    return EXIT_EXECUTION_FAILURE


if __name__ == "__main__":
    sys.exit(main())
