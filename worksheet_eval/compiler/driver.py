"""
CompilationDriver - builds compiler arguments from the project configuration
and runs a compiler backend against one materialized source file.
"""

import logging
from pathlib import Path
from typing import Sequence

from .base import BaseCompiler
from ..config import EvaluatorConfig
from ..models import CompilationReport, join_classpath

logger = logging.getLogger(__name__)


class CompilationDriver:
    """Runs a compiler backend with arguments derived from an EvaluatorConfig."""

    def __init__(self, compiler: BaseCompiler, config: EvaluatorConfig):
        self.compiler = compiler
        self.config = config

    def build_arguments(
        self,
        source_path: Path,
        extra_arguments: Sequence[str] = (),
        classpath_entries: Sequence[str] = (),
    ) -> list[str]:
        """
        Build the full compiler argument list.

        Order: classpath, output directory, configured compiler options,
        ``extra_arguments``, and the source path last.
        """
        args: list[str] = []

        classpath = list(classpath_entries) + list(self.config.compiler_classpath)
        if classpath:
            args.extend(["-cp", join_classpath(classpath)])

        if self.config.output_directory:
            args.extend(["-d", self.config.output_directory])

        args.extend(self.config.compiler_arguments)
        args.extend(extra_arguments)
        args.append(str(source_path))
        return args

    def compile(
        self,
        source_path: Path,
        extra_arguments: Sequence[str] = (),
        classpath_entries: Sequence[str] = (),
    ) -> CompilationReport:
        """
        Compile one source file.

        Compile errors come back as diagnostics on the report; only a
        compiler that cannot be run raises CompilerInvocationError.
        """
        args = self.build_arguments(source_path, extra_arguments, classpath_entries)
        logger.debug("Compilation arguments: %s", args)

        report = self.compiler.run(args)

        logger.debug(
            "Compiled %s with %d diagnostics (errors: %s)",
            source_path, len(report.diagnostics), report.has_errors,
        )
        return report
