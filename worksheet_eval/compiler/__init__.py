"""Compiler backends and the driver that runs them."""

from .base import BaseCompiler
from .driver import CompilationDriver
from .javac_compiler import JavacCompiler, parse_javac_output
from .python_compiler import PythonCompiler, PythonCompilerSettings

from ..config import EvaluatorConfig


def create_compiler(config: EvaluatorConfig) -> BaseCompiler:
    """Return the compiler backend for a configuration's language."""
    if config.language == "java":
        return JavacCompiler(config.javac_command, timeout_sec=config.compile_timeout_sec)
    return PythonCompiler()


__all__ = [
    "BaseCompiler",
    "CompilationDriver",
    "JavacCompiler",
    "PythonCompiler",
    "PythonCompilerSettings",
    "create_compiler",
    "parse_javac_output",
]
