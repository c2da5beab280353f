"""
Base compiler interface.

All compiler backends inherit from this class and implement run().
"""

from abc import ABC, abstractmethod
from typing import Sequence

from ..models import CompilationReport


class BaseCompiler(ABC):
    """
    Base class for compiler backends.

    Backends compile a single instrumented source file:
    - PythonCompiler: CPython bytecode compiler, in-process
    - JavacCompiler: javac, as a subprocess

    Every run() call parses its own argument list; backends keep no
    per-compilation state between calls.
    """

    name: str = "base"
    source_extension: str = ""

    @abstractmethod
    def run(self, arguments: Sequence[str]) -> CompilationReport:
        """
        Compile the source file named by the last positional argument.

        Args:
            arguments: Compiler options followed by the source path

        Returns:
            CompilationReport with every diagnostic, in emission order

        Raises:
            CompilerInvocationError: if the compiler could not be run at all
        """
        pass

    def entry_point_arguments(self, entry_point: str) -> list[str]:
        """Options telling the compiler what the entry point is called."""
        return []
