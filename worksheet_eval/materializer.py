"""Write instrumented source to a file the compiler can read."""

import logging
from pathlib import Path
from typing import Sequence

from .errors import MaterializationError
from .models import MaterializedSource, simple_name

logger = logging.getLogger(__name__)


class SourceMaterializer:
    """
    Writes ``<SimpleName>$instrumented.<ext>`` for an entry point.

    The file is overwritten on every call and never deleted here. Two
    evaluations sharing a simple name share the file, so callers must
    serialize them (the Evaluator holds a lock per name).
    """

    SUFFIX = "$instrumented"

    def __init__(self, extension: str, directory: Path | str | None = None):
        self.extension = extension.lstrip(".")
        self.directory = Path(directory) if directory is not None else None

    def source_path(self, entry_point: str) -> Path:
        """Where the source for ``entry_point`` is written."""
        name = simple_name(entry_point)
        if not name:
            raise MaterializationError(f"Cannot derive a file name from entry point {entry_point!r}")
        directory = self.directory if self.directory is not None else Path.cwd()
        return directory / f"{name}{self.SUFFIX}.{self.extension}"

    def materialize(self, entry_point: str, source: str | Sequence[str]) -> MaterializedSource:
        """
        Write the instrumented source to disk.

        Args:
            entry_point: Fully qualified name of the entry point
            source: Instrumented source as a string or sequence of characters

        Returns:
            MaterializedSource pointing at the written file

        Raises:
            MaterializationError: if the file cannot be created or written
        """
        path = self.source_path(entry_point)
        text = source if isinstance(source, str) else "".join(source)

        # Encode first so unencodable source never truncates the previous file
        try:
            data = text.encode("utf-8")
        except UnicodeError as e:
            raise MaterializationError(f"Could not encode source for {path}: {e}") from e

        try:
            path.write_bytes(data)
        except OSError as e:
            raise MaterializationError(f"Could not write {path}: {e}") from e

        logger.debug("Wrote instrumented source %s (%d chars)", path, len(text))
        return MaterializedSource(file_path=path, entry_simple_name=simple_name(entry_point))
