"""
In-memory output location for compiled artifacts.

Compilers write here when no ``-d`` output directory is given. A child
runtime cannot read process memory, so the Evaluator exports the contents
into a short-lived real directory before execution.
"""

from pathlib import Path, PurePosixPath
from typing import Iterator


class VirtualDirectory:
    """A flat mapping of relative posix paths to file contents."""

    def __init__(self, name: str = "(memory)"):
        self.name = name
        self._files: dict[str, bytes] = {}

    def write(self, relative_path: str, data: bytes) -> None:
        self._files[self._normalize(relative_path)] = bytes(data)

    def read(self, relative_path: str) -> bytes:
        return self._files[self._normalize(relative_path)]

    def __contains__(self, relative_path: str) -> bool:
        return self._normalize(relative_path) in self._files

    def __iter__(self) -> Iterator[str]:
        return iter(sorted(self._files))

    def __len__(self) -> int:
        return len(self._files)

    def __repr__(self) -> str:
        return f"VirtualDirectory({self.name!r}, files={len(self)})"

    def export(self, root: Path) -> Path:
        """
        Write every file below ``root``, creating directories as needed.

        Returns:
            The root directory, ready to be used as a classpath entry
        """
        root = Path(root)
        for relative_path, data in self._files.items():
            target = root.joinpath(*PurePosixPath(relative_path).parts)
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(data)
        return root

    @classmethod
    def from_directory(cls, root: Path, name: str = "(memory)") -> "VirtualDirectory":
        """Load every regular file below ``root`` into a new VirtualDirectory."""
        root = Path(root)
        vdir = cls(name)
        for path in sorted(root.rglob("*")):
            if path.is_file():
                vdir.write(path.relative_to(root).as_posix(), path.read_bytes())
        return vdir

    @staticmethod
    def _normalize(relative_path: str) -> str:
        path = PurePosixPath(str(relative_path).replace("\\", "/"))
        if path.is_absolute() or ".." in path.parts:
            raise ValueError(f"Not a relative path inside the directory: {relative_path}")
        return path.as_posix()
