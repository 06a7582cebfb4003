"""File collection utilities for upload jobs."""
from pathlib import Path
from typing import Iterable, List

from ..models import FileDescriptor


class FileCollector:
    """Turns user supplied paths into ordered file descriptors."""

    @staticmethod
    def collect_files(folder: Path) -> List[Path]:
        """
        Collect all regular files recursively, skipping hidden ones.

        Args:
            folder: Root folder to scan

        Returns:
            Sorted list of file paths
        """
        files = []
        for item in folder.rglob("*"):
            rel_parts = item.relative_to(folder).parts
            if any(part.startswith(".") for part in rel_parts):
                continue
            if item.is_file():
                files.append(item)
        return sorted(files)

    @classmethod
    def collect(cls, paths: Iterable[Path]) -> List[FileDescriptor]:
        """
        Build descriptors, keeping argument order; folders expand in place.

        Raises:
            FileNotFoundError: if a path does not exist
        """
        descriptors = []
        for raw in paths:
            path = Path(raw).expanduser()
            if path.is_dir():
                descriptors.extend(FileDescriptor.from_path(p) for p in cls.collect_files(path))
            elif path.is_file():
                descriptors.append(FileDescriptor.from_path(path))
            else:
                raise FileNotFoundError(f"source does not exist: {path}")
        return descriptors
