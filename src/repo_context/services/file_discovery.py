"""
File Discovery Service

Breadth-first walk of an indexed root that yields candidate files.

- Infrastructure directories (VCS metadata, dependency and build output,
  the engine's own rag directory) are never entered.
- Only files whose extension is in the allow-list are returned.
- Discovery stops at max_files; files past the cap are never seen.
- Unreadable directories are skipped.
"""

import os
from collections import deque
from pathlib import Path
from typing import FrozenSet, Iterable, List

from ..logging_config import configure_logger_for_debug_trace
from .index_types import CandidateFile

logger = configure_logger_for_debug_trace(__name__)

IGNORED_DIRECTORIES = frozenset({
    ".git",
    "node_modules",
    "build",
    "dist",
    ".next",
    "__pycache__",
    ".venv",
})


class FileDiscovery:
    """
    Discovers candidate files under one root.

    Attributes:
        root: Directory being indexed
        extensions: Allowed file extensions (with leading dot)
        max_files: Hard cap on the number of returned files
    """

    def __init__(
        self,
        root: Path,
        extensions: Iterable[str],
        max_files: int = 1000,
        rag_dir_name: str = ".rag",
    ):
        self.root = Path(root)
        self.extensions: FrozenSet[str] = frozenset(e.lower() for e in extensions)
        self.max_files = max_files
        self.ignored_directories: FrozenSet[str] = IGNORED_DIRECTORIES | {rag_dir_name}

    def discover(self) -> List[CandidateFile]:
        """
        Walk the root breadth-first and collect candidate files.

        Directory entries are visited in name order so the same tree always
        yields the same list.

        Returns:
            Candidate files in discovery order, at most max_files of them.
        """
        results: List[CandidateFile] = []
        queue = deque([self.root])

        while queue and len(results) < self.max_files:
            current = queue.popleft()
            try:
                with os.scandir(current) as it:
                    entries = sorted(it, key=lambda e: e.name)
            except OSError as e:
                logger.debug(f"[Discovery] Skipping unreadable directory {current}: {e}")
                continue

            for entry in entries:
                if len(results) >= self.max_files:
                    break

                try:
                    if entry.is_dir(follow_symlinks=False):
                        if entry.name not in self.ignored_directories:
                            queue.append(Path(entry.path))
                        continue
                    if not entry.is_file():
                        continue
                except OSError:
                    continue

                if os.path.splitext(entry.name)[1].lower() not in self.extensions:
                    continue

                absolute_path = Path(entry.path)
                results.append(CandidateFile(
                    absolute_path=absolute_path,
                    relative_path=absolute_path.relative_to(self.root).as_posix(),
                ))

        logger.debug(f"[Discovery] Found {len(results)} candidate files under {self.root}")
        return results
