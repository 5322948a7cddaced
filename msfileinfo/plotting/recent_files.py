"""Bookkeeping of the image files written by the most recent save call."""

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import List, Optional


@dataclass(frozen=True)
class OutputFileInfo:
    file_type: Enum
    file_name: str
    file_path: Path


class RecentFiles:
    """Files written by the last save; cleared at the start of every save and on reset."""

    def __init__(self):
        self._files: List[OutputFileInfo] = []

    def add(self, file_path: Path, file_type: Enum):
        file_path = Path(file_path)
        self._files.append(OutputFileInfo(file_type, file_path.name, file_path))

    def get(self, file_type: Enum) -> Optional[OutputFileInfo]:
        """First file of the given type, or None if none was saved."""
        for info in self._files:
            if info.file_type == file_type:
                return info
        return None

    def clear(self):
        self._files.clear()

    def __iter__(self):
        return iter(self._files)

    def __len__(self) -> int:
        return len(self._files)
