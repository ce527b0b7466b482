from __future__ import annotations

from collections.abc import Mapping
from pathlib import Path
from typing import Protocol

from .settings import FileCase

# Logical archive component names requested by the loader.
FIX_LVL = "fix.lvl"
FIX_PTR = "fix.ptr"
FIX_PBT = "fix.pbt"
LVL_LVL = "lvl.lvl"
LVL_PTR = "lvl.ptr"
LVL_PBT = "lvl.pbt"

COMPONENTS = (FIX_LVL, FIX_PTR, FIX_PBT, LVL_LVL, LVL_PTR, LVL_PBT)


class FileProvider(Protocol):
    def read(self, name: str) -> bytes | None: ...


class MemoryProvider:
    def __init__(self, files: Mapping[str, bytes]) -> None:
        self._files = dict(files)

    def read(self, name: str) -> bytes | None:
        return self._files.get(name)


class DirectoryProvider:
    """Game data folder laid out as `Fix/Fix.*` and `<Level>/<Level>.*`."""

    def __init__(
        self,
        game_data_dir: str | Path,
        level: str,
        *,
        folder_case: FileCase = FileCase.AS_IS,
        file_case: FileCase = FileCase.AS_IS,
    ) -> None:
        level = str(level).strip()
        if not level:
            raise ValueError("no level name specified")
        self.root = Path(game_data_dir)
        self.level = level
        self.folder_case = folder_case
        self.file_case = file_case

    def path_for(self, name: str) -> Path:
        stem, _, ext = name.partition(".")
        if stem == "fix":
            folder, base = "Fix", "Fix"
        elif stem == "lvl":
            folder, base = self.level, self.level
        else:
            raise KeyError(name)
        return self.root / self.folder_case.apply(folder) / self.file_case.apply(f"{base}.{ext}")

    def read(self, name: str) -> bytes | None:
        path = self.path_for(name)
        if not path.is_file():
            return None
        return path.read_bytes()


__all__ = [
    "COMPONENTS",
    "DirectoryProvider",
    "FIX_LVL",
    "FIX_PBT",
    "FIX_PTR",
    "FileProvider",
    "LVL_LVL",
    "LVL_PBT",
    "LVL_PTR",
    "MemoryProvider",
]
