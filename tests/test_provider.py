from __future__ import annotations

from pathlib import Path

import pytest

from largomap.provider import FIX_LVL, LVL_PBT, LVL_PTR, DirectoryProvider, MemoryProvider
from largomap.settings import FileCase


def test_memory_provider_returns_none_for_missing() -> None:
    provider = MemoryProvider({FIX_LVL: b"fix"})
    assert provider.read(FIX_LVL) == b"fix"
    assert provider.read(LVL_PBT) is None


def test_directory_provider_paths(tmp_path: Path) -> None:
    provider = DirectoryProvider(tmp_path, "Jungle")
    assert provider.path_for(FIX_LVL) == tmp_path / "Fix" / "Fix.lvl"
    assert provider.path_for(LVL_PTR) == tmp_path / "Jungle" / "Jungle.ptr"


def test_directory_provider_applies_case(tmp_path: Path) -> None:
    provider = DirectoryProvider(tmp_path, "Jungle", folder_case=FileCase.LOWER, file_case=FileCase.UPPER)
    assert provider.path_for(LVL_PTR) == tmp_path / "jungle" / "JUNGLE.PTR"


def test_directory_provider_reads_files(tmp_path: Path) -> None:
    (tmp_path / "Fix").mkdir()
    (tmp_path / "Fix" / "Fix.lvl").write_bytes(b"\x01\x02")
    provider = DirectoryProvider(tmp_path, "Jungle")
    assert provider.read(FIX_LVL) == b"\x01\x02"
    assert provider.read(LVL_PTR) is None


def test_blank_level_rejected(tmp_path: Path) -> None:
    with pytest.raises(ValueError):
        DirectoryProvider(tmp_path, "  ")
