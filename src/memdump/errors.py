from __future__ import annotations


class DumpError(ValueError):
    pass


class UnmappedAddressError(DumpError):
    def __init__(self, address: int, message: str | None = None) -> None:
        self.address = int(address)
        super().__init__(message or f"address 0x{self.address:08X} is not inside any registered region")


class OutOfBoundsError(DumpError):
    pass


class CorruptArchiveError(DumpError):
    pass


class FormatError(DumpError):
    pass


class DuplicateRegionError(DumpError):
    pass


class RegionOverlapError(DumpError):
    pass


__all__ = [
    "CorruptArchiveError",
    "DumpError",
    "DuplicateRegionError",
    "FormatError",
    "OutOfBoundsError",
    "RegionOverlapError",
    "UnmappedAddressError",
]
