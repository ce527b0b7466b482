from __future__ import annotations

__all__ = [
    "address_space",
    "cache",
    "debug_log",
    "errors",
    "geom",
    "largo",
    "reader",
    "writer",
]
