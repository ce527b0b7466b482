from __future__ import annotations

import pytest

from largomap.linked_list import ListHeader, ListKind, read_list_header, walk_list
from memdump.debug_log import capture_load_events
from memdump.errors import FormatError
from memdump.writer import ImageWriter

from conftest import ORIGINS, context_for


def _chain(count: int) -> tuple[ImageWriter, list]:
    w = ImageWriter("lvl", origins=ORIGINS)
    nodes = [w.alloc(8) for _ in range(count)]
    for node, nxt in zip(nodes, [*nodes[1:], None]):
        with w.at(node):
            w.pointer(nxt)
            w.u32(0)
    return w, nodes


def test_walk_stops_at_null_and_logs_count_mismatch() -> None:
    w, nodes = _chain(4)
    ctx = context_for(w)
    header = ListHeader(first=nodes[0], last=None, count=5)

    with capture_load_events() as events:
        walk = walk_list(ctx.space, header, name="families")

    assert list(walk) == nodes
    assert walk.count_mismatch
    assert walk.declared_count == 5
    mismatches = [e for e in events if e.event == "list_count_mismatch"]
    assert len(mismatches) == 1
    assert mismatches[0].fields["declared"] == 5
    assert mismatches[0].fields["walked"] == 4
    assert mismatches[0].fields["list"] == "families"


def test_declared_last_wins_over_larger_count() -> None:
    # The chain keeps going past the declared last node.
    w, nodes = _chain(6)
    ctx = context_for(w)
    header = ListHeader(first=nodes[0], last=nodes[3], count=5)

    with capture_load_events() as events:
        walk = walk_list(ctx.space, header, name="families")

    assert list(walk) == nodes[:4]
    assert len(walk) == 4
    assert walk.count_mismatch
    (mismatch,) = [e for e in events if e.event == "list_count_mismatch"]
    assert (mismatch.fields["declared"], mismatch.fields["walked"]) == (5, 4)
    assert mismatch.fields["last"] == nodes[3]


def test_walk_stops_after_declared_last() -> None:
    w, nodes = _chain(4)
    ctx = context_for(w)
    walk = walk_list(ctx.space, ListHeader(first=nodes[0], last=nodes[1], count=2))
    assert list(walk) == nodes[:2]
    assert not walk.count_mismatch


def test_walk_honours_next_offset() -> None:
    w = ImageWriter("lvl", origins=ORIGINS)
    nodes = [w.alloc(0x18) for _ in range(3)]
    for node, nxt in zip(nodes, [*nodes[1:], None]):
        with w.at(node + 0x14):
            w.pointer(nxt)
    ctx = context_for(w)
    walk = walk_list(ctx.space, ListHeader(first=nodes[0], last=nodes[2], count=3), next_offset=0x14)
    assert len(walk) == 3


def test_cycle_is_a_format_error() -> None:
    w, nodes = _chain(3)
    with w.at(nodes[2]):
        w.pointer(nodes[0])
    ctx = context_for(w)
    with pytest.raises(FormatError, match="loops back"):
        walk_list(ctx.space, ListHeader(first=nodes[0], last=None, count=3))


def test_empty_list() -> None:
    w, _ = _chain(1)
    ctx = context_for(w)
    walk = walk_list(ctx.space, ListHeader(first=None, last=None, count=0))
    assert len(walk) == 0
    assert not walk.count_mismatch


def test_read_list_header_single_has_no_last() -> None:
    w, nodes = _chain(2)
    head = w.alloc(12)
    with w.at(head):
        w.pointer(nodes[0])
        w.pointer(nodes[1])
        w.u32(2)
    ctx = context_for(w)

    double = read_list_header(ctx.cursor(head), ListKind.DOUBLE)
    assert (double.first, double.last, double.count) == (nodes[0], nodes[1], 2)

    single = read_list_header(ctx.cursor(head), ListKind.SINGLE)
    assert single.last is None
    assert single.kind is ListKind.SINGLE
