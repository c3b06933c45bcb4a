import pytest

from rawalloc.alloc import DefaultAlloc, Heap
from rawalloc.errors import CannotResizeInPlace
from rawalloc.in_place import ResizeInPlace
from rawalloc.layout import Layout

SLACK = 16


class SlackAlloc(ResizeInPlace, DefaultAlloc):
    """Reserves SLACK bytes per block so blocks up to that size never move."""

    def __init__(self):
        super().__init__(Heap())
        self.grow_calls = 0
        self.shrink_calls = 0

    def _reserved(self, layout):
        return Layout(max(layout.size, SLACK), layout.align)

    def alloc(self, layout):
        if layout.size == 0:
            return super().alloc(layout)
        return super().alloc(self._reserved(layout))

    def dealloc(self, ptr, layout):
        super().dealloc(ptr, self._reserved(layout))

    def grow_in_place(self, ptr, old_layout, new_layout):
        self.grow_calls += 1
        if new_layout.size > SLACK:
            raise CannotResizeInPlace()

    def shrink_in_place(self, ptr, old_layout, new_layout):
        self.shrink_calls += 1


@pytest.fixture
def allocator():
    return SlackAlloc()


OLD = Layout(4, 1)
NEW = Layout(8, 1)


def _block(allocator, data=b"\x01\x02\x03\x04"):
    ptr = allocator.alloc(OLD)
    ptr.write(data)
    return ptr


def test_grow_in_place_zeroed(allocator):
    ptr = _block(allocator)
    ptr.add(4).fill(0x77, 4)
    allocator.grow_in_place_zeroed(ptr, OLD, NEW)
    assert ptr.read(8) == b"\x01\x02\x03\x04" + bytes(4)


def test_grow_in_place_filled(allocator):
    ptr = _block(allocator)
    allocator.grow_in_place_filled(ptr, OLD, NEW, 0xBB)
    assert ptr.read(4) == b"\x01\x02\x03\x04"
    assert ptr.add(4).read(4) == bytes([0xBB]) * 4


def test_grow_in_place_patterned_uses_absolute_index(allocator):
    ptr = _block(allocator)
    allocator.grow_in_place_patterned(ptr, OLD, NEW, lambda i: i)
    assert ptr.add(OLD.size).read(NEW.size - OLD.size) == bytes(
        range(OLD.size, NEW.size)
    )
    assert ptr.read(OLD.size) == b"\x01\x02\x03\x04"


def test_failed_grow_leaves_contents(allocator):
    ptr = _block(allocator)
    ptr.add(4).fill(0x33, 4)
    with pytest.raises(CannotResizeInPlace):
        allocator.grow_in_place_filled(ptr, OLD, Layout(SLACK + 1, 1), 0xBB)
    assert ptr.add(4).read(4) == bytes([0x33]) * 4


def test_realloc_in_place_dispatch(allocator):
    ptr = _block(allocator)
    allocator.realloc_in_place(ptr, OLD, NEW)
    assert (allocator.grow_calls, allocator.shrink_calls) == (1, 0)
    allocator.realloc_in_place(ptr, NEW, OLD)
    assert (allocator.grow_calls, allocator.shrink_calls) == (1, 1)
    allocator.realloc_in_place(ptr, OLD, OLD)
    assert allocator.shrink_calls == 2


def test_realloc_in_place_filled_only_fills_on_grow(allocator):
    ptr = _block(allocator)
    allocator.realloc_in_place_filled(ptr, OLD, NEW, 0xCC)
    assert ptr.add(4).read(4) == bytes([0xCC]) * 4
    allocator.realloc_in_place_filled(ptr, NEW, OLD, 0x99)
    assert ptr.read(8) == b"\x01\x02\x03\x04" + bytes([0xCC]) * 4


def test_realloc_in_place_zeroed(allocator):
    ptr = _block(allocator)
    ptr.add(4).fill(0x55, 4)
    allocator.realloc_in_place_zeroed(ptr, OLD, NEW)
    assert ptr.add(4).read(4) == bytes(4)


def test_realloc_in_place_patterned(allocator):
    ptr = _block(allocator)
    allocator.realloc_in_place_patterned(ptr, OLD, NEW, lambda i: 2 * i)
    assert list(ptr.add(4).read(4)) == [2 * i for i in range(4, 8)]
    assert allocator.grow_calls == 1


def test_realloc_in_place_too_large(allocator):
    ptr = _block(allocator)
    with pytest.raises(CannotResizeInPlace):
        allocator.realloc_in_place(ptr, OLD, Layout(SLACK * 2, 1))
    assert allocator.shrink_calls == 0


def test_in_place_block_can_be_freed(allocator):
    ptr = _block(allocator)
    allocator.grow_in_place(ptr, OLD, NEW)
    allocator.dealloc(ptr, NEW)
    assert len(allocator.heap) == 0


def test_resize_in_place_requires_both_methods():
    class GrowOnly(ResizeInPlace, DefaultAlloc):
        def grow_in_place(self, ptr, old_layout, new_layout):
            raise CannotResizeInPlace()

    with pytest.raises(TypeError, match="shrink_in_place"):
        GrowOnly(Heap())

    class Both(GrowOnly):
        def __init__(self, heap):
            super().__init__(heap)
            self.shrunk = []

        def shrink_in_place(self, ptr, old_layout, new_layout):
            self.shrunk.append((old_layout.size, new_layout.size))

    complete = Both(Heap())
    ptr = complete.alloc(NEW)
    complete.realloc_in_place(ptr, NEW, OLD)
    assert complete.shrunk == [(8, 4)]
    with pytest.raises(CannotResizeInPlace):
        complete.realloc_in_place(ptr, OLD, NEW)