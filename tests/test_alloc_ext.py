import pytest

from rawalloc.alloc import DefaultAlloc, Heap
from rawalloc.alloc_ext import (
    alloc_clone_slice_to,
    alloc_clone_to,
    alloc_copy_to,
    alloc_default,
    alloc_default_slice,
    alloc_init,
    alloc_init_slice,
    alloc_slice_with,
    alloc_write,
    grow_slice,
    zero_and_dealloc,
    zero_and_dealloc_n,
)
from rawalloc.errors import AllocFailed, LayoutError, ZeroSizedLayout
from rawalloc.layout import BOOL, F64, U16, U32, Layout


class RecordingAlloc(DefaultAlloc):
    def __init__(self):
        super().__init__(Heap())
        self.freed = []

    def dealloc(self, ptr, layout):
        self.freed.append(ptr.read(layout.size))
        super().dealloc(ptr, layout)


@pytest.fixture
def heap():
    return Heap()


@pytest.fixture
def allocator(heap):
    return DefaultAlloc(heap)


def test_alloc_init_default_and_write(allocator, heap):
    ptr = alloc_init(allocator, U32, lambda p: p.write_value(U32, 42))
    assert ptr.read_value(U32) == 42
    allocator.dealloc(ptr, U32.layout)

    dptr = alloc_default(allocator, U32)
    assert dptr.read_value(U32) == 0
    allocator.dealloc(dptr, U32.layout)

    wptr = alloc_write(allocator, U32, 7)
    assert wptr.read_value(U32) == 7
    allocator.dealloc(wptr, U32.layout)
    assert heap.in_use == 0


def test_alloc_init_and_default_slice(allocator, heap):
    length = 3

    def init(p):
        for i in range(length):
            p.write_value(U32, 5, i)

    sptr = alloc_init_slice(allocator, U32, init, length)
    assert [sptr.read_value(U32, i) for i in range(length)] == [5, 5, 5]
    allocator.dealloc(sptr, Layout.array(U32, length))

    dptr = alloc_default_slice(allocator, U32, length)
    assert [dptr.read_value(U32, i) for i in range(length)] == [0, 0, 0]
    allocator.dealloc(dptr, Layout.array(U32, length))
    assert heap.in_use == 0


def test_alloc_init_frees_when_init_raises(allocator, heap):
    def init(_p):
        raise RuntimeError("init failed")

    with pytest.raises(RuntimeError, match="init failed"):
        alloc_init(allocator, U32, init)
    assert heap.in_use == 0
    assert len(heap) == 0


def test_alloc_init_slice_frees_when_init_raises(allocator, heap):
    def init(_p):
        raise KeyError("bad")

    with pytest.raises(KeyError):
        alloc_init_slice(allocator, U16, init, 4)
    assert heap.in_use == 0


def test_alloc_init_slice_zero_length_fails(allocator):
    with pytest.raises(AllocFailed) as info:
        alloc_init_slice(allocator, U32, lambda p: None, 0)
    assert info.value == AllocFailed(Layout(0, 4))


def test_alloc_default_other_types(allocator):
    assert alloc_default(allocator, F64).read_value(F64) == 0.0
    assert alloc_default(allocator, BOOL).read_value(BOOL) is False


def test_alloc_write_bad_value_frees(allocator, heap):
    with pytest.raises(ValueError):
        alloc_write(allocator, U32, -1)
    assert heap.in_use == 0


def test_alloc_write_reports_allocation_failure():
    allocator = DefaultAlloc(Heap(capacity=2))
    with pytest.raises(AllocFailed) as info:
        alloc_write(allocator, U32, 1)
    assert info.value.layout == Layout(4, 4)


def test_alloc_clone_to(allocator):
    ptr = alloc_clone_to(allocator, U16, 513)
    assert ptr.read_value(U16) == 513
    assert ptr.read(2) == b"\x01\x02"


def test_alloc_clone_slice_to(allocator, heap):
    values = [10, 20, 30, 40]
    ptr = alloc_clone_slice_to(allocator, U32, values)
    assert [ptr.read_value(U32, i) for i in range(4)] == values
    assert heap.in_use == 16


def test_alloc_clone_slice_to_empty_is_zero_sized(allocator):
    with pytest.raises(ZeroSizedLayout):
        alloc_clone_slice_to(allocator, U32, [])


def test_alloc_clone_slice_to_bad_element_frees(allocator, heap):
    with pytest.raises(ValueError):
        alloc_clone_slice_to(allocator, U16, [1, 2, 70000])
    assert heap.in_use == 0


def test_alloc_slice_with(allocator):
    ptr = alloc_slice_with(allocator, U16, 5, lambda i: i * i)
    assert [ptr.read_value(U16, i) for i in range(5)] == [0, 1, 4, 9, 16]


def test_alloc_slice_with_frees_when_f_raises(allocator, heap):
    def f(i):
        if i == 2:
            raise ZeroDivisionError
        return i

    with pytest.raises(ZeroDivisionError):
        alloc_slice_with(allocator, U32, 4, f)
    assert heap.in_use == 0
    assert len(heap) == 0


def test_alloc_slice_with_zero_length(allocator):
    with pytest.raises(ZeroSizedLayout):
        alloc_slice_with(allocator, U32, 0, lambda i: i)


def test_alloc_slice_with_too_large(allocator):
    with pytest.raises(LayoutError) as info:
        alloc_slice_with(allocator, U32, 2**62, lambda i: i)
    assert info.value == LayoutError(4, 4)


def test_grow_slice_keeps_elements(allocator, heap):
    ptr = alloc_clone_slice_to(allocator, U16, [1, 2, 3])
    grown = grow_slice(allocator, ptr, U16, 3, 5)
    assert [grown.read_value(U16, i) for i in range(3)] == [1, 2, 3]
    assert heap.in_use == 10
    assert len(heap) == 1


def test_zero_and_dealloc():
    allocator = RecordingAlloc()
    layout = Layout(6, 2)
    ptr = allocator.alloc_filled(layout, 0xAB)
    zero_and_dealloc(allocator, ptr, layout)
    assert allocator.freed == [bytes(6)]
    assert allocator.heap.in_use == 0


def test_zero_and_dealloc_n():
    allocator = RecordingAlloc()
    ptr = alloc_clone_slice_to(allocator, U32, [7, 8, 9])
    zero_and_dealloc_n(allocator, ptr, U32, 3)
    assert allocator.freed == [bytes(12)]
    assert len(allocator.heap) == 0


def test_alloc_copy_to_bytes(allocator):
    ptr = alloc_copy_to(allocator, b"hello")
    assert ptr.read(5) == b"hello"


def test_alloc_copy_to_text(allocator):
    ptr = alloc_copy_to(allocator, "héllo")
    assert ptr.read(6) == "héllo".encode("utf-8")


def test_alloc_copy_to_empty_is_zero_sized(allocator):
    with pytest.raises(ZeroSizedLayout):
        alloc_copy_to(allocator, b"")