"""Higher-level allocation routines built on the ``Alloc`` interface.

They allocate, initialise, clone, copy and free typed values and slices,
freeing the block again if initialisation fails part-way.
"""

from __future__ import annotations

import copy
from typing import Any, Callable, Sequence

from rawalloc.alloc import Alloc, Pointer, layout_or_sz_align
from rawalloc.guards import AllocGuard, SliceAllocGuard
from rawalloc.layout import ElementType, Layout


def alloc_init(
    alloc: Alloc, elem: ElementType, init: Callable[[Pointer], None]
) -> Pointer:
    """Allocate one ``elem`` and let ``init`` initialise it through the pointer.

    If ``init`` raises, the block is freed and the exception propagates.
    """
    layout = elem.layout
    with AllocGuard(alloc.alloc(layout), alloc, layout) as guard:
        init(guard.ptr)
        return guard.release()


def alloc_init_slice(
    alloc: Alloc,
    elem: ElementType,
    init: Callable[[Pointer], None],
    length: int,
) -> Pointer:
    """Allocate ``length`` values of ``elem`` and let ``init`` initialise them.

    Raises LayoutError if the slice is too large and AllocFailed if the
    allocation fails. If ``init`` raises, the block is freed.
    """
    layout = layout_or_sz_align(elem, length)
    ptr = alloc.alloc_slice(elem, length)
    with AllocGuard(ptr, alloc, layout) as guard:
        init(guard.ptr)
        return guard.release()


def alloc_write(alloc: Alloc, elem: ElementType, value: Any) -> Pointer:
    """Allocate one ``elem`` and store ``value`` in it."""
    layout = elem.layout
    with AllocGuard(alloc.alloc(layout), alloc, layout) as guard:
        guard.ptr.write_value(elem, value)
        return guard.release()


def alloc_default(alloc: Alloc, elem: ElementType) -> Pointer:
    """Allocate one ``elem`` holding its default value."""
    return alloc_write(alloc, elem, elem.default())


def alloc_clone_to(alloc: Alloc, elem: ElementType, value: Any) -> Pointer:
    """Allocate one ``elem`` and store a copy of ``value`` in it."""
    layout = elem.layout
    with AllocGuard(alloc.alloc(layout), alloc, layout) as guard:
        guard.ptr.write_value(elem, copy.copy(value))
        return guard.release()


def alloc_clone_slice_to(
    alloc: Alloc, elem: ElementType, values: Sequence[Any]
) -> Pointer:
    """Allocate a slice sized for ``values`` and store a copy of each one."""
    count = len(values)
    ptr = alloc.alloc(Layout.array(elem, count))
    with SliceAllocGuard(ptr, alloc, elem, count) as guard:
        for value in values:
            guard.init(copy.copy(value))
        released, _ = guard.release()
        return released


def alloc_slice_with(
    alloc: Alloc, elem: ElementType, length: int, f: Callable[[int], Any]
) -> Pointer:
    """Allocate ``length`` values of ``elem``, element ``i`` set to ``f(i)``.

    Raises LayoutError if the slice is too large. If ``f`` raises, the block
    is freed.
    """
    ptr = alloc.alloc(layout_or_sz_align(elem, length))
    with SliceAllocGuard(ptr, alloc, elem, length) as guard:
        for index in range(length):
            guard.init(f(index))
        released, _ = guard.release()
        return released


def alloc_default_slice(alloc: Alloc, elem: ElementType, length: int) -> Pointer:
    """Allocate ``length`` values of ``elem``, each holding its default."""
    return alloc_slice_with(alloc, elem, length, lambda _index: elem.default())


def grow_slice(
    alloc: Alloc, ptr: Pointer, elem: ElementType, length: int, new_length: int
) -> Pointer:
    """Grow a slice of ``length`` values of ``elem`` to ``new_length`` values."""
    return alloc.grow(
        ptr,
        layout_or_sz_align(elem, length),
        layout_or_sz_align(elem, new_length),
    )


def zero_and_dealloc(alloc: Alloc, ptr: Pointer, layout: Layout) -> None:
    """Zero the block at ``ptr`` and free it."""
    ptr.fill(0, layout.size)
    alloc.dealloc(ptr, layout)


def zero_and_dealloc_n(alloc: Alloc, ptr: Pointer, elem: ElementType, n: int) -> None:
    """Zero a block of ``n`` values of ``elem`` and free it."""
    ptr.fill(0, elem.size * n)
    alloc.dealloc_n(ptr, elem, n)


def alloc_copy_to(alloc: Alloc, data: bytes | bytearray | memoryview | str) -> Pointer:
    """Allocate a byte block and copy ``data`` into it.

    Text is stored as its UTF-8 encoding.
    """
    raw = data.encode("utf-8") if isinstance(data, str) else bytes(data)
    layout = Layout(len(raw), 1)
    ptr = alloc.alloc(layout)
    ptr.write(raw)
    return ptr