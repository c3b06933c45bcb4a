"""The allocation interface and a default allocator over a simulated heap."""

from __future__ import annotations

import bisect
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable

from rawalloc.errors import (
    AllocError,
    AllocFailed,
    GrowSmallerNewLayout,
    ShrinkBiggerNewLayout,
    ZeroSizedLayout,
)
from rawalloc.layout import ElementType, Layout

Pattern = Callable[[int], int]


def _round_up(value: int, align: int) -> int:
    return (value + align - 1) & ~(align - 1)


class Heap:
    """An address space of byte blocks handed out at aligned addresses.

    ``capacity`` limits the number of bytes that may be live at once.
    """

    def __init__(self, capacity: int | None = None, base: int = 0x1000) -> None:
        self._blocks: dict[int, bytearray] = {}
        self._starts: list[int] = []
        self._next = base
        self._capacity = capacity
        self.in_use = 0

    def __len__(self) -> int:
        return len(self._blocks)

    def allocate(self, layout: Layout) -> int:
        """Reserve a block for ``layout`` and return its address.

        Raises MemoryError when the heap's capacity would be exceeded.
        """
        if layout.size == 0:
            raise ValueError("heap blocks must not be empty")
        if self._capacity is not None and self.in_use + layout.size > self._capacity:
            raise MemoryError(
                f"cannot reserve {layout.size} bytes: "
                f"{self.in_use} of {self._capacity} in use"
            )
        address = _round_up(self._next, layout.align)
        self._blocks[address] = bytearray(layout.size)
        bisect.insort(self._starts, address)
        # Leave a one-byte gap so that no two blocks ever touch.
        self._next = address + layout.size + 1
        self.in_use += layout.size
        return address

    def release(self, address: int, layout: Layout) -> None:
        """Give back the block at ``address``, which must match ``layout``."""
        block = self._blocks.get(address)
        if block is None:
            raise ValueError(f"no block starts at {address:#x}")
        if len(block) != layout.size:
            raise ValueError(
                f"block at {address:#x} holds {len(block)} bytes, "
                f"not {layout.size}"
            )
        del self._blocks[address]
        self._starts.pop(bisect.bisect_left(self._starts, address))
        self.in_use -= layout.size

    def view(self, address: int, length: int) -> memoryview:
        """A writable view of ``length`` bytes starting at ``address``."""
        if length < 0:
            raise ValueError(f"length must not be negative, got {length}")
        if length == 0:
            return memoryview(bytearray())
        index = bisect.bisect_right(self._starts, address) - 1
        if index < 0:
            raise ValueError(f"address {address:#x} is not inside any block")
        start = self._starts[index]
        block = self._blocks[start]
        offset = address - start
        if offset + length > len(block):
            raise ValueError(
                f"access of {length} bytes at {address:#x} "
                f"runs past the block at {start:#x}"
            )
        return memoryview(block)[offset : offset + length]


GLOBAL_HEAP = Heap()


@dataclass(frozen=True)
class Pointer:
    """An address within a heap; a pointer with no heap is dangling."""

    address: int
    heap: Heap | None = None

    def __repr__(self) -> str:
        return f"Pointer({self.address:#x})"

    def _view(self, length: int) -> memoryview:
        if self.heap is None:
            if length == 0:
                return memoryview(bytearray())
            raise ValueError(f"dangling pointer {self.address:#x} cannot be dereferenced")
        return self.heap.view(self.address, length)

    def add(self, offset: int) -> Pointer:
        """The pointer ``offset`` bytes further on."""
        return Pointer(self.address + offset, self.heap)

    def read(self, length: int) -> bytes:
        """Read ``length`` bytes."""
        return bytes(self._view(length))

    def write(self, data: bytes | bytearray | memoryview) -> None:
        """Write ``data`` starting here."""
        raw = bytes(data)
        self._view(len(raw))[:] = raw

    def fill(self, byte: int, length: int) -> None:
        """Set ``length`` bytes to ``byte``."""
        self._view(length)[:] = bytes([byte]) * length

    def copy_to(self, dest: Pointer, length: int) -> None:
        """Copy ``length`` bytes from here to ``dest``."""
        dest.write(self.read(length))

    def read_value(self, elem: ElementType, index: int = 0) -> Any:
        """Read the ``index``-th value of type ``elem``."""
        return elem.unpack(self.add(index * elem.size).read(elem.size))

    def write_value(self, elem: ElementType, value: Any, index: int = 0) -> None:
        """Write ``value`` as the ``index``-th value of type ``elem``."""
        self.add(index * elem.size).write(elem.pack(value))


def dangling(align: int) -> Pointer:
    """A pointer whose address is ``align`` and which points at nothing."""
    return Pointer(align)


def layout_or_sz_align(elem: ElementType, n: int) -> Layout:
    """The layout of ``n`` values of ``elem``; LayoutError if it is too large."""
    return Layout.array(elem, n)


def _grow(
    alloc: Alloc,
    ptr: Pointer,
    old_layout: Layout,
    new_layout: Layout,
    allocate: Callable[[Layout], Pointer],
) -> Pointer:
    if old_layout.size < new_layout.size:
        return _grow_unchecked(alloc, ptr, old_layout, new_layout, allocate)
    if old_layout.size == new_layout.size:
        return ptr
    raise GrowSmallerNewLayout(old_layout.size, new_layout.size)


def _shrink(alloc: Alloc, ptr: Pointer, old_layout: Layout, new_layout: Layout) -> Pointer:
    if old_layout.size < new_layout.size:
        raise ShrinkBiggerNewLayout(old_layout.size, new_layout.size)
    if old_layout.size == new_layout.size:
        return ptr
    return _shrink_unchecked(alloc, ptr, old_layout, new_layout)


def _grow_unchecked(
    alloc: Alloc,
    ptr: Pointer,
    old_layout: Layout,
    new_layout: Layout,
    allocate: Callable[[Layout], Pointer],
) -> Pointer:
    new_ptr = allocate(new_layout)
    ptr.copy_to(new_ptr, old_layout.size)
    alloc.dealloc(ptr, old_layout)
    return new_ptr


def _shrink_unchecked(
    alloc: Alloc, ptr: Pointer, old_layout: Layout, new_layout: Layout
) -> Pointer:
    new_ptr = alloc.alloc(new_layout)
    ptr.copy_to(new_ptr, new_layout.size)
    alloc.dealloc(ptr, old_layout)
    return new_ptr


class Alloc(ABC):
    """A memory allocation interface.

    Subclasses provide the four allocation primitives and ``dealloc``; the
    slice, grow, shrink and realloc operations are built on top of them.
    """

    @abstractmethod
    def alloc(self, layout: Layout) -> Pointer:
        """Allocate a block for ``layout``."""

    @abstractmethod
    def alloc_zeroed(self, layout: Layout) -> Pointer:
        """Allocate a zeroed block for ``layout``."""

    @abstractmethod
    def alloc_filled(self, layout: Layout, n: int) -> Pointer:
        """Allocate a block for ``layout`` with every byte set to ``n``."""

    @abstractmethod
    def alloc_patterned(self, layout: Layout, pattern: Pattern) -> Pointer:
        """Allocate a block for ``layout`` with byte ``i`` set to ``pattern(i)``."""

    @abstractmethod
    def dealloc(self, ptr: Pointer, layout: Layout) -> None:
        """Free a block previously allocated with ``layout``."""

    def _slice(
        self, elem: ElementType, length: int, allocate: Callable[[Layout], Pointer]
    ) -> Pointer:
        layout = layout_or_sz_align(elem, length)
        try:
            return allocate(layout)
        except AllocError:
            raise AllocFailed(layout) from None

    def alloc_slice(self, elem: ElementType, length: int) -> Pointer:
        """Allocate room for ``length`` values of ``elem``."""
        return self._slice(elem, length, self.alloc)

    def alloc_slice_zeroed(self, elem: ElementType, length: int) -> Pointer:
        """Allocate zeroed room for ``length`` values of ``elem``."""
        return self._slice(elem, length, self.alloc_zeroed)

    def alloc_slice_filled(self, elem: ElementType, length: int, n: int) -> Pointer:
        """Allocate room for ``length`` values of ``elem``, every byte set to ``n``."""
        return self._slice(elem, length, lambda layout: self.alloc_filled(layout, n))

    def alloc_slice_patterned(
        self, elem: ElementType, length: int, pattern: Pattern
    ) -> Pointer:
        """Allocate room for ``length`` values of ``elem``, byte ``i`` set to ``pattern(i)``."""
        return self._slice(
            elem, length, lambda layout: self.alloc_patterned(layout, pattern)
        )

    def dealloc_n(self, ptr: Pointer, elem: ElementType, n: int) -> None:
        """Free a block that holds exactly ``n`` values of ``elem``."""
        self.dealloc(ptr, Layout(elem.size * n, elem.align))

    def grow(self, ptr: Pointer, old_layout: Layout, new_layout: Layout) -> Pointer:
        """Move the block to a larger layout, keeping its contents."""
        return _grow(self, ptr, old_layout, new_layout, self.alloc)

    def grow_zeroed(self, ptr: Pointer, old_layout: Layout, new_layout: Layout) -> Pointer:
        """Grow the block, zeroing the new bytes."""
        return _grow(self, ptr, old_layout, new_layout, self.alloc_zeroed)

    def grow_patterned(
        self, ptr: Pointer, old_layout: Layout, new_layout: Layout, pattern: Pattern
    ) -> Pointer:
        """Grow the block, setting new byte ``i`` to ``pattern(i)``."""
        return _grow(
            self,
            ptr,
            old_layout,
            new_layout,
            lambda layout: self.alloc_patterned(layout, pattern),
        )

    def grow_filled(
        self, ptr: Pointer, old_layout: Layout, new_layout: Layout, n: int
    ) -> Pointer:
        """Grow the block, setting the new bytes to ``n``."""
        return _grow(
            self,
            ptr,
            old_layout,
            new_layout,
            lambda layout: self.alloc_filled(layout, n),
        )

    def shrink(self, ptr: Pointer, old_layout: Layout, new_layout: Layout) -> Pointer:
        """Move the block to a smaller layout, truncating its contents."""
        return _shrink(self, ptr, old_layout, new_layout)

    def realloc(self, ptr: Pointer, old_layout: Layout, new_layout: Layout) -> Pointer:
        """Grow or shrink the block as needed."""
        if new_layout.size > old_layout.size:
            return _grow_unchecked(self, ptr, old_layout, new_layout, self.alloc)
        return _shrink_unchecked(self, ptr, old_layout, new_layout)

    def realloc_zeroed(
        self, ptr: Pointer, old_layout: Layout, new_layout: Layout
    ) -> Pointer:
        """Grow or shrink the block, zeroing any new bytes."""
        return self.realloc_filled(ptr, old_layout, new_layout, 0)

    def realloc_patterned(
        self, ptr: Pointer, old_layout: Layout, new_layout: Layout, pattern: Pattern
    ) -> Pointer:
        """Grow or shrink the block, setting new byte ``i`` to ``pattern(i)``."""
        if new_layout.size > old_layout.size:
            return _grow_unchecked(
                self,
                ptr,
                old_layout,
                new_layout,
                lambda layout: self.alloc_patterned(layout, pattern),
            )
        return _shrink_unchecked(self, ptr, old_layout, new_layout)

    def realloc_filled(
        self, ptr: Pointer, old_layout: Layout, new_layout: Layout, n: int
    ) -> Pointer:
        """Grow or shrink the block, setting any new bytes to ``n``."""
        if new_layout.size > old_layout.size:
            return _grow_unchecked(
                self,
                ptr,
                old_layout,
                new_layout,
                lambda layout: self.alloc_filled(layout, n),
            )
        return _shrink_unchecked(self, ptr, old_layout, new_layout)


class DefaultAlloc(Alloc):
    """Allocator backed by a heap, by default the process-wide one."""

    def __init__(self, heap: Heap | None = None) -> None:
        self.heap = heap if heap is not None else GLOBAL_HEAP

    def __repr__(self) -> str:
        return "DefaultAlloc()" if self.heap is GLOBAL_HEAP else f"DefaultAlloc({self.heap!r})"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, DefaultAlloc):
            return NotImplemented
        return self.heap is other.heap

    def __hash__(self) -> int:
        return hash((DefaultAlloc, id(self.heap)))

    def _new_block(self, layout: Layout) -> Pointer:
        if layout.size == 0:
            raise ZeroSizedLayout(dangling(layout.align))
        try:
            address = self.heap.allocate(layout)
        except MemoryError:
            raise AllocFailed(layout) from None
        return Pointer(address, self.heap)

    def alloc(self, layout: Layout) -> Pointer:
        return self._new_block(layout)

    def alloc_zeroed(self, layout: Layout) -> Pointer:
        ptr = self._new_block(layout)
        ptr.fill(0, layout.size)
        return ptr

    def alloc_filled(self, layout: Layout, n: int) -> Pointer:
        ptr = self._new_block(layout)
        try:
            ptr.fill(n, layout.size)
        except BaseException:
            self.dealloc(ptr, layout)
            raise
        return ptr

    def alloc_patterned(self, layout: Layout, pattern: Pattern) -> Pointer:
        ptr = self._new_block(layout)
        try:
            ptr.write(bytes(pattern(i) for i in range(layout.size)))
        except BaseException:
            self.dealloc(ptr, layout)
            raise
        return ptr

    def dealloc(self, ptr: Pointer, layout: Layout) -> None:
        if ptr.heap is not self.heap:
            raise ValueError(f"{ptr!r} was not allocated by this allocator")
        self.heap.release(ptr.address, layout)