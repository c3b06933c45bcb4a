"""Allocators that can resize a block without moving it."""

from __future__ import annotations

from abc import abstractmethod

from rawalloc.alloc import Alloc, Pattern, Pointer
from rawalloc.layout import Layout


class ResizeInPlace(Alloc):
    """An allocator that can grow and shrink blocks where they lie.

    Failures raise ``CannotResizeInPlace``; on success the pointer stays valid.
    """

    @abstractmethod
    def grow_in_place(self, ptr: Pointer, old_layout: Layout, new_layout: Layout) -> None:
        """Grow the block at ``ptr`` without moving it."""

    def grow_in_place_zeroed(
        self, ptr: Pointer, old_layout: Layout, new_layout: Layout
    ) -> None:
        """Grow in place, zeroing the new bytes."""
        self.grow_in_place_filled(ptr, old_layout, new_layout, 0)

    def grow_in_place_patterned(
        self, ptr: Pointer, old_layout: Layout, new_layout: Layout, pattern: Pattern
    ) -> None:
        """Grow in place, setting new byte ``i`` to ``pattern(i)``."""
        self.grow_in_place(ptr, old_layout, new_layout)
        start = old_layout.size
        ptr.add(start).write(
            bytes(pattern(i) for i in range(start, new_layout.size))
        )

    def grow_in_place_filled(
        self, ptr: Pointer, old_layout: Layout, new_layout: Layout, n: int
    ) -> None:
        """Grow in place, setting the new bytes to ``n``."""
        self.grow_in_place(ptr, old_layout, new_layout)
        ptr.add(old_layout.size).fill(n, new_layout.size - old_layout.size)

    @abstractmethod
    def shrink_in_place(
        self, ptr: Pointer, old_layout: Layout, new_layout: Layout
    ) -> None:
        """Shrink the block at ``ptr`` without moving it."""

    def realloc_in_place(
        self, ptr: Pointer, old_layout: Layout, new_layout: Layout
    ) -> None:
        """Grow or shrink in place as needed."""
        if new_layout.size > old_layout.size:
            self.grow_in_place(ptr, old_layout, new_layout)
        else:
            self.shrink_in_place(ptr, old_layout, new_layout)

    def realloc_in_place_zeroed(
        self, ptr: Pointer, old_layout: Layout, new_layout: Layout
    ) -> None:
        """Grow or shrink in place, zeroing any new bytes."""
        if new_layout.size > old_layout.size:
            self.grow_in_place_zeroed(ptr, old_layout, new_layout)
        else:
            self.shrink_in_place(ptr, old_layout, new_layout)

    def realloc_in_place_patterned(
        self, ptr: Pointer, old_layout: Layout, new_layout: Layout, pattern: Pattern
    ) -> None:
        """Grow or shrink in place, setting new byte ``i`` to ``pattern(i)``."""
        if new_layout.size > old_layout.size:
            self.grow_in_place_patterned(ptr, old_layout, new_layout, pattern)
        else:
            self.shrink_in_place(ptr, old_layout, new_layout)

    def realloc_in_place_filled(
        self, ptr: Pointer, old_layout: Layout, new_layout: Layout, n: int
    ) -> None:
        """Grow or shrink in place, setting any new bytes to ``n``."""
        if new_layout.size > old_layout.size:
            self.grow_in_place_filled(ptr, old_layout, new_layout, n)
        else:
            self.shrink_in_place(ptr, old_layout, new_layout)