"""Errors raised by allocation operations."""

from __future__ import annotations

from typing import Any


class AllocError(Exception):
    """Base class for allocation errors; equal when kind and details match."""

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, AllocError):
            return NotImplemented
        return type(self) is type(other) and self.args == other.args

    def __hash__(self) -> int:
        return hash((type(self), self.args))


class ArithmeticOverflow(AllocError):
    """A basic arithmetic operation overflowed."""

    def __init__(self) -> None:
        super().__init__()

    def __str__(self) -> str:
        return "arithmetic overflow"


class LayoutError(AllocError):
    """The layout computed with the given size and alignment is invalid."""

    def __init__(self, size: int, align: int) -> None:
        super().__init__(size, align)
        self.size = size
        self.align = align

    def __str__(self) -> str:
        return f"computed invalid layout: size: {self.size}, align: {self.align}"


class ZeroSizedLayout(AllocError):
    """A zero-sized layout was given; ``dangling`` is a well-aligned dummy pointer."""

    def __init__(self, dangling: Any) -> None:
        super().__init__(dangling)
        self.dangling = dangling

    def __str__(self) -> str:
        return "zero-sized layout was given"


class AllocFailed(AllocError):
    """The underlying allocator could not satisfy the layout."""

    def __init__(self, layout: Any) -> None:
        super().__init__(layout)
        self.layout = layout

    def __str__(self) -> str:
        return f"allocation failed for layout: {self.layout!r}"


class GrowSmallerNewLayout(AllocError):
    """Attempted to grow to a smaller layout."""

    def __init__(self, old: int, new: int) -> None:
        super().__init__(old, new)
        self.old = old
        self.new = new

    def __str__(self) -> str:
        return (
            f"attempted to grow from a size of {self.old} "
            f"to a smaller size of {self.new}"
        )


class ShrinkBiggerNewLayout(AllocError):
    """Attempted to shrink to a larger layout."""

    def __init__(self, old: int, new: int) -> None:
        super().__init__(old, new)
        self.old = old
        self.new = new

    def __str__(self) -> str:
        return (
            f"attempted to shrink from a size of {self.old} "
            f"to a larger size of {self.new}"
        )


class CannotResizeInPlace(AllocError):
    """The allocator supports in-place resizing, but this resize was impossible."""

    def __init__(self) -> None:
        super().__init__()

    def __str__(self) -> str:
        return "cannot resize in place"


class CapacityError(Exception):
    """A buffer is full; ``value`` is the element that did not fit."""

    def __init__(self, value: Any) -> None:
        super().__init__(value)
        self.value = value

    def __str__(self) -> str:
        return f"buffer is at capacity; could not store {self.value!r}"