"""Guards that free an allocation unless ownership is explicitly taken."""

from __future__ import annotations

from types import TracebackType
from typing import Any, Iterable, Iterator

from rawalloc.alloc import Alloc, Pointer
from rawalloc.errors import CapacityError
from rawalloc.layout import ElementType, Layout


class AllocGuard:
    """Owns one allocation and frees it on exit unless it was released.

    Use it as a context manager around code that initialises the block and
    may fail; call ``release`` once the block is ready to be kept.
    """

    def __init__(self, ptr: Pointer, alloc: Alloc, layout: Layout) -> None:
        self.ptr = ptr
        self.alloc = alloc
        self.layout = layout
        self._done = False

    def __repr__(self) -> str:
        return f"AllocGuard({self.ptr!r}, {self.layout!r})"

    @property
    def active(self) -> bool:
        """Whether the guard still owns its allocation."""
        return not self._done

    def release(self) -> Pointer:
        """Give up ownership without freeing and return the pointer."""
        if self._done:
            raise RuntimeError("guard no longer owns its allocation")
        self._done = True
        return self.ptr

    def __enter__(self) -> AllocGuard:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        if not self._done:
            self._done = True
            self.alloc.dealloc(self.ptr, self.layout)


class SliceAllocGuard:
    """Owns a slice allocation and counts how many elements are initialised.

    On exit without ``release`` the whole slice of ``full`` elements is freed.
    """

    def __init__(self, ptr: Pointer, alloc: Alloc, elem: ElementType, full: int) -> None:
        if full < 0:
            raise ValueError(f"slice length must not be negative, got {full}")
        self.ptr = ptr
        self.alloc = alloc
        self.elem = elem
        self._full = full
        self._init = 0
        self._done = False

    def __repr__(self) -> str:
        return (
            f"SliceAllocGuard({self.ptr!r}, {self.elem.name}, "
            f"{self._init}/{self._full})"
        )

    @property
    def initialized(self) -> int:
        """How many elements have been initialised."""
        return self._init

    @property
    def full(self) -> int:
        """The total number of elements in the slice."""
        return self._full

    @property
    def is_full(self) -> bool:
        """Whether every element has been initialised."""
        return self._init == self._full

    @property
    def active(self) -> bool:
        """Whether the guard still owns its allocation."""
        return not self._done

    def _check_active(self) -> None:
        if self._done:
            raise RuntimeError("guard no longer owns its allocation")

    def _write_next(self, value: Any) -> None:
        self.ptr.write_value(self.elem, value, self._init)
        self._init += 1

    def release(self) -> tuple[Pointer, int]:
        """Give up ownership and return the pointer and initialised length."""
        self._check_active()
        self._done = True
        return self.ptr, self._init

    def init(self, value: Any) -> None:
        """Initialise the next element; CapacityError if the slice is full."""
        self._check_active()
        if self._init == self._full:
            raise CapacityError(value)
        self._write_next(value)

    def extend_init(self, values: Iterable[Any]) -> None:
        """Initialise the next elements from ``values``.

        Raises CapacityError holding the partly consumed iterator as soon as
        the slice is full, checked before each element is drawn.
        """
        self._check_active()
        iterator: Iterator[Any] = iter(values)
        while True:
            if self._init == self._full:
                raise CapacityError(iterator)
            try:
                value = next(iterator)
            except StopIteration:
                return
            self._write_next(value)

    def __enter__(self) -> SliceAllocGuard:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        if not self._done:
            self._done = True
            self.alloc.dealloc_n(self.ptr, self.elem, self._full)