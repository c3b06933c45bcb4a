"""Allocation statistics: an allocator wrapper that counts and logs every operation."""

from __future__ import annotations

import io
import sys
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable, ClassVar, TextIO, Union

from rawalloc.alloc import Alloc, DefaultAlloc, Pattern, Pointer
from rawalloc.errors import AllocError
from rawalloc.layout import Layout


@dataclass(frozen=True)
class AllocKind:
    """What happened to the newly allocated bytes of an operation."""

    tag: str
    byte: int | None = None

    UNINITIALIZED: ClassVar[AllocKind]
    ZEROED: ClassVar[AllocKind]
    PATTERNED: ClassVar[AllocKind]
    SHRINK: ClassVar[AllocKind]

    @classmethod
    def filled(cls, n: int) -> AllocKind:
        """New bytes were all set to ``n``."""
        return cls("filled", n)

    def _alloc_text(self) -> str:
        if self.tag == "uninitialized":
            return "uninitialized"
        if self.tag == "zeroed":
            return "zeroed"
        if self.tag == "filled":
            return f"filled with the byte {self.byte}"
        if self.tag == "patterned":
            return "filled with a pattern"
        raise ValueError(f"an initial allocation cannot be of kind {self.tag!r}")

    def _realloc_text(self) -> str:
        if self.tag == "shrink":
            return "there were no newly allocated bytes"
        return f"newly allocated bytes were {self._alloc_text()}"


AllocKind.UNINITIALIZED = AllocKind("uninitialized")
AllocKind.ZEROED = AllocKind("zeroed")
AllocKind.PATTERNED = AllocKind("patterned")
AllocKind.SHRINK = AllocKind("shrink")


def _fmt_ptr(ptr: Pointer | None) -> str:
    return "0x0" if ptr is None else f"{ptr.address:#x}"


@dataclass(frozen=True)
class MemoryRegion:
    """A contiguous region of memory; ``ptr`` is None where there is none."""

    ptr: Pointer | None
    size: int
    align: int

    @classmethod
    def of(cls, ptr: Pointer | None, layout: Layout) -> MemoryRegion:
        """The region described by ``layout`` at ``ptr``."""
        return cls(ptr, layout.size, layout.align)


@dataclass(frozen=True)
class ResizeInfo:
    """The old and new regions of a resize."""

    old: MemoryRegion
    new: MemoryRegion


@dataclass(frozen=True)
class AllocEvent:
    """An initial allocation."""

    region: MemoryRegion
    kind: AllocKind
    total: int


@dataclass(frozen=True)
class ReallocEvent:
    """A grow or shrink of an existing block."""

    info: ResizeInfo
    kind: AllocKind
    total: int


@dataclass(frozen=True)
class FreeEvent:
    """A deallocation."""

    region: MemoryRegion
    total: int


AllocStat = Union[AllocEvent, ReallocEvent, FreeEvent]


@dataclass(frozen=True)
class AllocRes:
    """The outcome of one allocation operation together with its statistics."""

    success: bool
    stat: AllocStat

    def __str__(self) -> str:
        stat = self.stat
        if self.success:
            if isinstance(stat, AllocEvent):
                region = stat.region
                return (
                    f"Successful initial allocation of {region.size} bytes with "
                    f"alignment {region.align} at {_fmt_ptr(region.ptr)}, and newly "
                    f"allocated bytes being {stat.kind._alloc_text()}. "
                    f"({stat.total} total bytes allocated)"
                )
            if isinstance(stat, ReallocEvent):
                old, new = stat.info.old, stat.info.new
                return (
                    f"Successful reallocation from {old.size}->{new.size} bytes with "
                    f"alignment {old.align}->{new.align}. Allocation moved "
                    f"{_fmt_ptr(old.ptr)}->{_fmt_ptr(new.ptr)} and "
                    f"{stat.kind._realloc_text()}. ({stat.total} total bytes allocated)"
                )
            region = stat.region
            return (
                f"Deallocation of {region.size} bytes with alignment {region.align} "
                f"at {_fmt_ptr(region.ptr)}. ({stat.total} total bytes allocated)"
            )
        if isinstance(stat, AllocEvent):
            return (
                f"Failed initial allocation of {stat.region.size} bytes with "
                f"alignment {stat.region.align}."
            )
        if isinstance(stat, ReallocEvent):
            old, new = stat.info.old, stat.info.new
            return (
                f"Failed reallocation from {old.size}->{new.size} bytes with "
                f"alignment {old.align}->{new.align}. Original allocation at "
                f"{_fmt_ptr(old.ptr)}."
            )
        raise ValueError("deallocation cannot fail")


class StatsLogger(ABC):
    """Receives allocation results and keeps the running byte total."""

    @abstractmethod
    def log(self, stat: AllocRes) -> None:
        """Record one allocation result."""

    @abstractmethod
    def inc_total_bytes_allocated(self, nbytes: int) -> int:
        """Add ``nbytes`` to the total and return the new total."""

    @abstractmethod
    def dec_total_bytes_allocated(self, nbytes: int) -> int:
        """Subtract ``nbytes`` from the total and return the new total."""

    @abstractmethod
    def total(self) -> int:
        """The number of bytes currently allocated."""


class NullLogger(StatsLogger):
    """Records nothing and always reports a total of zero."""

    def log(self, stat: AllocRes) -> None:
        pass

    def inc_total_bytes_allocated(self, nbytes: int) -> int:
        return 0

    def dec_total_bytes_allocated(self, nbytes: int) -> int:
        return 0

    def total(self) -> int:
        return 0


class CounterLogger(StatsLogger):
    """Counts allocated bytes without recording individual results."""

    def __init__(self, initial: int = 0) -> None:
        self._lock = threading.Lock()
        self._total = initial

    def log(self, stat: AllocRes) -> None:
        pass

    def inc_total_bytes_allocated(self, nbytes: int) -> int:
        with self._lock:
            self._total += nbytes
            return self._total

    def dec_total_bytes_allocated(self, nbytes: int) -> int:
        with self._lock:
            if nbytes > self._total:
                raise ValueError(
                    f"cannot release {nbytes} bytes: only {self._total} allocated"
                )
            self._total -= nbytes
            return self._total

    def total(self) -> int:
        with self._lock:
            return self._total


class IOLog(CounterLogger):
    """Counts allocated bytes and writes each result as a line to a text stream."""

    def __init__(self, stream: TextIO | None = None) -> None:
        super().__init__()
        self.stream = stream if stream is not None else sys.stdout
        self._write_lock = threading.Lock()

    def log(self, stat: AllocRes) -> None:
        line = f"{stat}\n"
        with self._write_lock:
            self.stream.write(line)


class StringLog(IOLog):
    """Counts allocated bytes and collects the result lines in memory."""

    def __init__(self) -> None:
        super().__init__(io.StringIO())

    def get_log(self) -> str:
        """Everything logged so far."""
        with self._write_lock:
            return self.stream.getvalue()


class Stats(Alloc):
    """Delegates to an inner allocator and reports every result to a logger."""

    def __init__(self, logger: StatsLogger, inner: Alloc | None = None) -> None:
        self.logger = logger
        self.inner = inner if inner is not None else DefaultAlloc()

    def __repr__(self) -> str:
        return f"Stats({self.logger!r}, {self.inner!r})"

    def _allocate(
        self, allocate: Callable[[Layout], Pointer], layout: Layout, kind: AllocKind
    ) -> Pointer:
        try:
            ptr = allocate(layout)
        except AllocError:
            self.logger.log(
                AllocRes(
                    False,
                    AllocEvent(MemoryRegion.of(None, layout), kind, self.logger.total()),
                )
            )
            raise
        total = self.logger.inc_total_bytes_allocated(layout.size)
        self.logger.log(AllocRes(True, AllocEvent(MemoryRegion.of(ptr, layout), kind, total)))
        return ptr

    def _resize(
        self,
        resize: Callable[[Pointer, Layout, Layout], Pointer],
        ptr: Pointer,
        old_layout: Layout,
        new_layout: Layout,
        kind: AllocKind,
    ) -> Pointer:
        try:
            new_ptr = resize(ptr, old_layout, new_layout)
        except AllocError:
            info = ResizeInfo(
                MemoryRegion.of(ptr, old_layout), MemoryRegion.of(None, new_layout)
            )
            self.logger.log(AllocRes(False, ReallocEvent(info, kind, self.logger.total())))
            raise
        if kind is AllocKind.SHRINK:
            total = self.logger.dec_total_bytes_allocated(
                max(0, old_layout.size - new_layout.size)
            )
        else:
            total = self.logger.inc_total_bytes_allocated(
                max(0, new_layout.size - old_layout.size)
            )
        info = ResizeInfo(
            MemoryRegion.of(ptr, old_layout), MemoryRegion.of(new_ptr, new_layout)
        )
        self.logger.log(AllocRes(True, ReallocEvent(info, kind, total)))
        return new_ptr

    def alloc(self, layout: Layout) -> Pointer:
        return self._allocate(self.inner.alloc, layout, AllocKind.UNINITIALIZED)

    def alloc_zeroed(self, layout: Layout) -> Pointer:
        return self._allocate(self.inner.alloc_zeroed, layout, AllocKind.ZEROED)

    def alloc_filled(self, layout: Layout, n: int) -> Pointer:
        return self._allocate(
            lambda lay: self.inner.alloc_filled(lay, n), layout, AllocKind.filled(n)
        )

    def alloc_patterned(self, layout: Layout, pattern: Pattern) -> Pointer:
        return self._allocate(
            lambda lay: self.inner.alloc_patterned(lay, pattern),
            layout,
            AllocKind.PATTERNED,
        )

    def dealloc(self, ptr: Pointer, layout: Layout) -> None:
        self.inner.dealloc(ptr, layout)
        total = self.logger.dec_total_bytes_allocated(layout.size)
        self.logger.log(AllocRes(True, FreeEvent(MemoryRegion.of(ptr, layout), total)))

    def grow(self, ptr: Pointer, old_layout: Layout, new_layout: Layout) -> Pointer:
        return self._resize(
            self.inner.grow, ptr, old_layout, new_layout, AllocKind.UNINITIALIZED
        )

    def grow_zeroed(self, ptr: Pointer, old_layout: Layout, new_layout: Layout) -> Pointer:
        return self._resize(
            self.inner.grow_zeroed, ptr, old_layout, new_layout, AllocKind.ZEROED
        )

    def grow_patterned(
        self, ptr: Pointer, old_layout: Layout, new_layout: Layout, pattern: Pattern
    ) -> Pointer:
        return self._resize(
            lambda p, old, new: self.inner.grow_patterned(p, old, new, pattern),
            ptr,
            old_layout,
            new_layout,
            AllocKind.PATTERNED,
        )

    def grow_filled(
        self, ptr: Pointer, old_layout: Layout, new_layout: Layout, n: int
    ) -> Pointer:
        return self._resize(
            lambda p, old, new: self.inner.grow_filled(p, old, new, n),
            ptr,
            old_layout,
            new_layout,
            AllocKind.filled(n),
        )

    def shrink(self, ptr: Pointer, old_layout: Layout, new_layout: Layout) -> Pointer:
        return self._resize(
            self.inner.shrink, ptr, old_layout, new_layout, AllocKind.SHRINK
        )