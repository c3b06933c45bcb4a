"""Memory layouts, element type descriptions and layout arithmetic."""

from __future__ import annotations

import struct
from dataclasses import dataclass, field
from typing import Any

from rawalloc.errors import ArithmeticOverflow, LayoutError

USIZE_MAX = 2**64 - 1
ISIZE_MAX = 2**63 - 1


def _is_power_of_two(value: int) -> bool:
    return value > 0 and value & (value - 1) == 0


def _size_rounded_up_to_align(size: int, align: int) -> int:
    if align <= 0:
        raise ValueError(f"alignment must be positive, got {align}")
    mask = align - 1
    return ((size + mask) & ~mask) & USIZE_MAX


@dataclass(frozen=True)
class Layout:
    """The size and alignment of a block of memory."""

    size: int
    align: int

    def __post_init__(self) -> None:
        if (
            not _is_power_of_two(self.align)
            or self.size < 0
            or self.size > ISIZE_MAX - (self.align - 1)
        ):
            raise LayoutError(self.size, self.align)

    @classmethod
    def from_size_align(cls, size: int, align: int) -> Layout:
        """Build a layout, raising LayoutError if it is invalid."""
        return cls(size, align)

    @classmethod
    def array(cls, elem: ElementType, n: int) -> Layout:
        """The layout of ``n`` consecutive values of ``elem``."""
        if n < 0:
            raise ValueError(f"element count must not be negative, got {n}")
        size, align = elem.size, elem.align
        if size != 0 and n > (ISIZE_MAX + 1 - align) // size:
            raise LayoutError(size, align)
        return cls(size * n, align)


@dataclass(frozen=True)
class ElementType:
    """A fixed-size value type, stored using a ``struct`` format."""

    name: str
    format: str
    align: int | None = None
    size: int = field(init=False)

    def __post_init__(self) -> None:
        size = struct.calcsize(self.format)
        object.__setattr__(self, "size", size)
        if self.align is None:
            align = size if _is_power_of_two(size) else 1
            object.__setattr__(self, "align", align)
        elif not _is_power_of_two(self.align):
            raise LayoutError(size, self.align)

    @property
    def layout(self) -> Layout:
        """The layout of a single value."""
        return Layout(self.size, self.align)

    @property
    def is_zst(self) -> bool:
        """Whether values of this type take no space."""
        return self.size == 0

    def pack(self, value: Any) -> bytes:
        """Encode ``value`` as exactly ``size`` bytes."""
        if self.size == 0:
            return b""
        try:
            return struct.pack(self.format, value)
        except struct.error as exc:
            raise ValueError(f"cannot store {value!r} as {self.name}: {exc}") from exc

    def unpack(self, data: bytes | bytearray | memoryview) -> Any:
        """Decode a value from exactly ``size`` bytes."""
        raw = bytes(data)
        if len(raw) != self.size:
            raise ValueError(
                f"{self.name} needs {self.size} bytes, got {len(raw)}"
            )
        if self.size == 0:
            return None
        return struct.unpack(self.format, raw)[0]

    def default(self) -> Any:
        """The value whose representation is all zero bytes."""
        return self.unpack(bytes(self.size))

    def max_slice_len(self) -> int:
        """The largest safe number of elements in one slice."""
        if self.size == 0:
            return USIZE_MAX
        return ISIZE_MAX // self.size


UNIT = ElementType("()", "")
BOOL = ElementType("bool", "<?")
U8 = ElementType("u8", "<B")
I8 = ElementType("i8", "<b")
U16 = ElementType("u16", "<H")
I16 = ElementType("i16", "<h")
U32 = ElementType("u32", "<I")
I32 = ElementType("i32", "<i")
U64 = ElementType("u64", "<Q")
I64 = ElementType("i64", "<q")
USIZE = ElementType("usize", "<Q")
ISIZE = ElementType("isize", "<q")
F32 = ElementType("f32", "<f")
F64 = ElementType("f64", "<d")


def pad_layout_for(layout: Layout, align: int) -> int:
    """Padding needed after ``layout`` to reach a multiple of ``align``.

    Returns ``USIZE_MAX`` when ``align`` is not a power of two.
    """
    if not _is_power_of_two(align):
        return USIZE_MAX
    return _size_rounded_up_to_align(layout.size, align) - layout.size


def pad_layout_to_align(layout: Layout, align: int) -> Layout:
    """Round the layout's size up to a multiple of ``align``."""
    return Layout(_size_rounded_up_to_align(layout.size, align), layout.align)


def repeat_layout(layout: Layout, count: int) -> tuple[Layout, int]:
    """Layout of ``count`` padded copies of ``layout`` and the stride between them."""
    padded = pad_layout_to_align(layout, layout.align)
    return repeat_layout_packed(padded, count), padded.size


def repeat_layout_packed(layout: Layout, count: int) -> Layout:
    """Layout of ``count`` copies of ``layout`` with no padding between them."""
    if count < 0:
        raise ValueError(f"count must not be negative, got {count}")
    size = layout.size * count
    if size > USIZE_MAX:
        raise ArithmeticOverflow()
    try:
        return Layout.from_size_align(size, layout.align)
    except LayoutError:
        raise LayoutError(layout.size, layout.align) from None