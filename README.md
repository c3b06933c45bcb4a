# rawalloc

A small allocation interface for raw byte buffers. Allocations live in a
simulated heap (`rawalloc.alloc.Heap`) and are reached through immutable
`Pointer` objects. Failures are raised as subclasses of
`rawalloc.errors.AllocError`.

## Installation

```
pip install rawalloc
```

## Layouts and element types

`rawalloc.layout.Layout` is a frozen size and alignment pair. Constructing one
with an alignment that is not a power of two, a negative size, or a size too
large for its alignment raises `LayoutError`. `Layout.array(elem, n)` gives the
layout of `n` values of an `ElementType`.

An `ElementType` describes a fixed-size value through a `struct` format string.
It offers these members:

- `pack` and `unpack`
- `default()`, the value whose bytes are all zero
- `max_slice_len()`
- `layout` and `is_zst`

The module defines ready-made types: `UNIT`, `BOOL`, `U8`, `I8`, `U16`, `I16`,
`U32`, `I32`, `U64`, `I64`, `USIZE`, `ISIZE`, `F32` and `F64`. All of them are
little-endian.

The module also provides this layout arithmetic:

```python
from rawalloc.layout import (
    Layout, pad_layout_for, pad_layout_to_align, repeat_layout, repeat_layout_packed,
)

layout = Layout.from_size_align(10, 4)
assert pad_layout_for(layout, 8) == 6
assert pad_layout_to_align(layout, 8) == Layout(16, 4)

rep, stride = repeat_layout(Layout(4, 4), 3)
assert (rep, stride) == (Layout(12, 4), 4)
assert repeat_layout_packed(Layout(4, 4), 5) == Layout(20, 4)
```

- `pad_layout_for` returns `2**64 - 1` when the alignment is not a power of two.
- `repeat_layout_packed` raises `ArithmeticOverflow` when the size passes
  `2**64 - 1`.

## Allocating and freeing

```python
from rawalloc.alloc import DefaultAlloc, Heap
from rawalloc.layout import Layout

allocator = DefaultAlloc(Heap())
layout = Layout.from_size_align(16, 8)

ptr = allocator.alloc_filled(layout, 0xAB)
assert ptr.read(16) == b"\xab" * 16
allocator.dealloc(ptr, layout)
```

`DefaultAlloc()` with no heap uses one process-wide heap. A `Heap` may be
given a `capacity` in bytes.

The allocation methods raise these errors:

- a zero-sized layout raises `ZeroSizedLayout`, which carries a dangling
  pointer whose address is the alignment
- a request beyond the heap's capacity raises `AllocFailed`

`Alloc` is an abstract base class. A subclass supplies five methods:

- `alloc`
- `alloc_zeroed`
- `alloc_filled`
- `alloc_patterned`
- `dealloc`

The rest of its methods are built on those five:

- `alloc_slice`, `alloc_slice_zeroed`, `alloc_slice_filled` and
  `alloc_slice_patterned` take an `ElementType` and a length. They raise
  `LayoutError` for a slice that is too large. Any allocation error, including
  the one for a zero-length slice, is re-raised as `AllocFailed`.
- `dealloc_n`
- `grow`, `grow_zeroed`, `grow_patterned` and `grow_filled`
- `shrink`
- `realloc`, `realloc_zeroed`, `realloc_patterned` and `realloc_filled`

A `Pointer` offers these methods:

- `add`
- `read` and `write`
- `fill`
- `copy_to`
- `read_value` and `write_value`, for typed access

## Growing, shrinking and reallocating

```python
old = Layout.from_size_align(4, 1)
new = Layout.from_size_align(8, 1)

ptr = allocator.alloc_filled(old, 0xAA)
grown = allocator.grow_filled(ptr, old, new, 0xBB)
assert grown.read(8) == b"\xaa" * 4 + b"\xbb" * 4
allocator.dealloc(grown, new)
```

Grow and shrink allocate a new block, copy the kept bytes and free the old
block.

- `grow` raises `GrowSmallerNewLayout` when the new size is smaller.
- `shrink` raises `ShrinkBiggerNewLayout` when the new size is larger.
- Both return the same pointer when the sizes are equal.
- `realloc` and its variants grow or shrink as the sizes require.

## Guards

`rawalloc.guards.AllocGuard` and `SliceAllocGuard` are context managers. They
free their allocation on exit unless `release()` was called first.

`SliceAllocGuard` counts initialised elements. It offers these members:

- `init(value)`, which raises `CapacityError` when the slice is full
- `extend_init(values)`
- `initialized`, `full` and `is_full`

## Typed helpers

`rawalloc.alloc_ext` provides these functions:

- `alloc_init`
- `alloc_init_slice`
- `alloc_write`
- `alloc_default`
- `alloc_default_slice`
- `alloc_clone_to`
- `alloc_clone_slice_to`
- `alloc_slice_with`
- `grow_slice`
- `zero_and_dealloc`
- `zero_and_dealloc_n`
- `alloc_copy_to`, which takes bytes, or text stored as UTF-8

The initialising helpers free the block again if initialisation raises.

```python
from rawalloc.alloc_ext import alloc_slice_with
from rawalloc.layout import U32

p = alloc_slice_with(allocator, U32, 3, lambda i: i * 10)
assert [p.read_value(U32, i) for i in range(3)] == [0, 10, 20]
allocator.dealloc_n(p, U32, 3)
```

## In-place resizing

`rawalloc.in_place.ResizeInPlace` is an abstract `Alloc` subclass. It
declares `grow_in_place` and `shrink_in_place`, and derives these methods
from them:

- the zeroed, patterned and filled grow variants
- the `realloc_in_place*` methods

`DefaultAlloc` does not implement it, so the package has no allocator that
resizes without moving. `CannotResizeInPlace` is the error such an allocator
is meant to raise.

## Statistics

`rawalloc.stats.Stats` wraps an allocator, by default a fresh `DefaultAlloc()`.
It reports each allocation, grow, shrink and free to a `StatsLogger` as an
`AllocRes`. The loggers provided are:

- `NullLogger` records nothing.
- `CounterLogger` keeps a byte total. It raises `ValueError` if more bytes are
  released than are counted.
- `IOLog` keeps a byte total and writes one line per result to a text stream,
  by default standard output.
- `StringLog` keeps the lines in memory, readable with `get_log()`.

```python
from rawalloc.stats import Stats, StringLog

logger = StringLog()
stats = Stats(logger, allocator)
p = stats.alloc(layout)
stats.dealloc(p, layout)
print(logger.get_log())
```

## What this package does not do

The heap is simulated in Python byte arrays. Nothing here hands out real
process memory or installs a process-wide allocator. The package also has no
owned, growable buffer type. It has no command-line interface.