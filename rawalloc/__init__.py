"""Allocation interface, layouts, guards, typed helpers and statistics over a simulated heap."""

__version__ = "0.10.1"

__all__ = ["alloc", "alloc_ext", "errors", "guards", "in_place", "layout", "stats"]