"""
Core package init for the autocrop decision engine.

Makes the `autocrop` modules importable without requiring an editable install.
"""

__all__ = [
    "classify",
    "engine",
    "host",
    "tracking",
    "config",
    "errors",
    "events",
    "io_utils",
    "types",
]
