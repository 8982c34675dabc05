# cfgcomplexity/errors.py
"""
Error types raised by cfgcomplexity.

Hierarchy
---------
::

    ComplexityError (base)
    ├── MalformedGraphError  - traversal reached a block already in progress
    ├── EmptyGraphError      - metric needs an entry block, graph has none
    ├── GraphFormatError     - bad JSON / S-expression graph document
    └── ConfigError          - invalid AnalysisConfig value or file

All metrics are pure functions of their input, so none of these errors
leaves shared state behind.  Callers that analyse many functions (the CLI
in particular) catch ``ComplexityError`` per function and keep going.
"""

from __future__ import annotations

from typing import Any, Optional


class ComplexityError(Exception):
    """Base class for every error raised by this package."""


class MalformedGraphError(ComplexityError):
    """A traversal observed a block that is already on its own stack.

    Attributes
    ----------
    block : str or None
        Name of the block that was reached while still in progress.
    metric : str or None
        Metric whose traversal failed (``"mccabe"``, ``"longest_path"``).
    """

    def __init__(
        self,
        message: str,
        *,
        block: Optional[str] = None,
        metric: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.block = block
        self.metric = metric


class EmptyGraphError(ComplexityError):
    """The graph has no entry block."""

    def __init__(self, message: str, *, metric: Optional[str] = None) -> None:
        super().__init__(message)
        self.metric = metric


class GraphFormatError(ComplexityError):
    """A graph description document could not be turned into a CFG."""

    def __init__(self, message: str, *, source: Optional[str] = None) -> None:
        if source:
            message = f"{source}: {message}"
        super().__init__(message)
        self.source = source


class ConfigError(ComplexityError):
    """Invalid configuration key, value or file."""

    def __init__(self, message: str, *, key: Optional[str] = None,
                 value: Any = None) -> None:
        super().__init__(message)
        self.key = key
        self.value = value
