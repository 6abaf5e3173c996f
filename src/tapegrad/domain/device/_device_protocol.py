"""
Device abstraction contracts for tapegrad.

This module defines a duck-typed `DeviceLike` protocol that represents a
computation device descriptor (CPU or CUDA) without coupling storage backends
or the tape engine to a specific concrete class.
"""

from __future__ import annotations

from typing import Optional, Protocol, runtime_checkable


@runtime_checkable
class DeviceLike(Protocol):
    """
    Duck-typed device contract.

    Any object that provides these members can be used as a device descriptor
    by storage backends and by the graph's backend-consistency checks.
    """

    type: object
    index: Optional[int]

    def is_cpu(self) -> bool: ...
    def is_cuda(self) -> bool: ...
    def __str__(self) -> str: ...
