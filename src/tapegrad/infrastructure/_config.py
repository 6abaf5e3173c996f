"""
Runtime configuration.

Configuration is read from environment variables once, on first use, and can
be replaced programmatically:

- ``TAPEGRAD_EXPM_SERIES_ORDER``: highest order of the truncated commutator
  series used by the matrix-exponential backward (default ``6``, minimum
  ``1``).
- ``TAPEGRAD_DEFAULT_DTYPE``: element dtype used by the storage factories when
  none is given (default ``"float32"``; ``"float32"`` or ``"float64"``).

A `Graph` captures the active configuration when it is constructed, so
changing the configuration later does not affect existing graphs.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
import os
import threading
from typing import Mapping, Optional

import numpy as np

_ENV_EXPM_ORDER = "TAPEGRAD_EXPM_SERIES_ORDER"
_ENV_DEFAULT_DTYPE = "TAPEGRAD_DEFAULT_DTYPE"

_SUPPORTED_DTYPES = ("float32", "float64")


@dataclass(frozen=True)
class TapeGradConfig:
    """
    Immutable engine configuration.

    Attributes
    ----------
    expm_series_order : int
        Highest series order ``N`` of the ExpM backward. Orders ``2..N`` are
        accumulated on top of the incoming gradient. ``1`` keeps only the
        incoming gradient.
    default_dtype : str
        Dtype name used by storage factories when no dtype is passed.
    """

    expm_series_order: int = 6
    default_dtype: str = "float32"

    def __post_init__(self) -> None:
        if int(self.expm_series_order) < 1:
            raise ValueError(
                f"expm_series_order must be >= 1, got {self.expm_series_order}"
            )
        if self.default_dtype not in _SUPPORTED_DTYPES:
            raise ValueError(
                f"default_dtype must be one of {_SUPPORTED_DTYPES}, "
                f"got {self.default_dtype!r}"
            )

    @property
    def numpy_dtype(self) -> np.dtype:
        """Return `default_dtype` as a NumPy dtype."""
        return np.dtype(self.default_dtype)

    def with_overrides(self, **changes) -> "TapeGradConfig":
        """Return a copy with the given fields replaced (validated again)."""
        return replace(self, **changes)

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "TapeGradConfig":
        """
        Build a configuration from environment variables.

        Parameters
        ----------
        environ : Optional[Mapping[str, str]]
            Mapping to read from. Defaults to ``os.environ``.

        Raises
        ------
        ValueError
            If a variable is present but cannot be parsed or is out of range.
        """
        env = os.environ if environ is None else environ
        kwargs = {}

        raw_order = env.get(_ENV_EXPM_ORDER, "").strip()
        if raw_order:
            try:
                kwargs["expm_series_order"] = int(raw_order)
            except ValueError:
                raise ValueError(
                    f"{_ENV_EXPM_ORDER} must be an integer, got {raw_order!r}"
                ) from None

        raw_dtype = env.get(_ENV_DEFAULT_DTYPE, "").strip()
        if raw_dtype:
            kwargs["default_dtype"] = raw_dtype.lower()

        return cls(**kwargs)


_lock = threading.Lock()
_active: Optional[TapeGradConfig] = None


def get_config() -> TapeGradConfig:
    """Return the process-wide configuration, loading it from the environment once."""
    global _active
    with _lock:
        if _active is None:
            _active = TapeGradConfig.from_env()
        return _active


def set_config(config: Optional[TapeGradConfig]) -> None:
    """
    Replace the process-wide configuration.

    Passing ``None`` discards the current configuration so that the next
    `get_config()` reloads it from the environment.
    """
    global _active
    if config is not None and not isinstance(config, TapeGradConfig):
        raise TypeError(f"expected TapeGradConfig or None, got {type(config)!r}")
    with _lock:
        _active = config
