"""
sRGB transfer function.

Rasters on disk are 8-bit gamma-encoded; all arithmetic (averaging in
particular) happens on linear-light intensities in [0, 1]. Both directions
accept a scalar or a numpy array and return the same kind.
"""
from __future__ import annotations

from typing import Union

import numpy as np


ArrayLike = Union[int, float, np.ndarray]

_LINEAR_CUTOFF = 0.0031308
_ENCODED_CUTOFF = 0.04045


def _decode_float(c: np.ndarray) -> np.ndarray:
    return np.where(c <= _ENCODED_CUTOFF, c / 12.92, ((c + 0.055) / 1.055) ** 2.4)


# uint8 -> linear float32
_DECODE_LUT = _decode_float(np.arange(256, dtype=np.float64) / 255.0).astype(np.float32)


def decode(value: ArrayLike) -> Union[float, np.ndarray]:
    """8-bit gamma-encoded value(s) -> linear intensity in [0, 1]."""
    arr = np.asarray(value)
    if arr.dtype != np.uint8:
        arr = np.clip(arr, 0, 255).astype(np.uint8)
    out = _DECODE_LUT[arr]
    if out.ndim == 0:
        return float(out)
    return out


def encode(linear: ArrayLike) -> Union[int, np.ndarray]:
    """Linear intensity -> 8-bit gamma-encoded value(s). Input is clamped to [0, 1]; NaN maps to 0."""
    lin = np.nan_to_num(np.asarray(linear, dtype=np.float64), nan=0.0)
    lin = np.clip(lin, 0.0, 1.0)
    c = np.where(
        lin <= _LINEAR_CUTOFF,
        lin * 12.92,
        1.055 * np.power(lin, 1.0 / 2.4) - 0.055,
    )
    out = np.clip(np.rint(c * 255.0), 0, 255).astype(np.uint8)
    if out.ndim == 0:
        return int(out)
    return out
