"""
Distance functions and mean-shift kernel shapes.

Distance functions take two values and return a real number. Visitors call
them on whole numpy arrays at once, so every distance function must broadcast
elementwise (plain arithmetic on numpy arrays does). Scalar-only callables can
be adapted with ``vectorize_distance``.

All functions here are pure and safe to call from several threads.
"""

from __future__ import annotations

from enum import Enum
from typing import Callable, Dict, Union

import numpy as np

DistanceFunc = Callable[[np.ndarray, np.ndarray], np.ndarray]
KernelFunc = Callable[[np.ndarray], np.ndarray]


def squared_difference(x, y):
    """Return ``|x - y| ** 2`` (the same as ``(x - y) ** 2`` for real values)."""
    diff = np.abs(np.subtract(x, y))
    return diff * diff


def absolute_difference(x, y):
    """Return ``|x - y|``."""
    return np.abs(np.subtract(x, y))


def vectorize_distance(func: Callable[[object, object], float]) -> DistanceFunc:
    """
    Adapt a scalar-only distance callable to the broadcasting contract.

    Args:
        func: Callable taking two scalars and returning a float

    Returns:
        A numpy-vectorized distance function returning float64 values
    """
    return np.vectorize(func, otypes=[np.float64])


def check_distance_func(func) -> DistanceFunc:
    """Raise TypeError unless *func* is callable; return it unchanged."""
    if not callable(func):
        raise TypeError(
            f"distance_func must be callable, got {type(func).__name__}"
        )
    return func


# ------------------------------------------------------------------
# Mean-shift kernels
# ------------------------------------------------------------------
# Each kernel maps distances to weights. Compact kernels are zero past 1.


def _uniform(d: np.ndarray) -> np.ndarray:
    return np.where(d <= 1.0, 1.0, 0.0)


def _triangular(d: np.ndarray) -> np.ndarray:
    return np.where(d <= 1.0, 1.0 - np.abs(d), 0.0)


def _parabolic(d: np.ndarray) -> np.ndarray:
    return np.where(d <= 1.0, 1.0 - d * d, 0.0)


def _biweight(d: np.ndarray) -> np.ndarray:
    x = 1.0 - d * d
    return np.where(d <= 1.0, x * x, 0.0)


def _triweight(d: np.ndarray) -> np.ndarray:
    x = 1.0 - d * d
    return np.where(d <= 1.0, x * x * x, 0.0)


def _tricube(d: np.ndarray) -> np.ndarray:
    x = 1.0 - d * d * d
    return np.where(d <= 1.0, x * x * x, 0.0)


def _gaussian(d: np.ndarray) -> np.ndarray:
    return np.exp(-0.5 * d * d)


def _cosine(d: np.ndarray) -> np.ndarray:
    return np.where(d <= 1.0, np.cos(0.5 * np.pi * d), 0.0)


def _logistic(d: np.ndarray) -> np.ndarray:
    with np.errstate(over="ignore"):
        return 1.0 / (2.0 + np.exp(d) + np.exp(-d))


def _sigmoid(d: np.ndarray) -> np.ndarray:
    with np.errstate(over="ignore"):
        return 1.0 / (np.exp(d) + np.exp(-d))


def _silverman(d: np.ndarray) -> np.ndarray:
    x = np.sqrt(0.5) * np.abs(d)
    return np.exp(-x) * np.sin(x + 0.25 * np.pi)


class MeanShiftKernel(str, Enum):
    """Kernel shapes available to the mean-shift visitor."""

    UNIFORM = "uniform"
    TRIANGULAR = "triangular"
    PARABOLIC = "parabolic"
    BIWEIGHT = "biweight"
    TRIWEIGHT = "triweight"
    TRICUBE = "tricube"
    GAUSSIAN = "gaussian"
    COSINE = "cosine"
    LOGISTIC = "logistic"
    SIGMOID = "sigmoid"
    SILVERMAN = "silverman"

    @classmethod
    def parse(cls, kernel: Union["MeanShiftKernel", str]) -> "MeanShiftKernel":
        """
        Resolve a kernel member from a member or its (case-insensitive) name.

        Raises:
            ValueError: If the name is not a known kernel
        """
        if isinstance(kernel, cls):
            return kernel
        try:
            return cls(str(kernel).lower())
        except ValueError:
            known = ", ".join(m.value for m in cls)
            raise ValueError(
                f"Unknown kernel: {kernel!r}. Available kernels: {known}"
            ) from None

    @property
    def function(self) -> KernelFunc:
        """The vectorized weight function for this shape."""
        return _KERNELS[self]

    def __call__(self, d) -> np.ndarray:
        return _KERNELS[self](np.asarray(d, dtype=np.float64))


_KERNELS: Dict[MeanShiftKernel, KernelFunc] = {
    MeanShiftKernel.UNIFORM: _uniform,
    MeanShiftKernel.TRIANGULAR: _triangular,
    MeanShiftKernel.PARABOLIC: _parabolic,
    MeanShiftKernel.BIWEIGHT: _biweight,
    MeanShiftKernel.TRIWEIGHT: _triweight,
    MeanShiftKernel.TRICUBE: _tricube,
    MeanShiftKernel.GAUSSIAN: _gaussian,
    MeanShiftKernel.COSINE: _cosine,
    MeanShiftKernel.LOGISTIC: _logistic,
    MeanShiftKernel.SIGMOID: _sigmoid,
    MeanShiftKernel.SILVERMAN: _silverman,
}
