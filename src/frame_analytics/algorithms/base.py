"""
Base classes for column visitors.

A visitor is a stateful algorithm object with a reset/apply/result
lifecycle. It is constructed once with its parameters, ``apply`` runs the
whole algorithm over one column (the optional index only bounds the number
of processed positions), and the result accessors are valid until the next
``reset`` or ``apply``.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, List, Optional, Sequence

import numpy as np


def _readonly(values: np.ndarray) -> np.ndarray:
    """Return a read-only view of *values*."""
    view = values.view()
    view.flags.writeable = False
    return view


@dataclass
class Cluster:
    """
    Positions of the column values that belong to one cluster.

    The cluster never owns the values: look them up in the column it was
    computed from with ``values(column)``. Positions are stored in the order
    the points were assigned (ascending for every visitor in this package).

    Attributes:
        indices: Integer positions into the caller's column
        center: Representative value (centroid, exemplar or mode), if any
    """
    indices: np.ndarray = field(default_factory=lambda: np.empty(0, dtype=np.intp))
    center: Any = None

    def __post_init__(self):
        """Store positions as a read-only integer array."""
        self.indices = _readonly(np.asarray(self.indices, dtype=np.intp))

    def values(self, column: Sequence) -> np.ndarray:
        """Return the member values, taken from *column* by position."""
        return np.asarray(column)[self.indices]

    def __len__(self) -> int:
        return len(self.indices)

    def __contains__(self, position) -> bool:
        return bool(np.any(self.indices == position))

    def __repr__(self) -> str:
        return f"Cluster(size={len(self.indices)}, center={self.center!r})"


def column_size(index: Optional[Sequence], column: Sequence) -> int:
    """
    Number of positions a visitor processes.

    Args:
        index: Optional index sequence paired with the column
        column: Column values

    Returns:
        ``min(len(index), len(column))``, or ``len(column)`` without an index
    """
    if index is None:
        return len(column)
    return min(len(index), len(column))


def as_column(index: Optional[Sequence], column: Sequence) -> np.ndarray:
    """
    Convert a column to a 1-D numpy array truncated to the index length.

    Raises:
        ValueError: If the column is not one-dimensional
    """
    values = np.asarray(column)
    if values.ndim != 1:
        raise ValueError(f"column must be one-dimensional, got shape {values.shape}")
    return values[: column_size(index, values)]


def is_missing(values: np.ndarray) -> np.ndarray:
    """
    Vectorized missing-value predicate.

    NaN marks missing data for float and complex columns; other dtypes never
    contain missing values.
    """
    values = np.asarray(values)
    if values.dtype.kind in "fc":
        return np.isnan(values)
    return np.zeros(values.shape, dtype=bool)


def work_dtype(values: np.ndarray) -> np.dtype:
    """Floating (or complex) dtype used for centroids and working buffers."""
    return np.result_type(values.dtype, np.float64)


class BaseVisitor(ABC):
    """
    Abstract base class for all column visitors.

    Subclasses implement ``reset``, ``apply`` and ``_get_result``. The public
    ``result`` property guards against reading before ``apply`` ran.
    """

    def __init__(self):
        self._applied = False

    @abstractmethod
    def reset(self) -> None:
        """Clear results and internal buffers so the visitor can be reused."""
        self._applied = False

    @abstractmethod
    def apply(self, index: Optional[Sequence], column: Sequence) -> None:
        """
        Run the whole algorithm once over *column*.

        Args:
            index: Optional index sequence; only its length is used
            column: Column values (any sequence accepted by ``numpy.asarray``)
        """

    @abstractmethod
    def _get_result(self) -> Any:
        """Return the primary result; only called after ``apply``."""

    def _mark_applied(self) -> None:
        self._applied = True

    def _require_applied(self) -> None:
        if not self._applied:
            raise RuntimeError(
                f"{type(self).__name__} has no result; call apply() first"
            )

    @property
    def result(self) -> Any:
        """Primary result of the last ``apply``."""
        self._require_applied()
        return self._get_result()

    def visit(self, index: Optional[Sequence], column: Sequence) -> Any:
        """
        Reset, apply and return the result in one call.

        Example:
            >>> centroids = KMeansVisitor(2, 50, seed=7).visit(None, [0, 1, 10, 11])
        """
        self.reset()
        self.apply(index, column)
        return self.result


def clusters_from_labels(
    labels: np.ndarray,
    n_clusters: int,
    positions: Optional[np.ndarray] = None,
    centers: Optional[Sequence] = None,
) -> List[Cluster]:
    """
    Group positions by cluster label.

    Args:
        labels: Cluster id per entry of *positions*, in ``[0, n_clusters)``
        n_clusters: Number of clusters to build (empty ones included)
        positions: Column positions matching *labels*; defaults to
            ``arange(len(labels))``
        centers: Optional center value per cluster

    Returns:
        List of ``n_clusters`` clusters, positions in ascending order
    """
    labels = np.asarray(labels)
    if positions is None:
        positions = np.arange(len(labels))
    return [
        Cluster(
            indices=positions[labels == k],
            center=None if centers is None else centers[k],
        )
        for k in range(n_clusters)
    ]
