"""
Affinity propagation over a single column.

Exemplars emerge from damped message passing between points:
responsibilities r(i, k) say how well k would serve as i's exemplar,
availabilities a(i, k) how appropriate it is for i to choose k. After a
fixed number of rounds a point is an exemplar when r(i, i) + a(i, i) > 0.

The self-similarity of every point is the smallest similarity in the table
(the negated largest pairwise distance), which favours few exemplars.

Missing similarities (NaN) never win a maximum and never contribute positive
evidence, so one NaN value cannot stall the messages of the other points. A
NaN point has no competing candidate and ends up as its own exemplar.

Time complexity is O(I * n^2); memory is O(n^2).
"""

from __future__ import annotations

from typing import List, Optional, Sequence

import numpy as np

from ..utils.logging_config import get_logger
from .base import (
    BaseVisitor,
    Cluster,
    _readonly,
    as_column,
    clusters_from_labels,
    is_missing,
)
from .functors import DistanceFunc, check_distance_func, squared_difference
from .kmeans import nearest_center

logger = get_logger(__name__)

DEFAULT_DAMPING = 0.9

# Stand-in for "no competing candidate" in the responsibility maximum.
NO_CANDIDATE = -np.finfo(np.float64).max


def condensed_similarity(values: np.ndarray, distance_func: DistanceFunc) -> np.ndarray:
    """
    Upper-triangular similarity table in row-major packed form.

    Entry ``(i, j)`` with ``i <= j`` lives at ``i * n - i * (i + 1) // 2 + j``.
    Off-diagonal entries are ``-distance(values[i], values[j])``; every
    diagonal entry holds the minimum off-diagonal similarity, NaN ignored.

    Args:
        values: (n,) column values
        distance_func: Broadcasting distance function

    Returns:
        (n * (n + 1) // 2,) float64 array
    """
    n = len(values)
    rows, cols = np.triu_indices(n)
    table = np.empty(len(rows), dtype=np.float64)
    off_diag = rows != cols
    table[off_diag] = -np.asarray(
        distance_func(values[rows[off_diag]], values[cols[off_diag]]), dtype=np.float64
    )
    known = table[off_diag]
    known = known[~np.isnan(known)]
    preference = known.min() if len(known) else np.finfo(np.float64).max
    table[~off_diag] = preference
    return table


def expand_condensed(table: np.ndarray, n: int) -> np.ndarray:
    """Unpack a condensed upper-triangular table into a symmetric (n, n) matrix."""
    rows, cols = np.triu_indices(n)
    matrix = np.empty((n, n), dtype=table.dtype)
    matrix[rows, cols] = table
    matrix[cols, rows] = table
    return matrix


def update_responsibility(
    similarity: np.ndarray,
    availability: np.ndarray,
    responsibility: np.ndarray,
    damping: float,
) -> np.ndarray:
    """
    One damped responsibility update.

    r(i, k) = s(i, k) - max_{k' != k} [s(i, k') + a(i, k')]

    NaN terms are skipped in the maximum.
    """
    n = similarity.shape[0]
    rows = np.arange(n)
    combined = similarity + availability
    combined[np.isnan(combined)] = NO_CANDIDATE

    best = np.argmax(combined, axis=1)
    first = combined[rows, best]
    combined[rows, best] = -np.inf
    second = combined.max(axis=1)

    max_other = np.repeat(first[:, None], n, axis=1)
    max_other[rows, best] = second

    fresh = similarity - max_other
    return (1.0 - damping) * fresh + damping * responsibility


def update_availability(
    responsibility: np.ndarray,
    availability: np.ndarray,
    damping: float,
) -> np.ndarray:
    """
    One damped availability update.

    a(k, k) = sum_{i' != k} max(0, r(i', k))
    a(i, k) = min(0, r(k, k) + sum_{i' not in {i, k}} max(0, r(i', k)))

    NaN responsibilities count as zero.
    """
    positive = np.fmax(responsibility, 0.0)
    diag = np.diag(responsibility).copy()
    np.fill_diagonal(positive, diag)

    fresh = positive.sum(axis=0)[None, :] - positive
    self_avail = np.diag(fresh).copy()
    fresh = np.fmin(fresh, 0.0)
    np.fill_diagonal(fresh, self_avail)
    return (1.0 - damping) * fresh + damping * availability


class AffinityPropVisitor(BaseVisitor):
    """
    Exemplar discovery by affinity propagation.

    Results:
        result: Positions of the exemplars, ascending
        exemplars: Exemplar values
        clusters: One cluster per exemplar (only when ``calc_clusters`` is set)
    """

    def __init__(
        self,
        num_of_iter: int,
        calc_clusters: bool = True,
        distance_func: DistanceFunc = squared_difference,
        damping_factor: float = DEFAULT_DAMPING,
    ):
        """
        Args:
            num_of_iter: Number of message-passing rounds (no early stop)
            calc_clusters: Whether to assign every point to its nearest exemplar
            distance_func: Broadcasting distance function
            damping_factor: Weight of the previous message, in [0, 1)

        Raises:
            ValueError: If num_of_iter < 0 or damping_factor is outside [0, 1)
        """
        super().__init__()
        if num_of_iter < 0:
            raise ValueError(f"num_of_iter must be >= 0, got {num_of_iter}")
        if not 0.0 <= damping_factor < 1.0:
            raise ValueError(
                f"damping_factor must be in [0, 1), got {damping_factor}"
            )
        self.num_of_iter = int(num_of_iter)
        self.calc_clusters = calc_clusters
        self.distance_func = check_distance_func(distance_func)
        self.damping_factor = float(damping_factor)
        self._centers = np.empty(0, dtype=np.intp)
        self._exemplars: Optional[np.ndarray] = None
        self._clusters: List[Cluster] = []

    def reset(self) -> None:
        super().reset()
        self._centers = np.empty(0, dtype=np.intp)
        self._exemplars = None
        self._clusters = []

    def _find_exemplars(self, values: np.ndarray) -> np.ndarray:
        n = len(values)
        if n < 2:
            # A lone point is its own exemplar.
            return np.arange(n, dtype=np.intp)

        similarity = expand_condensed(condensed_similarity(values, self.distance_func), n)
        availability = np.zeros((n, n), dtype=np.float64)
        responsibility = np.zeros((n, n), dtype=np.float64)

        # A column without any known similarity saturates the self-responsibility
        with np.errstate(over="ignore"):
            for _ in range(self.num_of_iter):
                responsibility = update_responsibility(
                    similarity, availability, responsibility, self.damping_factor
                )
                availability = update_availability(
                    responsibility, availability, self.damping_factor
                )

        evidence = np.diag(responsibility) + np.diag(availability)
        return np.flatnonzero(evidence > 0.0)

    def _assign(
        self, values: np.ndarray, centers: np.ndarray, exemplars: np.ndarray
    ) -> List[Cluster]:
        """
        Put every known point with its nearest exemplar.

        Missing points have no distance to anything: a missing exemplar keeps
        only itself and other missing points belong to no cluster.
        """
        missing = is_missing(values)
        positions = np.flatnonzero(~missing)
        labels = nearest_center(values[positions], exemplars, self.distance_func)

        lone = np.flatnonzero(missing[centers])
        positions = np.concatenate([positions, centers[lone]])
        labels = np.concatenate([labels, lone])
        order = np.argsort(positions, kind="stable")
        return clusters_from_labels(
            labels[order], len(centers), positions[order], centers=list(exemplars)
        )

    def apply(self, index: Optional[Sequence], column: Sequence) -> None:
        values = as_column(index, column)
        centers = self._find_exemplars(values)
        exemplars = values[centers]

        clusters: List[Cluster] = []
        if self.calc_clusters and len(centers):
            clusters = self._assign(values, centers, exemplars)

        logger.debug(
            "affinity propagation: n=%d, rounds=%d, exemplars=%d",
            len(values), self.num_of_iter, len(centers),
        )
        self._centers = centers
        self._exemplars = exemplars
        self._clusters = clusters
        self._mark_applied()

    def _get_result(self) -> np.ndarray:
        return _readonly(self._centers)

    @property
    def exemplars(self) -> np.ndarray:
        """Values of the exemplars, in position order."""
        self._require_applied()
        return _readonly(self._exemplars)

    @property
    def clusters(self) -> List[Cluster]:
        """Membership per exemplar (empty unless ``calc_clusters``)."""
        self._require_applied()
        return list(self._clusters)
