"""
K-means (Lloyd's algorithm) over a single column.

Centroids are seeded from K independently sampled column positions, then
refined by alternating nearest-centroid assignment and mean updates until no
centroid moves by more than ``CONVERGENCE_TOLERANCE`` or the iteration budget
is spent. Missing (NaN) values are ignored throughout.
"""

from __future__ import annotations

from typing import List, Optional, Sequence, Union

import numpy as np

from ..utils.logging_config import get_logger
from .base import (
    BaseVisitor,
    Cluster,
    _readonly,
    as_column,
    clusters_from_labels,
    is_missing,
    work_dtype,
)
from .functors import DistanceFunc, check_distance_func, squared_difference

logger = get_logger(__name__)

CONVERGENCE_TOLERANCE = 1e-7

SeedLike = Union[int, np.random.Generator, None]


def nearest_center(
    values: np.ndarray, centers: np.ndarray, distance_func: DistanceFunc
) -> np.ndarray:
    """
    Index of the nearest center for every value.

    Ties go to the lowest center index. NaN distances never win unless every
    distance of a value is NaN, in which case it maps to center 0.

    Args:
        values: (n,) values
        centers: (K,) centers
        distance_func: Broadcasting distance function

    Returns:
        (n,) integer array of center indices
    """
    if len(values) == 0:
        return np.empty(0, dtype=np.intp)
    dists = np.asarray(distance_func(values[:, None], centers[None, :]), dtype=np.float64)
    dists = np.where(np.isnan(dists), np.inf, dists)
    return np.argmin(dists, axis=1)


class KMeansVisitor(BaseVisitor):
    """
    Centroid-based partitioning of a column into K clusters.

    Results:
        result: (K,) centroid array
        clusters: K clusters (only when ``calc_clusters`` is set)
        n_iter: Number of update rounds executed

    Example:
        >>> km = KMeansVisitor(2, 100, seed=3)
        >>> km.apply(None, [0, 0, 1, 10, 11, 10])
        >>> np.sort(km.result).round(2)
        array([ 0.33, 10.33])
    """

    def __init__(
        self,
        k: int,
        num_of_iter: int,
        calc_clusters: bool = True,
        distance_func: DistanceFunc = squared_difference,
        seed: SeedLike = None,
    ):
        """
        Args:
            k: Number of clusters
            num_of_iter: Maximum number of assignment/update rounds
            calc_clusters: Whether to materialize cluster membership
            distance_func: Broadcasting distance function
            seed: Int seed, numpy Generator, or None for a fresh random source

        Raises:
            ValueError: If k < 1 or num_of_iter < 0
        """
        super().__init__()
        if k < 1:
            raise ValueError(f"k must be >= 1, got {k}")
        if num_of_iter < 0:
            raise ValueError(f"num_of_iter must be >= 0, got {num_of_iter}")
        self.k = int(k)
        self.num_of_iter = int(num_of_iter)
        self.calc_clusters = calc_clusters
        self.distance_func = check_distance_func(distance_func)
        self.seed = seed
        self._centroids: Optional[np.ndarray] = None
        self._clusters: List[Cluster] = []
        self._n_iter = 0

    def reset(self) -> None:
        super().reset()
        self._centroids = None
        self._clusters = []
        self._n_iter = 0

    def _init_centroids(self, values: np.ndarray, missing: np.ndarray) -> np.ndarray:
        """Sample K positions; missing samples leave the zero default."""
        rng = np.random.default_rng(self.seed)
        centroids = np.zeros(self.k, dtype=work_dtype(values))
        picks = rng.integers(0, len(values), size=self.k)
        for k, pos in enumerate(picks):
            if not missing[pos]:
                centroids[k] = values[pos]
        return centroids

    def _calc_k_means(self, values: np.ndarray, missing: np.ndarray) -> np.ndarray:
        centroids = self._init_centroids(values, missing)
        present = values[~missing].astype(centroids.dtype, copy=False)

        self._n_iter = 0
        for iteration in range(self.num_of_iter):
            self._n_iter = iteration + 1
            labels = nearest_center(present, centroids, self.distance_func)

            sums = np.zeros(self.k, dtype=centroids.dtype)
            np.add.at(sums, labels, present)
            counts = np.bincount(labels, minlength=self.k)

            # Empty clusters divide by 1 instead of 0
            candidates = sums / np.maximum(counts, 1)
            moved = np.asarray(
                self.distance_func(candidates, centroids), dtype=np.float64
            ) > CONVERGENCE_TOLERANCE
            if not moved.any():
                break
            centroids[moved] = candidates[moved]

        logger.debug(
            "k-means: k=%d, n=%d, converged after %d round(s)",
            self.k, len(values), self._n_iter,
        )
        return centroids

    def _calc_clusters(
        self, values: np.ndarray, missing: np.ndarray, centroids: np.ndarray
    ) -> List[Cluster]:
        positions = np.flatnonzero(~missing)
        labels = nearest_center(values[positions], centroids, self.distance_func)
        return clusters_from_labels(labels, self.k, positions, centers=list(centroids))

    def apply(self, index: Optional[Sequence], column: Sequence) -> None:
        values = as_column(index, column)
        if len(values) == 0:
            raise ValueError("k-means needs a non-empty column")
        missing = is_missing(values)

        centroids = self._calc_k_means(values, missing)
        self._centroids = centroids
        self._clusters = (
            self._calc_clusters(values, missing, centroids) if self.calc_clusters else []
        )
        self._mark_applied()

    def _get_result(self) -> np.ndarray:
        return _readonly(self._centroids)

    @property
    def clusters(self) -> List[Cluster]:
        """Cluster membership per centroid (empty unless ``calc_clusters``)."""
        self._require_applied()
        return list(self._clusters)

    @property
    def n_iter(self) -> int:
        """Update rounds executed by the last ``apply``."""
        self._require_applied()
        return self._n_iter
