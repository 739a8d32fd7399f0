"""
Density-Based Spatial Clustering of Applications with Noise (DBSCAN).

A point with at least ``min_members`` neighbors within ``max_distance``
(itself included) is a core point. Clusters grow from core points through an
explicit FIFO work queue; points that never become reachable from a core
point end up as noise.

Every neighborhood query is a linear scan over the column, so the runtime
is O(n^2) in the average and the worst case.
"""

from __future__ import annotations

from collections import deque
from typing import List, Optional, Sequence

import numpy as np

from ..utils.logging_config import get_logger
from .base import BaseVisitor, Cluster, _readonly, as_column, clusters_from_labels
from .functors import DistanceFunc, check_distance_func, squared_difference

logger = get_logger(__name__)

UNCLASSIFIED = -1
NOISE = -2


class DBSCANVisitor(BaseVisitor):
    """
    Density-based clustering with core/noise classification.

    Results:
        result: List of clusters, in order of discovery
        noise: Positions labeled noise, ascending
        labels: Per-position label (cluster id or ``NOISE``)
    """

    def __init__(
        self,
        min_members: int,
        max_distance: float,
        distance_func: DistanceFunc = squared_difference,
    ):
        """
        Args:
            min_members: Minimum neighborhood size of a core point
            max_distance: Neighborhood radius (inclusive)
            distance_func: Broadcasting distance function

        Raises:
            ValueError: If min_members < 1 or max_distance <= 0
        """
        super().__init__()
        if min_members < 1:
            raise ValueError(f"min_members must be >= 1, got {min_members}")
        if not max_distance > 0:
            raise ValueError(f"max_distance must be > 0, got {max_distance}")
        self.min_members = int(min_members)
        self.max_distance = float(max_distance)
        self.distance_func = check_distance_func(distance_func)
        self._clusters: List[Cluster] = []
        self._noise = np.empty(0, dtype=np.intp)
        self._labels = np.empty(0, dtype=np.intp)

    def reset(self) -> None:
        super().reset()
        self._clusters = []
        self._noise = np.empty(0, dtype=np.intp)
        self._labels = np.empty(0, dtype=np.intp)

    def _neighborhood(self, values: np.ndarray, position: int) -> np.ndarray:
        """Positions within ``max_distance`` of ``values[position]``, ascending."""
        dists = np.asarray(self.distance_func(values[position], values), dtype=np.float64)
        return np.flatnonzero(dists <= self.max_distance)

    def _expand_cluster(
        self,
        values: np.ndarray,
        position: int,
        labels: np.ndarray,
        cluster_id: int,
    ) -> bool:
        """
        Try to grow a new cluster from *position*.

        Returns:
            False if *position* is not a core point (it is then labeled noise)
        """
        seeds = self._neighborhood(values, position)
        if len(seeds) < self.min_members:
            labels[position] = NOISE
            return False

        labels[seeds] = cluster_id

        # The point itself is found by value, not by position: with duplicate
        # values the last equal seed is dropped instead.
        matches = np.flatnonzero(values[seeds] == values[position])
        core_index = int(matches[-1]) if len(matches) else 0
        queue = deque(np.delete(seeds, core_index).tolist())

        while queue:
            member = queue.popleft()
            neighbors = self._neighborhood(values, member)
            if len(neighbors) < self.min_members:
                continue
            for neighbor in neighbors:
                if labels[neighbor] in (UNCLASSIFIED, NOISE):
                    queue.append(int(neighbor))
                    labels[neighbor] = cluster_id
        return True

    def apply(self, index: Optional[Sequence], column: Sequence) -> None:
        values = as_column(index, column)
        n = len(values)
        labels = np.full(n, UNCLASSIFIED, dtype=np.intp)

        cluster_id = 0
        for position in range(n):
            if labels[position] == UNCLASSIFIED and self._expand_cluster(
                values, position, labels, cluster_id
            ):
                cluster_id += 1

        self._clusters = clusters_from_labels(labels, cluster_id)
        self._noise = np.flatnonzero(labels < 0)
        self._labels = labels
        logger.debug(
            "dbscan: n=%d, clusters=%d, noise=%d", n, cluster_id, len(self._noise)
        )
        self._mark_applied()

    def _get_result(self) -> List[Cluster]:
        return list(self._clusters)

    @property
    def noise(self) -> np.ndarray:
        """Positions that belong to no cluster."""
        self._require_applied()
        return _readonly(self._noise)

    @property
    def labels(self) -> np.ndarray:
        """Cluster id per position, ``NOISE`` for noise."""
        self._require_applied()
        return _readonly(self._labels)
