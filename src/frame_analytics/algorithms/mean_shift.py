"""
Mean-shift mode seeking over a single column.

Every point is repeatedly moved to the kernel-weighted average of the column
values around it until the average lands within ``max_distance`` of the
point's original value (the point is then frozen) or the iteration budget is
exhausted. The shifted values are then merged greedily: a point joins the
first cluster whose centroid is within ``max_distance``, else it starts a new
one.

Runtime complexity is O(I * n^2) where I is the number of iterations.
"""

from __future__ import annotations

from typing import List, Optional, Sequence, Union

import numpy as np

from ..utils.logging_config import get_logger
from .base import BaseVisitor, Cluster, _readonly, as_column, work_dtype
from .functors import (
    DistanceFunc,
    MeanShiftKernel,
    check_distance_func,
    squared_difference,
)

logger = get_logger(__name__)

# Only points within this many bandwidths contribute to a shift.
WINDOW_BANDWIDTHS = 3.0


class MeanShiftVisitor(BaseVisitor):
    """
    Kernel-density mode seeking followed by greedy cluster merge.

    Results:
        result: List of clusters; ``center`` is the shifted value that opened it
        shifted: Final working value of every position
        n_iter: Number of shifting sweeps executed
    """

    def __init__(
        self,
        kernel_bandwidth: float,
        max_distance: float,
        kernel: Union[MeanShiftKernel, str] = MeanShiftKernel.GAUSSIAN,
        distance_func: DistanceFunc = squared_difference,
        max_iteration: int = 50,
    ):
        """
        Args:
            kernel_bandwidth: Distance scale of the kernel
            max_distance: Freeze/merge radius
            kernel: Kernel shape, as a member or its name
            distance_func: Broadcasting distance function
            max_iteration: Maximum number of shifting sweeps

        Raises:
            ValueError: On non-positive bandwidth/radius, negative
                max_iteration, or an unknown kernel name
        """
        super().__init__()
        if not kernel_bandwidth > 0:
            raise ValueError(f"kernel_bandwidth must be > 0, got {kernel_bandwidth}")
        if not max_distance > 0:
            raise ValueError(f"max_distance must be > 0, got {max_distance}")
        if max_iteration < 0:
            raise ValueError(f"max_iteration must be >= 0, got {max_iteration}")
        self.kernel_bandwidth = float(kernel_bandwidth)
        self.max_distance = float(max_distance)
        self.kernel = MeanShiftKernel.parse(kernel)
        self.distance_func = check_distance_func(distance_func)
        self.max_iteration = int(max_iteration)
        self._kernel_func = self.kernel.function
        self._clusters: List[Cluster] = []
        self._shifted: Optional[np.ndarray] = None
        self._n_iter = 0

    def reset(self) -> None:
        super().reset()
        self._clusters = []
        self._shifted = None
        self._n_iter = 0

    def _shift(self, values: np.ndarray, shifted: np.ndarray, active: np.ndarray) -> np.ndarray:
        """
        One sweep over the active positions.

        Returns:
            Boolean mask over *active* of the positions that keep shifting
        """
        radius = WINDOW_BANDWIDTHS * self.kernel_bandwidth
        dbl_sq_bw = 2.0 * self.kernel_bandwidth * self.kernel_bandwidth

        dists = np.asarray(
            self.distance_func(shifted[active][:, None], values[None, :]),
            dtype=np.float64,
        )
        in_window = dists <= radius
        with np.errstate(invalid="ignore"):
            weights = np.where(in_window, self._kernel_func(dists) / dbl_sq_bw, 0.0)
            weighted = np.where(in_window, weights * values[None, :], 0.0)
        total = weights.sum(axis=1)
        moved = weighted.sum(axis=1)

        empty = total == 0.0
        if empty.any():
            logger.warning(
                "mean shift: %d point(s) have zero total kernel weight; "
                "freezing them at their current value",
                int(empty.sum()),
            )
        candidates = np.where(empty, shifted[active], moved / np.where(empty, 1.0, total))

        settled = np.asarray(
            self.distance_func(candidates, values[active]), dtype=np.float64
        ) <= self.max_distance
        keep = ~(settled | empty)
        shifted[active[keep]] = candidates[keep]
        return keep

    def _build_clusters(self, shifted: np.ndarray) -> List[Cluster]:
        """Greedy, order-dependent merge of shifted values."""
        centroids: List = []
        members: List[List[int]] = []
        for position, value in enumerate(shifted):
            if centroids:
                dists = np.asarray(
                    self.distance_func(np.asarray(centroids), value), dtype=np.float64
                )
                hits = np.flatnonzero(dists <= self.max_distance)
                if len(hits):
                    members[hits[0]].append(position)
                    continue
            centroids.append(value)
            members.append([position])
        return [
            Cluster(indices=np.asarray(idx, dtype=np.intp), center=center)
            for idx, center in zip(members, centroids)
        ]

    def apply(self, index: Optional[Sequence], column: Sequence) -> None:
        values = as_column(index, column)
        values = values.astype(work_dtype(values), copy=False)
        shifted = values.copy()
        shifting = np.ones(len(values), dtype=bool)

        n_iter = 0
        while n_iter < self.max_iteration and shifting.any():
            n_iter += 1
            active = np.flatnonzero(shifting)
            keep = self._shift(values, shifted, active)
            shifting[active[~keep]] = False

        self._n_iter = n_iter
        self._shifted = shifted
        self._clusters = self._build_clusters(shifted)
        logger.debug(
            "mean shift: n=%d, kernel=%s, sweeps=%d, clusters=%d",
            len(values), self.kernel.value, n_iter, len(self._clusters),
        )
        self._mark_applied()

    def _get_result(self) -> List[Cluster]:
        return list(self._clusters)

    @property
    def shifted(self) -> np.ndarray:
        """Working value of every position after shifting."""
        self._require_applied()
        return _readonly(self._shifted)

    @property
    def n_iter(self) -> int:
        """Shifting sweeps executed by the last ``apply``."""
        self._require_applied()
        return self._n_iter
