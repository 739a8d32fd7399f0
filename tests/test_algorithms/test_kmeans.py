"""
Tests for the k-means visitor.
"""

import numpy as np
import pytest

from frame_analytics.algorithms.functors import absolute_difference
from frame_analytics.algorithms.kmeans import KMeansVisitor, nearest_center


# ------------------------------------------------------------------
# nearest_center
# ------------------------------------------------------------------


def test_nearest_center_basic():
    """Each value maps to its closest center."""
    values = np.array([0.0, 4.0, 9.0, 11.0])
    centers = np.array([1.0, 10.0])
    labels = nearest_center(values, centers, absolute_difference)
    np.testing.assert_array_equal(labels, [0, 0, 1, 1])


def test_nearest_center_ties_go_to_first():
    """Equal distances resolve to the lowest center index."""
    labels = nearest_center(np.array([5.0]), np.array([4.0, 6.0]), absolute_difference)
    assert labels[0] == 0


def test_nearest_center_skips_missing_centers():
    """A NaN center is never nearer than a real one."""
    centers = np.array([np.nan, 10.0])
    labels = nearest_center(np.array([0.0, 9.0]), centers, absolute_difference)
    np.testing.assert_array_equal(labels, [1, 1])


# ------------------------------------------------------------------
# KMeansVisitor
# ------------------------------------------------------------------


@pytest.mark.parametrize("seed", [0, 1, 2, 3, 123])
def test_kmeans_two_groups(seed):
    """Centroids converge near 0.33 and 10.33 for any seed."""
    column = [0.0, 0.0, 1.0, 10.0, 11.0, 10.0]
    km = KMeansVisitor(2, 100, seed=seed)
    km.apply(None, column)

    centroids = np.sort(km.result)
    assert centroids[0] == pytest.approx(1.0 / 3.0, abs=0.5)
    assert centroids[1] == pytest.approx(31.0 / 3.0, abs=0.5)


def test_kmeans_points_assigned_to_nearest_centroid():
    """Every point lands in the cluster of its nearest centroid."""
    column = np.array([0.0, 0.0, 1.0, 10.0, 11.0, 10.0])
    km = KMeansVisitor(2, 100, seed=7)
    km.apply(None, column)

    clusters = km.clusters
    assert len(clusters) == 2
    assert sum(len(c) for c in clusters) == len(column)
    for cluster in clusters:
        for value in cluster.values(column):
            dists = (value - km.result) ** 2
            assert cluster.center == km.result[int(np.argmin(dists))]

    groups = sorted(sorted(c.indices.tolist()) for c in clusters)
    assert groups == [[0, 1, 2], [3, 4, 5]]


def test_kmeans_seed_is_reproducible():
    """Same integer seed, same centroids."""
    rng = np.random.default_rng(0)
    column = np.concatenate([rng.normal(0, 1, 50), rng.normal(20, 1, 50)])

    first = KMeansVisitor(3, 50, seed=11).visit(None, column)
    second = KMeansVisitor(3, 50, seed=11).visit(None, column)
    np.testing.assert_array_equal(first, second)


def test_kmeans_accepts_generator():
    """A numpy Generator can be injected as the random source."""
    km = KMeansVisitor(2, 20, seed=np.random.default_rng(5))
    km.apply(None, [1.0, 2.0, 50.0, 51.0])
    assert km.result.shape == (2,)


def test_kmeans_skips_missing_values():
    """NaN points are ignored and never appear in a cluster."""
    column = np.array([0.0, np.nan, 1.0, 10.0, np.nan, 11.0])
    km = KMeansVisitor(2, 100, seed=4)
    km.apply(None, column)

    assert not np.any(np.isnan(km.result))
    members = np.concatenate([c.indices for c in km.clusters])
    assert sorted(members.tolist()) == [0, 2, 3, 5]


def test_kmeans_without_clusters():
    """calc_clusters=False publishes centroids only."""
    km = KMeansVisitor(2, 10, calc_clusters=False, seed=1)
    km.apply(None, [0.0, 1.0, 10.0, 11.0])
    assert km.clusters == []
    assert len(km.result) == 2


def test_kmeans_index_bounds_column():
    """Only min(len(index), len(column)) positions are processed."""
    column = [0.0, 1.0, 10.0, 11.0, 500.0, 501.0]
    km = KMeansVisitor(2, 50, seed=2)
    km.apply([0, 1, 2, 3], column)

    members = np.concatenate([c.indices for c in km.clusters])
    assert members.max() == 3
    assert np.all(km.result < 100)


def test_kmeans_stops_early():
    """Converged centroids end the loop before the iteration budget."""
    km = KMeansVisitor(2, 1000, seed=3)
    km.apply(None, [0.0, 0.0, 10.0, 10.0])
    assert km.n_iter < 1000


def test_kmeans_single_cluster_is_mean():
    """K=1 converges to the column mean."""
    column = [2.0, 4.0, 6.0, 8.0]
    result = KMeansVisitor(1, 20, seed=0).visit(None, column)
    assert result[0] == pytest.approx(5.0)


def test_kmeans_reset_and_reuse():
    """A visitor can be reset and applied again."""
    km = KMeansVisitor(2, 50, seed=9)
    km.apply(None, [0.0, 1.0, 10.0, 11.0])
    km.reset()
    with pytest.raises(RuntimeError, match="call apply"):
        _ = km.result
    km.apply(None, [100.0, 101.0, 200.0, 201.0])
    assert km.result.max() > 100


def test_kmeans_result_is_read_only():
    """The published centroid array cannot be modified."""
    km = KMeansVisitor(2, 10, seed=0)
    km.apply(None, [0.0, 1.0, 10.0, 11.0])
    with pytest.raises(ValueError):
        km.result[0] = 42.0


def test_kmeans_validation():
    """Invalid parameters fail fast."""
    with pytest.raises(ValueError, match="k must be >= 1"):
        KMeansVisitor(0, 10)
    with pytest.raises(ValueError, match="num_of_iter must be >= 0"):
        KMeansVisitor(2, -1)
    with pytest.raises(TypeError, match="distance_func must be callable"):
        KMeansVisitor(2, 10, distance_func="euclidean")
    with pytest.raises(ValueError, match="non-empty"):
        KMeansVisitor(2, 10).apply(None, [])
