"""
Algorithm Core Library - clustering and spectral column visitors.

Every visitor follows the same lifecycle: construct with parameters,
``reset()``, ``apply(index, column)``, then read ``result`` and the
visitor-specific accessors.
"""

from .base import BaseVisitor, Cluster, column_size, is_missing
from .functors import (
    MeanShiftKernel,
    absolute_difference,
    squared_difference,
    vectorize_distance,
)
from .kmeans import KMeansVisitor
from .affinity_propagation import AffinityPropVisitor
from .dbscan import DBSCANVisitor, NOISE, UNCLASSIFIED
from .mean_shift import MeanShiftVisitor
from .fourier import FastFourierTransVisitor, fft_v

__all__ = [
    # Protocol
    "BaseVisitor",
    "Cluster",
    "column_size",
    "is_missing",
    # Functors
    "MeanShiftKernel",
    "absolute_difference",
    "squared_difference",
    "vectorize_distance",
    # Clustering
    "KMeansVisitor",
    "AffinityPropVisitor",
    "DBSCANVisitor",
    "NOISE",
    "UNCLASSIFIED",
    "MeanShiftVisitor",
    # Spectral
    "FastFourierTransVisitor",
    "fft_v",
]
