"""
Frame Analytics - Core Package

Stateful analytics algorithms ("visitors") over dataframe columns.

This package provides:
- Clustering visitors (k-means, affinity propagation, DBSCAN, mean shift)
- A forward/inverse discrete Fourier transform visitor
- A shared worker pool used for chunked parallel dispatch
"""

__version__ = "0.1.0"

from .algorithms import (
    AffinityPropVisitor,
    BaseVisitor,
    Cluster,
    DBSCANVisitor,
    FastFourierTransVisitor,
    KMeansVisitor,
    MeanShiftKernel,
    MeanShiftVisitor,
)

# Explicitly import subpackages to ensure they're discoverable
from . import algorithms
from . import utils

__all__ = [
    "AffinityPropVisitor",
    "BaseVisitor",
    "Cluster",
    "DBSCANVisitor",
    "FastFourierTransVisitor",
    "KMeansVisitor",
    "MeanShiftKernel",
    "MeanShiftVisitor",
    "algorithms",
    "utils",
]
