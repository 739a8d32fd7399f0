"""
Forward and inverse discrete Fourier transform of a column.

Power-of-two lengths use an iterative radix-2 decimation-in-time transform.
Every other length goes through Bluestein's algorithm, which expresses the
transform as a convolution computed with power-of-two transforms padded to at
least ``2n + 1`` points. The inverse transform is computed as
``conj(fft(conj(x))) / n``.

Elementwise loops (input lift, twiddle/chirp tables, pointwise products,
conjugation, scaling, magnitude, angle) go through the shared thread pool's
gate: large inputs with a high enough concurrency level are split into
contiguous chunks that run on the pool, everything else runs in place. Both
paths evaluate the same expression for every element.
"""

from __future__ import annotations

from typing import Callable, Optional, Sequence

import numpy as np

from ..utils.logging_config import get_logger
from ..utils.thread_pool import ThreadPool, get_thread_pool
from .base import BaseVisitor, _readonly, as_column

logger = get_logger(__name__)


def is_power_of_two(n: int) -> bool:
    """True for 1, 2, 4, ...; also true for 0, which needs no transform."""
    return (n & (n - 1)) == 0


def bit_reversal_permutation(n: int) -> np.ndarray:
    """
    Bit-reversed positions for a power-of-two length *n*.

    Returns:
        (n,) integer array ``p`` such that ``x[p]`` is ``x`` in bit-reversed order
    """
    levels = n.bit_length() - 1
    positions = np.arange(n, dtype=np.int64)
    reversed_bits = np.zeros(n, dtype=np.int64)
    for _ in range(levels):
        reversed_bits = (reversed_bits << 1) | (positions & 1)
        positions >>= 1
    return reversed_bits


def bluestein_length(n: int) -> int:
    """Smallest power of two ``m`` with ``m // 2 > n`` (so ``m >= 2n + 1``)."""
    m = 1
    while m // 2 <= n:
        m *= 2
    return m


class _SpectralEngine:
    """
    Transform kernels bound to one thread pool and concurrency level.

    Each range function below only writes inside its own ``[lo, hi)`` slice,
    so chunks can run concurrently on the pool.
    """

    def __init__(self, pool: ThreadPool, thread_level: int):
        self.pool = pool
        self.thread_level = thread_level

    def run(self, begin: int, end: int, func: Callable[[int, int], None], size: int) -> None:
        self.pool.run_loop(begin, end, func, size=size, thread_level=self.thread_level)

    # ------------------------------------------------------------------
    # Elementwise helpers
    # ------------------------------------------------------------------

    def conjugate(self, column: np.ndarray) -> None:
        n = len(column)

        def conj(lo: int, hi: int) -> None:
            np.conjugate(column[lo:hi], out=column[lo:hi])

        self.run(0, n, conj, n)

    def scale(self, column: np.ndarray, divisor: float, size: int) -> None:
        n = len(column)

        def divide(lo: int, hi: int) -> None:
            column[lo:hi] /= divisor

        self.run(0, n, divide, size)

    def multiply(self, column: np.ndarray, other: np.ndarray, size: int) -> None:
        n = len(column)

        def mul(lo: int, hi: int) -> None:
            column[lo:hi] *= other[lo:hi]

        self.run(0, n, mul, size)

    # ------------------------------------------------------------------
    # Transforms
    # ------------------------------------------------------------------

    def radix2(self, column: np.ndarray, reverse: bool) -> None:
        """In-place Cooley-Tukey radix-2 transform of a power-of-two column."""
        n = len(column)
        half_n = n // 2
        two_pi = (2.0 if reverse else -2.0) * np.pi

        # Trigonometric table
        exp_table = np.empty(half_n, dtype=column.dtype)

        def twiddles(lo: int, hi: int) -> None:
            k = np.arange(lo, hi, dtype=np.float64)
            exp_table[lo:hi] = np.exp(1j * (two_pi * k / n))

        self.run(0, half_n, twiddles, n)

        # Bit-reversed addressing permutation
        column[:] = column[bit_reversal_permutation(n)]

        # Decimation-in-time butterflies, one vectorized pass per stage
        size = 2
        while size <= n:
            half = size // 2
            blocks = column.reshape(-1, size)
            factors = exp_table[: half_n : n // size][:half]
            temp = blocks[:, half:] * factors
            blocks[:, half:] = blocks[:, :half] - temp
            blocks[:, :half] += temp
            size *= 2

    def convolve(self, xvec: np.ndarray, yvec: np.ndarray) -> np.ndarray:
        """Circular convolution of two power-of-two sequences, in place on *xvec*."""
        m = len(xvec)
        self.transform(xvec, reverse=False)
        self.transform(yvec, reverse=False)
        self.multiply(xvec, yvec, m)
        self.transform(xvec, reverse=True)
        self.scale(xvec, float(m), m)
        return xvec

    def bluestein(self, column: np.ndarray, reverse: bool) -> None:
        """In-place transform of an arbitrary-length column."""
        n = len(column)
        n_2 = 2 * n
        pi = np.pi if reverse else -np.pi

        # Chirp table
        exp_table = np.empty(n, dtype=column.dtype)

        def chirp(lo: int, hi: int) -> None:
            k = np.arange(lo, hi, dtype=np.int64)
            sq = ((k * k) % n_2).astype(np.float64)
            exp_table[lo:hi] = np.exp(1j * (pi * sq / n))

        self.run(0, n, chirp, n)

        m = bluestein_length(n)
        xvec = np.zeros(m, dtype=column.dtype)

        def premultiply(lo: int, hi: int) -> None:
            xvec[lo:hi] = column[lo:hi] * exp_table[lo:hi]

        self.run(0, n, premultiply, n)

        yvec = np.zeros(m, dtype=column.dtype)
        yvec[0] = exp_table[0]

        def mirror(lo: int, hi: int) -> None:
            conj = np.conjugate(exp_table[lo:hi])
            yvec[lo:hi] = conj
            yvec[m - hi + 1 : m - lo + 1] = conj[::-1]

        self.run(1, n, mirror, n)

        conv = self.convolve(xvec, yvec)

        def postmultiply(lo: int, hi: int) -> None:
            column[lo:hi] = exp_table[lo:hi] * conv[lo:hi]

        self.run(0, n, postmultiply, n)

    def transform(self, column: np.ndarray, reverse: bool = False) -> None:
        n = len(column)
        if n == 0:
            return
        if is_power_of_two(n):
            self.radix2(column, reverse)
        else:
            self.bluestein(column, reverse)

    def inverse_transform(self, column: np.ndarray) -> None:
        n = len(column)
        if n == 0:
            return
        self.conjugate(column)
        self.transform(column, reverse=False)
        self.conjugate(column)
        self.scale(column, float(n), n)


class FastFourierTransVisitor(BaseVisitor):
    """
    Discrete Fourier transform of a real or complex column.

    Results:
        result: Complex spectrum (or signal, when ``inverse``), same length
            as the input
        magnitude: ``|result|``, computed on first access and cached
        angle: ``arg(result)``, computed on first access and cached

    The concurrency level is captured at construction, from the pool or from
    the ``thread_level`` override.
    """

    def __init__(
        self,
        inverse: bool = False,
        thread_pool: Optional[ThreadPool] = None,
        thread_level: Optional[int] = None,
    ):
        """
        Args:
            inverse: Compute the inverse transform instead of the forward one
            thread_pool: Pool for chunked dispatch; defaults to the shared pool
            thread_level: Concurrency level override

        Raises:
            ValueError: If thread_level < 1
        """
        super().__init__()
        if thread_level is not None and thread_level < 1:
            raise ValueError(f"thread_level must be >= 1, got {thread_level}")
        self.inverse = inverse
        self.thread_pool = thread_pool or get_thread_pool()
        self.thread_level = (
            self.thread_pool.thread_level if thread_level is None else int(thread_level)
        )
        self._engine = _SpectralEngine(self.thread_pool, self.thread_level)
        self._result: Optional[np.ndarray] = None
        self._magnitude: Optional[np.ndarray] = None
        self._angle: Optional[np.ndarray] = None

    def reset(self) -> None:
        super().reset()
        self._result = None
        self._magnitude = None
        self._angle = None

    def _lift(self, values: np.ndarray) -> np.ndarray:
        """Copy the column into a complex working buffer."""
        n = len(values)
        result = np.empty(n, dtype=np.result_type(values.dtype, np.complex64))

        def copy(lo: int, hi: int) -> None:
            result[lo:hi] = values[lo:hi]

        self._engine.run(0, n, copy, n)
        return result

    def apply(self, index: Optional[Sequence], column: Sequence) -> None:
        values = as_column(index, column)
        result = self._lift(values)

        if self.inverse:
            self._engine.inverse_transform(result)
        else:
            self._engine.transform(result, reverse=False)

        logger.debug(
            "fft: n=%d, inverse=%s, method=%s, parallel=%s",
            len(result),
            self.inverse,
            "radix2" if is_power_of_two(len(result)) else "bluestein",
            self.thread_pool.should_parallelize(len(result), self.thread_level),
        )
        self._result = result
        self._magnitude = None
        self._angle = None
        self._mark_applied()

    def _get_result(self) -> np.ndarray:
        return _readonly(self._result)

    def _derive(self, func: Callable[[np.ndarray], np.ndarray]) -> np.ndarray:
        source = self._result
        n = len(source)
        out = np.empty(n, dtype=source.real.dtype)

        def fill(lo: int, hi: int) -> None:
            out[lo:hi] = func(source[lo:hi])

        self._engine.run(0, n, fill, n)
        return out

    @property
    def magnitude(self) -> np.ndarray:
        """Absolute value of every result element."""
        self._require_applied()
        if self._magnitude is None:
            self._magnitude = self._derive(np.abs)
        return _readonly(self._magnitude)

    @property
    def angle(self) -> np.ndarray:
        """Phase angle (radians) of every result element."""
        self._require_applied()
        if self._angle is None:
            self._angle = self._derive(np.angle)
        return _readonly(self._angle)


fft_v = FastFourierTransVisitor
