# SPDX-FileCopyrightText: 2024-present barrettMCW <mjbarrett@mcw.edu>
#
# SPDX-License-Identifier: MIT
"""Sign selection for eigenvector-derived stain bases.

PCA/SVD basis vectors are only defined up to sign. Stain concentrations are
non-negative, so the right sign for each vector is the one that sends most
optical-density pixels into the non-negative orthant when projected.
:class:`BasisSignOptimizer` tests every sign combination on a random
sub-sample of the pixels and keeps the best one.

The optimizer owns a ``numpy.random.Generator`` seeded once at construction.
Successive calls advance the same stream, so a fixed seed gives a
reproducible sequence of sub-samples. Instances are not thread-safe; give
each thread its own optimizer.

Typical usage::

    import numpy as np
    from macenko_stain import BasisSignOptimizer, VectorDirection

    optimizer = BasisSignOptimizer(seed=0)
    od_pixels = np.random.default_rng(0).uniform(0.0, 1.0, size=(5000, 3))
    basis = -np.eye(3)[:, :2]  # two column vectors with the wrong sign
    fixed = optimizer.optimize_basis_vector_signs(od_pixels, basis)
"""

from __future__ import annotations

import enum
import itertools
from typing import Union

import numpy as np
from numpy.typing import ArrayLike, NDArray

from macenko_stain.config import (
    StainMathSettings,
    coerce_enum,
    validate_count,
    validate_num_testing_pixels,
)
from macenko_stain.logging import get_logger

logger = get_logger(__name__)


class VectorDirection(enum.IntEnum):
    """Axis along which basis vectors are laid out. Outputs use the same one."""

    COLUMN_VECTORS = 0
    ROW_VECTORS = 1

    @classmethod
    def coerce(cls, value: Union[VectorDirection, int, str]) -> VectorDirection:
        """Return the member named or numbered by *value*.

        :raises ValueError: if *value* does not identify a member
        """
        return coerce_enum(cls, value, "direction")


def _as_sample_matrix(pixels: ArrayLike) -> NDArray[np.float64]:
    arr = np.asarray(pixels)
    if arr.dtype != np.float64:
        arr = arr.astype(np.float64)
    if arr.ndim != 2:
        msg = f"source_pixels must be 2D (N, C), got shape {arr.shape}"
        raise ValueError(msg)
    return arr


class BasisSignOptimizer:
    """Choose the sign of each basis vector from sampled pixel projections.

    :param num_testing_pixels: sub-sample size used per call; defaults to
        ``settings.num_testing_pixels``
    :type num_testing_pixels: int | None
    :param seed: seed for the owned random generator; defaults to
        ``settings.seed`` (``None`` draws fresh OS entropy)
    :type seed: int | None
    :param settings: shared settings; defaults to ``StainMathSettings()``
    :type settings: StainMathSettings | None
    """

    def __init__(
        self,
        num_testing_pixels: int | None = None,
        seed: int | None = None,
        settings: StainMathSettings | None = None,
    ) -> None:
        settings = settings if settings is not None else StainMathSettings()
        if num_testing_pixels is None:
            num_testing_pixels = settings.num_testing_pixels
        if seed is None:
            seed = settings.seed
        self._num_testing_pixels = validate_num_testing_pixels(num_testing_pixels)
        self._rng = np.random.default_rng(seed)

    @property
    def num_testing_pixels(self) -> int:
        """Number of pixels sampled by each :meth:`optimize_basis_vector_signs`."""
        return self._num_testing_pixels

    @num_testing_pixels.setter
    def num_testing_pixels(self, value: int) -> None:
        self._num_testing_pixels = validate_num_testing_pixels(value)

    def create_pixel_subsample(
        self, source_pixels: ArrayLike, number_of_pixels: int
    ) -> NDArray[np.float64]:
        """Randomly pick rows of *source_pixels* without replacement.

        When *number_of_pixels* is at least the number of rows, every row is
        returned once, in the original order, and the generator is not
        advanced. Otherwise exactly *number_of_pixels* distinct rows are
        drawn uniformly and returned in the order they were drawn.

        :param source_pixels: pixel population with shape ``(N, C)``
        :type source_pixels: ArrayLike
        :param number_of_pixels: how many rows to keep
        :type number_of_pixels: int
        :return: array with shape ``(min(N, number_of_pixels), C)``
        :rtype: NDArray[np.float64]
        :raises ValueError: if *source_pixels* is not 2D or
            *number_of_pixels* is not a non-negative integer
        """
        pixels = _as_sample_matrix(source_pixels)
        number_of_pixels = validate_count(number_of_pixels, "number_of_pixels")

        n_rows = pixels.shape[0]
        if number_of_pixels >= n_rows:
            return pixels.copy()
        indices = self._rng.choice(n_rows, size=number_of_pixels, replace=False)
        logger.debug("Sampled %d of %d pixels", number_of_pixels, n_rows)
        return pixels[indices]

    def optimize_basis_vector_signs(
        self,
        source_pixels: ArrayLike,
        input_vectors: ArrayLike,
        direction: Union[VectorDirection, int, str] = VectorDirection.COLUMN_VECTORS,
    ) -> NDArray[np.float64]:
        """Flip basis vectors so that projected pixels land in the ++ orthant.

        Every one of the ``2**k`` sign combinations is scored on a random
        sub-sample of :attr:`num_testing_pixels` pixels. The score is the
        number of pixels whose projections onto all vectors are
        non-negative, with the total count of non-negative projections as a
        tie-breaker. The original signs are kept unless another combination
        scores strictly higher.

        :param source_pixels: pixels with shape ``(N, C)``
        :type source_pixels: ArrayLike
        :param input_vectors: 2 or 3 basis vectors of length ``C``, laid out
            along *direction*
        :type input_vectors: ArrayLike
        :param direction: :attr:`VectorDirection.COLUMN_VECTORS` when
            *input_vectors* has shape ``(C, k)``,
            :attr:`VectorDirection.ROW_VECTORS` when it has shape ``(k, C)``
        :type direction: VectorDirection | int | str
        :return: *input_vectors* with some vectors negated, same shape and
            layout as the input
        :rtype: NDArray[np.float64]
        :raises ValueError: on a bad direction, a vector count other than
            2 or 3, or a channel count that does not match *source_pixels*
        """
        direction = VectorDirection.coerce(direction)
        pixels = _as_sample_matrix(source_pixels)
        vectors = np.array(input_vectors, dtype=np.float64)
        if vectors.ndim != 2:
            msg = f"input_vectors must be 2D, got shape {vectors.shape}"
            raise ValueError(msg)
        if direction is VectorDirection.COLUMN_VECTORS:
            vectors = vectors.T

        n_vectors, n_channels = vectors.shape
        if n_vectors not in (2, 3):
            msg = (
                f"input_vectors must hold 2 or 3 {direction.name.lower()}, "
                f"got {n_vectors}"
            )
            raise ValueError(msg)
        if n_channels != pixels.shape[1]:
            msg = (
                f"basis vectors have {n_channels} components but source_pixels "
                f"has {pixels.shape[1]} columns"
            )
            raise ValueError(msg)

        if pixels.shape[0] == 0:
            logger.warning("No source pixels supplied; basis vector signs unchanged")
            return self._restore_direction(vectors, direction)

        subsample = self.create_pixel_subsample(pixels, self._num_testing_pixels)
        projections = subsample @ vectors.T
        positive = projections >= 0.0
        negative = projections <= 0.0

        best_signs = None
        best_score = None
        for signs in itertools.product((1.0, -1.0), repeat=n_vectors):
            flipped = np.where(np.asarray(signs) > 0, positive, negative)
            score = (int(flipped.all(axis=1).sum()), int(flipped.sum()))
            if best_score is None or score > best_score:
                best_signs, best_score = signs, score

        if any(sign < 0 for sign in best_signs):
            logger.debug("Flipping basis vector signs to %s", best_signs)
        result = vectors * np.asarray(best_signs)[:, np.newaxis]
        return self._restore_direction(result, direction)

    @staticmethod
    def _restore_direction(
        vectors: NDArray[np.float64], direction: VectorDirection
    ) -> NDArray[np.float64]:
        if direction is VectorDirection.COLUMN_VECTORS:
            return np.ascontiguousarray(vectors.T)
        return vectors.copy()
