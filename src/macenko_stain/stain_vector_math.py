# SPDX-FileCopyrightText: 2024-present barrettMCW <mjbarrett@mcw.edu>
#
# SPDX-License-Identifier: MIT
"""Fixed-shape linear algebra for stain-vector matrices.

Every function here works on a 3x3 matrix whose rows are candidate stain
vectors in optical-density space, or on a single 3-component vector. Inputs
may be any array-like of shape ``(3, 3)`` or a flat row-major ``(9,)``;
outputs are always new ``(3, 3)`` or ``(3,)`` float64 arrays. Nothing is
modified in place.

Numerical edge cases are handled without raising:

- a near-singular matrix inverts to the all-zero matrix
- rows whose norm is too small are left alone by :func:`make_rows_unitary`
- rows whose components cancel to a zero sum are replaced by
  :func:`convert_zero_rows_to_unitary`

Shape problems and invalid enum values raise :class:`ValueError`.

Typical usage::

    import numpy as np
    from macenko_stain import (
        SortOrder,
        compute_3x3_matrix_inverse,
        make_rows_unitary,
        sort_stain_vectors,
    )

    stains = np.array([[0.65, 0.70, 0.29], [0.07, 0.99, 0.11], [0.0, 0.0, 0.0]])
    stains = sort_stain_vectors(make_rows_unitary(stains), SortOrder.ASCENDING)
    inverse = compute_3x3_matrix_inverse(stains)
"""

from __future__ import annotations

import enum
import functools
from typing import Any, Callable, Union

import numpy as np
from numpy.typing import ArrayLike, NDArray

from macenko_stain.config import coerce_enum, resolve_od_min
from macenko_stain.logging import get_logger

logger = get_logger(__name__)

# Components closer than this are considered equal when sorting stain vectors.
SORT_PRECISION = 1e-3

_Matrix = NDArray[np.float64]
_Vector = NDArray[np.float64]


class SortOrder(enum.IntEnum):
    """Direction used by :func:`sort_stain_vectors`."""

    ASCENDING = 0
    DESCENDING = 1
    NONE = 2

    @classmethod
    def coerce(cls, value: Union[SortOrder, int, str]) -> SortOrder:
        """Return the member named or numbered by *value*.

        :raises ValueError: if *value* does not identify a member
        """
        return coerce_enum(cls, value, "sort_order")


# ---------------------------------------------------------------------------
# Input coercion
# ---------------------------------------------------------------------------


def _as_matrix(mat: ArrayLike, name: str = "matrix") -> _Matrix:
    """Return *mat* as a new ``(3, 3)`` float64 array.

    Flat row-major input of length 9 is reshaped.

    :raises ValueError: if *mat* has any other shape
    """
    arr = np.array(mat, dtype=np.float64)
    if arr.shape == (9,):
        arr = arr.reshape(3, 3)
    if arr.shape != (3, 3):
        msg = f"{name} must have shape (3, 3) or (9,), got {arr.shape}"
        raise ValueError(msg)
    return arr


def _as_vector(vec: ArrayLike, name: str = "vector") -> _Vector:
    """Return *vec* as a new ``(3,)`` float64 array.

    :raises ValueError: if *vec* does not hold exactly 3 values
    """
    arr = np.array(vec, dtype=np.float64)
    if arr.shape != (3,):
        msg = f"{name} must have shape (3,), got {arr.shape}"
        raise ValueError(msg)
    return arr


# ---------------------------------------------------------------------------
# Vectors
# ---------------------------------------------------------------------------


def vector_norm(vec: ArrayLike) -> float:
    """Return the Euclidean norm of a 3-component vector."""
    return float(np.linalg.norm(_as_vector(vec)))


def normalize_vector(vec: ArrayLike) -> _Vector:
    """Scale a 3-component vector to unit length.

    A zero vector is returned unchanged rather than divided by zero.

    :param vec: vector to normalise
    :type vec: ArrayLike
    :return: unit-norm copy of *vec*, or zeros when *vec* is zero
    :rtype: NDArray[np.float64]
    """
    arr = _as_vector(vec)
    norm = np.linalg.norm(arr)
    if norm == 0.0:
        return arr
    return arr / norm


# ---------------------------------------------------------------------------
# Matrix operations
# ---------------------------------------------------------------------------


def compute_3x3_matrix_inverse(
    mat: ArrayLike, *, od_min: float | None = None
) -> _Matrix:
    """Invert a 3x3 matrix, or return zeros if it is effectively singular.

    The all-zero result is a sentinel, not an error: callers must check for
    it (for example with ``not result.any()``) before using the inverse.

    :param mat: matrix to invert, shape ``(3, 3)`` or ``(9,)``
    :type mat: ArrayLike
    :param od_min: singularity threshold on ``|det(mat)|``; defaults to
        :func:`macenko_stain.config.get_od_min_value`
    :type od_min: float | None
    :return: the inverse, or a ``(3, 3)`` zero matrix
    :rtype: NDArray[np.float64]
    :raises ValueError: if *mat* is not 3x3
    """
    arr = _as_matrix(mat)
    threshold = resolve_od_min(od_min)
    determinant = np.linalg.det(arr)
    if abs(determinant) < threshold:
        logger.debug(
            "Determinant %g below threshold %g; returning zero matrix",
            determinant,
            threshold,
        )
        return np.zeros((3, 3), dtype=np.float64)
    return np.linalg.inv(arr)


def multiply_3x3_matrix_and_vector(mat: ArrayLike, vec: ArrayLike) -> _Vector:
    """Return the product ``mat @ vec``.

    :param mat: matrix, shape ``(3, 3)`` or ``(9,)``
    :type mat: ArrayLike
    :param vec: vector, shape ``(3,)``
    :type vec: ArrayLike
    :rtype: NDArray[np.float64]
    :raises ValueError: if either argument has the wrong shape
    """
    return _as_matrix(mat) @ _as_vector(vec)


def make_rows_unitary(mat: ArrayLike, *, od_min: float | None = None) -> _Matrix:
    """Scale each row of a 3x3 matrix to unit Euclidean norm.

    Rows whose norm is below ``10 * od_min`` are copied unchanged, since
    normalising them would amplify noise.

    :param mat: matrix whose rows are stain vectors
    :type mat: ArrayLike
    :param od_min: stability threshold; defaults to the configured value
    :type od_min: float | None
    :return: matrix with unit-norm rows where possible
    :rtype: NDArray[np.float64]
    :raises ValueError: if *mat* is not 3x3
    """
    arr = _as_matrix(mat)
    threshold = 10.0 * resolve_od_min(od_min)
    norms = np.linalg.norm(arr, axis=1)
    for i, norm in enumerate(norms):
        if norm < threshold:
            continue
        arr[i] = arr[i] / norm
    return arr


def _zero_sum_mask(arr: _Matrix, threshold: float) -> NDArray[np.bool_]:
    sums = arr.sum(axis=1)
    norms = np.linalg.norm(arr, axis=1)
    return (np.abs(sums) < threshold) & (norms > 0.0)


def row_sum_zero_check(mat: ArrayLike, *, od_min: float | None = None) -> list[bool]:
    """Flag rows whose components cancel out.

    A row is flagged when the absolute value of its sum is below *od_min*
    while its norm is strictly positive. An all-zero row is not flagged.

    :param mat: matrix whose rows are stain vectors
    :type mat: ArrayLike
    :param od_min: stability threshold; defaults to the configured value
    :type od_min: float | None
    :return: one flag per row
    :rtype: list[bool]
    :raises ValueError: if *mat* is not 3x3
    """
    arr = _as_matrix(mat)
    return [bool(flag) for flag in _zero_sum_mask(arr, resolve_od_min(od_min))]


def convert_zero_rows_to_unitary(
    mat: ArrayLike,
    replacement: ArrayLike = (1.0, 1.0, 1.0),
    *,
    od_min: float | None = None,
) -> _Matrix:
    """Replace zero-sum rows with a normalised replacement vector.

    Rows flagged by :func:`row_sum_zero_check` are overwritten with
    ``normalize_vector(replacement)``. All other rows, including rows that
    are entirely zero, are kept.

    :param mat: matrix whose rows are stain vectors
    :type mat: ArrayLike
    :param replacement: vector substituted for degenerate rows, normalised
        before use. Defaults to ``(1, 1, 1)``.
    :type replacement: ArrayLike
    :param od_min: stability threshold; defaults to the configured value
    :type od_min: float | None
    :return: repaired matrix
    :rtype: NDArray[np.float64]
    :raises ValueError: if *mat* is not 3x3 or *replacement* is not length 3
    """
    arr = _as_matrix(mat)
    unit_row = normalize_vector(_as_vector(replacement, "replacement"))
    mask = _zero_sum_mask(arr, resolve_od_min(od_min))
    if mask.any():
        logger.debug("Replacing zero-sum rows %s", np.flatnonzero(mask).tolist())
        arr[mask] = unit_row
    return arr


# ---------------------------------------------------------------------------
# Sorting
# ---------------------------------------------------------------------------


def _ascending_before(a: _Vector, b: _Vector) -> bool:
    if abs(a.sum()) < SORT_PRECISION:
        return False
    if abs(b.sum()) < SORT_PRECISION:
        return True
    if abs(a[0] - b[0]) > SORT_PRECISION:
        return a[0] < b[0]
    if abs(a[1] - b[1]) > SORT_PRECISION:
        return a[1] < b[1]
    return a[2] < b[2]


def _descending_before(a: _Vector, b: _Vector) -> bool:
    if abs(a.sum()) < SORT_PRECISION:
        return False
    if abs(b.sum()) < SORT_PRECISION:
        return True
    if abs(a[0] - b[0]) > SORT_PRECISION:
        return a[0] > b[0]
    if abs(a[1] - b[1]) > SORT_PRECISION:
        return a[1] > b[1]
    # Non-strict: two rows tied on every component each report coming
    # first, so this is not a strict weak ordering. Kept as-is.
    return a[2] >= b[2]


def _three_way(before: Callable[[_Vector, _Vector], bool]) -> Callable[[_Vector], Any]:
    """Turn a "sorts before" predicate into a key for :func:`sorted`."""

    def compare(a: _Vector, b: _Vector) -> int:
        if before(a, b):
            return -1
        if before(b, a):
            return 1
        return 0

    return functools.cmp_to_key(compare)


_SORT_KEYS = {
    SortOrder.ASCENDING: _three_way(_ascending_before),
    SortOrder.DESCENDING: _three_way(_descending_before),
}


def sort_stain_vectors(
    mat: ArrayLike, sort_order: Union[SortOrder, int, str] = SortOrder.ASCENDING
) -> _Matrix:
    """Reorder the rows of a stain matrix into a canonical order.

    Rows are compared component by component, treating differences of at
    most ``1e-3`` as ties. Rows whose component sum is within ``1e-3`` of
    zero ("null" stain vectors) always go last, whatever the direction.

    :param mat: matrix whose rows are stain vectors
    :type mat: ArrayLike
    :param sort_order: :attr:`SortOrder.ASCENDING`,
        :attr:`SortOrder.DESCENDING`, or :attr:`SortOrder.NONE`. ``NONE``
        returns the rows in their input order.
    :type sort_order: SortOrder | int | str
    :return: matrix with reordered rows
    :rtype: NDArray[np.float64]
    :raises ValueError: if *mat* is not 3x3 or *sort_order* is invalid
    """
    arr = _as_matrix(mat)
    order = SortOrder.coerce(sort_order)
    if order is SortOrder.NONE:
        return arr
    rows = sorted(arr, key=_SORT_KEYS[order])
    return np.array(rows, dtype=np.float64)
