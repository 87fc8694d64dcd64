# SPDX-FileCopyrightText: 2024-present barrettMCW <mjbarrett@mcw.edu>
#
# SPDX-License-Identifier: MIT
"""Numerical core for Macenko stain-vector colour deconvolution.

This package provides the fixed-shape linear algebra used when fitting a
stain basis to histology pixels in optical-density space (3x3 inversion,
row normalisation, zero-row repair, canonical stain ordering), plus a
basis-sign optimizer that resolves the sign ambiguity of PCA/SVD-derived
stain vectors from a random sub-sample of pixels.

Example::

    import numpy as np
    from macenko_stain import (
        BasisSignOptimizer,
        SortOrder,
        compute_3x3_matrix_inverse,
        make_rows_unitary,
        sort_stain_vectors,
    )

    stains = np.array([[0.07, 0.99, 0.11], [0.65, 0.70, 0.29], [0.0, 0.0, 0.0]])
    stains = sort_stain_vectors(make_rows_unitary(stains), SortOrder.ASCENDING)

    # An all-zero result means the matrix could not be inverted
    inverse = compute_3x3_matrix_inverse(stains)

    optimizer = BasisSignOptimizer(seed=0)
    od_pixels = np.random.default_rng(0).uniform(0.0, 1.0, size=(5000, 3))
    basis = optimizer.optimize_basis_vector_signs(od_pixels, -stains[:2].T)
"""

from macenko_stain.__about__ import __version__
from macenko_stain.config import (
    StainMathSettings,
    get_od_min_value,
    set_od_min_value,
)
from macenko_stain.sign_optimizer import BasisSignOptimizer, VectorDirection
from macenko_stain.stain_vector_math import (
    SortOrder,
    compute_3x3_matrix_inverse,
    convert_zero_rows_to_unitary,
    make_rows_unitary,
    multiply_3x3_matrix_and_vector,
    normalize_vector,
    row_sum_zero_check,
    sort_stain_vectors,
    vector_norm,
)

__all__ = [
    "__version__",
    "BasisSignOptimizer",
    "SortOrder",
    "StainMathSettings",
    "VectorDirection",
    "compute_3x3_matrix_inverse",
    "convert_zero_rows_to_unitary",
    "get_od_min_value",
    "make_rows_unitary",
    "multiply_3x3_matrix_and_vector",
    "normalize_vector",
    "row_sum_zero_check",
    "set_od_min_value",
    "sort_stain_vectors",
    "vector_norm",
]
