# SPDX-FileCopyrightText: 2024-present barrettMCW <mjbarrett@mcw.edu>
#
# SPDX-License-Identifier: MIT
"""Shared pytest fixtures and configuration for macenko_stain tests."""

import numpy as np
import pytest

from macenko_stain import config


@pytest.fixture(autouse=True)
def _restore_od_min_value():
    """Undo any change a test makes to the process-wide OD threshold."""
    original = config.get_od_min_value()
    yield
    config.set_od_min_value(original)


@pytest.fixture
def rng():
    """Provide a seeded random number generator for reproducible tests.

    :return: numpy random generator with fixed seed
    :rtype: numpy.random.Generator
    """
    return np.random.default_rng(42)


# ---------------------------------------------------------------------------
# Stain matrices
# ---------------------------------------------------------------------------


@pytest.fixture
def he_stain_rows():
    """Hematoxylin, eosin and a null vector as matrix rows (not normalised).

    :return: 3x3 stain matrix, one stain per row
    :rtype: numpy.ndarray
    """
    return np.array(
        [
            [0.65, 0.70, 0.29],
            [0.07, 0.99, 0.11],
            [0.0, 0.0, 0.0],
        ]
    )


@pytest.fixture
def well_conditioned_matrix(rng):
    """Provide a random 3x3 matrix that is comfortably invertible.

    :return: 3x3 matrix with a dominant diagonal
    :rtype: numpy.ndarray
    """
    return rng.uniform(-0.5, 0.5, size=(3, 3)) + 3.0 * np.eye(3)


# ---------------------------------------------------------------------------
# Pixel populations
# ---------------------------------------------------------------------------


@pytest.fixture
def he_basis_columns():
    """Unit hematoxylin and eosin vectors as the columns of a (3, 2) matrix.

    :return: stain basis with one stain per column
    :rtype: numpy.ndarray
    """
    basis = np.array([[0.65, 0.70, 0.29], [0.07, 0.99, 0.11]]).T
    return basis / np.linalg.norm(basis, axis=0, keepdims=True)


@pytest.fixture
def he_od_pixels(rng, he_basis_columns):
    """Synthetic optical-density pixels mixed from the H&E basis.

    Returns a 4000x3 array of non-negative stain mixtures.

    :return: OD pixel samples
    :rtype: numpy.ndarray
    """
    concentrations = rng.uniform(0.0, 1.0, size=(4000, 2))
    return concentrations @ he_basis_columns.T


@pytest.fixture
def indexed_pixels():
    """Provide a 100x3 pixel matrix whose rows are all distinct.

    :return: pixel samples where row ``i`` is ``[3i, 3i + 1, 3i + 2]``
    :rtype: numpy.ndarray
    """
    return np.arange(300, dtype=np.float64).reshape(100, 3)
