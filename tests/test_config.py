# SPDX-FileCopyrightText: 2024-present barrettMCW <mjbarrett@mcw.edu>
#
# SPDX-License-Identifier: MIT
"""Tests for macenko_stain.config."""

import dataclasses
import enum
import math

import numpy as np
import pytest

from macenko_stain import compute_3x3_matrix_inverse
from macenko_stain.config import (
    DEFAULT_NUM_TESTING_PIXELS,
    DEFAULT_OD_MIN_VALUE,
    StainMathSettings,
    coerce_enum,
    get_od_min_value,
    resolve_od_min,
    set_od_min_value,
    validate_count,
)


class TestStainMathSettings:
    """Tests for the settings dataclass."""

    def test_defaults(self):
        """Defaults come from the module constants."""
        settings = StainMathSettings()
        assert settings.od_min_value == DEFAULT_OD_MIN_VALUE
        assert settings.num_testing_pixels == DEFAULT_NUM_TESTING_PIXELS
        assert settings.seed is None

    def test_frozen(self):
        """Settings cannot be mutated after construction."""
        settings = StainMathSettings()
        with pytest.raises(dataclasses.FrozenInstanceError):
            settings.seed = 3

    @pytest.mark.parametrize("bad", [0.0, -1e-6, math.inf, math.nan])
    def test_invalid_od_min_raises(self, bad):
        """The threshold must be finite and positive."""
        with pytest.raises(ValueError, match="od_min_value"):
            StainMathSettings(od_min_value=bad)

    def test_invalid_num_testing_pixels_raises(self):
        """The sample size must be a positive integer."""
        with pytest.raises(ValueError, match="num_testing_pixels"):
            StainMathSettings(num_testing_pixels=0)

    def test_from_env(self, monkeypatch):
        """Environment variables override the defaults."""
        monkeypatch.setenv("MACENKO_STAIN_OD_MIN_VALUE", "1e-4")
        monkeypatch.setenv("MACENKO_STAIN_NUM_TESTING_PIXELS", "250")
        monkeypatch.setenv("MACENKO_STAIN_SEED", "17")
        settings = StainMathSettings.from_env()
        assert settings.od_min_value == pytest.approx(1e-4)
        assert settings.num_testing_pixels == 250
        assert settings.seed == 17

    def test_from_env_unset(self, monkeypatch):
        """Unset or blank variables fall back to the defaults."""
        monkeypatch.delenv("MACENKO_STAIN_OD_MIN_VALUE", raising=False)
        monkeypatch.delenv("MACENKO_STAIN_NUM_TESTING_PIXELS", raising=False)
        monkeypatch.setenv("MACENKO_STAIN_SEED", " ")
        assert StainMathSettings.from_env() == StainMathSettings()

    def test_from_env_malformed_raises(self, monkeypatch):
        """A malformed value names the offending variable."""
        monkeypatch.setenv("MACENKO_STAIN_NUM_TESTING_PIXELS", "lots")
        with pytest.raises(ValueError, match="MACENKO_STAIN_NUM_TESTING_PIXELS"):
            StainMathSettings.from_env()


class TestOdMinValue:
    """Tests for the process-wide threshold provider."""

    def test_default(self):
        """The provider starts at the package default."""
        assert get_od_min_value() == DEFAULT_OD_MIN_VALUE

    def test_set_and_get(self):
        """A new threshold is returned by the getter."""
        set_od_min_value(1e-3)
        assert get_od_min_value() == 1e-3

    def test_set_invalid_raises(self):
        """Invalid thresholds are rejected and the old one kept."""
        with pytest.raises(ValueError, match="od_min_value"):
            set_od_min_value(-1.0)
        assert get_od_min_value() == DEFAULT_OD_MIN_VALUE

    def test_kernel_reads_provider_at_call_time(self):
        """Lowering the threshold lets a small matrix be inverted."""
        small = 1e-3 * np.eye(3)
        np.testing.assert_array_equal(
            compute_3x3_matrix_inverse(small), np.zeros((3, 3))
        )
        set_od_min_value(1e-12)
        np.testing.assert_allclose(compute_3x3_matrix_inverse(small), 1e3 * np.eye(3))

    def test_resolve(self):
        """An explicit override wins; None defers to the provider."""
        assert resolve_od_min(None) == get_od_min_value()
        assert resolve_od_min(0.5) == 0.5
        with pytest.raises(ValueError, match="od_min_value"):
            resolve_od_min(0.0)


class _Shade(enum.IntEnum):
    LIGHT = 0
    DARK = 1


class _Other(enum.IntEnum):
    FIRST = 0
    SECOND = 1


class TestValidationHelpers:
    """Tests for the shared count and enum validators."""

    def test_count_accepts_integers(self):
        """Python and numpy integers pass through as int."""
        assert validate_count(3, "count") == 3
        assert validate_count(np.int32(4), "count") == 4
        assert type(validate_count(np.int32(4), "count")) is int

    @pytest.mark.parametrize("bad", [None, "3", 3.0, True, object()])
    def test_count_rejects_non_integers(self, bad):
        """Non-integers raise ValueError naming the argument."""
        with pytest.raises(ValueError, match="count must be an integer"):
            validate_count(bad, "count")

    def test_count_minimum(self):
        """Values below the minimum are rejected."""
        with pytest.raises(ValueError, match="count must be at least 1, got 0"):
            validate_count(0, "count", minimum=1)

    def test_enum_by_member_name_and_value(self):
        """Members, names and integer values all resolve."""
        assert coerce_enum(_Shade, _Shade.DARK, "shade") is _Shade.DARK
        assert coerce_enum(_Shade, " dark ", "shade") is _Shade.DARK
        assert coerce_enum(_Shade, 1, "shade") is _Shade.DARK
        assert coerce_enum(_Shade, np.int64(0), "shade") is _Shade.LIGHT

    @pytest.mark.parametrize("bad", [_Other.SECOND, True, 1.0, 5, "dim", None])
    def test_enum_rejects(self, bad):
        """Other enums, bools, floats and unknown values raise."""
        with pytest.raises(ValueError, match="shade must be one of"):
            coerce_enum(_Shade, bad, "shade")
