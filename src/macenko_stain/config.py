# SPDX-FileCopyrightText: 2024-present barrettMCW <mjbarrett@mcw.edu>
#
# SPDX-License-Identifier: MIT
"""Runtime settings for the stain-vector math.

The numeric-stability threshold ("OD min value") decides when a determinant,
row norm or row sum counts as zero. It belongs to the surrounding optical
density pipeline, so it is exposed here as a process-wide value that callers
may replace, and every kernel function also accepts a per-call override.
"""

from __future__ import annotations

import enum
import math
import operator
import os
from dataclasses import dataclass

DEFAULT_OD_MIN_VALUE = 1e-6
DEFAULT_NUM_TESTING_PIXELS = 1000

_ENV_OD_MIN_VALUE = "MACENKO_STAIN_OD_MIN_VALUE"
_ENV_NUM_TESTING_PIXELS = "MACENKO_STAIN_NUM_TESTING_PIXELS"
_ENV_SEED = "MACENKO_STAIN_SEED"


def validate_od_min_value(value: float) -> float:
    value = float(value)
    if not math.isfinite(value) or value <= 0.0:
        msg = f"od_min_value must be a finite positive number, got {value!r}"
        raise ValueError(msg)
    return value


def validate_count(value: int, name: str, minimum: int = 0) -> int:
    """Return *value* as an int no smaller than *minimum*.

    :raises ValueError: naming *name* if *value* is not an integer or is
        below *minimum*
    """
    msg = f"{name} must be an integer, got {value!r}"
    if isinstance(value, bool):
        raise ValueError(msg)
    try:
        count = operator.index(value)
    except TypeError:
        raise ValueError(msg) from None
    if count < minimum:
        msg = f"{name} must be at least {minimum}, got {count}"
        raise ValueError(msg)
    return count


def validate_num_testing_pixels(value: int) -> int:
    return validate_count(value, "num_testing_pixels", minimum=1)


def coerce_enum(enum_cls: type[enum.Enum], value, name: str):
    """Return the member of *enum_cls* named or numbered by *value*.

    Members of any other enum are rejected even when their value matches.

    :raises ValueError: naming *name* if *value* does not identify a member
    """
    if isinstance(value, enum_cls):
        return value
    if isinstance(value, str):
        try:
            return enum_cls[value.strip().upper()]
        except KeyError:
            pass
    elif not isinstance(value, (bool, enum.Enum)):
        try:
            return enum_cls(operator.index(value))
        except (TypeError, ValueError):
            pass
    msg = f"{name} must be one of {[m.name for m in enum_cls]}, got {value!r}"
    raise ValueError(msg)


def _read_env(name: str, convert):
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return None
    try:
        return convert(raw)
    except ValueError as exc:
        msg = f"Environment variable {name}={raw!r} is not valid: {exc}"
        raise ValueError(msg) from exc


@dataclass(frozen=True)
class StainMathSettings:
    """Settings shared by the kernel and the basis-sign optimizer.

    :param od_min_value: threshold below which a quantity is treated as zero
    :type od_min_value: float
    :param num_testing_pixels: default sub-sample size for sign optimization
    :type num_testing_pixels: int
    :param seed: seed for the optimizer's random generator, ``None`` for
        fresh OS entropy
    :type seed: int | None
    """

    od_min_value: float = DEFAULT_OD_MIN_VALUE
    num_testing_pixels: int = DEFAULT_NUM_TESTING_PIXELS
    seed: int | None = None

    def __post_init__(self) -> None:
        object.__setattr__(
            self, "od_min_value", validate_od_min_value(self.od_min_value)
        )
        object.__setattr__(
            self,
            "num_testing_pixels",
            validate_num_testing_pixels(self.num_testing_pixels),
        )

    @classmethod
    def from_env(cls) -> StainMathSettings:
        """Build settings from ``MACENKO_STAIN_*`` environment variables.

        Unset variables fall back to the defaults.

        :raises ValueError: if a variable is set but cannot be parsed
        """
        kwargs = {}
        od_min = _read_env(_ENV_OD_MIN_VALUE, float)
        if od_min is not None:
            kwargs["od_min_value"] = od_min
        num_pixels = _read_env(_ENV_NUM_TESTING_PIXELS, int)
        if num_pixels is not None:
            kwargs["num_testing_pixels"] = num_pixels
        seed = _read_env(_ENV_SEED, int)
        if seed is not None:
            kwargs["seed"] = seed
        return cls(**kwargs)


_od_min_value = DEFAULT_OD_MIN_VALUE


def get_od_min_value() -> float:
    """Return the process-wide numeric-stability threshold."""
    return _od_min_value


def set_od_min_value(value: float) -> None:
    """Replace the process-wide numeric-stability threshold.

    :param value: new threshold, finite and positive
    :type value: float
    :raises ValueError: if *value* is not a finite positive number
    """
    global _od_min_value
    _od_min_value = validate_od_min_value(value)


def resolve_od_min(od_min: float | None) -> float:
    """Return *od_min* if given, otherwise the process-wide threshold."""
    if od_min is None:
        return _od_min_value
    return validate_od_min_value(od_min)
