# SPDX-FileCopyrightText: 2024-present barrettMCW <mjbarrett@mcw.edu>
#
# SPDX-License-Identifier: MIT
"""Logger lookup for the macenko_stain modules.

Records go to the ``macenko_stain.*`` logger hierarchy; installing handlers
is left to the application.
"""

from __future__ import annotations

import logging


def get_logger(name: str) -> logging.Logger:
    """Return the logger for module ``name``."""
    return logging.getLogger(name)
