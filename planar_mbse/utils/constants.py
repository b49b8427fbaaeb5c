# -*- coding: utf-8 -*-
"""Numeric constants and defaults."""

GRAVITY_ACCEL = 9.81

# Planar gravity vector (x, y); "down" is -y.
DEFAULT_GRAVITY = (0.0, -GRAVITY_ACCEL)

# Below this length a reference segment is treated as degenerate.
MIN_SEGMENT_LENGTH = 1e-12

# Finite-difference defaults for Jacobian checks.
NUMERIC_JACOBIAN_DELTA = 1e-9
NUMERIC_JACOBIAN_TOL = 1e-3

DEFAULT_TIME_STEP = 1e-3
