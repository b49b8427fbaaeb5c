# -*- coding: utf-8 -*-
"""Time-integration factors linking consecutive states."""

from __future__ import annotations

from typing import Optional

import numpy as np

from ..core.errors import StateSizeError
from .base import IsotropicNoise, NonlinearFactor


def _check_same_length(*vecs: np.ndarray) -> int:
    n = len(vecs[0])
    if n == 0:
        raise StateSizeError("Empty state vector!")
    if any(len(v) != n for v in vecs):
        raise StateSizeError("Inconsistent vector lengths!")
    return n


class FactorEulerInt(NonlinearFactor):
    """err = x_kp1 - x_k - dt v_k"""

    def __init__(self, key_x_k: str, key_x_kp1: str, key_v_k: str, dt: float,
                 noise: Optional[IsotropicNoise] = None):
        super().__init__((key_x_k, key_x_kp1, key_v_k), noise)
        self.dt = float(dt)

    def evaluate_error(self, x_k, x_kp1, v_k, want_jacobians: bool = False):
        n = _check_same_length(x_k, x_kp1, v_k)
        err = x_kp1 - x_k - self.dt * v_k
        if not want_jacobians:
            return err
        I = np.eye(n)
        return err, [-I, I.copy(), -self.dt * I]


class FactorTrapInt(NonlinearFactor):
    """err = x_kp1 - x_k - dt/2 (v_k + v_kp1)"""

    def __init__(self, key_x_k: str, key_x_kp1: str, key_v_k: str, key_v_kp1: str, dt: float,
                 noise: Optional[IsotropicNoise] = None):
        super().__init__((key_x_k, key_x_kp1, key_v_k, key_v_kp1), noise)
        self.dt = float(dt)

    def evaluate_error(self, x_k, x_kp1, v_k, v_kp1, want_jacobians: bool = False):
        n = _check_same_length(x_k, x_kp1, v_k, v_kp1)
        err = x_kp1 - x_k - 0.5 * self.dt * (v_k + v_kp1)
        if not want_jacobians:
            return err
        I = np.eye(n)
        half = -0.5 * self.dt * I
        return err, [-I, I.copy(), half, half.copy()]
