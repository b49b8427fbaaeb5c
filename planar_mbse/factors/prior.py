# -*- coding: utf-8 -*-
from __future__ import annotations

from typing import Optional

import numpy as np

from ..core.errors import check_state_size
from .base import IsotropicNoise, NonlinearFactor


class PriorFactor(NonlinearFactor):
    """err = x - prior"""

    def __init__(self, key: str, prior, noise: Optional[IsotropicNoise] = None):
        super().__init__((key,), noise)
        self.prior = np.asarray(prior, dtype=float).reshape(-1)

    def evaluate_error(self, x: np.ndarray, want_jacobians: bool = False):
        check_state_size(self.keys[0], len(x), len(self.prior))
        err = x - self.prior
        if not want_jacobians:
            return err
        return err, [np.eye(len(x))]
