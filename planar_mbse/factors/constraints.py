# -*- coding: utf-8 -*-
"""Position and velocity constraint factors.

Both factors write the candidate state into the assembled model they wrap,
refresh its constraint Jacobians and read the result back.
"""

from __future__ import annotations

from typing import Optional

import numpy as np

from ..core.assembled_model import AssembledRigidModel
from ..core.errors import check_state_size
from .base import IsotropicNoise, NonlinearFactor


class FactorConstraints(NonlinearFactor):
    """err = Phi(q);  d err / dq = Phi_q."""

    def __init__(self, key_q: str, arm: AssembledRigidModel, noise: Optional[IsotropicNoise] = None):
        super().__init__((key_q,), noise)
        self.arm = arm

    def evaluate_error(self, q: np.ndarray, want_jacobians: bool = False):
        arm = self.arm
        check_state_size("q", len(q), arm.num_dofs)
        arm.q[:] = q
        arm.update_numeric_Phi_and_Jacobians()
        err = arm.Phi.copy()
        if not want_jacobians:
            return err
        return err, [arm.Phi_q.to_dense()]


class FactorConstraintsVel(NonlinearFactor):
    """err = Phi_q(q) dq.

    Kept as the product Phi_q dq rather than dotPhi so it can be
    differentiated separately w.r.t. q (dPhiqdq_dq) and dq (Phi_q).
    """

    def __init__(self, key_q: str, key_dq: str, arm: AssembledRigidModel,
                 noise: Optional[IsotropicNoise] = None):
        super().__init__((key_q, key_dq), noise)
        self.arm = arm

    def evaluate_error(self, q: np.ndarray, dq: np.ndarray, want_jacobians: bool = False):
        arm = self.arm
        check_state_size("q", len(q), arm.num_dofs)
        check_state_size("dq", len(dq), arm.num_dofs)
        arm.q[:] = q
        arm.dotq[:] = dq
        arm.update_numeric_Phi_and_Jacobians()
        err = arm.Phi_q.dot(arm.dotq)
        if not want_jacobians:
            return err
        return err, [arm.dPhiqdq_dq.to_dense(), arm.Phi_q.to_dense()]
