# -*- coding: utf-8 -*-
"""Rate-observation factor for a body carrying a gyroscope.

The angular rate of a body is observed from the velocities of its two
reference points p0, p1::

    u = (p1 - p0) / L,   v = R90 u,   w = ((v1 - v0) . v) / L

so that, with d = p1 - p0 and dv = v1 - v0::

    w = (dx dvy - dy dvx) / L^2

The residual is ``w - reading``. Jacobian entries are only produced for the
columns of q / dq that hold free coordinates; fixed coordinates do not
appear in the state.
"""

from __future__ import annotations

from typing import Optional

import numpy as np

from ..core.assembled_model import AssembledRigidModel
from ..core.errors import StateSizeError, check_state_size
from ..core.geometry import segment_length
from .base import IsotropicNoise, NonlinearFactor


class FactorGyroscope(NonlinearFactor):
    def __init__(self, key_q: str, key_dq: str, arm: AssembledRigidModel, body_index: int,
                 reading: float, noise: Optional[IsotropicNoise] = None):
        super().__init__((key_q, key_dq), noise)
        self.arm = arm
        self.body_index = int(body_index)
        self.reading = float(reading)
        bodies = arm.parent.bodies
        if not (0 <= self.body_index < len(bodies)):
            raise IndexError(f"Gyroscope body index {body_index} out of range (body count = {len(bodies)})")
        b = bodies[self.body_index]
        self.point_idx0 = b.points[0]
        self.point_idx1 = b.points[1]

    def evaluate_error(self, q: np.ndarray, dq: np.ndarray, want_jacobians: bool = False):
        if len(q) != len(dq):
            raise StateSizeError("Inconsistent vector lengths!")
        if len(q) == 0:
            raise StateSizeError("Empty state vector!")
        arm = self.arm
        check_state_size("q", len(q), arm.num_dofs)
        arm.q[:] = q
        arm.dotq[:] = dq

        p0 = arm.get_point_current_coords(self.point_idx0)
        p1 = arm.get_point_current_coords(self.point_idx1)
        v0 = arm.get_point_current_velocity(self.point_idx0)
        v1 = arm.get_point_current_velocity(self.point_idx1)

        L = segment_length(p0, p1, f"gyroscope body {self.body_index}")
        L2 = L * L
        dx, dy = p1[0] - p0[0], p1[1] - p0[1]
        dvx, dvy = v1[0] - v0[0], v1[1] - v0[1]
        num = dx * dvy - dy * dvx
        w = num / L2
        err = np.array([w - self.reading])
        if not want_jacobians:
            return err

        n = len(q)
        Jq = np.zeros((1, n), dtype=float)
        Jdq = np.zeros((1, n), dtype=float)

        dw_ddx = dvy / L2 - 2.0 * dx * num / (L2 * L2)
        dw_ddy = -dvx / L2 - 2.0 * dy * num / (L2 * L2)
        dw_ddvx = -dy / L2
        dw_ddvy = dx / L2

        d0 = arm.points2dofs[self.point_idx0]
        d1 = arm.points2dofs[self.point_idx1]
        # p1 / v1 enter with +, p0 / v0 with -; += covers both ends mapping to one column.
        for dofs, sign in ((d1, 1.0), (d0, -1.0)):
            if dofs.dof_x is not None:
                Jq[0, dofs.dof_x] += sign * dw_ddx
                Jdq[0, dofs.dof_x] += sign * dw_ddvx
            if dofs.dof_y is not None:
                Jq[0, dofs.dof_y] += sign * dw_ddy
                Jdq[0, dofs.dof_y] += sign * dw_ddvy
        return err, [Jq, Jdq]
