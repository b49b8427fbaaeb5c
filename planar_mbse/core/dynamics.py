# -*- coding: utf-8 -*-
"""Forward dynamics in natural coordinates.

Equations of motion (dense Lagrange multiplier form, Baumgarte-stabilized)::

    [ M      Phi_q' ] [ ddq    ]   [ Q                                       ]
    [ Phi_q  0      ] [ lambda ] = [ -dotPhi_q dq - 2 a dotPhi - b^2 Phi     ]

The mass matrix is assembled from each body's M00 / M01 / M11 blocks on the
natural coordinates of its first two points; relative coordinates carry no
mass and are driven only through their constraint rows.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, List, Optional, Tuple

import numpy as np

from ..utils.constants import DEFAULT_TIME_STEP
from .assembled_model import AssembledRigidModel
from .errors import StructuralError, check_state_size
from .kinematics import KinematicSolver

logger = logging.getLogger(__name__)


@dataclass
class SimulatorSettings:
    time_step: float = DEFAULT_TIME_STEP
    integrator: str = "rk4"
    baumgarte_alpha: float = 10.0
    baumgarte_beta: float = 10.0
    projection: bool = True
    projection_tol: float = 1e-10
    projection_max_iters: int = 5


def _point_columns(arm: AssembledRigidModel, pt: int) -> List[Tuple[int, int]]:
    """(axis, column) pairs of the free coordinates of a point."""
    d = arm.points2dofs[pt]
    return [(axis, col) for axis, col in ((0, d.dof_x), (1, d.dof_y)) if col is not None]


def build_mass_matrix(arm: AssembledRigidModel) -> np.ndarray:
    n = arm.num_dofs
    M = np.zeros((n, n), dtype=float)
    for b in arm.parent.bodies:
        blocks = ((b.M00, b.M01), (b.M01.T, b.M11))
        cols = (_point_columns(arm, b.points[0]), _point_columns(arm, b.points[1]))
        for i in range(2):
            for j in range(2):
                B = blocks[i][j]
                for ai, ci in cols[i]:
                    for aj, cj in cols[j]:
                        M[ci, cj] += B[ai, aj]
    return M


def build_generalized_forces(arm: AssembledRigidModel) -> np.ndarray:
    """Gravity at each body's cog projected on the natural coordinates, plus ``arm.Q``."""
    Q = arm.Q.copy()
    g = arm.get_gravity_vector()
    for b in arm.parent.bodies:
        if b.mass == 0.0:
            continue
        C0, C1 = b.interpolation_weights(b.cog)
        for C, pt in ((C0, b.points[0]), (C1, b.points[1])):
            f = b.mass * (C.T @ g)
            for axis, col in _point_columns(arm, pt):
                Q[col] += f[axis]
    return Q


class DynamicSimulator:
    def __init__(self, arm: AssembledRigidModel, settings: Optional[SimulatorSettings] = None):
        self.arm = arm
        self.settings = settings or SimulatorSettings()
        if self.settings.integrator not in ("rk4", "euler"):
            raise ValueError(f"Unknown integrator '{self.settings.integrator}' (valid: rk4, euler)")
        if not self.settings.time_step > 0.0:
            raise ValueError(f"Time step must be > 0, got {self.settings.time_step!r}")
        self.t = 0.0
        # Constant for a given model.
        self._M = build_mass_matrix(arm)

    def solve_ddotq(self, q: Optional[np.ndarray] = None, dq: Optional[np.ndarray] = None) -> np.ndarray:
        """Accelerations at (q, dq), or at the model's current state if omitted.

        The state is written into the model, whose ``ddotq`` receives the
        result.
        """
        arm = self.arm
        if q is not None:
            check_state_size("q", len(q), arm.num_dofs)
            arm.q[:] = q
        if dq is not None:
            check_state_size("dq", len(dq), arm.num_dofs)
            arm.dotq[:] = dq
        arm.update_numeric_Phi_and_Jacobians()

        n = arm.num_dofs
        m = arm.num_constraints
        s = self.settings
        A = np.zeros((n + m, n + m), dtype=float)
        A[:n, :n] = self._M
        if m:
            Jq = arm.Phi_q.to_dense()
            A[:n, n:] = Jq.T
            A[n:, :n] = Jq
        rhs = np.zeros(n + m, dtype=float)
        rhs[:n] = build_generalized_forces(arm)
        if m:
            rhs[n:] = (
                -arm.dotPhi_q.dot(arm.dotq)
                - 2.0 * s.baumgarte_alpha * arm.dotPhi
                - s.baumgarte_beta ** 2 * arm.Phi
            )
        try:
            sol = np.linalg.solve(A, rhs)
        except np.linalg.LinAlgError as e:
            raise StructuralError(f"Singular augmented mass matrix at t={self.t:g}: {e}") from e
        arm.ddotq[:] = sol[:n]
        return arm.ddotq.copy()

    def _derivatives(self, q: np.ndarray, dq: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        return dq.copy(), self.solve_ddotq(q, dq)

    def step(self, dt: Optional[float] = None) -> None:
        dt = self.settings.time_step if dt is None else float(dt)
        arm = self.arm
        q0 = arm.q.copy()
        v0 = arm.dotq.copy()

        if self.settings.integrator == "euler":
            a0 = self.solve_ddotq(q0, v0)
            q1 = q0 + dt * v0
            v1 = v0 + dt * a0
        else:
            k1q, k1v = self._derivatives(q0, v0)
            k2q, k2v = self._derivatives(q0 + 0.5 * dt * k1q, v0 + 0.5 * dt * k1v)
            k3q, k3v = self._derivatives(q0 + 0.5 * dt * k2q, v0 + 0.5 * dt * k2v)
            k4q, k4v = self._derivatives(q0 + dt * k3q, v0 + dt * k3v)
            q1 = q0 + dt / 6.0 * (k1q + 2.0 * k2q + 2.0 * k3q + k4q)
            v1 = v0 + dt / 6.0 * (k1v + 2.0 * k2v + 2.0 * k3v + k4v)

        arm.q[:] = q1
        arm.dotq[:] = v1
        if self.settings.projection:
            ok, _it, err = KinematicSolver.project_positions(
                arm, tol=self.settings.projection_tol, max_iters=self.settings.projection_max_iters
            )
            if not ok:
                logger.warning("Position projection did not converge at t=%g (max|Phi|=%g)", self.t + dt, err)
            KinematicSolver.solve_velocities(arm)
        arm.update_numeric_Phi_and_Jacobians()
        self.t += dt

    def run(self, t_ini: float, t_end: float,
            callback: Optional[Callable[[float, AssembledRigidModel], None]] = None) -> float:
        """Integrate from t_ini to t_end; returns the final time."""
        dt = self.settings.time_step
        self.t = float(t_ini)
        if callback is not None:
            arm = self.arm
            arm.update_numeric_Phi_and_Jacobians()
            callback(self.t, arm)
        while self.t < t_end - 1e-12:
            self.step(min(dt, t_end - self.t))
            if callback is not None:
                callback(self.t, self.arm)
        logger.debug("Dynamic simulation finished at t=%g", self.t)
        return self.t
