# -*- coding: utf-8 -*-
"""Kinematic solvers on an assembled model.

Position problems are solved with SciPy's nonlinear least squares using the
analytic constraint Jacobian; velocity problems are linear and solved in the
minimum-norm sense.
"""

from __future__ import annotations

import logging
from typing import Iterable, List, Tuple

import numpy as np
from scipy.optimize import least_squares

from .assembled_model import AssembledRigidModel
from .errors import StructuralError

logger = logging.getLogger(__name__)


def _free_columns(arm: AssembledRigidModel, fixed_dofs: Iterable[int]) -> List[int]:
    fixed = set()
    for i in fixed_dofs:
        i = int(i)
        if not (0 <= i < arm.num_dofs):
            raise StructuralError(f"Prescribed DOF {i} out of range (DOF count = {arm.num_dofs})")
        fixed.add(i)
    return [i for i in range(arm.num_dofs) if i not in fixed]


def max_constraint_error(arm: AssembledRigidModel) -> float:
    """Refresh the constraint values and return max |Phi|."""
    arm.update_numeric_Phi_and_Jacobians()
    if arm.num_constraints == 0:
        return 0.0
    return float(np.max(np.abs(arm.Phi)))


class KinematicSolver:
    """Nonlinear least squares solver for the mechanism constraints."""

    @staticmethod
    def solve_positions(
        arm: AssembledRigidModel,
        fixed_dofs: Iterable[int] = (),
        max_nfev: int = 200,
        ftol: float = 1e-12,
        xtol: float = 1e-12,
        gtol: float = 1e-12,
    ) -> Tuple[bool, str, float]:
        """Move ``arm.q`` onto Phi(q) = 0.

        Parameters
        ----------
        arm:
            Assembled model; its ``q`` is the initial guess and receives the
            solution.
        fixed_dofs:
            Columns of q held at their current value (e.g. a driven crank
            angle).

        Returns
        -------
        (ok, message, cost)
        """
        free = _free_columns(arm, fixed_dofs)
        if not free or arm.num_constraints == 0:
            return True, "Nothing to solve", 0.0

        x0 = arm.q[free].copy()

        def residuals(x: np.ndarray) -> np.ndarray:
            arm.q[free] = x
            arm.update_numeric_Phi_and_Jacobians()
            return arm.Phi.copy()

        def jacobian(x: np.ndarray) -> np.ndarray:
            arm.q[free] = x
            arm.update_numeric_Phi_and_Jacobians()
            return arm.Phi_q.to_dense()[:, free]

        res = least_squares(
            residuals,
            x0,
            jac=jacobian,
            method="trf",
            max_nfev=int(max_nfev),
            ftol=float(ftol),
            xtol=float(xtol),
            gtol=float(gtol),
        )

        arm.q[free] = res.x
        arm.update_numeric_Phi_and_Jacobians()

        ok = bool(res.success)
        msg = str(res.message)
        if not ok:
            logger.warning("Position problem did not converge: %s (cost=%g)", msg, res.cost)
        return ok, msg, float(res.cost)

    @staticmethod
    def solve_velocities(arm: AssembledRigidModel, fixed_dofs: Iterable[int] = ()) -> float:
        """Correct ``arm.dotq`` so that Phi_q dq = 0, keeping listed DOFs.

        Uses Phi_q at the current q (refreshed here). Returns the remaining
        max |Phi_q dq|.
        """
        free = _free_columns(arm, fixed_dofs)
        arm.update_numeric_Phi_and_Jacobians()
        if not free or arm.num_constraints == 0:
            return 0.0
        A = arm.Phi_q.to_dense()
        r = A @ arm.dotq
        delta, *_ = np.linalg.lstsq(A[:, free], -r, rcond=None)
        arm.dotq[free] += delta
        arm.update_numeric_Phi_and_Jacobians()
        return float(np.max(np.abs(A @ arm.dotq)))

    @staticmethod
    def project_positions(arm: AssembledRigidModel, tol: float = 1e-10, max_iters: int = 10) -> Tuple[bool, int, float]:
        """Minimum-norm Gauss-Newton projection of q onto the constraint manifold.

        Returns (converged, iterations, max |Phi|).
        """
        err = max_constraint_error(arm)
        it = 0
        while err > tol and it < max_iters:
            A = arm.Phi_q.to_dense()
            delta, *_ = np.linalg.lstsq(A, -arm.Phi, rcond=None)
            arm.q += delta
            err = max_constraint_error(arm)
            it += 1
        return err <= tol, it, err
