# -*- coding: utf-8 -*-
"""Numeric mechanism model: state vectors, DOF tables and constraint Jacobians.

An :class:`AssembledRigidModel` is built once from a
:class:`~planar_mbse.core.model_definition.SymbolicAssembledModel`. Its state
vectors (``q``, ``dotq``, ``ddotq``, ``Q``) are allocated at assembly and are
only ever written in place afterwards, so references handed out to solvers
stay valid for the lifetime of the model.

Typical evaluation sequence::

    arm.set_state(q=q, dq=dq)
    arm.update_numeric_Phi_and_Jacobians()
    arm.Phi, arm.Phi_q.to_csr(), ...
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np

from ..utils.constants import DEFAULT_GRAVITY
from .constraints import (
    SECOND_ORDER_MATRICES,
    Constraint,
    RelativeAngleAbsoluteConstraint,
    RelativeAngleConstraint,
)
from .dofs import (
    Point2DOF,
    PointDOF,
    RelativeAngleAbsoluteDOF,
    RelativeAngleDOF,
    describe_relative_dof,
)
from .errors import InconsistentStateError, StructuralError, body_error, check_state_size
from .geometry import Vec2, angle_between, frame_axes
from .model_definition import Body, ModelDefinition, SymbolicAssembledModel
from .sparse import FixedPatternSparseMatrix

logger = logging.getLogger(__name__)


@dataclass
class EnergyValues:
    kinetic: float = 0.0
    potential: float = 0.0
    total: float = 0.0


class AssembledRigidModel:
    def __init__(self, armi: SymbolicAssembledModel):
        self.parent: ModelDefinition = armi.model
        self.dofs = list(armi.dofs)
        self.rdofs = list(armi.rdofs)
        self._gravity = np.array(DEFAULT_GRAVITY, dtype=float)

        n_euclidean = len(self.dofs)
        if n_euclidean == 0:
            raise StructuralError("Trying to assemble a model with 0 Euclidean DOFs!")
        n = n_euclidean + len(self.rdofs)

        self.q = np.zeros(n, dtype=float)
        self.dotq = np.zeros(n, dtype=float)
        self.ddotq = np.zeros(n, dtype=float)
        self.Q = np.zeros(n, dtype=float)

        # Reverse lookup: point -> columns of q holding its x / y.
        self.points2dofs: List[Point2DOF] = [Point2DOF() for _ in range(self.parent.point_count)]
        for i, dof in enumerate(self.dofs):
            if not (0 <= dof.point_index < self.parent.point_count):
                raise StructuralError(f"DOF {i} references unknown point {dof.point_index}")
            pt = self.parent.get_point_info(dof.point_index)
            self.q[i] = pt.x if dof.point_dof is PointDOF.X else pt.y
            self.points2dofs[dof.point_index].set(dof.point_dof, i)

        self.Phi = np.zeros(0, dtype=float)
        self.dotPhi = np.zeros(0, dtype=float)
        self._jacobians: Dict[str, FixedPatternSparseMatrix] = {
            name: FixedPatternSparseMatrix(n, name) for name in ("Phi_q",) + SECOND_ORDER_MATRICES
        }
        self._assembling = True

        self.constraints: List[Constraint] = [c.clone() for c in self.parent.constraints]
        for i, rdof in enumerate(self.rdofs):
            if not isinstance(rdof, (RelativeAngleDOF, RelativeAngleAbsoluteDOF)):
                raise StructuralError(f"Unhandled relative coordinate type: {type(rdof).__name__}")
            idx = n_euclidean + i
            for p in vars(rdof).values():
                if not (0 <= p < self.parent.point_count):
                    raise StructuralError(f"{describe_relative_dof(rdof)} references unknown point {p}")
            if isinstance(rdof, RelativeAngleDOF):
                c: Constraint = RelativeAngleConstraint(rdof.point_idx0, rdof.point_idx1, rdof.point_idx2, idx)
                self.q[idx] = self._initial_relative_angle(rdof)
            else:
                c = RelativeAngleAbsoluteConstraint(rdof.point_idx0, rdof.point_idx1, idx)
                self.q[idx] = self._initial_absolute_angle(rdof)
            self.constraints.append(c)

        for c in self.constraints:
            c.build_sparse_structure(self)
        for mat in self._jacobians.values():
            mat.freeze()
        self._assembling = False

        logger.debug(
            "Assembled model: %d DOFs (%d natural, %d relative), %d constraints, %d rows, nnz(Phi_q)=%d",
            n, n_euclidean, len(self.rdofs), len(self.constraints), len(self.Phi), self.Phi_q.nnz,
        )

    # ---------- layout ----------
    @property
    def num_dofs(self) -> int:
        return len(self.q)

    @property
    def num_euclidean_dofs(self) -> int:
        return len(self.dofs)

    @property
    def num_constraints(self) -> int:
        return len(self.Phi)

    def relative_coordinate_index(self, i: int) -> int:
        if not (0 <= i < len(self.rdofs)):
            raise StructuralError(f"Relative coordinate {i} out of range (count = {len(self.rdofs)})")
        return self.num_euclidean_dofs + i

    def jacobian(self, name: str) -> FixedPatternSparseMatrix:
        try:
            return self._jacobians[name]
        except KeyError:
            raise KeyError(f"Unknown constraint matrix '{name}'") from None

    @property
    def Phi_q(self) -> FixedPatternSparseMatrix:
        return self._jacobians["Phi_q"]

    @property
    def dotPhi_q(self) -> FixedPatternSparseMatrix:
        return self._jacobians["dotPhi_q"]

    @property
    def dPhiqdq_dq(self) -> FixedPatternSparseMatrix:
        return self._jacobians["dPhiqdq_dq"]

    @property
    def Phiqq_times_dq(self) -> FixedPatternSparseMatrix:
        return self._jacobians["Phiqq_times_dq"]

    @property
    def d_dotPhiq_ddq_times_dq(self) -> FixedPatternSparseMatrix:
        return self._jacobians["d_dotPhiq_ddq_times_dq"]

    def add_new_row_to_constraints(self) -> int:
        """Append one row to Phi, dotPhi and every constraint matrix."""
        if not self._assembling:
            raise StructuralError("Constraint rows can only be added while assembling the model")
        row = len(self.Phi)
        self.Phi = np.append(self.Phi, 0.0)
        self.dotPhi = np.append(self.dotPhi, 0.0)
        for mat in self._jacobians.values():
            mat.set_row_count(row + 1)
        return row

    # ---------- numerics ----------
    def update_numeric_Phi_and_Jacobians(self) -> None:
        for c in self.constraints:
            c.update(self)

    def get_point_current_coords(self, pt_index: int) -> Vec2:
        d = self.points2dofs[pt_index]
        if d.dof_x is not None and d.dof_y is not None:
            return float(self.q[d.dof_x]), float(self.q[d.dof_y])
        pt = self.parent.get_point_info(pt_index)
        x = float(self.q[d.dof_x]) if d.dof_x is not None else pt.x
        y = float(self.q[d.dof_y]) if d.dof_y is not None else pt.y
        return x, y

    def get_point_current_velocity(self, pt_index: int) -> Vec2:
        d = self.points2dofs[pt_index]
        vx = float(self.dotq[d.dof_x]) if d.dof_x is not None else 0.0
        vy = float(self.dotq[d.dof_y]) if d.dof_y is not None else 0.0
        return vx, vy

    def _body(self, body_index: int) -> Body:
        bodies = self.parent.bodies
        if not (0 <= body_index < len(bodies)):
            raise body_error(body_index, f"index out of range (body count = {len(bodies)})")
        return bodies[body_index]

    def get_point_on_body_current_coords(self, body_index: int, local: Vec2) -> Vec2:
        """Global position of a point rigidly attached to a body."""
        b = self._body(body_index)
        p0 = self.get_point_current_coords(b.points[0])
        p1 = self.get_point_current_coords(b.points[1])
        u, v, _L = frame_axes(p0, p1, f"reference segment of body {body_index}")
        return (
            p0[0] + local[0] * u[0] + local[1] * v[0],
            p0[1] + local[0] * u[1] + local[1] * v[1],
        )

    def get_body_current_pose(self, body_index: int) -> Tuple[float, float, float]:
        """(x, y, theta) of the body frame: origin at point 0, x axis to point 1."""
        b = self._body(body_index)
        p0 = self.get_point_current_coords(b.points[0])
        p1 = self.get_point_current_coords(b.points[1])
        u, _v, _L = frame_axes(p0, p1, f"reference segment of body {body_index}")
        return p0[0], p0[1], math.atan2(u[1], u[0])

    def set_state(self, q: Optional[Sequence[float]] = None, dq: Optional[Sequence[float]] = None,
                  ddq: Optional[Sequence[float]] = None) -> None:
        n = len(self.q)
        for name, src, dst in (("q", q, self.q), ("dq", dq, self.dotq), ("ddq", ddq, self.ddotq)):
            if src is None:
                continue
            src = np.asarray(src, dtype=float).reshape(-1)
            check_state_size(name, len(src), n)
            dst[:] = src

    def copy_state_from(self, other: "AssembledRigidModel") -> None:
        """Copy q and dotq from a model assembled from the same definition."""
        if (
            len(self.q) != len(other.q)
            or len(self.dotq) != len(other.dotq)
            or len(self.dofs) != len(other.dofs)
            or len(self.rdofs) != len(other.rdofs)
        ):
            raise InconsistentStateError(
                f"Cannot copy state between models with different layouts "
                f"({len(other.dofs)}+{len(other.rdofs)} DOFs -> {len(self.dofs)}+{len(self.rdofs)} DOFs)"
            )
        self.q[:] = other.q
        self.dotq[:] = other.dotq

    # ---------- gravity / energy ----------
    def set_gravity_vector(self, gx: float, gy: float) -> None:
        self._gravity[:] = (gx, gy)

    def get_gravity_vector(self) -> np.ndarray:
        return self._gravity.copy()

    def evaluate_energy(self) -> EnergyValues:
        e = EnergyValues()
        g = self._gravity
        for bi, b in enumerate(self.parent.bodies):
            dq0 = np.array(self.get_point_current_velocity(b.points[0]))
            dq1 = np.array(self.get_point_current_velocity(b.points[1]))
            e.kinetic += 0.5 * (dq0 @ b.M00 @ dq0 + dq1 @ b.M11 @ dq1) + dq0 @ b.M01 @ dq1

            cog = self.get_point_on_body_current_coords(bi, b.cog)
            e.potential -= b.mass * (g[0] * cog[0] + g[1] * cog[1])
        e.kinetic = float(e.kinetic)
        e.potential = float(e.potential)
        e.total = e.kinetic + e.potential
        return e

    # ---------- reporting ----------
    def describe_coordinates(self) -> str:
        lines = [f"Natural coordinates (count={len(self.dofs)}):"]
        for i, dof in enumerate(self.dofs):
            lines.append(f"q[{i}] = point {dof.point_index}.{dof.point_dof.letter} = {self.q[i]:g}")
        lines.append(f"Relative coordinates (count={len(self.rdofs)}):")
        for i, rdof in enumerate(self.rdofs):
            idx = self.num_euclidean_dofs + i
            lines.append(f"q[{idx}] = {describe_relative_dof(rdof)} = {self.q[idx]:g}")
        return "\n".join(lines)

    def _initial_relative_angle(self, rdof: RelativeAngleDOF) -> float:
        p0 = self.get_point_current_coords(rdof.point_idx0)
        p1 = self.get_point_current_coords(rdof.point_idx1)
        p2 = self.get_point_current_coords(rdof.point_idx2)
        return angle_between(p1[0] - p0[0], p1[1] - p0[1], p2[0] - p0[0], p2[1] - p0[1])

    def _initial_absolute_angle(self, rdof: RelativeAngleAbsoluteDOF) -> float:
        p0 = self.get_point_current_coords(rdof.point_idx0)
        p1 = self.get_point_current_coords(rdof.point_idx1)
        return math.atan2(p1[1] - p0[1], p1[0] - p0[0])
