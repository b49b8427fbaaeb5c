# -*- coding: utf-8 -*-
"""Constraint equations on natural and relative coordinates.

Every constraint works on a small *local* coordinate vector ``z`` built from
the points it touches (x, y of each point, in order) followed by its relative
coordinate, if any. A variant only has to provide the residual, its gradient
and its Hessian with respect to ``z``; the base class maps local entries to
global DOF columns, drops fixed coordinates, and writes the values into the
model's shared sparse storage.

Structure is registered once by :meth:`Constraint.build_sparse_structure`
(one call per assembled model); :meth:`Constraint.update` then refreshes the
numbers in place for the current ``q`` / ``dotq``.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Dict, Iterable, List, Optional, Sequence, Tuple

import numpy as np

from .errors import StructuralError
from .geometry import clamp_angle_rad, direction_angle, global_to_local, segment_length

if TYPE_CHECKING:
    from .assembled_model import AssembledRigidModel

# Matrices filled with the Hessian-times-velocity product H @ dz.
SECOND_ORDER_MATRICES = ("dotPhi_q", "dPhiqdq_dq", "Phiqq_times_dq", "d_dotPhiq_ddq_times_dq")


class Constraint:
    """Base class of all constraint variants."""

    kind = "Constraint"
    n_rows = 1

    def __init__(self):
        self.rows: List[int] = []
        self._phi = np.zeros(self.n_rows, dtype=float)
        self._free_local: Optional[np.ndarray] = None
        self._accum: Optional[np.ndarray] = None
        self._slots: Dict[str, np.ndarray] = {}

    # ---------- variant interface ----------
    def point_indices(self) -> Tuple[int, ...]:
        raise NotImplementedError

    def relative_dof_index(self) -> Optional[int]:
        return None

    def evaluate(self, z: np.ndarray) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
        """Return (phi[n_rows], grad[n_rows, nz], hess[n_rows, nz, nz])."""
        raise NotImplementedError

    def entities(self) -> str:
        return "-".join(f"P{i}" for i in self.point_indices())

    # ---------- common machinery ----------
    def clone(self) -> "Constraint":
        if self.rows:
            raise StructuralError(f"{self.kind} constraint already bound to a model; clone the prototype")
        return copy.deepcopy(self)

    def residual_value(self):
        if self.n_rows == 1:
            return float(self._phi[0])
        return self._phi.copy()

    def _local_columns(self, arm: "AssembledRigidModel") -> List[Optional[int]]:
        cols: List[Optional[int]] = []
        for pt in self.point_indices():
            d = arm.points2dofs[pt]
            cols.append(d.dof_x)
            cols.append(d.dof_y)
        rel = self.relative_dof_index()
        if rel is not None:
            cols.append(rel)
        return cols

    def build_sparse_structure(self, arm: "AssembledRigidModel") -> None:
        npts = arm.parent.point_count
        for pt in self.point_indices():
            if not (0 <= pt < npts):
                raise StructuralError(f"{self.kind} constraint references unknown point {pt}")

        cols = self._local_columns(arm)
        free_local = [k for k, c in enumerate(cols) if c is not None]
        uniq: List[int] = []
        for k in free_local:
            if cols[k] not in uniq:
                uniq.append(cols[k])

        # Accumulation matrix: local free entries -> unique global columns.
        accum = np.zeros((len(free_local), len(uniq)), dtype=float)
        for i, k in enumerate(free_local):
            accum[i, uniq.index(cols[k])] = 1.0
        self._free_local = np.asarray(free_local, dtype=np.int64)
        self._accum = accum

        self.rows = [arm.add_new_row_to_constraints() for _ in range(self.n_rows)]
        self._slots = {}
        for name in ("Phi_q",) + SECOND_ORDER_MATRICES:
            mat = arm.jacobian(name)
            slots = np.zeros((self.n_rows, len(uniq)), dtype=np.int64)
            for r, row in enumerate(self.rows):
                for j, col in enumerate(uniq):
                    slots[r, j] = mat.insert_entry(row, col)
            self._slots[name] = slots

    def _gather(self, arm: "AssembledRigidModel") -> Tuple[np.ndarray, np.ndarray]:
        z: List[float] = []
        dz: List[float] = []
        for pt in self.point_indices():
            x, y = arm.get_point_current_coords(pt)
            vx, vy = arm.get_point_current_velocity(pt)
            z.extend((x, y))
            dz.extend((vx, vy))
        rel = self.relative_dof_index()
        if rel is not None:
            z.append(arm.q[rel])
            dz.append(arm.dotq[rel])
        return np.asarray(z, dtype=float), np.asarray(dz, dtype=float)

    def update(self, arm: "AssembledRigidModel") -> None:
        if self._accum is None:
            raise StructuralError(f"{self.kind} constraint updated before build_sparse_structure()")
        z, dz = self._gather(arm)
        phi, grad, hess = self.evaluate(z)
        self._phi[:] = phi

        arm.Phi[self.rows] = phi
        arm.dotPhi[self.rows] = grad @ dz

        jac = grad[:, self._free_local] @ self._accum
        arm.Phi_q.values[self._slots["Phi_q"]] = jac

        hv = (hess @ dz)[:, self._free_local] @ self._accum
        for name in SECOND_ORDER_MATRICES:
            arm.jacobian(name).values[self._slots[name]] = hv

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.entities()})"


class ConstantDistanceConstraint(Constraint):
    """|p1 - p0|^2 - L^2 = 0"""

    kind = "ConstantDistance"
    _HESS = 2.0 * np.array(
        [[[1.0, 0.0, -1.0, 0.0], [0.0, 1.0, 0.0, -1.0], [-1.0, 0.0, 1.0, 0.0], [0.0, -1.0, 0.0, 1.0]]]
    )

    def __init__(self, point_index0: int, point_index1: int, length: float):
        super().__init__()
        if not length > 0.0:
            raise StructuralError(f"Constant distance P{point_index0}-P{point_index1}: length must be > 0, got {length!r}")
        self.point_index0 = int(point_index0)
        self.point_index1 = int(point_index1)
        self.length = float(length)

    def point_indices(self) -> Tuple[int, ...]:
        return self.point_index0, self.point_index1

    def evaluate(self, z: np.ndarray):
        dx = z[2] - z[0]
        dy = z[3] - z[1]
        phi = np.array([dx * dx + dy * dy - self.length * self.length])
        grad = np.array([[-2.0 * dx, -2.0 * dy, 2.0 * dx, 2.0 * dy]])
        return phi, grad, self._HESS


class RelativeAngleConstraint(Constraint):
    """Ties q[dof] to the angle at p0 from ray p0->p1 to ray p0->p2.

    With a = p1 - p0, b = p2 - p0:  wrap(ang(b) - ang(a) - t) = 0, the
    angle difference wrapped to (-pi, pi]. The only root is the true angle
    (mod 2 pi); the jump at a difference of pi is far from any solution.
    """

    kind = "RelativeAngle"
    # w = (ax, ay, bx, by, t) = T @ z,  z = (x0, y0, x1, y1, x2, y2, t)
    _T = np.array(
        [
            [-1.0, 0.0, 1.0, 0.0, 0.0, 0.0, 0.0],
            [0.0, -1.0, 0.0, 1.0, 0.0, 0.0, 0.0],
            [-1.0, 0.0, 0.0, 0.0, 1.0, 0.0, 0.0],
            [0.0, -1.0, 0.0, 0.0, 0.0, 1.0, 0.0],
            [0.0, 0.0, 0.0, 0.0, 0.0, 0.0, 1.0],
        ]
    )

    def __init__(self, point_idx0: int, point_idx1: int, point_idx2: int, dof_index: int):
        super().__init__()
        self.point_idx0 = int(point_idx0)
        self.point_idx1 = int(point_idx1)
        self.point_idx2 = int(point_idx2)
        self.dof_index = int(dof_index)

    def point_indices(self) -> Tuple[int, ...]:
        return self.point_idx0, self.point_idx1, self.point_idx2

    def relative_dof_index(self) -> Optional[int]:
        return self.dof_index

    def entities(self) -> str:
        return f"P{self.point_idx1}-P{self.point_idx0}-P{self.point_idx2}, q[{self.dof_index}]"

    def evaluate(self, z: np.ndarray):
        ax, ay, bx, by, t = self._T @ z
        th_a, ga, ha = direction_angle(ax, ay, f"ray P{self.point_idx0}-P{self.point_idx1}")
        th_b, gb, hb = direction_angle(bx, by, f"ray P{self.point_idx0}-P{self.point_idx2}")

        phi = clamp_angle_rad(float(th_b - th_a - t))
        gw = np.array([-ga[0], -ga[1], gb[0], gb[1], -1.0])
        hw = np.zeros((5, 5))
        hw[:2, :2] = -np.asarray(ha)
        hw[2:4, 2:4] = hb

        T = self._T
        return np.array([phi]), (gw @ T)[None, :], (T.T @ hw @ T)[None, :, :]


class RelativeAngleAbsoluteConstraint(Constraint):
    """Ties q[dof] to the orientation of p0->p1 w.r.t. the ground x axis.

    wrap(atan2(y1 - y0, x1 - x0) - t) = 0
    """

    kind = "RelativeAngleAbsolute"

    def __init__(self, point_idx0: int, point_idx1: int, dof_index: int):
        super().__init__()
        self.point_idx0 = int(point_idx0)
        self.point_idx1 = int(point_idx1)
        self.dof_index = int(dof_index)

    def point_indices(self) -> Tuple[int, ...]:
        return self.point_idx0, self.point_idx1

    def relative_dof_index(self) -> Optional[int]:
        return self.dof_index

    def entities(self) -> str:
        return f"P{self.point_idx0}-P{self.point_idx1}, q[{self.dof_index}]"

    def evaluate(self, z: np.ndarray):
        th, g, h = direction_angle(z[2] - z[0], z[3] - z[1], f"segment P{self.point_idx0}-P{self.point_idx1}")
        phi = clamp_angle_rad(float(th - z[4]))
        grad = np.array([[-g[0], -g[1], g[0], g[1], -1.0]])
        # d(dx)/dz = (-1, 0, 1, 0, 0), d(dy)/dz = (0, -1, 0, 1, 0)
        D = np.array([[-1.0, 0.0, 1.0, 0.0, 0.0], [0.0, -1.0, 0.0, 1.0, 0.0]])
        hess = (D.T @ np.asarray(h) @ D)[None, :, :]
        return np.array([phi]), grad, hess


class RelativePositionConstraint(Constraint):
    """Keeps a point at fixed local coordinates in the frame of p0->p1.

    p - (p0 + a (p1 - p0) + b R90 (p1 - p0)) = 0,  a = xi / L, b = eta / L
    """

    kind = "RelativePosition"
    n_rows = 2

    def __init__(self, point_idx0: int, point_idx1: int, point_index: int,
                 local_x: float, local_y: float, length: float):
        super().__init__()
        if not length > 0.0:
            raise StructuralError(f"Relative position P{point_index}: reference length must be > 0, got {length!r}")
        self.point_idx0 = int(point_idx0)
        self.point_idx1 = int(point_idx1)
        self.point_index = int(point_index)
        self.local_x = float(local_x)
        self.local_y = float(local_y)
        self.length = float(length)
        a = self.local_x / self.length
        b = self.local_y / self.length
        self._grad = np.array(
            [
                [a - 1.0, -b, -a, b, 1.0, 0.0],
                [b, a - 1.0, -b, -a, 0.0, 1.0],
            ]
        )

    @classmethod
    def from_points(cls, model: Any, point_idx0: int, point_idx1: int, point_index: int) -> "RelativePositionConstraint":
        """Capture the point's current local coordinates in a model definition."""
        p0 = model.get_point_info(point_idx0).coords
        p1 = model.get_point_info(point_idx1).coords
        p = model.get_point_info(point_index).coords
        L = segment_length(p0, p1, f"reference segment P{point_idx0}-P{point_idx1}")
        lx, ly = global_to_local(p0, p1, p)
        return cls(point_idx0, point_idx1, point_index, lx, ly, L)

    def point_indices(self) -> Tuple[int, ...]:
        return self.point_idx0, self.point_idx1, self.point_index

    def entities(self) -> str:
        return f"P{self.point_index} in (P{self.point_idx0}-P{self.point_idx1})"

    def evaluate(self, z: np.ndarray):
        phi = self._grad @ z
        return phi, self._grad, np.zeros((2, 6, 6))


@dataclass
class ConstraintRow:
    key: str
    typ: str
    entities: str
    rows: Tuple[int, ...]
    state: str


def iter_constraint_rows(constraints: Sequence[Constraint], tol: float = 1e-6) -> Iterable[ConstraintRow]:
    """Tabular view of constraints with their current residual state."""
    for idx, c in enumerate(constraints):
        phi = np.atleast_1d(c.residual_value())
        state = "OK" if float(np.max(np.abs(phi))) <= tol else "VIOLATED"
        yield ConstraintRow(f"C{idx}", c.kind, c.entities(), tuple(c.rows), state)
