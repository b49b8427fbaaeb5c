# -*- coding: utf-8 -*-
"""Static description of a planar mechanism.

A :class:`ModelDefinition` holds points (fixed or free), rigid bodies built
on those points, and any user constraints. Calling
:meth:`ModelDefinition.assemble_symbolic` chooses the natural coordinates
(one x and one y DOF per free point) and generates the rigid-body closure
constraints; :meth:`ModelDefinition.assemble_rigid_mbs` goes one step further
and returns a numeric :class:`~planar_mbse.core.assembled_model.AssembledRigidModel`.

Points must be placed before the bodies that use them are added, since each
body captures the local coordinates of its points at that moment.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, List, Optional, Sequence, Tuple

import numpy as np

from .constraints import ConstantDistanceConstraint, Constraint, RelativePositionConstraint
from .dofs import EuclideanDOF, PointDOF, RelativeDOF
from .errors import StructuralError, body_error, point_error
from .geometry import Vec2, global_to_local, segment_length

if TYPE_CHECKING:
    from .assembled_model import AssembledRigidModel

logger = logging.getLogger(__name__)

_R90 = np.array([[0.0, -1.0], [1.0, 0.0]])


@dataclass
class Point2:
    x: float
    y: float
    fixed: bool = False

    @property
    def coords(self) -> Vec2:
        return self.x, self.y


@dataclass
class Body:
    """Rigid body on two or more points.

    The body frame has its origin at the first point and its x axis along
    first -> second point. ``cog`` is expressed in that frame and
    ``inertia`` is the polar moment of inertia about the center of gravity.
    """

    points: List[int]
    mass: float = 1.0
    inertia: float = 0.0
    cog: Vec2 = (0.0, 0.0)
    length: float = 1.0
    name: str = ""
    fixed_points_local: List[Vec2] = field(default_factory=list)

    def __post_init__(self):
        self.points = [int(p) for p in self.points]
        self.cog = (float(self.cog[0]), float(self.cog[1]))
        if len(self.points) < 2:
            raise StructuralError(
                f"Body '{self.name}' has an invalid number of points (={len(self.points)}), valid are >=2"
            )
        if not self.length > 0.0:
            raise StructuralError(f"Body '{self.name}' length must be > 0, got {self.length!r}")
        if self.mass < 0.0 or self.inertia < 0.0:
            raise StructuralError(f"Body '{self.name}' mass and inertia must be non-negative")

    @property
    def I0(self) -> float:
        """Moment of inertia about the first point (parallel axis)."""
        return self.inertia + self.mass * (self.cog[0] ** 2 + self.cog[1] ** 2)

    # Mass matrix partition for the natural coordinates of points 0 and 1:
    #   T = 1/2 [dq0' dq1'] [M00 M01; M01' M11] [dq0; dq1]
    @property
    def M00(self) -> np.ndarray:
        L = self.length
        return (self.mass - 2.0 * self.mass * self.cog[0] / L + self.I0 / (L * L)) * np.eye(2)

    @property
    def M11(self) -> np.ndarray:
        L = self.length
        return (self.I0 / (L * L)) * np.eye(2)

    @property
    def M01(self) -> np.ndarray:
        L = self.length
        a = self.mass * self.cog[0] / L - self.I0 / (L * L)
        b = self.mass * self.cog[1] / L
        return a * np.eye(2) + b * _R90

    def interpolation_weights(self, local: Vec2) -> Tuple[np.ndarray, np.ndarray]:
        """C0, C1 such that a body point at ``local`` is C0 @ p0 + C1 @ p1."""
        a = local[0] / self.length
        b = local[1] / self.length
        return (1.0 - a) * np.eye(2) - b * _R90, a * np.eye(2) + b * _R90


@dataclass
class SymbolicAssembledModel:
    """A definition plus the chosen DOF set, ready for numeric assembly."""

    model: "ModelDefinition"
    dofs: List[EuclideanDOF] = field(default_factory=list)
    rdofs: List[RelativeDOF] = field(default_factory=list)

    def clear(self) -> None:
        self.dofs.clear()
        self.rdofs.clear()


class ModelDefinition:
    def __init__(self):
        self._points: List[Point2] = []
        self._bodies: List[Body] = []
        self._constraints: List[Constraint] = []
        self._closure_constraints_added = False

    def clear(self) -> None:
        """Erase every point, body and constraint."""
        self.__init__()

    def _check_editable(self) -> None:
        if self._closure_constraints_added:
            raise StructuralError("Can't modify model after assembling!")

    # ---------- points ----------
    @property
    def point_count(self) -> int:
        return len(self._points)

    @property
    def points(self) -> Tuple[Point2, ...]:
        return tuple(self._points)

    def set_point_count(self, n: int) -> None:
        self._check_editable()
        n = int(n)
        if n < len(self._points):
            del self._points[n:]
        while len(self._points) < n:
            self._points.append(Point2(0.0, 0.0, False))

    def add_point(self, x: float, y: float, fixed: bool = False) -> int:
        self._check_editable()
        self._points.append(Point2(float(x), float(y), bool(fixed)))
        return len(self._points) - 1

    def set_point_coords(self, i: int, x: float, y: float, fixed: bool = False) -> None:
        pt = self.get_point_info(i)
        if self._closure_constraints_added and bool(fixed) != pt.fixed:
            raise StructuralError(f"Point {i}: can't change the fixed flag after assembling!")
        pt.x = float(x)
        pt.y = float(y)
        pt.fixed = bool(fixed)

    def get_point_info(self, i: int) -> Point2:
        if not (0 <= i < len(self._points)):
            raise point_error(i, f"index out of range (point count = {len(self._points)})")
        return self._points[i]

    # ---------- bodies ----------
    @property
    def bodies(self) -> Tuple[Body, ...]:
        return tuple(self._bodies)

    def add_body(
        self,
        points: Sequence[int],
        mass: float = 1.0,
        inertia: float = 0.0,
        cog: Optional[Vec2] = None,
        length: Optional[float] = None,
        name: str = "",
    ) -> Body:
        self._check_editable()
        body_index = len(self._bodies)
        pts = [int(p) for p in points]
        if len(pts) < 2:
            raise body_error(body_index, f"invalid number of points (={len(pts)}), valid are >=2")
        for p in pts:
            if not (0 <= p < len(self._points)):
                raise body_error(body_index, f"unknown point index {p}")

        p0 = self._points[pts[0]].coords
        p1 = self._points[pts[1]].coords
        ref_len = segment_length(p0, p1, f"reference segment of body {body_index}")
        # "length" is always derived for bodies with 3+ points.
        if length is None or len(pts) >= 3:
            length = ref_len

        local = [global_to_local(p0, p1, self._points[p].coords) for p in pts]
        if cog is None:
            cog = (
                sum(lp[0] for lp in local) / len(local),
                sum(lp[1] for lp in local) / len(local),
            )

        body = Body(
            points=pts,
            mass=float(mass),
            inertia=float(inertia),
            cog=cog,
            length=float(length),
            name=name or f"body{body_index}",
            fixed_points_local=local,
        )
        self._bodies.append(body)
        return body

    # ---------- constraints ----------
    @property
    def constraints(self) -> Tuple[Constraint, ...]:
        return tuple(self._constraints)

    def add_constraint(self, constraint: Constraint) -> Constraint:
        self._check_editable()
        for p in constraint.point_indices():
            if not (0 <= p < len(self._points)):
                raise StructuralError(f"{constraint.kind} constraint references unknown point {p}")
        self._constraints.append(constraint)
        return constraint

    def add_relative_position_constraint(self, ref0: int, ref1: int, point: int) -> RelativePositionConstraint:
        c = RelativePositionConstraint.from_points(self, ref0, ref1, point)
        self.add_constraint(c)
        return c

    def _add_body_closure_constraints(self) -> None:
        for bi, b in enumerate(self._bodies):
            n = len(b.points)
            if n < 2:
                raise body_error(bi, f"invalid number of points (={n}), valid are >=2")
            if n == 2:
                self._constraints.append(ConstantDistanceConstraint(b.points[0], b.points[1], b.length))
                continue
            # TODO: detect 3+ aligned points, which make these distances redundant.
            pairs = [(0, 1)]
            for j in range(2, n):
                pairs.append((0, j))
                pairs.append((1, j))
            for i, j in pairs:
                pi = self._points[b.points[i]]
                pj = self._points[b.points[j]]
                L = math.hypot(pj.x - pi.x, pj.y - pi.y)
                self._constraints.append(ConstantDistanceConstraint(b.points[i], b.points[j], L))

    # ---------- assembly ----------
    def assemble_symbolic(self) -> SymbolicAssembledModel:
        armi = SymbolicAssembledModel(self)
        for i, pt in enumerate(self._points):
            if not pt.fixed:
                armi.dofs.append(EuclideanDOF(i, PointDOF.X))
                armi.dofs.append(EuclideanDOF(i, PointDOF.Y))

        if not self._closure_constraints_added:
            self._add_body_closure_constraints()
            self._closure_constraints_added = True

        logger.debug(
            "Symbolic assembly: %d points, %d bodies, %d constraints, %d natural DOFs",
            len(self._points), len(self._bodies), len(self._constraints), len(armi.dofs),
        )
        return armi

    def assemble_rigid_mbs(self, relative_coordinates: Optional[Sequence[RelativeDOF]] = None) -> "AssembledRigidModel":
        from .assembled_model import AssembledRigidModel

        armi = self.assemble_symbolic()
        if relative_coordinates is not None:
            armi.rdofs = list(relative_coordinates)
        return AssembledRigidModel(armi)
