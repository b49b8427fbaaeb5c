# -*- coding: utf-8 -*-
"""Degree-of-freedom descriptors.

A model state vector ``q`` holds, in this order:

1. Euclidean (natural) coordinates: one entry per free point axis.
2. Relative coordinates: one extra scalar per declared relative DOF, each
   tied to the natural coordinates by one additional constraint equation.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum
from typing import Optional, Union


class PointDOF(IntEnum):
    X = 0
    Y = 1

    @property
    def letter(self) -> str:
        return "x" if self is PointDOF.X else "y"


@dataclass(frozen=True)
class EuclideanDOF:
    point_index: int
    point_dof: PointDOF


@dataclass(frozen=True)
class RelativeAngleDOF:
    """Angle at point_idx0 from ray p0->p1 to ray p0->p2."""

    point_idx0: int
    point_idx1: int
    point_idx2: int


@dataclass(frozen=True)
class RelativeAngleAbsoluteDOF:
    """Orientation of segment p0->p1 with respect to the ground x axis."""

    point_idx0: int
    point_idx1: int


RelativeDOF = Union[RelativeAngleDOF, RelativeAngleAbsoluteDOF]


@dataclass
class Point2DOF:
    """Columns of q holding a point's x / y (``None`` = fixed coordinate)."""

    dof_x: Optional[int] = None
    dof_y: Optional[int] = None

    def set(self, axis: PointDOF, idx: int) -> None:
        if axis is PointDOF.X:
            self.dof_x = idx
        else:
            self.dof_y = idx


def describe_relative_dof(rdof: RelativeDOF) -> str:
    if isinstance(rdof, RelativeAngleDOF):
        return f"relativeAngle({rdof.point_idx1} - {rdof.point_idx0} - {rdof.point_idx2})"
    if isinstance(rdof, RelativeAngleAbsoluteDOF):
        return f"relativeAngleWrtGround({rdof.point_idx0} - {rdof.point_idx1})"
    return "???"
