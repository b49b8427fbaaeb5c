# -*- coding: utf-8 -*-
"""Planar geometry helpers."""

from __future__ import annotations

import math
from typing import Tuple

from ..utils.constants import MIN_SEGMENT_LENGTH
from .errors import DegenerateGeometryError

Vec2 = Tuple[float, float]


def clamp_angle_rad(a: float) -> float:
    """Wrap angle to (-pi, pi]."""
    while a <= -math.pi:
        a += 2 * math.pi
    while a > math.pi:
        a -= 2 * math.pi
    return a


def angle_between(v1x: float, v1y: float, v2x: float, v2y: float) -> float:
    cross = v1x * v2y - v1y * v2x
    dot = v1x * v2x + v1y * v2y
    return math.atan2(cross, dot)


def rot90(x: float, y: float) -> tuple[float, float]:
    return -y, x


def segment_length(p0: Vec2, p1: Vec2, what: str = "segment") -> float:
    """Length of p0->p1, raising if it cannot be used as a divisor."""
    d = math.hypot(p1[0] - p0[0], p1[1] - p0[1])
    if d < MIN_SEGMENT_LENGTH:
        raise DegenerateGeometryError(
            f"Zero-length {what} between ({p0[0]:g}, {p0[1]:g}) and ({p1[0]:g}, {p1[1]:g})"
        )
    return d


def direction_angle(dx: float, dy: float, what: str = "segment"):
    """Angle of the vector (dx, dy), with its gradient and Hessian w.r.t. (dx, dy)."""
    r2 = dx * dx + dy * dy
    if r2 < MIN_SEGMENT_LENGTH * MIN_SEGMENT_LENGTH:
        raise DegenerateGeometryError(f"Zero-length {what}: direction angle undefined")
    r4 = r2 * r2
    grad = (-dy / r2, dx / r2)
    hxy = (dy * dy - dx * dx) / r4
    hxx = 2.0 * dx * dy / r4
    hess = ((hxx, hxy), (hxy, -hxx))
    return math.atan2(dy, dx), grad, hess


def frame_axes(p0: Vec2, p1: Vec2, what: str = "reference segment") -> tuple[Vec2, Vec2, float]:
    """Unit director u = (p1-p0)/|p1-p0|, its +90deg rotation v, and the length."""
    L = segment_length(p0, p1, what)
    ux = (p1[0] - p0[0]) / L
    uy = (p1[1] - p0[1]) / L
    vx, vy = rot90(ux, uy)
    return (ux, uy), (vx, vy), L


def local_to_global(p0: Vec2, p1: Vec2, local: Vec2) -> Vec2:
    """Map body-local coordinates (frame x: p0->p1, y: +90deg) to global."""
    u, v, _L = frame_axes(p0, p1)
    return (
        p0[0] + u[0] * local[0] + v[0] * local[1],
        p0[1] + u[1] * local[0] + v[1] * local[1],
    )


def global_to_local(p0: Vec2, p1: Vec2, pt: Vec2) -> Vec2:
    """Inverse of :func:`local_to_global`."""
    u, v, _L = frame_axes(p0, p1)
    dx = pt[0] - p0[0]
    dy = pt[1] - p0[1]
    return dx * u[0] + dy * u[1], dx * v[0] + dy * v[1]
