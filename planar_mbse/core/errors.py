# -*- coding: utf-8 -*-
"""Exception types raised by model assembly and evaluation.

All library errors derive from :class:`MbseError` so callers can catch them
in one place, while each failure class stays distinguishable:

- :class:`StructuralError` -- the mechanism description or DOF set is not
  usable (no free coordinates, malformed bodies, unknown relative DOF, ...).
- :class:`StateSizeError` -- a state vector does not fit the model layout.
- :class:`DegenerateGeometryError` -- a zero-length reference segment was
  about to be used as a divisor.
- :class:`InconsistentStateError` -- state copied between models that were
  not assembled from the same definition.
"""

from __future__ import annotations

from typing import Optional


class MbseError(Exception):
    """Base class for every planar_mbse error."""


class StructuralError(MbseError, ValueError):
    pass


class StateSizeError(StructuralError):
    pass


class DegenerateGeometryError(MbseError, ArithmeticError):
    pass


class InconsistentStateError(MbseError, ValueError):
    pass


def body_error(body_index: Optional[int], detail: str) -> StructuralError:
    body_info = f"body {body_index}" if body_index is not None else "body ?"
    return StructuralError(f"Body ({body_info}): {detail}")


def point_error(point_index: Optional[int], detail: str) -> StructuralError:
    point_info = f"point {point_index}" if point_index is not None else "point ?"
    return StructuralError(f"Point ({point_info}): {detail}")


def check_state_size(name: str, vec_len: int, expected: int) -> None:
    if vec_len != expected:
        raise StateSizeError(
            f"State vector '{name}' has length {vec_len}, expected {expected}"
        )
