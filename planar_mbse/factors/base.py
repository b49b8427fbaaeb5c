# -*- coding: utf-8 -*-
"""Factor interface, noise models and Jacobian checking.

A factor is a residual function of one or more named state vectors::

    err = factor.evaluate(values)
    err, jacobians = factor.evaluate(values, want_jacobians=True)

``values`` maps keys (see :func:`symbol`) to numpy vectors and ``jacobians``
holds one dense block per key, in the order of ``factor.keys``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Sequence, Tuple, Union

import numpy as np

from ..utils.constants import NUMERIC_JACOBIAN_DELTA, NUMERIC_JACOBIAN_TOL

logger = logging.getLogger(__name__)

Values = Mapping[str, np.ndarray]
FactorResult = Union[np.ndarray, Tuple[np.ndarray, List[np.ndarray]]]


def symbol(char: str, index: int) -> str:
    """Key of the ``index``-th variable of family ``char``, e.g. ``symbol("q", 1) == "q1"``."""
    return f"{char}{int(index)}"


class IsotropicNoise:
    def __init__(self, dim: int, sigma: float):
        if not sigma > 0.0:
            raise ValueError(f"Noise sigma must be > 0, got {sigma!r}")
        self.dim = int(dim)
        self.sigma = float(sigma)

    def whiten(self, r: np.ndarray) -> np.ndarray:
        return np.asarray(r, dtype=float) / self.sigma

    def __repr__(self) -> str:
        return f"IsotropicNoise(dim={self.dim}, sigma={self.sigma:g})"


class NonlinearFactor:
    """Base class: subclasses implement :meth:`evaluate_error`."""

    def __init__(self, keys: Sequence[str], noise: Optional[IsotropicNoise] = None):
        self.keys: Tuple[str, ...] = tuple(keys)
        self.noise = noise

    def evaluate_error(self, *values: np.ndarray, want_jacobians: bool = False) -> FactorResult:
        raise NotImplementedError

    def evaluate(self, values: Values, want_jacobians: bool = False) -> FactorResult:
        try:
            args = [np.asarray(values[k], dtype=float).reshape(-1) for k in self.keys]
        except KeyError as e:
            raise KeyError(f"{type(self).__name__}: missing value for key {e.args[0]!r}") from None
        return self.evaluate_error(*args, want_jacobians=want_jacobians)

    def whitened(self, values: Values, want_jacobians: bool = False) -> FactorResult:
        if not want_jacobians:
            err = self.evaluate(values)
            return self.noise.whiten(err) if self.noise is not None else err
        err, jacs = self.evaluate(values, want_jacobians=True)
        if self.noise is None:
            return err, jacs
        return self.noise.whiten(err), [self.noise.whiten(J) for J in jacs]

    def __repr__(self) -> str:
        return f"{type(self).__name__}(keys={list(self.keys)})"


def numerical_jacobians(factor: NonlinearFactor, values: Values,
                        delta: float = NUMERIC_JACOBIAN_DELTA) -> List[np.ndarray]:
    """Central-difference Jacobian blocks of ``factor`` around ``values``."""
    base = {k: np.asarray(values[k], dtype=float).reshape(-1).copy() for k in factor.keys}
    # Also refreshes any model state the factor writes into.
    err0 = np.atleast_1d(factor.evaluate(base))
    blocks: List[np.ndarray] = []
    for k in factor.keys:
        x = base[k]
        J = np.zeros((len(err0), len(x)), dtype=float)
        for j in range(len(x)):
            xp = dict(base)
            xm = dict(base)
            xp[k] = x.copy()
            xm[k] = x.copy()
            xp[k][j] += delta
            xm[k][j] -= delta
            ep = np.atleast_1d(factor.evaluate(xp))
            em = np.atleast_1d(factor.evaluate(xm))
            J[:, j] = (ep - em) / (2.0 * delta)
        blocks.append(J)
    factor.evaluate(base)
    return blocks


@dataclass
class JacobianCheck:
    ok: bool
    max_error: float
    errors: Dict[str, float] = field(default_factory=dict)

    def __bool__(self) -> bool:
        return self.ok


def check_factor_jacobians(factor: NonlinearFactor, values: Values,
                           delta: float = NUMERIC_JACOBIAN_DELTA,
                           tol: float = NUMERIC_JACOBIAN_TOL) -> JacobianCheck:
    """Compare analytic and central-difference Jacobians (max absolute difference)."""
    _err, analytic = factor.evaluate(values, want_jacobians=True)
    analytic = [np.array(J, dtype=float) for J in analytic]
    numeric = numerical_jacobians(factor, values, delta)

    errors: Dict[str, float] = {}
    for k, Ja, Jn in zip(factor.keys, analytic, numeric):
        if Ja.shape != Jn.shape:
            raise ValueError(f"{type(factor).__name__}: Jacobian for {k!r} has shape {Ja.shape}, expected {Jn.shape}")
        errors[k] = float(np.max(np.abs(Ja - Jn))) if Ja.size else 0.0
    max_err = max(errors.values(), default=0.0)
    ok = max_err <= tol
    if not ok:
        logger.warning("%s: analytic Jacobian mismatch %s (tol=%g)", type(factor).__name__, errors, tol)
    return JacobianCheck(ok, max_err, errors)
