# -*- coding: utf-8 -*-
"""Small batch factor-graph optimizer over named state vectors."""

from __future__ import annotations

import logging
from typing import Dict, List, Mapping, Tuple

import numpy as np
from scipy.optimize import least_squares

from .base import NonlinearFactor, Values

logger = logging.getLogger(__name__)


class FactorGraph:
    """Stacks whitened residuals / Jacobians of all factors for least squares."""

    def __init__(self):
        self.factors: List[NonlinearFactor] = []

    def add(self, factor: NonlinearFactor) -> int:
        self.factors.append(factor)
        return len(self.factors) - 1

    def keys(self) -> List[str]:
        seen: List[str] = []
        for f in self.factors:
            for k in f.keys:
                if k not in seen:
                    seen.append(k)
        return seen

    def _layout(self, values: Values) -> Tuple[List[str], Dict[str, slice], int]:
        keys = self.keys()
        slices: Dict[str, slice] = {}
        offset = 0
        for k in keys:
            if k not in values:
                raise KeyError(f"No initial value for key {k!r}")
            n = len(np.asarray(values[k]).reshape(-1))
            slices[k] = slice(offset, offset + n)
            offset += n
        return keys, slices, offset

    def error(self, values: Values) -> float:
        """0.5 * sum of squared whitened residuals."""
        total = 0.0
        for f in self.factors:
            r = np.atleast_1d(f.whitened(values))
            total += 0.5 * float(r @ r)
        return total

    def optimize(self, initial: Mapping[str, np.ndarray], max_nfev: int = 100,
                 ftol: float = 1e-12, xtol: float = 1e-12, gtol: float = 1e-12) -> Tuple[Dict[str, np.ndarray], object]:
        """Minimize the graph error starting from ``initial``.

        Returns (optimized values, scipy OptimizeResult).
        """
        keys, slices, total_dim = self._layout(initial)
        x0 = np.zeros(total_dim, dtype=float)
        for k in keys:
            x0[slices[k]] = np.asarray(initial[k], dtype=float).reshape(-1)

        def unpack(x: np.ndarray) -> Dict[str, np.ndarray]:
            return {k: x[slices[k]].copy() for k in keys}

        def fun(x: np.ndarray) -> np.ndarray:
            vals = unpack(x)
            return np.concatenate([np.atleast_1d(f.whitened(vals)) for f in self.factors])

        def jac(x: np.ndarray) -> np.ndarray:
            vals = unpack(x)
            rows: List[np.ndarray] = []
            for f in self.factors:
                r, jacs = f.whitened(vals, want_jacobians=True)
                J = np.zeros((len(np.atleast_1d(r)), total_dim), dtype=float)
                for k, Jk in zip(f.keys, jacs):
                    J[:, slices[k]] += Jk
                rows.append(J)
            return np.vstack(rows)

        res = least_squares(
            fun,
            x0,
            jac=jac,
            method="trf",
            max_nfev=int(max_nfev),
            ftol=float(ftol),
            xtol=float(xtol),
            gtol=float(gtol),
        )
        logger.info(
            "Factor graph optimization: %s (cost=%.6e, nfev=%d, njev=%s)",
            res.message, res.cost, res.nfev, res.njev,
        )

        result = {k: v for k, v in initial.items() if k not in slices}
        result.update(unpack(res.x))
        return result, res
