# -*- coding: utf-8 -*-
"""Sparse matrices with a structure fixed at assembly time.

Constraint Jacobians are built in two phases:

1. Structure: rows are appended and (row, column) entries registered while
   the model is being assembled. Each registration returns a *slot*, the
   position of that entry in the flat ``values`` array.
2. Numerics: after :meth:`FixedPatternSparseMatrix.freeze` the pattern can no
   longer change, and every update simply overwrites ``values[slot]``.

This keeps per-evaluation work free of allocations in the structure and lets
constraint objects keep plain integer handles into the shared storage.
"""

from __future__ import annotations

from typing import Dict, List, Tuple

import numpy as np
import scipy.sparse as sp

from .errors import StructuralError


class FixedPatternSparseMatrix:
    def __init__(self, ncols: int = 0, name: str = ""):
        self.name = name
        self._ncols = int(ncols)
        self._nrows = 0
        self._rows: List[int] = []
        self._cols: List[int] = []
        self._slot_of: Dict[Tuple[int, int], int] = {}
        self._frozen = False
        self.rows = np.zeros(0, dtype=np.int64)
        self.cols = np.zeros(0, dtype=np.int64)
        self.values = np.zeros(0, dtype=float)

    # ---------- structure ----------
    @property
    def shape(self) -> Tuple[int, int]:
        return self._nrows, self._ncols

    @property
    def nnz(self) -> int:
        return len(self._rows)

    @property
    def frozen(self) -> bool:
        return self._frozen

    def _check_mutable(self) -> None:
        if self._frozen:
            raise StructuralError(f"Sparse matrix '{self.name}' structure is frozen")

    def set_row_count(self, nrows: int) -> None:
        self._check_mutable()
        if nrows < self._nrows:
            raise StructuralError(
                f"Sparse matrix '{self.name}' rows can only grow ({self._nrows} -> {nrows})"
            )
        self._nrows = int(nrows)

    def insert_entry(self, row: int, col: int) -> int:
        """Register a structural non-zero and return its slot."""
        self._check_mutable()
        if not (0 <= row < self._nrows) or not (0 <= col < self._ncols):
            raise StructuralError(
                f"Entry ({row}, {col}) out of bounds for sparse matrix '{self.name}' of shape {self.shape}"
            )
        key = (int(row), int(col))
        slot = self._slot_of.get(key)
        if slot is None:
            slot = len(self._rows)
            self._slot_of[key] = slot
            self._rows.append(key[0])
            self._cols.append(key[1])
        return slot

    def freeze(self) -> None:
        if self._frozen:
            return
        self.rows = np.asarray(self._rows, dtype=np.int64)
        self.cols = np.asarray(self._cols, dtype=np.int64)
        self.values = np.zeros(len(self._rows), dtype=float)
        self._frozen = True

    # ---------- numerics ----------
    def dot(self, x: np.ndarray) -> np.ndarray:
        """Return ``A @ x``."""
        return np.bincount(self.rows, weights=self.values * x[self.cols], minlength=self._nrows)

    def to_dense(self) -> np.ndarray:
        out = np.zeros(self.shape, dtype=float)
        np.add.at(out, (self.rows, self.cols), self.values)
        return out

    def to_csr(self) -> sp.csr_matrix:
        return sp.csr_matrix((self.values.copy(), (self.rows, self.cols)), shape=self.shape)

    def __repr__(self) -> str:
        return f"FixedPatternSparseMatrix(name={self.name!r}, shape={self.shape}, nnz={self.nnz})"
