"""
Sparse Cholesky factorization ``P A P^T = L L^T`` of symmetric positive definite
matrices in column-compressed form.

The factorization runs in two phases:

1. Symbolic analysis: a fill-reducing permutation ``P`` is chosen, the
   elimination tree of ``P A P^T`` is built and the nonzero pattern of every
   column of ``L`` is counted, which fixes the column pointers of ``L``.
2. Numeric factorization: ``L`` is computed row by row (up-looking). Row ``k``
   of ``L`` is the solution of a sparse triangular system whose pattern is the
   reach of column ``k`` in the elimination tree.

Only the upper triangular part of ``A`` is read, the matrix is assumed symmetric.

Examples
--------
>>> A = SparseMatrix()
>>> A.insert_entry(0, 0, 4.0); A.insert_entry(0, 1, 2.0)
>>> A.insert_entry(1, 0, 2.0); A.insert_entry(1, 1, 3.0)
>>> A.compress_from_triplet()
>>> chol = CholeskyFactorization(A)
>>> chol.get_L()
tensor([[2.0000, 0.0000],
        [1.0000, 1.4142]], dtype=torch.float64)
>>> chol.backsub([4.0, 3.0])
tensor([0.7500, 0.5000], dtype=torch.float64)
"""

import math
import torch
from typing import List, Literal, Optional, Sequence, Tuple, Union

from .alloc import allocation_guard, index_tensor, value_tensor
from .check import as_values, check_compressed, check_vector
from .compare import csc_same_pattern
from .convert import csc2dense
from .errors import (
    InvalidStateError,
    NotPositiveDefiniteError,
    NotSquareError,
    StructureMismatchError,
)
from .ordering import (
    DEFAULT_ORDERING,
    OrderingType,
    invert_permutation,
    order,
    symmetric_permute_upper,
)
from .sparse_matrix import SparseMatrix

CholeskyState = Literal['uninitialized', 'symbolic', 'numeric', 'failed', 'released']


# =============================================================================
# Symbolic analysis
# =============================================================================

def etree(Cp: List[int], Ci: List[int], n: int) -> List[int]:
    """
    Elimination tree of a symmetric matrix given by its upper triangle.

    ``parent[j]`` is the parent of node ``j``, ``-1`` for roots. Ancestors are
    path-compressed while the tree is built, so the cost is nearly linear.
    """
    parent = [-1] * n
    ancestor = [-1] * n
    for k in range(n):
        for p in range(Cp[k], Cp[k + 1]):
            i = Ci[p]
            while i != -1 and i < k:
                inext = ancestor[i]
                ancestor[i] = k
                if inext == -1:
                    parent[i] = k
                i = inext
    return parent


def ereach(Cp: List[int], Ci: List[int], k: int, parent: List[int],
           s: List[int], mark: List[int]) -> int:
    """
    Nonzero pattern of row ``k`` of ``L`` (excluding the diagonal).

    On return ``s[top:n]`` holds the pattern in an order that is valid for the
    triangular solve. ``mark`` is workspace: node ``i`` counts as visited for
    row ``k`` when ``mark[i] == k``.
    """
    n = len(parent)
    top = n
    mark[k] = k
    for p in range(Cp[k], Cp[k + 1]):
        i = Ci[p]
        if i > k:
            continue
        length = 0
        while mark[i] != k:
            s[length] = i
            length += 1
            mark[i] = k
            i = parent[i]
        while length > 0:
            top -= 1
            length -= 1
            s[top] = s[length]
    return top


class SymbolicAnalysis:
    """
    Ordering and predicted structure of ``L``.

    Attributes
    ----------
    perm, pinv : torch.Tensor
        Fill-reducing permutation and its inverse.
    parent : List[int]
        Elimination tree of ``P A P^T``.
    cp : List[int]
        Column pointers of ``L``, ``cp[n]`` is the number of nonzeros of ``L``.
    """

    def __init__(self, A: SparseMatrix, ordering: OrderingType = DEFAULT_ORDERING):
        n = A.rows
        val, row, colptr, shape = A.csc()
        _, coo_row, coo_col = A.coo()
        self.n = n
        self.ordering = ordering
        self.perm = order(ordering, coo_row, coo_col, n)
        self.pinv = invert_permutation(self.perm)

        _, C_row, C_colptr, _ = symmetric_permute_upper(val, row, colptr, shape, self.pinv)
        Cp, Ci = C_colptr.tolist(), C_row.tolist()
        self.parent = etree(Cp, Ci, n)
        self.cp = self._column_pointers(Cp, Ci)

    def _column_pointers(self, Cp: List[int], Ci: List[int]) -> List[int]:
        n = self.n
        counts = [1] * n  # diagonal
        s = [0] * n
        mark = [-1] * n
        for k in range(n):
            top = ereach(Cp, Ci, k, self.parent, s, mark)
            for t in range(top, n):
                counts[s[t]] += 1
        cp = [0] * (n + 1)
        for j in range(n):
            cp[j + 1] = cp[j] + counts[j]
        return cp

    @property
    def lnz(self) -> int:
        return self.cp[self.n]


# =============================================================================
# Numeric factorization and triangular solves
# =============================================================================

def numeric_cholesky(
    Cp: List[int], Ci: List[int], Cx: List[float], S: SymbolicAnalysis
) -> Tuple[List[int], List[int], List[float]]:
    """
    Up-looking Cholesky of ``C`` (upper triangle of ``P A P^T``).

    Returns the CSC buffers ``(Lp, Li, Lx)`` of ``L`` with the diagonal stored
    first in every column. Raises :class:`NotPositiveDefiniteError` as soon as a
    pivot is not strictly positive; nothing computed so far escapes.
    """
    n = S.n
    cp = S.cp
    with allocation_guard(f"Cholesky factor with {cp[n]} nonzeros"):
        Lp = list(cp)
        Li = [0] * cp[n]
        Lx = [0.0] * cp[n]
        c = cp[:n]  # next free slot of each column
        x = [0.0] * n
        s = [0] * n
        mark = [-1] * n

    parent = S.parent
    for k in range(n):
        top = ereach(Cp, Ci, k, parent, s, mark)
        # x = triu(C(:, k))
        for p in range(Cp[k], Cp[k + 1]):
            if Ci[p] <= k:
                x[Ci[p]] += Cx[p]
        d = x[k]
        x[k] = 0.0
        # solve L(0:k-1, 0:k-1) * x = C(0:k-1, k)
        for t in range(top, n):
            i = s[t]
            lki = x[i] / Lx[Lp[i]]
            x[i] = 0.0
            for p in range(Lp[i] + 1, c[i]):
                x[Li[p]] -= Lx[p] * lki
            d -= lki * lki
            p = c[i]
            c[i] += 1
            Li[p] = k
            Lx[p] = lki
        if not d > 0.0:
            raise NotPositiveDefiniteError(int(S.perm[k]), d)
        p = c[k]
        c[k] += 1
        Li[p] = k
        Lx[p] = math.sqrt(d)
    return Lp, Li, Lx


def lsolve(Lp: List[int], Li: List[int], Lx: List[float], x: List[float]):
    """Solve ``L y = x`` in place, ``L`` lower triangular with diagonal first."""
    for j in range(len(Lp) - 1):
        x[j] /= Lx[Lp[j]]
        xj = x[j]
        for p in range(Lp[j] + 1, Lp[j + 1]):
            x[Li[p]] -= Lx[p] * xj


def ltsolve(Lp: List[int], Li: List[int], Lx: List[float], x: List[float]):
    """Solve ``L^T y = x`` in place."""
    for j in range(len(Lp) - 2, -1, -1):
        xj = x[j]
        for p in range(Lp[j] + 1, Lp[j + 1]):
            xj -= Lx[p] * x[Li[p]]
        x[j] = xj / Lx[Lp[j]]


# =============================================================================
# CholeskyFactorization Class
# =============================================================================

class CholeskyFactorization:
    """
    Sparse Cholesky factorization for repeated solves.

    The factorization takes place in the constructor. Afterwards :meth:`backsub`
    solves ``A x = b`` and :meth:`update` refactorizes a matrix with new values
    but the same sparsity structure, reusing the symbolic analysis.

    The object owns its symbolic and numeric buffers and cannot be copied.
    :meth:`release` (or leaving a ``with`` block) drops them.

    Parameters
    ----------
    A : SparseMatrix
        Square, symmetric positive definite matrix in column-compressed form.
        Only its upper triangle is read.
    ordering : {'amd', 'natural'}, optional
        Fill-reducing ordering, by default 'amd'.

    Raises
    ------
    InvalidStateError
        If ``A`` is still in triplet form.
    NotSquareError
        If ``A`` is not square.
    NotPositiveDefiniteError
        If a pivot is not strictly positive.

    Examples
    --------
    >>> chol = CholeskyFactorization(A)
    >>> x = chol.backsub(b)          # A @ x == b
    >>> chol.update(A_new)           # same structure, new values
    >>> x_new = chol.backsub(b)
    """

    def __init__(self, A: SparseMatrix, ordering: OrderingType = DEFAULT_ORDERING):
        self._state: CholeskyState = 'uninitialized'
        self._symbolic: Optional[SymbolicAnalysis] = None
        self._L: Optional[Tuple[List[int], List[int], List[float]]] = None

        check_compressed("A", A)
        if A.rows != A.cols:
            raise NotSquareError("A", A.shape)

        self._shape = A.shape
        self._nnz = A.nnz
        # structure of the factorized matrix, checked again by update()
        _, row, colptr, _ = A.csc()
        self._pattern = (row.clone(), colptr.clone())

        self._symbolic = SymbolicAnalysis(A, ordering)
        self._state = 'symbolic'
        try:
            self._factorize(A)
        except NotPositiveDefiniteError:
            # a failed construction keeps nothing alive
            self._symbolic = None
            self._pattern = None
            raise

    def _factorize(self, A: SparseMatrix):
        S = self._symbolic
        val, row, colptr, shape = A.csc()
        C_val, C_row, C_colptr, _ = symmetric_permute_upper(val, row, colptr, shape, S.pinv)
        self._L = None
        try:
            self._L = numeric_cholesky(C_colptr.tolist(), C_row.tolist(), C_val.tolist(), S)
        except NotPositiveDefiniteError:
            self._L = None
            self._state = 'failed'
            raise
        self._state = 'numeric'

    # =========================================================================
    # Properties
    # =========================================================================

    @property
    def state(self) -> CholeskyState:
        """One of 'uninitialized', 'symbolic', 'numeric', 'failed', 'released'."""
        return self._state

    @property
    def shape(self) -> Tuple[int, int]:
        return self._shape

    @property
    def ordering(self) -> str:
        self._require('symbolic', 'numeric', 'failed')
        return self._symbolic.ordering

    @property
    def permutation(self) -> torch.Tensor:
        """``perm`` such that row ``k`` of ``P A P^T`` is row ``perm[k]`` of ``A``."""
        self._require('symbolic', 'numeric', 'failed')
        return self._symbolic.perm.clone()

    @property
    def lnz(self) -> int:
        """Number of nonzeros of ``L`` predicted by the symbolic analysis."""
        self._require('symbolic', 'numeric', 'failed')
        return self._symbolic.lnz

    def _require(self, *states: str):
        if self._state not in states:
            raise InvalidStateError(
                f"Cholesky factorization is '{self._state}', expected one of {states}"
            )

    # =========================================================================
    # Factor access and solves
    # =========================================================================

    def get_L(self, sparse: bool = False) -> Union[torch.Tensor, SparseMatrix]:
        """
        Return the lower triangular factor with ``L @ L.T == P A P^T``.

        Parameters
        ----------
        sparse : bool, optional
            Return a column-compressed :class:`SparseMatrix` instead of a dense
            tensor, by default False.
        """
        self._require('numeric')
        Lp, Li, Lx = self._L
        val, row, colptr = value_tensor(Lx), index_tensor(Li), index_tensor(Lp)
        if sparse:
            return SparseMatrix.from_csc(colptr, row, val, self._shape)
        return csc2dense(val, row, colptr, self._shape)

    def backsub(self, b: Union[torch.Tensor, Sequence[float]]) -> torch.Tensor:
        """
        Solve ``A x = b`` with the factorization.

        ``P b`` is forward-substituted through ``L``, the result back-substituted
        through ``L^T`` and permuted back.

        Parameters
        ----------
        b : torch.Tensor or sequence of float
            Right-hand side of shape [n], or [n, k] for k right-hand sides.

        Returns
        -------
        torch.Tensor
            Solution ``x`` (float64) with the shape of ``b``.
        """
        self._require('numeric')
        b = as_values(b)
        n = self._shape[0]
        check_vector(b, n)
        if b.dim() == 2:
            return torch.stack([self.backsub(b[:, j]) for j in range(b.size(1))], dim=1)

        Lp, Li, Lx = self._L
        perm = self._symbolic.perm.tolist()
        b_list = b.tolist()
        x = [b_list[perm[k]] for k in range(n)]  # x = P b
        lsolve(Lp, Li, Lx, x)
        ltsolve(Lp, Li, Lx, x)
        result = [0.0] * n
        for k in range(n):
            result[perm[k]] = x[k]  # x = P^T x
        return value_tensor(result, device=b.device)

    solve = backsub

    def logdet(self) -> float:
        """``log(det(A))``, twice the sum of the log-diagonal of ``L``."""
        self._require('numeric')
        Lp, _, Lx = self._L
        return 2.0 * sum(math.log(Lx[Lp[j]]) for j in range(self._shape[0]))

    # =========================================================================
    # Update
    # =========================================================================

    def update(self, new_A: SparseMatrix):
        """
        Refactorize from a matrix with the same structure as the original one.

        The symbolic analysis (ordering, elimination tree, pattern of ``L``) is
        reused, only the numeric phase runs again. ``new_A`` must store entries
        at exactly the same coordinates as the factorized matrix.

        Raises
        ------
        StructureMismatchError
            If the shape, the number of stored entries or the pattern differ.
        NotPositiveDefiniteError
            If ``new_A`` is not positive definite. The factorization is then
            'failed' until a successful update.
        """
        self._require('numeric', 'failed')
        check_compressed("new_A", new_A)
        if new_A.shape != self._shape:
            raise StructureMismatchError(
                f"update() expects a matrix of shape {self._shape}, got {new_A.shape}"
            )
        if new_A.nnz != self._nnz:
            raise StructureMismatchError(
                f"update() expects {self._nnz} stored entries, got {new_A.nnz}"
            )
        _, row, colptr, _ = new_A.csc()
        if not csc_same_pattern(row, colptr, new_A.shape, *self._pattern, self._shape):
            raise StructureMismatchError("update() expects the same sparsity pattern as the factorized matrix")
        self._factorize(new_A)

    # =========================================================================
    # Ownership
    # =========================================================================

    def release(self):
        """Drop the symbolic and numeric buffers. Calling it again is a no-op."""
        if self._state == 'released':
            return
        self._L = None
        self._symbolic = None
        self._pattern = None
        self._state = 'released'

    def __enter__(self) -> "CholeskyFactorization":
        return self

    def __exit__(self, exc_type, exc, tb):
        self.release()

    def __copy__(self):
        raise TypeError("CholeskyFactorization cannot be copied")

    def __deepcopy__(self, memo):
        raise TypeError("CholeskyFactorization cannot be copied")

    def __reduce__(self):
        raise TypeError("CholeskyFactorization cannot be pickled")

    def __repr__(self) -> str:
        if self._symbolic is None:
            return f"CholeskyFactorization(shape={self._shape}, state={self._state})"
        return (f"CholeskyFactorization(shape={self._shape}, ordering={self._symbolic.ordering}, "
                f"lnz={self._symbolic.lnz}, state={self._state})")
