"""
SparseMatrix: a double precision sparse matrix with two representations.

- Triplet form: an append-only list of (row, col, value) entries. Duplicated
  coordinates are allowed and summed when the matrix is compressed.
- Column-compressed form (CSC): ``colptr`` [n+1], ``row`` [nzmax] and ``val``
  [nzmax] torch tensors. Arithmetic and factorization work on this form only.

A matrix holds exactly one of the two storages at a time. Operations that need
the other one raise :class:`~torch_csc.errors.InvalidStateError`.

Examples
--------
>>> A = SparseMatrix(3, 3)
>>> A.insert_entry(0, 0, 4.0)
>>> A.insert_entry(1, 1, 4.0)
>>> A.insert_entry(2, 2, 4.0)
>>> A.insert_entry(0, 1, -1.0)
>>> A.insert_entry(1, 0, -1.0)
>>> A.compress_from_triplet()
>>>
>>> y = A @ torch.ones(3, dtype=torch.float64)   # matrix-vector
>>> C = A @ A                                      # sparse-sparse
>>> D = A + A.T
>>> chol = A.cholesky()
>>> x = chol.backsub(y)
"""

import math
import torch
from typing import Dict, List, Optional, Sequence, Tuple, Union

from .alloc import allocation_guard, index_tensor, value_tensor
from .arithmetic import csc_add, csc_matvec, csc_multiply, CSC
from .check import (
    as_indices,
    as_values,
    check_compressed,
    check_csc,
    check_finite,
    check_index,
    check_triplet,
)
from .ordering import DEFAULT_ORDERING, OrderingType
from .convert import DenseSource, coo2csc, coo2dense, csc2coo, csc2dense, csc_transpose, dense2csc


class TripletStorage:
    """Entries of a matrix in triplet form, in insertion order."""

    __slots__ = ("row", "col", "val")

    def __init__(self, row: Optional[List[int]] = None, col: Optional[List[int]] = None,
                 val: Optional[List[float]] = None):
        self.row = row if row is not None else []
        self.col = col if col is not None else []
        self.val = val if val is not None else []

    def __len__(self) -> int:
        return len(self.val)

    def tensors(self) -> Tuple[torch.Tensor, torch.Tensor, torch.Tensor]:
        return value_tensor(self.val), index_tensor(self.row), index_tensor(self.col)

    def copy(self) -> "TripletStorage":
        return TripletStorage(list(self.row), list(self.col), list(self.val))


class CompressedStorage:
    """CSC buffers. ``nzmax`` (the buffer length) may exceed ``colptr[-1]``."""

    __slots__ = ("val", "row", "colptr")

    def __init__(self, val: torch.Tensor, row: torch.Tensor, colptr: torch.Tensor):
        self.val = val
        self.row = row
        self.colptr = colptr

    @property
    def nnz(self) -> int:
        return int(self.colptr[-1])

    @property
    def nzmax(self) -> int:
        return self.row.shape[0]

    def copy(self) -> "CompressedStorage":
        with allocation_guard("compressed buffers"):
            return CompressedStorage(self.val.clone(), self.row.clone(), self.colptr.clone())


Storage = Union[TripletStorage, CompressedStorage]


class SparseMatrix:
    """
    Sparse matrix of float64 values in triplet or column-compressed form.

    A new matrix starts empty in triplet form. Fill it with
    :meth:`insert_entry` / :meth:`insert_submatrix` and call
    :meth:`compress_from_triplet` before doing any math on it, or build a
    compressed matrix directly with :meth:`from_dense`, :meth:`from_dict`,
    :meth:`from_coo` or :meth:`from_csc`.

    Parameters
    ----------
    rows : int, optional
        Initial number of rows, by default 0. Grows with insertions.
    cols : int, optional
        Initial number of columns, by default 0. Grows with insertions.

    Attributes
    ----------
    shape : Tuple[int, int]
        (rows, cols)
    nnz : int
        Number of stored entries (triplet entries before compression).
    """

    def __init__(self, rows: int = 0, cols: int = 0):
        if rows < 0 or cols < 0:
            raise ValueError(f"shape must be non-negative, got ({rows}, {cols})")
        self._rows = int(rows)
        self._cols = int(cols)
        self._storage: Storage = TripletStorage()

    @classmethod
    def _from_csc_buffers(cls, val: torch.Tensor, row: torch.Tensor, colptr: torch.Tensor,
                          shape: Tuple[int, int]) -> "SparseMatrix":
        """Wrap freshly built buffers without copying them."""
        A = cls(*shape)
        A._storage = CompressedStorage(val, row, colptr)
        return A

    # =========================================================================
    # Class Methods
    # =========================================================================

    @classmethod
    def from_dense(cls, source: DenseSource) -> "SparseMatrix":
        """
        Create a column-compressed matrix from any dense source.

        The source is read through ``source.shape`` and ``source[r, c]`` only;
        exact zeros are skipped.

        Examples
        --------
        >>> A = SparseMatrix.from_dense(torch.eye(3, dtype=torch.float64))
        >>> A = SparseMatrix.from_dense(numpy.diag([1.0, 2.0]))
        """
        val, row, colptr, shape = dense2csc(source)
        check_finite(val)
        return cls._from_csc_buffers(val, row, colptr, shape)

    @classmethod
    def from_dict(cls, entries: Dict[Tuple[int, int], float],
                  shape: Optional[Tuple[int, int]] = None) -> "SparseMatrix":
        """
        Create a column-compressed matrix from a ``{(row, col): value}`` mapping.

        Parameters
        ----------
        entries : Dict[Tuple[int, int], float]
            Non-zero entries, must not be empty.
        shape : Tuple[int, int], optional
            Matrix shape, by default the smallest one covering all entries.
        """
        if len(entries) == 0:
            raise ValueError("entries must contain at least one non-zero element")
        A = cls(*(shape or (0, 0)))
        for (r, c), v in entries.items():
            A.insert_entry(r, c, v)
        A.compress_from_triplet()
        return A

    @classmethod
    def from_coo(cls, row, col, val, shape: Optional[Tuple[int, int]] = None) -> "SparseMatrix":
        """
        Create a column-compressed matrix from COO arrays, summing duplicates.

        Parameters
        ----------
        row, col : torch.Tensor or sequence of int
            [nnz] coordinates.
        val : torch.Tensor or sequence of float
            [nnz] values.
        shape : Tuple[int, int], optional
            Matrix shape, by default the smallest one covering all entries.
        """
        row, col, val = as_indices(row), as_indices(col), as_values(val)
        check_finite(val)
        m = int(row.max()) + 1 if row.numel() > 0 else 0
        n = int(col.max()) + 1 if col.numel() > 0 else 0
        if shape is not None:
            if shape[0] < m or shape[1] < n:
                raise ValueError(f"shape {tuple(shape)} does not cover entries up to ({m - 1}, {n - 1})")
            m, n = shape
        val, row, colptr, shape = coo2csc(val, row, col, (m, n))
        return cls._from_csc_buffers(val, row, colptr, shape)

    @classmethod
    def from_csc(cls, colptr, row, val, shape: Tuple[int, int]) -> "SparseMatrix":
        """
        Create a matrix from existing CSC buffers, which are copied.

        ``row`` and ``val`` may be longer than ``colptr[-1]``; the extra room is
        kept as capacity (``nzmax``).
        """
        colptr, row, val = as_indices(colptr), as_indices(row), as_values(val)
        shape = (int(shape[0]), int(shape[1]))
        check_csc(val, row, colptr, shape)
        check_finite(val[:int(colptr[-1])])
        with allocation_guard("compressed buffers"):
            return cls._from_csc_buffers(val.clone(), row.clone(), colptr.clone(), shape)

    # =========================================================================
    # Properties
    # =========================================================================

    @property
    def rows(self) -> int:
        return self._rows

    @property
    def cols(self) -> int:
        return self._cols

    @property
    def shape(self) -> Tuple[int, int]:
        return (self._rows, self._cols)

    @property
    def is_triplet(self) -> bool:
        return isinstance(self._storage, TripletStorage)

    @property
    def is_compressed(self) -> bool:
        return isinstance(self._storage, CompressedStorage)

    @property
    def nnz(self) -> int:
        """Stored entries: triplet entries (duplicates counted) or used CSC slots."""
        if self.is_triplet:
            return len(self._storage)
        return self._storage.nnz

    @property
    def nzmax(self) -> int:
        """Capacity of the storage."""
        if self.is_triplet:
            return len(self._storage)
        return self._storage.nzmax

    def set_row_count(self, rows: int):
        """Enlarge the number of rows. Shrinking is not allowed."""
        if rows < self._rows:
            raise ValueError(f"cannot shrink rows from {self._rows} to {rows}")
        self._rows = int(rows)

    def set_col_count(self, cols: int):
        """Enlarge the number of columns, appending empty columns if compressed."""
        if cols < self._cols:
            raise ValueError(f"cannot shrink cols from {self._cols} to {cols}")
        if self.is_compressed and cols > self._cols:
            S = self._storage
            with allocation_guard("column pointers"):
                tail = S.colptr[-1:].expand(cols - self._cols)
                S.colptr = torch.cat([S.colptr, tail])
        self._cols = int(cols)

    # =========================================================================
    # Triplet form
    # =========================================================================

    def insert_entry(self, row: int, col: int, val: float):
        """
        Append the entry ``(row, col) = val``; only for matrices in triplet form.

        The shape grows to at least ``(row + 1, col + 1)``. Entries at the same
        coordinates are summed by :meth:`compress_from_triplet`.
        """
        check_triplet("insert_entry()", self)
        check_index(row, col)
        val = float(val)
        if not math.isfinite(val):
            raise ValueError(f"sparse matrix values must be finite, got {val}")
        S = self._storage
        S.row.append(int(row))
        S.col.append(int(col))
        S.val.append(val)
        self._rows = max(self._rows, row + 1)
        self._cols = max(self._cols, col + 1)

    def insert_submatrix(self, row: int, col: int, block: DenseSource):
        """
        Insert every element of a dense ``block`` with its top-left corner at
        ``(row, col)``; only for matrices in triplet form.

        All elements are inserted, zeros included. The shape grows to cover the
        block footprint.
        """
        check_triplet("insert_submatrix()", self)
        check_index(row, col)
        nR, nC = int(block.shape[0]), int(block.shape[1])
        for r in range(nR):
            for c in range(nC):
                self.insert_entry(row + r, col + c, float(block[r, c]))
        self._rows = max(self._rows, row + nR)
        self._cols = max(self._cols, col + nC)

    def compress_from_triplet(self):
        """
        Convert the matrix to column-compressed form.

        Duplicated coordinates are summed; the triplet entries are discarded.
        Raises :class:`InvalidStateError` if the matrix is already compressed.
        """
        check_triplet("compress_from_triplet()", self)
        val, row, col = self._storage.tensors()
        val, row, colptr, _ = coo2csc(val, row, col, self.shape)
        self._storage = CompressedStorage(val, row, colptr)

    # =========================================================================
    # Conversion
    # =========================================================================

    def csc(self) -> CSC:
        """``(val, row, colptr, shape)`` trimmed to the used entries."""
        check_compressed("matrix", self)
        S = self._storage
        nnz = S.nnz
        return S.val[:nnz], S.row[:nnz], S.colptr, self.shape

    def coo(self) -> Tuple[torch.Tensor, torch.Tensor, torch.Tensor]:
        """``(val, row, col)`` of the stored entries, in either form."""
        if self.is_triplet:
            return self._storage.tensors()
        val, row, col, _ = csc2coo(*self.csc())
        return val, row, col

    def to_dense(self) -> torch.Tensor:
        """Dense [rows, cols] float64 tensor; duplicated triplets are summed."""
        if self.is_triplet:
            val, row, col = self._storage.tensors()
            return coo2dense(val, row, col, self.shape)
        return csc2dense(*self.csc())

    def to_torch_sparse(self) -> torch.Tensor:
        """Coalesced ``torch.sparse_coo_tensor`` with the same entries."""
        val, row, col = self.coo()
        return torch.sparse_coo_tensor(torch.stack([row, col]), val, self.shape).coalesce()

    # =========================================================================
    # Arithmetic
    # =========================================================================

    def add(self, other: "SparseMatrix") -> "SparseMatrix":
        return add(self, other)

    def multiply(self, other: "SparseMatrix") -> "SparseMatrix":
        return multiply(self, other)

    def multiply_vector(self, b) -> torch.Tensor:
        return multiply_vector(self, b)

    def transpose(self) -> "SparseMatrix":
        return transpose(self)

    @property
    def T(self) -> "SparseMatrix":
        return transpose(self)

    def __add__(self, other: "SparseMatrix") -> "SparseMatrix":
        if not isinstance(other, SparseMatrix):
            return NotImplemented
        return add(self, other)

    def __matmul__(self, other):
        """
        Matrix multiplication: ``A @ B`` for a SparseMatrix ``B`` gives a
        SparseMatrix, ``A @ b`` for a dense vector (or [N, K] block) gives a dense
        tensor.
        """
        if isinstance(other, SparseMatrix):
            return multiply(self, other)
        return multiply_vector(self, other)

    __mul__ = __matmul__

    # in-place variants compute into a new storage and swap it in, so `A += A`
    # and `A @= A` never read buffers that are being written
    def _assign(self, result: "SparseMatrix") -> "SparseMatrix":
        self._storage = result._storage
        self._rows, self._cols = result.shape
        return self

    def __iadd__(self, other: "SparseMatrix") -> "SparseMatrix":
        if not isinstance(other, SparseMatrix):
            return NotImplemented
        return self._assign(add(self, other))

    def __imatmul__(self, other: "SparseMatrix") -> "SparseMatrix":
        if not isinstance(other, SparseMatrix):
            return NotImplemented
        return self._assign(multiply(self, other))

    __imul__ = __imatmul__

    # =========================================================================
    # Cholesky
    # =========================================================================

    def cholesky(self, ordering: OrderingType = DEFAULT_ORDERING):
        """
        Sparse Cholesky factorization of this (symmetric positive definite)
        matrix. See :class:`~torch_csc.cholesky.CholeskyFactorization`.
        """
        from .cholesky import CholeskyFactorization
        return CholeskyFactorization(self, ordering=ordering)

    # =========================================================================
    # Copy / reset
    # =========================================================================

    def copy(self) -> "SparseMatrix":
        """Deep copy, buffers are duplicated."""
        A = SparseMatrix(*self.shape)
        A._storage = self._storage.copy()
        return A

    def __copy__(self) -> "SparseMatrix":
        return self.copy()

    def __deepcopy__(self, memo) -> "SparseMatrix":
        return self.copy()

    def clear(self):
        """Erase all contents and leave an empty 1x1 matrix in triplet form."""
        self._storage = TripletStorage()
        self._rows = 1
        self._cols = 1

    def __repr__(self) -> str:
        fmt = "triplet" if self.is_triplet else "csc"
        return f"SparseMatrix(shape={self.shape}, nnz={self.nnz}, format={fmt})"


# =============================================================================
# Functional API
# =============================================================================

def _check_operands(A: SparseMatrix, B: SparseMatrix):
    check_compressed("A", A)
    check_compressed("B", B)


def add(A: SparseMatrix, B: SparseMatrix) -> SparseMatrix:
    """
    C = A + B for two column-compressed matrices of the same shape.

    Explicit zeros produced by cancellation are kept in the result.
    """
    _check_operands(A, B)
    return SparseMatrix._from_csc_buffers(*csc_add(A.csc(), B.csc()))


def multiply(A: SparseMatrix, B: SparseMatrix) -> SparseMatrix:
    """C = A @ B; requires ``A.cols == B.rows``."""
    _check_operands(A, B)
    return SparseMatrix._from_csc_buffers(*csc_multiply(A.csc(), B.csc()))


def multiply_vector(A: SparseMatrix, b: Union[torch.Tensor, Sequence[float]]) -> torch.Tensor:
    """x = A @ b for a dense ``b`` of length ``A.cols``; returns a float64 tensor."""
    check_compressed("A", A)
    return csc_matvec(A.csc(), as_values(b))


def transpose(A: SparseMatrix) -> SparseMatrix:
    """A^T as a new column-compressed matrix."""
    check_compressed("A", A)
    return SparseMatrix._from_csc_buffers(*csc_transpose(*A.csc()))
