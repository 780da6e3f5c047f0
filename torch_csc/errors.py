"""
Exception types raised by torch-csc.

All errors derive from :class:`SparseMatrixError` so callers can catch the whole
family at once. Shape related errors are also ``ValueError`` and allocation
failures are also ``MemoryError``, so generic handlers keep working.
"""


class SparseMatrixError(Exception):
    """Base class of every error raised by torch-csc."""


class InvalidStateError(SparseMatrixError):
    """Operation attempted on a matrix in the wrong representation
    (triplet-only operation on a compressed matrix or vice versa)."""


class DimensionMismatchError(SparseMatrixError, ValueError):
    def __init__(self, name, shape, expected_shape):
        self.name = name
        self.shape = shape
        self.expected_shape = expected_shape
        super().__init__(f"{name} has shape {shape} expected {expected_shape}")


class NotSquareError(DimensionMismatchError):
    def __init__(self, name, shape):
        super().__init__(name, shape, "(n, n)")


class NotPositiveDefiniteError(SparseMatrixError):
    """Raised when a Cholesky pivot is not strictly positive."""

    def __init__(self, column: int, pivot: float):
        self.column = column
        self.pivot = pivot
        super().__init__(
            f"matrix is not positive definite: pivot {pivot!r} at column {column}"
        )


class StructureMismatchError(SparseMatrixError):
    """Raised by ``CholeskyFactorization.update`` when the new matrix does not
    share the sparsity structure of the factorized one."""


class AllocationFailure(SparseMatrixError, MemoryError):
    """A buffer could not be allocated. Not recoverable, never retried."""
