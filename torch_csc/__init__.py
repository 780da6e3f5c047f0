"""
torch-csc: compressed sparse matrices and sparse Cholesky for PyTorch

Build a sparse matrix from unordered (row, col, value) triplets, compress it
into column-compressed (CSC) form and work on it directly: add, multiply,
transpose, multiply by dense vectors and factorize symmetric positive definite
matrices with a fill-reducing sparse Cholesky factorization.

Features
--------
- Triplet insertion with automatic growth and duplicate summation
- Conversion from any dense source exposing ``shape`` and ``[r, c]`` access
- Sparse-sparse add / multiply, transpose, sparse-dense products
- Sparse Cholesky (minimum degree ordering, elimination tree, up-looking
  numeric factorization) with cheap numeric refactorization via ``update``
- Typed errors for every failure mode

Usage
-----
>>> import torch
>>> from torch_csc import SparseMatrix, CholeskyFactorization
>>>
>>> A = SparseMatrix()
>>> A.insert_entry(0, 0, 4.0)
>>> A.insert_entry(0, 1, 2.0)
>>> A.insert_entry(1, 0, 2.0)
>>> A.insert_entry(1, 1, 3.0)
>>> A.compress_from_triplet()
>>>
>>> chol = CholeskyFactorization(A)
>>> x = chol.backsub(torch.tensor([4.0, 3.0], dtype=torch.float64))  # [0.75, 0.5]
>>> A @ x                                                              # [4.0, 3.0]
"""

from .errors import (
    SparseMatrixError,
    InvalidStateError,
    DimensionMismatchError,
    NotSquareError,
    NotPositiveDefiniteError,
    StructureMismatchError,
    AllocationFailure,
)

from .sparse_matrix import (
    SparseMatrix,
    add,
    multiply,
    multiply_vector,
    transpose,
)

from .convert import DenseSource

from .cholesky import (
    CholeskyFactorization,
    CholeskyState,
)

from .ordering import (
    OrderingType,
    ORDERING_METHODS,
    DEFAULT_ORDERING,
)

from .io import (
    save_dense_txt,
    load_dense_txt,
)

__version__ = "0.1.0"

__all__ = [
    # Errors
    "SparseMatrixError",
    "InvalidStateError",
    "DimensionMismatchError",
    "NotSquareError",
    "NotPositiveDefiniteError",
    "StructureMismatchError",
    "AllocationFailure",
    # SparseMatrix
    "SparseMatrix",
    "DenseSource",
    "add",
    "multiply",
    "multiply_vector",
    "transpose",
    # Cholesky
    "CholeskyFactorization",
    "CholeskyState",
    "OrderingType",
    "ORDERING_METHODS",
    "DEFAULT_ORDERING",
    # I/O
    "save_dense_txt",
    "load_dense_txt",
    # Version
    "__version__",
]
