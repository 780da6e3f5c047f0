import warnings
import torch

from .errors import DimensionMismatchError, InvalidStateError
from .alloc import INDEX_DTYPE, VALUE_DTYPE


def check_index(row:int, col:int):
    """
    Check a (row, col) coordinate used for insertion

    Parameters
    ----------
    row: int
        row index, must be >= 0
    col: int
        column index, must be >= 0
    """
    if row < 0 or col < 0:
        raise ValueError(f"indices must be non-negative, got ({row}, {col})")


def check_coo(val:torch.Tensor,
              row:torch.Tensor,
              col:torch.Tensor,
              ):
    """
    Check the COO (triplet) format

    Parameters
    ----------
    val: torch.Tensor
        [nnz] values of the sparse matrix
    row: torch.Tensor
        [nnz] row indices of the sparse matrix
    col: torch.Tensor
        [nnz] column indices of the sparse matrix
    """
    if not row.ndim == 1:
        raise DimensionMismatchError("row", tuple(row.shape), "[nnz]")
    if not col.ndim == 1:
        raise DimensionMismatchError("col", tuple(col.shape), "[nnz]")
    if not (val.ndim == 1 and val.shape[0] == row.shape[0]):
        raise DimensionMismatchError("val", tuple(val.shape), f"[{row.shape[0]}]")
    if not val.shape[0] == col.shape[0]:
        raise DimensionMismatchError("col", tuple(col.shape), f"[{val.shape[0]}]")
    if row.numel() > 0 and (row.min() < 0 or col.min() < 0):
        raise ValueError("row and col indices must be non-negative")


def check_csc(val:torch.Tensor,
              row:torch.Tensor,
              colptr:torch.Tensor,
              shape:tuple):
    """
    Check the CSC format

    Parameters
    ----------
    val: torch.Tensor
        [nzmax] values of the sparse matrix
    row: torch.Tensor
        [nzmax] row indices of the sparse matrix
    colptr: torch.Tensor
        [n+1] colptr of the sparse matrix
    shape: tuple
        (m,n) shape of the sparse matrix
    """
    m, n = shape
    if m < 0 or n < 0:
        raise DimensionMismatchError("shape", shape, "(m>=0, n>=0)")
    if not (colptr.ndim == 1 and colptr.shape[0] == n+1):
        raise DimensionMismatchError("colptr", tuple(colptr.shape), f"[{n+1}]")
    if not row.ndim == 1:
        raise DimensionMismatchError("row", tuple(row.shape), "[nzmax]")
    if not val.shape == row.shape:
        raise DimensionMismatchError("val", tuple(val.shape), f"[{row.shape[0]}]")
    nnz = int(colptr[-1])
    if int(colptr[0]) != 0 or nnz > row.shape[0]:
        raise ValueError(f"colptr must start at 0 and end at most at {row.shape[0]}, got {nnz}")
    if n > 0 and (colptr[1:] < colptr[:-1]).any():
        raise ValueError("colptr must be non-decreasing")
    if nnz > 0:
        used = row[:nnz]
        if used.min() < 0 or used.max() >= m:
            raise ValueError(f"row indices must lie in [0, {m})")


def check_finite(val:torch.Tensor):
    if val.numel() > 0 and not torch.isfinite(val).all():
        raise ValueError("sparse matrix values must be finite")


def check_compressed(name:str, matrix):
    if not matrix.is_compressed:
        raise InvalidStateError(f"{name} must be in column-compressed form, call compress_from_triplet() first")


def check_triplet(name:str, matrix):
    if not matrix.is_triplet:
        raise InvalidStateError(f"{name} is only available for sparse matrices in triplet form")


def check_same_shape(shape_a:tuple, shape_b:tuple):
    if tuple(shape_a) != tuple(shape_b):
        raise DimensionMismatchError("B", tuple(shape_b), tuple(shape_a))


def check_matmul(shape_a:tuple, shape_b:tuple):
    if shape_a[1] != shape_b[0]:
        raise DimensionMismatchError("B", tuple(shape_b), f"({shape_a[1]}, k)")


def check_vector(b:torch.Tensor, n:int, name:str="b"):
    if not (b.ndim in (1, 2) and b.shape[0] == n):
        raise DimensionMismatchError(name, tuple(b.shape), f"[{n}] or [{n}, k]")


def as_values(x) -> torch.Tensor:
    """Convert ``x`` to a float64 tensor, warning when precision is widened."""
    if isinstance(x, torch.Tensor):
        if x.dtype != VALUE_DTYPE:
            if x.is_floating_point():
                warnings.warn(f"converting {x.dtype} values to float64, you'd better use float64 to maintain good precision")
            x = x.to(VALUE_DTYPE)
        return x
    return torch.as_tensor(x, dtype=VALUE_DTYPE)


def as_indices(x) -> torch.Tensor:
    if isinstance(x, torch.Tensor):
        if x.is_floating_point():
            raise TypeError(f"indices must be integers, got {x.dtype}")
        return x.to(INDEX_DTYPE)
    return torch.as_tensor(x, dtype=INDEX_DTYPE)
