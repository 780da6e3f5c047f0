"""
Arithmetic on column-compressed (CSC) buffers.

Every function takes matrices as ``(val, row, colptr, shape)`` tuples, the same
layout :mod:`torch_csc.convert` produces, and always returns freshly allocated
buffers: inputs are never written, so ``A`` may be passed as both operands.
"""

import torch
from typing import Tuple

from .alloc import allocation_guard, value_buffer
from .check import check_same_shape, check_matmul, check_vector
from .convert import coo2csc, csc2coo

CSC = Tuple[torch.Tensor, torch.Tensor, torch.Tensor, Tuple[int, int]]


def csc_add(A: CSC, B: CSC) -> CSC:
    """
    C = A + B.

    The pattern of C is the union of the patterns of A and B with the values of
    shared coordinates summed. Entries cancelling to zero stay stored.

    Parameters
    ----------
    A, B : CSC
        Operands with identical shapes.

    Returns
    -------
    CSC
        The sum, rows sorted within each column.
    """
    check_same_shape(A[3], B[3])
    val_a, row_a, col_a, shape = csc2coo(*A)
    val_b, row_b, col_b, _ = csc2coo(*B)
    with allocation_guard("sum buffers"):
        val = torch.cat([val_a, val_b])
        row = torch.cat([row_a, row_b])
        col = torch.cat([col_a, col_b])
    return coo2csc(val, row, col, shape)


def csc_multiply(A: CSC, B: CSC) -> CSC:
    """
    C = A @ B, computed column by column.

    Column j of C gathers ``B[k, j] * A[:, k]`` for every stored ``B[k, j]``;
    contributions landing on the same row are summed.

    Parameters
    ----------
    A : CSC
        [M, K] left operand.
    B : CSC
        [K, N] right operand.

    Returns
    -------
    CSC
        [M, N] product.
    """
    check_matmul(A[3], B[3])
    M, _ = A[3]
    _, N = B[3]
    val_a, row_a, colptr_a = A[0], A[1], A[2]
    val_b, row_b, col_b, _ = csc2coo(*B)

    with allocation_guard("product buffers"):
        # one product term per (stored A[i, k], stored B[k, j]) pair
        counts = (colptr_a[1:] - colptr_a[:-1])[row_b]
        total = int(counts.sum()) if counts.numel() > 0 else 0
        b_idx = torch.repeat_interleave(torch.arange(row_b.shape[0], device=row_b.device), counts)
        starts = torch.repeat_interleave(torch.cumsum(counts, 0) - counts, counts)
        offsets = torch.arange(total, device=row_b.device) - starts
        a_pos = colptr_a[row_b][b_idx] + offsets

        row = row_a[a_pos]
        col = col_b[b_idx]
        val = val_a[a_pos] * val_b[b_idx]

    return coo2csc(val, row, col, (M, N))


def csc_matvec(A: CSC, b: torch.Tensor) -> torch.Tensor:
    """
    x = A @ b for a dense vector ``b`` of shape [N] (or a block [N, K]).

    Returns a dense tensor of shape [M] (or [M, K]).
    """
    M, N = A[3]
    check_vector(b, N)
    val, row, col, _ = csc2coo(*A)

    if b.dim() == 1:
        products = val * b[col]
        result = value_buffer(M, device=val.device)
        result.scatter_add_(0, row, products)
        return result
    else:
        K = b.size(1)
        products = val.unsqueeze(1) * b[col]
        with allocation_guard(f"{M}x{K} result"):
            result = torch.zeros(M, K, dtype=val.dtype, device=val.device)
        row_expanded = row.unsqueeze(1).expand(-1, K)
        result.scatter_add_(0, row_expanded, products)
        return result
