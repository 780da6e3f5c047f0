#!/usr/bin/env python
"""
Basic Usage Examples for torch-csc

This example demonstrates:
1. Building a matrix from triplets and compressing it
2. Sparse arithmetic (add, multiply, transpose, matrix-vector)
3. Sparse Cholesky: solve, refactorize with update(), failure handling
4. Dense text dump
"""

import tempfile
import os
import torch
from torch_csc import (
    SparseMatrix,
    CholeskyFactorization,
    NotPositiveDefiniteError,
    save_dense_txt,
)


# =============================================================================
# 1. Creation
# =============================================================================

def example_1_triplets():
    """Insert unordered triplets, duplicates are summed on compression."""
    A = SparseMatrix()
    A.insert_entry(0, 0, 4.0)
    A.insert_entry(0, 1, 2.0)
    A.insert_entry(1, 0, 2.0)
    A.insert_entry(1, 1, 1.0)
    A.insert_entry(1, 1, 2.0)  # summed with the previous entry
    print(f"Triplet form: {A}")

    A.compress_from_triplet()
    print(f"Compressed:   {A}")
    print(f"Dense form:\n{A.to_dense()}")
    return A


def example_2_poisson(n: int = 20):
    """2D Poisson matrix (5-point stencil) built from COO arrays."""
    N = n * n
    idx = torch.arange(N)
    i, j = idx // n, idx % n

    left_mask = j > 0
    right_mask = j < n - 1
    up_mask = i > 0
    down_mask = i < n - 1

    row = torch.cat([idx, idx[left_mask], idx[right_mask], idx[up_mask], idx[down_mask]])
    col = torch.cat([idx, idx[left_mask] - 1, idx[right_mask] + 1, idx[up_mask] - n, idx[down_mask] + n])
    val = torch.cat([
        torch.full((N,), 4.0, dtype=torch.float64),
        torch.full((int(row.shape[0]) - N,), -1.0, dtype=torch.float64),
    ])

    A = SparseMatrix.from_coo(row, col, val, (N, N))
    print(f"Poisson matrix: {A}, sparsity {1 - A.nnz / (N * N):.1%}")
    return A


# =============================================================================
# 2. Arithmetic
# =============================================================================

def example_3_arithmetic(A: SparseMatrix):
    B = A @ A
    C = A + A.T
    x = torch.ones(A.cols, dtype=torch.float64)
    print(f"A @ A: {B}")
    print(f"A + A^T: {C}")
    print(f"A @ 1 = {A @ x}")


# =============================================================================
# 3. Cholesky
# =============================================================================

def example_4_cholesky(A: SparseMatrix):
    """Factorize once, solve, then refactorize new values with update()."""
    b = torch.randn(A.rows, dtype=torch.float64)

    for ordering in ['natural', 'amd']:
        with CholeskyFactorization(A, ordering=ordering) as chol:
            x = chol.backsub(b)
            print(f"{ordering:>8}: nnz(L) = {chol.lnz}, residual = {(A @ x - b).norm():.2e}")

    chol = A.cholesky()
    val, row, colptr, shape = A.csc()
    A2 = SparseMatrix.from_csc(colptr, row, 2.0 * val, shape)
    chol.update(A2)
    x2 = chol.backsub(b)
    print(f"after update: residual = {(A2 @ x2 - b).norm():.2e}")


def example_5_not_positive_definite():
    A = SparseMatrix.from_dense(torch.tensor([[1.0, 2.0], [2.0, 1.0]], dtype=torch.float64))
    try:
        CholeskyFactorization(A)
    except NotPositiveDefiniteError as e:
        print(f"Expected failure: {e}")


# =============================================================================
# 4. I/O
# =============================================================================

def example_6_dump(A: SparseMatrix):
    with tempfile.TemporaryDirectory() as tmp:
        path = os.path.join(tmp, "A.txt")
        save_dense_txt(A, path, fmt="%g")
        with open(path) as f:
            print(f.read())


if __name__ == "__main__":
    A = example_1_triplets()
    P = example_2_poisson()
    example_3_arithmetic(A)
    example_4_cholesky(A)
    example_4_cholesky(P)
    example_5_not_positive_definite()
    example_6_dump(A)
