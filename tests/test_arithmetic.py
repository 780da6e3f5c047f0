"""
Tests for sparse arithmetic on column-compressed matrices.

Tests cover:
- Addition (pattern union, explicit zeros, shape checks)
- Sparse-sparse multiplication against dense and scipy references
- Sparse-dense products with vectors and blocks
- Transpose
- In-place operators where both operands are the same matrix
- Representation checks on the operands
"""

import os
import sys
import warnings
import numpy as np
import pytest
import torch
from itertools import product
from scipy.sparse import csc_matrix

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from torch_csc import (
    SparseMatrix,
    DimensionMismatchError,
    InvalidStateError,
    add,
    multiply,
    multiply_vector,
    transpose,
)
from torch_csc import random as csc_random
from torch_csc.compare import csc_allclose, csc_same_pattern


def random_matrix(m: int, n: int, density: float = 0.3, seed: int = 0) -> SparseMatrix:
    g = torch.Generator().manual_seed(seed)
    return csc_random.coo((m, n), density, generator=g)


def to_scipy(A: SparseMatrix) -> csc_matrix:
    val, row, colptr, shape = A.csc()
    return csc_matrix((val.numpy(), row.numpy(), colptr.numpy()), shape=shape)


# ============================================================================
# Addition
# ============================================================================

class TestAdd:

    @pytest.mark.parametrize(['m', 'n'], product([1, 6, 25], [1, 9, 25]))
    def test_add_dense(self, m, n):
        A = random_matrix(m, n, seed=1)
        B = random_matrix(m, n, seed=2)
        C = A + B
        assert C.is_compressed
        torch.testing.assert_close(C.to_dense(), A.to_dense() + B.to_dense())

    def test_add_commutative(self):
        A = random_matrix(12, 8, seed=3)
        B = random_matrix(12, 8, seed=4)
        assert csc_allclose(*(A + B).csc(), *(B + A).csc())

    def test_add_pattern_union(self):
        A = SparseMatrix.from_dict({(0, 0): 1.0, (1, 2): 2.0}, shape=(3, 3))
        B = SparseMatrix.from_dict({(0, 0): -1.0, (2, 1): 5.0}, shape=(3, 3))
        C = add(A, B)
        # (0, 0) cancels to an explicit zero that stays stored
        assert C.nnz == 3
        val, row, colptr, _ = C.csc()
        assert colptr.tolist() == [0, 1, 2, 3]
        assert row.tolist() == [0, 2, 1]
        assert val.tolist() == [0.0, 5.0, 2.0]

    def test_add_shape_mismatch(self):
        A = random_matrix(3, 3)
        B = random_matrix(3, 4)
        with pytest.raises(DimensionMismatchError):
            A + B

    def test_add_method(self):
        A = random_matrix(5, 5, seed=5)
        torch.testing.assert_close(A.add(A).to_dense(), 2 * A.to_dense())

    def test_add_not_matrix(self):
        A = random_matrix(2, 2)
        with pytest.raises(TypeError):
            A + 1.0


# ============================================================================
# Multiplication
# ============================================================================

class TestMultiply:

    @pytest.mark.parametrize(['m', 'k', 'n'], product([1, 7, 20], [1, 5, 20], [1, 8]))
    def test_multiply_dense(self, m, k, n):
        A = random_matrix(m, k, seed=6)
        B = random_matrix(k, n, seed=7)
        C = A @ B
        assert C.shape == (m, n)
        torch.testing.assert_close(C.to_dense(), A.to_dense() @ B.to_dense())

    def test_multiply_scipy(self):
        A = random_matrix(30, 40, density=0.1, seed=8)
        B = random_matrix(40, 25, density=0.1, seed=9)
        C = multiply(A, B)
        expected = (to_scipy(A) @ to_scipy(B)).toarray()
        np.testing.assert_allclose(C.to_dense().numpy(), expected, rtol=1e-12, atol=1e-12)

    def test_multiply_identity(self):
        A = random_matrix(6, 6, seed=10)
        I = SparseMatrix.from_dense(torch.eye(6, dtype=torch.float64))
        torch.testing.assert_close((A @ I).to_dense(), A.to_dense())
        torch.testing.assert_close((I @ A).to_dense(), A.to_dense())

    def test_multiply_rows_sorted(self):
        A = random_matrix(15, 15, density=0.4, seed=11)
        _, row, colptr, _ = (A @ A).csc()
        for j in range(15):
            col_rows = row[colptr[j]:colptr[j + 1]]
            assert (col_rows[1:] > col_rows[:-1]).all()

    def test_multiply_empty(self):
        A = SparseMatrix.from_dense(torch.zeros(3, 4))
        B = random_matrix(4, 2)
        C = A @ B
        assert C.shape == (3, 2)
        assert C.nnz == 0

    def test_multiply_dimension_mismatch(self):
        A = random_matrix(2, 3)
        B = random_matrix(4, 2)
        with pytest.raises(DimensionMismatchError):
            A @ B

    def test_mul_operator(self):
        A = random_matrix(4, 4, seed=12)
        torch.testing.assert_close((A * A).to_dense(), (A @ A).to_dense())


# ============================================================================
# Sparse-dense products
# ============================================================================

class TestMultiplyVector:

    @pytest.mark.parametrize(['m', 'n'], product([1, 10, 50], [1, 10, 50]))
    def test_matvec(self, m, n):
        A = random_matrix(m, n, seed=13)
        b = torch.randn(n, dtype=torch.float64)
        y = A @ b
        assert y.shape == (m,)
        torch.testing.assert_close(y, A.to_dense() @ b)

    def test_matvec_block(self):
        A = random_matrix(8, 6, seed=14)
        B = torch.randn(6, 3, dtype=torch.float64)
        torch.testing.assert_close(multiply_vector(A, B), A.to_dense() @ B)

    def test_matvec_list(self):
        A = SparseMatrix.from_dense(torch.tensor([[4.0, 2.0], [2.0, 3.0]], dtype=torch.float64))
        torch.testing.assert_close(A.multiply_vector([0.75, 0.5]),
                                   torch.tensor([4.0, 3.0], dtype=torch.float64))

    def test_matvec_length_mismatch(self):
        A = random_matrix(4, 5)
        with pytest.raises(DimensionMismatchError):
            A @ torch.ones(4, dtype=torch.float64)

    def test_matvec_float32_warns(self):
        A = random_matrix(4, 4, seed=15)
        with pytest.warns(UserWarning):
            y = A @ torch.ones(4, dtype=torch.float32)
        assert y.dtype == torch.float64

    def test_matvec_float64_silent(self):
        A = random_matrix(4, 4, seed=15)
        with warnings.catch_warnings():
            warnings.simplefilter("error")
            A @ torch.ones(4, dtype=torch.float64)


# ============================================================================
# Transpose
# ============================================================================

class TestTranspose:

    @pytest.mark.parametrize(['m', 'n'], product([1, 7, 30], [1, 4, 30]))
    def test_transpose(self, m, n):
        A = random_matrix(m, n, seed=16)
        At = transpose(A)
        assert At.shape == (n, m)
        assert At.nnz == A.nnz
        torch.testing.assert_close(At.to_dense(), A.to_dense().T)

    def test_transpose_twice(self):
        A = random_matrix(9, 5, seed=17)
        assert csc_allclose(*A.T.T.csc(), *A.csc())

    def test_transpose_symmetric_pattern(self):
        A = random_matrix(10, 10, seed=18)
        S = A + A.T
        _, row, colptr, shape = S.csc()
        _, t_row, t_colptr, t_shape = S.T.csc()
        assert csc_same_pattern(row, colptr, shape, t_row, t_colptr, t_shape)


# ============================================================================
# In-place operators and representation checks
# ============================================================================

class TestInPlace:

    def test_iadd_self(self):
        A = random_matrix(6, 6, seed=19)
        before = A.to_dense()
        A += A
        torch.testing.assert_close(A.to_dense(), 2 * before)

    def test_imatmul_self(self):
        A = random_matrix(6, 6, seed=20)
        before = A.to_dense()
        A @= A
        torch.testing.assert_close(A.to_dense(), before @ before)

    def test_imul_changes_shape(self):
        A = random_matrix(3, 5, seed=21)
        B = random_matrix(5, 2, seed=22)
        expected = A.to_dense() @ B.to_dense()
        A *= B
        assert A.shape == (3, 2)
        torch.testing.assert_close(A.to_dense(), expected)

    def test_iadd_keeps_other(self):
        A = random_matrix(4, 4, seed=23)
        B = random_matrix(4, 4, seed=24)
        before = B.to_dense()
        A += B
        torch.testing.assert_close(B.to_dense(), before)


class TestRepresentation:

    @pytest.mark.parametrize('op', [add, multiply])
    def test_triplet_operand(self, op):
        A = random_matrix(3, 3)
        T = SparseMatrix(3, 3)
        T.insert_entry(0, 0, 1.0)
        with pytest.raises(InvalidStateError):
            op(A, T)
        with pytest.raises(InvalidStateError):
            op(T, A)

    def test_triplet_vector(self):
        T = SparseMatrix(3, 3)
        with pytest.raises(InvalidStateError):
            T @ torch.ones(3, dtype=torch.float64)

    def test_triplet_transpose(self):
        T = SparseMatrix(3, 3)
        with pytest.raises(InvalidStateError):
            T.T
