"""
Tests for fill-reducing orderings and the symbolic analysis.
"""

import os
import sys
import pytest
import torch
from itertools import product

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from torch_csc import SparseMatrix, CholeskyFactorization
from torch_csc import random as csc_random
from torch_csc.cholesky import SymbolicAnalysis, etree, ereach
from torch_csc.ordering import (
    ORDERING_METHODS,
    dense_threshold,
    invert_permutation,
    minimum_degree,
    order,
    symmetric_permute_upper,
)


def arrow(n: int) -> SparseMatrix:
    """Node 0 is coupled to every other node."""
    A = SparseMatrix(n, n)
    for i in range(n):
        A.insert_entry(i, i, float(n))
    for i in range(1, n):
        A.insert_entry(0, i, 1.0)
        A.insert_entry(i, 0, 1.0)
    A.compress_from_triplet()
    return A


def tridiagonal(n: int) -> SparseMatrix:
    A = SparseMatrix(n, n)
    for i in range(n):
        A.insert_entry(i, i, 4.0)
        if i > 0:
            A.insert_entry(i, i - 1, -1.0)
            A.insert_entry(i - 1, i, -1.0)
    A.compress_from_triplet()
    return A


# ============================================================================
# Orderings
# ============================================================================

@pytest.mark.parametrize(['n', 'method'], product([1, 2, 17, 100], ORDERING_METHODS))
def test_order_is_permutation(n, method):
    A = csc_random.spd(n, 0.05, generator=torch.Generator().manual_seed(n))
    _, row, col = A.coo()
    perm = order(method, row, col, n)
    assert perm.dtype == torch.int64
    assert sorted(perm.tolist()) == list(range(n))


def test_natural_is_identity():
    _, row, col = tridiagonal(6).coo()
    assert order('natural', row, col, 6).tolist() == list(range(6))


def test_unknown_method():
    with pytest.raises(ValueError):
        order('colamd', torch.zeros(0, dtype=torch.int64), torch.zeros(0, dtype=torch.int64), 3)


def test_dense_threshold():
    assert dense_threshold(10) == 8
    assert dense_threshold(100) == 98
    assert dense_threshold(10000) == 1000
    assert dense_threshold(2) == 0


def test_minimum_degree_defers_dense_node():
    _, row, col = arrow(10).coo()
    assert minimum_degree(row, col, 10) == [1, 2, 3, 4, 5, 6, 7, 8, 9, 0]


def test_minimum_degree_ties_smallest_index():
    # a path 0-1-2-3: the end points have degree 1, the smaller one goes first
    _, row, col = tridiagonal(4).coo()
    perm = minimum_degree(row, col, 4)
    assert perm[0] == 0
    assert sorted(perm) == [0, 1, 2, 3]


def test_arrow_fill():
    A = arrow(10)
    assert CholeskyFactorization(A, 'amd').lnz == 19
    assert CholeskyFactorization(A, 'natural').lnz == 55


def test_amd_reduces_fill():
    A = csc_random.spd(120, 0.02, generator=torch.Generator().manual_seed(0))
    assert A.cholesky('amd').lnz <= A.cholesky('natural').lnz


def test_invert_permutation():
    perm = torch.tensor([2, 0, 3, 1])
    pinv = invert_permutation(perm)
    assert pinv.tolist() == [1, 3, 0, 2]
    assert pinv[perm].tolist() == [0, 1, 2, 3]


def test_symmetric_permute_upper():
    A = SparseMatrix.from_dense(torch.tensor([[1.0, 2.0, 0.0],
                                              [2.0, 3.0, 4.0],
                                              [0.0, 4.0, 5.0]], dtype=torch.float64))
    perm = torch.tensor([2, 0, 1])
    C = symmetric_permute_upper(*A.csc(), invert_permutation(perm))
    C_dense = SparseMatrix.from_csc(C[2], C[1], C[0], C[3]).to_dense()
    P_A = A.to_dense()[perm][:, perm]
    torch.testing.assert_close(C_dense, torch.triu(P_A))


# ============================================================================
# Elimination tree
# ============================================================================

def test_etree_tridiagonal():
    n = 6
    S = SymbolicAnalysis(tridiagonal(n), 'natural')
    assert S.parent == [1, 2, 3, 4, 5, -1]
    assert S.cp == [0, 2, 4, 6, 8, 10, 11]


def test_etree_diagonal():
    Cp = [0, 1, 2, 3]
    Ci = [0, 1, 2]
    assert etree(Cp, Ci, 3) == [-1, -1, -1]


def test_etree_arrow_natural():
    # the hub comes first, every later column depends on the previous one
    S = SymbolicAnalysis(arrow(5), 'natural')
    assert S.parent == [1, 2, 3, 4, -1]


def test_ereach():
    # upper triangle of a 3x3 matrix with entries (0, 2) and (1, 2)
    Cp = [0, 1, 2, 5]
    Ci = [0, 1, 0, 1, 2]
    parent = etree(Cp, Ci, 3)
    assert parent == [2, 2, -1]
    s = [0] * 3
    mark = [-1] * 3
    top = ereach(Cp, Ci, 2, parent, s, mark)
    assert sorted(s[top:]) == [0, 1]
    assert ereach(Cp, Ci, 0, parent, s, mark) == 3
