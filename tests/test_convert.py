import os
import sys
import numpy as np
import pytest
import torch
from itertools import product

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from torch_csc import AllocationFailure, DimensionMismatchError
from torch_csc.alloc import allocation_guard
from torch_csc.convert import coo2csc, csc2coo, csc2dense, csc_transpose, dense2csc
from torch_csc.compare import csc_allclose, csc_same_pattern


def random_coo(m, n, nnz, seed=0):
    g = torch.Generator().manual_seed(seed)
    row = torch.randint(0, m, (nnz,), generator=g)
    col = torch.randint(0, n, (nnz,), generator=g)
    val = torch.randn(nnz, generator=g, dtype=torch.float64)
    return val, row, col


@pytest.mark.parametrize(['m', 'n', 'nnz'], product([1, 16, 128], [1, 16, 128], [1, 100, 1000]))
def test_coo2csc(m, n, nnz):
    val, row, col = random_coo(m, n, nnz, seed=m + n + nnz)
    dense = torch.zeros(m, n, dtype=torch.float64)
    dense.index_put_((row, col), val, accumulate=True)

    c_val, c_row, colptr, shape = coo2csc(val, row, col, (m, n))
    assert shape == (m, n)
    assert colptr.shape == (n + 1,)
    torch.testing.assert_close(csc2dense(c_val, c_row, colptr, shape), dense)


def test_coo2csc_keeps_explicit_zero():
    val = torch.tensor([1.0, -1.0, 2.0], dtype=torch.float64)
    row = torch.tensor([0, 0, 1])
    col = torch.tensor([0, 0, 1])
    c_val, c_row, colptr, _ = coo2csc(val, row, col, (2, 2))
    assert c_val.tolist() == [0.0, 2.0]
    assert c_row.tolist() == [0, 1]
    assert colptr.tolist() == [0, 1, 2]


def test_coo2csc_invalid():
    with pytest.raises(DimensionMismatchError):
        coo2csc(torch.ones(2, dtype=torch.float64), torch.tensor([0]), torch.tensor([0]), (1, 1))
    with pytest.raises(ValueError):
        coo2csc(torch.ones(1, dtype=torch.float64), torch.tensor([-1]), torch.tensor([0]), (1, 1))


def test_csc2coo_trims_capacity():
    val = torch.tensor([1.0, 2.0, 7.0], dtype=torch.float64)
    row = torch.tensor([1, 0, 0])
    colptr = torch.tensor([0, 1, 2])
    c_val, c_row, c_col, _ = csc2coo(val, row, colptr, (2, 2))
    assert c_val.tolist() == [1.0, 2.0]
    assert c_row.tolist() == [1, 0]
    assert c_col.tolist() == [0, 1]


@pytest.mark.parametrize(['m', 'n'], product([1, 9, 40], [1, 9, 40]))
def test_csc_transpose(m, n):
    val, row, col = random_coo(m, n, 3 * max(m, n), seed=m * n)
    A = coo2csc(val, row, col, (m, n))
    At = csc_transpose(*A)
    assert At[3] == (n, m)
    torch.testing.assert_close(csc2dense(*At), csc2dense(*A).T)


def test_dense2csc_numpy():
    dense = np.array([[0.0, 3.0], [1.0, 0.0], [0.0, 2.0]])
    val, row, colptr, shape = dense2csc(dense)
    assert shape == (3, 2)
    assert val.tolist() == [1.0, 3.0, 2.0]
    assert row.tolist() == [1, 0, 2]
    assert colptr.tolist() == [0, 1, 3]


def test_same_pattern_ignores_order_in_column():
    colptr = torch.tensor([0, 2])
    assert csc_same_pattern(torch.tensor([0, 1]), colptr, (2, 1),
                            torch.tensor([1, 0]), colptr, (2, 1))
    assert not csc_same_pattern(torch.tensor([0, 1]), colptr, (3, 1),
                                torch.tensor([0, 2]), colptr, (3, 1))


def test_allclose():
    A = coo2csc(*random_coo(10, 10, 30), (10, 10))
    B = (A[0] * (1 + 1e-14), A[1], A[2], A[3])
    assert csc_allclose(*A, *B)
    C = (A[0] + 1.0, A[1], A[2], A[3])
    assert not csc_allclose(*A, *C)


# ============================================================================
# Allocation failures
# ============================================================================

def test_allocation_guard_memory_error():
    with pytest.raises(AllocationFailure) as info:
        with allocation_guard("test buffer"):
            raise MemoryError()
    assert isinstance(info.value, MemoryError)
    assert "test buffer" in str(info.value)


def test_allocation_guard_out_of_memory():
    with pytest.raises(AllocationFailure):
        with allocation_guard("test buffer"):
            raise RuntimeError("CUDA out of memory. Tried to allocate 2.00 GiB")


def test_allocation_guard_other_errors():
    with pytest.raises(RuntimeError) as info:
        with allocation_guard("test buffer"):
            raise RuntimeError("shape mismatch")
    assert not isinstance(info.value, AllocationFailure)
