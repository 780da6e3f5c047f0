import torch 
from typing import Optional, Tuple

from .sparse_matrix import SparseMatrix


def coo(shape:Tuple[int, int], 
        density:float=0.1, 
        generator:Optional[torch.Generator]=None,
        )->SparseMatrix:
    """
    random sparse matrix generator, duplicated coordinates are summed

    Parameters
    ----------
    shape : tuple
        (m,n) shape of the matrix
    density : float, optional
        Density of the matrix, by default 0.1
    generator : torch.Generator, optional
        Random generator, by default the global one
    
    Returns
    -------
    SparseMatrix
        column-compressed [m, n] matrix
    """
    assert 0 <= density <= 1, "density must be in [0, 1]"

    m, n = shape
    nnz = int(m * n * density)
    row = torch.randint(0, max(m, 1), (nnz,), generator=generator)
    col = torch.randint(0, max(n, 1), (nnz,), generator=generator)
    val = torch.randn(nnz, generator=generator, dtype=torch.float64)
    return SparseMatrix.from_coo(row, col, val, (m, n))


def spd(n:int,
        density:float=0.1,
        generator:Optional[torch.Generator]=None,
        )->SparseMatrix:
    """
    random symmetric positive definite matrix generator

    A random sparse matrix is symmetrized and made strictly diagonally dominant,
    which makes it positive definite.

    Parameters
    ----------
    n : int
        order of the matrix
    density : float, optional
        Density of the off-diagonal part before symmetrization, by default 0.1
    generator : torch.Generator, optional
        Random generator, by default the global one

    Returns
    -------
    SparseMatrix
        column-compressed [n, n] SPD matrix
    """
    B = coo((n, n), density, generator)
    val, row, col = (B + B.T).coo()
    off = row != col
    val, row, col = val[off], row[off], col[off]

    # |diagonal| strictly larger than the off-diagonal row sum
    radius = torch.zeros(n, dtype=torch.float64)
    radius.index_add_(0, row, val.abs())
    diag = torch.arange(n)
    return SparseMatrix.from_coo(
        torch.cat([row, diag]),
        torch.cat([col, diag]),
        torch.cat([val, radius + 1.0]),
        (n, n),
    )
