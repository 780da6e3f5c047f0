import torch  
from typing import Tuple
from .sort import lexsort
from .convert import csc2coo


def _canonical(val:torch.Tensor,
               row:torch.Tensor,
               colptr:torch.Tensor,
               shape:Tuple[int, int]):
    """COO entries of a CSC matrix ordered by (col, row)."""
    val, row, col, _ = csc2coo(val, row, colptr, shape)
    indices = lexsort([row, col])
    return val[indices], row[indices], col[indices]


def csc_same_pattern(
    row1:torch.Tensor,
    colptr1:torch.Tensor,
    shape1:Tuple[int, int],
    row2:torch.Tensor,
    colptr2:torch.Tensor,
    shape2:Tuple[int, int],
    )->bool:
    """
    Parameters
    ----------
    row1: torch.Tensor
        [nzmax1] row indices of the first matrix
    colptr1: torch.Tensor
        [n1+1] column pointers of the first matrix
    shape1: tuple
        (m1,n1) shape of the first matrix
    row2: torch.Tensor
        [nzmax2] row indices of the second matrix
    colptr2: torch.Tensor
        [n2+1] column pointers of the second matrix
    shape2: tuple
        (m2,n2) shape of the second matrix

    Returns
    -------
    bool 
        whether both matrices store entries at exactly the same coordinates,
        whatever the order of the entries inside each column
    """
    if tuple(shape1) != tuple(shape2):
        return False
    if not torch.equal(colptr1, colptr2): # not the same count per column
        return False

    dummy1 = torch.zeros(row1.shape[0], dtype=torch.float64, device=row1.device)
    dummy2 = torch.zeros(row2.shape[0], dtype=torch.float64, device=row2.device)
    _, r1, c1 = _canonical(dummy1, row1, colptr1, shape1)
    _, r2, c2 = _canonical(dummy2, row2, colptr2, shape2)

    return bool((r1 == r2).all() and (c1 == c2).all())


def csc_allclose(
    val1:torch.Tensor,
    row1:torch.Tensor, 
    colptr1:torch.Tensor,
    shape1:Tuple[int, int],
    val2:torch.Tensor,
    row2:torch.Tensor,
    colptr2:torch.Tensor,
    shape2:Tuple[int, int],
    rtol:float=1e-9,
    atol:float=1e-12,
    )->bool:
    """
    Parameters
    ----------
    val1, row1, colptr1, shape1:
        first matrix in CSC format
    val2, row2, colptr2, shape2:
        second matrix in CSC format
    rtol, atol: float
        tolerances passed to ``torch.allclose``
    
    Returns
    -------
    bool 
        whether the two matrices share the same layout and close values
    """
    if not csc_same_pattern(row1, colptr1, shape1, row2, colptr2, shape2):
        return False

    v1, _, _ = _canonical(val1, row1, colptr1, shape1)
    v2, _, _ = _canonical(val2, row2, colptr2, shape2)

    return torch.allclose(v1, v2, rtol=rtol, atol=atol)
