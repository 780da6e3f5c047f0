import torch 
from typing import Tuple, Protocol, Any
from .check import check_coo, check_csc
from .sort import lexsort
from .alloc import INDEX_DTYPE, VALUE_DTYPE, allocation_guard, index_buffer, index_tensor, value_tensor


class DenseSource(Protocol):
    """
    Anything readable as a dense matrix: a ``shape`` whose first two entries are
    the row and column counts, and element access through ``source[r, c]``.

    ``torch.Tensor`` and ``numpy.ndarray`` satisfy it as they are.
    """
    shape: Tuple[int, ...]

    def __getitem__(self, index: Tuple[int, int]) -> Any: ...


def _used(val:torch.Tensor, row:torch.Tensor, colptr:torch.Tensor):
    """Drop the unused capacity beyond ``colptr[-1]``."""
    nnz = int(colptr[-1])
    return val[:nnz], row[:nnz]


#################
# coo, csc 
#################

def coo2csc(val:torch.Tensor, 
            row:torch.Tensor, 
            col:torch.Tensor, 
            shape:Tuple[int, int]
            )->Tuple[torch.Tensor, 
                     torch.Tensor, 
                     torch.Tensor, 
                     Tuple[int, int]]:
    """
    Convert COO (triplet) format to CSC format, summing duplicated entries

    Entries are counted per column, column pointers come from the cumulative
    sum of the counts, and every entry is scattered into its column slot.
    Entries sharing a (row, col) coordinate are then summed into one.

    Parameters
    ----------
        val: torch.Tensor
            [n] values of the sparse matrix
        row: torch.Tensor
            [n] row indices of the sparse matrix
        col: torch.Tensor
            [n] column indices of the sparse matrix
        shape: tuple
            (m,n) shape of the sparse matrix
    Returns
    -------
        val: torch.Tensor
            [nnz] values of the sparse matrix
        row: torch.Tensor
            [nnz] row indices of the sparse matrix, sorted within each column
        colptr: torch.Tensor
            [n+1] colptr of the sparse matrix
        shape: tuple
            (m,n) shape of the sparse matrix
    """
    check_coo(val, row, col)
    
    m, n   = shape
    with allocation_guard("compressed buffers"):
        arg    = lexsort([row, col])
        row    = row[arg]
        col    = col[arg]
        val    = val[arg]

        nz = row.shape[0]
        if nz > 0:
            first = torch.ones(nz, dtype=torch.bool, device=val.device)
            first[1:] = (row[1:] != row[:-1]) | (col[1:] != col[:-1])
            group = torch.cumsum(first.to(INDEX_DTYPE), 0) - 1
            summed = torch.zeros(int(first.sum()), dtype=val.dtype, device=val.device)
            summed.index_add_(0, group, val)
            val, row, col = summed, row[first], col[first]

        colptr = index_buffer(n + 1, device=val.device)
        colcount   = torch.bincount(col, minlength=n)
        colptr[1:] = torch.cumsum(colcount, 0)
    
    return val, row, colptr, shape

def csc2coo(val:torch.Tensor,
            row:torch.Tensor,
            colptr:torch.Tensor,
            shape:Tuple[int, int]
            )->Tuple[torch.Tensor, 
                     torch.Tensor, 
                     torch.Tensor, 
                     Tuple[int, int]]:
    """
    Convert CSC format to COO format

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

    Returns
    -------
        val: torch.Tensor
            [nnz] values of the sparse matrix
        row: torch.Tensor
            [nnz] row indices of the sparse matrix
        col: torch.Tensor
            [nnz] column indices of the sparse matrix
        shape: tuple
            (m,n) shape of the sparse matrix
    """
    check_csc(val, row, colptr, shape)

    m, n = shape
    val, row = _used(val, row, colptr)
    col  = torch.repeat_interleave(
        torch.arange(n, dtype=colptr.dtype, device=val.device),
        colptr[1:] - colptr[:-1]
    )
    return val, row, col, shape

def csc_transpose(val:torch.Tensor,
                  row:torch.Tensor,
                  colptr:torch.Tensor,
                  shape:Tuple[int, int]
                  )->Tuple[torch.Tensor, 
                           torch.Tensor, 
                           torch.Tensor, 
                           Tuple[int, int]]:
    """
    Transpose a CSC matrix, which is also the CSC to CSR conversion

    Rows of A are counted to form the column pointers of A^T and every entry is
    scattered into its row slot, keeping the column order of A.

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


    Returns
    -------
        val: torch.Tensor
            [nnz] values of A^T
        row: torch.Tensor
            [nnz] row indices of A^T (column indices of A)
        colptr: torch.Tensor
            [m+1] colptr of A^T (rowptr of A)
        shape: tuple
            (n,m) shape of A^T
    """
    val, row, col, shape = csc2coo(val, row, colptr, shape)

    m, n = shape
    with allocation_guard("transposed buffers"):
        arg    = torch.argsort(row, stable=True)
        t_row  = col[arg]
        t_val  = val[arg]
        rowptr = index_buffer(m + 1, device=val.device)
        rowcount   = torch.bincount(row, minlength=m)
        rowptr[1:] = torch.cumsum(rowcount, 0)

    return t_val, t_row, rowptr, (n, m)


######################
# dense
######################
def dense2csc(dense:DenseSource
              )->Tuple[torch.Tensor, 
                       torch.Tensor, 
                       torch.Tensor, 
                       Tuple[int, int]]:
    """
    Convert a dense matrix to CSC format

    The source is scanned column by column through ``dense[r, c]`` and exact
    zeros are skipped, so any object following :class:`DenseSource` works.

    Parameters
    ----------
    dense: DenseSource
        [m, n] dense matrix

    Returns
    -------
    val: torch.Tensor
        [nnz] values of the sparse matrix
    row: torch.Tensor
        [nnz] row indices of the sparse matrix
    colptr: torch.Tensor
        [n+1] colptr of the sparse matrix
    shape: tuple
        (m,n) shape of the sparse matrix
    """
    m, n = int(dense.shape[0]), int(dense.shape[1])

    rows, vals = [], []
    colptr = [0]
    for c in range(n):
        for r in range(m):
            v = float(dense[r, c])
            if v != 0:
                rows.append(r)
                vals.append(v)
        colptr.append(len(rows))

    val    = value_tensor(vals)
    row    = index_tensor(rows)
    colptr = index_tensor(colptr)
    check_csc(val, row, colptr, (m, n))

    return val, row, colptr, (m, n)

def csc2dense(val:torch.Tensor,
              row:torch.Tensor, 
              colptr:torch.Tensor,
              shape:Tuple[int, int]
              )->torch.Tensor:
    
    """
    Convert CSC format to dense matrix, stored duplicates are accumulated

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

    Returns
    -------
    dense: torch.Tensor
        [m, n] dense matrix
    
    """
    val, row, col, shape = csc2coo(val, row, colptr, shape)
    return coo2dense(val, row, col, shape)

def coo2dense(val:torch.Tensor,
              row:torch.Tensor, 
              col:torch.Tensor,
              shape:Tuple[int, int]
              )->torch.Tensor:
    """
    Convert COO format to dense matrix, duplicated entries are summed

    Parameters
    ----------
    val: torch.Tensor
        [nnz] values of the sparse matrix

    row: torch.Tensor
        [nnz] row indices of the sparse matrix

    col: torch.Tensor
        [nnz] column indices of the sparse matrix

    shape: tuple
        (m,n) shape of the sparse matrix

    Returns
    -------
    dense: torch.Tensor
        [m, n] dense matrix
    """
    check_coo(val, row, col)

    m, n = shape

    with allocation_guard(f"dense {m}x{n} matrix"):
        dense = torch.zeros(m, n, dtype=VALUE_DTYPE, device=val.device)
        dense.index_put_((row, col), val.to(VALUE_DTYPE), accumulate=True)

    return dense
