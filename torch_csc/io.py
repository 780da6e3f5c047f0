"""
Plain text I/O for sparse matrices.

``save_dense_txt`` writes the dense expansion of a matrix (zeros included), one
row per line with whitespace separated values; ``load_dense_txt`` reads such a
file back. Failures raise (``OSError`` for the file system, typed errors for
invalid matrices) rather than being reported through a return value.
"""

import os
import numpy as np
from typing import Union

from .sparse_matrix import SparseMatrix

PathLike = Union[str, os.PathLike]


def save_dense_txt(matrix: SparseMatrix, path: PathLike, fmt: str = "%.18e") -> None:
    """
    Save the dense expansion of ``matrix`` to a text file.

    Parameters
    ----------
    matrix : SparseMatrix
        Matrix in either form; duplicated triplets are summed.
    path : str or PathLike
        Destination file, overwritten if it exists.
    fmt : str, optional
        ``numpy.savetxt`` format of every value, by default full precision.
    """
    dense = matrix.to_dense().cpu().numpy()
    np.savetxt(os.fspath(path), dense, fmt=fmt, delimiter=" ")


def load_dense_txt(path: PathLike) -> SparseMatrix:
    """
    Load a whitespace separated dense text file as a column-compressed matrix.

    Zeros are not stored. An empty file gives a 0x0 matrix.
    """
    dense = np.loadtxt(os.fspath(path), dtype=np.float64, ndmin=2)
    if dense.size == 0:
        A = SparseMatrix()
        A.compress_from_triplet()
        return A
    return SparseMatrix.from_dense(dense)
