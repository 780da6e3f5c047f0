"""
Fill-reducing orderings for sparse Cholesky.

Methods
-------
- 'amd': minimum degree on the graph of A + A^T. Nodes whose degree exceeds a
  density threshold are set aside and ordered last.
- 'natural': identity permutation.

A permutation ``perm`` means row/column ``k`` of ``P A P^T`` is row/column
``perm[k]`` of ``A``. ``pinv`` is its inverse: ``pinv[perm[k]] = k``.
"""

import heapq
import math
import torch
from typing import List, Literal, Tuple

from .alloc import index_tensor, allocation_guard
from .convert import coo2csc, csc2coo

OrderingType = Literal['amd', 'natural']

ORDERING_METHODS: List[str] = ['amd', 'natural']

DEFAULT_ORDERING: str = 'amd'

# nodes with more than max(DENSE_DEGREE_MIN, DENSE_DEGREE_RATIO * sqrt(n)) neighbours are
# treated as dense and eliminated last
DENSE_DEGREE_MIN = 16
DENSE_DEGREE_RATIO = 10


def dense_threshold(n: int) -> int:
    dense = max(DENSE_DEGREE_MIN, int(DENSE_DEGREE_RATIO * math.sqrt(n)))
    return min(n - 2, dense)


def _symmetric_adjacency(row: torch.Tensor, col: torch.Tensor, n: int) -> List[set]:
    adj = [set() for _ in range(n)]
    for i, j in zip(row.tolist(), col.tolist()):
        if i != j:
            adj[i].add(j)
            adj[j].add(i)
    return adj


def minimum_degree(row: torch.Tensor, col: torch.Tensor, n: int) -> List[int]:
    """
    Minimum degree ordering of the symmetric pattern given by COO indices.

    The elimination graph is updated explicitly: eliminating node ``k`` turns its
    neighbourhood into a clique. Ties are broken by the smallest node index so
    the ordering is deterministic.

    Parameters
    ----------
    row, col : torch.Tensor
        [nnz] coordinates of the stored entries, either triangle or both.
    n : int
        Matrix order.

    Returns
    -------
    List[int]
        ``perm`` of length ``n``.
    """
    adj = _symmetric_adjacency(row, col, n)
    dense = dense_threshold(n)

    # dense nodes stay out of the graph until the end
    deferred = [i for i in range(n) if len(adj[i]) > dense > 0]
    for i in deferred:
        for j in adj[i]:
            adj[j].discard(i)
        adj[i] = set()

    is_deferred = set(deferred)
    heap = [(len(adj[i]), i) for i in range(n) if i not in is_deferred]
    heapq.heapify(heap)

    perm = []

    eliminated = [False] * n
    while heap:
        degree, k = heapq.heappop(heap)
        if eliminated[k] or degree != len(adj[k]):
            continue  # stale
        eliminated[k] = True
        perm.append(k)
        neighbours = adj[k]
        for u in neighbours:
            adj[u].discard(k)
            adj[u] |= neighbours
            adj[u].discard(u)
            heapq.heappush(heap, (len(adj[u]), u))
        adj[k] = set()

    perm.extend(deferred)
    return perm


def order(method: OrderingType, row: torch.Tensor, col: torch.Tensor, n: int) -> torch.Tensor:
    """Compute the fill-reducing permutation ``perm`` with the selected method."""
    if method not in ORDERING_METHODS:
        raise ValueError(f"ordering must be one of {ORDERING_METHODS}, got {method!r}")
    if method == 'natural':
        return torch.arange(n, dtype=torch.int64)
    return index_tensor(minimum_degree(row, col, n))


def invert_permutation(perm: torch.Tensor) -> torch.Tensor:
    """``pinv[perm[k]] = k``."""
    pinv = torch.empty_like(perm)
    pinv[perm] = torch.arange(perm.shape[0], dtype=perm.dtype, device=perm.device)
    return pinv


def symmetric_permute_upper(
    val: torch.Tensor,
    row: torch.Tensor,
    colptr: torch.Tensor,
    shape: Tuple[int, int],
    pinv: torch.Tensor,
) -> Tuple[torch.Tensor, torch.Tensor, torch.Tensor, Tuple[int, int]]:
    """
    C = upper triangle of P A P^T, reading only the upper triangle of A.

    Entry ``A[i, j]`` with ``i <= j`` lands at ``(min(pinv[i], pinv[j]),
    max(pinv[i], pinv[j]))``.
    """
    val, row, col, shape = csc2coo(val, row, colptr, shape)
    with allocation_guard("permuted buffers"):
        upper = row <= col
        val, row, col = val[upper], row[upper], col[upper]
        i2, j2 = pinv[row], pinv[col]
        row, col = torch.minimum(i2, j2), torch.maximum(i2, j2)
    return coo2csc(val, row, col, shape)
