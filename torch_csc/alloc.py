"""
Buffer allocation for compressed matrices and factorizations.

Every variable-length buffer (column pointers, row indices, values, factor
workspaces) is created through these helpers so that an allocation failure
always surfaces as :class:`~torch_csc.errors.AllocationFailure`.
"""

import contextlib
import torch

from .errors import AllocationFailure

INDEX_DTYPE = torch.int64
VALUE_DTYPE = torch.float64


@contextlib.contextmanager
def allocation_guard(what: str):
    """Translate out-of-memory conditions raised inside the block."""
    try:
        yield
    except AllocationFailure:
        raise
    except MemoryError as e:
        raise AllocationFailure(f"failed to allocate {what}") from e
    except RuntimeError as e:
        # torch reports CPU/GPU exhaustion as a RuntimeError subclass
        if "out of memory" in str(e) or "can't allocate memory" in str(e).lower():
            raise AllocationFailure(f"failed to allocate {what}") from e
        raise


def index_buffer(n: int, device=None) -> torch.Tensor:
    with allocation_guard(f"{n} indices"):
        return torch.zeros(n, dtype=INDEX_DTYPE, device=device)


def value_buffer(n: int, device=None) -> torch.Tensor:
    with allocation_guard(f"{n} values"):
        return torch.zeros(n, dtype=VALUE_DTYPE, device=device)


def index_tensor(data, device=None) -> torch.Tensor:
    with allocation_guard("index tensor"):
        return torch.as_tensor(data, dtype=INDEX_DTYPE, device=device)


def value_tensor(data, device=None) -> torch.Tensor:
    with allocation_guard("value tensor"):
        return torch.as_tensor(data, dtype=VALUE_DTYPE, device=device)
