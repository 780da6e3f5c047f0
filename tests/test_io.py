import os
import sys
import numpy as np
import pytest
import torch

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from torch_csc import SparseMatrix, save_dense_txt, load_dense_txt
from torch_csc import random as csc_random


def test_save_load_roundtrip(tmp_path):
    A = csc_random.coo((7, 5), 0.3, generator=torch.Generator().manual_seed(0))
    path = tmp_path / "A.txt"
    save_dense_txt(A, path)
    B = load_dense_txt(path)
    assert B.is_compressed
    assert B.shape == (7, 5)
    torch.testing.assert_close(B.to_dense(), A.to_dense())


def test_save_layout(tmp_path):
    A = SparseMatrix.from_dict({(0, 0): 1.5, (2, 3): -2.0})
    path = tmp_path / "A.txt"
    save_dense_txt(A, str(path), fmt="%g")
    lines = path.read_text().splitlines()
    assert len(lines) == 3
    assert all(len(line.split()) == 4 for line in lines)
    assert lines[0].split() == ["1.5", "0", "0", "0"]
    assert lines[2].split() == ["0", "0", "0", "-2"]


def test_save_triplet_sums_duplicates(tmp_path):
    A = SparseMatrix()
    A.insert_entry(0, 0, 5.0)
    A.insert_entry(0, 0, 3.0)
    path = tmp_path / "A.txt"
    save_dense_txt(A, path)
    np.testing.assert_allclose(np.loadtxt(path, ndmin=2), [[8.0]])


def test_save_missing_directory(tmp_path):
    A = SparseMatrix.from_dict({(0, 0): 1.0})
    with pytest.raises(OSError):
        save_dense_txt(A, tmp_path / "missing" / "A.txt")


def test_load_empty(tmp_path):
    path = tmp_path / "empty.txt"
    path.write_text("")
    with pytest.warns(UserWarning):
        A = load_dense_txt(path)
    assert A.is_compressed
    assert A.shape == (0, 0)
