"""Tests for dense graded vectors."""

import logging

import pytest
import torch

from free_tensors_pytorch import (
    CoefficientField,
    DenseVector,
    IndexOutOfRange,
    SizeMismatch,
    StorageMode,
    TensorKey,
    tensor_basis,
)


def _key(*letters: int, width: int = 2) -> TensorKey:
    return TensorKey.from_letters(width, letters)


class TestConstruction:
    def test_new_is_empty(self):
        vec = DenseVector.new(tensor_basis(2))
        assert vec.size == 0
        assert vec.degree() == 0
        assert str(vec) == "0"

    def test_from_key(self):
        vec = DenseVector.from_key(_key(2, 1), 3.0)
        assert vec.size == 7
        assert vec[_key(2, 1)] == 3.0
        assert vec[_key(1)] == 0.0

    def test_from_items_sums_duplicates(self):
        vec = DenseVector.from_items([(_key(1), 1.0), (_key(1), 2.5), (_key(2, 2), -1.0)])
        assert vec[_key(1)] == 3.5
        assert vec[_key(2, 2)] == -1.0
        assert vec.degree() == 2

    def test_from_items_empty_needs_basis(self):
        with pytest.raises(ValueError):
            DenseVector.from_items([])
        assert DenseVector.from_items([], basis=tensor_basis(2)).size == 0

    def test_from_tensor_copies(self):
        data = torch.arange(3, dtype=torch.float64)
        vec = DenseVector.from_tensor(tensor_basis(2), data)
        vec[_key(1)] = 10.0
        assert data[1] == 1.0
        assert vec.storage_mode is StorageMode.OWNED

    def test_from_degree(self):
        vec = DenseVector.from_degree(tensor_basis(3), 2)
        assert vec.size == 13
        torch.testing.assert_close(vec.as_tensor(), torch.zeros(13, dtype=torch.float64))

    @pytest.mark.parametrize("dtype", [torch.float32, torch.float64, torch.complex128])
    def test_field_dtype(self, dtype: torch.dtype) -> None:
        vec = DenseVector.from_key(_key(1), field=CoefficientField(dtype))
        assert vec.as_tensor().dtype == dtype

    def test_integer_dtype_rejected(self):
        with pytest.raises(ValueError):
            CoefficientField(torch.int64)
        with pytest.raises(ValueError):
            DenseVector.from_tensor(tensor_basis(2), torch.arange(3))


class TestStorage:
    def test_resize_never_shrinks(self):
        vec = DenseVector.from_degree(tensor_basis(2), 2)
        vec.resize(3)
        assert vec.size == 7
        vec.resize(20)
        assert vec.size == 31
        assert vec.degree() == 4

    @pytest.mark.parametrize("size,expected", [(1, 1), (2, 3), (5, 7), (7, 7), (8, 15)])
    def test_resize_rounds_up_to_whole_degrees(self, size: int, expected: int) -> None:
        vec = DenseVector.new(tensor_basis(2))
        vec.resize(size)
        assert vec.size == expected
        assert tensor_basis(2).dimension(vec.degree()) == expected

    def test_partial_degree_sizes(self):
        basis = tensor_basis(2)
        assert DenseVector.from_dimension(basis, 5).size == 7
        with pytest.raises(SizeMismatch):
            DenseVector.from_tensor(basis, torch.ones(5, dtype=torch.float64))
        with pytest.raises(SizeMismatch):
            DenseVector.borrowed(basis, torch.ones(4, dtype=torch.float64))
        with pytest.raises(SizeMismatch):
            DenseVector.borrowed_mut(basis, torch.ones(2, dtype=torch.float64))

    def test_resize_logs_growth(self, caplog):
        vec = DenseVector.new(tensor_basis(2))
        with caplog.at_level(logging.DEBUG, logger="free_tensors_pytorch.dense_vector"):
            vec.resize(5)
        assert "Growing dense buffer" in caplog.text

    def test_growth_is_geometric(self):
        vec = DenseVector.from_degree(tensor_basis(1), 3)
        assert vec._buffer.numel() == 4
        vec.resize(5)
        assert vec.size == 5
        assert vec._buffer.numel() == 8
        pointer = vec._buffer.data_ptr()
        vec.resize(8)
        assert vec.size == 8
        assert vec._buffer.data_ptr() == pointer
        vec.resize(9)
        assert vec._buffer.numel() == 16

    def test_degree_slices(self):
        vec = DenseVector.from_items([(_key(1, 2), 2.0), (_key(2), 1.0)])
        torch.testing.assert_close(
            vec.as_slice(1), torch.tensor([0.0, 1.0], dtype=torch.float64)
        )
        vec.as_mut_slice(2).fill_(4.0)
        assert vec[_key(2, 1)] == 4.0
        with pytest.raises(IndexOutOfRange):
            vec.as_slice(3)

    def test_get_and_erase(self):
        vec = DenseVector.from_key(_key(1), 2.0)
        assert vec.get(_key(1, 1)) is None
        assert vec[_key(1, 1)] == 0.0
        vec.erase(_key(1))
        assert vec[_key(1)] == 0.0
        vec.erase(_key(2, 2, 2))
        assert vec.size == 3

    def test_setitem_grows(self):
        vec = DenseVector.new(tensor_basis(3))
        vec[_key(3, 3, width=3)] = 1.5
        assert vec.size == 13
        assert list(vec.items()) == [(_key(3, 3, width=3), 1.5)]

    def test_clear_and_swap(self):
        a = DenseVector.from_key(_key(1), 1.0)
        b = DenseVector.from_key(_key(2, 2), 2.0)
        a.swap(b)
        assert a[_key(2, 2)] == 2.0
        assert b[_key(1)] == 1.0
        a.clear()
        assert a.size == 0
        assert str(a) == "0"


class TestBorrowing:
    def test_borrowed_copies_on_write(self, caplog):
        data = torch.ones(3, dtype=torch.float64)
        vec = DenseVector.borrowed(tensor_basis(2), data)
        assert vec.shares_storage(DenseVector.borrowed(tensor_basis(2), data))
        with caplog.at_level(logging.DEBUG, logger="free_tensors_pytorch.dense_vector"):
            vec.scalar_lmultiply_inplace(2.0)
        assert "owned storage" in caplog.text
        torch.testing.assert_close(data, torch.ones(3, dtype=torch.float64))
        torch.testing.assert_close(vec.as_tensor(), torch.full((3,), 2.0, dtype=torch.float64))
        assert vec.storage_mode is StorageMode.OWNED

    def test_borrowed_mut_writes_through(self):
        data = torch.ones(3, dtype=torch.float64)
        vec = DenseVector.borrowed_mut(tensor_basis(2), data)
        vec.uminus_inplace()
        torch.testing.assert_close(data, -torch.ones(3, dtype=torch.float64))
        assert vec.storage_mode is StorageMode.BORROWED_MUT

    def test_borrowed_mut_detaches_when_growing(self):
        data = torch.ones(3, dtype=torch.float64)
        vec = DenseVector.borrowed_mut(tensor_basis(2), data)
        vec.resize(7)
        vec[_key(1)] = 5.0
        assert data[1] == 1.0
        assert vec.storage_mode is StorageMode.OWNED

    def test_copy_is_owned(self):
        data = torch.ones(3, dtype=torch.float64)
        vec = DenseVector.borrowed(tensor_basis(2), data).copy()
        assert vec.storage_mode is StorageMode.OWNED
        assert not vec.shares_storage(DenseVector.borrowed(tensor_basis(2), data))


class TestArithmetic:
    def test_add_and_sub_inplace(self):
        a = DenseVector.from_items([(_key(1), 1.0), (_key(2, 1), 2.0)])
        b = DenseVector.from_items([(_key(1), 3.0), (_key(2), 4.0)])
        a.add_inplace(b)
        assert a[_key(1)] == 4.0
        assert a[_key(2)] == 4.0
        a -= b
        assert a[_key(1)] == 1.0
        assert a[_key(2)] == 0.0

    def test_size_mismatch(self):
        a = DenseVector.from_key(_key(1))
        b = DenseVector.from_key(_key(1, 1))
        with pytest.raises(SizeMismatch):
            a.add_inplace(b)
        with pytest.raises(SizeMismatch):
            a.sub_scalar_rdivide(b, 2)
        assert a[_key(1)] == 1.0

    def test_owned_results_grow(self):
        a = DenseVector.from_key(_key(1))
        b = DenseVector.from_key(_key(1, 1))
        c = a + b
        assert c.size == 7
        assert (c - b) == a
        assert a.size == 3

    def test_width_mismatch(self):
        a = DenseVector.from_key(_key(1))
        with pytest.raises(ValueError):
            a.add_inplace(DenseVector.from_key(_key(1, width=3)))

    def test_scalar_operations(self):
        a = DenseVector.from_items([(_key(1), 1.0), (_key(2), -2.0)])
        torch.testing.assert_close(
            (2 * a).as_tensor(), torch.tensor([0.0, 2.0, -4.0], dtype=torch.float64)
        )
        torch.testing.assert_close(
            (a / 4).as_tensor(), torch.tensor([0.0, 0.25, -0.5], dtype=torch.float64)
        )
        torch.testing.assert_close(
            (-a).as_tensor(), torch.tensor([0.0, -1.0, 2.0], dtype=torch.float64)
        )

    def test_fused_scalar_updates(self):
        a = DenseVector.from_degree(tensor_basis(2), 1)
        b = DenseVector.from_key(_key(2), 3.0)
        a.add_scalar_lmultiply(b, 2.0)
        a.sub_scalar_rdivide(b, 3)
        assert a[_key(2)] == 5.0

    def test_equality_ignores_trailing_zeros(self):
        a = DenseVector.from_key(_key(1))
        b = DenseVector.from_key(_key(1))
        b.resize(7)
        assert a == b
        b[_key(2, 2)] = 1.0
        assert a != b
