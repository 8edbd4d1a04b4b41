"""Dense coefficient vectors over the graded tensor basis.

A :class:`DenseVector` is a flat 1-D tensor of coefficients addressed by basis
index. Its length always ends on a degree block boundary and determines the
highest degree the vector can represent; buffers only ever grow, and new
slots are zero.

A vector either owns its buffer or borrows a caller's tensor. A read-only
borrow is copied the first time the vector is mutated; a mutable borrow writes
through to the caller's tensor until it has to grow, at which point it is
copied as well.

Examples
--------
>>> import torch
>>> from free_tensors_pytorch import DenseVector, TensorKey
>>> vec = DenseVector.from_items(
...     [(TensorKey.from_letter(2, 1), 1.0), (TensorKey.from_letters(2, [1, 2]), 2.0)]
... )
>>> vec.size, vec.degree()
(7, 2)
>>> vec.as_slice(2)
tensor([0., 2., 0., 0.], dtype=torch.float64)
>>> str(vec)
'1(1) + 2(2, 1)'
"""

from __future__ import annotations

import logging
from enum import Enum
from numbers import Number
from typing import Iterable, Iterator, Optional, Tuple, Union

import torch
from torch import Tensor

from .coefficients import CoefficientField, Scalar
from .errors import IndexOutOfRange, SizeMismatch
from .tensor_basis import TensorBasis, tensor_basis
from .tensor_key import TensorKey

logger = logging.getLogger(__name__)


class StorageMode(Enum):
    OWNED = "owned"
    BORROWED = "borrowed"
    BORROWED_MUT = "borrowed_mut"


def _is_scalar(value) -> bool:
    return isinstance(value, Number) or (isinstance(value, Tensor) and value.ndim == 0)


class DenseVector:
    """Graded dense vector of coefficients.

    Parameters
    ----------
    basis : TensorBasis
        Basis addressing the coefficients.
    field : CoefficientField, optional
        Dtype and device of the coefficients. Default is float64 on CPU.
    size : int, optional
        Initial number of (zero) coefficients, rounded up to whole degrees.
        Default is 0.
    """

    def __init__(
        self,
        basis: TensorBasis,
        field: Optional[CoefficientField] = None,
        size: int = 0,
    ) -> None:
        self.basis = basis
        self.field = CoefficientField() if field is None else field
        if size:
            size = basis.vector_dimension_for_index(size - 1)
        self._buffer = self.field.zeros(size)
        self._size = size
        self._mode = StorageMode.OWNED

    # Construction

    @classmethod
    def new(
        cls, basis: TensorBasis, field: Optional[CoefficientField] = None
    ) -> DenseVector:
        """An empty vector (the zero element)."""
        return cls(basis, field)

    @classmethod
    def from_dimension(
        cls, basis: TensorBasis, size: int, field: Optional[CoefficientField] = None
    ) -> DenseVector:
        return cls(basis, field, size=size)

    @classmethod
    def from_degree(
        cls, basis: TensorBasis, deg: int, field: Optional[CoefficientField] = None
    ) -> DenseVector:
        """A zero vector holding every degree up to ``deg``."""
        return cls(basis, field, size=basis.dimension(deg))

    @classmethod
    def from_key(
        cls,
        key: TensorKey,
        scalar: Union[Scalar, Tensor] = 1,
        field: Optional[CoefficientField] = None,
    ) -> DenseVector:
        """The vector ``scalar * key``, sized to hold ``key``'s whole degree."""
        basis = tensor_basis(key.width)
        vec = cls(basis, field, size=basis.vector_dimension_for_key(key))
        vec._buffer[basis.key_to_index(key)] = scalar
        return vec

    @classmethod
    def from_items(
        cls,
        items: Iterable[Tuple[TensorKey, Union[Scalar, Tensor]]],
        basis: Optional[TensorBasis] = None,
        field: Optional[CoefficientField] = None,
    ) -> DenseVector:
        """Build a vector from ``(key, scalar)`` pairs, summing repeated keys.

        The basis defaults to the one of the first key. An empty iterable
        gives the empty vector, which then needs an explicit ``basis``.
        """
        pairs = list(items)
        if basis is None:
            if not pairs:
                raise ValueError("Cannot infer the basis of an empty set of items")
            basis = tensor_basis(pairs[0][0].width)
        vec = cls(basis, field)
        if not pairs:
            return vec
        indices = [basis.key_to_index(key) for key, _ in pairs]
        vec.resize(basis.vector_dimension_for_index(max(indices)))
        index_tensor = torch.tensor(indices, dtype=torch.long, device=vec.field.device)
        values = torch.stack([vec.field.as_tensor(value) for _, value in pairs])
        vec._buffer.index_add_(0, index_tensor, values)
        return vec

    @classmethod
    def from_tensor(cls, basis: TensorBasis, data: Tensor) -> DenseVector:
        """Owned copy of the 1-D coefficient tensor ``data``."""
        _check_flat(basis, data)
        vec = cls(basis, CoefficientField(data.dtype, data.device), size=data.numel())
        vec._buffer.copy_(data)
        return vec

    @classmethod
    def borrowed(cls, basis: TensorBasis, data: Tensor) -> DenseVector:
        """Read-only view of ``data``; copied on the first mutation."""
        return cls._borrow(basis, data, StorageMode.BORROWED)

    @classmethod
    def borrowed_mut(cls, basis: TensorBasis, data: Tensor) -> DenseVector:
        """Mutable view of ``data``; writes go to ``data`` until the vector grows."""
        return cls._borrow(basis, data, StorageMode.BORROWED_MUT)

    @classmethod
    def _borrow(cls, basis: TensorBasis, data: Tensor, mode: StorageMode) -> DenseVector:
        _check_flat(basis, data)
        vec = cls(basis, CoefficientField(data.dtype, data.device))
        vec._buffer = data
        vec._size = data.numel()
        vec._mode = mode
        return vec

    def _new_like(self, size: int = 0) -> DenseVector:
        return type(self)(self.basis, self.field, size=size)

    # Storage

    @property
    def size(self) -> int:
        return self._size

    @property
    def width(self) -> int:
        return self.basis.width

    @property
    def storage_mode(self) -> StorageMode:
        return self._mode

    @property
    def _data(self) -> Tensor:
        return self._buffer[: self._size]

    def _materialize(self, capacity: int) -> None:
        logger.debug(
            "Copying %s buffer of %d coefficients into owned storage",
            self._mode.value,
            self._size,
        )
        buffer = self.field.zeros(capacity)
        buffer[: self._size].copy_(self._data)
        self._buffer = buffer
        self._mode = StorageMode.OWNED

    def _make_mutable(self) -> None:
        if self._mode is StorageMode.BORROWED:
            self._materialize(self._size)

    def resize(self, size: int) -> None:
        """Grow to at least ``size`` coefficients; new slots are zero.

        The size is rounded up to the end of the degree block holding index
        ``size - 1``, so a vector always stores whole degrees. Never shrinks.
        Owned buffers grow geometrically so that repeated growth stays
        amortised linear.
        """
        if size <= self._size:
            return
        size = self.basis.vector_dimension_for_index(size - 1)
        if self._mode is not StorageMode.OWNED:
            self._materialize(size)
        elif size > self._buffer.numel():
            capacity = max(size, 2 * self._buffer.numel())
            logger.debug(
                "Growing dense buffer from %d to %d slots", self._buffer.numel(), capacity
            )
            buffer = self.field.zeros(capacity)
            buffer[: self._size].copy_(self._data)
            self._buffer = buffer
        self._size = size

    def resize_to_degree(self, deg: int) -> None:
        self.resize(self.basis.dimension(deg))

    def degree(self) -> int:
        """Highest degree whose block is fully present (0 for an empty vector)."""
        return max(self._top_degree(), 0)

    def _top_degree(self) -> int:
        # -1 when not even the degree 0 block is present.
        deg = -1
        while self.basis.dimension(deg + 1) <= self._size:
            deg += 1
        return deg

    def as_tensor(self) -> Tensor:
        """View of all coefficients. Must not be written to."""
        return self._data

    def as_mut_tensor(self) -> Tensor:
        """Writable view of all coefficients."""
        self._make_mutable()
        return self._data

    def _check_degree(self, deg: int) -> None:
        if deg < 0 or self.basis.dimension(deg) > self._size:
            raise IndexOutOfRange(
                f"Degree {deg} is not fully stored in a vector of size {self._size}"
            )

    def as_slice(self, deg: int) -> Tensor:
        """View of the coefficients of degree ``deg``. Must not be written to."""
        self._check_degree(deg)
        return self._data[self.basis.degree_range(deg)]

    def as_mut_slice(self, deg: int) -> Tensor:
        """Writable view of the coefficients of degree ``deg``."""
        self._check_degree(deg)
        self._make_mutable()
        return self._data[self.basis.degree_range(deg)]

    def shares_storage(self, other: DenseVector) -> bool:
        """Whether both vectors read from the same underlying memory."""
        if other is self:
            return True
        if self._buffer.numel() == 0 or other._buffer.numel() == 0:
            return False
        return (
            self._buffer.untyped_storage().data_ptr()
            == other._buffer.untyped_storage().data_ptr()
        )

    # Element access

    def _index_of(self, key: TensorKey) -> int:
        return self.basis.key_to_index(key)

    def get(self, key: TensorKey) -> Optional[Scalar]:
        """Coefficient of ``key``, or ``None`` if the vector is too short to hold it."""
        index = self._index_of(key)
        if index >= self._size:
            return None
        return self._data[index].item()

    def __getitem__(self, key: TensorKey) -> Scalar:
        value = self.get(key)
        return self.field.zero if value is None else value

    def __setitem__(self, key: TensorKey, value: Union[Scalar, Tensor]) -> None:
        index = self._index_of(key)
        if index >= self._size:
            self.resize(self.basis.vector_dimension_for_key(key))
        self._make_mutable()
        self._data[index] = value

    def erase(self, key: TensorKey) -> None:
        index = self._index_of(key)
        if index < self._size:
            self._make_mutable()
            self._data[index] = 0

    def clear(self) -> None:
        """Reset to zero. Owned and read-only borrowed vectors become empty."""
        if self._mode is StorageMode.BORROWED_MUT:
            self._data.zero_()
            return
        if self._mode is StorageMode.BORROWED:
            self._buffer = self.field.zeros(0)
            self._mode = StorageMode.OWNED
        else:
            self._buffer.zero_()
        self._size = 0

    def items(self) -> Iterator[Tuple[TensorKey, Scalar]]:
        """Non-zero ``(key, coefficient)`` pairs in index order."""
        data = self._data
        for index in torch.nonzero(data).flatten().tolist():
            yield self.basis.index_to_key(index), data[index].item()

    def __len__(self) -> int:
        return self._size

    def copy(self) -> DenseVector:
        """Owned copy of this vector."""
        result = self._new_like(self._size)
        result._buffer.copy_(self._data)
        return result

    to_owned = copy

    def swap(self, other: DenseVector) -> None:
        self.__dict__, other.__dict__ = other.__dict__, self.__dict__

    # Arithmetic

    def _check_operand(self, other: DenseVector) -> None:
        if not isinstance(other, DenseVector):
            raise TypeError(f"Expected a DenseVector, got {type(other).__name__}")
        if other.basis.width != self.basis.width:
            raise ValueError(
                f"Operands have different widths: {self.basis.width} and {other.basis.width}"
            )
        if other._size > self._size:
            raise SizeMismatch(
                f"Right-hand operand of size {other._size} is larger than the "
                f"left-hand operand of size {self._size}; resize the destination first"
            )

    def uminus_inplace(self) -> DenseVector:
        self._make_mutable()
        self._data.neg_()
        return self

    def add_inplace(self, other: DenseVector) -> DenseVector:
        self._check_operand(other)
        self._make_mutable()
        self._data[: other._size].add_(other._data)
        return self

    def sub_inplace(self, other: DenseVector) -> DenseVector:
        self._check_operand(other)
        self._make_mutable()
        self._data[: other._size].sub_(other._data)
        return self

    def scalar_lmultiply_inplace(self, scalar: Union[Scalar, Tensor]) -> DenseVector:
        self._make_mutable()
        self._data.mul_(scalar)
        return self

    def scalar_rmultiply_inplace(self, scalar: Union[Scalar, Tensor]) -> DenseVector:
        return self.scalar_lmultiply_inplace(scalar)

    def scalar_rdivide_inplace(self, rational: Union[Scalar, Tensor]) -> DenseVector:
        self._make_mutable()
        self._data.div_(rational)
        return self

    def scalar_ldivide_inplace(self, rational: Union[Scalar, Tensor]) -> DenseVector:
        return self.scalar_rdivide_inplace(rational)

    def add_scalar_lmultiply(
        self, other: DenseVector, scalar: Union[Scalar, Tensor]
    ) -> DenseVector:
        """``self += scalar * other``."""
        self._check_operand(other)
        self._make_mutable()
        self._data[: other._size].add_(other._data * scalar)
        return self

    add_scalar_rmultiply = add_scalar_lmultiply

    def sub_scalar_lmultiply(
        self, other: DenseVector, scalar: Union[Scalar, Tensor]
    ) -> DenseVector:
        """``self -= scalar * other``."""
        self._check_operand(other)
        self._make_mutable()
        self._data[: other._size].sub_(other._data * scalar)
        return self

    sub_scalar_rmultiply = sub_scalar_lmultiply

    def add_scalar_rdivide(
        self, other: DenseVector, rational: Union[Scalar, Tensor]
    ) -> DenseVector:
        """``self += other / rational``."""
        self._check_operand(other)
        self._make_mutable()
        self._data[: other._size].add_(other._data / rational)
        return self

    add_scalar_ldivide = add_scalar_rdivide

    def sub_scalar_rdivide(
        self, other: DenseVector, rational: Union[Scalar, Tensor]
    ) -> DenseVector:
        """``self -= other / rational``."""
        self._check_operand(other)
        self._make_mutable()
        self._data[: other._size].sub_(other._data / rational)
        return self

    sub_scalar_ldivide = sub_scalar_rdivide

    def uminus(self) -> DenseVector:
        return self.copy().uminus_inplace()

    def add(self, other: DenseVector) -> DenseVector:
        result = self.copy()
        result.resize(other.size)
        return result.add_inplace(other)

    def sub(self, other: DenseVector) -> DenseVector:
        result = self.copy()
        result.resize(other.size)
        return result.sub_inplace(other)

    def scalar_lmultiply(self, scalar: Union[Scalar, Tensor]) -> DenseVector:
        return self.copy().scalar_lmultiply_inplace(scalar)

    scalar_rmultiply = scalar_lmultiply

    def scalar_rdivide(self, rational: Union[Scalar, Tensor]) -> DenseVector:
        return self.copy().scalar_rdivide_inplace(rational)

    scalar_ldivide = scalar_rdivide

    def __neg__(self) -> DenseVector:
        return self.uminus()

    def __add__(self, other):
        if not isinstance(other, DenseVector):
            return NotImplemented
        return self.add(other)

    def __sub__(self, other):
        if not isinstance(other, DenseVector):
            return NotImplemented
        return self.sub(other)

    def __iadd__(self, other):
        if not isinstance(other, DenseVector):
            return NotImplemented
        return self.add_inplace(other)

    def __isub__(self, other):
        if not isinstance(other, DenseVector):
            return NotImplemented
        return self.sub_inplace(other)

    def __mul__(self, other):
        if not _is_scalar(other):
            return NotImplemented
        return self.scalar_rmultiply(other)

    def __rmul__(self, other):
        if not _is_scalar(other):
            return NotImplemented
        return self.scalar_lmultiply(other)

    def __imul__(self, other):
        if not _is_scalar(other):
            return NotImplemented
        return self.scalar_rmultiply_inplace(other)

    def __truediv__(self, other):
        if not _is_scalar(other):
            return NotImplemented
        return self.scalar_rdivide(other)

    def __itruediv__(self, other):
        if not _is_scalar(other):
            return NotImplemented
        return self.scalar_rdivide_inplace(other)

    # Comparison and display

    def __eq__(self, other) -> bool:
        if not isinstance(other, DenseVector):
            return NotImplemented
        if other.basis.width != self.basis.width:
            return False
        short, long = (self, other) if self._size <= other._size else (other, self)
        head = long._data[: short._size]
        tail = long._data[short._size :]
        return bool(torch.equal(head, short._data.to(head.dtype))) and not bool(
            tail.any()
        )

    __hash__ = None

    def __str__(self) -> str:
        terms = [f"{value:g}{key}" for key, value in self.items()]
        return " + ".join(terms) if terms else "0"

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(width={self.basis.width}, size={self._size}, "
            f"degree={self.degree()}, dtype={self.field.dtype})"
        )


def _check_flat(basis: TensorBasis, data: Tensor) -> None:
    if data.ndim != 1:
        raise ValueError(f"Coefficient tensors must be one-dimensional; got {tuple(data.shape)}")
    if not (data.dtype.is_floating_point or data.dtype.is_complex):
        raise ValueError(
            f"Coefficient dtype must be floating point or complex; got {data.dtype}"
        )
    size = data.numel()
    if size and basis.vector_dimension_for_index(size - 1) != size:
        raise SizeMismatch(
            f"Coefficient tensor of length {size} ends inside a degree block; "
            f"lengths must be of the form dimension(depth) for width {basis.width}"
        )


__all__ = ["DenseVector", "StorageMode"]
