"""Exponential, logarithm and fused multiply-exponential of free tensors.

All three series are evaluated with Horner's method, so no factorial-sized
intermediate terms are ever formed:

.. math::

    \\exp(x) = 1 + x\\left(1 + \\frac{x}{2}\\left(1 + \\cdots
        \\left(1 + \\frac{x}{D}\\right)\\right)\\right)

where :math:`D` is the truncation degree of the algebra.

Examples
--------
>>> from free_tensors_pytorch import FreeTensorAlgebra
>>> algebra = FreeTensorAlgebra.build(width=2, depth=2)
>>> x = algebra.from_letters([1], 2.0)
>>> algebra.exp(x).as_tensor()
tensor([1., 2., 0., 2., 0., 0., 0.], dtype=torch.float64)
>>> algebra.log(algebra.exp(x)) == x
True
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Optional, Sequence, Tuple, Union

import torch
from torch import Tensor

from .coefficients import CoefficientField, Scalar
from .dense_vector import DenseVector
from .errors import LengthExceeded
from .free_tensor import FreeTensor
from .tensor_basis import TensorBasis, tensor_basis
from .tensor_key import TensorKey


def _check_max_degree(max_degree: int) -> None:
    if max_degree < 0:
        raise ValueError(f"max_degree must be >= 0, got {max_degree}")


def _unit_like(x: FreeTensor) -> FreeTensor:
    return type(x).from_key(TensorKey.new(x.width), field=x.field)


def _without_unit(x: FreeTensor) -> FreeTensor:
    y = x.copy()
    y.erase(TensorKey.new(x.width))
    return y


def tensor_exp(x: FreeTensor, max_degree: int) -> FreeTensor:
    """Truncated exponential ``sum_k x**k / k!`` up to degree ``max_degree``."""
    _check_max_degree(max_degree)
    unit = _unit_like(x)
    result = unit.copy()
    for i in range(max_degree, 0, -1):
        result.mul_rat_rdiv(x, i, max_degree)
        result.add_inplace(unit)
    return result


def tensor_log(x: FreeTensor, max_degree: int) -> FreeTensor:
    """Truncated ``log(1 + y)`` where ``y`` is ``x`` without its unit term."""
    _check_max_degree(max_degree)
    unit = _unit_like(x)
    y = _without_unit(x)
    result = type(x).from_degree(x.basis, 0, x.field)
    for i in range(max_degree, 0, -1):
        if i % 2 == 0:
            result.sub_scalar_rdivide(unit, i)
        else:
            result.add_scalar_rdivide(unit, i)
        result.multiply_inplace(y, max_degree)
    return result


def tensor_fmexp(a: FreeTensor, x: FreeTensor, max_degree: int) -> FreeTensor:
    """Replace ``a`` by ``a ⊗ exp(x)`` in place, ignoring the unit term of ``x``.

    At Horner step ``i`` the running value is only needed up to degree
    ``max_degree - i + 1``, since ``i - 1`` more multiplications by a tensor
    without unit term follow.
    """
    _check_max_degree(max_degree)
    y = _without_unit(x)
    original = a.copy()
    for i in range(max_degree, 0, -1):
        a.mul_rat_rdiv(y, i, max_degree - i + 1)
        a.add_inplace(original)
    return a


@dataclass(frozen=True)
class FreeTensorAlgebra:
    """Truncated free tensor algebra over ``width`` letters up to degree ``depth``.

    Build instances with :meth:`build`. The algebra fixes the truncation
    degree used by its products and series operators.
    """

    width: int
    depth: int
    dtype: torch.dtype = torch.float64
    device: Optional[torch.device] = None

    @classmethod
    def build(
        cls,
        width: int,
        depth: int,
        dtype: torch.dtype = torch.float64,
        device: Optional[Union[torch.device, str]] = None,
    ) -> FreeTensorAlgebra:
        """Validate the parameters and construct the algebra.

        Raises
        ------
        ValueError
            If ``width < 1``, ``depth < 0`` or ``dtype`` is not a floating
            point or complex dtype.
        LengthExceeded
            If words of length ``depth`` cannot be represented as keys.
        """
        basis = tensor_basis(width)
        if depth < 0:
            raise ValueError(f"depth must be >= 0, got {depth}")
        if depth > basis.max_degree:
            raise LengthExceeded(
                f"depth {depth} exceeds the maximum key depth {basis.max_degree} "
                f"for width {width}"
            )
        field = CoefficientField(dtype, device)
        return cls(width=width, depth=depth, dtype=field.dtype, device=field.device)

    @property
    def basis(self) -> TensorBasis:
        return tensor_basis(self.width)

    @property
    def field(self) -> CoefficientField:
        return CoefficientField(self.dtype, self.device)

    @property
    def max_degree(self) -> int:
        return self.depth

    @property
    def dimension(self) -> int:
        """Number of coefficients of a full element of the algebra."""
        return self.basis.dimension(self.depth)

    def zero(self) -> FreeTensor:
        """Zero element with room for every degree up to ``depth``."""
        return FreeTensor.from_degree(self.basis, self.depth, self.field)

    def unit(self) -> FreeTensor:
        return FreeTensor.from_key(TensorKey.new(self.width), field=self.field)

    def key(self, letters: Sequence[int]) -> TensorKey:
        return TensorKey.from_letters(self.width, letters)

    def from_key(self, key: TensorKey, scalar: Union[Scalar, Tensor] = 1) -> FreeTensor:
        return FreeTensor.from_key(key, scalar, field=self.field)

    def from_letters(
        self, letters: Sequence[int], scalar: Union[Scalar, Tensor] = 1
    ) -> FreeTensor:
        return self.from_key(self.key(letters), scalar)

    def from_items(
        self, items: Iterable[Tuple[TensorKey, Union[Scalar, Tensor]]]
    ) -> FreeTensor:
        return FreeTensor.from_items(items, basis=self.basis, field=self.field)

    def from_tensor(self, data: Tensor) -> FreeTensor:
        return FreeTensor.from_tensor(self.basis, data.to(self.dtype))

    def from_increment(self, increment: Tensor) -> FreeTensor:
        """Degree-one tensor with letter coefficients ``increment``."""
        if increment.shape != (self.width,):
            raise ValueError(
                f"Increment must have shape ({self.width},); got {tuple(increment.shape)}"
            )
        result = FreeTensor.from_degree(self.basis, 1, self.field)
        result.as_mut_slice(1).copy_(increment)
        return result

    def multiply(self, lhs: DenseVector, rhs: FreeTensor) -> FreeTensor:
        if not isinstance(lhs, FreeTensor):
            lhs = FreeTensor.borrowed(lhs.basis, lhs.as_tensor())
        return lhs.multiply(rhs, self.depth)

    def commutator(self, lhs: FreeTensor, rhs: FreeTensor) -> FreeTensor:
        return lhs.commutator(rhs, self.depth)

    def exp(self, x: FreeTensor) -> FreeTensor:
        return tensor_exp(x, self.depth)

    def log(self, x: FreeTensor) -> FreeTensor:
        return tensor_log(x, self.depth)

    def fmexp(self, a: FreeTensor, x: FreeTensor) -> FreeTensor:
        """In-place ``a := a ⊗ exp(x)``; returns ``a``."""
        return tensor_fmexp(a, x, self.depth)


__all__ = [
    "FreeTensorAlgebra",
    "tensor_exp",
    "tensor_fmexp",
    "tensor_log",
]
