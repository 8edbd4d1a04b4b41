"""Truncated multiplication of dense free tensors.

:class:`FreeTensor` adds the concatenation product to :class:`DenseVector`.
All products reduce to two primitives, both parameterised by a transform
applied to every block of elementary products:

- :meth:`FreeTensor.multiply_and_add_into_impl` accumulates
  ``func(lhs ⊗ rhs)`` into ``self``;
- :meth:`FreeTensor.multiply_into_impl` replaces ``self`` by
  ``func(self ⊗ rhs)``, using ``self`` as source and destination.

Output degrees are processed from the highest down, so the lower-degree
blocks a product reads from are still untouched when a block is written.
Every product takes an explicit truncation degree.

Examples
--------
>>> from free_tensors_pytorch import FreeTensor, TensorKey
>>> x = FreeTensor.from_key(TensorKey.from_letter(3, 1))
>>> y = FreeTensor.from_key(TensorKey.from_letter(3, 2))
>>> str(x.multiply(y, 2))
'1(2, 1)'
>>> str(x.commutator(y, 2))
'1(2, 1) + -1(1, 2)'
"""

from __future__ import annotations

import logging
from typing import Optional, Union

import torch
from torch import Tensor

from .coefficients import Scalar
from .dense_vector import DenseVector
from .errors import MissingTruncationDegree
from .tensor_ops import (
    Transform,
    divide_by,
    identity,
    left_scale,
    multiply_into_buffer,
    negate,
    right_scale,
    scale_block_inplace,
)

logger = logging.getLogger(__name__)

ScalarLike = Union[Scalar, Tensor]


def _require_degree(to_degree: Optional[int]) -> int:
    if to_degree is None:
        raise MissingTruncationDegree(
            "Free tensor products need an explicit truncation degree"
        )
    if to_degree < 0:
        raise ValueError(f"Truncation degree must be >= 0, got {to_degree}")
    return to_degree


class FreeTensor(DenseVector):
    """Dense element of the truncated free tensor algebra."""

    def _check_factor(self, other: DenseVector) -> None:
        if not isinstance(other, DenseVector):
            raise TypeError(f"Expected a DenseVector, got {type(other).__name__}")
        if other.basis.width != self.basis.width:
            raise ValueError(
                f"Operands have different widths: {self.basis.width} and {other.basis.width}"
            )

    def _detach_operand(self, other: DenseVector) -> DenseVector:
        if self.shares_storage(other):
            logger.debug("Operand shares storage with the destination; copying it")
            return other.copy()
        return other

    # Primitives

    def multiply_and_add_into_impl(
        self,
        lhs: DenseVector,
        rhs: DenseVector,
        func: Transform,
        to_degree: Optional[int],
    ) -> FreeTensor:
        """``self += func(lhs ⊗ rhs)``, discarding terms above ``to_degree``.

        ``self`` grows to hold degree ``min(to_degree, deg lhs + deg rhs)``
        if it is shorter.
        """
        to_degree = _require_degree(to_degree)
        self._check_factor(lhs)
        self._check_factor(rhs)

        lhs_deg = lhs._top_degree()
        rhs_deg = rhs._top_degree()
        if lhs_deg < 0 or rhs_deg < 0:
            return self
        max_deg = min(to_degree, lhs_deg + rhs_deg)

        lhs = self._detach_operand(lhs)
        rhs = self._detach_operand(rhs)
        if self._top_degree() < max_deg:
            self.resize_to_degree(max_deg)

        basis = self.basis
        out = self.as_mut_tensor()
        lhs_data = lhs.as_tensor()
        rhs_data = rhs.as_tensor()

        for out_deg in range(max_deg, -1, -1):
            out_block = out[basis.degree_range(out_deg)]
            lhs_deg_min = max(0, out_deg - rhs_deg)
            lhs_deg_max = min(out_deg, lhs_deg)
            for lhs_d in range(lhs_deg_max, lhs_deg_min - 1, -1):
                multiply_into_buffer(
                    out_block,
                    lhs_data[basis.degree_range(lhs_d)],
                    rhs_data[basis.degree_range(out_deg - lhs_d)],
                    func,
                )
        return self

    def multiply_into_impl(
        self,
        rhs: DenseVector,
        func: Transform,
        to_degree: Optional[int],
    ) -> FreeTensor:
        """``self := func(self ⊗ rhs)`` in place, discarding terms above ``to_degree``.

        The unit coefficient ``c0`` of ``rhs`` decides how the block of each
        output degree starts out: cleared when ``c0`` is zero, kept as is when
        ``c0`` is one and ``func`` is the identity, and replaced by
        ``func(block * c0)`` otherwise. The remaining cross terms only read
        blocks of ``self`` of strictly lower degree.
        """
        to_degree = _require_degree(to_degree)
        self._check_factor(rhs)

        lhs_deg = self._top_degree()
        if lhs_deg < 0:
            return self
        rhs_deg = rhs._top_degree()
        if rhs_deg < 0:
            self.as_mut_tensor().zero_()
            return self

        rhs = self._detach_operand(rhs)
        max_deg = min(to_degree, lhs_deg + rhs_deg)
        if lhs_deg < max_deg:
            self.resize_to_degree(max_deg)

        basis = self.basis
        data = self.as_mut_tensor()
        data[basis.dimension(max_deg) :].zero_()

        rhs_data = rhs.as_tensor()
        unit = rhs_data[0:1]
        c0 = unit.item()
        clear_block = self.field.is_zero(c0)
        keep_block = self.field.is_one(c0) and func is identity

        for out_deg in range(max_deg, -1, -1):
            boundary = basis.start_of_degree(out_deg)
            # head holds the finished lower degrees, tail starts at the output block.
            head, tail = torch.tensor_split(data, [boundary])
            out_block = tail[: basis.start_of_degree(out_deg + 1) - boundary]

            if out_deg > lhs_deg or clear_block:
                out_block.zero_()
            elif not keep_block:
                scale_block_inplace(out_block, unit, func)

            lhs_deg_min = max(0, out_deg - rhs_deg)
            lhs_deg_max = min(out_deg - 1, lhs_deg)
            for lhs_d in range(lhs_deg_max, lhs_deg_min - 1, -1):
                multiply_into_buffer(
                    out_block,
                    head[basis.degree_range(lhs_d)],
                    rhs_data[basis.degree_range(out_deg - lhs_d)],
                    func,
                )
        return self

    # Products

    def multiply(self, rhs: DenseVector, to_degree: Optional[int]) -> FreeTensor:
        """New tensor ``self ⊗ rhs`` truncated to ``to_degree``."""
        result = self._new_like()
        result.multiply_and_add_into_impl(self, rhs, identity, to_degree)
        return result

    def multiply_inplace(self, rhs: DenseVector, to_degree: Optional[int]) -> FreeTensor:
        return self.multiply_into_impl(rhs, identity, to_degree)

    def add_mul(
        self, lhs: DenseVector, rhs: DenseVector, to_degree: Optional[int]
    ) -> FreeTensor:
        """``self += lhs ⊗ rhs``."""
        return self.multiply_and_add_into_impl(lhs, rhs, identity, to_degree)

    def sub_mul(
        self, lhs: DenseVector, rhs: DenseVector, to_degree: Optional[int]
    ) -> FreeTensor:
        """``self -= lhs ⊗ rhs``."""
        return self.multiply_and_add_into_impl(lhs, rhs, negate, to_degree)

    def commutator(self, rhs: DenseVector, to_degree: Optional[int]) -> FreeTensor:
        """New tensor ``[self, rhs] = self ⊗ rhs - rhs ⊗ self``."""
        result = self._new_like()
        result.add_mul(self, rhs, to_degree).sub_mul(rhs, self, to_degree)
        return result

    def mul_scal_lprod(
        self, rhs: DenseVector, scalar: ScalarLike, to_degree: Optional[int]
    ) -> FreeTensor:
        """``self := scalar * (self ⊗ rhs)``."""
        return self.multiply_into_impl(rhs, left_scale(scalar), to_degree)

    def mul_scal_rprod(
        self, rhs: DenseVector, scalar: ScalarLike, to_degree: Optional[int]
    ) -> FreeTensor:
        """``self := (self ⊗ rhs) * scalar``."""
        return self.multiply_into_impl(rhs, right_scale(scalar), to_degree)

    def mul_rat_ldiv(
        self, rhs: DenseVector, rational: ScalarLike, to_degree: Optional[int]
    ) -> FreeTensor:
        """``self := (self ⊗ rhs) / rational``."""
        return self.multiply_into_impl(rhs, divide_by(rational), to_degree)

    def mul_rat_rdiv(
        self, rhs: DenseVector, rational: ScalarLike, to_degree: Optional[int]
    ) -> FreeTensor:
        """``self := (self ⊗ rhs) / rational``."""
        return self.multiply_into_impl(rhs, divide_by(rational), to_degree)


__all__ = ["FreeTensor"]
