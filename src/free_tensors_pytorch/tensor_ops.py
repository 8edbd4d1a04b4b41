"""Block kernels and per-term transforms of the truncated tensor product.

Within a degree block, the position of a word is the base-``width`` value of
its letters. Concatenating a degree ``d1`` word at block position ``i`` with a
degree ``d2`` word at block position ``j`` therefore lands at position
``i * width**d2 + j`` of the degree ``d1 + d2`` block: the flattened outer
product of the two blocks, laid out exactly like the output block. The
kernels below never look at words at all.

Every algebra operation is one of two kernels combined with a *transform*, a
function applied to each block of elementary products before it is written
to the output (identity, negation, scaling, division).

Examples
--------
>>> import torch
>>> from free_tensors_pytorch.tensor_ops import tensor_product, negate
>>> x = torch.tensor([1.0, 2.0])
>>> y = torch.tensor([3.0, 4.0])
>>> tensor_product(x, y)
tensor([3., 4., 6., 8.])
>>> out = torch.zeros(4)
>>> multiply_into_buffer(out, x, y, negate)
tensor([-3., -4., -6., -8.])
"""

from __future__ import annotations

from typing import Callable, Union

import torch
from torch import Tensor

Transform = Callable[[Tensor], Tensor]
ScalarLike = Union[int, float, complex, Tensor]


def identity(term: Tensor) -> Tensor:
    return term


def negate(term: Tensor) -> Tensor:
    return torch.neg(term)


def left_scale(scalar: ScalarLike) -> Transform:
    """Transform ``t -> scalar * t``."""

    def transform(term: Tensor) -> Tensor:
        return scalar * term

    return transform


def right_scale(scalar: ScalarLike) -> Transform:
    """Transform ``t -> t * scalar``."""

    def transform(term: Tensor) -> Tensor:
        return term * scalar

    return transform


def divide_by(rational: ScalarLike) -> Transform:
    """Transform ``t -> t / rational``."""

    def transform(term: Tensor) -> Tensor:
        return term / rational

    return transform


def tensor_product(x: Tensor, y: Tensor) -> Tensor:
    """Flattened outer product of two degree blocks.

    Parameters
    ----------
    x : Tensor
        Block of shape ``(width**d1,)``.
    y : Tensor
        Block of shape ``(width**d2,)``.

    Returns
    -------
    Tensor
        Block of shape ``(width**(d1 + d2),)`` with ``x`` as the outer
        (slowest varying) index.
    """
    return torch.outer(x, y).reshape(-1)


def multiply_into_buffer(out: Tensor, lhs: Tensor, rhs: Tensor, func: Transform) -> Tensor:
    """``out += func(lhs ⊗ rhs)`` in place.

    ``out`` must not overlap ``lhs`` or ``rhs``.
    """
    return out.add_(func(tensor_product(lhs, rhs)))


def scale_block_inplace(out: Tensor, unit: Tensor, func: Transform) -> Tensor:
    """``out := func(out * unit)`` in place, for a one-element ``unit`` block."""
    return out.copy_(func(out * unit))


__all__ = [
    "Transform",
    "identity",
    "negate",
    "left_scale",
    "right_scale",
    "divide_by",
    "tensor_product",
    "multiply_into_buffer",
    "scale_block_inplace",
]
