"""Coefficient fields for dense tensors.

A :class:`CoefficientField` ties a torch floating point (or complex) dtype and
device to the handful of constants the algebra needs: ``zero``, ``one``,
``mone`` and the conversion of a degree count into a scalar.

Examples
--------
>>> import torch
>>> from free_tensors_pytorch import CoefficientField
>>> field = CoefficientField(torch.float32)
>>> field.one, field.mone
(1.0, -1.0)
>>> field.zeros(3)
tensor([0., 0., 0.])
>>> field.is_one(torch.tensor(1.0))
True
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Union

import torch
from torch import Tensor

Scalar = Union[int, float, complex]


@dataclass(frozen=True)
class CoefficientField:
    """Scalar field of coefficients stored in ``dtype`` on ``device``.

    Parameters
    ----------
    dtype : torch.dtype, optional
        Floating point or complex dtype of the coefficients. Default is
        ``torch.float64``.
    device : torch.device or str, optional
        Device holding coefficient buffers. Default is CPU.

    Raises
    ------
    ValueError
        If ``dtype`` is not a floating point or complex dtype (the algebra
        divides by rationals).
    """

    dtype: torch.dtype = torch.float64
    device: Optional[torch.device] = None

    def __post_init__(self) -> None:
        if not (self.dtype.is_floating_point or self.dtype.is_complex):
            raise ValueError(
                f"Coefficient dtype must be floating point or complex; got {self.dtype}"
            )
        device = torch.device("cpu") if self.device is None else torch.device(self.device)
        object.__setattr__(self, "device", device)

    def scalar(self, value: Union[Scalar, Tensor]) -> Scalar:
        """Convert ``value`` into a Python scalar of this field."""
        if isinstance(value, Tensor):
            value = value.item()
        return complex(value) if self.dtype.is_complex else float(value)

    @property
    def zero(self) -> Scalar:
        return self.scalar(0)

    @property
    def one(self) -> Scalar:
        return self.scalar(1)

    @property
    def mone(self) -> Scalar:
        return self.scalar(-1)

    def from_degree(self, deg: int) -> Scalar:
        return self.scalar(deg)

    def is_zero(self, value: Union[Scalar, Tensor]) -> bool:
        return self.scalar(value) == self.zero

    def is_one(self, value: Union[Scalar, Tensor]) -> bool:
        return self.scalar(value) == self.one

    def zeros(self, size: int) -> Tensor:
        return torch.zeros(size, dtype=self.dtype, device=self.device)

    def as_tensor(self, values) -> Tensor:
        return torch.as_tensor(values, dtype=self.dtype, device=self.device)


__all__ = ["CoefficientField", "Scalar"]
