"""Truncated free tensor algebra for PyTorch.

This package stores elements of the free tensor algebra over the letters
``1..width`` as dense, degree-ordered ``torch`` coefficient buffers and
implements the truncated concatenation product and its exponential,
logarithm and fused multiply-exponential.

The main entry points are:

- :class:`TensorKey`: Packed words over the alphabet
- :class:`TensorBasis`: Word/index bijection of the graded basis
- :class:`FreeTensor`: Dense tensors with truncated products
- :class:`FreeTensorAlgebra`: Algebra of fixed width and depth, with ``exp``,
  ``log`` and ``fmexp``
- :func:`signature`: Truncated signature of a piecewise linear path

Examples
--------
>>> import torch
>>> from free_tensors_pytorch import FreeTensorAlgebra
>>>
>>> algebra = FreeTensorAlgebra.build(width=3, depth=2)
>>> x = algebra.from_letters([1])
>>> y = algebra.from_letters([2])
>>> z = algebra.multiply(x, y)
>>> z[algebra.key([1, 2])]
1.0
>>> algebra.dimension
13
"""

from .coefficients import CoefficientField
from .dense_vector import DenseVector, StorageMode
from .errors import (
    FreeTensorError,
    IndexOutOfRange,
    LengthExceeded,
    MissingTruncationDegree,
    SizeMismatch,
)
from .free_tensor import FreeTensor
from .series import FreeTensorAlgebra, tensor_exp, tensor_fmexp, tensor_log
from .signature import signature
from .tensor_basis import TensorBasis, TensorBasisIterator, tensor_basis, tensor_keys
from .tensor_key import TensorKey

__all__ = [
    "TensorKey",
    "TensorBasis",
    "TensorBasisIterator",
    "tensor_basis",
    "tensor_keys",
    "CoefficientField",
    "DenseVector",
    "StorageMode",
    "FreeTensor",
    "FreeTensorAlgebra",
    "tensor_exp",
    "tensor_log",
    "tensor_fmexp",
    "signature",
    "FreeTensorError",
    "LengthExceeded",
    "SizeMismatch",
    "MissingTruncationDegree",
    "IndexOutOfRange",
]
