"""Exceptions raised by the free tensor engine.

All of them are precondition failures detected at the API boundary, before
any coefficient buffer is touched.

Every error is also a builtin ``ValueError`` or ``IndexError``:

>>> from free_tensors_pytorch import TensorKey
>>> try:
...     TensorKey.from_letters(2, [1] * 31)
... except ValueError as exc:
...     print(type(exc).__name__)
LengthExceeded
"""

from __future__ import annotations


class FreeTensorError(Exception):
    """Base class for errors raised by :mod:`free_tensors_pytorch`."""


class LengthExceeded(FreeTensorError, ValueError):
    """A word is longer than the packed key encoding can hold."""


class SizeMismatch(FreeTensorError, ValueError):
    """The right-hand operand of vector arithmetic is larger than the left."""


class MissingTruncationDegree(FreeTensorError, ValueError):
    """An algebra operation was called without a truncation degree."""


class IndexOutOfRange(FreeTensorError, IndexError):
    """A basis index, letter or letter position lies outside its valid range."""


__all__ = [
    "FreeTensorError",
    "LengthExceeded",
    "SizeMismatch",
    "MissingTruncationDegree",
    "IndexOutOfRange",
]
