"""The graded free tensor basis over the alphabet ``1..width``.

Words are ordered first by degree and then, within a degree, as base-``width``
numbers read most-significant letter first. The index of a word is therefore

``start_of_degree(len(word)) + sum((letter_i - 1) * width**(len(word) - 1 - i))``

with ``start_of_degree(d) = (width**d - 1) / (width - 1)`` the number of words
of length below ``d``. Every degree occupies one contiguous block of indices,
which is what lets the dense algebra work block by block without ever
looking a word up.

Examples
--------
>>> from free_tensors_pytorch.tensor_basis import tensor_basis
>>> basis = tensor_basis(3)
>>> [basis.start_of_degree(d) for d in range(5)]
[0, 1, 4, 13, 40]
>>> basis.index_to_key(5).word()
(1, 2)
>>> tensor_keys(2, 2)
['', '1', '2', '1,1', '1,2', '2,1', '2,2']
"""

from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
from typing import List, Optional

from .errors import IndexOutOfRange
from .tensor_key import TensorKey, key_layout


@dataclass(frozen=True)
class TensorBasis:
    """Stateless word/index bijection for a fixed alphabet width.

    Instances carry only ``width``; use :func:`tensor_basis` to share one
    instance per width.
    """

    width: int

    def __post_init__(self) -> None:
        key_layout(self.width)

    @property
    def max_degree(self) -> int:
        """Largest degree whose words can be represented as keys."""
        return key_layout(self.width).max_depth

    def start_of_degree(self, deg: int) -> int:
        """Index of the first word of degree ``deg`` (the count of shorter words)."""
        if deg < 0:
            raise IndexOutOfRange(f"Degree must be non-negative, got {deg}")
        if self.width == 1:
            return deg
        return (self.width**deg - 1) // (self.width - 1)

    def degree_range(self, deg: int) -> slice:
        """Slice of the indices occupied by the words of degree ``deg``."""
        return slice(self.start_of_degree(deg), self.start_of_degree(deg + 1))

    def dimension(self, depth: int) -> int:
        """Number of words of degree at most ``depth``."""
        return self.start_of_degree(depth + 1)

    def _check_index(self, index: int) -> None:
        if index < 0 or index >= self.dimension(self.max_degree):
            raise IndexOutOfRange(
                f"Index {index} outside the basis of width {self.width} "
                f"(maximum degree {self.max_degree})"
            )

    def _check_key(self, key: TensorKey) -> None:
        if key.width != self.width:
            raise ValueError(
                f"Key of width {key.width} used with a basis of width {self.width}"
            )

    def index_to_degree(self, index: int) -> int:
        """Degree of the word stored at ``index``."""
        self._check_index(index)
        deg = 0
        while self.start_of_degree(deg + 1) <= index:
            deg += 1
        return deg

    def degree(self, key: TensorKey) -> int:
        return key.size

    @staticmethod
    def compare(lhs: TensorKey, rhs: TensorKey) -> int:
        """Three-way comparison of the packed data, ``-1``, ``0`` or ``1``.

        Only meaningful between keys of the same degree.
        """
        return (lhs.data > rhs.data) - (lhs.data < rhs.data)

    def key_to_index(self, key: TensorKey) -> int:
        """Position of ``key`` in a dense coefficient array."""
        self._check_key(key)
        # Bijective base-width numeral; the 1-based letters absorb the
        # start_of_degree offset.
        result = 0
        for letter in key.word():
            result = result * self.width + letter
        return result

    def index_to_key(self, index: int) -> TensorKey:
        """The word stored at position ``index``."""
        self._check_index(index)
        key = TensorKey.new(self.width)
        pos = index
        while pos > 0:
            pos -= 1
            key = key._push_front_raw(pos % self.width)
            pos //= self.width
        return key

    def vector_dimension_for_key(self, key: TensorKey) -> int:
        """Smallest dense size holding every word of degree up to ``key``'s."""
        return self.start_of_degree(key.size + 1)

    def vector_dimension_for_index(self, index: int) -> int:
        return self.start_of_degree(self.index_to_degree(index) + 1)

    def iter_keys(
        self,
        start: Optional[TensorKey] = None,
        max_degree: Optional[int] = None,
    ) -> TensorBasisIterator:
        return TensorBasisIterator(self, start=start, max_degree=max_degree)


class TensorBasisIterator:
    """Iterate the words of a basis in increasing index order.

    Parameters
    ----------
    basis : TensorBasis
        Basis to walk.
    start : TensorKey, optional
        First key produced; defaults to the empty word.
    max_degree : int, optional
        Stop after the last word of this degree. Defaults to the largest
        representable degree.
    """

    def __init__(
        self,
        basis: TensorBasis,
        start: Optional[TensorKey] = None,
        max_degree: Optional[int] = None,
    ) -> None:
        if max_degree is None:
            max_degree = basis.max_degree
        if max_degree > basis.max_degree:
            raise IndexOutOfRange(
                f"Degree {max_degree} exceeds the maximum degree {basis.max_degree}"
            )
        self._basis = basis
        self._end = basis.dimension(max_degree)
        self._index = 0 if start is None else basis.key_to_index(start)

    def __iter__(self) -> TensorBasisIterator:
        return self

    def __next__(self) -> TensorKey:
        if self._index >= self._end:
            raise StopIteration
        key = self._basis.index_to_key(self._index)
        self._index += 1
        return key


@lru_cache(maxsize=None)
def tensor_basis(width: int) -> TensorBasis:
    """Shared :class:`TensorBasis` for an alphabet of ``width`` letters."""
    return TensorBasis(width)


def tensor_keys(width: int, depth: int) -> List[str]:
    """Human-readable labels of the tensor basis up to ``depth``.

    Words are rendered in reading order with comma-separated letters, the
    empty word as ``""``, in the same order as dense coefficient arrays.

    Parameters
    ----------
    width : int
        Alphabet size, must be >= 1.
    depth : int
        Maximum word length, must be >= 0.

    Returns
    -------
    list[str]
        ``tensor_basis(width).dimension(depth)`` labels.
    """
    if depth < 0:
        raise ValueError(f"depth must be >= 0, got {depth}")
    basis = tensor_basis(width)
    return [
        ",".join(str(letter) for letter in key.word())
        for key in basis.iter_keys(max_degree=depth)
    ]


__all__ = [
    "TensorBasis",
    "TensorBasisIterator",
    "tensor_basis",
    "tensor_keys",
]
