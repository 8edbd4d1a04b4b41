"""Compact bit-packed representation of tensor words.

A tensor word is a finite sequence of letters drawn from the alphabet
``1..width``. Storing it as a tuple is wasteful, so a :class:`TensorKey`
packs the letters into the bits of a single 64-bit integer instead: each
letter takes ``bits_per_letter = floor(log2(width)) + 1`` bits and is stored
as ``letter - 1``. Even for an alphabet of 1024 letters, six letters fit
into one key.

Letter positions are counted from the least-significant field. Position 0
holds the *last* letter given at construction, so letter access, iteration
and :meth:`TensorKey.to_letters` run in reverse reading order.
:meth:`TensorKey.word` returns the letters in reading order.

Examples
--------
>>> from free_tensors_pytorch.tensor_key import TensorKey
>>> key = TensorKey.from_letters(3, [1, 2, 3])
>>> key.word()
(1, 2, 3)
>>> key.to_letters()
[3, 2, 1]
>>> key.data
6
>>> TensorKey.max_depth(3)
30
"""

from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache, total_ordering
from typing import Iterable, Iterator, List, NamedTuple, Tuple

from .errors import IndexOutOfRange, LengthExceeded

KEY_BITS = 64


def floor_log2(n: int) -> int:
    """Integer ``floor(log2(n))``, with ``floor_log2(n) == 0`` for ``n < 2``."""
    if n < 2:
        return 0
    return n.bit_length() - 1


def make_mask(n_bits: int, shift: int) -> int:
    """Mask of ``n_bits`` consecutive set bits starting at bit ``shift``.

    >>> bin(make_mask(3, 5))
    '0b11100000'
    """
    return ((1 << n_bits) - 1) << shift


class KeyLayout(NamedTuple):
    """Bit layout of a packed key for a fixed alphabet width."""

    bits_per_letter: int
    size_bits: int
    letter_mask: int
    size_mask: int
    max_depth: int


@lru_cache(maxsize=None)
def key_layout(width: int) -> KeyLayout:
    """Compute (and cache) the packed-key layout for an alphabet ``1..width``.

    The ``size_bits`` header is reserved even though the word length lives in
    its own field, so ``max_depth`` is conservative.

    Raises
    ------
    ValueError
        If ``width < 1``.
    """
    if width < 1:
        raise ValueError(f"width must be >= 1, got {width}")
    bits_per_letter = floor_log2(width) + 1
    size_bits = floor_log2((KEY_BITS - 1) // bits_per_letter)
    return KeyLayout(
        bits_per_letter=bits_per_letter,
        size_bits=size_bits,
        letter_mask=make_mask(bits_per_letter, 0),
        size_mask=make_mask(size_bits, KEY_BITS - size_bits),
        max_depth=(KEY_BITS - size_bits) // bits_per_letter,
    )


@total_ordering
@dataclass(frozen=True)
class TensorKey:
    """A tensor word packed as ``(size, data)`` for an alphabet of ``width`` letters.

    Keys are immutable values; every operation returns a new key. Two keys
    are equal when width, size and data agree. Ordering compares the packed
    ``data`` only, which matches index order within one degree.
    """

    width: int
    size: int = 0
    data: int = 0

    @staticmethod
    def bits_per_letter(width: int) -> int:
        return key_layout(width).bits_per_letter

    @staticmethod
    def size_bits(width: int) -> int:
        return key_layout(width).size_bits

    @staticmethod
    def letter_mask(width: int) -> int:
        return key_layout(width).letter_mask

    @staticmethod
    def size_mask(width: int) -> int:
        return key_layout(width).size_mask

    @staticmethod
    def max_depth(width: int) -> int:
        """Largest word length a key over ``1..width`` can hold."""
        return key_layout(width).max_depth

    @classmethod
    def new(cls, width: int) -> TensorKey:
        """The empty word."""
        key_layout(width)
        return cls(width, 0, 0)

    @classmethod
    def from_letter(cls, width: int, letter: int) -> TensorKey:
        """The word consisting of the single ``letter``."""
        _check_letter(width, letter)
        return cls(width, 1, letter - 1)

    @classmethod
    def from_letters(cls, width: int, letters: Iterable[int]) -> TensorKey:
        """Pack ``letters`` (in reading order) into a key.

        Raises
        ------
        LengthExceeded
            If there are more than ``max_depth(width)`` letters.
        IndexOutOfRange
            If a letter lies outside ``1..width``.
        """
        letters = list(letters)
        layout = key_layout(width)
        if len(letters) > layout.max_depth:
            raise LengthExceeded(
                f"Word of length {len(letters)} exceeds the maximum depth "
                f"{layout.max_depth} for width {width}"
            )
        data = 0
        for letter in letters:
            _check_letter(width, letter)
            data <<= layout.bits_per_letter
            data += letter - 1
        return cls(width, len(letters), data)

    def _get_letter_unadjusted(self, position: int) -> int:
        bits = key_layout(self.width).bits_per_letter
        return (self.data & make_mask(bits, position * bits)) >> (position * bits)

    def letter_at(self, position: int) -> int:
        """Letter stored at ``position``; position 0 is the last letter of the word."""
        if position < 0 or position >= self.size:
            raise IndexOutOfRange(
                f"Letter position {position} outside word of length {self.size}"
            )
        return self._get_letter_unadjusted(position) + 1

    def _push_front_raw(self, raw_letter: int) -> TensorKey:
        layout = key_layout(self.width)
        data = self.data + (
            (raw_letter & layout.letter_mask) << (self.size * layout.bits_per_letter)
        )
        return TensorKey(self.width, self.size + 1, data)

    def prepend(self, letter: int) -> TensorKey:
        """New key with ``letter`` placed in front of the word."""
        max_depth = key_layout(self.width).max_depth
        if self.size >= max_depth:
            raise LengthExceeded(
                f"Cannot extend a word already at the maximum depth {max_depth}"
            )
        _check_letter(self.width, letter)
        return self._push_front_raw(letter - 1)

    def concatenate(self, other: TensorKey) -> TensorKey:
        """The word ``self`` followed by ``other``."""
        if other.width != self.width:
            raise ValueError(
                f"Cannot concatenate keys of width {self.width} and {other.width}"
            )
        layout = key_layout(self.width)
        size = self.size + other.size
        if size > layout.max_depth:
            raise LengthExceeded(
                f"Concatenated word of length {size} exceeds the maximum depth "
                f"{layout.max_depth}"
            )
        shift = other.size * layout.bits_per_letter
        return TensorKey(self.width, size, (self.data << shift) + other.data)

    def __mul__(self, other: TensorKey) -> TensorKey:
        if not isinstance(other, TensorKey):
            return NotImplemented
        return self.concatenate(other)

    def to_letters(self) -> List[int]:
        """Letters in position order (reverse reading order)."""
        return [self._get_letter_unadjusted(i) + 1 for i in range(self.size)]

    def word(self) -> Tuple[int, ...]:
        """Letters in reading order, first letter first."""
        return tuple(
            self._get_letter_unadjusted(i) + 1 for i in reversed(range(self.size))
        )

    def degree(self) -> int:
        return self.size

    def __len__(self) -> int:
        return self.size

    def __iter__(self) -> Iterator[int]:
        for position in range(self.size):
            yield self._get_letter_unadjusted(position) + 1

    def __lt__(self, other: TensorKey) -> bool:
        if not isinstance(other, TensorKey):
            return NotImplemented
        return self.data < other.data

    def __str__(self) -> str:
        return "(" + ", ".join(str(letter) for letter in self) + ")"

    def __repr__(self) -> str:
        return f"TensorKey(width={self.width}, word={self.word()})"


def _check_letter(width: int, letter: int) -> None:
    if letter < 1 or letter > width:
        raise IndexOutOfRange(f"Expected letter between 1 and {width}, got {letter}")


__all__ = [
    "KEY_BITS",
    "KeyLayout",
    "TensorKey",
    "floor_log2",
    "key_layout",
    "make_mask",
]
