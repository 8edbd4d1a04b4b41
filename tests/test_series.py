"""Tests for exp, log and fmexp and the algebra object."""

import math

import pytest
import torch

from free_tensors_pytorch import (
    FreeTensor,
    FreeTensorAlgebra,
    LengthExceeded,
    TensorKey,
    tensor_exp,
    tensor_fmexp,
    tensor_log,
)


def _random_element(algebra: FreeTensorAlgebra, seed: int, unit: float = 0.0) -> FreeTensor:
    generator = torch.Generator().manual_seed(seed)
    data = 0.5 * torch.randn(algebra.dimension, generator=generator, dtype=torch.float64)
    data[0] = unit
    return algebra.from_tensor(data)


class TestAlgebra:
    def test_build_validates(self):
        with pytest.raises(ValueError):
            FreeTensorAlgebra.build(0, 2)
        with pytest.raises(ValueError):
            FreeTensorAlgebra.build(2, -1)
        with pytest.raises(ValueError):
            FreeTensorAlgebra.build(2, 2, dtype=torch.int32)
        with pytest.raises(LengthExceeded):
            FreeTensorAlgebra.build(3, TensorKey.max_depth(3) + 1)

    def test_build_defaults(self):
        algebra = FreeTensorAlgebra.build(3, 2)
        assert algebra.dtype == torch.float64
        assert algebra.device == torch.device("cpu")
        assert algebra.max_degree == 2
        assert algebra.dimension == 13

    def test_constructors(self):
        algebra = FreeTensorAlgebra.build(2, 2, dtype=torch.float32)
        assert algebra.zero().size == 7
        assert algebra.zero().as_tensor().dtype == torch.float32
        assert algebra.unit()[TensorKey.new(2)] == 1.0
        assert algebra.from_letters([2, 1], 3.0)[algebra.key([2, 1])] == 3.0
        items = algebra.from_items([(algebra.key([1]), 1.0), (algebra.key([1]), 1.0)])
        assert items[algebra.key([1])] == 2.0

    def test_from_increment(self):
        algebra = FreeTensorAlgebra.build(3, 2)
        vec = algebra.from_increment(torch.tensor([1.0, -2.0, 0.5]))
        torch.testing.assert_close(
            vec.as_tensor(), torch.tensor([0.0, 1.0, -2.0, 0.5], dtype=torch.float64)
        )
        with pytest.raises(ValueError):
            algebra.from_increment(torch.ones(2))


class TestExp:
    def test_exp_of_letter(self):
        algebra = FreeTensorAlgebra.build(2, 4)
        result = algebra.exp(algebra.from_letters([1], 2.0))
        for k in range(5):
            expected = 2.0**k / math.factorial(k)
            assert result[algebra.key([1] * k)] == pytest.approx(expected)
        assert result[algebra.key([2])] == 0.0

    def test_exp_of_zero_is_unit(self):
        algebra = FreeTensorAlgebra.build(2, 3)
        assert algebra.exp(algebra.zero()) == algebra.unit()

    def test_depth_zero_is_trivial(self):
        algebra = FreeTensorAlgebra.build(2, 0)
        x = algebra.from_letters([1])
        assert algebra.exp(x) == algebra.unit()
        assert algebra.log(algebra.unit()) == algebra.zero()
        a = algebra.from_letters([2], 3.0)
        algebra.fmexp(a, x)
        assert a == algebra.from_letters([2], 3.0)

    def test_exp_of_sum_of_commuting_letters(self):
        algebra = FreeTensorAlgebra.build(1, 5)
        x = algebra.from_letters([1], 0.3)
        y = algebra.from_letters([1], -0.7)
        torch.testing.assert_close(
            algebra.exp(x + y).as_tensor(),
            algebra.multiply(algebra.exp(x), algebra.exp(y)).as_tensor(),
        )

    def test_negative_degree(self):
        algebra = FreeTensorAlgebra.build(2, 2)
        with pytest.raises(ValueError):
            tensor_exp(algebra.unit(), -1)


class TestLog:
    @pytest.mark.parametrize("width,depth", [(2, 4), (3, 3), (4, 2)])
    def test_log_inverts_exp(self, width: int, depth: int) -> None:
        algebra = FreeTensorAlgebra.build(width, depth)
        x = _random_element(algebra, seed=width * 10 + depth)
        torch.testing.assert_close(algebra.log(algebra.exp(x)).as_tensor(), x.as_tensor())

    def test_exp_inverts_log(self):
        algebra = FreeTensorAlgebra.build(2, 4)
        g = _random_element(algebra, seed=3, unit=1.0)
        torch.testing.assert_close(algebra.exp(algebra.log(g)).as_tensor(), g.as_tensor())

    def test_log_ignores_unit_term(self):
        algebra = FreeTensorAlgebra.build(2, 3)
        x = _random_element(algebra, seed=4, unit=0.0)
        shifted = x.copy()
        shifted[TensorKey.new(2)] = 5.0
        torch.testing.assert_close(
            tensor_log(shifted, 3).as_tensor(), tensor_log(x, 3).as_tensor()
        )

    def test_log_of_unit_plus_letter(self):
        algebra = FreeTensorAlgebra.build(1, 4)
        g = algebra.unit() + algebra.from_letters([1], 0.5)
        result = algebra.log(g)
        expected = [0.0] + [(-1) ** (k + 1) * 0.5**k / k for k in range(1, 5)]
        torch.testing.assert_close(
            result.as_tensor(), torch.tensor(expected, dtype=torch.float64)
        )


class TestFmexp:
    @pytest.mark.parametrize("width,depth", [(2, 4), (3, 3)])
    def test_fmexp_matches_multiply_by_exp(self, width: int, depth: int) -> None:
        algebra = FreeTensorAlgebra.build(width, depth)
        a = _random_element(algebra, seed=5, unit=1.3)
        x = _random_element(algebra, seed=6)
        expected = algebra.multiply(a, algebra.exp(x))
        returned = algebra.fmexp(a, x)
        assert returned is a
        torch.testing.assert_close(a.as_tensor(), expected.as_tensor())

    def test_fmexp_ignores_unit_of_exponent(self):
        algebra = FreeTensorAlgebra.build(2, 3)
        a = _random_element(algebra, seed=7, unit=1.0)
        x = _random_element(algebra, seed=8, unit=0.0)
        shifted = x.copy()
        shifted[TensorKey.new(2)] = 2.0
        expected = tensor_fmexp(a.copy(), x, 3)
        torch.testing.assert_close(
            tensor_fmexp(a, shifted, 3).as_tensor(), expected.as_tensor()
        )

    def test_fmexp_from_unit_grows_to_full_depth(self):
        algebra = FreeTensorAlgebra.build(2, 3)
        a = algebra.unit()
        x = algebra.from_letters([1], 1.0) + algebra.from_letters([2], 1.0)
        algebra.fmexp(a, x)
        assert a.size == algebra.dimension
        torch.testing.assert_close(a.as_tensor(), algebra.exp(x).as_tensor())

    def test_fmexp_leaves_exponent_untouched(self):
        algebra = FreeTensorAlgebra.build(2, 3)
        a = _random_element(algebra, seed=9, unit=1.0)
        x = _random_element(algebra, seed=10, unit=0.5)
        before = x.copy()
        algebra.fmexp(a, x)
        assert x == before


class TestCommutator:
    def test_algebra_commutator_of_exponentials(self):
        algebra = FreeTensorAlgebra.build(2, 3)
        x = algebra.exp(algebra.from_letters([1]))
        y = algebra.exp(algebra.from_letters([2]))
        bracket = algebra.commutator(x, y)
        assert bracket[algebra.key([1, 2])] == pytest.approx(1.0)
        assert bracket[algebra.key([2, 1])] == pytest.approx(-1.0)
        assert bracket[TensorKey.new(2)] == 0.0
