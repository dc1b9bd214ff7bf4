"""Tests for the dense block kernels against numpy references."""

import pytest
import numpy as np
from numpy.testing import assert_allclose

from sdtensor.core.dense import (
    dense_axpy,
    dense_copy,
    dense_didm,
    dense_dimd,
    dense_dot,
    dense_gemm,
    dense_gemv,
    dense_ger,
    dense_nrm2,
    dense_scal,
)
from sdtensor.core.errors import ShapeMismatchError


class TestLevel1Kernels:
    """Tests for copy, scal, axpy, dot and nrm2."""

    def test_copy(self, rng):
        """Test that copy writes into the destination in place."""
        x = rng.standard_normal((2, 3))
        y = np.zeros((2, 3))
        target = y
        dense_copy(x, y)

        assert target is y
        assert_allclose(y, x)

    def test_scal(self, rng):
        """Test in-place scaling."""
        x = rng.standard_normal((3, 2, 2))
        expected = 2.5 * x
        dense_scal(2.5, x)

        assert_allclose(x, expected)

    def test_axpy(self, rng):
        """Test y := alpha * x + y."""
        x = rng.standard_normal((4, 3))
        y = rng.standard_normal((4, 3))
        expected = -0.5 * x + y
        dense_axpy(-0.5, x, y)

        assert_allclose(y, expected)

    def test_axpy_readonly_source(self, rng):
        """Test that a non-writeable source is accepted."""
        x = rng.standard_normal(5)
        x.flags.writeable = False
        y = np.ones(5)
        dense_axpy(1.0, x, y)

        assert_allclose(y, x + 1.0)

    def test_dot(self, rng):
        """Test dot over all elements of multi-dimensional blocks."""
        x = rng.standard_normal((2, 3))
        y = rng.standard_normal((2, 3))

        assert dense_dot(x, y) == pytest.approx(np.sum(x * y))

    def test_complex_dot_is_unconjugated(self):
        """Test that complex dot does not conjugate x."""
        x = np.array([1j, 2.0])
        y = np.array([1j, 1.0])

        assert dense_dot(x, y) == pytest.approx(-1.0 + 2.0)

    def test_nrm2(self, rng):
        """Test Euclidean norm."""
        x = rng.standard_normal((3, 3))

        assert dense_nrm2(x) == pytest.approx(np.linalg.norm(x))

    def test_shape_mismatch(self):
        """Test that level 1 kernels reject different shapes."""
        with pytest.raises(ShapeMismatchError):
            dense_axpy(1.0, np.zeros(3), np.zeros(4))
        with pytest.raises(ShapeMismatchError):
            dense_copy(np.zeros((2, 2)), np.zeros(4))
        with pytest.raises(ShapeMismatchError):
            dense_dot(np.zeros(2), np.zeros(3))

    def test_non_contiguous_destination(self):
        """Test that a strided destination is rejected."""
        y = np.zeros((4, 4))[:, ::2]
        with pytest.raises(ValueError, match="C-contiguous"):
            dense_scal(2.0, y)


class TestLevel2Kernels:
    """Tests for gemv and ger on multi-dimensional blocks."""

    def test_gemv_no_trans(self, rng):
        """Test gemv contracting the trailing axes of a."""
        a = rng.standard_normal((2, 3, 4, 5))
        x = rng.standard_normal((4, 5))
        y = rng.standard_normal((2, 3))
        expected = 1.5 * np.tensordot(a, x, axes=2) + 0.5 * y
        dense_gemv("N", 1.5, a, x, 0.5, y)

        assert_allclose(y, expected)

    def test_gemv_trans(self, rng):
        """Test gemv contracting the leading axes of a."""
        a = rng.standard_normal((4, 2, 3))
        x = rng.standard_normal(4)
        y = np.zeros((2, 3))
        expected = np.tensordot(x, a, axes=1)
        dense_gemv("T", 1.0, a, x, 1.0, y)

        assert_allclose(y, expected)

    def test_gemv_wrong_destination(self, rng):
        """Test that a destination of the wrong shape is rejected."""
        a = rng.standard_normal((2, 3))
        with pytest.raises(ShapeMismatchError, match="gemv"):
            dense_gemv("N", 1.0, a, np.ones(3), 0.0, np.zeros(3))

    def test_ger(self, rng):
        """Test the outer product over all axes."""
        x = rng.standard_normal((2, 2))
        y = rng.standard_normal(3)
        a = rng.standard_normal((2, 2, 3))
        expected = 2.0 * np.multiply.outer(x, y) + a
        dense_ger(2.0, x, y, a)

        assert_allclose(a, expected)

    def test_ger_wrong_destination(self):
        """Test that ger checks the destination shape."""
        with pytest.raises(ShapeMismatchError, match="ger"):
            dense_ger(1.0, np.ones(2), np.ones(3), np.zeros((3, 2)))


class TestLevel3Kernels:
    """Tests for gemm in every transpose mode."""

    @pytest.mark.parametrize("transa,transb", [("N", "N"), ("N", "T"), ("T", "N"), ("T", "T")])
    def test_gemm_modes(self, rng, transa, transb):
        """Test gemm over two contracted axes against tensordot."""
        rows, k, cols = (2, 3), (4, 2), (5,)
        a_shape = k + rows if transa == "T" else rows + k
        b_shape = cols + k if transb == "T" else k + cols
        a = rng.standard_normal(a_shape)
        b = rng.standard_normal(b_shape)
        c = rng.standard_normal(rows + cols)

        a_axes = [0, 1] if transa == "T" else [2, 3]
        b_axes = [1, 2] if transb == "T" else [0, 1]
        product = np.tensordot(a, b, axes=(a_axes, b_axes))
        expected = 0.75 * product + 2.0 * c

        dense_gemm(transa, transb, 0.75, a, b, 2.0, c, 2)

        assert_allclose(c, expected)

    def test_gemm_outer(self, rng):
        """Test that zero contracted axes yield the outer product."""
        a = rng.standard_normal(3)
        b = rng.standard_normal(2)
        c = np.zeros((3, 2))
        dense_gemm("N", "N", 1.0, a, b, 0.0, c, 0)

        assert_allclose(c, np.multiply.outer(a, b))

    def test_gemm_mismatch(self, rng):
        """Test that differing contracted axes are rejected."""
        a = rng.standard_normal((2, 3))
        b = rng.standard_normal((4, 2))
        with pytest.raises(ShapeMismatchError, match="contracted"):
            dense_gemm("N", "N", 1.0, a, b, 0.0, np.zeros((2, 2)), 1)


class TestDiagonalKernels:
    """Tests for diagonal scaling."""

    def test_dimd(self, rng):
        """Test scaling of the trailing axes."""
        a = rng.standard_normal((2, 3))
        d = rng.standard_normal(3)
        expected = a * d
        dense_dimd(a, d)

        assert_allclose(a, expected)

    def test_didm(self, rng):
        """Test scaling of the leading axes."""
        b = rng.standard_normal((3, 2, 2))
        d = rng.standard_normal(3)
        expected = d[:, None, None] * b
        dense_didm(d, b)

        assert_allclose(b, expected)

    def test_diagonal_mismatch(self):
        """Test that the diagonal must match the scaled axes."""
        with pytest.raises(ShapeMismatchError, match="dimd"):
            dense_dimd(np.zeros((2, 3)), np.ones(2))
        with pytest.raises(ShapeMismatchError, match="didm"):
            dense_didm(np.ones(3), np.zeros((2, 3)))
