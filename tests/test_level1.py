"""Tests for the level 1 drivers: copy, scal, dot, axpy, nrm2."""

import pytest
import numpy as np
from numpy.testing import assert_allclose, assert_array_equal

from sdtensor.blas.drivers import sd_axpy, sd_copy, sd_dot, sd_nrm2, sd_scal
from sdtensor.config.options import BlasOptions
from sdtensor.core.block_tensor import BlockTensor, allow_tags
from sdtensor.core.errors import BlockUnavailableError, ShapeMismatchError

DIMS = [(2, 3), (1, 2, 2)]


class TestCopy:
    """Tests for sd_copy."""

    def test_copy_reproduces_blocks(self, make_tensor):
        """Test that y receives exactly the blocks of x."""
        x = make_tensor(DIMS, tags=[0, 2, 5])
        y = BlockTensor()
        sd_copy(x, y)

        assert y.block_dims == x.block_dims
        assert y.tags() == [0, 2, 5]
        assert_array_equal(y.to_dense(), x.to_dense())

    def test_copy_then_dot(self, make_tensor):
        """Test dot(x, copy(x)) == dot(x, x)."""
        x = make_tensor(DIMS, density=0.5)
        y = BlockTensor()
        sd_copy(x, y)

        assert sd_dot(x, y) == pytest.approx(sd_dot(x, x))

    def test_copy_replaces_destination(self, make_tensor):
        """Test that existing blocks of y are dropped."""
        x = make_tensor(DIMS, tags=[1])
        y = make_tensor([(4,)], tags=[0])
        sd_copy(x, y)

        assert y.shape == (2, 3)
        assert y.tags() == [1]

    def test_copy_does_not_alias(self, make_tensor):
        """Test that the copy owns its blocks."""
        x = make_tensor(DIMS, tags=[3])
        y = BlockTensor()
        sd_copy(x, y)
        y.find(3)[:] = 0.0

        assert np.any(x.find(3) != 0.0)

    def test_copy_rejected_block(self, make_tensor):
        """Test that a block y cannot hold raises without up-casting."""
        x = make_tensor(DIMS, tags=[0, 4])
        y = BlockTensor(legality=allow_tags([0]))
        with pytest.raises(BlockUnavailableError) as excinfo:
            sd_copy(x, y)
        assert excinfo.value.operation == "copy"
        assert excinfo.value.tag == 4

    def test_upcast_skips_rejected_blocks(self, make_tensor):
        """Test that up-casting drops blocks outside y's pattern."""
        x = make_tensor(DIMS, tags=[0, 1, 4])
        y = make_tensor(DIMS, tags=[2], legality=allow_tags([0, 2, 4]))
        sd_copy(x, y, BlasOptions(allow_missing_as_zero=True))

        assert y.tags() == [0, 4]
        assert_array_equal(y.find(0), x.find(0))
        assert_array_equal(y.find(4), x.find(4))

    def test_upcast_shape_mismatch(self, make_tensor):
        """Test that up-casting between different shapes is rejected."""
        x = make_tensor(DIMS, tags=[0])
        y = BlockTensor([(2, 3), (5,)])
        with pytest.raises(ShapeMismatchError, match="up-cast"):
            sd_copy(x, y, BlasOptions(allow_missing_as_zero=True))

    def test_copy_unshaped_source(self):
        """Test that copying from an unshaped tensor is rejected."""
        with pytest.raises(ShapeMismatchError):
            sd_copy(BlockTensor(), BlockTensor())


class TestScal:
    """Tests for sd_scal."""

    def test_scal(self, make_tensor):
        """Test in-place scaling of every stored block."""
        x = make_tensor(DIMS, density=0.5)
        expected = 3.0 * x.to_dense()
        tags = x.tags()
        sd_scal(3.0, x)

        assert x.tags() == tags
        assert_allclose(x.to_dense(), expected)

    def test_scal_by_zero_keeps_blocks(self, make_tensor):
        """Test that scaling by zero does not erase blocks."""
        x = make_tensor(DIMS, tags=[0, 5])
        sd_scal(0.0, x)

        assert x.tags() == [0, 5]
        assert x.to_dense().sum() == 0.0


class TestDotAndNorm:
    """Tests for sd_dot and sd_nrm2."""

    def test_dot_matches_dense(self, make_tensor):
        """Test the sparse dot against a dense reference."""
        x = make_tensor(DIMS, tags=[0, 1, 3, 5])
        y = make_tensor(DIMS, tags=[1, 2, 5])

        expected = np.sum(x.to_dense() * y.to_dense())
        assert sd_dot(x, y) == pytest.approx(expected)

    def test_dot_symmetric(self, make_tensor):
        """Test dot(x, y) == dot(y, x)."""
        x = make_tensor(DIMS, density=0.6)
        y = make_tensor(DIMS, density=0.6)

        assert sd_dot(x, y) == pytest.approx(sd_dot(y, x))

    def test_dot_disjoint(self, make_tensor):
        """Test that disjoint patterns give zero."""
        x = make_tensor(DIMS, tags=[0])
        y = make_tensor(DIMS, tags=[1])

        assert sd_dot(x, y) == 0.0

    def test_dot_shape_mismatch(self, make_tensor):
        """Test that different shapes are rejected."""
        x = make_tensor(DIMS, tags=[0])
        y = make_tensor([(2, 3), (5,)], tags=[0])
        with pytest.raises(ShapeMismatchError, match="dot"):
            sd_dot(x, y)

    def test_nrm2(self, make_tensor):
        """Test the norm against a dense reference."""
        x = make_tensor(DIMS, density=0.7)

        assert sd_nrm2(x) == pytest.approx(np.linalg.norm(x.to_dense()))
        assert sd_nrm2(x) ** 2 == pytest.approx(sd_dot(x, x))


class TestAxpy:
    """Tests for sd_axpy."""

    def test_axpy_matches_dense(self, make_tensor):
        """Test y := alpha * x + y against a dense reference."""
        x = make_tensor(DIMS, tags=[0, 2, 4])
        y = make_tensor(DIMS, tags=[2, 3])
        expected = 0.5 * x.to_dense() + y.to_dense()
        sd_axpy(0.5, x, y)

        assert y.tags() == [0, 2, 3, 4]
        assert_allclose(y.to_dense(), expected)

    def test_axpy_zero_alpha(self, make_tensor):
        """Test that alpha = 0 leaves values unchanged."""
        x = make_tensor(DIMS, density=0.5)
        y = make_tensor(DIMS, density=0.5)
        before = y.to_dense()
        sd_axpy(0.0, x, y)

        assert_allclose(y.to_dense(), before)

    def test_axpy_round_trip(self, make_tensor):
        """Test that adding and subtracting x restores y."""
        x = make_tensor(DIMS, density=0.5)
        y = make_tensor(DIMS, tags=list(range(6)))
        before = y.to_dense()
        sd_axpy(1.0, x, y)
        sd_axpy(-1.0, x, y)

        assert_allclose(y.to_dense(), before, atol=1e-12)

    def test_axpy_into_empty(self, make_tensor):
        """Test that an empty destination takes the source's shape."""
        x = make_tensor(DIMS, tags=[1, 5])
        y = BlockTensor()
        sd_axpy(2.0, x, y)

        assert y.block_dims == x.block_dims
        assert_allclose(y.to_dense(), 2.0 * x.to_dense())

    def test_axpy_shape_mismatch(self, make_tensor):
        """Test that a populated destination of another shape is rejected."""
        x = make_tensor(DIMS, tags=[0])
        y = make_tensor([(2, 3), (5,)], tags=[0])
        with pytest.raises(ShapeMismatchError, match="axpy"):
            sd_axpy(1.0, x, y)

    def test_axpy_rejected_block(self, make_tensor):
        """Test that a block y cannot hold raises BlockUnavailableError."""
        x = make_tensor(DIMS, tags=[0, 3])
        y = BlockTensor(DIMS, legality=allow_tags([0]))
        with pytest.raises(BlockUnavailableError, match="axpy"):
            sd_axpy(1.0, x, y)

    @pytest.mark.parametrize("mode", ["serial", "threaded"])
    def test_axpy_execution_modes(self, make_tensor, mode):
        """Test that both execution modes give the same result."""
        x = make_tensor(DIMS, tags=list(range(6)))
        y = make_tensor(DIMS, tags=list(range(6)))
        expected = 1.25 * x.to_dense() + y.to_dense()
        sd_axpy(1.25, x, y, BlasOptions(mode=mode, n_workers=3))

        assert_allclose(y.to_dense(), expected)
