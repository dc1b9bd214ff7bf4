"""Pytest configuration and shared fixtures for sdtensor tests."""

import pytest
import numpy as np

from sdtensor.blas.execution import SerialExecutor, ThreadedExecutor
from sdtensor.config.options import BlasOptions
from sdtensor.core.block_tensor import BlockTensor


def fill_random(tensor, rng, tags=None, density=1.0):
    """Store random blocks at the given tags (or a random subset of allowed tags)."""
    if tags is None:
        tags = [t for t in range(tensor.size_total)
                if tensor.allowed(t) and rng.random() < density]
    for tag in tags:
        tensor.insert(tag, rng.standard_normal(tensor.block_shape(tag)))
    return tensor


# Fixtures for random data


@pytest.fixture
def rng():
    """Seeded random generator."""
    return np.random.default_rng(20240517)


@pytest.fixture
def make_tensor(rng):
    """Factory for block tensors filled with random blocks."""
    def factory(block_dims, tags=None, density=1.0, legality=None):
        tensor = BlockTensor(block_dims, legality=legality)
        return fill_random(tensor, rng, tags=tags, density=density)
    return factory


# Fixtures for matrices


@pytest.fixture
def diagonal_identity():
    """2x2 grid of 2x2 blocks with identity blocks on the diagonal tags {0, 3}."""
    a = BlockTensor.uniform((2, 2), 2)
    a.insert(0, np.eye(2))
    a.insert(3, np.eye(2))
    return a


@pytest.fixture
def dense_ones():
    """2x2 grid of 2x2 blocks, every block all ones."""
    b = BlockTensor.uniform((2, 2), 2)
    for tag in range(4):
        b.insert(tag, np.ones((2, 2)))
    return b


# Fixtures for execution


@pytest.fixture
def serial_executor():
    """Serial execution strategy."""
    return SerialExecutor()


@pytest.fixture
def threaded_executor():
    """Threaded execution strategy with four workers."""
    return ThreadedExecutor(n_workers=4)


@pytest.fixture
def serial_options():
    """Options forcing serial execution."""
    return BlasOptions(mode="serial")
