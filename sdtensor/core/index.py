"""Block Index Algebra

Maps block coordinates to and from flattened block tags, and computes the
shape of contraction results.

Tags are the row-major flattening of a block index over the declared block
grid: for shape (s0, s1, ..., sN-1) the index (i0, ..., iN-1) has tag
i0 * s1 * ... * sN-1 + ... + iN-1. A rank-0 grid has a single tag, 0.

The contraction shape functions are generic over the per-axis entries:
they work on grid shapes (tuples of ints) as well as on block dimension
tables (tuples of per-block extents), since both are compared and
concatenated axis by axis.

Import Policy:
    from sdtensor.core.index import index_to_tag, tag_to_index, gemm_contract_shape
"""

from __future__ import annotations

import math
from typing import Sequence, Tuple

from sdtensor.config.enums import Transpose
from sdtensor.core.errors import ContractionError, ShapeMismatchError


# =============================================================================
# Tag <-> index
# =============================================================================

def size_of(shape: Sequence[int]) -> int:
    """Number of tags in a block grid (product of extents, 1 for rank 0)."""
    return math.prod(shape)


def strides(shape: Sequence[int]) -> Tuple[int, ...]:
    """Row-major strides of a block grid."""
    result = [1] * len(shape)
    for axis in range(len(shape) - 2, -1, -1):
        result[axis] = result[axis + 1] * shape[axis + 1]
    return tuple(result)


def index_to_tag(index: Sequence[int], shape: Sequence[int]) -> int:
    """Flatten a block index to its tag.

    Raises:
        IndexError: If the index has the wrong rank or is out of range
    """
    if len(index) != len(shape):
        raise IndexError(f"index {tuple(index)} does not have rank {len(shape)}")
    tag = 0
    for i, extent in zip(index, shape):
        if not 0 <= i < extent:
            raise IndexError(f"index {tuple(index)} out of range for shape {tuple(shape)}")
        tag = tag * extent + i
    return tag


def tag_to_index(tag: int, shape: Sequence[int]) -> Tuple[int, ...]:
    """Unflatten a tag to its block index.

    Raises:
        IndexError: If the tag is outside [0, size_of(shape))
    """
    if not 0 <= tag < size_of(shape):
        raise IndexError(f"tag {tag} out of range for shape {tuple(shape)}")
    index = [0] * len(shape)
    for axis in range(len(shape) - 1, -1, -1):
        tag, index[axis] = divmod(tag, shape[axis])
    return tuple(index)


def transpose_permutation(rank: int, k: int) -> Tuple[int, ...]:
    """Axis permutation moving the first k axes behind the remaining ones."""
    if not 0 <= k <= rank:
        raise ContractionError(f"cannot move {k} axes of a rank-{rank} tensor")
    return tuple(range(k, rank)) + tuple(range(k))


def permute(items: Sequence, perm: Sequence[int]) -> tuple:
    return tuple(items[p] for p in perm)


# =============================================================================
# Contraction shapes
# =============================================================================

def contracted_rank(rank_a: int, rank_b: int, rank_c: int) -> int:
    """Contracted rank K = (rank_a + rank_b - rank_c) / 2.

    Raises:
        ContractionError: If the ranks cannot describe a contraction
    """
    twice_k = rank_a + rank_b - rank_c
    if twice_k < 0 or twice_k % 2 != 0:
        raise ContractionError(
            f"ranks ({rank_a}, {rank_b}) -> {rank_c} do not describe a contraction"
        )
    k = twice_k // 2
    if k > rank_a or k > rank_b:
        raise ContractionError(
            f"contracted rank {k} exceeds operand ranks ({rank_a}, {rank_b})"
        )
    return k


def gemv_contract_shape(transa, a_shape: Sequence, b_shape: Sequence) -> tuple:
    """Result shape of a matrix-vector contraction.

    The whole of b is contracted. For NO_TRANS, a is (rows..., b...);
    for TRANS, a is (b..., rows...).

    Raises:
        ContractionError: If b has a higher rank than a
        ShapeMismatchError: If the contracted axes of a do not match b
    """
    transa = Transpose.coerce(transa)
    na, k = len(a_shape), len(b_shape)
    if k > na:
        raise ContractionError(f"gemv: vector rank {k} exceeds matrix rank {na}")
    if transa.is_trans:
        contracts, rows = tuple(a_shape[:k]), tuple(a_shape[k:])
    else:
        rows, contracts = tuple(a_shape[:na - k]), tuple(a_shape[na - k:])
    if contracts != tuple(b_shape):
        raise ShapeMismatchError(
            f"gemv: contracted shape of a {contracts} does not match b {tuple(b_shape)}"
        )
    return rows


def ger_contract_shape(a_shape: Sequence, b_shape: Sequence) -> tuple:
    """Result shape of an outer product: the concatenation of both shapes."""
    return tuple(a_shape) + tuple(b_shape)


def gemm_contract_shape(
    transa,
    transb,
    a_shape: Sequence,
    b_shape: Sequence,
    n_contract: int,
) -> Tuple[tuple, tuple]:
    """Contracted shape and result shape of a matrix-matrix contraction.

    Operand layouts:
        a NO_TRANS: (rows..., k...)    a TRANS: (k..., rows...)
        b NO_TRANS: (k..., cols...)    b TRANS: (cols..., k...)

    Args:
        transa: Transpose flag of a
        transb: Transpose flag of b
        a_shape: Shape of a
        b_shape: Shape of b
        n_contract: Number of contracted axes K

    Returns:
        (contracts, c_shape) with c_shape = rows + cols

    Raises:
        ContractionError: If n_contract exceeds either rank
        ShapeMismatchError: If the contracted axes of a and b differ
    """
    transa = Transpose.coerce(transa)
    transb = Transpose.coerce(transb)
    na, nb, k = len(a_shape), len(b_shape), n_contract
    if k < 0 or k > na or k > nb:
        raise ContractionError(
            f"gemm: cannot contract {k} axes of ranks ({na}, {nb})"
        )

    if transa.is_trans:
        a_contracts, rows = tuple(a_shape[:k]), tuple(a_shape[k:])
    else:
        rows, a_contracts = tuple(a_shape[:na - k]), tuple(a_shape[na - k:])

    if transb.is_trans:
        cols, b_contracts = tuple(b_shape[:nb - k]), tuple(b_shape[nb - k:])
    else:
        b_contracts, cols = tuple(b_shape[:k]), tuple(b_shape[k:])

    if a_contracts != b_contracts:
        raise ShapeMismatchError(
            f"gemm: contracted shapes differ, a {a_contracts} vs b {b_contracts}"
        )
    return a_contracts, rows + cols


def contract_shape(transa, transb, a_shape: Sequence, b_shape: Sequence,
                   n_contract: int) -> Tuple[int, tuple]:
    """Generic entry point: (contracted rank, result shape) for any contraction."""
    _, c_shape = gemm_contract_shape(transa, transb, a_shape, b_shape, n_contract)
    return n_contract, c_shape
