"""BLAS-like drivers for block-sparse tensors

Public entry points of the package. Each driver validates (or resizes)
the destination's block shape before any block is allocated, resolves
transposes once by building tag-permuted operand views, builds the task
list, and hands it to the execution strategy.

Level 1: sd_copy, sd_scal, sd_dot, sd_axpy, sd_nrm2
Level 2: sd_gemv, sd_ger
Level 3: sd_gemm
Other:   sd_dimd, sd_didm (diagonal scaling), sd_contract (picks gemv/gemm)

Failure model:
    ShapeMismatchError is raised before anything is written.
    BlockUnavailableError is raised while the task list is being built;
    no task of that call has run yet, but destination blocks reserved up
    to that point stay allocated (zero-filled).

Import Policy:
    from sdtensor.blas.drivers import sd_gemm, sd_axpy
"""

from __future__ import annotations

import logging
import math
from typing import Optional

import numpy as np

from sdtensor.blas.dispatch import (
    ScaleFunction,
    build_axpy_tasks,
    build_copy_tasks,
    build_gemm_tasks,
    build_gemv_tasks,
    build_ger_tasks,
    build_scal_tasks,
    sparse_dot,
)
from sdtensor.blas.execution import run_tasks
from sdtensor.config.enums import Transpose
from sdtensor.config.options import BlasOptions, resolve_options
from sdtensor.core.block_tensor import BlockTensor
from sdtensor.core.dense import dense_didm, dense_dimd, dense_nrm2
from sdtensor.core.errors import ContractionError, ShapeMismatchError
from sdtensor.core.index import (
    contracted_rank,
    gemm_contract_shape,
    gemv_contract_shape,
    ger_contract_shape,
)

logger = logging.getLogger(__name__)


def _require_shaped(x: BlockTensor, name: str) -> None:
    if x.block_dims is None:
        raise ShapeMismatchError(f"{name} has no declared shape")


def _prepare_destination(c: BlockTensor, c_dims, dtype, operation: str) -> bool:
    """Validate a non-empty destination or rebind an empty one.

    Returns:
        True if c held blocks (and therefore must be pre-scaled by beta)
    """
    if len(c) > 0:
        if c.block_dims != tuple(c_dims):
            raise ShapeMismatchError(
                f"{operation}: destination has shape {c.block_dims}, expected {tuple(c_dims)}"
            )
        return True
    c.resize(c_dims, destructive=True, dtype=dtype)
    return False


def _resolve_contracted_rank(a: BlockTensor, b: BlockTensor, c: BlockTensor,
                             n_contract: Optional[int]) -> int:
    if n_contract is not None:
        return n_contract
    if c.rank is None:
        raise ContractionError(
            "contracted rank cannot be inferred: pass n_contract or shape the destination"
        )
    return contracted_rank(a.rank, b.rank, c.rank)


# =============================================================================
# Level 1
# =============================================================================

def sd_copy(x: BlockTensor, y: BlockTensor, options: Optional[BlasOptions] = None,
            executor=None) -> None:
    """y := x

    Without up-casting, y is reshaped to x's block dims and receives
    exactly x's blocks. With options.allow_missing_as_zero (up-cast), y
    keeps its shape and legality, which must describe the same grid as x;
    y's old blocks are dropped and blocks of x that y cannot hold are
    skipped.

    Raises:
        ShapeMismatchError: If up-casting between different shapes
        BlockUnavailableError: If y rejects a block of x and up-casting
            was not requested
    """
    options = resolve_options(options)
    _require_shaped(x, "x")
    if options.allow_missing_as_zero:
        if x.block_dims != y.block_dims:
            raise ShapeMismatchError(
                f"copy: up-cast requires equal shapes, x {x.block_dims} vs y {y.block_dims}"
            )
        y.clear()
    else:
        y.resize(x.block_dims, destructive=True, dtype=x.dtype)

    tasks = build_copy_tasks(x, y, options.allow_missing_as_zero)
    run_tasks(tasks, options, executor)


def sd_scal(alpha, x: BlockTensor, options: Optional[BlasOptions] = None,
            executor=None) -> None:
    """x := alpha * x, in place on the stored blocks."""
    options = resolve_options(options)
    run_tasks(build_scal_tasks(alpha, x), options, executor)


def sd_dot(x: BlockTensor, y: BlockTensor):
    """Sum of x * y over blocks stored in both.

    Raises:
        ShapeMismatchError: If x and y have different block shapes
    """
    if x.block_dims != y.block_dims:
        raise ShapeMismatchError(
            f"dot: shapes differ, x {x.block_dims} vs y {y.block_dims}"
        )
    return sparse_dot(x, y)


def sd_nrm2(x: BlockTensor) -> float:
    """Euclidean norm over all stored elements."""
    return math.sqrt(sum(dense_nrm2(block) ** 2 for _, block in x.items()))


def sd_axpy(alpha, x: BlockTensor, y: BlockTensor, options: Optional[BlasOptions] = None,
            executor=None) -> None:
    """y := alpha * x + y

    An empty y is reshaped to x's block dims.

    Raises:
        ShapeMismatchError: If y holds blocks and has a different shape
        BlockUnavailableError: If y rejects a block of x
    """
    options = resolve_options(options)
    _require_shaped(x, "x")
    _prepare_destination(y, x.block_dims, x.dtype, "axpy")
    run_tasks(build_axpy_tasks(alpha, x, y), options, executor)


# =============================================================================
# Level 2
# =============================================================================

def sd_gemv(
    transa,
    alpha,
    a: BlockTensor,
    b: BlockTensor,
    beta,
    c: BlockTensor,
    scale_fn: Optional[ScaleFunction] = None,
    options: Optional[BlasOptions] = None,
    executor=None,
) -> None:
    """c := alpha * op(a) . b + beta * c, contracting every axis of b.

    Raises:
        ShapeMismatchError: If a and b do not contract, or c holds blocks
            of another shape
        BlockUnavailableError: If c cannot allocate a required block
    """
    options = resolve_options(options)
    transa = Transpose.coerce(transa)
    _require_shaped(a, "a")
    _require_shaped(b, "b")
    c_dims = gemv_contract_shape(transa, a.block_dims, b.block_dims)
    dtype = np.result_type(a.dtype, b.dtype)
    if _prepare_destination(c, c_dims, dtype, "gemv"):
        sd_scal(beta, c, options, executor)

    a_op = a.transpose_view(b.rank) if transa.is_trans else a
    tasks = build_gemv_tasks(transa, alpha, a_op, b, c, scale_fn)
    run_tasks(tasks, options, executor)


def sd_ger(
    alpha,
    a: BlockTensor,
    b: BlockTensor,
    c: BlockTensor,
    scale_fn: Optional[ScaleFunction] = None,
    options: Optional[BlasOptions] = None,
    executor=None,
) -> None:
    """c := alpha * a ^ b + c, the outer product over all axes.

    Raises:
        ShapeMismatchError: If c holds blocks of another shape
        BlockUnavailableError: If c cannot allocate a required block
    """
    options = resolve_options(options)
    _require_shaped(a, "a")
    _require_shaped(b, "b")
    c_dims = ger_contract_shape(a.block_dims, b.block_dims)
    _prepare_destination(c, c_dims, np.result_type(a.dtype, b.dtype), "ger")

    tasks = build_ger_tasks(alpha, a, b, c, scale_fn)
    run_tasks(tasks, options, executor)


# =============================================================================
# Level 3
# =============================================================================

def sd_gemm(
    transa,
    transb,
    alpha,
    a: BlockTensor,
    b: BlockTensor,
    beta,
    c: BlockTensor,
    scale_fn: Optional[ScaleFunction] = None,
    n_contract: Optional[int] = None,
    options: Optional[BlasOptions] = None,
    executor=None,
) -> None:
    """c := alpha * op(a) . op(b) + beta * c over K contracted axes.

    K is n_contract if given, otherwise (rank(a) + rank(b) - rank(c)) / 2
    from c's declared rank.

    Raises:
        ContractionError: If K cannot be determined or is inconsistent
        ShapeMismatchError: If the contracted axes differ, or c holds
            blocks of another shape
        BlockUnavailableError: If c cannot allocate a required block
    """
    options = resolve_options(options)
    transa = Transpose.coerce(transa)
    transb = Transpose.coerce(transb)
    _require_shaped(a, "a")
    _require_shaped(b, "b")
    k = _resolve_contracted_rank(a, b, c, n_contract)
    logger.debug(f"gemm: {transa.value}{transb.value} ranks ({a.rank}, {b.rank}) contracting {k} axes")
    _, c_dims = gemm_contract_shape(transa, transb, a.block_dims, b.block_dims, k)
    dtype = np.result_type(a.dtype, b.dtype)
    if _prepare_destination(c, c_dims, dtype, "gemm"):
        sd_scal(beta, c, options, executor)

    # bring a to (rows, k) and b to (cols, k) tag layouts
    a_op = a.transpose_view(k) if transa.is_trans else a
    b_op = b if transb.is_trans else b.transpose_view(k)

    tasks = build_gemm_tasks(transa, transb, alpha, a_op, b_op, c, k, scale_fn)
    run_tasks(tasks, options, executor)


# =============================================================================
# Diagonal scaling
# =============================================================================

def sd_dimd(a: BlockTensor, d: BlockTensor) -> None:
    """a := a . diag(d), with d spanning the trailing axes of a.

    Blocks of a whose diagonal block is not stored are left unchanged.
    """
    _require_shaped(a, "a")
    _require_shaped(d, "d")
    if a.block_dims[a.rank - d.rank:] != d.block_dims:
        raise ShapeMismatchError(
            f"dimd: diagonal {d.block_dims} does not match trailing axes of {a.block_dims}"
        )
    stride = d.size_total
    for tag, block in a.items():
        d_block = d.find(tag % stride)
        if d_block is not None:
            dense_dimd(block, d_block)


def sd_didm(d: BlockTensor, b: BlockTensor) -> None:
    """b := diag(d) . b, with d spanning the leading axes of b.

    Blocks of b whose diagonal block is not stored are left unchanged.
    """
    _require_shaped(d, "d")
    _require_shaped(b, "b")
    if b.block_dims[:d.rank] != d.block_dims:
        raise ShapeMismatchError(
            f"didm: diagonal {d.block_dims} does not match leading axes of {b.block_dims}"
        )
    stride = math.prod(b.shape[d.rank:])
    for tag, block in b.items():
        d_block = d.find(tag // stride)
        if d_block is not None:
            dense_didm(d_block, block)


# =============================================================================
# Wrapper
# =============================================================================

def sd_contract(
    alpha,
    a: BlockTensor,
    b: BlockTensor,
    beta,
    c: BlockTensor,
    n_contract: Optional[int] = None,
    options: Optional[BlasOptions] = None,
    executor=None,
) -> None:
    """c := alpha * a . b + beta * c, picking the cheapest BLAS level.

    Contracts the trailing K axes of a with the leading K axes of b.
    When every axis of a (or of b) is contracted the contraction is a
    matrix-vector product; otherwise it is a general matrix product.
    """
    _require_shaped(a, "a")
    _require_shaped(b, "b")
    k = _resolve_contracted_rank(a, b, c, n_contract)
    logger.debug(f"contract: ranks ({a.rank}, {b.rank}) contracting {k} axes")
    if a.rank == k:
        sd_gemv(Transpose.TRANS, alpha, b, a, beta, c, options=options, executor=executor)
    elif b.rank == k:
        sd_gemv(Transpose.NO_TRANS, alpha, a, b, beta, c, options=options, executor=executor)
    else:
        sd_gemm(Transpose.NO_TRANS, Transpose.NO_TRANS, alpha, a, b, beta, c,
                n_contract=k, options=options, executor=executor)
