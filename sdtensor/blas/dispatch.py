"""Block-pair matching and task construction

For every BLAS-like operation this module enumerates the stored block
pairs that contribute to the result, prunes destination tags rejected by
the destination's legality predicate, reserves the destination blocks that
actually receive a contribution, and returns one task per destination tag.
Nothing is executed here; see execution.py.

Contraction layout (after transposes are resolved by the driver):
- left operand a: tags over (rows..., k...)
- right operand b: tags over (cols..., k...) for gemm, (k...) for gemv
- stride = number of tags spanned by the contracted axes

so tag // stride is the row (or column) and tag % stride the contracted
sub-tag. A row slab of a is the tag interval [i*stride, i*stride+stride-1],
fetched with a range query.

Import Policy:
    from sdtensor.blas.dispatch import build_gemm_tasks, sparse_dot
"""

from __future__ import annotations

import logging
import math
from typing import Callable, Dict, List, Optional, Sequence

from sdtensor.config.enums import Transpose
from sdtensor.blas.tasks import OperationKind, TaskDescriptor
from sdtensor.core.block_tensor import BlockTensor
from sdtensor.core.dense import dense_dot
from sdtensor.core.errors import BlockUnavailableError

logger = logging.getLogger(__name__)

ScaleFunction = Callable[[Sequence[int], Sequence[int], Sequence[int]], float]


def _reserve_required(c: BlockTensor, tag: int, operation: str):
    block = c.reserve(tag)
    if block is None:
        raise BlockUnavailableError(operation, tag, "could not be allocated")
    return block


# =============================================================================
# Level 1
# =============================================================================

def build_copy_tasks(x, y: BlockTensor, allow_missing_as_zero: bool = False) -> List[TaskDescriptor]:
    """One copy task per stored block of x.

    Raises:
        BlockUnavailableError: If y cannot reserve a tag of x and
            allow_missing_as_zero is False
    """
    tasks = []
    skipped = 0
    for tag, x_block in x.items():
        y_block = y.reserve(tag)
        if y_block is None:
            if not allow_missing_as_zero:
                raise BlockUnavailableError("copy", tag)
            skipped += 1
            continue
        task = TaskDescriptor(OperationKind.COPY)
        task.add(x_block)
        tasks.append(task.bind(y_block))
    logger.debug(f"copy: {len(tasks)} tasks, {skipped} blocks outside destination pattern")
    return tasks


def build_scal_tasks(alpha, x: BlockTensor) -> List[TaskDescriptor]:
    """One in-place scaling task per stored block of x."""
    return [TaskDescriptor(OperationKind.SCAL, alpha=alpha).bind(block)
            for _, block in x.items()]


def build_axpy_tasks(alpha, x, y: BlockTensor) -> List[TaskDescriptor]:
    """One accumulation task per stored block of x.

    Raises:
        BlockUnavailableError: If y cannot reserve a tag of x
    """
    tasks = []
    for tag, x_block in x.items():
        y_block = y.reserve(tag)
        if y_block is None:
            raise BlockUnavailableError("axpy", tag)
        task = TaskDescriptor(OperationKind.AXPY, alpha=alpha)
        task.add(x_block)
        tasks.append(task.bind(y_block))
    logger.debug(f"axpy: {len(tasks)} tasks")
    return tasks


def sparse_dot(x, y):
    """Sum of block dot products over tags stored in both x and y."""
    total = 0.0
    for tag, x_block in x.items():
        y_block = y.find(tag)
        if y_block is None:
            continue
        total += dense_dot(x_block, y_block)
    return total


# =============================================================================
# Level 2
# =============================================================================

def build_gemv_tasks(
    transa: Transpose,
    alpha,
    a,
    b,
    c: BlockTensor,
    scale_fn: Optional[ScaleFunction] = None,
) -> List[TaskDescriptor]:
    """Matrix-vector tasks; a must be laid out as (rows..., b...).

    Args:
        transa: Transpose flag handed to the dense kernel
        alpha: Global scale factor
        a: Matrix operand, tag-permuted if transa is TRANS
        b: Vector operand, every axis contracted
        c: Destination, already shaped
        scale_fn: Optional weight f(a_index, b_index, c_index) per pair

    Raises:
        BlockUnavailableError: If a destination block with a contribution
            cannot be allocated
    """
    n_rows = c.size_total
    stride = math.prod(b.shape)
    tasks = []
    for i in range(n_rows):
        row = a.slab(i * stride, i * stride + stride - 1)
        if not row:
            continue
        if not c.allowed(i):
            continue

        c_index = c.index(i) if scale_fn is not None else None
        task = TaskDescriptor(OperationKind.GEMV, alpha=alpha, transa=transa)
        for a_tag, a_block in row:
            b_tag = a_tag % stride
            b_block = b.find(b_tag)
            if b_block is None:
                continue
            scale = 1.0
            if scale_fn is not None:
                scale = scale_fn(a.source_index(a_tag), b.source_index(b_tag), c_index)
            task.add(a_block, b_block, scale)
        if task.size == 0:
            continue

        tasks.append(task.bind(_reserve_required(c, i, "gemv")))
    logger.debug(f"gemv: {len(tasks)} tasks over {n_rows} rows")
    return tasks


def build_ger_tasks(
    alpha,
    a,
    b,
    c: BlockTensor,
    scale_fn: Optional[ScaleFunction] = None,
) -> List[TaskDescriptor]:
    """Outer-product tasks, one per destination tag.

    Every stored (a, b) pair is a candidate with destination
    a_tag * stride(b) + b_tag. Pairs are grouped by destination so that no
    two tasks can write the same block.

    Raises:
        BlockUnavailableError: If a destination block cannot be allocated
    """
    stride = math.prod(b.shape)
    by_target: Dict[int, TaskDescriptor] = {}
    for a_tag, a_block in a.items():
        c_row = a_tag * stride
        a_index = a.source_index(a_tag) if scale_fn is not None else None
        for b_tag, b_block in b.items():
            c_tag = c_row + b_tag
            if not c.allowed(c_tag):
                continue

            scale = 1.0
            if scale_fn is not None:
                scale = scale_fn(a_index, b.source_index(b_tag), c.index(c_tag))

            task = by_target.get(c_tag)
            if task is None:
                task = TaskDescriptor(OperationKind.GER, alpha=alpha)
                task.bind(_reserve_required(c, c_tag, "ger"))
                by_target[c_tag] = task
            task.add(a_block, b_block, scale)

    tasks = list(by_target.values())
    logger.debug(f"ger: {len(tasks)} tasks from {len(a)}x{len(b)} candidate pairs")
    return tasks


# =============================================================================
# Level 3
# =============================================================================

def build_gemm_tasks(
    transa: Transpose,
    transb: Transpose,
    alpha,
    a,
    b,
    c: BlockTensor,
    n_contract: int,
    scale_fn: Optional[ScaleFunction] = None,
) -> List[TaskDescriptor]:
    """Matrix-matrix tasks; a is laid out as (rows..., k...), b as (cols..., k...).

    For each row slab of a and each allowed destination column, the pairs
    whose contracted sub-tags agree are accumulated into a single task for
    that destination. A destination without any matching pair is neither
    allocated nor given a task.

    Args:
        transa: Transpose flag handed to the dense kernel for a blocks
        transb: Transpose flag handed to the dense kernel for b blocks
        alpha: Global scale factor
        a: Left operand, tag layout (rows..., k...)
        b: Right operand, tag layout (cols..., k...)
        c: Destination, already shaped as (rows..., cols...)
        n_contract: Contracted rank K
        scale_fn: Optional weight f(a_index, b_index, c_index) per pair

    Raises:
        BlockUnavailableError: If a destination block with a contribution
            cannot be allocated
    """
    n_rows = math.prod(a.shape[:a.rank - n_contract])
    stride = math.prod(a.shape[a.rank - n_contract:])
    n_cols = math.prod(b.shape[:b.rank - n_contract])

    # contracted sub-tag -> (tag, block) for each column slab of b
    columns = []
    for j in range(n_cols):
        slab = b.slab(j * stride, j * stride + stride - 1)
        columns.append({b_tag % stride: (b_tag, b_block) for b_tag, b_block in slab})

    tasks = []
    for i in range(n_rows):
        row = a.slab(i * stride, i * stride + stride - 1)
        if not row:
            continue

        c_row = i * n_cols
        for j in range(n_cols):
            column = columns[j]
            if not column:
                continue
            c_tag = c_row + j
            if not c.allowed(c_tag):
                continue

            c_index = c.index(c_tag) if scale_fn is not None else None
            task = TaskDescriptor(OperationKind.GEMM, alpha=alpha, transa=transa,
                                  transb=transb, n_contract=n_contract)
            for a_tag, a_block in row:
                match = column.get(a_tag % stride)
                if match is None:
                    continue
                b_tag, b_block = match
                scale = 1.0
                if scale_fn is not None:
                    scale = scale_fn(a.source_index(a_tag), b.source_index(b_tag), c_index)
                task.add(a_block, b_block, scale)
            if task.size == 0:
                continue

            tasks.append(task.bind(_reserve_required(c, c_tag, "gemm")))

    logger.debug(
        f"gemm: {len(tasks)} tasks over {n_rows}x{n_cols} destination grid, "
        f"contracted stride {stride}"
    )
    return tasks
