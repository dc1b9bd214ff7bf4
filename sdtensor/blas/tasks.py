"""Task descriptors for block-sparse BLAS operations

A task binds one destination block to the list of operand block pairs that
contribute to it, together with the fixed parameters of the operation.
Tasks are built single-threaded during dispatch and executed afterwards,
serially or on a worker pool; each destination block is bound into exactly
one task per call, so tasks never write to shared memory.

Ownership:
- OperandPair holds read-only views of the source blocks (shared reads;
  many tasks may read the same block)
- TaskDescriptor.target is the destination block itself (exclusive write)

Import Policy:
    from sdtensor.blas.tasks import OperationKind, TaskDescriptor
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, List, Optional

import numpy as np

from sdtensor.config.enums import Transpose
from sdtensor.core.dense import (
    dense_axpy,
    dense_copy,
    dense_gemm,
    dense_gemv,
    dense_ger,
    dense_scal,
)


class OperationKind(Enum):
    """Dense kernel invoked by a task."""
    COPY = "copy"
    SCAL = "scal"
    AXPY = "axpy"
    GEMV = "gemv"
    GER = "ger"
    GEMM = "gemm"


def readonly(block: np.ndarray) -> np.ndarray:
    """Shared-read handle: a non-writeable view of a block."""
    view = block.view()
    view.flags.writeable = False
    return view


def gemm_flops(a: np.ndarray, b: np.ndarray, transb: Transpose, n_contract: int) -> int:
    """Estimated multiply-adds of one block product: size(a) * free size of b."""
    if transb.is_trans:
        free = b.shape[:b.ndim - n_contract]
    else:
        free = b.shape[n_contract:]
    return a.size * math.prod(free)


@dataclass
class OperandPair:
    """One contributing pair of source blocks.

    Attributes:
        left: Read-only left operand (x for level 1, a for level 2/3)
        right: Read-only right operand (None for level 1)
        scale: Per-pair weight multiplied into alpha
        flops: Cost estimate, used only for load balancing

    """

    left: np.ndarray
    right: Optional[np.ndarray] = None
    scale: float = 1.0
    flops: int = 0


@dataclass
class TaskDescriptor:
    """All work targeting one destination block.

    Attributes:
        kind: Kernel to invoke
        alpha: Global scale factor
        beta: Destination scale applied by each kernel call
        transa: Transpose flag of the left operands
        transb: Transpose flag of the right operands
        n_contract: Contracted rank (GEMM only)
        operands: Contributing pairs, in discovery order
        target: Destination block, bound once reserved

    """

    kind: OperationKind
    alpha: float = 1.0
    beta: float = 1.0
    transa: Transpose = Transpose.NO_TRANS
    transb: Transpose = Transpose.NO_TRANS
    n_contract: int = 0
    operands: List[OperandPair] = field(default_factory=list)
    target: Optional[np.ndarray] = None

    def add(self, left: np.ndarray, right: Optional[np.ndarray] = None,
            scale: float = 1.0) -> None:
        """Append a contributing pair; the cost estimate depends on the kind."""
        if self.kind is OperationKind.GEMM:
            flops = gemm_flops(left, right, self.transb, self.n_contract)
        else:
            flops = left.size
        self.operands.append(OperandPair(
            left=readonly(left),
            right=None if right is None else readonly(right),
            scale=scale,
            flops=flops,
        ))

    def bind(self, target: np.ndarray) -> "TaskDescriptor":
        """Attach the destination block."""
        self.target = target
        return self

    @property
    def size(self) -> int:
        return len(self.operands)

    @property
    def cost(self) -> int:
        """Aggregate cost estimate for scheduling."""
        if self.operands:
            return sum(op.flops for op in self.operands)
        return 0 if self.target is None else self.target.size

    def call(self) -> None:
        """Run the dense kernel over every operand pair."""
        if self.target is None:
            raise RuntimeError(f"{self.kind.value} task has no destination block")
        KERNELS[self.kind](self)


# =============================================================================
# Kernel dispatch table
# =============================================================================

def _run_copy(task: TaskDescriptor) -> None:
    for op in task.operands:
        dense_copy(op.left, task.target)


def _run_scal(task: TaskDescriptor) -> None:
    dense_scal(task.alpha, task.target)


def _run_axpy(task: TaskDescriptor) -> None:
    for op in task.operands:
        dense_axpy(op.scale * task.alpha, op.left, task.target)


def _run_gemv(task: TaskDescriptor) -> None:
    for op in task.operands:
        dense_gemv(task.transa, op.scale * task.alpha, op.left, op.right,
                   task.beta, task.target)


def _run_ger(task: TaskDescriptor) -> None:
    for op in task.operands:
        dense_ger(op.scale * task.alpha, op.left, op.right, task.target)


def _run_gemm(task: TaskDescriptor) -> None:
    for op in task.operands:
        dense_gemm(task.transa, task.transb, op.scale * task.alpha, op.left, op.right,
                   task.beta, task.target, task.n_contract)


KERNELS: Dict[OperationKind, Callable[[TaskDescriptor], None]] = {
    OperationKind.COPY: _run_copy,
    OperationKind.SCAL: _run_scal,
    OperationKind.AXPY: _run_axpy,
    OperationKind.GEMV: _run_gemv,
    OperationKind.GER: _run_ger,
    OperationKind.GEMM: _run_gemm,
}
