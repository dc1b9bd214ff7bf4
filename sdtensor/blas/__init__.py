"""Block-sparse BLAS layer.

Drivers (public API), block-pair dispatch, task descriptors and
execution strategies.
"""

from sdtensor.blas.tasks import KERNELS, OperandPair, OperationKind, TaskDescriptor
from sdtensor.blas.dispatch import (
    build_axpy_tasks,
    build_copy_tasks,
    build_gemm_tasks,
    build_gemv_tasks,
    build_ger_tasks,
    build_scal_tasks,
    sparse_dot,
)
from sdtensor.blas.execution import (
    SerialExecutor,
    ThreadedExecutor,
    partition_by_cost,
    partition_round_robin,
    run_tasks,
    select_executor,
)
from sdtensor.blas.drivers import (
    sd_axpy,
    sd_contract,
    sd_copy,
    sd_didm,
    sd_dimd,
    sd_dot,
    sd_gemm,
    sd_gemv,
    sd_ger,
    sd_nrm2,
    sd_scal,
)

__all__ = [
    # Tasks
    "KERNELS",
    "OperandPair",
    "OperationKind",
    "TaskDescriptor",
    # Dispatch
    "build_axpy_tasks",
    "build_copy_tasks",
    "build_gemm_tasks",
    "build_gemv_tasks",
    "build_ger_tasks",
    "build_scal_tasks",
    "sparse_dot",
    # Execution
    "SerialExecutor",
    "ThreadedExecutor",
    "partition_by_cost",
    "partition_round_robin",
    "run_tasks",
    "select_executor",
    # Drivers
    "sd_axpy",
    "sd_contract",
    "sd_copy",
    "sd_didm",
    "sd_dimd",
    "sd_dot",
    "sd_gemm",
    "sd_gemv",
    "sd_ger",
    "sd_nrm2",
    "sd_scal",
]
