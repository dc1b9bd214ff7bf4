"""Block-Sparse Tensor BLAS

Tensor algebra over block-sparse tensors: copy, scale, axpy, dot,
matrix-vector, rank-update and matrix-matrix contractions of arbitrary
rank, lowered onto dense BLAS calls over the stored blocks.

Key Principles:
- Only nonzero blocks are stored; absent blocks are implicit zeros
- Destination blocks are allocated only when a contribution exists and
  the destination's legality predicate allows the tag
- One task per destination block; tasks run serially or on a thread pool
  with identical results

Version: 1.0
"""

__version__ = "1.0"

# Core data structures
from sdtensor.core import (
    BlockSparseError,
    BlockTensor,
    BlockTensorView,
    BlockUnavailableError,
    ContractionError,
    ShapeMismatchError,
    allow_all,
    allow_none,
    allow_tags,
)

# Configuration
from sdtensor.config import BlasOptions, ExecutionMode, Transpose

# Drivers
from sdtensor.blas import (
    SerialExecutor,
    ThreadedExecutor,
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
    # Version
    "__version__",
    # Core
    "BlockTensor",
    "BlockTensorView",
    "allow_all",
    "allow_none",
    "allow_tags",
    # Errors
    "BlockSparseError",
    "BlockUnavailableError",
    "ContractionError",
    "ShapeMismatchError",
    # Configuration
    "BlasOptions",
    "ExecutionMode",
    "Transpose",
    # Execution
    "SerialExecutor",
    "ThreadedExecutor",
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
