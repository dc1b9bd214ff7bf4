"""Core data structures for block-sparse tensor algebra.

This module contains the error taxonomy, the block index algebra, the
dense block kernels and the block-sparse container.
"""

from sdtensor.core.errors import (
    BlockSparseError,
    BlockUnavailableError,
    ContractionError,
    ShapeMismatchError,
)
from sdtensor.core.index import (
    contract_shape,
    contracted_rank,
    gemm_contract_shape,
    gemv_contract_shape,
    ger_contract_shape,
    index_to_tag,
    size_of,
    strides,
    tag_to_index,
    transpose_permutation,
)
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
from sdtensor.core.block_tensor import (
    BlockTensor,
    BlockTensorView,
    allow_all,
    allow_none,
    allow_tags,
)

__all__ = [
    # Errors
    "BlockSparseError",
    "BlockUnavailableError",
    "ContractionError",
    "ShapeMismatchError",
    # Index algebra
    "contract_shape",
    "contracted_rank",
    "gemm_contract_shape",
    "gemv_contract_shape",
    "ger_contract_shape",
    "index_to_tag",
    "size_of",
    "strides",
    "tag_to_index",
    "transpose_permutation",
    # Dense kernels
    "dense_axpy",
    "dense_copy",
    "dense_didm",
    "dense_dimd",
    "dense_dot",
    "dense_gemm",
    "dense_gemv",
    "dense_ger",
    "dense_nrm2",
    "dense_scal",
    # Containers
    "BlockTensor",
    "BlockTensorView",
    "allow_all",
    "allow_none",
    "allow_tags",
]
