"""Block-sparse tensor container

A BlockTensor is a logical tensor cut into a grid of dense blocks. Only
nonzero blocks are stored; an absent block is an implicit zero block and
is materialized only when written to.

Block Definition:
- block_dims: one tuple of dense extents per logical axis
- declared shape: the block grid, tuple(len(d) for d in block_dims)
- block (i0, ..., iN-1) has dense shape
  (block_dims[0][i0], ..., block_dims[N-1][iN-1])
- tag: row-major flattening of the block index over the declared shape

Legality:
    Each tensor owns a predicate answering whether a tag may ever hold a
    nonzero block (symmetry or selection rules). reserve() consults it
    before allocating; it is the only allocation path.

This module includes:
1. BlockTensor: owning container with lookup, range queries and reservation
2. BlockTensorView: read-only tag-permuted view used to resolve transposes
3. Legality helpers: allow_all, allow_tags, allow_none

Import Policy:
    from sdtensor.core.block_tensor import BlockTensor, allow_tags
"""

from __future__ import annotations

import bisect
import logging
import threading
from typing import Callable, Dict, Iterable, Iterator, List, Optional, Sequence, Tuple

import numpy as np

from sdtensor.config.defaults import DEFAULT_DTYPE
from sdtensor.config.yaml_loader import get_default
from sdtensor.core.errors import BlockUnavailableError, ShapeMismatchError
from sdtensor.core.index import (
    index_to_tag,
    permute,
    size_of,
    tag_to_index,
    transpose_permutation,
)

logger = logging.getLogger(__name__)

Legality = Callable[[int], bool]


# =============================================================================
# Legality predicates
# =============================================================================

def allow_all(tag: int) -> bool:
    """Every in-range tag may hold a block."""
    return True


def allow_none(tag: int) -> bool:
    """No tag may hold a block."""
    return False


def allow_tags(tags: Iterable[int]) -> Legality:
    """Predicate allowing exactly the given tags."""
    allowed = frozenset(int(t) for t in tags)

    def predicate(tag: int) -> bool:
        return tag in allowed

    return predicate


def _normalize_block_dims(block_dims) -> Tuple[Tuple[int, ...], ...]:
    dims = tuple(tuple(int(e) for e in axis) for axis in block_dims)
    for axis, extents in enumerate(dims):
        if len(extents) == 0:
            raise ValueError(f"axis {axis} has no blocks")
        if any(e <= 0 for e in extents):
            raise ValueError(f"block extents must be positive, got {extents} on axis {axis}")
    return dims


# =============================================================================
# Sorted tag storage
# =============================================================================

class _SortedBlocks:
    """Tag-ascending block storage shared by tensors and their views."""

    def __init__(self):
        self._tags: List[int] = []
        self._blocks: Dict[int, np.ndarray] = {}
        self._shape: Optional[Tuple[int, ...]] = None

    @property
    def shape(self) -> Optional[Tuple[int, ...]]:
        """Declared block grid (None until the tensor is shaped)."""
        return self._shape

    @property
    def rank(self) -> Optional[int]:
        return None if self._shape is None else len(self._shape)

    @property
    def size_total(self) -> int:
        """Number of tags in the declared grid (stored or not)."""
        return 0 if self._shape is None else size_of(self._shape)

    def __len__(self) -> int:
        return len(self._tags)

    def __contains__(self, tag) -> bool:
        return tag in self._blocks

    def __iter__(self) -> Iterator[int]:
        return iter(self._tags)

    def tags(self) -> List[int]:
        return list(self._tags)

    def items(self) -> Iterator[Tuple[int, np.ndarray]]:
        """(tag, block) pairs in ascending tag order."""
        for tag in self._tags:
            yield tag, self._blocks[tag]

    def find(self, tag: int) -> Optional[np.ndarray]:
        """Stored block for tag, or None. Never allocates."""
        return self._blocks.get(tag)

    def lower_bound(self, tag: int) -> int:
        """Position of the first stored tag >= tag."""
        return bisect.bisect_left(self._tags, tag)

    def upper_bound(self, tag: int) -> int:
        """Position one past the last stored tag <= tag."""
        return bisect.bisect_right(self._tags, tag)

    def slab(self, lo: int, hi: int) -> List[Tuple[int, np.ndarray]]:
        """Stored (tag, block) pairs with lo <= tag <= hi, tag-ascending."""
        tags = self._tags[self.lower_bound(lo):self.upper_bound(hi)]
        return [(tag, self._blocks[tag]) for tag in tags]

    def index(self, tag: int) -> Tuple[int, ...]:
        """Block index of a tag in this container's grid."""
        return tag_to_index(tag, self._shape or ())

    def tag(self, index: Sequence[int]) -> int:
        """Tag of a block index in this container's grid."""
        return index_to_tag(index, self._shape or ())

    def source_index(self, tag: int) -> Tuple[int, ...]:
        """Block index of a tag in the coordinates of the owning tensor."""
        return self.index(tag)


# =============================================================================
# BlockTensor
# =============================================================================

class BlockTensor(_SortedBlocks):
    """Block-sparse tensor with lazily allocated dense blocks.

    Attributes:
        block_dims: Dense extents per block, per axis (None if unshaped)
        dtype: Element type of allocated blocks
        legality: Predicate on tags; None allows every in-range tag

    """

    def __init__(
        self,
        block_dims=None,
        dtype=None,
        legality: Optional[Legality] = None,
    ):
        """Initialize an empty block tensor.

        Args:
            block_dims: Sequence of per-axis block extents, e.g.
                [(2, 3), (4,)] for a 2x1 grid of 2x4 and 3x4 blocks.
                None leaves the tensor unshaped until resize().
            dtype: Element type of allocated blocks (blas.dtype from
                defaults.yaml if None)
            legality: Tag predicate restricting which blocks may exist

        """
        super().__init__()
        if dtype is None:
            dtype = get_default("blas.dtype", DEFAULT_DTYPE)
        self.dtype = np.dtype(dtype)
        self.legality = legality
        self._block_dims: Optional[Tuple[Tuple[int, ...], ...]] = None
        self._lock = threading.Lock()
        if block_dims is not None:
            self._set_block_dims(block_dims)

    @classmethod
    def uniform(cls, shape: Sequence[int], block_size: int, **kwargs) -> "BlockTensor":
        """Tensor whose grid has the given shape and every block edge block_size."""
        return cls([(block_size,) * n for n in shape], **kwargs)

    @classmethod
    def from_dense(
        cls,
        array: np.ndarray,
        block_dims,
        legality: Optional[Legality] = None,
        threshold: float = 0.0,
    ) -> "BlockTensor":
        """Cut a dense array into blocks.

        Blocks whose largest magnitude does not exceed threshold, and blocks
        at tags the legality predicate rejects, are not stored.

        Raises:
            ShapeMismatchError: If block_dims does not tile the array
        """
        array = np.asarray(array)
        tensor = cls(block_dims, dtype=array.dtype, legality=legality)
        dense_shape = tuple(sum(axis) for axis in tensor.block_dims)
        if dense_shape != array.shape:
            raise ShapeMismatchError(
                f"block_dims tile shape {dense_shape}, array has shape {array.shape}"
            )
        for tag in range(tensor.size_total):
            if not tensor.allowed(tag):
                continue
            block = array[tensor._block_slices(tag)]
            if block.size and np.max(np.abs(block)) > threshold:
                tensor.insert(tag, block)
        return tensor

    # -------------------------------------------------------------------------
    # Shape
    # -------------------------------------------------------------------------

    @property
    def block_dims(self) -> Optional[Tuple[Tuple[int, ...], ...]]:
        return self._block_dims

    @property
    def dense_shape(self) -> Optional[Tuple[int, ...]]:
        """Shape of the equivalent dense tensor."""
        if self._block_dims is None:
            return None
        return tuple(sum(axis) for axis in self._block_dims)

    @property
    def nnz(self) -> int:
        """Number of stored elements."""
        return sum(block.size for block in self._blocks.values())

    def _set_block_dims(self, block_dims) -> None:
        self._block_dims = _normalize_block_dims(block_dims)
        self._shape = tuple(len(axis) for axis in self._block_dims)

    def resize(self, block_dims, destructive: bool = False, dtype=None) -> None:
        """Rebind the declared shape.

        Args:
            block_dims: New per-axis block extents
            destructive: Drop stored blocks; required if any are stored
                and the shape changes
            dtype: New element type for blocks allocated from now on

        Raises:
            ShapeMismatchError: If blocks are stored, the shape changes and
                destructive is False
        """
        new_dims = _normalize_block_dims(block_dims)
        with self._lock:
            if self._tags and not destructive and new_dims != self._block_dims:
                raise ShapeMismatchError(
                    f"cannot resize a non-empty block tensor from {self._block_dims} "
                    f"to {new_dims} without destructive=True"
                )
            if destructive:
                if self._tags:
                    logger.debug(f"Destructive resize drops {len(self._tags)} blocks")
                self._tags.clear()
                self._blocks.clear()
            self._set_block_dims(new_dims)
            if dtype is not None:
                self.dtype = np.dtype(dtype)

    def block_shape(self, tag: int) -> Tuple[int, ...]:
        """Dense shape of the block at tag."""
        index = self.index(tag)
        return tuple(self._block_dims[axis][i] for axis, i in enumerate(index))

    def _block_slices(self, tag: int) -> Tuple[slice, ...]:
        slices = []
        for axis, i in enumerate(self.index(tag)):
            extents = self._block_dims[axis]
            start = sum(extents[:i])
            slices.append(slice(start, start + extents[i]))
        return tuple(slices)

    # -------------------------------------------------------------------------
    # Legality and reservation
    # -------------------------------------------------------------------------

    def allowed(self, tag: int) -> bool:
        """Whether tag may hold a nonzero block."""
        if not 0 <= tag < self.size_total:
            return False
        return self.legality is None or bool(self.legality(tag))

    def reserve(self, tag: int) -> Optional[np.ndarray]:
        """Existing block at tag, or a newly allocated zero block.

        Returns None, without allocating, when the tag is out of range or
        rejected by the legality predicate.
        """
        with self._lock:
            block = self._blocks.get(tag)
            if block is not None:
                return block
            if not self.allowed(tag):
                return None
            block = np.zeros(self.block_shape(tag), dtype=self.dtype)
            bisect.insort(self._tags, tag)
            self._blocks[tag] = block
            return block

    def insert(self, key, array) -> np.ndarray:
        """Store a copy of array at a tag or block index.

        Raises:
            IndexError: If the key is outside the declared grid
            ShapeMismatchError: If array does not have the block's shape
            BlockUnavailableError: If the legality predicate rejects the tag
        """
        tag = self.tag(key) if isinstance(key, tuple) else int(key)
        if not 0 <= tag < self.size_total:
            raise IndexError(f"tag {tag} out of range for shape {self._shape}")
        array = np.asarray(array)
        expected = self.block_shape(tag)
        if array.shape != expected:
            raise ShapeMismatchError(
                f"block {tag} must have shape {expected}, got {array.shape}"
            )
        block = self.reserve(tag)
        if block is None:
            raise BlockUnavailableError("insert", tag, "is not allowed")
        np.copyto(block, array, casting="unsafe")
        return block

    def erase(self, tag: int) -> bool:
        """Remove the block at tag. Returns whether a block was removed."""
        with self._lock:
            if self._blocks.pop(tag, None) is None:
                return False
            del self._tags[bisect.bisect_left(self._tags, tag)]
            return True

    def clear(self) -> None:
        """Remove every stored block, keeping the declared shape."""
        with self._lock:
            self._tags.clear()
            self._blocks.clear()

    # -------------------------------------------------------------------------
    # Conversion
    # -------------------------------------------------------------------------

    def copy(self) -> "BlockTensor":
        """Deep copy sharing only the legality predicate."""
        result = BlockTensor(self._block_dims, dtype=self.dtype, legality=self.legality)
        for tag, block in self.items():
            result._tags.append(tag)
            result._blocks[tag] = block.copy()
        return result

    def to_dense(self) -> np.ndarray:
        """Assemble the equivalent dense array (absent blocks are zero)."""
        if self._block_dims is None:
            raise ShapeMismatchError("cannot densify an unshaped block tensor")
        dense = np.zeros(self.dense_shape, dtype=self.dtype)
        for tag, block in self.items():
            dense[self._block_slices(tag)] = block
        return dense

    def transpose_view(self, k: int) -> "BlockTensorView":
        """Read-only view whose tags move the first k axes to the end."""
        return BlockTensorView(self, k)

    def __repr__(self) -> str:
        return (
            f"BlockTensor(shape={self._shape}, blocks={len(self)}, "
            f"dtype={self.dtype.name})"
        )


# =============================================================================
# Transposed view
# =============================================================================

class BlockTensorView(_SortedBlocks):
    """Tag-permuted, read-only view of a BlockTensor.

    The block grid is permuted so that the first k axes of the source come
    last; dense blocks are shared with the source and are NOT transposed.
    Kernels consuming the view apply the transpose themselves, so a view
    only changes which blocks are found by a tag range query.
    """

    def __init__(self, source: BlockTensor, k: int):
        super().__init__()
        if source.shape is None:
            raise ShapeMismatchError("cannot view an unshaped block tensor")
        self.source = source
        self.k = k
        perm = transpose_permutation(source.rank, k)
        self._shape = permute(source.shape, perm)
        self._origin: Dict[int, int] = {}
        for tag, block in source.items():
            view_tag = index_to_tag(permute(source.index(tag), perm), self._shape)
            self._blocks[view_tag] = block
            self._origin[view_tag] = tag
        self._tags = sorted(self._blocks)

    @property
    def dtype(self):
        return self.source.dtype

    def source_tag(self, tag: int) -> int:
        """Tag in the source tensor of a tag in this view."""
        return self._origin[tag]

    def source_index(self, tag: int) -> Tuple[int, ...]:
        return self.source.index(self._origin[tag])

    def __repr__(self) -> str:
        return f"BlockTensorView(shape={self._shape}, k={self.k}, blocks={len(self)})"
