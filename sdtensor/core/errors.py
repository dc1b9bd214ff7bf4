"""Exception types raised by the block-sparse BLAS layer.

A tag that is outside a tensor's legality predicate is not an error: it is
the normal sparsity path and reservation simply returns None.

Import Policy:
    from sdtensor.core.errors import ShapeMismatchError, BlockUnavailableError
"""


class BlockSparseError(Exception):
    """Base class for all errors raised by sdtensor."""

    pass


class ShapeMismatchError(BlockSparseError, ValueError):
    """Operand or destination shapes are incompatible.

    Always raised before any block is allocated.
    """

    pass


class ContractionError(BlockSparseError, ValueError):
    """A contraction request is malformed (ranks cannot be contracted)."""

    pass


class BlockUnavailableError(BlockSparseError):
    """A required destination block could not be reserved.

    Raised when an input block demands a nonzero output block whose tag is
    not allowed by the destination's legality predicate.

    Attributes:
        tag: Destination block tag that could not be reserved
        operation: Name of the operation that required the block

    """

    def __init__(self, operation: str, tag: int, reason: str = "could not be reserved"):
        self.operation = operation
        self.tag = tag
        super().__init__(f"{operation}: required block {tag} {reason}")
