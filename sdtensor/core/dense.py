"""Dense block kernels

Thin wrappers over the vendor BLAS exposed by scipy.linalg.blas. Every
block of a BlockTensor is a C-contiguous numpy array; the kernels here
reshape multi-dimensional blocks into the row-major matrices BLAS expects
and write the result back into the destination array in place.

Destination arrays must be C-contiguous so that their reshaped matrix is a
view. Source operands may be read-only.

Import Policy:
    from sdtensor.core.dense import dense_gemm, dense_axpy
"""

from __future__ import annotations

import math

import numpy as np
from scipy.linalg.blas import get_blas_funcs

from sdtensor.config.enums import Transpose
from sdtensor.core.errors import ShapeMismatchError
from sdtensor.core.index import gemm_contract_shape, gemv_contract_shape, ger_contract_shape


# =============================================================================
# Helpers
# =============================================================================

def _flat(out: np.ndarray) -> np.ndarray:
    """Writable 1-D view of a destination array."""
    if not out.flags.c_contiguous:
        raise ValueError("destination block must be C-contiguous")
    return out.reshape(-1)


def _matrix(array: np.ndarray, rows: int, cols: int) -> np.ndarray:
    return array.reshape(rows, cols)


def _blas(name: str, *arrays: np.ndarray):
    # complex dot/ger default to the conjugated variants in scipy
    if name in ("dot", "ger") and any(np.iscomplexobj(a) for a in arrays):
        name += "u"
    return get_blas_funcs(name, arrays)


# =============================================================================
# Level 1
# =============================================================================

def dense_copy(x: np.ndarray, y: np.ndarray) -> None:
    """y := x"""
    if x.shape != y.shape:
        raise ShapeMismatchError(f"copy: shapes differ, x {x.shape} vs y {y.shape}")
    y_flat = _flat(y)
    copy = _blas("copy", x, y)
    y_flat[...] = copy(x.reshape(-1), y_flat)


def dense_scal(alpha, x: np.ndarray) -> None:
    """x := alpha * x"""
    if x.size == 0:
        return
    x_flat = _flat(x)
    scal = _blas("scal", x)
    x_flat[...] = scal(alpha, x_flat)


def dense_axpy(alpha, x: np.ndarray, y: np.ndarray) -> None:
    """y := alpha * x + y"""
    if x.shape != y.shape:
        raise ShapeMismatchError(f"axpy: shapes differ, x {x.shape} vs y {y.shape}")
    y_flat = _flat(y)
    axpy = _blas("axpy", x, y)
    y_flat[...] = axpy(x.reshape(-1), y_flat, a=alpha)


def dense_dot(x: np.ndarray, y: np.ndarray):
    """Unconjugated dot product of two equally shaped arrays."""
    if x.shape != y.shape:
        raise ShapeMismatchError(f"dot: shapes differ, x {x.shape} vs y {y.shape}")
    dot = _blas("dot", x, y)
    return dot(x.reshape(-1), y.reshape(-1))


def dense_nrm2(x: np.ndarray) -> float:
    """Euclidean norm of all elements of x."""
    nrm2 = _blas("nrm2", x)
    return float(nrm2(x.reshape(-1)))


# =============================================================================
# Level 2
# =============================================================================

def dense_gemv(transa, alpha, a: np.ndarray, x: np.ndarray, beta, y: np.ndarray) -> None:
    """y := alpha * op(a) . x + beta * y, contracting every axis of x.

    For NO_TRANS, a is (y.shape..., x.shape...); for TRANS, a is
    (x.shape..., y.shape...).
    """
    transa = Transpose.coerce(transa)
    y_shape = gemv_contract_shape(transa, a.shape, x.shape)
    if y_shape != y.shape:
        raise ShapeMismatchError(f"gemv: y must have shape {y_shape}, got {y.shape}")

    cols = x.size
    rows = a.size // cols
    if transa.is_trans:
        a_mat = _matrix(a, cols, rows)
    else:
        a_mat = _matrix(a, rows, cols)

    y_flat = _flat(y)
    gemv = _blas("gemv", a, x, y)
    y_flat[...] = gemv(alpha, a_mat, x.reshape(-1), beta=beta, y=y_flat,
                       trans=int(transa.is_trans))


def dense_ger(alpha, x: np.ndarray, y: np.ndarray, a: np.ndarray) -> None:
    """a := alpha * x ^ y + a, the outer product of all elements of x and y."""
    a_shape = ger_contract_shape(x.shape, y.shape)
    if a_shape != a.shape:
        raise ShapeMismatchError(f"ger: a must have shape {a_shape}, got {a.shape}")

    a_flat = _flat(a)
    a_mat = _matrix(a_flat, x.size, y.size)
    ger = _blas("ger", x, y, a)
    a_mat[...] = ger(alpha, x.reshape(-1), y.reshape(-1), a=a_mat,
                     overwrite_x=0, overwrite_y=0)


# =============================================================================
# Level 3
# =============================================================================

def dense_gemm(transa, transb, alpha, a: np.ndarray, b: np.ndarray, beta,
               c: np.ndarray, n_contract: int) -> None:
    """c := alpha * op(a) . op(b) + beta * c over n_contract axes.

    See gemm_contract_shape for the operand layouts.
    """
    transa = Transpose.coerce(transa)
    transb = Transpose.coerce(transb)
    contracts, c_shape = gemm_contract_shape(transa, transb, a.shape, b.shape, n_contract)
    if c_shape != c.shape:
        raise ShapeMismatchError(f"gemm: c must have shape {c_shape}, got {c.shape}")

    inner = math.prod(contracts)
    rows = a.size // inner
    cols = b.size // inner
    a_mat = _matrix(a, inner, rows) if transa.is_trans else _matrix(a, rows, inner)
    b_mat = _matrix(b, cols, inner) if transb.is_trans else _matrix(b, inner, cols)

    c_mat = _matrix(_flat(c), rows, cols)
    gemm = _blas("gemm", a, b, c)
    c_mat[...] = gemm(alpha, a_mat, b_mat, beta=beta, c=c_mat,
                      trans_a=int(transa.is_trans), trans_b=int(transb.is_trans))


# =============================================================================
# Diagonal scaling
# =============================================================================

def dense_dimd(a: np.ndarray, d: np.ndarray) -> None:
    """a := a . diag(d), where d spans the trailing axes of a."""
    if a.shape[a.ndim - d.ndim:] != d.shape:
        raise ShapeMismatchError(
            f"dimd: diagonal {d.shape} does not match trailing axes of {a.shape}"
        )
    a_mat = _matrix(_flat(a), a.size // max(d.size, 1), d.size)
    a_mat *= d.reshape(1, -1)


def dense_didm(d: np.ndarray, b: np.ndarray) -> None:
    """b := diag(d) . b, where d spans the leading axes of b."""
    if b.shape[:d.ndim] != d.shape:
        raise ShapeMismatchError(
            f"didm: diagonal {d.shape} does not match leading axes of {b.shape}"
        )
    b_mat = _matrix(_flat(b), d.size, b.size // max(d.size, 1))
    b_mat *= d.reshape(-1, 1)
