# springform_engine/vector.py

import numpy as np
import numba

from . import config as cfg

# ==============================================================================
# 3D VECTOR MATH ON LENGTH-3 ARRAYS
# ==============================================================================
# Operations producing a vector write into `out` (which may alias an input)
# and return it, so the physics kernels never allocate per call.


@numba.njit(nogil=True)
def iszero(value):
    """Whether a scalar lies within EPSILON of zero."""
    return abs(value) < cfg.EPSILON


@numba.njit(nogil=True)
def add(a, b, out):
    for k in range(3):
        out[k] = a[k] + b[k]
    return out


@numba.njit(nogil=True)
def subtract(a, b, out):
    for k in range(3):
        out[k] = a[k] - b[k]
    return out


@numba.njit(nogil=True)
def scale(a, factor, out):
    for k in range(3):
        out[k] = a[k] * factor
    return out


@numba.njit(nogil=True)
def dot(a, b):
    return a[0] * b[0] + a[1] * b[1] + a[2] * b[2]


@numba.njit(nogil=True)
def length(a):
    return np.sqrt(dot(a, a))


@numba.njit(nogil=True)
def normalize(a, out):
    """Unit vector of `a`. Undefined for a zero vector; guard with is_zero."""
    return scale(a, 1.0 / length(a), out)


@numba.njit(nogil=True)
def is_zero(a):
    return iszero(a[0]) and iszero(a[1]) and iszero(a[2])


@numba.njit(nogil=True)
def is_nan(a):
    return np.isnan(a[0]) or np.isnan(a[1]) or np.isnan(a[2])
