"""
Immutable fixed-dimension vector used by the per-point arithmetic.

A Vector plays one of two roles: a *point* of the Poincaré ball
(``‖data‖ < 1``) or a *tangent vector* (unconstrained). The roles are not
separate types.
"""

import numpy as np

from ..errors import DimensionMismatch


class Vector:
    """
    Read-only wrapper around a 1-D float64 array.

    Parameters
    ----------
    data : sequence of float or ndarray
        Coordinates. Must be one-dimensional, non-empty and finite.

    Notes
    -----
    Equality is approximate (``numpy.allclose`` with ``atol=1e-9``), so
    vectors are not hashable.
    """

    __slots__ = ('_data',)

    ATOL = 1e-9

    def __init__(self, data):
        arr = np.array(data, dtype=np.float64)
        if arr.ndim != 1:
            raise ValueError(f"Vector data must be 1-D, got shape {arr.shape}")
        if arr.size == 0:
            raise ValueError("Vector data must not be empty")
        if not np.all(np.isfinite(arr)):
            raise ValueError("Vector data must be finite")
        arr.flags.writeable = False
        self._data = arr

    @classmethod
    def zeros(cls, dim):
        return cls(np.zeros(dim))

    @classmethod
    def _wrap(cls, arr):
        # arr is a freshly computed array owned by the caller
        obj = cls.__new__(cls)
        arr = np.asarray(arr, dtype=np.float64)
        if not np.all(np.isfinite(arr)):
            raise ValueError(f"non-finite result: {arr.tolist()}")
        arr.flags.writeable = False
        obj._data = arr
        return obj

    @property
    def data(self):
        """Read-only coordinate array."""
        return self._data

    @property
    def dim(self):
        return self._data.shape[0]

    def tolist(self):
        return self._data.tolist()

    def isclose(self, other, atol=None):
        check_same_dim(self, other)
        return bool(np.allclose(self._data, other._data, rtol=0.0,
                                atol=self.ATOL if atol is None else atol))

    def __neg__(self):
        return Vector._wrap(-self._data)

    def __len__(self):
        return self.dim

    def __iter__(self):
        return iter(self._data.tolist())

    def __getitem__(self, idx):
        return float(self._data[idx])

    def __eq__(self, other):
        if not isinstance(other, Vector):
            return NotImplemented
        return self.dim == other.dim and self.isclose(other)

    __hash__ = None

    def __repr__(self):
        return f"Vector({self._data.tolist()})"


def as_vector(v, name='v'):
    """Reject anything that is not a Vector."""
    if not isinstance(v, Vector):
        raise TypeError(f"{name} must be a Vector, got {type(v).__name__}")
    return v


def check_same_dim(u, v):
    as_vector(u, 'u')
    as_vector(v, 'v')
    if u.dim != v.dim:
        raise DimensionMismatch(u.dim, v.dim)
