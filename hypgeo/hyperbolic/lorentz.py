"""
Lorentz (hyperboloid) stabilizer.

The hyperboloid {(t, x_L) : -t² + ‖x_L‖² = -1, t > 0} represents the same
space as the Poincaré ball without the 1 - ‖x‖² factor that cancels
catastrophically close to the boundary. The projector switches to this path
above ``MAX_POINCARE_RADIUS``.
"""

import math

import numpy as np

from ..config import DEFAULT_CFG
from ..errors import DimensionMismatch
from .arithmetic import norm, project_to_poincare_ball
from .vector import Vector, as_vector, check_same_dim

MAX_POINCARE_RADIUS = DEFAULT_CFG.max_poincare_radius


def poincare_to_lorentz(x, *, cfg=DEFAULT_CFG):
    """
    Lift a Poincaré point onto the hyperboloid.

    t = (1 + ‖x‖²) / (1 - ‖x‖²),  x_L = 2x / (1 - ‖x‖²)

    Parameters
    ----------
    x : Vector (n,)
        Point of the ball. Points at or past the boundary are first repaired
        with ``project_to_poincare_ball``.

    Returns
    -------
    Vector (n + 1,)
        ``[t, x_L...]``
    """
    x = project_to_poincare_ball(x, cfg=cfg)
    r = norm(x)
    # (1 - r)(1 + r) keeps the relative precision of 1 - r² near the boundary
    denom = (1.0 - r) * (1.0 + r)
    t = (1.0 + r * r) / denom
    return Vector._wrap(np.concatenate(([t], 2.0 * x.data / denom)))


def lorentz_to_poincare(l):
    """
    Map a hyperboloid point back to the ball, x = x_L / (1 + t).
    """
    as_vector(l, 'l')
    if l.dim < 2:
        raise DimensionMismatch(2, l.dim, what="Lorentz vector (at least)")
    t = l.data[0]
    return Vector._wrap(l.data[1:] / (1.0 + t))


def lorentz_to_sphere(l):
    """
    Sphere point of the inverse stereographic projection, computed from the
    planar Lorentz coordinates.

    Equals (2x, 2y, ‖x‖² - 1) / (1 + ‖x‖²) of the direct formula, rewritten as
    (x_L / t, y_L / t, -1 / t).

    Returns
    -------
    tuple of float
        (sphere_x, sphere_y, sphere_z)
    """
    as_vector(l, 'l')
    if l.dim < 3:
        raise DimensionMismatch(3, l.dim, what="planar Lorentz vector (at least)")
    t, x_l, y_l = l.data[0], l.data[1], l.data[2]
    return x_l / t, y_l / t, -1.0 / t


def lorentz_to_geographic(l):
    """
    Longitude/latitude in degrees of a planar Lorentz point.
    """
    sphere_x, sphere_y, sphere_z = lorentz_to_sphere(l)
    longitude = math.degrees(math.atan2(sphere_y, sphere_x))
    latitude = math.degrees(math.asin(max(-1.0, min(1.0, sphere_z))))
    return longitude, latitude


def lorentz_inner(a, b):
    """Minkowski inner product <a, b>_L = -a0 b0 + Σ ai bi."""
    check_same_dim(a, b)
    return float(-a.data[0] * b.data[0] + np.dot(a.data[1:], b.data[1:]))


def lorentz_distance(a, b):
    """
    Metric distance on the hyperboloid, arcosh(-<a, b>_L).

    Matches ``2 * arithmetic.distance`` of the corresponding Poincaré points.
    """
    return math.acosh(max(1.0, -lorentz_inner(a, b)))


def is_on_hyperboloid(l, atol=1e-6):
    """True when <l, l>_L = -1 within ``atol`` (relative to t²) and t > 0."""
    as_vector(l, 'l')
    t = l.data[0]
    return bool(t > 0 and abs(lorentz_inner(l, l) + 1.0) <= atol * max(1.0, t * t))
