"""
Möbius gyrovector operations on the Poincaré ball (curvature K = -1).

Per-point rendition of the engine, operating on immutable ``Vector`` values.
The batched torch counterpart lives in ``pmath``.

Conventions
-----------
- distance(u, v) = artanh(‖(-u) ⊕ v‖), the gyrodistance. The Riemannian
  metric distance is twice this value.
- exp_p(v) = p ⊕ tanh(‖v‖ / λ_p) · v / ‖v‖ with λ_p = 2 / (1 - ‖p‖²), and
  log_p is its exact inverse.
- Möbius addition is a gyrogroup operation: only the identity (u ⊕ 0 = u)
  and inverse ((-u) ⊕ u = 0) laws hold in general.
- Arguments that act as points are repaired with ``project_to_poincare_ball``
  on entry, and results that are points on exit. Tangent vectors are left
  alone.
"""

import math

import numpy as np

from ..config import DEFAULT_CFG
from ..errors import DimensionMismatch
from .vector import Vector, as_vector, check_same_dim


def artanh(x, *, cfg=DEFAULT_CFG):
    """Inverse hyperbolic tangent with the argument clamped to (-1+eps, 1-eps)."""
    bound = 1.0 - cfg.eps
    x = min(max(x, -bound), bound)
    return 0.5 * math.log((1.0 + x) / (1.0 - x))


def norm(v):
    """Euclidean norm."""
    return float(np.linalg.norm(as_vector(v).data))


def dot(u, v):
    """Euclidean inner product; dimensions must match."""
    check_same_dim(u, v)
    return float(np.dot(u.data, v.data))


def project_to_poincare_ball(v, *, cfg=DEFAULT_CFG):
    """
    Repair drift off the ball.

    No-op when ``‖v‖ < 1``. Otherwise ``v`` is rescaled along its own direction
    to norm ``1 - boundary_eps``.
    """
    v_norm = norm(v)
    if v_norm < 1.0:
        return v
    scale = (1.0 - cfg.boundary_eps) / v_norm
    return Vector._wrap(v.data * scale)


def conformal_factor(p, *, cfg=DEFAULT_CFG):
    """
    Conformal factor λ_p = 2 / (1 - ‖p‖²).

    ``p`` is repaired onto the ball first, so the factor is at most
    about ``1 / boundary_eps``.
    """
    p = project_to_poincare_ball(p, cfg=cfg)
    return _conformal_factor(p.data)


def _conformal_factor(x):
    r = float(np.linalg.norm(x))
    return 2.0 / ((1.0 - r) * (1.0 + r))


def mobius_add(u, v, *, cfg=DEFAULT_CFG):
    """
    Möbius addition u ⊕ v.

    u ⊕ v = ((1 + 2<u,v> + ‖v‖²) u + (1 - ‖u‖²) v) / (1 + 2<u,v> + ‖u‖²‖v‖²)

    Not commutative and not associative.
    """
    check_same_dim(u, v)
    u = project_to_poincare_ball(u, cfg=cfg)
    v = project_to_poincare_ball(v, cfg=cfg)
    return project_to_poincare_ball(Vector._wrap(_mobius_add(u.data, v.data)), cfg=cfg)


def _mobius_add(x, y):
    xy = np.dot(x, y)
    x2 = np.dot(x, x)
    y2 = np.dot(y, y)
    num = (1 + 2 * xy + y2) * x + (1 - x2) * y
    denom = 1 + 2 * xy + x2 * y2
    return num / denom


def mobius_sub(u, v, *, cfg=DEFAULT_CFG):
    """Möbius subtraction u ⊖ v = (-v) ⊕ u."""
    as_vector(v, 'v')
    return mobius_add(-v, u, cfg=cfg)


def mobius_scalar_mult(r, v, *, cfg=DEFAULT_CFG):
    """
    Möbius scalar multiplication r ⊗ v = tanh(r · artanh(‖v‖)) · v / ‖v‖.

    Returns the zero vector when ``‖v‖ < eps``.
    """
    v = project_to_poincare_ball(v, cfg=cfg)
    v_norm = norm(v)
    if v_norm < cfg.eps:
        return Vector.zeros(v.dim)
    scale = math.tanh(float(r) * artanh(v_norm, cfg=cfg)) / v_norm
    return project_to_poincare_ball(Vector._wrap(v.data * scale), cfg=cfg)


def distance(u, v, *, cfg=DEFAULT_CFG):
    """
    Gyrodistance d(u, v) = artanh(‖(-u) ⊕ v‖).

    Symmetric, zero on u == v, and satisfies the triangle inequality.
    """
    check_same_dim(u, v)
    u = project_to_poincare_ball(u, cfg=cfg)
    v = project_to_poincare_ball(v, cfg=cfg)
    return artanh(float(np.linalg.norm(_mobius_add(-u.data, v.data))), cfg=cfg)


def exp_map(p, v, *, cfg=DEFAULT_CFG):
    """
    Exponential map at ``p``: tangent vector ``v`` → point of the ball.

    exp_p(v) = p ⊕ tanh(‖v‖ / λ_p) · v / ‖v‖

    Parameters
    ----------
    p : Vector
        Base point, ‖p‖ < 1.
    v : Vector
        Tangent vector at ``p``.

    Returns
    -------
    Vector
        ``p`` itself when ``‖v‖ < eps``.
    """
    check_same_dim(p, v)
    p = project_to_poincare_ball(p, cfg=cfg)
    v_norm = norm(v)
    if v_norm < cfg.eps:
        return p
    scale = math.tanh(v_norm / _conformal_factor(p.data)) / v_norm
    return project_to_poincare_ball(Vector._wrap(_mobius_add(p.data, v.data * scale)), cfg=cfg)


def log_map(p, q, *, cfg=DEFAULT_CFG):
    """
    Logarithmic map at ``p``, the inverse of ``exp_map``.

    log_p(q) = λ_p · artanh(‖(-p) ⊕ q‖) · ((-p) ⊕ q) / ‖(-p) ⊕ q‖

    Returns the zero tangent vector when ``p == q``.
    """
    check_same_dim(p, q)
    p = project_to_poincare_ball(p, cfg=cfg)
    q = project_to_poincare_ball(q, cfg=cfg)
    diff = _mobius_add(-p.data, q.data)
    diff_norm = float(np.linalg.norm(diff))
    if diff_norm < cfg.eps:
        return Vector.zeros(p.dim)
    scale = _conformal_factor(p.data) * artanh(diff_norm, cfg=cfg) / diff_norm
    return Vector._wrap(diff * scale)


def gyration(u, v, w, *, cfg=DEFAULT_CFG):
    """
    Gyration gyr[u, v] w = ⊖(u ⊕ v) ⊕ (u ⊕ (v ⊕ w)).

    Evaluated in closed form (Ungar), which is linear in ``w`` and therefore
    also valid for tangent vectors outside the ball. ``u`` and ``v`` are
    points and are repaired onto the ball.
    """
    check_same_dim(u, v)
    check_same_dim(u, w)
    u = project_to_poincare_ball(u, cfg=cfg)
    v = project_to_poincare_ball(v, cfg=cfg)
    return Vector._wrap(_gyration(u.data, v.data, w.data))


def _gyration(u, v, w):
    u2 = np.dot(u, u)
    v2 = np.dot(v, v)
    uv = np.dot(u, v)
    uw = np.dot(u, w)
    vw = np.dot(v, w)
    a = -uw * v2 + vw + 2 * uv * vw
    b = -vw * u2 - uw
    d = 1 + 2 * uv + u2 * v2
    return w + 2 * (a * u + b * v) / d


def parallel_transport(p, q, v, *, cfg=DEFAULT_CFG):
    """
    Transport tangent vector ``v`` from the frame at ``p`` to the frame at ``q``.

    P_{p→q}(v) = (λ_q / λ_p) · gyr[q, -p] v

    The scale keeps ‖v‖ / λ, the length the exponential map travels, unchanged.
    """
    check_same_dim(p, q)
    check_same_dim(p, v)
    p = project_to_poincare_ball(p, cfg=cfg)
    q = project_to_poincare_ball(q, cfg=cfg)
    scale = _conformal_factor(q.data) / _conformal_factor(p.data)
    return Vector._wrap(_gyration(q.data, -p.data, v.data) * scale)


# =============================================================================
# CONVENIENCE OPERATIONS
# =============================================================================

def batch_mobius_add(vectors, *, cfg=DEFAULT_CFG):
    """Left fold of Möbius addition: ((v0 ⊕ v1) ⊕ v2) ⊕ ..."""
    vectors = list(vectors)
    if not vectors:
        raise ValueError("Cannot add empty vector list")
    result = project_to_poincare_ball(as_vector(vectors[0]), cfg=cfg)
    for v in vectors[1:]:
        result = mobius_add(result, v, cfg=cfg)
    return result


def hyperbolic_attention(query, key, *, cfg=DEFAULT_CFG):
    """Attention weight exp(-d(query, key)), in (0, 1]."""
    return math.exp(-distance(query, key, cfg=cfg))


def random_hyperbolic_point(dim, radius=0.8, rng=None):
    """
    Random point with a uniformly drawn direction and norm in [0, radius).

    Parameters
    ----------
    dim : int
        Dimension of the point.
    radius : float
        Upper bound on the norm, must be < 1.
    rng : numpy.random.Generator, optional
    """
    if dim < 1:
        raise ValueError(f"dim must be positive, got {dim}")
    if not 0 < radius < 1:
        raise ValueError(f"radius must lie in (0, 1), got {radius}")
    rng = np.random.default_rng() if rng is None else rng
    direction = rng.standard_normal(dim)
    direction_norm = np.linalg.norm(direction)
    while direction_norm == 0:
        direction = rng.standard_normal(dim)
        direction_norm = np.linalg.norm(direction)
    return Vector._wrap(direction / direction_norm * (radius * rng.random()))


def validate_hyperbolic(v, *, cfg=DEFAULT_CFG):
    """True when ``v`` lies strictly inside the ball, ‖v‖ < 1 - eps."""
    return norm(v) < 1.0 - cfg.eps


def check_dims(vectors):
    """Raise ``DimensionMismatch`` unless all vectors share one dimension."""
    vectors = [as_vector(v) for v in vectors]
    if vectors:
        dim = vectors[0].dim
        for v in vectors[1:]:
            if v.dim != dim:
                raise DimensionMismatch(dim, v.dim)
    return vectors
