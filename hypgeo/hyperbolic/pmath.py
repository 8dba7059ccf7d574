"""
Batched operations on the Poincare ball model of hyperbolic space (curvature -1).

Tensor counterpart of ``arithmetic`` for layer and batch code: every function
works over the last axis of its inputs and broadcasts over the leading ones.
Exponential/logarithmic maps and parallel transport follow the engine
convention (exp_x(u) = x ⊕ tanh(‖u‖ / λ_x) u / ‖u‖), while ``dist`` returns the
Riemannian metric distance 2·artanh(‖(-x) ⊕ y‖), i.e. twice
``arithmetic.distance``.

Based on implementations from:
- HypGCD / Hyp-OW
- geoopt: https://github.com/geoopt/geoopt
"""

import torch

from ..config import DEFAULT_CFG

EPS = DEFAULT_CFG.eps
BOUNDARY_EPS = DEFAULT_CFG.boundary_eps


def tanh(x, clamp=15):
    """Numerically stable tanh."""
    return x.clamp(-clamp, clamp).tanh()


def artanh(x, eps=EPS):
    """Inverse hyperbolic tangent, argument clamped to (-1+eps, 1-eps)."""
    # 1 - 1e-10 rounds to 1 in float32
    eps = max(eps, torch.finfo(x.dtype).eps)
    x = x.clamp(-1 + eps, 1 - eps)
    return 0.5 * (torch.log1p(x) - torch.log1p(-x))


def _norm(x, keepdim=True):
    return x.norm(dim=-1, p=2, keepdim=keepdim)


def project(x, boundary_eps=BOUNDARY_EPS):
    """
    Safe projection onto the Poincare ball.

    Rows with ``‖x‖ >= 1`` are rescaled to norm ``1 - boundary_eps``; the
    others are returned unchanged.

    Parameters
    ----------
    x : tensor (..., D)
        Points to project

    Returns
    -------
    tensor (..., D)
        Projected points inside the ball
    """
    norm = _norm(x)
    maxnorm = 1 - boundary_eps
    cond = norm >= 1
    projected = x / norm.clamp_min(EPS) * maxnorm
    return torch.where(cond, projected, x)


def lambda_x(x, keepdim=False):
    """
    Conformal factor λ_x = 2 / (1 - ‖x‖²).
    """
    return 2 / (1 - x.pow(2).sum(-1, keepdim=keepdim))


def mobius_add(x, y):
    """
    Mobius addition in hyperbolic space.

    x ⊕ y = ((1 + 2<x,y> + ||y||²)x + (1 - ||x||²)y) /
            (1 + 2<x,y> + ||x||²||y||²)

    Note: This operation is NOT commutative in general.
    """
    x2 = x.pow(2).sum(dim=-1, keepdim=True)
    y2 = y.pow(2).sum(dim=-1, keepdim=True)
    xy = (x * y).sum(dim=-1, keepdim=True)
    num = (1 + 2 * xy + y2) * x + (1 - x2) * y
    denom = 1 + 2 * xy + x2 * y2
    return num / denom


def mobius_scalar_mul(r, x, eps=EPS):
    """
    Mobius scalar multiplication r ⊗ x = tanh(r · artanh(||x||)) · x / ||x||.

    Rows with ``||x|| < eps`` map to zero.
    """
    x_norm = _norm(x)
    res = tanh(r * artanh(x_norm, eps)) * x / x_norm.clamp_min(eps)
    return torch.where(x_norm < eps, torch.zeros_like(res), res)


def expmap(x, u, eps=EPS):
    """
    Exponential map at point x in direction u.

    Exp_x(u) = x ⊕ (tanh(||u|| / λ_x) * u / ||u||)

    Rows with ``||u|| < eps`` return x.
    """
    u_norm = _norm(u)
    second_term = tanh(u_norm / lambda_x(x, keepdim=True)) * u / u_norm.clamp_min(eps)
    res = mobius_add(x, second_term)
    return torch.where(u_norm < eps, x.expand_as(res), res)


def expmap0(u, eps=EPS):
    """
    Exponential map from origin, Exp_0(u) = tanh(||u|| / 2) * u / ||u||.

    This maps a point from Euclidean (tangent) space to the Poincare ball.
    """
    u_norm = _norm(u).clamp_min(eps)
    return tanh(u_norm / 2) * u / u_norm


def logmap(x, y, eps=EPS):
    """
    Logarithmic map for two points on the manifold.

    Log_x(y) = λ_x * arctanh(||(-x) ⊕ y||) * ((-x) ⊕ y) / ||(-x) ⊕ y||

    Rows with x == y return zero.
    """
    sub = mobius_add(-x, y)
    sub_norm = _norm(sub)
    lam = lambda_x(x, keepdim=True)
    res = lam * artanh(sub_norm, eps) * sub / sub_norm.clamp_min(eps)
    return torch.where(sub_norm < eps, torch.zeros_like(res), res)


def logmap0(y, eps=EPS):
    """
    Logarithmic map to origin, Log_0(y) = 2 * arctanh(||y||) * y / ||y||.

    This maps a point from the Poincare ball back to Euclidean (tangent) space.
    """
    y_norm = _norm(y).clamp_min(eps)
    return 2 * artanh(y_norm, eps) * y / y_norm


def gyration(u, v, w):
    """
    Gyration gyr[u, v]w in closed form (Ungar).

    gyr[u, v]w = w + 2 (a u + b v) / d
    """
    u2 = u.pow(2).sum(dim=-1, keepdim=True)
    v2 = v.pow(2).sum(dim=-1, keepdim=True)
    uv = (u * v).sum(dim=-1, keepdim=True)
    uw = (u * w).sum(dim=-1, keepdim=True)
    vw = (v * w).sum(dim=-1, keepdim=True)
    a = -uw * v2 + vw + 2 * uv * vw
    b = -vw * u2 - uw
    d = 1 + 2 * uv + u2 * v2
    return w + 2 * (a * u + b * v) / d


def ptransp(x, y, u):
    """
    Parallel transport of tangent vector u from x to y.

    P_{x→y}(u) = (λ_y / λ_x) * gyr[y, -x]u
    """
    scale = lambda_x(y, keepdim=True) / lambda_x(x, keepdim=True)
    return gyration(y, -x, u) * scale


def dist(x, y, keepdim=False, eps=EPS):
    """
    Geodesic distance on the Poincare ball.

    d(x, y) = 2 * arctanh(||(-x) ⊕ y||)

    Parameters
    ----------
    x, y : tensor
        Points on the Poincare ball
    keepdim : bool
        Retain the last dimension

    Returns
    -------
    tensor
        Geodesic distance between x and y
    """
    return 2 * artanh(_norm(mobius_add(-x, y), keepdim=keepdim), eps)


def dist0(x, keepdim=False, eps=EPS):
    """
    Distance from origin on the Poincare ball, d(0, x) = 2 * arctanh(||x||).
    """
    return 2 * artanh(_norm(x, keepdim=keepdim), eps)


def _mobius_addition_batch(x, y):
    """Pairwise Mobius addition x_i ⊕ y_j, result (N, M, D)."""
    xy = torch.einsum("ij,kj->ik", (x, y))  # N x M
    x2 = x.pow(2).sum(-1, keepdim=True)  # N x 1
    y2 = y.pow(2).sum(-1, keepdim=True)  # M x 1
    num = 1 + 2 * xy + y2.permute(1, 0)  # N x M
    num = num.unsqueeze(2) * x.unsqueeze(1)
    num = num + (1 - x2).unsqueeze(2) * y  # N x M x D
    denom = 1 + 2 * xy + x2 * y2.permute(1, 0)
    return num / denom.unsqueeze(2)


def dist_matrix(x, y, eps=EPS):
    """
    Compute pairwise geodesic distance matrix.

    Parameters
    ----------
    x : tensor (N, D)
        First set of points
    y : tensor (M, D)
        Second set of points

    Returns
    -------
    tensor (N, M)
        Pairwise distance matrix
    """
    return 2 * artanh(torch.norm(_mobius_addition_batch(-x, y), dim=-1), eps)


def p2k(x):
    """Convert from Poincare ball to Klein model."""
    denom = 1 + x.pow(2).sum(-1, keepdim=True)
    return 2 * x / denom


def k2p(x):
    """Convert from Klein model to Poincare ball."""
    denom = 1 + torch.sqrt(1 - x.pow(2).sum(-1, keepdim=True))
    return x / denom


def lorenz_factor(x, dim=-1, keepdim=False):
    """Compute Lorenz factor for Klein disk."""
    return 1 / torch.sqrt(1 - x.pow(2).sum(dim=dim, keepdim=keepdim))


def poincare_mean(x, weights=None, dim=0):
    """
    Compute weighted Einstein midpoint in Poincare ball.

    Parameters
    ----------
    x : tensor
        Points in Poincare ball
    weights : tensor, optional
        Weights for each point (default: uniform)
    dim : int
        Dimension to average over

    Returns
    -------
    tensor
        Midpoint in Poincare ball
    """
    if weights is None:
        weights = torch.ones(x.shape[dim], device=x.device, dtype=x.dtype) / x.shape[dim]

    # Convert to Klein model
    x_klein = p2k(x)

    # Compute Lorenz factors
    lamb = lorenz_factor(x_klein, keepdim=True)

    # Weighted sum
    if dim == 0:
        mean_klein = torch.sum(weights.unsqueeze(-1) * lamb * x_klein, dim=dim, keepdim=True) / \
                     torch.sum(weights.unsqueeze(-1) * lamb, dim=dim, keepdim=True)
    else:
        mean_klein = torch.sum(weights * lamb * x_klein, dim=dim, keepdim=True) / \
                     torch.sum(weights * lamb, dim=dim, keepdim=True)

    # Convert back to Poincare
    mean = k2p(mean_klein)
    return mean.squeeze(dim)
