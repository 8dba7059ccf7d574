"""
Hyperbolic geometry on the Poincaré ball (curvature -1).
Per-point gyrovector arithmetic, batched tensor math, Lorentz stabilization
and the geographic projector.
"""

from .vector import Vector

from .arithmetic import (
    norm,
    dot,
    project_to_poincare_ball,
    conformal_factor,
    mobius_add,
    mobius_sub,
    mobius_scalar_mult,
    distance,
    exp_map,
    log_map,
    gyration,
    parallel_transport,
    batch_mobius_add,
    hyperbolic_attention,
    random_hyperbolic_point,
    validate_hyperbolic,
)

from .lorentz import (
    MAX_POINCARE_RADIUS,
    poincare_to_lorentz,
    lorentz_to_poincare,
    lorentz_to_sphere,
    lorentz_to_geographic,
    lorentz_inner,
    lorentz_distance,
    is_on_hyperboloid,
)

from .projector import (
    GeographicProjector,
    HyperbolicPoint,
    EmbeddingRecord,
    ProjectedEmbedding,
    Neighbor,
)

from . import pmath

__all__ = [
    'Vector',
    # Gyrovector arithmetic
    'norm',
    'dot',
    'project_to_poincare_ball',
    'conformal_factor',
    'mobius_add',
    'mobius_sub',
    'mobius_scalar_mult',
    'distance',
    'exp_map',
    'log_map',
    'gyration',
    'parallel_transport',
    'batch_mobius_add',
    'hyperbolic_attention',
    'random_hyperbolic_point',
    'validate_hyperbolic',
    # Lorentz stabilizer
    'MAX_POINCARE_RADIUS',
    'poincare_to_lorentz',
    'lorentz_to_poincare',
    'lorentz_to_sphere',
    'lorentz_to_geographic',
    'lorentz_inner',
    'lorentz_distance',
    'is_on_hyperboloid',
    # Projector
    'GeographicProjector',
    'HyperbolicPoint',
    'EmbeddingRecord',
    'ProjectedEmbedding',
    'Neighbor',
    # Batched tensor math
    'pmath',
]
