"""
Numeric configuration for the hyperbolic engine.

The constants are read-only for the life of the process. A config file can
override them through a ``hyp_config = dict(...)`` section, e.g.::

    hyp_config = dict(
        eps=1e-10,
        boundary_eps=1e-6,
    )
"""

from dataclasses import dataclass, fields, replace

from mmengine.config import Config


@dataclass(frozen=True)
class NumericConfig:
    """
    Parameters
    ----------
    eps : float
        Guard for divisions by small norms and for the ``artanh`` clamp.
    boundary_eps : float
        Points repaired by ``project_to_poincare_ball`` end at norm ``1 - boundary_eps``.
    max_poincare_radius : float
        Above this planar norm the projector switches to the Lorentz path.
    curvature : float
        Sectional curvature of the ball. Only K = -1 is supported.
    schema_version : int
        Schema version written by the binary codec.
    """
    eps: float = 1e-10
    boundary_eps: float = 1e-6
    max_poincare_radius: float = 1 - 1e-6
    curvature: float = -1.0
    schema_version: int = 0x0100

    def __post_init__(self):
        if self.curvature != -1.0:
            raise ValueError(f"only curvature -1.0 is supported, got {self.curvature}")
        if not 0 < self.eps < 1 or not 0 < self.boundary_eps < 1:
            raise ValueError("eps and boundary_eps must lie in (0, 1)")
        if not 0 < self.max_poincare_radius < 1:
            raise ValueError(f"max_poincare_radius must lie in (0, 1), got {self.max_poincare_radius}")


DEFAULT_CFG = NumericConfig()


def merge_cfg(cfg, overrides):
    """Return a copy of ``cfg`` with the keys of ``overrides`` replaced."""
    known = {f.name for f in fields(NumericConfig)}
    unknown = set(overrides) - known
    if unknown:
        raise KeyError(f"unknown hyp_config keys: {sorted(unknown)}")
    return replace(cfg, **dict(overrides))


def load_cfg(path, base=DEFAULT_CFG):
    """
    Load a numeric config from a python/yaml config file.

    Parameters
    ----------
    path : str
        Config file readable by ``mmengine.config.Config.fromfile``.
    base : NumericConfig
        Values used for keys the file does not set.

    Returns
    -------
    NumericConfig
    """
    cfg = Config.fromfile(path)
    hyp_config = cfg.get('hyp_config', None)
    if hyp_config is None:
        return base
    return merge_cfg(base, hyp_config.to_dict() if hasattr(hyp_config, 'to_dict') else hyp_config)
