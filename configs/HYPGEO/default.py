# Numeric constants of the hyperbolic engine (curvature K = -1).
hyp_config = dict(
    eps=1e-10,                    # artanh clamp and small-norm guard
    boundary_eps=1e-6,            # repaired points end at norm 1 - boundary_eps
    max_poincare_radius=1 - 1e-6, # above this the projector uses the Lorentz path
    curvature=-1.0,
    schema_version=0x0100,        # written into the HRGN header
)

# Driver settings
batch_size = 4096
synthetic_radius = 0.8
