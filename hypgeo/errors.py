"""
Exception taxonomy for the hyperbolic engine.

Numerical boundary violations are not represented here: points at or past the
unit-ball boundary are repaired by ``project_to_poincare_ball`` (or the
Lorentz path of the projector) instead of raising.
"""


class HypGeoError(Exception):
    """Base class for engine errors."""


class DimensionMismatch(HypGeoError, ValueError):
    """
    Operands of a binary operation have different dimensions.

    Always a caller bug, so it is raised immediately and never retried.
    """

    def __init__(self, expected, got, what="vector"):
        self.expected = expected
        self.got = got
        super().__init__(f"{what} dimensions must match: expected {expected}, got {got}")


class InvalidFormat(HypGeoError, ValueError):
    """A binary buffer failed magic-number or size validation."""


class SchemaVersionMismatch(UserWarning):
    """
    Decodable buffer written with an unknown schema version.

    Issued through ``warnings.warn``; decoding continues with the known
    header fields.
    """
