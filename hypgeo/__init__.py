from .config import NumericConfig, DEFAULT_CFG, load_cfg
from .errors import DimensionMismatch, InvalidFormat, SchemaVersionMismatch

# Hyperbolic components
from . import hyperbolic
from .codec import EmbeddingPayload, EmbeddingHeader, TrainingMetadata, LossMetrics, encode, decode

__version__ = '0.1.0'
