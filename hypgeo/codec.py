"""
HRGN binary format for embedding batches.

Layout::

    offset 0    header (32 bytes, big-endian)
                  0  magic          uint32   0x4852474E ('HRGN')
                  4  schema_version uint16
                  6  curvature      float32
                 10  embedding_dim  uint16
                 12  count          uint32
                 16  timestamp      uint64   (milliseconds)
                 24  zero padding
    offset 32   embeddings, count x dim float32, little-endian, row-major
    offset 32+E metadata (64 bytes, big-endian)
                  0  training_epoch uint32
                  4  total, manifold, topological, hyperbolic loss  float32
                 20  zero padding

Decoding never copies the embeddings block: the returned array is a
read-only view over the caller's buffer.
"""

import math
import struct
import time
import warnings
from dataclasses import dataclass, field

import numpy as np

from .config import DEFAULT_CFG
from .errors import DimensionMismatch, InvalidFormat, SchemaVersionMismatch
from .hyperbolic.vector import Vector

MAGIC_NUMBER = 0x4852474E
SCHEMA_VERSION = DEFAULT_CFG.schema_version
KNOWN_SCHEMA_VERSIONS = (SCHEMA_VERSION,)

HEADER_SIZE = 32
METADATA_SIZE = 64
FLOAT_SIZE = 4

_MAGIC = struct.Struct('>I')
_HEADER = struct.Struct('>IHfHIQ')
_METADATA = struct.Struct('>Iffff')
EMBEDDING_DTYPE = np.dtype('<f4')

MAX_DIM = 0xFFFF
MAX_COUNT = 0xFFFFFFFF
MAX_SCHEMA_VERSION = 0xFFFF
MAX_EPOCH = 0xFFFFFFFF
MAX_TIMESTAMP = 0xFFFFFFFFFFFFFFFF
_FLOAT32_MAX = float(np.finfo(np.float32).max)


def _check_uint(name, value, upper):
    if isinstance(value, bool) or not isinstance(value, (int, np.integer)):
        raise TypeError(f"{name} must be an integer, got {type(value).__name__}")
    if not 0 <= value <= upper:
        raise ValueError(f"{name} out of range [0, {upper}]: {value}")


def _check_float32(name, value):
    value = float(value)
    if math.isfinite(value) and abs(value) > _FLOAT32_MAX:
        raise ValueError(f"{name} does not fit in float32: {value}")


def payload_size(dim, count):
    """Exact buffer size for ``count`` embeddings of dimension ``dim``."""
    return HEADER_SIZE + count * dim * FLOAT_SIZE + METADATA_SIZE


@dataclass(frozen=True)
class EmbeddingHeader:
    curvature: float
    embedding_dim: int
    total_embeddings: int
    timestamp: int
    schema_version: int = SCHEMA_VERSION
    magic_number: int = MAGIC_NUMBER


@dataclass(frozen=True)
class LossMetrics:
    total: float = 0.0
    manifold: float = 0.0
    topological: float = 0.0
    hyperbolic: float = 0.0


@dataclass(frozen=True)
class TrainingMetadata:
    training_epoch: int = 0
    losses: LossMetrics = field(default_factory=LossMetrics)


@dataclass(frozen=True)
class EmbeddingPayload:
    """
    Header, embeddings (``total_embeddings x embedding_dim`` float32) and
    training metadata.
    """
    header: EmbeddingHeader
    embeddings: np.ndarray
    metadata: TrainingMetadata = field(default_factory=TrainingMetadata)

    @classmethod
    def from_array(cls, embeddings, curvature=-1.0, training_epoch=0, losses=None,
                   timestamp=None):
        """Build a payload around an (N, D) array, stamping the current time."""
        arr = np.ascontiguousarray(embeddings, dtype=EMBEDDING_DTYPE)
        if arr.ndim != 2:
            raise ValueError(f"embeddings must be an (N, D) array, got shape {arr.shape}")
        if timestamp is None:
            timestamp = int(time.time() * 1000)
        header = EmbeddingHeader(
            curvature=float(curvature),
            embedding_dim=arr.shape[1],
            total_embeddings=arr.shape[0],
            timestamp=int(timestamp),
        )
        metadata = TrainingMetadata(training_epoch, losses or LossMetrics())
        return cls(header, arr, metadata)

    @property
    def schema_recognized(self):
        return self.header.schema_version in KNOWN_SCHEMA_VERSIONS

    def vectors(self):
        """Yield every embedding as a ``Vector`` (copied to float64)."""
        for row in self.embeddings:
            yield Vector(row)


def encode(payload):
    """
    Serialize a payload.

    Parameters
    ----------
    payload : EmbeddingPayload

    Returns
    -------
    bytes
        Exactly ``32 + 4 * dim * count + 64`` bytes.

    Raises
    ------
    ValueError
        A header or metadata field does not fit its wire type.
    DimensionMismatch
        ``embeddings`` does not have the shape the header declares.
    """
    header = payload.header
    meta = payload.metadata
    losses = meta.losses
    dim, count = header.embedding_dim, header.total_embeddings
    _check_uint('embedding_dim', dim, MAX_DIM)
    _check_uint('total_embeddings', count, MAX_COUNT)
    _check_uint('schema_version', header.schema_version, MAX_SCHEMA_VERSION)
    _check_uint('timestamp', header.timestamp, MAX_TIMESTAMP)
    _check_uint('training_epoch', meta.training_epoch, MAX_EPOCH)
    _check_float32('curvature', header.curvature)
    for name in ('total', 'manifold', 'topological', 'hyperbolic'):
        _check_float32(f'losses.{name}', getattr(losses, name))

    embeddings = np.asarray(payload.embeddings)
    if embeddings.size == 0 and count == 0:
        embeddings = embeddings.reshape(0, dim)
    if embeddings.ndim != 2:
        raise ValueError(f"embeddings must be an (N, D) array, got shape {embeddings.shape}")
    if embeddings.shape[1] != dim:
        raise DimensionMismatch(dim, embeddings.shape[1], what="embedding")
    if embeddings.shape[0] != count:
        raise DimensionMismatch(count, embeddings.shape[0], what="embedding count")

    buf = bytearray(payload_size(dim, count))
    _HEADER.pack_into(buf, 0, MAGIC_NUMBER, header.schema_version, header.curvature,
                      dim, count, header.timestamp)
    emb_bytes = count * dim * FLOAT_SIZE
    if emb_bytes:
        block = np.frombuffer(buf, dtype=EMBEDDING_DTYPE, count=count * dim, offset=HEADER_SIZE)
        block[:] = embeddings.astype(EMBEDDING_DTYPE, copy=False).ravel()

    _METADATA.pack_into(buf, HEADER_SIZE + emb_bytes, meta.training_epoch,
                        losses.total, losses.manifold, losses.topological, losses.hyperbolic)
    return bytes(buf)


def decode(buffer):
    """
    Parse an HRGN buffer without copying the embeddings block.

    Validation happens in this order, each step before any later field is
    read: at least 4 bytes, magic number, full header, declared size.

    Parameters
    ----------
    buffer : bytes, bytearray or memoryview

    Returns
    -------
    EmbeddingPayload
        ``embeddings`` is a read-only view into ``buffer``.

    Raises
    ------
    InvalidFormat
        Wrong magic number, truncated buffer, or a size that does not match
        the header.
    """
    view = memoryview(buffer).cast('B')
    size = view.nbytes
    if size < _MAGIC.size:
        raise InvalidFormat(f"buffer too short for magic number: {size} bytes")
    (magic,) = _MAGIC.unpack_from(view, 0)
    if magic != MAGIC_NUMBER:
        raise InvalidFormat(f"Invalid HRGN binary format: magic 0x{magic:08X}")
    if size < HEADER_SIZE:
        raise InvalidFormat(f"buffer too short for header: {size} bytes")

    _, version, curvature, dim, count, timestamp = _HEADER.unpack_from(view, 0)
    expected = payload_size(dim, count)
    recognized = version in KNOWN_SCHEMA_VERSIONS
    if size < expected:
        raise InvalidFormat(f"truncated buffer: {size} bytes, header declares {expected}")
    if recognized and size != expected:
        raise InvalidFormat(f"buffer size {size} does not match declared size {expected}")
    if not recognized:
        warnings.warn(
            f"HRGN schema version 0x{version:04X} is not recognized "
            f"(known: {', '.join(f'0x{v:04X}' for v in KNOWN_SCHEMA_VERSIONS)}); "
            f"decoding with the known header fields",
            SchemaVersionMismatch,
            stacklevel=2,
        )

    if count * dim:
        embeddings = np.frombuffer(view, dtype=EMBEDDING_DTYPE, count=count * dim, offset=HEADER_SIZE)
        embeddings = embeddings.reshape(count, dim)
    else:
        embeddings = np.empty((count, dim), dtype=EMBEDDING_DTYPE)
    embeddings.flags.writeable = False

    meta_offset = HEADER_SIZE + count * dim * FLOAT_SIZE
    epoch, total, manifold, topological, hyperbolic = _METADATA.unpack_from(view, meta_offset)

    header = EmbeddingHeader(
        curvature=curvature,
        embedding_dim=dim,
        total_embeddings=count,
        timestamp=timestamp,
        schema_version=version,
        magic_number=magic,
    )
    metadata = TrainingMetadata(epoch, LossMetrics(total, manifold, topological, hyperbolic))
    return EmbeddingPayload(header, embeddings, metadata)
