"""
Geographic projector.

Places Poincaré-disk embeddings on a longitude/latitude map through the
inverse stereographic projection disk → unit sphere, and maps map positions
back onto the disk. Points above ``max_poincare_radius`` go through the
Lorentz stabilizer, which gives the same result without cancellation.

Conventions
-----------
- Only the planar section (x, y) of a vector is projected; further
  coordinates are ignored.
- The open disk covers the southern hemisphere. The origin maps to the
  south pole, (longitude, latitude) = (0°, -90°); the boundary circle maps
  to the equator.
"""

import math
from dataclasses import dataclass
from typing import NamedTuple, Optional

import numpy as np
import torch

from ..config import DEFAULT_CFG
from ..errors import DimensionMismatch
from . import pmath
from .arithmetic import check_dims, distance, project_to_poincare_ball
from .lorentz import lorentz_to_geographic, poincare_to_lorentz
from .vector import Vector, as_vector


class HyperbolicPoint(NamedTuple):
    """
    Projection-facing view of a point.

    ``w`` carries the Lorentz time coordinate when the stabilized path was
    used, otherwise None.
    """
    x: float
    y: float
    z: float = 0.0
    w: Optional[float] = None


@dataclass(frozen=True)
class EmbeddingRecord:
    """An embedding as produced by the training pipeline."""
    id: str
    vector: Vector
    label: str = ''
    cluster_id: int = -1
    confidence: float = 1.0
    timestamp: int = 0

    def __post_init__(self):
        as_vector(self.vector, 'vector')


@dataclass(frozen=True)
class ProjectedEmbedding:
    """Geographic placement of one ``EmbeddingRecord`` plus diagnostics."""
    id: str
    longitude: float
    latitude: float
    distance_to_origin: float
    confidence: float
    cluster_id: int
    label: str = ''
    stabilized: bool = False
    quality: float = 0.0
    timestamp: int = 0

    def to_geojson_feature(self):
        return {
            'type': 'Feature',
            'id': self.id,
            'geometry': {
                'type': 'Point',
                'coordinates': [self.longitude, self.latitude],
            },
            'properties': {
                'semantic_label': self.label,
                'cluster_id': self.cluster_id,
                'hyperbolic_distance_to_center': self.distance_to_origin,
                'lorentz_stability_check': self.stabilized,
                'embedding_confidence': self.confidence,
                'projection_quality': self.quality,
                'last_updated': self.timestamp,
            },
        }


class Neighbor(NamedTuple):
    record: EmbeddingRecord
    distance: float
    longitude: float
    latitude: float


def _planar(coords):
    as_vector(coords, 'coords')
    if coords.dim < 2:
        raise DimensionMismatch(2, coords.dim, what="projected vector (at least)")
    return Vector._wrap(coords.data[:2])


def _quality(d_h, d_e):
    if d_h == 0 and d_e == 0:
        return 1.0
    if d_h == 0 or d_e == 0:
        return 0.0
    return min(d_h / d_e, d_e / d_h)


class GeographicProjector:
    """
    Stereographic mapping between the Poincaré disk and longitude/latitude.

    Parameters
    ----------
    cfg : NumericConfig
        Numeric constants; ``cfg.max_poincare_radius`` selects the Lorentz path.
    """

    def __init__(self, cfg=DEFAULT_CFG):
        self.cfg = cfg

    @property
    def max_radius(self):
        return self.cfg.max_poincare_radius

    # -------------------------------------------------------------------------
    # Single points
    # -------------------------------------------------------------------------

    def poincare_to_geographic(self, coords):
        """
        Project a disk point to (longitude°, latitude°).

        Direct path for ‖(x, y)‖ <= max radius:

            sphere = (2x, 2y, x² + y² - 1) / (1 + x² + y²)
            longitude = atan2(sphere_y, sphere_x), latitude = asin(sphere_z)

        Lorentz-stabilized path otherwise.

        Parameters
        ----------
        coords : Vector
            Point with dim >= 2.

        Returns
        -------
        tuple of float
            (longitude, latitude) in degrees.
        """
        xy = _planar(coords)
        x, y = xy.data
        if math.hypot(x, y) > self.max_radius:
            return lorentz_to_geographic(poincare_to_lorentz(xy, cfg=self.cfg))
        r2 = x * x + y * y
        denom = 1.0 + r2
        sphere_x = 2.0 * x / denom
        sphere_y = 2.0 * y / denom
        sphere_z = (r2 - 1.0) / denom
        longitude = math.degrees(math.atan2(sphere_y, sphere_x))
        latitude = math.degrees(math.asin(max(-1.0, min(1.0, sphere_z))))
        return longitude, latitude

    def geographic_to_poincare(self, longitude, latitude):
        """
        Map (longitude°, latitude°) back onto the disk.

        Stereographic projection from the north pole, written as
        r = tan(45° + latitude / 2), (x, y) = r (cos lon, sin lon).
        Northern latitudes land outside the disk and are repaired with
        ``project_to_poincare_ball``.

        Returns
        -------
        Vector (2,)
        """
        longitude = float(longitude)
        latitude = float(latitude)
        if not (math.isfinite(longitude) and math.isfinite(latitude)):
            raise ValueError("longitude and latitude must be finite")
        if not -90.0 <= latitude <= 90.0:
            raise ValueError(f"latitude must lie in [-90, 90], got {latitude}")
        r = math.tan(math.radians(45.0 + latitude / 2.0))
        lon = math.radians(longitude)
        point = Vector([r * math.cos(lon), r * math.sin(lon)])
        return project_to_poincare_ball(point, cfg=self.cfg)

    def to_hyperbolic_point(self, coords):
        """Planar coordinates, third coordinate and Lorentz time (if stabilized)."""
        xy = _planar(coords)
        x, y = xy.data
        z = coords[2] if coords.dim > 2 else 0.0
        w = None
        if math.hypot(x, y) > self.max_radius:
            w = float(poincare_to_lorentz(xy, cfg=self.cfg).data[0])
        return HyperbolicPoint(float(x), float(y), float(z), w)

    def calculate_hyperbolic_distance(self, u, v):
        """
        Metric distance for curvature K = -1:

            d(u, v) = (2 / √|K|) artanh(√|K| ‖(-u) ⊕ v‖) = 2 · distance(u, v)

        Independent of any distance measured on the map.
        """
        return 2.0 * distance(u, v, cfg=self.cfg)

    def calculate_projection_quality(self, original, projected):
        """
        How well the map preserves the distance from the origin.

        quality = min(d_h / d_e, d_e / d_h), where d_h is the hyperbolic
        distance of ``original`` from the origin and d_e the Euclidean norm of
        the ``projected`` (longitude, latitude) pair. Diagnostic only.

        When one of the distances is zero the ratio is undefined: the result
        is 1.0 if both are zero and 0.0 otherwise.
        """
        xy = _planar(original)
        d_h = self.calculate_hyperbolic_distance(Vector.zeros(2), xy)
        lon, lat = projected
        d_e = math.hypot(lon, lat)
        return _quality(d_h, d_e)

    def validate_projection(self, coords):
        """Precondition check: the planar section lies inside the unit disk."""
        x, y = _planar(coords).data
        return math.hypot(x, y) < 1.0

    # -------------------------------------------------------------------------
    # Batches
    # -------------------------------------------------------------------------

    def project_array(self, coords):
        """
        Vectorised ``poincare_to_geographic`` over the rows of an array.

        Parameters
        ----------
        coords : array-like (N, D), D >= 2

        Returns
        -------
        lonlat : ndarray (N, 2)
            Longitude and latitude in degrees.
        stabilized : ndarray (N,) of bool
            Rows that went through the Lorentz path.
        """
        pts = torch.from_numpy(self._as_rows(coords))
        lonlat, stabilized = self._project_rows(pts[:, :2])
        return lonlat.numpy(), stabilized.numpy()

    @staticmethod
    def _as_rows(coords):
        arr = np.array(coords, dtype=np.float64)
        if arr.ndim != 2:
            raise ValueError(f"expected an (N, D) array, got shape {arr.shape}")
        if arr.shape[1] < 2:
            raise DimensionMismatch(2, arr.shape[1], what="projected vector (at least)")
        if not np.all(np.isfinite(arr)):
            raise ValueError("coordinates must be finite")
        return arr

    def _project_rows(self, xy):
        r = xy.norm(dim=-1)
        stabilized = r > self.max_radius

        # direct path
        r2 = xy.pow(2).sum(-1)
        denom = 1 + r2
        direct = torch.stack([2 * xy[:, 0] / denom, 2 * xy[:, 1] / denom, (r2 - 1) / denom], dim=-1)

        # Lorentz path, on repaired points
        xy_l = pmath.project(xy, self.cfg.boundary_eps)
        r_l = xy_l.norm(dim=-1)
        l_denom = (1 - r_l) * (1 + r_l)
        t = (1 + r_l.pow(2)) / l_denom
        x_l = 2 * xy_l / l_denom.unsqueeze(-1)
        lorentz = torch.cat([x_l / t.unsqueeze(-1), (-1 / t).unsqueeze(-1)], dim=-1)

        sphere = torch.where(stabilized.unsqueeze(-1), lorentz, direct)
        longitude = torch.rad2deg(torch.atan2(sphere[:, 1], sphere[:, 0]))
        latitude = torch.rad2deg(torch.asin(sphere[:, 2].clamp(-1, 1)))
        return torch.stack([longitude, latitude], dim=-1), stabilized

    def batch_poincare_to_geographic(self, embeddings):
        """
        Project a sequence of ``EmbeddingRecord`` objects.

        Each element is handled independently; output ``i`` belongs to input
        ``i``. Attached diagnostics: hyperbolic distance to the origin (full
        vector), confidence, cluster id and projection quality.

        All records must share one dimension, even though only the planar
        section is projected: ``distance_to_origin`` is measured on the full
        vector, and a batch is treated as one embedding space.

        Returns
        -------
        list of ProjectedEmbedding

        Raises
        ------
        DimensionMismatch
            Records of different dimensions, or dimension below 2.
        TypeError
            An element is not an ``EmbeddingRecord``.
        """
        records = list(embeddings)
        if not records:
            return []
        for rec in records:
            if not isinstance(rec, EmbeddingRecord):
                raise TypeError(f"expected EmbeddingRecord, got {type(rec).__name__}")
        check_dims([rec.vector for rec in records])

        pts = torch.from_numpy(self._as_rows([rec.vector.data for rec in records]))
        lonlat, stabilized = self._project_rows(pts[:, :2])
        to_origin = pmath.dist0(pts, eps=self.cfg.eps)
        planar_to_origin = pmath.dist0(pts[:, :2], eps=self.cfg.eps)

        out = []
        for i, rec in enumerate(records):
            lon, lat = float(lonlat[i, 0]), float(lonlat[i, 1])
            out.append(ProjectedEmbedding(
                id=rec.id,
                longitude=lon,
                latitude=lat,
                distance_to_origin=float(to_origin[i]),
                confidence=rec.confidence,
                cluster_id=rec.cluster_id,
                label=rec.label,
                stabilized=bool(stabilized[i]),
                quality=_quality(float(planar_to_origin[i]), math.hypot(lon, lat)),
                timestamp=rec.timestamp,
            ))
        return out

    @staticmethod
    def to_feature_collection(projected):
        """GeoJSON FeatureCollection dict for a list of ``ProjectedEmbedding``."""
        return {
            'type': 'FeatureCollection',
            'features': [p.to_geojson_feature() for p in projected],
        }

    @staticmethod
    def to_topology(projected, name='embeddings'):
        """
        TopoJSON Topology dict for a list of ``ProjectedEmbedding``.

        Every embedding is a Point geometry of one GeometryCollection object
        named ``name``. Points carry no arcs, so ``arcs`` is empty.
        """
        geometries = []
        for p in projected:
            feature = p.to_geojson_feature()
            geometries.append({
                'type': 'Point',
                'id': feature['id'],
                'coordinates': feature['geometry']['coordinates'],
                'properties': feature['properties'],
            })
        return {
            'type': 'Topology',
            'objects': {
                name: {'type': 'GeometryCollection', 'geometries': geometries},
            },
            'arcs': [],
        }

    def query_neighbors(self, longitude, latitude, embeddings, k=10):
        """
        Nearest embeddings to a map position, by hyperbolic distance.

        The map position is taken back to the disk with
        ``geographic_to_poincare`` and compared with the planar section of
        every record.

        Returns
        -------
        list of Neighbor
            At most ``k`` entries, closest first.
        """
        if k < 1:
            raise ValueError(f"k must be positive, got {k}")
        records = list(embeddings)
        if not records:
            return []
        center = self.geographic_to_poincare(longitude, latitude)
        pts = torch.from_numpy(self._as_rows([rec.vector.data for rec in records]))
        xy = pts[:, :2]
        dists = pmath.dist_matrix(torch.from_numpy(center.data.copy()).unsqueeze(0), xy,
                                  eps=self.cfg.eps)[0]
        k = min(k, len(records))
        values, indices = torch.topk(dists, k, largest=False, sorted=True)
        lonlat, _ = self._project_rows(xy[indices])
        return [
            Neighbor(records[int(idx)], float(val), float(lonlat[j, 0]), float(lonlat[j, 1]))
            for j, (val, idx) in enumerate(zip(values, indices))
        ]
