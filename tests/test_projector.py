"""Tests for the geographic projector."""
import json
import math

import numpy as np
import pytest

from hypgeo.config import NumericConfig
from hypgeo.errors import DimensionMismatch
from hypgeo.hyperbolic import (
    EmbeddingRecord,
    GeographicProjector,
    HyperbolicPoint,
    Vector,
    distance,
    norm,
    random_hyperbolic_point,
)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def projector():
    return GeographicProjector()


@pytest.fixture
def disk_points():
    rng = np.random.default_rng(11)
    return [random_hyperbolic_point(2, radius=0.99, rng=rng) for _ in range(25)]


@pytest.fixture
def records():
    rng = np.random.default_rng(5)
    out = []
    for i in range(12):
        out.append(EmbeddingRecord(
            id=f"e{i}",
            vector=random_hyperbolic_point(3, radius=0.9, rng=rng),
            label=f"label_{i % 3}",
            cluster_id=i % 3,
            confidence=0.5 + i / 100,
            timestamp=1700000000000 + i,
        ))
    return out


def _direct(x, y):
    r2 = x * x + y * y
    z = (r2 - 1) / (1 + r2)
    return (math.degrees(math.atan2(2 * y / (1 + r2), 2 * x / (1 + r2))),
            math.degrees(math.asin(z)))


# ---------------------------------------------------------------------------
# Forward projection
# ---------------------------------------------------------------------------

class TestPoincareToGeographic:

    def test_origin_is_south_pole(self, projector):
        lon, lat = projector.poincare_to_geographic(Vector([0.0, 0.0]))
        assert lon == 0.0
        assert lat == pytest.approx(-90.0)

    def test_point_on_x_axis(self, projector):
        lon, lat = projector.poincare_to_geographic(Vector([0.5, 0.0]))
        assert lon == pytest.approx(0.0)
        assert lat == pytest.approx(math.degrees(math.asin(-0.6)))

    def test_point_on_y_axis(self, projector):
        lon, _ = projector.poincare_to_geographic(Vector([0.0, 0.5]))
        assert lon == pytest.approx(90.0)

    def test_ignores_extra_coordinates(self, projector):
        assert projector.poincare_to_geographic(Vector([0.2, 0.3, 0.4])) == \
            projector.poincare_to_geographic(Vector([0.2, 0.3]))

    def test_disk_maps_to_southern_hemisphere(self, projector, disk_points):
        for p in disk_points:
            lon, lat = projector.poincare_to_geographic(p)
            assert -180.0 <= lon <= 180.0
            assert -90.0 <= lat <= 0.0

    def test_lorentz_path_matches_direct_formula(self, projector):
        # just above the switch radius
        r = 1 - 5e-7
        for angle in (0.3, 2.0, -1.2):
            x, y = r * math.cos(angle), r * math.sin(angle)
            lon, lat = projector.poincare_to_geographic(Vector([x, y]))
            exp_lon, exp_lat = _direct(x, y)
            assert lon == pytest.approx(exp_lon, abs=1e-9)
            assert lat == pytest.approx(exp_lat, abs=1e-6)

    def test_outside_points_are_stabilized(self, projector):
        lon, lat = projector.poincare_to_geographic(Vector([0.0, 1.5]))
        assert math.isfinite(lon) and math.isfinite(lat)
        assert lon == pytest.approx(90.0)
        assert -0.001 < lat < 0.0

    def test_dimension_too_small(self, projector):
        with pytest.raises(DimensionMismatch):
            projector.poincare_to_geographic(Vector([0.1]))

    def test_rejects_untyped_input(self, projector):
        with pytest.raises(TypeError):
            projector.poincare_to_geographic([0.1, 0.2])

    def test_custom_switch_radius(self, disk_points):
        # forcing every point through the Lorentz path gives the same answer
        eager = GeographicProjector(NumericConfig(max_poincare_radius=1e-3))
        default = GeographicProjector()
        for p in disk_points:
            np.testing.assert_allclose(eager.poincare_to_geographic(p),
                                       default.poincare_to_geographic(p), atol=1e-9)


# ---------------------------------------------------------------------------
# Inverse projection
# ---------------------------------------------------------------------------

class TestGeographicToPoincare:

    def test_south_pole_is_origin(self, projector):
        point = projector.geographic_to_poincare(0.0, -90.0)
        np.testing.assert_allclose(point.data, [0.0, 0.0], atol=1e-12)

    def test_round_trip(self, projector, disk_points):
        for p in disk_points:
            lon, lat = projector.poincare_to_geographic(p)
            back = projector.geographic_to_poincare(lon, lat)
            np.testing.assert_allclose(back.data, p.data, atol=1e-8)

    def test_equator_lands_inside_disk(self, projector):
        point = projector.geographic_to_poincare(45.0, 0.0)
        assert norm(point) < 1
        assert norm(point) == pytest.approx(1.0, abs=1e-5)

    def test_north_pole_is_repaired(self, projector):
        point = projector.geographic_to_poincare(30.0, 90.0)
        assert norm(point) == pytest.approx(1 - 1e-6, abs=1e-9)

    def test_northern_latitude_is_repaired(self, projector):
        point = projector.geographic_to_poincare(30.0, 40.0)
        assert norm(point) < 1
        lon, _ = projector.poincare_to_geographic(point)
        assert lon == pytest.approx(30.0)

    @pytest.mark.parametrize("lat", [-90.5, 91.0, float('nan')])
    def test_invalid_latitude(self, projector, lat):
        with pytest.raises(ValueError):
            projector.geographic_to_poincare(0.0, lat)


# ---------------------------------------------------------------------------
# Helpers and diagnostics
# ---------------------------------------------------------------------------

class TestDiagnostics:

    def test_hyperbolic_distance_is_metric_distance(self, projector):
        u, v = Vector([0.1, 0.2]), Vector([-0.3, 0.4])
        assert projector.calculate_hyperbolic_distance(u, v) == pytest.approx(2 * distance(u, v))
        assert projector.calculate_hyperbolic_distance(Vector([0.0, 0.0]), Vector([0.5, 0.0])) == \
            pytest.approx(2 * math.atanh(0.5))

    def test_hyperbolic_distance_of_identical_points(self, projector):
        u = Vector([0.3, 0.4])
        assert projector.calculate_hyperbolic_distance(u, u) == 0

    def test_quality_ratio(self, projector):
        original = Vector([0.5, 0.0])
        projected = projector.poincare_to_geographic(original)
        d_h = 2 * math.atanh(0.5)
        d_e = math.hypot(*projected)
        quality = projector.calculate_projection_quality(original, projected)
        assert quality == pytest.approx(min(d_h / d_e, d_e / d_h))
        assert 0 < quality <= 1

    def test_quality_zero_distances(self, projector):
        origin = Vector([0.0, 0.0])
        assert projector.calculate_projection_quality(origin, (0.0, 0.0)) == 1.0
        assert projector.calculate_projection_quality(origin, (0.0, -90.0)) == 0.0
        assert projector.calculate_projection_quality(Vector([0.5, 0.0]), (0.0, 0.0)) == 0.0

    def test_validate_projection(self, projector):
        assert projector.validate_projection(Vector([0.5, 0.5]))
        assert not projector.validate_projection(Vector([1.0, 0.0]))
        assert not projector.validate_projection(Vector([0.8, 0.8, 0.0]))
        with pytest.raises(DimensionMismatch):
            projector.validate_projection(Vector([0.5]))

    def test_hyperbolic_point(self, projector):
        point = projector.to_hyperbolic_point(Vector([0.1, 0.2, 0.3]))
        assert point == HyperbolicPoint(0.1, 0.2, 0.3, None)
        assert projector.to_hyperbolic_point(Vector([0.1, 0.2])).z == 0.0

    def test_hyperbolic_point_carries_lorentz_time(self, projector):
        point = projector.to_hyperbolic_point(Vector([1.0, 0.0]))
        assert point.w is not None
        assert point.w > 1e5


# ---------------------------------------------------------------------------
# Batches
# ---------------------------------------------------------------------------

class TestBatch:

    def test_project_array_matches_scalar(self, projector, disk_points):
        coords = [p.data for p in disk_points] + [[0.0, 1.5], [1 - 5e-7, 0.0], [0.0, 0.0]]
        lonlat, stabilized = projector.project_array(coords)
        assert lonlat.shape == (len(coords), 2)
        assert stabilized.tolist() == [False] * len(disk_points) + [True, True, False]
        for row, c in zip(lonlat, coords):
            expected = projector.poincare_to_geographic(Vector(c))
            np.testing.assert_allclose(row, expected, atol=1e-9)

    def test_project_array_shape_checks(self, projector):
        with pytest.raises(ValueError):
            projector.project_array([0.1, 0.2])
        with pytest.raises(DimensionMismatch):
            projector.project_array([[0.1], [0.2]])

    def test_batch_preserves_order_and_metadata(self, projector, records):
        projected = projector.batch_poincare_to_geographic(records)
        assert [p.id for p in projected] == [r.id for r in records]
        for rec, p in zip(records, projected):
            assert p.cluster_id == rec.cluster_id
            assert p.confidence == rec.confidence
            assert p.label == rec.label
            assert p.timestamp == rec.timestamp
            assert not p.stabilized

    def test_batch_matches_scalar(self, projector, records):
        projected = projector.batch_poincare_to_geographic(records)
        for rec, p in zip(records, projected):
            lon, lat = projector.poincare_to_geographic(rec.vector)
            assert p.longitude == pytest.approx(lon, abs=1e-9)
            assert p.latitude == pytest.approx(lat, abs=1e-9)
            assert p.distance_to_origin == pytest.approx(
                projector.calculate_hyperbolic_distance(Vector.zeros(3), rec.vector), rel=1e-9)
            assert p.quality == pytest.approx(
                projector.calculate_projection_quality(rec.vector, (p.longitude, p.latitude)), rel=1e-9)

    def test_batch_empty(self, projector):
        assert projector.batch_poincare_to_geographic([]) == []

    def test_batch_dimension_mismatch(self, projector):
        recs = [EmbeddingRecord('a', Vector([0.1, 0.2])),
                EmbeddingRecord('b', Vector([0.1, 0.2, 0.3]))]
        with pytest.raises(DimensionMismatch):
            projector.batch_poincare_to_geographic(recs)

    def test_batch_requires_planar_section(self, projector):
        recs = [EmbeddingRecord('a', Vector([0.1])), EmbeddingRecord('b', Vector([0.2]))]
        with pytest.raises(DimensionMismatch):
            projector.batch_poincare_to_geographic(recs)

    def test_batch_rejects_raw_vectors(self, projector):
        with pytest.raises(TypeError):
            projector.batch_poincare_to_geographic([Vector([0.1, 0.2])])

    def test_record_requires_vector(self):
        with pytest.raises(TypeError):
            EmbeddingRecord('a', [0.1, 0.2])

    def test_feature_collection(self, projector, records):
        projected = projector.batch_poincare_to_geographic(records[:3])
        collection = projector.to_feature_collection(projected)
        assert collection['type'] == 'FeatureCollection'
        assert len(collection['features']) == 3
        feature = collection['features'][0]
        assert feature['id'] == 'e0'
        assert feature['geometry']['coordinates'] == [projected[0].longitude, projected[0].latitude]
        assert feature['properties']['cluster_id'] == 0
        # serializable as-is
        json.dumps(collection)

    def test_topology(self, projector, records):
        projected = projector.batch_poincare_to_geographic(records[:4])
        topology = projector.to_topology(projected)
        assert topology['type'] == 'Topology'
        assert topology['arcs'] == []
        collection = topology['objects']['embeddings']
        assert collection['type'] == 'GeometryCollection'
        geometries = collection['geometries']
        assert [g['id'] for g in geometries] == ['e0', 'e1', 'e2', 'e3']
        assert all(g['type'] == 'Point' for g in geometries)
        assert geometries[1]['coordinates'] == [projected[1].longitude, projected[1].latitude]
        assert geometries[2]['properties']['cluster_id'] == 2
        json.dumps(topology)

    def test_topology_object_name(self, projector):
        topology = projector.to_topology([], name='layer0')
        assert topology['objects'] == {'layer0': {'type': 'GeometryCollection', 'geometries': []}}


# ---------------------------------------------------------------------------
# Neighbor queries
# ---------------------------------------------------------------------------

class TestQueryNeighbors:

    def test_nearest_is_the_record_itself(self, projector):
        recs = [EmbeddingRecord(f"p{i}", Vector(c)) for i, c in
                enumerate([[0.1, 0.1], [0.5, -0.2], [-0.4, 0.3], [0.0, 0.7]])]
        lon, lat = projector.poincare_to_geographic(recs[2].vector)
        neighbors = projector.query_neighbors(lon, lat, recs, k=2)
        assert len(neighbors) == 2
        assert neighbors[0].record.id == 'p2'
        assert neighbors[0].distance == pytest.approx(0.0, abs=1e-6)
        assert neighbors[0].longitude == pytest.approx(lon, abs=1e-6)
        assert neighbors[0].distance <= neighbors[1].distance

    def test_k_larger_than_population(self, projector, records):
        neighbors = projector.query_neighbors(0.0, -90.0, records, k=100)
        assert len(neighbors) == len(records)
        dists = [n.distance for n in neighbors]
        assert dists == sorted(dists)
        expected = sorted(2 * math.atanh(math.hypot(*r.vector.data[:2])) for r in records)
        np.testing.assert_allclose(dists, expected, rtol=1e-9)

    def test_empty_and_invalid_k(self, projector, records):
        assert projector.query_neighbors(0.0, -90.0, [], k=3) == []
        with pytest.raises(ValueError):
            projector.query_neighbors(0.0, -90.0, records, k=0)
