#!/usr/bin/env python
"""
Project an HRGN embedding batch onto longitude/latitude.

This script:
1. Decodes an HRGN payload (or generates random points in the ball)
2. Projects every embedding through the Poincaré → sphere mapping,
   switching to the Lorentz path near the boundary
3. Reports header, training metadata and projection-quality statistics
4. Optionally writes a GeoJSON FeatureCollection or a TopoJSON Topology

Usage:
    # Existing batch:
    python project_embeddings.py --input embeddings.hrgn --geojson map.json

    # Synthetic batch, saved for later:
    python project_embeddings.py --synthetic 10000 --dim 2 --save demo.hrgn
"""

import argparse
import json

import numpy as np
from mmengine.config import Config
from tqdm import tqdm

from hypgeo import DEFAULT_CFG, load_cfg
from hypgeo.codec import EmbeddingPayload, decode, encode
from hypgeo.hyperbolic import EmbeddingRecord, GeographicProjector, Vector


def synthetic_payload(n, dim, radius, seed):
    """Random points with uniform directions and norms in [0, radius)."""
    rng = np.random.default_rng(seed)
    directions = rng.standard_normal((n, dim))
    directions /= np.linalg.norm(directions, axis=-1, keepdims=True).clip(min=1e-12)
    radii = radius * rng.random((n, 1))
    return EmbeddingPayload.from_array(directions * radii)


def load_payload(path):
    with open(path, 'rb') as f:
        return decode(f.read())


def project_payload(projector, payload, batch_size):
    """Project a decoded payload in chunks. Returns the list of ProjectedEmbedding."""
    n = payload.header.total_embeddings
    projected = []
    for start in tqdm(range(0, n, batch_size), desc="Projecting",
                      total=(n + batch_size - 1) // batch_size):
        chunk = payload.embeddings[start:start + batch_size]
        records = [
            EmbeddingRecord(id=f"embedding_{start + i}", vector=Vector(row),
                            timestamp=payload.header.timestamp)
            for i, row in enumerate(chunk)
        ]
        projected.extend(projector.batch_poincare_to_geographic(records))
    return projected


def print_summary(payload, projected):
    header = payload.header
    losses = payload.metadata.losses
    print(f"\n{'='*60}")
    print(f"HRGN PAYLOAD")
    print(f"  Schema version: 0x{header.schema_version:04X}"
          f"{'' if payload.schema_recognized else ' (unrecognized)'}")
    print(f"  Curvature: {header.curvature}")
    print(f"  Embeddings: {header.total_embeddings} x {header.embedding_dim}")
    print(f"  Timestamp: {header.timestamp}")
    print(f"  Epoch {payload.metadata.training_epoch}: total={losses.total:.4f}, "
          f"manifold={losses.manifold:.4f}, topological={losses.topological:.4f}, "
          f"hyperbolic={losses.hyperbolic:.4f}")
    print(f"{'='*60}")

    if not projected:
        print("  [No embeddings to project]")
        return

    quality = np.array([p.quality for p in projected])
    dist = np.array([p.distance_to_origin for p in projected])
    lat = np.array([p.latitude for p in projected])
    stabilized = sum(p.stabilized for p in projected)
    print(f"  Lorentz-stabilized: {stabilized}/{len(projected)}")
    print(f"  Distance to origin: min={dist.min():.4f}, mean={dist.mean():.4f}, max={dist.max():.4f}")
    print(f"  Latitude: min={lat.min():.2f}, max={lat.max():.2f}")
    print(f"  Projection quality: min={quality.min():.4f}, mean={quality.mean():.4f}, "
          f"max={quality.max():.4f}")


def main():
    parser = argparse.ArgumentParser(description="Project HRGN embeddings to geographic coordinates")
    parser.add_argument("--input", default=None, help="HRGN payload to project")
    parser.add_argument("--synthetic", type=int, default=0,
                        help="Generate this many random points instead of reading --input")
    parser.add_argument("--dim", type=int, default=2, help="Dimension of synthetic points")
    parser.add_argument("--seed", type=int, default=0)
    parser.add_argument("--config", default="configs/HYPGEO/default.py")
    parser.add_argument("--save", default=None, help="Write the (synthetic) payload here")
    parser.add_argument("--geojson", default=None, help="Write a GeoJSON FeatureCollection here")
    parser.add_argument("--topojson", default=None, help="Write a TopoJSON Topology here")
    args = parser.parse_args()

    if not args.input and args.synthetic <= 0:
        parser.error("either --input or --synthetic N is required")

    if args.config:
        cfg = load_cfg(args.config)
        run_cfg = Config.fromfile(args.config)
        batch_size = run_cfg.get('batch_size', 4096)
        radius = run_cfg.get('synthetic_radius', 0.8)
    else:
        cfg, batch_size, radius = DEFAULT_CFG, 4096, 0.8

    if args.input:
        print(f"Loading {args.input}...")
        payload = load_payload(args.input)
    else:
        print(f"Generating {args.synthetic} random points in the {args.dim}-ball (radius < {radius})...")
        payload = synthetic_payload(args.synthetic, args.dim, radius, args.seed)

    if args.save:
        with open(args.save, 'wb') as f:
            f.write(encode(payload))
        print(f"Saved payload to {args.save}")

    projector = GeographicProjector(cfg)
    projected = project_payload(projector, payload, batch_size)
    print_summary(payload, projected)

    if args.geojson:
        with open(args.geojson, 'w') as f:
            json.dump(projector.to_feature_collection(projected), f)
        print(f"\nWrote {len(projected)} features to {args.geojson}")

    if args.topojson:
        with open(args.topojson, 'w') as f:
            json.dump(projector.to_topology(projected), f)
        print(f"Wrote {len(projected)} geometries to {args.topojson}")


if __name__ == "__main__":
    main()
