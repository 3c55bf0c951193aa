"""
Stroke geometry helpers.

All functions take an (n, 2) float array of points and are pure.
"""

from __future__ import annotations

import math

import numpy as np

from linework.validation.base import Stroke, clamp

# Gap between endpoints, relative to the bounding-box diagonal, at which
# the closure score reaches zero.
CLOSURE_SCALE = 0.25


def as_array(stroke: Stroke) -> np.ndarray:
    if not stroke.points:
        return np.zeros((0, 2))
    return np.array([[p.x, p.y] for p in stroke.points], dtype=float)


def path_length(points: np.ndarray) -> float:
    if len(points) < 2:
        return 0.0
    return float(np.linalg.norm(np.diff(points, axis=0), axis=1).sum())


def bbox_diagonal(points: np.ndarray) -> float:
    if len(points) == 0:
        return 0.0
    span = points.max(axis=0) - points.min(axis=0)
    return float(np.hypot(span[0], span[1]))


def straightness(points: np.ndarray) -> float:
    """Chord length between the endpoints divided by path length, in [0, 1]."""
    length = path_length(points)
    if length == 0:
        return 0.0
    chord = float(np.linalg.norm(points[-1] - points[0]))
    return clamp(chord / length)


def circularity(points: np.ndarray) -> float:
    """1 - 5 x (radius variance / mean radius^2) around the centroid, clamped."""
    if len(points) < 3:
        return 0.0
    centroid = points.mean(axis=0)
    radii = np.linalg.norm(points - centroid, axis=1)
    mean_radius = float(radii.mean())
    if mean_radius == 0:
        return 0.0
    normalized_variance = float(radii.var()) / (mean_radius**2)
    return clamp(1.0 - 5.0 * normalized_variance)


def closure_gap(points: np.ndarray) -> float:
    """Distance between first and last point relative to the shape's size."""
    if len(points) < 3:
        return math.inf
    diagonal = bbox_diagonal(points)
    if diagonal == 0:
        return math.inf
    return float(np.linalg.norm(points[-1] - points[0])) / diagonal


def is_closed(points: np.ndarray, tolerance: float) -> bool:
    return closure_gap(points) <= tolerance


def closure_score(points: np.ndarray) -> float:
    gap = closure_gap(points)
    if math.isinf(gap):
        return 0.0
    return clamp(1.0 - gap / CLOSURE_SCALE)


def resample(points: np.ndarray, count: int = 64) -> np.ndarray:
    """Evenly spaced points along the path."""
    if len(points) < 2:
        return points
    segments = np.linalg.norm(np.diff(points, axis=0), axis=1)
    keep = np.concatenate([[True], segments > 0])
    points = points[keep]
    if len(points) < 2:
        return points
    distances = np.concatenate([[0.0], np.cumsum(np.linalg.norm(np.diff(points, axis=0), axis=1))])
    targets = np.linspace(0.0, distances[-1], count)
    return np.column_stack(
        [np.interp(targets, distances, points[:, 0]), np.interp(targets, distances, points[:, 1])]
    )


def corner_count(points: np.ndarray, angle_degrees: float = 45.0, span: int = 3) -> int:
    """
    Number of sharp turns along the path.

    Each run of consecutive resampled points whose turning angle exceeds
    angle_degrees counts as one corner. Closed paths wrap around so a corner
    at the start point is found too.
    """
    samples = resample(points)
    if len(samples) < 2 * span + 1:
        return 0
    closed = is_closed(points, 0.1)
    if closed:
        samples = samples[:-1]
        previous = np.roll(samples, span, axis=0)
        following = np.roll(samples, -span, axis=0)
        centre = samples
    else:
        previous = samples[: -2 * span]
        centre = samples[span:-span]
        following = samples[2 * span :]

    incoming = centre - previous
    outgoing = following - centre
    norms = np.linalg.norm(incoming, axis=1) * np.linalg.norm(outgoing, axis=1)
    norms[norms == 0] = 1.0
    cosines = np.clip((incoming * outgoing).sum(axis=1) / norms, -1.0, 1.0)
    sharp = np.degrees(np.arccos(cosines)) > angle_degrees

    if closed:
        if sharp.all():
            return 0
        return int((sharp & ~np.roll(sharp, 1)).sum())
    padded = np.concatenate([[False], sharp])
    return int((padded[1:] & ~padded[:-1]).sum())


def polygon_score(points: np.ndarray, sides: int) -> float:
    """Average of closure and how close the corner count is to `sides`."""
    corners = corner_count(points)
    corner_match = clamp(1.0 - abs(corners - sides) / sides)
    return (closure_score(points) + corner_match) / 2.0


def direction_degrees(points: np.ndarray) -> float | None:
    """Angle of the endpoint chord in [0, 180), or None for a degenerate stroke."""
    if len(points) < 2:
        return None
    delta = points[-1] - points[0]
    if not delta.any():
        return None
    return float(np.degrees(np.arctan2(delta[1], delta[0]))) % 180.0


def line_distance(point: np.ndarray, start: np.ndarray, end: np.ndarray) -> float:
    """Perpendicular distance from point to the infinite line through start and end."""
    direction = end - start
    length = float(np.linalg.norm(direction))
    if length == 0:
        return float(np.linalg.norm(point - start))
    normal = np.array([-direction[1], direction[0]]) / length
    return abs(float(normal @ (point - start)))


def least_squares_intersection(segments: list[tuple[np.ndarray, np.ndarray]]) -> np.ndarray | None:
    """Point minimising squared distance to every line; None for fewer than two lines."""
    normals = []
    offsets = []
    for start, end in segments:
        direction = end - start
        length = float(np.linalg.norm(direction))
        if length == 0:
            continue
        normal = np.array([-direction[1], direction[0]]) / length
        normals.append(normal)
        offsets.append(float(normal @ start))
    if len(normals) < 2:
        return None
    solution, *_ = np.linalg.lstsq(np.array(normals), np.array(offsets), rcond=None)
    return solution
