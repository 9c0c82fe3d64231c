"""
Rotation helpers - Small vector and quaternion routines.

Provides:
- Safe normalization with fallbacks
- Axis-angle (Rodrigues) rotation
- Basis <-> quaternion conversion
- Shortest-path quaternion slerp

Quaternions are numpy arrays ordered (w, x, y, z).
"""

import numpy as np


EPS = 1e-6

X_AXIS = np.array([1.0, 0.0, 0.0])
Y_AXIS = np.array([0.0, 1.0, 0.0])


def normalize(vector: np.ndarray, fallback: np.ndarray | None = None) -> np.ndarray:
    """Return a unit copy of vector.

    Args:
        vector: Vector to normalize
        fallback: Returned (copied) when vector is too short or non-finite.
            Defaults to the X axis.

    Returns:
        Unit vector
    """
    length = float(np.linalg.norm(vector))
    if not np.isfinite(length) or length < EPS:
        return (X_AXIS if fallback is None else fallback).astype(float)
    return np.asarray(vector, dtype=float) / length


def rotate_around_axis(vector: np.ndarray, axis: np.ndarray, angle: float) -> np.ndarray:
    """Rotate vector around a unit axis (Rodrigues rotation formula).

    Args:
        vector: Vector to rotate
        axis: Unit rotation axis
        angle: Rotation angle in radians (right-hand rule)

    Returns:
        Rotated vector
    """
    cos_a = np.cos(angle)
    sin_a = np.sin(angle)
    return (
        vector * cos_a
        + np.cross(axis, vector) * sin_a
        + axis * np.dot(axis, vector) * (1.0 - cos_a)
    )


def orthonormalize(tangent: np.ndarray, normal: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
    """Rebuild (normal, binormal) around a unit tangent.

    Returns:
        Tuple of (normal, binormal) with binormal = tangent x normal
    """
    binormal = normalize(np.cross(tangent, normal))
    normal = normalize(np.cross(binormal, tangent))
    return normal, binormal


def up_reference(tangent: np.ndarray, up: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
    """Project up onto the plane perpendicular to tangent.

    Falls back to the Y axis (or the X axis for near-vertical tangents) when
    up is parallel to the tangent.

    Returns:
        Tuple of (normal, binormal)
    """
    normal = up - tangent * np.dot(up, tangent)
    if np.dot(normal, normal) < 1e-8:
        helper = Y_AXIS if abs(tangent[1]) < 0.9 else X_AXIS
        normal = helper - tangent * np.dot(helper, tangent)
    return orthonormalize(tangent, normalize(normal))


def quat_from_basis(tangent: np.ndarray, normal: np.ndarray, binormal: np.ndarray) -> np.ndarray:
    """Quaternion of the rotation matrix with columns (tangent, normal, binormal)."""
    m = np.column_stack((tangent, normal, binormal))
    trace = m[0, 0] + m[1, 1] + m[2, 2]
    if trace > 0.0:
        k = 2.0 * np.sqrt(trace + 1.0)
        q = np.array([
            0.25 * k,
            (m[2, 1] - m[1, 2]) / k,
            (m[0, 2] - m[2, 0]) / k,
            (m[1, 0] - m[0, 1]) / k,
        ])
    elif m[0, 0] > m[1, 1] and m[0, 0] > m[2, 2]:
        k = 2.0 * np.sqrt(1.0 + m[0, 0] - m[1, 1] - m[2, 2])
        q = np.array([
            (m[2, 1] - m[1, 2]) / k,
            0.25 * k,
            (m[0, 1] + m[1, 0]) / k,
            (m[0, 2] + m[2, 0]) / k,
        ])
    elif m[1, 1] > m[2, 2]:
        k = 2.0 * np.sqrt(1.0 + m[1, 1] - m[0, 0] - m[2, 2])
        q = np.array([
            (m[0, 2] - m[2, 0]) / k,
            (m[0, 1] + m[1, 0]) / k,
            0.25 * k,
            (m[1, 2] + m[2, 1]) / k,
        ])
    else:
        k = 2.0 * np.sqrt(1.0 + m[2, 2] - m[0, 0] - m[1, 1])
        q = np.array([
            (m[1, 0] - m[0, 1]) / k,
            (m[0, 2] + m[2, 0]) / k,
            (m[1, 2] + m[2, 1]) / k,
            0.25 * k,
        ])
    return q / np.linalg.norm(q)


def quat_to_matrix(q: np.ndarray) -> np.ndarray:
    """Rotation matrix of a unit quaternion (w, x, y, z)."""
    w, x, y, z = q
    return np.array([
        [1 - 2 * (y * y + z * z), 2 * (x * y - w * z), 2 * (x * z + w * y)],
        [2 * (x * y + w * z), 1 - 2 * (x * x + z * z), 2 * (y * z - w * x)],
        [2 * (x * z - w * y), 2 * (y * z + w * x), 1 - 2 * (x * x + y * y)],
    ])


def quat_slerp(qa: np.ndarray, qb: np.ndarray, t: float) -> np.ndarray:
    """Spherical interpolation along the shorter arc.

    Args:
        qa: Start quaternion
        qb: End quaternion (negated internally if on the far hemisphere)
        t: Blend factor in [0, 1]

    Returns:
        Unit quaternion
    """
    dot = float(np.dot(qa, qb))
    if dot < 0.0:
        qb = -qb
        dot = -dot

    if dot > 0.9995:
        # Nearly identical rotations: plain lerp
        q = qa + t * (qb - qa)
    else:
        theta = np.arccos(min(dot, 1.0))
        sin_theta = np.sin(theta)
        q = (np.sin((1.0 - t) * theta) * qa + np.sin(t * theta) * qb) / sin_theta
    return q / np.linalg.norm(q)


def wrap_angle(angle: float) -> float:
    """Wrap an angle into [-pi, pi)."""
    return float((angle + np.pi) % (2.0 * np.pi) - np.pi)


def smoothstep(t: float) -> float:
    """Hermite smoothstep of t clamped to [0, 1]."""
    t = min(max(t, 0.0), 1.0)
    return t * t * (3.0 - 2.0 * t)
