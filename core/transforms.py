#!/usr/bin/env python3
"""
Transforms Module
Quaternion and 4x4 matrix helpers used by the skeleton model, the space
converter and the COLLADA exporter.

Conventions:
- Quaternions are (w, x, y, z) tuples
- Matrices are numpy arrays using column vectors (translation in the last
  column), which is also COLLADA's row-major <matrix> layout
"""

import math
from typing import Sequence, Tuple

import numpy as np

Vec3 = Tuple[float, float, float]
Quat = Tuple[float, float, float, float]

IDENTITY_QUAT: Quat = (1.0, 0.0, 0.0, 0.0)


def quat_norm(q: Sequence[float]) -> float:
    return math.sqrt(q[0] * q[0] + q[1] * q[1] + q[2] * q[2] + q[3] * q[3])


def quat_normalize(q: Sequence[float]) -> Quat:
    n = quat_norm(q)
    if n < 1e-12:
        return IDENTITY_QUAT
    return (q[0] / n, q[1] / n, q[2] / n, q[3] / n)


def quat_conjugate(q: Sequence[float]) -> Quat:
    return (q[0], -q[1], -q[2], -q[3])


def quat_multiply(a: Sequence[float], b: Sequence[float]) -> Quat:
    """Hamilton product a * b (apply b first, then a)"""
    aw, ax, ay, az = a
    bw, bx, by, bz = b
    return (
        aw * bw - ax * bx - ay * by - az * bz,
        aw * bx + ax * bw + ay * bz - az * by,
        aw * by - ax * bz + ay * bw + az * bx,
        aw * bz + ax * by - ay * bx + az * bw,
    )


def quat_to_matrix(q: Sequence[float]) -> np.ndarray:
    """Convert a unit quaternion to a 3x3 rotation matrix"""
    w, x, y, z = q
    return np.array([
        [1.0 - 2.0 * (y * y + z * z), 2.0 * (x * y - w * z), 2.0 * (x * z + w * y)],
        [2.0 * (x * y + w * z), 1.0 - 2.0 * (x * x + z * z), 2.0 * (y * z - w * x)],
        [2.0 * (x * z - w * y), 2.0 * (y * z + w * x), 1.0 - 2.0 * (x * x + y * y)],
    ], dtype=np.float64)


def matrix_to_quat(m) -> Quat:
    """Convert a 3x3 rotation matrix (or the upper 3x3 of a 4x4) to a unit quaternion

    Uses the branch on the largest diagonal term for numerical stability.
    The returned quaternion has w >= 0.
    """
    m = np.asarray(m, dtype=np.float64)
    trace = m[0, 0] + m[1, 1] + m[2, 2]

    if trace > 0.0:
        s = math.sqrt(trace + 1.0) * 2.0
        w = 0.25 * s
        x = (m[2, 1] - m[1, 2]) / s
        y = (m[0, 2] - m[2, 0]) / s
        z = (m[1, 0] - m[0, 1]) / s
    elif m[0, 0] > m[1, 1] and m[0, 0] > m[2, 2]:
        s = math.sqrt(1.0 + m[0, 0] - m[1, 1] - m[2, 2]) * 2.0
        w = (m[2, 1] - m[1, 2]) / s
        x = 0.25 * s
        y = (m[0, 1] + m[1, 0]) / s
        z = (m[0, 2] + m[2, 0]) / s
    elif m[1, 1] > m[2, 2]:
        s = math.sqrt(1.0 + m[1, 1] - m[0, 0] - m[2, 2]) * 2.0
        w = (m[0, 2] - m[2, 0]) / s
        x = (m[0, 1] + m[1, 0]) / s
        y = 0.25 * s
        z = (m[1, 2] + m[2, 1]) / s
    else:
        s = math.sqrt(1.0 + m[2, 2] - m[0, 0] - m[1, 1]) * 2.0
        w = (m[1, 0] - m[0, 1]) / s
        x = (m[0, 2] + m[2, 0]) / s
        y = (m[1, 2] + m[2, 1]) / s
        z = 0.25 * s

    q = quat_normalize((float(w), float(x), float(y), float(z)))
    if q[0] < 0.0:
        q = (-q[0], -q[1], -q[2], -q[3])
    return q


def compose_matrix(translation: Sequence[float], rotation: Sequence[float], scale: Sequence[float]) -> np.ndarray:
    """Build the 4x4 matrix T * R * S"""
    m = np.identity(4, dtype=np.float64)
    m[:3, :3] = quat_to_matrix(rotation) * np.asarray(scale, dtype=np.float64)
    m[:3, 3] = translation
    return m


def decompose_matrix(m) -> Tuple[Vec3, Quat, Vec3, float]:
    """Split an affine 4x4 matrix into translation, rotation and scale

    Scale is the length of each basis column. Shear is not representable and
    is folded into the rotation estimate.

    Returns:
        tuple: (translation, rotation, scale, determinant of the 3x3 basis).
               A non-positive determinant means the basis is mirrored or
               degenerate and the rotation/scale are not meaningful.
    """
    m = np.asarray(m, dtype=np.float64)
    basis = m[:3, :3]
    det = float(np.linalg.det(basis))
    scale = np.linalg.norm(basis, axis=0)
    translation = (float(m[0, 3]), float(m[1, 3]), float(m[2, 3]))
    if det <= 0.0 or np.any(scale < 1e-12):
        return translation, IDENTITY_QUAT, tuple(float(s) for s in scale), det
    rotation = matrix_to_quat(basis / scale)
    return translation, rotation, (float(scale[0]), float(scale[1]), float(scale[2])), det


def row_vector_to_column(rows) -> np.ndarray:
    """Convert a Direct3D-style row-vector matrix (4x3 or 4x4) to a column-vector 4x4

    The engine stores matrices for `v' = v * M`, with the translation in the
    fourth row.
    """
    rows = np.asarray(rows, dtype=np.float64)
    m = np.identity(4, dtype=np.float64)
    m[:3, :3] = rows[:3, :3].T
    m[:3, 3] = rows[3, :3]
    return m


def matrix_to_list(m) -> list:
    """Flatten a 4x4 matrix row-major (COLLADA <matrix> / float4x4 order)"""
    return [float(v) for v in np.asarray(m, dtype=np.float64).reshape(16)]
