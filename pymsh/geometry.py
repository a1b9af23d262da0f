# pymsh/geometry.py
"""
Geometric helpers shared by the mesh container and the generators.

Everything here works on numpy views of a group's vertex buffer
(``(n, 3)`` positions / normals, ``(n, 2)`` texture coordinates) and on flat
``uint16`` index buffers, and modifies them in place where noted.

Matrices are 4x4 and act on column vectors: ``p' = M @ [x, y, z, 1]``.
"""
from __future__ import annotations

import enum
import math
from typing import Optional, Tuple

import numpy as np

from .config import DEGENERATE_EPS, MISSING_NORMAL_LEN2

Vec3 = Tuple[float, float, float]
Mat4 = np.ndarray


class RotAxis(enum.Enum):
    X = 0
    Y = 1
    Z = 2


# components (a, b) of the plane orthogonal to each axis; a' = c*a - s*b, b' = s*a + c*b
_ROT_PLANE = {
    RotAxis.X: (1, 2),
    RotAxis.Y: (0, 2),
    RotAxis.Z: (0, 1),
}


# -----------------------------
# Small matrix utilities
# -----------------------------

def mat_identity() -> Mat4:
    return np.identity(4, dtype=np.float64)


def mat_translate(dx: float, dy: float, dz: float) -> Mat4:
    m = mat_identity()
    m[0, 3], m[1, 3], m[2, 3] = dx, dy, dz
    return m


def mat_scale(sx: float, sy: Optional[float] = None, sz: Optional[float] = None) -> Mat4:
    if sy is None:
        sy = sx
    if sz is None:
        sz = sx
    m = mat_identity()
    m[0, 0], m[1, 1], m[2, 2] = sx, sy, sz
    return m


def mat_rotate(axis: RotAxis, angle: float) -> Mat4:
    """Matrix equivalent of ``rotate_coords`` for one principal axis."""
    c, s = math.cos(angle), math.sin(angle)
    a, b = _ROT_PLANE[axis]
    m = mat_identity()
    m[a, a], m[a, b] = c, -s
    m[b, a], m[b, b] = s, c
    return m


def mat_rotate_x(angle: float) -> Mat4:
    return mat_rotate(RotAxis.X, angle)


def mat_rotate_y(angle: float) -> Mat4:
    return mat_rotate(RotAxis.Y, angle)


def mat_rotate_z(angle: float) -> Mat4:
    return mat_rotate(RotAxis.Z, angle)


def mat_mul(*ms: Mat4) -> Mat4:
    """Compose matrices; the rightmost one is applied first."""
    out = mat_identity()
    for m in ms:
        out = out @ np.asarray(m, dtype=np.float64)
    return out


# -----------------------------
# Row-wise vector operations
# -----------------------------

def normalize_rows(v: np.ndarray) -> np.ndarray:
    """Unit-length copy of every row; zero rows stay zero."""
    v = np.asarray(v, dtype=np.float64)
    lengths = np.linalg.norm(v, axis=-1, keepdims=True)
    out = np.zeros_like(v)
    np.divide(v, lengths, out=out, where=lengths > 0.0)
    return out


def apply_mat(points: np.ndarray, m: Mat4) -> np.ndarray:
    """Transform ``(n, 3)`` points by a 4x4 matrix, with perspective divide."""
    m = np.asarray(m, dtype=np.float64)
    p = np.asarray(points, dtype=np.float64)
    out = p @ m[:3, :3].T + m[:3, 3]
    w = p @ m[3, :3] + m[3, 3]
    np.divide(out, w[:, None], out=out, where=(w != 0.0)[:, None])
    return out


def apply_mat3(vectors: np.ndarray, m: Mat4) -> np.ndarray:
    """Apply the upper-left 3x3 block (no translation) and re-normalize."""
    m = np.asarray(m, dtype=np.float64)
    return normalize_rows(np.asarray(vectors, dtype=np.float64) @ m[:3, :3].T)


def rotate_coords(v: np.ndarray, axis: RotAxis, angle: float) -> None:
    """Rotate ``(..., 3)`` coordinates about a principal axis, in place."""
    c, s = math.cos(angle), math.sin(angle)
    a, b = _ROT_PLANE[axis]
    va = v[..., a].copy()
    vb = v[..., b].copy()
    v[..., a] = c * va - s * vb
    v[..., b] = s * va + c * vb


# -----------------------------
# Derived data
# -----------------------------

def centroid_radius(positions: np.ndarray) -> Tuple[np.ndarray, float]:
    """Mean position and largest distance from it (zeros for an empty set)."""
    if len(positions) == 0:
        return np.zeros(3, dtype=np.float64), 0.0
    p = np.asarray(positions, dtype=np.float64)
    cnt = p.mean(axis=0)
    d2 = np.einsum("ij,ij->i", p - cnt, p - cnt)
    return cnt, float(math.sqrt(d2.max()))


# -----------------------------
# Normal synthesis
# -----------------------------

def _interior_angle(adj0: np.ndarray, adj1: np.ndarray, opposite: np.ndarray) -> np.ndarray:
    # law of cosines; clip guards against round-off just outside [-1, 1]
    cos_a = (adj0 * adj0 + adj1 * adj1 - opposite * opposite) / (2.0 * adj0 * adj1)
    return np.arccos(np.clip(cos_a, -1.0, 1.0))


def angle_weighted_normals(positions: np.ndarray, normals: np.ndarray, indices: np.ndarray,
                           missing_only: bool = False, eps: float = DEGENERATE_EPS) -> np.ndarray:
    """
    Recompute vertex normals in place by angle-weighted face normal accumulation.

    With ``missing_only`` only vertices whose normal has squared length
    <= 0.1 are touched; all other rows of ``normals`` are left exactly as
    they were. Triangles whose face normal is shorter than ``eps`` add
    nothing. Each flagged corner of a remaining triangle receives the unit
    face normal weighted by the interior angle at that corner.

    Returns the boolean mask of recomputed vertices.
    """
    nv = len(positions)
    if missing_only:
        calc = np.einsum("ij,ij->i", normals, normals) <= MISSING_NORMAL_LEN2
    else:
        calc = np.ones(nv, dtype=bool)
    if not calc.any():
        return calc

    tri = np.asarray(indices, dtype=np.intp).reshape(-1, 3)
    tri = tri[calc[tri].any(axis=1)]

    p = np.asarray(positions, dtype=np.float64)
    p0, p1, p2 = p[tri[:, 0]], p[tri[:, 1]], p[tri[:, 2]]
    v01, v02, v12 = p1 - p0, p2 - p0, p2 - p1
    face = np.cross(v01, v02)
    flen = np.linalg.norm(face, axis=1)
    keep = flen >= eps
    tri, face, flen = tri[keep], face[keep], flen[keep]
    v01, v02, v12 = v01[keep], v02[keep], v12[keep]
    face /= flen[:, None]

    d01 = np.linalg.norm(v01, axis=1)
    d02 = np.linalg.norm(v02, axis=1)
    d12 = np.linalg.norm(v12, axis=1)
    angles = (
        _interior_angle(d01, d02, d12),
        _interior_angle(d01, d12, d02),
        _interior_angle(d02, d12, d01),
    )

    acc = np.zeros((nv, 3), dtype=np.float64)
    for corner, angle in enumerate(angles):
        np.add.at(acc, tri[:, corner], face * angle[:, None])

    normals[calc] = normalize_rows(acc[calc])
    return calc


# -----------------------------
# Texture coordinates
# -----------------------------

def spherical_texcoords(positions: np.ndarray) -> np.ndarray:
    """Longitude/latitude mapping of the directions of ``positions`` (y is up)."""
    d = normalize_rows(positions)
    tht = np.arccos(np.clip(d[:, 1], -1.0, 1.0))
    phi = np.arctan2(d[:, 2], d[:, 0])
    phi = np.where(phi >= 0.0, phi, phi + 2.0 * math.pi)
    return np.stack([phi / (2.0 * math.pi), tht / math.pi], axis=1)


def flip_winding(indices: np.ndarray) -> None:
    """Swap the 2nd and 3rd index of every triangle in a flat index buffer."""
    tri = indices.reshape(-1, 3)
    tri[:, [1, 2]] = tri[:, [2, 1]]
