# pymsh/sphere.py
"""
Procedural sphere patches.

A patch covers one latitude band ``ilat`` of ``nlat`` bands between the
equator and the pole (0..90 deg) and one longitude slice of ``nlng`` slices
around the full circle. ``res`` internal latitude strips subdivide the band.
"""
from __future__ import annotations

import math
from typing import List, Optional, Tuple

from .errors import MeshError
from .mesh import INHERIT, Mesh

Tri = Tuple[int, int, int]
Record = Tuple[float, float, float, float, float, float, float, float]


def patch_counts(res: int, bseg: int, reduce: bool) -> Tuple[int, int]:
    """Closed-form (vertex count, triangle count) of a patch."""
    nvtx = (bseg + 1) * (res + 1)
    if reduce:
        nvtx -= ((res + 1) * res) // 2
    ntri = res * (2 * bseg - res) if reduce else 2 * res * bseg
    return nvtx, ntri


def create_sphere_patch(nlng: int, nlat: int, ilat: int, res: int, bseg: Optional[int] = None,
                        reduce: bool = True, outside: bool = True) -> Mesh:
    """
    Build a single-group mesh for a rectangular patch of the unit sphere.

    nlng: number of patches spanning 360 deg of longitude
    nlat: number of patches spanning 0..90 deg of latitude
    ilat: latitude strip of this patch, 0 at the equator
    res: number of internal latitude strips (>= 1)
    bseg: segments on the lower edge; defaults to (nlat-ilat)*res and is
        always that default for the strip touching the pole
    reduce: drop one segment per inner ring, closing to a single pole vertex
    outside: normals point away from the centre; otherwise they are negated
        and the winding of every triangle is reversed
    """
    if nlng < 1 or nlat < 1 or res < 1:
        raise MeshError(f"nlng, nlat and res must be positive (got {nlng}, {nlat}, {res})")
    if not 0 <= ilat < nlat:
        raise MeshError(f"ilat {ilat} outside [0, {nlat})")
    if bseg is None or bseg < 0 or ilat == nlat - 1:
        bseg = (nlat - ilat) * res
    if reduce and bseg < res:
        raise MeshError(f"reduced patch needs bseg >= res (got bseg={bseg}, res={res})")

    minlat = 0.5 * math.pi * ilat / nlat
    maxlat = 0.5 * math.pi * (ilat + 1) / nlat
    minlng = 0.0
    maxlng = 2.0 * math.pi / nlng
    sign = 1.0 if outside else -1.0

    verts: List[Record] = []
    for i in range(res + 1):
        lat = minlat + (maxlat - minlat) * i / res
        slat, clat = math.sin(lat), math.cos(lat)
        nseg = bseg - i if reduce else bseg
        for j in range(nseg + 1):
            lng = minlng + (maxlng - minlng) * j / nseg if nseg else 0.0
            slng, clng = math.sin(lng), math.cos(lng)
            x, y, z = clat * clng, slat, clat * slng
            tu = j / nseg if nseg else 0.5  # a collapsed ring sits mid-patch to avoid a seam
            tv = (res - i) / res
            verts.append((x, y, z, sign * x, sign * y, sign * z, tu, tv))

    faces: List[Tri] = []
    nofs0 = 0
    for i in range(res):
        nseg = bseg - i if reduce else bseg
        nofs1 = nofs0 + nseg + 1
        for j in range(nseg):
            faces.append((nofs0 + j, nofs1 + j, nofs0 + j + 1))
            if reduce and j == nseg - 1:
                break
            faces.append((nofs0 + j + 1, nofs1 + j, nofs1 + j + 1))
        nofs0 = nofs1

    if not outside:
        faces = [(a, c, b) for (a, b, c) in faces]

    return Mesh.from_group(verts, faces, INHERIT, INHERIT)
