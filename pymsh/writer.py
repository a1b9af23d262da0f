# pymsh/writer.py
"""
Binary ``.cmsh`` exporter.

Little-endian layout::

    header    8s magic, i32 groups, i32 materials, i32 textures, u32 bits
              (bit 0: separate vertex arrays, bit 1: material names present)
    group     u32 label length (incl. NUL) + label, i32 material, i32 texture,
              u32 flags, u32 user flag, u32 z-bias, i32 vertex count,
              i32 index count, vertex data, u32 indices
    material  [u32 name length + name], 4f diffuse, 3f ambient, 3f specular,
              3f emissive, f power
    texture   u32 name length + name

Vertex data is either one 32-byte record per vertex (position, normal,
texcoord) or all positions, then all normals, then all texcoords.
"""
from __future__ import annotations

import logging
import os
import struct
from typing import Union

import numpy as np

from .config import BINARY_MAGIC, ExportOptions
from .errors import ValidationError
from .mesh import VERTEX_WIDTH, Group, Material, Mesh

logger = logging.getLogger(__name__)

_HEADER = struct.Struct("<8s3iI")
_GROUP = struct.Struct("<2i3I2i")


def validate(mesh: Mesh) -> None:
    """Raise ValidationError for the first group whose buffers are inconsistent."""
    for i, g in enumerate(mesh.groups):
        vtx, idx = g.vertices, g.indices
        if not isinstance(vtx, np.ndarray) or vtx.ndim != 2 or vtx.shape[1] != VERTEX_WIDTH:
            raise ValidationError(i, "vertex buffer missing or malformed")
        if not isinstance(idx, np.ndarray) or idx.ndim != 1:
            raise ValidationError(i, "index buffer missing or malformed")
        if len(idx) % 3:
            raise ValidationError(i, f"index count {len(idx)} is not a multiple of 3")
        if len(idx) and int(idx.max()) >= len(vtx):
            raise ValidationError(i, f"index {int(idx.max())} beyond {len(vtx)} vertices")


def _pack_str(s: str) -> bytes:
    raw = s.encode("utf-8") + b"\x00"
    return struct.pack("<I", len(raw)) + raw


def _pack_f32(a: np.ndarray) -> bytes:
    return np.ascontiguousarray(a, dtype="<f4").tobytes()


def _pack_group(g: Group, flatten: bool) -> bytes:
    out = bytearray(_pack_str(g.label))
    out += _GROUP.pack(g.material.wire_value(), g.texture.wire_value(), int(g.flags),
                       g.user_flag, g.zbias, g.nvtx, g.nidx)
    if flatten:
        out += _pack_f32(g.vertices)
    else:
        out += _pack_f32(g.positions)
        out += _pack_f32(g.normals)
        out += _pack_f32(g.texcoords)
    # widen to 32 bits, keeping only the 16 index bits
    out += (g.indices.astype("<u4") & 0xFFFF).tobytes()
    return bytes(out)


def _pack_material(m: Material, with_name: bool) -> bytes:
    out = _pack_str(m.name) if with_name else b""
    return out + struct.pack("<4f3f3f3ff", *m.diffuse, *m.ambient[:3], *m.specular[:3],
                             *m.emissive[:3], m.power)


def export(mesh: Mesh, options: ExportOptions = ExportOptions()) -> bytes:
    """Serialize ``mesh``; the result depends only on the mesh and the options."""
    validate(mesh)
    out = bytearray(_HEADER.pack(BINARY_MAGIC, len(mesh.groups), len(mesh.materials),
                                 len(mesh.textures), options.header_bits))
    for g in mesh.groups:
        out += _pack_group(g, options.flatten_vertices)
    for m in mesh.materials:
        out += _pack_material(m, options.material_names)
    for t in mesh.textures:
        out += _pack_str(t.name)
    return bytes(out)


def write(path: Union[str, os.PathLike], mesh: Mesh, options: ExportOptions = ExportOptions()) -> int:
    """Validate and serialize before opening ``path``, then write in one call. Returns the byte count."""
    data = export(mesh, options)
    with open(path, "wb") as f:
        f.write(data)
    logger.debug("wrote %d bytes to %s", len(data), path)
    return len(data)
