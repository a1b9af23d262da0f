# pymsh/mesh.py
"""
In-memory mesh model: groups of indexed triangle geometry plus the material
and texture lists their references point into.

A group keeps its vertices in one ``float32`` array of shape ``(n, 8)``
(``x y z nx ny nz tu tv``) and its triangles in a flat ``uint16`` index
array whose values are local to the group. Material and texture slots are
``IndexRef`` values: an explicit list index, ``DEFAULT`` or ``INHERIT``.

Centroid and radius of each group are derived data. They are valid only
while ``Mesh.derived_valid`` is set, which ``recompute_derived()`` does.
"""
from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from typing import Iterable, List, NamedTuple, Optional, Sequence, Tuple, Union

import numpy as np

from . import geometry
from .errors import MeshError
from .geometry import Mat4, RotAxis, Vec3

logger = logging.getLogger(__name__)

Vec2 = Tuple[float, float]
Color = Tuple[float, float, float, float]

VERTEX_WIDTH = 8
MAX_INDEX = 0xFFFF
MAX_ZBIAS = 0xFFFF
MAX_USER_FLAG = 0xFFFFFFFF


class Vertex(NamedTuple):
    position: Vec3 = (0.0, 0.0, 0.0)
    normal: Vec3 = (0.0, 0.0, 0.0)
    texcoord: Vec2 = (0.0, 0.0)

    def record(self) -> Tuple[float, ...]:
        return (*self.position, *self.normal, *self.texcoord)


# -----------------------------
# Material / texture references
# -----------------------------

class RefKind(enum.Enum):
    EXPLICIT = "explicit"
    DEFAULT = "default"
    INHERIT = "inherit"


@dataclass(frozen=True)
class IndexRef:
    """Reference from a group into the material or texture list."""
    kind: RefKind
    index: int = 0

    @classmethod
    def explicit(cls, index: int) -> "IndexRef":
        if index < 0:
            raise MeshError(f"explicit reference needs a non-negative index, got {index}")
        return cls(RefKind.EXPLICIT, int(index))

    @property
    def is_explicit(self) -> bool:
        return self.kind is RefKind.EXPLICIT

    def reconciled(self, size: int) -> "IndexRef":
        """Downgrade an explicit index that no longer fits a list of ``size`` to DEFAULT."""
        if self.kind is RefKind.EXPLICIT and self.index >= size:
            return DEFAULT
        return self

    def wire_value(self) -> int:
        if self.kind is RefKind.EXPLICIT:
            return self.index
        return -1 if self.kind is RefKind.DEFAULT else -2

    def __repr__(self) -> str:
        if self.kind is RefKind.EXPLICIT:
            return f"Explicit({self.index})"
        return self.kind.name.capitalize()


DEFAULT = IndexRef(RefKind.DEFAULT)
INHERIT = IndexRef(RefKind.INHERIT)


class GroupFlag(enum.IntFlag):
    NONE = 0
    WRAP_U = 0x01
    WRAP_V = 0x02
    SHADOW = 0x04


class MeshFlag(enum.IntFlag):
    NONE = 0
    CAST_SHADOW = 0x01
    GLOBAL_SHADOW = 0x02


@dataclass
class Material:
    diffuse: Color = (1.0, 1.0, 1.0, 1.0)
    ambient: Color = (1.0, 1.0, 1.0, 1.0)
    specular: Color = (0.0, 0.0, 0.0, 1.0)
    emissive: Color = (0.0, 0.0, 0.0, 1.0)
    power: float = 0.0
    name: str = ""

    @classmethod
    def default(cls) -> "Material":
        """The neutral material used for groups that reference DEFAULT."""
        return cls()


@dataclass
class Texture:
    name: str = ""
    prefer_uncompressed: bool = False  # advisory only


# -----------------------------
# Buffer coercion
# -----------------------------

VertexInput = Union[np.ndarray, Sequence[Vertex], Sequence[Sequence[float]]]


def as_vertex_buffer(vertices: VertexInput, copy: bool = False) -> np.ndarray:
    """Coerce to a contiguous ``(n, 8)`` float32 array; adopts a matching array unless ``copy``."""
    if isinstance(vertices, np.ndarray):
        arr = np.array(vertices, dtype=np.float32) if copy else np.asarray(vertices, dtype=np.float32)
    else:
        rows = [v.record() if isinstance(v, Vertex) else tuple(v) for v in vertices]
        arr = np.array(rows, dtype=np.float32) if rows else np.zeros((0, VERTEX_WIDTH), dtype=np.float32)
    if arr.ndim != 2 or arr.shape[1] != VERTEX_WIDTH:
        raise MeshError(f"vertex buffer must have shape (n, {VERTEX_WIDTH}), got {arr.shape}")
    return np.ascontiguousarray(arr)


def as_index_buffer(indices: Union[np.ndarray, Sequence[int], Sequence[Sequence[int]]],
                    nvtx: int, copy: bool = False) -> np.ndarray:
    """Coerce to a flat uint16 index array after checking every value against ``nvtx``."""
    src = np.asarray(indices)
    if src.size == 0:
        return np.zeros(0, dtype=np.uint16)
    if not np.issubdtype(src.dtype, np.integer):
        raise MeshError(f"triangle indices must be integers, got {src.dtype}")
    flat = src.reshape(-1)
    if len(flat) % 3:
        raise MeshError(f"index count {len(flat)} is not a multiple of 3")
    lo, hi = int(flat.min()), int(flat.max())
    if lo < 0 or hi >= nvtx or hi > MAX_INDEX:
        raise MeshError(f"triangle index out of range [{lo}, {hi}] for {nvtx} vertices")
    if copy or flat.dtype != np.uint16:
        return flat.astype(np.uint16)
    return np.ascontiguousarray(flat)


# -----------------------------
# Group
# -----------------------------

@dataclass(eq=False)
class Group:
    vertices: np.ndarray
    indices: np.ndarray
    material: IndexRef = INHERIT
    texture: IndexRef = INHERIT
    zbias: int = 0
    flags: GroupFlag = GroupFlag.NONE
    user_flag: int = 0
    label: str = ""
    # derived data, meaningful while the owning mesh has derived_valid set
    centroid: np.ndarray = field(default_factory=lambda: np.zeros(3, dtype=np.float64))
    radius: float = 0.0

    @property
    def positions(self) -> np.ndarray:
        return self.vertices[:, 0:3]

    @property
    def normals(self) -> np.ndarray:
        return self.vertices[:, 3:6]

    @property
    def texcoords(self) -> np.ndarray:
        return self.vertices[:, 6:8]

    @property
    def nvtx(self) -> int:
        return len(self.vertices)

    @property
    def nidx(self) -> int:
        return len(self.indices)

    @property
    def triangles(self) -> np.ndarray:
        return self.indices.reshape(-1, 3)

    def vertex(self, i: int) -> Vertex:
        v = self.vertices[i].tolist()
        return Vertex((v[0], v[1], v[2]), (v[3], v[4], v[5]), (v[6], v[7]))

    def copy(self) -> "Group":
        return Group(self.vertices.copy(), self.indices.copy(), self.material, self.texture,
                     self.zbias, self.flags, self.user_flag, self.label,
                     self.centroid.copy(), self.radius)

    def setup(self) -> None:
        self.centroid, self.radius = geometry.centroid_radius(self.positions)

    # ---- geometry ----
    def scale(self, sx: float, sy: float, sz: float) -> "Group":
        self.positions[:] *= np.array([sx, sy, sz], dtype=np.float32)
        if sx == sy == sz:
            return self  # no change in normals
        n = self.normals.astype(np.float64) * np.array([sy * sz, sx * sz, sx * sy])
        self.normals[:] = geometry.normalize_rows(n)
        return self

    def translate(self, dx: float, dy: float, dz: float) -> "Group":
        self.positions[:] += np.array([dx, dy, dz], dtype=np.float32)
        return self

    def rotate(self, axis: RotAxis, angle: float) -> "Group":
        geometry.rotate_coords(self.positions, axis, angle)
        geometry.rotate_coords(self.normals, axis, angle)
        return self

    def transform(self, m: Mat4) -> "Group":
        self.positions[:] = geometry.apply_mat(self.positions, m)
        self.normals[:] = geometry.apply_mat3(self.normals, m)
        return self

    def tex_scale(self, su: float, sv: float) -> "Group":
        self.texcoords[:] *= np.array([su, sv], dtype=np.float32)
        return self

    def calc_normals(self, missing_only: bool = False) -> np.ndarray:
        return geometry.angle_weighted_normals(self.positions, self.normals, self.indices, missing_only)

    def calc_tex_coords(self) -> "Group":
        self.texcoords[:] = geometry.spherical_texcoords(self.positions)
        return self

    def flip(self) -> "Group":
        geometry.flip_winding(self.indices)
        return self


# -----------------------------
# Mesh container
# -----------------------------

@dataclass(eq=False)
class Mesh:
    groups: List[Group] = field(default_factory=list)
    materials: List[Material] = field(default_factory=list)
    textures: List[Texture] = field(default_factory=list)
    flags: MeshFlag = MeshFlag.NONE
    modulate_material_alpha: bool = False
    derived_valid: bool = False

    @classmethod
    def from_group(cls, vertices: VertexInput, indices: Sequence[int],
                   material: IndexRef = DEFAULT, texture: IndexRef = DEFAULT) -> "Mesh":
        mesh = cls()
        mesh.add_group(vertices, indices, material, texture)
        mesh.recompute_derived()
        return mesh

    # ---- lookups ----
    def get_group(self, grp: int) -> Optional[Group]:
        return self.groups[grp] if 0 <= grp < len(self.groups) else None

    def get_group_user_flag(self, grp: int) -> int:
        g = self.get_group(grp)
        return g.user_flag if g is not None else 0

    def get_material(self, idx: int) -> Optional[Material]:
        return self.materials[idx] if 0 <= idx < len(self.materials) else None

    def get_texture_name(self, idx: int) -> Optional[str]:
        return self.textures[idx].name if 0 <= idx < len(self.textures) else None

    def enable_material_alpha(self, enable: bool) -> None:
        self.modulate_material_alpha = enable

    # ---- derived data ----
    def setup_group(self, grp: int) -> None:
        g = self.groups[grp]
        g.setup()
        g.material = g.material.reconciled(len(self.materials))
        g.texture = g.texture.reconciled(len(self.textures))

    def recompute_derived(self) -> None:
        """Recompute centroid/radius of every group and reconcile all references."""
        for grp in range(len(self.groups)):
            self.setup_group(grp)
        self.derived_valid = True

    def _reconcile_materials(self) -> None:
        n = len(self.materials)
        for g in self.groups:
            g.material = g.material.reconciled(n)

    def _reconcile_textures(self) -> None:
        n = len(self.textures)
        for g in self.groups:
            g.texture = g.texture.reconciled(n)

    # ---- groups ----
    def add_group(self, vertices: VertexInput, indices: Sequence[int],
                  material: IndexRef = INHERIT, texture: IndexRef = INHERIT,
                  zbias: int = 0, user_flag: int = 0, copy: bool = False,
                  flags: GroupFlag = GroupFlag.NONE, label: str = "") -> int:
        """
        Append a group and return its index.

        Without ``copy`` the mesh adopts a float32 ``(n, 8)`` vertex array and a
        uint16 index array as given; the caller must not keep using them.
        ``user_flag`` is passed through to the output unmodified.
        """
        if not 0 <= zbias <= MAX_ZBIAS:
            raise MeshError(f"z-bias {zbias} does not fit 16 bits")
        if not 0 <= user_flag <= MAX_USER_FLAG:
            raise MeshError(f"user flag {user_flag:#x} does not fit 32 bits")
        vtx = as_vertex_buffer(vertices, copy)
        idx = as_index_buffer(indices, len(vtx), copy)
        g = Group(vtx, idx, material, texture, zbias, GroupFlag(flags), user_flag, label)
        self.groups.append(g)
        if self.derived_valid:
            self.setup_group(len(self.groups) - 1)
        return len(self.groups) - 1

    def add_group_block(self, grp: int, vertices: VertexInput, indices: Sequence[int]) -> bool:
        """Append geometry to group ``grp``; ``indices`` are local to the new block."""
        if not 0 <= grp < len(self.groups):
            return False
        g = self.groups[grp]
        vtx = as_vertex_buffer(vertices, copy=True)
        idx = as_index_buffer(indices, len(vtx), copy=True)
        if g.nvtx + len(vtx) - 1 > MAX_INDEX:
            raise MeshError(f"group {grp} would exceed {MAX_INDEX + 1} vertices")
        g.indices = np.concatenate([g.indices, idx + np.uint16(g.nvtx)])
        g.vertices = np.concatenate([g.vertices, vtx])
        if self.derived_valid:
            g.setup()
        return True

    def remove_group(self, grp: int) -> bool:
        """Delete group ``grp``; later groups move down by one index."""
        if not 0 <= grp < len(self.groups):
            return False
        del self.groups[grp]
        return True

    def merge(self, other: "Mesh") -> "Mesh":
        """
        Append copies of all groups of ``other``.

        The materials and textures of ``other`` are not carried over, so the
        copied groups get INHERIT references.
        """
        for src in other.groups:
            self.add_group(src.vertices, src.indices, INHERIT, INHERIT, src.zbias, src.user_flag,
                           copy=True, flags=src.flags, label=src.label)
        return self

    # ---- materials ----
    def add_material(self, material: Material) -> int:
        self.materials.append(material)
        self._reconcile_materials()
        return len(self.materials) - 1

    def extend_materials(self, materials: Iterable[Material]) -> None:
        self.materials.extend(materials)
        self._reconcile_materials()

    def remove_material(self, idx: int) -> bool:
        """
        Delete material ``idx``. Groups that used it are reset to material 0,
        groups using a later material are shifted down by one.
        """
        if not 0 <= idx < len(self.materials):
            return False
        for g in self.groups:
            m = g.material
            if m.is_explicit and m.index >= idx:
                g.material = IndexRef.explicit(0 if m.index == idx else m.index - 1)
        del self.materials[idx]
        self._reconcile_materials()
        return True

    # ---- textures ----
    def add_texture(self, texture: Texture) -> int:
        self.textures.append(texture)
        self._reconcile_textures()
        return len(self.textures) - 1

    def extend_textures(self, textures: Iterable[Texture]) -> None:
        self.textures.extend(textures)
        self._reconcile_textures()

    def remove_texture(self, idx: int) -> bool:
        if not 0 <= idx < len(self.textures):
            return False
        for g in self.groups:
            t = g.texture
            if t.is_explicit and t.index >= idx:
                g.texture = IndexRef.explicit(0 if t.index == idx else t.index - 1)
        del self.textures[idx]
        self._reconcile_textures()
        return True

    def copy(self) -> "Mesh":
        return Mesh([g.copy() for g in self.groups],
                    [Material(m.diffuse, m.ambient, m.specular, m.emissive, m.power, m.name)
                     for m in self.materials],
                    [Texture(t.name, t.prefer_uncompressed) for t in self.textures],
                    self.flags, self.modulate_material_alpha, self.derived_valid)

    def clear(self) -> None:
        self.groups.clear()
        self.materials.clear()
        self.textures.clear()
        self.derived_valid = False

    # ---- transforms ----
    def scale_group(self, grp: int, sx: float, sy: float, sz: float) -> None:
        self.groups[grp].scale(sx, sy, sz)
        if self.derived_valid:
            self.groups[grp].setup()

    def scale(self, sx: float, sy: Optional[float] = None, sz: Optional[float] = None) -> "Mesh":
        if sy is None:
            sy = sx
        if sz is None:
            sz = sx
        for grp in range(len(self.groups)):
            self.scale_group(grp, sx, sy, sz)
        return self

    def translate_group(self, grp: int, dx: float, dy: float, dz: float) -> None:
        g = self.groups[grp].translate(dx, dy, dz)
        if self.derived_valid:
            g.centroid = g.centroid + np.array([dx, dy, dz])

    def translate(self, dx: float, dy: float, dz: float) -> "Mesh":
        for grp in range(len(self.groups)):
            self.translate_group(grp, dx, dy, dz)
        return self

    def rotate_group(self, grp: int, axis: RotAxis, angle: float) -> None:
        g = self.groups[grp].rotate(axis, angle)
        if self.derived_valid:
            geometry.rotate_coords(g.centroid, axis, angle)

    def rotate(self, axis: RotAxis, angle: float) -> "Mesh":
        for grp in range(len(self.groups)):
            self.rotate_group(grp, axis, angle)
        return self

    def transform_group(self, grp: int, m: Mat4) -> None:
        self.groups[grp].transform(m)
        if self.derived_valid:
            self.groups[grp].setup()

    def transform(self, m: Mat4) -> "Mesh":
        for grp in range(len(self.groups)):
            self.transform_group(grp, m)
        return self

    def tex_scale_group(self, grp: int, su: float, sv: float) -> None:
        self.groups[grp].tex_scale(su, sv)

    def tex_scale(self, su: float, sv: float) -> "Mesh":
        for g in self.groups:
            g.tex_scale(su, sv)
        return self

    def calc_normals(self, grp: int, missing_only: bool = False) -> None:
        n = int(self.groups[grp].calc_normals(missing_only).sum())
        logger.debug("group %d: recomputed %d normals", grp, n)

    def calc_tex_coords(self, grp: int) -> None:
        self.groups[grp].calc_tex_coords()
