"""
pymsh: read MSHX1 text meshes, process them, and write binary .cmsh assets.
"""
from .config import ExportOptions, RenderSettings
from .errors import MeshError, MeshParseError, PymshError, ValidationError
from .geometry import RotAxis
from .mesh import (DEFAULT, INHERIT, Group, GroupFlag, IndexRef, Material, Mesh, MeshFlag, RefKind,
                   Texture, Vertex)
from .reader import ParseReport, load, loads, read_mesh, read_mesh_file
from .sphere import create_sphere_patch
from .writer import export, validate, write

__version__ = "0.1.0"
