import unittest

import numpy as np

from pymsh.errors import MeshError
from pymsh.mesh import (DEFAULT, INHERIT, GroupFlag, IndexRef, Material, Mesh, RefKind, Texture,
                        Vertex)


def _triangle():
    return [
        Vertex((0.0, 0.0, 0.0), (0.0, 0.0, 1.0), (0.0, 0.0)),
        Vertex((1.0, 0.0, 0.0), (0.0, 0.0, 1.0), (1.0, 0.0)),
        Vertex((0.0, 1.0, 0.0), (0.0, 0.0, 1.0), (0.0, 1.0)),
    ]


def _mesh_with_material_refs(nmtrl, refs):
    mesh = Mesh()
    mesh.extend_materials(Material(name=f"m{i}") for i in range(nmtrl))
    for ref in refs:
        mesh.add_group(_triangle(), [0, 1, 2], material=ref)
    return mesh


class IndexRefTests(unittest.TestCase):
    def test_explicit_rejects_negative(self):
        with self.assertRaises(MeshError):
            IndexRef.explicit(-1)

    def test_reconciled_downgrades_only_explicit_out_of_range(self):
        self.assertEqual(IndexRef.explicit(2).reconciled(3), IndexRef.explicit(2))
        self.assertIs(IndexRef.explicit(3).reconciled(3), DEFAULT)
        self.assertIs(INHERIT.reconciled(0), INHERIT)
        self.assertIs(DEFAULT.reconciled(0), DEFAULT)

    def test_wire_values(self):
        self.assertEqual(IndexRef.explicit(4).wire_value(), 4)
        self.assertEqual(DEFAULT.wire_value(), -1)
        self.assertEqual(INHERIT.wire_value(), -2)

    def test_repr(self):
        self.assertEqual(repr(IndexRef.explicit(1)), "Explicit(1)")
        self.assertEqual(repr(DEFAULT), "Default")
        self.assertEqual(repr(INHERIT), "Inherit")
        self.assertIs(INHERIT.kind, RefKind.INHERIT)


class GroupContainerTests(unittest.TestCase):
    def test_add_group_returns_sequential_indices(self):
        mesh = Mesh()
        self.assertEqual(mesh.add_group(_triangle(), [0, 1, 2]), 0)
        self.assertEqual(mesh.add_group(_triangle(), [0, 2, 1]), 1)
        g = mesh.get_group(1)
        self.assertEqual(g.vertices.shape, (3, 8))
        self.assertEqual(g.vertices.dtype, np.float32)
        self.assertEqual(g.indices.dtype, np.uint16)
        self.assertEqual(g.triangles.tolist(), [[0, 2, 1]])
        self.assertIs(g.material, INHERIT)
        self.assertIs(g.texture, INHERIT)
        self.assertIsNone(mesh.get_group(2))

    def test_add_group_adopts_or_copies_buffers(self):
        mesh = Mesh()
        vtx = np.zeros((3, 8), dtype=np.float32)
        idx = np.array([0, 1, 2], dtype=np.uint16)
        mesh.add_group(vtx, idx)
        self.assertTrue(np.shares_memory(mesh.groups[0].vertices, vtx))
        mesh.add_group(vtx, idx, copy=True)
        self.assertFalse(np.shares_memory(mesh.groups[1].vertices, vtx))
        self.assertFalse(np.shares_memory(mesh.groups[1].indices, idx))

    def test_rejected_add_leaves_mesh_unchanged(self):
        mesh = Mesh()
        mesh.add_group(_triangle(), [0, 1, 2])
        with self.assertRaises(MeshError):
            mesh.add_group(_triangle(), [0, 1, 3])
        with self.assertRaises(MeshError):
            mesh.add_group(_triangle(), [0, 1])
        with self.assertRaises(MeshError):
            mesh.add_group(_triangle(), [0, 1, 2], zbias=0x10000)
        with self.assertRaises(MeshError):
            mesh.add_group(np.zeros((3, 5)), [0, 1, 2])
        self.assertEqual(len(mesh.groups), 1)

    def test_remove_group_shifts_later_groups(self):
        mesh = Mesh()
        for label in ("a", "b", "c"):
            mesh.add_group(_triangle(), [0, 1, 2], label=label)
        self.assertTrue(mesh.remove_group(1))
        self.assertEqual([g.label for g in mesh.groups], ["a", "c"])
        self.assertFalse(mesh.remove_group(2))
        self.assertFalse(mesh.remove_group(-1))

    def test_add_group_block_offsets_indices(self):
        mesh = Mesh()
        mesh.add_group(_triangle(), [0, 1, 2])
        self.assertTrue(mesh.add_group_block(0, _triangle(), [0, 2, 1]))
        g = mesh.groups[0]
        self.assertEqual(g.nvtx, 6)
        self.assertEqual(g.indices.tolist(), [0, 1, 2, 3, 5, 4])
        self.assertFalse(mesh.add_group_block(1, _triangle(), [0, 1, 2]))

    def test_add_group_while_derived_valid_reconciles(self):
        mesh = Mesh()
        mesh.recompute_derived()
        mesh.add_group(_triangle(), [0, 1, 2], material=IndexRef.explicit(0))
        self.assertIs(mesh.groups[0].material, DEFAULT)
        np.testing.assert_allclose(mesh.groups[0].centroid, [1 / 3, 1 / 3, 0.0], atol=1e-6)

    def test_from_group(self):
        mesh = Mesh.from_group(_triangle(), [0, 1, 2])
        self.assertTrue(mesh.derived_valid)
        self.assertIs(mesh.groups[0].material, DEFAULT)
        self.assertAlmostEqual(mesh.groups[0].radius, np.sqrt(5.0) / 3.0, places=6)

    def test_user_flag_lookup(self):
        mesh = Mesh()
        mesh.add_group(_triangle(), [0, 1, 2], user_flag=0xDEADBEEF)
        self.assertEqual(mesh.get_group_user_flag(0), 0xDEADBEEF)
        self.assertEqual(mesh.get_group_user_flag(5), 0)


class MaterialContainerTests(unittest.TestCase):
    def test_remove_material_resets_and_decrements(self):
        refs = [IndexRef.explicit(0), IndexRef.explicit(1), IndexRef.explicit(2), DEFAULT, INHERIT]
        mesh = _mesh_with_material_refs(3, refs)
        self.assertTrue(mesh.remove_material(1))
        self.assertEqual([g.material for g in mesh.groups],
                         [IndexRef.explicit(0), IndexRef.explicit(0), IndexRef.explicit(1), DEFAULT, INHERIT])
        self.assertEqual([m.name for m in mesh.materials], ["m0", "m2"])

    def test_remove_first_material(self):
        mesh = _mesh_with_material_refs(3, [IndexRef.explicit(0), IndexRef.explicit(2)])
        mesh.remove_material(0)
        self.assertEqual([g.material for g in mesh.groups], [IndexRef.explicit(0), IndexRef.explicit(1)])

    def test_remove_last_remaining_material_downgrades(self):
        mesh = _mesh_with_material_refs(1, [IndexRef.explicit(0), INHERIT])
        mesh.remove_material(0)
        self.assertIs(mesh.groups[0].material, DEFAULT)
        self.assertIs(mesh.groups[1].material, INHERIT)

    def test_remove_material_out_of_range(self):
        mesh = _mesh_with_material_refs(1, [IndexRef.explicit(0)])
        self.assertFalse(mesh.remove_material(1))
        self.assertEqual(len(mesh.materials), 1)

    def test_add_material_returns_index(self):
        mesh = Mesh()
        self.assertEqual(mesh.add_material(Material()), 0)
        self.assertEqual(mesh.add_material(Material(name="x")), 1)
        self.assertEqual(mesh.get_material(1).name, "x")
        self.assertIsNone(mesh.get_material(2))

    def test_adding_groups_before_materials_keeps_references(self):
        mesh = _mesh_with_material_refs(0, [IndexRef.explicit(1)])
        mesh.extend_materials([Material(), Material()])
        self.assertEqual(mesh.groups[0].material, IndexRef.explicit(1))

    def test_recompute_downgrades_dangling_references(self):
        mesh = _mesh_with_material_refs(1, [IndexRef.explicit(4)])
        mesh.groups[0].texture = IndexRef.explicit(0)
        mesh.recompute_derived()
        self.assertIs(mesh.groups[0].material, DEFAULT)
        self.assertIs(mesh.groups[0].texture, DEFAULT)

    def test_default_material(self):
        m = Material.default()
        self.assertEqual(m.diffuse, (1.0, 1.0, 1.0, 1.0))
        self.assertEqual(m.specular, (0.0, 0.0, 0.0, 1.0))
        self.assertEqual(m.power, 0.0)


class TextureContainerTests(unittest.TestCase):
    def test_remove_texture_mirrors_materials(self):
        mesh = Mesh()
        mesh.extend_textures([Texture("a.dds"), Texture("b.dds")])
        mesh.add_group(_triangle(), [0, 1, 2], texture=IndexRef.explicit(1))
        mesh.add_group(_triangle(), [0, 1, 2], texture=IndexRef.explicit(0))
        self.assertTrue(mesh.remove_texture(0))
        self.assertEqual([g.texture for g in mesh.groups], [IndexRef.explicit(0), IndexRef.explicit(0)])
        self.assertEqual(mesh.get_texture_name(0), "b.dds")
        self.assertIsNone(mesh.get_texture_name(1))
        self.assertEqual(mesh.add_texture(Texture("c.dds")), 1)


class MergeAndCopyTests(unittest.TestCase):
    def test_merge_copies_groups_but_not_materials(self):
        src = _mesh_with_material_refs(2, [IndexRef.explicit(1)])
        src.groups[0].flags = GroupFlag.WRAP_U
        src.extend_textures([Texture("t.dds")])
        dst = Mesh()
        dst.add_group(_triangle(), [0, 1, 2])
        dst.merge(src)
        self.assertEqual(len(dst.groups), 2)
        self.assertEqual(len(dst.materials), 0)
        self.assertEqual(len(dst.textures), 0)
        merged = dst.groups[1]
        self.assertIs(merged.material, INHERIT)
        self.assertEqual(merged.flags, GroupFlag.WRAP_U)
        src.groups[0].vertices[0, 0] = 42.0
        self.assertEqual(merged.vertices[0, 0], 0.0)

    def test_copy_is_deep(self):
        mesh = _mesh_with_material_refs(1, [IndexRef.explicit(0)])
        mesh.recompute_derived()
        dup = mesh.copy()
        dup.groups[0].vertices[:, 0] += 5.0
        dup.materials[0].name = "changed"
        self.assertEqual(mesh.groups[0].vertices[1, 0], 1.0)
        self.assertEqual(mesh.materials[0].name, "m0")
        self.assertTrue(dup.derived_valid)

    def test_clear(self):
        mesh = _mesh_with_material_refs(1, [IndexRef.explicit(0)])
        mesh.recompute_derived()
        mesh.clear()
        self.assertEqual((len(mesh.groups), len(mesh.materials), len(mesh.textures)), (0, 0, 0))
        self.assertFalse(mesh.derived_valid)


if __name__ == "__main__":
    unittest.main()
