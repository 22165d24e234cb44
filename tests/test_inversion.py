import unittest
import numpy as np
from polymatrix import Matrix4, Property
from polymatrix.properties import IDENTITY_FLAGS, TRANSLATION_FLAGS


class TestInversion(unittest.TestCase):
    def setUp(self):
        rng = np.random.default_rng(3)
        self.general = Matrix4(rng.uniform(-1, 1, (4, 4)))
        q = np.array([1.0, 2.0, 3.0]) / np.linalg.norm([1.0, 2.0, 3.0]) * np.sin(0.35)
        self.trs = Matrix4.from_translation_rotate_scale([1, 2, 3], np.append(q, np.cos(0.35)), [2, 3, 4])
        self.view = Matrix4.from_look_at([1, 2, 3], [0, 0, 0], [0, 1, 0])
        self.perspective = Matrix4.from_perspective(np.radians(60), 1.5, 0.1, 100)

    def assertInverse(self, m, inverse, atol=1e-9):
        np.testing.assert_allclose(inverse.matrix @ m.matrix, np.eye(4), atol=atol)
        np.testing.assert_allclose(m.matrix @ inverse.matrix, np.eye(4), atol=atol)

    def test_general_round_trip(self):
        self.assertInverse(self.general, self.general.invert())
        np.testing.assert_allclose(self.general.invert().matrix, np.linalg.inv(self.general.matrix), atol=1e-9)

    def test_double_inverse(self):
        for m in (self.general, self.trs, self.view, self.perspective):
            np.testing.assert_allclose(m.invert().invert().matrix, m.matrix, rtol=1e-9, atol=1e-12)

    def test_dispatch_matches_general(self):
        for m in (self.trs, self.view, self.perspective, Matrix4.from_translation(4, 5, 6), Matrix4()):
            np.testing.assert_allclose(m.invert().matrix, m.invert_general().matrix, atol=1e-9)
            self.assertInverse(m, m.invert(), atol=1e-7)

    def test_invert_affine(self):
        inverse = self.trs.invert_affine()
        np.testing.assert_allclose(inverse.matrix, self.trs.invert_general().matrix, atol=1e-12)
        self.assertEqual(inverse.properties, Property.AFFINE)

    def test_invert_translation_keeps_flags(self):
        inverse = Matrix4.from_translation(1, 2, 3).invert()
        np.testing.assert_allclose(inverse.get_translation(), [-1, -2, -3])
        self.assertEqual(inverse.properties, TRANSLATION_FLAGS)
        self.assertEqual(Matrix4().invert().properties, IDENTITY_FLAGS)

    def test_invert_affine_unit_scale(self):
        for inverse in (self.view.invert_affine_unit_scale(), self.view.invert_look_at()):
            np.testing.assert_allclose(inverse.matrix, np.linalg.inv(self.view.matrix), atol=1e-12)

    def test_invert_perspective(self):
        inverse = self.perspective.invert_perspective()
        np.testing.assert_allclose(inverse.matrix, np.linalg.inv(self.perspective.matrix), atol=1e-9)
        self.assertEqual(inverse.properties, Property.NONE)

    def test_invert_frustum(self):
        m = Matrix4.from_frustum(-1, 3, -2, 0.5, 0.5, 50)
        np.testing.assert_allclose(m.invert_frustum().matrix, np.linalg.inv(m.matrix), atol=1e-9)
        self.assertInverse(m, m.invert())

    def test_invert_ortho(self):
        m = Matrix4.from_ortho(-2, 3, -1, 4, 0.5, 20)
        inverse = m.invert_ortho()
        np.testing.assert_allclose(inverse.matrix, np.linalg.inv(m.matrix), atol=1e-12)
        self.assertEqual(inverse.properties, Property.AFFINE)

    def test_invert_perspective_view(self):
        inverse = self.perspective.invert_perspective_view(self.view)
        expected = np.linalg.inv(self.perspective.matrix @ self.view.matrix)
        np.testing.assert_allclose(inverse.matrix, expected, atol=1e-9)

    def test_inplace(self):
        m = self.general.copy()
        out = m.invert(inplace=True)
        self.assertIs(out, m)
        self.assertInverse(self.general, m)

    def test_singular_produces_non_finite(self):
        out = Matrix4.zero().invert()
        self.assertFalse(np.isfinite(out.matrix).all())

    def test_determinant(self):
        self.assertAlmostEqual(self.general.determinant(), np.linalg.det(self.general.matrix), places=9)
        self.assertAlmostEqual(self.trs.determinant(), 24.0, places=9)
        self.assertAlmostEqual(self.trs.determinant_affine(), 24.0, places=9)
        self.assertAlmostEqual(self.perspective.determinant(), np.linalg.det(self.perspective.matrix), places=9)
        self.assertAlmostEqual(Matrix4.from_scale(2, 3, 4).determinant_3x3(), 24.0)


class TestTranspose(unittest.TestCase):
    def test_transpose(self):
        m = Matrix4.from_translation(1, 2, 3)
        t = m.transpose()
        np.testing.assert_array_equal(t.matrix, m.matrix.T)
        self.assertEqual(t.properties, Property.NONE)
        self.assertEqual(Matrix4().transpose().properties, IDENTITY_FLAGS)

    def test_transpose_inplace(self):
        rng = np.random.default_rng(5)
        a = rng.uniform(-1, 1, (4, 4))
        m = Matrix4(a)
        m.transpose(inplace=True)
        np.testing.assert_array_equal(m.matrix, a.T)

    def test_transpose_3x3(self):
        m = Matrix4.from_rotation_z(0.5).translate(1, 2, 3)
        t = m.transpose_3x3()
        np.testing.assert_allclose(t.get_3x3(), m.get_3x3().T)
        np.testing.assert_allclose(t.get_translation(), m.get_translation())
        self.assertEqual(t.properties, Property.AFFINE)


if __name__ == "__main__":
    unittest.main()
