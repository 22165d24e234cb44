import unittest
import numpy as np
from polymatrix import Matrix4, Property
from polymatrix.properties import IDENTITY_FLAGS, TRANSLATION_FLAGS


def rot_x(a):
    c, s = np.cos(a), np.sin(a)
    return np.array([[1, 0, 0, 0], [0, c, -s, 0], [0, s, c, 0], [0, 0, 0, 1]], dtype=float)


def rot_y(a):
    c, s = np.cos(a), np.sin(a)
    return np.array([[c, 0, s, 0], [0, 1, 0, 0], [-s, 0, c, 0], [0, 0, 0, 1]], dtype=float)


def rot_z(a):
    c, s = np.cos(a), np.sin(a)
    return np.array([[c, -s, 0, 0], [s, c, 0, 0], [0, 0, 1, 0], [0, 0, 0, 1]], dtype=float)


def translation(x, y, z):
    t = np.eye(4)
    t[:3, 3] = [x, y, z]
    return t


def scaling(x, y, z):
    return np.diag([x, y, z, 1.0])


def axis_angle(angle, axis):
    n = np.asarray(axis, dtype=float) / np.linalg.norm(axis)
    k = np.array([[0, -n[2], n[1]], [n[2], 0, -n[0]], [-n[1], n[0], 0]])
    r = np.eye(4)
    r[:3, :3] = np.eye(3) + np.sin(angle) * k + (1 - np.cos(angle)) * (k @ k)
    return r


class TestMultiplication(unittest.TestCase):
    def setUp(self):
        rng = np.random.default_rng(7)
        self.general = Matrix4(rng.uniform(-1, 1, (4, 4)))
        self.affine = Matrix4.from_rotation(0.4, [1, 2, 3]).translate(1, -2, 0.5).scale(2, 3, 4)
        self.translation = Matrix4.from_translation(3, 4, 5)
        self.perspective = Matrix4.from_perspective(np.radians(60), 1.5, 0.1, 100)
        self.ortho = Matrix4.from_ortho(-2, 3, -1, 4, 0.5, 20)
        self.operands = [Matrix4(), self.general, self.affine, self.translation, self.perspective, self.ortho]

    def test_mul_matches_numpy_for_all_flag_pairs(self):
        # every dispatch branch must agree with the dense product
        for a in self.operands:
            for b in self.operands:
                out = a.mul(b)
                np.testing.assert_allclose(out.matrix, a.matrix @ b.matrix, atol=1e-9)

    def test_mul_result_flags(self):
        self.assertEqual(Matrix4().mul(self.affine).properties, self.affine.properties)
        self.assertEqual(self.translation.mul(self.translation).properties, TRANSLATION_FLAGS)
        self.assertEqual(self.translation.mul(self.affine).properties, Property.AFFINE)
        self.assertEqual(self.perspective.mul(self.affine).properties, Property.NONE)
        self.assertEqual(self.general.mul(Matrix4()).properties, Property.NONE)

    def test_identity_composition(self):
        identity = Matrix4()
        for a in self.operands:
            self.assertEqual(identity.mul(a), a)
            self.assertEqual(a.mul(identity), a)

    def test_specialized_products(self):
        expected = self.affine.matrix @ self.affine.matrix
        np.testing.assert_allclose(self.affine.mul_affine(self.affine).matrix, expected, atol=1e-9)
        np.testing.assert_allclose(self.general.mul_affine_r(self.affine).matrix,
                                   self.general.matrix @ self.affine.matrix, atol=1e-9)
        np.testing.assert_allclose(self.translation.mul_translation_affine(self.affine).matrix,
                                   self.translation.matrix @ self.affine.matrix, atol=1e-9)
        np.testing.assert_allclose(self.perspective.mul_perspective_affine(self.affine).matrix,
                                   self.perspective.matrix @ self.affine.matrix, atol=1e-9)
        np.testing.assert_allclose(self.ortho.mul_ortho_affine(self.affine).matrix,
                                   self.ortho.matrix @ self.affine.matrix, atol=1e-9)
        np.testing.assert_allclose(self.general.mul_generic(self.general).matrix,
                                   self.general.matrix @ self.general.matrix, atol=1e-9)

    def test_mul_local(self):
        out = self.general.mul_local(self.affine)
        np.testing.assert_allclose(out.matrix, self.affine.matrix @ self.general.matrix, atol=1e-9)
        out = self.affine.mul_local_affine(self.translation)
        np.testing.assert_allclose(out.matrix, self.translation.matrix @ self.affine.matrix, atol=1e-9)

    def test_dest_may_alias_an_operand(self):
        expected = self.general.matrix @ self.affine.matrix
        a = self.general.copy()
        b = self.affine.copy()
        a.mul(b, dest=b)
        np.testing.assert_allclose(b.matrix, expected, atol=1e-9)
        a = self.general.copy()
        a.mul(self.affine, inplace=True)
        np.testing.assert_allclose(a.matrix, expected, atol=1e-9)
        square = self.general.copy()
        square.mul(square, inplace=True)
        np.testing.assert_allclose(square.matrix, self.general.matrix @ self.general.matrix, atol=1e-9)

    def test_operations_return_new_matrix_by_default(self):
        before = self.general.matrix.copy()
        out = self.general.translate(1, 2, 3)
        self.assertIsNot(out, self.general)
        np.testing.assert_array_equal(self.general.matrix, before)

    def test_mul_3x2(self):
        m3x2 = np.array([[2.0, 0.5, 3.0], [-1.0, 1.5, 4.0]])
        embedded = np.eye(4)
        embedded[:2, :2] = m3x2[:, :2]
        embedded[:2, 3] = m3x2[:, 2]
        out = self.general.mul_3x2(m3x2)
        np.testing.assert_allclose(out.matrix, self.general.matrix @ embedded, atol=1e-9)
        with self.assertRaises(ValueError):
            self.general.mul_3x2(np.eye(3))


class TestElementWise(unittest.TestCase):
    def setUp(self):
        self.a = Matrix4.from_translation(1, 2, 3)
        self.b = Matrix4.from_scale(2)

    def test_add_sub(self):
        np.testing.assert_allclose(self.a.add(self.b).matrix, self.a.matrix + self.b.matrix)
        np.testing.assert_allclose(self.a.sub(self.b).matrix, self.a.matrix - self.b.matrix)
        self.assertEqual(self.a.add(self.b).properties, Property.NONE)

    def test_fma_and_lerp(self):
        np.testing.assert_allclose(self.a.fma(self.b, 0.5).matrix, self.a.matrix + self.b.matrix * 0.5)
        np.testing.assert_allclose(self.a.lerp(self.b, 0.0).matrix, self.a.matrix)
        np.testing.assert_allclose(self.a.lerp(self.b, 1.0).matrix, self.b.matrix)
        np.testing.assert_allclose(self.a.lerp(self.b, 0.25).matrix,
                                   0.75 * self.a.matrix + 0.25 * self.b.matrix)

    def test_mul_component_wise(self):
        out = self.a.mul_component_wise(self.b)
        np.testing.assert_allclose(out.matrix, self.a.matrix * self.b.matrix)
        self.assertEqual(out.properties, Property.NONE)


class TestApplyOperations(unittest.TestCase):
    def setUp(self):
        rng = np.random.default_rng(11)
        self.m = Matrix4(rng.uniform(-1, 1, (4, 4)))
        self.A = self.m.matrix.copy()

    def test_translate(self):
        np.testing.assert_allclose(self.m.translate(1, 2, 3).matrix, self.A @ translation(1, 2, 3), atol=1e-12)
        np.testing.assert_allclose(self.m.translate([1, 2, 3]).matrix, self.A @ translation(1, 2, 3), atol=1e-12)
        np.testing.assert_allclose(self.m.translate_local(1, 2, 3).matrix,
                                   translation(1, 2, 3) @ self.A, atol=1e-12)

    def test_scale(self):
        np.testing.assert_allclose(self.m.scale(2, 3, 4).matrix, self.A @ scaling(2, 3, 4), atol=1e-12)
        np.testing.assert_allclose(self.m.scale(2).matrix, self.A @ scaling(2, 2, 2), atol=1e-12)
        np.testing.assert_allclose(self.m.scale_local(2, 3, 4).matrix, scaling(2, 3, 4) @ self.A, atol=1e-12)

    def test_scale_around_keeps_origin_fixed(self):
        m = Matrix4().scale_around(2.0, [1, 1, 1])
        np.testing.assert_allclose(m.transform_position([1, 1, 1]), [1, 1, 1], atol=1e-12)
        np.testing.assert_allclose(m.transform_position([2, 1, 1]), [3, 1, 1], atol=1e-12)
        self.assertEqual(m.properties, Property.AFFINE)

    def test_axis_rotations(self):
        a = 0.3
        np.testing.assert_allclose(self.m.rotate_x(a).matrix, self.A @ rot_x(a), atol=1e-12)
        np.testing.assert_allclose(self.m.rotate_y(a).matrix, self.A @ rot_y(a), atol=1e-12)
        np.testing.assert_allclose(self.m.rotate_z(a).matrix, self.A @ rot_z(a), atol=1e-12)
        np.testing.assert_allclose(self.m.rotate_local_x(a).matrix, rot_x(a) @ self.A, atol=1e-12)
        np.testing.assert_allclose(self.m.rotate_local_y(a).matrix, rot_y(a) @ self.A, atol=1e-12)
        np.testing.assert_allclose(self.m.rotate_local_z(a).matrix, rot_z(a) @ self.A, atol=1e-12)

    def test_rotate_about_axis(self):
        axis = [1.0, -2.0, 0.5]
        np.testing.assert_allclose(self.m.rotate(0.8, axis).matrix, self.A @ axis_angle(0.8, axis), atol=1e-12)
        np.testing.assert_allclose(self.m.rotate_local(0.8, axis).matrix,
                                   axis_angle(0.8, axis) @ self.A, atol=1e-12)
        np.testing.assert_allclose(Matrix4.from_axis_angle([0.8, *axis]).matrix, axis_angle(0.8, axis), atol=1e-12)

    def test_rotate_quaternion_matches_axis_angle(self):
        axis = np.array([0.0, 1.0, 1.0]) / np.sqrt(2)
        angle = 1.1
        q = np.append(axis * np.sin(angle / 2), np.cos(angle / 2))
        np.testing.assert_allclose(self.m.rotate_quaternion(q).matrix,
                                   self.A @ axis_angle(angle, axis), atol=1e-12)
        q_wxyz = np.roll(q, 1)
        np.testing.assert_allclose(self.m.rotate_local_quaternion(q_wxyz, w_last=False).matrix,
                                   axis_angle(angle, axis) @ self.A, atol=1e-12)

    def test_rotate_around_point(self):
        axis = np.array([0.0, 1.0, 1.0]) / np.sqrt(2)
        q = np.append(axis * np.sin(0.6), np.cos(0.6))
        pivot = [2.0, -1.0, 3.0]
        expected = self.A @ translation(*pivot) @ axis_angle(1.2, axis) @ translation(*-np.asarray(pivot))
        np.testing.assert_allclose(self.m.rotate_around(q, pivot).matrix, expected, atol=1e-12)
        spun = Matrix4().rotate_around(q, pivot)
        np.testing.assert_allclose(spun.transform_position(pivot), pivot, atol=1e-12)
        self.assertEqual(spun.properties, Property.AFFINE)

    def test_rotate_towards(self):
        direction = np.array([1.0, 2.0, -2.0]) / 3.0
        towards = Matrix4.from_rotation_towards(direction, [0, 1, 0])
        np.testing.assert_allclose(towards.transform_direction([0, 0, 1]), direction, atol=1e-12)
        np.testing.assert_allclose(towards.determinant(), 1.0, atol=1e-12)
        # +Y stays in the plane spanned by up and the new forward axis
        self.assertAlmostEqual(np.dot(np.cross(direction, [0, 1, 0]), towards.transform_direction([0, 1, 0])), 0.0)
        np.testing.assert_allclose(self.m.rotate_towards(direction, [0, 1, 0]).matrix,
                                   self.A @ towards.matrix, atol=1e-12)

    def test_euler_sequences(self):
        x, y, z = 0.1, -0.4, 0.9
        np.testing.assert_allclose(self.m.rotate_xyz(x, y, z).matrix,
                                   self.A @ rot_x(x) @ rot_y(y) @ rot_z(z), atol=1e-12)
        np.testing.assert_allclose(self.m.rotate_zyx(z, y, x).matrix,
                                   self.A @ rot_z(z) @ rot_y(y) @ rot_x(x), atol=1e-12)
        np.testing.assert_allclose(self.m.rotate_yxz(y, x, z).matrix,
                                   self.A @ rot_y(y) @ rot_x(x) @ rot_z(z), atol=1e-12)
        np.testing.assert_allclose(Matrix4.from_euler_xyz(x, y, z).matrix,
                                   rot_x(x) @ rot_y(y) @ rot_z(z), atol=1e-12)

    def test_translation_rotate_scale(self):
        axis = np.array([1.0, 2.0, 3.0]) / np.linalg.norm([1.0, 2.0, 3.0])
        q = np.append(axis * np.sin(0.35), np.cos(0.35))
        m = Matrix4.from_translation_rotate_scale([1, 2, 3], q, [2, 3, 4])
        expected = translation(1, 2, 3) @ axis_angle(0.7, axis) @ scaling(2, 3, 4)
        np.testing.assert_allclose(m.matrix, expected, atol=1e-12)
        self.assertEqual(m.properties, Property.AFFINE)

    def test_inplace_apply(self):
        m = self.m.copy()
        out = m.translate(1, 0, 0, inplace=True).rotate_x(0.5, inplace=True)
        self.assertIs(out, m)
        np.testing.assert_allclose(m.matrix, self.A @ translation(1, 0, 0) @ rot_x(0.5), atol=1e-12)

    def test_dest(self):
        dest = Matrix4()
        out = self.m.scale(2, dest=dest)
        self.assertIs(out, dest)
        np.testing.assert_allclose(dest.matrix, self.A @ scaling(2, 2, 2), atol=1e-12)


class TestApplyFlags(unittest.TestCase):
    def test_translation_stays_translation(self):
        m = Matrix4.from_translation(1, 2, 3).translate(4, 5, 6)
        self.assertEqual(m.properties, TRANSLATION_FLAGS)
        m = Matrix4().translate_local(1, 0, 0)
        self.assertEqual(m.properties, TRANSLATION_FLAGS)

    def test_linear_ops_keep_only_affine(self):
        self.assertEqual(Matrix4.from_translation(1, 2, 3).rotate_x(0.1).properties, Property.AFFINE)
        self.assertEqual(Matrix4().scale(2).properties, Property.AFFINE)

    def test_identity_builder(self):
        self.assertEqual(Matrix4.identity().properties, IDENTITY_FLAGS)
        self.assertEqual(Matrix4.zero().properties, Property.NONE)

    def test_perspective_loses_flags(self):
        p = Matrix4.from_perspective(1.0, 1.0, 0.1, 10.0)
        self.assertEqual(p.translate(1, 2, 3).properties, Property.NONE)


if __name__ == "__main__":
    unittest.main()
