import unittest
import numpy as np
from polymatrix import Matrix4, Property
from polymatrix.properties import IDENTITY_FLAGS


def quaternion(angle, axis):
    axis = np.asarray(axis, dtype=float) / np.linalg.norm(axis)
    return np.append(axis * np.sin(angle / 2), np.cos(angle / 2))


class TestDecomposition(unittest.TestCase):
    def test_translation_rotate_scale_round_trip(self):
        m = Matrix4.from_translation_rotate_scale([1, 2, 3], [0, 0, 0, 1], [2, 2, 2])
        np.testing.assert_allclose(m.get_translation(), [1, 2, 3])
        np.testing.assert_allclose(m.get_scale(), [2, 2, 2])
        np.testing.assert_allclose(m.get_unnormalized_rotation(), [0, 0, 0, 1], atol=1e-12)

    def test_rotation_round_trip_every_branch(self):
        # angles near pi exercise the largest-diagonal branches
        for angle, axis in [(0.3, [1, 2, 3]), (3.0, [1, 0, 0]), (3.0, [0, 1, 0]), (3.0, [0, 0, 1]),
                            (2.9, [1, 1, -1])]:
            q = quaternion(angle, axis)
            out = Matrix4.from_quaternion(q).get_normalized_rotation()
            if np.dot(out, q) < 0:
                out = -out
            np.testing.assert_allclose(out, q, atol=1e-9)

    def test_unnormalized_rotation_ignores_scale(self):
        q = quaternion(0.7, [0, 1, 0])
        m = Matrix4.from_translation_rotate_scale([0, 0, 0], q, [3, 0.5, 2])
        np.testing.assert_allclose(m.get_unnormalized_rotation(), q, atol=1e-9)
        np.testing.assert_allclose(m.get_scale(), [3, 0.5, 2], atol=1e-12)

    def test_w_first(self):
        q = quaternion(0.7, [0, 1, 0])
        out = Matrix4.from_quaternion(q).get_normalized_rotation(w_last=False)
        np.testing.assert_allclose(out, np.roll(q, 1), atol=1e-9)

    def test_euler_angles(self):
        x, y, z = 0.2, -0.5, 1.3
        np.testing.assert_allclose(Matrix4.from_euler_zyx(z, y, x).get_euler_angles_zyx(), [x, y, z], atol=1e-12)
        np.testing.assert_allclose(Matrix4.from_euler_xyz(x, y, z).get_euler_angles_xyz(), [x, y, z], atol=1e-12)

    def test_set_translation(self):
        m = Matrix4.from_rotation_x(0.3).set_translation(4, 5, 6)
        np.testing.assert_allclose(m.get_translation(), [4, 5, 6])
        self.assertEqual(m.properties, Property.AFFINE)

    def test_3x3_access(self):
        m = Matrix4.from_translation(1, 2, 3)
        block = np.arange(9.0).reshape(3, 3)
        m.set_3x3(block)
        np.testing.assert_array_equal(m.get_3x3(), block)
        np.testing.assert_array_equal(m.matrix[:3, :3], block)
        np.testing.assert_allclose(m.get_translation(), [1, 2, 3])
        self.assertEqual(m.properties, Property.AFFINE)


class TestNormal(unittest.TestCase):
    def test_normal_of_scale(self):
        n = Matrix4.from_scale(2, 4, 8).translate(1, 2, 3).normal()
        np.testing.assert_allclose(n.matrix, np.diag([0.5, 0.25, 0.125, 1.0]), atol=1e-12)
        self.assertEqual(n.properties, Property.AFFINE)

    def test_normal_is_inverse_transpose(self):
        rng = np.random.default_rng(1)
        m = Matrix4(rng.uniform(-1, 1, (4, 4)))
        expected = np.linalg.inv(m.matrix[:3, :3]).T
        np.testing.assert_allclose(m.normal_3x3(), expected, atol=1e-9)
        np.testing.assert_allclose(m.normal().matrix[3], [0, 0, 0, 1])

    def test_normal_of_rotation_is_rotation(self):
        m = Matrix4.from_rotation(0.9, [1, 1, 0])
        np.testing.assert_allclose(m.normal_3x3(), m.get_3x3(), atol=1e-12)

    def test_normal_of_translation_is_identity(self):
        n = Matrix4.from_translation(1, 2, 3).normal()
        self.assertEqual(n.properties, IDENTITY_FLAGS)
        np.testing.assert_array_equal(n.matrix, np.eye(4))

    def test_normalize_3x3(self):
        m = Matrix4.from_rotation_y(0.4).scale(2, 3, 4).normalize_3x3()
        np.testing.assert_allclose(m.get_scale(), [1, 1, 1], atol=1e-12)
        np.testing.assert_allclose(m.get_3x3(), Matrix4.from_rotation_y(0.4).get_3x3(), atol=1e-12)


class TestDirections(unittest.TestCase):
    def test_positive_axes(self):
        m = Matrix4.from_rotation_z(np.pi / 2)
        np.testing.assert_allclose(m.positive_x(), [0, -1, 0], atol=1e-12)
        np.testing.assert_allclose(m.positive_y(), [1, 0, 0], atol=1e-12)
        np.testing.assert_allclose(m.positive_z(), [0, 0, 1], atol=1e-12)
        np.testing.assert_allclose(m.normalized_positive_x(), [0, -1, 0], atol=1e-12)
        np.testing.assert_allclose(m.normalized_positive_y(), [1, 0, 0], atol=1e-12)

    def test_positive_axis_is_mapped_onto_axis(self):
        m = Matrix4.from_rotation(1.2, [1, -2, 0.5])
        np.testing.assert_allclose(m.transform_direction(m.positive_x()), [1, 0, 0], atol=1e-12)
        np.testing.assert_allclose(m.transform_direction(m.positive_z()), [0, 0, 1], atol=1e-12)

    def test_origin(self):
        view = Matrix4.from_look_at([1, 2, 3], [0, 0, 0], [0, 1, 0])
        np.testing.assert_allclose(view.origin_affine(), [1, 2, 3], atol=1e-12)
        np.testing.assert_allclose(view.origin(), [1, 2, 3], atol=1e-12)
        view_projection = Matrix4.from_perspective(np.radians(60), 1.0, 0.1, 100).mul(view)
        np.testing.assert_allclose(view_projection.origin(), [1, 2, 3], atol=1e-9)

    def test_origin_of_off_center_projection(self):
        eye = [3, -1, 2]
        vp = Matrix4.from_frustum(-1, 3, -2, 0.5, 0.5, 50).mul(Matrix4.from_look_at(eye, [0, 0, 0], [0, 1, 0]))
        self.assertEqual(vp.properties, Property.NONE)
        np.testing.assert_allclose(vp.origin(), eye, atol=1e-9)
        np.testing.assert_allclose(vp.perspective_origin(), eye, atol=1e-9)
        # the eye has no finite clip-space image
        self.assertAlmostEqual(vp.transform([*eye, 1])[3], 0.0, places=12)

    def test_origin_of_ortho_projection(self):
        m = Matrix4.from_ortho(-2, 4, -1, 3, 1, 5)
        np.testing.assert_allclose(m.origin(), m.origin_affine(), atol=1e-12)
        np.testing.assert_allclose(m.transform_position(m.origin()), [0, 0, 0], atol=1e-12)


if __name__ == "__main__":
    unittest.main()
